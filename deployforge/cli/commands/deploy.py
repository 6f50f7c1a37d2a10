"""``deployforge deploy`` — run the provisioning pipeline against a network.

Exits non-zero when a critical action fails or the configuration is invalid.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from deployforge.cli.commands._settings import load_config
from deployforge.cli.log_setup import configure_logging
from deployforge.core.errors import ConfigurationError, FatalActionError
from deployforge.core.orchestrator import DependencyNotResolvedError, Orchestrator
from deployforge.core.registry import RegistryError
from deployforge.monitor.renderer import RunRenderer
from deployforge.network.client import NetworkError

console = Console()


def deploy_cmd(
    network: Optional[str] = typer.Option(
        None, "--network", "-n", help="Target network id (default: DEPLOYFORGE_NETWORK or localhost)."
    ),
    tags: Optional[list[str]] = typer.Option(
        None, "--tags", "-t", help="Only run steps with these tags (plus their dependencies)."
    ),
    owner: Optional[str] = typer.Option(
        None, "--owner", help="Hand vendor ownership to this address."
    ),
    prefund: Optional[str] = typer.Option(
        None, "--prefund", help="Send a few Balloons to this address."
    ),
    deployments: Optional[Path] = typer.Option(
        None, "--deployments", "-d", help="Deployment record store directory."
    ),
    journal: Optional[Path] = typer.Option(
        None, "--journal", help="Path to the action journal SQLite database."
    ),
    simulate: Optional[bool] = typer.Option(
        None, "--simulate/--no-simulate", help="Rehearse on the simulated chain."
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level."),
) -> None:
    """Deploy or reuse every artifact, then run the network-appropriate setup."""
    try:
        config = load_config(
            network=network,
            owner_override=owner,
            prefund_address=prefund,
            deployments_path=deployments,
            journal_path=journal,
            simulate=simulate,
            log_level=log_level,
        )
        configure_logging("DEBUG" if config.debug else config.log_level, console)
        orchestrator = Orchestrator(config=config)
    except (ConfigurationError, NetworkError) as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    renderer = RunRenderer(console=console)
    try:
        orchestrator.run(tags=tags)
    except (
        ConfigurationError,
        FatalActionError,
        NetworkError,
        RegistryError,
        DependencyNotResolvedError,
    ) as exc:
        if orchestrator.report is not None:
            renderer.print_report(orchestrator.report)
        console.print(f"[bold red]Run aborted:[/bold red] {exc}")
        raise typer.Exit(code=1)

    renderer.print_report(orchestrator.report)
