"""``deployforge status`` — show recorded deployments for a network."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from deployforge.cli.commands._settings import load_config
from deployforge.core.registry import DeploymentRegistry, RegistryError
from deployforge.monitor.renderer import RunRenderer

console = Console()


def status_cmd(
    network: Optional[str] = typer.Option(None, "--network", "-n", help="Network id."),
    deployments: Optional[Path] = typer.Option(
        None, "--deployments", "-d", help="Deployment record store directory."
    ),
) -> None:
    """List the artifacts recorded for a network, and any unconfirmed deploys."""
    config = load_config(network=network, deployments_path=deployments)
    registry = DeploymentRegistry(config.deployments_path, config.network)

    try:
        records = registry.list()
        pending_dir = registry.path / ".pending"
        pending = [
            registry.pending(path.stem) for path in sorted(pending_dir.glob("*.json"))
        ] if pending_dir.exists() else []
    except RegistryError as exc:
        console.print(f"[bold red]Registry error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if not records:
        console.print(f"[dim]No deployments recorded for {config.network}.[/dim]")
    else:
        renderer = RunRenderer(console=console)
        console.print(renderer.render_deployments(records, title=f"Deployments on {config.network}"))

    for marker in pending:
        if marker is not None:
            console.print(
                f"[yellow]Unconfirmed deploy:[/yellow] {marker.name} "
                f"(tx {marker.transaction_hash}, submitted {marker.submitted_at:%Y-%m-%d %H:%M:%S})"
            )
