"""Main Typer application — imports and registers all CLI commands.

Entry point: ``deployforge`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from deployforge.cli.commands.deploy import deploy_cmd
from deployforge.cli.commands.history import history_cmd
from deployforge.cli.commands.status import status_cmd
from deployforge.cli.commands._settings import load_config
from deployforge.core.classifier import classify

app = typer.Typer(
    name="deployforge",
    help="deployforge: dependency-ordered, idempotent contract provisioning.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="deploy", help="Deploy or reuse all artifacts on a network.")(deploy_cmd)
app.command(name="status", help="Show recorded deployments for a network.")(status_cmd)
app.command(name="history", help="Show the action journal of a run.")(history_cmd)


@app.command(name="classify", help="Show how a network id is classified.")
def classify_cmd(
    network: Optional[str] = typer.Argument(None, help="Network id (default: configured network)."),
) -> None:
    """Print whether a network is treated as ephemeral or persistent."""
    config = load_config()
    network = network if network is not None else config.network
    policy = classify(network, config.ephemeral_networks)
    style = "green" if policy.ephemeral else "yellow"
    Console().print(f"{network}: [{style}]{policy.label}[/{style}]")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
