"""Rich terminal renderer for provisioning runs.

Color scheme
------------
- green     : PASSED / success
- cyan      : already satisfied
- red       : FAILED / failed
- bold red  : BLOCKED
- dim       : NOT_STARTED
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from deployforge.models.actions import ActionRecord, Outcome
from deployforge.models.artifacts import ArtifactDescriptor
from deployforge.models.steps import RunReport, StepState

_STATE_ICONS: dict[StepState, str] = {
    StepState.PASSED: "[green]PASSED[/green]",
    StepState.FAILED: "[bold red]FAILED[/bold red]",
    StepState.RUNNING: "[yellow]RUNNING[/yellow]",
    StepState.NOT_STARTED: "[dim]NOT STARTED[/dim]",
    StepState.BLOCKED: "[bold red]BLOCKED[/bold red]",
}

_OUTCOME_ICONS: dict[Outcome, str] = {
    Outcome.SUCCESS: "[green]success[/green]",
    Outcome.ALREADY_SATISFIED: "[cyan]already satisfied[/cyan]",
    Outcome.FAILED: "[red]failed[/red]",
}


def _short(value: str | None, width: int = 12) -> str:
    if not value:
        return "[dim]-[/dim]"
    return value if len(value) <= width + 2 else f"{value[:width]}…"


class RunRenderer:
    """Renders run reports and registry contents as Rich tables.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Run report
    # ------------------------------------------------------------------

    def render_steps(self, report: RunReport) -> Table:
        table = Table(title="Steps", expand=True, show_lines=False)
        table.add_column("#", style="dim", width=3)
        table.add_column("Step", style="cyan")
        table.add_column("State", justify="center")
        table.add_column("Actions", justify="right")

        for index, name in enumerate(report.plan):
            count = sum(1 for r in report.records if r.step == name)
            table.add_row(str(index), name, _STATE_ICONS[report.states[name]], str(count))
        return table

    def render_actions(self, records: list[ActionRecord], title: str = "Actions") -> Table:
        table = Table(title=title, expand=True)
        table.add_column("Step", style="cyan")
        table.add_column("Artifact")
        table.add_column("Action")
        table.add_column("Outcome", justify="center")
        table.add_column("Tx", style="dim")
        table.add_column("Detail", overflow="fold")

        for record in records:
            table.add_row(
                record.step or "-",
                record.artifact,
                record.action.value,
                _OUTCOME_ICONS[record.outcome],
                _short(record.transaction_hash),
                record.detail,
            )
        return table

    def render_report(self, report: RunReport) -> Panel:
        parts = [
            f"[bold]Run:[/bold] {report.run_id}",
            f"[bold]Network:[/bold] {report.network} "
            f"({'ephemeral' if report.ephemeral else 'persistent'})",
            f"[bold]Deployer:[/bold] {report.deployer}",
        ]
        if report.error:
            parts.append(f"[bold red]Aborted:[/bold red] {report.error}")
        elif report.succeeded:
            parts.append("[bold green]All steps passed[/bold green]")
        border = "red" if report.error else "green"
        return Panel("\n".join(parts), title="[bold]deployforge[/bold]", border_style=border)

    def print_report(self, report: RunReport) -> None:
        self.console.print(self.render_steps(report))
        if report.records:
            self.console.print(self.render_actions(report.records))
        deployed = [d for d in report.artifacts.values() if d.deployed]
        if deployed:
            self.console.print(self.render_deployments(deployed))
        for message in report.follow_ups:
            self.console.print(f"[yellow]Manual follow-up:[/yellow] {message}")
        self.console.print(self.render_report(report))

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def render_deployments(
        self, descriptors: list[ArtifactDescriptor], title: str = "Deployments"
    ) -> Table:
        table = Table(title=title, expand=True)
        table.add_column("Artifact", style="cyan")
        table.add_column("Kind")
        table.add_column("Address", style="green")
        table.add_column("Block", justify="right")
        table.add_column("Args", overflow="fold")

        for d in descriptors:
            table.add_row(
                d.name,
                d.kind,
                d.handle or "[dim]not deployed[/dim]",
                str(d.block_number) if d.block_number is not None else "-",
                ", ".join(str(a) for a in d.constructor_args) or "-",
            )
        return table
