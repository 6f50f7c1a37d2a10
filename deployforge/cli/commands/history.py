"""``deployforge history`` — browse the action journal."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from deployforge.cli.commands._settings import load_config
from deployforge.core.journal import ActionJournal, JournalIntegrityError
from deployforge.monitor.renderer import RunRenderer

console = Console()


def history_cmd(
    run_id: Optional[str] = typer.Option(
        None, "--run-id", "-r", help="Run to show (default: most recent)."
    ),
    network: Optional[str] = typer.Option(None, "--network", "-n", help="Filter runs by network."),
    journal: Optional[Path] = typer.Option(
        None, "--journal", help="Path to the action journal SQLite database."
    ),
    list_runs: bool = typer.Option(False, "--list", "-l", help="List run ids instead."),
) -> None:
    """Show what a run did, action by action, and verify its hash chain."""
    config = load_config(journal_path=journal)
    action_journal = ActionJournal(config.journal_path)
    run_ids = action_journal.get_all_run_ids(network)

    if list_runs:
        for rid in run_ids:
            console.print(rid)
        return

    run_id = run_id or (run_ids[0] if run_ids else None)
    if run_id is None:
        console.print("[dim]The journal is empty.[/dim]")
        return

    records = action_journal.get_run_entries(run_id)
    if not records:
        console.print(f"[red]No journal entries for run {run_id}.[/red]")
        raise typer.Exit(code=1)

    console.print(RunRenderer(console=console).render_actions(records, title=f"Run {run_id}"))
    try:
        action_journal.verify_chain(run_id)
    except JournalIntegrityError as exc:
        console.print(f"[bold red]Journal chain BROKEN:[/bold red] {exc}")
        raise typer.Exit(code=1)
    console.print("[green]Journal chain verified.[/green]")
