# Copyright (c) Syntropy Systems
"""splitgate results command."""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.table import Table

from splitgate.cli import common
from splitgate.errors import SplitgateError
from splitgate.presentation import present_results

if TYPE_CHECKING:
    from splitgate.models.results import ResultsSnapshot
    from splitgate.presentation import (
        ConclusionSummary,
        Notice,
        ResultsPresentation,
    )

console = Console()

SEVERITY_STYLES = {
    "info": "cyan",
    "warning": "yellow",
    "danger": "red",
}


def build_metrics_table(
    snapshot: ResultsSnapshot, view: ResultsPresentation | None = None
) -> Table:
    """Build the control vs variant table."""
    if view is None:
        view = present_results(snapshot)
    table = Table(title="Arms", show_header=True, header_style="bold")
    table.add_column("Arm")
    table.add_column("Searches", justify="right")
    table.add_column("Users", justify="right")
    table.add_column(view.metric_label, justify="right")

    table.add_row(
        "control",
        f"{snapshot.control.searches:,}",
        f"{snapshot.control.users:,}",
        view.control_value,
    )
    table.add_row(
        "variant",
        f"{snapshot.variant.searches:,}",
        f"{snapshot.variant.users:,}",
        view.variant_value,
    )
    return table


def format_notice(notice: Notice) -> str:
    """Notice line with its severity style."""
    style = SEVERITY_STYLES.get(notice.severity, "white")
    return f"[{style}]{notice.severity}:[/{style}] {notice.message}"


def _conclusion_lines(summary: ConclusionSummary) -> list[str]:
    lines = [
        f"[bold]Winner:[/bold] {summary.winner_label} ({summary.confidence})",
        f"  {summary.metric_comparison}",
        f"  [dim]promoted:[/dim] {summary.promoted}",
    ]
    if summary.reason:
        lines.append(f"  [dim]reason:[/dim] {summary.reason}")
    if summary.ended:
        lines.append(f"  [dim]ended:[/dim] {summary.ended}")
    return lines


def build_results_display(snapshot: ResultsSnapshot) -> Table:
    """Build the full results layout."""
    view = present_results(snapshot)
    gate = view.gate

    layout = Table.grid(padding=(0, 1))
    layout.add_row(
        f"[bold]{snapshot.name}[/bold] [dim]{snapshot.experiment_id}[/dim] "
        f"{common.styled_status(snapshot.status.value)}"
    )
    layout.add_row(build_metrics_table(snapshot, view))
    layout.add_row(f"[dim]total searches:[/dim] {view.total_searches:,}")

    if view.progress is not None:
        progress = f"[dim]sample size:[/dim] {view.progress}"
        if view.days_remaining is not None:
            progress += f" [dim]{view.days_remaining}[/dim]"
        layout.add_row(progress)
    elif gate.hard_ready:
        layout.add_row("[green]Ready to read[/green]")

    if view.confidence is not None:
        line = f"[dim]significance:[/dim] {view.confidence}"
        if view.significance_summary is not None:
            line += f" - {view.significance_summary}"
        if view.cuped_applied:
            line += " [dim](CUPED)[/dim]"
        layout.add_row(line)
    if view.bayesian is not None:
        layout.add_row(f"[dim]bayesian:[/dim] {view.bayesian}")
    if view.interleaving is not None:
        layout.add_row(f"[dim]interleaving:[/dim] {view.interleaving}")
    if view.recommendation:
        layout.add_row(f"[dim]recommendation:[/dim] {view.recommendation}")

    for notice in view.notices:
        layout.add_row(format_notice(notice))

    if view.conclusion is not None:
        for line in _conclusion_lines(view.conclusion):
            layout.add_row(line)
    elif gate.can_declare:
        hint = "splitgate declare " + snapshot.experiment_id
        if gate.needs_confirmation:
            hint += " [dim](minimum duration not reached)[/dim]"
        layout.add_row(f"[dim]Ready to decide:[/dim] {hint}")

    return layout


def results(
    experiment_id: str = typer.Argument(..., help="Experiment ID"),
    server: Optional[str] = common.SERVER_OPTION,
) -> None:
    """Show the latest results for an experiment."""
    with common.open_client(server) as client:
        try:
            snapshot = client.get_results(experiment_id)
        except SplitgateError as e:
            common.fail(e)

    console.print(build_results_display(snapshot))
