# Copyright (c) Syntropy Systems
"""splitgate list, show, start, stop and delete commands."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.table import Table

from splitgate.cli import common
from splitgate.decision import settings_diff
from splitgate.errors import SplitgateError
from splitgate.metrics import metric_label
from splitgate.models.experiment import ExperimentStatus

if TYPE_CHECKING:
    from splitgate.models.experiment import Experiment

console = Console()


def format_timestamp(millis: Optional[int]) -> str:
    """Format an epoch-milliseconds timestamp as a date."""
    if not millis:
        return "-"
    try:
        ts = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return "-"
    return ts.strftime("%Y-%m-%d")


def list_experiments(
    status: Optional[str] = typer.Option(
        None,
        "--status",
        help="Filter by status (draft, running, stopped, concluded)",
    ),
    index: Optional[str] = typer.Option(
        None,
        "--index", "-i",
        help="Filter by index",
    ),
    server: Optional[str] = common.SERVER_OPTION,
) -> None:
    """List experiments."""
    if status is not None and status not in {s.value for s in ExperimentStatus}:
        common.fail(f"Unknown status: {status}")

    with common.open_client(server) as client:
        try:
            experiments = client.list_experiments(status=status, index_name=index)
        except SplitgateError as e:
            common.fail(e)

    if not experiments:
        console.print("[dim]No experiments found[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Index")
    table.add_column("Status")
    table.add_column("Metric")
    table.add_column("Split", justify="right")
    table.add_column("Started")

    for experiment in experiments:
        table.add_row(
            experiment.id,
            experiment.name,
            experiment.index_name,
            common.styled_status(experiment.status.value),
            metric_label(experiment.primary_metric),
            f"{experiment.traffic_split_percent}%",
            format_timestamp(experiment.started_at),
        )

    console.print(table)


def _show_experiment(experiment: Experiment) -> None:
    console.print(f"\n[bold]{experiment.name}[/bold] [dim]{experiment.id}[/dim]")
    console.print(f"  [dim]status:[/dim] {common.styled_status(experiment.status.value)}")
    console.print(f"  [dim]index:[/dim] {experiment.index_name}")
    console.print(f"  [dim]metric:[/dim] {metric_label(experiment.primary_metric)}")
    console.print(f"  [dim]mode:[/dim] {experiment.variant_mode.label}")
    console.print(
        f"  [dim]split:[/dim] control {100 - experiment.traffic_split_percent}% / "
        f"variant {experiment.traffic_split_percent}%"
    )
    console.print(f"  [dim]minimum days:[/dim] {experiment.minimum_days}")
    for line in settings_diff(experiment):
        console.print(f"  [dim]variant:[/dim] {line}")

    console.print()
    console.print(f"  [dim]created:[/dim] {format_timestamp(experiment.created_at)}")
    if experiment.started_at:
        console.print(f"  [dim]started:[/dim] {format_timestamp(experiment.started_at)}")
    if experiment.ended_at:
        console.print(f"  [dim]ended:[/dim] {format_timestamp(experiment.ended_at)}")

    conclusion = experiment.conclusion
    if conclusion is not None:
        console.print()
        console.print(f"  [dim]winner:[/dim] {conclusion.winner or 'none'}")
        console.print(f"  [dim]promoted:[/dim] {'yes' if conclusion.promoted else 'no'}")
        if conclusion.reason:
            console.print(f"  [dim]reason:[/dim] {conclusion.reason}")


def show(
    experiment_id: str = typer.Argument(..., help="Experiment ID"),
    server: Optional[str] = common.SERVER_OPTION,
) -> None:
    """Show experiment configuration and status."""
    with common.open_client(server) as client:
        try:
            experiment = client.get_experiment(experiment_id)
        except SplitgateError as e:
            common.fail(e)

    if experiment is None:
        common.fail(f"Experiment {experiment_id} not found")

    _show_experiment(experiment)


def start(
    experiment_id: str = typer.Argument(..., help="Experiment ID"),
    server: Optional[str] = common.SERVER_OPTION,
) -> None:
    """Start a draft experiment and begin splitting traffic."""
    with common.open_client(server) as client:
        try:
            experiment = client.start_experiment(experiment_id)
        except SplitgateError as e:
            common.fail(e)

    console.print(
        f"[green]Started experiment[/green] {experiment_id} "
        f"{common.styled_status(experiment.status.value)}"
    )


def stop(
    experiment_id: str = typer.Argument(..., help="Experiment ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    server: Optional[str] = common.SERVER_OPTION,
) -> None:
    """Stop a running experiment.

    A stopped experiment keeps its results and can still be concluded.
    """
    if not yes and not typer.confirm(f"Stop experiment {experiment_id}?"):
        console.print("[dim]Cancelled[/dim]")
        return

    with common.open_client(server) as client:
        try:
            experiment = client.stop_experiment(experiment_id)
        except SplitgateError as e:
            common.fail(e)

    console.print(
        f"[yellow]Stopped experiment[/yellow] {experiment_id} "
        f"{common.styled_status(experiment.status.value)}"
    )


def delete(
    experiment_id: str = typer.Argument(..., help="Experiment ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    server: Optional[str] = common.SERVER_OPTION,
) -> None:
    """Delete an experiment."""
    if not yes and not typer.confirm(f"Delete experiment {experiment_id}?"):
        console.print("[dim]Cancelled[/dim]")
        return

    with common.open_client(server) as client:
        try:
            client.delete_experiment(experiment_id)
        except SplitgateError as e:
            common.fail(e)

    console.print(f"[green]Deleted experiment[/green] {experiment_id}")
