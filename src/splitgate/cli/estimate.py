# Copyright (c) Syntropy Systems
"""splitgate estimate command."""
from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from splitgate.estimator import (
    ASSUMED_DAILY_SEARCHES,
    RuntimeAlert,
    RuntimeEstimate,
    estimate_runtime,
)

console = Console()


def build_estimate_table(estimate: RuntimeEstimate) -> Table:
    """Build the runtime estimate table."""
    table = Table(
        title=f"Runtime estimate (at {ASSUMED_DAILY_SEARCHES:,} searches/day)",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Scenario")
    table.add_column("Estimated runtime", justify="right")
    for row in estimate.rows:
        table.add_row(row.label, f"~{row.estimated_days} days")
    return table


def print_estimate(estimate: RuntimeEstimate) -> None:
    """Print the estimate table and any runtime warning."""
    console.print(build_estimate_table(estimate))
    if estimate.message is None:
        return
    style = "red" if estimate.alert is RuntimeAlert.DANGER else "yellow"
    console.print(f"[{style}]Warning:[/{style}] {estimate.message}")


def estimate(
    split: int = typer.Option(
        50,
        "--split",
        help="Percent of traffic sent to the variant (1-99)",
    ),
) -> None:
    """Estimate how long an experiment will run at a traffic split.

    The smaller arm limits the runtime, so 90 and 10 give the same answer.
    """
    result = estimate_runtime(split)
    if result.split_percent != split:
        console.print(f"[dim]Split clamped to {result.split_percent}%[/dim]")
    console.print(
        f"[dim]Variant {result.split_percent}% / control "
        f"{100 - result.split_percent}% (bottleneck arm {result.bottleneck_percent}%)[/dim]"
    )
    print_estimate(result)
