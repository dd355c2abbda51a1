# Copyright (c) Syntropy Systems
"""splitgate create command."""
from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from splitgate.cli import common
from splitgate.cli.estimate import print_estimate
from splitgate.draft import STABLE_USER_TOKEN_NOTICE, ExperimentDraft
from splitgate.errors import SplitgateError, ValidationError
from splitgate.metrics import describe_metric
from splitgate.models.experiment import VariantMode

console = Console()


def _advance(draft: ExperimentDraft) -> None:
    try:
        _ = draft.advance()
    except ValidationError as e:
        common.fail(e)


def _print_review(draft: ExperimentDraft) -> None:
    table = Table(title="Review", show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    for label, value in draft.review():
        table.add_row(label, value)
    console.print(table)


def create(  # noqa: PLR0913
    name: Optional[str] = typer.Option(
        None,
        "--name", "-n",
        help="Experiment name",
    ),
    index: Optional[str] = typer.Option(
        None,
        "--index", "-i",
        help="Index the experiment runs against",
    ),
    metric: str = typer.Option(
        "ctr",
        "--metric", "-m",
        help="Primary metric (ctr, conversionRate, revenuePerSearch, "
        "zeroResultRate, abandonmentRate)",
    ),
    mode: str = typer.Option(
        "modeA",
        "--mode",
        help="modeA (query overrides) or modeB (separate variant index)",
    ),
    variant_index: Optional[str] = typer.Option(
        None,
        "--variant-index",
        help="Variant index for modeB",
    ),
    enable_synonyms: bool = typer.Option(
        False,
        "--enable-synonyms",
        help="Variant enables synonyms (modeA)",
    ),
    enable_rules: bool = typer.Option(
        False,
        "--enable-rules",
        help="Variant enables rules (modeA)",
    ),
    filters: str = typer.Option(
        "",
        "--filters",
        help="Variant filter expression, e.g. brand:Nike (modeA)",
    ),
    split: int = typer.Option(
        50,
        "--split",
        help="Percent of traffic sent to the variant (1-99)",
    ),
    minimum_days: int = typer.Option(
        14,
        "--min-days",
        help="Minimum runtime in days before a winner can be declared freely",
    ),
    start: bool = typer.Option(
        False,
        "--start",
        help="Start the experiment right after creating it",
    ),
    yes: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Launch without the final confirmation",
    ),
    server: Optional[str] = common.SERVER_OPTION,
) -> None:
    """Create an experiment.

    Walks through the same four steps as the dashboard wizard: target,
    variant, traffic, review. Missing name and index are prompted for.

        splitgate create -n "Synonyms on" -i products --enable-synonyms --split 50
    """
    with common.open_client(server) as client:
        draft = ExperimentDraft()
        try:
            draft.set_known_indexes(client.list_indexes())
            draft.set_primary_metric(metric)
            draft.set_variant_mode(mode)
        except SplitgateError as e:
            common.fail(e)

        # Step 1: target
        draft.name = name if name is not None else typer.prompt("Experiment name")
        draft.index_name = index if index is not None else typer.prompt("Index")
        _advance(draft)
        spec = describe_metric(draft.primary_metric)
        console.print(f"[dim]{spec.label}: {spec.description}[/dim]")

        # Step 2: variant
        if draft.variant_mode is VariantMode.SEPARATE_INDEX:
            if variant_index is None:
                options = ", ".join(draft.variant_index_options()) or "-"
                console.print(f"[dim]Available variant indexes: {options}[/dim]")
                variant_index = typer.prompt("Variant index")
            draft.variant_index_name = variant_index
        else:
            draft.enable_synonyms = enable_synonyms
            draft.enable_rules = enable_rules
            draft.filters = filters
        _advance(draft)

        # Step 3: traffic
        draft.set_traffic_split(split)
        draft.set_minimum_days(minimum_days)
        print_estimate(draft.runtime_estimate())
        console.print(f"[cyan]Note:[/cyan] {STABLE_USER_TOKEN_NOTICE}")
        _advance(draft)

        # Step 4: review
        _print_review(draft)
        if not yes and not typer.confirm("Launch experiment?", default=True):
            console.print("[dim]Cancelled[/dim]")
            return

        try:
            request = draft.finalize()
            experiment = client.create_experiment(request)
        except SplitgateError as e:
            common.fail(e)

        console.print(
            f"[green]Created experiment[/green] {experiment.id} "
            f"({experiment.name}) {common.styled_status(experiment.status.value)}"
        )

        if start:
            try:
                experiment = client.start_experiment(experiment.id)
            except SplitgateError as e:
                common.fail(e)
            console.print(
                f"[green]Started[/green] {experiment.id} "
                f"{common.styled_status(experiment.status.value)}"
            )
