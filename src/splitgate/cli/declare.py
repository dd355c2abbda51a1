# Copyright (c) Syntropy Systems
"""splitgate declare command."""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console

from splitgate.cli import common
from splitgate.config import load_config
from splitgate.decision import (
    NOVELTY_WARNING,
    DecisionRegistry,
    SoftGateConfirm,
    settings_diff,
)
from splitgate.errors import (
    CollaboratorError,
    InvalidTransitionError,
    SplitgateError,
    ValidationError,
)
from splitgate.poller import ResultsPoller
from splitgate.presentation import winner_label

if TYPE_CHECKING:
    from splitgate.decision import DecisionWorkflow
    from splitgate.models.experiment import Experiment

console = Console()

registry = DecisionRegistry()


def _acknowledge_soft_gate(
    workflow: DecisionWorkflow,
    accept_early: bool,  # noqa: FBT001
    yes: bool,  # noqa: FBT001
) -> bool:
    """Walk the novelty confirmation; False if the operator backed out."""
    console.print(f"[yellow]Warning:[/yellow] {NOVELTY_WARNING}")
    if not accept_early:
        if yes:
            _ = workflow.cancel()
            common.fail(
                "Minimum duration not reached; pass --accept-early to conclude now"
            )
        if not typer.confirm("Proceed anyway?", default=False):
            _ = workflow.cancel()
            return False
    _ = workflow.proceed_anyway()
    return True


def _run_decision(  # noqa: PLR0913
    workflow: DecisionWorkflow,
    winner: str | None,
    reason: str | None,
    promote: bool,  # noqa: FBT001
    accept_early: bool,  # noqa: FBT001
    yes: bool,  # noqa: FBT001
) -> Experiment | None:
    try:
        state = workflow.declare()
    except InvalidTransitionError as e:
        common.fail(e)

    if isinstance(state, SoftGateConfirm) and not _acknowledge_soft_gate(
        workflow, accept_early, yes
    ):
        console.print("[dim]Cancelled[/dim]")
        return None

    try:
        if winner is not None:
            workflow.select_winner(winner)
        if reason is not None:
            workflow.set_reason(reason)
        if promote:
            workflow.set_promote(True)
    except ValidationError as e:
        common.fail(e)

    form = workflow.form
    console.print(f"[bold]Winner:[/bold] {winner_label(form.winner.wire_value)}")
    console.print(f"  [dim]reason:[/dim] {form.reason or '-'}")
    if form.can_promote:
        console.print(f"  [dim]promote:[/dim] {'yes' if form.promote else 'no'}")
        for line in settings_diff(workflow.experiment):
            console.print(f"    {line}")

    if not yes and not typer.confirm("Submit decision?", default=True):
        _ = workflow.cancel()
        console.print("[dim]Cancelled[/dim]")
        return None

    try:
        return workflow.submit()
    except CollaboratorError as e:
        console.print("[dim]The decision was not recorded; re-run to retry.[/dim]")
        common.fail(e)


def declare(  # noqa: PLR0913
    experiment_id: str = typer.Argument(..., help="Experiment ID"),
    winner: Optional[str] = typer.Option(
        None,
        "--winner", "-w",
        help="control, variant or none (default: follows the significance test)",
    ),
    reason: Optional[str] = typer.Option(
        None,
        "--reason", "-r",
        help="Reason recorded with the conclusion (default: generated)",
    ),
    promote: bool = typer.Option(
        False,
        "--promote",
        help="Apply the variant's query overrides to the index before concluding",
    ),
    accept_early: bool = typer.Option(
        False,
        "--accept-early",
        help="Acknowledge concluding before the minimum duration has elapsed",
    ),
    yes: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Submit without the final confirmation",
    ),
    server: Optional[str] = common.SERVER_OPTION,
) -> None:
    """Declare a winner and conclude an experiment.

    Requires the sample-size gate. If the minimum duration has not elapsed yet
    the novelty-effect risk must be acknowledged, interactively or with
    --accept-early. Results keep refreshing in the background while prompts
    are open; edits are never overwritten.

        splitgate declare abc123 --winner variant --promote
    """
    interval = load_config().poll_interval

    with common.open_client(server) as client:
        try:
            snapshot = client.get_results(experiment_id)
            experiment = client.get_experiment(experiment_id)
        except SplitgateError as e:
            common.fail(e)

        with registry.session(snapshot, client, client, experiment) as workflow:
            poller = ResultsPoller(
                client, experiment_id, workflow.apply_snapshot, interval=interval
            )
            poller.start()
            try:
                concluded = _run_decision(
                    workflow, winner, reason, promote, accept_early, yes
                )
            finally:
                poller.stop()

    if concluded is None:
        return

    conclusion = concluded.conclusion
    console.print(
        f"[green]Concluded experiment[/green] {experiment_id} "
        f"{common.styled_status(concluded.status.value)}"
    )
    if conclusion is not None and conclusion.promoted:
        console.print(f"  [dim]promoted to index:[/dim] {concluded.index_name}")
