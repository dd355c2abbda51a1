# Copyright (c) Syntropy Systems
"""Declaring a winner: the decision state machine and its submit sequence.

    Idle --declare--> SoftGateConfirm --proceed_anyway--> DecisionOpen
    Idle --declare (hard gate met)----------------------> DecisionOpen
    SoftGateConfirm --cancel--> Idle
    DecisionOpen --cancel--> Idle
    DecisionOpen --submit--> Submitting --ok--> Concluded
                                        --error--> DecisionOpen

Submitting promotes first (when requested) and only then concludes, so a
conclusion never records ``promoted=True`` for a promotion that failed.
"""
from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Protocol, Union

from splitgate.errors import (
    CollaboratorError,
    InvalidTransitionError,
    ValidationError,
    WorkflowAlreadyOpenError,
)
from splitgate.gate import GateEvaluation, evaluate_gate
from splitgate.metrics import extract_metric, metric_label
from splitgate.models.experiment import ConclusionPayload, VariantMode

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from splitgate.models.base import JSONValue
    from splitgate.models.experiment import Experiment
    from splitgate.models.results import ResultsSnapshot

logger = logging.getLogger(__name__)


class ExperimentConcluder(Protocol):
    """Collaborator that records a conclusion."""

    def conclude_experiment(
        self, experiment_id: str, payload: ConclusionPayload
    ) -> Experiment:
        ...


class SettingsUpdater(Protocol):
    """Collaborator that merges settings into an index configuration."""

    def update_settings(
        self, index_name: str, settings: Mapping[str, JSONValue]
    ) -> object:
        ...


class WinnerChoice(str, Enum):
    """Operator's winner selection."""

    CONTROL = "control"
    VARIANT = "variant"
    NONE = "none"

    def __str__(self) -> str:
        return self.value

    @property
    def wire_value(self) -> str | None:
        """Value sent in the conclusion payload."""
        return None if self is WinnerChoice.NONE else self.value


@dataclass
class DecisionForm:
    """Editable fields of the open decision view."""

    winner: WinnerChoice
    reason: str
    can_promote: bool
    promote: bool = False


# --- States ---


@dataclass(frozen=True)
class Idle:
    """No decision in progress."""


@dataclass(frozen=True)
class SoftGateConfirm:
    """Waiting for the operator to acknowledge the novelty-effect risk."""


@dataclass(frozen=True)
class DecisionOpen:
    """Decision view open and editable."""

    form: DecisionForm


@dataclass(frozen=True)
class Submitting:
    """Promote/conclude calls in flight."""

    form: DecisionForm


@dataclass(frozen=True)
class Concluded:
    """Conclusion recorded."""

    experiment: Experiment


DecisionState = Union[Idle, SoftGateConfirm, DecisionOpen, Submitting, Concluded]


NOVELTY_WARNING = (
    "The minimum duration has not been reached. Concluding early risks a novelty "
    "effect skewing results. Are you sure you want to proceed?"
)


def initial_winner(snapshot: ResultsSnapshot) -> WinnerChoice:
    """Pre-selected winner, mirroring the significance test."""
    winner = snapshot.significance.winner if snapshot.significance else None
    if winner == "control":
        return WinnerChoice.CONTROL
    if winner == "variant":
        return WinnerChoice.VARIANT
    return WinnerChoice.NONE


def default_reason(snapshot: ResultsSnapshot) -> str:
    """Templated reason text for the decision view."""
    sig = snapshot.significance
    label = metric_label(snapshot.primary_metric)
    if sig is not None and sig.significant and sig.winner:
        return (
            f"Statistically significant: {sig.winner} wins on {label} "
            f"with {sig.confidence * 100:.1f}% confidence."
        )
    if sig is not None and not sig.significant:
        return f"No statistically significant difference detected on {label}."
    return ""


def promotable_overrides(experiment: Experiment | None) -> dict[str, JSONValue] | None:
    """Query overrides that promotion would write, if promotion is possible."""
    if experiment is None or experiment.variant_mode is not VariantMode.QUERY_OVERRIDES:
        return None
    overrides = experiment.variant.query_overrides
    if not overrides:
        return None
    return dict(overrides)


def settings_diff(experiment: Experiment | None) -> list[str]:
    """Describe the variant configuration shown alongside the decision."""
    if experiment is None:
        return []
    variant = experiment.variant
    if variant.index_name:
        return [f"Mode B: routes to index {variant.index_name}"]
    return [
        f"{key}: {json.dumps(value)}"
        for key, value in (variant.query_overrides or {}).items()
    ]


class DecisionWorkflow:
    """Decision state for one experiment, owned by one operator surface."""

    experiment_id: str
    experiment: Experiment | None
    _snapshot: ResultsSnapshot
    _pending_snapshot: ResultsSnapshot | None
    _state: DecisionState
    _concluder: ExperimentConcluder
    _settings: SettingsUpdater
    _lock: threading.RLock

    def __init__(
        self,
        snapshot: ResultsSnapshot,
        concluder: ExperimentConcluder,
        settings: SettingsUpdater,
        experiment: Experiment | None = None,
    ) -> None:
        """Initialize the workflow.

        Args:
            snapshot: Latest results for the experiment
            concluder: Collaborator recording the conclusion
            settings: Collaborator applying promoted settings
            experiment: Experiment record; without it promotion is not offered

        """
        self.experiment_id = snapshot.experiment_id
        self.experiment = experiment
        self._snapshot = snapshot
        self._pending_snapshot = None
        self._state = Idle()
        self._concluder = concluder
        self._settings = settings
        self._lock = threading.RLock()

    # --- Read-only views ---

    @property
    def state(self) -> DecisionState:
        """Current state."""
        return self._state

    @property
    def snapshot(self) -> ResultsSnapshot:
        """Snapshot the workflow currently reasons about."""
        return self._snapshot

    @property
    def gate(self) -> GateEvaluation:
        """Gate flags for the current snapshot."""
        return evaluate_gate(self._snapshot)

    @property
    def can_promote(self) -> bool:
        """Promotion is offered only for mode A variants with overrides."""
        return promotable_overrides(self.experiment) is not None

    @property
    def form(self) -> DecisionForm:
        """Editable decision fields; only while the decision view is open."""
        state = self._state
        if isinstance(state, (DecisionOpen, Submitting)):
            return state.form
        msg = f"No decision form in state {type(state).__name__}"
        raise InvalidTransitionError(msg)

    # --- Transitions ---

    def declare(self) -> DecisionState:
        """Start declaring a winner."""
        with self._lock:
            self._require(Idle, "declare")
            gate = self.gate
            if not gate.can_declare:
                msg = (
                    f"Cannot declare a winner for experiment {self.experiment_id} "
                    f"(status={gate.status}, minimumNReached={gate.minimum_n_reached})"
                )
                raise InvalidTransitionError(msg)
            if gate.needs_confirmation:
                self._state = SoftGateConfirm()
            else:
                self._state = self._open_decision()
            return self._state

    def proceed_anyway(self) -> DecisionState:
        """Acknowledge the novelty-effect risk and open the decision view."""
        with self._lock:
            self._require(SoftGateConfirm, "proceed")
            self._state = self._open_decision()
            return self._state

    def cancel(self) -> DecisionState:
        """Close the confirmation or decision view, discarding edits."""
        with self._lock:
            self._require((SoftGateConfirm, DecisionOpen), "cancel")
            self._state = Idle()
            return self._state

    def select_winner(self, choice: WinnerChoice | str) -> None:
        """Change the winner selection."""
        with self._lock:
            form = self._open_form("select a winner")
            try:
                form.winner = WinnerChoice(choice)
            except ValueError as e:
                msg = f"Winner must be control, variant or none, got {choice!r}"
                raise ValidationError(msg) from e

    def set_reason(self, reason: str) -> None:
        """Replace the reason text."""
        with self._lock:
            self._open_form("edit the reason").reason = reason

    def set_promote(self, promote: bool) -> None:  # noqa: FBT001
        """Request or withdraw promotion of the variant's overrides."""
        with self._lock:
            form = self._open_form("change promotion")
            if promote and not form.can_promote:
                msg = (
                    "Promotion is only available for query-override variants "
                    "with at least one override"
                )
                raise ValidationError(msg)
            form.promote = promote

    def build_payload(self, form: DecisionForm | None = None) -> ConclusionPayload:
        """Conclusion payload for the given (default: current) form."""
        form = form or self.form
        snapshot = self._snapshot
        sig = snapshot.significance
        return ConclusionPayload(
            winner=form.winner.wire_value,
            reason=form.reason,
            control_metric=extract_metric(snapshot.primary_metric, snapshot.control),
            variant_metric=extract_metric(snapshot.primary_metric, snapshot.variant),
            confidence=sig.confidence if sig is not None else 0.0,
            significant=sig.significant if sig is not None else False,
            promoted=form.promote and form.can_promote,
        )

    def submit(self) -> Experiment:
        """Promote (if requested) and conclude, in that order.

        Raises:
            CollaboratorError: If either call fails; the decision view stays
                open with the operator's edits so the submit can be retried.

        """
        with self._lock:
            form = self._open_form("submit")
            payload = self.build_payload(form)
            self._state = Submitting(form=replace(form))

        try:
            if payload.promoted:
                self._promote()
            experiment = self._concluder.conclude_experiment(self.experiment_id, payload)
        except BaseException as exc:
            if isinstance(exc, CollaboratorError):
                logger.warning(
                    "Decision for experiment %s failed (%s); leaving decision open",
                    self.experiment_id,
                    exc,
                )
            elif isinstance(exc, Exception):
                logger.exception(
                    "Unexpected error concluding experiment %s", self.experiment_id
                )
            else:
                logger.warning(
                    "Decision for experiment %s interrupted; leaving decision open",
                    self.experiment_id,
                )
            with self._lock:
                self._state = DecisionOpen(form=form)
                self._apply_pending()
            raise

        logger.info(
            "Concluded experiment %s (winner=%s, promoted=%s)",
            self.experiment_id,
            payload.winner,
            payload.promoted,
        )
        with self._lock:
            self._state = Concluded(experiment=experiment)
            self._pending_snapshot = None
        return experiment

    def apply_snapshot(self, snapshot: ResultsSnapshot) -> bool:
        """Take a fresher snapshot; held back while a submit is in flight.

        Returns True if the snapshot was applied immediately.
        """
        with self._lock:
            if isinstance(self._state, Submitting):
                self._pending_snapshot = snapshot
                return False
            self._snapshot = snapshot
            return True

    # --- Internals ---

    def _open_decision(self) -> DecisionOpen:
        return DecisionOpen(
            form=DecisionForm(
                winner=initial_winner(self._snapshot),
                reason=default_reason(self._snapshot),
                can_promote=self.can_promote,
            )
        )

    def _open_form(self, action: str) -> DecisionForm:
        state = self._require(DecisionOpen, action)
        assert isinstance(state, DecisionOpen)  # noqa: S101
        return state.form

    def _require(
        self,
        expected: type | tuple[type, ...],
        action: str,
    ) -> DecisionState:
        state = self._state
        if not isinstance(state, expected):
            msg = f"Cannot {action} in state {type(state).__name__}"
            raise InvalidTransitionError(msg)
        return state

    def _promote(self) -> None:
        overrides = promotable_overrides(self.experiment)
        # guarded by can_promote when the payload was built
        assert overrides is not None  # noqa: S101
        assert self.experiment is not None  # noqa: S101
        index_name = self.experiment.index_name
        logger.info("Promoting variant overrides %s to index %s", overrides, index_name)
        self._settings.update_settings(index_name, overrides)

    def _apply_pending(self) -> None:
        if self._pending_snapshot is not None:
            self._snapshot = self._pending_snapshot
            self._pending_snapshot = None


class DecisionRegistry:
    """Owns the open decision workflows, at most one per experiment."""

    _open: dict[str, DecisionWorkflow]
    _lock: threading.Lock

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._open = {}
        self._lock = threading.Lock()

    def open(
        self,
        snapshot: ResultsSnapshot,
        concluder: ExperimentConcluder,
        settings: SettingsUpdater,
        experiment: Experiment | None = None,
    ) -> DecisionWorkflow:
        """Open a workflow for the snapshot's experiment."""
        with self._lock:
            if snapshot.experiment_id in self._open:
                msg = f"A decision is already open for experiment {snapshot.experiment_id}"
                raise WorkflowAlreadyOpenError(msg)
            workflow = DecisionWorkflow(snapshot, concluder, settings, experiment)
            self._open[snapshot.experiment_id] = workflow
            return workflow

    def get(self, experiment_id: str) -> DecisionWorkflow | None:
        """Return the open workflow for an experiment, if any."""
        with self._lock:
            return self._open.get(experiment_id)

    def close(self, experiment_id: str) -> None:
        """Release an experiment's workflow."""
        with self._lock:
            workflow = self._open.get(experiment_id)
            if workflow is not None and isinstance(workflow.state, Submitting):
                msg = f"Decision for experiment {experiment_id} is still submitting"
                raise InvalidTransitionError(msg)
            _ = self._open.pop(experiment_id, None)

    @contextmanager
    def session(
        self,
        snapshot: ResultsSnapshot,
        concluder: ExperimentConcluder,
        settings: SettingsUpdater,
        experiment: Experiment | None = None,
    ) -> Iterator[DecisionWorkflow]:
        """Open a workflow and release it when the block exits."""
        workflow = self.open(snapshot, concluder, settings, experiment)
        try:
            yield workflow
        except BaseException:
            # release unconditionally; the error in flight propagates
            with self._lock:
                _ = self._open.pop(snapshot.experiment_id, None)
            raise
        self.close(snapshot.experiment_id)

    def __len__(self) -> int:
        return len(self._open)
