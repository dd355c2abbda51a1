# Copyright (c) Syntropy Systems
"""Readiness gates that decide when a winner may be declared."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from splitgate.models.experiment import ExperimentStatus

if TYPE_CHECKING:
    from splitgate.models.results import GateStatus, ResultsSnapshot

logger = logging.getLogger(__name__)

DECIDABLE_STATUSES = frozenset({ExperimentStatus.RUNNING, ExperimentStatus.STOPPED})


@dataclass(frozen=True)
class GateEvaluation:
    """Flags derived from a snapshot's gate record and experiment status."""

    status: ExperimentStatus
    minimum_n_reached: bool
    minimum_days_reached: bool
    ready_to_read: bool

    @property
    def eligible_to_decide(self) -> bool:
        """Running and stopped experiments may be concluded."""
        return self.status in DECIDABLE_STATUSES

    @property
    def hard_ready(self) -> bool:
        """Both sample size and minimum duration reached."""
        return self.minimum_n_reached and self.minimum_days_reached

    @property
    def soft_ready(self) -> bool:
        """Sample size reached but the minimum duration has not elapsed."""
        return self.minimum_n_reached and not self.minimum_days_reached

    @property
    def can_declare(self) -> bool:
        """Whether a winner may be declared at all."""
        return self.eligible_to_decide and (self.hard_ready or self.soft_ready)

    @property
    def needs_confirmation(self) -> bool:
        """Declaring now requires the novelty-risk acknowledgment."""
        return self.soft_ready and not self.hard_ready


def evaluate(gate: GateStatus, status: ExperimentStatus) -> GateEvaluation:
    """Derive decision flags from a gate record."""
    evaluation = GateEvaluation(
        status=status,
        minimum_n_reached=gate.minimum_n_reached,
        minimum_days_reached=gate.minimum_days_reached,
        ready_to_read=gate.ready_to_read,
    )
    if evaluation.ready_to_read != evaluation.hard_ready:
        logger.warning(
            "Upstream readyToRead=%s disagrees with derived gate "
            "(minimumNReached=%s, minimumDaysReached=%s); using derived value",
            gate.ready_to_read,
            gate.minimum_n_reached,
            gate.minimum_days_reached,
        )
    return evaluation


def evaluate_gate(snapshot: ResultsSnapshot) -> GateEvaluation:
    """Derive decision flags from a results snapshot."""
    return evaluate(snapshot.gate, snapshot.status)
