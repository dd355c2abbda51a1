# Copyright (c) Syntropy Systems
"""Display-ready figures and notices derived from a results snapshot.

Everything here is a read-only projection: missing optional data means the
corresponding figure or notice is absent, never an error.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from splitgate.gate import GateEvaluation, evaluate_gate
from splitgate.metrics import (
    extract_metric,
    format_metric_value,
    format_pct,
    metric_label,
)
from splitgate.models.experiment import ExperimentStatus

if TYPE_CHECKING:
    from splitgate.models.experiment import Conclusion
    from splitgate.models.results import (
        GuardRailAlert,
        InterleavingResults,
        ResultsSnapshot,
    )

# Fixed policy threshold
UNSTABLE_ID_THRESHOLD = 0.05


class NoticeKind(str, Enum):
    """What a notice is about."""

    MINIMUM_DAYS = "minimum_days"
    SAMPLE_RATIO_MISMATCH = "sample_ratio_mismatch"
    GUARD_RAIL = "guard_rail"
    OUTLIERS = "outliers"
    UNSTABLE_IDS = "unstable_ids"


@dataclass(frozen=True)
class Notice:
    """A diagnostic message shown next to the results."""

    kind: NoticeKind
    severity: str  # "info", "warning" or "danger"
    message: str


@dataclass(frozen=True)
class ConclusionSummary:
    """Lines describing a recorded conclusion."""

    winner_label: str
    confidence: str
    metric_comparison: str
    promoted: str
    reason: str
    ended: str | None = None


@dataclass(frozen=True)
class ResultsPresentation:
    """Everything the results view shows, pre-formatted."""

    metric_label: str
    control_value: str
    variant_value: str
    total_searches: int
    unstable_id_fraction: float
    progress: str | None
    days_remaining: str | None
    confidence: str | None
    significance_summary: str | None
    cuped_applied: bool
    bayesian: str | None
    interleaving: str | None
    recommendation: str | None
    conclusion: ConclusionSummary | None
    gate: GateEvaluation
    notices: list[Notice] = field(default_factory=list)


def unstable_id_fraction(snapshot: ResultsSnapshot) -> float:
    """Share of searches made without a stable user identifier."""
    total = snapshot.total_searches
    if total <= 0:
        return 0.0
    return snapshot.no_stable_id_queries / total


def guard_rail_message(alert: GuardRailAlert) -> str:
    """One-line description of a guard-rail regression."""
    control = format_metric_value(alert.metric_name, alert.control_value)
    variant = format_metric_value(alert.metric_name, alert.variant_value)
    return (
        f"{metric_label(alert.metric_name)}: {alert.drop_pct:.1f}% regression "
        f"(control {control} vs variant {variant})"
    )


def build_notices(
    snapshot: ResultsSnapshot, gate: GateEvaluation | None = None
) -> list[Notice]:
    """Diagnostic notices for a snapshot, in display order."""
    notices: list[Notice] = []
    if gate is None:
        gate = evaluate_gate(snapshot)

    if gate.soft_ready:
        notices.append(
            Notice(
                NoticeKind.MINIMUM_DAYS,
                "warning",
                "Required sample size reached, but the minimum duration has not "
                "elapsed. Results may be influenced by novelty effects. Consider "
                "waiting before concluding.",
            )
        )

    if snapshot.sample_ratio_mismatch:
        notices.append(
            Notice(
                NoticeKind.SAMPLE_RATIO_MISMATCH,
                "danger",
                "Traffic split mismatch detected. Possible causes: bot traffic, "
                "cookie clearing, variant index errors. Results may be invalid. "
                "Investigate before concluding.",
            )
        )

    notices.extend(
        Notice(NoticeKind.GUARD_RAIL, "danger", guard_rail_message(alert))
        for alert in snapshot.guard_rail_alerts
    )

    if snapshot.outlier_users_excluded > 0:
        notices.append(
            Notice(
                NoticeKind.OUTLIERS,
                "info",
                f"{snapshot.outlier_users_excluded} users excluded as outliers "
                "(bot-like traffic patterns).",
            )
        )

    fraction = unstable_id_fraction(snapshot)
    if fraction > UNSTABLE_ID_THRESHOLD and snapshot.no_stable_id_queries > 0:
        notices.append(
            Notice(
                NoticeKind.UNSTABLE_IDS,
                "warning",
                f"{snapshot.no_stable_id_queries:,} queries ({fraction * 100:.1f}%) "
                "used unstable IDs and are excluded from arm statistics. "
                "Verify your userToken implementation.",
            )
        )

    return notices


def _progress(
    snapshot: ResultsSnapshot,
    hard_ready: bool,  # noqa: FBT001
) -> tuple[str | None, str | None]:
    if hard_ready:
        return None, None
    gate = snapshot.gate
    progress = (
        f"{gate.current_searches_per_arm:,} / {gate.required_searches_per_arm:,} "
        f"searches per arm ({gate.progress_pct:.1f}%)"
    )
    remaining = None
    if gate.estimated_days_remaining is not None:
        remaining = f"~{gate.estimated_days_remaining:.1f} days remaining"
    return progress, remaining


def _interleaving(result: InterleavingResults | None) -> str | None:
    if result is None:
        return None
    if result.delta_ab > 0:
        preference = "Control preferred"
    elif result.delta_ab < 0:
        preference = "Variant preferred"
    else:
        preference = "No preference"
    summary = (
        f"{preference} (delta {result.delta_ab:+.3f}, "
        f"{result.wins_control} control wins, {result.wins_variant} variant wins, "
        f"{result.ties} ties over {result.total_queries:,} queries"
        f"{', significant' if result.significant else ''})"
    )
    if not result.data_quality_ok:
        summary += " - first-team assignment is skewed; check data quality"
    return summary


def winner_label(winner: str | None) -> str:
    """Display label for a recorded winner."""
    if winner == "control":
        return "Control"
    if winner == "variant":
        return "Variant"
    return "No winner (inconclusive)"


def _conclusion(snapshot: ResultsSnapshot) -> ConclusionSummary | None:
    if snapshot.status is not ExperimentStatus.CONCLUDED or snapshot.conclusion is None:
        return None
    conclusion: Conclusion = snapshot.conclusion
    metric = snapshot.primary_metric
    return ConclusionSummary(
        winner_label=winner_label(conclusion.winner),
        confidence=f"{conclusion.confidence * 100:.1f}% confidence",
        metric_comparison=(
            f"{metric_label(metric)}: control "
            f"{format_metric_value(metric, conclusion.control_metric)} vs variant "
            f"{format_metric_value(metric, conclusion.variant_metric)}"
        ),
        promoted="Yes" if conclusion.promoted else "No",
        reason=conclusion.reason,
        ended=snapshot.ended_at[:10] if snapshot.ended_at else None,
    )


def present_results(snapshot: ResultsSnapshot) -> ResultsPresentation:
    """Project a snapshot into display-ready figures and notices."""
    metric = snapshot.primary_metric
    gate = evaluate_gate(snapshot)
    progress, remaining = _progress(snapshot, gate.hard_ready)

    confidence = None
    summary = None
    sig = snapshot.significance
    if gate.minimum_n_reached and sig is not None:
        confidence = f"{sig.confidence * 100:.1f}% confidence"
        if sig.significant and sig.winner:
            summary = (
                f"{sig.winner.capitalize()} wins "
                f"({sig.relative_improvement * 100:.1f}% improvement)"
            )

    bayesian = None
    if snapshot.bayesian is not None:
        bayesian = (
            f"{format_pct(snapshot.bayesian.prob_variant_better)} "
            "probability variant is better"
        )

    return ResultsPresentation(
        metric_label=metric_label(metric),
        control_value=format_metric_value(metric, extract_metric(metric, snapshot.control)),
        variant_value=format_metric_value(metric, extract_metric(metric, snapshot.variant)),
        total_searches=snapshot.total_searches,
        unstable_id_fraction=unstable_id_fraction(snapshot),
        progress=progress,
        days_remaining=remaining,
        confidence=confidence,
        significance_summary=summary,
        cuped_applied=snapshot.cuped_applied,
        bayesian=bayesian,
        interleaving=_interleaving(snapshot.interleaving),
        recommendation=snapshot.recommendation,
        conclusion=_conclusion(snapshot),
        gate=gate,
        notices=build_notices(snapshot, gate),
    )
