# Copyright (c) Syntropy Systems
"""Pre-launch runtime estimates for a chosen traffic split.

The baseline table below gives the days each effect size needs at a 50/50
split. Any other split is limited by its smaller arm: a 90/10 split fills
the 10% arm five times slower than a 50% arm, and so does a 10/90 split.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

MIN_SPLIT_PERCENT = 1
MAX_SPLIT_PERCENT = 99

# Fixed policy thresholds
WARNING_DAYS = 90
DANGER_DAYS = 365

ASSUMED_DAILY_SEARCHES = 2400
TYPICAL_SCENARIO_INDEX = 1


@dataclass(frozen=True)
class RuntimeScenario:
    """A canonical effect size and its runtime at a 50/50 split."""

    label: str
    relative_effect: float
    baseline_days: int


RUNTIME_SCENARIOS: tuple[RuntimeScenario, ...] = (
    RuntimeScenario("Large gain (10% relative)", 0.10, 13),
    RuntimeScenario("Typical early-stage gain (5%)", 0.05, 25),
    RuntimeScenario("Small gain (2%)", 0.02, 165),
    RuntimeScenario("Mature product (1%)", 0.01, 833),
)


class RuntimeAlert(str, Enum):
    """Severity of the runtime warning shown before launch."""

    NONE = "none"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class ScenarioEstimate:
    """Estimated calendar days for one scenario."""

    scenario: RuntimeScenario
    estimated_days: int

    @property
    def label(self) -> str:
        """Scenario label."""
        return self.scenario.label


@dataclass(frozen=True)
class RuntimeEstimate:
    """Estimates for every canonical scenario at one traffic split."""

    split_percent: int
    bottleneck_percent: int
    scale_factor: float
    rows: tuple[ScenarioEstimate, ...]

    @property
    def typical_days(self) -> int:
        """Estimate for the typical (5%) scenario that drives the warning."""
        return self.rows[TYPICAL_SCENARIO_INDEX].estimated_days

    @property
    def alert(self) -> RuntimeAlert:
        """Warning level for the typical scenario."""
        days = self.typical_days
        if days > DANGER_DAYS:
            return RuntimeAlert.DANGER
        if days > WARNING_DAYS:
            return RuntimeAlert.WARNING
        return RuntimeAlert.NONE

    @property
    def show_warning(self) -> bool:
        """Whether any runtime warning applies."""
        return self.alert is not RuntimeAlert.NONE

    @property
    def message(self) -> str | None:
        """Operator-facing warning text, if any."""
        if self.alert is RuntimeAlert.DANGER:
            return (
                f"Estimated runtime is more than {DANGER_DAYS} days. "
                "Consider a larger MDE or more traffic."
            )
        if self.alert is RuntimeAlert.WARNING:
            return (
                f"Estimated runtime is more than {WARNING_DAYS} days for a 5% gain. "
                "Consider increasing traffic split."
            )
        return None


def clamp_split_percent(split_percent: int) -> int:
    """Clamp a variant split to the supported [1, 99] range."""
    return max(MIN_SPLIT_PERCENT, min(MAX_SPLIT_PERCENT, int(split_percent)))


def bottleneck_arm_percent(split_percent: int) -> int:
    """Percentage of traffic received by the smaller arm."""
    safe = clamp_split_percent(split_percent)
    return min(safe, 100 - safe)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def estimate_runtime_days(baseline_days_at_50: int, split_percent: int) -> int:
    """Scale a 50/50 baseline to the given split's bottleneck arm."""
    scale = 50 / bottleneck_arm_percent(split_percent)
    return _round_half_up(baseline_days_at_50 * scale)


def estimate_runtime(
    split_percent: int,
    scenarios: tuple[RuntimeScenario, ...] = RUNTIME_SCENARIOS,
) -> RuntimeEstimate:
    """Estimate runtime for every scenario at the given variant split.

    Out-of-range splits are clamped, never rejected.
    """
    safe = clamp_split_percent(split_percent)
    bottleneck = bottleneck_arm_percent(safe)
    return RuntimeEstimate(
        split_percent=safe,
        bottleneck_percent=bottleneck,
        scale_factor=50 / bottleneck,
        rows=tuple(
            ScenarioEstimate(s, estimate_runtime_days(s.baseline_days, safe))
            for s in scenarios
        ),
    )
