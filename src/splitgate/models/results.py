# Copyright (c) Syntropy Systems
"""Pydantic models for the results snapshot produced by the statistics service."""

from __future__ import annotations

from typing import Optional, Union

from pydantic import Field, field_validator

from splitgate.metrics import PrimaryMetric, coerce_metric

from .base import SplitgateBaseModel
from .experiment import Conclusion, ExperimentStatus


class ArmResults(SplitgateBaseModel):
    """Aggregated metrics for one arm."""

    name: str
    searches: int = 0
    users: int = 0
    clicks: int = 0
    conversions: int = 0
    revenue: float = 0.0
    ctr: float = 0.0
    conversion_rate: float = 0.0
    revenue_per_search: float = 0.0
    zero_result_rate: float = 0.0
    abandonment_rate: float = 0.0
    mean_click_rank: float = 0.0


class GateStatus(SplitgateBaseModel):
    """Readiness gates computed upstream."""

    minimum_n_reached: bool = Field(default=False, alias="minimumNReached")
    minimum_days_reached: bool = False
    ready_to_read: bool = False
    required_searches_per_arm: int = 0
    current_searches_per_arm: int = 0
    progress_pct: float = 0.0
    estimated_days_remaining: Optional[float] = None


class Significance(SplitgateBaseModel):
    """Frequentist test outcome on the primary metric."""

    z_score: float = 0.0
    p_value: float = 1.0
    confidence: float = 0.0
    significant: bool = False
    relative_improvement: float = 0.0
    winner: Optional[str] = None


class BayesianResult(SplitgateBaseModel):
    """Posterior probability that the variant beats control."""

    prob_variant_better: float


class GuardRailAlert(SplitgateBaseModel):
    """A secondary metric that regressed in the variant."""

    metric_name: Union[PrimaryMetric, str]
    control_value: float
    variant_value: float
    drop_pct: float

    @field_validator("metric_name", mode="before")
    @classmethod
    def _normalize_metric(cls, value: object) -> object:
        if isinstance(value, str):
            return coerce_metric(value)
        return value


class InterleavingResults(SplitgateBaseModel):
    """Team-draft interleaving preference summary."""

    delta_ab: float = Field(default=0.0, alias="deltaAB")
    wins_control: int = 0
    wins_variant: int = 0
    ties: int = 0
    p_value: float = 1.0
    significant: bool = False
    total_queries: int = 0
    data_quality_ok: bool = True


class ResultsSnapshot(SplitgateBaseModel):
    """Read-only results for one experiment at one point in time."""

    experiment_id: str = Field(alias="experimentID")
    name: str
    status: ExperimentStatus
    index_name: str
    start_date: Optional[str] = None
    ended_at: Optional[str] = None
    conclusion: Optional[Conclusion] = None
    traffic_split: float = 0.5
    primary_metric: Union[PrimaryMetric, str] = PrimaryMetric.CTR
    gate: GateStatus = Field(default_factory=GateStatus)
    control: ArmResults
    variant: ArmResults
    significance: Optional[Significance] = None
    bayesian: Optional[BayesianResult] = None
    sample_ratio_mismatch: bool = False
    cuped_applied: bool = False
    guard_rail_alerts: list[GuardRailAlert] = Field(default_factory=list)
    outlier_users_excluded: int = 0
    no_stable_id_queries: int = 0
    recommendation: Optional[str] = None
    interleaving: Optional[InterleavingResults] = None

    @field_validator("primary_metric", mode="before")
    @classmethod
    def _normalize_metric(cls, value: object) -> object:
        if isinstance(value, str):
            return coerce_metric(value)
        return value

    @field_validator("guard_rail_alerts", mode="before")
    @classmethod
    def _null_alerts(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("outlier_users_excluded", "no_stable_id_queries", mode="before")
    @classmethod
    def _null_counts(cls, value: object) -> object:
        return 0 if value is None else value

    @property
    def total_searches(self) -> int:
        """Searches across both arms."""
        return self.control.searches + self.variant.searches
