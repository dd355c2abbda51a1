# Copyright (c) Syntropy Systems
"""Pydantic models for experiment records and requests."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import AliasChoices, Field, field_validator, model_validator
from typing_extensions import Self

from splitgate.metrics import PrimaryMetric, coerce_metric

from .base import JSONValue, SplitgateBaseModel

DEFAULT_MINIMUM_DAYS = 14


class ExperimentStatus(str, Enum):
    """Lifecycle states of a server-side experiment."""

    DRAFT = "draft"
    RUNNING = "running"
    STOPPED = "stopped"
    CONCLUDED = "concluded"

    def __str__(self) -> str:
        return self.value


class VariantMode(str, Enum):
    """How the variant arm differs from control."""

    QUERY_OVERRIDES = "modeA"
    SEPARATE_INDEX = "modeB"

    def __str__(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """Short operator-facing name."""
        return "Mode A" if self is VariantMode.QUERY_OVERRIDES else "Mode B"


class ArmConfig(SplitgateBaseModel):
    """One arm of an experiment as configured."""

    name: str
    query_overrides: Optional[dict[str, JSONValue]] = None
    index_name: Optional[str] = None


class Conclusion(SplitgateBaseModel):
    """Decision recorded when an experiment is concluded."""

    winner: Optional[Literal["control", "variant"]] = None
    reason: str = ""
    control_metric: float = 0.0
    variant_metric: float = 0.0
    confidence: float = 0.0
    significant: bool = False
    promoted: bool = False


class ConclusionPayload(Conclusion):
    """Body of the conclude request; same shape as the stored conclusion."""


class Experiment(SplitgateBaseModel):
    """Experiment record owned by the experiment store."""

    id: str
    name: str
    index_name: str
    status: ExperimentStatus
    traffic_split: float
    control: ArmConfig
    variant: ArmConfig
    primary_metric: Union[PrimaryMetric, str] = PrimaryMetric.CTR
    minimum_days: int = DEFAULT_MINIMUM_DAYS
    created_at: Optional[int] = None
    started_at: Optional[int] = None
    ended_at: Optional[int] = None
    conclusion: Optional[Conclusion] = None

    @field_validator("primary_metric", mode="before")
    @classmethod
    def _normalize_metric(cls, value: object) -> object:
        if isinstance(value, str):
            return coerce_metric(value)
        return value

    @property
    def variant_mode(self) -> VariantMode:
        """Mode B when the variant routes to its own index."""
        if self.variant.index_name:
            return VariantMode.SEPARATE_INDEX
        return VariantMode.QUERY_OVERRIDES

    @property
    def traffic_split_percent(self) -> int:
        """Variant share of traffic as a whole percent."""
        return round(self.traffic_split * 100)


class CreateExperimentRequest(SplitgateBaseModel):
    """Request to create a new experiment in draft status."""

    name: str
    index_name: str
    traffic_split: float = Field(gt=0.0, lt=1.0)
    control: ArmConfig
    variant: ArmConfig
    primary_metric: PrimaryMetric = PrimaryMetric.CTR
    minimum_days: int = Field(default=DEFAULT_MINIMUM_DAYS, ge=1)

    @field_validator("primary_metric", mode="before")
    @classmethod
    def _normalize_metric(cls, value: object) -> object:
        if isinstance(value, str):
            return coerce_metric(value)
        return value

    @model_validator(mode="after")
    def _check_arms(self) -> Self:
        if not self.name.strip():
            msg = "name must not be empty"
            raise ValueError(msg)
        has_overrides = self.variant.query_overrides is not None
        has_index = self.variant.index_name is not None
        if has_overrides == has_index:
            msg = (
                "variant must define exactly one mode: "
                "queryOverrides (Mode A) or indexName (Mode B)"
            )
            raise ValueError(msg)
        if has_index and self.variant.index_name == self.index_name:
            msg = "variant index must differ from the experiment index"
            raise ValueError(msg)
        if self.control.query_overrides is not None or self.control.index_name is not None:
            msg = "control arm must not have queryOverrides or indexName"
            raise ValueError(msg)
        return self


class ExperimentListResponse(SplitgateBaseModel):
    """Response containing experiment records."""

    abtests: list[Experiment] = Field(default_factory=list)
    count: Optional[int] = None
    total: Optional[int] = None


class IndexSummary(SplitgateBaseModel):
    """Minimal index listing entry."""

    name: str = Field(validation_alias=AliasChoices("name", "uid"))
    entries: Optional[int] = None


class IndexListResponse(SplitgateBaseModel):
    """Response from the index listing endpoint."""

    items: list[IndexSummary] = Field(default_factory=list)
