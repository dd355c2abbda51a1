# Copyright (c) Syntropy Systems
"""Catalog of the primary metrics an experiment can optimise.

The statistics service may name a metric in camelCase (``conversionRate``)
or snake_case (``conversion_rate``). Every identifier crossing into
splitgate goes through :func:`normalize_metric`, so the rest of the code
only ever compares against :class:`PrimaryMetric` members.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from operator import attrgetter
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable


class ArmMetrics(Protocol):
    """Anything exposing an arm's derived rates."""

    ctr: float
    conversion_rate: float
    revenue_per_search: float
    zero_result_rate: float
    abandonment_rate: float


class PrimaryMetric(str, Enum):
    """Supported primary metrics, in their canonical spelling."""

    CTR = "ctr"
    CONVERSION_RATE = "conversionRate"
    REVENUE_PER_SEARCH = "revenuePerSearch"
    ZERO_RESULT_RATE = "zeroResultRate"
    ABANDONMENT_RATE = "abandonmentRate"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class MetricSpec:
    """Display and extraction rules for one metric identifier."""

    key: str
    label: str
    description: str
    kind: str  # "rate", "currency" or "count"
    extract: Callable[[ArmMetrics], float]

    @property
    def known(self) -> bool:
        """Whether the identifier resolved to a catalogued metric."""
        return self.key in _BY_VALUE


_DEFAULT_EXTRACTOR: Callable[[ArmMetrics], float] = attrgetter("ctr")

_CATALOG: dict[PrimaryMetric, MetricSpec] = {
    PrimaryMetric.CTR: MetricSpec(
        key="ctr",
        label="CTR",
        description="Tracks click-through rate for result relevance.",
        kind="rate",
        extract=attrgetter("ctr"),
    ),
    PrimaryMetric.CONVERSION_RATE: MetricSpec(
        key="conversionRate",
        label="Conversion Rate",
        description="Tracks conversions per search.",
        kind="rate",
        extract=attrgetter("conversion_rate"),
    ),
    PrimaryMetric.REVENUE_PER_SEARCH: MetricSpec(
        key="revenuePerSearch",
        label="Revenue / Search",
        description="Tracks average revenue generated per search.",
        kind="currency",
        extract=attrgetter("revenue_per_search"),
    ),
    PrimaryMetric.ZERO_RESULT_RATE: MetricSpec(
        key="zeroResultRate",
        label="Zero Result Rate",
        description="Tracks how often queries return no results.",
        kind="rate",
        extract=attrgetter("zero_result_rate"),
    ),
    PrimaryMetric.ABANDONMENT_RATE: MetricSpec(
        key="abandonmentRate",
        label="Abandonment Rate",
        description="Tracks no-click behavior when results are shown.",
        kind="rate",
        extract=attrgetter("abandonment_rate"),
    ),
}

_BY_VALUE: dict[str, PrimaryMetric] = {m.value: m for m in PrimaryMetric}

# snake_case spellings emitted by the statistics service
_ALIASES: dict[str, PrimaryMetric] = {
    "conversion_rate": PrimaryMetric.CONVERSION_RATE,
    "revenue_per_search": PrimaryMetric.REVENUE_PER_SEARCH,
    "zero_result_rate": PrimaryMetric.ZERO_RESULT_RATE,
    "abandonment_rate": PrimaryMetric.ABANDONMENT_RATE,
}


def normalize_metric(name: str | PrimaryMetric) -> PrimaryMetric | None:
    """Resolve either accepted spelling to the canonical metric.

    Returns None for identifiers outside the catalog.
    """
    if isinstance(name, PrimaryMetric):
        return name
    return _BY_VALUE.get(name) or _ALIASES.get(name)


def coerce_metric(name: str | PrimaryMetric) -> PrimaryMetric | str:
    """Normalize a metric identifier, passing unknown names through untouched."""
    metric = normalize_metric(name)
    return metric if metric is not None else name


def describe_metric(name: str | PrimaryMetric) -> MetricSpec:
    """Return display and extraction rules for a metric identifier.

    Unknown identifiers never raise: the raw identifier becomes the label and
    CTR is extracted, matching what the results service falls back to.
    """
    metric = normalize_metric(name)
    if metric is not None:
        return _CATALOG[metric]
    raw = str(name)
    return MetricSpec(
        key=raw,
        label=raw,
        description="",
        kind="count",
        extract=_DEFAULT_EXTRACTOR,
    )


def metric_label(name: str | PrimaryMetric) -> str:
    """Human-readable label for a metric identifier."""
    return describe_metric(name).label


def extract_metric(name: str | PrimaryMetric, arm: ArmMetrics) -> float:
    """Read the primary metric value from an arm's aggregates."""
    return float(describe_metric(name).extract(arm))


def format_metric_value(name: str | PrimaryMetric, value: float) -> str:
    """Format a metric value the way it is shown to operators."""
    metric = normalize_metric(name)
    if metric is None:
        return f"{value:,}"
    kind = _CATALOG[metric].kind
    if kind == "currency":
        return format_currency(value)
    return format_pct(value)


def format_pct(value: float) -> str:
    """Format a 0..1 fraction as a one-decimal percentage."""
    return f"{value * 100:.1f}%"


def format_currency(value: float) -> str:
    """Format a dollar amount with two decimals."""
    return f"${value:.2f}"


def metric_options() -> list[MetricSpec]:
    """Catalogued metrics in the order they are offered at creation time."""
    return [_CATALOG[m] for m in PrimaryMetric]
