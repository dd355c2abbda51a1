# Copyright (c) Syntropy Systems
"""In-progress experiment configuration built across the four creation steps.

1. name, target index and primary metric
2. variant definition (query overrides, or a separate variant index)
3. traffic split and minimum runtime, with the runtime estimate
4. review and launch
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from splitgate.errors import ValidationError
from splitgate.estimator import RuntimeEstimate, clamp_split_percent, estimate_runtime
from splitgate.metrics import PrimaryMetric, describe_metric, normalize_metric
from splitgate.models.experiment import (
    DEFAULT_MINIMUM_DAYS,
    ArmConfig,
    CreateExperimentRequest,
    VariantMode,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from splitgate.models.base import JSONValue

FIRST_STEP = 1
LAST_STEP = 4

STABLE_USER_TOKEN_NOTICE = (
    "Valid results require a stable userToken. Pass an authenticated user ID or "
    "server-side UUID, not a browser cookie."
)


@dataclass
class ExperimentDraft:
    """Mutable experiment configuration owned by one creation session."""

    name: str = ""
    index_name: str = ""
    primary_metric: PrimaryMetric = PrimaryMetric.CTR
    variant_mode: VariantMode = VariantMode.QUERY_OVERRIDES
    variant_index_name: str = ""
    enable_synonyms: bool = False
    enable_rules: bool = False
    filters: str = ""
    traffic_split_percent: int = 50
    minimum_days: int = DEFAULT_MINIMUM_DAYS
    step: int = FIRST_STEP
    known_indexes: list[str] | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.set_traffic_split(self.traffic_split_percent)
        self.set_minimum_days(self.minimum_days)
        self.set_primary_metric(self.primary_metric)

    # --- Field setters ---

    def set_traffic_split(self, value: object) -> None:
        """Set the variant split, clamping to [1, 99]; junk becomes 1."""
        try:
            percent = int(value)  # type: ignore[call-overload]
        except (TypeError, ValueError):
            percent = 0
        self.traffic_split_percent = clamp_split_percent(percent or 1)

    def set_minimum_days(self, value: object) -> None:
        """Set the minimum runtime, never below one day."""
        try:
            days = int(value)  # type: ignore[call-overload]
        except (TypeError, ValueError):
            days = 0
        self.minimum_days = max(1, days or 1)

    def set_primary_metric(self, value: str | PrimaryMetric) -> None:
        """Set the primary metric from either accepted spelling."""
        metric = normalize_metric(value)
        if metric is None:
            msg = f"Unknown primary metric: {value}"
            raise ValidationError(msg)
        self.primary_metric = metric

    def set_variant_mode(self, value: str | VariantMode) -> None:
        """Switch between query-override and separate-index variants."""
        try:
            self.variant_mode = VariantMode(value)
        except ValueError as e:
            msg = f"Unknown variant mode: {value}"
            raise ValidationError(msg) from e

    def set_known_indexes(self, names: Iterable[str]) -> None:
        """Record which indexes exist so references can be checked."""
        self.known_indexes = list(names)

    # --- Step validation ---

    def step_errors(self, step: int | None = None) -> list[str]:
        """Messages explaining why a step cannot be left; empty when valid."""
        step = self.step if step is None else step
        if step == 1:
            return self._step1_errors()
        if step == 2:
            return self._step2_errors()
        return []

    def _step1_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.name.strip():
            errors.append("Experiment name is required.")
        if not self.index_name:
            errors.append("Select an index.")
        elif self.known_indexes is not None and self.index_name not in self.known_indexes:
            errors.append(f"Index '{self.index_name}' does not exist.")
        return errors

    def _step2_errors(self) -> list[str]:
        if self.variant_mode is VariantMode.QUERY_OVERRIDES:
            return []
        if not self.variant_index_name:
            return ["Select a variant index."]
        if self.variant_index_name == self.index_name:
            return ["Variant index must be different from the selected index."]
        if (
            self.known_indexes is not None
            and self.variant_index_name not in self.known_indexes
        ):
            return [f"Index '{self.variant_index_name}' does not exist."]
        return []

    def _traffic_errors(self) -> list[str]:
        # fields assigned directly bypass the clamping setters
        errors: list[str] = []
        if not isinstance(self.primary_metric, PrimaryMetric):
            errors.append(f"Unknown primary metric: {self.primary_metric}")
        split = self.traffic_split_percent
        if not isinstance(split, int) or not 1 <= split <= 99:
            errors.append("Traffic split must be between 1 and 99 percent.")
        days = self.minimum_days
        if not isinstance(days, int) or days < 1:
            errors.append("Minimum days must be at least 1.")
        return errors

    def can_advance(self, from_step: int | None = None) -> bool:
        """Whether the given step (default: the current one) may be left."""
        return not self.step_errors(from_step)

    def advance(self) -> int:
        """Move to the next step, raising ValidationError if this one is invalid."""
        errors = self.step_errors()
        if errors:
            raise ValidationError(errors)
        self.step = min(self.step + 1, LAST_STEP)
        return self.step

    def back(self) -> int:
        """Move to the previous step."""
        self.step = max(self.step - 1, FIRST_STEP)
        return self.step

    @property
    def is_review_step(self) -> bool:
        """Whether the cursor is on the final review step."""
        return self.step == LAST_STEP

    # --- Derived views ---

    def variant_index_options(self) -> list[str]:
        """Indexes that may serve as the variant index."""
        return [name for name in self.known_indexes or [] if name != self.index_name]

    def runtime_estimate(self) -> RuntimeEstimate:
        """Runtime estimate for the current traffic split."""
        return estimate_runtime(self.traffic_split_percent)

    def review(self) -> list[tuple[str, str]]:
        """Summary rows shown before launch."""
        rows = [
            ("Name", self.name),
            ("Index", self.index_name),
            ("Mode", self.variant_mode.label),
        ]
        if self.variant_mode is VariantMode.SEPARATE_INDEX:
            rows.append(("Variant index", self.variant_index_name))
        rows.extend(
            [
                ("Metric", describe_metric(self.primary_metric).label),
                ("Traffic split", f"{self.traffic_split_percent}%"),
                ("Minimum days", str(self.minimum_days)),
            ]
        )
        return rows

    # --- Payloads ---

    def build_variant_payload(self) -> ArmConfig:
        """Variant arm definition for the current mode."""
        if self.variant_mode is VariantMode.SEPARATE_INDEX:
            return ArmConfig(name="variant", index_name=self.variant_index_name)

        query_overrides: dict[str, JSONValue] = {
            "enableSynonyms": self.enable_synonyms,
            "enableRules": self.enable_rules,
        }
        if self.filters.strip():
            query_overrides["filters"] = self.filters.strip()
        return ArmConfig(name="variant", query_overrides=query_overrides)

    def finalize(self) -> CreateExperimentRequest:
        """Build the creation request, re-checking every step first."""
        errors = (
            self._step1_errors() + self._step2_errors() + self._traffic_errors()
        )
        if errors:
            raise ValidationError(errors)
        return CreateExperimentRequest(
            name=self.name.strip(),
            index_name=self.index_name,
            traffic_split=self.traffic_split_percent / 100,
            control=ArmConfig(name="control"),
            variant=self.build_variant_payload(),
            primary_metric=self.primary_metric,
            minimum_days=self.minimum_days,
        )
