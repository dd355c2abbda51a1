# Copyright (c) Syntropy Systems
"""Pydantic models for splitgate."""

from .base import JSONObject, JSONValue, SplitgateBaseModel
from .experiment import (
    ArmConfig,
    Conclusion,
    ConclusionPayload,
    CreateExperimentRequest,
    Experiment,
    ExperimentListResponse,
    ExperimentStatus,
    IndexListResponse,
    IndexSummary,
    VariantMode,
)
from .results import (
    ArmResults,
    BayesianResult,
    GateStatus,
    GuardRailAlert,
    InterleavingResults,
    ResultsSnapshot,
    Significance,
)

__all__ = [
    "ArmConfig",
    "ArmResults",
    "BayesianResult",
    "Conclusion",
    "ConclusionPayload",
    "CreateExperimentRequest",
    "Experiment",
    "ExperimentListResponse",
    "ExperimentStatus",
    "GateStatus",
    "GuardRailAlert",
    "IndexListResponse",
    "IndexSummary",
    "InterleavingResults",
    "JSONObject",
    "JSONValue",
    "ResultsSnapshot",
    "Significance",
    "SplitgateBaseModel",
    "VariantMode",
]
