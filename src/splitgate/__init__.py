"""
splitgate - A/B experiment lifecycle for search indexes.

Estimate, launch, gate and conclude experiments without fooling yourself.
"""

from splitgate.decision import DecisionRegistry, DecisionWorkflow
from splitgate.draft import ExperimentDraft
from splitgate.estimator import estimate_runtime
from splitgate.gate import evaluate_gate
from splitgate.metrics import PrimaryMetric, normalize_metric

__version__ = "0.1.0"
__all__ = [
    "DecisionRegistry",
    "DecisionWorkflow",
    "ExperimentDraft",
    "PrimaryMetric",
    "__version__",
    "estimate_runtime",
    "evaluate_gate",
    "normalize_metric",
]
