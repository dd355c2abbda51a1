# Copyright (c) Syntropy Systems
"""Pytest fixtures for splitgate tests."""

import os
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from splitgate.models import Experiment, ResultsSnapshot

# Store original cwd at module load time
_original_cwd = Path.cwd()


def _arm(name: str, searches: int, ctr: float) -> dict[str, Any]:
    return {
        "name": name,
        "searches": searches,
        "users": searches // 4,
        "clicks": int(searches * ctr),
        "conversions": searches // 50,
        "revenue": searches * 0.5,
        "ctr": ctr,
        "conversionRate": 0.02,
        "revenuePerSearch": 0.5,
        "zeroResultRate": 0.08,
        "abandonmentRate": 0.3,
        "meanClickRank": 2.4,
    }


def snapshot_data(**overrides: Any) -> dict[str, Any]:
    """Wire-format results body for a running experiment with both gates met."""
    data: dict[str, Any] = {
        "experimentID": "exp-1",
        "name": "Synonyms on",
        "status": "running",
        "indexName": "products",
        "startDate": "2026-09-01T00:00:00Z",
        "trafficSplit": 0.5,
        "primaryMetric": "ctr",
        "gate": {
            "minimumNReached": True,
            "minimumDaysReached": True,
            "readyToRead": True,
            "requiredSearchesPerArm": 10000,
            "currentSearchesPerArm": 12000,
            "progressPct": 100.0,
            "estimatedDaysRemaining": None,
        },
        "control": _arm("control", 12000, 0.12),
        "variant": _arm("variant", 12100, 0.135),
        "significance": {
            "zScore": 3.1,
            "pValue": 0.002,
            "confidence": 0.998,
            "significant": True,
            "relativeImprovement": 0.125,
            "winner": "variant",
        },
        "bayesian": {"probVariantBetter": 0.991},
        "sampleRatioMismatch": False,
        "cupedApplied": False,
        "guardRailAlerts": [],
        "outlierUsersExcluded": 0,
        "noStableIdQueries": 0,
        "recommendation": None,
        "interleaving": None,
    }
    data.update(overrides)
    return data


def experiment_data(**overrides: Any) -> dict[str, Any]:
    """Wire-format experiment record with a query-override variant."""
    data: dict[str, Any] = {
        "id": "exp-1",
        "name": "Synonyms on",
        "indexName": "products",
        "status": "running",
        "trafficSplit": 0.5,
        "control": {"name": "control"},
        "variant": {"name": "variant", "queryOverrides": {"enableSynonyms": False}},
        "primaryMetric": "ctr",
        "minimumDays": 14,
        "createdAt": 1756684800000,
        "startedAt": 1756684800000,
        "endedAt": None,
        "conclusion": None,
    }
    data.update(overrides)
    return data


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def splitgate_project(temp_dir: Path) -> Generator[Path, None, None]:
    """Create a temporary project with a .splitgate config directory."""
    config_dir = temp_dir / ".splitgate"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("server_url: http://search.test\n")

    # Change to temp directory
    os.chdir(temp_dir)

    yield temp_dir

    # Always return to original cwd
    os.chdir(_original_cwd)


@pytest.fixture
def make_snapshot() -> Callable[..., ResultsSnapshot]:
    """Factory for results snapshots; keyword overrides use wire names."""

    def _make(**overrides: Any) -> ResultsSnapshot:
        return ResultsSnapshot.model_validate(snapshot_data(**overrides))

    return _make


@pytest.fixture
def make_experiment() -> Callable[..., Experiment]:
    """Factory for experiment records; keyword overrides use wire names."""

    def _make(**overrides: Any) -> Experiment:
        return Experiment.model_validate(experiment_data(**overrides))

    return _make


@pytest.fixture
def gate_data() -> Callable[..., dict[str, Any]]:
    """Factory for gate records."""

    def _make(*, n: bool, days: bool) -> dict[str, Any]:
        return {
            "minimumNReached": n,
            "minimumDaysReached": days,
            "readyToRead": n and days,
            "requiredSearchesPerArm": 10000,
            "currentSearchesPerArm": 12000 if n else 4000,
            "progressPct": 100.0 if n else 40.0,
            "estimatedDaysRemaining": None if n else 6.5,
        }

    return _make


@pytest.fixture
def snapshot_json() -> Callable[..., dict[str, Any]]:
    """Factory for raw results bodies."""
    return snapshot_data


@pytest.fixture
def experiment_json() -> Callable[..., dict[str, Any]]:
    """Factory for raw experiment bodies."""
    return experiment_data
