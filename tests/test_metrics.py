"""Tests for the metric catalog."""

import pytest

from splitgate.metrics import (
    PrimaryMetric,
    describe_metric,
    extract_metric,
    format_metric_value,
    metric_label,
    metric_options,
    normalize_metric,
)
from splitgate.models import ArmResults, GuardRailAlert


@pytest.fixture
def arm() -> ArmResults:
    return ArmResults(
        name="control",
        searches=1000,
        ctr=0.12,
        conversion_rate=0.03,
        revenue_per_search=1.75,
        zero_result_rate=0.08,
        abandonment_rate=0.4,
    )


class TestNormalization:
    """Tests for identifier normalization."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("ctr", PrimaryMetric.CTR),
            ("conversionRate", PrimaryMetric.CONVERSION_RATE),
            ("conversion_rate", PrimaryMetric.CONVERSION_RATE),
            ("revenue_per_search", PrimaryMetric.REVENUE_PER_SEARCH),
            ("zero_result_rate", PrimaryMetric.ZERO_RESULT_RATE),
            ("abandonment_rate", PrimaryMetric.ABANDONMENT_RATE),
        ],
    )
    def test_both_spellings_resolve(self, raw, expected):
        """camelCase and snake_case name the same metric."""
        assert normalize_metric(raw) is expected

    def test_unknown_is_none(self):
        """Identifiers outside the catalog do not resolve."""
        assert normalize_metric("dwellTime") is None

    def test_guard_rail_metric_is_normalized_on_parse(self):
        """Metric names arriving from the service are canonical after parsing."""
        alert = GuardRailAlert.model_validate(
            {
                "metricName": "zero_result_rate",
                "controlValue": 0.05,
                "variantValue": 0.07,
                "dropPct": 40.0,
            }
        )
        assert alert.metric_name is PrimaryMetric.ZERO_RESULT_RATE


class TestDescribe:
    """Tests for labels, extraction and formatting."""

    def test_labels(self):
        """Catalogued metrics have fixed labels."""
        assert metric_label("ctr") == "CTR"
        assert metric_label("conversion_rate") == "Conversion Rate"
        assert metric_label(PrimaryMetric.REVENUE_PER_SEARCH) == "Revenue / Search"

    def test_unknown_metric_falls_back(self, arm):
        """Unknown identifiers use the raw label and the CTR value."""
        spec = describe_metric("dwellTime")

        assert spec.label == "dwellTime"
        assert not spec.known
        assert extract_metric("dwellTime", arm) == 0.12

    def test_extract_each_metric(self, arm):
        """Each metric reads its own arm field."""
        assert extract_metric("ctr", arm) == 0.12
        assert extract_metric("conversionRate", arm) == 0.03
        assert extract_metric("revenue_per_search", arm) == 1.75
        assert extract_metric("zeroResultRate", arm) == 0.08
        assert extract_metric("abandonment_rate", arm) == 0.4

    def test_format_values(self):
        """Rates are percentages and revenue is currency."""
        assert format_metric_value("ctr", 0.1234) == "12.3%"
        assert format_metric_value("revenuePerSearch", 1.5) == "$1.50"
        assert format_metric_value("dwellTime", 1234.5) == "1,234.5"

    def test_options_in_catalog_order(self):
        """Creation offers every metric exactly once."""
        keys = [spec.key for spec in metric_options()]
        assert keys == [m.value for m in PrimaryMetric]
        assert all(spec.description for spec in metric_options())
