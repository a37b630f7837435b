"""
Tests for the output records and their display mapping.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ledger_insights.insight_types import (
    FORECAST_COLOR,
    InsightCategory,
    InsightItem,
    InsightsData,
    Severity,
)


def item(severity=Severity.INFO, category=InsightCategory.ANOMALY, **kwargs):
    return InsightItem(title="t", description="d", severity=severity, category=category, **kwargs)


class TestDisplayMapping:
    """Every enum member maps to a label and colour."""

    @pytest.mark.parametrize("severity,label,color", [
        (Severity.INFO, "Info", "#3B82F6"),
        (Severity.SUCCESS, "Success", "#22C55E"),
        (Severity.WARNING, "Warning", "#F59E0B"),
        (Severity.CRITICAL, "Critical", "#EF4444"),
    ])
    def test_severity(self, severity, label, color):
        assert severity.label == label
        assert severity.color == color

    @pytest.mark.parametrize("category", list(InsightCategory))
    def test_every_category_has_a_label(self, category):
        assert category.label
        assert category.label != category.value

    def test_forecast_items_are_purple(self):
        assert item(Severity.WARNING, InsightCategory.FORECAST).color == FORECAST_COLOR == "#8B5CF6"

    def test_other_items_use_severity_colour(self):
        assert item(Severity.CRITICAL, InsightCategory.ANOMALY).color == "#EF4444"


class TestInsightsData:
    """Tests for the aggregate output record."""

    def test_to_frame(self):
        data = InsightsData(
            generated_at=datetime(2024, 6, 30, 12, tzinfo=timezone.utc),
            anomalies=[item(metric_value=Decimal("5000"))],
            recommendations=[item(Severity.SUCCESS, InsightCategory.RECOMMENDATION,
                                  percentage_change=Decimal("42.5"))],
        )

        frame = data.to_frame()

        assert list(frame.columns) == ['section', 'title', 'description', 'recommendation', 'severity',
                                       'category', 'color', 'metric_value', 'percentage_change']
        assert list(frame['section']) == ['anomalies', 'recommendations']
        assert frame.loc[0, 'metric_value'] == 5000.0
        assert frame.loc[1, 'severity'] == "Success"
        assert frame.loc[1, 'percentage_change'] == 42.5

    def test_empty_frame_keeps_columns(self):
        frame = InsightsData(generated_at=datetime(2024, 6, 30, tzinfo=timezone.utc)).to_frame()

        assert frame.empty
        assert 'title' in frame.columns
