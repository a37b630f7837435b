"""
Insight Types
=============
Output records handed to the presentation layer:
- Severity / InsightCategory with display labels and colours
- InsightItem
- ForecastData and SeasonalPattern
- InsightsSummary and InsightsData
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .config import CATEGORY_LABELS, SEVERITY_COLORS, SEVERITY_LABELS


class Severity(Enum):
    """Insight severity levels."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def label(self) -> str:
        return SEVERITY_LABELS[self.value]

    @property
    def color(self) -> str:
        return SEVERITY_COLORS[self.value]


# Forecast items get their own accent regardless of severity
FORECAST_COLOR = "#8B5CF6"


class InsightCategory(Enum):
    """What an insight is about."""
    REVENUE_TREND = "revenue_trend"
    EXPENSE_TREND = "expense_trend"
    ANOMALY = "anomaly"
    FORECAST = "forecast"
    RECOMMENDATION = "recommendation"
    PRODUCT = "product"
    CUSTOMER = "customer"
    PAYMENT = "payment"
    INVENTORY = "inventory"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self.value]


class ConfidenceLevel(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class TrendDirection(Enum):
    INCREASING = "Increasing"
    STABLE = "Stable"
    DECREASING = "Decreasing"


@dataclass(frozen=True)
class InsightItem:
    """A single narrative insight."""
    title: str
    description: str
    severity: Severity
    category: InsightCategory
    recommendation: Optional[str] = None
    metric_value: Optional[Decimal] = None
    percentage_change: Optional[Decimal] = None

    @property
    def color(self) -> str:
        if self.category is InsightCategory.FORECAST:
            return FORECAST_COLOR
        return self.severity.color


@dataclass
class SeasonalPattern:
    """Container for detected seasonality."""
    season_length: int
    seasonal_factors: List[float]
    seasonal_strength: float
    trend_direction: TrendDirection = TrendDirection.STABLE
    trend_slope: float = 0.0
    description: str = ""

    @classmethod
    def none(cls, description: str, season_length: int = 12) -> "SeasonalPattern":
        """Pattern used when there is not enough history to measure seasonality."""
        return cls(
            season_length=season_length,
            seasonal_factors=[],
            seasonal_strength=0.0,
            description=description,
        )


@dataclass
class ForecastData:
    """Container for next-period business forecasts."""
    forecasted_revenue: Decimal = Decimal("0")
    forecasted_expenses: Decimal = Decimal("0")
    forecasted_profit: Decimal = Decimal("0")
    revenue_growth_percent: Decimal = Decimal("0")
    expense_growth_percent: Decimal = Decimal("0")
    profit_growth_percent: Decimal = Decimal("0")
    expected_new_customers: int = 0
    customer_growth_percent: Decimal = Decimal("0")
    confidence_score: float = 0.0
    confidence_level: ConfidenceLevel = ConfidenceLevel.LOW
    data_months_used: int = 0
    forecast_method: str = "Linear Regression + Exponential Smoothing"


@dataclass
class InsightsSummary:
    """Counts shown above the insight lists."""
    total_insights: int = 0
    trends_detected: int = 0
    anomalies_detected: int = 0
    forecasts_generated: int = 0
    opportunities: int = 0
    months_of_data: int = 0
    category_counts: Dict[str, int] = field(default_factory=dict)


@dataclass
class InsightsData:
    """Complete output of one insights run."""
    generated_at: datetime
    has_sufficient_data: bool = True
    insufficient_data_message: Optional[str] = None
    revenue_trends: List[InsightItem] = field(default_factory=list)
    anomalies: List[InsightItem] = field(default_factory=list)
    forecasts: List[InsightItem] = field(default_factory=list)
    recommendations: List[InsightItem] = field(default_factory=list)
    forecast: Optional[ForecastData] = None
    summary: InsightsSummary = field(default_factory=InsightsSummary)

    def all_insights(self) -> List[InsightItem]:
        return [*self.revenue_trends, *self.anomalies, *self.forecasts, *self.recommendations]

    def sections(self) -> List[Tuple[str, List[InsightItem]]]:
        return [
            ("trends", self.revenue_trends),
            ("anomalies", self.anomalies),
            ("forecasts", self.forecasts),
            ("recommendations", self.recommendations),
        ]

    def to_frame(self) -> pd.DataFrame:
        """Flatten all insights into one DataFrame, one row per insight."""
        rows = []
        for section, items in self.sections():
            for item in items:
                rows.append({
                    'section': section,
                    'title': item.title,
                    'description': item.description,
                    'recommendation': item.recommendation,
                    'severity': item.severity.label,
                    'category': item.category.label,
                    'color': item.color,
                    'metric_value': float(item.metric_value) if item.metric_value is not None else None,
                    'percentage_change': float(item.percentage_change) if item.percentage_change is not None else None,
                })
        columns = ['section', 'title', 'description', 'recommendation', 'severity',
                   'category', 'color', 'metric_value', 'percentage_change']
        return pd.DataFrame(rows, columns=columns)
