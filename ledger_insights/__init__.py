"""
Ledger Insights
===============
Local financial insights and forecasting for a company ledger.
Deterministic statistics only: trends, anomalies, forecasts and
recommendations.

Modules:
- config: Thresholds and display constants
- domain: Ledger input records
- insight_types: Insight output records
- analysis: Trend analysis and anomaly detection
- models: Regression, Holt-Winters, SSA and ensemble forecasters
- forecast: Business forecasts and forecast insights
- accuracy: Forecast accuracy tracking
- recommendations: Actionable recommendations engine
- insights: InsightsEngine entry point
- data_simulator: Synthetic ledger generation
"""

__version__ = "1.0.0"
__author__ = "Ledger Insights Team"

from .clock import (
    Clock,
    SystemClock,
    FixedClock,
)

from .exceptions import (
    LedgerInsightsError,
    InvalidInputError,
    InvalidDateRangeError,
    AnalysisCancelledError,
    ForecastMethodError,
)

from .domain import (
    AnalysisDateRange,
    CompanyData,
    Customer,
    InventoryItem,
    Invoice,
    InvoiceStatus,
    LineItem,
    Product,
    Purchase,
    Return,
    ReturnItem,
    Sale,
    Supplier,
)

from .insight_types import (
    ConfidenceLevel,
    ForecastData,
    InsightCategory,
    InsightItem,
    InsightsData,
    InsightsSummary,
    SeasonalPattern,
    Severity,
    TrendDirection,
)

from .models import (
    ForecastMethod,
    ForecastResult,
    HoltWintersForecaster,
    SSAForecaster,
    LocalForecaster,
    calculate_confidence_score,
    forecast_next_period,
)

from .analysis import (
    TrendAnalyzer,
    AnomalyDetector,
)

from .forecast import (
    ForecastEngine,
    ForecastMetric,
)

from .accuracy import (
    ForecastAccuracyData,
    ForecastAccuracyRecord,
    ForecastAccuracyTracker,
)

from .recommendations import RecommendationEngine

from .sufficiency import DataSufficiencyChecker

from .insights import InsightsEngine

from .data_simulator import (
    LedgerSimulator,
    generate_sample_company,
)

from .logging_config import (
    configure_logging,
    get_logger,
)

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    "FixedClock",
    # Errors
    "LedgerInsightsError",
    "InvalidInputError",
    "InvalidDateRangeError",
    "AnalysisCancelledError",
    "ForecastMethodError",
    # Domain
    "AnalysisDateRange",
    "CompanyData",
    "Customer",
    "InventoryItem",
    "Invoice",
    "InvoiceStatus",
    "LineItem",
    "Product",
    "Purchase",
    "Return",
    "ReturnItem",
    "Sale",
    "Supplier",
    # Output
    "ConfidenceLevel",
    "ForecastData",
    "InsightCategory",
    "InsightItem",
    "InsightsData",
    "InsightsSummary",
    "SeasonalPattern",
    "Severity",
    "TrendDirection",
    # Models
    "ForecastMethod",
    "ForecastResult",
    "HoltWintersForecaster",
    "SSAForecaster",
    "LocalForecaster",
    "calculate_confidence_score",
    "forecast_next_period",
    # Analysis
    "TrendAnalyzer",
    "AnomalyDetector",
    "DataSufficiencyChecker",
    # Forecasting
    "ForecastEngine",
    "ForecastMetric",
    "ForecastAccuracyData",
    "ForecastAccuracyRecord",
    "ForecastAccuracyTracker",
    # Recommendations
    "RecommendationEngine",
    # Engine
    "InsightsEngine",
    # Data
    "LedgerSimulator",
    "generate_sample_company",
    # Logging
    "configure_logging",
    "get_logger",
]
