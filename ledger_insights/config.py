"""
Configuration
=============
Thresholds and tuning constants for the insights engine.

All values here are hand-tuned business heuristics. Analyzers take an
optional instance of the matching dataclass so callers can override a
threshold without touching module state.
"""

from dataclasses import dataclass
from typing import Tuple


# =============================================================================
# DATA SUFFICIENCY
# =============================================================================

@dataclass(frozen=True)
class SufficiencyThresholds:
    min_transactions: int = 5
    min_months_for_forecasting: int = 2

SUFFICIENCY = SufficiencyThresholds()


# =============================================================================
# TRENDS
# =============================================================================

@dataclass(frozen=True)
class TrendThresholds:
    significant_change_pct: float = 15.0
    volume_change_pct: float = 20.0
    min_sales_for_weekday: int = 14
    weekday_peak_ratio: float = 1.30
    min_months_for_seasonal: int = 6
    seasonal_peak_ratio: float = 1.25
    seasonal_lookback_months: int = 12

TREND_THRESHOLDS = TrendThresholds()


# =============================================================================
# ANOMALIES
# =============================================================================

@dataclass(frozen=True)
class AnomalyThresholds:
    z_score_threshold: float = 2.0
    large_transaction_z: float = 3.0
    expense_lookback_days: int = 84
    current_week_days: int = 7
    min_expense_weeks: int = 4
    baseline_multiplier: int = 3
    weekly_grouping_after_days: int = 30
    min_baseline_points: int = 5
    min_sales_for_return_rate: int = 10
    return_history_months: int = 6
    return_rate_margin_pts: float = 3.0
    min_sales_for_large_txn: int = 5

ANOMALY_THRESHOLDS = AnomalyThresholds()


# =============================================================================
# FORECASTING
# =============================================================================

@dataclass(frozen=True)
class ForecastParams:
    lookback_months: int = 12
    smoothing_alpha: float = 0.3
    regression_weight_ample: float = 0.6
    regression_weight_sparse: float = 0.4
    ample_data_months: int = 6
    degenerate_denominator: float = 0.0001
    high_confidence_range: float = 70.0
    narrow_range_pct: float = 0.10
    wide_range_pct: float = 0.20
    velocity_window_days: int = 30
    depletion_days: int = 14
    max_listed_products: int = 3

FORECAST_PARAMS = ForecastParams()


@dataclass(frozen=True)
class HoltWintersParams:
    alpha: float = 0.3  # level
    beta: float = 0.1   # trend
    gamma: float = 0.2  # seasonal
    candidate_season_lengths: Tuple[int, ...] = (12, 6, 4, 3)
    min_points_for_seasonality: int = 12
    multiplicative_cv_spread: float = 0.3
    trend_epsilon: float = 0.01
    floor: float = 0.0001

HOLT_WINTERS_PARAMS = HoltWintersParams()


@dataclass(frozen=True)
class SSAParams:
    default_window: int = 6
    energy_threshold: float = 0.90
    interval_z: float = 1.96

SSA_PARAMS = SSAParams()


@dataclass(frozen=True)
class EnsembleParams:
    min_points_for_ssa: int = 24
    min_points_for_holt_winters: int = 12
    long_history_points: int = 36
    ssa_weight_long: float = 0.6
    ssa_weight_short: float = 0.5
    agreement_bonus: float = 10.0

ENSEMBLE_PARAMS = EnsembleParams()


@dataclass(frozen=True)
class ConfidenceParams:
    points_per_observation: float = 1.5
    max_data_score: float = 35.0
    min_points_for_stability: int = 3
    # (upper CV bound, score); anything above the last bound scores the floor
    stability_bands: Tuple[Tuple[float, float], ...] = (
        (0.1, 25.0), (0.3, 20.0), (0.5, 15.0), (0.8, 10.0),
    )
    stability_floor: float = 5.0
    seasonal_strength_cutoff: float = 0.1
    max_seasonal_score: float = 20.0
    weak_seasonality_score: float = 10.0
    max_accuracy_score: float = 20.0
    high_level: float = 80.0
    medium_level: float = 50.0

CONFIDENCE_PARAMS = ConfidenceParams()


# =============================================================================
# FORECAST ACCURACY TRACKING
# =============================================================================

@dataclass(frozen=True)
class AccuracyParams:
    recent_count: int = 6
    max_records: int = 24
    trend_min_records: int = 4
    trend_margin_pts: float = 5.0

ACCURACY_PARAMS = AccuracyParams()


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

@dataclass(frozen=True)
class RecommendationThresholds:
    inactivity_days: int = 60
    min_prior_purchases: int = 2
    overdue_warning_days: int = 30
    supplier_concentration_pct: float = 60.0
    min_suppliers: int = 2
    customer_concentration_pct: float = 40.0
    min_customers: int = 3
    low_margin_pct: float = 10.0
    strong_margin_pct: float = 30.0

RECOMMENDATION_THRESHOLDS = RecommendationThresholds()


# =============================================================================
# DISPLAY
# =============================================================================

SEVERITY_COLORS = {
    "info": "#3B82F6",
    "success": "#22C55E",
    "warning": "#F59E0B",
    "critical": "#EF4444",
}

SEVERITY_LABELS = {
    "info": "Info",
    "success": "Success",
    "warning": "Warning",
    "critical": "Critical",
}

CATEGORY_LABELS = {
    "revenue_trend": "Revenue Trend",
    "expense_trend": "Expense Trend",
    "anomaly": "Anomaly",
    "forecast": "Forecast",
    "recommendation": "Recommendation",
    "product": "Product",
    "customer": "Customer",
    "payment": "Payment",
    "inventory": "Inventory",
}

MONTH_NAMES = ['January', 'February', 'March', 'April', 'May', 'June',
               'July', 'August', 'September', 'October', 'November', 'December']

DAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
