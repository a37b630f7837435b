"""
Forecasting Models
==================
Monthly-series forecasters used by the insights engine:
- Linear regression + exponential smoothing (next-period value)
- Holt-Winters: additive / multiplicative seasonal smoothing
- SSA: singular spectrum analysis with recurrent forecasting
- LocalForecaster: method selection and the SSA + Holt-Winters ensemble
- Confidence scoring
"""

import warnings
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.tsa.holtwinters import ExponentialSmoothing

from .config import (
    CONFIDENCE_PARAMS, ENSEMBLE_PARAMS, FORECAST_PARAMS, HOLT_WINTERS_PARAMS,
    MONTH_NAMES, SSA_PARAMS,
    ConfidenceParams, EnsembleParams, ForecastParams, HoltWintersParams, SSAParams,
)
from .exceptions import ForecastMethodError
from .insight_types import ConfidenceLevel, SeasonalPattern, TrendDirection
from .logging_config import get_logger
from .stats_utils import Number, as_floats, to_money

logger = get_logger("models")


class ForecastMethod(Enum):
    """Requested enhanced-forecast method."""
    AUTO = "Auto"
    SSA = "SSA"
    HOLT_WINTERS = "HoltWinters"
    COMBINED = "Combined"


# =============================================================================
# RESULT CONTAINERS
# =============================================================================

@dataclass
class NextPeriodForecast:
    """Container for a single next-period estimate."""
    value: Decimal
    variation: float  # coefficient of variation of the input series


@dataclass
class HoltWintersResult:
    """Container for Holt-Winters results."""
    forecasted_values: List[float]
    seasonal_pattern: SeasonalPattern
    final_level: float = 0.0
    final_trend: float = 0.0
    method: str = ""

    @property
    def forecasted_value(self) -> float:
        return self.forecasted_values[0] if self.forecasted_values else 0.0


@dataclass
class SSAResult:
    """Container for SSA results."""
    forecasted_values: List[float]
    lower_bounds: List[float]
    upper_bounds: List[float]
    window: int
    rank: int


@dataclass
class ForecastResult:
    """Container for enhanced multi-period forecast results."""
    forecasted_values: List[Decimal] = field(default_factory=list)
    lower_bounds: List[Decimal] = field(default_factory=list)
    upper_bounds: List[Decimal] = field(default_factory=list)
    seasonal_pattern: Optional[SeasonalPattern] = None
    confidence_score: float = 0.0
    method_used: str = ""
    data_points_used: int = 0
    periods_forecasted: int = 0

    @property
    def forecasted_value(self) -> Decimal:
        return self.forecasted_values[0] if self.forecasted_values else Decimal("0")

    @property
    def confidence_level(self) -> ConfidenceLevel:
        return confidence_level_for(self.confidence_score)


# =============================================================================
# NEXT-PERIOD FORECAST
# =============================================================================

def linear_regression_forecast(values: Sequence[Number],
                               params: ForecastParams = FORECAST_PARAMS) -> float:
    """OLS on index 0..n-1, evaluated at x = n and clamped at zero."""
    n = len(values)
    if n == 0:
        return 0.0
    y = as_floats(values)
    if n < 2:
        return float(y[0])

    x = np.arange(n, dtype=float)
    denominator = n * np.sum(x * x) - np.sum(x) ** 2
    if abs(denominator) < params.degenerate_denominator:
        return float(y[-1])

    fit = stats.linregress(x, y)
    return max(0.0, float(fit.slope * n + fit.intercept))


def exponential_smoothing_forecast(values: Sequence[Number], alpha: float = 0.3) -> float:
    """Final smoothed level; seeded at the first observation, not projected."""
    if len(values) == 0:
        return 0.0
    y = as_floats(values)
    smoothed = y[0]
    for value in y[1:]:
        smoothed = alpha * value + (1 - alpha) * smoothed
    return float(smoothed)


def data_variation(values: Sequence[Number]) -> float:
    """Coefficient of variation; 1.0 when it cannot be measured."""
    if len(values) < 2:
        return 1.0
    y = as_floats(values)
    m = np.mean(y)
    if m == 0:
        return 1.0
    return float(np.std(y) / m)


def forecast_next_period(values: Sequence[Number],
                         params: ForecastParams = FORECAST_PARAMS) -> NextPeriodForecast:
    """
    Weighted blend of the regression and smoothing estimates.

    The regression gets the larger weight only once there are enough months
    for its slope to be trusted.

    Args:
        values: Chronological monthly totals

    Returns:
        NextPeriodForecast (unclamped value in cents, input variation)
    """
    if len(values) < 2:
        first = values[0] if len(values) else 0
        return NextPeriodForecast(value=to_money(first), variation=0.0)

    linear = linear_regression_forecast(values, params)
    smoothed = exponential_smoothing_forecast(values, params.smoothing_alpha)

    if len(values) >= params.ample_data_months:
        weight = params.regression_weight_ample
    else:
        weight = params.regression_weight_sparse
    combined = linear * weight + smoothed * (1 - weight)

    return NextPeriodForecast(value=to_money(combined), variation=data_variation(values))


# =============================================================================
# CONFIDENCE
# =============================================================================

def _stability_cv(values: Sequence[Number]) -> float:
    if len(values) < 2:
        return 0.0
    y = as_floats(values)
    m = np.mean(y)
    if m == 0:
        return 1.0
    return float(np.std(y) / abs(m))


def calculate_confidence_score(values: Sequence[Number],
                               seasonal_pattern: Optional[SeasonalPattern] = None,
                               historical_accuracy: Optional[float] = None,
                               params: ConfidenceParams = CONFIDENCE_PARAMS) -> float:
    """
    Score 0-100 built from data quantity, stability, seasonality and past accuracy.

    Args:
        values: Historical series the forecast was built from
        seasonal_pattern: Detected seasonality, if any
        historical_accuracy: Recent forecast accuracy percentage, if known

    Returns:
        Clamped confidence score
    """
    n = len(values)
    score = min(params.max_data_score, n * params.points_per_observation)

    if n >= params.min_points_for_stability:
        cv = _stability_cv(values)
        stability = params.stability_floor
        for upper, band_score in params.stability_bands:
            if cv < upper:
                stability = band_score
                break
        score += stability

    if seasonal_pattern is not None and seasonal_pattern.seasonal_strength > params.seasonal_strength_cutoff:
        score += seasonal_pattern.seasonal_strength * params.max_seasonal_score
    elif n >= HOLT_WINTERS_PARAMS.min_points_for_seasonality:
        score += params.weak_seasonality_score

    if historical_accuracy is not None and historical_accuracy > 0:
        score += historical_accuracy / 100 * params.max_accuracy_score

    return float(min(100.0, max(0.0, score)))


def confidence_level_for(score: float, params: ConfidenceParams = CONFIDENCE_PARAMS) -> ConfidenceLevel:
    if score >= params.high_level:
        return ConfidenceLevel.HIGH
    if score >= params.medium_level:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


# =============================================================================
# BASE FORECASTER
# =============================================================================

class BaseForecaster:
    """Base class for monthly-series forecasters."""

    def __init__(self, name: str):
        self.name = name

    def prepare_data(self, values: Sequence[Number]) -> np.ndarray:
        """Validate and convert the input series to floats."""
        y = as_floats(values)
        if not np.all(np.isfinite(y)):
            raise ForecastMethodError(self.name, "series contains non-finite values", len(y))
        return y

    @staticmethod
    def floor_values(values: Sequence[float], allow_negative: bool = False) -> List[float]:
        """Clamp forecasts at zero unless the series is signed (profit)."""
        if allow_negative:
            return [float(v) for v in values]
        return [max(0.0, float(v)) for v in values]


# =============================================================================
# HOLT-WINTERS
# =============================================================================

_CYCLE_LABELS = {
    12: ("yearly", MONTH_NAMES),
    6: ("bi-monthly", ["Jan-Feb", "Mar-Apr", "May-Jun", "Jul-Aug", "Sep-Oct", "Nov-Dec"]),
    4: ("quarterly", ["Q1 (Jan-Mar)", "Q2 (Apr-Jun)", "Q3 (Jul-Sep)", "Q4 (Oct-Dec)"]),
    3: ("3-month", ["beginning", "middle", "end"]),
    2: ("bi-monthly", ["first month", "second month"]),
}


class HoltWintersForecaster(BaseForecaster):
    """
    Triple exponential smoothing with fixed smoothing constants.

    Components are initialised from the first two seasons and fitted by
    statsmodels without optimisation, so results are deterministic.
    """

    def __init__(self, params: HoltWintersParams = HOLT_WINTERS_PARAMS):
        super().__init__("Holt-Winters")
        self.params = params

    def forecast_additive(self, values: Sequence[Number], season_length: int = 12,
                          periods: int = 1, allow_negative: bool = False) -> HoltWintersResult:
        if len(values) < season_length * 2:
            return self._fallback(values, periods, season_length, allow_negative)
        return self._fit(values, season_length, periods, "add", allow_negative)

    def forecast_multiplicative(self, values: Sequence[Number], season_length: int = 12,
                                periods: int = 1, allow_negative: bool = False) -> HoltWintersResult:
        if len(values) < season_length * 2:
            return self._fallback(values, periods, season_length, allow_negative)
        if any(float(v) <= 0 for v in values):
            return self.forecast_additive(values, season_length, periods, allow_negative)
        return self._fit(values, season_length, periods, "mul", allow_negative)

    def auto_forecast(self, values: Sequence[Number], season_length: int = 12,
                      periods: int = 1, allow_negative: bool = False) -> HoltWintersResult:
        """Pick multiplicative when seasonal swings scale with the level."""
        if len(values) < season_length:
            return self._fallback(values, periods, season_length, allow_negative)
        if any(float(v) <= 0 for v in values):
            return self.forecast_additive(values, season_length, periods, allow_negative)

        if self._phase_cv_spread(values, season_length) < self.params.multiplicative_cv_spread:
            return self.forecast_multiplicative(values, season_length, periods, allow_negative)
        return self.forecast_additive(values, season_length, periods, allow_negative)

    def detect_season_length(self, values: Sequence[Number],
                             candidates: Optional[Sequence[int]] = None) -> int:
        """
        Candidate season length with the lowest residual variance.

        Each eligible candidate (m <= n // 2) is scored by the variance left
        after removing a linear trend and per-phase means, divided by the
        remaining degrees of freedom. Ties keep the earlier candidate.
        """
        candidates = list(candidates or self.params.candidate_season_lengths)
        y = as_floats(values)
        n = len(y)
        eligible = [m for m in candidates if m <= n // 2]
        if not eligible:
            return max(2, min(4, n // 2))

        x = np.arange(n, dtype=float)
        slope, intercept = np.polyfit(x, y, 1)
        detrended = y - (slope * x + intercept)

        best_length = eligible[0]
        best_score = np.inf
        for m in eligible:
            dof = n - m - 2
            if dof <= 0:
                continue
            phases = np.arange(n) % m
            phase_means = pd.Series(detrended).groupby(phases).mean()
            residuals = detrended - phase_means.reindex(phases).to_numpy()
            score = float(np.sum(residuals ** 2)) / dof
            if score < best_score:
                best_score = score
                best_length = m

        return best_length

    # -------------------------------------------------------------------------

    def _phase_cv_spread(self, values: Sequence[Number], season_length: int) -> float:
        """Sample std of the per-phase coefficients of variation."""
        series = pd.Series(as_floats(values))
        grouped = series.groupby(np.arange(len(series)) % season_length)
        means = grouped.mean()
        stds = grouped.std(ddof=1).fillna(0.0)
        cvs = (stds / means)[means > 0]
        if len(cvs) < 2:
            return 0.0
        return float(cvs.std(ddof=1))

    def _fit(self, values: Sequence[Number], season_length: int, periods: int,
             seasonal: str, allow_negative: bool = False) -> HoltWintersResult:
        y = self.prepare_data(values)
        n = len(y)
        m = season_length

        first_season = float(np.mean(y[:m]))
        second_season = float(np.mean(y[m:2 * m]))
        initial_trend = (second_season - first_season) / m
        if seasonal == "mul":
            first_season = max(first_season, self.params.floor)
            initial_seasonal = np.maximum(y[:m] / first_season, self.params.floor)
        else:
            initial_seasonal = y[:m] - first_season

        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                model = ExponentialSmoothing(
                    y,
                    trend="add",
                    seasonal=seasonal,
                    seasonal_periods=m,
                    initialization_method="known",
                    initial_level=first_season,
                    initial_trend=initial_trend,
                    initial_seasonal=initial_seasonal,
                )
                fitted = model.fit(
                    smoothing_level=self.params.alpha,
                    smoothing_trend=self.params.beta,
                    smoothing_seasonal=self.params.gamma,
                    optimized=False,
                )
                forecast = np.asarray(fitted.forecast(periods), dtype=float)
        except (ValueError, np.linalg.LinAlgError) as exc:
            logger.warning("forecast_method_failed", extra={
                "method": f"Holt-Winters {seasonal}",
                "error": str(exc),
                "data_points": n,
            })
            return self._fallback(values, periods, season_length, allow_negative)

        if not np.all(np.isfinite(forecast)):
            logger.warning("forecast_method_failed", extra={
                "method": f"Holt-Winters {seasonal}",
                "error": "non-finite forecast",
                "data_points": n,
            })
            return self._fallback(values, periods, season_length, allow_negative)

        season = np.asarray(fitted.season, dtype=float)
        final_level = float(np.asarray(fitted.level, dtype=float)[-1])
        final_trend = float(np.asarray(fitted.trend, dtype=float)[-1])

        # last m seasonal states, re-indexed by phase
        factors = [0.0] * m
        for i, value in enumerate(season[-m:]):
            factors[(n - m + i) % m] = float(value)

        if seasonal == "mul":
            strength = min(1.0, float(np.mean(np.abs(np.asarray(factors) - 1))) * 5)
            method = "Holt-Winters Multiplicative"
        else:
            data_variance = float(np.var(y, ddof=1)) if n > 1 else 0.0
            if data_variance > 0:
                strength = min(1.0, float(np.mean(np.square(factors))) / data_variance)
            else:
                strength = 0.0
            method = "Holt-Winters Additive"

        pattern = SeasonalPattern(
            season_length=m,
            seasonal_factors=factors,
            seasonal_strength=strength,
            trend_direction=self._trend_direction(final_trend),
            trend_slope=final_trend,
            description=self._describe(factors, m, strength),
        )

        return HoltWintersResult(
            forecasted_values=self.floor_values(forecast, allow_negative),
            seasonal_pattern=pattern,
            final_level=final_level,
            final_trend=final_trend,
            method=method,
        )

    def _fallback(self, values: Sequence[Number], periods: int, season_length: int,
                  allow_negative: bool = False) -> HoltWintersResult:
        """Simple exponential smoothing plus average drift."""
        if len(values) == 0:
            return HoltWintersResult(
                forecasted_values=[0.0] * periods,
                seasonal_pattern=SeasonalPattern.none("No data available.", season_length),
                method="No Data",
            )

        y = as_floats(values)
        level = exponential_smoothing_forecast(y, self.params.alpha)
        drift = (y[-1] - y[0]) / (len(y) - 1) if len(y) > 1 else 0.0

        return HoltWintersResult(
            forecasted_values=self.floor_values([level + h * drift for h in range(1, periods + 1)], allow_negative),
            seasonal_pattern=SeasonalPattern.none("Insufficient data for seasonal analysis.", season_length),
            final_level=level,
            final_trend=float(drift),
            method="Simple Exponential Smoothing",
        )

    def _trend_direction(self, slope: float) -> TrendDirection:
        if slope > self.params.trend_epsilon:
            return TrendDirection.INCREASING
        if slope < -self.params.trend_epsilon:
            return TrendDirection.DECREASING
        return TrendDirection.STABLE

    def _describe(self, factors: List[float], season_length: int, strength: float) -> str:
        """Human-readable peak/trough summary of the seasonal factors."""
        if strength < 0.1:
            return "No significant seasonal pattern detected."

        peak = int(np.argmax(factors))
        trough = int(np.argmin(factors))
        if season_length in _CYCLE_LABELS:
            cycle, labels = _CYCLE_LABELS[season_length]
            peak_label = labels[peak % len(labels)]
            trough_label = labels[trough % len(labels)]
        else:
            cycle = f"{season_length}-period"
            peak_label = f"period {peak + 1}"
            trough_label = f"period {trough + 1}"

        if strength > 0.5:
            strength_label = "strong"
        elif strength > 0.25:
            strength_label = "moderate"
        else:
            strength_label = "mild"

        return (f"A {strength_label} {cycle} pattern detected. "
                f"Peak at {peak_label} of cycle, lowest at {trough_label}.")


# =============================================================================
# SSA
# =============================================================================

class SSAForecaster(BaseForecaster):
    """
    Singular spectrum analysis.

    Embeds the series in a trajectory matrix, keeps the leading components
    that carry most of the singular-value energy and extends the
    reconstructed signal with the recurrent linear formula.
    """

    def __init__(self, params: SSAParams = SSA_PARAMS):
        super().__init__("SSA")
        self.params = params

    def forecast(self, values: Sequence[Number], periods: int = 1, allow_negative: bool = False) -> SSAResult:
        y = self.prepare_data(values)
        n = len(y)
        window = max(2, min(self.params.default_window, n // 4))
        if n < window + 1:
            raise ForecastMethodError(self.name, f"need at least {window + 1} points", n)

        k = n - window + 1
        trajectory = np.column_stack([y[i:i + window] for i in range(k)])

        try:
            u, s, vt = np.linalg.svd(trajectory, full_matrices=False)
        except np.linalg.LinAlgError as exc:
            raise ForecastMethodError(self.name, f"SVD did not converge: {exc}", n) from exc

        energy = s ** 2
        total = float(np.sum(energy))
        if total <= 0:
            raise ForecastMethodError(self.name, "zero-energy trajectory matrix", n)

        rank = int(np.searchsorted(np.cumsum(energy) / total, self.params.energy_threshold) + 1)
        rank = max(1, min(rank, window - 1))

        reconstructed = self._reconstruct(u[:, :rank], s[:rank], vt[:rank], n, window)

        basis = u[:, :rank]
        last_row = basis[-1, :]
        verticality = float(np.sum(last_row ** 2))
        if verticality >= 1.0 - 1e-9:
            raise ForecastMethodError(self.name, "verticality coefficient reached 1", n)
        coefficients = basis[:-1, :] @ last_row / (1.0 - verticality)

        extended = list(reconstructed)
        forecasts = []
        for _ in range(periods):
            next_value = float(coefficients @ np.asarray(extended[-(window - 1):]))
            extended.append(next_value)
            forecasts.append(next_value)

        sigma = float(np.std(y - reconstructed))
        lower, upper = [], []
        for h, value in enumerate(forecasts, start=1):
            margin = self.params.interval_z * sigma * np.sqrt(h)
            lower.append(value - margin)
            upper.append(value + margin)

        return SSAResult(
            forecasted_values=self.floor_values(forecasts, allow_negative),
            lower_bounds=self.floor_values(lower, allow_negative),
            upper_bounds=self.floor_values(upper, allow_negative),
            window=window,
            rank=rank,
        )

    def _reconstruct(self, u: np.ndarray, s: np.ndarray, vt: np.ndarray,
                     n: int, window: int) -> np.ndarray:
        """Diagonal averaging (Hankelisation) of the rank-r approximation."""
        approx = (u * s) @ vt
        sums = np.zeros(n)
        counts = np.zeros(n)
        for col in range(approx.shape[1]):
            sums[col:col + window] += approx[:, col]
            counts[col:col + window] += 1
        return sums / counts


# =============================================================================
# LOCAL FORECASTER (ENSEMBLE)
# =============================================================================

class LocalForecaster:
    """
    Main forecasting class that orchestrates SSA and Holt-Winters.
    Provides method selection, the combined ensemble and seasonality detection.
    """

    def __init__(self, ensemble_params: EnsembleParams = ENSEMBLE_PARAMS,
                 hw_params: HoltWintersParams = HOLT_WINTERS_PARAMS,
                 ssa_params: SSAParams = SSA_PARAMS,
                 confidence_params: ConfidenceParams = CONFIDENCE_PARAMS,
                 forecast_params: ForecastParams = FORECAST_PARAMS):
        self.params = ensemble_params
        self.confidence_params = confidence_params
        self.forecast_params = forecast_params
        self.holt_winters = HoltWintersForecaster(hw_params)
        self.ssa = SSAForecaster(ssa_params)

    def generate_enhanced_forecast(self, values: Sequence[Number], periods: int = 1,
                                   method: ForecastMethod = ForecastMethod.AUTO,
                                   historical_accuracy: Optional[float] = None,
                                   allow_negative: bool = False) -> ForecastResult:
        """
        Multi-period forecast with bounds and confidence.

        Args:
            values: Chronological monthly totals
            periods: Number of periods to forecast
            method: Preferred method; downgraded when data is too short
            historical_accuracy: Recent accuracy percentage for the confidence bonus
            allow_negative: Keep negative forecasts (signed series such as profit)

        Returns:
            ForecastResult
        """
        periods = max(1, int(periods))
        if len(values) < 2:
            first = to_money(values[0] if len(values) else 0)
            return ForecastResult(
                forecasted_values=[first] * periods,
                lower_bounds=[first] * periods,
                upper_bounds=[first] * periods,
                seasonal_pattern=SeasonalPattern.none("Insufficient data to detect seasonal patterns."),
                confidence_score=0.0,
                method_used="Insufficient Data",
                data_points_used=len(values),
                periods_forecasted=periods,
            )

        selected = self._select_method(len(values), method)
        logger.debug("forecast_method_selected", extra={
            "requested": method.value,
            "selected": selected.value,
            "data_points": len(values),
        })

        if selected is ForecastMethod.SSA:
            return self._ssa_forecast(values, periods, historical_accuracy, allow_negative)
        if selected is ForecastMethod.HOLT_WINTERS:
            return self._holt_winters_forecast(values, periods, historical_accuracy, allow_negative)
        return self._combined_forecast(values, periods, historical_accuracy, allow_negative)

    def detect_seasonality(self, values: Sequence[Number]) -> SeasonalPattern:
        if len(values) < self.holt_winters.params.min_points_for_seasonality:
            return SeasonalPattern.none("Insufficient data to detect seasonal patterns.")
        season_length = self.holt_winters.detect_season_length(values)
        return self.holt_winters.auto_forecast(values, season_length, 1).seasonal_pattern

    def _select_method(self, data_points: int, preferred: ForecastMethod) -> ForecastMethod:
        """Requested method when the data supports it, else Holt-Winters."""
        if preferred is ForecastMethod.AUTO:
            if data_points >= self.params.min_points_for_ssa:
                return ForecastMethod.COMBINED
            return ForecastMethod.HOLT_WINTERS

        if preferred in (ForecastMethod.SSA, ForecastMethod.COMBINED):
            if data_points >= self.params.min_points_for_ssa:
                return preferred
        return ForecastMethod.HOLT_WINTERS

    def _ssa_forecast(self, values: Sequence[Number], periods: int,
                      historical_accuracy: Optional[float], allow_negative: bool = False) -> ForecastResult:
        try:
            ssa = self.ssa.forecast(values, periods, allow_negative)
        except ForecastMethodError as exc:
            logger.warning("forecast_method_failed", extra={
                "method": exc.method,
                "error": exc.reason,
                "data_points": len(values),
                "fallback": "Holt-Winters",
            })
            return self._holt_winters_forecast(values, periods, historical_accuracy, allow_negative)

        return ForecastResult(
            forecasted_values=[to_money(v) for v in ssa.forecasted_values],
            lower_bounds=[to_money(v) for v in ssa.lower_bounds],
            upper_bounds=[to_money(v) for v in ssa.upper_bounds],
            seasonal_pattern=self.detect_seasonality(values),
            confidence_score=calculate_confidence_score(
                values, None, historical_accuracy, self.confidence_params),
            method_used="SSA",
            data_points_used=len(values),
            periods_forecasted=periods,
        )

    def _holt_winters_forecast(self, values: Sequence[Number], periods: int,
                               historical_accuracy: Optional[float], allow_negative: bool = False) -> ForecastResult:
        if len(values) >= self.holt_winters.params.min_points_for_seasonality:
            season_length = self.holt_winters.detect_season_length(values)
        else:
            season_length = min(4, len(values) // 2)
        season_length = max(2, season_length)

        hw = self.holt_winters.auto_forecast(values, season_length, periods, allow_negative)
        confidence = calculate_confidence_score(
            values, hw.seasonal_pattern, historical_accuracy, self.confidence_params)

        if confidence >= self.forecast_params.high_confidence_range:
            spread = self.forecast_params.narrow_range_pct
        else:
            spread = self.forecast_params.wide_range_pct

        return ForecastResult(
            forecasted_values=[to_money(v) for v in hw.forecasted_values],
            lower_bounds=[to_money(v - abs(v) * spread) for v in hw.forecasted_values],
            upper_bounds=[to_money(v + abs(v) * spread) for v in hw.forecasted_values],
            seasonal_pattern=hw.seasonal_pattern,
            confidence_score=confidence,
            method_used=hw.method,
            data_points_used=len(values),
            periods_forecasted=periods,
        )

    def _combined_forecast(self, values: Sequence[Number], periods: int,
                           historical_accuracy: Optional[float], allow_negative: bool = False) -> ForecastResult:
        ssa = self._ssa_forecast(values, periods, historical_accuracy, allow_negative)
        hw = self._holt_winters_forecast(values, periods, historical_accuracy, allow_negative)

        if len(values) >= self.params.long_history_points:
            ssa_weight = self.params.ssa_weight_long
        else:
            ssa_weight = self.params.ssa_weight_short
        hw_weight = 1 - ssa_weight

        combined, lower, upper = [], [], []
        for i in range(periods):
            ssa_value = float(ssa.forecasted_values[i])
            hw_value = float(hw.forecasted_values[i])
            combined.append(to_money(ssa_weight * ssa_value + hw_weight * hw_value))
            lower.append(min(ssa.lower_bounds[i], hw.lower_bounds[i]))
            upper.append(max(ssa.upper_bounds[i], hw.upper_bounds[i]))

        agreement = self.method_agreement(ssa.forecasted_values, hw.forecasted_values)
        base_confidence = (ssa.confidence_score + hw.confidence_score) / 2
        confidence = min(100.0, base_confidence + agreement * self.params.agreement_bonus)

        logger.debug("combined_forecast_built", extra={
            "ssa_method": ssa.method_used,
            "ssa_weight": ssa_weight,
            "agreement": agreement,
        })

        return ForecastResult(
            forecasted_values=combined,
            lower_bounds=lower,
            upper_bounds=upper,
            seasonal_pattern=hw.seasonal_pattern,
            confidence_score=confidence,
            method_used="Combined (SSA + Holt-Winters)",
            data_points_used=len(values),
            periods_forecasted=periods,
        )

    @staticmethod
    def method_agreement(first: Sequence[Number], second: Sequence[Number]) -> float:
        """1 minus the mean relative difference between two forecasts, floored at 0."""
        differences = []
        for a, b in zip(first, second):
            a, b = float(a), float(b)
            avg = abs(a + b) / 2
            if avg > 0:
                differences.append(abs(a - b) / avg)
        if not differences:
            return 0.0
        return max(0.0, 1 - float(np.mean(differences)))


def forecast_bounds(value: Decimal, confidence: float,
                    params: ForecastParams = FORECAST_PARAMS) -> Tuple[Decimal, Decimal, str]:
    """Low/high range around a point forecast, narrower when confidence is high."""
    if confidence >= params.high_confidence_range:
        spread = Decimal(str(params.narrow_range_pct))
    else:
        spread = Decimal(str(params.wide_range_pct))
    label = f"±{int(spread * 100)}%"
    return value * (1 - spread), value * (1 + spread), label
