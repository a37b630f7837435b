"""
Forecast Accuracy
=================
Bookkeeping for past forecasts:
- Record a forecast for a future period
- Validate records against actuals once their period has ended
- Aggregate accuracy, MAPE and accuracy trend
- Recent accuracy used as a confidence bonus

Records are immutable; every operation returns a new tuple.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .config import ACCURACY_PARAMS, AccuracyParams
from .domain import AnalysisDateRange, CompanyData
from .insight_types import ForecastData
from .logging_config import get_logger
from .stats_utils import sum_decimal

logger = get_logger("accuracy")

NO_VALIDATED_FORECASTS = "No validated forecasts yet. Check back after the current forecast period ends."


def _accuracy(forecast: Decimal, actual: Optional[Decimal]) -> Optional[float]:
    if actual is None or actual == 0:
        return None
    error = abs(forecast - actual) / actual * 100
    return max(0.0, 100 - float(error))


def _mape(forecast: Decimal, actual: Optional[Decimal]) -> Optional[float]:
    if actual is None or actual == 0:
        return None
    return float(abs(forecast - actual) / actual * 100)


@dataclass(frozen=True)
class ForecastAccuracyRecord:
    """One stored forecast and, once validated, the actuals it is judged against."""
    period_start_date: date
    period_end_date: date
    forecasted_revenue: Decimal
    forecasted_expenses: Decimal
    forecasted_profit: Decimal
    forecasted_new_customers: int = 0
    confidence_score: float = 0.0
    forecast_method: str = "Combined"
    forecast_date: Optional[datetime] = None
    actual_revenue: Optional[Decimal] = None
    actual_expenses: Optional[Decimal] = None
    actual_profit: Optional[Decimal] = None
    actual_new_customers: Optional[int] = None
    is_validated: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def revenue_accuracy_percent(self) -> Optional[float]:
        return _accuracy(self.forecasted_revenue, self.actual_revenue)

    @property
    def expenses_accuracy_percent(self) -> Optional[float]:
        return _accuracy(self.forecasted_expenses, self.actual_expenses)

    @property
    def revenue_mape(self) -> Optional[float]:
        return _mape(self.forecasted_revenue, self.actual_revenue)


class AccuracyTrend(Enum):
    IMPROVING = "Improving"
    STABLE = "Stable"
    DECLINING = "Declining"


@dataclass
class RecentAccuracy:
    """Container for recent average accuracies."""
    revenue_accuracy: float
    expense_accuracy: float

    @property
    def overall(self) -> float:
        return (self.revenue_accuracy + self.expense_accuracy) / 2


@dataclass
class ForecastAccuracyData:
    """Container for aggregated accuracy statistics."""
    historical_records: List[ForecastAccuracyRecord] = field(default_factory=list)
    average_revenue_accuracy: float = 0.0
    average_expenses_accuracy: float = 0.0
    overall_revenue_mape: float = 0.0
    validated_forecast_count: int = 0
    total_forecast_count: int = 0
    accuracy_trend: AccuracyTrend = AccuracyTrend.STABLE
    accuracy_description: str = ""

    @classmethod
    def from_records(cls, records: Iterable[ForecastAccuracyRecord],
                     params: AccuracyParams = ACCURACY_PARAMS) -> "ForecastAccuracyData":
        """
        Aggregate validated records.

        ``historical_records`` keeps the order given. The accuracy trend always
        compares the older half of the validated records with the newer half.
        """
        records = list(records)
        validated = [r for r in records if r.is_validated]
        data = cls(historical_records=records,
                   validated_forecast_count=len(validated),
                   total_forecast_count=len(records))

        if not validated:
            data.accuracy_description = NO_VALIDATED_FORECASTS
            return data

        df = pd.DataFrame({
            'revenue_accuracy': [r.revenue_accuracy_percent for r in validated],
            'expense_accuracy': [r.expenses_accuracy_percent for r in validated],
            'revenue_mape': [r.revenue_mape for r in validated],
        }, dtype=float)

        data.average_revenue_accuracy = _mean_or_zero(df['revenue_accuracy'])
        data.average_expenses_accuracy = _mean_or_zero(df['expense_accuracy'])
        data.overall_revenue_mape = _mean_or_zero(df['revenue_mape'])

        chronological = df.assign(period_start=[r.period_start_date for r in validated]).sort_values(
            'period_start', kind='stable')
        revenue_accuracies = chronological['revenue_accuracy'].dropna().reset_index(drop=True)
        if len(revenue_accuracies) >= params.trend_min_records:
            half = len(revenue_accuracies) // 2
            first_half = revenue_accuracies.iloc[:half].mean()
            second_half = revenue_accuracies.iloc[half:].mean()
            if second_half > first_half + params.trend_margin_pts:
                data.accuracy_trend = AccuracyTrend.IMPROVING
            elif second_half < first_half - params.trend_margin_pts:
                data.accuracy_trend = AccuracyTrend.DECLINING

        overall = (data.average_revenue_accuracy + data.average_expenses_accuracy) / 2
        data.accuracy_description = _describe_accuracy(overall)
        return data


def _mean_or_zero(series: pd.Series) -> float:
    series = series.dropna()
    return float(series.mean()) if len(series) else 0.0


def _describe_accuracy(overall: float) -> str:
    error = 100 - overall
    if overall >= 90:
        return f"Excellent accuracy! Forecasts are within ±{error:.0f}% of actual values on average."
    if overall >= 80:
        return f"Good accuracy. Forecasts average ±{error:.0f}% deviation from actual values."
    if overall >= 70:
        return f"Moderate accuracy. Forecasts average ±{error:.0f}% deviation. Consider reviewing data patterns."
    return f"Low accuracy (±{error:.0f}% average error). More historical data may improve predictions."


class ForecastAccuracyTracker:
    """
    Records forecasts and measures them against what actually happened.
    """

    def __init__(self, params: AccuracyParams = ACCURACY_PARAMS):
        self.params = params

    def record_forecast(self, records: Iterable[ForecastAccuracyRecord], forecast: ForecastData,
                        period: AnalysisDateRange,
                        forecast_date: datetime) -> Tuple[ForecastAccuracyRecord, ...]:
        """Store a forecast for ``period``, replacing an unvalidated one for the same period."""
        records = list(records)
        for i, record in enumerate(records):
            if (record.period_start_date == period.start_date
                    and record.period_end_date == period.end_date
                    and not record.is_validated):
                records[i] = replace(
                    record,
                    forecasted_revenue=forecast.forecasted_revenue,
                    forecasted_expenses=forecast.forecasted_expenses,
                    forecasted_profit=forecast.forecasted_profit,
                    forecasted_new_customers=forecast.expected_new_customers,
                    confidence_score=forecast.confidence_score,
                    forecast_date=forecast_date,
                )
                logger.debug("forecast_record_updated", extra={"record_id": record.id})
                return tuple(records)

        record = ForecastAccuracyRecord(
            period_start_date=period.start_date,
            period_end_date=period.end_date,
            forecasted_revenue=forecast.forecasted_revenue,
            forecasted_expenses=forecast.forecasted_expenses,
            forecasted_profit=forecast.forecasted_profit,
            forecasted_new_customers=forecast.expected_new_customers,
            confidence_score=forecast.confidence_score,
            forecast_method=forecast.forecast_method or "Combined",
            forecast_date=forecast_date,
        )
        logger.debug("forecast_record_added", extra={"record_id": record.id})
        return tuple(records) + (record,)

    def validate_forecasts(self, records: Iterable[ForecastAccuracyRecord], company: CompanyData,
                           as_of: date) -> Tuple[ForecastAccuracyRecord, ...]:
        """Fill in actuals for every unvalidated record whose period ended before ``as_of``."""
        first_purchase = first_purchase_dates(company)
        validated = []
        changed = 0
        for record in records:
            if record.is_validated or record.period_end_date >= as_of:
                validated.append(record)
                continue

            start, end = record.period_start_date, record.period_end_date
            revenue = sum_decimal(s.effective_amount_usd for s in company.sales if start <= s.date <= end)
            expenses = sum_decimal(p.effective_amount_usd for p in company.purchases if start <= p.date <= end)
            new_customers = sum(1 for d in first_purchase.values() if start <= d <= end)

            validated.append(replace(
                record,
                actual_revenue=revenue,
                actual_expenses=expenses,
                actual_profit=revenue - expenses,
                actual_new_customers=new_customers,
                is_validated=True,
            ))
            changed += 1

        if changed:
            logger.info("forecasts_validated", extra={"validated_count": changed})
        return tuple(validated)

    def accuracy_data(self, records: Iterable[ForecastAccuracyRecord], company: CompanyData,
                      as_of: date) -> ForecastAccuracyData:
        """Validate, then aggregate with the newest period first."""
        records = self.validate_forecasts(records, company, as_of)
        ordered = sorted(records, key=lambda r: r.period_start_date, reverse=True)
        return ForecastAccuracyData.from_records(ordered, self.params)

    def recent_accuracy(self, records: Iterable[ForecastAccuracyRecord],
                        recent_count: Optional[int] = None) -> Optional[RecentAccuracy]:
        """Average accuracy of the most recently ended validated forecasts."""
        recent_count = recent_count or self.params.recent_count
        validated = sorted((r for r in records if r.is_validated),
                           key=lambda r: r.period_end_date, reverse=True)[:recent_count]
        if not validated:
            return None

        revenue = [r.revenue_accuracy_percent for r in validated if r.revenue_accuracy_percent is not None]
        expenses = [r.expenses_accuracy_percent for r in validated if r.expenses_accuracy_percent is not None]
        if not revenue and not expenses:
            return None

        return RecentAccuracy(
            revenue_accuracy=sum(revenue) / len(revenue) if revenue else 0.0,
            expense_accuracy=sum(expenses) / len(expenses) if expenses else 0.0,
        )

    def accuracy_summary(self, records: Iterable[ForecastAccuracyRecord]) -> str:
        records = list(records)
        recent = self.recent_accuracy(records)
        if recent is None:
            return NO_VALIDATED_FORECASTS

        validated_count = sum(1 for r in records if r.is_validated)
        return (f"Based on {validated_count} validated forecast(s), predictions were within "
                f"±{100 - recent.overall:.0f}% of actual values on average.")

    def cleanup_records(self, records: Iterable[ForecastAccuracyRecord],
                        max_records: Optional[int] = None) -> Tuple[ForecastAccuracyRecord, ...]:
        """Keep at most ``max_records``: validated first, then newest period first."""
        max_records = max_records or self.params.max_records
        ordered = sorted(records, key=lambda r: (r.is_validated, r.period_start_date), reverse=True)
        return tuple(ordered[:max_records])


def first_purchase_dates(company: CompanyData) -> Dict[str, date]:
    """Earliest sale date per identified customer."""
    first: Dict[str, date] = {}
    for sale in company.sales:
        if sale.customer_id is None:
            continue
        seen = first.get(sale.customer_id)
        if seen is None or sale.date < seen:
            first[sale.customer_id] = sale.date
    return first
