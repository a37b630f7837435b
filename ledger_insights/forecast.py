"""
Forecast Engine
===============
Business-level forecasting built on the monthly-series models:
- Next-month revenue, expenses, profit and new customers
- Confidence from data quantity, stability, seasonality and past accuracy
- Forecast insights (revenue range, cash-flow projection, inventory depletion)
- Enhanced multi-period forecasts per metric
"""

from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable, List, Optional, TypeVar

from .accuracy import ForecastAccuracyTracker, first_purchase_dates
from .config import FORECAST_PARAMS, SUFFICIENCY, ForecastParams, SufficiencyThresholds
from .domain import AnalysisDateRange, CompanyData
from .insight_types import ForecastData, InsightCategory, InsightItem, Severity
from .logging_config import get_logger
from .models import (
    ForecastMethod, ForecastResult, LocalForecaster, calculate_confidence_score,
    confidence_level_for, forecast_bounds, forecast_next_period,
)
from .stats_utils import (
    format_currency, group_by, month_key, percent_change, subtract_months, sum_by,
)

logger = get_logger("forecast")

T = TypeVar('T')


class ForecastMetric(Enum):
    """Series available to the enhanced forecast."""
    REVENUE = "revenue"
    EXPENSES = "expenses"
    PROFIT = "profit"
    NEW_CUSTOMERS = "new_customers"


def monthly_totals(items: Iterable[T], date_fn: Callable[[T], date],
                   amount_fn: Callable[[T], Decimal]) -> List[Decimal]:
    """Totals per populated (year, month), oldest first."""
    totals = sum_by(group_by(items, lambda item: month_key(date_fn(item))), amount_fn)
    return [totals[key] for key in sorted(totals)]


class ForecastEngine:
    """
    Produces ForecastData and forecast insights for a company.

    The trailing-12-month window is anchored on ``as_of``, which the caller
    reads from its clock once per request.
    """

    def __init__(self, params: ForecastParams = FORECAST_PARAMS,
                 sufficiency: SufficiencyThresholds = SUFFICIENCY,
                 forecaster: Optional[LocalForecaster] = None,
                 accuracy_tracker: Optional[ForecastAccuracyTracker] = None):
        self.params = params
        self.sufficiency = sufficiency
        self.forecaster = forecaster or LocalForecaster()
        self.accuracy_tracker = accuracy_tracker or ForecastAccuracyTracker()

    # -------------------------------------------------------------------------
    # Series
    # -------------------------------------------------------------------------

    def _cutoff(self, as_of: date) -> date:
        return subtract_months(as_of, self.params.lookback_months)

    def revenue_series(self, company: CompanyData, as_of: date) -> List[Decimal]:
        cutoff = self._cutoff(as_of)
        return monthly_totals((s for s in company.sales if s.date >= cutoff),
                              lambda s: s.date, lambda s: s.effective_amount_usd)

    def expense_series(self, company: CompanyData, as_of: date) -> List[Decimal]:
        cutoff = self._cutoff(as_of)
        return monthly_totals((p for p in company.purchases if p.date >= cutoff),
                              lambda p: p.date, lambda p: p.effective_amount_usd)

    def new_customer_series(self, company: CompanyData, as_of: date) -> List[int]:
        """Count of first purchases per month in the trailing window."""
        cutoff = self._cutoff(as_of)
        firsts = [d for d in first_purchase_dates(company).values() if d >= cutoff]
        counts = group_by(firsts, month_key)
        return [len(counts[key]) for key in sorted(counts)]

    def metric_series(self, company: CompanyData, metric: ForecastMetric,
                      through: date) -> List[Decimal]:
        """Full monthly history of ``metric`` up to and including ``through``."""
        sales = [s for s in company.sales if s.date <= through]
        purchases = [p for p in company.purchases if p.date <= through]

        if metric is ForecastMetric.REVENUE:
            return monthly_totals(sales, lambda s: s.date, lambda s: s.effective_amount_usd)
        if metric is ForecastMetric.EXPENSES:
            return monthly_totals(purchases, lambda p: p.date, lambda p: p.effective_amount_usd)
        if metric is ForecastMetric.NEW_CUSTOMERS:
            firsts = [d for d in first_purchase_dates(company).values() if d <= through]
            counts = group_by(firsts, month_key)
            return [Decimal(len(counts[key])) for key in sorted(counts)]

        revenue = sum_by(group_by(sales, lambda s: month_key(s.date)), lambda s: s.effective_amount_usd)
        expenses = sum_by(group_by(purchases, lambda p: month_key(p.date)), lambda p: p.effective_amount_usd)
        months = sorted(set(revenue) | set(expenses))
        return [revenue.get(m, Decimal("0")) - expenses.get(m, Decimal("0")) for m in months]

    # -------------------------------------------------------------------------
    # Business forecast
    # -------------------------------------------------------------------------

    def historical_accuracy(self, company: CompanyData, as_of: date) -> Optional[float]:
        records = self.accuracy_tracker.validate_forecasts(company.forecast_records, company, as_of)
        recent = self.accuracy_tracker.recent_accuracy(records)
        return recent.revenue_accuracy if recent is not None else None

    def generate_forecast(self, company: CompanyData, date_range: AnalysisDateRange,
                          as_of: date) -> ForecastData:
        """
        Next-month forecast of revenue, expenses, profit and new customers.

        Args:
            company: Ledger snapshot
            date_range: Analysis range (not used by the trailing window itself)
            as_of: Reference date anchoring the trailing 12 months

        Returns:
            ForecastData
        """
        revenue = self.revenue_series(company, as_of)
        expenses = self.expense_series(company, as_of)
        min_months = self.sufficiency.min_months_for_forecasting

        forecast = ForecastData(data_months_used=max(len(revenue), len(expenses)))

        if len(revenue) >= min_months:
            forecast.forecasted_revenue = max(Decimal("0"), forecast_next_period(revenue, self.params).value)
            if revenue[-1] > 0:
                forecast.revenue_growth_percent = percent_change(revenue[-1], forecast.forecasted_revenue)

        if len(expenses) >= min_months:
            forecast.forecasted_expenses = max(Decimal("0"), forecast_next_period(expenses, self.params).value)
            if expenses[-1] > 0:
                forecast.expense_growth_percent = percent_change(expenses[-1], forecast.forecasted_expenses)

        forecast.forecasted_profit = forecast.forecasted_revenue - forecast.forecasted_expenses
        last_profit = (revenue[-1] if revenue else Decimal("0")) - (expenses[-1] if expenses else Decimal("0"))
        if last_profit != 0:
            forecast.profit_growth_percent = percent_change(last_profit, forecast.forecasted_profit)

        new_customers = self.new_customer_series(company, as_of)
        if len(new_customers) >= min_months:
            expected = forecast_next_period(new_customers, self.params).value
            forecast.expected_new_customers = max(0, round(expected))
            if new_customers[-1] > 0:
                forecast.customer_growth_percent = percent_change(
                    new_customers[-1], forecast.expected_new_customers)

        if len(revenue) >= min_months:
            pattern = self.forecaster.detect_seasonality(revenue)
            forecast.confidence_score = calculate_confidence_score(
                revenue, pattern, self.historical_accuracy(company, as_of),
                self.forecaster.confidence_params)
        forecast.confidence_level = confidence_level_for(forecast.confidence_score)

        logger.info("forecast_generated", extra={
            "forecasted_revenue": forecast.forecasted_revenue,
            "forecasted_expenses": forecast.forecasted_expenses,
            "confidence_score": round(forecast.confidence_score, 2),
            "data_months_used": forecast.data_months_used,
        })
        return forecast

    # -------------------------------------------------------------------------
    # Forecast insights
    # -------------------------------------------------------------------------

    def forecast_insights(self, company: CompanyData, date_range: AnalysisDateRange, as_of: date,
                          forecast: Optional[ForecastData] = None) -> List[InsightItem]:
        if forecast is None:
            forecast = self.generate_forecast(company, date_range, as_of)
        insights = []

        if forecast.forecasted_revenue > 0:
            low, high, label = forecast_bounds(forecast.forecasted_revenue, forecast.confidence_score, self.params)
            insights.append(InsightItem(
                title="Next Month Revenue Forecast",
                description=(f"Based on {forecast.data_months_used} months of historical data, expected revenue "
                             f"for next month is {format_currency(low)} - {format_currency(high)} ({label})."),
                severity=Severity.INFO,
                category=InsightCategory.FORECAST,
                metric_value=forecast.forecasted_revenue,
            ))

        if forecast.forecasted_profit != 0:
            positive = forecast.forecasted_profit > 0
            insights.append(InsightItem(
                title="Cash Flow Projection",
                description=(f"Projected cash flow for the next 30 days is {'positive' if positive else 'negative'}. "
                             f"Expected {'surplus' if positive else 'shortfall'}: "
                             f"{format_currency(abs(forecast.forecasted_profit))}."),
                severity=Severity.SUCCESS if positive else Severity.WARNING,
                category=InsightCategory.FORECAST,
                metric_value=forecast.forecasted_profit,
            ))

        depletion = self.inventory_depletion(company, date_range)
        if depletion is not None:
            insights.append(depletion)

        return insights

    def products_at_risk(self, company: CompanyData, date_range: AnalysisDateRange) -> List[str]:
        """Product ids whose stock runs out within the depletion window at recent velocity."""
        window_start = date_range.end_date - timedelta(days=self.params.velocity_window_days)
        items = [item
                 for sale in company.sales if window_start <= sale.date <= date_range.end_date
                 for item in sale.line_items if item.product_id is not None]
        quantities = sum_by(group_by(items, lambda i: i.product_id), lambda i: i.quantity)

        at_risk = []
        for product_id, quantity in quantities.items():
            velocity = quantity / self.params.velocity_window_days
            if velocity <= 0:
                continue
            stock = company.get_inventory(product_id)
            if stock is None or stock.in_stock <= 0:
                continue
            if stock.in_stock / velocity <= self.params.depletion_days:
                at_risk.append(product_id)
        return at_risk

    def inventory_depletion(self, company: CompanyData, date_range: AnalysisDateRange) -> Optional[InsightItem]:
        at_risk = self.products_at_risk(company, date_range)
        if not at_risk:
            return None

        names = []
        for product_id in at_risk:
            product = company.get_product(product_id)
            if product is not None:
                names.append(product.name)

        if names:
            recommendation = ("Review and place orders for low-stock items: "
                              + ", ".join(names[:self.params.max_listed_products]))
        else:
            recommendation = "Review and place orders for low-stock items."

        return InsightItem(
            title="Inventory Depletion Alert",
            description=(f"At current sales velocity, {len(at_risk)} product(s) will reach reorder point "
                         f"within 2 weeks."),
            recommendation=recommendation,
            severity=Severity.WARNING,
            category=InsightCategory.INVENTORY,
            metric_value=Decimal(len(at_risk)),
        )

    # -------------------------------------------------------------------------
    # Enhanced forecast
    # -------------------------------------------------------------------------

    def generate_enhanced_forecast(self, company: CompanyData, date_range: AnalysisDateRange,
                                   as_of: date, metric: ForecastMetric = ForecastMetric.REVENUE,
                                   periods: int = 1,
                                   method: ForecastMethod = ForecastMethod.AUTO) -> ForecastResult:
        """Multi-period forecast of ``metric`` over its full history up to the range end."""
        series = self.metric_series(company, metric, date_range.end_date)
        accuracy = self.historical_accuracy(company, as_of) if metric is ForecastMetric.REVENUE else None
        result = self.forecaster.generate_enhanced_forecast(
            series, periods, method, accuracy, allow_negative=metric is ForecastMetric.PROFIT)

        logger.info("enhanced_forecast_generated", extra={
            "metric": metric.value,
            "method_used": result.method_used,
            "data_points": result.data_points_used,
            "periods": result.periods_forecasted,
            "confidence_score": round(result.confidence_score, 2),
        })
        return result
