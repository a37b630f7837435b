"""
Analysis Module
===============
Period-over-period analysis of ledger activity:
- Trend Analysis (revenue, expenses, weekday, seasonal month, volume)
- Anomaly Detection (expense spike, revenue drop, return rate, large sale)

Every detector uses the same z-score contract: population standard
deviation, and a flat reference series suppresses detection.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import (
    ANOMALY_THRESHOLDS, DAY_NAMES, MONTH_NAMES, TREND_THRESHOLDS,
    AnomalyThresholds, TrendThresholds,
)
from .domain import AnalysisDateRange, CompanyData, Purchase, Sale
from .insight_types import InsightCategory, InsightItem, Severity
from .logging_config import get_logger
from .stats_utils import (
    as_floats, format_currency, group_by, percent_change, subtract_months,
    sum_by, sum_decimal, to_decimal, week_key, z_score,
)

logger = get_logger("analysis")


def sales_in(company: CompanyData, date_range: AnalysisDateRange) -> List[Sale]:
    return [s for s in company.sales if date_range.contains(s.date)]


def purchases_in(company: CompanyData, date_range: AnalysisDateRange) -> List[Purchase]:
    return [p for p in company.purchases if date_range.contains(p.date)]


def _mean_std(values: Sequence[Decimal]) -> Tuple[float, float]:
    """Mean and population std of a reference series."""
    if len(values) == 0:
        return 0.0, 0.0
    arr = as_floats(values)
    return float(np.mean(arr)), float(np.std(arr))


# =============================================================================
# TREND ANALYSIS
# =============================================================================

@dataclass
class PeriodComparison:
    """Container for current vs previous period totals."""
    current_revenue: Decimal
    previous_revenue: Decimal
    current_expenses: Decimal
    previous_expenses: Decimal
    current_sales_count: int
    previous_sales_count: int


class TrendAnalyzer:
    """
    Compares the analysis range with the equal-length period before it and
    looks for weekday and calendar-month concentration in sales.
    """

    def __init__(self, thresholds: TrendThresholds = TREND_THRESHOLDS):
        """
        Initialize Trend Analyzer.

        Args:
            thresholds: Change and concentration thresholds
        """
        self.thresholds = thresholds

    def analyze(self, company: CompanyData, date_range: AnalysisDateRange,
                as_of: date) -> List[InsightItem]:
        """
        Run every trend check.

        Args:
            company: Ledger snapshot
            date_range: Current analysis period
            as_of: Reference "today" for the trailing-12-month window

        Returns:
            Trend insights in a fixed order
        """
        comparison = self.compare_periods(company, date_range)
        current_sales = sales_in(company, date_range)

        candidates = [
            self.revenue_trend(comparison.previous_revenue, comparison.current_revenue),
            self.expense_trend(comparison.previous_expenses, comparison.current_expenses),
            self.day_of_week_pattern(current_sales),
            self.seasonal_pattern(company.sales, as_of),
            self.volume_trend(comparison.previous_sales_count, comparison.current_sales_count),
        ]
        insights = [item for item in candidates if item is not None]

        logger.debug("trends_analyzed", extra={
            "insight_count": len(insights),
            "current_revenue": comparison.current_revenue,
            "previous_revenue": comparison.previous_revenue,
        })
        return insights

    def compare_periods(self, company: CompanyData, date_range: AnalysisDateRange) -> PeriodComparison:
        previous = date_range.previous_period
        current_sales = sales_in(company, date_range)
        previous_sales = sales_in(company, previous)
        return PeriodComparison(
            current_revenue=sum_decimal(s.effective_amount_usd for s in current_sales),
            previous_revenue=sum_decimal(s.effective_amount_usd for s in previous_sales),
            current_expenses=sum_decimal(p.effective_amount_usd for p in purchases_in(company, date_range)),
            previous_expenses=sum_decimal(p.effective_amount_usd for p in purchases_in(company, previous)),
            current_sales_count=len(current_sales),
            previous_sales_count=len(previous_sales),
        )

    def revenue_trend(self, previous: Decimal, current: Decimal) -> Optional[InsightItem]:
        if previous <= 0:
            return None
        change = percent_change(previous, current)
        if abs(change) < Decimal(str(self.thresholds.significant_change_pct)):
            return None

        growth = change > 0
        return InsightItem(
            title="Revenue Growth Detected" if growth else "Revenue Decline Detected",
            description=(f"Your revenue has {'increased' if growth else 'decreased'} by {abs(change):.1f}% "
                         f"compared to the previous period ({format_currency(previous)} → {format_currency(current)})."),
            recommendation=(
                "Consider analyzing which products or services drove this growth to replicate success."
                if growth else
                "Review recent changes that may have impacted revenue and consider promotional strategies."
            ),
            severity=Severity.SUCCESS if growth else Severity.WARNING,
            category=InsightCategory.REVENUE_TREND,
            metric_value=current,
            percentage_change=change,
        )

    def expense_trend(self, previous: Decimal, current: Decimal) -> Optional[InsightItem]:
        if previous <= 0:
            return None
        change = percent_change(previous, current)
        if abs(change) < Decimal(str(self.thresholds.significant_change_pct)):
            return None

        increase = change > 0
        return InsightItem(
            title="Expense Increase Detected" if increase else "Expense Reduction Achieved",
            description=(f"Your expenses have {'increased' if increase else 'decreased'} by {abs(change):.1f}% "
                         f"compared to the previous period ({format_currency(previous)} → {format_currency(current)})."),
            recommendation=(
                "Review expense categories to identify areas where costs can be optimized."
                if increase else
                "Good job on cost management! Document what strategies worked for future reference."
            ),
            severity=Severity.WARNING if increase else Severity.SUCCESS,
            category=InsightCategory.EXPENSE_TREND,
            metric_value=current,
            percentage_change=change,
        )

    def day_of_week_pattern(self, sales: Sequence[Sale]) -> Optional[InsightItem]:
        """Flag a weekday that out-earns the weekday average by the configured ratio."""
        if len(sales) < self.thresholds.min_sales_for_weekday:
            return None

        totals = sum_by(group_by(sales, lambda s: s.date.weekday()), lambda s: s.effective_amount_usd)
        if not totals:
            return None

        best_day = max(totals, key=totals.get)
        best_total = totals[best_day]
        average = sum_decimal(totals.values()) / len(totals)
        if average <= 0 or best_total <= average * Decimal(str(self.thresholds.weekday_peak_ratio)):
            return None

        day_name = DAY_NAMES[best_day]
        percent_above = (best_total / average - 1) * 100
        return InsightItem(
            title=f"{day_name} Sales Performance",
            description=(f"{day_name}s generate {percent_above:.0f}% more revenue than average daily sales "
                         f"({format_currency(best_total)} vs {format_currency(average)} average)."),
            recommendation=f"Consider running promotions or increasing staffing on {day_name}s to maximize this opportunity.",
            severity=Severity.INFO,
            category=InsightCategory.REVENUE_TREND,
            percentage_change=percent_above,
        )

    def seasonal_pattern(self, sales: Sequence[Sale], as_of: date) -> Optional[InsightItem]:
        """Flag a calendar month well above the monthly average over the last year."""
        cutoff = subtract_months(as_of, self.thresholds.seasonal_lookback_months)
        recent = [s for s in sales if s.date >= cutoff]
        totals = sum_by(group_by(recent, lambda s: s.date.month), lambda s: s.effective_amount_usd)
        if len(totals) < self.thresholds.min_months_for_seasonal:
            return None

        best_month = max(totals, key=totals.get)
        best_total = totals[best_month]
        average = sum_decimal(totals.values()) / len(totals)
        if average <= 0 or best_total <= average * Decimal(str(self.thresholds.seasonal_peak_ratio)):
            return None

        month_name = MONTH_NAMES[best_month - 1]
        percent_above = (best_total / average - 1) * 100
        return InsightItem(
            title="Seasonal Pattern Identified",
            description=f"Historical data shows {month_name} generates {percent_above:.0f}% more revenue than average months.",
            recommendation=f"Plan inventory and marketing campaigns ahead of {month_name} to capitalize on this seasonal trend.",
            severity=Severity.INFO,
            category=InsightCategory.REVENUE_TREND,
            percentage_change=percent_above,
        )

    def volume_trend(self, previous_count: int, current_count: int) -> Optional[InsightItem]:
        if previous_count == 0:
            return None
        change = percent_change(previous_count, current_count)
        if abs(change) < Decimal(str(self.thresholds.volume_change_pct)):
            return None

        increase = change > 0
        return InsightItem(
            title="Transaction Volume Increasing" if increase else "Transaction Volume Declining",
            description=(f"Number of transactions has {'increased' if increase else 'decreased'} by {abs(change):.0f}% "
                         f"({previous_count} → {current_count} transactions)."),
            recommendation=(
                "Ensure operational capacity can handle increased demand."
                if increase else
                "Consider outreach campaigns to re-engage customers."
            ),
            severity=Severity.SUCCESS if increase else Severity.WARNING,
            category=InsightCategory.REVENUE_TREND,
            percentage_change=change,
        )


# =============================================================================
# ANOMALY DETECTION
# =============================================================================

class AnomalyDetector:
    """
    Z-score based outlier detection on expenses, revenue, returns and
    individual sales.
    """

    def __init__(self, thresholds: AnomalyThresholds = ANOMALY_THRESHOLDS):
        self.thresholds = thresholds

    def detect(self, company: CompanyData, date_range: AnalysisDateRange) -> List[InsightItem]:
        """Run all detectors; at most one insight each."""
        candidates = [
            self.detect_expense_spike(company, date_range),
            self.detect_return_rate(company, date_range),
            self.detect_revenue_drop(company, date_range),
            self.detect_large_transaction(company, date_range),
        ]
        anomalies = [item for item in candidates if item is not None]

        logger.debug("anomalies_detected", extra={"anomaly_count": len(anomalies)})
        return anomalies

    # -------------------------------------------------------------------------
    # Expense spike
    # -------------------------------------------------------------------------

    def detect_expense_spike(self, company: CompanyData, date_range: AnalysisDateRange) -> Optional[InsightItem]:
        end = date_range.end_date
        lookback_start = end - timedelta(days=self.thresholds.expense_lookback_days)
        recent = [p for p in company.purchases if lookback_start <= p.date <= end]
        weekly = sum_by(group_by(recent, lambda p: week_key(p.date)), lambda p: p.effective_amount_usd)

        if len(weekly) < self.thresholds.min_expense_weeks:
            return None

        week_start = end - timedelta(days=self.thresholds.current_week_days)
        current_week = sum_decimal(p.effective_amount_usd for p in recent if p.date >= week_start)
        return self.evaluate_expense_spike(current_week, list(weekly.values()))

    def evaluate_expense_spike(self, current_week_total: Decimal,
                               weekly_totals: Sequence[Decimal]) -> Optional[InsightItem]:
        """Compare one week's spend with a series of weekly totals."""
        series_mean, series_std = _mean_std(weekly_totals)
        z = z_score(current_week_total, series_mean, series_std)
        if z is None or z <= self.thresholds.z_score_threshold or series_mean <= 0:
            return None

        current_week_total = to_decimal(current_week_total)
        typical = to_decimal(series_mean)
        percent_above = (current_week_total / typical - 1) * 100
        return InsightItem(
            title="Unusual Expense Spike Detected",
            description=(f"This week's expenses ({format_currency(current_week_total)}) are {percent_above:.0f}% "
                         f"above your typical weekly average ({format_currency(typical)})."),
            recommendation="Review recent expense entries for any errors, unexpected costs, or one-time purchases.",
            severity=Severity.WARNING,
            category=InsightCategory.ANOMALY,
            metric_value=current_week_total,
            percentage_change=percent_above,
        )

    # -------------------------------------------------------------------------
    # Revenue drop
    # -------------------------------------------------------------------------

    def detect_revenue_drop(self, company: CompanyData, date_range: AnalysisDateRange) -> Optional[InsightItem]:
        """First current-period bucket far below the trailing baseline."""
        period_days = date_range.day_count
        weekly = period_days > self.thresholds.weekly_grouping_after_days
        bucket = (lambda s: week_key(s.date)) if weekly else (lambda s: s.date)

        baseline_start = date_range.start_date - timedelta(days=period_days * self.thresholds.baseline_multiplier)
        baseline_sales = [s for s in company.sales if baseline_start <= s.date < date_range.start_date]
        baseline = sum_by(group_by(baseline_sales, bucket), lambda s: s.effective_amount_usd)

        if len(baseline) < self.thresholds.min_baseline_points:
            return None

        series_mean, series_std = _mean_std(list(baseline.values()))
        if series_std == 0:
            return None

        current = sum_by(group_by(sales_in(company, date_range), bucket), lambda s: s.effective_amount_usd)
        for key in sorted(current):
            total = current[key]
            z = z_score(total, series_mean, series_std)
            if z is None or z >= -self.thresholds.z_score_threshold:
                continue

            percent_below = (1 - total / to_decimal(series_mean)) * 100
            return InsightItem(
                title="Unusual Revenue Drop",
                description=(f"Revenue for a recent period ({format_currency(total)}) was "
                             f"{percent_below:.0f}% below typical levels."),
                recommendation=("Check for any operational issues, competitor activity, or external "
                                "factors that may have affected sales."),
                severity=Severity.CRITICAL,
                category=InsightCategory.ANOMALY,
                metric_value=total,
                percentage_change=-percent_below,
            )

        return None

    # -------------------------------------------------------------------------
    # Return rate
    # -------------------------------------------------------------------------

    def detect_return_rate(self, company: CompanyData, date_range: AnalysisDateRange) -> Optional[InsightItem]:
        min_sales = self.thresholds.min_sales_for_return_rate
        current_sales = sales_in(company, date_range)
        if len(current_sales) < min_sales:
            return None
        current_returns = [r for r in company.returns if date_range.contains(r.return_date)]
        current_rate = Decimal(len(current_returns)) / len(current_sales) * 100

        history_start = subtract_months(date_range.start_date, self.thresholds.return_history_months)
        historical_sales = sum(1 for s in company.sales if history_start <= s.date < date_range.start_date)
        if historical_sales < min_sales:
            return None
        historical_returns = sum(1 for r in company.returns
                                 if history_start <= r.return_date < date_range.start_date)
        historical_rate = Decimal(historical_returns) / historical_sales * 100

        if current_rate <= historical_rate + Decimal(str(self.thresholds.return_rate_margin_pts)):
            return None

        product_note = ""
        items = [item for r in current_returns for item in r.items]
        if items:
            by_product = group_by(items, lambda i: i.product_id)
            top_product_id = max(by_product, key=lambda k: len(by_product[k]))
            product = company.get_product(top_product_id)
            if product is not None:
                product_note = f" Most returns are for: {product.name}."

        return InsightItem(
            title="Return Rate Above Normal",
            description=(f"Current return rate is {current_rate:.1f}% compared to historical average "
                         f"of {historical_rate:.1f}%.{product_note}"),
            recommendation="Investigate product quality, description accuracy, or shipping issues for affected items.",
            severity=Severity.WARNING,
            category=InsightCategory.ANOMALY,
            metric_value=current_rate,
            percentage_change=current_rate - historical_rate,
        )

    # -------------------------------------------------------------------------
    # Large single transaction
    # -------------------------------------------------------------------------

    def detect_large_transaction(self, company: CompanyData, date_range: AnalysisDateRange) -> Optional[InsightItem]:
        current_sales = sales_in(company, date_range)
        if len(current_sales) < self.thresholds.min_sales_for_large_txn:
            return None

        series_mean, series_std = _mean_std([s.effective_amount_usd for s in current_sales])
        largest = max(current_sales, key=lambda s: s.effective_amount_usd)
        z = z_score(largest.effective_amount_usd, series_mean, series_std)
        if z is None or z <= self.thresholds.large_transaction_z:
            return None

        customer = company.get_customer(largest.customer_id)
        customer_name = customer.name if customer is not None else "a customer"
        when = f"{largest.date:%b} {largest.date.day}"
        return InsightItem(
            title="Unusually Large Transaction",
            description=(f"A sale of {format_currency(largest.effective_amount_usd)} to {customer_name} on {when} "
                         f"is significantly larger than your typical transaction size "
                         f"({format_currency(series_mean)})."),
            recommendation="Verify this transaction is correct and consider nurturing this high-value customer relationship.",
            severity=Severity.INFO,
            category=InsightCategory.ANOMALY,
            metric_value=largest.effective_amount_usd,
        )
