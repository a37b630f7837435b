"""
Tests for TrendAnalyzer.

Covers:
- Revenue and expense trends with the inclusive 15% threshold
- Day-of-week and seasonal month concentration
- Transaction volume trend
- Ordering of the combined analysis
"""

from datetime import date, timedelta
from decimal import Decimal

from ledger_insights.analysis import TrendAnalyzer
from ledger_insights.config import TrendThresholds
from ledger_insights.domain import CompanyData
from ledger_insights.insight_types import InsightCategory, Severity


class TestRevenueTrend:
    """Tests for the period-over-period revenue trend."""

    def test_exactly_fifteen_percent_is_reported(self):
        """The threshold is inclusive."""
        item = TrendAnalyzer().revenue_trend(Decimal("100"), Decimal("115"))

        assert item is not None
        assert item.title == "Revenue Growth Detected"
        assert item.severity is Severity.SUCCESS
        assert item.category is InsightCategory.REVENUE_TREND
        assert item.percentage_change == Decimal("15")
        assert item.metric_value == Decimal("115")

    def test_just_below_threshold_is_ignored(self):
        assert TrendAnalyzer().revenue_trend(Decimal("100"), Decimal("114.99")) is None

    def test_decline(self):
        item = TrendAnalyzer().revenue_trend(Decimal("1000"), Decimal("800"))

        assert item.title == "Revenue Decline Detected"
        assert item.severity is Severity.WARNING
        assert "decreased by 20.0%" in item.description
        assert "($1,000 → $800)" in item.description

    def test_no_previous_revenue_is_ignored(self):
        assert TrendAnalyzer().revenue_trend(Decimal("0"), Decimal("500")) is None

    def test_custom_threshold(self):
        analyzer = TrendAnalyzer(TrendThresholds(significant_change_pct=5.0))

        assert analyzer.revenue_trend(Decimal("100"), Decimal("106")) is not None


class TestExpenseTrend:
    """Tests for the expense trend."""

    def test_increase_is_a_warning(self):
        item = TrendAnalyzer().expense_trend(Decimal("1000"), Decimal("1200"))

        assert item.title == "Expense Increase Detected"
        assert item.severity is Severity.WARNING
        assert item.category is InsightCategory.EXPENSE_TREND

    def test_reduction_is_a_success(self):
        item = TrendAnalyzer().expense_trend(Decimal("1000"), Decimal("800"))

        assert item.title == "Expense Reduction Achieved"
        assert item.severity is Severity.SUCCESS


class TestDayOfWeekPattern:
    """Tests for weekday concentration."""

    def test_strong_monday_is_reported(self, make_sale):
        # June 3 2024 is a Monday
        sales = []
        for offset in range(7):
            day = date(2024, 6, 3) + timedelta(days=offset)
            amount = 500 if offset == 0 else 100
            sales += [make_sale(day, amount), make_sale(day, amount)]

        item = TrendAnalyzer().day_of_week_pattern(sales)

        assert item is not None
        assert item.title == "Monday Sales Performance"
        assert item.severity is Severity.INFO
        assert "Mondays generate" in item.description
        assert "($1,000 vs $314 average)" in item.description

    def test_needs_fourteen_sales(self, make_sale):
        sales = [make_sale(date(2024, 6, 3), 1000)] + [make_sale(date(2024, 6, 4), 10)] * 12

        assert TrendAnalyzer().day_of_week_pattern(sales) is None

    def test_even_weekdays_are_ignored(self, make_sale):
        sales = [make_sale(date(2024, 6, 3) + timedelta(days=i % 7), 100) for i in range(21)]

        assert TrendAnalyzer().day_of_week_pattern(sales) is None


class TestSeasonalPattern:
    """Tests for calendar-month concentration over the trailing year."""

    def test_peak_month_is_reported(self, make_sale, as_of):
        sales = [make_sale(date(2024, month, 15), 500 if month == 6 else 100) for month in range(1, 7)]

        item = TrendAnalyzer().seasonal_pattern(sales, as_of)

        assert item is not None
        assert item.title == "Seasonal Pattern Identified"
        assert "June generates" in item.description
        assert "ahead of June" in item.recommendation

    def test_needs_six_months(self, make_sale, as_of):
        sales = [make_sale(date(2024, month, 15), 500 if month == 5 else 100) for month in range(2, 7)]

        assert TrendAnalyzer().seasonal_pattern(sales, as_of) is None

    def test_sales_older_than_a_year_are_ignored(self, make_sale, as_of):
        sales = [make_sale(date(2024, month, 15), 100) for month in range(1, 7)]
        sales.append(make_sale(date(2023, 3, 1), 100000))

        assert TrendAnalyzer().seasonal_pattern(sales, as_of) is None


class TestVolumeTrend:
    """Tests for the transaction count trend."""

    def test_twenty_percent_increase(self):
        item = TrendAnalyzer().volume_trend(10, 12)

        assert item.title == "Transaction Volume Increasing"
        assert "(10 → 12 transactions)" in item.description

    def test_decline(self):
        item = TrendAnalyzer().volume_trend(10, 5)

        assert item.title == "Transaction Volume Declining"
        assert item.severity is Severity.WARNING

    def test_small_change_is_ignored(self):
        assert TrendAnalyzer().volume_trend(10, 11) is None

    def test_no_previous_transactions_is_ignored(self):
        assert TrendAnalyzer().volume_trend(0, 5) is None


class TestAnalyze:
    """Tests for the combined trend analysis."""

    def test_revenue_then_expense_then_volume(self, make_sale, make_purchase, june_range, as_of):
        previous = [make_sale(date(2024, 5, d), 100) for d in range(1, 11)]
        current = [make_sale(date(2024, 6, d), 200) for d in range(1, 13)]
        purchases = [make_purchase(date(2024, 5, 10), 1000), make_purchase(date(2024, 6, 10), 500)]
        company = CompanyData(sales=previous + current, purchases=purchases)

        titles = [item.title for item in TrendAnalyzer().analyze(company, june_range, as_of)]

        assert titles == [
            "Revenue Growth Detected",
            "Expense Reduction Achieved",
            "Transaction Volume Increasing",
        ]

    def test_compare_periods_uses_equal_length_previous_window(self, make_sale, june_range):
        company = CompanyData(sales=[
            make_sale(date(2024, 5, 2), 300),
            make_sale(date(2024, 5, 1), 999),
            make_sale(date(2024, 6, 30), 100),
        ])

        comparison = TrendAnalyzer().compare_periods(company, june_range)

        assert comparison.previous_revenue == Decimal("300")
        assert comparison.current_revenue == Decimal("100")
        assert comparison.previous_sales_count == 1
