"""
Tests for ForecastEngine.

Covers:
- Next-month business forecast over the trailing twelve months
- Revenue range and cash-flow insights
- Inventory depletion alerts
- Monthly metric series and the enhanced multi-period forecast
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_insights.domain import AnalysisDateRange, CompanyData, InventoryItem, Product
from ledger_insights.forecast import ForecastEngine, ForecastMetric, monthly_totals
from ledger_insights.insight_types import ConfidenceLevel, InsightCategory, Severity
from ledger_insights.models import ForecastMethod


@pytest.fixture
def growing_company(make_sale):
    """Half a year of revenue rising by 100 a month, one new customer each month."""
    sales = [make_sale(date(2024, month, 15), 100 * month, customer_id=f"C{month}")
             for month in range(1, 7)]
    return CompanyData(sales=sales)


class TestGenerateForecast:
    """Tests for the next-month forecast."""

    def test_growing_revenue(self, growing_company, june_range, as_of):
        forecast = ForecastEngine().generate_forecast(growing_company, june_range, as_of)

        assert forecast.forecasted_revenue == Decimal("582.35")
        assert forecast.forecasted_expenses == Decimal("0")
        assert forecast.forecasted_profit == Decimal("582.35")
        assert forecast.expected_new_customers == 1
        assert forecast.data_months_used == 6
        assert forecast.confidence_score == pytest.approx(24.0)
        assert forecast.confidence_level is ConfidenceLevel.LOW
        assert forecast.revenue_growth_percent < 0

    def test_single_month_has_no_forecast(self, make_sale, june_range, as_of):
        company = CompanyData(sales=[make_sale(date(2024, 6, 10), 500)])

        forecast = ForecastEngine().generate_forecast(company, june_range, as_of)

        assert forecast.forecasted_revenue == Decimal("0")
        assert forecast.confidence_score == 0.0
        assert forecast.data_months_used == 1

    def test_sales_older_than_a_year_are_ignored(self, make_sale, june_range, as_of):
        company = CompanyData(sales=[
            make_sale(date(2022, 1, 10), 100000),
            make_sale(date(2024, 5, 10), 100),
            make_sale(date(2024, 6, 10), 100),
        ])

        forecast = ForecastEngine().generate_forecast(company, june_range, as_of)

        assert forecast.data_months_used == 2
        assert forecast.forecasted_revenue == Decimal("100.00")

    def test_forecast_is_never_negative(self, make_sale, june_range, as_of):
        sales = [make_sale(date(2024, month, 15), 1000 - 190 * month) for month in range(1, 6)]

        forecast = ForecastEngine().generate_forecast(CompanyData(sales=sales), june_range, as_of)

        assert forecast.forecasted_revenue >= 0


class TestForecastInsights:
    """Tests for the revenue range and cash-flow insights."""

    def test_revenue_range_uses_wide_band_at_low_confidence(self, growing_company, june_range, as_of):
        insights = ForecastEngine().forecast_insights(growing_company, june_range, as_of)

        revenue = insights[0]
        assert revenue.title == "Next Month Revenue Forecast"
        assert revenue.category is InsightCategory.FORECAST
        assert revenue.description == ("Based on 6 months of historical data, expected revenue for next "
                                       "month is $466 - $699 (±20%).")

    def test_positive_cash_flow(self, growing_company, june_range, as_of):
        cash_flow = ForecastEngine().forecast_insights(growing_company, june_range, as_of)[1]

        assert cash_flow.title == "Cash Flow Projection"
        assert cash_flow.severity is Severity.SUCCESS
        assert cash_flow.description == ("Projected cash flow for the next 30 days is positive. "
                                         "Expected surplus: $582.")

    def test_negative_cash_flow(self, growing_company, make_purchase, june_range, as_of):
        purchases = [make_purchase(date(2024, month, 20), 1000) for month in range(1, 7)]
        company = CompanyData(sales=growing_company.sales, purchases=purchases)

        cash_flow = ForecastEngine().forecast_insights(company, june_range, as_of)[1]

        assert cash_flow.severity is Severity.WARNING
        assert "is negative. Expected shortfall: $418." in cash_flow.description

    def test_no_insights_without_history(self, make_sale, june_range, as_of):
        company = CompanyData(sales=[make_sale(date(2024, 6, 10), 500)])

        assert ForecastEngine().forecast_insights(company, june_range, as_of) == []


class TestInventoryDepletion:
    """Tests for the stock run-out alert."""

    def _company(self, make_sale, line):
        sales = [make_sale(date(2024, 6, day), 50, line_items=[line("P1", 3, 30), line("P404", 3, 30)])
                 for day in range(1, 11)]
        return CompanyData(
            sales=sales,
            products=[Product(id="P1", name="Widget")],
            inventory=[InventoryItem("P1", Decimal("10")), InventoryItem("P404", Decimal("5"))],
        )

    def test_counts_all_and_names_known_products(self, make_sale, line, june_range):
        item = ForecastEngine().inventory_depletion(self._company(make_sale, line), june_range)

        assert item is not None
        assert item.title == "Inventory Depletion Alert"
        assert item.category is InsightCategory.INVENTORY
        assert item.severity is Severity.WARNING
        assert item.description == ("At current sales velocity, 2 product(s) will reach reorder point "
                                    "within 2 weeks.")
        assert item.recommendation == "Review and place orders for low-stock items: Widget"

    def test_unresolvable_products_get_generic_advice(self, make_sale, line, june_range):
        sales = [make_sale(date(2024, 6, 5), 50, line_items=[line("P404", 30, 300)])]
        company = CompanyData(sales=sales, inventory=[InventoryItem("P404", Decimal("5"))])

        item = ForecastEngine().inventory_depletion(company, june_range)

        assert item.recommendation == "Review and place orders for low-stock items."

    def test_ample_stock_is_not_at_risk(self, make_sale, line, june_range):
        sales = [make_sale(date(2024, 6, 5), 50, line_items=[line("P1", 30, 300)])]
        company = CompanyData(sales=sales, inventory=[InventoryItem("P1", Decimal("1000"))])

        assert ForecastEngine().inventory_depletion(company, june_range) is None

    def test_out_of_stock_and_untracked_products_are_skipped(self, make_sale, line, june_range):
        sales = [make_sale(date(2024, 6, 5), 50, line_items=[line("P1", 30, 300), line("P2", 30, 300)])]
        company = CompanyData(sales=sales, inventory=[InventoryItem("P1", Decimal("0"))])

        assert ForecastEngine().products_at_risk(company, june_range) == []


class TestMetricSeries:
    """Tests for monthly series construction."""

    def test_monthly_totals_are_chronological(self, make_sale):
        sales = [make_sale(date(2024, 3, 1), 30), make_sale(date(2023, 12, 5), 10), make_sale(date(2024, 3, 9), 5)]

        totals = monthly_totals(sales, lambda s: s.date, lambda s: s.effective_amount_usd)

        assert totals == [Decimal("10"), Decimal("35")]

    def test_profit_covers_union_of_months(self, make_sale, make_purchase):
        company = CompanyData(
            sales=[make_sale(date(2024, 1, 5), 100), make_sale(date(2024, 2, 5), 200)],
            purchases=[make_purchase(date(2024, 2, 6), 50), make_purchase(date(2024, 3, 6), 30)],
        )

        series = ForecastEngine().metric_series(company, ForecastMetric.PROFIT, date(2024, 6, 30))

        assert series == [Decimal("100"), Decimal("150"), Decimal("-30")]

    def test_series_stops_at_range_end(self, growing_company):
        series = ForecastEngine().metric_series(growing_company, ForecastMetric.REVENUE, date(2024, 3, 31))

        assert series == [Decimal("100"), Decimal("200"), Decimal("300")]

    def test_new_customer_series(self, growing_company):
        series = ForecastEngine().metric_series(growing_company, ForecastMetric.NEW_CUSTOMERS, date(2024, 6, 30))

        assert series == [Decimal(1)] * 6


class TestEnhancedForecast:
    """Tests for the multi-period forecast through the insights engine."""

    def test_long_history_uses_combined(self, engine, simulated_company, june_range):
        result = engine.generate_enhanced_forecast(simulated_company, june_range, periods=3)

        assert result.method_used == "Combined (SSA + Holt-Winters)"
        assert result.periods_forecasted == 3
        assert len(result.forecasted_values) == 3
        assert result.data_points_used >= 24

    @pytest.mark.parametrize("metric", [ForecastMetric.EXPENSES, ForecastMetric.PROFIT,
                                        ForecastMetric.NEW_CUSTOMERS])
    def test_every_metric_forecasts(self, engine, simulated_company, june_range, metric):
        result = engine.generate_enhanced_forecast(simulated_company, june_range, metric=metric, periods=2)

        expected_points = len(engine.forecast_engine.metric_series(simulated_company, metric, june_range.end_date))
        assert result.data_points_used == expected_points
        assert len(result.forecasted_values) == 2

    def test_explicit_holt_winters(self, engine, simulated_company, june_range):
        result = engine.generate_enhanced_forecast(
            simulated_company, june_range, method=ForecastMethod.HOLT_WINTERS)

        assert result.method_used.startswith("Holt-Winters")

    def test_short_range_end_limits_history(self, engine, simulated_company):
        date_range = AnalysisDateRange(date(2022, 1, 1), date(2022, 6, 30))

        result = engine.generate_enhanced_forecast(simulated_company, date_range)

        assert result.data_points_used < 24
        assert result.method_used != "Combined (SSA + Holt-Winters)"

    def test_profit_forecast_keeps_losses(self, engine, june_range, make_sale, make_purchase):
        months = [date(2022 + (i // 12), i % 12 + 1, 10) for i in range(30)]
        company = CompanyData(
            sales=[make_sale(day, 1000) for day in months],
            purchases=[make_purchase(day, 3000) for day in months],
        )

        auto = engine.generate_enhanced_forecast(company, june_range, metric=ForecastMetric.PROFIT, periods=2)
        holt_winters = engine.generate_enhanced_forecast(
            company, june_range, metric=ForecastMetric.PROFIT, method=ForecastMethod.HOLT_WINTERS)

        assert auto.method_used == "Combined (SSA + Holt-Winters)"
        assert auto.data_points_used == 30
        assert all(v < 0 for v in auto.forecasted_values)
        for low, value, high in zip(auto.lower_bounds, auto.forecasted_values, auto.upper_bounds):
            assert low <= value <= high
        assert holt_winters.forecasted_value < 0
