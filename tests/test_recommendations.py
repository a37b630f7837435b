"""
Tests for RecommendationEngine.

Covers:
- Top product by margin
- Inactive repeat customers
- Overdue invoices and their severity
- Supplier and customer concentration
- Profit margin bands
- Rule ordering in generate_all_recommendations
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_insights.config import RecommendationThresholds
from ledger_insights.domain import CompanyData, Customer, Invoice, InvoiceStatus, Product, Supplier
from ledger_insights.insight_types import InsightCategory, Severity
from ledger_insights.recommendations import RecommendationEngine


def invoice(invoice_id, due, balance, status=InvoiceStatus.SENT):
    return Invoice(id=invoice_id, customer_id="C1", issue_date=date(2024, 1, 1), due_date=due,
                   balance_usd=Decimal(str(balance)), status=status)


@pytest.fixture
def products():
    return [
        Product(id="P1", name="Widget", cost_price=Decimal("20")),
        Product(id="P2", name="Gadget", cost_price=Decimal("25")),
        Product(id="P3", name="Freebie"),
    ]


class TestTopProduct:
    """Tests for analyze_top_products."""

    def test_highest_margin_wins(self, make_sale, line, products, june_range):
        sales = [
            make_sale(date(2024, 6, 5), 500, line_items=[line("P1", 10, 500)]),
            make_sale(date(2024, 6, 6), 1200, line_items=[line("P2", 10, 300), line("P3", 10, 900)]),
        ]
        company = CompanyData(sales=sales, products=products)

        item = RecommendationEngine().analyze_top_products(company, june_range)

        assert item.title == "Top Performing Product"
        assert item.category is InsightCategory.PRODUCT
        assert item.description == ("\"Widget\" has the highest profit margin at 60%. "
                                    "Revenue this period: $500.")
        assert item.metric_value == Decimal("500")

    def test_products_without_cost_are_skipped(self, make_sale, line, products, june_range):
        sales = [make_sale(date(2024, 6, 5), 900, line_items=[line("P3", 10, 900)])]

        assert RecommendationEngine().analyze_top_products(
            CompanyData(sales=sales, products=products), june_range) is None

    def test_unknown_product_is_skipped(self, make_sale, line, june_range):
        sales = [make_sale(date(2024, 6, 5), 900, line_items=[line("P404", 10, 900)])]

        assert RecommendationEngine().analyze_top_products(CompanyData(sales=sales), june_range) is None


class TestInactiveCustomers:
    """Tests for analyze_inactive_customers."""

    def test_counts_lapsed_repeat_customers(self, make_sale, june_range):
        company = CompanyData(sales=[
            make_sale(date(2024, 3, 1), 100, customer_id="C1"),
            make_sale(date(2024, 3, 10), 100, customer_id="C1"),
            make_sale(date(2024, 3, 5), 100, customer_id="C2"),
            make_sale(date(2024, 2, 1), 100, customer_id="C3"),
            make_sale(date(2024, 6, 20), 100, customer_id="C3"),
            make_sale(date(2024, 1, 1), 100),
            make_sale(date(2024, 1, 2), 100),
        ])

        item = RecommendationEngine().analyze_inactive_customers(company, june_range)

        assert item.title == "Customer Retention Opportunity"
        assert item.description == "1 previously active customer(s) haven't made a purchase in over 60 days."
        assert item.metric_value == Decimal("1")

    def test_recent_customers_are_active(self, make_sale, june_range):
        company = CompanyData(sales=[make_sale(date(2024, 5, 1), 100, customer_id="C1")] * 3)

        assert RecommendationEngine().analyze_inactive_customers(company, june_range) is None


class TestOverdueInvoices:
    """Tests for analyze_overdue_invoices."""

    def test_old_invoice_is_a_warning(self, as_of):
        company = CompanyData(invoices=[
            invoice("INV1", date(2024, 5, 1), 1000),
            invoice("INV2", date(2024, 6, 20), 500, InvoiceStatus.PARTIAL),
            invoice("INV3", date(2024, 4, 1), 800, InvoiceStatus.PAID),
            invoice("INV4", date(2024, 7, 15), 300),
        ])

        item = RecommendationEngine().analyze_overdue_invoices(company, as_of)

        assert item.title == "Payment Collection Needed"
        assert item.category is InsightCategory.PAYMENT
        assert item.severity is Severity.WARNING
        assert item.description == "2 invoice(s) totaling $1,500 are overdue. Oldest is 60 days past due."

    def test_recently_overdue_is_info(self, as_of):
        company = CompanyData(invoices=[invoice("INV1", date(2024, 6, 20), 500)])

        item = RecommendationEngine().analyze_overdue_invoices(company, as_of)

        assert item.severity is Severity.INFO

    def test_settled_balances_are_ignored(self, as_of):
        company = CompanyData(invoices=[invoice("INV1", date(2024, 5, 1), 0)])

        assert RecommendationEngine().analyze_overdue_invoices(company, as_of) is None


class TestSupplierConcentration:
    """Tests for analyze_supplier_concentration."""

    def test_dominant_supplier_is_named(self, make_purchase, june_range):
        company = CompanyData(
            purchases=[make_purchase(date(2024, 6, 3), 700, "S1"), make_purchase(date(2024, 6, 4), 300, "S2")],
            suppliers=[Supplier(id="S1", name="Acme Supply")],
        )

        item = RecommendationEngine().analyze_supplier_concentration(company, june_range)

        assert item.title == "Supplier Concentration Risk"
        assert item.description == "70% of your purchases ($700) are from Acme Supply."
        assert item.percentage_change == Decimal("70")

    def test_unknown_supplier_is_still_reported(self, make_purchase, june_range):
        company = CompanyData(purchases=[make_purchase(date(2024, 6, 3), 700, "S9"),
                                         make_purchase(date(2024, 6, 4), 300, "S2")])

        item = RecommendationEngine().analyze_supplier_concentration(company, june_range)

        assert item.description.endswith("are from a single supplier.")

    def test_sixty_percent_is_not_concentrated(self, make_purchase, june_range):
        company = CompanyData(purchases=[make_purchase(date(2024, 6, 3), 600, "S1"),
                                         make_purchase(date(2024, 6, 4), 400, "S2")])

        assert RecommendationEngine().analyze_supplier_concentration(company, june_range) is None

    def test_single_supplier_is_ignored(self, make_purchase, june_range):
        company = CompanyData(purchases=[make_purchase(date(2024, 6, 3), 600, "S1")])

        assert RecommendationEngine().analyze_supplier_concentration(company, june_range) is None


class TestCustomerConcentration:
    """Tests for analyze_customer_concentration."""

    def test_dominant_customer_is_named(self, make_sale, june_range):
        company = CompanyData(
            sales=[make_sale(date(2024, 6, 3), 500, "C1"), make_sale(date(2024, 6, 4), 300, "C2"),
                   make_sale(date(2024, 6, 5), 200, "C3")],
            customers=[Customer(id="C1", name="Acme Corp")],
        )

        item = RecommendationEngine().analyze_customer_concentration(company, june_range)

        assert item.title == "Revenue Concentration Risk"
        assert item.severity is Severity.WARNING
        assert item.description == ("50% of revenue comes from Acme Corp. "
                                    "This creates business risk if that relationship changes.")

    def test_unknown_customer_is_generic(self, make_sale, june_range):
        company = CompanyData(sales=[make_sale(date(2024, 6, 3), 500, "C1"), make_sale(date(2024, 6, 4), 300, "C2"),
                                     make_sale(date(2024, 6, 5), 200, "C3")])

        item = RecommendationEngine().analyze_customer_concentration(company, june_range)

        assert "comes from your top customer." in item.description

    def test_forty_percent_is_not_concentrated(self, make_sale, june_range):
        company = CompanyData(sales=[make_sale(date(2024, 6, 3), 400, "C1"), make_sale(date(2024, 6, 4), 300, "C2"),
                                     make_sale(date(2024, 6, 5), 300, "C3")])

        assert RecommendationEngine().analyze_customer_concentration(company, june_range) is None

    def test_needs_three_customers(self, make_sale, june_range):
        company = CompanyData(sales=[make_sale(date(2024, 6, 3), 900, "C1"), make_sale(date(2024, 6, 4), 100, "C2")])

        assert RecommendationEngine().analyze_customer_concentration(company, june_range) is None


class TestProfitMargin:
    """Tests for analyze_profit_margin."""

    def test_low_margin(self, make_sale, make_purchase, june_range):
        company = CompanyData(sales=[make_sale(date(2024, 6, 3), 1000)],
                              purchases=[make_purchase(date(2024, 6, 4), 950)])

        item = RecommendationEngine().analyze_profit_margin(company, june_range)

        assert item.title == "Low Profit Margin Alert"
        assert item.severity is Severity.WARNING
        assert item.description.startswith("Your current profit margin is 5.0%.")

    def test_strong_margin(self, make_sale, make_purchase, june_range):
        company = CompanyData(sales=[make_sale(date(2024, 6, 3), 1000)],
                              purchases=[make_purchase(date(2024, 6, 4), 500)])

        item = RecommendationEngine().analyze_profit_margin(company, june_range)

        assert item.title == "Strong Profit Margins"
        assert item.severity is Severity.SUCCESS
        assert "50.0%" in item.description

    def test_middle_band_is_quiet(self, make_sale, make_purchase, june_range):
        company = CompanyData(sales=[make_sale(date(2024, 6, 3), 1000)],
                              purchases=[make_purchase(date(2024, 6, 4), 800)])

        assert RecommendationEngine().analyze_profit_margin(company, june_range) is None

    def test_no_revenue_is_quiet(self, make_purchase, june_range):
        company = CompanyData(purchases=[make_purchase(date(2024, 6, 4), 800)])

        assert RecommendationEngine().analyze_profit_margin(company, june_range) is None

    def test_custom_thresholds(self, make_sale, make_purchase, june_range):
        engine = RecommendationEngine(RecommendationThresholds(strong_margin_pct=15.0))
        company = CompanyData(sales=[make_sale(date(2024, 6, 3), 1000)],
                              purchases=[make_purchase(date(2024, 6, 4), 800)])

        assert engine.analyze_profit_margin(company, june_range).title == "Strong Profit Margins"


class TestGenerateAll:
    """Tests for rule ordering."""

    def test_rules_run_in_order(self, make_sale, make_purchase, line, products, june_range, as_of):
        company = CompanyData(
            sales=[
                make_sale(date(2024, 6, 3), 500, "C1", [line("P1", 10, 500)]),
                make_sale(date(2024, 6, 4), 300, "C2"),
                make_sale(date(2024, 6, 5), 200, "C3"),
                make_sale(date(2024, 2, 1), 100, "C4"),
                make_sale(date(2024, 2, 2), 100, "C4"),
            ],
            purchases=[make_purchase(date(2024, 6, 3), 700, "S1"), make_purchase(date(2024, 6, 4), 300, "S2")],
            invoices=[invoice("INV1", date(2024, 5, 1), 1000)],
            products=products,
        )

        titles = [item.title for item in RecommendationEngine().generate_all_recommendations(
            company, june_range, as_of)]

        assert titles == [
            "Top Performing Product",
            "Customer Retention Opportunity",
            "Payment Collection Needed",
            "Supplier Concentration Risk",
            "Revenue Concentration Risk",
            "Low Profit Margin Alert",
        ]
