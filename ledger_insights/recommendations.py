"""
Recommendations Engine
======================
Translates ledger activity into actionable business recommendations:
- Top performing product by margin
- Customer retention and revenue concentration
- Overdue invoice collection
- Supplier concentration
- Overall profit margin
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from .analysis import purchases_in, sales_in
from .config import RECOMMENDATION_THRESHOLDS, RecommendationThresholds
from .domain import AnalysisDateRange, CompanyData
from .insight_types import InsightCategory, InsightItem, Severity
from .logging_config import get_logger
from .stats_utils import format_currency, group_by, sum_by, sum_decimal

logger = get_logger("recommendations")


class RecommendationEngine:
    """
    Generates recommendations from a company's ledger.
    Each rule is independent and yields at most one insight.
    """

    def __init__(self, thresholds: RecommendationThresholds = RECOMMENDATION_THRESHOLDS):
        """
        Initialize the recommendation engine.

        Args:
            thresholds: Inactivity, concentration and margin thresholds
        """
        self.thresholds = thresholds

    def generate_all_recommendations(self, company: CompanyData, date_range: AnalysisDateRange,
                                     as_of: date) -> List[InsightItem]:
        """
        Generate all recommendations for the analysis range.

        Args:
            company: Ledger snapshot
            date_range: Current analysis period
            as_of: Reference "today" used for invoice ageing

        Returns:
            Recommendations in rule order
        """
        candidates = [
            self.analyze_top_products(company, date_range),
            self.analyze_inactive_customers(company, date_range),
            self.analyze_overdue_invoices(company, as_of),
            self.analyze_supplier_concentration(company, date_range),
            self.analyze_customer_concentration(company, date_range),
            self.analyze_profit_margin(company, date_range),
        ]
        recommendations = [item for item in candidates if item is not None]

        logger.debug("recommendations_generated", extra={"recommendation_count": len(recommendations)})
        return recommendations

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    def analyze_top_products(self, company: CompanyData, date_range: AnalysisDateRange) -> Optional[InsightItem]:
        """Highest-margin product sold in the period, among products with a known cost."""
        items = [item for sale in sales_in(company, date_range) for item in sale.line_items]
        if not items:
            return None

        best_id, best_revenue, best_margin = None, Decimal("0"), None
        for product_id, product_items in group_by(items, lambda i: i.product_id).items():
            product = company.get_product(product_id)
            cost_price = product.cost_price if product is not None else Decimal("0")
            revenue = sum_decimal(i.amount for i in product_items)
            cost = sum_decimal(i.quantity * cost_price for i in product_items)
            if cost <= 0 or revenue <= 0:
                continue

            margin = (revenue - cost) / revenue * 100
            if best_margin is None or margin > best_margin:
                best_id, best_revenue, best_margin = product_id, revenue, margin

        if best_margin is None:
            return None
        product = company.get_product(best_id)
        if product is None:
            return None

        return InsightItem(
            title="Top Performing Product",
            description=(f"\"{product.name}\" has the highest profit margin at {best_margin:.0f}%. "
                         f"Revenue this period: {format_currency(best_revenue)}."),
            recommendation="Consider featuring this product more prominently in marketing or bundling it with other items.",
            severity=Severity.INFO,
            category=InsightCategory.PRODUCT,
            metric_value=best_revenue,
            percentage_change=best_margin,
        )

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    def analyze_inactive_customers(self, company: CompanyData,
                                   date_range: AnalysisDateRange) -> Optional[InsightItem]:
        """Repeat customers whose last purchase is older than the inactivity window."""
        by_customer = group_by((s for s in company.sales if s.customer_id is not None),
                               lambda s: s.customer_id)

        inactive = 0
        for customer_sales in by_customer.values():
            last_purchase = max(s.date for s in customer_sales)
            if (date_range.end_date - last_purchase).days <= self.thresholds.inactivity_days:
                continue
            if len(customer_sales) >= self.thresholds.min_prior_purchases:
                inactive += 1

        if inactive == 0:
            return None

        return InsightItem(
            title="Customer Retention Opportunity",
            description=(f"{inactive} previously active customer(s) haven't made a purchase in over "
                         f"{self.thresholds.inactivity_days} days."),
            recommendation="Consider sending re-engagement emails, special offers, or conducting a satisfaction survey.",
            severity=Severity.INFO,
            category=InsightCategory.CUSTOMER,
            metric_value=Decimal(inactive),
        )

    def analyze_customer_concentration(self, company: CompanyData,
                                       date_range: AnalysisDateRange) -> Optional[InsightItem]:
        revenue = sum_by(group_by(sales_in(company, date_range), lambda s: s.customer_id),
                         lambda s: s.effective_amount_usd)
        if len(revenue) < self.thresholds.min_customers:
            return None

        total = sum_decimal(revenue.values())
        if total == 0:
            return None

        top_id = max(revenue, key=revenue.get)
        share = revenue[top_id] / total * 100
        if share <= Decimal(str(self.thresholds.customer_concentration_pct)):
            return None

        customer = company.get_customer(top_id)
        customer_name = customer.name if customer is not None else "your top customer"
        return InsightItem(
            title="Revenue Concentration Risk",
            description=(f"{share:.0f}% of revenue comes from {customer_name}. "
                         f"This creates business risk if that relationship changes."),
            recommendation="Work on diversifying your customer base through acquisition and marketing efforts.",
            severity=Severity.WARNING,
            category=InsightCategory.CUSTOMER,
            percentage_change=share,
        )

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def analyze_overdue_invoices(self, company: CompanyData, as_of: date) -> Optional[InsightItem]:
        overdue = [i for i in company.invoices if i.is_overdue(as_of) and i.balance_usd > 0]
        if not overdue:
            return None

        total = sum_decimal(i.balance_usd for i in overdue)
        oldest_days = max(i.days_overdue(as_of) for i in overdue)
        return InsightItem(
            title="Payment Collection Needed",
            description=(f"{len(overdue)} invoice(s) totaling {format_currency(total)} are overdue. "
                         f"Oldest is {oldest_days} days past due."),
            recommendation="Send payment reminders and follow up with these customers to improve cash flow.",
            severity=Severity.WARNING if oldest_days > self.thresholds.overdue_warning_days else Severity.INFO,
            category=InsightCategory.PAYMENT,
            metric_value=total,
        )

    # =========================================================================
    # SUPPLIERS AND MARGIN
    # =========================================================================

    def analyze_supplier_concentration(self, company: CompanyData,
                                       date_range: AnalysisDateRange) -> Optional[InsightItem]:
        spend = sum_by(group_by(purchases_in(company, date_range), lambda p: p.supplier_id),
                       lambda p: p.effective_amount_usd)
        if len(spend) < self.thresholds.min_suppliers:
            return None

        total = sum_decimal(spend.values())
        if total <= 0:
            return None

        top_id = max(spend, key=spend.get)
        share = spend[top_id] / total * 100
        if share <= Decimal(str(self.thresholds.supplier_concentration_pct)):
            return None

        supplier = company.get_supplier(top_id)
        source = supplier.name if supplier is not None else "a single supplier"
        return InsightItem(
            title="Supplier Concentration Risk",
            description=(f"{share:.0f}% of your purchases ({format_currency(spend[top_id])}) "
                         f"are from {source}."),
            recommendation="Consider diversifying suppliers to reduce risk and potentially negotiate better terms.",
            severity=Severity.INFO,
            category=InsightCategory.RECOMMENDATION,
            percentage_change=share,
        )

    def analyze_profit_margin(self, company: CompanyData, date_range: AnalysisDateRange) -> Optional[InsightItem]:
        revenue = sum_decimal(s.effective_amount_usd for s in sales_in(company, date_range))
        if revenue == 0:
            return None
        expenses = sum_decimal(p.effective_amount_usd for p in purchases_in(company, date_range))
        margin = (revenue - expenses) / revenue * 100

        if margin < Decimal(str(self.thresholds.low_margin_pct)):
            return InsightItem(
                title="Low Profit Margin Alert",
                description=(f"Your current profit margin is {margin:.1f}%. Industry benchmarks typically "
                             f"suggest 15-20% for healthy businesses."),
                recommendation="Review pricing strategy and look for cost reduction opportunities to improve profitability.",
                severity=Severity.WARNING,
                category=InsightCategory.RECOMMENDATION,
                percentage_change=margin,
            )

        if margin > Decimal(str(self.thresholds.strong_margin_pct)):
            return InsightItem(
                title="Strong Profit Margins",
                description=f"Your profit margin of {margin:.1f}% is excellent. You're maintaining healthy profitability.",
                severity=Severity.SUCCESS,
                category=InsightCategory.RECOMMENDATION,
                percentage_change=margin,
            )

        return None
