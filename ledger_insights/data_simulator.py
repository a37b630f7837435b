"""
Ledger Data Simulator
=====================
Generates a synthetic company ledger for tests and demos.
Includes weekday and yearly seasonality, growth trend, noise,
occasional outliers, returns and ageing invoices.

Output is fully determined by the seed and the end date.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

import numpy as np
import pandas as pd

from .domain import (
    CompanyData, Customer, InventoryItem, Invoice, InvoiceStatus, LineItem,
    Product, Purchase, Return, ReturnItem, Sale, Supplier,
)
from .stats_utils import subtract_months, to_money

# (name, unit price, unit cost)
PRODUCT_CATALOG = [
    ("Espresso Machine", 450.0, 260.0),
    ("Coffee Grinder", 120.0, 70.0),
    ("Milk Frother", 45.0, 18.0),
    ("Filter Papers", 8.0, 3.5),
    ("Descaling Kit", 25.0, 9.0),
    ("Travel Mug", 22.0, 12.0),
    ("Barista Course", 180.0, 40.0),
    ("Service Plan", 95.0, 55.0),
]

SUPPLIER_NAMES = ["Northwind Traders", "Contoso Supply", "Fabrikam Parts", "Tailspin Logistics"]

# Relative spend share per supplier
SUPPLIER_WEIGHTS = [0.45, 0.30, 0.15, 0.10]


class LedgerSimulator:
    """
    Simulates a small retail business ledger.

    Generates daily sales with:
    - Weekday pattern (quiet weekends)
    - Yearly seasonality peaking in late autumn
    - Compound growth trend
    - Random noise and rare outliers
    and weekly purchases, returns, invoices and stock levels.
    """

    def __init__(
        self,
        end_date: date,
        months: int = 24,
        base_daily_sales: float = 4.0,
        base_weekly_purchases: float = 3.0,
        customer_count: int = 20,
        annual_growth_rate: float = 0.08,
        return_probability: float = 0.03,
        random_seed: int = 42
    ):
        """
        Initialize the simulator.

        Args:
            end_date: Last simulated day
            months: Length of history to simulate
            base_daily_sales: Average number of sales on a weekday
            base_weekly_purchases: Average number of purchases per week
            customer_count: Size of the customer base
            annual_growth_rate: Annual growth rate (0.08 = 8%)
            return_probability: Chance that a sale is returned
            random_seed: Random seed for reproducibility
        """
        self.end_date = end_date
        self.start_date = subtract_months(end_date, months)
        self.base_daily_sales = base_daily_sales
        self.base_weekly_purchases = base_weekly_purchases
        self.customer_count = customer_count
        self.annual_growth_rate = annual_growth_rate
        self.return_probability = return_probability
        self.rng = np.random.RandomState(random_seed)

        self.dates = pd.date_range(start=self.start_date, end=self.end_date, freq='D')

    # =========================================================================
    # MASTER DATA
    # =========================================================================

    def generate_products(self) -> List[Product]:
        return [Product(id=f"P{i + 1:03d}", name=name, cost_price=to_money(cost))
                for i, (name, _, cost) in enumerate(PRODUCT_CATALOG)]

    def generate_customers(self) -> List[Customer]:
        return [Customer(id=f"C{i + 1:03d}", name=f"Customer {i + 1}")
                for i in range(self.customer_count)]

    def generate_suppliers(self) -> List[Supplier]:
        return [Supplier(id=f"S{i + 1:03d}", name=name) for i, name in enumerate(SUPPLIER_NAMES)]

    # =========================================================================
    # PATTERN COMPONENTS
    # =========================================================================

    def _seasonality(self, dates: pd.DatetimeIndex) -> np.ndarray:
        """Multiplier for weekday and yearly effects."""
        weekly = np.where(dates.dayofweek < 5, 1.0, 0.4)
        yearly = 1.0 + 0.2 * np.sin(2 * np.pi * (dates.dayofyear - 220) / 365)
        return weekly * yearly

    def _trend(self, n: int) -> np.ndarray:
        daily_growth = (1 + self.annual_growth_rate) ** (1 / 365) - 1
        return np.cumprod(1 + np.full(n, daily_growth))

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def generate_sales(self, customers: List[Customer]) -> List[Sale]:
        """Daily sales, each with one or two line items."""
        rates = self.base_daily_sales * self._seasonality(self.dates) * self._trend(len(self.dates))
        counts = self.rng.poisson(rates)

        # Earlier customers buy more often
        weights = 1.0 / np.arange(1, len(customers) + 1)
        weights = weights / weights.sum()

        sales = []
        for day, count in zip(self.dates, counts):
            for _ in range(count):
                customer = customers[self.rng.choice(len(customers), p=weights)]
                line_items = self._line_items()
                amount = sum((item.amount for item in line_items), Decimal("0"))
                if self.rng.random_sample() < 0.005:
                    amount = to_money(float(amount) * self.rng.choice([3.0, 5.0]))
                sales.append(Sale(
                    id=f"SAL{len(sales) + 1:06d}",
                    date=day.date(),
                    effective_amount_usd=amount,
                    customer_id=customer.id,
                    line_items=line_items,
                ))
        return sales

    def _line_items(self) -> tuple:
        items = []
        for index in self.rng.choice(len(PRODUCT_CATALOG), size=self.rng.randint(1, 3), replace=False):
            _, price, _ = PRODUCT_CATALOG[index]
            quantity = int(self.rng.randint(1, 4))
            noise = 1.0 + self.rng.normal(0, 0.05)
            items.append(LineItem(
                product_id=f"P{index + 1:03d}",
                quantity=Decimal(quantity),
                amount=to_money(price * quantity * noise),
            ))
        return tuple(items)

    def generate_purchases(self, suppliers: List[Supplier]) -> List[Purchase]:
        """Stock and overhead purchases, spread across the week."""
        weekly_rate = self.base_weekly_purchases * self._trend(len(self.dates))[::7]
        purchases = []
        for week_start, rate in zip(self.dates[::7], weekly_rate):
            for _ in range(self.rng.poisson(rate)):
                day = week_start + pd.Timedelta(days=int(self.rng.randint(0, 7)))
                if day > pd.Timestamp(self.end_date):
                    continue
                supplier = suppliers[self.rng.choice(len(suppliers), p=SUPPLIER_WEIGHTS)]
                amount = max(50.0, self.rng.normal(900, 250))
                purchases.append(Purchase(
                    id=f"PUR{len(purchases) + 1:06d}",
                    date=day.date(),
                    effective_amount_usd=to_money(amount),
                    supplier_id=supplier.id,
                ))
        purchases.sort(key=lambda p: p.date)
        return purchases

    def generate_returns(self, sales: List[Sale]) -> List[Return]:
        returns = []
        for sale in sales:
            if self.rng.random_sample() >= self.return_probability or not sale.line_items:
                continue
            item = sale.line_items[0]
            returns.append(Return(
                id=f"RET{len(returns) + 1:06d}",
                return_date=sale.date + timedelta(days=int(self.rng.randint(1, 10))),
                items=(ReturnItem(product_id=item.product_id, quantity=Decimal("1")),),
            ))
        return [r for r in returns if r.return_date <= self.end_date]

    def generate_invoices(self, sales: List[Sale]) -> List[Invoice]:
        """Net-30 invoices for the last 90 days of sales; older ones are mostly paid."""
        cutoff = self.end_date - timedelta(days=90)
        invoices = []
        for sale in sales:
            if sale.date < cutoff or self.rng.random_sample() > 0.3:
                continue
            due_date = sale.date + timedelta(days=30)
            paid = due_date < self.end_date and self.rng.random_sample() < 0.7
            invoices.append(Invoice(
                id=f"INV{len(invoices) + 1:06d}",
                customer_id=sale.customer_id,
                issue_date=sale.date,
                due_date=due_date,
                balance_usd=Decimal("0") if paid else sale.effective_amount_usd,
                status=InvoiceStatus.PAID if paid else InvoiceStatus.SENT,
            ))
        return invoices

    def generate_inventory(self, products: List[Product]) -> List[InventoryItem]:
        return [InventoryItem(product_id=p.id, in_stock=Decimal(int(self.rng.randint(0, 120))))
                for p in products]

    # =========================================================================
    # ASSEMBLY
    # =========================================================================

    def generate_company_data(self, company_id: str = "demo-company") -> CompanyData:
        """
        Generate the complete ledger.

        Returns:
            CompanyData snapshot
        """
        products = self.generate_products()
        customers = self.generate_customers()
        suppliers = self.generate_suppliers()
        sales = self.generate_sales(customers)

        return CompanyData(
            company_id=company_id,
            sales=sales,
            purchases=self.generate_purchases(suppliers),
            returns=self.generate_returns(sales),
            invoices=self.generate_invoices(sales),
            products=products,
            customers=customers,
            suppliers=suppliers,
            inventory=self.generate_inventory(products),
        )


def daily_summary(company: CompanyData) -> pd.DataFrame:
    """
    Daily revenue, expenses and net flow as a DataFrame.

    Args:
        company: Ledger snapshot

    Returns:
        DataFrame with columns date, revenue, expenses, net, one row per active day
    """
    records = [{"date": s.date, "flow": "revenue", "amount": float(s.effective_amount_usd)}
               for s in company.sales]
    records += [{"date": p.date, "flow": "expenses", "amount": float(p.effective_amount_usd)}
                for p in company.purchases]
    if not records:
        return pd.DataFrame(columns=["date", "revenue", "expenses", "net"])

    df = pd.DataFrame(records)
    daily = df.pivot_table(index="date", columns="flow", values="amount",
                           aggfunc="sum", fill_value=0.0)
    daily = daily.reindex(columns=["revenue", "expenses"], fill_value=0.0).reset_index()
    daily.columns.name = None
    daily["net"] = daily["revenue"] - daily["expenses"]
    return daily.sort_values("date").reset_index(drop=True)


def generate_sample_company(end_date: date, months: int = 24, random_seed: int = 42,
                            company_id: Optional[str] = None) -> CompanyData:
    """
    Convenience function to generate a sample ledger.

    Args:
        end_date: Last simulated day
        months: Length of history
        random_seed: Random seed for reproducibility
    """
    simulator = LedgerSimulator(end_date=end_date, months=months, random_seed=random_seed)
    return simulator.generate_company_data(company_id or "demo-company")

