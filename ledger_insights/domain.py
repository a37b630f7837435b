"""
Ledger Domain
=============
Read-only ledger records consumed by the insights engine:
- Sales, purchases, returns and invoices
- Products, customers, suppliers and inventory
- CompanyData snapshot with optional lookups
- AnalysisDateRange

Monetary amounts arrive already normalised to the reporting currency.
"""

from collections import abc
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from .exceptions import InvalidDateRangeError, InvalidInputError


# =============================================================================
# TRANSACTIONS
# =============================================================================

@dataclass(frozen=True)
class LineItem:
    """One product line on a sale or purchase."""
    product_id: Optional[str]
    quantity: Decimal
    amount: Decimal


@dataclass(frozen=True)
class Sale:
    id: str
    date: date
    effective_amount_usd: Decimal
    customer_id: Optional[str] = None
    line_items: Tuple[LineItem, ...] = ()


@dataclass(frozen=True)
class Purchase:
    id: str
    date: date
    effective_amount_usd: Decimal
    supplier_id: Optional[str] = None
    line_items: Tuple[LineItem, ...] = ()


@dataclass(frozen=True)
class ReturnItem:
    product_id: Optional[str]
    quantity: Decimal = Decimal("1")


@dataclass(frozen=True)
class Return:
    id: str
    return_date: date
    items: Tuple[ReturnItem, ...] = ()


class InvoiceStatus(Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    PARTIAL = "Partial"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class Invoice:
    id: str
    customer_id: Optional[str]
    issue_date: date
    due_date: date
    balance_usd: Decimal
    status: InvoiceStatus = InvoiceStatus.SENT

    def is_overdue(self, as_of: date) -> bool:
        """Open invoice whose due date has passed."""
        if self.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            return False
        return as_of > self.due_date

    def days_overdue(self, as_of: date) -> int:
        return max(0, (as_of - self.due_date).days)


# =============================================================================
# MASTER DATA
# =============================================================================

@dataclass(frozen=True)
class Product:
    id: str
    name: str
    cost_price: Decimal = Decimal("0")


@dataclass(frozen=True)
class Customer:
    id: str
    name: str


@dataclass(frozen=True)
class Supplier:
    id: str
    name: str


@dataclass(frozen=True)
class InventoryItem:
    product_id: str
    in_stock: Decimal


# =============================================================================
# COMPANY SNAPSHOT
# =============================================================================

_COLLECTIONS = ("sales", "purchases", "returns", "invoices", "products",
                "customers", "suppliers", "inventory", "forecast_records")

# numeric fields checked for NaN / infinity, per collection
_AMOUNT_FIELDS = {
    "sales": ("effective_amount_usd",),
    "purchases": ("effective_amount_usd",),
    "invoices": ("balance_usd",),
    "products": ("cost_price",),
    "inventory": ("in_stock",),
}


def _is_finite(value) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, (int, float)):
        return Decimal(value).is_finite()
    return True


def _record_amounts(name: str, record) -> Iterable:
    for attr in _AMOUNT_FIELDS.get(name, ()):
        yield getattr(record, attr, None)
    for item in getattr(record, "line_items", ()):
        yield item.amount
        yield item.quantity


@dataclass(frozen=True)
class CompanyData:
    """
    Immutable snapshot of one company's ledger.

    Collections are stored as tuples; lookups return None for unknown ids so
    callers can omit names rather than fail.
    """
    company_id: str = "company"
    sales: Tuple[Sale, ...] = ()
    purchases: Tuple[Purchase, ...] = ()
    returns: Tuple[Return, ...] = ()
    invoices: Tuple[Invoice, ...] = ()
    products: Tuple[Product, ...] = ()
    customers: Tuple[Customer, ...] = ()
    suppliers: Tuple[Supplier, ...] = ()
    inventory: Tuple[InventoryItem, ...] = ()
    forecast_records: Tuple = ()
    _product_index: Dict[str, Product] = field(default=None, init=False, repr=False, compare=False)
    _customer_index: Dict[str, Customer] = field(default=None, init=False, repr=False, compare=False)
    _supplier_index: Dict[str, Supplier] = field(default=None, init=False, repr=False, compare=False)
    _inventory_index: Dict[str, InventoryItem] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        for name in _COLLECTIONS:
            value = getattr(self, name)
            if value is None:
                raise InvalidInputError(name, "collection must not be None")
            if isinstance(value, (str, bytes)) or not isinstance(value, abc.Iterable):
                raise InvalidInputError(name, f"expected a collection, got {type(value).__name__}")
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

        for name in _AMOUNT_FIELDS:
            for record in getattr(self, name):
                if not all(_is_finite(v) for v in _record_amounts(name, record)):
                    raise InvalidInputError(name, "amounts must be finite")

        object.__setattr__(self, "_product_index", {p.id: p for p in self.products})
        object.__setattr__(self, "_customer_index", {c.id: c for c in self.customers})
        object.__setattr__(self, "_supplier_index", {s.id: s for s in self.suppliers})
        object.__setattr__(self, "_inventory_index", {i.product_id: i for i in self.inventory})

    def get_product(self, product_id: Optional[str]) -> Optional[Product]:
        if product_id is None:
            return None
        return self._product_index.get(product_id)

    def get_customer(self, customer_id: Optional[str]) -> Optional[Customer]:
        if customer_id is None:
            return None
        return self._customer_index.get(customer_id)

    def get_supplier(self, supplier_id: Optional[str]) -> Optional[Supplier]:
        if supplier_id is None:
            return None
        return self._supplier_index.get(supplier_id)

    def get_inventory(self, product_id: str) -> Optional[InventoryItem]:
        return self._inventory_index.get(product_id)

    def with_forecast_records(self, records: Iterable) -> "CompanyData":
        """Copy of this snapshot carrying a new set of forecast records."""
        return CompanyData(
            company_id=self.company_id,
            sales=self.sales,
            purchases=self.purchases,
            returns=self.returns,
            invoices=self.invoices,
            products=self.products,
            customers=self.customers,
            suppliers=self.suppliers,
            inventory=self.inventory,
            forecast_records=tuple(records),
        )


# =============================================================================
# DATE RANGE
# =============================================================================

@dataclass(frozen=True)
class AnalysisDateRange:
    """Inclusive analysis window."""
    start_date: date
    end_date: date

    def __post_init__(self):
        if not isinstance(self.start_date, date) or not isinstance(self.end_date, date):
            raise InvalidInputError("date_range", "start_date and end_date must be dates")
        if self.start_date > self.end_date:
            raise InvalidDateRangeError(self.start_date, self.end_date)

    @property
    def day_count(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def previous_period(self) -> "AnalysisDateRange":
        """Window of equal length ending the day before this one starts."""
        previous_end = self.start_date - timedelta(days=1)
        return AnalysisDateRange(previous_end - timedelta(days=self.day_count - 1), previous_end)

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date
