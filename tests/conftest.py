"""
Pytest fixtures for the ledger insights test suite.

Provides:
- A fixed clock and the June 2024 analysis range used by most tests
- Factories for hand-built sales, purchases and returns
- A simulator-built ledger with three years of history
"""

import itertools
from datetime import date
from decimal import Decimal

import pytest

from ledger_insights.clock import FixedClock
from ledger_insights.data_simulator import generate_sample_company
from ledger_insights.domain import AnalysisDateRange, LineItem, Purchase, Return, ReturnItem, Sale
from ledger_insights.insights import InsightsEngine
from ledger_insights.logging_config import reset_logging

AS_OF = date(2024, 6, 30)


@pytest.fixture(autouse=True)
def _reset_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock.on(AS_OF)


@pytest.fixture
def june_range() -> AnalysisDateRange:
    return AnalysisDateRange(date(2024, 6, 1), date(2024, 6, 30))


@pytest.fixture
def engine(clock):
    with InsightsEngine(clock=clock) as insights_engine:
        yield insights_engine


@pytest.fixture
def make_sale():
    """Factory for sales with sequential ids."""
    counter = itertools.count(1)

    def _make(day, amount, customer_id=None, line_items=()):
        return Sale(
            id=f"SAL{next(counter):04d}",
            date=day,
            effective_amount_usd=Decimal(str(amount)),
            customer_id=customer_id,
            line_items=tuple(line_items),
        )

    return _make


@pytest.fixture
def make_purchase():
    """Factory for purchases with sequential ids."""
    counter = itertools.count(1)

    def _make(day, amount, supplier_id=None):
        return Purchase(
            id=f"PUR{next(counter):04d}",
            date=day,
            effective_amount_usd=Decimal(str(amount)),
            supplier_id=supplier_id,
        )

    return _make


@pytest.fixture
def make_return():
    counter = itertools.count(1)

    def _make(day, product_id=None):
        items = (ReturnItem(product_id=product_id),) if product_id else ()
        return Return(id=f"RET{next(counter):04d}", return_date=day, items=items)

    return _make


@pytest.fixture
def line():
    """Factory for a single line item."""

    def _make(product_id, quantity, amount):
        return LineItem(product_id=product_id, quantity=Decimal(str(quantity)), amount=Decimal(str(amount)))

    return _make


@pytest.fixture(scope="session")
def simulated_company():
    """Three years of synthetic history ending on the reference date."""
    return generate_sample_company(end_date=AS_OF, months=36, random_seed=7)
