"""
Typed exceptions for the insights engine.

Insufficient data is never an exception; it is reported through
``InsightsData.has_sufficient_data``. These types cover contract violations
(bad input), cancellation, and internal forecasting failures that the engine
catches before they reach a caller.

    LedgerInsightsError (base)
    |
    +-- InvalidInputError
    |   +-- InvalidDateRangeError
    |
    +-- AnalysisCancelledError
    |
    +-- ForecastMethodError
"""

from typing import Optional


class LedgerInsightsError(Exception):
    """Base class for all insights engine errors."""

    code: str = "LEDGER_INSIGHTS_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInputError(LedgerInsightsError):
    """Input violates the engine contract (e.g. a missing collection)."""

    code = "INVALID_INPUT"

    def __init__(self, field_name: str, reason: str):
        self.field_name = field_name
        self.reason = reason
        super().__init__(f"Invalid input '{field_name}': {reason}")


class InvalidDateRangeError(InvalidInputError):
    """Analysis range starts after it ends."""

    code = "INVALID_DATE_RANGE"

    def __init__(self, start_date, end_date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            "date_range",
            f"start_date {start_date} is after end_date {end_date}",
        )


class AnalysisCancelledError(LedgerInsightsError):
    """Caller requested cancellation before a sub-analysis started."""

    code = "ANALYSIS_CANCELLED"

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Analysis cancelled before '{stage}'")


class ForecastMethodError(LedgerInsightsError):
    """A single forecasting method could not produce a result."""

    code = "FORECAST_METHOD_FAILED"

    def __init__(self, method: str, reason: str, data_points: Optional[int] = None):
        self.method = method
        self.reason = reason
        self.data_points = data_points
        super().__init__(f"{method} forecast failed: {reason}")
