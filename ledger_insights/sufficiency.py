"""
Data Sufficiency
================
Gate that decides whether a date range holds enough activity to analyse.
"""

from dataclasses import dataclass
from typing import Optional

from .config import SUFFICIENCY, SufficiencyThresholds
from .domain import AnalysisDateRange, CompanyData
from .stats_utils import months_spanned


@dataclass
class SufficiencyResult:
    """Container for the sufficiency check."""
    has_sufficient_data: bool
    message: Optional[str]
    months_of_data: int
    transaction_count: int


class DataSufficiencyChecker:
    """Counts in-range sales and purchases against the minimum."""

    def __init__(self, thresholds: SufficiencyThresholds = SUFFICIENCY):
        self.thresholds = thresholds

    def check(self, company: CompanyData, date_range: AnalysisDateRange) -> SufficiencyResult:
        dates = [s.date for s in company.sales if date_range.contains(s.date)]
        dates += [p.date for p in company.purchases if date_range.contains(p.date)]
        count = len(dates)

        minimum = self.thresholds.min_transactions
        if count < minimum:
            return SufficiencyResult(
                has_sufficient_data=False,
                message=(f"Need at least {minimum} transactions for meaningful insights. "
                         f"Currently have {count} ({minimum - count} more needed)."),
                months_of_data=0,
                transaction_count=count,
            )

        return SufficiencyResult(
            has_sufficient_data=True,
            message=None,
            months_of_data=months_spanned(min(dates), max(dates)),
            transaction_count=count,
        )
