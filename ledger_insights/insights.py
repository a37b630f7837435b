"""
Insights Engine
===============
Entry point that runs the full analysis pipeline:
1. Data sufficiency gate
2. Trend analysis
3. Anomaly detection
4. Forecasts and forecast insights
5. Recommendations
6. Summary counts

Every entry point can be called synchronously or submitted to a worker pool
(``submit_*``), which returns a ``concurrent.futures.Future``.
"""

import threading
import uuid
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date
from typing import List, Optional

from .analysis import AnomalyDetector, TrendAnalyzer
from .clock import Clock, SystemClock
from .domain import AnalysisDateRange, CompanyData
from .exceptions import AnalysisCancelledError, InvalidInputError
from .forecast import ForecastEngine, ForecastMetric
from .insight_types import ForecastData, InsightItem, InsightsData, InsightsSummary
from .logging_config import LogContext, get_logger
from .models import ForecastMethod, ForecastResult
from .recommendations import RecommendationEngine
from .sufficiency import DataSufficiencyChecker

logger = get_logger("insights")


def _validate(company: CompanyData, date_range: AnalysisDateRange) -> None:
    if company is None:
        raise InvalidInputError("company_data", "must not be None")
    if not isinstance(company, CompanyData):
        raise InvalidInputError("company_data", f"expected CompanyData, got {type(company).__name__}")
    if date_range is None:
        raise InvalidInputError("date_range", "must not be None")
    if not isinstance(date_range, AnalysisDateRange):
        raise InvalidInputError("date_range", f"expected AnalysisDateRange, got {type(date_range).__name__}")


def _check_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info("analysis_cancelled", extra={"stage": stage})
        raise AnalysisCancelledError(stage)


class InsightsEngine:
    """
    Orchestrates sufficiency, trends, anomalies, forecasts and recommendations.

    The engine holds no per-request state; "now" is read from the injected
    clock once per call and passed down as ``as_of``.
    """

    def __init__(self, clock: Optional[Clock] = None,
                 sufficiency_checker: Optional[DataSufficiencyChecker] = None,
                 trend_analyzer: Optional[TrendAnalyzer] = None,
                 anomaly_detector: Optional[AnomalyDetector] = None,
                 forecast_engine: Optional[ForecastEngine] = None,
                 recommendation_engine: Optional[RecommendationEngine] = None,
                 max_workers: Optional[int] = None):
        """
        Initialize the insights engine.

        Args:
            clock: Time source (defaults to the system clock)
            sufficiency_checker: Minimum-data gate
            trend_analyzer: Trend analysis component
            anomaly_detector: Anomaly detection component
            forecast_engine: Forecasting component
            recommendation_engine: Recommendation component
            max_workers: Worker pool size for ``submit_*``
        """
        self.clock = clock or SystemClock()
        self.sufficiency_checker = sufficiency_checker or DataSufficiencyChecker()
        self.trend_analyzer = trend_analyzer or TrendAnalyzer()
        self.anomaly_detector = anomaly_detector or AnomalyDetector()
        self.forecast_engine = forecast_engine or ForecastEngine()
        self.recommendation_engine = recommendation_engine or RecommendationEngine()
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    # =========================================================================
    # SYNCHRONOUS ENTRY POINTS
    # =========================================================================

    def generate_insights(self, company: CompanyData, date_range: AnalysisDateRange,
                          cancel_event: Optional[threading.Event] = None) -> InsightsData:
        """
        Run the complete pipeline.

        Args:
            company: Ledger snapshot
            date_range: Current analysis period
            cancel_event: Set to stop before the next sub-analysis

        Returns:
            InsightsData; when data is insufficient only the flag and message are set
        """
        _validate(company, date_range)
        with LogContext.bind(analysis_id=uuid.uuid4().hex[:12], company_id=company.company_id,
                             operation="generate_insights"):
            _check_cancelled(cancel_event, "sufficiency")
            generated_at = self.clock.now()
            as_of = generated_at.date()

            sufficiency = self.sufficiency_checker.check(company, date_range)
            if not sufficiency.has_sufficient_data:
                logger.info("insufficient_data", extra={
                    "transaction_count": sufficiency.transaction_count,
                    "start_date": date_range.start_date,
                    "end_date": date_range.end_date,
                })
                return InsightsData(
                    generated_at=generated_at,
                    has_sufficient_data=False,
                    insufficient_data_message=sufficiency.message,
                )

            _check_cancelled(cancel_event, "trends")
            trends = self.trend_analyzer.analyze(company, date_range, as_of)

            _check_cancelled(cancel_event, "anomalies")
            anomalies = self.anomaly_detector.detect(company, date_range)

            _check_cancelled(cancel_event, "forecasts")
            forecast = self.forecast_engine.generate_forecast(company, date_range, as_of)
            forecasts = self.forecast_engine.forecast_insights(company, date_range, as_of, forecast)

            _check_cancelled(cancel_event, "recommendations")
            recommendations = self.recommendation_engine.generate_all_recommendations(
                company, date_range, as_of)

            insights = InsightsData(
                generated_at=generated_at,
                has_sufficient_data=True,
                revenue_trends=trends,
                anomalies=anomalies,
                forecasts=forecasts,
                recommendations=recommendations,
                forecast=forecast,
            )
            insights.summary = self._summarize(insights, sufficiency.months_of_data)

            logger.info("insights_generated", extra={
                "total_insights": insights.summary.total_insights,
                "trends": insights.summary.trends_detected,
                "anomalies": insights.summary.anomalies_detected,
                "forecasts": insights.summary.forecasts_generated,
                "recommendations": insights.summary.opportunities,
                "months_of_data": insights.summary.months_of_data,
            })
            return insights

    def generate_forecast(self, company: CompanyData, date_range: AnalysisDateRange,
                          cancel_event: Optional[threading.Event] = None) -> ForecastData:
        _validate(company, date_range)
        with LogContext.bind(company_id=company.company_id, operation="generate_forecast"):
            _check_cancelled(cancel_event, "forecast")
            return self.forecast_engine.generate_forecast(company, date_range, self._as_of())

    def detect_anomalies(self, company: CompanyData, date_range: AnalysisDateRange,
                         cancel_event: Optional[threading.Event] = None) -> List[InsightItem]:
        _validate(company, date_range)
        with LogContext.bind(company_id=company.company_id, operation="detect_anomalies"):
            _check_cancelled(cancel_event, "anomalies")
            return self.anomaly_detector.detect(company, date_range)

    def analyze_trends(self, company: CompanyData, date_range: AnalysisDateRange,
                       cancel_event: Optional[threading.Event] = None) -> List[InsightItem]:
        _validate(company, date_range)
        with LogContext.bind(company_id=company.company_id, operation="analyze_trends"):
            _check_cancelled(cancel_event, "trends")
            return self.trend_analyzer.analyze(company, date_range, self._as_of())

    def generate_recommendations(self, company: CompanyData, date_range: AnalysisDateRange,
                                 cancel_event: Optional[threading.Event] = None) -> List[InsightItem]:
        _validate(company, date_range)
        with LogContext.bind(company_id=company.company_id, operation="generate_recommendations"):
            _check_cancelled(cancel_event, "recommendations")
            return self.recommendation_engine.generate_all_recommendations(
                company, date_range, self._as_of())

    def generate_enhanced_forecast(self, company: CompanyData, date_range: AnalysisDateRange,
                                   metric: ForecastMetric = ForecastMetric.REVENUE,
                                   periods: int = 1,
                                   method: ForecastMethod = ForecastMethod.AUTO,
                                   cancel_event: Optional[threading.Event] = None) -> ForecastResult:
        """
        Multi-period forecast of one metric with bounds and method selection.

        Args:
            company: Ledger snapshot
            date_range: Monthly history up to ``date_range.end_date`` is used
            metric: Series to forecast
            periods: Number of months ahead
            method: Auto, SSA, HoltWinters or Combined

        Returns:
            ForecastResult
        """
        _validate(company, date_range)
        if not isinstance(periods, int) or isinstance(periods, bool) or periods < 1:
            raise InvalidInputError("periods", "must be a positive integer")
        if not isinstance(metric, ForecastMetric):
            raise InvalidInputError("metric", f"expected ForecastMetric, got {type(metric).__name__}")
        if not isinstance(method, ForecastMethod):
            raise InvalidInputError("method", f"expected ForecastMethod, got {type(method).__name__}")

        with LogContext.bind(company_id=company.company_id, operation="generate_enhanced_forecast"):
            _check_cancelled(cancel_event, "enhanced_forecast")
            return self.forecast_engine.generate_enhanced_forecast(
                company, date_range, self._as_of(), metric, periods, method)

    # =========================================================================
    # WORKER POOL
    # =========================================================================

    def submit_insights(self, company: CompanyData, date_range: AnalysisDateRange,
                        cancel_event: Optional[threading.Event] = None) -> "Future[InsightsData]":
        return self._submit(self.generate_insights, company, date_range, cancel_event)

    def submit_forecast(self, company: CompanyData, date_range: AnalysisDateRange,
                        cancel_event: Optional[threading.Event] = None) -> "Future[ForecastData]":
        return self._submit(self.generate_forecast, company, date_range, cancel_event)

    def submit_anomalies(self, company: CompanyData, date_range: AnalysisDateRange,
                         cancel_event: Optional[threading.Event] = None) -> "Future[List[InsightItem]]":
        return self._submit(self.detect_anomalies, company, date_range, cancel_event)

    def submit_trends(self, company: CompanyData, date_range: AnalysisDateRange,
                      cancel_event: Optional[threading.Event] = None) -> "Future[List[InsightItem]]":
        return self._submit(self.analyze_trends, company, date_range, cancel_event)

    def submit_recommendations(self, company: CompanyData, date_range: AnalysisDateRange,
                               cancel_event: Optional[threading.Event] = None) -> "Future[List[InsightItem]]":
        return self._submit(self.generate_recommendations, company, date_range, cancel_event)

    def submit_enhanced_forecast(self, company: CompanyData, date_range: AnalysisDateRange,
                                 metric: ForecastMetric = ForecastMetric.REVENUE,
                                 periods: int = 1,
                                 method: ForecastMethod = ForecastMethod.AUTO,
                                 cancel_event: Optional[threading.Event] = None) -> "Future[ForecastResult]":
        return self._submit(self.generate_enhanced_forecast, company, date_range,
                            metric, periods, method, cancel_event)

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait)
                self._executor = None

    def __enter__(self) -> "InsightsEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    def _submit(self, fn, *args) -> Future:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self._max_workers,
                                                    thread_name_prefix="ledger-insights")
            return self._executor.submit(fn, *args)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _as_of(self) -> date:
        return self.clock.now().date()

    @staticmethod
    def _summarize(insights: InsightsData, months_of_data: int) -> InsightsSummary:
        items = insights.all_insights()
        return InsightsSummary(
            total_insights=len(items),
            trends_detected=len(insights.revenue_trends),
            anomalies_detected=len(insights.anomalies),
            forecasts_generated=len(insights.forecasts),
            opportunities=len(insights.recommendations),
            months_of_data=months_of_data,
            category_counts=dict(Counter(item.category.value for item in items)),
        )
