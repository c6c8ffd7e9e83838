"""
Statistical Validator
=====================

Keeps an empirically measured accuracy for the recommendation policy:
collects a price series, backtests it, caches the validation result for a
day, and attaches the result to predictions served to users.
"""

import calendar
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from .backtester import Backtester, validate
from ..data.collector import HistoricalDataCollector
from ..data.schemas import (
    ConfidenceInterval,
    ErrorBounds,
    StatisticalConfidence,
    ValidatedPrediction,
    ValidationDataQuality,
    ValidationResult,
    VariantSummary,
    as_dict,
)
from ..data.store import HistoricalDataStore
from ..config import DEFAULT_VALIDATION_ROUTES
from ..errors import InsufficientValidationData
from ..experiments.ab_testing import ABTestingFramework
from ..models.base import DateLike, to_date
from ..models.recommendation import RecommendationModel

logger = logging.getLogger(__name__)


def months_before(day: date, months: int) -> date:
    """Same day-of-month ``months`` earlier, clamped to the month's length."""
    month_index = day.year * 12 + day.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


class StatisticalValidator:
    """
    Validation lifecycle and validated predictions.

    Until a backtest has produced at least one trial, predictions carry
    conservative "not yet validated" defaults.
    """

    DEFAULT_CONFIDENCE = 50.0
    DEFAULT_INTERVAL = ConfidenceInterval(lower=45.0, upper=55.0)

    # Error bounds as a share of price when nothing has been validated
    DEFAULT_ERROR_SHARES = (0.1, 0.2, 0.05)

    def __init__(self, store: HistoricalDataStore,
                 collector: Optional[HistoricalDataCollector] = None,
                 backtester: Optional[Backtester] = None,
                 experiments: Optional[ABTestingFramework] = None,
                 model=None,
                 routes: Optional[List[str]] = None,
                 lookback_months: int = 6,
                 test_period_days: int = 90):
        self.store = store
        self.collector = collector or HistoricalDataCollector(store=store)
        self.backtester = backtester or Backtester(store=store)
        # Collected series and backtest log must land in the validator's store
        self.collector.store = store
        self.backtester.store = store
        self.experiments = experiments or ABTestingFramework(store)
        self.model = model or RecommendationModel()
        self.routes = [r.upper() for r in (routes or DEFAULT_VALIDATION_ROUTES)]
        self.lookback_months = lookback_months
        self.test_period_days = test_period_days

    def needs_refresh(self, now: Optional[datetime] = None) -> bool:
        """True when there is no validation result or it is older than the cache window."""
        return self.store.load_validation(now) is None

    def refresh(self, now: Optional[datetime] = None) -> Optional[ValidationResult]:
        """
        Collect (if the series is stale), backtest and validate.

        Returns:
            The new ValidationResult, or None when the backtest produced no trials
        """
        now = now or datetime.now()
        today = now.date()

        if not self.store.is_series_fresh(now):
            start = months_before(today, self.lookback_months)
            logger.info("Collecting %s from %s to %s", self.routes, start, today)
            self.collector.collect(self.routes, start, today)

        series = [p for p in self.store.load_series() if p.route in self.routes]
        results = self.backtester.backtest(series, self.test_period_days, as_of=today)

        try:
            validation = validate(results, now=now)
        except InsufficientValidationData:
            logger.warning("Backtest over %d points produced no trials; not yet validated",
                           len(series))
            return None

        self.store.save_validation(validation)
        logger.info("Validated: accuracy=%.2f%% n=%d MAE=%.2f",
                    validation.accuracy * 100, validation.sample_size,
                    validation.mean_absolute_error)
        return validation

    def ensure_validated(self, now: Optional[datetime] = None) -> Optional[ValidationResult]:
        """Cached validation, refreshing first when it is missing or stale."""
        if self.needs_refresh(now):
            return self.refresh(now)
        return self.store.load_validation(now)

    def statistical_confidence(self, now: Optional[datetime] = None) -> StatisticalConfidence:
        validation = self.store.load_validation(now)
        if validation is None:
            return StatisticalConfidence(
                true_confidence=self.DEFAULT_CONFIDENCE,
                sample_size=0,
                validation_period="No validation performed",
                mean_absolute_error=0.0,
                confidence_interval=self.DEFAULT_INTERVAL,
                data_quality=ValidationDataQuality(),
                last_validation=now or datetime.now(),
            )

        series = self.store.load_series()
        real = sum(1 for p in series if p.source != "synthetic")
        period = validation.validation_period
        months = 0
        if period.start and period.end:
            months = (period.end.year - period.start.year) * 12 + period.end.month - period.start.month

        interval = validation.confidence_interval
        return StatisticalConfidence(
            true_confidence=round(validation.accuracy * 100, 2),
            sample_size=validation.sample_size,
            validation_period=f"{period.start} to {period.end}",
            mean_absolute_error=validation.mean_absolute_error,
            confidence_interval=ConfidenceInterval(
                lower=round(interval.lower * 100, 2),
                upper=round(interval.upper * 100, 2),
                level=interval.level,
            ),
            data_quality=ValidationDataQuality(
                real_data_percentage=round(real / len(series) * 100, 2) if series else 0.0,
                temporal_coverage=months,
                route_coverage=len({p.route for p in series}),
            ),
            last_validation=validation.computed_at,
        )

    def error_bounds(self, current_price: float, now: Optional[datetime] = None) -> ErrorBounds:
        """Expected, worst and best-case error for a price."""
        validation = self.store.load_validation(now)
        if validation is None:
            expected, worst, best = self.DEFAULT_ERROR_SHARES
            return ErrorBounds(
                expected_error=round(current_price * expected, 2),
                max_error=round(current_price * worst, 2),
                min_error=round(current_price * best, 2),
            )

        return ErrorBounds(
            expected_error=validation.mean_absolute_error,
            max_error=validation.root_mean_square_error,
            min_error=round(validation.mean_absolute_error * 0.5, 2),
        )

    def validated_prediction(self, current_price: float, origin: str, destination: str,
                             departure_date: DateLike, user_id: str = "anonymous",
                             currency: str = "GBP", as_of: Optional[DateLike] = None,
                             now: Optional[datetime] = None) -> ValidatedPrediction:
        """
        Predict, apply the user's A/B variant and attach validation figures.

        Uses the cached validation as-is; call ``refresh`` to recompute it.
        """
        variant = self.experiments.assign(user_id)
        base = self.model.predict(current_price, origin, destination, to_date(departure_date),
                                  currency=currency, as_of=as_of)
        prediction = self.experiments.apply_variant(base, variant)

        statistics = self.statistical_confidence(now)
        variant_metrics = next(
            (m for m in self.experiments.metrics() if m.variant_id == variant.id), None
        )

        return ValidatedPrediction(
            prediction=prediction,
            statistical_confidence=statistics,
            validated_confidence=statistics.true_confidence,
            error_bounds=self.error_bounds(current_price, now),
            ab_test_variant=variant.id,
            ab_test_metrics=VariantSummary(
                variant_success_rate=variant_metrics.success_rate,
                total_tests=variant_metrics.total_recommendations,
            ) if variant_metrics and variant_metrics.total_recommendations else None,
        )

    def summary(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Validation state and experiment standings for the admin view."""
        validation = self.store.load_validation(now)
        winner = self.experiments.winning_variant()

        return {
            "validation": validation.model_dump(mode="json") if validation else None,
            "ab_test_metrics": as_dict(self.experiments.metrics()),
            "winning_variant": {
                "winner": winner["winner"].model_dump(mode="json") if winner["winner"] else None,
                "significant": winner["significant"],
            },
            "last_validation": validation.computed_at.isoformat() if validation else None,
            "needs_refresh": self.needs_refresh(now),
        }
