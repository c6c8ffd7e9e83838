"""
Backtester
==========

Replays recommendations over a stored price series and scores them against
what the fare did a week later.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error

from ..data.schemas import (
    BacktestResult,
    ConfidenceInterval,
    HistoricalPricePoint,
    Outcome,
    Recommendation,
    ValidationPeriod,
    ValidationResult,
)
from ..data.store import HistoricalDataStore
from ..errors import InsufficientValidationData
from ..models.base import DateLike, to_date
from ..models.recommendation import RecommendationModel

logger = logging.getLogger(__name__)

HORIZON_DAYS = 7
WINDOW_TOLERANCE_DAYS = 2
Z_95 = 1.96


class BacktestPredictor(ABC):
    """Predicts a point's price one week out using only earlier history."""

    LOOKBACK = 30

    @abstractmethod
    def predict(self, point: HistoricalPricePoint,
                history: List[HistoricalPricePoint]) -> Tuple[float, Recommendation]:
        """
        Args:
            point: The observation being predicted from
            history: Same-route points observed strictly before it

        Returns:
            Tuple of (predicted_price, recommendation)
        """
        pass

    def trend_price(self, point: HistoricalPricePoint,
                    history: List[HistoricalPricePoint]) -> float:
        """Extrapolate the trailing average step over the horizon."""
        prices = [p.price for p in history[-self.LOOKBACK:]]
        if len(prices) < 2:
            return point.price
        trend = (prices[-1] - prices[0]) / len(prices)
        return point.price + trend * HORIZON_DAYS


class TrendBacktestPredictor(BacktestPredictor):
    """Trailing-average rule: buy when the price is 10% under the recent mean."""

    DISCOUNT = 0.9

    def predict(self, point, history):
        if not history:
            return point.price, Recommendation.WAIT

        average = float(np.mean([p.price for p in history[-self.LOOKBACK:]]))
        recommendation = (
            Recommendation.BUY_NOW if point.price < average * self.DISCOUNT
            else Recommendation.WAIT
        )
        return self.trend_price(point, history), recommendation


class ModelBacktestPredictor(BacktestPredictor):
    """Recommendation from the seasonal model, price from the trailing trend."""

    def __init__(self, model: Optional[RecommendationModel] = None):
        self.model = model or RecommendationModel()

    def predict(self, point, history):
        origin, destination = point.route.split("-")
        prediction = self.model.predict(
            point.price, origin, destination, point.departure_date,
            currency=point.currency, as_of=point.observed_date,
        )
        return self.trend_price(point, history), prediction.recommendation


class Backtester:
    """Runs backtests and persists the resulting log."""

    def __init__(self, predictor: Optional[BacktestPredictor] = None,
                 store: Optional[HistoricalDataStore] = None):
        self.predictor = predictor or ModelBacktestPredictor()
        self.store = store

    def backtest(self, series: Iterable[HistoricalPricePoint], test_period_days: int = 90,
                 as_of: Optional[DateLike] = None) -> List[BacktestResult]:
        """
        Score one-week-ahead predictions over the trailing test period.

        Args:
            series: Price points for any number of routes
            test_period_days: Only points observed within this many days are tested
            as_of: End of the test period (defaults to today)

        Returns:
            BacktestResult per scored point
        """
        today = to_date(as_of) if as_of is not None else date.today()
        test_start = date.fromordinal(today.toordinal() - test_period_days)

        by_route: Dict[str, List[HistoricalPricePoint]] = defaultdict(list)
        for point in series:
            by_route[point.route].append(point)

        results: List[BacktestResult] = []
        for route, points in by_route.items():
            points.sort(key=lambda p: (p.observed_date, p.booking_days_ahead))
            scored = 0

            for i, point in enumerate(points):
                if point.observed_date < test_start:
                    continue

                future = [p for p in points[i + 1:] if p.observed_date > point.observed_date]
                future = future[:HORIZON_DAYS]
                if len(future) < HORIZON_DAYS:
                    continue

                actual = self.find_future_match(future, point)
                if actual is None:
                    continue

                history = [p for p in points if p.observed_date < point.observed_date]
                predicted, recommendation = self.predictor.predict(point, history)

                results.append(self._score(route, point, actual, predicted, recommendation))
                scored += 1

            logger.info("Backtested %s: %d of %d points scored", route, scored, len(points))

        if self.store is not None:
            self.store.save_backtest_log(results)
        return results

    @staticmethod
    def find_future_match(future: List[HistoricalPricePoint],
                          point: HistoricalPricePoint) -> Optional[HistoricalPricePoint]:
        """
        The later sample of the same trip: booking window shortened by the
        horizon (within tolerance), closest departure date first.
        """
        target = point.booking_days_ahead - HORIZON_DAYS
        candidates = [
            p for p in future
            if abs(p.booking_days_ahead - target) <= WINDOW_TOLERANCE_DAYS
        ]
        if not candidates:
            return None

        return min(candidates, key=lambda p: (
            abs((p.departure_date - point.departure_date).days),
            abs(p.booking_days_ahead - target),
        ))

    @staticmethod
    def _score(route: str, point: HistoricalPricePoint, actual: HistoricalPricePoint,
               predicted: float, recommendation: Recommendation) -> BacktestResult:
        error = abs(predicted - actual.price)
        percentage_error = (error / actual.price) * 100 if actual.price else 0.0

        rose = actual.price > point.price
        correct = rose if recommendation == Recommendation.BUY_NOW else not rose

        return BacktestResult(
            route=route,
            prediction_date=point.observed_date,
            predicted_price=predicted,
            actual_price=actual.price,
            error=error,
            percentage_error=percentage_error,
            recommendation=recommendation,
            actual_outcome=Outcome.CORRECT if correct else Outcome.INCORRECT,
            days_ahead=point.booking_days_ahead,
        )


def accuracy_interval(accuracy: float, n: int) -> ConfidenceInterval:
    """95% normal-approximation interval for a proportion, clamped to [0, 1]."""
    margin = Z_95 * np.sqrt(accuracy * (1 - accuracy) / n)
    return ConfidenceInterval(
        lower=round(max(0.0, accuracy - margin), 4),
        upper=round(min(1.0, accuracy + margin), 4),
        level=95,
    )


def validate(results: List[BacktestResult], now: Optional[datetime] = None) -> ValidationResult:
    """
    Summarize a backtest log.

    Raises:
        InsufficientValidationData: If there are no results
    """
    if not results:
        raise InsufficientValidationData("No backtest results available for validation")

    actual = [r.actual_price for r in results]
    predicted = [r.predicted_price for r in results]
    correct = sum(1 for r in results if r.actual_outcome == Outcome.CORRECT)
    accuracy = correct / len(results)

    dates = [r.prediction_date for r in results]

    return ValidationResult(
        accuracy=round(accuracy, 4),
        mean_absolute_error=round(float(mean_absolute_error(actual, predicted)), 2),
        root_mean_square_error=round(float(np.sqrt(mean_squared_error(actual, predicted))), 2),
        confidence_interval=accuracy_interval(accuracy, len(results)),
        sample_size=len(results),
        validation_period=ValidationPeriod(start=min(dates), end=max(dates)),
        computed_at=now or datetime.now(),
    )
