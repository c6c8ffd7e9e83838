"""
Enhanced Recommendation Model
=============================

Data-driven variant of the recommendation model. Instead of the static
seasonal table it weighs statistics drawn from the stored price series:
monthly ranges, booking-window and weekday effects, volatility and the
recent market trend. It draws no random numbers.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Dict, Optional, Tuple

import numpy as np

from .base import BaseRecommendationModel, DateLike, STANDARD, price_position, to_date
from .reasoning import FareReasoningEngine
from .recommendation import RecommendationModel
from ..data.collector import RouteHistory, analyze_route
from ..data.schemas import (
    DataQuality,
    EnhancedPricePrediction,
    ModelAccuracy,
    PredictionFactors,
    PriceRange,
)
from ..data.store import HistoricalDataStore

logger = logging.getLogger(__name__)


class EnhancedRecommendationModel(BaseRecommendationModel):
    """
    Recommendation model over observed route history.

    Routes with no stored history are delegated to the seasonal model.
    """

    PROBABILITY_BOUNDS = (0.05, 0.95)
    CONFIDENCE_BOUNDS = (65, 98)
    RECENT_DAYS = 28

    # Diagnostics reported when a route has no history
    FALLBACK_ACCURACY = ModelAccuracy(historical_accuracy=0.6, volatility_score=0.3, trend_strength=0.3)
    FALLBACK_FACTORS = PredictionFactors(
        seasonal_weight=0.3,
        booking_window_weight=0.3,
        day_of_week_weight=0.2,
        volatility_weight=0.3,
        market_trend_weight=0.2,
    )

    def __init__(self, store: HistoricalDataStore,
                 fallback: Optional[RecommendationModel] = None,
                 strictness: str = STANDARD,
                 reasoning: Optional[FareReasoningEngine] = None):
        super().__init__(name="enhanced", strictness=strictness)
        self.store = store
        self.fallback = fallback or RecommendationModel(strictness=strictness)
        self.reasoning = reasoning or FareReasoningEngine()
        self._histories: Dict[str, Tuple[int, Optional[RouteHistory]]] = {}

    def refresh(self) -> None:
        """Drop cached route statistics so they are rebuilt from the store."""
        self._histories.clear()

    def history(self, route: str) -> Optional[RouteHistory]:
        """Route statistics, rebuilt whenever the store has gained points."""
        route = route.upper()
        version = self.store.series_version
        cached = self._histories.get(route)
        if cached is None or cached[0] != version:
            cached = (version, analyze_route(self.store.load_series(route)))
            self._histories[route] = cached
        return cached[1]

    def predict(self, current_price: float, origin: str, destination: str,
                departure_date: DateLike, currency: str = "GBP",
                as_of: Optional[DateLike] = None,
                booking_days_ahead: Optional[int] = None) -> EnhancedPricePrediction:
        """
        Advise whether to buy, using the route's observed history.

        Args:
            current_price: Observed fare
            origin: Origin airport code
            destination: Destination airport code
            departure_date: Outbound date or ISO string
            currency: ISO currency code
            as_of: Reference date (defaults to today)
            booking_days_ahead: Booking window; derived from the dates when omitted

        Returns:
            EnhancedPricePrediction
        """
        if current_price <= 0:
            raise ValueError(f"current_price must be positive, got {current_price}")

        route = f"{origin}-{destination}".upper()
        departure = to_date(departure_date)
        today = to_date(as_of) if as_of is not None else date.today()
        if booking_days_ahead is None:
            booking_days_ahead = max(0, self.days_until(departure, today))

        history = self.history(route)
        if history is None:
            logger.debug("No history for %s, delegating to seasonal model", route)
            return self._fallback_prediction(current_price, origin, destination,
                                             departure, currency, today)

        month_data = history.seasonal_trends.get(departure.month)
        day_of_week = departure.weekday()

        factors = self._factors(history, departure.month, day_of_week, booking_days_ahead)
        probability_increase, probability_decrease = self._probabilities(
            history, current_price, departure.month, day_of_week, booking_days_ahead, factors
        )
        confidence = self._confidence(history, factors)

        if month_data is not None:
            position = price_position(current_price, month_data["min_price"], month_data["max_price"])
            price_range = PriceRange(
                min=month_data["min_price"],
                max=month_data["max_price"],
                average=month_data["average_price"],
            )
        else:
            position = 0.5
            price_range = PriceRange(
                min=current_price * 0.8,
                max=current_price * 1.2,
                average=current_price,
            )

        is_lowest = self.is_lowest_in_recent_weeks(current_price, route, as_of=today)
        recommendation = self.decide(probability_increase, position, is_lowest)

        window = history.closest_window(booking_days_ahead)
        window_data = history.booking_window_analysis.get(booking_days_ahead)
        context = self.reasoning.enhanced_context(
            departure.month,
            current_price,
            month_data["average_price"] if month_data else None,
            month_data["data_points"] if month_data else 0,
            window_days=booking_days_ahead if window_data else None,
            window_average=window_data["average_price"] if window_data else None,
            currency=currency,
        )
        logger.debug("%s window=%s p_inc=%.2f conf=%d -> %s",
                     route, window, probability_increase, confidence, recommendation.value)

        return EnhancedPricePrediction(
            current_price=current_price,
            currency=currency,
            timestamp=datetime.now(),
            probability_increase=probability_increase,
            probability_decrease=probability_decrease,
            confidence=confidence,
            recommendation=recommendation,
            historical_context=context,
            price_range=price_range,
            model_variant="enhanced",
            is_lowest_recent=is_lowest,
            data_quality=DataQuality(
                total_data_points=history.total_data_points,
                date_range_days=history.date_range_days,
                seasonal_coverage=history.seasonal_coverage,
                booking_window_coverage=history.booking_window_coverage,
            ),
            model_accuracy=ModelAccuracy(
                historical_accuracy=round(max(0.7, 0.95 - history.average_volatility), 2),
                volatility_score=round(history.average_volatility, 2),
                trend_strength=self._trend_strength(history),
            ),
            prediction_factors=factors,
        )

    def _factors(self, history: RouteHistory, month: int, day_of_week: int,
                 booking_days_ahead: int) -> PredictionFactors:
        """Weight each signal by how much data supports it."""
        month_data = history.seasonal_trends.get(month)
        window = history.closest_window(booking_days_ahead)
        day_data = history.day_of_week_trends.get(day_of_week)

        return PredictionFactors(
            seasonal_weight=min(month_data["data_points"] / 10, 1.0) if month_data else 0.3,
            booking_window_weight=(
                min(history.booking_window_analysis[window]["data_points"] / 5, 1.0)
                if window is not None else 0.3
            ),
            day_of_week_weight=min(day_data["data_points"] / 5, 1.0) if day_data else 0.2,
            volatility_weight=max(0.1, 1 - history.average_volatility),
            market_trend_weight=self._market_trend_weight(history),
        )

    def _probabilities(self, history: RouteHistory, current_price: float, month: int,
                       day_of_week: int, booking_days_ahead: int,
                       factors: PredictionFactors) -> tuple:
        probability = 0.5

        month_data = history.seasonal_trends.get(month)
        if month_data:
            position = price_position(current_price, month_data["min_price"], month_data["max_price"])
            effect = 0.2 if position < 0.3 else -0.2 if position > 0.7 else 0.0
            probability += effect * factors.seasonal_weight

        if history.closest_window(booking_days_ahead) is not None:
            # Fares climb as departure nears
            effect = 0.25 if booking_days_ahead < 14 else -0.1 if booking_days_ahead > 60 else 0.0
            probability += effect * factors.booking_window_weight

        if day_of_week in history.day_of_week_trends:
            effect = 0.1 if day_of_week >= 5 else -0.05
            probability += effect * factors.day_of_week_weight

        effect = 0.1 if history.average_volatility > 0.2 else -0.05
        probability += effect * factors.volatility_weight

        probability += self._trend_effect(history) * factors.market_trend_weight

        probability = float(np.clip(probability, *self.PROBABILITY_BOUNDS))
        return self.split_probability(probability)

    def _confidence(self, history: RouteHistory, factors: PredictionFactors) -> int:
        """Confidence from data volume, coverage and stability."""
        confidence = 0.6
        confidence += min(history.total_data_points / 100, 0.25)
        confidence += history.seasonal_coverage * 0.15
        confidence += history.booking_window_coverage * 0.1
        confidence += max(0.0, (0.3 - history.average_volatility) * 0.5)
        confidence += np.mean([
            factors.seasonal_weight,
            factors.booking_window_weight,
            factors.day_of_week_weight,
            factors.volatility_weight,
        ]) * 0.15

        low, high = self.CONFIDENCE_BOUNDS
        return int(max(low, min(high, round(confidence * 100))))

    @staticmethod
    def _market_trend_weight(history: RouteHistory) -> float:
        prices = history.recent_prices
        if len(prices) < 2:
            return 0.3
        return min(abs(prices[0] - prices[-1]) / 100, 0.8)

    @staticmethod
    def _trend_effect(history: RouteHistory) -> float:
        prices = history.recent_prices
        if len(prices) < 2:
            return 0.0
        return float(np.clip((prices[0] - prices[-1]) / 1000, -0.2, 0.2))

    @staticmethod
    def _trend_strength(history: RouteHistory) -> float:
        """How consistent the seasonal and booking-window patterns are."""
        averages = [m["average_price"] for m in history.seasonal_trends.values()]
        if len(averages) < 6:
            seasonal = 0.5
        else:
            cv = float(np.std(averages) / np.mean(averages))
            seasonal = max(0.3, 1 - cv)

        windows = history.booking_window_analysis
        if len(windows) < 3:
            booking = 0.5
        else:
            # Earlier booking should be cheaper
            multipliers = [windows[w]["price_multiplier"] for w in sorted(windows)]
            booking = 0.8 if all(a >= b for a, b in zip(multipliers, multipliers[1:])) else 0.6

        return round((seasonal + booking) / 2, 2)

    def is_lowest_in_recent_weeks(self, current_price: float, route: str,
                                  as_of: Optional[DateLike] = None) -> bool:
        """True when the fare beats every price observed in the last four weeks."""
        today = to_date(as_of) if as_of is not None else date.today()
        since = today - timedelta(days=self.RECENT_DAYS)
        recent = [
            p.price for p in self.store.load_series(route)
            if since <= p.observed_date <= today
        ]
        if not recent:
            return False
        return current_price < min(recent)

    def _fallback_prediction(self, current_price: float, origin: str, destination: str,
                             departure: date, currency: str,
                             as_of: date) -> EnhancedPricePrediction:
        base = self.fallback.predict(current_price, origin, destination, departure,
                                     currency=currency, as_of=as_of)
        return EnhancedPricePrediction(
            **base.model_dump(),
            data_quality=DataQuality(),
            model_accuracy=self.FALLBACK_ACCURACY,
            prediction_factors=self.FALLBACK_FACTORS,
        )
