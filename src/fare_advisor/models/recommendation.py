"""
Recommendation Model
====================

Seasonal-range recommendation model. Places today's fare within the
route's monthly price band, estimates the chance of a rise and turns that
into BUY_NOW / WAIT advice with a confidence score.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

import numpy as np

from .base import BaseRecommendationModel, DateLike, STANDARD, price_position, to_date
from .reasoning import FareReasoningEngine, RecommendationExplanation
from ..data.schemas import (
    PricePrediction,
    PriceRange,
    Recommendation,
    RouteSeasonalProfile,
    SpotlightDeal,
)
from ..data.seasonal import SeasonalReferenceTable

logger = logging.getLogger(__name__)


class RecommendationModel(BaseRecommendationModel):
    """
    Heuristic model over the seasonal reference table.

    Randomness (probability and confidence jitter, simulated weekly prices)
    comes from an injectable numpy Generator so results can be reproduced.
    """

    # Probability of a rise by price position
    LOW_POSITION = 0.3
    HIGH_POSITION = 0.7
    PROBABILITY_BY_POSITION = (0.75, 0.5, 0.25)

    LAST_MINUTE_DAYS = 14
    EARLY_BOOKING_DAYS = 90
    PROBABILITY_BOUNDS = (0.1, 0.9)

    BASE_CONFIDENCE = 0.8
    CONFIDENCE_BOUNDS = (60, 95)
    GENERIC_PENALTY = 0.05

    # Round-trip deals
    SPOTLIGHT_DAYS_AHEAD = 30
    SPOTLIGHT_MIN_DISCOUNT = 10
    SPOTLIGHT_LIMIT = 3

    def __init__(self, table: Optional[SeasonalReferenceTable] = None,
                 rng: Optional[np.random.Generator] = None,
                 strictness: str = STANDARD, weeks: int = 4,
                 reasoning: Optional[FareReasoningEngine] = None):
        super().__init__(name="seasonal", strictness=strictness)
        self.table = table or SeasonalReferenceTable()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.weeks = weeks
        self.reasoning = reasoning or FareReasoningEngine()

    def predict(self, current_price: float, origin: str, destination: str,
                departure_date: DateLike, currency: str = "GBP",
                as_of: Optional[DateLike] = None) -> PricePrediction:
        """
        Advise whether to buy at the current price.

        Args:
            current_price: Observed fare (must be positive)
            origin: Origin airport code
            destination: Destination airport code
            departure_date: Outbound date or ISO string
            currency: ISO currency code
            as_of: Reference date for the booking window (defaults to today)

        Returns:
            PricePrediction
        """
        if current_price <= 0:
            raise ValueError(f"current_price must be positive, got {current_price}")

        route = f"{origin}-{destination}".upper()
        departure = to_date(departure_date)
        today = to_date(as_of) if as_of is not None else date.today()

        profile, is_generic = self.table.lookup(route, departure.month)
        position = price_position(current_price, profile.min_price, profile.max_price)
        days_ahead = self.days_until(departure, today)

        probability_increase, probability_decrease = self._probabilities(
            profile, position, days_ahead
        )
        confidence = self._confidence(profile, position, is_generic)
        is_lowest = self.is_lowest_in_recent_weeks(current_price, route, as_of=today)

        recommendation = self.decide(probability_increase, position, is_lowest)

        logger.debug(
            "%s %s: position=%.2f p_inc=%.2f conf=%d lowest=%s -> %s",
            route, departure, position, probability_increase, confidence,
            is_lowest, recommendation.value
        )

        return PricePrediction(
            current_price=current_price,
            currency=currency,
            timestamp=datetime.now(),
            probability_increase=probability_increase,
            probability_decrease=probability_decrease,
            confidence=confidence,
            recommendation=recommendation,
            historical_context=self.reasoning.historical_context(
                departure.month, profile.average_price, profile.max_price,
                current_price, currency
            ),
            price_range=PriceRange(
                min=profile.min_price,
                max=profile.max_price,
                average=profile.average_price,
            ),
            model_variant="simple",
            is_lowest_recent=is_lowest,
        )

    def _probabilities(self, profile: RouteSeasonalProfile, position: float,
                       days_ahead: int) -> tuple:
        low, mid, high = self.PROBABILITY_BY_POSITION
        if position < self.LOW_POSITION:
            probability = low
        elif position > self.HIGH_POSITION:
            probability = high
        else:
            probability = mid

        if days_ahead < self.LAST_MINUTE_DAYS:
            probability += 0.2
        elif days_ahead > self.EARLY_BOOKING_DAYS:
            probability += 0.1

        probability += profile.price_variation * (self.rng.random() - 0.5) * 0.2
        probability = float(np.clip(probability, *self.PROBABILITY_BOUNDS))

        return self.split_probability(probability)

    def _confidence(self, profile: RouteSeasonalProfile, position: float,
                    is_generic: bool) -> int:
        confidence = self.BASE_CONFIDENCE

        if profile.price_variation > 0.2:
            confidence -= 0.2
        if position < 0.2 or position > 0.8:
            confidence += 0.1
        if is_generic:
            confidence -= self.GENERIC_PENALTY

        confidence += (self.rng.random() - 0.5) * 0.1

        low, high = self.CONFIDENCE_BOUNDS
        return int(max(low, min(high, round(confidence * 100))))

    def is_lowest_in_recent_weeks(self, current_price: float, route: str,
                                  as_of: Optional[DateLike] = None,
                                  weeks: Optional[int] = None) -> bool:
        """
        Compare today's fare with simulated weekly fares for recent weeks.

        One price is drawn per week, from the average of the month that
        week falls in, and bounded to the month's band widened by 20%.
        Routes without a seasonal table never count as a recent low.
        """
        route = route.upper()
        if not self.table.has_route(route):
            return False

        today = to_date(as_of) if as_of is not None else date.today()
        weeks = weeks or self.weeks

        weekly_prices = []
        for i in range(weeks - 1, -1, -1):
            week_date = today - timedelta(days=7 * i)
            profile = self.table.get(route, week_date.month)
            price = round(profile.average_price * (0.85 + self.rng.random() * 0.3))
            weekly_prices.append(
                max(profile.min_price * 0.8, min(profile.max_price * 1.2, price))
            )

        return all(current_price < p for p in weekly_prices)

    def explain(self, prediction: PricePrediction, departure_date: DateLike,
                as_of: Optional[DateLike] = None) -> RecommendationExplanation:
        """Factor breakdown for a prediction this model produced."""
        departure = to_date(departure_date)
        today = to_date(as_of) if as_of is not None else date.today()
        band = prediction.price_range
        return self.reasoning.explain(
            prediction,
            position=price_position(prediction.current_price, band.min, band.max),
            days_to_departure=self.days_until(departure, today),
        )

    def spotlight_deals(self, routes: Optional[List[str]] = None, currency: str = "GBP",
                        as_of: Optional[DateLike] = None,
                        limit: int = SPOTLIGHT_LIMIT) -> List[SpotlightDeal]:
        """
        Best discounted round trips departing a month from now.

        Both legs are sampled around the route's seasonal average. A deal
        qualifies when the round trip is more than 10% below twice the
        average and the outbound fare gets a BUY_NOW. Qualifying deals are
        ranked by discount.

        Args:
            routes: Routes to scan (defaults to every route with a table)
            currency: ISO currency code
            as_of: Reference date (defaults to today)
            limit: Maximum number of deals returned

        Returns:
            List of SpotlightDeal, largest discount first
        """
        today = to_date(as_of) if as_of is not None else date.today()
        departure = today + timedelta(days=self.SPOTLIGHT_DAYS_AHEAD)

        deals = []
        for route in (routes if routes is not None else self.table.routes):
            origin, destination = route.upper().split("-")
            profile, _ = self.table.lookup(route, departure.month)

            outbound = round(profile.average_price * (0.7 + self.rng.random() * 0.4))
            inbound = round(profile.average_price * (0.75 + self.rng.random() * 0.35))
            average_total = profile.average_price * 2
            discount = average_total - (outbound + inbound)
            discount_percentage = round(discount / average_total * 100)
            if discount_percentage <= self.SPOTLIGHT_MIN_DISCOUNT:
                continue

            prediction = self.predict(outbound, origin, destination, departure,
                                      currency=currency, as_of=today)
            if prediction.recommendation != Recommendation.BUY_NOW:
                continue

            deals.append(SpotlightDeal(
                route=f"{origin}-{destination}",
                origin=origin,
                destination=destination,
                departure_date=departure,
                outbound_price=outbound,
                return_price=inbound,
                total_price=outbound + inbound,
                average_total=average_total,
                discount=discount,
                discount_percentage=discount_percentage,
                recommendation=prediction.recommendation,
                confidence=prediction.confidence,
                currency=currency,
            ))

        deals.sort(key=lambda d: d.discount_percentage, reverse=True)
        logger.info("Spotlight: %d qualifying deals for %s", len(deals), departure)
        return deals[:limit]
