"""
Base Model Interface
====================

Abstract base class for recommendation models and the shared buy/wait
decision policy.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional, Union

from ..data.schemas import PricePrediction, Recommendation

DateLike = Union[date, datetime, str]

# Decision policies
STANDARD = "standard"
THRESHOLD = "threshold"
STRICTNESS_LEVELS = (STANDARD, THRESHOLD)


def to_date(value: DateLike) -> date:
    """Coerce a date, datetime or ISO string to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def price_position(price: float, low: float, high: float) -> float:
    """
    Where a price sits in [low, high]; 0 at the minimum, 1 at the maximum.

    Not clamped, so prices outside the band go below 0 or above 1. A
    zero-width band is treated as mid-range.
    """
    if high == low:
        return 0.5
    return (price - low) / (high - low)


class BaseRecommendationModel(ABC):
    """Abstract base class for BUY_NOW / WAIT recommendation models."""

    # Probability of a rise at or above which the threshold policy buys
    THRESHOLD_PROBABILITY = 0.8

    # Standard policy cutoffs
    BUY_POSITION = 0.6
    BUY_PROBABILITY = 0.65

    def __init__(self, name: str, strictness: str = STANDARD):
        if strictness not in STRICTNESS_LEVELS:
            raise ValueError(f"strictness must be one of {STRICTNESS_LEVELS}, got {strictness!r}")
        self.name = name
        self.strictness = strictness

    @abstractmethod
    def predict(self, current_price: float, origin: str, destination: str,
                departure_date: DateLike, currency: str = "GBP",
                as_of: Optional[DateLike] = None) -> PricePrediction:
        """
        Advise whether to buy at the current price.

        Args:
            current_price: Observed fare
            origin: Origin airport code
            destination: Destination airport code
            departure_date: Outbound date
            currency: ISO currency code
            as_of: Reference date (defaults to today)

        Returns:
            PricePrediction
        """
        pass

    def decide(self, probability_increase: float, position: float,
               is_lowest_recent: bool) -> Recommendation:
        """
        Apply the configured decision policy.

        Standard: buy when today is the lowest in recent weeks, the price sits
        in the lower part of its range, or a rise is likely.
        Threshold: buy only when a rise is very likely.
        """
        if self.strictness == THRESHOLD:
            if probability_increase >= self.THRESHOLD_PROBABILITY:
                return Recommendation.BUY_NOW
            return Recommendation.WAIT

        if is_lowest_recent:
            return Recommendation.BUY_NOW
        if position < self.BUY_POSITION:
            return Recommendation.BUY_NOW
        if probability_increase >= self.BUY_PROBABILITY:
            return Recommendation.BUY_NOW
        return Recommendation.WAIT

    @staticmethod
    def days_until(departure: date, as_of: date) -> int:
        return (departure - as_of).days

    @staticmethod
    def split_probability(probability_increase: float) -> tuple:
        """Round to 2 dp and return (increase, decrease) summing to 1."""
        increase = round(probability_increase, 2)
        return increase, 1.0 - increase
