"""
Fare Reasoning Engine
=====================

Plain-language context and explanations for buy/wait recommendations.
"""

import calendar
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..data.schemas import PricePrediction, Recommendation


class FareFactor(Enum):
    """Signals that drive a recommendation."""
    PRICE_POSITION = "price_position"
    BOOKING_WINDOW = "booking_window"
    RECENT_LOW = "recent_low"


@dataclass
class RecommendationExplanation:
    """Structured explanation of a recommendation."""
    recommendation: Recommendation
    summary: str
    factors: List[Dict[str, Any]] = field(default_factory=list)
    confidence_explanation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendation": self.recommendation.value,
            "summary": self.summary,
            "factors": self.factors,
            "confidence_explanation": self.confidence_explanation,
        }


CURRENCY_SYMBOLS = {"GBP": "£", "USD": "$", "EUR": "€"}


def format_money(amount: float, currency: str = "GBP") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol:
        return f"{symbol}{amount:.0f}"
    return f"{amount:.0f} {currency.upper()}"


class FareReasoningEngine:
    """
    Builds the text that accompanies a prediction.

    Provides:
    - One-line historical context for the departure month
    - Data-backed context for the enhanced model
    - Factor breakdowns with a confidence explanation
    """

    # Fraction of the monthly average that counts as "typical"
    TYPICAL_BAND = 0.10
    SIGNIFICANT_BAND = 0.15

    def historical_context(self, month: int, average: float, maximum: float,
                           current_price: float, currency: str = "GBP") -> str:
        """
        e.g. "July fares average £750 to £820; today is below typical range"
        """
        if current_price < average * (1 - self.TYPICAL_BAND):
            position = "below"
        elif current_price > average * (1 + self.TYPICAL_BAND):
            position = "above"
        else:
            position = "within"

        return (
            f"{calendar.month_name[month]} fares average "
            f"{format_money(average, currency)} to {format_money(maximum, currency)}; "
            f"today is {position} typical range"
        )

    def enhanced_context(self, month: int, current_price: float,
                         month_average: Optional[float], data_points: int,
                         window_days: Optional[int] = None,
                         window_average: Optional[float] = None,
                         currency: str = "GBP") -> str:
        """Context sentence citing the observed sample behind it."""
        month_name = calendar.month_name[month]
        if month_average is None:
            return f"Limited historical data available for {month_name}"

        if current_price < month_average * (1 - self.SIGNIFICANT_BAND):
            note = "current price is significantly below average"
        elif current_price > month_average * (1 + self.SIGNIFICANT_BAND):
            note = "current price is significantly above average"
        else:
            note = "current price is near historical average"

        context = (
            f"Based on {data_points} data points, {month_name} fares average "
            f"{format_money(month_average, currency)} ({note})"
        )
        if window_days is not None and window_average is not None:
            context += (
                f". Booking {window_days} days ahead typically costs "
                f"{format_money(window_average, currency)}"
            )
        return context

    def explain(self, prediction: PricePrediction, position: float,
                days_to_departure: int) -> RecommendationExplanation:
        """
        Break a prediction down into the signals behind it.

        Args:
            prediction: The prediction to explain
            position: Price position within the monthly range
            days_to_departure: Days from the reference date to departure

        Returns:
            RecommendationExplanation
        """
        factors = []

        if position < 0.3:
            band = "in the cheapest third of the usual range"
        elif position > 0.7:
            band = "in the most expensive third of the usual range"
        else:
            band = "mid-range for the month"
        factors.append({
            "factor": FareFactor.PRICE_POSITION.value,
            "value": round(position, 2),
            "explanation": f"Price is {band}",
        })

        if days_to_departure < 14:
            window = "Last-minute booking; fares usually climb from here"
        elif days_to_departure > 90:
            window = "Very early booking; fares can still move either way"
        else:
            window = "Normal booking window"
        factors.append({
            "factor": FareFactor.BOOKING_WINDOW.value,
            "value": days_to_departure,
            "explanation": window,
        })

        if prediction.is_lowest_recent:
            factors.append({
                "factor": FareFactor.RECENT_LOW.value,
                "value": True,
                "explanation": "Lowest price seen in the last four weeks",
            })

        money = format_money(prediction.current_price, prediction.currency)
        if prediction.recommendation == Recommendation.BUY_NOW:
            summary = (
                f"Buy now: {money} is a good fare and there is a "
                f"{prediction.probability_increase:.0%} chance it rises."
            )
        else:
            summary = (
                f"Wait: {money} is on the high side and there is a "
                f"{prediction.probability_decrease:.0%} chance it drops."
            )

        return RecommendationExplanation(
            recommendation=prediction.recommendation,
            summary=summary,
            factors=factors,
            confidence_explanation=self._explain_confidence(prediction.confidence),
        )

    def _explain_confidence(self, confidence: int) -> str:
        if confidence >= 85:
            return f"High confidence ({confidence}%): the price sits clearly at one end of its range."
        elif confidence >= 70:
            return f"Good confidence ({confidence}%): the route's seasonal pattern is stable."
        return f"Moderate confidence ({confidence}%): this route's fares vary a lot month to month."
