"""
Quote Provider Interface
========================

Abstract base class for real-fare providers and recency weighting helpers.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Dict, List, Optional

import numpy as np

from ..data.schemas import ExactPrice, PriceQuote


def recency_weight(observed_at: Optional[datetime], now: Optional[datetime] = None) -> float:
    """
    Weight a quote by how recently it was observed.

    <=1 day: 3x, <=7 days: 2x, <=30 days: 1.5x, older or unknown: 1x.
    """
    if observed_at is None:
        return 1.0

    now = now or datetime.now()
    if observed_at.tzinfo is not None:
        observed_at = observed_at.replace(tzinfo=None)
    age_days = (now - observed_at).total_seconds() / 86400

    if age_days <= 1:
        return 3.0
    if age_days <= 7:
        return 2.0
    if age_days <= 30:
        return 1.5
    return 1.0


def price_statistics(quotes: List[PriceQuote]) -> Optional[Dict[str, float]]:
    """
    Summarize quotes as a simple and a recency-weighted average.

    Returns:
        Dict with average, weighted_average, min, max and count, or None
    """
    if not quotes:
        return None

    amounts = np.array([q.amount for q in quotes], dtype=float)
    weights = np.array([q.recency_weight for q in quotes], dtype=float)

    return {
        "average": float(np.mean(amounts)),
        "weighted_average": float(np.average(amounts, weights=weights)),
        "min": float(np.min(amounts)),
        "max": float(np.max(amounts)),
        "count": len(quotes),
    }


class QuoteProvider(ABC):
    """A source of real fare quotes."""

    name = "provider"

    @abstractmethod
    def search_prices(self, origin: str, destination: str, departure_date: date,
                      return_date: Optional[date] = None, currency: str = "GBP",
                      direct_only: bool = False) -> List[PriceQuote]:
        """
        Search current fares for a route.

        Args:
            origin: Origin airport code
            destination: Destination airport code
            departure_date: Outbound date
            return_date: Optional inbound date
            currency: ISO currency code
            direct_only: Only include nonstop fares

        Returns:
            Quotes sorted by amount

        Raises:
            ProviderUnavailable: If the provider cannot answer
        """
        pass

    @abstractmethod
    def cheapest_or_exact(self, origin: str, destination: str, departure_date: date,
                          return_date: Optional[date] = None, currency: str = "GBP",
                          direct_only: bool = False) -> Optional[ExactPrice]:
        """
        Cheapest fare on the exact date, or the cheapest in the month.

        Returns:
            ExactPrice, or None when no fare is known
        """
        pass
