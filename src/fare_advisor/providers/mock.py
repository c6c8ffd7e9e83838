"""
Mock Quote Provider
===================

Deterministic fares for development and tests. Prices depend only on the
route, so repeated calls return identical quotes.
"""

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from .base import QuoteProvider, recency_weight
from ..data.schemas import ExactPrice, PriceQuote


class MockQuoteProvider(QuoteProvider):
    """Route-keyed synthetic quotes with fixed price steps."""

    name = "mock"

    # One-way base fares by route
    BASE_FARES: Dict[str, float] = {
        "LGW-MXP": 75, "LHR-CDG": 85, "LGW-BCN": 95, "LHR-DUB": 65,
        "LHR-JFK": 434, "LGW-JFK": 434, "LHR-LAX": 450, "LHR-BOS": 420,
        "LHR-SYD": 800, "LHR-DXB": 350, "LHR-ACC": 450, "JFK-ACC": 650,
    }
    DEFAULT_FARE = 200.0

    PRICE_STEPS = [1.0, 1.05, 1.12, 1.18, 1.25]
    QUOTE_AGES_DAYS = [0.5, 3, 5, 14, 45]
    TRANSFERS = [0, 0, 0, 1, 1]

    def __init__(self, fares: Optional[Dict[str, float]] = None):
        self.fares = dict(self.BASE_FARES)
        if fares:
            self.fares.update(fares)

    def base_fare(self, origin: str, destination: str) -> float:
        """Base fare for a route in either direction."""
        forward = f"{origin}-{destination}".upper()
        reverse = f"{destination}-{origin}".upper()
        return float(self.fares.get(forward, self.fares.get(reverse, self.DEFAULT_FARE)))

    def search_prices(self, origin: str, destination: str, departure_date: date,
                      return_date: Optional[date] = None, currency: str = "GBP",
                      direct_only: bool = False) -> List[PriceQuote]:
        base = self.base_fare(origin, destination)
        if return_date is not None:
            base *= 2

        now = datetime.now()
        quotes = []
        for step, age, transfers in zip(self.PRICE_STEPS, self.QUOTE_AGES_DAYS, self.TRANSFERS):
            if direct_only and transfers > 0:
                continue
            observed_at = now - timedelta(days=age)
            quotes.append(PriceQuote(
                amount=round(base * step),
                currency=currency,
                provider=self.name,
                departure_date=departure_date,
                observed_at=observed_at,
                recency_weight=recency_weight(observed_at, now),
                transfers=transfers,
            ))

        return sorted(quotes, key=lambda q: q.amount)

    def cheapest_or_exact(self, origin: str, destination: str, departure_date: date,
                          return_date: Optional[date] = None, currency: str = "GBP",
                          direct_only: bool = False) -> Optional[ExactPrice]:
        quotes = self.search_prices(origin, destination, departure_date,
                                    return_date, currency, direct_only)
        if not quotes:
            return None
        return ExactPrice(
            price=quotes[0].amount,
            currency=currency,
            is_exact=True,
            basis="exact",
            provider=self.name,
        )
