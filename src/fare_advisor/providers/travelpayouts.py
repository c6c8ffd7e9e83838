"""
Travelpayouts Provider
======================

Real fares from the Travelpayouts month-matrix endpoint. The endpoint works
on city codes and returns the cheapest cached fare per departure day in a
month, so exact-date matches are preferred and the month is the fallback.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import requests

from .base import QuoteProvider, recency_weight
from ..data.schemas import ExactPrice, PriceQuote
from ..errors import ProviderUnavailable

logger = logging.getLogger(__name__)


class TravelpayoutsProvider(QuoteProvider):
    """Client for the Travelpayouts cached-price API."""

    name = "travelpayouts"

    BASE_URL = "https://api.travelpayouts.com"
    MONTH_MATRIX_PATH = "/v2/prices/month-matrix"
    MAX_QUOTES = 5

    # Airports priced under their metropolitan city code
    AIRPORT_TO_CITY: Dict[str, str] = {
        "LHR": "LON", "LGW": "LON", "STN": "LON", "LTN": "LON",
        "JFK": "NYC", "LGA": "NYC", "EWR": "NYC",
        "CDG": "PAR", "ORY": "PAR",
        "MXP": "MIL", "LIN": "MIL",
        "ARN": "STO", "BMA": "STO",
        "NRT": "TYO", "HND": "TYO",
        "EZE": "BUE", "AEP": "BUE",
        "GRU": "SAO", "CGH": "SAO",
        "GIG": "RIO", "SDU": "RIO",
    }

    def __init__(self, token: str, timeout_seconds: float = 10.0,
                 session: Optional[requests.Session] = None):
        if not token:
            raise ValueError("Missing Travelpayouts token. Set TRAVEL_PAYOUTS_API_KEY.")
        self.token = token
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    @classmethod
    def city_code(cls, airport: str) -> str:
        code = airport.upper()
        return cls.AIRPORT_TO_CITY.get(code, code)

    def fetch_month(self, origin: str, destination: str, month_of: date,
                    currency: str = "GBP") -> List[Dict[str, Any]]:
        """
        Raw month-matrix items for the month containing ``month_of``.

        Raises:
            ProviderUnavailable: On HTTP failure or an empty response
        """
        params = {
            "origin": self.city_code(origin),
            "destination": self.city_code(destination),
            "month": month_of.strftime("%Y-%m"),
            "currency": currency,
            "token": self.token,
        }
        response = self.session.get(
            f"{self.BASE_URL}{self.MONTH_MATRIX_PATH}",
            params=params,
            headers={"Accept": "application/json"},
            timeout=self.timeout_seconds,
        )
        if response.status_code != 200:
            raise ProviderUnavailable(self.name, f"HTTP {response.status_code}")

        payload = response.json()
        if not isinstance(payload, dict):
            raise ProviderUnavailable(self.name, "malformed payload")
        items = payload.get("data") or []
        if not isinstance(items, list) or not items:
            raise ProviderUnavailable(self.name)

        logger.debug("Month matrix %s-%s %s: %d items",
                     origin, destination, params["month"], len(items))
        return [i for i in items if isinstance(i, dict) and i.get("value")]

    @staticmethod
    def select_pool(items: List[Dict[str, Any]], target: date,
                    direct_only: bool = False) -> Tuple[List[Dict[str, Any]], bool]:
        """
        Narrow items to exact-date matches when any exist.

        Returns:
            Tuple of (items sorted by price then date, is_exact)
        """
        target_str = target.isoformat()
        if direct_only:
            items = [i for i in items if (i.get("number_of_changes") or 0) == 0]

        exact = [i for i in items if i.get("depart_date") == target_str]
        pool = exact or items
        pool = sorted(pool, key=lambda i: (i["value"], i.get("depart_date") or ""))
        return pool, bool(exact)

    def search_prices(self, origin: str, destination: str, departure_date: date,
                      return_date: Optional[date] = None, currency: str = "GBP",
                      direct_only: bool = False) -> List[PriceQuote]:
        items = self.fetch_month(origin, destination, departure_date, currency)
        pool, _ = self.select_pool(items, departure_date, direct_only)

        now = datetime.now()
        quotes = []
        for item in pool[:self.MAX_QUOTES]:
            observed_at = _parse_found_at(item.get("found_at"))
            depart = item.get("depart_date")
            quotes.append(PriceQuote(
                amount=float(item["value"]),
                currency=currency,
                provider=self.name,
                departure_date=date.fromisoformat(depart) if depart else departure_date,
                observed_at=observed_at,
                recency_weight=recency_weight(observed_at, now),
                transfers=int(item.get("number_of_changes") or 0),
            ))
        return quotes

    def cheapest_or_exact(self, origin: str, destination: str, departure_date: date,
                          return_date: Optional[date] = None, currency: str = "GBP",
                          direct_only: bool = False) -> Optional[ExactPrice]:
        """
        Cheapest fare on the exact date, else the month's cheapest with its range.

        Round trips sum both legs; a missing return leg falls back to the
        outbound leg alone.
        """
        outbound = self._leg(origin, destination, departure_date, currency, direct_only)
        if outbound is None:
            return None

        if return_date is not None:
            inbound = self._leg(destination, origin, return_date, currency, direct_only)
            if inbound is not None:
                is_exact = outbound[1] and inbound[1]
                return ExactPrice(
                    price=outbound[0] + inbound[0],
                    currency=currency,
                    is_exact=is_exact,
                    min=None if is_exact else outbound[2] + inbound[2],
                    max=None if is_exact else outbound[3] + inbound[3],
                    basis="exact" if is_exact else "month",
                    provider=self.name,
                )

        best, is_exact, low, high = outbound
        return ExactPrice(
            price=best,
            currency=currency,
            is_exact=is_exact,
            min=None if is_exact else low,
            max=None if is_exact else high,
            basis="exact" if is_exact else "month",
            provider=self.name,
        )

    def _leg(self, origin: str, destination: str, day: date, currency: str,
             direct_only: bool) -> Optional[Tuple[float, bool, float, float]]:
        try:
            items = self.fetch_month(origin, destination, day, currency)
        except ProviderUnavailable:
            return None

        pool, is_exact = self.select_pool(items, day, direct_only)
        if not pool:
            return None

        values = [float(i["value"]) for i in pool]
        return values[0], is_exact, min(values), max(values)


def _parse_found_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable found_at timestamp: %s", value)
        return None
    return parsed.replace(tzinfo=None)
