"""
Amadeus Provider
================

Live flight-offer prices from the Amadeus Self-Service API, using an
OAuth2 client-credentials token cached until shortly before expiry.
"""

import logging
import time
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import requests

from .base import QuoteProvider
from ..data.schemas import ExactPrice, PriceQuote
from ..errors import ProviderUnavailable

logger = logging.getLogger(__name__)


class AmadeusClient:
    """Minimal Amadeus REST client with token caching."""

    TOKEN_PATH = "/v1/security/oauth2/token"

    def __init__(self, client_id: str, client_secret: str, env: str = "test",
                 timeout_seconds: float = 10.0,
                 session: Optional[requests.Session] = None):
        if not client_id or not client_secret:
            raise ValueError(
                "Missing Amadeus credentials. Set AMADEUS_CLIENT_ID and AMADEUS_CLIENT_SECRET."
            )
        self.client_id = client_id.strip()
        self.client_secret = client_secret.strip()
        self.env = env.strip().lower()
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

        self.base_url = (
            "https://test.api.amadeus.com"
            if self.env == "test"
            else "https://api.amadeus.com"
        )

        self._access_token: Optional[str] = None
        self._token_expiry: float = 0.0

    def _token_is_valid(self) -> bool:
        # Refresh 60 seconds early
        return bool(self._access_token) and time.time() < self._token_expiry - 60

    def _fetch_token(self) -> None:
        response = self.session.post(
            f"{self.base_url}{self.TOKEN_PATH}",
            data={"grant_type": "client_credentials"},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            auth=(self.client_id, self.client_secret),
            timeout=self.timeout_seconds,
        )
        if response.status_code != 200:
            raise requests.HTTPError(
                f"Amadeus token request failed: {response.status_code}",
                response=response,
            )

        payload = response.json()
        self._access_token = payload["access_token"]
        self._token_expiry = time.time() + int(payload.get("expires_in", 1800))

    def get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self._token_is_valid():
            self._fetch_token()

        url = f"{self.base_url}{path}"
        response = self.session.get(
            url, params=params,
            headers={"Authorization": f"Bearer {self._access_token}"},
            timeout=self.timeout_seconds,
        )

        # Token revoked early: refresh once and retry
        if response.status_code == 401:
            self._fetch_token()
            response = self.session.get(
                url, params=params,
                headers={"Authorization": f"Bearer {self._access_token}"},
                timeout=self.timeout_seconds,
            )

        response.raise_for_status()
        return response.json()


class AmadeusProvider(QuoteProvider):
    """Quotes from Amadeus flight-offers search."""

    name = "amadeus"
    OFFERS_PATH = "/v2/shopping/flight-offers"
    MAX_OFFERS = 10

    def __init__(self, client: AmadeusClient):
        self.client = client

    def search_prices(self, origin: str, destination: str, departure_date: date,
                      return_date: Optional[date] = None, currency: str = "GBP",
                      direct_only: bool = False) -> List[PriceQuote]:
        params = {
            "originLocationCode": origin.upper(),
            "destinationLocationCode": destination.upper(),
            "departureDate": departure_date.isoformat(),
            "adults": 1,
            "currencyCode": currency,
            "max": self.MAX_OFFERS,
        }
        if return_date is not None:
            params["returnDate"] = return_date.isoformat()
        if direct_only:
            params["nonStop"] = "true"

        payload = self.client.get(self.OFFERS_PATH, params)
        if not isinstance(payload, dict):
            raise ProviderUnavailable(self.name, "malformed payload")
        offers = payload.get("data") or []
        if not isinstance(offers, list) or not offers:
            raise ProviderUnavailable(self.name)

        now = datetime.now()
        quotes = []
        for offer in offers:
            if not isinstance(offer, dict):
                continue
            price = offer.get("price")
            total = price.get("total") if isinstance(price, dict) else None
            if not total:
                continue
            itineraries = offer.get("itineraries")
            first = itineraries[0] if isinstance(itineraries, list) and itineraries else {}
            segments = first.get("segments") if isinstance(first, dict) else None
            quotes.append(PriceQuote(
                amount=float(total),
                currency=price.get("currency", currency),
                provider=self.name,
                departure_date=departure_date,
                observed_at=now,
                recency_weight=3.0,
                transfers=max(0, len(segments or []) - 1),
            ))

        logger.debug("Amadeus returned %d offers for %s-%s", len(quotes), origin, destination)
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
            currency=quotes[0].currency,
            is_exact=True,
            basis="exact",
            provider=self.name,
        )
