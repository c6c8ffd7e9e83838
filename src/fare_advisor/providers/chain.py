"""
Provider Chain
==============

Ordered fallback across quote providers. Failures are logged and the next
provider is tried; when every provider fails the chain reports no data.
"""

import logging
from datetime import date
from typing import List, Optional, Sequence

import requests

from .base import QuoteProvider
from .amadeus import AmadeusClient, AmadeusProvider
from .mock import MockQuoteProvider
from .travelpayouts import TravelpayoutsProvider
from ..config import AdvisorConfig
from ..data.schemas import ExactPrice, PriceQuote
from ..errors import ProviderUnavailable

logger = logging.getLogger(__name__)

# Failures a provider may raise that mean "try the next one"
RECOVERABLE_ERRORS = (requests.RequestException, ProviderUnavailable, ValueError, KeyError,
                      TypeError, AttributeError)


class ProviderChain:
    """Try providers in order until one returns data."""

    def __init__(self, providers: Optional[Sequence[QuoteProvider]] = None):
        self.providers: List[QuoteProvider] = list(providers or [])

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.providers]

    def search_prices(self, origin: str, destination: str, departure_date: date,
                      return_date: Optional[date] = None, currency: str = "GBP",
                      direct_only: bool = False) -> List[PriceQuote]:
        """First non-empty quote list, or [] when all providers fail."""
        for provider in self.providers:
            try:
                quotes = provider.search_prices(origin, destination, departure_date,
                                                return_date, currency, direct_only)
            except RECOVERABLE_ERRORS as e:
                logger.warning("Provider %s failed for %s-%s: %s",
                               provider.name, origin, destination, e)
                continue
            if quotes:
                return quotes
            logger.info("Provider %s returned no quotes for %s-%s",
                        provider.name, origin, destination)
        return []

    def cheapest_or_exact(self, origin: str, destination: str, departure_date: date,
                          return_date: Optional[date] = None, currency: str = "GBP",
                          direct_only: bool = False) -> Optional[ExactPrice]:
        """First provider's exact or month price, or None when all fail."""
        for provider in self.providers:
            try:
                price = provider.cheapest_or_exact(origin, destination, departure_date,
                                                   return_date, currency, direct_only)
            except RECOVERABLE_ERRORS as e:
                logger.warning("Provider %s failed for %s-%s: %s",
                               provider.name, origin, destination, e)
                continue
            if price is not None:
                return price
        return None

    @classmethod
    def from_config(cls, config: AdvisorConfig, include_mock: bool = True) -> "ProviderChain":
        """
        Build the chain from configured credentials.

        Order: Travelpayouts, Amadeus, then the mock provider when enabled.
        Historical collection passes include_mock=False so samples without a
        real quote are synthesized instead of copied from the mock fares.
        """
        providers: List[QuoteProvider] = []

        if config.travelpayouts_token:
            providers.append(TravelpayoutsProvider(
                config.travelpayouts_token, timeout_seconds=config.request_timeout_seconds
            ))

        if config.amadeus_client_id and config.amadeus_client_secret:
            providers.append(AmadeusProvider(AmadeusClient(
                config.amadeus_client_id,
                config.amadeus_client_secret,
                env=config.amadeus_env,
                timeout_seconds=config.request_timeout_seconds,
            )))

        if include_mock and config.use_mock_provider:
            providers.append(MockQuoteProvider())

        logger.info("Provider chain: %s", [p.name for p in providers] or "empty")
        return cls(providers)
