from .base import QuoteProvider, price_statistics, recency_weight
from .chain import ProviderChain
from .mock import MockQuoteProvider
from .travelpayouts import TravelpayoutsProvider
from .amadeus import AmadeusClient, AmadeusProvider

__all__ = [
    "QuoteProvider",
    "ProviderChain",
    "MockQuoteProvider",
    "TravelpayoutsProvider",
    "AmadeusClient",
    "AmadeusProvider",
    "price_statistics",
    "recency_weight",
]
