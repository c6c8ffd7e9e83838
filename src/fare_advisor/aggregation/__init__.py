from .aggregator import DEFAULT_FALLBACK_PRICE, PriceAggregator, average_or_default

__all__ = ["PriceAggregator", "DEFAULT_FALLBACK_PRICE", "average_or_default"]
