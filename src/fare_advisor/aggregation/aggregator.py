"""
Multi-Source Price Aggregator
=============================

Blends real quotes with the recommendation model's seasonal range into a
single average price and a confidence score.
"""

import logging
from datetime import datetime
from typing import List, Optional

import numpy as np

from ..data.schemas import AggregatedPrice, PriceTrend
from ..errors import FareAdvisorError
from ..models.base import DateLike, to_date
from ..providers.base import price_statistics
from ..providers.chain import ProviderChain

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_PRICE = 400.0
SYNTHETIC_SOURCE = "synthetic"


def average_or_default(aggregated: Optional[AggregatedPrice],
                       default: float = DEFAULT_FALLBACK_PRICE) -> float:
    """The aggregated average, or the documented default when there is none."""
    if aggregated is None:
        return default
    return aggregated.average_price


class PriceAggregator:
    """
    Aggregate real and synthetic price points for a route.

    The pool holds the real quotes' weighted and simple averages, up to
    three recent individual quotes, and the model's min/average/max for
    the departure month.
    """

    MAX_RECENT_QUOTES = 3
    RECENT_WEIGHT = 1.5

    BASE_CONFIDENCE = 75
    CONFIDENCE_BOUNDS = (50, 95)
    TREND_THRESHOLD_PCT = 5.0

    def __init__(self, chain: ProviderChain, model):
        self.chain = chain
        self.model = model

    def aggregate(self, origin: str, destination: str, departure_date: DateLike,
                  return_date: Optional[DateLike] = None, currency: str = "GBP",
                  direct_only: bool = False) -> Optional[AggregatedPrice]:
        """
        Aggregate every available price point for a route.

        Args:
            origin: Origin airport code
            destination: Destination airport code
            departure_date: Outbound date
            return_date: Optional inbound date
            currency: ISO currency code
            direct_only: Restrict real quotes to nonstop fares

        Returns:
            AggregatedPrice, or None when no price could be collected
        """
        departure = to_date(departure_date)
        inbound = to_date(return_date) if return_date is not None else None

        pool: List[float] = []
        sources: List[str] = []
        has_real = False

        quotes = self.chain.search_prices(origin, destination, departure,
                                          inbound, currency, direct_only)
        stats = price_statistics(quotes)
        if stats is not None:
            pool.append(stats["weighted_average"])
            pool.append(stats["average"])
            recent = [q.amount for q in quotes if q.recency_weight > self.RECENT_WEIGHT]
            pool.extend(recent[:self.MAX_RECENT_QUOTES])

            providers = sorted({q.provider for q in quotes})
            sources.extend(f"{name} (weighted)" for name in providers)
            has_real = True

        reference = float(np.mean(pool)) if pool else DEFAULT_FALLBACK_PRICE
        has_synthetic = False
        try:
            prediction = self.model.predict(reference, origin, destination, departure,
                                            currency=currency)
        except (FareAdvisorError, ValueError) as e:
            logger.warning("Synthetic prior unavailable for %s-%s: %s", origin, destination, e)
        else:
            band = prediction.price_range
            pool.extend([band.min, band.average, band.max])
            sources.append(SYNTHETIC_SOURCE)
            has_synthetic = True

        if not pool:
            logger.info("No prices collected for %s-%s", origin, destination)
            return None

        prices = np.array(pool, dtype=float)
        average = round(float(prices.mean()))

        return AggregatedPrice(
            average_price=average,
            min_price=float(prices.min()),
            max_price=float(prices.max()),
            price_count=len(pool),
            currency=currency,
            sources=sources,
            confidence=self._confidence(prices, average, has_real and has_synthetic),
            last_updated=datetime.now(),
        )

    def _confidence(self, prices: np.ndarray, mean: float, blended: bool) -> int:
        confidence = self.BASE_CONFIDENCE
        if blended:
            confidence += 10
        if len(prices) >= 10:
            confidence += 5

        if mean > 0:
            cv = float(np.sqrt(np.mean((prices - mean) ** 2)) / mean)
            if cv < 0.15:
                confidence += 10
            elif cv > 0.3:
                confidence -= 10

        low, high = self.CONFIDENCE_BOUNDS
        return max(low, min(high, confidence))

    def price_trend(self, origin: str, destination: str, departure_date: DateLike,
                    return_date: Optional[DateLike] = None, currency: str = "GBP",
                    direct_only: bool = False) -> Optional[PriceTrend]:
        """
        Compare today's aggregated average with the seasonal average.

        Returns:
            PriceTrend, or None when aggregation produced nothing
        """
        current = self.aggregate(origin, destination, departure_date,
                                 return_date, currency, direct_only)
        if current is None:
            return None

        prediction = self.model.predict(current.average_price, origin, destination,
                                        to_date(departure_date), currency=currency)
        historical = prediction.price_range.average
        change = ((current.average_price - historical) / historical) * 100 if historical else 0.0

        direction = "stable"
        if abs(change) > self.TREND_THRESHOLD_PCT:
            direction = "up" if change > 0 else "down"

        return PriceTrend(
            current_average=current.average_price,
            historical_average=historical,
            trend_direction=direction,
            percentage_change=round(change, 2),
            recommendation=prediction.recommendation,
        )
