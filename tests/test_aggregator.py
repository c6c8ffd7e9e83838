"""
Tests for Multi-Source Price Aggregator
=======================================
"""

import pytest
import numpy as np
from datetime import date

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conftest import FailingModel, StubProvider
from fare_advisor.aggregation.aggregator import (
    DEFAULT_FALLBACK_PRICE,
    PriceAggregator,
    average_or_default,
)
from fare_advisor.errors import ProviderUnavailable
from fare_advisor.models.recommendation import RecommendationModel
from fare_advisor.providers.chain import ProviderChain


JULY_DEPARTURE = date(2025, 7, 15)


@pytest.fixture
def model(rng):
    return RecommendationModel(rng=rng)


class TestAggregate:
    """Tests for blending real and synthetic prices."""

    def test_real_and_synthetic_blend(self, stub_provider, model):
        """Test real quotes and the seasonal band share one pool."""
        aggregator = PriceAggregator(ProviderChain([stub_provider]), model)
        result = aggregator.aggregate("LHR", "JFK", JULY_DEPARTURE)

        # weighted avg, simple avg, 3 recent quotes, seasonal min/avg/max
        assert result.price_count == 8
        assert result.sources == ["stub (weighted)", "synthetic"]
        assert result.min_price == 680
        assert result.max_price == 820

        real_mean = np.mean([700.0, 720.0, 760.0])
        expected = round(np.mean([real_mean, real_mean, 700, 720, 760, 680, 750, 820]))
        assert result.average_price == expected
        assert result.confidence == 95

    def test_synthetic_only(self, model):
        """Test the seasonal band alone when no provider answers."""
        aggregator = PriceAggregator(ProviderChain([]), model)
        result = aggregator.aggregate("LHR", "JFK", JULY_DEPARTURE)

        assert result.price_count == 3
        assert result.sources == ["synthetic"]
        assert result.average_price == 750
        assert result.confidence == 85

    def test_real_only_when_model_fails(self, stub_provider):
        """Test a failing model still leaves the real quotes."""
        aggregator = PriceAggregator(ProviderChain([stub_provider]), FailingModel())
        result = aggregator.aggregate("LHR", "JFK", JULY_DEPARTURE)

        assert result.sources == ["stub (weighted)"]
        assert result.price_count == 5

    def test_no_data_returns_none(self):
        """Test provider and model failure yields None rather than raising."""
        failing = StubProvider(error=ProviderUnavailable("stub"))
        aggregator = PriceAggregator(ProviderChain([failing]), FailingModel())

        result = aggregator.aggregate("LHR", "JFK", JULY_DEPARTURE)

        assert result is None
        assert failing.calls == 1
        assert average_or_default(result) == DEFAULT_FALLBACK_PRICE == 400

    def test_aggregate_is_idempotent(self, stub_provider, model):
        """Test repeated aggregation over the same inputs agrees."""
        aggregator = PriceAggregator(ProviderChain([stub_provider]), model)

        first = aggregator.aggregate("LHR", "JFK", JULY_DEPARTURE)
        second = aggregator.aggregate("LHR", "JFK", JULY_DEPARTURE)

        assert first.average_price == second.average_price
        assert first.min_price == second.min_price
        assert first.max_price == second.max_price
        assert first.confidence == second.confidence

    def test_stale_quotes_not_counted_as_recent(self, model):
        """Test quotes older than a week only enter through the averages."""
        stale = StubProvider(amounts=[700.0, 720.0], recency=1.0)
        aggregator = PriceAggregator(ProviderChain([stale]), model)

        result = aggregator.aggregate("LHR", "JFK", JULY_DEPARTURE)

        assert result.price_count == 5

    def test_spread_lowers_confidence(self, model):
        """Test widely spread prices lose confidence."""
        spread = StubProvider(amounts=[100.0, 2500.0])
        aggregator = PriceAggregator(ProviderChain([spread]), model)

        result = aggregator.aggregate("LHR", "JFK", JULY_DEPARTURE)

        assert result.confidence == 75

    def test_average_or_default_passes_through(self, model):
        """Test the helper returns the aggregated average when present."""
        aggregator = PriceAggregator(ProviderChain([]), model)
        result = aggregator.aggregate("LHR", "JFK", JULY_DEPARTURE)

        assert average_or_default(result) == result.average_price


class TestPriceTrend:
    """Tests for the aggregated-vs-seasonal trend."""

    def test_stable_trend(self, model):
        """Test the seasonal band alone is a stable trend."""
        aggregator = PriceAggregator(ProviderChain([]), model)
        trend = aggregator.price_trend("LHR", "JFK", JULY_DEPARTURE)

        assert trend.trend_direction == "stable"
        assert trend.percentage_change == 0.0
        assert trend.historical_average == 750

    def test_upward_trend(self, model):
        """Test expensive real quotes read as an upward trend."""
        pricey = StubProvider(amounts=[1500.0, 1600.0, 1700.0])
        aggregator = PriceAggregator(ProviderChain([pricey]), model)

        trend = aggregator.price_trend("LHR", "JFK", JULY_DEPARTURE)

        assert trend.trend_direction == "up"
        assert trend.percentage_change > 5

    def test_no_data_no_trend(self):
        """Test no aggregate means no trend."""
        failing = StubProvider(error=ProviderUnavailable("stub"))
        aggregator = PriceAggregator(ProviderChain([failing]), FailingModel())

        assert aggregator.price_trend("LHR", "JFK", JULY_DEPARTURE) is None
