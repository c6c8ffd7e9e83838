"""
Pytest Configuration and Fixtures
=================================

Shared fixtures for all tests.
"""

import pytest
import numpy as np
from datetime import date, datetime, timedelta
from typing import List, Optional

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fare_advisor.data.collector import make_point
from fare_advisor.data.schemas import ExactPrice, HistoricalPricePoint, PriceQuote
from fare_advisor.data.store import HistoricalDataStore
from fare_advisor.providers.base import QuoteProvider


AS_OF = date(2025, 6, 1)
NOW = datetime(2025, 6, 1, 12, 0, 0)


class StubProvider(QuoteProvider):
    """Provider returning fixed quotes, or raising when given an exception."""

    def __init__(self, name: str = "stub", amounts: Optional[List[float]] = None,
                 error: Optional[Exception] = None, recency: float = 3.0):
        self.name = name
        self.amounts = amounts or []
        self.error = error
        self.recency = recency
        self.calls = 0

    def search_prices(self, origin, destination, departure_date, return_date=None,
                      currency="GBP", direct_only=False):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [
            PriceQuote(amount=a, currency=currency, provider=self.name,
                       departure_date=departure_date, recency_weight=self.recency)
            for a in sorted(self.amounts)
        ]

    def cheapest_or_exact(self, origin, destination, departure_date, return_date=None,
                          currency="GBP", direct_only=False):
        self.calls += 1
        if self.error is not None:
            raise self.error
        if not self.amounts:
            return None
        return ExactPrice(price=min(self.amounts), currency=currency, is_exact=True,
                          provider=self.name)


class FixedRandom:
    """Generator stand-in whose every draw is the same value in [0, 1)."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


class FailingModel:
    """Model whose predictions always fail."""

    name = "failing"

    def predict(self, *args, **kwargs):
        raise ValueError("model unavailable")


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded generator for reproducible model output."""
    return np.random.default_rng(42)


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def memory_store() -> HistoricalDataStore:
    """In-memory store."""
    return HistoricalDataStore()


@pytest.fixture
def file_store(tmp_path) -> HistoricalDataStore:
    """Store persisted to a temporary JSON file."""
    return HistoricalDataStore(tmp_path / "store.json")


@pytest.fixture
def stub_provider():
    return StubProvider(amounts=[700.0, 720.0, 760.0])


@pytest.fixture
def constant_series() -> List[HistoricalPricePoint]:
    """
    A route whose fare never moves: one sample per day for 120 days,
    booking windows 14 and 7 days ahead, all at 500.
    """
    points = []
    start = AS_OF - timedelta(days=120)
    for offset in range(120):
        observed = start + timedelta(days=offset)
        for window in (14, 7):
            points.append(make_point("LHR-JFK", 500.0, observed,
                                     observed + timedelta(days=window)))
    return points


@pytest.fixture
def rising_series() -> List[HistoricalPricePoint]:
    """A route whose fare rises 5 a day over 60 days, 7 and 14 day windows."""
    points = []
    start = AS_OF - timedelta(days=60)
    for offset in range(60):
        observed = start + timedelta(days=offset)
        for window in (14, 7):
            points.append(make_point("LHR-KUL", 600.0 + offset * 5, observed,
                                     observed + timedelta(days=window)))
    return points
