"""
Historical Data Collector
=========================

Builds the historical price series: weekly observation dates crossed with
fixed booking windows, a real quote per sample where a provider has one,
and a synthetic fare otherwise. Also summarizes a route's series into the
statistics the enhanced model consumes.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .schemas import HistoricalPricePoint, SeasonalPeriod
from .seasonal import SeasonalReferenceTable
from .store import HistoricalDataStore

logger = logging.getLogger(__name__)

BOOKING_WINDOWS = [7, 14, 21, 30, 45, 60, 90]


def is_holiday(day: date) -> bool:
    """Christmas/New Year, Easter and summer holiday periods."""
    return (
        (day.month == 12 and day.day >= 20)
        or (day.month == 1 and day.day <= 7)
        or day.month in (3, 4, 7, 8)
    )


def seasonal_period(month: int) -> SeasonalPeriod:
    if month in (6, 7, 8, 12):
        return SeasonalPeriod.PEAK
    if month in (1, 2, 9, 10):
        return SeasonalPeriod.LOW
    return SeasonalPeriod.SHOULDER


def booking_multiplier(days_ahead: int) -> float:
    """Early-bird discount down to a last-minute premium."""
    if days_ahead >= 90:
        return 0.85
    if days_ahead >= 60:
        return 0.9
    if days_ahead >= 30:
        return 1.0
    if days_ahead >= 14:
        return 1.1
    if days_ahead >= 7:
        return 1.25
    return 1.5


def make_point(route: str, price: float, observed: date, departure: date,
               currency: str = "GBP", source: str = "synthetic") -> HistoricalPricePoint:
    """Build a price point with its calendar fields derived from the departure date."""
    weekday = departure.weekday()
    return HistoricalPricePoint(
        route=route.upper(),
        price=price,
        currency=currency,
        observed_date=observed,
        departure_date=departure,
        booking_days_ahead=(departure - observed).days,
        day_of_week=weekday,
        month=departure.month,
        year=departure.year,
        is_weekend=weekday >= 5,
        is_holiday=is_holiday(departure),
        seasonal_period=seasonal_period(departure.month),
        source=source,
    )


class HistoricalDataCollector:
    """
    Collects a price series for a set of routes.

    Samples are taken sequentially with a short pause between them so real
    providers are not flooded; the pause is injectable for tests.
    """

    SAMPLE_INTERVAL_DAYS = 7

    BASE_PRICES: Dict[str, float] = {
        "LHR-JFK": 450, "LHR-KUL": 650, "LHR-CPH": 180,
        "LHR-DXB": 520, "LHR-SYD": 1200,
    }
    DEFAULT_BASE_PRICE = 400.0
    WEEKEND_FACTOR = 1.05

    def __init__(self, chain=None, store: Optional[HistoricalDataStore] = None,
                 rng: Optional[np.random.Generator] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 delay_seconds: float = 0.1, currency: str = "GBP"):
        self.chain = chain
        self.store = store
        self.rng = rng if rng is not None else np.random.default_rng()
        self.sleep = sleep
        self.delay_seconds = delay_seconds
        self.currency = currency

    def collect(self, routes: Iterable[str], start_date: date, end_date: date,
                windows: Optional[List[int]] = None) -> List[HistoricalPricePoint]:
        """
        Sample every route weekly between two dates.

        Args:
            routes: Routes as "ORIGIN-DEST"
            start_date: First observation date
            end_date: Observation dates stay strictly before this
            windows: Booking windows in days (defaults to 7..90)

        Returns:
            The collected points, also appended to the store when one is set
        """
        windows = windows or BOOKING_WINDOWS
        total_days = (end_date - start_date).days
        today = date.today()

        points: List[HistoricalPricePoint] = []
        for route in routes:
            route = route.upper()
            origin, destination = route.split("-")
            real = 0

            for offset in range(0, total_days, self.SAMPLE_INTERVAL_DAYS):
                observed = start_date + timedelta(days=offset)

                for window in windows:
                    departure = observed + timedelta(days=window)
                    point = None

                    # Providers only quote future departures
                    if self.chain is not None and departure >= today:
                        quote = self.chain.cheapest_or_exact(
                            origin, destination, departure, currency=self.currency
                        )
                        if quote is not None:
                            point = make_point(route, quote.price, observed, departure,
                                               self.currency, source=quote.provider)
                            real += 1

                    if point is None:
                        point = make_point(
                            route,
                            self.generate_synthetic_price(route, departure, window),
                            observed, departure, self.currency,
                        )
                    points.append(point)

                    if self.delay_seconds > 0:
                        self.sleep(self.delay_seconds)

            logger.info("Collected %s: %d samples (%d real)",
                        route, sum(1 for p in points if p.route == route), real)

        if self.store is not None:
            self.store.append(points)
        return points

    def generate_synthetic_price(self, route: str, departure: date, days_ahead: int) -> float:
        """
        Plausible fare from route base price, season, booking window and noise.
        """
        base = self.BASE_PRICES.get(route.upper(), self.DEFAULT_BASE_PRICE)
        seasonal = SeasonalReferenceTable.SEASONAL_MULTIPLIERS[departure.month - 1]
        noise = 0.8 + self.rng.random() * 0.4
        weekend = self.WEEKEND_FACTOR if departure.weekday() >= 5 else 1.0

        return float(round(base * seasonal * booking_multiplier(days_ahead) * noise * weekend))


@dataclass
class RouteHistory:
    """Summary statistics of one route's observed series."""
    route: str
    total_data_points: int
    date_range: Tuple[date, date]
    seasonal_trends: Dict[int, Dict[str, float]] = field(default_factory=dict)
    booking_window_analysis: Dict[int, Dict[str, float]] = field(default_factory=dict)
    day_of_week_trends: Dict[int, Dict[str, float]] = field(default_factory=dict)
    recent_prices: List[float] = field(default_factory=list)

    @property
    def date_range_days(self) -> int:
        return (self.date_range[1] - self.date_range[0]).days

    @property
    def seasonal_coverage(self) -> float:
        return len(self.seasonal_trends) / 12

    @property
    def booking_window_coverage(self) -> float:
        return min(len(self.booking_window_analysis) / len(BOOKING_WINDOWS), 1.0)

    @property
    def average_volatility(self) -> float:
        if not self.seasonal_trends:
            return 0.0
        return float(np.mean([m["volatility"] for m in self.seasonal_trends.values()]))

    def closest_window(self, days_ahead: int) -> Optional[int]:
        """The analyzed booking window nearest to ``days_ahead``."""
        if not self.booking_window_analysis:
            return None
        return min(sorted(self.booking_window_analysis), key=lambda w: abs(w - days_ahead))


def _coefficient_of_variation(prices: pd.Series) -> float:
    if len(prices) < 2 or prices.mean() == 0:
        return 0.0
    return round(float(prices.std(ddof=0) / prices.mean()), 2)


def analyze_route(points: List[HistoricalPricePoint], recent: int = 10) -> Optional[RouteHistory]:
    """
    Group a route's series by month, booking window and weekday.

    Returns:
        RouteHistory, or None for an empty series
    """
    if not points:
        return None

    df = pd.DataFrame([p.model_dump() for p in points])

    seasonal = {}
    for month, prices in df.groupby("month")["price"]:
        seasonal[int(month)] = {
            "average_price": float(round(prices.mean())),
            "min_price": float(prices.min()),
            "max_price": float(prices.max()),
            "volatility": _coefficient_of_variation(prices),
            "data_points": int(len(prices)),
        }

    def relative(column: str) -> Dict[int, Dict[str, float]]:
        result = {}
        for key, prices in df.groupby(column)["price"]:
            average = float(prices.mean())
            # June is the reference month where present
            baseline = seasonal.get(6, {}).get("average_price") or average
            result[int(key)] = {
                "average_price": float(round(average)),
                "price_multiplier": average / baseline if baseline else 1.0,
                "data_points": int(len(prices)),
            }
        return result

    ordered = df.sort_values(["observed_date", "booking_days_ahead"], ascending=[False, True])

    return RouteHistory(
        route=str(df["route"].iloc[0]),
        total_data_points=len(df),
        date_range=(df["observed_date"].min(), df["observed_date"].max()),
        seasonal_trends=seasonal,
        booking_window_analysis=relative("booking_days_ahead"),
        day_of_week_trends=relative("day_of_week"),
        recent_prices=[float(p) for p in ordered["price"].head(recent)],
    )
