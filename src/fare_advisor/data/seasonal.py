"""
Seasonal Reference Table
========================

Static per-route, per-month fare statistics with a generic seasonal
fallback for routes that have no entry.
"""

import logging
from typing import Dict, List, Optional, Tuple

from .schemas import RouteSeasonalProfile
from ..errors import UnknownRoute

logger = logging.getLogger(__name__)

GENERIC_ROUTE = "GENERIC"


class SeasonalReferenceTable:
    """Per-route monthly price statistics used as the model's prior."""

    # (average, min, max, variation) for months January..December
    ROUTE_PROFILES: Dict[str, List[Tuple[float, float, float, float]]] = {
        "LHR-KUL": [
            (650, 580, 720, 0.15), (620, 550, 690, 0.18), (680, 610, 750, 0.16),
            (720, 650, 790, 0.14), (750, 680, 820, 0.13), (820, 750, 890, 0.12),
            (880, 810, 950, 0.11), (860, 790, 930, 0.12), (720, 650, 790, 0.14),
            (680, 610, 750, 0.16), (740, 670, 810, 0.13), (820, 750, 890, 0.12),
        ],
        "LHR-JFK": [
            (420, 350, 490, 0.20), (380, 320, 440, 0.22), (450, 380, 520, 0.18),
            (520, 450, 590, 0.16), (580, 510, 650, 0.15), (680, 610, 750, 0.12),
            (750, 680, 820, 0.11), (720, 650, 790, 0.12), (520, 450, 590, 0.16),
            (480, 410, 550, 0.17), (450, 380, 520, 0.18), (520, 450, 590, 0.16),
        ],
        "DXB-LHR": [
            (480, 420, 540, 0.18), (450, 390, 510, 0.20), (520, 460, 580, 0.16),
            (580, 520, 640, 0.14), (620, 560, 680, 0.13), (680, 620, 740, 0.12),
            (750, 690, 810, 0.11), (720, 660, 780, 0.12), (580, 520, 640, 0.14),
            (540, 480, 600, 0.16), (520, 460, 580, 0.16), (580, 520, 640, 0.14),
        ],
        "LAX-HND": [
            (850, 750, 950, 0.16), (820, 720, 920, 0.18), (900, 800, 1000, 0.15),
            (950, 850, 1050, 0.14), (1000, 900, 1100, 0.13), (1100, 1000, 1200, 0.12),
            (1200, 1100, 1300, 0.11), (1150, 1050, 1250, 0.12), (950, 850, 1050, 0.14),
            (900, 800, 1000, 0.15), (850, 750, 950, 0.16), (950, 850, 1050, 0.14),
        ],
        "SFO-NRT": [
            (780, 680, 880, 0.17), (750, 650, 850, 0.19), (820, 720, 920, 0.16),
            (880, 780, 980, 0.15), (920, 820, 1020, 0.14), (1000, 900, 1100, 0.13),
            (1100, 1000, 1200, 0.12), (1050, 950, 1150, 0.13), (880, 780, 980, 0.15),
            (820, 720, 920, 0.16), (780, 680, 880, 0.17), (880, 780, 980, 0.15),
        ],
        "JFK-CDG": [
            (420, 360, 480, 0.19), (390, 330, 450, 0.21), (460, 400, 520, 0.17),
            (520, 460, 580, 0.15), (580, 520, 640, 0.14), (680, 620, 740, 0.12),
            (750, 690, 810, 0.11), (720, 660, 780, 0.12), (520, 460, 580, 0.15),
            (480, 420, 540, 0.17), (460, 400, 520, 0.17), (520, 460, 580, 0.15),
        ],
    }

    # Generic seasonal shape for unknown routes
    SEASONAL_MULTIPLIERS = [0.8, 0.75, 0.9, 1.0, 1.1, 1.3, 1.4, 1.35, 1.0, 0.9, 0.85, 1.1]
    GENERIC_VARIATION = 0.15

    def __init__(self, default_base_price: float = 400.0,
                 extra_profiles: Optional[Dict[str, List[Tuple[float, float, float, float]]]] = None):
        self.default_base_price = default_base_price
        self._profiles: Dict[Tuple[str, int], RouteSeasonalProfile] = {}

        rows = dict(self.ROUTE_PROFILES)
        if extra_profiles:
            rows.update(extra_profiles)

        for route, months in rows.items():
            if len(months) != 12:
                raise ValueError(f"Route {route} must define 12 monthly profiles")
            for month, (avg, low, high, variation) in enumerate(months, start=1):
                self._profiles[(route, month)] = RouteSeasonalProfile(
                    route=route,
                    month=month,
                    average_price=avg,
                    min_price=low,
                    max_price=high,
                    price_variation=variation,
                )

    @property
    def routes(self) -> List[str]:
        """Routes with a specific seasonal table."""
        return sorted({route for route, _ in self._profiles})

    def has_route(self, route: str) -> bool:
        return (route.upper(), 1) in self._profiles

    def get(self, route: str, month: int) -> RouteSeasonalProfile:
        """
        Look up a route's profile for a month.

        Raises:
            UnknownRoute: If the route has no table entry
        """
        self._check_month(month)
        profile = self._profiles.get((route.upper(), month))
        if profile is None:
            raise UnknownRoute(route)
        return profile

    def lookup(self, route: str, month: int) -> Tuple[RouteSeasonalProfile, bool]:
        """
        Get the route profile, falling back to the generic seasonal curve.

        Returns:
            Tuple of (profile, is_generic)
        """
        try:
            return self.get(route, month), False
        except UnknownRoute:
            logger.debug("No seasonal table for %s, using generic curve", route)
            return self.generic_profile(month), True

    def generic_profile(self, month: int) -> RouteSeasonalProfile:
        """Synthesize a profile from the generic seasonal multipliers."""
        self._check_month(month)
        seasonal = self.default_base_price * self.SEASONAL_MULTIPLIERS[month - 1]

        return RouteSeasonalProfile(
            route=GENERIC_ROUTE,
            month=month,
            average_price=round(seasonal),
            min_price=round(seasonal * 0.8),
            max_price=round(seasonal * 1.2),
            price_variation=self.GENERIC_VARIATION,
        )

    def route_profiles(self, route: str) -> List[RouteSeasonalProfile]:
        """All twelve monthly profiles for a route (generic when unknown)."""
        return [self.lookup(route, month)[0] for month in range(1, 13)]

    @staticmethod
    def _check_month(month: int) -> None:
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be 1-12, got {month}")
