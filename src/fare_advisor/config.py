"""
Advisor Configuration
=====================

Runtime settings for the fare advisor engine, loaded from the environment.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


DEFAULT_VALIDATION_ROUTES = ["LHR-JFK", "LHR-KUL", "LHR-CPH", "LHR-DXB", "LHR-SYD"]


@dataclass
class AdvisorConfig:
    """Configuration for the advisory engine."""
    default_currency: str = "GBP"
    default_base_price: float = 400.0
    store_path: Optional[Path] = None
    validation_ttl_hours: int = 24
    validation_lookback_months: int = 6
    test_period_days: int = 90
    collection_delay_seconds: float = 0.1
    request_timeout_seconds: float = 10.0
    travelpayouts_token: Optional[str] = None
    amadeus_client_id: Optional[str] = None
    amadeus_client_secret: Optional[str] = None
    amadeus_env: str = "test"
    use_mock_provider: bool = True
    validation_routes: List[str] = field(
        default_factory=lambda: list(DEFAULT_VALIDATION_ROUTES)
    )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "AdvisorConfig":
        """Build a config from environment variables (and an optional .env file)."""
        load_dotenv(env_file)

        store_path = os.getenv("FARE_ADVISOR_STORE_PATH")
        routes = os.getenv("FARE_ADVISOR_VALIDATION_ROUTES")

        return cls(
            default_currency=os.getenv("FARE_ADVISOR_CURRENCY", "GBP"),
            default_base_price=float(os.getenv("FARE_ADVISOR_BASE_PRICE", "400")),
            store_path=Path(store_path) if store_path else None,
            validation_ttl_hours=int(os.getenv("FARE_ADVISOR_VALIDATION_TTL_HOURS", "24")),
            validation_lookback_months=int(os.getenv("FARE_ADVISOR_LOOKBACK_MONTHS", "6")),
            test_period_days=int(os.getenv("FARE_ADVISOR_TEST_PERIOD_DAYS", "90")),
            collection_delay_seconds=float(os.getenv("FARE_ADVISOR_COLLECTION_DELAY", "0.1")),
            request_timeout_seconds=float(os.getenv("FARE_ADVISOR_REQUEST_TIMEOUT", "10")),
            travelpayouts_token=os.getenv("TRAVEL_PAYOUTS_API_KEY") or None,
            amadeus_client_id=os.getenv("AMADEUS_CLIENT_ID") or None,
            amadeus_client_secret=os.getenv("AMADEUS_CLIENT_SECRET") or None,
            amadeus_env=os.getenv("AMADEUS_ENV", "test"),
            use_mock_provider=os.getenv("FARE_ADVISOR_USE_MOCK", "1") not in ("0", "false", "no"),
            validation_routes=(
                [r.strip().upper() for r in routes.split(",") if r.strip()]
                if routes else list(DEFAULT_VALIDATION_ROUTES)
            ),
        )
