"""
Historical Data Store
=====================

JSON-file persistence for the price series, backtest log, validation
result and A/B experiment log. Loaded once on construction and flushed
on every write; without a path the store lives in memory only.
"""

import json
import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .schemas import (
    ABTestResult,
    BacktestResult,
    HistoricalPricePoint,
    ValidationResult,
)

logger = logging.getLogger(__name__)


class HistoricalDataStore:
    """Append-only record store shared by the collector, validator and experiments."""

    def __init__(self, path: Optional[Union[str, Path]] = None,
                 freshness: timedelta = timedelta(hours=24)):
        self.path = Path(path) if path else None
        self.freshness = freshness
        self._lock = threading.Lock()

        self._series: List[HistoricalPricePoint] = []
        self._series_updated: Optional[datetime] = None
        self._series_version = 0
        self._backtests: List[BacktestResult] = []
        self._validation: Optional[ValidationResult] = None
        self._ab_results: List[ABTestResult] = []
        self._assignments: Dict[str, str] = {}

        if self.path and self.path.exists():
            self._load()

    # ------------------------------------------------------------------
    # Price series
    # ------------------------------------------------------------------

    def append(self, points: Iterable[HistoricalPricePoint]) -> int:
        """Append price points to the series. Returns the number appended."""
        new_points = list(points)
        with self._lock:
            self._series.extend(new_points)
            self._series_version += 1
            self._series_updated = datetime.now()
            self._flush()
        return len(new_points)

    def load_series(self, route: Optional[str] = None) -> List[HistoricalPricePoint]:
        """Snapshot of the series, optionally restricted to one route."""
        series = list(self._series)
        if route is None:
            return series
        return [p for p in series if p.route == route.upper()]

    @property
    def series_version(self) -> int:
        """Counter bumped on every append; readers compare it to detect new points."""
        return self._series_version

    def is_series_fresh(self, now: Optional[datetime] = None) -> bool:
        if not self._series or self._series_updated is None:
            return False
        return (now or datetime.now()) - self._series_updated < self.freshness

    # ------------------------------------------------------------------
    # Backtests and validation
    # ------------------------------------------------------------------

    def save_backtest_log(self, results: Iterable[BacktestResult]) -> None:
        with self._lock:
            self._backtests = list(results)
            self._flush()

    def load_backtest_log(self) -> List[BacktestResult]:
        return list(self._backtests)

    def save_validation(self, result: ValidationResult) -> None:
        with self._lock:
            self._validation = result
            self._flush()

    def load_validation(self, now: Optional[datetime] = None) -> Optional[ValidationResult]:
        """The cached validation result, or None when missing or stale."""
        result = self._validation
        if result is None:
            return None
        if (now or datetime.now()) - result.computed_at >= self.freshness:
            return None
        return result

    # ------------------------------------------------------------------
    # A/B experiment log
    # ------------------------------------------------------------------

    def append_ab_result(self, result: ABTestResult) -> None:
        with self._lock:
            self._ab_results.append(result)
            self._flush()

    def load_ab_results(self) -> List[ABTestResult]:
        return list(self._ab_results)

    def get_assignment(self, user_id: str) -> Optional[str]:
        return self._assignments.get(user_id)

    def save_assignment(self, user_id: str, variant_id: str) -> None:
        with self._lock:
            self._assignments[user_id] = variant_id
            self._flush()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _flush(self) -> None:
        """Write the full state to disk. Caller holds the lock."""
        if self.path is None:
            return

        payload = {
            "series_updated": self._series_updated.isoformat() if self._series_updated else None,
            "series": [p.model_dump(mode="json") for p in self._series],
            "backtests": [r.model_dump(mode="json") for r in self._backtests],
            "validation": self._validation.model_dump(mode="json") if self._validation else None,
            "ab_results": [r.model_dump(mode="json") for r in self._ab_results],
            "assignments": dict(self._assignments),
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload), encoding="utf-8")
        tmp_path.replace(self.path)

    def _load(self) -> None:
        payload = json.loads(self.path.read_text(encoding="utf-8"))

        updated = payload.get("series_updated")
        self._series_updated = datetime.fromisoformat(updated) if updated else None
        self._series = [HistoricalPricePoint.model_validate(p) for p in payload.get("series", [])]
        self._backtests = [BacktestResult.model_validate(r) for r in payload.get("backtests", [])]
        validation = payload.get("validation")
        self._validation = ValidationResult.model_validate(validation) if validation else None
        self._ab_results = [ABTestResult.model_validate(r) for r in payload.get("ab_results", [])]
        self._assignments = dict(payload.get("assignments", {}))

        logger.info(
            "Loaded store %s: %d points, %d backtests, %d A/B results",
            self.path, len(self._series), len(self._backtests), len(self._ab_results)
        )
