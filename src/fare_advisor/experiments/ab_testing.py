"""
A/B Experiment Framework
========================

Splits users across recommendation-threshold variants and measures which
variant's advice turns out right most often.

The result log is append-only. Resolving an outcome appends a new record
with the same (user_id, timestamp) key; metrics read the latest record per
key and are recomputed from the full log on every call.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from ..data.schemas import (
    ABTestMetrics,
    ABTestResult,
    ABTestVariant,
    ConfidenceInterval,
    PricePrediction,
    PriceOutcome,
    Recommendation,
    UserAction,
    VariantAlgorithm,
)
from ..data.store import HistoricalDataStore

logger = logging.getLogger(__name__)

Z_95 = 1.96


def hash_user_id(user_id: str) -> int:
    """Stable non-negative 32-bit string hash (h * 31 + c, wrapped to int32)."""
    h = 0
    for ch in user_id:
        h = (h << 5) - h + ord(ch)
        h = (h + 2 ** 31) % 2 ** 32 - 2 ** 31
    return abs(h)


class ABTestingFramework:
    """Sticky variant assignment, result logging and per-variant metrics."""

    VARIANTS: List[ABTestVariant] = [
        ABTestVariant(
            id="conservative",
            name="Conservative",
            description="High confidence threshold (85%) for BUY_NOW recommendations",
            confidence_threshold=85,
            algorithm=VariantAlgorithm.CONSERVATIVE,
        ),
        ABTestVariant(
            id="balanced",
            name="Balanced",
            description="Medium confidence threshold (75%) for BUY_NOW recommendations",
            confidence_threshold=75,
            algorithm=VariantAlgorithm.BALANCED,
        ),
        ABTestVariant(
            id="aggressive",
            name="Aggressive",
            description="Lower confidence threshold (65%) for BUY_NOW recommendations",
            confidence_threshold=65,
            algorithm=VariantAlgorithm.AGGRESSIVE,
        ),
    ]

    # Minimum probability of a rise per algorithm
    PROBABILITY_THRESHOLDS = {
        VariantAlgorithm.CONSERVATIVE: 0.8,
        VariantAlgorithm.BALANCED: 0.75,
        VariantAlgorithm.AGGRESSIVE: 0.6,
    }

    def __init__(self, store: HistoricalDataStore,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.clock = clock

    @property
    def variants(self) -> List[ABTestVariant]:
        return list(self.VARIANTS)

    def get_variant(self, variant_id: str) -> ABTestVariant:
        for variant in self.VARIANTS:
            if variant.id == variant_id:
                return variant
        raise KeyError(f"Unknown variant: {variant_id}")

    def assign(self, user_id: str) -> ABTestVariant:
        """Variant for a user; the first assignment is persisted and reused."""
        existing = self.store.get_assignment(user_id)
        if existing is not None:
            return self.get_variant(existing)

        variant = self.VARIANTS[hash_user_id(user_id) % len(self.VARIANTS)]
        self.store.save_assignment(user_id, variant.id)
        logger.debug("Assigned %s to %s", user_id, variant.id)
        return variant

    def apply_variant(self, prediction: PricePrediction,
                      variant: ABTestVariant) -> PricePrediction:
        """
        Re-decide a prediction's recommendation under a variant's thresholds.

        Only the recommendation changes.
        """
        meets_confidence = prediction.confidence >= variant.confidence_threshold
        meets_probability = (
            prediction.probability_increase >= self.PROBABILITY_THRESHOLDS[variant.algorithm]
        )

        if variant.algorithm == VariantAlgorithm.AGGRESSIVE:
            buy = meets_confidence or meets_probability
        else:
            buy = meets_confidence and meets_probability

        recommendation = Recommendation.BUY_NOW if buy else Recommendation.WAIT
        return prediction.model_copy(update={"recommendation": recommendation})

    def record_result(self, result: ABTestResult) -> ABTestResult:
        self.store.append_ab_result(result)
        return result

    def track_user_action(self, user_id: str, route: str, recommendation: Recommendation,
                          user_action: UserAction, price_at_recommendation: float,
                          timestamp: Optional[datetime] = None) -> ABTestResult:
        """Log what a user did with a recommendation; the outcome is resolved later."""
        variant = self.assign(user_id)
        result = ABTestResult(
            variant_id=variant.id,
            user_id=user_id,
            route=route.upper(),
            recommendation=recommendation,
            user_action=user_action,
            timestamp=timestamp or self.clock(),
            price_at_recommendation=price_at_recommendation,
        )
        return self.record_result(result)

    def resolve_outcome(self, user_id: str, timestamp: datetime,
                        price_after: float) -> ABTestResult:
        """
        Record the later price for a logged recommendation.

        BUY_NOW succeeds when the price rose, WAIT when it fell. Savings are
        what following the advice saved (negative when it cost money).

        Raises:
            KeyError: If no record exists for (user_id, timestamp)
        """
        latest = self.latest_results()
        original = latest.get((user_id, timestamp))
        if original is None:
            raise KeyError(f"No A/B result for user {user_id} at {timestamp.isoformat()}")

        price = original.price_at_recommendation
        outcome = (
            PriceOutcome.PRICE_INCREASED if price_after > price
            else PriceOutcome.PRICE_DECREASED
        )
        if original.recommendation == Recommendation.BUY_NOW:
            success = outcome == PriceOutcome.PRICE_INCREASED
            savings = price_after - price
        else:
            success = outcome == PriceOutcome.PRICE_DECREASED
            savings = price - price_after

        resolved = original.model_copy(update={
            "actual_outcome": outcome,
            "success": success,
            "price_after": price_after,
            "savings": round(savings, 2),
        })
        return self.record_result(resolved)

    def latest_results(self) -> Dict[tuple, ABTestResult]:
        """Latest record per (user_id, timestamp) key."""
        latest: Dict[tuple, ABTestResult] = {}
        for result in self.store.load_ab_results():
            latest[result.key] = result
        return latest

    def metrics(self) -> List[ABTestMetrics]:
        """Per-variant metrics over the whole log, in variant order."""
        results = list(self.latest_results().values())
        return [self._variant_metrics(v.id, [r for r in results if r.variant_id == v.id])
                for v in self.VARIANTS]

    @staticmethod
    def _variant_metrics(variant_id: str, results: List[ABTestResult]) -> ABTestMetrics:
        if not results:
            return ABTestMetrics(variant_id=variant_id)

        total = len(results)
        buy_now = sum(1 for r in results if r.recommendation == Recommendation.BUY_NOW)

        resolved = [r for r in results if r.actual_outcome != PriceOutcome.UNKNOWN]
        success_rate = (
            sum(1 for r in resolved if r.success) / len(resolved) if resolved else 0.0
        )

        savings = [r.savings for r in results if r.savings is not None]
        followed = sum(
            1 for r in results
            if (r.recommendation == Recommendation.BUY_NOW and r.user_action == UserAction.BOUGHT)
            or (r.recommendation == Recommendation.WAIT and r.user_action == UserAction.WAITED)
        )

        if resolved:
            margin = Z_95 * np.sqrt(success_rate * (1 - success_rate) / len(resolved))
            interval = ConfidenceInterval(
                lower=round(max(0.0, success_rate - margin), 4),
                upper=round(min(1.0, success_rate + margin), 4),
            )
        else:
            interval = ConfidenceInterval(lower=0.0, upper=0.0)

        return ABTestMetrics(
            variant_id=variant_id,
            total_recommendations=total,
            buy_now_recommendations=buy_now,
            wait_recommendations=total - buy_now,
            resolved_recommendations=len(resolved),
            success_rate=round(success_rate, 4),
            average_savings=round(float(np.mean(savings)), 2) if savings else 0.0,
            user_follow_rate=round(followed / total, 4),
            confidence_interval=interval,
        )

    def winning_variant(self) -> Dict[str, Any]:
        """
        Leader by success rate and whether its lead is significant.

        Significance is a non-overlap heuristic: the leader's interval lower
        bound must exceed the runner-up's upper bound. It approximates, and
        is weaker than, a two-proportion test.

        Returns:
            Dict with winner (ABTestVariant or None) and significant
        """
        ranked = sorted(
            (m for m in self.metrics() if m.resolved_recommendations > 0),
            key=lambda m: m.success_rate,
            reverse=True,
        )
        if not ranked:
            return {"winner": None, "significant": False}

        best = ranked[0]
        significant = (
            len(ranked) > 1
            and best.confidence_interval.lower > ranked[1].confidence_interval.upper
        )
        return {"winner": self.get_variant(best.variant_id), "significant": significant}
