"""
Tests for Recommendation Model
==============================
"""

import pytest
import numpy as np
from datetime import date, timedelta

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conftest import FixedRandom
from fare_advisor.data.schemas import Recommendation
from fare_advisor.models.base import (
    BaseRecommendationModel,
    THRESHOLD,
    price_position,
    to_date,
)
from fare_advisor.models.recommendation import RecommendationModel


JULY_DEPARTURE = date(2025, 7, 15)


class TestPricePosition:
    """Tests for the shared position helper."""

    def test_position_in_band(self):
        """Test positions at the ends and middle of a band."""
        assert price_position(680, 680, 820) == 0.0
        assert price_position(820, 680, 820) == 1.0
        assert price_position(750, 680, 820) == pytest.approx(0.5)

    def test_zero_width_band_is_mid_range(self):
        """Test a degenerate band yields 0.5 rather than dividing by zero."""
        assert price_position(500, 500, 500) == 0.5

    def test_position_not_clamped(self):
        """Test prices outside the band fall outside [0, 1]."""
        assert price_position(600, 680, 820) < 0
        assert price_position(900, 680, 820) > 1

    def test_to_date_accepts_strings(self):
        """Test ISO strings and datetimes are coerced."""
        assert to_date("2025-07-15") == JULY_DEPARTURE
        assert to_date("2025-07-15T10:00:00Z") == JULY_DEPARTURE
        assert to_date(JULY_DEPARTURE) == JULY_DEPARTURE


class TestDecisionPolicy:
    """Tests for the standard and threshold policies."""

    @pytest.fixture
    def model(self):
        return RecommendationModel(rng=np.random.default_rng(0))

    def test_recent_low_buys(self, model):
        """Test the recent-low signal alone triggers BUY_NOW."""
        assert model.decide(0.1, 0.9, True) == Recommendation.BUY_NOW

    def test_low_position_buys(self, model):
        """Test prices in the lower part of the range trigger BUY_NOW."""
        assert model.decide(0.1, 0.59, False) == Recommendation.BUY_NOW

    def test_likely_rise_buys(self, model):
        """Test a likely rise triggers BUY_NOW."""
        assert model.decide(0.65, 0.9, False) == Recommendation.BUY_NOW

    def test_otherwise_wait(self, model):
        """Test a high price with no rise expected waits."""
        assert model.decide(0.64, 0.6, False) == Recommendation.WAIT

    def test_threshold_policy(self):
        """Test the threshold policy only buys on a very likely rise."""
        model = RecommendationModel(strictness=THRESHOLD)

        assert model.decide(0.8, 0.9, False) == Recommendation.BUY_NOW
        assert model.decide(0.79, 0.0, True) == Recommendation.WAIT

    def test_invalid_strictness(self):
        """Test unknown policies are rejected."""
        with pytest.raises(ValueError, match="strictness"):
            RecommendationModel(strictness="reckless")

    def test_split_probability_sums_to_one(self):
        """Test probabilities are rounded and complementary."""
        increase, decrease = BaseRecommendationModel.split_probability(0.456)

        assert increase == 0.46
        assert increase + decrease == pytest.approx(1.0)


class TestRecommendationModel:
    """Tests for seasonal-range predictions."""

    def test_lhr_jfk_july_below_range_buys(self, rng, as_of):
        """Test a fare near the July minimum on LHR-JFK is a BUY_NOW."""
        model = RecommendationModel(rng=rng)
        prediction = model.predict(690, "LHR", "JFK", JULY_DEPARTURE, as_of=as_of)

        position = price_position(690, 680, 820)
        assert position < 0.3
        assert prediction.recommendation == Recommendation.BUY_NOW
        # 0.75 before jitter; jitter is at most 0.011 for this route
        assert prediction.probability_increase >= 0.73
        assert prediction.price_range.min == 680
        assert prediction.price_range.max == 820
        assert prediction.price_range.average == 750
        assert prediction.model_variant == "simple"
        assert prediction.historical_context.startswith("July fares average £750 to £820")

    def test_unknown_route_uses_generic_profile(self, rng, as_of):
        """Test XXX-YYY in January gets the generic 320/256/384 range."""
        model = RecommendationModel(rng=rng)
        prediction = model.predict(300, "XXX", "YYY", date(2026, 1, 20), as_of=as_of)

        assert prediction.price_range.average == 320
        assert prediction.price_range.min == 256
        assert prediction.price_range.max == 384
        assert 60 <= prediction.confidence <= 95

    @pytest.mark.parametrize("price", [50, 300, 690, 750, 820, 2000])
    def test_probabilities_sum_to_one(self, rng, as_of, price):
        """Test probabilities are complementary and bounded."""
        model = RecommendationModel(rng=rng)
        prediction = model.predict(price, "LHR", "JFK", JULY_DEPARTURE, as_of=as_of)

        assert prediction.probability_increase + prediction.probability_decrease == pytest.approx(1.0)
        assert 0.1 <= prediction.probability_increase <= 0.9
        assert 60 <= prediction.confidence <= 95

    def test_probability_monotonic_in_price(self, as_of):
        """Test a higher price never raises the chance of a rise."""
        probabilities = []
        for price in [600, 690, 720, 750, 790, 820, 900]:
            model = RecommendationModel(rng=np.random.default_rng(7))
            prediction = model.predict(price, "LHR", "JFK", JULY_DEPARTURE, as_of=as_of)
            probabilities.append(prediction.probability_increase)

        assert all(a >= b for a, b in zip(probabilities, probabilities[1:]))

    def test_last_minute_raises_probability(self):
        """Test departures within two weeks add to the chance of a rise."""
        normal = RecommendationModel(rng=np.random.default_rng(3)).predict(
            750, "LHR", "JFK", JULY_DEPARTURE, as_of=JULY_DEPARTURE - timedelta(days=45)
        )
        last_minute = RecommendationModel(rng=np.random.default_rng(3)).predict(
            750, "LHR", "JFK", JULY_DEPARTURE, as_of=JULY_DEPARTURE - timedelta(days=5)
        )

        assert last_minute.probability_increase > normal.probability_increase

    def test_threshold_policy_waits_without_strong_signal(self, rng, as_of):
        """Test the threshold policy does not buy on a low price alone."""
        model = RecommendationModel(rng=rng, strictness=THRESHOLD)
        prediction = model.predict(690, "LHR", "JFK", JULY_DEPARTURE, as_of=as_of)

        assert prediction.recommendation == Recommendation.WAIT

    def test_threshold_policy_buys_last_minute_low(self, rng):
        """Test the threshold policy buys a low fare days before departure."""
        model = RecommendationModel(rng=rng, strictness=THRESHOLD)
        prediction = model.predict(690, "LHR", "JFK", JULY_DEPARTURE,
                                   as_of=JULY_DEPARTURE - timedelta(days=5))

        assert prediction.probability_increase == 0.9
        assert prediction.recommendation == Recommendation.BUY_NOW

    def test_seeded_predictions_reproducible(self, as_of):
        """Test identical seeds give identical predictions."""
        first = RecommendationModel(rng=np.random.default_rng(11)).predict(
            760, "LHR", "JFK", JULY_DEPARTURE, as_of=as_of
        )
        second = RecommendationModel(rng=np.random.default_rng(11)).predict(
            760, "LHR", "JFK", JULY_DEPARTURE, as_of=as_of
        )

        assert first.probability_increase == second.probability_increase
        assert first.confidence == second.confidence
        assert first.recommendation == second.recommendation

    @pytest.mark.parametrize("price", [0, -10])
    def test_non_positive_price_rejected(self, rng, price):
        """Test prices must be positive."""
        model = RecommendationModel(rng=rng)

        with pytest.raises(ValueError, match="positive"):
            model.predict(price, "LHR", "JFK", JULY_DEPARTURE)

    def test_currency_passed_through(self, rng, as_of):
        """Test the currency appears on the prediction and its context."""
        model = RecommendationModel(rng=rng)
        prediction = model.predict(690, "LHR", "JFK", JULY_DEPARTURE, currency="USD", as_of=as_of)

        assert prediction.currency == "USD"
        assert "$750" in prediction.historical_context


class TestRecentLow:
    """Tests for the lowest-in-recent-weeks check."""

    def test_unknown_route_never_recent_low(self, rng, as_of):
        """Test routes without a table never count as a recent low."""
        model = RecommendationModel(rng=rng)

        assert model.is_lowest_in_recent_weeks(1, "XXX-YYY", as_of=as_of) is False

    def test_very_low_price_is_recent_low(self, rng, as_of):
        """Test a fare below every simulated weekly price."""
        model = RecommendationModel(rng=rng)

        assert model.is_lowest_in_recent_weeks(100, "LHR-JFK", as_of=as_of) is True

    def test_very_high_price_is_not_recent_low(self, rng, as_of):
        """Test a fare above the widened band is never a recent low."""
        model = RecommendationModel(rng=rng)

        assert model.is_lowest_in_recent_weeks(5000, "LHR-JFK", as_of=as_of) is False


class TestExplanation:
    """Tests for recommendation explanations."""

    def test_explain_lists_factors(self, rng, as_of):
        """Test explanations carry position and booking-window factors."""
        model = RecommendationModel(rng=rng)
        prediction = model.predict(690, "LHR", "JFK", JULY_DEPARTURE, as_of=as_of)
        explanation = model.explain(prediction, JULY_DEPARTURE, as_of=as_of)

        factors = {f["factor"] for f in explanation.factors}
        assert {"price_position", "booking_window"} <= factors
        assert explanation.summary.startswith("Buy now")

        payload = explanation.to_dict()
        assert payload["recommendation"] == "BUY_NOW"
        assert "confidence" in payload["confidence_explanation"].lower()

    def test_recent_low_factor_listed(self, rng, as_of):
        """Test a fare below recent weekly prices is named in the explanation."""
        model = RecommendationModel(rng=rng)
        prediction = model.predict(100, "LHR", "JFK", JULY_DEPARTURE, as_of=as_of)
        explanation = model.explain(prediction, JULY_DEPARTURE, as_of=as_of)

        assert prediction.is_lowest_recent is True
        assert "recent_low" in {f["factor"] for f in explanation.factors}

    def test_recent_low_factor_absent_for_high_fare(self, rng, as_of):
        """Test expensive fares carry no recent-low factor."""
        model = RecommendationModel(rng=rng)
        prediction = model.predict(5000, "LHR", "JFK", JULY_DEPARTURE, as_of=as_of)
        explanation = model.explain(prediction, JULY_DEPARTURE, as_of=as_of)

        assert prediction.is_lowest_recent is False
        assert "recent_low" not in {f["factor"] for f in explanation.factors}


class TestSpotlightDeals:
    """Tests for discounted round-trip deals."""

    def test_cheap_draws_yield_top_three(self, as_of):
        """Test deep discounts are ranked and capped at three."""
        model = RecommendationModel(rng=FixedRandom(0.0))

        deals = model.spotlight_deals(as_of=as_of)

        assert len(deals) == 3
        assert all(d.recommendation == Recommendation.BUY_NOW for d in deals)
        assert all(d.discount_percentage > 10 for d in deals)
        assert all(d.departure_date == as_of + timedelta(days=30) for d in deals)
        percentages = [d.discount_percentage for d in deals]
        assert percentages == sorted(percentages, reverse=True)

    def test_round_trip_priced_against_twice_the_average(self, as_of):
        """Test both legs are sampled around the departure month's average."""
        model = RecommendationModel(rng=FixedRandom(0.0))

        deal = model.spotlight_deals(["LHR-JFK"], as_of=as_of)[0]

        # July departure: average 750
        assert deal.outbound_price == 525
        assert deal.return_price == 562
        assert deal.total_price == 1087
        assert deal.average_total == 1500
        assert deal.discount == 413
        assert deal.discount_percentage == 28

    def test_no_discount_no_deals(self, as_of):
        """Test fares above the average never make the list."""
        model = RecommendationModel(rng=FixedRandom(0.99))

        assert model.spotlight_deals(as_of=as_of) == []

    def test_limit_and_route_subset(self, as_of):
        """Test only requested routes are scanned, up to the limit."""
        model = RecommendationModel(rng=FixedRandom(0.0))

        deals = model.spotlight_deals(["LHR-JFK", "JFK-CDG"], as_of=as_of, limit=1)

        assert len(deals) == 1
        assert deals[0].route in ("LHR-JFK", "JFK-CDG")

    def test_seeded_deals_reproducible(self, as_of):
        """Test identical seeds give identical deals."""
        first = RecommendationModel(rng=np.random.default_rng(5)).spotlight_deals(as_of=as_of)
        second = RecommendationModel(rng=np.random.default_rng(5)).spotlight_deals(as_of=as_of)

        assert first == second
        assert len(first) <= 3

    def test_malformed_route_rejected(self, as_of):
        """Test routes must be ORIGIN-DESTINATION."""
        model = RecommendationModel(rng=FixedRandom(0.0))

        with pytest.raises(ValueError):
            model.spotlight_deals(["LHRJFK"], as_of=as_of)
