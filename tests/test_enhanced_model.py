"""
Tests for Enhanced Recommendation Model
=======================================
"""

import pytest
from datetime import date, timedelta

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fare_advisor.data.collector import make_point
from fare_advisor.data.schemas import EnhancedPricePrediction, Recommendation
from fare_advisor.data.store import HistoricalDataStore
from fare_advisor.models.enhanced import EnhancedRecommendationModel
from fare_advisor.models.recommendation import RecommendationModel


JUNE_DEPARTURE = date(2025, 6, 10)


@pytest.fixture
def history_store(rising_series):
    store = HistoricalDataStore()
    store.append(rising_series)
    return store


@pytest.fixture
def enhanced(history_store, rng):
    return EnhancedRecommendationModel(history_store, fallback=RecommendationModel(rng=rng))


class TestEnhancedModel:
    """Tests for history-driven predictions."""

    def test_prediction_from_history(self, enhanced, rising_series, as_of):
        """Test a route with history yields a full enhanced prediction."""
        prediction = enhanced.predict(800, "LHR", "KUL", JUNE_DEPARTURE, as_of=as_of)

        assert isinstance(prediction, EnhancedPricePrediction)
        assert prediction.model_variant == "enhanced"
        assert prediction.data_quality.total_data_points == len(rising_series)
        assert prediction.data_quality.date_range_days == 59
        assert "data points" in prediction.historical_context

    def test_probability_and_confidence_bounds(self, enhanced, as_of):
        """Test probabilities and confidence stay within their clamps."""
        for price in [100, 650, 800, 950, 5000]:
            prediction = enhanced.predict(price, "LHR", "KUL", JUNE_DEPARTURE, as_of=as_of)

            assert 0.05 <= prediction.probability_increase <= 0.95
            assert prediction.probability_increase + prediction.probability_decrease == pytest.approx(1.0)
            assert 65 <= prediction.confidence <= 98

    def test_deterministic(self, enhanced, as_of):
        """Test the enhanced model draws no random numbers."""
        first = enhanced.predict(800, "LHR", "KUL", JUNE_DEPARTURE, as_of=as_of)
        second = enhanced.predict(800, "LHR", "KUL", JUNE_DEPARTURE, as_of=as_of)

        assert first.probability_increase == second.probability_increase
        assert first.confidence == second.confidence
        assert first.recommendation == second.recommendation

    def test_price_range_from_observed_month(self, enhanced, rising_series, as_of):
        """Test the price band comes from the stored June observations."""
        june = [p.price for p in rising_series if p.month == 6]
        prediction = enhanced.predict(800, "LHR", "KUL", JUNE_DEPARTURE, as_of=as_of)

        assert prediction.price_range.min == min(june)
        assert prediction.price_range.max == max(june)

    def test_cheap_fare_is_buy(self, enhanced, as_of):
        """Test a fare below everything seen recently is a BUY_NOW."""
        prediction = enhanced.predict(100, "LHR", "KUL", JUNE_DEPARTURE, as_of=as_of)

        assert prediction.recommendation == Recommendation.BUY_NOW

    def test_booking_window_override(self, enhanced, as_of):
        """Test an explicit booking window is accepted."""
        prediction = enhanced.predict(800, "LHR", "KUL", JUNE_DEPARTURE, as_of=as_of,
                                      booking_days_ahead=14)

        assert "Booking 14 days ahead" in prediction.historical_context

    def test_unknown_route_delegates_to_seasonal_model(self, enhanced, as_of):
        """Test routes with no history fall back to the seasonal model."""
        prediction = enhanced.predict(690, "LHR", "JFK", date(2025, 7, 15), as_of=as_of)

        assert prediction.model_variant == "simple"
        assert prediction.data_quality.total_data_points == 0
        assert prediction.model_accuracy == EnhancedRecommendationModel.FALLBACK_ACCURACY
        assert prediction.price_range.average == 750

    def test_appended_points_used_without_refresh(self, history_store, rng, as_of):
        """Test points appended after a first prediction feed the next one."""
        model = EnhancedRecommendationModel(history_store, fallback=RecommendationModel(rng=rng))
        departure = date(2025, 7, 15)

        before = model.predict(500, "LHR", "XYZ", departure, as_of=as_of)
        assert before.data_quality.total_data_points == 0

        history_store.append(
            make_point("LHR-XYZ", 480.0 + i, as_of - timedelta(days=20 - i), departure)
            for i in range(20)
        )
        after = model.predict(500, "LHR", "XYZ", departure, as_of=as_of)

        assert after.model_variant == "enhanced"
        assert after.data_quality.total_data_points == 20

    def test_history_reused_until_store_changes(self, history_store, rng, constant_series):
        """Test route statistics are cached between appends."""
        model = EnhancedRecommendationModel(history_store, fallback=RecommendationModel(rng=rng))
        first = model.history("LHR-KUL")

        assert model.history("lhr-kul") is first

        history_store.append(constant_series)
        assert model.history("LHR-KUL") is not first
        assert model.history("LHR-JFK").total_data_points == len(constant_series)

    def test_refresh_rebuilds_statistics(self, enhanced):
        """Test refresh drops cached statistics."""
        first = enhanced.history("LHR-KUL")

        enhanced.refresh()

        assert enhanced.history("LHR-KUL") is not first

    def test_band_for_unobserved_month_holds_tiny_fares(self, enhanced, as_of):
        """Test the fallback band stays ordered for fares below one unit."""
        prediction = enhanced.predict(0.4, "LHR", "KUL", date(2025, 12, 10), as_of=as_of)

        assert prediction.price_range.min == pytest.approx(0.32)
        assert prediction.price_range.max == pytest.approx(0.48)
        assert prediction.price_range.average == 0.4

    def test_non_positive_price_rejected(self, enhanced):
        """Test prices must be positive."""
        with pytest.raises(ValueError):
            enhanced.predict(0, "LHR", "KUL", JUNE_DEPARTURE)


class TestEnhancedRecentLow:
    """Tests for the observed-price recent-low check."""

    def test_below_recent_observations(self, enhanced, as_of):
        """Test a fare under every price of the last four weeks."""
        assert enhanced.is_lowest_in_recent_weeks(700, "LHR-KUL", as_of=as_of) is True

    def test_above_recent_observations(self, enhanced, as_of):
        """Test a fare within the recent range is not a recent low."""
        assert enhanced.is_lowest_in_recent_weeks(800, "LHR-KUL", as_of=as_of) is False

    def test_no_recent_observations(self, enhanced):
        """Test routes with nothing observed lately are never a recent low."""
        assert enhanced.is_lowest_in_recent_weeks(1, "LHR-KUL", as_of=date(2030, 1, 1)) is False
