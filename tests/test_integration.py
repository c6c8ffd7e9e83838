"""
Integration Tests
=================

End-to-end flows across collection, validation, prediction and experiments.
"""

import pytest
import numpy as np
from datetime import date, datetime, timedelta

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fare_advisor.config import AdvisorConfig
from fare_advisor.data.collector import HistoricalDataCollector
from fare_advisor.data.schemas import Recommendation, UserAction
from fare_advisor.data.store import HistoricalDataStore
from fare_advisor.experiments.ab_testing import ABTestingFramework
from fare_advisor.models.enhanced import EnhancedRecommendationModel
from fare_advisor.models.recommendation import RecommendationModel
from fare_advisor.service.tools import AdvisorTools
from fare_advisor.validation.validator import StatisticalValidator


@pytest.mark.integration
class TestEndToEndPipeline:
    """End-to-end pipeline tests."""

    def test_collect_validate_predict(self, tmp_path):
        """Test validation figures flow into a served prediction."""
        store = HistoricalDataStore(tmp_path / "store.json")
        model = RecommendationModel(rng=np.random.default_rng(42))
        validator = StatisticalValidator(
            store,
            collector=HistoricalDataCollector(rng=np.random.default_rng(1), delay_seconds=0),
            model=model,
            routes=["LHR-JFK", "LHR-KUL"],
        )
        now = datetime.now()

        # Step 1: Collect, backtest and validate
        validation = validator.refresh(now)
        assert validation is not None
        assert {p.route for p in store.load_series()} == {"LHR-JFK", "LHR-KUL"}

        # Step 2: Serve a validated prediction
        departure = date.today() + timedelta(days=30)
        validated = validator.validated_prediction(500, "LHR", "JFK", departure,
                                                   user_id="user-42", now=now)
        assert validated.statistical_confidence.sample_size == validation.sample_size
        assert validated.statistical_confidence.data_quality.route_coverage == 2
        assert validated.ab_test_variant in {"conservative", "balanced", "aggressive"}

        # Step 3: The cached validation survives a restart
        reloaded = HistoricalDataStore(tmp_path / "store.json")
        assert reloaded.load_validation(now) == validation
        assert len(reloaded.load_series()) == len(store.load_series())

    def test_enhanced_model_over_collected_history(self, memory_store, as_of):
        """Test the enhanced model reads a collected series."""
        collector = HistoricalDataCollector(store=memory_store, rng=np.random.default_rng(3),
                                            delay_seconds=0)
        collector.collect(["LHR-JFK"], as_of - timedelta(days=180), as_of)

        model = EnhancedRecommendationModel(memory_store)
        prediction = model.predict(450, "LHR", "JFK", as_of + timedelta(days=30), as_of=as_of)

        assert prediction.model_variant == "enhanced"
        assert prediction.data_quality.total_data_points == len(memory_store.load_series())
        assert prediction.data_quality.booking_window_coverage == 1.0
        assert 65 <= prediction.confidence <= 98

    def test_experiment_lifecycle(self, memory_store):
        """Test tracked actions resolve into variant standings."""
        clock_times = iter(datetime(2025, 6, 1) + timedelta(minutes=i) for i in range(1000))
        framework = ABTestingFramework(memory_store, clock=lambda: next(clock_times))

        for i in range(30):
            user = f"user-{i}"
            result = framework.track_user_action(user, "LHR-JFK", Recommendation.BUY_NOW,
                                                 UserAction.BOUGHT, 500.0)
            framework.resolve_outcome(user, result.timestamp, 550.0 if i % 3 else 450.0)

        metrics = framework.metrics()
        assert sum(m.total_recommendations for m in metrics) == 30
        assert sum(m.resolved_recommendations for m in metrics) == 30
        assert all(m.user_follow_rate in (0.0, 1.0) for m in metrics)
        assert framework.winning_variant()["winner"] is not None

    def test_tools_full_flow(self, tmp_path):
        """Test the endpoint layer from configuration to experiment tracking."""
        config = AdvisorConfig(store_path=tmp_path / "store.json", collection_delay_seconds=0,
                               validation_routes=["LHR-JFK"], validation_lookback_months=4)
        tools = AdvisorTools.from_config(config, rng=np.random.default_rng(7))
        departure = (date.today() + timedelta(days=45)).isoformat()

        summary = tools.execute("refresh_validation")
        assert summary["validation"]["sample_size"] > 0

        prediction = tools.execute("predict_price", origin="LHR", destination="JFK",
                                   departure_date=departure, user_id="alice")
        assert prediction["metadata"]["sample_size"] == summary["validation"]["sample_size"]
        assert prediction["metadata"]["price_basis"] == "exact"

        enhanced = tools.execute("predict_enhanced", origin="LHR", destination="JFK",
                                 departure_date=departure, current_price=500)
        assert enhanced["prediction"]["model_variant"] == "enhanced"

        tracked = tools.execute("track_action", user_id="alice", route="LHR-JFK",
                                recommendation=prediction["prediction"]["recommendation"],
                                user_action="BOUGHT", price=prediction["prediction"]["current_price"])
        assert tracked["variant_id"] == prediction["metadata"]["variant_id"]

        metrics = tools.execute("validation_summary")["ab_test_metrics"]
        assert sum(m["total_recommendations"] for m in metrics) == 1
