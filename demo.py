#!/usr/bin/env python3
"""
Fare Advisor Demo
=================

Walks through the fare advisor: seasonal recommendations, price
aggregation, backtest validation and the A/B experiment.
"""

import logging
import sys
from datetime import date, timedelta
from pathlib import Path

import numpy as np

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from fare_advisor.config import AdvisorConfig
from fare_advisor.service import AdvisorTools


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = AdvisorConfig.from_env()
    # Keep the demo quick and offline-friendly
    config.collection_delay_seconds = 0.0
    config.validation_routes = ["LHR-JFK", "LHR-KUL"]
    tools = AdvisorTools.from_config(config, rng=np.random.default_rng(42))

    departure = (date.today() + timedelta(days=45)).isoformat()

    print("=" * 60)
    print("Fare Advisor Demo")
    print("=" * 60)
    print()

    # 1. Capabilities
    print("1. Capabilities:")
    capabilities = tools.execute("capabilities")
    print(f"   Providers: {capabilities['providers']}")
    print(f"   Variants: {capabilities['variants']}")
    print()

    # 2. Validation
    print("2. Backtesting and validating the policy...")
    summary = tools.execute("refresh_validation")
    if "error" in summary:
        print(f"   {summary['error']}")
    else:
        validation = summary["validation"]
        print(f"   Accuracy: {validation['accuracy']:.1%} over {validation['sample_size']} trials")
        print(f"   MAE: {validation['mean_absolute_error']:.2f}")
    print()

    # 3. Predictions
    print("3. Recommendations:")
    for origin, destination, user in [("LHR", "JFK", "alice"), ("LHR", "KUL", "bob"),
                                      ("MAN", "FAO", "carol")]:
        result = tools.execute("predict_price", origin=origin, destination=destination,
                               departure_date=departure, user_id=user)
        if "error" in result:
            print(f"   {origin} -> {destination}: {result['error']}")
            continue
        prediction = result["prediction"]
        print(f"   {origin} -> {destination}: {prediction['recommendation']} at "
              f"{prediction['current_price']:.0f} {prediction['currency']} "
              f"(confidence: {prediction['confidence']}%, variant: {result['metadata']['variant_id']})")
        print(f"      {prediction['historical_context']}")
    print()

    # 4. Aggregation
    print("4. Aggregated prices (LHR -> JFK):")
    aggregated = tools.execute("aggregate_prices", origin="LHR", destination="JFK",
                               departure_date=departure)
    print(f"   Average: {aggregated['average_price']:.0f} {aggregated['currency']}")
    if not aggregated["is_default"]:
        print(f"   Range: {aggregated['min_price']:.0f} - {aggregated['max_price']:.0f} "
              f"from {', '.join(aggregated['sources'])}")
    print()

    # 5. Spotlight deals
    print("5. Spotlight deals (departing in 30 days):")
    spotlight = tools.execute("spotlight_routes")
    if not spotlight["deals"]:
        print("   No discounted buys right now")
    for deal in spotlight["deals"]:
        print(f"   {deal['route']}: {deal['total_price']:.0f} return, "
              f"{deal['discount_percentage']}% below average ({deal['confidence']}% confidence)")
    print()

    # 6. Experiment tracking
    print("6. Tracking user actions:")
    tools.execute("track_action", user_id="alice", route="LHR-JFK",
                  recommendation="BUY_NOW", user_action="BOUGHT", price=690.0)
    for metrics in tools.execute("validation_summary")["ab_test_metrics"]:
        print(f"   {metrics['variant_id']}: {metrics['total_recommendations']} recommendations, "
              f"follow rate {metrics['user_follow_rate']:.0%}")
    print()

    print("=" * 60)
    print("Demo Complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
