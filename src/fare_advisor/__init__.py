"""
Fare Advisor
============

A heuristic flight-fare advisory engine:
- Seasonal reference tables and price-position modeling
- BUY_NOW / WAIT recommendations with confidence scores
- Multi-source price aggregation
- Backtesting and statistical validation
- A/B experiments over recommendation thresholds
"""

__version__ = "1.0.0"
