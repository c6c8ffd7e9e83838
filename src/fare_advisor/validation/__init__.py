from .backtester import (
    Backtester,
    BacktestPredictor,
    ModelBacktestPredictor,
    TrendBacktestPredictor,
    validate,
)
from .validator import StatisticalValidator

__all__ = [
    "Backtester",
    "BacktestPredictor",
    "ModelBacktestPredictor",
    "TrendBacktestPredictor",
    "StatisticalValidator",
    "validate",
]
