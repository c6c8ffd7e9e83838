from .base import BaseRecommendationModel, STANDARD, THRESHOLD
from .recommendation import RecommendationModel
from .enhanced import EnhancedRecommendationModel
from .reasoning import FareReasoningEngine

__all__ = [
    "BaseRecommendationModel",
    "RecommendationModel",
    "EnhancedRecommendationModel",
    "FareReasoningEngine",
    "STANDARD",
    "THRESHOLD",
]
