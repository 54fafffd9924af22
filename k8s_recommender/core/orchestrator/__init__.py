from .recommender import ResourceRecommender, create_recommender
from .scoring import ScoringWeights
from .state import RecommendationStage, RecommendationState
from .workflow import RecommendationWorkflow

__all__ = [
    "ResourceRecommender",
    "create_recommender",
    "ScoringWeights",
    "RecommendationStage",
    "RecommendationState",
    "RecommendationWorkflow",
]
