"""Recommendation algorithms"""

from moviematch_recommendation_service.algorithms.base import (
    AlgorithmData,
    AlgorithmMetrics,
    RecommendationAlgorithm,
    RecommendationContext,
    RecommendationItem,
    RecommendationResult,
    RecommendationSession,
    normalize_score,
    normalize_scores,
)
from moviematch_recommendation_service.algorithms.registry import AlgorithmRegistry, build_default_registry

__all__ = [
    "AlgorithmData",
    "AlgorithmMetrics",
    "AlgorithmRegistry",
    "RecommendationAlgorithm",
    "RecommendationContext",
    "RecommendationItem",
    "RecommendationResult",
    "RecommendationSession",
    "build_default_registry",
    "normalize_score",
    "normalize_scores",
]
