"""Service classes"""

from moviematch_recommendation_service.services.batching import ChunkedExecutor
from moviematch_recommendation_service.services.similarity_service import SimilarityService
from moviematch_recommendation_service.services.taste_map_service import TasteMapService
from moviematch_recommendation_service.services.weighted_rating_service import WeightedRatingService

# RecommendationService, CandidateScorer and BatchService depend on the
# algorithms package and are imported from their modules directly.
__all__ = ["ChunkedExecutor", "SimilarityService", "TasteMapService", "WeightedRatingService"]
