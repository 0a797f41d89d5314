"""Repository classes"""

from moviematch_recommendation_service.repos.rating_history_repository import RatingHistoryRepository
from moviematch_recommendation_service.repos.recommendation_log_repository import RecommendationLogRepository
from moviematch_recommendation_service.repos.similarity_repository import SimilarityRepository, canonical_pair
from moviematch_recommendation_service.repos.taste_map_repository import TasteMapRepository
from moviematch_recommendation_service.repos.watchlist_repository import WatchlistRepository

__all__ = [
    "RatingHistoryRepository",
    "RecommendationLogRepository",
    "SimilarityRepository",
    "TasteMapRepository",
    "WatchlistRepository",
    "canonical_pair",
]
