"""SQLAlchemy models"""

from moviematch_recommendation_service.models.base import Base
from moviematch_recommendation_service.models.rating_history import RatingAction, RatingHistoryEntry
from moviematch_recommendation_service.models.recommendation_log import RecommendationLog
from moviematch_recommendation_service.models.similarity_score import SimilarityScore
from moviematch_recommendation_service.models.taste_map import PersonProfile, TasteMapRecord
from moviematch_recommendation_service.models.watch_entry import (
    COMPLETED_STATUSES,
    MEDIA_KINDS,
    WatchEntry,
    WatchStatus,
)

__all__ = [
    "Base",
    "COMPLETED_STATUSES",
    "MEDIA_KINDS",
    "PersonProfile",
    "RatingAction",
    "RatingHistoryEntry",
    "RecommendationLog",
    "SimilarityScore",
    "TasteMapRecord",
    "WatchEntry",
    "WatchStatus",
]
