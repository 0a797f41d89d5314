"""Recommend top-rated items of users with a matching overall taste."""
import logging

from moviematch_recommendation_service.algorithms.base import (
    RecommendationAlgorithm,
    RecommendationContext,
    RecommendationResult,
    RecommendationSession,
    collect_twin_candidates,
    score_twin_candidates,
)
from moviematch_recommendation_service.models import COMPLETED_STATUSES

logger = logging.getLogger(__name__)

MIN_OVERALL_MATCH = 0.7
MAX_SIMILAR_USERS = 20
ITEMS_PER_USER = 10

# similarity, rating, co-occurrence
WEIGHTS = (0.5, 0.3, 0.2)


class TasteMatchAlgorithm(RecommendationAlgorithm):
    name = "taste_match_v1"
    min_user_history = 10

    def generate(
        self, user_id: str, context: RecommendationContext, session: RecommendationSession
    ) -> RecommendationResult:
        twins = self.data.similar_users(user_id, MIN_OVERALL_MATCH, MAX_SIMILAR_USERS)
        if not twins:
            logger.info(f"{self.name}: no similar users for {user_id}")
            return RecommendationResult.empty()

        similarity = dict(twins)
        entries = self.data.watchlist.get_users_entries(list(similarity), COMPLETED_STATUSES)
        candidates = collect_twin_candidates(entries, similarity, per_user_limit=ITEMS_PER_USER)
        score_twin_candidates(candidates, WEIGHTS)

        return self.finalize(user_id, candidates, context, session)
