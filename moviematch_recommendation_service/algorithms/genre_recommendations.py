"""Recommend similar users' items in the user's dominant genres."""
import logging

from moviematch_recommendation_service.algorithms.base import (
    RecommendationAlgorithm,
    RecommendationContext,
    RecommendationResult,
    RecommendationSession,
    collect_twin_candidates,
)
from moviematch_recommendation_service.models import COMPLETED_STATUSES

logger = logging.getLogger(__name__)

DOMINANT_GENRE_SCORE = 50
MAX_DOMINANT_GENRES = 3
MIN_OVERALL_MATCH = 0.5
MAX_SIMILAR_USERS = 10
ITEMS_PER_USER = 15

WEIGHTS = {"genre_match": 0.4, "rating": 0.4, "similarity": 0.2}


class GenreRecommendationsAlgorithm(RecommendationAlgorithm):
    name = "genre_recommendations_v1"
    min_user_history = 5

    def generate(
        self, user_id: str, context: RecommendationContext, session: RecommendationSession
    ) -> RecommendationResult:
        taste_map = self.data.taste_maps.get_taste_map(user_id)
        dominant = [
            genre
            for genre, score in sorted(taste_map["genre_profile"].items(), key=lambda kv: (-kv[1], kv[0]))
            if score >= DOMINANT_GENRE_SCORE
        ][:MAX_DOMINANT_GENRES]
        if not dominant:
            logger.info(f"{self.name}: no dominant genres for {user_id}")
            return RecommendationResult.empty()

        twins = self.data.similar_users(user_id, MIN_OVERALL_MATCH, MAX_SIMILAR_USERS)
        if not twins:
            return RecommendationResult.empty()

        similarity = dict(twins)
        entries = self.data.watchlist.get_users_entries(list(similarity), COMPLETED_STATUSES)
        pool = collect_twin_candidates(entries, similarity, per_user_limit=ITEMS_PER_USER)

        excluded = self.excluded_keys(user_id, context, session)
        matched = []
        for candidate in pool:
            if candidate.key in excluded:
                continue
            genres = self.data.taste_maps.get_item_genres(candidate.external_item_id, candidate.media_kind)
            overlap = len(set(genres) & set(dominant))
            if overlap == 0:
                continue
            candidate.raw_score = (
                WEIGHTS["genre_match"] * overlap / len(dominant)
                + WEIGHTS["rating"] * candidate.signals["rating"] / 10
                + WEIGHTS["similarity"] * candidate.signals["similarity"]
            )
            matched.append(candidate)

        result = self.finalize(user_id, matched, context, session)
        result.metrics.candidates_pool_size = len(pool)
        return result
