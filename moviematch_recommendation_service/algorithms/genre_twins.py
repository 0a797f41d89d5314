"""Recommend items from users with a similar genre profile."""
import logging

from moviematch_recommendation_service.algorithms.base import (
    RecommendationAlgorithm,
    RecommendationContext,
    RecommendationResult,
    RecommendationSession,
    collect_twin_candidates,
    score_twin_candidates,
)
from moviematch_recommendation_service.ml.similarity_computer import genre_cosine_similarity
from moviematch_recommendation_service.models import COMPLETED_STATUSES

logger = logging.getLogger(__name__)

MIN_GENRE_SIMILARITY = 0.6
MAX_TWINS = 15
ITEMS_PER_USER = 10
# Each candidate costs a taste map, so fewer are inspected than for overall similarity
CANDIDATE_POOL = 50

WEIGHTS = (0.5, 0.3, 0.2)


class GenreTwinsAlgorithm(RecommendationAlgorithm):
    name = "genre_twins_v1"
    min_user_history = 10

    def generate(
        self, user_id: str, context: RecommendationContext, session: RecommendationSession
    ) -> RecommendationResult:
        taste_map = self.data.taste_maps.get_taste_map(user_id)
        if taste_map["is_empty"]:
            return RecommendationResult.empty()

        twins = []
        for other in self.data.similarity.find_candidates(user_id, limit=CANDIDATE_POOL):
            other_map = self.data.taste_maps.get_taste_map(other)
            if other_map["is_empty"]:
                continue
            similarity = genre_cosine_similarity(taste_map["genre_profile"], other_map["genre_profile"])
            if similarity >= MIN_GENRE_SIMILARITY:
                twins.append((other, similarity))

        twins.sort(key=lambda pair: (-pair[1], pair[0]))
        twins = twins[:MAX_TWINS]
        if not twins:
            return RecommendationResult.empty()

        similarity = dict(twins)
        entries = self.data.watchlist.get_users_entries(list(similarity), COMPLETED_STATUSES)
        candidates = collect_twin_candidates(entries, similarity, per_user_limit=ITEMS_PER_USER)
        score_twin_candidates(candidates, WEIGHTS)
        return self.finalize(user_id, candidates, context, session)
