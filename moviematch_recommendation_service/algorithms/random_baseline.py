"""Random baseline, reproducible per session."""
import logging
import random

from moviematch_recommendation_service.algorithms.base import (
    Candidate,
    RecommendationAlgorithm,
    RecommendationContext,
    RecommendationResult,
    RecommendationSession,
)

logger = logging.getLogger(__name__)

MIN_RATING = 6
SAMPLE_SIZE = 500


class RandomAlgorithm(RecommendationAlgorithm):
    """Items other users rated well, sampled and ordered by an RNG seeded with the session ID."""

    name = "random_v1"
    min_user_history = 0

    def generate(
        self, user_id: str, context: RecommendationContext, session: RecommendationSession
    ) -> RecommendationResult:
        keys = self.data.watchlist.get_rated_item_keys(user_id, min_rating=MIN_RATING)

        rng = random.Random(session.session_id)
        sampled = rng.sample(keys, min(len(keys), SAMPLE_SIZE))

        pool = []
        for external_item_id, media_kind, title in sampled:
            candidate = Candidate(external_item_id=external_item_id, media_kind=media_kind, title=title)
            candidate.raw_score = rng.random()
            pool.append(candidate)

        return self.finalize(user_id, pool, context, session)
