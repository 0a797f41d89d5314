"""Recommend twins' favourites, penalizing what twins tend to drop."""
import logging
from datetime import timedelta

from moviematch_recommendation_service.algorithms.base import (
    RecommendationAlgorithm,
    RecommendationContext,
    RecommendationResult,
    RecommendationSession,
    collect_twin_candidates,
    item_key,
    score_twin_candidates,
)
from moviematch_recommendation_service.models import COMPLETED_STATUSES, WatchStatus
from moviematch_recommendation_service.utils import utc_now

logger = logging.getLogger(__name__)

MIN_OVERALL_MATCH = 0.65
MAX_SIMILAR_USERS = 15
DROP_LOOKBACK_DAYS = 90
ITEMS_PER_USER = 15
MAX_PENALTY = 0.7

WEIGHTS = (0.5, 0.3, 0.2)


def drop_penalty(drop_count: int, twin_count: int) -> float:
    """Share of twins who dropped an item, scaled and capped at 0.7."""
    if twin_count == 0:
        return 0.0
    return min(drop_count / twin_count * MAX_PENALTY, MAX_PENALTY)


class DropPatternsAlgorithm(RecommendationAlgorithm):
    name = "drop_patterns_v1"
    min_user_history = 8

    def generate(
        self, user_id: str, context: RecommendationContext, session: RecommendationSession
    ) -> RecommendationResult:
        twins = self.data.similar_users(user_id, MIN_OVERALL_MATCH, MAX_SIMILAR_USERS)
        if not twins:
            return RecommendationResult.empty()

        similarity = dict(twins)
        watched = self.data.watchlist.get_users_entries(list(similarity), COMPLETED_STATUSES)
        rated = [entry for entry in watched if entry.user_rating is not None]
        candidates = collect_twin_candidates(rated, similarity, per_user_limit=ITEMS_PER_USER)
        score_twin_candidates(candidates, WEIGHTS)

        drops = self.data.watchlist.get_users_entries(
            list(similarity),
            (WatchStatus.DROPPED.value,),
            since=utc_now() - timedelta(days=DROP_LOOKBACK_DAYS),
        )
        drop_counts: dict[str, int] = {}
        for entry in drops:
            key = item_key(entry.external_item_id, entry.media_kind)
            drop_counts[key] = drop_counts.get(key, 0) + 1

        for candidate in candidates:
            penalty = drop_penalty(drop_counts.get(candidate.key, 0), len(twins))
            candidate.signals["penalty"] = penalty
            candidate.raw_score *= 1 - penalty

        return self.finalize(user_id, candidates, context, session)
