"""Recommend items loved by users with a similar media-kind mix."""
import logging
from datetime import timedelta

from moviematch_recommendation_service.algorithms.base import (
    Candidate,
    RecommendationAlgorithm,
    RecommendationContext,
    RecommendationResult,
    RecommendationSession,
    item_key,
)
from moviematch_recommendation_service.ml.similarity_computer import type_similarity
from moviematch_recommendation_service.ml.taste_profile import type_distribution
from moviematch_recommendation_service.utils import utc_now

logger = logging.getLogger(__name__)

ACTIVE_USER_DAYS = 30
USER_SAMPLE_SIZE = 100
SIMILARITY_FLOOR = 0.7
MAX_TWINS = 10
ITEMS_PER_TWIN = 15
MIN_TWIN_RATING = 7
DOMINANT_SHARE = 50

WEIGHTS = {"similarity": 0.5, "rating": 0.3, "type_match": 0.2}


class TypeTwinsAlgorithm(RecommendationAlgorithm):
    """
    Twins are users whose movie/tv/anime/cartoon percentages are close to the
    target user's. Their well-rated items get a bonus when they belong to the
    user's dominant media kind.
    """

    name = "type_twins_v1"
    min_user_history = 3

    def generate(
        self, user_id: str, context: RecommendationContext, session: RecommendationSession
    ) -> RecommendationResult:
        watchlist = self.data.watchlist

        distribution = type_distribution(watchlist.count_by_media_kind(user_id))
        dominant_kind, dominant_share = max(distribution.items(), key=lambda kv: kv[1])
        if dominant_share < DOMINANT_SHARE:
            dominant_kind = None

        active = watchlist.get_recently_active_users(
            utc_now() - timedelta(days=ACTIVE_USER_DAYS), exclude_user_id=user_id, limit=USER_SAMPLE_SIZE
        )
        twins = []
        for other in active:
            counts = watchlist.count_by_media_kind(other)
            if not counts:
                continue
            similarity = type_similarity(distribution, type_distribution(counts))
            if similarity >= SIMILARITY_FLOOR:
                twins.append((other, similarity))
        twins.sort(key=lambda pair: (-pair[1], pair[0]))
        twins = twins[:MAX_TWINS]

        if not twins:
            logger.info(f"{self.name}: no type twins for {user_id} among {len(active)} active users")
            return RecommendationResult.empty()

        candidates: dict[str, Candidate] = {}
        for twin_id, similarity in twins:
            for entry in watchlist.get_rated_completed(twin_id, min_rating=MIN_TWIN_RATING, limit=ITEMS_PER_TWIN):
                rating = entry.user_rating
                kind_bonus = 1.0 if dominant_kind is not None and entry.media_kind == dominant_kind else 0.5
                raw = (
                    WEIGHTS["similarity"] * similarity
                    + WEIGHTS["rating"] * rating / 10
                    + WEIGHTS["type_match"] * kind_bonus
                )

                key = item_key(entry.external_item_id, entry.media_kind)
                existing = candidates.get(key)
                if existing is None:
                    candidates[key] = Candidate(
                        external_item_id=entry.external_item_id,
                        media_kind=entry.media_kind,
                        title=entry.title,
                        raw_score=raw,
                        sources=[twin_id],
                    )
                else:
                    existing.raw_score = max(existing.raw_score, raw)
                    existing.sources.append(twin_id)

        return self.finalize(user_id, list(candidates.values()), context, session)
