"""Recommend what similar users recently put on their want list."""
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
from moviematch_recommendation_service.models import WatchStatus
from moviematch_recommendation_service.utils import utc_now

logger = logging.getLogger(__name__)

MIN_OVERALL_MATCH = 0.6
MAX_SIMILAR_USERS = 15
WANT_RECENCY_DAYS = 30
TOP_USER_GENRES = 5
NEUTRAL_GENRE_MATCH = 0.5

WEIGHTS = {"similarity": 0.4, "want_frequency": 0.4, "genre_match": 0.2}


class WantOverlapAlgorithm(RecommendationAlgorithm):
    name = "want_overlap_v1"
    min_user_history = 5

    def generate(
        self, user_id: str, context: RecommendationContext, session: RecommendationSession
    ) -> RecommendationResult:
        twins = self.data.similar_users(user_id, MIN_OVERALL_MATCH, MAX_SIMILAR_USERS)
        if not twins:
            return RecommendationResult.empty()

        similarity = dict(twins)
        wants = self.data.watchlist.get_users_entries(
            list(similarity),
            (WatchStatus.WANT.value,),
            since=utc_now() - timedelta(days=WANT_RECENCY_DAYS),
        )

        candidates: dict[str, Candidate] = {}
        for entry in wants:
            key = item_key(entry.external_item_id, entry.media_kind)
            candidate = candidates.get(key)
            if candidate is None:
                candidate = Candidate(
                    external_item_id=entry.external_item_id,
                    media_kind=entry.media_kind,
                    title=entry.title,
                    signals={"similarity": 0.0, "count": 0},
                )
                candidates[key] = candidate
            count = candidate.signals["count"]
            candidate.signals["similarity"] = (
                candidate.signals["similarity"] * count + similarity.get(entry.user_id, 0.0)
            ) / (count + 1)
            candidate.signals["count"] = count + 1
            candidate.sources.append(entry.user_id)

        pool = list(candidates.values())
        if not pool:
            return RecommendationResult.empty()

        excluded = self.excluded_keys(user_id, context, session)
        preferred = self._preferred_genres(user_id)
        max_count = max(candidate.signals["count"] for candidate in pool)
        for candidate in pool:
            # Metadata is only looked up for candidates that survive the filters
            genre_match = NEUTRAL_GENRE_MATCH
            if candidate.key not in excluded and preferred:
                genres = self.data.taste_maps.get_item_genres(candidate.external_item_id, candidate.media_kind)
                if genres:
                    matching = sum(1 for genre in genres if genre in preferred)
                    genre_match = min(1.0, matching / min(len(genres), 3))
            candidate.raw_score = (
                WEIGHTS["similarity"] * candidate.signals["similarity"]
                + WEIGHTS["want_frequency"] * candidate.signals["count"] / max_count
                + WEIGHTS["genre_match"] * genre_match
            )

        return self.finalize(user_id, pool, context, session)

    def _preferred_genres(self, user_id: str) -> set[str]:
        taste_map = self.data.taste_maps.get_taste_map(user_id)
        ranked = sorted(taste_map["genre_profile"].items(), key=lambda kv: (-kv[1], kv[0]))
        return {genre for genre, _ in ranked[:TOP_USER_GENRES]}
