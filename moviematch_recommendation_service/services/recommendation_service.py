"""Orchestrate all algorithms into one recommendation session."""
import logging
import uuid
from datetime import timedelta

from sqlalchemy.orm import Session

from moviematch_recommendation_service.algorithms.base import (
    AlgorithmData,
    RecommendationContext,
    RecommendationResult,
    RecommendationSession,
)
from moviematch_recommendation_service.algorithms.registry import AlgorithmRegistry, build_default_registry
from moviematch_recommendation_service.config import get_cooldown_days
from moviematch_recommendation_service.errors import ValidationError, require_non_negative, require_user_id
from moviematch_recommendation_service.models import COMPLETED_STATUSES
from moviematch_recommendation_service.repos import RecommendationLogRepository, WatchlistRepository
from moviematch_recommendation_service.services.candidate_scorer import CandidateScorer
from moviematch_recommendation_service.services.similarity_service import SimilarityService
from moviematch_recommendation_service.services.taste_map_service import TasteMapService
from moviematch_recommendation_service.utils import utc_now

logger = logging.getLogger(__name__)

HEAVY_USER_THRESHOLD = 500
DEFAULT_LIMIT = 12
MAX_LIMIT = 50


def temporal_context(now) -> dict:
    hour = now.hour
    if 5 <= hour < 12:
        part = "morning"
    elif 12 <= hour < 17:
        part = "afternoon"
    elif 17 <= hour < 22:
        part = "evening"
    else:
        part = "night"
    return {"hour": hour, "day_of_week": now.weekday(), "is_weekend": now.weekday() >= 5, "time_of_day": part}


class RecommendationService:
    """
    Run every registered algorithm for a user and merge the results.

    One algorithm failing or being gated out never affects the others.
    """

    def __init__(
        self,
        db: Session,
        taste_maps: TasteMapService,
        similarity: SimilarityService,
        registry: AlgorithmRegistry | None = None,
        cooldown_days: int | None = None,
    ):
        self.db = db
        self.registry = registry or build_default_registry(AlgorithmData(db, taste_maps, similarity))
        self.scorer = CandidateScorer(self.registry)
        self.cooldown_days = cooldown_days if cooldown_days is not None else get_cooldown_days()
        self.watchlist = WatchlistRepository(db)
        self.recommendation_log = RecommendationLogRepository(db)

    def create_session(self, user_id: str, history_size: int, limit: int = DEFAULT_LIMIT) -> RecommendationSession:
        now = utc_now()
        previous = self.recommendation_log.get_recent_item_keys(user_id, now - timedelta(days=self.cooldown_days))
        status_counts = self.watchlist.count_by_status(user_id)
        return RecommendationSession(
            session_id=str(uuid.uuid4()),
            start_time=now,
            previous_recommendations=previous,
            temporal_context=temporal_context(now),
            ml_features={
                "history_size": history_size,
                "want_count": status_counts.get("want", 0),
                "dropped_count": status_counts.get("dropped", 0),
            },
            sample_size=limit,
            is_heavy_user=history_size >= HEAVY_USER_THRESHOLD,
        )

    def get_recommendations(
        self,
        user_id: str,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
        source: str = "api",
        log_shown: bool = True,
    ) -> dict:
        """
        Recommendations for a user, merged across algorithms.

        Args:
            user_id: User ID
            limit: Page size (at most 50)
            offset: Page start
            source: Caller tag recorded in the context
            log_shown: Record returned items in the cooldown log

        Returns:
            Dict with session_id, recommendations and per-algorithm metrics
        """
        require_user_id(user_id)
        require_non_negative("limit", limit)
        require_non_negative("offset", offset)
        limit = min(limit, MAX_LIMIT)

        history_size = self.watchlist.count_user_entries(user_id, statuses=COMPLETED_STATUSES)
        session = self.create_session(user_id, history_size, limit)
        context = RecommendationContext(source=source, cooldown_days=self.cooldown_days, user_history_size=history_size)

        results = {}
        metrics = {}
        for algorithm in self.registry:
            if history_size < algorithm.min_user_history:
                metrics[algorithm.name] = {"skipped": "not enough history", **RecommendationResult.empty().metrics.to_dict()}
                continue
            result = algorithm.execute(user_id, context, session)
            results[algorithm.name] = result.recommendations
            metrics[algorithm.name] = result.metrics.to_dict()

        recommendations = self.scorer.merge(results, session, limit=limit, offset=offset)

        if log_shown and recommendations:
            self.recommendation_log.log_shown(
                user_id,
                [
                    {
                        "external_item_id": item.external_item_id,
                        "media_kind": item.media_kind,
                        "algorithm": item.algorithm,
                        "score": item.score,
                    }
                    for item in recommendations
                ],
                session_id=session.session_id,
            )

        logger.info(
            f"✓ {len(recommendations)} recommendations for {user_id} "
            f"from {len(results)}/{len(self.registry)} algorithms (session {session.session_id})"
        )
        return {
            "session_id": session.session_id,
            "user_id": user_id,
            "recommendations": [item.to_dict() for item in recommendations],
            "metrics": metrics,
            "context": session.temporal_context,
        }

    def run_algorithm(self, name: str, user_id: str) -> RecommendationResult:
        """Run a single registered algorithm, gate included."""
        require_user_id(user_id)
        algorithm = self.registry.get(name)
        if algorithm is None:
            raise ValidationError(f"Unknown algorithm: {name}")
        session = self.create_session(user_id, self.watchlist.count_user_entries(user_id, statuses=COMPLETED_STATUSES))
        return algorithm.execute(user_id, RecommendationContext(cooldown_days=self.cooldown_days), session)
