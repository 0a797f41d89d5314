"""Contract shared by every recommendation algorithm."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from moviematch_recommendation_service.ml.weighted_rating import round_half_up
from moviematch_recommendation_service.models import COMPLETED_STATUSES
from moviematch_recommendation_service.repos import (
    RecommendationLogRepository,
    SimilarityRepository,
    TasteMapRepository,
    WatchlistRepository,
)
from moviematch_recommendation_service.services.similarity_service import SimilarityService
from moviematch_recommendation_service.services.taste_map_service import TasteMapService
from moviematch_recommendation_service.utils import utc_now

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_DAYS = 7
MAX_RECOMMENDATIONS = 12


def item_key(external_item_id: int, media_kind: str) -> str:
    return f"{external_item_id}_{media_kind}"


def normalize_score(raw: float, lo: float, hi: float) -> int:
    """
    Map a raw score onto 0-100 using the candidate set's range.

    A single candidate or an all-equal set scores 100.
    """
    if hi == lo:
        return 100
    scaled = int(round_half_up((raw - lo) / (hi - lo) * 100, 0))
    return max(0, min(100, scaled))


def normalize_scores(raw_scores: dict[str, float]) -> dict[str, int]:
    if not raw_scores:
        return {}
    lo, hi = min(raw_scores.values()), max(raw_scores.values())
    return {key: normalize_score(raw, lo, hi) for key, raw in raw_scores.items()}


@dataclass
class RecommendationItem:
    external_item_id: int
    media_kind: str
    score: float
    algorithm: str
    title: str | None = None
    sources: list[str] = field(default_factory=list)
    algorithms: list[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return item_key(self.external_item_id, self.media_kind)

    def to_dict(self) -> dict:
        return {
            "external_item_id": self.external_item_id,
            "media_kind": self.media_kind,
            "title": self.title,
            "score": self.score,
            "algorithm": self.algorithm,
            "algorithms": list(self.algorithms or [self.algorithm]),
            "sources": list(self.sources),
        }


@dataclass
class AlgorithmMetrics:
    candidates_pool_size: int = 0
    after_filters: int = 0
    avg_score: float = 0.0

    def to_dict(self) -> dict:
        return {
            "candidates_pool_size": self.candidates_pool_size,
            "after_filters": self.after_filters,
            "avg_score": self.avg_score,
        }


@dataclass
class RecommendationResult:
    recommendations: list[RecommendationItem] = field(default_factory=list)
    metrics: AlgorithmMetrics = field(default_factory=AlgorithmMetrics)

    @classmethod
    def empty(cls, candidates_pool_size: int = 0) -> "RecommendationResult":
        return cls([], AlgorithmMetrics(candidates_pool_size=candidates_pool_size))


@dataclass
class RecommendationSession:
    """Per-request state, discarded after the response."""

    session_id: str
    start_time: datetime
    previous_recommendations: set[str] = field(default_factory=set)
    temporal_context: dict = field(default_factory=dict)
    ml_features: dict = field(default_factory=dict)
    sample_size: int = MAX_RECOMMENDATIONS
    is_heavy_user: bool = False


@dataclass
class RecommendationContext:
    source: str = "api"
    cooldown_days: int = DEFAULT_COOLDOWN_DAYS
    user_history_size: int | None = None


@dataclass
class Candidate:
    """Raw candidate accumulated from one or more twins."""

    external_item_id: int
    media_kind: str
    title: str | None = None
    raw_score: float = 0.0
    sources: list[str] = field(default_factory=list)
    signals: dict = field(default_factory=dict)

    @property
    def key(self) -> str:
        return item_key(self.external_item_id, self.media_kind)


class AlgorithmData:
    """Data access handed to algorithms at construction."""

    def __init__(self, db: Session, taste_maps: TasteMapService, similarity: SimilarityService):
        self.db = db
        self.taste_maps = taste_maps
        self.similarity = similarity
        self.watchlist = WatchlistRepository(db)
        self.recommendation_log = RecommendationLogRepository(db)
        self.similarity_scores = SimilarityRepository(db)
        self.person_profiles = TasteMapRepository(db)

    def history_size(self, user_id: str) -> int:
        return self.watchlist.count_user_entries(user_id, statuses=COMPLETED_STATUSES)

    def similar_users(self, user_id: str, min_overall: float, limit: int) -> list[tuple[str, float]]:
        """
        Users whose stored overall match with ``user_id`` is at least ``min_overall``.

        Scores are computed on demand when none are stored for the user.
        """
        if self.similarity_scores.count_scores(user_id) == 0:
            self.similarity.compute_for_user(user_id, computed_by="on-demand")
        rows = self.similarity_scores.get_scores_for_user(user_id, min_overall=min_overall, limit=limit, inclusive=True)
        return [(row.other_user(user_id), row.overall_match) for row in rows]


class RecommendationAlgorithm(ABC):
    """
    One interchangeable recommendation strategy.

    Subclasses set ``name`` and ``min_user_history`` and implement
    ``generate``. ``execute`` never raises: failures are logged and reported
    as an empty result.
    """

    name: str = ""
    min_user_history: int = 0
    max_recommendations: int = MAX_RECOMMENDATIONS

    def __init__(self, data: AlgorithmData):
        self.data = data

    def execute(
        self, user_id: str, context: RecommendationContext, session: RecommendationSession
    ) -> RecommendationResult:
        try:
            history_size = context.user_history_size
            if history_size is None:
                history_size = self.data.history_size(user_id)
            if history_size < self.min_user_history:
                logger.info(f"{self.name}: {user_id} has {history_size} items, needs {self.min_user_history}")
                return RecommendationResult.empty()
            return self.generate(user_id, context, session)
        except Exception as e:
            self.data.db.rollback()
            logger.error(f"{self.name}: execution failed for {user_id}: {e}", exc_info=True)
            return RecommendationResult.empty()

    @abstractmethod
    def generate(
        self, user_id: str, context: RecommendationContext, session: RecommendationSession
    ) -> RecommendationResult:
        """Produce recommendations for a user past the history gate."""

    def excluded_keys(self, user_id: str, context: RecommendationContext, session: RecommendationSession) -> set[str]:
        """Recently shown items, items already on the user's list, items seen this session."""
        since = utc_now() - timedelta(days=context.cooldown_days)
        excluded = self.data.recommendation_log.get_recent_item_keys(user_id, since)
        excluded |= self.data.watchlist.get_item_keys(user_id)
        excluded |= session.previous_recommendations
        return excluded

    def finalize(
        self,
        user_id: str,
        candidates: list[Candidate],
        context: RecommendationContext,
        session: RecommendationSession,
    ) -> RecommendationResult:
        """Filter, normalize to 0-100 and keep the top items."""
        pool_size = len(candidates)
        excluded = self.excluded_keys(user_id, context, session)
        kept = [candidate for candidate in candidates if candidate.key not in excluded]

        if not kept:
            logger.info(f"{self.name}: all {pool_size} candidates filtered for {user_id}")
            return RecommendationResult([], AlgorithmMetrics(candidates_pool_size=pool_size))

        normalized = normalize_scores({candidate.key: candidate.raw_score for candidate in kept})
        ranked = sorted(kept, key=lambda c: (-normalized[c.key], -c.raw_score, c.key))[: self.max_recommendations]

        recommendations = [
            RecommendationItem(
                external_item_id=candidate.external_item_id,
                media_kind=candidate.media_kind,
                score=normalized[candidate.key],
                algorithm=self.name,
                title=candidate.title,
                sources=candidate.sources[:3],
                algorithms=[self.name],
            )
            for candidate in ranked
        ]
        avg_score = sum(item.score for item in recommendations) / len(recommendations)

        logger.info(
            f"{self.name}: {len(recommendations)} recommendations for {user_id} "
            f"(pool {pool_size}, after filters {len(kept)}, avg {avg_score:.1f})"
        )
        return RecommendationResult(
            recommendations,
            AlgorithmMetrics(candidates_pool_size=pool_size, after_filters=len(kept), avg_score=avg_score),
        )


def collect_twin_candidates(
    entries,
    twin_similarity: dict[str, float],
    per_user_limit: int | None = None,
) -> list[Candidate]:
    """
    Merge twins' entries into candidates.

    ``signals`` gets the averaged twin similarity, the best twin rating and
    the number of twins contributing.

    Args:
        entries: WatchEntry rows of the twins
        twin_similarity: Similarity of each twin to the target user
        per_user_limit: Max entries taken from each twin, best rated first
    """
    by_user: dict[str, list] = {}
    for entry in entries:
        by_user.setdefault(entry.user_id, []).append(entry)

    candidates: dict[str, Candidate] = {}
    for twin_id, twin_entries in by_user.items():
        twin_entries.sort(key=lambda e: (-(e.user_rating or 0), -(e.vote_average or 0), e.external_item_id))
        if per_user_limit is not None:
            twin_entries = twin_entries[:per_user_limit]

        for entry in twin_entries:
            key = item_key(entry.external_item_id, entry.media_kind)
            candidate = candidates.get(key)
            rating = entry.user_rating if entry.user_rating is not None else (entry.vote_average or 0) / 2
            if candidate is None:
                candidate = Candidate(
                    external_item_id=entry.external_item_id,
                    media_kind=entry.media_kind,
                    title=entry.title,
                    signals={"similarity": 0.0, "rating": rating, "count": 0},
                )
                candidates[key] = candidate
            count = candidate.signals["count"]
            candidate.signals["similarity"] = (
                candidate.signals["similarity"] * count + twin_similarity.get(twin_id, 0.0)
            ) / (count + 1)
            candidate.signals["count"] = count + 1
            candidate.signals["rating"] = max(candidate.signals["rating"], rating)
            candidate.sources.append(twin_id)
            candidate.title = candidate.title or entry.title

    return list(candidates.values())


def score_twin_candidates(candidates: list[Candidate], weights: tuple[float, float, float]) -> None:
    """similarity, rating/10 and relative co-occurrence, combined with ``weights``."""
    if not candidates:
        return
    max_count = max(candidate.signals["count"] for candidate in candidates) or 1
    w_similarity, w_rating, w_cooccurrence = weights
    for candidate in candidates:
        candidate.raw_score = (
            candidate.signals["similarity"] * w_similarity
            + candidate.signals["rating"] / 10 * w_rating
            + candidate.signals["count"] / max_count * w_cooccurrence
        )
