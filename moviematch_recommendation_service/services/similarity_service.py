"""Service computing and persisting pairwise user similarity."""
import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from moviematch_recommendation_service.config import (
    get_similarity_candidate_pool_size,
    get_similarity_threshold,
)
from moviematch_recommendation_service.errors import ValidationError, require_non_negative, require_user_id
from moviematch_recommendation_service.ml.similarity_computer import UserSimilarityComputer
from moviematch_recommendation_service.models import SimilarityScore
from moviematch_recommendation_service.repos import SimilarityRepository, WatchlistRepository, canonical_pair
from moviematch_recommendation_service.services.taste_map_service import TasteMapService
from moviematch_recommendation_service.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

MIN_USER_HISTORY = 5
DEFAULT_MAX_AGE_HOURS = 168
DEFAULT_RETENTION_DAYS = 365

NOT_ENOUGH_HISTORY = "Not enough watch history to find similar users"
NO_SHARED_USERS = "Not enough users with shared movies found"
NO_USERS_ABOVE_THRESHOLD = "No users above the similarity threshold"


def _snapshot(taste_map: dict) -> dict:
    return {
        "genre_profile": taste_map.get("genre_profile", {}),
        "person_profile": taste_map.get("person_profile", {}),
    }


def score_to_dict(score: SimilarityScore, user_id: str) -> dict:
    """Present a stored row from the point of view of ``user_id``."""
    return {
        "user_id": score.other_user(user_id),
        "overall_match": score.overall_match,
        "taste_similarity": score.taste_similarity,
        "rating_correlation": score.rating_correlation,
        "person_overlap": score.person_overlap,
        "computed_at": ensure_utc(score.computed_at).isoformat(),
        "updated_at": ensure_utc(score.updated_at).isoformat(),
        "computed_by": score.computed_by,
    }


class SimilarityService:
    """
    Compute, store and query similarity between users.

    Pairs are ordered canonically before any read or write, so A/B and B/A
    share one row.
    """

    def __init__(
        self,
        db: Session,
        taste_maps: TasteMapService,
        threshold: float | None = None,
        candidate_pool_size: int | None = None,
        computer: UserSimilarityComputer | None = None,
    ):
        self.db = db
        self.taste_maps = taste_maps
        self.threshold = threshold if threshold is not None else get_similarity_threshold()
        self.candidate_pool_size = (
            candidate_pool_size if candidate_pool_size is not None else get_similarity_candidate_pool_size()
        )
        self.computer = computer or UserSimilarityComputer()
        self.repo = SimilarityRepository(db)
        self.watchlist = WatchlistRepository(db)

    def is_similar(self, overall_match: float) -> bool:
        return overall_match > self.threshold

    def compute_similarity(self, user_a: str, user_b: str) -> dict | None:
        """
        Compute sub-scores for a pair without storing them.

        Returns:
            Computation dict (see ``UserSimilarityComputer.compute``) plus
            taste maps and shared items, or None when the users share no
            completed item
        """
        require_user_id(user_a)
        require_user_id(user_b)
        if user_a == user_b:
            raise ValidationError("Cannot compare a user with themselves")

        id_a, id_b = canonical_pair(user_a, user_b)
        if self.watchlist.count_shared_items(id_a, id_b) == 0:
            return None

        taste_a = self.taste_maps.get_taste_map(id_a)
        taste_b = self.taste_maps.get_taste_map(id_b)
        shared = self.watchlist.get_shared_rated_items(id_a, id_b)

        result = self.computer.compute(taste_a, taste_b, shared)
        result.update(
            {
                "user_id_a": id_a,
                "user_id_b": id_b,
                "taste_map_a": taste_a,
                "taste_map_b": taste_b,
                "shared_items": shared,
            }
        )
        return result

    def compute_and_store(self, user_a: str, user_b: str, computed_by: str = "on-demand") -> SimilarityScore | None:
        """
        Compute and upsert the similarity of a pair.

        Returns:
            Stored SimilarityScore, or None when the users share no item
        """
        result = self.compute_similarity(user_a, user_b)
        if result is None:
            return None
        return self._store(result, computed_by)

    def _store(self, result: dict, computed_by: str) -> SimilarityScore:
        return self.repo.upsert_score(
            result["user_id_a"],
            result["user_id_b"],
            {
                "overall_match": result["overall_match"],
                "taste_similarity": result["taste_similarity"],
                "rating_correlation": result["rating_correlation"],
                "person_overlap": result["person_overlap"],
                "snapshot_a": _snapshot(result["taste_map_a"]),
                "snapshot_b": _snapshot(result["taste_map_b"]),
            },
            computed_by=computed_by,
        )

    def find_candidates(self, user_id: str, limit: int | None = None) -> list[str]:
        """Users sharing completed items with ``user_id``, most shared first."""
        pool = self.candidate_pool_size if limit is None else min(limit, self.candidate_pool_size)
        return [other for other, _ in self.watchlist.find_co_occurring_users(user_id, limit=pool)]

    def compute_for_user(self, user_id: str, computed_by: str = "on-demand", limit: int | None = None) -> dict:
        """
        Compute and store scores between a user and their candidates.

        A failing pair is logged and skipped.

        Returns:
            Dict with candidates, computed, similar and errors counts
        """
        candidates = self.find_candidates(user_id, limit)
        computed = similar = errors = 0

        for other in candidates:
            try:
                score = self.compute_and_store(user_id, other, computed_by=computed_by)
            except ValidationError:
                raise
            except Exception as e:
                self.db.rollback()
                errors += 1
                logger.error(f"Similarity failed for {user_id} / {other}: {e}", exc_info=True)
                continue
            if score is not None:
                computed += 1
                if self.is_similar(score.overall_match):
                    similar += 1

        logger.info(f"✓ Similarity for {user_id}: {computed}/{len(candidates)} computed, {similar} similar")
        return {"candidates": len(candidates), "computed": computed, "similar": similar, "errors": errors}

    def get_similarity_score(
        self, user_a: str, user_b: str, max_age_hours: float = DEFAULT_MAX_AGE_HOURS
    ) -> SimilarityScore | None:
        """
        Stored score of a pair if refreshed within ``max_age_hours``.
        """
        score = self.repo.get_score(user_a, user_b)
        if score is None:
            return None
        if utc_now() - ensure_utc(score.updated_at) > timedelta(hours=max_age_hours):
            return None
        return score

    def find_similar_users(
        self,
        user_id: str,
        limit: int = 10,
        include_all: bool = False,
        fresh_only: bool = False,
    ) -> dict:
        """
        Similar users of ``user_id``, best match first.

        Computes scores on the fly when nothing is stored for the user yet.

        Args:
            user_id: User ID
            limit: Max number of users
            include_all: Also return pairs at or below the threshold
            fresh_only: Only rows refreshed within the freshness window

        Returns:
            Dict with similar_users, from_database, computed_at and message
        """
        require_user_id(user_id)
        require_non_negative("limit", limit)

        if self.watchlist.count_user_entries(user_id) < MIN_USER_HISTORY:
            return {"similar_users": [], "from_database": False, "computed_at": None, "message": NOT_ENOUGH_HISTORY}

        from_database = True
        if self.repo.count_scores(user_id) == 0:
            from_database = False
            self.compute_for_user(user_id, computed_by="on-demand")

        updated_since = utc_now() - timedelta(hours=DEFAULT_MAX_AGE_HOURS) if fresh_only else None
        rows = self.repo.get_scores_for_user(
            user_id,
            min_overall=None if include_all else self.threshold,
            updated_since=updated_since,
            limit=limit,
        )

        similar_users = [score_to_dict(row, user_id) for row in rows]
        computed_at = max((ensure_utc(row.updated_at) for row in rows), default=None)
        message = None
        if not similar_users:
            message = NO_USERS_ABOVE_THRESHOLD if self.repo.count_scores(user_id) > 0 else NO_SHARED_USERS
        return {
            "similar_users": similar_users,
            "from_database": from_database,
            "computed_at": computed_at.isoformat() if computed_at else None,
            "message": message,
        }

    def compare_users(self, user_a: str, user_b: str) -> dict:
        """
        Detailed comparison of two users, stored as an on-demand score.

        Returns:
            Dict with metrics, rating_patterns, shared_items,
            person_comparison and is_similar; metrics are None when the
            users share no item
        """
        result = self.compute_similarity(user_a, user_b)
        if result is None:
            return {
                "user_id_a": user_a,
                "user_id_b": user_b,
                "metrics": None,
                "rating_patterns": None,
                "shared_items": [],
                "person_comparison": None,
                "is_similar": False,
                "message": NO_SHARED_USERS,
            }

        self._store(result, "on-demand")

        persons_a = result["taste_map_a"].get("person_profile", {})
        persons_b = result["taste_map_b"].get("person_profile", {})
        return {
            "user_id_a": user_a,
            "user_id_b": user_b,
            "metrics": {
                "overall_match": result["overall_match"],
                "movie_score": result["movie_score"],
                "taste_similarity": result["taste_similarity"],
                "rating_correlation": result["rating_correlation"],
                "person_overlap": result["person_overlap"],
            },
            "rating_patterns": result["rating_patterns"],
            "shared_items": [
                {
                    "external_item_id": item["external_item_id"],
                    "media_kind": item["media_kind"],
                    "title": item["title"],
                    "rating_a": item["rating_a"] if result["user_id_a"] == user_a else item["rating_b"],
                    "rating_b": item["rating_b"] if result["user_id_a"] == user_a else item["rating_a"],
                    "difference": abs(item["rating_a"] - item["rating_b"]),
                }
                for item in result["shared_items"]
            ],
            "person_comparison": {
                "shared_actors": sorted(set(persons_a.get("actors", {})) & set(persons_b.get("actors", {}))),
                "shared_directors": sorted(
                    set(persons_a.get("directors", {})) & set(persons_b.get("directors", {}))
                ),
            },
            "is_similar": self.is_similar(result["overall_match"]),
            "message": None,
        }

    def delete_old_scores(self, max_age_days: int = DEFAULT_RETENTION_DAYS) -> int:
        require_non_negative("max_age_days", max_age_days)
        return self.repo.delete_older_than(utc_now() - timedelta(days=max_age_days))

    def get_stats(self) -> dict:
        stats = self.repo.get_similarity_stats(self.threshold)
        if stats["last_computed"] is not None:
            stats["last_computed"] = ensure_utc(stats["last_computed"]).isoformat()
        stats["threshold"] = self.threshold
        return stats
