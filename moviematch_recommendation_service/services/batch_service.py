"""Batch jobs recomputing similarity scores and person profiles."""
import logging
import time
from datetime import timedelta
from typing import Callable

from sqlalchemy.orm import Session

from moviematch_recommendation_service.cache import TTLCache
from moviematch_recommendation_service.clients import MetadataClient
from moviematch_recommendation_service.errors import require_non_negative
from moviematch_recommendation_service.repos import RecommendationLogRepository, WatchlistRepository
from moviematch_recommendation_service.services.batching import ChunkedExecutor
from moviematch_recommendation_service.services.similarity_service import MIN_USER_HISTORY, SimilarityService
from moviematch_recommendation_service.services.taste_map_service import TasteMapService
from moviematch_recommendation_service.utils import utc_now

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 10
CANDIDATES_PER_USER = 20


class BatchService:
    """
    Paginated batch jobs over users.

    Users are processed through a ChunkedExecutor; every user gets its own
    database session from ``session_factory``.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        metadata_client: MetadataClient | None = None,
        cache: TTLCache | None = None,
        executor: ChunkedExecutor | None = None,
        lookup_executor: ChunkedExecutor | None = None,
    ):
        self.session_factory = session_factory
        self.cache = cache or TTLCache()
        self.metadata_client = metadata_client or MetadataClient(cache=self.cache)
        self.executor = executor or ChunkedExecutor()
        # Lookups inside a user already run on a batch worker
        self.lookup_executor = lookup_executor or ChunkedExecutor(max_workers=1)

    def _services(self, db: Session) -> tuple[TasteMapService, SimilarityService]:
        taste_maps = TasteMapService(db, self.metadata_client, self.cache, executor=self.lookup_executor)
        return taste_maps, SimilarityService(db, taste_maps)

    def _list_users(self, limit: int, offset: int) -> list[str]:
        db = self.session_factory()
        try:
            return WatchlistRepository(db).get_active_users(
                min_watch_count=MIN_USER_HISTORY, limit=limit, offset=offset
            )
        finally:
            db.close()

    def _run(self, job: str, unit: Callable[[str], int], limit: int, offset: int) -> dict:
        require_non_negative("limit", limit)
        require_non_negative("offset", offset)
        started = time.monotonic()

        users = self._list_users(limit, offset)
        logger.info(f"{job}: processing {len(users)} users (offset {offset})")

        computed = 0
        errors: list[str] = []
        error_count = 0
        for outcome in self.executor.map(unit, users):
            if outcome.ok:
                computed += outcome.value
                continue
            error_count += 1
            logger.error(f"{job}: failed for {outcome.item}: {outcome.error}", exc_info=outcome.error)
            if len(errors) < MAX_REPORTED_ERRORS:
                errors.append(f"{outcome.item}: {outcome.error}")

        result = {
            "processed": len(users),
            "computed": computed,
            "errors": errors,
            "error_count": error_count,
            "duration": round(time.monotonic() - started, 3),
            "timestamp": utc_now().isoformat(),
        }
        logger.info(f"✓ {job}: {result['processed']} users, {computed} computed, {error_count} errors")
        return result

    def compute_all_similarity_scores(self, limit: int = 100, offset: int = 0) -> dict:
        """
        Recompute stored similarity scores for a page of users.

        Args:
            limit: Users per page
            offset: Page start

        Returns:
            Dict with processed, computed, errors (first 10), duration, timestamp
        """

        def unit(user_id: str) -> int:
            db = self.session_factory()
            try:
                _, similarity = self._services(db)
                return similarity.compute_for_user(user_id, computed_by="scheduler", limit=CANDIDATES_PER_USER)[
                    "computed"
                ]
            finally:
                db.close()

        return self._run("compute_all_similarity_scores", unit, limit, offset)

    def compute_all_person_profiles(self, limit: int = 50, offset: int = 0) -> dict:
        """
        Recompute actor and director profiles for a page of users.

        Each user counts two computed profiles.
        """

        def unit(user_id: str) -> int:
            db = self.session_factory()
            try:
                taste_maps, _ = self._services(db)
                return len(taste_maps.compute_person_profiles(user_id))
            finally:
                db.close()

        return self._run("compute_all_person_profiles", unit, limit, offset)

    def cleanup(self, similarity_max_age_days: int = 365, log_max_age_days: int = 90) -> dict:
        """Delete stale similarity scores and old recommendation log rows."""
        db = self.session_factory()
        try:
            _, similarity = self._services(db)
            deleted_scores = similarity.delete_old_scores(similarity_max_age_days)
            require_non_negative("log_max_age_days", log_max_age_days)
            deleted_logs = RecommendationLogRepository(db).delete_older_than(
                utc_now() - timedelta(days=log_max_age_days)
            )
        finally:
            db.close()
        return {"deleted_similarity_scores": deleted_scores, "deleted_recommendation_logs": deleted_logs}
