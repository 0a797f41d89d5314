"""Service building and caching user taste maps."""
import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from moviematch_recommendation_service.cache import TTLCache
from moviematch_recommendation_service.clients import MetadataClient
from moviematch_recommendation_service.config import get_taste_map_ttl
from moviematch_recommendation_service.errors import require_user_id
from moviematch_recommendation_service.ml.taste_profile import (
    build_taste_map,
    effective_rating,
    is_empty_taste_map,
    top_persons,
)
from moviematch_recommendation_service.models import COMPLETED_STATUSES, WatchStatus
from moviematch_recommendation_service.repos import TasteMapRepository, WatchlistRepository
from moviematch_recommendation_service.services.batching import ChunkedExecutor
from moviematch_recommendation_service.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

MAX_ITEMS_PER_TASTE_MAP = 50
MAX_ITEMS_PER_PERSON_PROFILE = 100
TASTE_MAP_STATUSES = COMPLETED_STATUSES + (WatchStatus.DROPPED.value,)


class TasteMapService:
    """
    Cache-or-compute access to user taste maps.

    Lookups go through the injected cache first, then the ``taste_maps``
    table, then a fresh computation that is written back to both.
    """

    def __init__(
        self,
        db: Session,
        metadata_client: MetadataClient,
        cache: TTLCache,
        executor: ChunkedExecutor | None = None,
        ttl_seconds: int | None = None,
    ):
        self.db = db
        self.metadata_client = metadata_client
        self.cache = cache
        self.executor = executor or ChunkedExecutor()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else get_taste_map_ttl()
        self.watchlist = WatchlistRepository(db)
        self.repo = TasteMapRepository(db)

    @staticmethod
    def cache_key(user_id: str) -> str:
        return f"taste_map:{user_id}"

    def get_taste_map(self, user_id: str) -> dict:
        """
        Get the taste map of a user, computing it when stale.

        Args:
            user_id: User ID

        Returns:
            Taste map dict with ``is_empty`` and ``computed_at`` keys; users
            without classified genre data get an empty map, not an error
        """
        require_user_id(user_id)
        return self.cache.get_or_compute(
            self.cache_key(user_id),
            lambda: self._load_or_compute(user_id),
            self.ttl_seconds,
        )

    def invalidate(self, user_id: str) -> None:
        self.cache.invalidate(self.cache_key(user_id))
        self.repo.delete_taste_map(user_id)

    def _load_or_compute(self, user_id: str) -> dict:
        record = self.repo.get_taste_map(user_id)
        if record is not None:
            age = utc_now() - ensure_utc(record.computed_at)
            if age < timedelta(seconds=self.ttl_seconds):
                return self._to_dict(record)
        return self.compute_taste_map(user_id)

    def compute_taste_map(self, user_id: str) -> dict:
        """
        Compute and store a fresh taste map.

        Metadata is fetched for at most 50 entries through the chunked
        executor; failed lookups count as items without genres.
        """
        entries = self.watchlist.get_user_entries(
            user_id, statuses=TASTE_MAP_STATUSES, limit=MAX_ITEMS_PER_TASTE_MAP
        )
        items = self._enrich(entries)
        status_counts = self.watchlist.count_by_status(user_id)

        taste_map = build_taste_map(items, status_counts)
        record = self.repo.store_taste_map(user_id, taste_map)
        logger.info(f"✓ Computed taste map for {user_id} ({len(items)} items, {len(taste_map['genre_profile'])} genres)")
        return self._to_dict(record)

    def compute_person_profiles(self, user_id: str) -> dict[str, int]:
        """
        Compute and store the top-50 actor and director profiles.

        Returns:
            Number of persons stored per person type
        """
        require_user_id(user_id)
        entries = self.watchlist.get_user_entries(
            user_id, statuses=COMPLETED_STATUSES, limit=MAX_ITEMS_PER_PERSON_PROFILE
        )
        items = self._enrich(entries)
        total = self.watchlist.count_user_entries(user_id, statuses=COMPLETED_STATUSES)

        stored = {}
        for person_type, field in (("actor", "cast"), ("director", "directors")):
            persons = top_persons(items, field)
            self.repo.store_person_profile(user_id, person_type, persons, total)
            stored[person_type] = len(persons)

        logger.info(f"✓ Stored person profiles for {user_id}: {stored}")
        return stored

    def get_item_genres(self, external_item_id: int, media_kind: str) -> list[str]:
        """Genre names of an item, empty when metadata is unknown."""
        details = self.metadata_client.fetch_details(external_item_id, media_kind)
        return list(details["genres"]) if details else []

    def get_item_persons(self, external_item_id: int, media_kind: str) -> dict[str, list[str]]:
        """Cast and directors of an item, empty lists when metadata is unknown."""
        details = self.metadata_client.fetch_details(external_item_id, media_kind) or {}
        return {"actor": list(details.get("cast") or []), "director": list(details.get("directors") or [])}

    def _enrich(self, entries) -> list[dict]:
        """Join entries with their metadata, looked up with bounded concurrency."""
        keys = [(entry.external_item_id, entry.media_kind) for entry in entries]
        outcomes = self.executor.map(lambda key: self.metadata_client.fetch_details(*key), keys)

        items = []
        for entry, outcome in zip(entries, outcomes):
            details = outcome.value if outcome.ok and outcome.value else {}
            items.append(
                {
                    "external_item_id": entry.external_item_id,
                    "media_kind": entry.media_kind,
                    "rating": effective_rating(
                        {
                            "weighted_rating": entry.weighted_rating,
                            "user_rating": entry.user_rating,
                            "vote_average": entry.vote_average,
                            "status": entry.status,
                        }
                    ),
                    "genres": details.get("genres", []),
                    "cast": details.get("cast", []),
                    "directors": details.get("directors", []),
                }
            )

        unknown = sum(1 for outcome in outcomes if not (outcome.ok and outcome.value))
        if unknown:
            logger.info(f"Metadata unknown for {unknown}/{len(entries)} items")
        return items

    @staticmethod
    def _to_dict(record) -> dict:
        taste_map = {
            "user_id": record.user_id,
            "genre_profile": dict(record.genre_profile or {}),
            "person_profile": dict(record.person_profile or {"actors": {}, "directors": {}}),
            "type_profile": dict(record.type_profile or {}),
            "rating_distribution": dict(record.rating_distribution or {}),
            "average_rating": record.average_rating,
            "behavior_profile": dict(record.behavior_profile or {}),
            "computed_metrics": dict(record.computed_metrics or {}),
            "computed_at": ensure_utc(record.computed_at).isoformat(),
        }
        taste_map["is_empty"] = is_empty_taste_map(taste_map)
        return taste_map
