"""Repository for users' watch list entries."""

import logging
from datetime import datetime

from sqlalchemy import desc, func
from sqlalchemy.orm import Session, aliased

from moviematch_recommendation_service.models import COMPLETED_STATUSES, WatchEntry
from moviematch_recommendation_service.utils import utc_now

logger = logging.getLogger(__name__)


class WatchlistRepository:
    """
    Repository for reading and writing watch list entries.
    """

    def __init__(self, db: Session):
        self.db = db

    def upsert_entry(self, entry_data: dict) -> WatchEntry:
        """
        Create or update a watch entry keyed by (user, item, media kind).

        Args:
            entry_data: Dict with keys user_id, external_item_id, media_kind,
                status and optional title, user_rating, vote_average,
                watch_count, watched_date, added_at

        Returns:
            WatchEntry object
        """
        entry = self.get_entry(
            entry_data["user_id"], entry_data["external_item_id"], entry_data["media_kind"]
        )

        if entry is None:
            entry = WatchEntry(
                user_id=entry_data["user_id"],
                external_item_id=entry_data["external_item_id"],
                media_kind=entry_data["media_kind"],
                status=entry_data["status"],
                added_at=entry_data.get("added_at") or utc_now(),
            )
            self.db.add(entry)
        else:
            entry.status = entry_data["status"]  # type: ignore[assignment]

        for field in ("title", "user_rating", "vote_average", "watch_count", "watched_date"):
            if field in entry_data:
                setattr(entry, field, entry_data[field])

        self.db.commit()
        self.db.refresh(entry)
        return entry

    def get_entry(self, user_id: str, external_item_id: int, media_kind: str) -> WatchEntry | None:
        """Get one entry by its composite key."""
        return (
            self.db.query(WatchEntry)
            .filter(
                WatchEntry.user_id == user_id,
                WatchEntry.external_item_id == external_item_id,
                WatchEntry.media_kind == media_kind,
            )
            .first()
        )

    def set_weighted_rating(self, entry: WatchEntry, weighted_rating: float | None) -> None:
        entry.weighted_rating = weighted_rating  # type: ignore[assignment]
        self.db.commit()

    # noinspection PyTypeChecker
    def get_user_entries(
        self,
        user_id: str,
        statuses: tuple[str, ...] | None = None,
        limit: int | None = None,
        since: datetime | None = None,
    ) -> list[WatchEntry]:
        """
        Get a user's entries, most recently added first.

        Args:
            user_id: User ID
            statuses: Only these statuses (all if None)
            limit: Max number of entries
            since: Only entries added at or after this time

        Returns:
            List of WatchEntry objects
        """
        query = self.db.query(WatchEntry).filter(WatchEntry.user_id == user_id)
        if statuses:
            query = query.filter(WatchEntry.status.in_(statuses))
        if since is not None:
            query = query.filter(WatchEntry.added_at >= since)
        query = query.order_by(desc(WatchEntry.added_at), WatchEntry.id)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get_rated_completed(
        self, user_id: str, min_rating: float = 0.0, limit: int | None = None
    ) -> list[WatchEntry]:
        """Get watched/rewatched entries with a rating, best rated first."""
        query = (
            self.db.query(WatchEntry)
            .filter(
                WatchEntry.user_id == user_id,
                WatchEntry.status.in_(COMPLETED_STATUSES),
                WatchEntry.user_rating.isnot(None),
                WatchEntry.user_rating >= min_rating,
            )
            .order_by(desc(WatchEntry.user_rating), WatchEntry.external_item_id)
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get_item_keys(self, user_id: str) -> set[str]:
        """All "<id>_<kind>" keys on the user's list, any status."""
        rows = (
            self.db.query(WatchEntry.external_item_id, WatchEntry.media_kind)
            .filter(WatchEntry.user_id == user_id)
            .all()
        )
        return {f"{item_id}_{kind}" for item_id, kind in rows}

    def count_user_entries(self, user_id: str, statuses: tuple[str, ...] | None = None) -> int:
        query = self.db.query(WatchEntry).filter(WatchEntry.user_id == user_id)
        if statuses:
            query = query.filter(WatchEntry.status.in_(statuses))
        return query.count()

    def count_by_media_kind(self, user_id: str) -> dict[str, int]:
        """Count watched/rewatched entries per media kind."""
        rows = (
            self.db.query(WatchEntry.media_kind, func.count(WatchEntry.id))
            .filter(
                WatchEntry.user_id == user_id,
                WatchEntry.status.in_(COMPLETED_STATUSES),
            )
            .group_by(WatchEntry.media_kind)
            .all()
        )
        return {kind: count for kind, count in rows}

    # noinspection PyTypeChecker
    def get_recently_active_users(
        self, since: datetime, exclude_user_id: str | None = None, limit: int = 100
    ) -> list[str]:
        """
        Get users who added entries since the given time.

        Args:
            since: Activity cutoff
            exclude_user_id: User to leave out (usually the requester)
            limit: Max number of users

        Returns:
            List of user IDs, most active first
        """
        query = self.db.query(WatchEntry.user_id, func.count(WatchEntry.id).label("activity")).filter(
            WatchEntry.added_at >= since
        )
        if exclude_user_id is not None:
            query = query.filter(WatchEntry.user_id != exclude_user_id)
        rows = (
            query.group_by(WatchEntry.user_id)
            .order_by(desc("activity"), WatchEntry.user_id)
            .limit(limit)
            .all()
        )
        return [row[0] for row in rows]

    # noinspection PyTypeChecker
    def get_active_users(
        self, min_watch_count: int = 30, since: datetime | None = None, limit: int = 1000, offset: int = 0
    ) -> list[str]:
        """
        Get users with at least ``min_watch_count`` completed entries.

        Args:
            min_watch_count: Minimum watched/rewatched entries
            since: Only count entries added after this time
            limit: Max number of users
            offset: Pagination offset

        Returns:
            List of user IDs ordered by ID
        """
        query = self.db.query(WatchEntry.user_id).filter(WatchEntry.status.in_(COMPLETED_STATUSES))
        if since is not None:
            query = query.filter(WatchEntry.added_at >= since)
        rows = (
            query.group_by(WatchEntry.user_id)
            .having(func.count(WatchEntry.id) >= min_watch_count)
            .order_by(WatchEntry.user_id)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [row[0] for row in rows]

    # noinspection PyTypeChecker
    def find_co_occurring_users(self, user_id: str, limit: int = 200) -> list[tuple[str, int]]:
        """
        Find users that share at least one completed item with ``user_id``.

        Self-join on the (item, kind) index rather than a cross join of users.

        Args:
            user_id: Target user
            limit: Max number of users returned

        Returns:
            List of (user_id, shared_count) ordered by shared count desc
        """
        mine = aliased(WatchEntry)
        theirs = aliased(WatchEntry)
        shared = func.count(theirs.id).label("shared")

        rows = (
            self.db.query(theirs.user_id, shared)
            .join(
                mine,
                (mine.external_item_id == theirs.external_item_id)
                & (mine.media_kind == theirs.media_kind),
            )
            .filter(
                mine.user_id == user_id,
                theirs.user_id != user_id,
                mine.status.in_(COMPLETED_STATUSES),
                theirs.status.in_(COMPLETED_STATUSES),
            )
            .group_by(theirs.user_id)
            .order_by(desc(shared), theirs.user_id)
            .limit(limit)
            .all()
        )
        return [(row[0], int(row[1])) for row in rows]

    # noinspection PyTypeChecker
    def get_shared_rated_items(self, user_a: str, user_b: str) -> list[dict]:
        """
        Items both users completed and rated.

        Returns:
            List of dicts with external_item_id, media_kind, title,
            rating_a, rating_b
        """
        a = aliased(WatchEntry)
        b = aliased(WatchEntry)
        rows = (
            self.db.query(a, b)
            .join(
                b,
                (a.external_item_id == b.external_item_id) & (a.media_kind == b.media_kind),
            )
            .filter(
                a.user_id == user_a,
                b.user_id == user_b,
                a.status.in_(COMPLETED_STATUSES),
                b.status.in_(COMPLETED_STATUSES),
                a.user_rating.isnot(None),
                b.user_rating.isnot(None),
            )
            .order_by(a.external_item_id, a.media_kind)
            .all()
        )
        return [
            {
                "external_item_id": entry_a.external_item_id,
                "media_kind": entry_a.media_kind,
                "title": entry_a.title or entry_b.title,
                "rating_a": entry_a.user_rating,
                "rating_b": entry_b.user_rating,
            }
            for entry_a, entry_b in rows
        ]

    # noinspection PyTypeChecker
    def get_users_entries(
        self,
        user_ids: list[str],
        statuses: tuple[str, ...],
        since: datetime | None = None,
    ) -> list[WatchEntry]:
        """Entries of several users at once (used to expand twins into candidates)."""
        if not user_ids:
            return []
        query = self.db.query(WatchEntry).filter(
            WatchEntry.user_id.in_(user_ids),
            WatchEntry.status.in_(statuses),
        )
        if since is not None:
            query = query.filter(WatchEntry.added_at >= since)
        return query.order_by(WatchEntry.user_id, WatchEntry.external_item_id).all()

    # noinspection PyTypeChecker
    def get_rated_item_keys(self, exclude_user_id: str, min_rating: float = 6.0) -> list[tuple[int, str, str | None]]:
        """
        Distinct items other users completed and rated at least ``min_rating``.

        Returns:
            (external_item_id, media_kind, title) tuples ordered by item key
        """
        rows = (
            self.db.query(WatchEntry.external_item_id, WatchEntry.media_kind, func.max(WatchEntry.title))
            .filter(
                WatchEntry.user_id != exclude_user_id,
                WatchEntry.status.in_(COMPLETED_STATUSES),
                WatchEntry.user_rating >= min_rating,
            )
            .group_by(WatchEntry.external_item_id, WatchEntry.media_kind)
            .order_by(WatchEntry.external_item_id, WatchEntry.media_kind)
            .all()
        )
        return [(item_id, media_kind, title) for item_id, media_kind, title in rows]

    def count_by_status(self, user_id: str) -> dict[str, int]:
        """Number of entries per status for one user."""
        rows = (
            self.db.query(WatchEntry.status, func.count(WatchEntry.id))
            .filter(WatchEntry.user_id == user_id)
            .group_by(WatchEntry.status)
            .all()
        )
        return {status: count for status, count in rows}

    def count_shared_items(self, user_a: str, user_b: str) -> int:
        """Number of items both users completed."""
        a = aliased(WatchEntry)
        b = aliased(WatchEntry)
        return (
            self.db.query(a.id)
            .join(
                b,
                (a.external_item_id == b.external_item_id) & (a.media_kind == b.media_kind),
            )
            .filter(
                a.user_id == user_a,
                b.user_id == user_b,
                a.status.in_(COMPLETED_STATUSES),
                b.status.in_(COMPLETED_STATUSES),
            )
            .count()
        )
