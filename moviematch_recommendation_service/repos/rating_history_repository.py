"""Repository for the append-only rating history."""

import logging

from sqlalchemy import desc
from sqlalchemy.orm import Session

from moviematch_recommendation_service.models import RatingHistoryEntry
from moviematch_recommendation_service.utils import utc_now

logger = logging.getLogger(__name__)


class RatingHistoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        user_id: str,
        external_item_id: int,
        media_kind: str,
        rating: float,
        action_type: str,
        created_at=None,
    ) -> RatingHistoryEntry:
        """Append one history row. Existing rows are never touched."""
        entry = RatingHistoryEntry(
            user_id=user_id,
            external_item_id=external_item_id,
            media_kind=media_kind,
            rating=rating,
            action_type=action_type,
            created_at=created_at or utc_now(),
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    # noinspection PyTypeChecker
    def get_history(self, user_id: str, external_item_id: int, media_kind: str) -> list[RatingHistoryEntry]:
        """
        Get the history of one key, most recent first.

        Args:
            user_id: User ID
            external_item_id: Item ID
            media_kind: Media kind

        Returns:
            List of RatingHistoryEntry objects ordered by created_at descending
        """
        return (
            self.db.query(RatingHistoryEntry)
            .filter(
                RatingHistoryEntry.user_id == user_id,
                RatingHistoryEntry.external_item_id == external_item_id,
                RatingHistoryEntry.media_kind == media_kind,
            )
            .order_by(desc(RatingHistoryEntry.created_at), desc(RatingHistoryEntry.id))
            .all()
        )

    def count_history(self, user_id: str, external_item_id: int, media_kind: str) -> int:
        return (
            self.db.query(RatingHistoryEntry)
            .filter(
                RatingHistoryEntry.user_id == user_id,
                RatingHistoryEntry.external_item_id == external_item_id,
                RatingHistoryEntry.media_kind == media_kind,
            )
            .count()
        )
