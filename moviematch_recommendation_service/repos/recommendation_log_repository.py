"""Repository for the shown-recommendations log."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from moviematch_recommendation_service.models import RecommendationLog
from moviematch_recommendation_service.utils import utc_now

logger = logging.getLogger(__name__)


class RecommendationLogRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_recent_item_keys(self, user_id: str, since: datetime) -> set[str]:
        """
        Keys of items shown to a user since ``since``.

        Args:
            user_id: User ID
            since: Start of the cooldown window

        Returns:
            Set of "<id>_<kind>" keys
        """
        rows = (
            self.db.query(RecommendationLog.external_item_id, RecommendationLog.media_kind)
            .filter(RecommendationLog.user_id == user_id, RecommendationLog.shown_at >= since)
            .all()
        )
        return {f"{item_id}_{kind}" for item_id, kind in rows}

    def log_shown(self, user_id: str, items: list[dict], session_id: str | None = None) -> int:
        """
        Record that items were shown.

        Args:
            user_id: User ID
            items: Dicts with external_item_id, media_kind, algorithm, score
            session_id: Recommendation session the items belong to

        Returns:
            Number of rows written
        """
        now = utc_now()
        records = [
            RecommendationLog(
                user_id=user_id,
                external_item_id=item["external_item_id"],
                media_kind=item["media_kind"],
                algorithm=item["algorithm"],
                score=item.get("score"),
                session_id=session_id,
                shown_at=now,
            )
            for item in items
        ]
        if records:
            self.db.add_all(records)
            self.db.commit()
        return len(records)

    def delete_older_than(self, cutoff: datetime) -> int:
        count = (
            self.db.query(RecommendationLog)
            .filter(RecommendationLog.shown_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"Deleted {count} recommendation log rows older than {cutoff.isoformat()}")
        return count
