"""A user's list entry for one media item."""
import enum

from sqlalchemy import Column, DateTime, Float, Index, Integer, String, UniqueConstraint

from moviematch_recommendation_service.models.base import Base
from moviematch_recommendation_service.utils import utc_now


class WatchStatus(str, enum.Enum):
    WANT = "want"
    WATCHED = "watched"
    REWATCHED = "rewatched"
    DROPPED = "dropped"


# Statuses that count as "has seen it"
COMPLETED_STATUSES = (WatchStatus.WATCHED.value, WatchStatus.REWATCHED.value)

MEDIA_KINDS = ("movie", "tv", "anime", "cartoon")


class WatchEntry(Base):
    """One (user, item, media kind) row of a user's watch list.

    Created on first status set, mutated on status or rating change.
    """

    __tablename__ = "watch_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    external_item_id = Column(Integer, nullable=False)
    media_kind = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)

    title = Column(String(255), nullable=True)
    user_rating = Column(Float, nullable=True)
    weighted_rating = Column(Float, nullable=True)
    vote_average = Column(Float, nullable=True)
    watch_count = Column(Integer, nullable=False, default=0)

    added_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    watched_date = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "external_item_id", "media_kind", name="uq_watch_entry_key"),
        Index("idx_watch_entry_user_status", "user_id", "status"),
        Index("idx_watch_entry_item", "external_item_id", "media_kind"),
        Index("idx_watch_entry_added_at", "added_at"),
    )

    @property
    def item_key(self) -> str:
        return f"{self.external_item_id}_{self.media_kind}"

    def __repr__(self):
        return (
            f"<WatchEntry(user_id='{self.user_id}', item={self.external_item_id}, "
            f"kind='{self.media_kind}', status='{self.status}')>"
        )
