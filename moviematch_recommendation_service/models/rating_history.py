"""Append-only log of rating-affecting actions."""
import enum

from sqlalchemy import Column, DateTime, Float, Index, Integer, String

from moviematch_recommendation_service.models.base import Base
from moviematch_recommendation_service.utils import utc_now


class RatingAction(str, enum.Enum):
    INITIAL = "initial"
    RATING_CHANGE = "rating_change"
    REWATCH = "rewatch"


class RatingHistoryEntry(Base):
    """One rating event for a (user, item, media kind) key.

    Rows are never updated; the owning WatchEntry is found through the
    composite key, not a foreign key.
    """

    __tablename__ = "rating_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    external_item_id = Column(Integer, nullable=False)
    media_kind = Column(String(20), nullable=False)
    rating = Column(Float, nullable=False)
    action_type = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_rating_history_key", "user_id", "external_item_id", "media_kind", "created_at"),
    )

    def __repr__(self):
        return (
            f"<RatingHistoryEntry(user_id='{self.user_id}', item={self.external_item_id}, "
            f"action='{self.action_type}', rating={self.rating})>"
        )
