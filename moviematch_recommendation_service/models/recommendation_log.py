"""Log of items shown to users, source of the cooldown window."""
from sqlalchemy import Column, DateTime, Float, Index, Integer, String

from moviematch_recommendation_service.models.base import Base
from moviematch_recommendation_service.utils import utc_now


class RecommendationLog(Base):
    __tablename__ = "recommendation_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    external_item_id = Column(Integer, nullable=False)
    media_kind = Column(String(20), nullable=False)
    algorithm = Column(String(64), nullable=False)
    score = Column(Float, nullable=True)
    session_id = Column(String(64), nullable=True)
    shown_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_recommendation_log_user_shown", "user_id", "shown_at"),
        Index("idx_recommendation_log_user_item", "user_id", "external_item_id", "media_kind"),
    )

    def __repr__(self):
        return (
            f"<RecommendationLog(user_id='{self.user_id}', item={self.external_item_id}, "
            f"algorithm='{self.algorithm}')>"
        )
