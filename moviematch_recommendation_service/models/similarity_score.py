"""Persisted pairwise user similarity."""
from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, String, UniqueConstraint

from moviematch_recommendation_service.models.base import Base
from moviematch_recommendation_service.utils import utc_now


class SimilarityScore(Base):
    """Similarity between two users.

    Exactly one row per unordered pair: user_id_a is always the smaller id.
    """

    __tablename__ = "similarity_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id_a = Column(String(64), nullable=False)
    user_id_b = Column(String(64), nullable=False)

    # Similarity scores
    overall_match = Column(Float, nullable=False)
    taste_similarity = Column(Float, nullable=False)
    rating_correlation = Column(Float, nullable=False)
    person_overlap = Column(Float, nullable=False)

    # Taste map snapshots at computation time
    snapshot_a = Column(JSON, nullable=False)
    snapshot_b = Column(JSON, nullable=False)

    computed_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    computed_by = Column(String(20), nullable=False, default="on-demand")

    __table_args__ = (
        UniqueConstraint("user_id_a", "user_id_b", name="uq_similarity_pair"),
        Index("idx_similarity_user_a", "user_id_a"),
        Index("idx_similarity_user_b", "user_id_b"),
        Index("idx_similarity_computed_at", "computed_at"),
    )

    def other_user(self, user_id: str) -> str:
        """The pair member that is not ``user_id``."""
        return self.user_id_b if self.user_id_a == user_id else self.user_id_a

    def __repr__(self):
        return (
            f"<SimilarityScore(user_id_a='{self.user_id_a}', user_id_b='{self.user_id_b}', "
            f"overall={self.overall_match:.3f})>"
        )
