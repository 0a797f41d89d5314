"""Cached taste maps and person profiles."""
from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, UniqueConstraint

from moviematch_recommendation_service.models.base import Base
from moviematch_recommendation_service.utils import utc_now


class TasteMapRecord(Base):
    """Last computed taste map of a user."""

    __tablename__ = "taste_maps"

    user_id = Column(String(64), primary_key=True)
    genre_profile = Column(JSON, nullable=False)
    person_profile = Column(JSON, nullable=False)
    type_profile = Column(JSON, nullable=False)
    rating_distribution = Column(JSON, nullable=False)
    average_rating = Column(Float, nullable=False, default=0.0)
    behavior_profile = Column(JSON, nullable=False)
    computed_metrics = Column(JSON, nullable=False)
    computed_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    def __repr__(self):
        return f"<TasteMapRecord(user_id='{self.user_id}', genres={len(self.genre_profile or {})})>"


class PersonProfile(Base):
    """Top actors or directors of a user."""

    __tablename__ = "person_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    person_type = Column(String(20), nullable=False)  # actor | director
    top_persons = Column(JSON, nullable=False, default=list)
    total_items_analyzed = Column(Integer, nullable=False, default=0)
    computed_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    computation_method = Column(String(20), nullable=False, default="full")

    __table_args__ = (
        UniqueConstraint("user_id", "person_type", name="uq_person_profile_user_type"),
    )

    def __repr__(self):
        return f"<PersonProfile(user_id='{self.user_id}', type='{self.person_type}')>"
