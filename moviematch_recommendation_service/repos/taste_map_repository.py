"""Repository for cached taste maps and person profiles."""

import logging

from sqlalchemy.orm import Session

from moviematch_recommendation_service.models import PersonProfile, TasteMapRecord
from moviematch_recommendation_service.utils import utc_now

logger = logging.getLogger(__name__)


class TasteMapRepository:
    """
    Repository for the persisted taste maps and person profiles.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_taste_map(self, user_id: str) -> TasteMapRecord | None:
        return self.db.query(TasteMapRecord).filter(TasteMapRecord.user_id == user_id).first()

    def store_taste_map(self, user_id: str, taste_map: dict) -> TasteMapRecord:
        """
        Store or replace the taste map of a user.

        Args:
            user_id: User ID
            taste_map: Dict with genre_profile, person_profile, type_profile,
                rating_distribution, average_rating, behavior_profile,
                computed_metrics

        Returns:
            TasteMapRecord object
        """
        record = self.get_taste_map(user_id)
        if record is None:
            record = TasteMapRecord(user_id=user_id)
            self.db.add(record)

        record.genre_profile = taste_map["genre_profile"]  # type: ignore[assignment]
        record.person_profile = taste_map["person_profile"]  # type: ignore[assignment]
        record.type_profile = taste_map["type_profile"]  # type: ignore[assignment]
        record.rating_distribution = taste_map["rating_distribution"]  # type: ignore[assignment]
        record.average_rating = taste_map["average_rating"]  # type: ignore[assignment]
        record.behavior_profile = taste_map["behavior_profile"]  # type: ignore[assignment]
        record.computed_metrics = taste_map["computed_metrics"]  # type: ignore[assignment]
        record.computed_at = utc_now()  # type: ignore[assignment]

        self.db.commit()
        self.db.refresh(record)
        return record

    def delete_taste_map(self, user_id: str) -> bool:
        count = self.db.query(TasteMapRecord).filter(TasteMapRecord.user_id == user_id).delete()
        self.db.commit()
        return count > 0

    def get_person_profile(self, user_id: str, person_type: str) -> PersonProfile | None:
        return (
            self.db.query(PersonProfile)
            .filter(PersonProfile.user_id == user_id, PersonProfile.person_type == person_type)
            .first()
        )

    def store_person_profile(
        self,
        user_id: str,
        person_type: str,
        top_persons: list[dict],
        total_items_analyzed: int,
        computation_method: str = "full",
    ) -> PersonProfile:
        """Upsert the profile for (user, person type)."""
        profile = self.get_person_profile(user_id, person_type)
        if profile is None:
            profile = PersonProfile(user_id=user_id, person_type=person_type)
            self.db.add(profile)

        profile.top_persons = top_persons  # type: ignore[assignment]
        profile.total_items_analyzed = total_items_analyzed  # type: ignore[assignment]
        profile.computation_method = computation_method  # type: ignore[assignment]
        profile.computed_at = utc_now()  # type: ignore[assignment]

        self.db.commit()
        self.db.refresh(profile)
        return profile

    # noinspection PyTypeChecker
    def get_person_profiles(self, user_ids: list[str], person_type: str) -> dict[str, PersonProfile]:
        """Profiles of several users keyed by user ID."""
        if not user_ids:
            return {}
        rows = (
            self.db.query(PersonProfile)
            .filter(PersonProfile.user_id.in_(user_ids), PersonProfile.person_type == person_type)
            .all()
        )
        return {row.user_id: row for row in rows}
