"""Repository for managing user similarity scores in the database."""

import logging
from datetime import datetime

from sqlalchemy import desc, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from moviematch_recommendation_service.models import SimilarityScore
from moviematch_recommendation_service.utils import utc_now

logger = logging.getLogger(__name__)


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    """Order a pair so the smaller user ID comes first."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class SimilarityRepository:
    """
    Repository for managing user similarity scores.

    Every read and write goes through ``canonical_pair`` so one unordered
    pair maps to exactly one row.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_score(self, user_a: str, user_b: str) -> SimilarityScore | None:
        id_a, id_b = canonical_pair(user_a, user_b)
        return (
            self.db.query(SimilarityScore)
            .filter(SimilarityScore.user_id_a == id_a, SimilarityScore.user_id_b == id_b)
            .first()
        )

    def upsert_score(self, user_a: str, user_b: str, scores: dict, computed_by: str = "on-demand") -> SimilarityScore:
        """
        Insert or update the score of a pair.

        ``updated_at`` always refreshes; ``computed_at`` is only set on insert.
        Snapshots are swapped when the caller's order is not canonical.

        Args:
            user_a: First user (caller's order)
            user_b: Second user (caller's order)
            scores: Dict with overall_match, taste_similarity,
                rating_correlation, person_overlap, snapshot_a, snapshot_b
            computed_by: scheduler | manual | on-demand

        Returns:
            SimilarityScore object
        """
        id_a, id_b = canonical_pair(user_a, user_b)
        snapshot_a, snapshot_b = scores["snapshot_a"], scores["snapshot_b"]
        if id_a != user_a:
            snapshot_a, snapshot_b = snapshot_b, snapshot_a

        values = {
            "overall_match": scores["overall_match"],
            "taste_similarity": scores["taste_similarity"],
            "rating_correlation": scores["rating_correlation"],
            "person_overlap": scores["person_overlap"],
            "snapshot_a": snapshot_a,
            "snapshot_b": snapshot_b,
            "computed_by": computed_by,
        }

        record = self.get_score(id_a, id_b)
        if record is None:
            now = utc_now()
            record = SimilarityScore(user_id_a=id_a, user_id_b=id_b, computed_at=now, updated_at=now, **values)
            self.db.add(record)
            try:
                self.db.commit()
            except IntegrityError:
                # A concurrent writer inserted the pair first
                self.db.rollback()
                record = self.get_score(id_a, id_b)
                if record is None:
                    raise
                self._apply(record, values)
                self.db.commit()
        else:
            self._apply(record, values)
            self.db.commit()

        self.db.refresh(record)
        return record

    @staticmethod
    def _apply(record: SimilarityScore, values: dict) -> None:
        for key, value in values.items():
            setattr(record, key, value)
        record.updated_at = utc_now()  # type: ignore[assignment]

    # noinspection PyTypeChecker
    def get_scores_for_user(
        self,
        user_id: str,
        min_overall: float | None = None,
        updated_since: datetime | None = None,
        limit: int = 20,
        inclusive: bool = False,
    ) -> list[SimilarityScore]:
        """
        Get stored scores involving a user, best match first.

        Args:
            user_id: User ID on either side of the pair
            min_overall: Keep rows with overall_match above this value
            updated_since: Only rows refreshed after this time
            limit: Max number of rows
            inclusive: Also keep rows equal to min_overall

        Returns:
            List of SimilarityScore objects
        """
        query = self.db.query(SimilarityScore).filter(
            or_(SimilarityScore.user_id_a == user_id, SimilarityScore.user_id_b == user_id)
        )
        if min_overall is not None:
            if inclusive:
                query = query.filter(SimilarityScore.overall_match >= min_overall)
            else:
                query = query.filter(SimilarityScore.overall_match > min_overall)
        if updated_since is not None:
            query = query.filter(SimilarityScore.updated_at >= updated_since)
        return (
            query.order_by(desc(SimilarityScore.overall_match), SimilarityScore.id)
            .limit(limit)
            .all()
        )

    def count_scores(self, user_id: str | None = None) -> int:
        query = self.db.query(SimilarityScore)
        if user_id is not None:
            query = query.filter(
                or_(SimilarityScore.user_id_a == user_id, SimilarityScore.user_id_b == user_id)
            )
        return query.count()

    def delete_older_than(self, cutoff: datetime) -> int:
        """
        Delete rows not refreshed since ``cutoff``.

        Returns:
            Number of deleted records
        """
        count = (
            self.db.query(SimilarityScore)
            .filter(SimilarityScore.updated_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()

        logger.info(f"Deleted {count} similarity scores older than {cutoff.isoformat()}")
        return count

    def get_similarity_stats(self, threshold: float) -> dict:
        """Get statistics about stored similarity scores."""
        total_records = self.db.query(SimilarityScore).count()
        above_threshold = (
            self.db.query(SimilarityScore).filter(SimilarityScore.overall_match > threshold).count()
        )
        avg_overall = self.db.query(func.avg(SimilarityScore.overall_match)).scalar()

        users_a = {row[0] for row in self.db.query(SimilarityScore.user_id_a).distinct().all()}
        users_b = {row[0] for row in self.db.query(SimilarityScore.user_id_b).distinct().all()}

        latest = (
            self.db.query(SimilarityScore.updated_at)
            .order_by(desc(SimilarityScore.updated_at))
            .first()
        )

        return {
            "total_records": total_records,
            "above_threshold": above_threshold,
            "unique_users": len(users_a | users_b),
            "avg_overall_match": round(float(avg_overall), 4) if avg_overall is not None else 0.0,
            "last_computed": latest[0] if latest else None,
        }
