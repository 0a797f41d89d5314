"""Unit tests for moviematch_recommendation_service.repos.similarity_repository."""
import pytest
from datetime import timedelta

from moviematch_recommendation_service.models import SimilarityScore
from moviematch_recommendation_service.repos.similarity_repository import SimilarityRepository, canonical_pair
from moviematch_recommendation_service.utils import ensure_utc, utc_now


@pytest.fixture
def similarity_repository(test_db_session):
    """Create a SimilarityRepository instance."""
    return SimilarityRepository(test_db_session)


def _scores(overall=0.8, snapshot_a=None, snapshot_b=None):
    return {
        "overall_match": overall,
        "taste_similarity": 0.6,
        "rating_correlation": 0.4,
        "person_overlap": 0.1,
        "snapshot_a": snapshot_a or {"owner": "first"},
        "snapshot_b": snapshot_b or {"owner": "second"},
    }


class TestCanonicalPair:
    """Tests for canonical_pair."""

    def test_orders_pair(self):
        """Test the smaller ID always comes first."""
        assert canonical_pair("bob", "alice") == ("alice", "bob")
        assert canonical_pair("alice", "bob") == ("alice", "bob")


class TestUpsertScore:
    """Tests for upsert_score method."""

    def test_insert_canonicalizes_pair(self, similarity_repository):
        """Test storing (bob, alice) writes the row as (alice, bob)."""
        # Act
        record = similarity_repository.upsert_score(
            "bob", "alice", _scores(snapshot_a={"owner": "bob"}, snapshot_b={"owner": "alice"})
        )

        # Assert
        assert record.user_id_a == "alice"
        assert record.user_id_b == "bob"
        assert record.snapshot_a == {"owner": "alice"}
        assert record.snapshot_b == {"owner": "bob"}

    def test_repeated_upserts_keep_single_row(self, similarity_repository, test_db_session):
        """Test both orders update the same row."""
        # Act
        similarity_repository.upsert_score("alice", "bob", _scores(overall=0.5))
        similarity_repository.upsert_score("bob", "alice", _scores(overall=0.9), computed_by="scheduler")
        similarity_repository.upsert_score("alice", "bob", _scores(overall=0.75))

        # Assert
        rows = test_db_session.query(SimilarityScore).all()
        assert len(rows) == 1
        assert rows[0].overall_match == 0.75

    def test_update_keeps_computed_at(self, similarity_repository):
        """Test an update refreshes updated_at but not computed_at."""
        # Arrange
        first = similarity_repository.upsert_score("alice", "bob", _scores())
        computed_at = ensure_utc(first.computed_at)

        # Act
        second = similarity_repository.upsert_score("alice", "bob", _scores(overall=0.2), computed_by="manual")

        # Assert
        assert ensure_utc(second.computed_at) == computed_at
        assert ensure_utc(second.updated_at) >= computed_at
        assert second.computed_by == "manual"

    def test_get_score_either_order(self, similarity_repository):
        """Test lookups are symmetric."""
        # Arrange
        similarity_repository.upsert_score("alice", "bob", _scores())

        # Act & Assert
        assert similarity_repository.get_score("bob", "alice") is similarity_repository.get_score("alice", "bob")
        assert similarity_repository.get_score("alice", "carol") is None


class TestGetScoresForUser:
    """Tests for get_scores_for_user method."""

    def test_threshold_is_strict_by_default(self, similarity_repository):
        """Test a score equal to the minimum is excluded unless inclusive."""
        # Arrange
        similarity_repository.upsert_score("alice", "bob", _scores(overall=0.7))
        similarity_repository.upsert_score("alice", "carol", _scores(overall=0.9))
        similarity_repository.upsert_score("dave", "alice", _scores(overall=0.3))

        # Act
        strict = similarity_repository.get_scores_for_user("alice", min_overall=0.7)
        inclusive = similarity_repository.get_scores_for_user("alice", min_overall=0.7, inclusive=True)

        # Assert
        assert [row.other_user("alice") for row in strict] == ["carol"]
        assert [row.other_user("alice") for row in inclusive] == ["carol", "bob"]

    def test_user_on_either_side(self, similarity_repository):
        """Test rows where the user is user_id_b are found."""
        # Arrange
        similarity_repository.upsert_score("alice", "zed", _scores())

        # Act
        result = similarity_repository.get_scores_for_user("zed")

        # Assert
        assert len(result) == 1
        assert result[0].other_user("zed") == "alice"

    def test_updated_since(self, similarity_repository):
        """Test stale rows are filtered out."""
        # Arrange
        similarity_repository.upsert_score("alice", "bob", _scores())

        # Act
        result = similarity_repository.get_scores_for_user("alice", updated_since=utc_now() + timedelta(hours=1))

        # Assert
        assert result == []


class TestMaintenance:
    """Tests for cleanup and statistics."""

    def test_delete_older_than(self, similarity_repository, test_db_session):
        """Test old rows are deleted."""
        # Arrange
        record = similarity_repository.upsert_score("alice", "bob", _scores())
        record.updated_at = utc_now() - timedelta(days=400)
        test_db_session.commit()
        similarity_repository.upsert_score("alice", "carol", _scores())

        # Act
        deleted = similarity_repository.delete_older_than(utc_now() - timedelta(days=365))

        # Assert
        assert deleted == 1
        assert similarity_repository.count_scores() == 1

    def test_get_similarity_stats(self, similarity_repository):
        """Test statistics over stored rows."""
        # Arrange
        similarity_repository.upsert_score("alice", "bob", _scores(overall=0.8))
        similarity_repository.upsert_score("carol", "alice", _scores(overall=0.4))

        # Act
        stats = similarity_repository.get_similarity_stats(threshold=0.7)

        # Assert
        assert stats["total_records"] == 2
        assert stats["above_threshold"] == 1
        assert stats["unique_users"] == 3
        assert stats["avg_overall_match"] == pytest.approx(0.6)
        assert stats["last_computed"] is not None
        assert similarity_repository.count_scores("bob") == 1

    def test_stats_empty(self, similarity_repository):
        """Test statistics with no rows."""
        # Act
        stats = similarity_repository.get_similarity_stats(threshold=0.7)

        # Assert
        assert stats["total_records"] == 0
        assert stats["avg_overall_match"] == 0.0
        assert stats["last_computed"] is None
