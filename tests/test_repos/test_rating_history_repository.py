"""Unit tests for rating history, taste map and recommendation log repositories."""
import pytest
from datetime import timedelta

from moviematch_recommendation_service.repos.rating_history_repository import RatingHistoryRepository
from moviematch_recommendation_service.repos.recommendation_log_repository import RecommendationLogRepository
from moviematch_recommendation_service.repos.taste_map_repository import TasteMapRepository
from moviematch_recommendation_service.ml.taste_profile import empty_taste_map
from moviematch_recommendation_service.utils import utc_now


@pytest.fixture
def rating_history_repository(test_db_session):
    """Create a RatingHistoryRepository instance."""
    return RatingHistoryRepository(test_db_session)


@pytest.fixture
def taste_map_repository(test_db_session):
    """Create a TasteMapRepository instance."""
    return TasteMapRepository(test_db_session)


@pytest.fixture
def recommendation_log_repository(test_db_session):
    """Create a RecommendationLogRepository instance."""
    return RecommendationLogRepository(test_db_session)


class TestRatingHistoryRepository:
    """Tests for RatingHistoryRepository."""

    def test_history_most_recent_first(self, rating_history_repository):
        """Test entries come back newest first."""
        # Arrange
        now = utc_now()
        rating_history_repository.append("alice", 1, "movie", 6.0, "initial", created_at=now - timedelta(days=2))
        rating_history_repository.append("alice", 1, "movie", 8.0, "rating_change", created_at=now - timedelta(days=1))
        rating_history_repository.append("alice", 1, "movie", 9.0, "rewatch", created_at=now)

        # Act
        history = rating_history_repository.get_history("alice", 1, "movie")

        # Assert
        assert [entry.action_type for entry in history] == ["rewatch", "rating_change", "initial"]

    def test_history_scoped_to_key(self, rating_history_repository):
        """Test other keys are not mixed in."""
        # Arrange
        rating_history_repository.append("alice", 1, "movie", 6.0, "initial")
        rating_history_repository.append("alice", 1, "tv", 7.0, "initial")
        rating_history_repository.append("bob", 1, "movie", 8.0, "initial")

        # Act & Assert
        assert rating_history_repository.count_history("alice", 1, "movie") == 1
        assert rating_history_repository.get_history("carol", 1, "movie") == []


class TestTasteMapRepository:
    """Tests for TasteMapRepository."""

    def test_store_and_replace_taste_map(self, taste_map_repository):
        """Test a second store replaces the first."""
        # Arrange
        taste_map = empty_taste_map()
        taste_map_repository.store_taste_map("alice", taste_map)
        taste_map["genre_profile"] = {"Drama": 90}

        # Act
        record = taste_map_repository.store_taste_map("alice", taste_map)

        # Assert
        assert taste_map_repository.get_taste_map("alice").genre_profile == {"Drama": 90}
        assert record.computed_at is not None

    def test_delete_taste_map(self, taste_map_repository):
        """Test deleting a stored map."""
        # Arrange
        taste_map_repository.store_taste_map("alice", empty_taste_map())

        # Act & Assert
        assert taste_map_repository.delete_taste_map("alice") is True
        assert taste_map_repository.delete_taste_map("alice") is False

    def test_person_profiles(self, taste_map_repository):
        """Test person profile upsert and bulk lookup."""
        # Arrange
        taste_map_repository.store_person_profile("alice", "actor", [{"name": "A", "score": 90, "count": 2}], 5)
        taste_map_repository.store_person_profile("alice", "actor", [{"name": "B", "score": 80, "count": 1}], 6)
        taste_map_repository.store_person_profile("bob", "actor", [], 0)
        taste_map_repository.store_person_profile("bob", "director", [], 0)

        # Act
        profiles = taste_map_repository.get_person_profiles(["alice", "bob", "carol"], "actor")

        # Assert
        assert set(profiles) == {"alice", "bob"}
        assert profiles["alice"].top_persons[0]["name"] == "B"
        assert profiles["alice"].total_items_analyzed == 6
        assert taste_map_repository.get_person_profiles([], "actor") == {}


class TestRecommendationLogRepository:
    """Tests for RecommendationLogRepository."""

    def test_log_and_read_recent_keys(self, recommendation_log_repository):
        """Test shown items come back inside the window."""
        # Arrange
        recommendation_log_repository.log_shown(
            "alice",
            [
                {"external_item_id": 1, "media_kind": "movie", "algorithm": "random_v1", "score": 50},
                {"external_item_id": 2, "media_kind": "tv", "algorithm": "taste_match_v1"},
            ],
            session_id="s1",
        )

        # Act
        keys = recommendation_log_repository.get_recent_item_keys("alice", utc_now() - timedelta(days=7))

        # Assert
        assert keys == {"1_movie", "2_tv"}
        assert recommendation_log_repository.get_recent_item_keys("bob", utc_now() - timedelta(days=7)) == set()

    def test_log_nothing(self, recommendation_log_repository):
        """Test logging an empty list writes nothing."""
        assert recommendation_log_repository.log_shown("alice", []) == 0

    def test_delete_older_than(self, recommendation_log_repository):
        """Test cleanup removes only old rows."""
        # Arrange
        recommendation_log_repository.log_shown(
            "alice", [{"external_item_id": 1, "media_kind": "movie", "algorithm": "random_v1"}]
        )

        # Act & Assert
        assert recommendation_log_repository.delete_older_than(utc_now() - timedelta(days=1)) == 0
        assert recommendation_log_repository.delete_older_than(utc_now() + timedelta(days=1)) == 1
