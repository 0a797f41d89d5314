"""Unit tests for moviematch_recommendation_service.repos.watchlist_repository."""
import pytest
from datetime import timedelta

from moviematch_recommendation_service.repos.watchlist_repository import WatchlistRepository
from moviematch_recommendation_service.utils import utc_now


@pytest.fixture
def watchlist_repository(test_db_session):
    """Create a WatchlistRepository instance."""
    return WatchlistRepository(test_db_session)


class TestUpsertEntry:
    """Tests for upsert_entry method."""

    def test_insert_new_entry(self, watchlist_repository):
        """Test inserting a new entry."""
        # Act
        entry = watchlist_repository.upsert_entry({
            "user_id": "alice", "external_item_id": 1, "media_kind": "movie",
            "status": "watched", "user_rating": 8.0, "title": "Heat",
        })

        # Assert
        assert entry.id is not None
        assert entry.user_rating == 8.0
        assert entry.title == "Heat"

    def test_update_existing_entry(self, watchlist_repository):
        """Test updating keeps one row per key."""
        # Arrange
        first = watchlist_repository.upsert_entry({
            "user_id": "alice", "external_item_id": 1, "media_kind": "movie", "status": "want",
        })

        # Act
        second = watchlist_repository.upsert_entry({
            "user_id": "alice", "external_item_id": 1, "media_kind": "movie",
            "status": "watched", "user_rating": 6.0,
        })

        # Assert
        assert second.id == first.id
        assert second.status == "watched"
        assert watchlist_repository.count_user_entries("alice") == 1


class TestQueries:
    """Tests for read queries."""

    def test_get_user_entries_filters_and_orders(self, watchlist_repository, add_entry):
        """Test status filter and most-recent-first ordering."""
        # Arrange
        add_entry("alice", 1, days_ago=5)
        add_entry("alice", 2, days_ago=1)
        add_entry("alice", 3, status="want", days_ago=0)

        # Act
        result = watchlist_repository.get_user_entries("alice", statuses=("watched",))

        # Assert
        assert [entry.external_item_id for entry in result] == [2, 1]

    def test_get_user_entries_since(self, watchlist_repository, add_entry):
        """Test the since filter."""
        # Arrange
        add_entry("alice", 1, days_ago=40)
        add_entry("alice", 2, days_ago=2)

        # Act
        result = watchlist_repository.get_user_entries("alice", since=utc_now() - timedelta(days=30))

        # Assert
        assert [entry.external_item_id for entry in result] == [2]

    def test_get_rated_completed(self, watchlist_repository, add_entry):
        """Test only rated completed entries above the minimum are returned."""
        # Arrange
        add_entry("alice", 1, rating=9)
        add_entry("alice", 2, rating=5)
        add_entry("alice", 3, status="rewatched", rating=8)
        add_entry("alice", 4, status="dropped", rating=9)
        add_entry("alice", 5)

        # Act
        result = watchlist_repository.get_rated_completed("alice", min_rating=7)

        # Assert
        assert [entry.external_item_id for entry in result] == [1, 3]

    def test_get_item_keys(self, watchlist_repository, add_entry):
        """Test keys of every status are returned."""
        # Arrange
        add_entry("alice", 1)
        add_entry("alice", 2, status="want", media_kind="tv")

        # Act & Assert
        assert watchlist_repository.get_item_keys("alice") == {"1_movie", "2_tv"}

    def test_counts(self, watchlist_repository, add_entry):
        """Test status and media kind counters."""
        # Arrange
        add_entry("alice", 1)
        add_entry("alice", 2, media_kind="tv")
        add_entry("alice", 3, status="dropped")
        add_entry("alice", 4, status="want")

        # Act & Assert
        assert watchlist_repository.count_by_status("alice") == {"watched": 2, "dropped": 1, "want": 1}
        assert watchlist_repository.count_by_media_kind("alice") == {"movie": 1, "tv": 1}
        assert watchlist_repository.count_user_entries("alice", ("watched", "rewatched")) == 2

    def test_get_active_users(self, watchlist_repository, add_entry):
        """Test users below the completed minimum are skipped."""
        # Arrange
        for item_id in range(1, 4):
            add_entry("alice", item_id)
        add_entry("bob", 1)
        add_entry("bob", 2, status="want")

        # Act & Assert
        assert watchlist_repository.get_active_users(min_watch_count=3) == ["alice"]
        assert watchlist_repository.get_active_users(min_watch_count=1) == ["alice", "bob"]
        assert watchlist_repository.get_active_users(min_watch_count=1, offset=1) == ["bob"]

    def test_get_recently_active_users(self, watchlist_repository, add_entry):
        """Test activity window and exclusion."""
        # Arrange
        add_entry("alice", 1, days_ago=1)
        add_entry("bob", 1, days_ago=1)
        add_entry("bob", 2, days_ago=2)
        add_entry("carol", 1, days_ago=60)

        # Act
        result = watchlist_repository.get_recently_active_users(
            utc_now() - timedelta(days=30), exclude_user_id="alice"
        )

        # Assert
        assert result == ["bob"]


class TestPairQueries:
    """Tests for queries spanning two users."""

    def test_find_co_occurring_users(self, watchlist_repository, twin_users):
        """Test users sharing completed items are ranked by shared count."""
        # Act
        result = watchlist_repository.find_co_occurring_users("alice")

        # Assert
        assert result[0] == ("bob", 5)
        assert ("carol", 1) in result

    def test_co_occurrence_ignores_want(self, watchlist_repository, add_entry):
        """Test want entries do not count as shared."""
        # Arrange
        add_entry("alice", 1)
        add_entry("bob", 1, status="want")

        # Act & Assert
        assert watchlist_repository.find_co_occurring_users("alice") == []

    def test_get_shared_rated_items(self, watchlist_repository, add_entry):
        """Test only items both users rated are paired."""
        # Arrange
        add_entry("alice", 1, rating=9)
        add_entry("bob", 1, rating=7)
        add_entry("alice", 2, rating=8)
        add_entry("bob", 2)

        # Act
        result = watchlist_repository.get_shared_rated_items("alice", "bob")

        # Assert
        assert len(result) == 1
        assert result[0]["external_item_id"] == 1
        assert result[0]["rating_a"] == 9
        assert result[0]["rating_b"] == 7
        assert watchlist_repository.count_shared_items("alice", "bob") == 2

    def test_get_users_entries(self, watchlist_repository, twin_users):
        """Test bulk loading of several users."""
        # Act
        result = watchlist_repository.get_users_entries(["bob", "carol"], ("watched",))

        # Assert
        assert {entry.user_id for entry in result} == {"bob", "carol"}
        assert watchlist_repository.get_users_entries([], ("watched",)) == []

    def test_get_rated_item_keys(self, watchlist_repository, twin_users, add_entry):
        """Test keys are distinct, the requester is excluded and low ratings dropped."""
        # Arrange
        add_entry("carol", 4, rating=9)
        add_entry("carol", 4, rating=9, media_kind="tv")

        # Act
        result = watchlist_repository.get_rated_item_keys("alice", min_rating=8)

        # Assert
        assert [(item_id, kind) for item_id, kind, _ in result] == [
            (1, "movie"), (2, "movie"), (3, "movie"), (4, "movie"), (4, "tv"), (7, "movie"), (8, "movie"), (10, "movie"),
        ]
        assert result[0][2] == "Item 1"
