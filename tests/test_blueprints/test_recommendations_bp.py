"""Integration tests for recommendations blueprint Azure Functions."""
import pytest
import json
from unittest.mock import Mock, patch
import azure.functions as func

from moviematch_recommendation_service.blueprints import recommendations_bp
from moviematch_recommendation_service.blueprints.recommendations_bp import (
    compare_users,
    get_recommendation_stats,
    get_similar_users,
    get_taste_map,
    get_user_recommendations,
    health_check,
    weighted_rating,
)
from moviematch_recommendation_service.errors import ValidationError
from moviematch_recommendation_service.ml.weighted_rating import WeightedRatingResult

BP = 'moviematch_recommendation_service.blueprints.recommendations_bp'


def _call(route, req):
    """Invoke the user function behind a blueprint route."""
    return route.build().get_user_function()(req)


def _request(route_params=None, params=None, method="GET", body=None):
    mock_req = Mock(spec=func.HttpRequest)
    mock_req.route_params = route_params or {}
    mock_req.params = params or {}
    mock_req.method = method
    if isinstance(body, Exception):
        mock_req.get_json.side_effect = body
    else:
        mock_req.get_json.return_value = body
    return mock_req


@pytest.fixture
def services():
    """Patch the per-request session and service wiring."""
    mock_services = Mock()
    with patch(f'{BP}.SessionLocal') as mock_session_local, \
            patch(f'{BP}.build_services', return_value=mock_services):
        mock_services.session = mock_session_local.return_value
        yield mock_services


class TestGetUserRecommendations:
    """Tests for get_user_recommendations function."""

    def test_returns_recommendations(self, services):
        """Test getting recommendations for a user."""
        # Arrange
        services.recommendations.get_recommendations.return_value = {
            "session_id": "s1",
            "user_id": "alice",
            "recommendations": [{"external_item_id": 4, "media_kind": "movie", "score": 100}],
            "metrics": {},
            "context": {},
        }

        # Act
        response = _call(get_user_recommendations, _request({"user_id": "alice"}, {"limit": "5"}))

        # Assert
        assert response.status_code == 200
        assert response.mimetype == "application/json"
        body = json.loads(response.get_body())
        assert body["count"] == 1
        services.recommendations.get_recommendations.assert_called_once_with("alice", limit=5, offset=0)

    def test_session_closed(self, services):
        """Test the database session is closed after the request."""
        # Arrange
        services.recommendations.get_recommendations.return_value = {"recommendations": []}

        # Act
        _call(get_user_recommendations, _request({"user_id": "alice"}))

        # Assert
        services.session.close.assert_called_once()

    @pytest.mark.parametrize("limit", ["0", "51", "abc"])
    def test_invalid_limit(self, services, limit):
        """Test 400 response for a bad limit."""
        # Act
        response = _call(get_user_recommendations, _request({"user_id": "alice"}, {"limit": limit}))

        # Assert
        assert response.status_code == 400
        assert "error" in json.loads(response.get_body())

    def test_validation_error_from_service(self, services):
        """Test service validation errors become 400."""
        # Arrange
        services.recommendations.get_recommendations.side_effect = ValidationError("user_id must be a non-empty string")

        # Act
        response = _call(get_user_recommendations, _request({"user_id": ""}))

        # Assert
        assert response.status_code == 400

    def test_unexpected_error(self, services):
        """Test unexpected errors become 500 without details."""
        # Arrange
        services.recommendations.get_recommendations.side_effect = RuntimeError("secret db detail")

        # Act
        response = _call(get_user_recommendations, _request({"user_id": "alice"}))

        # Assert
        assert response.status_code == 500
        assert json.loads(response.get_body()) == {"error": "Internal server error"}


class TestSimilarityRoutes:
    """Tests for similar-users, compare and taste-map functions."""

    def test_get_similar_users(self, services):
        """Test query flags are passed through."""
        # Arrange
        services.similarity.find_similar_users.return_value = {"similar_users": [], "message": "none"}

        # Act
        response = _call(
            get_similar_users, _request({"user_id": "alice"}, {"limit": "3", "include_all": "true"})
        )

        # Assert
        assert response.status_code == 200
        services.similarity.find_similar_users.assert_called_once_with(
            "alice", limit=3, include_all=True, fresh_only=False
        )

    def test_compare_users(self, services):
        """Test comparing two users."""
        # Arrange
        services.similarity.compare_users.return_value = {"metrics": {"overall_match": 0.8}}

        # Act
        response = _call(compare_users, _request({"user_id": "alice", "other_user_id": "bob"}))

        # Assert
        assert json.loads(response.get_body())["metrics"]["overall_match"] == 0.8
        services.similarity.compare_users.assert_called_once_with("alice", "bob")

    def test_get_taste_map(self, services):
        """Test getting a taste map."""
        # Arrange
        services.taste_maps.get_taste_map.return_value = {"user_id": "alice", "is_empty": True}

        # Act
        response = _call(get_taste_map, _request({"user_id": "alice"}))

        # Assert
        assert response.status_code == 200
        assert json.loads(response.get_body())["is_empty"] is True

    def test_get_recommendation_stats(self, services):
        """Test getting similarity statistics."""
        # Arrange
        services.similarity.get_stats.return_value = {"total_records": 3, "threshold": 0.7}

        # Act
        response = _call(get_recommendation_stats, _request())

        # Assert
        assert json.loads(response.get_body())["total_records"] == 3


class TestWeightedRating:
    """Tests for weighted_rating function."""

    def test_get(self, services):
        """Test reading the weighted rating of an item."""
        # Arrange
        services.weighted_ratings.get_weighted_rating.return_value = WeightedRatingResult(7.8, 5, "weighted_average")

        # Act
        response = _call(weighted_rating, _request({"user_id": "alice", "media_kind": "movie", "item_id": "550"}))

        # Assert
        body = json.loads(response.get_body())
        assert body == {
            "user_id": "alice",
            "external_item_id": 550,
            "media_kind": "movie",
            "weighted_rating": 7.8,
            "total_reviews": 5,
            "method": "weighted_average",
        }

    def test_post(self, services):
        """Test recording a rating."""
        # Arrange
        services.weighted_ratings.record_rating.return_value = WeightedRatingResult(9.0, 2, "weighted_average")
        req = _request(
            {"user_id": "alice", "media_kind": "tv", "item_id": "1396"},
            method="POST",
            body={"rating": 9, "action_type": "rewatch"},
        )

        # Act
        response = _call(weighted_rating, req)

        # Assert
        assert response.status_code == 200
        services.weighted_ratings.record_rating.assert_called_once_with("alice", 1396, "tv", 9, "rewatch")

    def test_post_without_rating(self, services):
        """Test 400 when the rating is missing."""
        # Act
        response = _call(
            weighted_rating,
            _request({"user_id": "alice", "media_kind": "tv", "item_id": "1"}, method="POST", body={}),
        )

        # Assert
        assert response.status_code == 400

    def test_post_invalid_json(self, services):
        """Test 400 when the body is not JSON."""
        # Act
        response = _call(
            weighted_rating,
            _request({"user_id": "alice", "media_kind": "tv", "item_id": "1"}, method="POST", body=ValueError()),
        )

        # Assert
        assert response.status_code == 400

    def test_bad_item_id(self, services):
        """Test 400 for a non-numeric item ID."""
        # Act
        response = _call(weighted_rating, _request({"user_id": "alice", "media_kind": "tv", "item_id": "abc"}))

        # Assert
        assert response.status_code == 400


class TestHealthCheck:
    """Tests for health_check function."""

    def test_health_check(self):
        """Test the health endpoint."""
        # Act
        response = _call(health_check, _request())

        # Assert
        assert response.status_code == 200
        body = json.loads(response.get_body())
        assert body["status"] == "healthy"
        assert body["service"] == "moviematch-recommendation-service"


class TestBuildServices:
    """Tests for build_services function."""

    def test_wires_services(self, test_db_session):
        """Test every service shares the request session."""
        # Act
        built = recommendations_bp.build_services(test_db_session)

        # Assert
        assert built.similarity.taste_maps is built.taste_maps
        assert built.recommendations.db is test_db_session
        assert built.taste_maps.cache is recommendations_bp.cache
