"""User-facing recommendation, similarity and rating endpoints."""
import azure.functions as func
import logging
import json
from dataclasses import dataclass

from sqlalchemy.orm import Session

from moviematch_recommendation_service.cache import TTLCache
from moviematch_recommendation_service.clients import MetadataClient
from moviematch_recommendation_service.errors import ValidationError
from moviematch_recommendation_service.models.database import SessionLocal
from moviematch_recommendation_service.services import SimilarityService, TasteMapService, WeightedRatingService
from moviematch_recommendation_service.services.recommendation_service import RecommendationService

# Initialize blueprint
bp = func.Blueprint()

# Shared across requests of one worker; scoped to the process, never to a test run
cache = TTLCache()
metadata_client = MetadataClient(cache=cache)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    taste_maps: TasteMapService
    similarity: SimilarityService
    weighted_ratings: WeightedRatingService
    recommendations: RecommendationService


def build_services(db: Session) -> Services:
    taste_maps = TasteMapService(db, metadata_client, cache)
    similarity = SimilarityService(db, taste_maps)
    return Services(
        taste_maps=taste_maps,
        similarity=similarity,
        weighted_ratings=WeightedRatingService(db),
        recommendations=RecommendationService(db, taste_maps, similarity),
    )


def _json(body: dict, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(body, default=str),
        status_code=status_code,
        mimetype="application/json"
    )


def _int_param(req: func.HttpRequest, name: str, default: int) -> int:
    value = req.params.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _bool_param(req: func.HttpRequest, name: str) -> bool:
    return str(req.params.get(name, "")).lower() in ("1", "true", "yes")


def _handle(action, description: str) -> func.HttpResponse:
    """Run ``action`` with a fresh session and map errors to responses."""
    db = SessionLocal()
    try:
        return action(build_services(db))
    except ValidationError as e:
        return _json({"error": str(e)}, status_code=400)
    except Exception as e:
        logger.error(f"Error {description}: {str(e)}", exc_info=True)
        return _json({"error": "Internal server error"}, status_code=500)
    finally:
        db.close()


@bp.route(route="users/{user_id}/recommendations", methods=["GET"])
def get_user_recommendations(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get merged recommendations for a user.

    Query Parameters:
        - limit: Number of recommendations (default: 12, max: 50)
        - offset: Pagination offset (default: 0)
    """
    user_id = req.route_params.get("user_id")

    def action(services: Services) -> func.HttpResponse:
        limit = _int_param(req, "limit", 12)
        offset = _int_param(req, "offset", 0)
        if limit < 1 or limit > 50:
            raise ValidationError("limit must be between 1 and 50")
        result = services.recommendations.get_recommendations(user_id, limit=limit, offset=offset)
        result["count"] = len(result["recommendations"])
        return _json(result)

    return _handle(action, "getting recommendations")


@bp.route(route="users/{user_id}/similar-users", methods=["GET"])
def get_similar_users(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get users with a similar taste.

    Query Parameters:
        - limit: Number of users (default: 10)
        - include_all: Include pairs below the similarity threshold
        - fresh_only: Only scores computed within the last week
    """
    user_id = req.route_params.get("user_id")

    def action(services: Services) -> func.HttpResponse:
        result = services.similarity.find_similar_users(
            user_id,
            limit=_int_param(req, "limit", 10),
            include_all=_bool_param(req, "include_all"),
            fresh_only=_bool_param(req, "fresh_only"),
        )
        return _json(result)

    return _handle(action, "finding similar users")


@bp.route(route="users/{user_id}/compare/{other_user_id}", methods=["GET"])
def compare_users(req: func.HttpRequest) -> func.HttpResponse:
    """Detailed taste comparison of two users."""
    user_id = req.route_params.get("user_id")
    other_user_id = req.route_params.get("other_user_id")

    def action(services: Services) -> func.HttpResponse:
        return _json(services.similarity.compare_users(user_id, other_user_id))

    return _handle(action, "comparing users")


@bp.route(route="users/{user_id}/taste-map", methods=["GET"])
def get_taste_map(req: func.HttpRequest) -> func.HttpResponse:
    """Get the (cached) taste map of a user."""
    user_id = req.route_params.get("user_id")

    def action(services: Services) -> func.HttpResponse:
        return _json(services.taste_maps.get_taste_map(user_id))

    return _handle(action, "getting taste map")


@bp.route(route="users/{user_id}/ratings/{media_kind}/{item_id}", methods=["GET", "POST"])
def weighted_rating(req: func.HttpRequest) -> func.HttpResponse:
    """
    GET: current weighted rating of an item.
    POST: record a rating ({"rating": 8, "action_type": "rewatch"}) and return
    the recomputed weighted rating.
    """
    user_id = req.route_params.get("user_id")
    media_kind = req.route_params.get("media_kind")

    def action(services: Services) -> func.HttpResponse:
        try:
            item_id = int(req.route_params.get("item_id"))
        except (TypeError, ValueError):
            raise ValidationError("item_id must be an integer")

        if req.method == "POST":
            try:
                body = req.get_json()
            except ValueError:
                raise ValidationError("Request body must be JSON")
            if not isinstance(body, dict) or "rating" not in body:
                raise ValidationError("rating is required")
            result = services.weighted_ratings.record_rating(
                user_id, item_id, media_kind, body["rating"], body.get("action_type")
            )
        else:
            result = services.weighted_ratings.get_weighted_rating(user_id, item_id, media_kind)

        return _json({"user_id": user_id, "external_item_id": item_id, "media_kind": media_kind, **result.to_dict()})

    return _handle(action, "computing weighted rating")


# noinspection PyUnusedLocal
@bp.route(route="recommendations/stats", methods=["GET"])
def get_recommendation_stats(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get statistics about stored similarity scores.
    """
    def action(services: Services) -> func.HttpResponse:
        return _json(services.similarity.get_stats())

    return _handle(action, "getting stats")


# noinspection PyUnusedLocal
@bp.route(route="recommendations/health", methods=["GET"])
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint."""
    return _json({
        "status": "healthy",
        "service": "moviematch-recommendation-service",
        "version": "1.0.0"
    })
