"""Batch-trigger endpoints guarded by an injected authorization check."""
import azure.functions as func
import hmac
import logging
import json
from typing import Callable

from moviematch_recommendation_service.config import get_admin_api_key
from moviematch_recommendation_service.errors import ValidationError
from moviematch_recommendation_service.models.database import SessionLocal
from moviematch_recommendation_service.services.batch_service import BatchService

logger = logging.getLogger(__name__)

Authorizer = Callable[[func.HttpRequest], bool]


class ApiKeyAuthorizer:
    """Accept requests carrying the configured key in ``x-admin-key``."""

    def __init__(self, api_key: str | None):
        self.api_key = api_key

    def __call__(self, req: func.HttpRequest) -> bool:
        if not self.api_key:
            return False
        supplied = req.headers.get("x-admin-key") or ""
        return hmac.compare_digest(supplied, self.api_key)


def _json(body: dict, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(json.dumps(body, default=str), status_code=status_code, mimetype="application/json")


def _pagination(req: func.HttpRequest, default_limit: int) -> tuple[int, int]:
    try:
        body = req.get_json() if req.get_body() else {}
    except ValueError:
        raise ValidationError("Request body must be JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        limit = int(body.get("limit", req.params.get("limit", default_limit)))
        offset = int(body.get("offset", req.params.get("offset", 0)))
    except (TypeError, ValueError):
        raise ValidationError("limit and offset must be integers")
    return limit, offset


class AdminHandlers:
    """
    Request handlers for the batch-trigger routes.

    The authorization check is supplied by the caller; batch jobs themselves
    know nothing about admin identities.
    """

    def __init__(
        self,
        authorize: Authorizer,
        batch_service_factory: Callable[[], BatchService],
    ):
        self.authorize = authorize
        self.batch_service_factory = batch_service_factory

    def compute_similarities(self, req: func.HttpRequest) -> func.HttpResponse:
        return self._run(req, "compute_all_similarity_scores", 100)

    def compute_persons(self, req: func.HttpRequest) -> func.HttpResponse:
        return self._run(req, "compute_all_person_profiles", 50)

    def _run(self, req: func.HttpRequest, job: str, default_limit: int) -> func.HttpResponse:
        if not self.authorize(req):
            logger.warning(f"Unauthorized {job} request")
            return _json({"error": "Unauthorized"}, status_code=401)
        try:
            limit, offset = _pagination(req, default_limit)
            service = self.batch_service_factory()
            return _json(getattr(service, job)(limit=limit, offset=offset))
        except ValidationError as e:
            return _json({"error": str(e)}, status_code=400)
        except Exception as e:
            logger.error(f"Error running {job}: {str(e)}", exc_info=True)
            return _json({"error": "Internal server error"}, status_code=500)


# Initialize blueprint
bp = func.Blueprint()

handlers = AdminHandlers(ApiKeyAuthorizer(get_admin_api_key()), lambda: BatchService(SessionLocal))


@bp.route(route="admin/compute-similarities", methods=["POST"])
def compute_similarities(req: func.HttpRequest) -> func.HttpResponse:
    """
    Recompute similarity scores for a page of users.

    Body: {"limit": 100, "offset": 0}
    """
    return handlers.compute_similarities(req)


@bp.route(route="admin/compute-persons", methods=["POST"])
def compute_persons(req: func.HttpRequest) -> func.HttpResponse:
    """
    Recompute actor and director profiles for a page of users.

    Body: {"limit": 50, "offset": 0}
    """
    return handlers.compute_persons(req)
