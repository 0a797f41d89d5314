"""Client for item metadata (genres, credits) from the TMDB API."""
import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from moviematch_recommendation_service.cache import TTLCache
from moviematch_recommendation_service.config import get_metadata_timeout, get_tmdb_api_key, get_tmdb_base_url

logger = logging.getLogger(__name__)

METADATA_TTL_SECONDS = 7 * 24 * 3600
TOP_CAST = 20


class MetadataClient:
    """
    Look up item details by external ID.

    Failures and timeouts are reported as ``None`` ("unknown metadata") and
    are not cached; successful lookups are cached for a week.
    """

    def __init__(
        self,
        cache: TTLCache | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.cache = cache or TTLCache()
        self.api_key = api_key or get_tmdb_api_key()
        self.base_url = (base_url or get_tmdb_base_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else get_metadata_timeout()

        # Configure session with retries
        if session is None:
            session = requests.Session()
            retry_strategy = Retry(
                total=3,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    @staticmethod
    def endpoint_kind(media_kind: str) -> str:
        """TMDB knows movies and tv; anime and cartoons are listed as either."""
        return "movie" if media_kind == "movie" else "tv"

    def fetch_details(self, external_item_id: int, media_kind: str) -> dict | None:
        """
        Get normalized details of one item.

        Args:
            external_item_id: TMDB ID
            media_kind: movie | tv | anime | cartoon

        Returns:
            Dict with genres, original_language, popularity, vote_count,
            vote_average, cast (top names) and directors, or None when unknown
        """
        if not self.api_key:
            logger.warning("TMDB_API_KEY not configured, metadata unavailable")
            return None

        key = f"metadata:{self.endpoint_kind(media_kind)}:{external_item_id}"
        try:
            return self.cache.get_or_compute(
                key,
                lambda: self._fetch(external_item_id, media_kind),
                METADATA_TTL_SECONDS,
            )
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Metadata lookup failed for {media_kind} {external_item_id}: {e}")
            return None

    def _fetch(self, external_item_id: int, media_kind: str) -> dict:
        url = f"{self.base_url}/{self.endpoint_kind(media_kind)}/{external_item_id}"
        response = self.session.get(
            url,
            params={"api_key": self.api_key, "append_to_response": "credits"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return self.normalize(response.json())

    @staticmethod
    def normalize(data: dict) -> dict:
        credits = data.get("credits") or {}
        return {
            "title": data.get("title") or data.get("name"),
            "genres": [genre["name"] for genre in data.get("genres") or [] if genre.get("name")],
            "original_language": data.get("original_language"),
            "popularity": data.get("popularity"),
            "vote_count": data.get("vote_count"),
            "vote_average": data.get("vote_average"),
            "cast": [person["name"] for person in (credits.get("cast") or [])[:TOP_CAST] if person.get("name")],
            "directors": [
                person["name"]
                for person in credits.get("crew") or []
                if person.get("job") == "Director" and person.get("name")
            ],
        }
