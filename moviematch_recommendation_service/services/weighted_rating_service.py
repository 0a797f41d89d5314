"""Service keeping stored weighted ratings in sync with rating history."""
import logging

from sqlalchemy.orm import Session

from moviematch_recommendation_service.errors import ValidationError, require_user_id
from moviematch_recommendation_service.ml.weighted_rating import (
    WeightedRatingResult,
    calculate_weighted_rating,
    validate_rating,
)
from moviematch_recommendation_service.models import MEDIA_KINDS, RatingAction, WatchStatus
from moviematch_recommendation_service.repos import RatingHistoryRepository, WatchlistRepository

logger = logging.getLogger(__name__)


def validate_item_key(user_id: str, external_item_id, media_kind: str) -> None:
    require_user_id(user_id)
    if isinstance(external_item_id, bool) or not isinstance(external_item_id, int) or external_item_id <= 0:
        raise ValidationError(f"external_item_id must be a positive integer, got {external_item_id!r}")
    if media_kind not in MEDIA_KINDS:
        raise ValidationError(f"Unknown media kind: {media_kind!r}")


class WeightedRatingService:
    def __init__(self, db: Session):
        self.db = db
        self.watchlist = WatchlistRepository(db)
        self.history = RatingHistoryRepository(db)

    def get_weighted_rating(self, user_id: str, external_item_id: int, media_kind: str) -> WeightedRatingResult:
        """
        Compute the weighted rating of one item and store it on the entry.

        Args:
            user_id: User ID
            external_item_id: Item ID
            media_kind: Media kind

        Returns:
            WeightedRatingResult (null rating when the user has no entry)
        """
        validate_item_key(user_id, external_item_id, media_kind)
        entry = self.watchlist.get_entry(user_id, external_item_id, media_kind)
        rows = self.history.get_history(user_id, external_item_id, media_kind)

        result = calculate_weighted_rating(
            [{"rating": row.rating, "action_type": row.action_type} for row in rows],
            {"user_rating": entry.user_rating} if entry is not None else None,
        )

        if entry is not None and entry.weighted_rating != result.weighted_rating:
            self.watchlist.set_weighted_rating(entry, result.weighted_rating)
        return result

    def record_rating(
        self,
        user_id: str,
        external_item_id: int,
        media_kind: str,
        rating: float,
        action_type: str | None = None,
    ) -> WeightedRatingResult:
        """
        Append a rating event and recompute the stored weighted rating.

        Args:
            user_id: User ID
            external_item_id: Item ID
            media_kind: Media kind
            rating: New rating, 0-10
            action_type: initial | rating_change | rewatch; defaults to
                initial for the first rating and rating_change afterwards

        Returns:
            The recomputed WeightedRatingResult
        """
        validate_item_key(user_id, external_item_id, media_kind)
        rating = validate_rating(rating)

        entry = self.watchlist.get_entry(user_id, external_item_id, media_kind)
        if entry is None:
            raise ValidationError(f"No watch entry for {user_id} / {external_item_id}_{media_kind}")

        if action_type is None:
            has_history = self.history.count_history(user_id, external_item_id, media_kind) > 0
            action_type = RatingAction.RATING_CHANGE.value if has_history else RatingAction.INITIAL.value
        elif action_type not in {action.value for action in RatingAction}:
            raise ValidationError(f"Unknown rating action type: {action_type!r}")

        self.history.append(user_id, external_item_id, media_kind, rating, action_type)

        entry.user_rating = rating  # type: ignore[assignment]
        if action_type == RatingAction.REWATCH.value:
            entry.watch_count = (entry.watch_count or 0) + 1  # type: ignore[assignment]
            entry.status = WatchStatus.REWATCHED.value  # type: ignore[assignment]
        self.db.commit()

        result = self.get_weighted_rating(user_id, external_item_id, media_kind)
        logger.info(
            f"Recorded {action_type} rating {rating} for {user_id} / {external_item_id}_{media_kind} "
            f"-> {result.weighted_rating}"
        )
        return result
