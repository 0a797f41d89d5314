"""Decayed weighted rating over a rating history."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from moviematch_recommendation_service.errors import ValidationError
from moviematch_recommendation_service.models import RatingAction

# Decimal arithmetic keeps results exact (24.8 / 3.2 is 7.75, not 7.7499...)
INITIAL_WEIGHT = Decimal("1.0")
RATING_CHANGE_WEIGHT = Decimal("0.9")
REWATCH_DECAY = Decimal("0.2")
REWATCH_MIN_WEIGHT = Decimal("0.3")

METHOD_NO_RECORD = "error: no rating found"
METHOD_NO_HISTORY = "no_history"
METHOD_WEIGHTED = "weighted_average"

_ACTIONS = {action.value for action in RatingAction}


@dataclass(frozen=True)
class WeightedRatingResult:
    weighted_rating: float | None
    total_reviews: int
    method: str

    def to_dict(self) -> dict:
        return {
            "weighted_rating": self.weighted_rating,
            "total_reviews": self.total_reviews,
            "method": self.method,
        }


def round_half_up(value, digits: int = 1) -> float:
    """Round like a person would (7.75 -> 7.8), not banker's rounding."""
    if not isinstance(value, Decimal):
        value = Decimal(repr(float(value)))
    return float(value.quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_UP))


def entry_weight(action_type: str, position: int) -> Decimal:
    """
    Weight of one history entry.

    Args:
        action_type: initial | rating_change | rewatch
        position: Index of the entry in the most-recent-first history

    Returns:
        Weight in (0, 1]
    """
    if action_type == RatingAction.INITIAL.value:
        return INITIAL_WEIGHT
    if action_type == RatingAction.RATING_CHANGE.value:
        return RATING_CHANGE_WEIGHT
    if action_type == RatingAction.REWATCH.value:
        return max(REWATCH_MIN_WEIGHT, Decimal(1) - REWATCH_DECAY * position)
    raise ValidationError(f"Unknown rating action type: {action_type!r}")


def validate_rating(rating) -> float:
    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        raise ValidationError(f"rating must be a number, got {rating!r}")
    if not 0 <= rating <= 10:
        raise ValidationError(f"rating must be between 0 and 10, got {rating}")
    return float(rating)


def calculate_weighted_rating(history: list[dict], record: dict | None) -> WeightedRatingResult:
    """
    Collapse a rating history into one current rating.

    The result is a pure function of its inputs, so recomputing from the
    same history always reproduces the stored value.

    Args:
        history: Dicts with ``rating`` and ``action_type``, most recent first
        record: The watch entry as a dict with ``user_rating``, or None when
            the user has no entry for the item

    Returns:
        WeightedRatingResult
    """
    if record is None:
        return WeightedRatingResult(None, 0, METHOD_NO_RECORD)

    if not history:
        return WeightedRatingResult(record.get("user_rating"), 1, METHOD_NO_HISTORY)

    weighted_sum = Decimal(0)
    total_weight = Decimal(0)
    for position, entry in enumerate(history):
        action_type = entry.get("action_type")
        if action_type not in _ACTIONS:
            raise ValidationError(f"Unknown rating action type: {action_type!r}")
        rating = Decimal(repr(validate_rating(entry.get("rating"))))
        weight = entry_weight(action_type, position)
        weighted_sum += weight * rating
        total_weight += weight

    return WeightedRatingResult(
        round_half_up(weighted_sum / total_weight, 1),
        len(history),
        METHOD_WEIGHTED,
    )
