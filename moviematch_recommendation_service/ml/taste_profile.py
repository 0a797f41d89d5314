"""Build taste map profiles from a user's watch history."""
import logging

import pandas as pd

from moviematch_recommendation_service.ml.weighted_rating import round_half_up
from moviematch_recommendation_service.models import MEDIA_KINDS, WatchStatus

logger = logging.getLogger(__name__)

TOP_CAST_PER_ITEM = 20
TOP_PERSONS_LIMIT = 50
DROPPED_IMPLICIT_RATING = 3.0
NEUTRAL_RATING = 5.0


def _round(value: float) -> int:
    return int(round_half_up(value, 0))


def effective_rating(entry: dict) -> float:
    """
    Rating used for profile aggregation.

    Weighted rating, then the user's own rating, then an implicit low rating
    for unrated drops, then the provider vote average.
    """
    for key in ("weighted_rating", "user_rating"):
        if entry.get(key) is not None:
            return float(entry[key])
    if entry.get("status") == WatchStatus.DROPPED.value:
        return DROPPED_IMPLICIT_RATING
    if entry.get("vote_average") is not None:
        return float(entry["vote_average"])
    return NEUTRAL_RATING


def _scores_by(items: list[dict], field: str) -> pd.DataFrame:
    """Average rating and count per value of a list-valued field."""
    rows = [
        {"label": name, "rating": item["rating"]}
        for item in items
        for name in (item.get(field) or [])
    ]
    if not rows:
        return pd.DataFrame(columns=["label", "avg", "n"])

    df = pd.DataFrame(rows)
    grouped = df.groupby("label")["rating"].agg(["mean", "count"]).reset_index()
    return grouped.rename(columns={"mean": "avg", "count": "n"})


def compute_genre_profile(items: list[dict]) -> dict[str, int]:
    """
    Average rating per genre on a 0-100 scale.

    Args:
        items: Dicts with ``rating`` and ``genres`` (list of names)

    Returns:
        Dict mapping genre name to 0-100 score
    """
    grouped = _scores_by(items, "genres")
    return {row.label: _round(row.avg * 10) for row in grouped.itertuples(index=False)}


def compute_person_scores(items: list[dict], field: str) -> dict[str, int]:
    """Average rating per person (``cast`` or ``directors``) on a 0-100 scale."""
    grouped = _scores_by(items, field)
    return {row.label: _round(row.avg * 10) for row in grouped.itertuples(index=False)}


def top_persons(items: list[dict], field: str, limit: int = TOP_PERSONS_LIMIT) -> list[dict]:
    """
    Best rated persons, ties broken by appearance count then name.

    Returns:
        List of dicts with name, score (0-100) and count
    """
    grouped = _scores_by(items, field)
    if grouped.empty:
        return []
    grouped["score"] = grouped["avg"].map(lambda value: _round(value * 10))
    grouped = grouped.sort_values(["score", "n", "label"], ascending=[False, False, True])
    return [
        {"name": row.label, "score": int(row.score), "count": int(row.n)}
        for row in grouped.head(limit).itertuples(index=False)
    ]


def type_distribution(counts: dict[str, int]) -> dict[str, int]:
    """
    Percentage of total per media kind.

    Args:
        counts: Items per media kind

    Returns:
        Dict with every known media kind, rounded percentages
    """
    total = sum(counts.values())
    if total == 0:
        return {kind: 0 for kind in MEDIA_KINDS}
    return {kind: _round(counts.get(kind, 0) / total * 100) for kind in MEDIA_KINDS}


def compute_type_profile(items: list[dict]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for item in items:
        counts[item["media_kind"]] = counts.get(item["media_kind"], 0) + 1
    return type_distribution(counts)


def compute_rating_distribution(items: list[dict]) -> dict[str, int]:
    """High (>= 8), medium (>= 5) and low shares in percent."""
    if not items:
        return {"high": 0, "medium": 0, "low": 0}

    high = sum(1 for item in items if item["rating"] >= 8)
    medium = sum(1 for item in items if 5 <= item["rating"] < 8)
    low = len(items) - high - medium
    return {
        "high": _round(high / len(items) * 100),
        "medium": _round(medium / len(items) * 100),
        "low": _round(low / len(items) * 100),
    }


def compute_average_rating(items: list[dict]) -> float:
    if not items:
        return 0.0
    return round_half_up(sum(item["rating"] for item in items) / len(items), 1)


def compute_behavior_profile(status_counts: dict[str, int]) -> dict[str, int]:
    """
    Rewatch, drop and completion rates from the status counts of a user.

    Args:
        status_counts: Number of entries per status

    Returns:
        Dict with rewatch_rate, drop_rate, completion_rate (0-100)
    """
    watched = status_counts.get(WatchStatus.WATCHED.value, 0)
    rewatched = status_counts.get(WatchStatus.REWATCHED.value, 0)
    want = status_counts.get(WatchStatus.WANT.value, 0)
    dropped = status_counts.get(WatchStatus.DROPPED.value, 0)

    completed = watched + rewatched
    rewatch_rate = _round(rewatched / completed * 100) if completed else 0
    incomplete = want + dropped
    drop_rate = _round(dropped / incomplete * 100) if incomplete else 0
    started = completed + dropped
    completion_rate = _round(completed / started * 100) if started else 100

    return {"rewatch_rate": rewatch_rate, "drop_rate": drop_rate, "completion_rate": completion_rate}


def compute_metrics(genre_profile: dict[str, int], rating_distribution: dict[str, int]) -> dict[str, int]:
    # Genres with a score above 20 count as present; 20 genres is full diversity
    significant = sum(1 for score in genre_profile.values() if score > 20)
    return {
        "positive_intensity": rating_distribution["high"],
        "negative_intensity": rating_distribution["low"],
        "consistency": rating_distribution["medium"],
        "diversity": min(100, significant * 5),
    }


def empty_taste_map(behavior_profile: dict | None = None) -> dict:
    """Explicit empty taste map for users without classified genre data."""
    return {
        "genre_profile": {},
        "person_profile": {"actors": {}, "directors": {}},
        "type_profile": {kind: 0 for kind in MEDIA_KINDS},
        "rating_distribution": {"high": 0, "medium": 0, "low": 0},
        "average_rating": 0.0,
        "behavior_profile": behavior_profile
        or {"rewatch_rate": 0, "drop_rate": 0, "completion_rate": 100},
        "computed_metrics": {
            "positive_intensity": 0,
            "negative_intensity": 0,
            "consistency": 0,
            "diversity": 0,
        },
    }


def build_taste_map(items: list[dict], status_counts: dict[str, int]) -> dict:
    """
    Build every profile of a taste map.

    Args:
        items: Dicts with media_kind, rating (effective), genres, cast,
            directors; metadata fields are empty lists when unknown
        status_counts: Entries per status over the whole list

    Returns:
        Taste map dict (see ``empty_taste_map`` for the shape)
    """
    behavior = compute_behavior_profile(status_counts)
    genre_profile = compute_genre_profile(items)
    if not genre_profile:
        logger.info(f"No genre data in {len(items)} items, using empty taste map")
        return empty_taste_map(behavior)

    rating_distribution = compute_rating_distribution(items)
    return {
        "genre_profile": genre_profile,
        "person_profile": {
            "actors": compute_person_scores(items, "cast"),
            "directors": compute_person_scores(items, "directors"),
        },
        "type_profile": compute_type_profile(items),
        "rating_distribution": rating_distribution,
        "average_rating": compute_average_rating(items),
        "behavior_profile": behavior,
        "computed_metrics": compute_metrics(genre_profile, rating_distribution),
    }


def is_empty_taste_map(taste_map: dict | None) -> bool:
    return not taste_map or not taste_map.get("genre_profile")
