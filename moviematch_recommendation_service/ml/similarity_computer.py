"""Compute similarity between two users' taste profiles."""
import logging

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity

from moviematch_recommendation_service.models import MEDIA_KINDS

logger = logging.getLogger(__name__)

MOVIE_SCORE_WEIGHT = 0.5
TASTE_SIMILARITY_WEIGHT = 0.3
PERSON_OVERLAP_WEIGHT = 0.2

# Share of rating agreement vs. correlation inside movie_score
AGREEMENT_WEIGHT = 0.7
CORRELATION_WEIGHT = 0.3


def compute_overall_match(movie_score: float, taste_similarity: float, person_overlap: float) -> float:
    """
    Overall match of two users in [0, 1].

    Every caller that needs an overall match goes through this function.

    Args:
        movie_score: Agreement on shared items (0-1)
        taste_similarity: Genre profile cosine (0-1)
        person_overlap: Actor/director Jaccard average (0-1)

    Returns:
        Weighted sum
    """
    return (
        movie_score * MOVIE_SCORE_WEIGHT
        + taste_similarity * TASTE_SIMILARITY_WEIGHT
        + person_overlap * PERSON_OVERLAP_WEIGHT
    )


def genre_cosine_similarity(profile_a: dict[str, float], profile_b: dict[str, float]) -> float:
    """
    Cosine similarity of two genre profiles aligned on the union of genres.

    Returns 0 when either profile is empty or all zeros.
    """
    genres = sorted(set(profile_a) | set(profile_b))
    if not genres:
        return 0.0

    vectors = np.array(
        [
            [profile_a.get(genre, 0) for genre in genres],
            [profile_b.get(genre, 0) for genre in genres],
        ],
        dtype=float,
    )
    if not vectors[0].any() or not vectors[1].any():
        return 0.0

    similarity = float(cosine_similarity(vectors[0:1], vectors[1:2])[0, 0])
    return min(1.0, max(0.0, similarity))


def pearson_correlation(ratings_a: list[float], ratings_b: list[float]) -> float:
    """
    Pearson correlation of paired ratings in [-1, 1].

    Fewer than two pairs, mismatched lengths or zero variance give 0.
    """
    if len(ratings_a) < 2 or len(ratings_a) != len(ratings_b):
        return 0.0

    a = np.asarray(ratings_a, dtype=float)
    b = np.asarray(ratings_b, dtype=float)
    diff_a = a - a.mean()
    diff_b = b - b.mean()
    denominator = np.sqrt((diff_a**2).sum() * (diff_b**2).sum())
    if denominator == 0:
        return 0.0
    return float((diff_a * diff_b).sum() / denominator)


def jaccard_similarity(persons_a: dict[str, float], persons_b: dict[str, float]) -> float:
    """Jaccard index of the persons with a positive score. Both empty gives 0."""
    set_a = {name for name, score in persons_a.items() if score > 0}
    set_b = {name for name, score in persons_b.items() if score > 0}
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def person_overlap(profile_a: dict, profile_b: dict) -> float:
    """Mean of the actor and director Jaccard indices."""
    actors = jaccard_similarity(profile_a.get("actors", {}), profile_b.get("actors", {}))
    directors = jaccard_similarity(profile_a.get("directors", {}), profile_b.get("directors", {}))
    return (actors + directors) / 2


def type_similarity(distribution_a: dict[str, float], distribution_b: dict[str, float]) -> float:
    """1 - sum of absolute percentage differences / 200, over all media kinds."""
    total_diff = sum(abs(distribution_a.get(kind, 0) - distribution_b.get(kind, 0)) for kind in MEDIA_KINDS)
    return max(0.0, 1 - total_diff / 200)


def rating_patterns(shared_items: list[dict]) -> dict:
    """
    Bucket the rating differences on shared items.

    Args:
        shared_items: Dicts with rating_a and rating_b

    Returns:
        Dict with perfect, close, moderate, large counts, total and avg_diff
    """
    patterns = {"perfect": 0, "close": 0, "moderate": 0, "large": 0, "total": len(shared_items), "avg_diff": 0.0}
    if not shared_items:
        return patterns

    diffs = [abs(item["rating_a"] - item["rating_b"]) for item in shared_items]
    for diff in diffs:
        if diff == 0:
            patterns["perfect"] += 1
        elif diff <= 1:
            patterns["close"] += 1
        elif diff <= 2:
            patterns["moderate"] += 1
        else:
            patterns["large"] += 1
    patterns["avg_diff"] = round(sum(diffs) / len(diffs), 2)
    return patterns


def compute_movie_score(patterns: dict, correlation: float) -> float:
    """
    Agreement on shared items in [0, 1]; 0 with no shared rated items.

    Args:
        patterns: Output of ``rating_patterns``
        correlation: Pearson correlation over the same items
    """
    total = patterns["total"]
    if total == 0:
        return 0.0
    agreement = (patterns["perfect"] * 1.0 + patterns["close"] * 0.75 + patterns["moderate"] * 0.4) / total
    return AGREEMENT_WEIGHT * agreement + CORRELATION_WEIGHT * ((correlation + 1) / 2)


class UserSimilarityComputer:
    """Compute every sub-score of a user pair from taste maps and shared ratings."""

    def compute(self, taste_map_a: dict, taste_map_b: dict, shared_items: list[dict]) -> dict:
        """
        Compute similarity sub-scores and the overall match.

        Args:
            taste_map_a: Taste map of the first user
            taste_map_b: Taste map of the second user
            shared_items: Dicts with rating_a and rating_b for items both rated

        Returns:
            Dict with overall_match, movie_score, taste_similarity,
            rating_correlation, person_overlap, rating_patterns
        """
        taste = genre_cosine_similarity(taste_map_a.get("genre_profile", {}), taste_map_b.get("genre_profile", {}))
        correlation = pearson_correlation(
            [item["rating_a"] for item in shared_items],
            [item["rating_b"] for item in shared_items],
        )
        persons = person_overlap(taste_map_a.get("person_profile", {}), taste_map_b.get("person_profile", {}))
        patterns = rating_patterns(shared_items)
        movie_score = compute_movie_score(patterns, correlation)

        overall = compute_overall_match(movie_score, taste, persons)
        logger.debug(
            f"Similarity: movie={movie_score:.3f}, taste={taste:.3f}, "
            f"persons={persons:.3f}, overall={overall:.3f}"
        )
        return {
            "overall_match": overall,
            "movie_score": movie_score,
            "taste_similarity": taste,
            "rating_correlation": correlation,
            "person_overlap": persons,
            "rating_patterns": patterns,
        }
