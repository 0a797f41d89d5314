"""Merge per-algorithm recommendations into one ranked list."""
import logging
from dataclasses import replace

from moviematch_recommendation_service.algorithms.base import RecommendationItem, RecommendationSession
from moviematch_recommendation_service.algorithms.registry import AlgorithmRegistry
from moviematch_recommendation_service.errors import require_non_negative

logger = logging.getLogger(__name__)


def clamp_score(score: float) -> float:
    return max(0.0, min(100.0, float(score)))


class CandidateScorer:
    """
    Dedupe by (item, media kind), keep the best score, filter the session's
    already shown items and rank deterministically.
    """

    def __init__(self, registry: AlgorithmRegistry):
        self.registry = registry

    def merge(
        self,
        results: dict[str, list[RecommendationItem]],
        session: RecommendationSession,
        limit: int = 12,
        offset: int = 0,
    ) -> list[RecommendationItem]:
        """
        Merge recommendations of several algorithms.

        Args:
            results: Recommendations per algorithm name
            session: Current session; its previous_recommendations are dropped
            limit: Page size
            offset: Page start

        Returns:
            Ranked recommendations, each listing every contributing algorithm
        """
        require_non_negative("limit", limit)
        require_non_negative("offset", offset)

        merged: dict[str, RecommendationItem] = {}
        for algorithm_name in sorted(results, key=self.registry.priority_of):
            for item in results[algorithm_name]:
                if item.key in session.previous_recommendations:
                    continue
                score = clamp_score(item.score)
                existing = merged.get(item.key)
                if existing is None:
                    merged[item.key] = replace(
                        item,
                        score=score,
                        algorithms=[item.algorithm],
                        sources=list(item.sources),
                    )
                    continue

                if item.algorithm not in existing.algorithms:
                    existing.algorithms.append(item.algorithm)
                if score > existing.score:
                    existing.score = score
                    existing.algorithm = item.algorithm
                    existing.title = existing.title or item.title
                    existing.sources = list(item.sources)

        ranked = sorted(
            merged.values(),
            key=lambda item: (-item.score, self.registry.priority_of(item.algorithm), item.external_item_id, item.media_kind),
        )
        logger.debug(f"Merged {sum(len(items) for items in results.values())} items into {len(ranked)}")
        return ranked[offset : offset + limit]
