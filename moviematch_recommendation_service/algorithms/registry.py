"""Ordered registry of recommendation algorithms."""
import logging
from typing import Iterator

from moviematch_recommendation_service.algorithms.base import AlgorithmData, RecommendationAlgorithm

logger = logging.getLogger(__name__)


class AlgorithmRegistry:
    """
    Algorithms in priority order (first registered ranks first on ties).
    """

    def __init__(self):
        self._algorithms: dict[str, RecommendationAlgorithm] = {}

    def register(self, algorithm: RecommendationAlgorithm) -> None:
        if not algorithm.name:
            raise ValueError(f"{type(algorithm).__name__} has no name")
        if algorithm.name in self._algorithms:
            raise ValueError(f"Algorithm already registered: {algorithm.name}")
        self._algorithms[algorithm.name] = algorithm

    def get(self, name: str) -> RecommendationAlgorithm | None:
        return self._algorithms.get(name)

    def names(self) -> list[str]:
        return list(self._algorithms)

    def priority_of(self, name: str) -> int:
        """Position in the registry; unknown names sort last."""
        try:
            return self.names().index(name)
        except ValueError:
            return len(self._algorithms)

    def __iter__(self) -> Iterator[RecommendationAlgorithm]:
        return iter(list(self._algorithms.values()))

    def __len__(self) -> int:
        return len(self._algorithms)

    def __contains__(self, name: str) -> bool:
        return name in self._algorithms


def build_default_registry(data: AlgorithmData) -> AlgorithmRegistry:
    # Imported here so the concrete algorithms can import base freely
    from moviematch_recommendation_service.algorithms.drop_patterns import DropPatternsAlgorithm
    from moviematch_recommendation_service.algorithms.genre_recommendations import GenreRecommendationsAlgorithm
    from moviematch_recommendation_service.algorithms.genre_twins import GenreTwinsAlgorithm
    from moviematch_recommendation_service.algorithms.person_recommendations import PersonRecommendationsAlgorithm
    from moviematch_recommendation_service.algorithms.person_twins import PersonTwinsAlgorithm
    from moviematch_recommendation_service.algorithms.random_baseline import RandomAlgorithm
    from moviematch_recommendation_service.algorithms.taste_match import TasteMatchAlgorithm
    from moviematch_recommendation_service.algorithms.type_twins import TypeTwinsAlgorithm
    from moviematch_recommendation_service.algorithms.want_overlap import WantOverlapAlgorithm

    registry = AlgorithmRegistry()
    for algorithm_cls in (
        TasteMatchAlgorithm,
        WantOverlapAlgorithm,
        DropPatternsAlgorithm,
        TypeTwinsAlgorithm,
        PersonTwinsAlgorithm,
        PersonRecommendationsAlgorithm,
        GenreTwinsAlgorithm,
        GenreRecommendationsAlgorithm,
        RandomAlgorithm,
    ):
        registry.register(algorithm_cls(data))
    logger.info(f"Registered {len(registry)} algorithms: {', '.join(registry.names())}")
    return registry
