"""Recommend similar users' items featuring the user's favourite actors and directors."""
import logging

from moviematch_recommendation_service.algorithms.base import (
    RecommendationAlgorithm,
    RecommendationContext,
    RecommendationResult,
    RecommendationSession,
    collect_twin_candidates,
)
from moviematch_recommendation_service.models import COMPLETED_STATUSES

logger = logging.getLogger(__name__)

FAVOURITE_PERSON_SCORE = 60
MAX_SIMILAR_USERS = 10
ITEMS_PER_USER = 15
# Three matching persons already count as a full match
FULL_MATCH_PERSONS = 3
PERSON_TYPES = ("actor", "director")

WEIGHTS = {"person_match": 0.4, "rating": 0.4, "similarity": 0.2}


def person_match(item_persons: dict[str, list[str]], favourites: dict[str, set[str]]) -> float:
    """Share of a full match (0-1) from favourite persons credited on an item."""
    matches = sum(
        len(set(item_persons.get(person_type, [])) & favourites[person_type]) for person_type in PERSON_TYPES
    )
    return min(matches / FULL_MATCH_PERSONS, 1.0)


class PersonRecommendationsAlgorithm(RecommendationAlgorithm):
    name = "person_recommendations_v1"
    min_user_history = 5

    def _favourites(self, user_id: str) -> dict[str, set[str]]:
        profiles = self.data.person_profiles
        own = {person_type: profiles.get_person_profile(user_id, person_type) for person_type in PERSON_TYPES}
        if all(profile is None for profile in own.values()):
            self.data.taste_maps.compute_person_profiles(user_id)
            own = {person_type: profiles.get_person_profile(user_id, person_type) for person_type in PERSON_TYPES}
        return {
            person_type: {
                person["name"]
                for person in (profile.top_persons if profile is not None else None) or []
                if person.get("score", 0) >= FAVOURITE_PERSON_SCORE
            }
            for person_type, profile in own.items()
        }

    def generate(
        self, user_id: str, context: RecommendationContext, session: RecommendationSession
    ) -> RecommendationResult:
        favourites = self._favourites(user_id)
        if not any(favourites.values()):
            logger.info(f"{self.name}: no favourite persons for {user_id}")
            return RecommendationResult.empty()

        twins = [
            (other, similarity)
            for other, similarity in self.data.similar_users(user_id, 0.0, MAX_SIMILAR_USERS)
            if similarity > 0
        ]
        if not twins:
            logger.info(f"{self.name}: no similar users for {user_id}")
            return RecommendationResult.empty()

        similarity = dict(twins)
        entries = self.data.watchlist.get_users_entries(list(similarity), COMPLETED_STATUSES)
        pool = collect_twin_candidates(entries, similarity, per_user_limit=ITEMS_PER_USER)

        excluded = self.excluded_keys(user_id, context, session)
        matched = []
        for candidate in pool:
            if candidate.key in excluded:
                continue
            match = person_match(
                self.data.taste_maps.get_item_persons(candidate.external_item_id, candidate.media_kind), favourites
            )
            if match == 0:
                continue
            candidate.raw_score = (
                WEIGHTS["person_match"] * match
                + WEIGHTS["rating"] * candidate.signals["rating"] / 10
                + WEIGHTS["similarity"] * candidate.signals["similarity"]
            )
            matched.append(candidate)

        result = self.finalize(user_id, matched, context, session)
        result.metrics.candidates_pool_size = len(pool)
        return result
