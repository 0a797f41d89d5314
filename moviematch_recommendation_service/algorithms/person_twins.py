"""Recommend items from users who favour the same actors and directors."""
import logging

from moviematch_recommendation_service.algorithms.base import (
    RecommendationAlgorithm,
    RecommendationContext,
    RecommendationResult,
    RecommendationSession,
    collect_twin_candidates,
    score_twin_candidates,
)
from moviematch_recommendation_service.ml.similarity_computer import jaccard_similarity
from moviematch_recommendation_service.models import COMPLETED_STATUSES

logger = logging.getLogger(__name__)

MIN_PERSON_SIMILARITY = 0.5
MAX_TWINS = 15
ITEMS_PER_USER = 10
PERSON_TYPES = ("actor", "director")

WEIGHTS = (0.5, 0.3, 0.2)


def _as_scores(profile) -> dict[str, float]:
    if profile is None:
        return {}
    return {person["name"]: person.get("score", 1) for person in profile.top_persons or []}


class PersonTwinsAlgorithm(RecommendationAlgorithm):
    name = "person_twins_v1"
    min_user_history = 10

    def generate(
        self, user_id: str, context: RecommendationContext, session: RecommendationSession
    ) -> RecommendationResult:
        profiles = self.data.person_profiles
        own = {person_type: profiles.get_person_profile(user_id, person_type) for person_type in PERSON_TYPES}
        if all(profile is None for profile in own.values()):
            self.data.taste_maps.compute_person_profiles(user_id)
            own = {person_type: profiles.get_person_profile(user_id, person_type) for person_type in PERSON_TYPES}

        others = self.data.similarity.find_candidates(user_id)
        other_profiles = {
            person_type: profiles.get_person_profiles(others, person_type) for person_type in PERSON_TYPES
        }

        twins = []
        for other in others:
            if other not in other_profiles["actor"] and other not in other_profiles["director"]:
                continue
            scores = [
                jaccard_similarity(_as_scores(own[person_type]), _as_scores(other_profiles[person_type].get(other)))
                for person_type in PERSON_TYPES
            ]
            similarity = sum(scores) / len(scores)
            if similarity >= MIN_PERSON_SIMILARITY:
                twins.append((other, similarity))

        twins.sort(key=lambda pair: (-pair[1], pair[0]))
        twins = twins[:MAX_TWINS]
        if not twins:
            logger.info(f"{self.name}: no person twins for {user_id} among {len(others)} candidates")
            return RecommendationResult.empty()

        similarity = dict(twins)
        entries = self.data.watchlist.get_users_entries(list(similarity), COMPLETED_STATUSES)
        candidates = collect_twin_candidates(entries, similarity, per_user_limit=ITEMS_PER_USER)
        score_twin_candidates(candidates, WEIGHTS)
        return self.finalize(user_id, candidates, context, session)
