"""Shared test fixtures and configuration for pytest."""
import pytest
from datetime import timedelta
from unittest.mock import Mock
import json
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from moviematch_recommendation_service.algorithms.base import (
    AlgorithmData,
    RecommendationContext,
    RecommendationSession,
)
from moviematch_recommendation_service.cache import TTLCache
from moviematch_recommendation_service.models import WatchEntry
from moviematch_recommendation_service.models.base import Base
from moviematch_recommendation_service.services.batching import ChunkedExecutor
from moviematch_recommendation_service.services.similarity_service import SimilarityService
from moviematch_recommendation_service.services.taste_map_service import TasteMapService
from moviematch_recommendation_service.utils import utc_now


# ===== Database Fixtures =====

@pytest.fixture(scope="function")
def test_db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_db_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(bind=test_db_engine)


@pytest.fixture(scope="function")
def test_db_session(session_factory):
    """Create a database session for testing."""
    session = session_factory()
    yield session
    session.close()


# ===== Sample Data Fixtures =====

# Item ID -> metadata returned by the fake metadata client
CATALOG = {
    1: {"genres": ["Drama", "Crime"], "cast": ["Bryan Cranston", "Aaron Paul"], "directors": ["Vince Gilligan"]},
    2: {"genres": ["Drama"], "cast": ["Bob Odenkirk"], "directors": ["Vince Gilligan"]},
    3: {"genres": ["Comedy"], "cast": ["Steve Carell"], "directors": ["Greg Daniels"]},
    4: {"genres": ["Science Fiction", "Drama"], "cast": ["Matthew McConaughey"], "directors": ["Christopher Nolan"]},
    5: {"genres": ["Action", "Science Fiction"], "cast": ["Keanu Reeves"], "directors": ["Lana Wachowski"]},
    6: {"genres": ["Crime", "Thriller"], "cast": ["Al Pacino"], "directors": ["Michael Mann"]},
    7: {"genres": ["Animation", "Family"], "cast": ["Tom Hanks"], "directors": ["John Lasseter"]},
    8: {"genres": ["Drama", "Thriller"], "cast": ["Aaron Paul"], "directors": ["Vince Gilligan"]},
    9: {"genres": ["Horror"], "cast": ["Toni Collette"], "directors": ["Ari Aster"]},
    10: {"genres": ["Crime", "Drama"], "cast": ["Marlon Brando"], "directors": ["Francis Ford Coppola"]},
}


def _details(item_id: int) -> dict | None:
    data = CATALOG.get(item_id)
    if data is None:
        return None
    return {
        "title": f"Item {item_id}",
        "genres": list(data["genres"]),
        "original_language": "en",
        "popularity": 10.0,
        "vote_count": 100,
        "vote_average": 7.5,
        "cast": list(data["cast"]),
        "directors": list(data["directors"]),
    }


@pytest.fixture
def fake_metadata_client():
    """Metadata client serving CATALOG; unknown items return None."""
    client = Mock()
    client.fetch_details.side_effect = lambda item_id, media_kind: _details(item_id)
    return client


@pytest.fixture
def add_entry(test_db_session):
    """Factory adding one watch entry."""

    def _add(user_id, item_id, status="watched", rating=None, media_kind="movie", days_ago=1, **extra):
        entry = WatchEntry(
            user_id=user_id,
            external_item_id=item_id,
            media_kind=media_kind,
            status=status,
            user_rating=rating,
            title=extra.pop("title", f"Item {item_id}"),
            added_at=utc_now() - timedelta(days=days_ago),
            watch_count=extra.pop("watch_count", 1 if status in ("watched", "rewatched") else 0),
            **extra,
        )
        test_db_session.add(entry)
        test_db_session.commit()
        return entry

    return _add


@pytest.fixture
def inline_executor():
    """Executor running everything on the calling thread without delays."""
    return ChunkedExecutor(chunk_size=5, max_workers=1, inter_chunk_delay=0)


@pytest.fixture
def taste_map_service(test_db_session, fake_metadata_client, inline_executor):
    """TasteMapService with its own cache."""
    return TasteMapService(
        test_db_session, fake_metadata_client, TTLCache(), executor=inline_executor, ttl_seconds=3600
    )


@pytest.fixture
def similarity_service(test_db_session, taste_map_service):
    """SimilarityService with default threshold."""
    return SimilarityService(test_db_session, taste_map_service, threshold=0.7, candidate_pool_size=50)


@pytest.fixture
def algorithm_data(test_db_session, taste_map_service, similarity_service):
    """Data bundle for algorithms."""
    return AlgorithmData(test_db_session, taste_map_service, similarity_service)


@pytest.fixture
def recommendation_session():
    """Empty recommendation session."""
    return RecommendationSession(session_id="session-1", start_time=utc_now())


@pytest.fixture
def recommendation_context():
    """Default recommendation context."""
    return RecommendationContext()


@pytest.fixture
def twin_users(add_entry):
    """
    alice and bob rate the same dramas alike; carol watches comedies only.

    bob also watched items 4 and 10 that alice has not seen.
    """
    for item_id, rating in ((1, 9), (2, 8), (8, 9), (6, 7), (3, 5)):
        add_entry("alice", item_id, rating=rating)
    for item_id, rating in ((1, 9), (2, 8), (8, 9), (6, 7), (3, 5), (4, 9), (10, 8)):
        add_entry("bob", item_id, rating=rating)
    for item_id, rating in ((3, 9), (7, 8), (9, 4), (5, 6), (11, 7)):
        add_entry("carol", item_id, rating=rating)
    return ["alice", "bob", "carol"]


# ===== Configuration Fixtures =====

@pytest.fixture
def mock_local_settings(tmp_path, monkeypatch):
    """Mock local.settings.json file."""
    settings = {
        "Values": {
            "DATABASE_URL": "sqlite:///:memory:",
            "TMDB_API_KEY": "local-key",
            "SIMILARITY_THRESHOLD": "0.65",
        }
    }

    settings_file = tmp_path / "local.settings.json"
    with open(settings_file, 'w') as f:
        json.dump(settings, f)

    return settings_file
