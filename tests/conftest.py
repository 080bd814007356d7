"""Pytest fixtures for the curator pipeline tests."""

import os
import tempfile

# Keep settings' data directories out of the real home directory
os.environ.setdefault("CURATOR_HOME", tempfile.mkdtemp(prefix="curator-test-"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.src.curator.database.models.base import create_tables
from backend.src.curator.database.models.video import (
    VIDEO_STATUS_ACTIVE,
    UserFeedback,
    Video,
    VideoTechniqueTag,
)
from backend.src.curator.services.catalog.base import CatalogItem
from backend.src.curator.services.catalog.errors import CatalogError
from backend.src.curator.services.task_runner import BatchRunner
from backend.src.curator.services.taxonomy_store import TaxonomyCache, TaxonomyStore

TAXONOMY = [
    # Level 1
    {"name": "Guard Play", "slug": "guard-play", "level": 1},
    {"name": "Fundamentals", "slug": "fundamentals", "level": 1},
    {"name": "Submissions", "slug": "submissions", "level": 1},
    {"name": "Escapes", "slug": "escapes", "level": 1},
    {"name": "Sweeps", "slug": "sweeps", "level": 1},
    {"name": "Passing", "slug": "passing", "level": 1},
    {"name": "Leg Locks", "slug": "leg-locks", "level": 1},
    # Level 2
    {"name": "Half Guard", "slug": "half-guard", "level": 2, "parent_slug": "guard-play"},
    {"name": "Closed Guard", "slug": "closed-guard", "level": 2, "parent_slug": "guard-play"},
    {"name": "Mount Escapes", "slug": "mount-escapes", "level": 2, "parent_slug": "escapes"},
    {"name": "Armlocks", "slug": "armlocks", "level": 2, "parent_slug": "submissions"},
    {"name": "Heel Hooks", "slug": "heel-hooks", "level": 2, "parent_slug": "leg-locks"},
    # Level 3
    {
        "name": "Deep Half Guard Sweep",
        "slug": "deep-half-guard-sweep",
        "level": 3,
        "parent_slug": "half-guard",
    },
    {
        "name": "Armbar From Guard",
        "slug": "armbar-from-guard",
        "level": 3,
        "parent_slug": "armlocks",
    },
    {"name": "Upa Escape", "slug": "upa-escape", "level": 3, "parent_slug": "mount-escapes"},
]


class FakeCatalog:
    """In-memory catalog adapter with scripted results and failures."""

    def __init__(self, results=None, durations=None, default_duration=600):
        self.results = results or {}
        self.durations = durations or {}
        self.default_duration = default_duration
        self.search_errors = {}
        self.duration_errors = {}
        self.searches = []
        self.duration_calls = []

    def search(self, query, max_results):
        self.searches.append(query)
        if query in self.search_errors:
            raise self.search_errors[query]
        return list(self.results.get(query, []))[:max_results]

    def get_duration(self, external_id):
        self.duration_calls.append(external_id)
        error = self.duration_errors.get(external_id)
        # A list scripts one failure per call, then succeeds
        if isinstance(error, list):
            error = error.pop(0) if error else None
        if error is not None:
            raise error
        return self.durations.get(external_id, self.default_duration)


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every session in a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store():
    return TaxonomyStore(TaxonomyCache(ttl_seconds=300))


@pytest.fixture
def seeded_store(db, store):
    """Store with the sample taxonomy loaded."""
    store.bulk_load(db, TAXONOMY)
    return store


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of sleeping."""
    return []


@pytest.fixture
def runner(sleeps):
    return BatchRunner(delay_seconds=0.3, sleep=sleeps.append)


@pytest.fixture
def fake_catalog():
    return FakeCatalog()


@pytest.fixture
def make_video(db):
    """Factory inserting an active video."""

    def _make(external_id, **fields):
        fields.setdefault("title", f"Video {external_id}")
        fields.setdefault("channel_name", "")
        fields.setdefault("duration_seconds", 600)
        fields.setdefault("status", VIDEO_STATUS_ACTIVE)
        video = Video(external_id=external_id, **fields)
        db.add(video)
        db.commit()
        return video

    return _make


@pytest.fixture
def tag_video_with(db, seeded_store):
    """Attach a tag row for a node slug directly."""

    def _tag(video, slug, relevance="primary"):
        node = seeded_store.snapshot(db).by_slug(slug)
        db.add(
            VideoTechniqueTag(video_id=video.id, taxonomy_id=node.id, relevance=relevance)
        )
        db.commit()

    return _tag


@pytest.fixture
def add_feedback(db):
    """Factory appending a feedback row."""

    def _add(user_id, video, helpful=True, created_at=None, category=None):
        row = UserFeedback(
            user_id=user_id,
            video_id=video.id,
            helpful=helpful,
            category=category,
        )
        if created_at is not None:
            row.created_at = created_at
        db.add(row)
        db.commit()
        return row

    return _add


def catalog_items(*ids, channel="Test Channel"):
    """CatalogItems with predictable titles."""
    return [
        CatalogItem(external_id=i, title=f"Technique video {i}", channel_name=channel)
        for i in ids
    ]


def network_error(message="timeout"):
    return CatalogError(message, "network_error")
