"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
an in-memory SQLite store, a controllable clock and catalog seeding helpers.
"""
import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Keep the module-level engine off the developer's database
os.environ.setdefault("DATABASE_URL", "sqlite://")

from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import Settings
from lexiflow.db.database import create_store_engine, init_db, session_scope
from lexiflow.db.models import CategoryModel, WordModel


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (API over a test database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    """Clock frozen at 2026-03-10 09:00 UTC."""
    return FrozenClock(datetime(2026, 3, 10, 9, 0, 0))


@pytest.fixture
def settings():
    """Settings with defaults, isolated from any .env file."""
    return Settings(_env_file=None, database_url="sqlite://")


@pytest.fixture
def engine():
    """Fresh in-memory database shared across threads."""
    engine = create_store_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def catalog_seed(session_factory):
    """
    Seed helper: ``catalog_seed(categories=[...], words=[...])``.

    Categories are (id, name) tuples; words are dicts with at least ``id``
    and ``category_id``.
    """

    def _seed(categories=(), words=()):
        with session_scope(session_factory) as db:
            for category_id, name in categories:
                db.add(CategoryModel(id=category_id, name=name, is_active=True, display_order=category_id))
            db.flush()
            for fields in words:
                fields = dict(fields)
                db.add(
                    WordModel(
                        id=fields.pop("id"),
                        category_id=fields.pop("category_id"),
                        simplified=fields.pop("simplified", "字"),
                        pinyin=fields.pop("pinyin", "zi"),
                        translation=fields.pop("translation", "character"),
                        difficulty_level=fields.pop("difficulty_level", 1),
                        frequency_rank=fields.pop("frequency_rank", None),
                        is_active=fields.pop("is_active", True),
                        **fields,
                    )
                )

    return _seed


@pytest.fixture
def food_category(catalog_seed):
    """Category 1 'Food' with five words ranked 1..5 by frequency."""
    catalog_seed(
        categories=[(1, "Food"), (2, "Travel")],
        words=[
            {"id": 101, "category_id": 1, "simplified": "米饭", "pinyin": "mǐfàn", "translation": "rice", "frequency_rank": 3},
            {"id": 102, "category_id": 1, "simplified": "水", "pinyin": "shuǐ", "translation": "water", "frequency_rank": 1},
            {"id": 103, "category_id": 1, "simplified": "茶", "pinyin": "chá", "translation": "tea", "frequency_rank": 2},
            {"id": 104, "category_id": 1, "simplified": "面条", "pinyin": "miàntiáo", "translation": "noodles", "frequency_rank": 5},
            {"id": 105, "category_id": 1, "simplified": "饺子", "pinyin": "jiǎozi", "translation": "dumplings", "frequency_rank": 4},
            {"id": 201, "category_id": 2, "simplified": "火车", "pinyin": "huǒchē", "translation": "train", "frequency_rank": 1},
        ],
    )
    return 1


@pytest.fixture
def service(session_factory, settings, clock):
    from lexiflow.study.study_service import StudyService

    return StudyService(session_factory, settings=settings, clock=clock)
