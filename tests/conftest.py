"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of faithful_city.api.deps which
# validates the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from faithful_city.database.models import Account, Base, Family, QuizQuestion  # noqa: E402


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Faithful City tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """A file-backed SQLite engine with one connection per thread.

    Used where commits on one thread trigger resyncs on another (live
    subscriptions, the WebSocket feed).
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'faithful.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------
def make_family(engine: Engine, family_id: str = "fam-1", name: str = "The Smiths") -> str:
    with Session(engine) as session:
        session.add(Family(id=family_id, name=name))
        session.commit()
    return family_id


def make_account(
    engine: Engine,
    account_id: str = "acct-1",
    family_id: str | None = "fam-1",
    *,
    display_name: str | None = None,
    role: str = "member",
    quiz_score: int = 0,
    quiz_streak: int = 0,
) -> str:
    with Session(engine) as session:
        session.add(Account(
            id=account_id,
            email=f"{account_id}@example.com",
            display_name=display_name or account_id.title(),
            family_id=family_id,
            role=role,
            quiz_score=quiz_score,
            quiz_streak=quiz_streak,
        ))
        session.commit()
    return account_id


def make_question(
    engine: Engine,
    question_id: str = "q-1",
    *,
    correct: str = "Noah",
    difficulty: str = "easy",
) -> str:
    with Session(engine) as session:
        session.add(QuizQuestion(
            id=question_id,
            question=f"Question {question_id}?",
            correct_answer=correct,
            options=[correct, "Moses", "Abraham", "David"],
            difficulty=difficulty,
            bible_reference="Genesis 6:14",
        ))
        session.commit()
    return question_id


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
def make_token(sub: str = "acct-1") -> str:
    """Create a bearer JWT for *sub*, signed like the auth provider's."""
    import jwt

    from faithful_city.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode({"sub": sub, "aud": "authenticated"}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth(sub: str = "acct-1") -> dict:
    return {"Authorization": f"Bearer {make_token(sub)}"}


@pytest.fixture
def client(file_engine: Engine, tmp_path):
    """A FastAPI TestClient (lifespan running) wired to a throwaway database."""
    from fastapi.testclient import TestClient

    from faithful_city.api.deps import get_config, get_engine, get_storage
    from faithful_city.api.main import app
    from faithful_city.config import FaithfulCityConfig
    from faithful_city.services.storage import storage_from_config

    cfg = FaithfulCityConfig(
        community_name="Test City",
        api_port=8000,
        media_dir=str(tmp_path / "media"),
        media_public_url="/media",
        max_upload_mb=1,
    )
    app.dependency_overrides[get_engine] = lambda: file_engine
    app.dependency_overrides[get_config] = lambda: cfg
    app.dependency_overrides[get_storage] = lambda: storage_from_config(cfg)
    try:
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
