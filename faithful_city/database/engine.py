"""
faithful_city.database.engine — Engine, Unit of Work, Thread Bridge
====================================================================

Every service in :mod:`faithful_city.services` is synchronous: it opens a
:func:`get_session` block, does its reads and writes, and returns detached
views.  Coroutines (API handlers, live subscriptions) reach those services
through :func:`run_db`, which hops to the default executor with
``asyncio.to_thread`` so the event loop keeps serving while the query runs.

Usage::

    from faithful_city.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()   # DATABASE_URL from the environment
    init_db(engine)               # tables + starter quiz bank

    posts = await run_db(load_posts, engine, family_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from faithful_city.database.models import Base
from faithful_city.errors import TransportError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Engine for *url*, or for ``DATABASE_URL`` when no URL is given.

    ``DB_POOL_SIZE`` / ``DB_MAX_OVERFLOW`` tune the connection pool (default
    5 + 10 overflow, enough for one congregation's traffic).

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is provided.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "No database configured: set DATABASE_URL in .env "
            "(see .env.example for the PostgreSQL URL format)."
        )

    engine = create_engine(
        url,
        echo=False,
        pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "10")),
        pool_pre_ping=True,
        pool_recycle=1800,
    )
    logger.info("Connected engine to %s/%s", engine.url.host, engine.url.database)
    return engine


def init_db(engine: Engine) -> None:
    """Ensure tables exist and the quiz bank has its starter questions.

    Runs on every boot.  Deployed databases get their schema from Alembic
    first, so ``create_all`` is a no-op there.
    """
    Base.metadata.create_all(engine)
    logger.info("Schema present on %s", engine.url.database)

    from faithful_city.database.seed import seed_quiz_questions

    seed_quiz_questions(engine)


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine, **kwargs) -> Iterator[Session]:
    """One transaction: commit when the block finishes, roll back if it raises.

    A lost or refused connection is re-raised as
    :class:`~faithful_city.errors.TransportError`.  Anything else (including
    ``IntegrityError``) passes through untouched for the service to map.

    Example::

        with get_session(engine, expire_on_commit=False) as session:
            session.add(Family(name="The Smiths"))
    """
    session = Session(engine, **kwargs)
    try:
        yield session
        session.commit()
    except (OperationalError, InterfaceError) as exc:
        session.rollback()
        raise TransportError(f"Database unavailable: {exc.orig}") from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Thread bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a blocking service call without stalling the event loop::

        liked = await run_db(toggle_like, engine, post_id, account_id)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
