"""
scrimhub.database.engine — Engine, Sessions & the Thread Bridge
================================================================

Everything that talks to PostgreSQL is synchronous SQLAlchemy.  The
registration endpoint is ``async`` so that a request stuck behind another
team's row lock never blocks the event loop; :func:`run_db` hands the
whole registration unit to a worker thread.  Once started, that unit runs
to commit or rollback even if the client goes away.

Usage::

    from scrimhub.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()                  # DATABASE_URL from .env
    init_db(engine)                              # dev / tests only
    outcome = await run_db(registration_service.register, engine, request)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from scrimhub.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

# Registrations arrive in bursts right after a scrim is announced
POOL_SIZE = 10
POOL_OVERFLOW = 20
POOL_WAIT_SECONDS = 10
POOL_RECYCLE_SECONDS = 3600


def create_db_engine(url: str | None = None) -> Engine:
    """Engine for *url*, or for ``DATABASE_URL`` when *url* is omitted.

    Raises :class:`RuntimeError` when neither is available.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "No database configured: set DATABASE_URL "
            "(see .env.example for the PostgreSQL URL format)."
        )

    engine = create_engine(
        url,
        pool_size=POOL_SIZE,
        max_overflow=POOL_OVERFLOW,
        pool_timeout=POOL_WAIT_SECONDS,
        pool_recycle=POOL_RECYCLE_SECONDS,
        pool_pre_ping=True,
    )
    logger.info("Engine ready for %s/%s", engine.url.host, engine.url.database)
    return engine


def init_db(engine: Engine) -> None:
    """``create_all`` for local runs and the test suite.

    Deployed databases are migrated with ``alembic upgrade head`` instead.
    """
    Base.metadata.create_all(engine)
    logger.info("Schema present: %s", ", ".join(sorted(Base.metadata.tables)))


@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Unit of work: commit when the block exits cleanly, roll back if it raises."""
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


async def run_db(func: Callable[P, R], *args: P.args, **kwargs: P.kwargs) -> R:
    """Await a blocking service call on the default thread pool."""
    return await asyncio.to_thread(func, *args, **kwargs)
