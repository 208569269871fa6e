"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import itertools
import os
from decimal import Decimal

# ---------------------------------------------------------------------------
# A valid JWT_SECRET must exist before scrimhub.api.deps is imported,
# because the module validates it at load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import BigInteger, Engine, create_engine  # noqa: E402
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.ext.compiler import compiles  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from scrimhub.config import ScrimhubConfig  # noqa: E402
from scrimhub.database.engine import init_db  # noqa: E402
from scrimhub.database.models import Scrim, ScrimStatus, User, UserRole  # noqa: E402


# ---------------------------------------------------------------------------
# SQLite stand-ins for Postgres-only column types
# ---------------------------------------------------------------------------
@compiles(PG_JSONB, "sqlite")
def _compile_jsonb_as_text(type_, compiler, **kw):
    return "TEXT"


@compiles(BigInteger, "sqlite")
def _compile_bigint_as_integer(type_, compiler, **kw):
    # INTEGER PRIMARY KEY is what gives SQLite its rowid autoincrement
    return "INTEGER"


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite with every Scrimhub table.

    StaticPool keeps one connection, so worker threads (``run_db`` and the
    concurrency tests) all see the same database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
@pytest.fixture
def make_user(db_engine: Engine):
    """Insert a user and return it detached.  ``make_user(balance="200")``."""
    counter = itertools.count(1)

    def _make(
        username: str | None = None,
        *,
        balance: Decimal | int | str = "0.00",
        role: UserRole = UserRole.PLAYER,
        banned: bool = False,
    ) -> User:
        n = next(counter)
        name = username or f"player{n}"
        with Session(db_engine, expire_on_commit=False) as session:
            user = User(
                username=name,
                email=f"{name}@example.com",
                player_id=f"PID{n:05d}",
                wallet_balance=Decimal(str(balance)),
                role=role.value,
                banned=banned,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            session.expunge(user)
            return user

    return _make


@pytest.fixture
def make_scrim(db_engine: Engine):
    """Insert an open scrim.  ``make_scrim(entry_fee="50", max_players=100)``."""

    def _make(
        *,
        entry_fee: Decimal | int | str = "50.00",
        max_players: int = 100,
        spots_remaining: int | None = None,
        status: ScrimStatus = ScrimStatus.OPEN,
        match_type: str = "Squad",
    ) -> Scrim:
        with Session(db_engine, expire_on_commit=False) as session:
            scrim = Scrim(
                match_type=match_type,
                map="Bermuda",
                entry_fee=Decimal(str(entry_fee)),
                prize_pool=Decimal("1000.00"),
                scheduled_date="2026-11-01",
                scheduled_time="20:00",
                max_players=max_players,
                spots_remaining=max_players if spots_remaining is None else spots_remaining,
                status=status.value,
            )
            session.add(scrim)
            session.commit()
            session.refresh(scrim)
            session.expunge(scrim)
            return scrim

    return _make


def make_token(user_id: int) -> str:
    """Bearer JWT for *user_id*, signed with the test secret."""
    import jwt

    from scrimhub.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode({"sub": str(user_id)}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth(user: User) -> dict:
    return {"Authorization": f"Bearer {make_token(user.id)}"}


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------
@pytest.fixture
def scrimhub_config() -> ScrimhubConfig:
    return ScrimhubConfig(
        platform_name="Test Scrims",
        api_port=8000,
        registration_max_attempts=3,
    )


@pytest.fixture
def client(db_engine: Engine, scrimhub_config: ScrimhubConfig):
    """TestClient wired to the in-memory engine.  Lifespan is not run."""
    from fastapi.testclient import TestClient

    from scrimhub.api.deps import get_config, get_engine
    from scrimhub.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: scrimhub_config
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
