"""
scrimhub.api.deps — FastAPI dependency injection
=================================================

Token issuance lives with the login service; this module only trusts a
bearer JWT whose ``sub`` claim is a ``users.id``, and resolves it to a
non-banned :class:`User`.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from scrimhub.config import ScrimhubConfig, load_config
from scrimhub.database.engine import create_db_engine
from scrimhub.database.models import User, UserRole
from scrimhub.errors import ScrimhubError

JWT_ALGORITHM = "HS256"
MIN_SECRET_LENGTH = 32

# Defaults that have shipped in sample configs; signing with them is as
# good as not signing at all.
KNOWN_WEAK_SECRETS = frozenset({
    "svscrims_secret_key_2024",
    "change-me",
    "changeme",
    "secret",
    "dev",
})


def _secret_problem(secret: str) -> str | None:
    if not secret:
        return "JWT_SECRET is not set"
    if secret in KNOWN_WEAK_SECRETS:
        return "JWT_SECRET is a known weak default"
    if len(secret) < MIN_SECRET_LENGTH:
        return f"JWT_SECRET is too short ({len(secret)} < {MIN_SECRET_LENGTH} chars)"
    return None


def _load_jwt_secret() -> str:
    """Read JWT_SECRET from the environment, refusing unusable values.

    Runs at import so a misconfigured API never starts serving.
    """
    secret = os.getenv("JWT_SECRET", "")
    problem = _secret_problem(secret)
    if problem is not None:
        raise RuntimeError(
            f"{problem}. Generate one with: "
            "python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> ScrimhubConfig:
    return load_config()


def get_session(engine: Annotated[Engine, Depends(get_engine)]):
    """Read-only request session; services open their own for writes."""
    with Session(engine) as session:
        yield session


def _user_id_from_header(authorization: str | None) -> int:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme != "Bearer" or not token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "No token provided")
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return int(claims["sub"])
    except (InvalidTokenError, KeyError, TypeError, ValueError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    engine: Engine = Depends(get_engine),
) -> User:
    """The caller as a detached :class:`User`; 401 if unknown, 403 if banned."""
    user_id = _user_id_from_header(authorization)
    with Session(engine, expire_on_commit=False) as session:
        user = session.get(User, user_id)
        if user is None:
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "User not found")
        session.expunge(user)
    if user.banned:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Account banned")
    return user


def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.ADMIN.value:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Admin access required")
    return user


def as_http_error(exc: ScrimhubError) -> HTTPException:
    """Translate a service-layer refusal into an HTTP error with a typed body."""
    return HTTPException(exc.status_code, detail=exc.to_detail())
