"""
scrimhub.services.roster_service — Saved Team Profiles
=======================================================

Remembers the last team a user registered with so the next registration
form can be pre-filled.  Advisory only: nothing else reads it, and the
registration service calls :func:`upsert_team_profile` after its own
commit, swallowing any failure.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from scrimhub.database.engine import get_session
from scrimhub.database.models import RegistrationMode, TeamProfile

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _normalize_member(member: dict[str, Any]) -> dict[str, Any]:
    """Keep only the fields a roster entry carries."""
    entry: dict[str, Any] = {
        "ign": str(member.get("ign", "")).strip(),
        "playerId": str(member.get("playerId", "")).strip(),
    }
    if member.get("userId") is not None:
        entry["userId"] = int(member["userId"])
    return entry


def get_team_profile(engine: Engine, user_id: int) -> dict[str, Any] | None:
    with Session(engine) as session:
        profile = session.get(TeamProfile, user_id)
        if profile is None:
            return None
        return {
            "mode": profile.mode,
            "teamName": profile.team_name,
            "members": list(profile.members or []),
            "updatedAt": profile.updated_at.isoformat() if profile.updated_at else None,
        }


def upsert_team_profile(
    engine: Engine,
    *,
    user_id: int,
    mode: RegistrationMode | str,
    team_name: str | None,
    members: list[dict[str, Any]],
) -> None:
    """Replace the stored roster for *user_id* (one row per user)."""
    roster = [_normalize_member(m) for m in members]
    with get_session(engine) as session:
        profile = session.get(TeamProfile, user_id)
        if profile is None:
            session.add(TeamProfile(
                user_id=user_id,
                mode=RegistrationMode(mode).value,
                team_name=team_name,
                members=roster,
            ))
        else:
            profile.mode = RegistrationMode(mode).value
            profile.team_name = team_name
            profile.members = roster
    logger.debug("Saved %s roster for user %d (%d members)", mode, user_id, len(roster))
