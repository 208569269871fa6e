"""
scrimhub.api.routes.public — Read-only public endpoints
========================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from scrimhub.api.deps import get_session
from scrimhub.database.models import Scrim, ScrimStatus

router = APIRouter(tags=["public"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def scrim_dict(s: Scrim, *, include_room: bool = False) -> dict[str, Any]:
    """Wire shape of a scrim.  Room credentials only go to confirmed players."""
    data = {
        "id": s.id,
        "matchType": s.match_type,
        "map": s.map,
        "entryFee": str(s.entry_fee),
        "prizePool": str(s.prize_pool),
        "date": s.scheduled_date,
        "time": s.scheduled_time,
        "maxPlayers": s.max_players,
        "spotsRemaining": s.spots_remaining,
        "status": s.status,
        "youtubeLink": s.youtube_link,
        "createdAt": s.created_at.isoformat() if s.created_at else None,
    }
    if include_room:
        data["roomId"] = s.room_id
        data["roomPassword"] = s.room_password
    return data


# ---------------------------------------------------------------------------
# GET /scrims
# ---------------------------------------------------------------------------
@router.get("/scrims")
def list_scrims(
    status: ScrimStatus | None = Query(None),
    session: Session = Depends(get_session),
):
    """All scrims, newest first, optionally filtered by lifecycle status."""
    query = select(Scrim).order_by(Scrim.created_at.desc(), Scrim.id.desc())
    if status is not None:
        query = query.where(Scrim.status == status.value)
    return [scrim_dict(s) for s in session.scalars(query).all()]
