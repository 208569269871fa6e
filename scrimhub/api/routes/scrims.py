"""
scrimhub.api.routes.scrims — Registration endpoints (player JWT)
=================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy import Engine

from scrimhub.api.deps import as_http_error, get_config, get_current_user, get_engine
from scrimhub.config import ScrimhubConfig
from scrimhub.constants import MODE_PLAYERS
from scrimhub.database.engine import run_db
from scrimhub.database.models import PaymentMode, RegistrationMode, User
from scrimhub.errors import ScrimhubError
from scrimhub.services import capacity_service, registration_service, roster_service
from scrimhub.services.registration_service import RegistrationRequest

router = APIRouter(prefix="/scrim", tags=["scrims"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class TeamMember(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ign: str = Field(min_length=1, max_length=50)
    player_id: str = Field(alias="playerId", min_length=1, max_length=32)
    user_id: int | None = Field(default=None, alias="userId")


class RegisterBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    scrim_id: int = Field(alias="scrimId")
    mode: RegistrationMode
    team_name: str | None = Field(default=None, alias="teamName", max_length=100)
    team_members: list[TeamMember] = Field(default_factory=list, alias="teamMembers")
    payment_mode: PaymentMode = Field(default=PaymentMode.WALLET_INSTANT, alias="paymentMode")
    utr: str | None = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def _roster_fits_mode(self) -> RegisterBody:
        limit = MODE_PLAYERS[self.mode]
        if len(self.team_members) > limit:
            raise ValueError(f"{self.mode.value} teams have at most {limit} members")
        return self


# ---------------------------------------------------------------------------
# POST /scrim/register
# ---------------------------------------------------------------------------
@router.post("/register")
async def register_for_scrim(
    body: RegisterBody,
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cfg: ScrimhubConfig = Depends(get_config),
):
    """Register the caller's team.  Wallet mode charges and assigns a slot at once."""
    request = RegistrationRequest(
        scrim_id=body.scrim_id,
        user_id=user.id,
        mode=body.mode,
        team_name=body.team_name,
        team_members=[
            m.model_dump(by_alias=True, exclude_none=True) for m in body.team_members
        ],
        payment_mode=body.payment_mode,
        utr=body.utr,
    )
    try:
        outcome = await run_db(
            registration_service.register,
            engine,
            request,
            max_attempts=cfg.registration_max_attempts,
        )
    except ScrimhubError as exc:
        raise as_http_error(exc)
    return outcome.to_response()


# ---------------------------------------------------------------------------
# GET /scrim/team-profile
# ---------------------------------------------------------------------------
@router.get("/team-profile")
def get_team_profile(
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    """The caller's last-used roster, for pre-filling the form."""
    profile = roster_service.get_team_profile(engine, user.id)
    if profile is None:
        raise HTTPException(404, "No saved team profile")
    return profile


# ---------------------------------------------------------------------------
# GET /scrim/{scrim_id}/slots-status
# ---------------------------------------------------------------------------
@router.get("/{scrim_id}/slots-status")
def get_slots_status(
    scrim_id: int,
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    """Advisory per-mode occupancy; registration re-checks under the lock."""
    try:
        return capacity_service.slots_status(engine, scrim_id)
    except ScrimhubError as exc:
        raise as_http_error(exc)
