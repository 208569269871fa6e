"""
scrimhub.api.routes.admin — Admin endpoints (JWT-protected)
============================================================
"""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from scrimhub.api.deps import as_http_error, get_current_admin, get_engine, get_session
from scrimhub.api.routes.public import scrim_dict
from scrimhub.database.models import PaymentStatus, Scrim, ScrimStatus, Transaction, User
from scrimhub.errors import ScrimhubError
from scrimhub.services import admin_service, ledger_service

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ScrimCreate(BaseModel):
    match_type: str = Field(alias="matchType", min_length=1, max_length=20)
    map: str = Field(min_length=1, max_length=50)
    entry_fee: Decimal = Field(alias="entryFee", ge=0, max_digits=10, decimal_places=2)
    prize_pool: Decimal = Field(
        default=Decimal("0"), alias="prizePool", ge=0, max_digits=10, decimal_places=2,
    )
    date: str
    time: str
    max_players: int = Field(alias="maxPlayers", gt=0, le=100)


class StatusBody(BaseModel):
    status: ScrimStatus


class RoomBody(BaseModel):
    room_id: str = Field(alias="roomId", min_length=1, max_length=50)
    room_password: str = Field(alias="roomPassword", min_length=1, max_length=50)
    youtube_link: str | None = Field(default=None, alias="youtubeLink", max_length=255)


class ReasonBody(BaseModel):
    reason: str | None = None


class PrizeBody(BaseModel):
    user_id: int = Field(alias="userId")
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    scrim_id: int | None = Field(default=None, alias="scrimId")


def _user_dict(u: User) -> dict:
    return {
        "id": u.id,
        "username": u.username,
        "playerId": u.player_id,
        "walletBalance": str(u.wallet_balance),
        "role": u.role,
        "banned": u.banned,
    }


# ---------------------------------------------------------------------------
# Scrims
# ---------------------------------------------------------------------------
@router.get("/scrims")
def list_scrims(
    admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    scrims = session.scalars(
        select(Scrim).order_by(Scrim.created_at.desc(), Scrim.id.desc())
    ).all()
    return [scrim_dict(s, include_room=True) for s in scrims]


@router.post("/scrims", status_code=201)
def create_scrim(
    body: ScrimCreate,
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    scrim = admin_service.create_scrim(
        engine,
        match_type=body.match_type,
        map_name=body.map,
        entry_fee=body.entry_fee,
        prize_pool=body.prize_pool,
        scheduled_date=body.date,
        scheduled_time=body.time,
        max_players=body.max_players,
        actor_id=admin.id,
    )
    return scrim_dict(scrim, include_room=True)


@router.post("/scrims/{scrim_id}/status")
def update_scrim_status(
    scrim_id: int,
    body: StatusBody,
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    try:
        scrim = admin_service.set_scrim_status(engine, scrim_id, body.status, actor_id=admin.id)
    except ScrimhubError as exc:
        raise as_http_error(exc)
    return scrim_dict(scrim, include_room=True)


@router.post("/scrims/{scrim_id}/room")
def update_room(
    scrim_id: int,
    body: RoomBody,
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    try:
        scrim = admin_service.set_room_credentials(
            engine, scrim_id,
            room_id=body.room_id,
            room_password=body.room_password,
            youtube_link=body.youtube_link,
            actor_id=admin.id,
        )
    except ScrimhubError as exc:
        raise as_http_error(exc)
    return scrim_dict(scrim, include_room=True)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------
@router.get("/transactions")
def list_transactions(
    status: PaymentStatus | None = Query(PaymentStatus.PENDING),
    admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    """Ledger rows awaiting review by default; pass ``status`` to widen."""
    query = select(Transaction).order_by(Transaction.created_at.desc(), Transaction.id.desc())
    if status is not None:
        query = query.where(Transaction.payment_status == status.value)
    return [ledger_service.transaction_to_dict(t) for t in session.scalars(query).all()]


@router.post("/transactions/{transaction_id}/approve")
def approve_transaction(
    transaction_id: int,
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    try:
        return admin_service.approve_transaction(engine, transaction_id, actor_id=admin.id)
    except ScrimhubError as exc:
        raise as_http_error(exc)


@router.post("/transactions/{transaction_id}/reject")
def reject_transaction(
    transaction_id: int,
    body: ReasonBody | None = None,
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    try:
        txn = admin_service.reject_transaction(
            engine, transaction_id,
            actor_id=admin.id,
            reason=body.reason if body else None,
        )
    except ScrimhubError as exc:
        raise as_http_error(exc)
    return ledger_service.transaction_to_dict(txn)


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------
@router.get("/players")
def list_players(
    admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    """Every account with its wallet balance and ban flag, newest first."""
    users = session.scalars(
        select(User).order_by(User.created_at.desc(), User.id.desc())
    ).all()
    return [_user_dict(u) for u in users]


@router.post("/players/{user_id}/ban")
def ban_player(
    user_id: int,
    body: ReasonBody | None = None,
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    if user_id == admin.id:
        raise HTTPException(400, "Cannot ban yourself")
    try:
        user = admin_service.ban_user(
            engine, user_id, actor_id=admin.id, reason=body.reason if body else None,
        )
    except ScrimhubError as exc:
        raise as_http_error(exc)
    return _user_dict(user)


@router.post("/players/{user_id}/unban")
def unban_player(
    user_id: int,
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    try:
        user = admin_service.unban_user(engine, user_id, actor_id=admin.id)
    except ScrimhubError as exc:
        raise as_http_error(exc)
    return _user_dict(user)


# ---------------------------------------------------------------------------
# Prizes
# ---------------------------------------------------------------------------
@router.post("/prizes", status_code=201)
def award_prize(
    body: PrizeBody,
    admin: User = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    """Credit a prize straight to a player's wallet."""
    try:
        txn, new_balance = ledger_service.award_prize(
            engine,
            user_id=body.user_id,
            amount=body.amount,
            actor_id=admin.id,
            scrim_id=body.scrim_id,
        )
    except ScrimhubError as exc:
        raise as_http_error(exc)
    return {
        "transaction": ledger_service.transaction_to_dict(txn),
        "newBalance": str(new_balance),
    }
