"""
scrimhub.api.routes.wallet — Player wallet & profile endpoints (player JWT)
============================================================================
"""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from scrimhub.api.deps import as_http_error, get_config, get_current_user, get_engine
from scrimhub.api.routes.public import scrim_dict
from scrimhub.config import ScrimhubConfig
from scrimhub.database.models import PaymentStatus, User
from scrimhub.errors import ScrimhubError
from scrimhub.services import ledger_service, registration_service

router = APIRouter(tags=["wallet"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class TopUpBody(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    utr: str | None = Field(default=None, max_length=100)


class WithdrawBody(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    upi_id: str = Field(alias="upiId", min_length=3, max_length=100)


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------
@router.get("/wallet/balance")
def wallet_balance(
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cfg: ScrimhubConfig = Depends(get_config),
):
    balance = ledger_service.get_balance(engine, user.id)
    return {"balance": str(balance), "currency": cfg.currency}


@router.get("/wallet/transactions")
def wallet_transactions(
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return [
        ledger_service.transaction_to_dict(t)
        for t in ledger_service.list_transactions(engine, user.id)
    ]


@router.post("/wallet/add", status_code=201)
def wallet_add(
    body: TopUpBody,
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    """File a top-up request; an admin credits it after checking the UTR."""
    try:
        txn = ledger_service.request_top_up(
            engine, user_id=user.id, amount=body.amount, utr=body.utr,
        )
    except ScrimhubError as exc:
        raise as_http_error(exc)
    return ledger_service.transaction_to_dict(txn)


@router.post("/wallet/withdraw", status_code=201)
def wallet_withdraw(
    body: WithdrawBody,
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    try:
        txn = ledger_service.request_withdrawal(
            engine, user_id=user.id, amount=body.amount, upi_id=body.upi_id,
        )
    except ScrimhubError as exc:
        raise as_http_error(exc)
    return ledger_service.transaction_to_dict(txn)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------
@router.get("/profile/registrations")
def my_registrations(
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    """The caller's registrations.  Room credentials are shown once verified."""
    result = []
    for reg, scrim in registration_service.list_user_registrations(engine, user.id):
        entry = registration_service.registration_to_dict(reg)
        verified = reg.payment_status == PaymentStatus.VERIFIED.value
        entry["scrim"] = scrim_dict(scrim, include_room=verified)
        result.append(entry)
    return result
