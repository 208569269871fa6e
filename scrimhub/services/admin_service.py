"""
scrimhub.services.admin_service — Admin Mutation Service Layer
===============================================================

Every admin write follows the same pattern:
  1. Open a session
  2. Read the "before" snapshot
  3. Apply the change
  4. Write admin_log with before/after JSON
  5. Commit

Admins own a scrim's ``max_players``, ``entry_fee`` and lifecycle status.
They never touch ``spots_remaining`` after creation; only the registration
service decrements it.  A status change may not reopen a scrim whose
counter is already at zero.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from scrimhub.constants import to_money
from scrimhub.database.models import (
    AdminActionType,
    Scrim,
    ScrimStatus,
    Transaction,
    TransactionKind,
    User,
)
from scrimhub.errors import (
    InvalidScrimState,
    ScrimNotFound,
    TransactionNotFound,
    UserNotFound,
)
from scrimhub.services import capacity_service, ledger_service, registration_service
from scrimhub.services.audit import log_admin_action, row_to_dict

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic audited helpers
# ---------------------------------------------------------------------------
def _audited_create(engine: Engine, row: Any, *, table_name: str, actor_id: int) -> Any:
    """add -> flush -> log -> commit -> return detached row."""
    with Session(engine, expire_on_commit=False) as session:
        session.add(row)
        session.flush()
        log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.CREATE.value,
            target_table=table_name,
            target_id=str(row.id),
            before=None,
            after=row_to_dict(row),
        )
        session.commit()
        session.refresh(row)
        session.expunge(row)
        return row


def _audited_update(
    engine: Engine,
    model_cls: type,
    pk: int,
    *,
    table_name: str,
    actor_id: int,
    action_type: AdminActionType = AdminActionType.UPDATE,
    reason: str | None = None,
    **changes: Any,
) -> Any | None:
    """get -> before -> apply *changes* -> log -> commit.

    Returns the updated (expunged) object, or ``None`` if not found.
    """
    with Session(engine, expire_on_commit=False) as session:
        obj = session.get(model_cls, pk)
        if obj is None:
            return None
        before = row_to_dict(obj)
        for key, value in changes.items():
            setattr(obj, key, value)
        session.flush()
        log_admin_action(
            session,
            actor_id=actor_id,
            action_type=action_type.value,
            target_table=table_name,
            target_id=str(pk),
            before=before,
            after=row_to_dict(obj),
            reason=reason,
        )
        session.commit()
        session.refresh(obj)
        session.expunge(obj)
        return obj


# ---------------------------------------------------------------------------
# Scrims
# ---------------------------------------------------------------------------
def create_scrim(
    engine: Engine,
    *,
    match_type: str,
    map_name: str,
    entry_fee: Decimal | int | str,
    prize_pool: Decimal | int | str,
    scheduled_date: str,
    scheduled_time: str,
    max_players: int,
    actor_id: int,
) -> Scrim:
    """Create an open scrim with every spot available."""
    fee = to_money(entry_fee)
    if fee < 0:
        raise ValueError("entry_fee must be non-negative")
    if max_players <= 0:
        raise ValueError("max_players must be positive")

    scrim = _audited_create(
        engine,
        Scrim(
            match_type=match_type,
            map=map_name,
            entry_fee=fee,
            prize_pool=to_money(prize_pool),
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            max_players=max_players,
            spots_remaining=max_players,
            status=ScrimStatus.OPEN.value,
        ),
        table_name="scrims",
        actor_id=actor_id,
    )
    logger.info("Scrim %d created: %s, %d players, fee %s", scrim.id, match_type, max_players, fee)
    return scrim


def set_scrim_status(
    engine: Engine,
    scrim_id: int,
    status: ScrimStatus | str,
    *,
    actor_id: int,
) -> Scrim:
    """Move a scrim through its lifecycle.

    Runs under the scrim lock so it cannot interleave with a registration.
    A scrim with no spots left stays ``full``; reopening it raises
    :class:`InvalidScrimState`.
    """
    target = ScrimStatus(status)
    with capacity_service.scrim_lock(scrim_id):
        with Session(engine, expire_on_commit=False) as session:
            scrim = capacity_service.lock_scrim(session, scrim_id)
            if target is ScrimStatus.OPEN and scrim.spots_remaining == 0:
                raise InvalidScrimState(
                    scrim_id, scrim.status, "Scrim has no spots left and cannot be reopened",
                )
            before = row_to_dict(scrim)
            scrim.status = target.value
            session.flush()
            log_admin_action(
                session,
                actor_id=actor_id,
                action_type=AdminActionType.UPDATE.value,
                target_table="scrims",
                target_id=str(scrim_id),
                before=before,
                after=row_to_dict(scrim),
            )
            session.commit()
            session.refresh(scrim)
            session.expunge(scrim)
    logger.info("Scrim %d status %s -> %s", scrim_id, before["status"], target.value)
    return scrim


def set_room_credentials(
    engine: Engine,
    scrim_id: int,
    *,
    room_id: str,
    room_password: str,
    youtube_link: str | None = None,
    actor_id: int,
) -> Scrim:
    scrim = _audited_update(
        engine, Scrim, scrim_id,
        table_name="scrims",
        actor_id=actor_id,
        room_id=room_id,
        room_password=room_password,
        youtube_link=youtube_link,
    )
    if scrim is None:
        raise ScrimNotFound(scrim_id)
    return scrim


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------
def ban_user(engine: Engine, user_id: int, *, actor_id: int, reason: str | None = None) -> User:
    user = _audited_update(
        engine, User, user_id,
        table_name="users",
        actor_id=actor_id,
        action_type=AdminActionType.BAN,
        reason=reason,
        banned=True,
    )
    if user is None:
        raise UserNotFound(user_id)
    logger.info("User %d banned by %d", user_id, actor_id)
    return user


def unban_user(engine: Engine, user_id: int, *, actor_id: int) -> User:
    user = _audited_update(
        engine, User, user_id,
        table_name="users",
        actor_id=actor_id,
        action_type=AdminActionType.UNBAN,
        banned=False,
    )
    if user is None:
        raise UserNotFound(user_id)
    return user


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------
def _transaction_kind(engine: Engine, transaction_id: int) -> str:
    with Session(engine) as session:
        txn = session.get(Transaction, transaction_id)
        if txn is None:
            raise TransactionNotFound(transaction_id)
        return txn.kind


def approve_transaction(engine: Engine, transaction_id: int, *, actor_id: int) -> dict[str, Any]:
    """Approve any pending ledger row.

    Entry fees go through the registration service (slot + spots);
    top-ups, prizes and withdrawals move wallet money.
    """
    if _transaction_kind(engine, transaction_id) == TransactionKind.ENTRY_FEE.value:
        outcome = registration_service.approve_manual_registration(
            engine, transaction_id, actor_id=actor_id,
        )
        return outcome.to_response()

    txn, new_balance = ledger_service.settle_wallet_request(
        engine, transaction_id, actor_id=actor_id,
    )
    return {
        "transaction": ledger_service.transaction_to_dict(txn),
        "newBalance": str(new_balance),
    }


def reject_transaction(
    engine: Engine,
    transaction_id: int,
    *,
    actor_id: int,
    reason: str | None = None,
) -> Transaction:
    if _transaction_kind(engine, transaction_id) == TransactionKind.ENTRY_FEE.value:
        return registration_service.reject_manual_registration(
            engine, transaction_id, actor_id=actor_id, reason=reason,
        )
    return ledger_service.reject_wallet_request(
        engine, transaction_id, actor_id=actor_id, reason=reason,
    )
