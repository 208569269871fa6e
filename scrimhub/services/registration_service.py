"""
scrimhub.services.registration_service — The Registration Transaction
======================================================================

Turns "register my team for scrim X" into a committed registration, a
ledger row, a wallet debit and a slot number, or into nothing at all.

Pipeline for a wallet-paid registration (one DB transaction, run under
:func:`capacity_service.scrim_lock` with the scrim row ``FOR UPDATE``):

  1. Duplicate check      → AlreadyRegistered
  2. Capacity check       → ScrimFull
  3. Funds check          → InsufficientFunds (required / available / shortfall)
  4. Debit wallet
  5. Append verified entryFee ledger row
  6. Allocate slot        → SlotSpaceExhausted (logged as an integrity error)
  7. Insert registration (verified, with slot)
  8. Consume spots; scrim flips to ``full`` at 0
  -- commit --
  9. Save the roster for next time (best-effort, failures only logged)

Any exception before the commit rolls back 4–8 together, so a user is
never charged without a registration.  Lock or unique-constraint
conflicts (``OperationalError`` / ``IntegrityError``) re-run the whole
unit up to *max_attempts* times before surfacing ConcurrencyConflict.

Manual-verification registrations (paid outside the wallet) stop after
step 2: they record a *pending* ledger row and a *pending* registration
with no slot and no spots consumed.  :func:`approve_manual_registration`
later runs steps 2, 6, 7 and 8 under the same lock.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from scrimhub.constants import MODE_PLAYERS, entry_fee_for, format_money, to_money
from scrimhub.database.models import (
    AdminActionType,
    PaymentMode,
    PaymentStatus,
    Registration,
    RegistrationMode,
    Scrim,
    ScrimStatus,
    Transaction,
    TransactionKind,
    User,
)
from scrimhub.engine.slots import allocate_slot
from scrimhub.errors import (
    AlreadyRegistered,
    ConcurrencyConflict,
    InsufficientFunds,
    InvalidTransactionState,
    ScrimFull,
    ScrimNotOpen,
    SlotSpaceExhausted,
    TransactionNotFound,
    UserNotFound,
)
from scrimhub.services import ledger_service, roster_service
from scrimhub.services.audit import log_admin_action, row_to_dict
from scrimhub.services.capacity_service import (
    check_capacity,
    consume_spots,
    lock_scrim,
    mode_occupancy,
    scrim_lock,
    taken_slots,
)
from scrimhub.services.ledger_service import transaction_to_dict

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3

# Lost a lock / serialization race, or a unique constraint caught a
# concurrent insert: re-reading state and trying again resolves both.
RETRYABLE_ERRORS = (OperationalError, IntegrityError)


# ---------------------------------------------------------------------------
# Request / outcome
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RegistrationRequest:
    """One team's registration attempt.  ``user_id`` is the captain."""

    scrim_id: int
    user_id: int
    mode: RegistrationMode
    team_name: str | None = None
    team_members: list[dict[str, Any]] = field(default_factory=list)
    payment_mode: PaymentMode = PaymentMode.WALLET_INSTANT
    utr: str | None = None  # external payment reference, manual mode only


@dataclass(slots=True)
class RegistrationOutcome:
    """Everything the client needs to render a confirmation."""

    registration: Registration
    transaction: Transaction
    slot_number: int | None
    team_name: str
    new_balance: Decimal

    def to_response(self) -> dict[str, Any]:
        return {
            "registration": registration_to_dict(self.registration),
            "transaction": transaction_to_dict(self.transaction),
            "slotNumber": self.slot_number,
            "teamName": self.team_name,
            "newBalance": format_money(self.new_balance),
        }


def registration_to_dict(reg: Registration) -> dict[str, Any]:
    return {
        "id": reg.id,
        "scrimId": reg.scrim_id,
        "userId": reg.user_id,
        "mode": reg.mode,
        "teamName": reg.team_name,
        "teamMembers": list(reg.team_members or []),
        "slotNumber": reg.slot_number,
        "paymentStatus": reg.payment_status,
        "registeredAt": reg.registered_at.isoformat() if reg.registered_at else None,
    }


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------
def _ensure_open(scrim: Scrim) -> None:
    if scrim.status == ScrimStatus.FULL.value:
        raise ScrimFull()
    if scrim.status != ScrimStatus.OPEN.value:
        raise ScrimNotOpen(scrim.status)


def _resolve_team_name(team_name: str | None, captain: str, mode: RegistrationMode) -> str:
    name = (team_name or "").strip()
    return name or f"{captain}'s {mode.value}"


def _run_locked_with_retries(
    scrim_id: int,
    unit: Callable[[], T],
    *,
    max_attempts: int,
    what: str,
) -> T:
    """Run *unit* under the scrim lock, retrying transient DB conflicts."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            with scrim_lock(scrim_id):
                return unit()
        except SlotSpaceExhausted as exc:
            logger.error(
                "INTEGRITY: slot space exhausted during %s on scrim %d (mode=%s) "
                "although capacity checks passed",
                what, scrim_id, exc.mode,
            )
            raise
        except RETRYABLE_ERRORS as exc:
            logger.warning(
                "%s on scrim %d hit a conflict (attempt %d/%d): %s",
                what, scrim_id, attempt, max_attempts, exc.__class__.__name__,
            )
    raise ConcurrencyConflict(max_attempts)


def _remember_roster(engine: Engine, request: RegistrationRequest, team_name: str) -> None:
    """Post-commit roster save.  Never raises."""
    if not request.team_members:
        return
    try:
        roster_service.upsert_team_profile(
            engine,
            user_id=request.user_id,
            mode=request.mode,
            team_name=team_name,
            members=request.team_members,
        )
    except Exception:
        logger.exception(
            "Could not save team roster for user %d (registration kept)", request.user_id
        )


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------
def _register_once(
    engine: Engine,
    request: RegistrationRequest,
    mode: RegistrationMode,
) -> RegistrationOutcome:
    with Session(engine, expire_on_commit=False) as session:
        scrim = lock_scrim(session, request.scrim_id)
        user = session.get(User, request.user_id)
        if user is None:
            raise UserNotFound(request.user_id)

        # 1. Duplicate
        existing = session.scalar(
            select(Registration.id).where(
                Registration.scrim_id == scrim.id,
                Registration.user_id == user.id,
            )
        )
        if existing is not None:
            raise AlreadyRegistered(scrim.id, user.id)

        # 2. Capacity
        _ensure_open(scrim)
        check_capacity(scrim, mode, mode_occupancy(session, scrim.id))

        fee = entry_fee_for(scrim.entry_fee, mode)
        team_name = _resolve_team_name(request.team_name, user.username, mode)

        if PaymentMode(request.payment_mode) is PaymentMode.MANUAL_VERIFICATION:
            txn = ledger_service.append_transaction(
                session,
                user_id=user.id,
                kind=TransactionKind.ENTRY_FEE,
                amount=fee,
                status=PaymentStatus.PENDING,
                scrim_id=scrim.id,
                utr=request.utr,
            )
            registration = Registration(
                scrim_id=scrim.id,
                user_id=user.id,
                mode=mode.value,
                team_name=team_name,
                team_members=list(request.team_members),
                slot_number=None,
                payment_status=PaymentStatus.PENDING.value,
            )
            session.add(registration)
            session.flush()
            new_balance = to_money(user.wallet_balance)
            slot = None
        else:
            # 3. Funds
            available = to_money(user.wallet_balance)
            if available < fee:
                raise InsufficientFunds(required=fee, available=available)

            # 4. Debit  5. Ledger
            new_balance = ledger_service.debit(session, user.id, fee)
            txn = ledger_service.append_transaction(
                session,
                user_id=user.id,
                kind=TransactionKind.ENTRY_FEE,
                amount=fee,
                status=PaymentStatus.VERIFIED,
                scrim_id=scrim.id,
            )

            # 6. Slot
            slot = allocate_slot(mode, taken_slots(session, scrim.id))

            # 7. Registration
            registration = Registration(
                scrim_id=scrim.id,
                user_id=user.id,
                mode=mode.value,
                team_name=team_name,
                team_members=list(request.team_members),
                slot_number=slot,
                payment_status=PaymentStatus.VERIFIED.value,
            )
            session.add(registration)
            session.flush()

            # 8. Spots
            consume_spots(session, scrim, MODE_PLAYERS[mode])

        session.commit()
        session.refresh(registration)
        session.refresh(txn)
        return RegistrationOutcome(
            registration=registration,
            transaction=txn,
            slot_number=slot,
            team_name=team_name,
            new_balance=new_balance,
        )


def register(
    engine: Engine,
    request: RegistrationRequest,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> RegistrationOutcome:
    """Register a team; see the module docstring for the exact pipeline.

    Raises
    ------
    AlreadyRegistered, ScrimFull, ScrimNotOpen, InsufficientFunds,
    ScrimNotFound, UserNotFound
        Terminal refusals; nothing was written.
    SlotSpaceExhausted
        Capacity counters disagree with the registration rows.
    ConcurrencyConflict
        Every attempt lost a race.
    """
    mode = RegistrationMode(request.mode)
    outcome = _run_locked_with_retries(
        request.scrim_id,
        lambda: _register_once(engine, request, mode),
        max_attempts=max_attempts,
        what="registration",
    )
    logger.info(
        "User %d registered %s team %r for scrim %d: slot=%s status=%s",
        request.user_id, mode.value, outcome.team_name, request.scrim_id,
        outcome.slot_number, outcome.registration.payment_status,
    )
    _remember_roster(engine, request, outcome.team_name)
    return outcome


# ---------------------------------------------------------------------------
# Manual verification (admin side)
# ---------------------------------------------------------------------------
def _pending_entry_fee(session: Session, transaction_id: int, *, lock: bool = False) -> Transaction:
    query = select(Transaction).where(Transaction.id == transaction_id)
    if lock:
        query = query.with_for_update()
    txn = session.scalar(query)
    if txn is None:
        raise TransactionNotFound(transaction_id)
    if txn.kind != TransactionKind.ENTRY_FEE.value or txn.scrim_id is None:
        raise InvalidTransactionState(
            f"Transaction #{transaction_id} is not a scrim entry fee"
        )
    if txn.payment_status != PaymentStatus.PENDING.value:
        raise InvalidTransactionState(
            f"Transaction #{transaction_id} is already {txn.payment_status}"
        )
    return txn


def _pending_registration_for(session: Session, txn: Transaction) -> Registration:
    registration = session.scalar(
        select(Registration).where(
            Registration.scrim_id == txn.scrim_id,
            Registration.user_id == txn.user_id,
        )
    )
    if registration is None or registration.payment_status != PaymentStatus.PENDING.value:
        raise InvalidTransactionState(
            f"No pending registration matches transaction #{txn.id}"
        )
    return registration


def _scrim_of(engine: Engine, transaction_id: int) -> int:
    with Session(engine) as session:
        return _pending_entry_fee(session, transaction_id).scrim_id


def approve_manual_registration(
    engine: Engine,
    transaction_id: int,
    *,
    actor_id: int,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> RegistrationOutcome:
    """Confirm an externally-paid entry fee: assign a slot and take the spots.

    The wallet is not touched; the money never went through it.
    """
    scrim_id = _scrim_of(engine, transaction_id)

    def _approve_once() -> RegistrationOutcome:
        with Session(engine, expire_on_commit=False) as session:
            scrim = lock_scrim(session, scrim_id)
            txn = _pending_entry_fee(session, transaction_id, lock=True)
            registration = _pending_registration_for(session, txn)
            mode = RegistrationMode(registration.mode)
            before = {"transaction": row_to_dict(txn), "registration": row_to_dict(registration)}

            _ensure_open(scrim)
            check_capacity(scrim, mode, mode_occupancy(session, scrim.id))
            slot = allocate_slot(mode, taken_slots(session, scrim.id))

            registration.slot_number = slot
            registration.payment_status = PaymentStatus.VERIFIED.value
            txn.payment_status = PaymentStatus.VERIFIED.value
            session.flush()
            consume_spots(session, scrim, MODE_PLAYERS[mode])

            log_admin_action(
                session,
                actor_id=actor_id,
                action_type=AdminActionType.APPROVE.value,
                target_table="transactions",
                target_id=str(txn.id),
                before=before,
                after={"transaction": row_to_dict(txn), "registration": row_to_dict(registration)},
            )
            new_balance = ledger_service.current_balance(session, txn.user_id)
            session.commit()
            return RegistrationOutcome(
                registration=registration,
                transaction=txn,
                slot_number=slot,
                team_name=registration.team_name or "",
                new_balance=new_balance,
            )

    outcome = _run_locked_with_retries(
        scrim_id, _approve_once, max_attempts=max_attempts, what="manual approval",
    )
    logger.info(
        "Approved entry fee #%d: scrim %d slot %s", transaction_id, scrim_id, outcome.slot_number,
    )
    return outcome


def reject_manual_registration(
    engine: Engine,
    transaction_id: int,
    *,
    actor_id: int,
    reason: str | None = None,
) -> Transaction:
    """Reject an externally-paid entry fee.

    The ledger row stays (as ``rejected``); the pending registration is
    removed so the player can register again.
    """
    with Session(engine, expire_on_commit=False) as session:
        txn = _pending_entry_fee(session, transaction_id, lock=True)
        registration = _pending_registration_for(session, txn)
        before = {"transaction": row_to_dict(txn), "registration": row_to_dict(registration)}

        txn.payment_status = PaymentStatus.REJECTED.value
        session.delete(registration)
        session.flush()
        log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.REJECT.value,
            target_table="transactions",
            target_id=str(txn.id),
            before=before,
            after={"transaction": row_to_dict(txn), "registration": None},
            reason=reason,
        )
        session.commit()
        logger.info("Rejected entry fee #%d for scrim %d", txn.id, txn.scrim_id)
        return txn


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def list_user_registrations(engine: Engine, user_id: int) -> list[tuple[Registration, Scrim]]:
    """A player's registrations with their scrims, newest first."""
    with Session(engine, expire_on_commit=False) as session:
        rows = session.execute(
            select(Registration, Scrim)
            .join(Scrim, Registration.scrim_id == Scrim.id)
            .where(Registration.user_id == user_id)
            .order_by(Registration.registered_at.desc(), Registration.id.desc())
        ).all()
        return [(row.Registration, row.Scrim) for row in rows]
