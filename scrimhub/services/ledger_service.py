"""
scrimhub.services.ledger_service — Wallet Balances & Transaction Ledger
========================================================================

The only code allowed to change ``users.wallet_balance``.

:func:`debit` and :func:`credit` take the caller's :class:`Session` so they
join whatever transaction the caller is running: the registration
coordinator debits, records the ledger row, and inserts the registration
in one commit.  A debit is a single conditional ``UPDATE … WHERE
wallet_balance >= :amount``; if no row matches, nothing changed and
:class:`InsufficientFunds` is raised.

The engine-level helpers further down cover the wallet flows that go
through admin approval (top-ups, withdrawals, prizes).
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from scrimhub.constants import to_money
from scrimhub.database.models import (
    AdminActionType,
    PaymentStatus,
    Transaction,
    TransactionKind,
    User,
)
from scrimhub.errors import (
    InsufficientFunds,
    InvalidTransactionState,
    TransactionNotFound,
    UserNotFound,
)
from scrimhub.services.audit import log_admin_action, row_to_dict

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# Kinds an admin settles here; entryFee approvals belong to the registration service
WALLET_REQUEST_KINDS = frozenset({
    TransactionKind.ADD.value,
    TransactionKind.WITHDRAW.value,
    TransactionKind.PRIZE.value,
})


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def transaction_to_dict(txn: Transaction) -> dict[str, Any]:
    return {
        "id": txn.id,
        "userId": txn.user_id,
        "type": txn.kind,
        "amount": str(to_money(txn.amount)),
        "utr": txn.utr,
        "paymentStatus": txn.payment_status,
        "scrimId": txn.scrim_id,
        "createdAt": txn.created_at.isoformat() if txn.created_at else None,
    }


# ---------------------------------------------------------------------------
# Session-level primitives (join the caller's transaction)
# ---------------------------------------------------------------------------
def _checked_amount(amount: Decimal | int | str) -> Decimal:
    value = to_money(amount)
    if value < 0:
        raise ValueError(f"Amount must be non-negative, got {value}")
    return value


def _expire_cached_balance(session: Session, user_id: int) -> None:
    """Drop a stale in-memory balance after a bulk UPDATE."""
    user = session.identity_map.get(session.identity_key(User, user_id))
    if user is not None:
        session.expire(user, ["wallet_balance"])


def current_balance(session: Session, user_id: int) -> Decimal:
    """Read the committed-or-pending balance straight from the row."""
    balance = session.scalar(select(User.wallet_balance).where(User.id == user_id))
    if balance is None:
        raise UserNotFound(user_id)
    return to_money(balance)


def debit(session: Session, user_id: int, amount: Decimal | int | str) -> Decimal:
    """Subtract *amount* from the wallet and return the new balance.

    Refused with :class:`InsufficientFunds`, and no mutation, when the
    balance is lower than *amount*.
    """
    value = _checked_amount(amount)
    result = session.execute(
        update(User)
        .where(User.id == user_id, User.wallet_balance >= value)
        .values(wallet_balance=User.wallet_balance - value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        available = current_balance(session, user_id)
        raise InsufficientFunds(required=value, available=available)

    _expire_cached_balance(session, user_id)
    return current_balance(session, user_id)


def credit(session: Session, user_id: int, amount: Decimal | int | str) -> Decimal:
    """Add *amount* to the wallet and return the new balance."""
    value = _checked_amount(amount)
    result = session.execute(
        update(User)
        .where(User.id == user_id)
        .values(wallet_balance=User.wallet_balance + value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise UserNotFound(user_id)

    _expire_cached_balance(session, user_id)
    return current_balance(session, user_id)


def append_transaction(
    session: Session,
    *,
    user_id: int,
    kind: TransactionKind,
    amount: Decimal | int | str,
    status: PaymentStatus = PaymentStatus.PENDING,
    scrim_id: int | None = None,
    utr: str | None = None,
) -> Transaction:
    """Insert a ledger row and flush so its id is available."""
    txn = Transaction(
        user_id=user_id,
        kind=TransactionKind(kind).value,
        amount=_checked_amount(amount),
        payment_status=PaymentStatus(status).value,
        scrim_id=scrim_id,
        utr=utr,
    )
    session.add(txn)
    session.flush()
    return txn


# ---------------------------------------------------------------------------
# Read helpers
# ---------------------------------------------------------------------------
def get_balance(engine: Engine, user_id: int) -> Decimal:
    with Session(engine) as session:
        return current_balance(session, user_id)


def list_transactions(engine: Engine, user_id: int) -> list[Transaction]:
    """All ledger rows for *user_id*, newest first."""
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        ).all())


# ---------------------------------------------------------------------------
# Player-initiated wallet requests (settled by an admin)
# ---------------------------------------------------------------------------
def request_top_up(
    engine: Engine,
    *,
    user_id: int,
    amount: Decimal | int | str,
    utr: str | None = None,
) -> Transaction:
    """Record a pending ``add`` the player claims to have paid externally."""
    value = _checked_amount(amount)
    if value == 0:
        raise ValueError("Top-up amount must be positive")

    with Session(engine, expire_on_commit=False) as session:
        current_balance(session, user_id)  # raises UserNotFound
        txn = append_transaction(
            session, user_id=user_id, kind=TransactionKind.ADD, amount=value, utr=utr,
        )
        session.commit()
        session.refresh(txn)
        logger.info("Top-up request #%d: user=%d amount=%s", txn.id, user_id, value)
        return txn


def request_withdrawal(
    engine: Engine,
    *,
    user_id: int,
    amount: Decimal | int | str,
    upi_id: str,
) -> Transaction:
    """Record a pending ``withdraw``.  The balance is checked now and again
    when an admin settles it."""
    value = _checked_amount(amount)
    if value == 0:
        raise ValueError("Withdrawal amount must be positive")

    with Session(engine, expire_on_commit=False) as session:
        available = current_balance(session, user_id)
        if available < value:
            raise InsufficientFunds(required=value, available=available)
        txn = append_transaction(
            session, user_id=user_id, kind=TransactionKind.WITHDRAW, amount=value, utr=upi_id,
        )
        session.commit()
        session.refresh(txn)
        logger.info("Withdrawal request #%d: user=%d amount=%s", txn.id, user_id, value)
        return txn


def _pending_wallet_request(session: Session, transaction_id: int) -> Transaction:
    txn = session.scalar(
        select(Transaction).where(Transaction.id == transaction_id).with_for_update()
    )
    if txn is None:
        raise TransactionNotFound(transaction_id)
    if txn.kind not in WALLET_REQUEST_KINDS:
        raise InvalidTransactionState(
            f"Transaction #{transaction_id} is a {txn.kind} entry, not a wallet request"
        )
    if txn.payment_status != PaymentStatus.PENDING.value:
        raise InvalidTransactionState(
            f"Transaction #{transaction_id} is already {txn.payment_status}"
        )
    return txn


def settle_wallet_request(
    engine: Engine,
    transaction_id: int,
    *,
    actor_id: int,
) -> tuple[Transaction, Decimal]:
    """Approve a pending top-up, prize or withdrawal and move the money.

    Returns ``(transaction, new_balance)``.  A withdrawal that no longer
    fits the balance raises :class:`InsufficientFunds` and stays pending.
    """
    with Session(engine, expire_on_commit=False) as session:
        txn = _pending_wallet_request(session, transaction_id)
        before = row_to_dict(txn)

        if txn.kind == TransactionKind.WITHDRAW.value:
            new_balance = debit(session, txn.user_id, txn.amount)
        else:
            new_balance = credit(session, txn.user_id, txn.amount)

        txn.payment_status = PaymentStatus.VERIFIED.value
        session.flush()
        log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.APPROVE.value,
            target_table="transactions",
            target_id=str(txn.id),
            before=before,
            after=row_to_dict(txn),
        )
        session.commit()
        logger.info(
            "Settled %s #%d for user %d: balance now %s",
            txn.kind, txn.id, txn.user_id, new_balance,
        )
        return txn, new_balance


def reject_wallet_request(
    engine: Engine,
    transaction_id: int,
    *,
    actor_id: int,
    reason: str | None = None,
) -> Transaction:
    """Mark a pending wallet request rejected.  No balance change."""
    with Session(engine, expire_on_commit=False) as session:
        txn = _pending_wallet_request(session, transaction_id)
        before = row_to_dict(txn)
        txn.payment_status = PaymentStatus.REJECTED.value
        session.flush()
        log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.REJECT.value,
            target_table="transactions",
            target_id=str(txn.id),
            before=before,
            after=row_to_dict(txn),
            reason=reason,
        )
        session.commit()
        return txn


def award_prize(
    engine: Engine,
    *,
    user_id: int,
    amount: Decimal | int | str,
    actor_id: int,
    scrim_id: int | None = None,
) -> tuple[Transaction, Decimal]:
    """Pay out a prize: verified ``prize`` ledger row, then the credit."""
    value = _checked_amount(amount)
    if value == 0:
        raise ValueError("Prize amount must be positive")

    with Session(engine, expire_on_commit=False) as session:
        current_balance(session, user_id)  # raises UserNotFound
        txn = append_transaction(
            session,
            user_id=user_id,
            kind=TransactionKind.PRIZE,
            amount=value,
            status=PaymentStatus.VERIFIED,
            scrim_id=scrim_id,
        )
        new_balance = credit(session, user_id, value)
        log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.PRIZE.value,
            target_table="transactions",
            target_id=str(txn.id),
            before=None,
            after=row_to_dict(txn),
        )
        session.commit()
        session.refresh(txn)
        logger.info("Prize #%d: %s to user %d", txn.id, value, user_id)
        return txn, new_balance
