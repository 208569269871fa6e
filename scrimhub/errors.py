"""
scrimhub.errors — Failure Taxonomy
===================================

Every way a registration or wallet operation can be refused maps to one
:class:`FailureKind`.  Services raise the matching :class:`ScrimhubError`
subclass; API routes turn it into an ``HTTPException`` whose ``detail`` is
``exc.to_detail()`` so clients can branch on ``detail["kind"]``.

Terminal (caller must change the request): ``already_registered``,
``scrim_full``, ``insufficient_funds``.
Transient (retried internally first): ``concurrency_conflict``.
Integrity (logged server-side): ``slot_space_exhausted``.
"""

from __future__ import annotations

import enum
from decimal import Decimal
from typing import Any


class FailureKind(enum.StrEnum):
    ALREADY_REGISTERED = "already_registered"
    SCRIM_FULL = "scrim_full"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    SLOT_SPACE_EXHAUSTED = "slot_space_exhausted"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    SCRIM_NOT_FOUND = "scrim_not_found"
    SCRIM_NOT_OPEN = "scrim_not_open"
    USER_NOT_FOUND = "user_not_found"
    TRANSACTION_NOT_FOUND = "transaction_not_found"
    INVALID_TRANSACTION_STATE = "invalid_transaction_state"
    INVALID_SCRIM_STATE = "invalid_scrim_state"


class ScrimhubError(Exception):
    """Base class for refusals raised by the service layer."""

    kind: FailureKind
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


class AlreadyRegistered(ScrimhubError):
    kind = FailureKind.ALREADY_REGISTERED

    def __init__(self, scrim_id: int, user_id: int) -> None:
        super().__init__("Already registered")
        self.scrim_id = scrim_id
        self.user_id = user_id


class ScrimFull(ScrimhubError):
    kind = FailureKind.SCRIM_FULL

    def __init__(self, message: str = "Scrim is full", *, mode: str | None = None) -> None:
        super().__init__(message)
        self.mode = mode

    def to_detail(self) -> dict[str, Any]:
        detail = super().to_detail()
        if self.mode is not None:
            detail["mode"] = self.mode
        return detail


class InsufficientFunds(ScrimhubError):
    kind = FailureKind.INSUFFICIENT_FUNDS

    def __init__(self, *, required: Decimal, available: Decimal) -> None:
        super().__init__("Insufficient wallet balance")
        self.required = required
        self.available = available
        self.shortfall = max(Decimal("0"), required - available)

    def to_detail(self) -> dict[str, Any]:
        detail = super().to_detail()
        detail.update(
            required=str(self.required),
            available=str(self.available),
            shortfall=str(self.shortfall),
        )
        return detail


class SlotSpaceExhausted(ScrimhubError):
    kind = FailureKind.SLOT_SPACE_EXHAUSTED
    status_code = 500

    def __init__(self, mode: str) -> None:
        super().__init__(f"No free slot left for mode {mode!r}")
        self.mode = mode


class ConcurrencyConflict(ScrimhubError):
    kind = FailureKind.CONCURRENCY_CONFLICT
    status_code = 409

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Registration could not be completed after {attempts} attempt(s); please retry"
        )
        self.attempts = attempts


class ScrimNotFound(ScrimhubError):
    kind = FailureKind.SCRIM_NOT_FOUND
    status_code = 404

    def __init__(self, scrim_id: int) -> None:
        super().__init__("Scrim not found")
        self.scrim_id = scrim_id


class ScrimNotOpen(ScrimhubError):
    kind = FailureKind.SCRIM_NOT_OPEN

    def __init__(self, status: str) -> None:
        super().__init__(f"Scrim is not open for registration (status: {status})")
        self.status = status


class UserNotFound(ScrimhubError):
    kind = FailureKind.USER_NOT_FOUND
    status_code = 404

    def __init__(self, user_id: int) -> None:
        super().__init__("User not found")
        self.user_id = user_id


class TransactionNotFound(ScrimhubError):
    kind = FailureKind.TRANSACTION_NOT_FOUND
    status_code = 404

    def __init__(self, transaction_id: int) -> None:
        super().__init__("Transaction not found")
        self.transaction_id = transaction_id


class InvalidTransactionState(ScrimhubError):
    kind = FailureKind.INVALID_TRANSACTION_STATE


class InvalidScrimState(ScrimhubError):
    kind = FailureKind.INVALID_SCRIM_STATE

    def __init__(self, scrim_id: int, status: str, message: str) -> None:
        super().__init__(message)
        self.scrim_id = scrim_id
        self.status = status
