"""
scrimhub.services.capacity_service — Spots, Occupancy & the Scrim Lock
=======================================================================

Answers "is there room for this team?" from the database, never from a
cache, and owns the single code path that decrements
``scrims.spots_remaining``.

Serialisation per scrim is two-layered:

1. :func:`scrim_lock` — an in-process ``threading.Lock`` per scrim id, so
   API worker threads in one process queue up instead of racing.
2. :func:`lock_scrim` — ``SELECT … FOR UPDATE`` on the scrim row, held until
   the surrounding transaction commits, so separate processes serialise
   too.  (SQLite ignores ``FOR UPDATE``; layer 1 covers the test suite.)

Everything that reads occupancy and then writes a slot or the counter must
run inside both.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from scrimhub.constants import MODE_PLAYERS
from scrimhub.database.models import (
    PaymentStatus,
    Registration,
    RegistrationMode,
    Scrim,
    ScrimStatus,
)
from scrimhub.engine.slots import SOLO_DUO_SLOTS, partition_capacity
from scrimhub.errors import ScrimFull, ScrimNotFound

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Per-scrim in-process lock
# ---------------------------------------------------------------------------
class ScrimLockRegistry:
    """Hands out one :class:`threading.Lock` per scrim id."""

    def __init__(self) -> None:
        self._locks: dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, scrim_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(scrim_id)
            if lock is None:
                lock = self._locks[scrim_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, scrim_id: int) -> Iterator[None]:
        lock = self.lock_for(scrim_id)
        with lock:
            yield


_registry = ScrimLockRegistry()


def scrim_lock(scrim_id: int):
    """Context manager serialising capacity-changing work on *scrim_id*."""
    return _registry.hold(scrim_id)


def lock_scrim(session: Session, scrim_id: int) -> Scrim:
    """Load the scrim row with a row-level write lock.

    Raises :class:`ScrimNotFound` if it doesn't exist.
    """
    scrim = session.scalar(
        select(Scrim).where(Scrim.id == scrim_id).with_for_update()
    )
    if scrim is None:
        raise ScrimNotFound(scrim_id)
    return scrim


# ---------------------------------------------------------------------------
# Occupancy
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ModeOccupancy:
    """Verified teams per mode in one scrim."""

    solo: int = 0
    duo: int = 0
    squad: int = 0

    @property
    def solo_duo(self) -> int:
        return self.solo + self.duo

    def teams_in_partition(self, mode: RegistrationMode) -> int:
        if mode is RegistrationMode.SQUAD:
            return self.squad
        return self.solo_duo


def remaining_spots(session: Session, scrim_id: int) -> int:
    spots = session.scalar(select(Scrim.spots_remaining).where(Scrim.id == scrim_id))
    if spots is None:
        raise ScrimNotFound(scrim_id)
    return spots


def mode_occupancy(session: Session, scrim_id: int) -> ModeOccupancy:
    """Count verified registrations per mode.

    Pending manual-payment registrations hold neither a slot nor spots, so
    they are not counted until approved.
    """
    rows = session.execute(
        select(Registration.mode, func.count().label("cnt"))
        .where(
            Registration.scrim_id == scrim_id,
            Registration.payment_status == PaymentStatus.VERIFIED.value,
        )
        .group_by(Registration.mode)
    ).all()
    counts = {row.mode: row.cnt for row in rows}
    return ModeOccupancy(
        solo=counts.get(RegistrationMode.SOLO.value, 0),
        duo=counts.get(RegistrationMode.DUO.value, 0),
        squad=counts.get(RegistrationMode.SQUAD.value, 0),
    )


def taken_slots(session: Session, scrim_id: int) -> set[int]:
    rows = session.scalars(
        select(Registration.slot_number).where(
            Registration.scrim_id == scrim_id,
            Registration.slot_number.is_not(None),
        )
    ).all()
    return set(rows)


# ---------------------------------------------------------------------------
# Validation & the counter
# ---------------------------------------------------------------------------
def check_capacity(scrim: Scrim, mode: RegistrationMode, occupancy: ModeOccupancy) -> None:
    """Raise :class:`ScrimFull` unless a *mode* team still fits in *scrim*.

    Two limits apply: the scrim-wide spot counter, and the mode's slot
    partition (two solo/duo slots, 25 squad slots).
    """
    required = MODE_PLAYERS[mode]
    if scrim.spots_remaining < required:
        raise ScrimFull(
            f"Only {scrim.spots_remaining} spot(s) remaining; {mode.value} needs {required}",
            mode=mode.value,
        )
    if occupancy.teams_in_partition(mode) >= partition_capacity(mode):
        raise ScrimFull(f"All {mode.value} slots are filled", mode=mode.value)


def consume_spots(session: Session, scrim: Scrim, count: int) -> int:
    """Decrement ``spots_remaining`` by *count*; flip status to ``full`` at 0.

    *scrim* must have been loaded through :func:`lock_scrim` in *session*.
    Returns the new counter value.
    """
    if count <= 0:
        raise ValueError(f"count must be positive, got {count}")
    if scrim.spots_remaining < count:
        raise ScrimFull(f"Only {scrim.spots_remaining} spot(s) remaining")

    scrim.spots_remaining -= count
    if scrim.spots_remaining <= 0:
        scrim.spots_remaining = 0
        scrim.status = ScrimStatus.FULL.value
        logger.info("Scrim %d is now full", scrim.id)
    session.flush()
    return scrim.spots_remaining


def slots_status(engine: Engine, scrim_id: int) -> dict[str, Any]:
    """Advisory occupancy snapshot for the client's mode picker.

    The coordinator re-checks everything under the lock; this read takes
    no lock.
    """
    with Session(engine) as session:
        spots = remaining_spots(session, scrim_id)
        occupancy = mode_occupancy(session, scrim_id)
    return {
        "soloCount": occupancy.solo,
        "duoCount": occupancy.duo,
        "squadCount": occupancy.squad,
        "totalSoloDuoSlots": len(SOLO_DUO_SLOTS),
        "spotsRemaining": spots,
    }
