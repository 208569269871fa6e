"""
scrimhub.engine.slots — Deterministic Slot Allocator
=====================================================

Pure function, no DB I/O.  The caller passes the slot numbers already
taken in the scrim (read fresh, under the scrim lock) and gets back the
lowest free slot for the requested mode.

Numbering space (fixed for every scrim)::

    squad      1, 5, 9, … 97    one number per 4-player team (stride 4)
    solo/duo   99, 100          shared by solo and duo teams

The two pools never intersect, so a squad and a solo/duo team can never
receive the same number.
"""

from __future__ import annotations

from collections.abc import Iterable

from scrimhub.database.models import RegistrationMode
from scrimhub.errors import SlotSpaceExhausted

__all__ = [
    "SOLO_DUO_SLOTS",
    "SQUAD_SLOTS",
    "allocate_slot",
    "partition_capacity",
    "slot_pool",
]

SQUAD_SLOT_STRIDE = 4
SQUAD_SLOT_CEILING = 98

SQUAD_SLOTS: tuple[int, ...] = tuple(range(1, SQUAD_SLOT_CEILING + 1, SQUAD_SLOT_STRIDE))
SOLO_DUO_SLOTS: tuple[int, ...] = (99, 100)


def slot_pool(mode: RegistrationMode | str) -> tuple[int, ...]:
    """Return the slot numbers *mode* may draw from, in allocation order."""
    mode = RegistrationMode(mode)
    if mode is RegistrationMode.SQUAD:
        return SQUAD_SLOTS
    return SOLO_DUO_SLOTS


def partition_capacity(mode: RegistrationMode | str) -> int:
    """How many teams of *mode*'s partition fit in one scrim."""
    return len(slot_pool(mode))


def allocate_slot(mode: RegistrationMode | str, taken_slots: Iterable[int | None]) -> int:
    """Pick the lowest untaken slot in *mode*'s pool.

    ``None`` entries (registrations still awaiting manual approval) are
    ignored.  Identical inputs always give the identical slot.

    Raises
    ------
    SlotSpaceExhausted
        Every slot in the pool is taken.  Capacity validation should have
        refused the request earlier, so reaching this means the counters
        and the registration rows disagree.
    """
    mode = RegistrationMode(mode)
    taken = {slot for slot in taken_slots if slot is not None}
    for slot in slot_pool(mode):
        if slot not in taken:
            return slot
    raise SlotSpaceExhausted(mode.value)
