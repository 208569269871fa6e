"""
scrimhub.constants — Shared Constants & Helpers
================================================

Single source of truth for team sizes and money rounding.
Import from here instead of duplicating in services and routes.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from scrimhub.database.models import RegistrationMode

# ---------------------------------------------------------------------------
# Team sizes; each registered player consumes one spot
# ---------------------------------------------------------------------------
MODE_PLAYERS: dict[RegistrationMode, int] = {
    RegistrationMode.SOLO: 1,
    RegistrationMode.DUO: 2,
    RegistrationMode.SQUAD: 4,
}


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------
CENT = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Coerce *value* to a two-decimal :class:`Decimal`.

    Floats go through ``str`` first so ``0.1`` stays ``0.10`` rather than
    picking up binary noise.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    """Render a balance the way the API returns it (``"200.00"``)."""
    return str(to_money(value))


def entry_fee_for(entry_fee: Decimal, mode: RegistrationMode) -> Decimal:
    """Total fee for one team: per-player fee × players in *mode*."""
    return to_money(entry_fee * MODE_PLAYERS[mode])
