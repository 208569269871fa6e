"""
scrimhub — Scrim Registration & Wallet Platform
================================================
Registers teams for mobile battle-royale scrims, charges entry fees from
a custodial wallet, and hands out slot numbers that never collide, even
when many players hit "Register" for the same scrim at once.

Package layout::

    scrimhub/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Mode sizes, money helpers
    ├── errors.py          # FailureKind + exception taxonomy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # All ORM models
    ├── engine/
    │   └── slots.py       # Deterministic slot allocator (pure)
    ├── services/
    │   ├── ledger_service.py        # Wallet balances + transaction ledger
    │   ├── capacity_service.py      # Spots remaining, mode occupancy, locks
    │   ├── registration_service.py  # The registration transaction
    │   ├── roster_service.py        # Saved team profiles
    │   ├── admin_service.py         # Audit-logged admin mutations
    │   └── audit.py                 # admin_log helpers
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT → User, engine/config dependencies
        └── routes/        # Public, player, wallet and admin endpoints
"""

__version__ = "0.1.0"
