"""
scrimhub.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for **infrastructure-only** settings: platform
identity, the API port, and how hard the registration coordinator retries
when it loses a race.  Secrets (``DATABASE_URL``, ``JWT_SECRET``) come from
the environment / ``.env`` instead.

Usage::

    from scrimhub.config import load_config

    cfg = load_config()                  # reads ./config.yaml by default
    print(cfg.platform_name)             # "SV Scrims"
    print(cfg.registration_max_attempts) # 3
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ScrimhubConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    platform_name: str

    # API
    api_port: int

    # Registration coordinator
    registration_max_attempts: int = 3  # Total tries before ConcurrencyConflict

    # Display only; balances are stored without a currency column
    currency: str = "INR"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> ScrimhubConfig:
    """Read *path* and return a :class:`ScrimhubConfig` instance.

    Relative paths resolve against the working directory the API was
    started from.

    Raises
    ------
    FileNotFoundError
        No file at *path*.
    KeyError
        ``platform_name`` or ``api_port`` is absent.
    ValueError
        If ``registration_max_attempts`` is less than 1.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"No scrimhub config at {config_path.resolve()}; "
            "start from config.yaml.example"
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    max_attempts = int(raw.get("registration_max_attempts", 3))
    if max_attempts < 1:
        raise ValueError("registration_max_attempts must be at least 1")

    return ScrimhubConfig(
        platform_name=raw["platform_name"],
        api_port=int(raw["api_port"]),
        registration_max_attempts=max_attempts,
        currency=str(raw.get("currency", "INR")),
    )
