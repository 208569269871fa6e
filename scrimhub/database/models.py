"""
scrimhub.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users                — Players and admins, each with a custodial wallet
- scrims               — Bookable matches with a denormalised spots counter
- scrim_registrations  — One team per (scrim, captain), holding a slot number
- transactions         — Append-only wallet ledger
- team_profiles        — Last-used team roster per user (pre-fill cache)
- admin_log            — Append-only audit trail of admin mutations
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Fixed-point money: 10 digits, 2 after the point
Money = Numeric(10, 2)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all scrimhub ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class UserRole(enum.StrEnum):
    PLAYER = "player"
    ADMIN = "admin"


class ScrimStatus(enum.StrEnum):
    """Scrim lifecycle.  Only ``open`` scrims accept registrations."""
    OPEN = "open"
    LIVE = "live"
    FULL = "full"
    COMPLETED = "completed"


class RegistrationMode(enum.StrEnum):
    SOLO = "solo"
    DUO = "duo"
    SQUAD = "squad"


class PaymentStatus(enum.StrEnum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class TransactionKind(enum.StrEnum):
    """Ledger entry kinds.  Amounts are magnitudes; the kind implies the sign."""
    ADD = "add"
    WITHDRAW = "withdraw"
    ENTRY_FEE = "entryFee"
    PRIZE = "prize"


class PaymentMode(enum.StrEnum):
    """How an entry fee is collected."""
    WALLET_INSTANT = "walletInstant"            # debited from wallet, verified at once
    MANUAL_VERIFICATION = "manualVerification"  # paid outside, admin approves later


class AdminActionType(enum.StrEnum):
    """Categories of admin mutations recorded in admin_log."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    BAN = "BAN"
    UNBAN = "UNBAN"
    PRIZE = "PRIZE"


# ---------------------------------------------------------------------------
# Users — players and admins
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    player_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    wallet_balance: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0.00")
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.PLAYER.value)
    banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    registrations: Mapped[list[Registration]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    transactions: Mapped[list[Transaction]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    team_profile: Mapped[TeamProfile | None] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_users_wallet_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.username!r} balance={self.wallet_balance}>"


# ---------------------------------------------------------------------------
# Scrims — bookable matches
# ---------------------------------------------------------------------------
class Scrim(Base):
    __tablename__ = "scrims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    match_type: Mapped[str] = mapped_column(String(100), nullable=False)
    map: Mapped[str] = mapped_column(String(100), nullable=False)
    entry_fee: Mapped[Decimal] = mapped_column(Money, nullable=False)
    prize_pool: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    scheduled_date: Mapped[str] = mapped_column(String(20), nullable=False)
    scheduled_time: Mapped[str] = mapped_column(String(20), nullable=False)
    max_players: Mapped[int] = mapped_column(Integer, nullable=False)
    # Denormalised; only the registration coordinator decrements it
    spots_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ScrimStatus.OPEN.value)
    room_id: Mapped[str | None] = mapped_column(String(100), default=None)
    room_password: Mapped[str | None] = mapped_column(String(100), default=None)
    youtube_link: Mapped[str | None] = mapped_column(String(255), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    registrations: Mapped[list[Registration]] = relationship(
        back_populates="scrim", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("entry_fee >= 0", name="ck_scrims_entry_fee_non_negative"),
        CheckConstraint(
            "spots_remaining >= 0 AND spots_remaining <= max_players",
            name="ck_scrims_spots_in_range",
        ),
        Index("ix_scrims_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Scrim id={self.id} type={self.match_type!r} "
            f"spots={self.spots_remaining}/{self.max_players} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# Registration — one team per (scrim, captain)
# ---------------------------------------------------------------------------
class Registration(Base):
    __tablename__ = "scrim_registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scrim_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("scrims.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    mode: Mapped[str] = mapped_column(String(10), nullable=False)
    team_name: Mapped[str | None] = mapped_column(String(100), default=None)
    team_members: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    slot_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    scrim: Mapped[Scrim] = relationship(back_populates="registrations")
    user: Mapped[User] = relationship(back_populates="registrations")

    __table_args__ = (
        UniqueConstraint("scrim_id", "user_id", name="uq_registrations_scrim_user"),
        # NULL slots (pending manual payments) don't collide
        UniqueConstraint("scrim_id", "slot_number", name="uq_registrations_scrim_slot"),
        Index("ix_registrations_scrim_mode", "scrim_id", "mode"),
    )

    def __repr__(self) -> str:
        return (
            f"<Registration id={self.id} scrim={self.scrim_id} user={self.user_id} "
            f"mode={self.mode} slot={self.slot_number}>"
        )


# ---------------------------------------------------------------------------
# Transaction — append-only wallet ledger
# ---------------------------------------------------------------------------
class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    utr: Mapped[str | None] = mapped_column(String(100), default=None)  # external payment ref / UPI id
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )
    scrim_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("scrims.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="transactions")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
        Index("ix_transactions_user_time", "user_id", "created_at"),
        Index("ix_transactions_scrim_kind", "scrim_id", "kind"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction id={self.id} user={self.user_id} kind={self.kind} "
            f"amount={self.amount} status={self.payment_status}>"
        )


# ---------------------------------------------------------------------------
# TeamProfile — last-used roster, one row per user
# ---------------------------------------------------------------------------
class TeamProfile(Base):
    __tablename__ = "team_profiles"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    mode: Mapped[str] = mapped_column(String(10), nullable=False)
    team_name: Mapped[str | None] = mapped_column(String(100), default=None)
    members: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[User] = relationship(back_populates="team_profile")

    def __repr__(self) -> str:
        return f"<TeamProfile user={self.user_id} mode={self.mode} team={self.team_name!r}>"


# ---------------------------------------------------------------------------
# AdminLog — append-only audit trail
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"
