"""Initial scrim, registration and wallet ledger schema

Revision ID: 5c2e9a7f1b30
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c2e9a7f1b30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

MONEY = sa.Numeric(10, 2)


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=True,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Create users, scrims, registrations, ledger, team profiles and audit log."""
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("player_id", sa.String(32), nullable=False, unique=True),
        sa.Column("wallet_balance", MONEY, nullable=False, server_default="0.00"),
        sa.Column("role", sa.String(20), nullable=False, server_default="player"),
        sa.Column("banned", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.CheckConstraint("wallet_balance >= 0", name="ck_users_wallet_non_negative"),
    )

    op.create_table(
        "scrims",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("match_type", sa.String(100), nullable=False),
        sa.Column("map", sa.String(100), nullable=False),
        sa.Column("entry_fee", MONEY, nullable=False),
        sa.Column("prize_pool", MONEY, nullable=False, server_default="0.00"),
        sa.Column("scheduled_date", sa.String(20), nullable=False),
        sa.Column("scheduled_time", sa.String(20), nullable=False),
        sa.Column("max_players", sa.Integer(), nullable=False),
        sa.Column("spots_remaining", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("room_id", sa.String(100), nullable=True),
        sa.Column("room_password", sa.String(100), nullable=True),
        sa.Column("youtube_link", sa.String(255), nullable=True),
        _created_at(),
        sa.CheckConstraint("entry_fee >= 0", name="ck_scrims_entry_fee_non_negative"),
        sa.CheckConstraint(
            "spots_remaining >= 0 AND spots_remaining <= max_players",
            name="ck_scrims_spots_in_range",
        ),
    )
    op.create_index("ix_scrims_status", "scrims", ["status"])

    op.create_table(
        "scrim_registrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "scrim_id", sa.Integer(),
            sa.ForeignKey("scrims.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "user_id", sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("mode", sa.String(10), nullable=False),
        sa.Column("team_name", sa.String(100), nullable=True),
        sa.Column("team_members", postgresql.JSONB(), nullable=True),
        sa.Column("slot_number", sa.Integer(), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        _created_at("registered_at"),
        sa.UniqueConstraint("scrim_id", "user_id", name="uq_registrations_scrim_user"),
        sa.UniqueConstraint("scrim_id", "slot_number", name="uq_registrations_scrim_slot"),
    )
    op.create_index(
        "ix_registrations_scrim_mode", "scrim_registrations", ["scrim_id", "mode"],
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("utr", sa.String(100), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column(
            "scrim_id", sa.Integer(),
            sa.ForeignKey("scrims.id", ondelete="SET NULL"), nullable=True,
        ),
        _created_at(),
        sa.CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
    )
    op.create_index("ix_transactions_user_time", "transactions", ["user_id", "created_at"])
    op.create_index("ix_transactions_scrim_kind", "transactions", ["scrim_id", "kind"])

    op.create_table(
        "team_profiles",
        sa.Column(
            "user_id", sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("mode", sa.String(10), nullable=False),
        sa.Column("team_name", sa.String(100), nullable=True),
        sa.Column("members", postgresql.JSONB(), nullable=False, server_default="[]"),
        _created_at("updated_at"),
    )

    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.BigInteger(), nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("before_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("after_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        _created_at("timestamp"),
    )
    op.create_index("ix_admin_log_actor_time", "admin_log", ["actor_id", "timestamp"])
    op.create_index(
        "ix_admin_log_target", "admin_log", ["target_table", "target_id", "timestamp"],
    )


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    op.drop_index("ix_admin_log_target", table_name="admin_log")
    op.drop_index("ix_admin_log_actor_time", table_name="admin_log")
    op.drop_table("admin_log")
    op.drop_table("team_profiles")
    op.drop_index("ix_transactions_scrim_kind", table_name="transactions")
    op.drop_index("ix_transactions_user_time", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_registrations_scrim_mode", table_name="scrim_registrations")
    op.drop_table("scrim_registrations")
    op.drop_index("ix_scrims_status", table_name="scrims")
    op.drop_table("scrims")
    op.drop_table("users")
