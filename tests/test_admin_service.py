"""
tests/test_admin_service.py — Audited Admin Mutations
======================================================
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from scrimhub.database.models import (
    AdminActionType,
    AdminLog,
    PaymentMode,
    PaymentStatus,
    RegistrationMode,
    Scrim,
    ScrimStatus,
    User,
)
from scrimhub.errors import (
    InvalidScrimState,
    ScrimNotFound,
    TransactionNotFound,
    UserNotFound,
)
from scrimhub.services import admin_service, ledger_service
from scrimhub.services.registration_service import RegistrationRequest, register


def _logs(engine) -> list[AdminLog]:
    with Session(engine) as session:
        return list(session.scalars(select(AdminLog).order_by(AdminLog.id)).all())


class TestScrims:
    def test_create_scrim_is_open_with_all_spots(self, db_engine):
        scrim = admin_service.create_scrim(
            db_engine,
            match_type="Squad",
            map_name="Kalahari",
            entry_fee="20",
            prize_pool="500",
            scheduled_date="2026-11-02",
            scheduled_time="21:00",
            max_players=48,
            actor_id=1,
        )
        assert scrim.spots_remaining == 48
        assert scrim.status == ScrimStatus.OPEN.value
        assert scrim.entry_fee == Decimal("20.00")

        (log,) = _logs(db_engine)
        assert log.action_type == AdminActionType.CREATE.value
        assert log.target_table == "scrims"
        assert log.before_snapshot is None
        assert log.after_snapshot["max_players"] == 48

    def test_create_scrim_validates(self, db_engine):
        with pytest.raises(ValueError):
            admin_service.create_scrim(
                db_engine, match_type="Solo", map_name="Bermuda", entry_fee="-1",
                prize_pool="0", scheduled_date="d", scheduled_time="t", max_players=10,
                actor_id=1,
            )
        with pytest.raises(ValueError):
            admin_service.create_scrim(
                db_engine, match_type="Solo", map_name="Bermuda", entry_fee="5",
                prize_pool="0", scheduled_date="d", scheduled_time="t", max_players=0,
                actor_id=1,
            )

    def test_status_change_is_audited(self, db_engine, make_scrim):
        scrim = make_scrim()
        updated = admin_service.set_scrim_status(db_engine, scrim.id, "live", actor_id=3)
        assert updated.status == ScrimStatus.LIVE.value
        (log,) = _logs(db_engine)
        assert log.before_snapshot["status"] == "open"
        assert log.after_snapshot["status"] == "live"

    def test_status_change_missing_scrim(self, db_engine):
        with pytest.raises(ScrimNotFound):
            admin_service.set_scrim_status(db_engine, 404, ScrimStatus.LIVE, actor_id=1)

    def test_full_scrim_cannot_be_reopened(self, db_engine, make_user, make_scrim):
        scrim = make_scrim(entry_fee="5", max_players=4)
        user = make_user(balance="20")
        register(db_engine, RegistrationRequest(
            scrim_id=scrim.id, user_id=user.id, mode=RegistrationMode.SQUAD,
        ))

        with pytest.raises(InvalidScrimState):
            admin_service.set_scrim_status(db_engine, scrim.id, ScrimStatus.OPEN, actor_id=1)

        with Session(db_engine) as session:
            after = session.get(Scrim, scrim.id)
            assert after.spots_remaining == 0
            assert after.status == ScrimStatus.FULL.value
        assert _logs(db_engine) == []

    def test_full_scrim_can_still_go_live(self, db_engine, make_scrim):
        scrim = make_scrim(max_players=4, spots_remaining=0, status=ScrimStatus.FULL)
        updated = admin_service.set_scrim_status(db_engine, scrim.id, ScrimStatus.LIVE, actor_id=1)
        assert updated.status == ScrimStatus.LIVE.value

    def test_scrim_with_spots_can_be_reopened(self, db_engine, make_scrim):
        scrim = make_scrim(max_players=10, spots_remaining=6, status=ScrimStatus.LIVE)
        updated = admin_service.set_scrim_status(db_engine, scrim.id, ScrimStatus.OPEN, actor_id=1)
        assert updated.status == ScrimStatus.OPEN.value

    def test_room_credentials(self, db_engine, make_scrim):
        scrim = make_scrim()
        updated = admin_service.set_room_credentials(
            db_engine, scrim.id, room_id="R-1", room_password="pw", actor_id=1,
        )
        assert (updated.room_id, updated.room_password) == ("R-1", "pw")
        assert updated.youtube_link is None

    def test_room_credentials_with_stream_link(self, db_engine, make_scrim):
        scrim = make_scrim()
        updated = admin_service.set_room_credentials(
            db_engine, scrim.id,
            room_id="R-2", room_password="pw", youtube_link="https://youtu.be/xyz",
            actor_id=1,
        )
        assert updated.youtube_link == "https://youtu.be/xyz"
        (log,) = _logs(db_engine)
        assert log.after_snapshot["youtube_link"] == "https://youtu.be/xyz"


class TestPlayers:
    def test_ban_and_unban(self, db_engine, make_user):
        user = make_user()
        assert admin_service.ban_user(db_engine, user.id, actor_id=1, reason="cheating").banned
        assert not admin_service.unban_user(db_engine, user.id, actor_id=1).banned
        ban, unban = _logs(db_engine)
        assert ban.action_type == AdminActionType.BAN.value
        assert ban.reason == "cheating"
        assert unban.action_type == AdminActionType.UNBAN.value

    def test_ban_missing_user(self, db_engine):
        with pytest.raises(UserNotFound):
            admin_service.ban_user(db_engine, 404, actor_id=1)


class TestTransactions:
    def test_approve_top_up_routes_to_ledger(self, db_engine, make_user):
        user = make_user(balance="10")
        txn = ledger_service.request_top_up(db_engine, user_id=user.id, amount="90")
        body = admin_service.approve_transaction(db_engine, txn.id, actor_id=1)
        assert body["newBalance"] == "100.00"
        assert body["transaction"]["paymentStatus"] == "verified"

    def test_approve_entry_fee_routes_to_registration(self, db_engine, make_user, make_scrim):
        scrim = make_scrim(entry_fee="50")
        user = make_user(balance="0")
        pending = register(db_engine, RegistrationRequest(
            scrim_id=scrim.id,
            user_id=user.id,
            mode=RegistrationMode.SOLO,
            payment_mode=PaymentMode.MANUAL_VERIFICATION,
        ))
        body = admin_service.approve_transaction(db_engine, pending.transaction.id, actor_id=1)
        assert body["slotNumber"] == 99
        assert body["registration"]["paymentStatus"] == "verified"
        with Session(db_engine) as session:
            assert session.get(User, user.id).wallet_balance == Decimal("0.00")

    def test_reject_entry_fee(self, db_engine, make_user, make_scrim):
        scrim = make_scrim()
        user = make_user()
        pending = register(db_engine, RegistrationRequest(
            scrim_id=scrim.id,
            user_id=user.id,
            mode=RegistrationMode.SOLO,
            payment_mode=PaymentMode.MANUAL_VERIFICATION,
        ))
        txn = admin_service.reject_transaction(db_engine, pending.transaction.id, actor_id=1)
        assert txn.payment_status == PaymentStatus.REJECTED.value

    def test_approve_missing(self, db_engine):
        with pytest.raises(TransactionNotFound):
            admin_service.approve_transaction(db_engine, 404, actor_id=1)
