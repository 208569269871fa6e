"""
tests/test_capacity_service.py — Spots, Occupancy & Scrim Lock
===============================================================
"""

from __future__ import annotations

import threading

import pytest
from sqlalchemy.orm import Session

from scrimhub.database.models import (
    PaymentStatus,
    Registration,
    RegistrationMode,
    Scrim,
    ScrimStatus,
)
from scrimhub.errors import ScrimFull, ScrimNotFound
from scrimhub.services import capacity_service
from scrimhub.services.capacity_service import (
    ModeOccupancy,
    ScrimLockRegistry,
    check_capacity,
    consume_spots,
)


def _add_registration(engine, scrim_id, user_id, mode, *, slot=None, status=PaymentStatus.VERIFIED):
    with Session(engine) as session:
        session.add(Registration(
            scrim_id=scrim_id,
            user_id=user_id,
            mode=mode.value,
            team_name="T",
            team_members=[],
            slot_number=slot,
            payment_status=status.value,
        ))
        session.commit()


# ===========================================================================
# ScrimLockRegistry
# ===========================================================================
class TestScrimLockRegistry:
    def test_same_scrim_same_lock(self):
        registry = ScrimLockRegistry()
        assert registry.lock_for(1) is registry.lock_for(1)

    def test_different_scrims_different_locks(self):
        registry = ScrimLockRegistry()
        assert registry.lock_for(1) is not registry.lock_for(2)

    def test_hold_serialises(self):
        registry = ScrimLockRegistry()
        order: list[str] = []
        entered = threading.Event()
        release = threading.Event()

        def first():
            with registry.hold(7):
                order.append("first-in")
                entered.set()
                release.wait(timeout=5)
                order.append("first-out")

        def second():
            entered.wait(timeout=5)
            with registry.hold(7):
                order.append("second-in")

        t1 = threading.Thread(target=first)
        t2 = threading.Thread(target=second)
        t1.start()
        t2.start()
        entered.wait(timeout=5)
        release.set()
        t1.join(timeout=5)
        t2.join(timeout=5)
        assert order == ["first-in", "first-out", "second-in"]


# ===========================================================================
# check_capacity (pure)
# ===========================================================================
class TestCheckCapacity:
    def _scrim(self, spots, max_players=100):
        return Scrim(max_players=max_players, spots_remaining=spots)

    def test_room_for_squad(self):
        check_capacity(self._scrim(4), RegistrationMode.SQUAD, ModeOccupancy())

    def test_too_few_spots_for_squad(self):
        with pytest.raises(ScrimFull) as exc_info:
            check_capacity(self._scrim(3), RegistrationMode.SQUAD, ModeOccupancy())
        assert exc_info.value.mode == "squad"
        assert "3" in exc_info.value.message

    def test_solo_duo_partition_full(self):
        with pytest.raises(ScrimFull, match="solo"):
            check_capacity(self._scrim(50), RegistrationMode.SOLO, ModeOccupancy(solo=1, duo=1))

    def test_squad_partition_full(self):
        with pytest.raises(ScrimFull):
            check_capacity(self._scrim(50), RegistrationMode.SQUAD, ModeOccupancy(squad=25))

    def test_squads_do_not_fill_solo_partition(self):
        check_capacity(self._scrim(10), RegistrationMode.DUO, ModeOccupancy(squad=20))

    def test_occupancy_solo_duo_sum(self):
        occ = ModeOccupancy(solo=1, duo=1, squad=3)
        assert occ.solo_duo == 2
        assert occ.teams_in_partition(RegistrationMode.SOLO) == 2
        assert occ.teams_in_partition(RegistrationMode.SQUAD) == 3


# ===========================================================================
# DB-backed helpers
# ===========================================================================
class TestOccupancyQueries:
    def test_counts_only_verified(self, db_engine, make_user, make_scrim):
        scrim = make_scrim()
        a, b, c = make_user(), make_user(), make_user()
        _add_registration(db_engine, scrim.id, a.id, RegistrationMode.SQUAD, slot=1)
        _add_registration(db_engine, scrim.id, b.id, RegistrationMode.SOLO, slot=99)
        _add_registration(
            db_engine, scrim.id, c.id, RegistrationMode.DUO, status=PaymentStatus.PENDING,
        )
        with Session(db_engine) as session:
            occ = capacity_service.mode_occupancy(session, scrim.id)
            taken = capacity_service.taken_slots(session, scrim.id)
        assert occ == ModeOccupancy(solo=1, duo=0, squad=1)
        assert taken == {1, 99}

    def test_lock_scrim_missing(self, db_engine):
        with Session(db_engine) as session:
            with pytest.raises(ScrimNotFound):
                capacity_service.lock_scrim(session, 404)

    def test_remaining_spots_missing(self, db_engine):
        with Session(db_engine) as session:
            with pytest.raises(ScrimNotFound):
                capacity_service.remaining_spots(session, 404)


class TestConsumeSpots:
    def test_decrements(self, db_engine, make_scrim):
        scrim = make_scrim(max_players=10)
        with Session(db_engine) as session:
            locked = capacity_service.lock_scrim(session, scrim.id)
            assert consume_spots(session, locked, 4) == 6
            session.commit()
        with Session(db_engine) as session:
            row = session.get(Scrim, scrim.id)
            assert row.spots_remaining == 6
            assert row.status == ScrimStatus.OPEN.value

    def test_flips_to_full_at_zero(self, db_engine, make_scrim):
        scrim = make_scrim(max_players=4)
        with Session(db_engine) as session:
            locked = capacity_service.lock_scrim(session, scrim.id)
            assert consume_spots(session, locked, 4) == 0
            session.commit()
        with Session(db_engine) as session:
            assert session.get(Scrim, scrim.id).status == ScrimStatus.FULL.value

    def test_refuses_to_go_negative(self, db_engine, make_scrim):
        scrim = make_scrim(max_players=10, spots_remaining=2)
        with Session(db_engine) as session:
            locked = capacity_service.lock_scrim(session, scrim.id)
            with pytest.raises(ScrimFull):
                consume_spots(session, locked, 4)

    def test_rejects_non_positive_count(self, db_engine, make_scrim):
        scrim = make_scrim()
        with Session(db_engine) as session:
            locked = capacity_service.lock_scrim(session, scrim.id)
            with pytest.raises(ValueError):
                consume_spots(session, locked, 0)


class TestSlotsStatus:
    def test_snapshot(self, db_engine, make_user, make_scrim):
        scrim = make_scrim(max_players=100, spots_remaining=95)
        a, b = make_user(), make_user()
        _add_registration(db_engine, scrim.id, a.id, RegistrationMode.SQUAD, slot=1)
        _add_registration(db_engine, scrim.id, b.id, RegistrationMode.SOLO, slot=99)
        assert capacity_service.slots_status(db_engine, scrim.id) == {
            "soloCount": 1,
            "duoCount": 0,
            "squadCount": 1,
            "totalSoloDuoSlots": 2,
            "spotsRemaining": 95,
        }

    def test_missing_scrim(self, db_engine):
        with pytest.raises(ScrimNotFound):
            capacity_service.slots_status(db_engine, 999)
