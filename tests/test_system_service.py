"""
Tests for the active-system manager.

These run the service functions directly against an in-memory store and
check the one-active-system-per-user invariant across add / switch / remove.
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from hydrolog.features.systems.service import (
    OutcomeStatus,
    add_system,
    get_active,
    get_user_system,
    list_systems,
    remove_system,
    set_active,
    update_layout,
)
from hydrolog.models.plant import Plant, PlantLog
from hydrolog.models.system import System
from hydrolog.models.system_log import SystemLog
from hydrolog.models.user_system import UserSystem


def store_fault():
    return OperationalError("COMMIT", {}, Exception("database is locked"))


def active_count(db, user_id):
    return db.query(UserSystem).filter(UserSystem.user_id == user_id, UserSystem.is_active.is_(True)).count()


def add_plant_and_log(db, user_id, system_id):
    plant = Plant(name="Basil", position="1-1", user_id=user_id, system_id=system_id)
    db.add(plant)
    db.flush()
    db.add(PlantLog(plant_id=plant.id, status="growing"))
    db.add(SystemLog(type="ph_measurement", value=6.1, unit="pH", user_id=user_id, system_id=system_id))
    db.commit()
    return plant


@pytest.fixture
def user(make_user):
    return make_user()


class TestAddSystem:
    def test_first_system_becomes_active(self, db, user):
        added = add_system(db, user.id, "Tent 1", 2, [4, 4])

        assert added.ok
        assert added.value.is_active is True
        assert added.value.system.rows == 2
        assert added.value.system.positions_per_row == [4, 4]

        active = get_active(db, user.id)
        assert active.value.system_id == added.value.system_id

    def test_later_systems_start_inactive(self, db, user):
        first = add_system(db, user.id, "Tent 1", 2, [4, 4]).value
        second = add_system(db, user.id, "Tent 2", 1, [8])

        assert second.ok
        assert second.value.is_active is False
        assert get_active(db, user.id).value.system_id == first.system_id
        assert active_count(db, user.id) == 1

    def test_name_is_trimmed(self, db, user):
        added = add_system(db, user.id, "  Window rail  ", 1, [3])
        assert added.value.system.name == "Window rail"

    @pytest.mark.parametrize("name, rows, positions", [
        ("", 1, [4]),
        ("   ", 1, [4]),
        ("Tent", 0, []),
        ("Tent", 1, []),
        ("Tent", 2, [4]),
        ("Tent", 1, [-1]),
    ])
    def test_structural_validation(self, db, user, name, rows, positions):
        added = add_system(db, user.id, name, rows, positions)

        assert not added
        assert added.status is OutcomeStatus.INVALID
        assert db.query(System).count() == 0

    def test_store_fault_leaves_nothing_behind(self, db, user):
        with patch.object(db, "commit", side_effect=store_fault()):
            added = add_system(db, user.id, "Tent 1", 1, [4])

        assert added.status is OutcomeStatus.STORE_FAULT
        assert added.value is None
        assert db.query(System).count() == 0
        assert db.query(UserSystem).count() == 0


class TestListAndGet:
    def test_empty_user(self, db, user):
        assert list_systems(db, user.id).value == []
        active = get_active(db, user.id)
        assert active.status is OutcomeStatus.NOT_FOUND
        assert active.value is None

    def test_active_first_then_newest(self, db, user):
        first = add_system(db, user.id, "One", 1, [1]).value
        second = add_system(db, user.id, "Two", 1, [2]).value
        third = add_system(db, user.id, "Three", 1, [3]).value
        set_active(db, user.id, second.system_id)

        ordered = [link.system.name for link in list_systems(db, user.id).value]

        assert ordered == ["Two", "Three", "One"]
        assert third.system_id != first.system_id

    def test_list_fails_soft(self, db, user):
        add_system(db, user.id, "One", 1, [1])
        with patch.object(db, "query", side_effect=store_fault()):
            listed = list_systems(db, user.id)

        assert listed.status is OutcomeStatus.STORE_FAULT
        assert listed.value == []
        assert not listed

    def test_get_active_fails_soft(self, db, user):
        with patch.object(db, "query", side_effect=store_fault()):
            active = get_active(db, user.id)

        assert active.status is OutcomeStatus.STORE_FAULT
        assert active.value is None

    def test_users_do_not_see_each_other(self, db, make_user, user):
        other = make_user(email="neighbour@hydrolog.dev")
        add_system(db, user.id, "Mine", 1, [1])
        add_system(db, other.id, "Theirs", 1, [1])

        assert [l.system.name for l in list_systems(db, user.id).value] == ["Mine"]
        assert get_user_system(db, other.id, list_systems(db, user.id).value[0].system_id) is None


class TestSetActive:
    def test_switches_active_system(self, db, user):
        first = add_system(db, user.id, "Tent 1", 1, [4]).value
        second = add_system(db, user.id, "Tent 2", 1, [8]).value

        assert set_active(db, user.id, second.system_id).value is True

        assert get_active(db, user.id).value.system_id == second.system_id
        assert get_user_system(db, user.id, first.system_id).is_active is False
        assert active_count(db, user.id) == 1

    def test_repeated_call_is_idempotent(self, db, user):
        add_system(db, user.id, "Tent 1", 1, [4])
        second = add_system(db, user.id, "Tent 2", 1, [8]).value

        assert set_active(db, user.id, second.system_id)
        assert set_active(db, user.id, second.system_id)

        assert get_active(db, user.id).value.system_id == second.system_id
        assert active_count(db, user.id) == 1
        assert db.query(UserSystem).filter(UserSystem.user_id == user.id).count() == 2

    def test_unknown_pair_is_not_found(self, db, make_user, user):
        first = add_system(db, user.id, "Tent 1", 1, [4]).value
        other = make_user(email="neighbour@hydrolog.dev")
        foreign = add_system(db, other.id, "Theirs", 1, [4]).value

        result = set_active(db, user.id, foreign.system_id)

        assert result.status is OutcomeStatus.NOT_FOUND
        assert result.value is False
        assert get_active(db, user.id).value.system_id == first.system_id

    def test_store_fault_rolls_back(self, db, user):
        first = add_system(db, user.id, "Tent 1", 1, [4]).value
        second = add_system(db, user.id, "Tent 2", 1, [8]).value

        with patch.object(db, "commit", side_effect=store_fault()):
            result = set_active(db, user.id, second.system_id)

        assert result.status is OutcomeStatus.STORE_FAULT
        assert result.value is False
        assert get_active(db, user.id).value.system_id == first.system_id
        assert active_count(db, user.id) == 1


class TestRemoveSystem:
    def test_removing_active_promotes_earliest_remaining(self, db, user):
        a, b, c = (add_system(db, user.id, name, 1, [1]).value.system_id for name in "ABC")

        assert remove_system(db, user.id, a)

        remaining = list_systems(db, user.id).value
        assert [link.system_id for link in remaining] == [b, c]
        assert remaining[0].is_active is True
        assert active_count(db, user.id) == 1

    def test_removing_inactive_keeps_active(self, db, user):
        a = add_system(db, user.id, "A", 1, [1]).value
        b = add_system(db, user.id, "B", 1, [1]).value

        assert remove_system(db, user.id, b.system_id)

        assert get_active(db, user.id).value.system_id == a.system_id

    def test_removing_last_system_leaves_no_active(self, db, user):
        a = add_system(db, user.id, "A", 1, [1]).value

        assert remove_system(db, user.id, a.system_id)

        assert list_systems(db, user.id).value == []
        assert get_active(db, user.id).status is OutcomeStatus.NOT_FOUND

    def test_unreferenced_system_is_cascade_deleted(self, db, user):
        a = add_system(db, user.id, "A", 1, [1]).value
        system_id = a.system_id
        add_plant_and_log(db, user.id, system_id)

        assert remove_system(db, user.id, system_id)

        db.expire_all()
        assert db.get(System, system_id) is None
        assert db.query(Plant).filter(Plant.system_id == system_id).count() == 0
        assert db.query(PlantLog).count() == 0
        assert db.query(SystemLog).filter(SystemLog.system_id == system_id).count() == 0

    def test_shared_system_survives(self, db, make_user, user):
        other = make_user(email="neighbour@hydrolog.dev")
        shared = add_system(db, user.id, "Shared", 1, [1]).value
        system_id = shared.system_id
        db.add(UserSystem(user_id=other.id, system_id=system_id, is_active=True))
        db.commit()
        add_plant_and_log(db, user.id, system_id)

        assert remove_system(db, user.id, system_id)

        db.expire_all()
        assert db.get(System, system_id) is not None
        assert db.query(Plant).filter(Plant.system_id == system_id).count() == 1
        assert db.query(SystemLog).filter(SystemLog.system_id == system_id).count() == 1
        assert get_active(db, other.id).value.system_id == system_id

    def test_missing_link_is_not_found(self, db, user):
        result = remove_system(db, user.id, 12345)

        assert result.status is OutcomeStatus.NOT_FOUND
        assert result.value is False

    def test_store_fault_leaves_no_partial_cascade(self, db, user):
        a = add_system(db, user.id, "A", 1, [1]).value
        b = add_system(db, user.id, "B", 1, [1]).value
        system_id = a.system_id
        add_plant_and_log(db, user.id, system_id)

        with patch.object(db, "commit", side_effect=store_fault()):
            result = remove_system(db, user.id, system_id)

        assert result.status is OutcomeStatus.STORE_FAULT
        db.expire_all()
        assert db.get(System, system_id) is not None
        assert db.query(Plant).filter(Plant.system_id == system_id).count() == 1
        assert get_active(db, user.id).value.system_id == system_id
        assert get_user_system(db, user.id, b.system_id).is_active is False


class TestInvariant:
    def test_store_rejects_second_active_link(self, db, user):
        add_system(db, user.id, "A", 1, [1])
        system = System(name="Rogue", rows=1, positions_per_row=[1])
        db.add(system)
        db.flush()
        db.add(UserSystem(user_id=user.id, system_id=system.id, is_active=True))

        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_same_pair_cannot_be_linked_twice(self, db, user):
        a = add_system(db, user.id, "A", 1, [1]).value
        db.add(UserSystem(user_id=user.id, system_id=a.system_id, is_active=False))

        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_tent_scenario(self, db, user):
        tent1 = add_system(db, user.id, "Tent 1", 2, [4, 4])
        assert tent1.value.is_active is True
        assert tent1.value.system.rows == 2
        assert tent1.value.system.positions_per_row == [4, 4]

        tent2 = add_system(db, user.id, "Tent 2", 1, [8])
        assert tent2.value.is_active is False
        assert get_active(db, user.id).value.system.name == "Tent 1"

        tent2_id = tent2.value.system_id
        assert set_active(db, user.id, tent2_id)
        assert get_active(db, user.id).value.system.name == "Tent 2"

        assert remove_system(db, user.id, tent2_id)
        assert get_active(db, user.id).value.system.name == "Tent 1"
        assert active_count(db, user.id) == 1


class TestUpdateLayout:
    def test_replaces_layout_and_clears_plants(self, db, user):
        a = add_system(db, user.id, "A", 2, [4, 4]).value
        add_plant_and_log(db, user.id, a.system_id)

        updated = update_layout(db, user.id, [6, 6, 6])

        assert updated.ok
        assert updated.value.rows == 3
        assert updated.value.positions_per_row == [6, 6, 6]
        assert db.query(Plant).count() == 0
        assert db.query(PlantLog).count() == 0
        # measurements are history, they stay
        assert db.query(SystemLog).count() == 1

    def test_without_active_system(self, db, user):
        assert update_layout(db, user.id, [4]).status is OutcomeStatus.NOT_FOUND

    def test_rejects_bad_positions(self, db, user):
        add_system(db, user.id, "A", 1, [4])
        assert update_layout(db, user.id, []).status is OutcomeStatus.INVALID
        assert update_layout(db, user.id, [3, -2]).status is OutcomeStatus.INVALID
