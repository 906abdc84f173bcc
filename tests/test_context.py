import json
from datetime import date, timedelta

import pytest
from sqlalchemy import select, update

from gym_registry import cli
from gym_registry.context import GymContext
from gym_registry.core.exceptions import PersistenceFailure
from gym_registry.models.enums import AdminLevel, Availability, Role
from gym_registry.models.user import User
from gym_registry.services.persistence_store import PersistenceStore


@pytest.fixture
def seeded_settings(test_settings):
    return test_settings.model_copy(update={"SEED_DEFAULT_ADMIN": True})


def test_first_run_seeds_default_admin(seeded_settings):
    with GymContext(settings=seeded_settings) as context:
        admin = context.registry.find_by_role("Admin001", Role.ADMIN)
        assert admin is not None
        assert admin.email == "admin@gym.com"
        assert admin.profile.admin_level == AdminLevel.SUPER
        assert context.registry.count(Role.ADMIN) == 1
        assert context.sessions.login("Admin001", "admin001", expected_role=Role.ADMIN) is not None


def test_seed_skipped_when_users_exist(test_settings, seeded_settings, new_member):
    with GymContext(settings=test_settings) as context:
        context.registry.register(new_member())

    with GymContext(settings=seeded_settings) as context:
        assert context.registry.count() == 1
        assert context.registry.find("Admin001") is None


def test_delete_user_releases_assignments(context, new_member, new_trainer):
    context.registry.register(new_member())
    context.registry.register(new_trainer(max_clients=1))
    context.ledger.assign("M1", "T1")

    result = context.delete_user("M1")

    assert result.success is True
    trainer = context.registry.find("T1").profile
    assert trainer.assigned_member_ids == []
    assert trainer.availability == Availability.AVAILABLE
    assert context.state.assignments == {}


def test_delete_trainer_releases_members(context, new_member, new_trainer):
    context.registry.register(new_member())
    context.registry.register(new_trainer())
    context.ledger.assign("M1", "T1")

    context.delete_user("T1")

    assert context.registry.find("M1").profile.assigned_trainer_id is None
    assert context.store.load_assignments() == {}


def test_delete_unknown_user(context):
    assert context.delete_user("nobody").success is False


def test_deleted_member_workout_plans_are_not_inherited(context, new_member, new_trainer):
    context.registry.register(new_member())
    context.registry.register(new_trainer())
    context.ledger.assign("M1", "T1")
    context.activity.create_workout_plan("T1", "M1", "Leg day")

    context.delete_user("M1")
    context.registry.register(new_member(email="new@b.co", name="Nina"))

    assert context.activity.workout_plans_for("M1") == []
    assert context.store.load_aux_lists() == {}


def _break_profile(settings, user_id):
    store = PersistenceStore.from_settings(settings)
    with store._session_factory.begin() as session:
        session.execute(update(User).where(User.id == user_id).values(profile={"role": "MEMBER"}))
    store.close()


def test_unreadable_row_leaves_storage_untouched(test_settings, seeded_settings, new_member, new_trainer):
    with GymContext(settings=test_settings) as context:
        context.registry.register(new_member(user_id="M1", email="m1@b.co"))
        context.registry.register(new_member(user_id="M2", email="m2@b.co"))
        context.registry.register(new_trainer(max_clients=2))
        context.ledger.assign("M1", "T1")
        context.ledger.assign("M2", "T1")
    _break_profile(test_settings, "M2")

    context = GymContext(settings=seeded_settings).init()

    assert context.load_ok is False
    assert context.state.users.keys() == {"M1", "T1"}
    assert context.state.assignments == {"M1": "T1"}
    assert context.registry.find("Admin001") is None
    # nothing was rewritten during startup
    with context.store._session_factory() as session:
        assert sorted(session.scalars(select(User.id))) == ["M1", "M2", "T1"]
    assert context.store.load_assignments() == {"M1": "T1", "M2": "T1"}
    assert len(list(context.store.data_dir.glob("backup_*"))) == 1
    context.store.close()


def test_deactivation_releases_assignments(context, new_member, new_trainer):
    context.registry.register(new_member())
    context.registry.register(new_trainer())
    context.ledger.assign("M1", "T1")

    context.set_user_status("T1", False)

    assert context.registry.find("T1").is_active is False
    assert context.registry.find("M1").profile.assigned_trainer_id is None
    assert context.state.assignments == {}

    context.set_user_status("T1", True)
    assert context.registry.find("T1").is_active is True


def test_clear_all_reseeds(seeded_settings, new_member):
    with GymContext(settings=seeded_settings) as context:
        context.registry.register(new_member())
        context.sessions.login("M1", "pass1234")

        context.clear_all()

        assert context.sessions.current_user is None
        assert [record.id for record in context.state.users.values()] == ["Admin001"]
        assert context.state.assignments == {}


def test_report(context, new_member, new_trainer, new_admin):
    today = date(2025, 6, 1)
    context.registry.register(new_member(user_id="M1", email="m1@b.co", membership_expiry=today + timedelta(days=30)))
    context.registry.register(
        new_member(user_id="M2", email="m2@b.co", membership_type="Basic", membership_expiry=today - timedelta(days=1))
    )
    context.registry.register(new_trainer(user_id="T1", email="t1@gym.co", max_clients=1))
    context.registry.register(new_trainer(user_id="T2", email="t2@gym.co", max_clients=2))
    context.registry.register(new_admin())
    context.ledger.assign("M1", "T1")
    context.activity.record_payment("M1", 100.0)
    context.activity.record_payment("M2", 20.0)
    context.activity.complete_session("T1", "M1", 1.0, on=today)

    report = context.report(today=today)

    assert report.total_users == 5
    assert (report.members, report.trainers, report.admins) == (2, 2, 1)
    assert report.active_members == 1
    assert report.expired_members == 1
    assert report.total_revenue == 120.0
    assert report.total_trainer_earnings == 40.0
    assert report.net_revenue == 80.0
    assert report.membership_breakdown == {"Basic": 1, "Gold": 1}
    assert (report.available_trainers, report.fully_booked_trainers) == (1, 1)
    assert [due.member_id for due in report.outstanding_dues] == ["M2"]


def test_teardown_raises_when_final_flush_fails(test_settings, monkeypatch):
    context = GymContext(settings=test_settings).init()
    monkeypatch.setattr(context.store, "flush", lambda state: False)

    with pytest.raises(PersistenceFailure):
        context.teardown()


def test_teardown_persists_state(test_settings, new_member):
    with GymContext(settings=test_settings) as context:
        context.registry.register(new_member())
        context.registry.find("M1").name = "Alicia"

    with GymContext(settings=test_settings) as context:
        assert context.registry.find("M1").name == "Alicia"


def test_backup_through_context(context, new_member):
    context.registry.register(new_member())

    assert context.backup() is True
    assert len(list(context.store.data_dir.glob("backup_*"))) == 1


def test_cli_report_and_backup(tmp_path, capsys):
    data_dir = tmp_path / "cli_data"

    assert cli.main(["--data-dir", str(data_dir), "report"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["total_users"] == 1
    assert report["admins"] == 1

    assert cli.main(["--data-dir", str(data_dir), "backup"]) == 0
    assert len(list(data_dir.glob("backup_*"))) == 1


def test_cli_search(tmp_path, capsys):
    data_dir = tmp_path / "cli_data"

    assert cli.main(["--data-dir", str(data_dir), "search", "admin"]) == 0
    results = json.loads(capsys.readouterr().out)
    assert [result["id"] for result in results] == ["Admin001"]

    assert cli.main(["--data-dir", str(data_dir), "seed"]) == 0
    assert json.loads(capsys.readouterr().out) == {"created": False}
