from gym_registry.models.enums import Availability, Role


def _snapshot(context):
    trainers = {
        record.id: (list(record.profile.assigned_member_ids), record.profile.current_clients, record.profile.availability)
        for record in context.state.users.values()
        if record.role == Role.TRAINER
    }
    members = {
        record.id: record.profile.assigned_trainer_id
        for record in context.state.users.values()
        if record.role == Role.MEMBER
    }
    return trainers, members, dict(context.state.assignments)


def test_reload_restores_relationships(context, reopen, new_member, new_trainer):
    context.registry.register(new_member(user_id="M1", email="m1@b.co"))
    context.registry.register(new_member(user_id="M2", email="m2@b.co"))
    context.registry.register(new_member(user_id="M3", email="m3@b.co"))
    context.registry.register(new_trainer(user_id="T1", email="t1@gym.co", max_clients=2))
    context.registry.register(new_trainer(user_id="T2", email="t2@gym.co", max_clients=3))
    context.ledger.assign("M1", "T1")
    context.ledger.assign("M2", "T1")
    context.ledger.assign("M3", "T2")
    before = _snapshot(context)

    reloaded = reopen()

    assert _snapshot(reloaded) == before
    assert reloaded.registry.find("T1").profile.availability == Availability.FULLY_BOOKED
    assert reloaded.registry.find("T2").profile.availability == Availability.AVAILABLE


def test_reconcile_is_idempotent(context, new_member, new_trainer):
    context.registry.register(new_member(user_id="M1", email="m1@b.co"))
    context.registry.register(new_member(user_id="M2", email="m2@b.co"))
    context.registry.register(new_trainer(max_clients=2))
    context.ledger.assign("M1", "T1")
    context.ledger.assign("M2", "T1")

    context.ledger.reconcile()
    first = _snapshot(context)
    context.ledger.reconcile()

    assert _snapshot(context) == first
    assert context.registry.find("T1").profile.assigned_member_ids == ["M1", "M2"]


def test_deleted_trainer_pair_dropped_on_reload(context, reopen, new_member, new_trainer):
    context.registry.register(new_member(user_id="M1", email="a@b.co"))
    context.registry.register(new_trainer(user_id="T1"))
    context.ledger.assign("M1", "T1")
    assert context.registry.find("M1").profile.assigned_trainer_id == "T1"

    context.registry.delete("T1")
    reloaded = reopen()

    assert reloaded.registry.find("M1").profile.assigned_trainer_id is None
    assert reloaded.state.assignments == {}
    # the healed mapping is written back
    assert reloaded.store.load_assignments() == {}


def test_reconcile_drops_pairs_with_inactive_parties(context, new_member, new_trainer):
    context.registry.register(new_member(user_id="M1", email="m1@b.co"))
    context.registry.register(new_member(user_id="M2", email="m2@b.co"))
    context.registry.register(new_trainer(max_clients=2))
    context.ledger.assign("M1", "T1")
    context.ledger.assign("M2", "T1")

    context.registry.set_active("M2", False)
    dropped = context.ledger.reconcile()

    assert dropped == [("M2", "T1")]
    assert context.state.assignments == {"M1": "T1"}
    assert context.registry.find("M2").profile.assigned_trainer_id is None
    trainer = context.registry.find("T1").profile
    assert trainer.assigned_member_ids == ["M1"]
    assert trainer.availability == Availability.AVAILABLE


def test_reconcile_drops_pairs_beyond_capacity_in_mapping_order(context, new_member, new_trainer):
    context.registry.register(new_member(user_id="M1", email="m1@b.co"))
    context.registry.register(new_member(user_id="M2", email="m2@b.co"))
    context.registry.register(new_trainer(max_clients=1))
    context.state.assignments.update({"M2": "T1", "M1": "T1"})

    dropped = context.ledger.reconcile()

    assert dropped == [("M1", "T1")]
    assert context.registry.find("T1").profile.assigned_member_ids == ["M2"]
    assert context.registry.find("T1").profile.availability == Availability.FULLY_BOOKED


def test_reconcile_demotes_stale_fully_booked(context, new_trainer):
    context.registry.register(new_trainer(max_clients=1))
    trainer = context.registry.find("T1").profile
    trainer.availability = Availability.FULLY_BOOKED

    context.ledger.reconcile()

    assert trainer.availability == Availability.AVAILABLE
    assert trainer.current_clients == 0


def test_reconcile_keeps_manual_override_for_trainer_without_clients(context, reopen, new_trainer):
    context.registry.register(new_trainer(max_clients=2))
    context.ledger.set_availability("T1", Availability.ON_LEAVE)

    reloaded = reopen()

    assert reloaded.registry.find("T1").profile.availability == Availability.ON_LEAVE


def test_reload_ignores_unknown_ids_in_mapping(context, reopen, new_member):
    context.registry.register(new_member())
    context.state.assignments["ghost"] = "T404"
    context.state.assignments["M1"] = "T404"
    context.flush()

    reloaded = reopen()

    assert reloaded.state.assignments == {}
    assert reloaded.registry.find("M1").profile.assigned_trainer_id is None
