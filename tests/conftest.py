from datetime import date, timedelta
from typing import Callable

import pytest

from gym_registry.config import Settings
from gym_registry.context import GymContext
from gym_registry.schemas import AdminCreate, MemberCreate, TrainerCreate
from gym_registry.services.persistence_store import PersistenceStore


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATA_DIR=tmp_path / "gym_data",
        SEED_DEFAULT_ADMIN=False,
    )


@pytest.fixture
def store(test_settings):
    store = PersistenceStore.from_settings(test_settings)
    yield store
    store.close()


@pytest.fixture
def context(store, test_settings) -> GymContext:
    return GymContext(store=store, settings=test_settings).init()


@pytest.fixture
def reopen(test_settings) -> Callable[[], GymContext]:
    """Build a fresh context over the same data directory, as a restart would."""
    opened: list[GymContext] = []

    def _reopen() -> GymContext:
        ctx = GymContext(settings=test_settings).init()
        opened.append(ctx)
        return ctx

    yield _reopen
    for ctx in opened:
        ctx.store.close()


@pytest.fixture
def new_member() -> Callable[..., MemberCreate]:
    def _build(user_id: str = "M1", email: str = "a@b.co", name: str = "Alice", **overrides) -> MemberCreate:
        data = {
            "id": user_id,
            "name": name,
            "email": email,
            "password": "pass1234",
            "membership_type": "Gold",
            "join_date": date.today(),
            "membership_expiry": date.today() + timedelta(days=365),
            "fitness_goal": "Strength",
        }
        data.update(overrides)
        return MemberCreate(**data)

    return _build


@pytest.fixture
def new_trainer() -> Callable[..., TrainerCreate]:
    def _build(
        user_id: str = "T1",
        email: str = "t1@gym.co",
        name: str = "Tom",
        max_clients: int = 1,
        **overrides,
    ) -> TrainerCreate:
        data = {
            "id": user_id,
            "name": name,
            "email": email,
            "password": "coach123",
            "specialization": "Yoga",
            "experience": "5 years",
            "hourly_rate": 40.0,
            "max_clients": max_clients,
        }
        data.update(overrides)
        return TrainerCreate(**data)

    return _build


@pytest.fixture
def new_admin() -> Callable[..., AdminCreate]:
    def _build(user_id: str = "A1", email: str = "boss@gym.co", name: str = "Ada", **overrides) -> AdminCreate:
        data = {
            "id": user_id,
            "name": name,
            "email": email,
            "password": "admin123",
            "admin_level": "Manager",
        }
        data.update(overrides)
        return AdminCreate(**data)

    return _build
