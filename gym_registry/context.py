from __future__ import annotations

import logging
from datetime import date

from gym_registry.config import Settings, settings as default_settings
from gym_registry.core.exceptions import PersistenceFailure
from gym_registry.core.responses import OperationResult
from gym_registry.initial_data import seed_default_admin
from gym_registry.models.enums import Role
from gym_registry.services.activity_service import ActivityService
from gym_registry.services.analytics import AnalyticsService, RegistryReport
from gym_registry.services.assignment_ledger import AssignmentLedger
from gym_registry.services.persistence_store import PersistenceStore
from gym_registry.services.session_manager import SessionManager
from gym_registry.services.user_registry import UserRegistry
from gym_registry.state import RegistryState

logger = logging.getLogger(__name__)


class GymContext:
    """The one registry instance, constructed explicitly and passed around.

    ``init`` loads and reconciles persisted state; ``teardown`` performs the
    final flush. Operations that touch both a user record and the assignment
    map live here so the registry itself never cascades.
    """

    def __init__(self, store: PersistenceStore | None = None, settings: Settings | None = None):
        self.settings = settings or default_settings
        self.store = store or PersistenceStore.from_settings(self.settings)
        self.state = RegistryState()
        self.registry = UserRegistry(self.state, self.store)
        self.ledger = AssignmentLedger(self.state, self.store, self.registry)
        self.sessions = SessionManager(self.state, self.store, self.registry)
        self.activity = ActivityService(self.state, self.store, self.registry)
        self.load_ok = True

    def __enter__(self) -> GymContext:
        return self.init()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()

    def init(self) -> GymContext:
        self.load_ok = self.store.load(self.state)
        dropped = self.ledger.reconcile()

        if not self.load_ok:
            # Storage holds rows that are not in memory; leave the file alone
            # and keep a copy before any later mutation rewrites it
            logger.error(
                "Incomplete load from %s (%s); skipping repair flush and seeding",
                self.store.database_path,
                ", ".join(self.store.load_problems),
            )
            self.store.backup()
        else:
            if dropped:
                self.flush()
            if self.settings.SEED_DEFAULT_ADMIN:
                seed_default_admin(self.registry, self.settings)
        logger.info(
            "Registry ready: %d user(s), %d assignment(s)",
            self.registry.count(),
            len(self.state.assignments),
        )
        return self

    def teardown(self) -> None:
        self.sessions.logout()
        try:
            if not self.flush():
                raise PersistenceFailure(f"Final flush to {self.store.database_path} failed")
        finally:
            self.store.close()

    def flush(self) -> bool:
        ok = self.store.flush(self.state)
        if not ok:
            logger.error("Flush to %s failed; in-memory state is ahead of storage", self.store.database_path)
        return ok

    # ------------------------------------------------------- orchestration

    def delete_user(self, user_id: str | None) -> OperationResult[bool]:
        record = self.registry.find(user_id)
        if record is not None:
            self._release_assignments(record.id, record.role)
            if record.role == Role.MEMBER:
                self.state.aux_lists.pop(record.id, None)
        return self.registry.delete(user_id)

    def set_user_status(self, user_id: str | None, active: bool) -> OperationResult[bool]:
        record = self.registry.find(user_id)
        if record is not None and not active:
            self._release_assignments(record.id, record.role)
        return self.registry.set_active(user_id, active)

    def clear_all(self) -> OperationResult[None]:
        self.sessions.logout()
        result = self.registry.clear()
        if self.settings.SEED_DEFAULT_ADMIN:
            seed_default_admin(self.registry, self.settings)
        return result

    def backup(self) -> bool:
        return self.store.backup()

    def report(self, today: date | None = None) -> RegistryReport:
        return AnalyticsService.build_report(self.registry, today=today)

    def _release_assignments(self, user_id: str, role: Role) -> None:
        if role == Role.MEMBER:
            self.ledger.unassign(user_id)
        elif role == Role.TRAINER:
            self.ledger.release_trainer(user_id)
