import logging
from datetime import datetime, timezone

from gym_registry.models.enums import Role
from gym_registry.schemas import UserRecord
from gym_registry.services.persistence_store import PersistenceStore
from gym_registry.services.user_registry import UserRegistry
from gym_registry.state import RegistryState, StateService

logger = logging.getLogger(__name__)


class SessionManager(StateService):
    """Holds at most one authenticated principal."""

    def __init__(self, state: RegistryState, store: PersistenceStore, registry: UserRegistry):
        super().__init__(state, store)
        self.registry = registry
        self._current: UserRecord | None = None

    @property
    def current_user(self) -> UserRecord | None:
        return self._current

    @property
    def is_authenticated(self) -> bool:
        return self._current is not None

    def login(
        self,
        user_id: str | None,
        password: str | None,
        expected_role: Role | None = None,
    ) -> UserRecord | None:
        if self._current is not None:
            self.logout()

        record = self.registry.authenticate(user_id, password)
        if record is None:
            logger.info("Login failed for %r", user_id)
            return None

        if expected_role is not None and record.role != expected_role:
            logger.info("Login of %s rejected at %s portal", record.id, expected_role.value)
            return None

        self._current = record
        record.last_login_at = datetime.now(timezone.utc)
        self._flush(f"login of {record.id}")
        return record

    def logout(self) -> bool:
        if self._current is None:
            return True
        persisted = self._flush(f"logout of {self._current.id}")
        self._current = None
        return persisted
