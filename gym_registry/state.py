from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gym_registry.schemas import UserRecord

if TYPE_CHECKING:
    from gym_registry.services.persistence_store import PersistenceStore

logger = logging.getLogger(__name__)


@dataclass
class RegistryState:
    users: dict[str, UserRecord] = field(default_factory=dict)
    # member id -> trainer id, the only authoritative assignment data
    assignments: dict[str, str] = field(default_factory=dict)
    aux_lists: dict[str, list[str]] = field(default_factory=dict)


class StateService:
    """Shared plumbing for services that mutate the registry state and flush it."""

    def __init__(self, state: RegistryState, store: PersistenceStore):
        self.state = state
        self.store = store

    def _flush(self, reason: str) -> bool:
        ok = self.store.flush(self.state)
        if not ok:
            logger.warning("Flush after %s failed; in-memory state kept", reason)
        return ok
