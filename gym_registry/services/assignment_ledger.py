import logging

from gym_registry.core.exceptions import (
    AtCapacityError,
    InactiveError,
    InvalidFieldError,
    NotFoundError,
)
from gym_registry.core.responses import OperationResult
from gym_registry.models.enums import Availability, Role
from gym_registry.schemas import UserRecord
from gym_registry.services.persistence_store import PersistenceStore
from gym_registry.services.user_registry import UserRegistry, sort_by_name
from gym_registry.state import RegistryState, StateService

logger = logging.getLogger(__name__)


class AssignmentLedger(StateService):
    """Keeps member and trainer caches consistent with the member -> trainer map.

    ``state.assignments`` is the ground truth. ``assigned_trainer_id`` on
    members and ``assigned_member_ids`` / ``availability`` on trainers are
    caches: ``reconcile`` rebuilds them after a load and every mutation here
    keeps both sides in step.
    """

    def __init__(self, state: RegistryState, store: PersistenceStore, registry: UserRegistry):
        super().__init__(state, store)
        self.registry = registry

    @property
    def assignments(self) -> dict[str, str]:
        return self.state.assignments

    # ---------------------------------------------------------------- rebuild

    def reconcile(self) -> list[tuple[str, str]]:
        """Rebuild every cache from the mapping and drop pairs that no longer resolve.

        Returns the dropped ``(member_id, trainer_id)`` pairs. Running it twice
        gives the same result as running it once.
        """
        for record in self.state.users.values():
            if record.role == Role.TRAINER:
                record.profile.assigned_member_ids.clear()
                if record.profile.availability == Availability.FULLY_BOOKED:
                    record.profile.availability = Availability.AVAILABLE
            elif record.role == Role.MEMBER:
                record.profile.assigned_trainer_id = None

        dropped: list[tuple[str, str]] = []
        for member_id, trainer_id in list(self.assignments.items()):
            member = self.registry.find_by_role(member_id, Role.MEMBER)
            trainer = self.registry.find_by_role(trainer_id, Role.TRAINER)
            if (
                member is not None
                and trainer is not None
                and member.is_active
                and trainer.is_active
                and trainer.profile.has_capacity
            ):
                self._link(member, trainer)
                trainer.profile.availability = (
                    Availability.AVAILABLE if trainer.profile.has_capacity else Availability.FULLY_BOOKED
                )
                continue

            del self.assignments[member_id]
            if member is not None:
                member.profile.assigned_trainer_id = None
            dropped.append((member_id, trainer_id))

        if dropped:
            logger.warning("Dropped %d stale assignment(s): %s", len(dropped), dropped)
        return dropped

    # -------------------------------------------------------------- mutations

    def assign(self, member_id: str | None, trainer_id: str | None) -> OperationResult[None]:
        member = self._require(member_id, Role.MEMBER)
        trainer = self._require(trainer_id, Role.TRAINER)
        if not member.is_active:
            raise InactiveError(f"Member {member.id!r} is inactive", field="member_id")
        if not trainer.is_active:
            raise InactiveError(f"Trainer {trainer.id!r} is inactive", field="trainer_id")
        if member.profile.assigned_trainer_id == trainer.id:
            return OperationResult(message="Trainer already assigned")
        if not trainer.profile.has_capacity:
            raise AtCapacityError(
                f"Trainer {trainer.id!r} already has {trainer.profile.current_clients} of "
                f"{trainer.profile.max_clients} clients",
                field="trainer_id",
            )

        if member.profile.assigned_trainer_id is not None:
            self._unlink(member)
        self._link(member, trainer)
        logger.info("Assigned member %s to trainer %s", member.id, trainer.id)
        persisted = self._flush(f"assigning {member.id} to {trainer.id}")
        return OperationResult(message="Trainer assigned successfully", persisted=persisted)

    def unassign(self, member_id: str | None) -> OperationResult[None]:
        member = self._require(member_id, Role.MEMBER)
        if member.profile.assigned_trainer_id is None:
            return OperationResult(message="Member has no trainer")

        trainer_id = member.profile.assigned_trainer_id
        self._unlink(member)
        logger.info("Unassigned member %s from trainer %s", member.id, trainer_id)
        persisted = self._flush(f"unassigning {member.id}")
        return OperationResult(message="Trainer unassigned successfully", persisted=persisted)

    def release_trainer(self, trainer_id: str | None) -> OperationResult[int]:
        """Unassign every member currently mapped to a trainer."""
        trainer = self._require(trainer_id, Role.TRAINER)
        member_ids = [mid for mid, tid in self.assignments.items() if tid == trainer.id]
        for mid in list(trainer.profile.assigned_member_ids):
            if mid not in member_ids:
                member_ids.append(mid)
        if not member_ids:
            return OperationResult(data=0, message="Trainer has no clients")

        for mid in member_ids:
            member = self.registry.find_by_role(mid, Role.MEMBER)
            if member is not None and member.profile.assigned_trainer_id == trainer.id:
                self._unlink(member)
            else:
                self.assignments.pop(mid, None)
                if mid in trainer.profile.assigned_member_ids:
                    trainer.profile.assigned_member_ids.remove(mid)
        trainer.profile.availability = Availability.AVAILABLE
        logger.info("Released %d client(s) of trainer %s", len(member_ids), trainer.id)
        persisted = self._flush(f"releasing clients of {trainer.id}")
        return OperationResult(data=len(member_ids), message="Clients released", persisted=persisted)

    def set_availability(
        self,
        trainer_id: str | None,
        availability: Availability | str,
        working_hours: str | None = None,
    ) -> OperationResult[None]:
        """Manual availability override, honored only while the trainer has room."""
        trainer = self._require(trainer_id, Role.TRAINER)
        try:
            wanted = Availability(availability)
        except ValueError:
            raise InvalidFieldError(f"Unknown availability {availability!r}", field="availability")
        if wanted == Availability.FULLY_BOOKED:
            raise InvalidFieldError("Fully Booked is derived from the client count", field="availability")
        if not trainer.profile.has_capacity:
            raise AtCapacityError(f"Trainer {trainer.id!r} is fully booked", field="trainer_id")

        trainer.profile.availability = wanted
        if working_hours is not None and working_hours.strip():
            trainer.profile.working_hours = working_hours.strip()
        persisted = self._flush(f"availability change of {trainer.id}")
        return OperationResult(message="Availability updated", persisted=persisted)

    # ---------------------------------------------------------------- queries

    def trainer_of(self, member_id: str | None) -> UserRecord | None:
        member = self.registry.find_by_role(member_id, Role.MEMBER)
        if member is None or member.profile.assigned_trainer_id is None:
            return None
        return self.registry.find_by_role(member.profile.assigned_trainer_id, Role.TRAINER)

    def members_of(self, trainer_id: str | None) -> list[UserRecord]:
        if trainer_id is None:
            return []
        wanted = trainer_id.strip()
        return sort_by_name(
            record
            for record in self.state.users.values()
            if record.role == Role.MEMBER
            and record.is_active
            and record.profile.assigned_trainer_id == wanted
        )

    def trainers_with_capacity(self) -> list[UserRecord]:
        return [
            trainer
            for trainer in self.registry.trainers()
            if trainer.is_active and trainer.profile.has_capacity
        ]

    # -------------------------------------------------------------- internals

    def _require(self, user_id: str | None, role: Role) -> UserRecord:
        record = self.registry.find_by_role(user_id, role)
        if record is None:
            label = role.value.lower()
            raise NotFoundError(f"{label.capitalize()} {user_id!r} not found", field=f"{label}_id")
        return record

    def _link(self, member: UserRecord, trainer: UserRecord) -> None:
        member.profile.assigned_trainer_id = trainer.id
        if member.id not in trainer.profile.assigned_member_ids:
            trainer.profile.assigned_member_ids.append(member.id)
        if not trainer.profile.has_capacity:
            trainer.profile.availability = Availability.FULLY_BOOKED
        self.assignments[member.id] = trainer.id

    def _unlink(self, member: UserRecord) -> None:
        trainer = self.registry.find_by_role(member.profile.assigned_trainer_id, Role.TRAINER)
        if trainer is not None and member.id in trainer.profile.assigned_member_ids:
            trainer.profile.assigned_member_ids.remove(member.id)
            if trainer.profile.has_capacity:
                trainer.profile.availability = Availability.AVAILABLE
        member.profile.assigned_trainer_id = None
        self.assignments.pop(member.id, None)
