import logging
from typing import Any, Iterable

from gym_registry.core.exceptions import (
    DuplicateEmailError,
    DuplicateIdError,
    InvalidFieldError,
    NotFoundError,
)
from gym_registry.core.responses import OperationResult
from gym_registry.models.enums import AdminLevel, Role
from gym_registry.schemas import Candidate, UserRecord
from gym_registry.services.validation import (
    normalize_email,
    require_text,
    validate_candidate,
    validate_email,
    validate_hourly_rate,
    validate_password,
)
from gym_registry.state import StateService

logger = logging.getLogger(__name__)

# Fields editable through update_profile, per role. Identity, role, email,
# password and the assignment caches are changed elsewhere or not at all.
_USER_FIELDS = {"name", "phone_number"}
_PROFILE_FIELDS: dict[Role, set[str]] = {
    Role.MEMBER: {
        "membership_type",
        "fitness_goal",
        "address",
        "emergency_contact",
        "weight",
        "height",
        "medical_conditions",
    },
    Role.TRAINER: {"specialization", "experience", "hourly_rate", "address", "working_hours"},
    Role.ADMIN: {"admin_level", "department", "salary", "address", "working_hours"},
}
_NON_NEGATIVE_FIELDS = {"weight", "height", "salary"}


def name_sort_key(record: UserRecord) -> tuple[bool, str]:
    # Records without a name sort last
    return (not record.name, (record.name or "").lower())


def sort_by_name(records: Iterable[UserRecord]) -> list[UserRecord]:
    return sorted(records, key=name_sort_key)


class UserRegistry(StateService):
    """Owns the id -> record map and the uniqueness rules over it."""

    @property
    def users(self) -> dict[str, UserRecord]:
        return self.state.users

    # ---------------------------------------------------------------- queries

    def exists(self, user_id: str | None) -> bool:
        return self.find(user_id) is not None

    def email_taken(self, email: str | None, *, exclude_id: str | None = None) -> bool:
        if email is None:
            return False
        wanted = normalize_email(email)
        return any(
            normalize_email(record.email) == wanted
            for record in self.users.values()
            if record.id != exclude_id
        )

    def find(self, user_id: str | None) -> UserRecord | None:
        if user_id is None:
            return None
        return self.users.get(user_id.strip())

    def find_by_role(self, user_id: str | None, role: Role) -> UserRecord | None:
        record = self.find(user_id)
        if record is None or record.role != role:
            return None
        return record

    def list_by_role(self, role: Role) -> list[UserRecord]:
        return sort_by_name(record for record in self.users.values() if record.role == role)

    def members(self) -> list[UserRecord]:
        return self.list_by_role(Role.MEMBER)

    def trainers(self) -> list[UserRecord]:
        return self.list_by_role(Role.TRAINER)

    def admins(self) -> list[UserRecord]:
        return self.list_by_role(Role.ADMIN)

    def count(self, role: Role | None = None) -> int:
        if role is None:
            return len(self.users)
        return sum(1 for record in self.users.values() if record.role == role)

    def authenticate(self, user_id: str | None, password: str | None) -> UserRecord | None:
        """Return the active record whose password matches, else None.

        Unknown ids, wrong passwords and inactive accounts all look the same
        to the caller.
        """
        if user_id is None or password is None or not user_id.strip():
            return None
        record = self.users.get(user_id.strip())
        if record is None:
            return None
        if record.password == password and record.is_active:
            return record
        return None

    def search(self, term: str | None) -> list[UserRecord]:
        if term is None or not term.strip():
            return []
        needle = term.strip().lower()
        return sort_by_name(record for record in self.users.values() if self._matches(record, needle))

    @staticmethod
    def _matches(record: UserRecord, needle: str) -> bool:
        fields = [record.id, record.name, record.email]
        profile = record.profile
        if record.role == Role.MEMBER:
            fields += [profile.membership_type, profile.fitness_goal]
        elif record.role == Role.TRAINER:
            fields.append(profile.specialization)
        elif record.role == Role.ADMIN:
            fields.append(profile.admin_level.value)
        return any(value and needle in value.lower() for value in fields)

    # -------------------------------------------------------------- mutations

    def register(self, candidate: Candidate) -> OperationResult[str]:
        user_id = require_text(candidate.id, "id")
        if user_id in self.users:
            raise DuplicateIdError(f"User id {user_id!r} already exists", field="id")
        validate_candidate(candidate)
        if self.email_taken(candidate.email):
            raise DuplicateEmailError(f"Email {candidate.email.strip()!r} is already registered", field="email")

        record = candidate.to_record()
        self.users[record.id] = record
        logger.info("Registered %s %s", record.role.value, record.id)
        persisted = self._flush(f"registering {record.id}")
        return OperationResult(data=record.id, message="User registered successfully", persisted=persisted)

    def set_active(self, user_id: str | None, active: bool) -> OperationResult[bool]:
        record = self.find(user_id)
        if record is None:
            return OperationResult(data=False, success=False, message="User not found")
        record.is_active = active
        persisted = self._flush(f"status change of {record.id}")
        return OperationResult(
            data=True,
            message="User activated" if active else "User deactivated",
            persisted=persisted,
        )

    def set_email(self, user_id: str | None, new_email: str | None) -> OperationResult[None]:
        record = self._require(user_id)
        email = validate_email(new_email)
        if self.email_taken(email, exclude_id=record.id):
            raise DuplicateEmailError(f"Email {email!r} is already registered", field="email")
        record.email = email
        persisted = self._flush(f"email change of {record.id}")
        return OperationResult(message="Email updated", persisted=persisted)

    def set_password(self, user_id: str | None, new_password: str | None) -> OperationResult[None]:
        record = self._require(user_id)
        record.password = validate_password(new_password)
        persisted = self._flush(f"password change of {record.id}")
        return OperationResult(message="Password updated", persisted=persisted)

    def update_profile(self, user_id: str | None, **changes: Any) -> OperationResult[None]:
        record = self._require(user_id)
        allowed = _USER_FIELDS | _PROFILE_FIELDS[record.role]
        unknown = sorted(set(changes) - allowed)
        if unknown:
            raise InvalidFieldError(
                f"Fields not editable for {record.role.value}: {', '.join(unknown)}",
                field=unknown[0],
            )

        # Validate everything before touching the record
        cleaned = dict(changes)
        if "name" in cleaned:
            cleaned["name"] = require_text(cleaned["name"], "name")
        if "membership_type" in cleaned:
            cleaned["membership_type"] = require_text(cleaned["membership_type"], "membership_type")
        if "specialization" in cleaned:
            cleaned["specialization"] = require_text(cleaned["specialization"], "specialization")
        if "hourly_rate" in cleaned:
            validate_hourly_rate(cleaned["hourly_rate"])
        for field in _NON_NEGATIVE_FIELDS & set(cleaned):
            if cleaned[field] < 0:
                raise InvalidFieldError(f"{field} cannot be negative", field=field)
        if "medical_conditions" in cleaned and not (cleaned["medical_conditions"] or "").strip():
            cleaned["medical_conditions"] = "None"
        if "admin_level" in cleaned:
            level = AdminLevel.parse(cleaned["admin_level"])
            if level is None:
                raise InvalidFieldError("Unrecognised admin level", field="admin_level")
            cleaned["admin_level"] = level

        profile = record.profile
        for field, value in cleaned.items():
            if field in _USER_FIELDS:
                setattr(record, field, value)
                continue
            if record.role == Role.ADMIN and field in {"admin_level", "department"}:
                old = getattr(profile, field)
                if old != value:
                    label = "Admin level" if field == "admin_level" else "Department"
                    old_text = old.value if isinstance(old, AdminLevel) else old
                    new_text = value.value if isinstance(value, AdminLevel) else value
                    profile.log_action(f"{label} changed from {old_text} to {new_text}")
            setattr(profile, field, value)

        persisted = self._flush(f"profile update of {record.id}")
        return OperationResult(message="Profile updated", persisted=persisted)

    def delete(self, user_id: str | None) -> OperationResult[bool]:
        """Remove a record. Assignments that reference it are left for the caller."""
        if user_id is None or not user_id.strip():
            return OperationResult(data=False, success=False, message="User id is required")
        record = self.users.pop(user_id.strip(), None)
        if record is None:
            return OperationResult(data=False, success=False, message="User not found")
        logger.info("Deleted %s %s", record.role.value, record.id)
        persisted = self._flush(f"deleting {record.id}")
        return OperationResult(data=True, message="User deleted", persisted=persisted)

    def clear(self) -> OperationResult[None]:
        self.users.clear()
        self.state.assignments.clear()
        self.state.aux_lists.clear()
        logger.warning("All users and assignments cleared")
        persisted = self._flush("clearing all users")
        return OperationResult(message="All data cleared", persisted=persisted)

    def _require(self, user_id: str | None) -> UserRecord:
        record = self.find(user_id)
        if record is None:
            raise NotFoundError(f"User {user_id!r} not found", field="id")
        return record
