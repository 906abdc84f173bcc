import calendar
import logging
from datetime import date

from gym_registry.core.exceptions import InvalidFieldError, NotFoundError
from gym_registry.core.responses import OperationResult
from gym_registry.models.enums import Role
from gym_registry.schemas import UserRecord
from gym_registry.services.persistence_store import PersistenceStore
from gym_registry.services.user_registry import UserRegistry
from gym_registry.services.validation import require_text, validate_positive_amount
from gym_registry.state import RegistryState, StateService

logger = logging.getLogger(__name__)

MAX_RENEWAL_MONTHS = 60


def add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class ActivityService(StateService):
    """Append-only activity logs and running totals on member, trainer and admin records."""

    def __init__(self, state: RegistryState, store: PersistenceStore, registry: UserRegistry):
        super().__init__(state, store)
        self.registry = registry

    # ---------------------------------------------------------------- members

    def record_payment(self, member_id: str, amount: float) -> OperationResult[float]:
        member = self._require(member_id, Role.MEMBER)
        validate_positive_amount(amount, "amount")
        member.profile.total_payments += amount
        persisted = self._flush(f"payment by {member.id}")
        return OperationResult(data=member.profile.total_payments, message="Payment recorded", persisted=persisted)

    def correct_payments(self, member_id: str, total: float) -> OperationResult[float]:
        """Overwrite a member's payment total. The only way it may go down."""
        member = self._require(member_id, Role.MEMBER)
        if total < 0:
            raise InvalidFieldError("Payment total cannot be negative", field="total")
        logger.warning(
            "Payment total of %s corrected from %.2f to %.2f",
            member.id,
            member.profile.total_payments,
            total,
        )
        member.profile.total_payments = total
        persisted = self._flush(f"payment correction of {member.id}")
        return OperationResult(data=total, message="Payment total corrected", persisted=persisted)

    def renew_membership(self, member_id: str, months: int, payment: float) -> OperationResult[date]:
        member = self._require(member_id, Role.MEMBER)
        if not 1 <= months <= MAX_RENEWAL_MONTHS:
            raise InvalidFieldError(f"Months must be between 1 and {MAX_RENEWAL_MONTHS}", field="months")
        if payment < 0:
            raise InvalidFieldError("Payment cannot be negative", field="payment")

        member.profile.membership_expiry = add_months(member.profile.membership_expiry, months)
        member.profile.total_payments += payment
        member.is_active = True
        persisted = self._flush(f"renewal of {member.id}")
        return OperationResult(
            data=member.profile.membership_expiry,
            message=f"Membership renewed until {member.profile.membership_expiry.isoformat()}",
            persisted=persisted,
        )

    def log_workout(self, member_id: str, workout: str, on: date | None = None) -> OperationResult[None]:
        member = self._require(member_id, Role.MEMBER)
        workout = require_text(workout, "workout")
        member.profile.workout_history.append(f"{(on or date.today()).isoformat()}: {workout}")
        persisted = self._flush(f"workout log of {member.id}")
        return OperationResult(message="Workout logged", persisted=persisted)

    def mark_attendance(self, member_id: str, on: date | None = None) -> OperationResult[bool]:
        member = self._require(member_id, Role.MEMBER)
        day = on or date.today()
        if day in member.profile.attendance_history:
            return OperationResult(data=False, message="Attendance already marked")
        member.profile.attendance_history.append(day)
        persisted = self._flush(f"attendance of {member.id}")
        return OperationResult(data=True, message="Attendance marked", persisted=persisted)

    def workout_plans_for(self, member_id: str | None) -> list[str]:
        if member_id is None:
            return []
        return list(self.state.aux_lists.get(member_id.strip(), []))

    # --------------------------------------------------------------- trainers

    def create_workout_plan(
        self,
        trainer_id: str,
        member_id: str,
        details: str,
        on: date | None = None,
    ) -> OperationResult[None]:
        trainer, member = self._require_client(trainer_id, member_id)
        details = require_text(details, "details")
        day = (on or date.today()).isoformat()

        trainer.profile.workout_plans_created.append(f"{day} - Member: {member.id} - {details}")
        member.profile.workout_history.append(f"{day}: {details}")
        self.state.aux_lists.setdefault(member.id, []).append(f"{day} ({trainer.id}): {details}")
        persisted = self._flush(f"workout plan by {trainer.id}")
        return OperationResult(message="Workout plan created", persisted=persisted)

    def complete_session(
        self,
        trainer_id: str,
        member_id: str,
        hours: float,
        on: date | None = None,
    ) -> OperationResult[float]:
        trainer, member = self._require_client(trainer_id, member_id)
        validate_positive_amount(hours, "hours")
        day = on or date.today()

        if day not in member.profile.attendance_history:
            member.profile.attendance_history.append(day)
        trainer.profile.sessions_completed.append(f"{day.isoformat()} - Member: {member.id} - Hours: {hours}")
        earnings = hours * trainer.profile.hourly_rate
        trainer.profile.total_earnings += earnings
        persisted = self._flush(f"session by {trainer.id}")
        return OperationResult(data=earnings, message="Session completed", persisted=persisted)

    def add_certification(self, trainer_id: str, certification: str) -> OperationResult[bool]:
        trainer = self._require(trainer_id, Role.TRAINER)
        certification = require_text(certification, "certification")
        if certification in trainer.profile.certifications:
            return OperationResult(data=False, message="Certification already listed")
        trainer.profile.certifications.append(certification)
        persisted = self._flush(f"certification of {trainer.id}")
        return OperationResult(data=True, message="Certification added", persisted=persisted)

    def remove_certification(self, trainer_id: str, certification: str) -> OperationResult[bool]:
        trainer = self._require(trainer_id, Role.TRAINER)
        if certification not in trainer.profile.certifications:
            return OperationResult(data=False, success=False, message="Certification not listed")
        trainer.profile.certifications.remove(certification)
        persisted = self._flush(f"certification of {trainer.id}")
        return OperationResult(data=True, message="Certification removed", persisted=persisted)

    # ----------------------------------------------------------------- admins

    def log_admin_action(self, admin_id: str, action: str) -> OperationResult[str]:
        admin = self._require(admin_id, Role.ADMIN)
        entry = admin.profile.log_action(require_text(action, "action"))
        persisted = self._flush(f"action log of {admin.id}")
        return OperationResult(data=entry, message="Action logged", persisted=persisted)

    # -------------------------------------------------------------- internals

    def _require(self, user_id: str, role: Role) -> UserRecord:
        record = self.registry.find_by_role(user_id, role)
        if record is None:
            raise NotFoundError(f"{role.value.capitalize()} {user_id!r} not found", field="id")
        return record

    def _require_client(self, trainer_id: str, member_id: str) -> tuple[UserRecord, UserRecord]:
        trainer = self._require(trainer_id, Role.TRAINER)
        member = self._require(member_id, Role.MEMBER)
        if member.profile.assigned_trainer_id != trainer.id:
            raise NotFoundError(
                f"Member {member.id!r} is not a client of trainer {trainer.id!r}",
                field="member_id",
            )
        return trainer, member
