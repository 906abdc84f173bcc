from datetime import date, datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from gym_registry.models.enums import AdminLevel, Availability, Role


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemberProfile(BaseModel):
    role: Literal["MEMBER"] = "MEMBER"
    membership_type: str
    join_date: date
    membership_expiry: date
    fitness_goal: str = ""
    address: str = ""
    emergency_contact: str = ""
    weight: float = 0.0
    height: float = 0.0
    medical_conditions: str = "None"
    total_payments: float = 0.0
    workout_history: list[str] = Field(default_factory=list)
    attendance_history: list[date] = Field(default_factory=list)

    # Rebuilt from the assignment mapping on load
    assigned_trainer_id: Optional[str] = Field(default=None, exclude=True)

    def is_membership_expired(self, today: date | None = None) -> bool:
        return (today or date.today()) > self.membership_expiry

    def describe(self) -> str:
        trainer = self.assigned_trainer_id or "Not Assigned"
        return (
            f"{self.membership_type} membership until {self.membership_expiry.isoformat()}, "
            f"goal: {self.fitness_goal or 'n/a'}, trainer: {trainer}"
        )


class TrainerProfile(BaseModel):
    role: Literal["TRAINER"] = "TRAINER"
    specialization: str
    experience: str = ""
    hourly_rate: float
    max_clients: int
    availability: Availability = Availability.AVAILABLE
    working_hours: str = "9:00 AM - 6:00 PM"
    address: str = ""
    total_earnings: float = 0.0
    certifications: list[str] = Field(default_factory=list)
    workout_plans_created: list[str] = Field(default_factory=list)
    sessions_completed: list[str] = Field(default_factory=list)

    # Rebuilt from the assignment mapping on load
    assigned_member_ids: list[str] = Field(default_factory=list, exclude=True)

    @property
    def current_clients(self) -> int:
        return len(self.assigned_member_ids)

    @property
    def has_capacity(self) -> bool:
        return self.current_clients < self.max_clients

    def describe(self) -> str:
        return (
            f"{self.specialization} trainer at ${self.hourly_rate:.2f}/h, "
            f"{self.current_clients}/{self.max_clients} clients ({self.availability.value})"
        )


# Permissions withheld from managers; basic admins get only the listed ones
_MANAGER_DENIED = {"DELETE_ADMIN", "SYSTEM_CONFIG", "BACKUP_RESTORE"}
_BASIC_ALLOWED = {"VIEW_REPORTS", "MANAGE_MEMBERS", "VIEW_PAYMENTS"}

ADMIN_ACTIONS = {
    "MANAGE_MEMBERS": "Manage Members",
    "MANAGE_TRAINERS": "Manage Trainers",
    "VIEW_REPORTS": "View Reports",
    "MANAGE_PAYMENTS": "Manage Payments",
    "MANAGE_WORKOUTS": "Manage Workouts",
    "SYSTEM_CONFIG": "System Configuration",
    "BACKUP_RESTORE": "Backup & Restore",
    "DELETE_ADMIN": "Admin Management",
}


class AdminProfile(BaseModel):
    role: Literal["ADMIN"] = "ADMIN"
    admin_level: AdminLevel
    department: str = "Management"
    salary: float = 0.0
    working_hours: str = "9:00 AM - 5:00 PM"
    address: str = ""
    action_log: list[str] = Field(default_factory=list)

    @property
    def actions_performed(self) -> int:
        return len(self.action_log)

    def log_action(self, action: str, at: datetime | None = None) -> str:
        stamp = (at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
        entry = f"{stamp} - {action}"
        self.action_log.append(entry)
        return entry

    def has_permission(self, action: str) -> bool:
        if self.admin_level == AdminLevel.SUPER:
            return True
        if self.admin_level == AdminLevel.MANAGER:
            return action not in _MANAGER_DENIED
        return action in _BASIC_ALLOWED

    def permission_level(self) -> str:
        return {
            AdminLevel.SUPER: "Full System Access",
            AdminLevel.MANAGER: "Limited Administrative Access",
            AdminLevel.BASIC: "Basic Management Access",
        }[self.admin_level]

    def available_actions(self) -> list[str]:
        return [label for action, label in ADMIN_ACTIONS.items() if self.has_permission(action)]

    def describe(self) -> str:
        return f"{self.admin_level.value} admin, {self.department}, {self.actions_performed} actions"


UserProfile = Annotated[
    Union[MemberProfile, TrainerProfile, AdminProfile],
    Field(discriminator="role"),
]


class UserRecord(BaseModel):
    id: str
    name: str
    email: str
    password: str
    phone_number: str = ""
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    last_login_at: Optional[datetime] = None
    profile: UserProfile

    @property
    def role(self) -> Role:
        return Role(self.profile.role)

    def describe(self) -> str:
        status = "active" if self.is_active else "inactive"
        return f"{self.name} ({self.id}, {self.role.value}, {status}): {self.profile.describe()}"


class UserCreate(BaseModel):
    id: str
    name: str
    email: str
    password: str
    phone_number: str = ""

    def _base_fields(self) -> dict:
        return {
            "id": self.id.strip(),
            "name": self.name.strip(),
            "email": self.email.strip(),
            "password": self.password,
            "phone_number": self.phone_number.strip(),
        }


class MemberCreate(UserCreate):
    role: Literal["MEMBER"] = "MEMBER"
    membership_type: str
    join_date: date = Field(default_factory=date.today)
    membership_expiry: date
    fitness_goal: str = ""

    def to_record(self) -> UserRecord:
        return UserRecord(
            **self._base_fields(),
            profile=MemberProfile(
                membership_type=self.membership_type.strip(),
                join_date=self.join_date,
                membership_expiry=self.membership_expiry,
                fitness_goal=self.fitness_goal.strip(),
            ),
        )


class TrainerCreate(UserCreate):
    role: Literal["TRAINER"] = "TRAINER"
    specialization: str
    experience: str = ""
    hourly_rate: float
    max_clients: int

    def to_record(self) -> UserRecord:
        return UserRecord(
            **self._base_fields(),
            profile=TrainerProfile(
                specialization=self.specialization.strip(),
                experience=self.experience.strip(),
                hourly_rate=self.hourly_rate,
                max_clients=self.max_clients,
            ),
        )


class AdminCreate(UserCreate):
    role: Literal["ADMIN"] = "ADMIN"
    admin_level: str

    def to_record(self) -> UserRecord:
        level = AdminLevel.parse(self.admin_level)
        if level is None:
            raise ValueError(f"Unrecognised admin level: {self.admin_level!r}")
        return UserRecord(**self._base_fields(), profile=AdminProfile(admin_level=level))


Candidate = Union[MemberCreate, TrainerCreate, AdminCreate]
