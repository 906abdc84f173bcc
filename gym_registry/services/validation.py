from gym_registry.core.exceptions import InvalidFieldError
from gym_registry.models.enums import AdminLevel
from gym_registry.schemas import AdminCreate, Candidate, MemberCreate, TrainerCreate

MIN_PASSWORD_LENGTH = 4
MIN_EMAIL_LENGTH = 6
MIN_CLIENTS = 1
MAX_CLIENTS = 50


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def is_valid_email(email: str | None) -> bool:
    if email is None:
        return False
    email = email.strip()
    return (
        "@" in email
        and "." in email
        and len(email) >= MIN_EMAIL_LENGTH
        and not email.startswith("@")
        and not email.endswith("@")
    )


def normalize_email(email: str) -> str:
    return email.strip().lower()


def require_text(value: str | None, field: str) -> str:
    if is_blank(value):
        raise InvalidFieldError(f"{field} cannot be empty", field=field)
    return value.strip()


def validate_email(email: str | None) -> str:
    if not is_valid_email(email):
        raise InvalidFieldError(f"Invalid email address: {email!r}", field="email")
    return email.strip()


def validate_password(password: str | None) -> str:
    if password is None or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidFieldError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            field="password",
        )
    return password


def validate_hourly_rate(rate: float) -> float:
    if rate < 0:
        raise InvalidFieldError("Hourly rate cannot be negative", field="hourly_rate")
    return rate


def validate_max_clients(max_clients: int) -> int:
    if not MIN_CLIENTS <= max_clients <= MAX_CLIENTS:
        raise InvalidFieldError(
            f"Max clients must be between {MIN_CLIENTS} and {MAX_CLIENTS}",
            field="max_clients",
        )
    return max_clients


def validate_positive_amount(amount: float, field: str) -> float:
    if amount <= 0:
        raise InvalidFieldError(f"{field} must be positive", field=field)
    return amount


def validate_candidate(candidate: Candidate) -> None:
    """Field-level checks for a registration candidate.

    Uniqueness is not checked here; the registry owns the user map.
    """
    require_text(candidate.name, "name")
    require_text(candidate.email, "email")
    validate_email(candidate.email)
    validate_password(candidate.password)

    if isinstance(candidate, MemberCreate):
        require_text(candidate.membership_type, "membership_type")
    elif isinstance(candidate, TrainerCreate):
        require_text(candidate.specialization, "specialization")
        validate_hourly_rate(candidate.hourly_rate)
        validate_max_clients(candidate.max_clients)
    elif isinstance(candidate, AdminCreate):
        if AdminLevel.parse(candidate.admin_level) is None:
            raise InvalidFieldError(
                f"Admin level must be one of {', '.join(level.value for level in AdminLevel)}",
                field="admin_level",
            )
