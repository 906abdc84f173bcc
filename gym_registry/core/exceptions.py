from enum import Enum

from gym_registry.core.responses import OperationResult


class ErrorKind(str, Enum):
    DUPLICATE_ID = "DuplicateId"
    DUPLICATE_EMAIL = "DuplicateEmail"
    INVALID_FIELD = "InvalidField"
    NOT_FOUND = "NotFound"
    INACTIVE = "Inactive"
    AT_CAPACITY = "AtCapacity"
    PERSISTENCE_FAILURE = "PersistenceFailure"


class RegistryError(Exception):
    """Base class for every rejected registry operation."""

    kind: ErrorKind

    def __init__(self, detail: str, *, field: str | None = None):
        super().__init__(detail)
        self.detail = detail
        self.field = field


class DuplicateIdError(RegistryError):
    kind = ErrorKind.DUPLICATE_ID


class DuplicateEmailError(RegistryError):
    kind = ErrorKind.DUPLICATE_EMAIL


class InvalidFieldError(RegistryError):
    kind = ErrorKind.INVALID_FIELD


class NotFoundError(RegistryError):
    kind = ErrorKind.NOT_FOUND


class InactiveError(RegistryError):
    kind = ErrorKind.INACTIVE


class AtCapacityError(RegistryError):
    kind = ErrorKind.AT_CAPACITY


class PersistenceFailure(RegistryError):
    kind = ErrorKind.PERSISTENCE_FAILURE


def error_result(exc: RegistryError) -> OperationResult:
    return OperationResult(
        success=False,
        message=exc.detail,
        error=exc.kind.value,
        persisted=not isinstance(exc, PersistenceFailure),
    )
