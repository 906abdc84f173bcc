from enum import Enum


class Role(str, Enum):
    MEMBER = "MEMBER"
    TRAINER = "TRAINER"
    ADMIN = "ADMIN"


class Availability(str, Enum):
    AVAILABLE = "Available"
    FULLY_BOOKED = "Fully Booked"
    BUSY = "Busy"
    ON_LEAVE = "On Leave"


class AdminLevel(str, Enum):
    BASIC = "Basic"
    MANAGER = "Manager"
    SUPER = "Super"

    @classmethod
    def parse(cls, value: "AdminLevel | str | None") -> "AdminLevel | None":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        for level in cls:
            if level.value.lower() == normalized:
                return level
        return None
