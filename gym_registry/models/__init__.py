from gym_registry.models.assignment import Assignment, AuxListEntry
from gym_registry.models.enums import AdminLevel, Availability, Role
from gym_registry.models.user import User


__all__ = [
    "User",
    "Assignment",
    "AuxListEntry",
    "Role",
    "Availability",
    "AdminLevel",
]
