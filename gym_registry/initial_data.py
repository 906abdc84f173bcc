import logging

from gym_registry.config import Settings
from gym_registry.core.exceptions import RegistryError
from gym_registry.schemas import AdminCreate
from gym_registry.services.user_registry import UserRegistry

logger = logging.getLogger(__name__)


def default_admin(settings: Settings) -> AdminCreate:
    return AdminCreate(
        id=settings.DEFAULT_ADMIN_ID,
        name=settings.DEFAULT_ADMIN_NAME,
        email=settings.DEFAULT_ADMIN_EMAIL,
        password=settings.DEFAULT_ADMIN_PASSWORD,
        admin_level=settings.DEFAULT_ADMIN_LEVEL,
    )


def seed_default_admin(registry: UserRegistry, settings: Settings) -> bool:
    """Create the first-run administrator when the registry holds no users at all."""
    if registry.count() > 0:
        logger.info("Registry already has %d user(s); skipping default admin", registry.count())
        return False
    try:
        registry.register(default_admin(settings))
    except RegistryError as exc:
        logger.error("Could not seed default admin %s: %s", settings.DEFAULT_ADMIN_ID, exc.detail)
        return False
    logger.info("Created default admin: %s", settings.DEFAULT_ADMIN_ID)
    return True
