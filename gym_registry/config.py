from pathlib import Path
from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "Gym Registry"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Storage
    DATA_DIR: Path = Path("gym_data")
    DATABASE_FILENAME: str = "registry.db"
    BACKUP_PREFIX: str = "backup_"
    SQL_ECHO: bool = False

    # First-run seeding
    SEED_DEFAULT_ADMIN: bool = True
    DEFAULT_ADMIN_ID: str = "Admin001"
    DEFAULT_ADMIN_NAME: str = "System Administrator"
    DEFAULT_ADMIN_EMAIL: str = "admin@gym.com"
    DEFAULT_ADMIN_PASSWORD: str = "admin001"
    DEFAULT_ADMIN_LEVEL: str = "Super"

    @computed_field
    @property
    def DATABASE_PATH(self) -> Path:
        return self.DATA_DIR / self.DATABASE_FILENAME

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

settings = Settings()
