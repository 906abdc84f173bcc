from datetime import datetime
from typing import Any
from sqlalchemy import String, Enum as SAEnum, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from gym_registry.database import Base
from gym_registry.models.enums import Role

class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    password: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[Role] = mapped_column(SAEnum(Role, native_enum=False), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    phone_number: Mapped[str] = mapped_column(String, default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Role payload without derived assignment caches
    profile: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
