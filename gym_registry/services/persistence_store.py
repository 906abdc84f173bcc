from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from gym_registry.config import Settings
from gym_registry.database import Base, create_registry_engine, create_session_factory
from gym_registry.models.assignment import Assignment, AuxListEntry
from gym_registry.models.user import User
from gym_registry.schemas import UserRecord
from gym_registry.state import RegistryState

logger = logging.getLogger(__name__)


def _to_naive_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _to_utc_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _record_to_row(record: UserRecord) -> User:
    return User(
        id=record.id,
        name=record.name,
        email=record.email,
        password=record.password,
        role=record.role,
        is_active=record.is_active,
        phone_number=record.phone_number,
        created_at=_to_naive_utc(record.created_at),
        last_login_at=_to_naive_utc(record.last_login_at),
        profile=record.profile.model_dump(mode="json"),
    )


def _row_to_record(row: User) -> UserRecord:
    return UserRecord.model_validate(
        {
            "id": row.id,
            "name": row.name,
            "email": row.email,
            "password": row.password,
            "phone_number": row.phone_number,
            "is_active": row.is_active,
            "created_at": _to_utc_datetime(row.created_at),
            "last_login_at": _to_utc_datetime(row.last_login_at),
            "profile": row.profile,
        }
    )


class PersistenceStore:
    """SQLite-backed save/load of the three registry collections.

    The store has no business rules: it writes whatever map it is given and
    hands back an empty map when the database is missing or unreadable.
    Unreadable user rows are skipped one by one and recorded in
    ``load_problems``.
    """

    def __init__(
        self,
        data_dir: Path,
        database_filename: str = "registry.db",
        backup_prefix: str = "backup_",
        echo: bool = False,
    ):
        self.data_dir = Path(data_dir)
        self.database_path = self.data_dir / database_filename
        self.backup_prefix = backup_prefix
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._engine = create_registry_engine(self.database_path, echo=echo)
        self._session_factory = create_session_factory(self._engine)
        # Filled by the load_* methods; anything here means storage holds
        # data that is not in memory
        self.load_problems: list[str] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> PersistenceStore:
        return cls(
            data_dir=settings.DATA_DIR,
            database_filename=settings.DATABASE_FILENAME,
            backup_prefix=settings.BACKUP_PREFIX,
            echo=settings.SQL_ECHO,
        )

    def _ensure_schema(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        Base.metadata.create_all(self._engine)

    def data_exists(self) -> bool:
        return self.database_path.exists()

    # ------------------------------------------------------------------ users

    def save_users(self, users: Mapping[str, UserRecord]) -> bool:
        try:
            self._ensure_schema()
            with self._session_factory.begin() as session:
                session.execute(delete(User))
                session.add_all([_record_to_row(record) for record in users.values()])
            return True
        except (SQLAlchemyError, OSError):
            logger.exception("Error saving users to %s", self.database_path)
            return False

    def load_users(self) -> dict[str, UserRecord]:
        if not self.data_exists():
            logger.info("No existing data at %s; starting fresh", self.database_path)
            return {}
        try:
            self._ensure_schema()
            with self._session_factory() as session:
                rows = session.scalars(select(User).order_by(User.created_at, User.id)).all()
        except (SQLAlchemyError, OSError):
            logger.exception("Error loading users from %s", self.database_path)
            self.load_problems.append("users")
            return {}

        users: dict[str, UserRecord] = {}
        for row in rows:
            try:
                users[row.id] = _row_to_record(row)
            except ValidationError:
                logger.exception("Skipping unreadable user row %r in %s", row.id, self.database_path)
                self.load_problems.append(f"user {row.id}")
        return users

    # ------------------------------------------------------------ assignments

    def save_assignments(self, assignments: Mapping[str, str]) -> bool:
        try:
            self._ensure_schema()
            with self._session_factory.begin() as session:
                session.execute(delete(Assignment))
                session.add_all(
                    [
                        Assignment(member_id=member_id, trainer_id=trainer_id, position=position)
                        for position, (member_id, trainer_id) in enumerate(assignments.items())
                    ]
                )
            return True
        except (SQLAlchemyError, OSError):
            logger.exception("Error saving assignments to %s", self.database_path)
            return False

    def load_assignments(self) -> dict[str, str]:
        if not self.data_exists():
            return {}
        try:
            self._ensure_schema()
            with self._session_factory() as session:
                rows = session.scalars(select(Assignment).order_by(Assignment.position)).all()
                return {row.member_id: row.trainer_id for row in rows}
        except (SQLAlchemyError, OSError):
            logger.exception("Error loading assignments from %s", self.database_path)
            self.load_problems.append("assignments")
            return {}

    # -------------------------------------------------------------- aux lists

    def save_aux_lists(self, aux_lists: Mapping[str, Sequence[str]]) -> bool:
        try:
            self._ensure_schema()
            with self._session_factory.begin() as session:
                session.execute(delete(AuxListEntry))
                session.add_all(
                    [
                        AuxListEntry(list_name=name, position=position, value=value)
                        for name, values in aux_lists.items()
                        for position, value in enumerate(values)
                    ]
                )
            return True
        except (SQLAlchemyError, OSError):
            logger.exception("Error saving auxiliary lists to %s", self.database_path)
            return False

    def load_aux_lists(self) -> dict[str, list[str]]:
        if not self.data_exists():
            return {}
        try:
            self._ensure_schema()
            with self._session_factory() as session:
                rows = session.scalars(
                    select(AuxListEntry).order_by(AuxListEntry.list_name, AuxListEntry.position)
                ).all()
                aux_lists: dict[str, list[str]] = {}
                for row in rows:
                    aux_lists.setdefault(row.list_name, []).append(row.value)
                return aux_lists
        except (SQLAlchemyError, OSError):
            logger.exception("Error loading auxiliary lists from %s", self.database_path)
            self.load_problems.append("aux_lists")
            return {}

    # ------------------------------------------------------------------ misc

    def load(self, state: RegistryState) -> bool:
        """Replace the contents of ``state`` with what is on disk.

        Returns False when any table or row could not be read, so the caller
        knows a flush now would overwrite data it never saw.
        """
        self.load_problems = []
        state.users.clear()
        state.users.update(self.load_users())
        state.assignments.clear()
        state.assignments.update(self.load_assignments())
        state.aux_lists.clear()
        state.aux_lists.update(self.load_aux_lists())
        return not self.load_problems

    def flush(self, state: RegistryState) -> bool:
        users_ok = self.save_users(state.users)
        assignments_ok = self.save_assignments(state.assignments)
        aux_ok = self.save_aux_lists(state.aux_lists)
        return users_ok and assignments_ok and aux_ok

    def backup(self) -> bool:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        target = self.data_dir / f"{self.backup_prefix}{stamp}"
        try:
            target.mkdir(parents=True, exist_ok=False)
            if self.data_exists():
                # Release pooled connections so the copy sees a settled file
                self._engine.dispose()
                shutil.copy2(self.database_path, target / self.database_path.name)
            logger.info("Backup created at %s", target)
            return True
        except OSError:
            logger.exception("Error creating backup at %s", target)
            return False

    def close(self) -> None:
        self._engine.dispose()
