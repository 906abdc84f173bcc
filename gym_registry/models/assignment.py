from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column
from gym_registry.database import Base


class Assignment(Base):
    __tablename__ = "assignments"

    member_id: Mapped[str] = mapped_column(String, primary_key=True)
    # No foreign key: stale pairs are dropped by reconcile, not by the database
    trainer_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)


class AuxListEntry(Base):
    __tablename__ = "aux_list_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    list_name: Mapped[str] = mapped_column(String, index=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[str] = mapped_column(String, nullable=False)
