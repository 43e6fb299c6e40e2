"""
Declarative bases shared by every billing table.

``Base`` fixes the column conventions once:

    * primary key ``id`` -- a uuid4 kept as its 36-character text form, so
      the same models run on PostgreSQL and on SQLite in tests;
    * ``Decimal`` columns are ``Numeric(38, 9)``;
    * ``datetime`` columns are timezone-aware.

``TrackedBase`` adds who/when columns.  Stores set ``created_by_id`` and
``updated_by_id`` from the tenant scope of the call; the timestamps come from
the database.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    created_by_id: Mapped[UUID] = mapped_column(UUIDString())
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString())
