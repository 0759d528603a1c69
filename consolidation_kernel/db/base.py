"""
Module: consolidation_kernel.db.base
Responsibility: the declarative base every consolidation table derives from.
    Fixes the primary key convention (uuid4 stored as text) and the Python to
    SQL type map, so money is Numeric(38, 9) in every table.
Architecture position: Kernel > DB.  Lowest import target in the kernel; it
    imports nothing from models/, selectors/, domain/ or outer layers.

Invariants enforced:
    - Every row is keyed by a uuid4.  Line ids such as ``revenue-<uuid>`` are
      built from these keys, so their text form must round-trip exactly.
    - Decimal annotations become Numeric(38, 9); floats never reach a column.
    - TrackedBase rows carry created_at / updated_at from the database clock.
      Budget version selection orders on created_at.

Audit relevance:
    Rows are written by the ledger synchronization process, not by this
    engine.  The timestamps record when a figure arrived, which is what a
    reviewer needs when a statement changes between two runs.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID held as its 36-character text form on every backend."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Abstract base adding database-stamped arrival and change times."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False,
    )
