"""
Module: consolidation_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors, and the
    single bulk-retrieval contract every selector uses.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/ value types.  MUST NOT import from engines or outer layers.
    Selectors NEVER create, modify, or delete data.

Invariants enforced:
    - Complete retrieval: fetch_all() pages through results with a
      deterministic primary-key order, looping until a page comes back shorter
      than page_size.  A bulk read never silently stops at one page, because a
      truncated balance set produces a statement that is wrong without any
      visible error.
    - Bounded IN lists: fetch_all_in() splits large id filters into chunks of
      at most id_chunk_size and concatenates the complete result of each.
    - DTO return convention: selectors return frozen dataclasses validated at
      this boundary, NOT raw ORM instances.
    - Session ownership: the caller owns the session.

Failure modes:
    - InvalidRecordError when a stored row has an unusable shape (month out of
      range, non-numeric amount, unknown enum value).
"""

from __future__ import annotations

from abc import ABC
from collections.abc import Callable, Iterable, Sequence
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import Select, inspect
from sqlalchemy.orm import Session

from consolidation_kernel.db.base import Base
from consolidation_kernel.db.types import to_decimal
from consolidation_kernel.exceptions import InvalidRecordError
from consolidation_kernel.logging_config import get_logger

logger = get_logger("selectors.base")

ModelType = TypeVar("ModelType", bound=Base)
EnumType = TypeVar("EnumType", bound=Enum)

DEFAULT_PAGE_SIZE = 1000
DEFAULT_ID_CHUNK_SIZE = 500


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.

    Guarantees:
        - fetch_all() returns every row matching the statement.
    """

    def __init__(
        self,
        session: Session,
        page_size: int = DEFAULT_PAGE_SIZE,
        id_chunk_size: int = DEFAULT_ID_CHUNK_SIZE,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        if id_chunk_size < 1:
            raise ValueError("id_chunk_size must be positive")
        self.session = session
        self.page_size = page_size
        self.id_chunk_size = id_chunk_size

    def fetch_all(self, statement: Select) -> list[Any]:
        """
        Retrieve every row of ``statement``, one page at a time.

        The statement must select a single mapped entity; it is ordered by
        that entity's primary key so OFFSET paging is stable.
        """
        entity = statement.column_descriptions[0]["entity"]
        ordered = statement.order_by(*inspect(entity).primary_key)

        rows: list[Any] = []
        offset = 0
        pages = 0
        while True:
            page = self.session.scalars(
                ordered.limit(self.page_size).offset(offset)
            ).all()
            pages += 1
            rows.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size

        logger.debug(
            "paged_fetch_completed",
            extra={
                "table": entity.__tablename__,
                "pages": pages,
                "rows": len(rows),
                "page_size": self.page_size,
            },
        )
        return rows

    def fetch_all_in(
        self,
        ids: Iterable[UUID],
        build: Callable[[list[UUID]], Select],
    ) -> list[Any]:
        """
        fetch_all() over an id filter split into bounded chunks.

        ``build`` receives one chunk of ids and returns the statement for it.
        Duplicate ids are removed; an empty id set returns no rows without
        touching the database.
        """
        unique = sorted(set(ids), key=str)
        rows: list[Any] = []
        for chunk in chunked(unique, self.id_chunk_size):
            rows.extend(self.fetch_all(build(chunk)))
        return rows


def chunked(items: Sequence[UUID], size: int) -> Iterable[list[UUID]]:
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


# ---------------------------------------------------------------------------
# Boundary validation helpers for DTO construction
# ---------------------------------------------------------------------------


def require_money(table: str, record_id: Any, field_name: str, value: Any) -> Decimal:
    """Coerce a stored amount to a finite Decimal or raise InvalidRecordError."""
    if value is None or isinstance(value, bool):
        raise InvalidRecordError(table, record_id, f"{field_name} is not a number")
    try:
        amount = to_decimal(value)
    except (InvalidOperation, ValueError):
        raise InvalidRecordError(
            table, record_id, f"{field_name} is not a number: {value!r}"
        ) from None
    if not amount.is_finite():
        raise InvalidRecordError(table, record_id, f"{field_name} is not finite")
    return amount


def require_period(table: str, record_id: Any, year: Any, month: Any) -> None:
    if not isinstance(year, int) or isinstance(year, bool) or year < 1:
        raise InvalidRecordError(table, record_id, f"invalid year {year!r}")
    if not isinstance(month, int) or isinstance(month, bool) or not 1 <= month <= 12:
        raise InvalidRecordError(table, record_id, f"invalid month {month!r}")


def require_enum(
    enum_cls: type[EnumType], table: str, record_id: Any, field_name: str, value: Any,
) -> EnumType:
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidRecordError(
            table, record_id, f"{field_name} has unknown value {value!r}"
        ) from None


def require_uuid(table: str, record_id: Any, field_name: str, value: Any) -> UUID:
    if not isinstance(value, UUID):
        raise InvalidRecordError(table, record_id, f"{field_name} is not a UUID")
    return value
