"""Database layer: declarative base, engine and session factory, numeric rules."""

from consolidation_kernel.db.base import Base, TrackedBase, UUIDString
from consolidation_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from consolidation_kernel.db.types import MONEY_DECIMAL_PLACES, ZERO, round_money, to_decimal

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "create_tables",
    "reset_engine",
    "MONEY_DECIMAL_PLACES",
    "ZERO",
    "round_money",
    "to_decimal",
]
