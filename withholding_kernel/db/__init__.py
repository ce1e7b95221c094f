"""Database layer - engine, base classes and column types."""

from withholding_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from withholding_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
)
from withholding_kernel.db.types import CurrencyCode, Money, Rate, round_amount

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Rate",
    "CurrencyCode",
    "round_amount",
]
