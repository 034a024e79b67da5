"""Database layer - engine, base classes, column types, unit of work."""

from stock_kernel.db.base import UUID, Base, DecimalType, TrackedBase, UTCDateTime, UUIDString
from stock_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from stock_kernel.db.unit_of_work import UnitOfWork

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "DecimalType",
    "UTCDateTime",
    "UUID",
    "UnitOfWork",
]
