"""
Module: stock_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, portable exact-decimal and UTC timestamp
    column types, and the TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Exact decimals: type_annotation_map maps Python Decimal to DecimalType,
      which is NUMERIC(38, 9) on PostgreSQL and canonical text on SQLite.
      SQLite has no exact numeric storage and would otherwise round-trip
      quantities and costs through float.  NEVER use float for stock values.
    - Timestamps are timezone-aware on read, whatever the backend.

Failure modes:
    - IntegrityError on duplicate UUID (protected by PK constraint).
    - decimal.InvalidOperation if a non-numeric value is bound to DecimalType.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Storage scale for every decimal column
STORAGE_DECIMAL_PLACES = 9
_STORAGE_QUANTUM = Decimal(1).scaleb(-STORAGE_DECIMAL_PLACES)


def quantize_storage(value: Decimal) -> Decimal:
    """Value exactly as a DecimalType column will hold it."""
    return Decimal(value).quantize(_STORAGE_QUANTUM)


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class DecimalType(TypeDecorator):
    """
    Exact decimal column, portable across PostgreSQL and SQLite.

    Contract:
        Values are quantized to STORAGE_DECIMAL_PLACES on bind and always
        come back as ``Decimal``.

    Guarantees:
        - PostgreSQL: NUMERIC(38, 9), native exact arithmetic.
        - SQLite: canonical decimal text, so no float round trip occurs.
          Aggregates over these columns must be done in Python, never with
          SQL SUM(), which SQLite would compute in floating point.
    """

    impl = Numeric(38, STORAGE_DECIMAL_PLACES)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(
            Numeric(38, STORAGE_DECIMAL_PLACES, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        quantized = quantize_storage(value)
        if dialect.name == "sqlite":
            return str(quantized)
        return quantized

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp; naive values read back from SQLite are UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            return value.astimezone(UTC)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to DecimalType -- exact on every backend.
        - datetime maps to UTCDateTime -- always timezone-aware.
        - int maps to BigInteger -- safe for counters.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: DecimalType(),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
        - created_by_id is required (NOT NULL) -- every record has a creator.
        - updated_by_id is nullable.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


# Re-export UUID for convenience
UUID = PyUUID
