"""
Module: carbon_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the lossless TokenAmount column type, the
    type annotation map and the TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: every row carries a uuid4 surrogate key.  Business
      identifiers (batch token ids, request ids) are separate sequence-allocated
      integer columns.
    - Lossless token amounts: fungible amounts are integers in base units
      (quantity * 10**18 and beyond) and exceed BIGINT.  TokenAmount stores
      them as decimal text and returns Python ``int``.  NEVER use float.
    - Audit timestamps: TrackedBase provides created_at, updated_at,
      created_by and updated_by.

Failure modes:
    - ValueError from TokenAmount when a negative or non-integer amount is bound.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


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


class TokenAmount(TypeDecorator):
    """
    Non-negative arbitrary precision integer stored as decimal text.

    Contract:
        Fungible amounts are base units (18 decimals by default), so a single
        batch of a million tonnes is 10**24 base units -- beyond BIGINT and
        beyond the exact range of SQLite's REAL affinity.  Storing the decimal
        digits keeps every backend lossless.

    Guarantees:
        - process_bind_param: int -> str, rejecting negatives and non-ints.
        - process_result_value: str -> int.

    Non-goals:
        - No database-side arithmetic or ordering; sums are computed in Python.
    """

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"TokenAmount requires int, got {type(value).__name__}")
        if value < 0:
            raise ValueError(f"TokenAmount cannot be negative: {value}")
        return str(value)

    def process_result_value(self, value, dialect):
        if value is not None:
            return int(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - datetime maps to DateTime(timezone=True) -- always timezone-aware.
        - int maps to BigInteger -- safe for monotonic sequences and quantities.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
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

    Contract:
        Every model that inherits TrackedBase records which caller created
        and last modified the row, and when.  Callers are account references
        (strings) supplied through the AuthorizationContext.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
        - created_by is required (NOT NULL) -- every record has a creator.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    updated_by: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )
