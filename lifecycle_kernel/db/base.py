"""
Module: lifecycle_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map, and the
    LedgerRecord mixin shared by every append-only event table.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Timestamps are timezone-aware (DateTime(timezone=True)).
    - LedgerRecord: every event row carries ledger_seq (global order),
      actor_id (who appended it) and created_at (when it was appended).

Failure modes:
    - IntegrityError on duplicate ledger_seq (UNIQUE per table).

Audit relevance:
    ledger_seq gives a total order over all appended facts, which is the
    replay order used to rebuild unit projections.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Transparently converts between Python UUID objects and their 36-character
    string representation.
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


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger -- safe for monotonic sequences.
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


class LedgerRecord:
    """
    Mixin for append-only event rows.

    Contract:
        Rows are INSERTed once by the EventStore and never updated or
        deleted (see db/immutability.py).  ledger_seq is allocated from the
        global ledger counter so that replay order is independent of clock
        resolution.
    """

    @declared_attr
    def ledger_seq(cls) -> Mapped[int]:
        return mapped_column(BigInteger, nullable=False, unique=True)

    @declared_attr
    def actor_id(cls) -> Mapped[PyUUID]:
        return mapped_column(UUIDString(), nullable=False)

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), nullable=False)


# Re-export UUID for convenience
UUID = PyUUID
