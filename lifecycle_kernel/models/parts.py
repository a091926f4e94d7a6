"""
Module: lifecycle_kernel.models.parts
Responsibility: Factory -> service-center part dispatches and the advisory
    per-(center, part code) stock head.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Part dispatches and their lines are immutable after insert.
    - quantity on a dispatch line is >= 1 (CHECK constraint).
    - A part code appears at most once per dispatch (uq_part_dispatch_line).
    - PartStockHead.quantity is a CACHE of
          sum(dispatched) - sum(REPLACEMENT consumed)
      and is never the authority.  Its version column guards every
      stock-consuming check-then-append: two writers that validated against
      the same version cannot both commit.

Failure modes:
    - StaleDataError (reported as OptimisticLockError) when a head row was
      bumped by a concurrent transaction.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from lifecycle_kernel.db.base import Base, LedgerRecord, UUIDString


class PartDispatchEvent(LedgerRecord, Base):
    """Bulk movement of spare parts from the factory to one service center."""

    __tablename__ = "part_dispatch_events"

    __table_args__ = (
        UniqueConstraint("dispatch_number", name="uq_part_dispatch_number"),
        Index("idx_part_dispatch_center", "service_center_id"),
    )

    # Allocated as PD-<year>-<nnnn>
    dispatch_number: Mapped[str] = mapped_column(String(50), nullable=False)

    service_center_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("holders.id"),
        nullable=False,
    )

    dispatch_date: Mapped[date] = mapped_column(Date, nullable=False)

    remarks: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<PartDispatchEvent {self.dispatch_number} seq={self.ledger_seq}>"


class PartDispatchLine(Base):
    """One part code and quantity inside a PartDispatchEvent."""

    __tablename__ = "part_dispatch_lines"

    __table_args__ = (
        UniqueConstraint("part_dispatch_id", "part_code", name="uq_part_dispatch_line"),
        CheckConstraint("quantity >= 1", name="ck_part_dispatch_line_qty"),
        Index("idx_part_dispatch_line_code", "part_code"),
    )

    part_dispatch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("part_dispatch_events.id"),
        nullable=False,
    )

    part_code: Mapped[str] = mapped_column(String(100), nullable=False)

    part_name: Mapped[str] = mapped_column(String(255), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)


class PartStockHead(Base):
    """Advisory stock cache and concurrency guard for (service center, part code)."""

    __tablename__ = "part_stock_heads"

    __table_args__ = (
        UniqueConstraint("service_center_id", "part_code", name="uq_stock_head_center_code"),
    )

    service_center_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("holders.id"),
        nullable=False,
    )

    part_code: Mapped[str] = mapped_column(String(100), nullable=False)

    part_name: Mapped[str] = mapped_column(String(255), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ledger_seq of the last event reflected in quantity
    last_ledger_seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<PartStockHead {self.part_code} qty={self.quantity} v{self.version}>"
