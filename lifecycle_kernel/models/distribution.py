"""
Module: lifecycle_kernel.models.distribution
Responsibility: Append-only ownership events for units -- factory-to-dealer
    dispatch, dealer-to-sub-dealer transfer, and customer sale.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - dispatch_number is unique (uq_unit_dispatch_number).
    - A unit appears in at most one dispatch line (uq_dispatch_line_unit):
      a unit leaves the factory exactly once.
    - At most one sale per unit (uq_sale_unit).
    - All rows are immutable after insert (db/immutability.py).

Failure modes:
    - IntegrityError on any of the unique constraints above.  The
      LifecycleService checks them first and raises ConflictError; the
      constraints catch a concurrent writer that slipped past the check.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lifecycle_kernel.db.base import Base, LedgerRecord, UUIDString


class UnitDispatchEvent(LedgerRecord, Base):
    """Factory -> dealer movement of one or more units."""

    __tablename__ = "unit_dispatch_events"

    __table_args__ = (
        UniqueConstraint("dispatch_number", name="uq_unit_dispatch_number"),
        Index("idx_unit_dispatch_dealer", "dealer_id"),
    )

    # Human-readable reference (e.g. FD-2026-004)
    dispatch_number: Mapped[str] = mapped_column(String(50), nullable=False)

    dealer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("holders.id"),
        nullable=False,
    )

    dispatch_date: Mapped[date] = mapped_column(Date, nullable=False)

    remarks: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<UnitDispatchEvent {self.dispatch_number} seq={self.ledger_seq}>"


class UnitDispatchLine(Base):
    """One unit carried by a UnitDispatchEvent."""

    __tablename__ = "unit_dispatch_lines"

    __table_args__ = (
        UniqueConstraint("unit_id", name="uq_dispatch_line_unit"),
        Index("idx_dispatch_line_event", "dispatch_event_id"),
    )

    dispatch_event_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("unit_dispatch_events.id"),
        nullable=False,
    )

    unit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("units.id"),
        nullable=False,
    )


class UnitTransferEvent(LedgerRecord, Base):
    """Dealer -> sub-dealer movement of one unit."""

    __tablename__ = "unit_transfer_events"

    __table_args__ = (
        Index("idx_transfer_unit_seq", "unit_id", "ledger_seq"),
    )

    unit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("units.id"),
        nullable=False,
    )

    from_dealer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("holders.id"),
        nullable=False,
    )

    to_sub_dealer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("holders.id"),
        nullable=False,
    )

    remarks: Mapped[str | None] = mapped_column(String(1000), nullable=True)


class UnitSaleEvent(LedgerRecord, Base):
    """
    Customer sale of one unit.  Starts the warranty.

    seller_holder_id is the unit's holder at the moment of sale (factory,
    dealer or sub-dealer).
    """

    __tablename__ = "unit_sale_events"

    __table_args__ = (
        UniqueConstraint("unit_id", name="uq_sale_unit"),
        Index("idx_sale_seller", "seller_holder_id"),
        Index("idx_sale_date", "sale_date"),
    )

    unit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("units.id"),
        nullable=False,
    )

    seller_holder_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("holders.id"),
        nullable=False,
    )

    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)

    sale_date: Mapped[date] = mapped_column(Date, nullable=False)

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)

    customer_contact: Mapped[str | None] = mapped_column(String(100), nullable=True)
