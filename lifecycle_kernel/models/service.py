"""
Module: lifecycle_kernel.models.service
Responsibility: Service visits (job headers with a frozen warranty snapshot)
    and the replacement/repair events recorded against them.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - ServiceVisit.parts_valid / service_valid are computed once at creation
      and never updated, even if the product model's window changes later.
      parts_months / service_months / months_elapsed record the inputs that
      produced the snapshot.
    - ReplacementEvent.cost_liability / claim_eligible are derived from the
      visit snapshot by the ReplacementAuthorizer, never supplied by callers.
    - REPAIR rows never participate in the part stock fold.
    - Both tables are immutable after insert.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from lifecycle_kernel.db.base import Base, LedgerRecord, UUIDString
from lifecycle_kernel.domain.values import CostLiability, ReplacementType, ServiceType


class ServiceVisit(LedgerRecord, Base):
    """One service job for one unit at one service center."""

    __tablename__ = "service_visits"

    __table_args__ = (
        Index("idx_visit_unit_date", "unit_id", "visit_date"),
        Index("idx_visit_center_date", "service_center_id", "visit_date"),
    )

    unit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("units.id"),
        nullable=False,
    )

    service_center_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("holders.id"),
        nullable=False,
    )

    visit_date: Mapped[date] = mapped_column(Date, nullable=False)

    reported_fault: Mapped[str] = mapped_column(String(2000), nullable=False)

    remarks: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Frozen warranty snapshot
    parts_valid: Mapped[bool] = mapped_column(Boolean, nullable=False)

    service_valid: Mapped[bool] = mapped_column(Boolean, nullable=False)

    months_elapsed: Mapped[int] = mapped_column(Integer, nullable=False)

    parts_months: Mapped[int] = mapped_column(Integer, nullable=False)

    service_months: Mapped[int] = mapped_column(Integer, nullable=False)

    service_type: Mapped[ServiceType] = mapped_column(String(10), nullable=False)


class ReplacementEvent(LedgerRecord, Base):
    """One part consumed (REPLACEMENT) or repaired (REPAIR) during a visit."""

    __tablename__ = "replacement_events"

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_replacement_qty"),
        Index("idx_replacement_visit", "visit_id"),
        Index("idx_replacement_center_code_type", "service_center_id", "part_code", "replacement_type"),
        Index("idx_replacement_unit_code_type", "unit_id", "part_code", "replacement_type"),
        Index("idx_replacement_dispatch", "part_dispatch_id"),
    )

    visit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("service_visits.id"),
        nullable=False,
    )

    unit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("units.id"),
        nullable=False,
    )

    service_center_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("holders.id"),
        nullable=False,
    )

    # Lineage: the factory dispatch that supplied the part
    part_dispatch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("part_dispatch_events.id"),
        nullable=False,
    )

    part_code: Mapped[str] = mapped_column(String(100), nullable=False)

    part_name: Mapped[str] = mapped_column(String(255), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    replacement_date: Mapped[date] = mapped_column(Date, nullable=False)

    replacement_type: Mapped[ReplacementType] = mapped_column(String(20), nullable=False)

    # Derived from ServiceVisit.parts_valid
    cost_liability: Mapped[CostLiability] = mapped_column(String(20), nullable=False)

    claim_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False)
