"""
Module: lifecycle_kernel.models.unit
Responsibility: ORM persistence for a physical unit and its current-state
    projection (holder, lifecycle state, sold flag, sale date).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - serial_number is unique (uq_unit_serial).
    - Exactly one product model per unit (model_id NOT NULL).
    - The projection columns are written only by the EventStore, in the same
      flush as the event that justifies them.  They are always rebuildable by
      replaying events in ledger_seq order (ProjectionService).
    - version is a SQLAlchemy version_id_col: a concurrent writer that loaded
      an older version gets StaleDataError on flush, which the EventStore
      reports as OptimisticLockError.
    - Units are never deleted (db/immutability.py).

Audit relevance:
    registered_at / registered_by_id / ledger_seq form the registration fact.
    projection_seq records the last event folded into the projection, so a
    stale projection is detectable without a full replay.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from lifecycle_kernel.db.base import Base, UUIDString
from lifecycle_kernel.domain.values import UnitState


class Unit(Base):
    """
    One physical item identified by its serial number.

    Non-goals:
        - The projection is NOT the ledger.  Ownership history lives in the
          dispatch, transfer and sale event tables.
    """

    __tablename__ = "units"

    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_unit_serial"),
        Index("idx_unit_holder_sold", "current_holder_id", "is_sold"),
        Index("idx_unit_model", "model_id"),
    )

    serial_number: Mapped[str] = mapped_column(String(100), nullable=False)

    model_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("product_models.id"),
        nullable=False,
    )

    # Registration fact
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    registered_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    ledger_seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    # Holder at registration; the replay starting point
    origin_holder_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("holders.id"),
        nullable=False,
    )

    # Projection
    current_holder_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("holders.id"),
        nullable=False,
    )

    state: Mapped[UnitState] = mapped_column(String(40), nullable=False)

    is_sold: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    sale_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    dispatch_event_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    projection_seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Unit {self.serial_number} {self.state} v{self.version}>"
