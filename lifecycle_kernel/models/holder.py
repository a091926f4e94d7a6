"""
Module: lifecycle_kernel.models.holder
Responsibility: Typed ownership references for every party that can hold
    units or parts: the factory, dealers, sub-dealers and service centers.
    Rows are synchronised from the identity collaborator.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - holder_code is unique and is the opaque reference used by callers;
      display_name is presentation only and never used for matching.
    - A SUB_DEALER row names its parent dealer (parent_dealer_id).  Transfers
      are only authorized from the parent to its own sub-dealers.

Failure modes:
    - IntegrityError on duplicate holder_code.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lifecycle_kernel.db.base import Base, UUIDString
from lifecycle_kernel.domain.values import HolderKind


class Holder(Base):
    """Custodian of units (factory, dealer, sub-dealer) or parts (service center)."""

    __tablename__ = "holders"

    __table_args__ = (
        UniqueConstraint("holder_code", name="uq_holder_code"),
        Index("idx_holder_kind", "kind"),
        Index("idx_holder_parent", "parent_dealer_id"),
    )

    holder_code: Mapped[str] = mapped_column(String(50), nullable=False)

    kind: Mapped[HolderKind] = mapped_column(String(20), nullable=False)

    display_name: Mapped[str] = mapped_column(String(255), nullable=False)

    parent_dealer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("holders.id"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Holder {self.kind}:{self.holder_code}>"
