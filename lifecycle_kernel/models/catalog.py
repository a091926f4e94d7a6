"""
Module: lifecycle_kernel.models.catalog
Responsibility: Local mirror of the catalog collaborator's product models.
    The kernel reads a model's warranty window; it never owns catalog CRUD.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - model_code is unique and immutable once any unit references it
      (ORM before_update listener in db/immutability.py).
    - Product models are never deleted, only deactivated.
    - Warranty window revisions are allowed; they affect future warranty
      evaluations only.  Service visits store their own frozen snapshot.

Failure modes:
    - IntegrityError on duplicate model_code.
    - ImmutabilityViolationError on delete or on model_code change after
      units reference the model.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lifecycle_kernel.db.base import Base


class ProductModel(Base):
    """
    Product definition (e.g. "SL-SKY-4KW"), not a physical unit.

    Guarantees:
        - parts_months / service_months are the warranty window used at the
          moment a service visit is opened.
        - is_active=False blocks registration of new units of this model.
    """

    __tablename__ = "product_models"

    __table_args__ = (
        UniqueConstraint("model_code", name="uq_product_model_code"),
    )

    model_code: Mapped[str] = mapped_column(String(50), nullable=False)

    brand: Mapped[str] = mapped_column(String(100), nullable=False)

    product_line: Mapped[str] = mapped_column(String(100), nullable=False)

    variant: Mapped[str] = mapped_column(String(100), nullable=False)

    # Warranty window in calendar months
    parts_months: Mapped[int] = mapped_column(Integer, nullable=False, default=12)

    service_months: Mapped[int] = mapped_column(Integer, nullable=False, default=24)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<ProductModel {self.model_code} "
            f"parts={self.parts_months}m service={self.service_months}m>"
        )
