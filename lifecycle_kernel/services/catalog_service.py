"""
Service layer for ProductModel operations.

The catalog collaborator owns product CRUD; this service is its sync target
inside the kernel.  The kernel itself only reads a model's warranty window.
Returns ModelInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from lifecycle_kernel.domain.clock import Clock
from lifecycle_kernel.domain.warranty import WarrantyWindow
from lifecycle_kernel.exceptions import (
    ConflictError,
    InvalidRequestError,
    ModelNotFoundError,
    UnresolvedReferenceError,
)
from lifecycle_kernel.logging_config import get_logger
from lifecycle_kernel.models import ProductModel
from lifecycle_kernel.services.base import BaseService

logger = get_logger("services.catalog")


@dataclass(frozen=True)
class ModelInfo:
    """Immutable DTO for a product model."""

    id: UUID
    model_code: str
    brand: str
    product_line: str
    variant: str
    warranty: WarrantyWindow
    is_active: bool


def window_of(model: ProductModel) -> WarrantyWindow:
    return WarrantyWindow(parts_months=model.parts_months, service_months=model.service_months)


class CatalogService(BaseService[ProductModel]):
    """Register, deactivate and revise product models."""

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session)
        self._clock = clock

    def _to_dto(self, model: ProductModel) -> ModelInfo:
        return ModelInfo(
            id=model.id,
            model_code=model.model_code,
            brand=model.brand,
            product_line=model.product_line,
            variant=model.variant,
            warranty=window_of(model),
            is_active=model.is_active,
        )

    def _find(self, model_code: str) -> ProductModel | None:
        return self.session.execute(
            select(ProductModel).where(ProductModel.model_code == model_code)
        ).scalar_one_or_none()

    def _get(self, model_code: str) -> ProductModel:
        model = self._find(model_code)
        if model is None:
            raise ModelNotFoundError(model_code)
        return model

    def resolve(self, model_code: str) -> ProductModel:
        """Resolve an active model referenced by a command."""
        model = self._find(model_code)
        if model is None:
            raise UnresolvedReferenceError("ProductModel", model_code, "unknown model")
        if not model.is_active:
            raise UnresolvedReferenceError("ProductModel", model_code, "model is inactive")
        return model

    def get_by_code(self, model_code: str) -> ModelInfo:
        return self._to_dto(self._get(model_code))

    def list_models(self, active_only: bool = True) -> list[ModelInfo]:
        stmt = select(ProductModel)
        if active_only:
            stmt = stmt.where(ProductModel.is_active.is_(True))
        stmt = stmt.order_by(ProductModel.model_code)
        return [self._to_dto(m) for m in self.session.execute(stmt).scalars()]

    def register_model(
        self,
        model_code: str,
        brand: str,
        product_line: str,
        variant: str,
        parts_months: int,
        service_months: int,
    ) -> ModelInfo:
        """
        Register a product model with its warranty window.

        Raises:
            InvalidRequestError: blank code or negative months.
            ConflictError: model_code already registered.
        """
        if not model_code or not model_code.strip():
            raise InvalidRequestError("model_code", "must not be blank")
        try:
            window = WarrantyWindow(parts_months, service_months)
        except ValueError as exc:
            raise InvalidRequestError("warranty", str(exc)) from None
        if self._find(model_code) is not None:
            raise ConflictError(f"Product model already registered: {model_code}")

        model = ProductModel(
            model_code=model_code,
            brand=brand,
            product_line=product_line,
            variant=variant,
            parts_months=window.parts_months,
            service_months=window.service_months,
            is_active=True,
            created_at=self._clock.now(),
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "product_model_registered",
            extra={
                "model_code": model_code,
                "parts_months": parts_months,
                "service_months": service_months,
            },
        )
        return self._to_dto(model)

    def revise_warranty_window(
        self,
        model_code: str,
        parts_months: int,
        service_months: int,
    ) -> ModelInfo:
        """
        Change a model's warranty window.

        Only future evaluations see the new window.  Existing service visits
        keep the snapshot frozen at their creation.
        """
        model = self._get(model_code)
        try:
            new_window = WarrantyWindow(parts_months, service_months)
        except ValueError as exc:
            raise InvalidRequestError("warranty", str(exc)) from None
        old_window = window_of(model)

        model.parts_months = new_window.parts_months
        model.service_months = new_window.service_months
        model.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "warranty_window_revised",
            extra={
                "model_code": model_code,
                "old_parts_months": old_window.parts_months,
                "old_service_months": old_window.service_months,
                "parts_months": new_window.parts_months,
                "service_months": new_window.service_months,
            },
        )
        return self._to_dto(model)

    def deactivate_model(self, model_code: str) -> ModelInfo:
        """Block new registrations of a model.  Models are never deleted."""
        model = self._get(model_code)
        model.is_active = False
        model.updated_at = self._clock.now()
        self.session.flush()
        logger.info("product_model_deactivated", extra={"model_code": model_code})
        return self._to_dto(model)
