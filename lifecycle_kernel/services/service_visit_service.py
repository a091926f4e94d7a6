"""
ServiceVisitService -- opens service jobs and freezes their warranty snapshot.

Responsibility:
    Opens a service visit for a sold unit at the acting service center.
    The warranty snapshot is computed once, from the product model's window
    at that moment and the visit date, and stored on the visit.  It is never
    re-evaluated, so a later change to the model's window leaves existing
    visits untouched.

Architecture position:
    Kernel > Services.

Failure modes:
    - InvalidRequestError: blank fault, or a visit dated before the sale.
    - AuthorizationError: the actor does not act for an active service center.
    - UnitNotFoundError / UnitNotSoldError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from lifecycle_kernel.domain.clock import Clock
from lifecycle_kernel.domain.dtos import Actor
from lifecycle_kernel.domain.values import HolderKind, ServiceType
from lifecycle_kernel.domain.warranty import evaluate
from lifecycle_kernel.exceptions import (
    AuthorizationError,
    InvalidRequestError,
    UnitNotFoundError,
    UnitNotSoldError,
)
from lifecycle_kernel.logging_config import get_logger
from lifecycle_kernel.models import Holder, ProductModel, ServiceVisit, Unit, UnitSaleEvent
from lifecycle_kernel.services.base import BaseService
from lifecycle_kernel.services.catalog_service import window_of
from lifecycle_kernel.services.event_store import EventStore

logger = get_logger("services.service_visit")


@dataclass(frozen=True)
class VisitReceipt:
    visit_id: UUID
    serial_number: str
    service_center_code: str
    visit_date: date
    parts_valid: bool
    service_valid: bool
    months_elapsed: int
    service_type: ServiceType
    ledger_seq: int


def service_center_of(session: Session, actor: Actor) -> Holder:
    """
    The active SERVICE_CENTER the actor acts for.

    Raises:
        AuthorizationError: the actor has no holder, or it is not an active
            service center.
    """
    if not actor.holder_code:
        raise AuthorizationError(str(actor.actor_id), "actor does not act for a service center")
    holder = session.execute(
        select(Holder).where(Holder.holder_code == actor.holder_code)
    ).scalar_one_or_none()
    if (
        holder is None
        or holder.kind != HolderKind.SERVICE_CENTER.value
        or not holder.is_active
    ):
        raise AuthorizationError(
            str(actor.actor_id),
            f"{actor.holder_code} is not an active service center",
        )
    return holder


class ServiceVisitService(BaseService[ServiceVisit]):
    """Open service visits."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        event_store: EventStore | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._store = event_store or EventStore(session, clock)

    def open_visit(
        self,
        serial_number: str,
        visit_date: date,
        reported_fault: str,
        actor: Actor,
        remarks: str | None = None,
    ) -> VisitReceipt:
        """
        Open a service visit for a sold unit at the actor's service center.

        The snapshot compares the visit date with the sale date using the
        model's current window; FREE service iff the parts warranty is valid.
        """
        if not reported_fault or not reported_fault.strip():
            raise InvalidRequestError("reported_fault", "must not be blank")

        center = service_center_of(self.session, actor)

        unit = self.session.execute(
            select(Unit).where(Unit.serial_number == serial_number)
        ).scalar_one_or_none()
        if unit is None:
            raise UnitNotFoundError(serial_number)

        sale = self.session.execute(
            select(UnitSaleEvent).where(UnitSaleEvent.unit_id == unit.id)
        ).scalar_one_or_none()
        if sale is None:
            raise UnitNotSoldError(serial_number)
        if visit_date < sale.sale_date:
            raise InvalidRequestError(
                "visit_date",
                f"{visit_date.isoformat()} is before the sale date {sale.sale_date.isoformat()}",
            )

        window = window_of(self.session.get(ProductModel, unit.model_id))
        snapshot = evaluate(sale.sale_date, window, visit_date)

        visit = self._store.append_service_visit(
            unit_id=unit.id,
            service_center_id=center.id,
            visit_date=visit_date,
            reported_fault=reported_fault.strip(),
            snapshot=snapshot,
            window=window,
            actor_id=actor.actor_id,
            remarks=remarks,
        )

        service_type = ServiceType(visit.service_type)
        logger.info(
            "service_visit_opened",
            extra={
                "visit_id": str(visit.id),
                "serial_number": serial_number,
                "service_center_code": center.holder_code,
                "parts_valid": snapshot.parts_valid,
                "service_valid": snapshot.service_valid,
                "months_elapsed": snapshot.months_elapsed,
                "service_type": service_type.value,
            },
        )
        return VisitReceipt(
            visit_id=visit.id,
            serial_number=serial_number,
            service_center_code=center.holder_code,
            visit_date=visit_date,
            parts_valid=snapshot.parts_valid,
            service_valid=snapshot.service_valid,
            months_elapsed=snapshot.months_elapsed,
            service_type=service_type,
            ledger_seq=visit.ledger_seq,
        )
