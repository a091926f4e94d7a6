"""
Module: lifecycle_kernel.selectors.lifecycle_selector
Responsibility: Assembles the full lifecycle of one unit (registration,
    dispatch, transfers, sale, live warranty status, service visits with
    their replacements) and lists service visits for presentation filters.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Idempotent: the same history and the same clock give equal output.
      Every DTO is a frozen dataclass; every collection is a tuple ordered
      by ledger_seq.
    - Visit snapshots are returned as stored, never re-evaluated.  Only the
      top-level warranty status is computed live, against clock.today().

Failure modes:
    - UnitNotFoundError when the serial resolves to no unit.  A unit with no
      events returns empty collections, never an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lifecycle_kernel.domain.clock import Clock
from lifecycle_kernel.domain.values import (
    CostLiability,
    HolderKind,
    ReplacementType,
    ServiceType,
    UnitState,
)
from lifecycle_kernel.domain.warranty import WarrantyStatus, WarrantyWindow, warranty_status
from lifecycle_kernel.exceptions import UnitNotFoundError
from lifecycle_kernel.models import (
    Holder,
    PartDispatchEvent,
    ProductModel,
    ReplacementEvent,
    ServiceVisit,
    Unit,
    UnitDispatchEvent,
    UnitDispatchLine,
    UnitSaleEvent,
    UnitTransferEvent,
)
from lifecycle_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class RegistrationInfo:
    serial_number: str
    model_code: str
    brand: str
    product_line: str
    variant: str
    warranty: WarrantyWindow
    registered_at: datetime
    ledger_seq: int


@dataclass(frozen=True)
class DispatchInfo:
    dispatch_number: str
    dealer_code: str
    dispatch_date: date
    ledger_seq: int


@dataclass(frozen=True)
class TransferInfo:
    from_dealer_code: str
    to_sub_dealer_code: str
    transferred_at: datetime
    remarks: str | None
    ledger_seq: int


@dataclass(frozen=True)
class SaleInfo:
    invoice_number: str
    sale_date: date
    customer_name: str
    customer_contact: str | None
    seller_code: str
    ledger_seq: int


@dataclass(frozen=True)
class ReplacementInfo:
    replacement_id: UUID
    part_code: str
    part_name: str
    quantity: int
    replacement_date: date
    replacement_type: ReplacementType
    cost_liability: CostLiability
    claim_eligible: bool
    part_dispatch_number: str
    ledger_seq: int


@dataclass(frozen=True)
class VisitInfo:
    visit_id: UUID
    service_center_code: str
    visit_date: date
    reported_fault: str
    parts_valid: bool
    service_valid: bool
    months_elapsed: int
    service_type: ServiceType
    replacements: tuple[ReplacementInfo, ...]
    ledger_seq: int


@dataclass(frozen=True)
class UnitLifecycle:
    """Everything known about one unit, as of the clock's current date."""

    registration: RegistrationInfo
    state: UnitState
    current_holder_code: str
    dispatch: DispatchInfo | None
    transfers: tuple[TransferInfo, ...]
    sale: SaleInfo | None
    sold_from: HolderKind | None
    warranty: WarrantyStatus
    visits: tuple[VisitInfo, ...]

    @property
    def visit_count(self) -> int:
        return len(self.visits)


@dataclass(frozen=True)
class VisitSummary:
    """One row of a service visit listing."""

    visit_id: UUID
    serial_number: str
    service_center_code: str
    visit_date: date
    reported_fault: str
    parts_valid: bool
    service_type: ServiceType
    replacement_count: int


class LifecycleSelector(BaseSelector):
    """Read-only lifecycle aggregation."""

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session)
        self._clock = clock
        self._holder_codes: dict[UUID, str] = {}

    def _code(self, holder_id: UUID) -> str:
        if holder_id not in self._holder_codes:
            self._holder_codes[holder_id] = self.session.get(Holder, holder_id).holder_code
        return self._holder_codes[holder_id]

    def aggregate(self, serial_number: str) -> UnitLifecycle:
        """
        Full lifecycle of a unit.

        Raises:
            UnitNotFoundError: unknown serial.
        """
        unit = self.session.execute(
            select(Unit).where(Unit.serial_number == serial_number)
        ).scalar_one_or_none()
        if unit is None:
            raise UnitNotFoundError(serial_number)

        model = self.session.get(ProductModel, unit.model_id)
        window = WarrantyWindow(model.parts_months, model.service_months)
        registration = RegistrationInfo(
            serial_number=unit.serial_number,
            model_code=model.model_code,
            brand=model.brand,
            product_line=model.product_line,
            variant=model.variant,
            warranty=window,
            registered_at=unit.registered_at,
            ledger_seq=unit.ledger_seq,
        )

        dispatch_row = self.session.execute(
            select(UnitDispatchEvent)
            .join(UnitDispatchLine, UnitDispatchLine.dispatch_event_id == UnitDispatchEvent.id)
            .where(UnitDispatchLine.unit_id == unit.id)
        ).scalar_one_or_none()
        dispatch = None
        if dispatch_row is not None:
            dispatch = DispatchInfo(
                dispatch_number=dispatch_row.dispatch_number,
                dealer_code=self._code(dispatch_row.dealer_id),
                dispatch_date=dispatch_row.dispatch_date,
                ledger_seq=dispatch_row.ledger_seq,
            )

        transfers = tuple(
            TransferInfo(
                from_dealer_code=self._code(t.from_dealer_id),
                to_sub_dealer_code=self._code(t.to_sub_dealer_id),
                transferred_at=t.created_at,
                remarks=t.remarks,
                ledger_seq=t.ledger_seq,
            )
            for t in self.session.execute(
                select(UnitTransferEvent)
                .where(UnitTransferEvent.unit_id == unit.id)
                .order_by(UnitTransferEvent.ledger_seq)
            ).scalars()
        )

        sale_row = self.session.execute(
            select(UnitSaleEvent).where(UnitSaleEvent.unit_id == unit.id)
        ).scalar_one_or_none()
        sale = None
        sold_from = None
        if sale_row is not None:
            seller = self.session.get(Holder, sale_row.seller_holder_id)
            sold_from = HolderKind(seller.kind)
            sale = SaleInfo(
                invoice_number=sale_row.invoice_number,
                sale_date=sale_row.sale_date,
                customer_name=sale_row.customer_name,
                customer_contact=sale_row.customer_contact,
                seller_code=seller.holder_code,
                ledger_seq=sale_row.ledger_seq,
            )

        status = warranty_status(
            sale.sale_date if sale else None,
            window,
            self._clock.today(),
        )

        return UnitLifecycle(
            registration=registration,
            state=UnitState(unit.state),
            current_holder_code=self._code(unit.current_holder_id),
            dispatch=dispatch,
            transfers=transfers,
            sale=sale,
            sold_from=sold_from,
            warranty=status,
            visits=self._visits(unit.id),
        )

    def _visits(self, unit_id: UUID) -> tuple[VisitInfo, ...]:
        visits = self.session.execute(
            select(ServiceVisit)
            .where(ServiceVisit.unit_id == unit_id)
            .order_by(ServiceVisit.ledger_seq)
        ).scalars().all()
        if not visits:
            return ()

        rows = self.session.execute(
            select(ReplacementEvent, PartDispatchEvent.dispatch_number)
            .join(PartDispatchEvent, ReplacementEvent.part_dispatch_id == PartDispatchEvent.id)
            .where(ReplacementEvent.unit_id == unit_id)
            .order_by(ReplacementEvent.ledger_seq)
        ).all()
        by_visit: dict[UUID, list[ReplacementInfo]] = {}
        for event, dispatch_number in rows:
            by_visit.setdefault(event.visit_id, []).append(
                ReplacementInfo(
                    replacement_id=event.id,
                    part_code=event.part_code,
                    part_name=event.part_name,
                    quantity=event.quantity,
                    replacement_date=event.replacement_date,
                    replacement_type=ReplacementType(event.replacement_type),
                    cost_liability=CostLiability(event.cost_liability),
                    claim_eligible=event.claim_eligible,
                    part_dispatch_number=dispatch_number,
                    ledger_seq=event.ledger_seq,
                )
            )

        return tuple(
            VisitInfo(
                visit_id=v.id,
                service_center_code=self._code(v.service_center_id),
                visit_date=v.visit_date,
                reported_fault=v.reported_fault,
                parts_valid=v.parts_valid,
                service_valid=v.service_valid,
                months_elapsed=v.months_elapsed,
                service_type=ServiceType(v.service_type),
                replacements=tuple(by_visit.get(v.id, ())),
                ledger_seq=v.ledger_seq,
            )
            for v in visits
        )

    def list_service_visits(
        self,
        service_center_code: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        in_warranty: bool | None = None,
        serial_number: str | None = None,
    ) -> list[VisitSummary]:
        """
        Service visits matching every given filter, newest visit date first.

        in_warranty filters on the frozen parts snapshot.  Date bounds are
        inclusive.
        """
        replacement_count = (
            select(func.count(ReplacementEvent.id))
            .where(ReplacementEvent.visit_id == ServiceVisit.id)
            .correlate(ServiceVisit)
            .scalar_subquery()
        )
        stmt = (
            select(ServiceVisit, Unit.serial_number, replacement_count)
            .join(Unit, ServiceVisit.unit_id == Unit.id)
            .order_by(ServiceVisit.visit_date.desc(), ServiceVisit.ledger_seq.desc())
        )
        if service_center_code is not None:
            center = self._holder_by_code(service_center_code)
            stmt = stmt.where(ServiceVisit.service_center_id == center.id)
        if from_date is not None:
            stmt = stmt.where(ServiceVisit.visit_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(ServiceVisit.visit_date <= to_date)
        if in_warranty is not None:
            stmt = stmt.where(ServiceVisit.parts_valid.is_(in_warranty))
        if serial_number is not None:
            stmt = stmt.where(Unit.serial_number == serial_number)

        return [
            VisitSummary(
                visit_id=visit.id,
                serial_number=serial,
                service_center_code=self._code(visit.service_center_id),
                visit_date=visit.visit_date,
                reported_fault=visit.reported_fault,
                parts_valid=visit.parts_valid,
                service_type=ServiceType(visit.service_type),
                replacement_count=count,
            )
            for visit, serial, count in self.session.execute(stmt).all()
        ]
