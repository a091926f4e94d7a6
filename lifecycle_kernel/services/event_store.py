"""
EventStore -- the single writer of ledger events and their projections.

Responsibility:
    Appends every lifecycle fact (registration, dispatch, transfer, sale,
    part dispatch, service visit, replacement).  Each append resolves the
    entities it references, allocates a global ``ledger_seq``, stamps
    ``actor_id`` and ``created_at`` from the injected clock, and in the same
    flush updates the unit projection and, for part events, the stock head.

Architecture position:
    Kernel > Services -- imperative shell.  Called by LifecycleService,
    PartDispatchService, ServiceVisitService and ReplacementAuthorizer,
    which run their business checks first.  The EventStore checks only that
    references resolve; state-machine and stock rules live with the callers.

Invariants enforced:
    - Events are inserted, never updated or deleted (db/immutability.py).
    - The projection write and the event insert happen in one flush; a
      failure leaves neither behind once the caller rolls back.
    - Unit and stock head rows carry a version column.  A writer holding a
      stale copy fails with OptimisticLockError instead of overwriting a
      concurrent change.

Failure modes:
    - UnresolvedReferenceError: a referenced unit, model, holder, dispatch
      or visit id does not exist.
    - OptimisticLockError: StaleDataError raised during flush.
    - IntegrityError: a unique constraint caught a concurrent duplicate.

Audit relevance:
    Every append is logged at DEBUG with its ledger_seq.  The ledger_seq
    order is the replay order used by ProjectionService.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from lifecycle_kernel.domain import projection as proj
from lifecycle_kernel.domain.clock import Clock
from lifecycle_kernel.domain.dtos import PartLineSpec
from lifecycle_kernel.domain.liability import LiabilityDecision
from lifecycle_kernel.domain.values import ReplacementType, ServiceType, UnitState
from lifecycle_kernel.domain.warranty import WarrantySnapshot, WarrantyWindow
from lifecycle_kernel.exceptions import OptimisticLockError, UnresolvedReferenceError
from lifecycle_kernel.logging_config import get_logger
from lifecycle_kernel.models import (
    Holder,
    PartDispatchEvent,
    PartDispatchLine,
    PartStockHead,
    ProductModel,
    ReplacementEvent,
    ServiceVisit,
    Unit,
    UnitDispatchEvent,
    UnitDispatchLine,
    UnitSaleEvent,
    UnitTransferEvent,
)
from lifecycle_kernel.selectors.stock_selector import StockSelector
from lifecycle_kernel.services.base import BaseService
from lifecycle_kernel.services.sequence_service import SequenceService

logger = get_logger("services.event_store")


def projection_of(unit: Unit) -> proj.UnitProjection:
    """Read the stored projection columns of a unit."""
    return proj.UnitProjection(
        holder_id=unit.current_holder_id,
        state=UnitState(unit.state),
        is_sold=unit.is_sold,
        sale_date=unit.sale_date,
        dispatch_event_id=unit.dispatch_event_id,
        projection_seq=unit.projection_seq,
    )


def apply_projection(unit: Unit, projection: proj.UnitProjection) -> None:
    """Write a projection onto a unit row.  The version column is managed by the mapper."""
    unit.current_holder_id = projection.holder_id
    unit.state = projection.state.value
    unit.is_sold = projection.is_sold
    unit.sale_date = projection.sale_date
    unit.dispatch_event_id = projection.dispatch_event_id
    unit.projection_seq = projection.projection_seq


class EventStore(BaseService):
    """
    Append-only writer for every ledger table.

    Contract:
        Callers pass ids of entities they already validated (and usually
        locked).  ``session.get`` returns those rows from the identity map,
        so resolution costs no extra query on the hot path.

    Non-goals:
        - Does NOT enforce lifecycle transitions or stock sufficiency.
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._sequence = sequence_service or SequenceService(session)

    # -- helpers ------------------------------------------------------------

    def _resolve(self, model, entity_id: UUID, entity_type: str):
        obj = self.session.get(model, entity_id)
        if obj is None:
            raise UnresolvedReferenceError(entity_type, str(entity_id))
        return obj

    def _flush(self, entity_type: str, entity_id) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "optimistic_lock_conflict",
                extra={"entity_type": entity_type, "entity_id": str(entity_id)},
            )
            raise OptimisticLockError(entity_type, str(entity_id)) from exc

    def _stamp(self) -> tuple[int, datetime]:
        return self._sequence.next_ledger_seq(), self._clock.now()

    # -- stock heads --------------------------------------------------------

    def lock_stock_head(
        self,
        service_center_id: UUID,
        part_code: str,
        part_name: str,
    ) -> PartStockHead:
        """
        Load the stock head for (center, part code) FOR UPDATE, creating it
        from the derived fold when it does not exist yet.
        """
        stmt = (
            select(PartStockHead)
            .where(
                PartStockHead.service_center_id == service_center_id,
                PartStockHead.part_code == part_code,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        head = self.session.execute(stmt).scalar_one_or_none()
        if head is not None:
            return head

        derived = StockSelector(self.session).derived_part_quantity(
            service_center_id, part_code,
        )
        savepoint = self.session.begin_nested()
        try:
            head = PartStockHead(
                service_center_id=service_center_id,
                part_code=part_code,
                part_name=part_name,
                quantity=derived,
                last_ledger_seq=self._sequence.current_value(SequenceService.LEDGER_EVENT) or 0,
            )
            self.session.add(head)
            self.session.flush()
            savepoint.commit()
            return head
        except IntegrityError:
            # Another writer created it first
            savepoint.rollback()
            return self.session.execute(stmt).scalar_one()

    # -- units ----------------------------------------------------------------

    def register_unit(
        self,
        serial_number: str,
        model_id: UUID,
        holder_id: UUID,
        actor_id: UUID,
    ) -> Unit:
        self._resolve(ProductModel, model_id, "ProductModel")
        self._resolve(Holder, holder_id, "Holder")

        seq, now = self._stamp()
        unit = Unit(
            id=uuid4(),
            serial_number=serial_number,
            model_id=model_id,
            registered_at=now,
            registered_by_id=actor_id,
            ledger_seq=seq,
            origin_holder_id=holder_id,
        )
        apply_projection(unit, proj.registered(holder_id, seq))
        self.session.add(unit)
        self._flush("Unit", serial_number)

        logger.debug(
            "unit_registered",
            extra={"serial_number": serial_number, "ledger_seq": seq},
        )
        return unit

    def append_unit_dispatch(
        self,
        dispatch_number: str,
        dealer_id: UUID,
        unit_ids: Sequence[UUID],
        dispatch_date: date,
        actor_id: UUID,
        remarks: str | None = None,
    ) -> UnitDispatchEvent:
        self._resolve(Holder, dealer_id, "Holder")
        units = [self._resolve(Unit, unit_id, "Unit") for unit_id in unit_ids]

        seq, now = self._stamp()
        dispatch = UnitDispatchEvent(
            id=uuid4(),
            dispatch_number=dispatch_number,
            dealer_id=dealer_id,
            dispatch_date=dispatch_date,
            remarks=remarks,
            ledger_seq=seq,
            actor_id=actor_id,
            created_at=now,
        )
        self.session.add(dispatch)
        self._flush("UnitDispatchEvent", dispatch_number)

        for unit in units:
            self.session.add(UnitDispatchLine(dispatch_event_id=dispatch.id, unit_id=unit.id))
            apply_projection(
                unit,
                proj.dispatched(projection_of(unit), dealer_id, dispatch.id, seq),
            )
        self._flush("Unit", ",".join(u.serial_number for u in units))

        logger.debug(
            "unit_dispatch_appended",
            extra={
                "dispatch_number": dispatch_number,
                "unit_count": len(units),
                "ledger_seq": seq,
            },
        )
        return dispatch

    def append_unit_transfer(
        self,
        unit_id: UUID,
        from_dealer_id: UUID,
        to_sub_dealer_id: UUID,
        actor_id: UUID,
        remarks: str | None = None,
    ) -> UnitTransferEvent:
        unit = self._resolve(Unit, unit_id, "Unit")
        self._resolve(Holder, from_dealer_id, "Holder")
        self._resolve(Holder, to_sub_dealer_id, "Holder")

        seq, now = self._stamp()
        transfer = UnitTransferEvent(
            id=uuid4(),
            unit_id=unit.id,
            from_dealer_id=from_dealer_id,
            to_sub_dealer_id=to_sub_dealer_id,
            remarks=remarks,
            ledger_seq=seq,
            actor_id=actor_id,
            created_at=now,
        )
        self.session.add(transfer)
        apply_projection(unit, proj.transferred(projection_of(unit), to_sub_dealer_id, seq))
        self._flush("Unit", unit.serial_number)

        logger.debug(
            "unit_transfer_appended",
            extra={"serial_number": unit.serial_number, "ledger_seq": seq},
        )
        return transfer

    def append_unit_sale(
        self,
        unit_id: UUID,
        seller_holder_id: UUID,
        invoice_number: str,
        sale_date: date,
        customer_name: str,
        actor_id: UUID,
        customer_contact: str | None = None,
    ) -> UnitSaleEvent:
        unit = self._resolve(Unit, unit_id, "Unit")
        self._resolve(Holder, seller_holder_id, "Holder")

        seq, now = self._stamp()
        sale = UnitSaleEvent(
            id=uuid4(),
            unit_id=unit.id,
            seller_holder_id=seller_holder_id,
            invoice_number=invoice_number,
            sale_date=sale_date,
            customer_name=customer_name,
            customer_contact=customer_contact,
            ledger_seq=seq,
            actor_id=actor_id,
            created_at=now,
        )
        self.session.add(sale)
        apply_projection(unit, proj.sold(projection_of(unit), sale_date, seq))
        self._flush("Unit", unit.serial_number)

        logger.debug(
            "unit_sale_appended",
            extra={"serial_number": unit.serial_number, "ledger_seq": seq},
        )
        return sale

    # -- parts and service ----------------------------------------------------

    def append_part_dispatch(
        self,
        dispatch_number: str,
        service_center_id: UUID,
        dispatch_date: date,
        lines: Sequence[PartLineSpec],
        actor_id: UUID,
        remarks: str | None = None,
    ) -> PartDispatchEvent:
        self._resolve(Holder, service_center_id, "Holder")

        # Heads are locked in part code order before the ledger counter, the
        # same order the replacement path takes.  The lines are not visible
        # yet, so a newly created head is derived without this dispatch.
        names = {}
        for line in lines:
            names.setdefault(line.part_code, line.part_name)
        heads = {
            code: self.lock_stock_head(service_center_id, code, names[code])
            for code in sorted(names)
        }

        seq, now = self._stamp()
        dispatch = PartDispatchEvent(
            id=uuid4(),
            dispatch_number=dispatch_number,
            service_center_id=service_center_id,
            dispatch_date=dispatch_date,
            remarks=remarks,
            ledger_seq=seq,
            actor_id=actor_id,
            created_at=now,
        )
        self.session.add(dispatch)
        self._flush("PartDispatchEvent", dispatch_number)

        for line in lines:
            self.session.add(
                PartDispatchLine(
                    part_dispatch_id=dispatch.id,
                    part_code=line.part_code,
                    part_name=line.part_name,
                    quantity=line.quantity,
                )
            )
            head = heads[line.part_code]
            head.quantity += line.quantity
            head.last_ledger_seq = seq
        self._flush("PartStockHead", dispatch_number)

        logger.debug(
            "part_dispatch_appended",
            extra={
                "dispatch_number": dispatch_number,
                "line_count": len(lines),
                "ledger_seq": seq,
            },
        )
        return dispatch

    def append_service_visit(
        self,
        unit_id: UUID,
        service_center_id: UUID,
        visit_date: date,
        reported_fault: str,
        snapshot: WarrantySnapshot,
        window: WarrantyWindow,
        actor_id: UUID,
        remarks: str | None = None,
    ) -> ServiceVisit:
        unit = self._resolve(Unit, unit_id, "Unit")
        self._resolve(Holder, service_center_id, "Holder")

        seq, now = self._stamp()
        visit = ServiceVisit(
            id=uuid4(),
            unit_id=unit.id,
            service_center_id=service_center_id,
            visit_date=visit_date,
            reported_fault=reported_fault,
            remarks=remarks,
            parts_valid=snapshot.parts_valid,
            service_valid=snapshot.service_valid,
            months_elapsed=snapshot.months_elapsed,
            parts_months=window.parts_months,
            service_months=window.service_months,
            service_type=(ServiceType.FREE if snapshot.parts_valid else ServiceType.PAID).value,
            ledger_seq=seq,
            actor_id=actor_id,
            created_at=now,
        )
        self.session.add(visit)
        self._flush("ServiceVisit", visit.id)

        logger.debug(
            "service_visit_appended",
            extra={"serial_number": unit.serial_number, "ledger_seq": seq},
        )
        return visit

    def append_replacement(
        self,
        visit_id: UUID,
        part_dispatch_id: UUID,
        part_code: str,
        part_name: str,
        quantity: int,
        replacement_date: date,
        replacement_type: ReplacementType,
        decision: LiabilityDecision,
        actor_id: UUID,
        stock_head: PartStockHead | None = None,
    ) -> ReplacementEvent:
        """
        Append a replacement or repair against a visit.

        For REPLACEMENT the stock head is decremented in the same flush; pass
        the head already locked by the caller's stock check.  REPAIR has no
        stock effect.
        """
        visit = self._resolve(ServiceVisit, visit_id, "ServiceVisit")
        self._resolve(PartDispatchEvent, part_dispatch_id, "PartDispatchEvent")

        head = None
        if replacement_type == ReplacementType.REPLACEMENT:
            head = stock_head or self.lock_stock_head(
                visit.service_center_id, part_code, part_name,
            )

        seq, now = self._stamp()
        event = ReplacementEvent(
            id=uuid4(),
            visit_id=visit.id,
            unit_id=visit.unit_id,
            service_center_id=visit.service_center_id,
            part_dispatch_id=part_dispatch_id,
            part_code=part_code,
            part_name=part_name,
            quantity=quantity,
            replacement_date=replacement_date,
            replacement_type=replacement_type.value,
            cost_liability=decision.cost_liability.value,
            claim_eligible=decision.claim_eligible,
            ledger_seq=seq,
            actor_id=actor_id,
            created_at=now,
        )
        self.session.add(event)

        if head is not None:
            head.quantity -= quantity
            head.last_ledger_seq = seq
            self._flush("PartStockHead", f"{visit.service_center_id}:{part_code}")
        else:
            self._flush("ReplacementEvent", event.id)

        logger.debug(
            "replacement_appended",
            extra={
                "visit_id": str(visit.id),
                "part_code": part_code,
                "replacement_type": replacement_type.value,
                "ledger_seq": seq,
            },
        )
        return event
