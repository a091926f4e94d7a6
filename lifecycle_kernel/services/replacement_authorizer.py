"""
ReplacementAuthorizer -- validates and records part replacements and repairs.

Responsibility:
    Runs the ordered validation chain for a ReplacementRequest and, when
    every check passes, appends the ReplacementEvent with its cost
    liability derived from the visit's frozen warranty snapshot.

Architecture position:
    Kernel > Services.  Consumes the pure liability rules
    (domain/liability.py) and the stock fold (selectors/stock_selector.py).

Validation order (first failure wins):
    0. Request well formed                        -> InvalidRequestError
    1. Unit exists and is sold                    -> UnitNotFoundError / UnitNotSoldError
       Visit exists and is for this unit          -> ServiceVisitNotFoundError / InvalidRequestError
    2. Visit belongs to the claiming center       -> VisitOwnershipError
    3. Part dispatch supports the claim           -> DispatchLineageError
    4. REPLACEMENT only: configured policy cap    -> ReplacementLimitExceededError
    5. REPLACEMENT only: derived stock >= qty     -> InsufficientStockError
    6. Liability from the snapshot (never from the request)

Invariants enforced:
    - Derived stock never goes negative.  The stock head for (center, code)
      is locked before the fold is read and its version is bumped by the
      append, so two concurrent consumers of the last unit cannot both
      commit.
    - REPAIR never touches stock.
    - A rejected request appends nothing.

Audit relevance:
    Every outcome is logged: replacement_recorded on success,
    replacement_rejected with the error code otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lifecycle_kernel.domain.clock import Clock
from lifecycle_kernel.domain.dtos import Actor, ReplacementRequest
from lifecycle_kernel.domain.liability import ReplacementPolicy, derive_liability
from lifecycle_kernel.domain.values import CostLiability, ReplacementType
from lifecycle_kernel.exceptions import (
    DispatchLineageError,
    InsufficientStockError,
    InvalidRequestError,
    LifecycleKernelError,
    ReplacementLimitExceededError,
    ServiceVisitNotFoundError,
    UnitNotFoundError,
    UnitNotSoldError,
    VisitOwnershipError,
)
from lifecycle_kernel.logging_config import get_logger
from lifecycle_kernel.models import (
    Holder,
    PartDispatchEvent,
    PartDispatchLine,
    ReplacementEvent,
    ServiceVisit,
    Unit,
    UnitSaleEvent,
)
from lifecycle_kernel.selectors.stock_selector import StockSelector
from lifecycle_kernel.services.base import BaseService
from lifecycle_kernel.services.event_store import EventStore
from lifecycle_kernel.services.service_visit_service import service_center_of

logger = get_logger("services.replacement")


@dataclass(frozen=True)
class ReplacementReceipt:
    replacement_id: UUID
    visit_id: UUID
    serial_number: str
    part_code: str
    quantity: int
    replacement_type: ReplacementType
    cost_liability: CostLiability
    claim_eligible: bool
    remaining_stock: int | None
    ledger_seq: int


class ReplacementAuthorizer(BaseService[ReplacementEvent]):
    """
    Authorize and record replacements against service visits.

    Contract:
        ``authorize`` either appends exactly one ReplacementEvent (plus the
        stock head decrement for REPLACEMENT) or raises without writing.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        policy: ReplacementPolicy | None = None,
        event_store: EventStore | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._policy = policy or ReplacementPolicy()
        self._store = event_store or EventStore(session, clock)
        self._stock = StockSelector(session)

    # -- validation steps -----------------------------------------------------

    def _check_well_formed(self, request: ReplacementRequest) -> ReplacementType:
        quantity = request.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidRequestError("quantity", "must be an integer >= 1")
        if not request.part_code or not request.part_code.strip():
            raise InvalidRequestError("part_code", "must not be blank")
        if not request.part_name or not request.part_name.strip():
            raise InvalidRequestError("part_name", "must not be blank")
        if not request.serial_number or not request.serial_number.strip():
            raise InvalidRequestError("serial_number", "must not be blank")
        if not isinstance(request.replacement_date, date):
            raise InvalidRequestError("replacement_date", "must be a date")
        try:
            return ReplacementType(request.replacement_type)
        except ValueError:
            raise InvalidRequestError(
                "replacement_type", f"unknown type {request.replacement_type!r}",
            ) from None

    def _load_unit_and_visit(self, request: ReplacementRequest) -> tuple[Unit, ServiceVisit]:
        unit = self.session.execute(
            select(Unit)
            .where(Unit.serial_number == request.serial_number)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if unit is None:
            raise UnitNotFoundError(request.serial_number)

        sold = self.session.execute(
            select(UnitSaleEvent.id).where(UnitSaleEvent.unit_id == unit.id)
        ).scalar_one_or_none()
        if sold is None:
            raise UnitNotSoldError(request.serial_number)

        visit = self.session.get(ServiceVisit, request.visit_id)
        if visit is None:
            raise ServiceVisitNotFoundError(str(request.visit_id))
        if visit.unit_id != unit.id:
            raise InvalidRequestError(
                "visit_id",
                f"visit {request.visit_id} is not for unit {request.serial_number}",
            )
        return unit, visit

    def _check_ownership(self, actor: Actor, visit: ServiceVisit) -> Holder:
        center = service_center_of(self.session, actor)
        if visit.service_center_id != center.id:
            owner = self.session.get(Holder, visit.service_center_id)
            raise VisitOwnershipError(
                str(actor.actor_id),
                str(visit.id),
                owner.holder_code,
                center.holder_code,
            )
        return center

    def _check_lineage(self, request: ReplacementRequest, center: Holder, part_code: str) -> None:
        dispatch_id = str(request.part_dispatch_id)
        dispatch = self.session.get(PartDispatchEvent, request.part_dispatch_id)
        if dispatch is None:
            raise DispatchLineageError(dispatch_id, part_code, "part dispatch not found")
        if dispatch.service_center_id != center.id:
            raise DispatchLineageError(
                dispatch_id, part_code, "part dispatch was sent to another service center",
            )
        listed = self.session.execute(
            select(PartDispatchLine.id).where(
                PartDispatchLine.part_dispatch_id == dispatch.id,
                PartDispatchLine.part_code == part_code,
            )
        ).scalar_one_or_none()
        if listed is None:
            raise DispatchLineageError(
                dispatch_id, part_code, "part code is not listed on the dispatch",
            )

    def _check_policy(
        self, unit: Unit, part_code: str, quantity: int, replacement_type: ReplacementType,
    ) -> None:
        if replacement_type == ReplacementType.REPAIR or not self._policy.enabled:
            return
        already = self.session.execute(
            select(func.coalesce(func.sum(ReplacementEvent.quantity), 0)).where(
                ReplacementEvent.unit_id == unit.id,
                ReplacementEvent.part_code == part_code,
                ReplacementEvent.replacement_type == ReplacementType.REPLACEMENT.value,
            )
        ).scalar_one()
        if not self._policy.allows(int(already), quantity):
            raise ReplacementLimitExceededError(
                unit.serial_number,
                part_code,
                self._policy.max_replacements_per_part,
                int(already),
            )

    # -- command --------------------------------------------------------------

    def authorize(self, request: ReplacementRequest, actor: Actor) -> ReplacementReceipt:
        """
        Validate a replacement request and record it.

        Raises:
            ValidationError, NotFoundError, AuthorizationError, ConflictError
            or InsufficientStockError subclasses as listed in the module
            docstring.  OptimisticLockError if a concurrent writer changed
            the stock head between check and append.
        """
        try:
            receipt = self._authorize(request, actor)
        except LifecycleKernelError as exc:
            logger.warning(
                "replacement_rejected",
                extra={
                    "error_code": exc.code,
                    "visit_id": str(request.visit_id),
                    "serial_number": request.serial_number,
                    "part_code": request.part_code,
                    "quantity": request.quantity,
                },
            )
            raise

        logger.info(
            "replacement_recorded",
            extra={
                "replacement_id": str(receipt.replacement_id),
                "visit_id": str(receipt.visit_id),
                "serial_number": receipt.serial_number,
                "part_code": receipt.part_code,
                "quantity": receipt.quantity,
                "replacement_type": receipt.replacement_type.value,
                "cost_liability": receipt.cost_liability.value,
                "claim_eligible": receipt.claim_eligible,
                "remaining_stock": receipt.remaining_stock,
            },
        )
        return receipt

    def _authorize(self, request: ReplacementRequest, actor: Actor) -> ReplacementReceipt:
        replacement_type = self._check_well_formed(request)
        part_code = request.part_code.strip()
        part_name = request.part_name.strip()

        unit, visit = self._load_unit_and_visit(request)
        center = self._check_ownership(actor, visit)
        self._check_lineage(request, center, part_code)
        self._check_policy(unit, part_code, request.quantity, replacement_type)

        head = None
        remaining = None
        if replacement_type == ReplacementType.REPLACEMENT:
            # Lock first so the fold below cannot be overtaken by another consumer
            head = self._store.lock_stock_head(center.id, part_code, part_name)
            available = self._stock.derived_part_quantity(center.id, part_code)
            if available < request.quantity:
                raise InsufficientStockError(
                    center.holder_code, part_code, available, request.quantity,
                )
            remaining = available - request.quantity

        decision = derive_liability(visit.parts_valid)

        event = self._store.append_replacement(
            visit_id=visit.id,
            part_dispatch_id=request.part_dispatch_id,
            part_code=part_code,
            part_name=part_name,
            quantity=request.quantity,
            replacement_date=request.replacement_date,
            replacement_type=replacement_type,
            decision=decision,
            actor_id=actor.actor_id,
            stock_head=head,
        )

        return ReplacementReceipt(
            replacement_id=event.id,
            visit_id=visit.id,
            serial_number=unit.serial_number,
            part_code=part_code,
            quantity=request.quantity,
            replacement_type=replacement_type,
            cost_liability=decision.cost_liability,
            claim_eligible=decision.claim_eligible,
            remaining_stock=remaining,
            ledger_seq=event.ledger_seq,
        )
