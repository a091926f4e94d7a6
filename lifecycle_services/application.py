"""
lifecycle_services.application -- command and query surface for collaborators.

Responsibility:
    The entry point the identity, catalog and presentation collaborators
    call.  Each command runs in its own ``session_scope`` (one transaction:
    commit on success, rollback on any exception) with the acting identity
    bound to the log context.  Each query runs in a ``snapshot_scope`` so a
    multi-query fold observes one consistent state.

Architecture position:
    Services -- the outermost layer.  May import lifecycle_kernel and
    lifecycle_config.  Nothing in lifecycle_kernel imports this module.

Invariants enforced:
    - A failed command leaves no partial event, projection or stock effect
      (the whole scope rolls back).
    - Rejections are never retried here; the typed kernel error propagates
      to the caller after a ``command_rejected`` log entry.

Usage:
    app = LifecycleApplication.bootstrap(get_active_config())
    app.sell_unit(actor, "INV-0001", "SN-0001", date(2024, 1, 15), "A. Customer")
    app.unit_lifecycle("SN-0001")
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date
from typing import TypeVar
from uuid import UUID, uuid4

from lifecycle_config import LifecycleConfig
from lifecycle_config.bridges import engine_kwargs_from_config, replacement_policy_from_config
from lifecycle_kernel.db.engine import init_engine_from_url, session_scope, snapshot_scope
from lifecycle_kernel.domain.clock import Clock, SystemClock
from lifecycle_kernel.domain.dtos import Actor, PartLineSpec, ReplacementRequest
from lifecycle_kernel.domain.liability import ReplacementPolicy
from lifecycle_kernel.exceptions import LifecycleKernelError
from lifecycle_kernel.logging_config import LogContext, configure_logging, get_logger
from lifecycle_kernel.selectors.lifecycle_selector import UnitLifecycle, VisitSummary
from lifecycle_kernel.selectors.stock_selector import PartStockLine, StockCacheCheck
from lifecycle_kernel.services.lifecycle_service import (
    DispatchReceipt,
    SaleReceipt,
    TransferReceipt,
    UnitRegistration,
)
from lifecycle_kernel.services.part_dispatch_service import PartDispatchReceipt
from lifecycle_kernel.services.projection_service import ProjectionCheck
from lifecycle_kernel.services.replacement_authorizer import ReplacementReceipt
from lifecycle_kernel.services.service_visit_service import VisitReceipt
from lifecycle_services.orchestrator import LifecycleOrchestrator

logger = get_logger("services.application")

T = TypeVar("T")


class LifecycleApplication:
    """Transaction-owning facade over the LifecycleOrchestrator."""

    def __init__(
        self,
        clock: Clock | None = None,
        replacement_policy: ReplacementPolicy | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._policy = replacement_policy or ReplacementPolicy()

    @classmethod
    def bootstrap(
        cls,
        config: LifecycleConfig,
        clock: Clock | None = None,
    ) -> LifecycleApplication:
        """Initialize logging and the engine from configuration."""
        configure_logging(level=config.logging.level)
        init_engine_from_url(**engine_kwargs_from_config(config))
        return cls(clock=clock, replacement_policy=replacement_policy_from_config(config))

    # -- scopes ----------------------------------------------------------------

    def _command(
        self,
        name: str,
        actor: Actor,
        work: Callable[[LifecycleOrchestrator], T],
        *,
        serial_number: str | None = None,
        visit_id: UUID | None = None,
    ) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.actor_id),
            holder_code=actor.holder_code,
            serial_number=serial_number,
            visit_id=str(visit_id) if visit_id is not None else None,
        ):
            try:
                with session_scope() as session:
                    return work(LifecycleOrchestrator(session, self._clock, self._policy))
            except LifecycleKernelError as exc:
                logger.info(
                    "command_rejected",
                    extra={"command": name, "error_code": exc.code},
                )
                raise

    def _query(self, work: Callable[[LifecycleOrchestrator], T]) -> T:
        with snapshot_scope() as session:
            return work(LifecycleOrchestrator(session, self._clock, self._policy))

    # -- commands --------------------------------------------------------------

    def register_units(
        self, actor: Actor, serial_numbers: Sequence[str], model_code: str,
    ) -> list[UnitRegistration]:
        return self._command(
            "register_units",
            actor,
            lambda o: o.lifecycle.register_units(serial_numbers, model_code, actor),
        )

    def dispatch_units(
        self,
        actor: Actor,
        dispatch_number: str,
        dealer_code: str,
        serial_numbers: Sequence[str],
        dispatch_date: date,
        remarks: str | None = None,
    ) -> DispatchReceipt:
        return self._command(
            "dispatch_units",
            actor,
            lambda o: o.lifecycle.dispatch_units(
                dispatch_number, dealer_code, serial_numbers, dispatch_date, actor, remarks,
            ),
        )

    def transfer_units(
        self,
        actor: Actor,
        from_dealer_code: str,
        to_sub_dealer_code: str,
        serial_numbers: Sequence[str],
        remarks: str | None = None,
    ) -> TransferReceipt:
        return self._command(
            "transfer_units",
            actor,
            lambda o: o.lifecycle.transfer_units(
                from_dealer_code, to_sub_dealer_code, serial_numbers, actor, remarks,
            ),
        )

    def sell_unit(
        self,
        actor: Actor,
        invoice_number: str,
        serial_number: str,
        sale_date: date,
        customer_name: str,
        customer_contact: str | None = None,
    ) -> SaleReceipt:
        return self._command(
            "sell_unit",
            actor,
            lambda o: o.lifecycle.sell_unit(
                serial_number, invoice_number, sale_date, customer_name, actor,
                customer_contact=customer_contact,
            ),
            serial_number=serial_number,
        )

    def dispatch_parts(
        self,
        actor: Actor,
        service_center_code: str,
        lines: Sequence[PartLineSpec],
        dispatch_date: date | None = None,
        remarks: str | None = None,
    ) -> PartDispatchReceipt:
        return self._command(
            "dispatch_parts",
            actor,
            lambda o: o.part_dispatch.dispatch_parts(
                service_center_code, lines, actor, dispatch_date=dispatch_date, remarks=remarks,
            ),
        )

    def open_service_visit(
        self,
        actor: Actor,
        serial_number: str,
        visit_date: date,
        reported_fault: str,
        remarks: str | None = None,
    ) -> VisitReceipt:
        return self._command(
            "open_service_visit",
            actor,
            lambda o: o.visits.open_visit(
                serial_number, visit_date, reported_fault, actor, remarks=remarks,
            ),
            serial_number=serial_number,
        )

    def record_replacement(
        self, actor: Actor, request: ReplacementRequest,
    ) -> ReplacementReceipt:
        return self._command(
            "record_replacement",
            actor,
            lambda o: o.replacements.authorize(request, actor),
            serial_number=request.serial_number,
            visit_id=request.visit_id,
        )

    def rebuild_unit_projection(self, actor: Actor, serial_number: str) -> ProjectionCheck:
        return self._command(
            "rebuild_unit_projection",
            actor,
            lambda o: o.projections.rebuild_unit(serial_number),
            serial_number=serial_number,
        )

    def reconcile_stock_cache(self, actor: Actor, service_center_code: str) -> list[StockCacheCheck]:
        return self._command(
            "reconcile_stock_cache",
            actor,
            lambda o: o.projections.reconcile_stock_cache(service_center_code),
        )

    # -- queries ---------------------------------------------------------------

    def unit_lifecycle(self, serial_number: str) -> UnitLifecycle:
        return self._query(lambda o: o.lifecycle_reader.aggregate(serial_number))

    def service_visits(self, **filters) -> list[VisitSummary]:
        return self._query(lambda o: o.lifecycle_reader.list_service_visits(**filters))

    def unit_stock(self, holder_code: str) -> int:
        return self._query(lambda o: o.stock.unit_stock_at_holder(holder_code))

    def part_stock(self, service_center_code: str, part_code: str) -> int:
        return self._query(lambda o: o.stock.part_stock(service_center_code, part_code))

    def part_stock_summary(self, service_center_code: str) -> list[PartStockLine]:
        return self._query(lambda o: o.stock.part_stock_summary(service_center_code))
