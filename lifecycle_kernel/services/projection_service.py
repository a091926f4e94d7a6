"""
ProjectionService -- rebuilds derived state from the event ledger.

Responsibility:
    The unit projection and the part stock heads are caches of facts held
    in the event tables.  This service replays those facts and reports or
    repairs any drift:

        verify_unit            replay one unit, compare, write nothing
        rebuild_unit           replay one unit, overwrite the stored projection
        reconcile_stock_cache  rewrite a center's cached stock from the fold

Architecture position:
    Kernel > Services.

Invariants enforced:
    - Replay order is ledger_seq order.
    - The replay uses the same fold functions as the EventStore
      (domain/projection.py), so a projection built incrementally and one
      rebuilt from scratch agree.

Audit relevance:
    Drift is logged at WARNING (projection_drift_detected,
    stock_cache_drift_detected) before it is repaired.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from lifecycle_kernel.domain import projection as proj
from lifecycle_kernel.exceptions import UnitNotFoundError
from lifecycle_kernel.logging_config import get_logger
from lifecycle_kernel.models import (
    Holder,
    PartStockHead,
    Unit,
    UnitDispatchEvent,
    UnitDispatchLine,
    UnitSaleEvent,
    UnitTransferEvent,
)
from lifecycle_kernel.selectors.stock_selector import StockCacheCheck, StockSelector
from lifecycle_kernel.services.base import BaseService
from lifecycle_kernel.services.event_store import apply_projection, projection_of
from lifecycle_kernel.services.sequence_service import SequenceService

logger = get_logger("services.projection")


@dataclass(frozen=True)
class ProjectionCheck:
    serial_number: str
    expected: proj.UnitProjection
    stored: proj.UnitProjection
    differences: tuple[str, ...]

    @property
    def in_sync(self) -> bool:
        return not self.differences


class ProjectionService(BaseService[Unit]):
    """Replay and repair of derived state."""

    def __init__(self, session: Session):
        super().__init__(session)
        self._stock = StockSelector(session)

    def _unit(self, serial_number: str, *, lock: bool = False) -> Unit:
        stmt = select(Unit).where(Unit.serial_number == serial_number)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        unit = self.session.execute(stmt).scalar_one_or_none()
        if unit is None:
            raise UnitNotFoundError(serial_number)
        return unit

    def replay(self, unit: Unit) -> proj.UnitProjection:
        """Fold a unit's registration and ownership events in ledger order."""
        steps = []

        dispatches = self.session.execute(
            select(UnitDispatchEvent)
            .join(UnitDispatchLine, UnitDispatchLine.dispatch_event_id == UnitDispatchEvent.id)
            .where(UnitDispatchLine.unit_id == unit.id)
        ).scalars()
        for d in dispatches:
            steps.append((d.ledger_seq, lambda p, d=d: proj.dispatched(p, d.dealer_id, d.id, d.ledger_seq)))

        transfers = self.session.execute(
            select(UnitTransferEvent).where(UnitTransferEvent.unit_id == unit.id)
        ).scalars()
        for t in transfers:
            steps.append((t.ledger_seq, lambda p, t=t: proj.transferred(p, t.to_sub_dealer_id, t.ledger_seq)))

        sales = self.session.execute(
            select(UnitSaleEvent).where(UnitSaleEvent.unit_id == unit.id)
        ).scalars()
        for s in sales:
            steps.append((s.ledger_seq, lambda p, s=s: proj.sold(p, s.sale_date, s.ledger_seq)))

        state = proj.registered(unit.origin_holder_id, unit.ledger_seq)
        for _, step in sorted(steps, key=lambda item: item[0]):
            state = step(state)
        return state

    def verify_unit(self, serial_number: str) -> ProjectionCheck:
        """Compare the stored projection with a full replay.  Writes nothing."""
        unit = self._unit(serial_number)
        expected = self.replay(unit)
        stored = projection_of(unit)
        return ProjectionCheck(
            serial_number=serial_number,
            expected=expected,
            stored=stored,
            differences=proj.differences(expected, stored),
        )

    def rebuild_unit(self, serial_number: str) -> ProjectionCheck:
        """
        Overwrite the stored projection with the replayed one.

        Returns the check taken before the repair.
        """
        unit = self._unit(serial_number, lock=True)
        expected = self.replay(unit)
        stored = projection_of(unit)
        check = ProjectionCheck(
            serial_number=serial_number,
            expected=expected,
            stored=stored,
            differences=proj.differences(expected, stored),
        )
        if check.in_sync:
            return check

        logger.warning(
            "projection_drift_detected",
            extra={"serial_number": serial_number, "fields": list(check.differences)},
        )
        apply_projection(unit, expected)
        self.session.flush()
        logger.info("projection_rebuilt", extra={"serial_number": serial_number})
        return check

    def reconcile_stock_cache(self, service_center_code: str) -> list[StockCacheCheck]:
        """
        Rewrite every cached stock quantity at a center from the fold.

        The heads are locked before the fold is read, so a replacement or
        dispatch cannot commit between the two.  A code without a head is
        left alone; the next writer creates it from the fold.

        Returns the checks taken before the repair.
        """
        center_id = self.session.execute(
            select(Holder.id).where(Holder.holder_code == service_center_code)
        ).scalar_one()
        heads = {
            head.part_code: head
            for head in self.session.execute(
                select(PartStockHead)
                .where(PartStockHead.service_center_id == center_id)
                .order_by(PartStockHead.part_code)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        }

        checks = self._stock.verify_stock_cache(service_center_code)
        current_seq = SequenceService(self.session).current_value(SequenceService.LEDGER_EVENT) or 0
        for check in checks:
            if check.in_sync or check.part_code not in heads:
                continue
            logger.warning(
                "stock_cache_drift_detected",
                extra={
                    "service_center_code": service_center_code,
                    "part_code": check.part_code,
                    "cached": check.cached,
                    "derived": check.derived,
                },
            )
            head = heads[check.part_code]
            head.quantity = check.derived
            head.last_ledger_seq = current_seq
        self.session.flush()
        return checks
