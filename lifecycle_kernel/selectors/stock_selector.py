"""
Module: lifecycle_kernel.selectors.stock_selector
Responsibility: Derived stock queries.  Unit stock is the count of unsold
    units projected at a holder.  Part stock is folded from events:
        dispatched(center, code) - consumed_by_REPLACEMENT(center, code)
    REPAIR rows never reduce stock.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - The fold is the authority.  PartStockHead.quantity is an advisory cache
      that verify_stock_cache compares against the fold.
    - Both sums of a fold run inside the caller's transaction, so a fold
      read inside snapshot_scope sees one consistent state.

Failure modes:
    - HolderNotFoundError when a holder code does not resolve.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select

from lifecycle_kernel.domain.values import ReplacementType
from lifecycle_kernel.models import (
    PartDispatchEvent,
    PartDispatchLine,
    PartStockHead,
    ReplacementEvent,
    Unit,
)
from lifecycle_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PartStockLine:
    """Per part code stock summary for one service center."""

    part_code: str
    part_name: str
    total_dispatched: int
    used: int
    remaining: int


@dataclass(frozen=True)
class StockCacheCheck:
    part_code: str
    cached: int | None
    derived: int

    @property
    def in_sync(self) -> bool:
        # A missing head is rebuilt from the fold on next use
        return self.cached is None or self.cached == self.derived


class StockSelector(BaseSelector):
    """Read-only stock derivation."""

    # -- units --------------------------------------------------------------

    def unit_stock_at_holder(self, holder_code: str) -> int:
        """Number of unsold units whose projected holder is holder_code."""
        holder = self._holder_by_code(holder_code)
        return self.session.execute(
            select(func.count(Unit.id)).where(
                Unit.current_holder_id == holder.id,
                Unit.is_sold.is_(False),
            )
        ).scalar_one()

    def list_units_at_holder(self, holder_code: str) -> list[str]:
        """Serial numbers of the unsold units at a holder, sorted."""
        holder = self._holder_by_code(holder_code)
        rows = self.session.execute(
            select(Unit.serial_number)
            .where(
                Unit.current_holder_id == holder.id,
                Unit.is_sold.is_(False),
            )
            .order_by(Unit.serial_number)
        ).scalars()
        return list(rows)

    # -- parts --------------------------------------------------------------

    def _dispatched_by_code(self, service_center_id: UUID, part_code: str | None = None):
        stmt = (
            select(
                PartDispatchLine.part_code,
                func.max(PartDispatchLine.part_name),
                func.sum(PartDispatchLine.quantity),
            )
            .join(PartDispatchEvent, PartDispatchLine.part_dispatch_id == PartDispatchEvent.id)
            .where(PartDispatchEvent.service_center_id == service_center_id)
            .group_by(PartDispatchLine.part_code)
        )
        if part_code is not None:
            stmt = stmt.where(PartDispatchLine.part_code == part_code)
        return {code: (name, int(total)) for code, name, total in self.session.execute(stmt)}

    def _consumed_by_code(self, service_center_id: UUID, part_code: str | None = None):
        stmt = (
            select(ReplacementEvent.part_code, func.sum(ReplacementEvent.quantity))
            .where(
                ReplacementEvent.service_center_id == service_center_id,
                ReplacementEvent.replacement_type == ReplacementType.REPLACEMENT.value,
            )
            .group_by(ReplacementEvent.part_code)
        )
        if part_code is not None:
            stmt = stmt.where(ReplacementEvent.part_code == part_code)
        return {code: int(total) for code, total in self.session.execute(stmt)}

    def derived_part_quantity(self, service_center_id: UUID, part_code: str) -> int:
        """The authoritative fold for one (center id, part code)."""
        dispatched = self._dispatched_by_code(service_center_id, part_code)
        consumed = self._consumed_by_code(service_center_id, part_code)
        total = dispatched.get(part_code, (None, 0))[1]
        return total - consumed.get(part_code, 0)

    def part_stock(self, service_center_code: str, part_code: str) -> int:
        """Derived part stock at a service center."""
        center = self._holder_by_code(service_center_code)
        return self.derived_part_quantity(center.id, part_code)

    def part_stock_summary(self, service_center_code: str) -> list[PartStockLine]:
        """Dispatched / used / remaining per part code, sorted by code."""
        center = self._holder_by_code(service_center_code)
        dispatched = self._dispatched_by_code(center.id)
        consumed = self._consumed_by_code(center.id)

        summary = []
        for code in sorted(dispatched):
            name, total = dispatched[code]
            used = consumed.get(code, 0)
            summary.append(
                PartStockLine(
                    part_code=code,
                    part_name=name,
                    total_dispatched=total,
                    used=used,
                    remaining=total - used,
                )
            )
        return summary

    def verify_stock_cache(self, service_center_code: str) -> list[StockCacheCheck]:
        """Compare every cached head and every folded code at a center."""
        center = self._holder_by_code(service_center_code)
        dispatched = self._dispatched_by_code(center.id)
        consumed = self._consumed_by_code(center.id)
        cached = {
            head.part_code: head.quantity
            for head in self.session.execute(
                select(PartStockHead).where(PartStockHead.service_center_id == center.id)
            ).scalars()
        }

        checks = []
        for code in sorted(set(dispatched) | set(cached)):
            derived = dispatched.get(code, (None, 0))[1] - consumed.get(code, 0)
            checks.append(StockCacheCheck(part_code=code, cached=cached.get(code), derived=derived))
        return checks
