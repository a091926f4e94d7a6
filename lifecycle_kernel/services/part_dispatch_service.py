"""
PartDispatchService -- factory to service-center spare part dispatches.

Responsibility:
    Validates a dispatch of part lines, allocates its ``PD-<year>-<nnnn>``
    number, appends the dispatch and credits the stock heads of the
    receiving service center.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - Every line has a part code, a part name and quantity >= 1.
    - A part code appears at most once per dispatch.
    - The target is an active SERVICE_CENTER holder.
    - Dispatch numbers are allocated from a locked counter row per year.

Failure modes:
    - InvalidRequestError for malformed lines.
    - UnresolvedReferenceError for an unknown or non-service-center target.
    - DuplicateDispatchNumberError if an allocated number already exists.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from lifecycle_kernel.domain.clock import Clock
from lifecycle_kernel.domain.dtos import Actor, PartLineSpec
from lifecycle_kernel.domain.values import HolderKind
from lifecycle_kernel.exceptions import DuplicateDispatchNumberError, InvalidRequestError
from lifecycle_kernel.logging_config import get_logger
from lifecycle_kernel.models import PartDispatchEvent
from lifecycle_kernel.services.base import BaseService
from lifecycle_kernel.services.event_store import EventStore
from lifecycle_kernel.services.holder_service import HolderService
from lifecycle_kernel.services.sequence_service import SequenceService

logger = get_logger("services.part_dispatch")


@dataclass(frozen=True)
class PartDispatchReceipt:
    dispatch_id: UUID
    dispatch_number: str
    service_center_code: str
    dispatch_date: date
    lines: tuple[PartLineSpec, ...]
    ledger_seq: int


def _validate_lines(lines: Sequence[PartLineSpec]) -> list[PartLineSpec]:
    if not lines:
        raise InvalidRequestError("lines", "at least one part line is required")

    cleaned = []
    seen = set()
    for line in lines:
        code = (line.part_code or "").strip()
        name = (line.part_name or "").strip()
        if not code:
            raise InvalidRequestError("part_code", "must not be blank")
        if not name:
            raise InvalidRequestError("part_name", f"must not be blank for {code}")
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
            raise InvalidRequestError("quantity", f"must be an integer >= 1 for {code}")
        if code in seen:
            raise InvalidRequestError("part_code", f"{code} appears more than once")
        seen.add(code)
        cleaned.append(PartLineSpec(part_code=code, part_name=name, quantity=line.quantity))
    return cleaned


class PartDispatchService(BaseService[PartDispatchEvent]):
    """Dispatch spare parts to service centers."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        event_store: EventStore | None = None,
        holder_service: HolderService | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._sequence = sequence_service or SequenceService(session)
        self._store = event_store or EventStore(session, clock, self._sequence)
        self._holders = holder_service or HolderService(session)

    def dispatch_parts(
        self,
        service_center_code: str,
        lines: Sequence[PartLineSpec],
        actor: Actor,
        dispatch_date: date | None = None,
        remarks: str | None = None,
    ) -> PartDispatchReceipt:
        """
        Dispatch part lines to a service center.

        Args:
            service_center_code: Receiving service center.
            lines: Part lines; codes must be unique within the dispatch.
            actor: Factory actor performing the dispatch.
            dispatch_date: Defaults to the clock's current date.
            remarks: Free-text note.
        """
        cleaned = _validate_lines(lines)
        center = self._holders.resolve(service_center_code, HolderKind.SERVICE_CENTER)
        dispatch_date = dispatch_date or self._clock.today()

        dispatch_number = self._sequence.next_part_dispatch_number(dispatch_date.year)
        duplicate = self.session.execute(
            select(PartDispatchEvent.id).where(PartDispatchEvent.dispatch_number == dispatch_number)
        ).scalar_one_or_none()
        if duplicate is not None:
            raise DuplicateDispatchNumberError(dispatch_number)

        dispatch = self._store.append_part_dispatch(
            dispatch_number=dispatch_number,
            service_center_id=center.id,
            dispatch_date=dispatch_date,
            lines=cleaned,
            actor_id=actor.actor_id,
            remarks=remarks,
        )

        logger.info(
            "parts_dispatched",
            extra={
                "dispatch_number": dispatch_number,
                "service_center_code": service_center_code,
                "line_count": len(cleaned),
                "total_quantity": sum(line.quantity for line in cleaned),
            },
        )
        return PartDispatchReceipt(
            dispatch_id=dispatch.id,
            dispatch_number=dispatch_number,
            service_center_code=center.holder_code,
            dispatch_date=dispatch_date,
            lines=tuple(cleaned),
            ledger_seq=dispatch.ledger_seq,
        )
