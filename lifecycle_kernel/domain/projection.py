"""
Unit projection fold -- pure rules for deriving a unit's current state.

Responsibility:
    Computes the projected (holder, state, sold flag, sale date) of a unit
    from its registration and its ownership events.  The EventStore applies
    one step per appended event; the ProjectionService replays every event
    in ledger_seq order and compares the result with the stored row.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Folding the same events in the same order always yields the same
      projection.
    - A sale does not change the holder: the unit stays recorded against
      its last custodian, with is_sold=True.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import date
from uuid import UUID

from lifecycle_kernel.domain.values import UnitState


@dataclass(frozen=True)
class UnitProjection:
    holder_id: UUID
    state: UnitState
    is_sold: bool
    sale_date: date | None
    dispatch_event_id: UUID | None
    projection_seq: int


def registered(holder_id: UUID, ledger_seq: int) -> UnitProjection:
    return UnitProjection(
        holder_id=holder_id,
        state=UnitState.AT_FACTORY,
        is_sold=False,
        sale_date=None,
        dispatch_event_id=None,
        projection_seq=ledger_seq,
    )


def dispatched(
    current: UnitProjection,
    dealer_id: UUID,
    dispatch_event_id: UUID,
    ledger_seq: int,
) -> UnitProjection:
    return replace(
        current,
        holder_id=dealer_id,
        state=UnitState.DISPATCHED_TO_DEALER,
        dispatch_event_id=dispatch_event_id,
        projection_seq=ledger_seq,
    )


def transferred(current: UnitProjection, sub_dealer_id: UUID, ledger_seq: int) -> UnitProjection:
    return replace(
        current,
        holder_id=sub_dealer_id,
        state=UnitState.TRANSFERRED_TO_SUBDEALER,
        projection_seq=ledger_seq,
    )


def sold(current: UnitProjection, sale_date: date, ledger_seq: int) -> UnitProjection:
    return replace(
        current,
        state=UnitState.SOLD,
        is_sold=True,
        sale_date=sale_date,
        projection_seq=ledger_seq,
    )


def differences(expected: UnitProjection, actual: UnitProjection) -> tuple[str, ...]:
    """Names of the fields where two projections disagree."""
    return tuple(
        f.name
        for f in fields(UnitProjection)
        if getattr(expected, f.name) != getattr(actual, f.name)
    )
