"""
Lifecycle state machine -- pure transition rules for unit ownership.

Responsibility:
    Declares the legal ownership transitions of a unit and the guards that
    protect them.  The LifecycleService applies these rules to the locked
    unit projection before appending an event.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Transitions:
    AT_FACTORY               --dispatch-->  DISPATCHED_TO_DEALER
    DISPATCHED_TO_DEALER     --transfer-->  TRANSFERRED_TO_SUBDEALER
    any state except SOLD    --sale----->   SOLD

Failure modes (all ConflictError subclasses):
    - UnitAlreadySoldError: any movement or resale after SOLD.
    - UnitAlreadyDispatchedError: a second factory dispatch.
    - HolderMismatchError: transfer from a dealer that no longer holds the unit.
    - IllegalTransitionError: any other edge not listed above.
"""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from lifecycle_kernel.domain.values import UnitState
from lifecycle_kernel.exceptions import (
    HolderMismatchError,
    IllegalTransitionError,
    UnitAlreadyDispatchedError,
    UnitAlreadySoldError,
)


class LifecycleAction(str, Enum):
    DISPATCH = "dispatch"
    TRANSFER = "transfer"
    SALE = "sale"


TRANSITIONS: dict[LifecycleAction, tuple[frozenset[UnitState], UnitState]] = {
    LifecycleAction.DISPATCH: (
        frozenset({UnitState.AT_FACTORY}),
        UnitState.DISPATCHED_TO_DEALER,
    ),
    LifecycleAction.TRANSFER: (
        frozenset({UnitState.DISPATCHED_TO_DEALER}),
        UnitState.TRANSFERRED_TO_SUBDEALER,
    ),
    LifecycleAction.SALE: (
        frozenset({
            UnitState.AT_FACTORY,
            UnitState.DISPATCHED_TO_DEALER,
            UnitState.TRANSFERRED_TO_SUBDEALER,
        }),
        UnitState.SOLD,
    ),
}


def next_state(
    serial_number: str,
    current: UnitState,
    action: LifecycleAction,
) -> UnitState:
    """
    Return the state reached by applying action, or raise a ConflictError.

    SOLD is checked first so that every post-sale attempt reports the same
    UnitAlreadySoldError regardless of action.
    """
    if current == UnitState.SOLD:
        raise UnitAlreadySoldError(serial_number)

    allowed_from, target = TRANSITIONS[action]
    if current in allowed_from:
        return target

    if action == LifecycleAction.DISPATCH:
        raise UnitAlreadyDispatchedError(serial_number, current.value)
    raise IllegalTransitionError(serial_number, current.value, target.value)


def check_holder(
    serial_number: str,
    current_holder_id: UUID | None,
    expected_holder_id: UUID,
    *,
    current_holder_code: str | None = None,
    expected_holder_code: str | None = None,
) -> None:
    """Guard: the party moving a unit must be its current projected holder."""
    if current_holder_id != expected_holder_id:
        raise HolderMismatchError(
            serial_number,
            expected_holder_code or str(expected_holder_id),
            current_holder_code or (str(current_holder_id) if current_holder_id else None),
        )
