"""Tests for the unit state machine (domain/lifecycle.py)."""

from uuid import uuid4

import pytest

from lifecycle_kernel.domain.lifecycle import LifecycleAction, check_holder, next_state
from lifecycle_kernel.domain.values import UnitState
from lifecycle_kernel.exceptions import (
    ConflictError,
    HolderMismatchError,
    IllegalTransitionError,
    UnitAlreadyDispatchedError,
    UnitAlreadySoldError,
)


class TestNextState:

    @pytest.mark.parametrize(
        "current, action, expected",
        [
            (UnitState.AT_FACTORY, LifecycleAction.DISPATCH, UnitState.DISPATCHED_TO_DEALER),
            (UnitState.DISPATCHED_TO_DEALER, LifecycleAction.TRANSFER, UnitState.TRANSFERRED_TO_SUBDEALER),
            (UnitState.AT_FACTORY, LifecycleAction.SALE, UnitState.SOLD),
            (UnitState.DISPATCHED_TO_DEALER, LifecycleAction.SALE, UnitState.SOLD),
            (UnitState.TRANSFERRED_TO_SUBDEALER, LifecycleAction.SALE, UnitState.SOLD),
        ],
    )
    def test_legal_transitions(self, current, action, expected):
        assert next_state("SN-1", current, action) == expected

    @pytest.mark.parametrize("action", list(LifecycleAction))
    def test_sold_is_terminal(self, action):
        with pytest.raises(UnitAlreadySoldError) as exc_info:
            next_state("SN-1", UnitState.SOLD, action)
        assert exc_info.value.serial_number == "SN-1"

    @pytest.mark.parametrize(
        "current", [UnitState.DISPATCHED_TO_DEALER, UnitState.TRANSFERRED_TO_SUBDEALER],
    )
    def test_second_dispatch_rejected(self, current):
        with pytest.raises(UnitAlreadyDispatchedError) as exc_info:
            next_state("SN-1", current, LifecycleAction.DISPATCH)
        assert exc_info.value.state == current.value

    def test_transfer_from_factory_is_illegal(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            next_state("SN-1", UnitState.AT_FACTORY, LifecycleAction.TRANSFER)
        assert exc_info.value.from_state == "at_factory"
        assert exc_info.value.to_state == "transferred_to_subdealer"

    def test_transfer_twice_is_illegal(self):
        with pytest.raises(IllegalTransitionError):
            next_state("SN-1", UnitState.TRANSFERRED_TO_SUBDEALER, LifecycleAction.TRANSFER)

    def test_all_guard_failures_are_conflicts(self):
        for exc_type in (
            UnitAlreadySoldError,
            UnitAlreadyDispatchedError,
            IllegalTransitionError,
            HolderMismatchError,
        ):
            assert issubclass(exc_type, ConflictError)


class TestCheckHolder:

    def test_matching_holder_passes(self):
        holder = uuid4()
        check_holder("SN-1", holder, holder)

    def test_mismatch_reports_codes(self):
        with pytest.raises(HolderMismatchError) as exc_info:
            check_holder(
                "SN-1", uuid4(), uuid4(),
                current_holder_code="DEALER-02",
                expected_holder_code="DEALER-01",
            )
        assert exc_info.value.expected_holder == "DEALER-01"
        assert exc_info.value.actual_holder == "DEALER-02"
