"""
Tests for ReplacementAuthorizer.

Covers:
- Stock consumption and the never-negative bound
- REPAIR has no stock effect
- Liability derived from the frozen visit snapshot only
- Validation order: first failing check wins
- Ownership, dispatch lineage, replacement policy
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from lifecycle_kernel.domain.liability import ReplacementPolicy
from lifecycle_kernel.domain.values import CostLiability, ReplacementType
from lifecycle_kernel.exceptions import (
    DispatchLineageError,
    InsufficientStockError,
    InvalidRequestError,
    ReplacementLimitExceededError,
    ServiceVisitNotFoundError,
    UnitNotFoundError,
    UnitNotSoldError,
    ValidationError,
    VisitOwnershipError,
)
from lifecycle_kernel.models import PartStockHead, ReplacementEvent
from lifecycle_kernel.selectors.stock_selector import StockSelector
from lifecycle_kernel.services.replacement_authorizer import ReplacementAuthorizer


@pytest.fixture
def setup(sold_unit, dispatch_parts, open_visit):
    """SN-1 sold 2025-01-15, 5 x MB-1 at SC-01, visit on 2025-06-01 (in warranty)."""
    serial = sold_unit("SN-1", sale_date=date(2025, 1, 15))
    dispatch = dispatch_parts("SC-01", ("MB-1", "Main board", 5), ("FAN-1", "Cooling fan", 1))
    visit = open_visit(serial, date(2025, 6, 1))
    return serial, dispatch, visit


def _replacements(session) -> int:
    return session.execute(select(func.count(ReplacementEvent.id))).scalar_one()


class TestStockEffects:

    def test_replacement_consumes_stock_until_exhausted(
        self, session, authorizer, center_actor, setup, make_request,
    ):
        """5 dispatched, 3 consumed, a second 3 is refused and stock stays 2."""
        _, dispatch, visit = setup
        receipt = authorizer.authorize(make_request(visit, dispatch, "MB-1", 3), center_actor)
        session.commit()
        assert receipt.remaining_stock == 2
        assert StockSelector(session).part_stock("SC-01", "MB-1") == 2

        with pytest.raises(InsufficientStockError) as exc_info:
            authorizer.authorize(make_request(visit, dispatch, "MB-1", 3), center_actor)
        assert exc_info.value.available == 2
        assert exc_info.value.requested == 3
        session.rollback()

        assert StockSelector(session).part_stock("SC-01", "MB-1") == 2
        assert _replacements(session) == 1

    def test_repair_leaves_stock_unchanged(
        self, session, authorizer, center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        authorizer.authorize(make_request(visit, dispatch, "MB-1", 3), center_actor)
        receipt = authorizer.authorize(
            make_request(visit, dispatch, "MB-1", 1, ReplacementType.REPAIR), center_actor,
        )
        session.commit()

        assert receipt.remaining_stock is None
        assert receipt.replacement_type == ReplacementType.REPAIR
        assert StockSelector(session).part_stock("SC-01", "MB-1") == 2
        head = session.execute(
            select(PartStockHead).where(PartStockHead.part_code == "MB-1")
        ).scalar_one()
        assert head.quantity == 2

    def test_repair_allowed_without_stock(
        self, session, authorizer, center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        authorizer.authorize(make_request(visit, dispatch, "FAN-1", 1), center_actor)
        authorizer.authorize(
            make_request(visit, dispatch, "FAN-1", 4, ReplacementType.REPAIR), center_actor,
        )
        assert StockSelector(session).part_stock("SC-01", "FAN-1") == 0

    def test_exact_remaining_quantity_allowed(
        self, session, authorizer, center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        receipt = authorizer.authorize(make_request(visit, dispatch, "MB-1", 5), center_actor)
        assert receipt.remaining_stock == 0
        assert StockSelector(session).part_stock("SC-01", "MB-1") == 0

    def test_cache_stays_in_sync(self, session, authorizer, center_actor, setup, make_request):
        _, dispatch, visit = setup
        authorizer.authorize(make_request(visit, dispatch, "MB-1", 2), center_actor)
        authorizer.authorize(make_request(visit, dispatch, "FAN-1", 1), center_actor)
        session.commit()
        assert all(c.in_sync for c in StockSelector(session).verify_stock_cache("SC-01"))


class TestLiability:

    def test_in_warranty_is_factory_liability(
        self, authorizer, center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        receipt = authorizer.authorize(make_request(visit, dispatch, "MB-1"), center_actor)
        assert receipt.cost_liability == CostLiability.FACTORY
        assert receipt.claim_eligible is True

    def test_out_of_warranty_is_customer_liability(
        self, session, authorizer, center_actor, sold_unit, dispatch_parts, open_visit, make_request,
    ):
        serial = sold_unit("SN-2", sale_date=date(2023, 1, 15))
        dispatch = dispatch_parts("SC-01", ("MB-1", "Main board", 1))
        visit = open_visit(serial, date(2024, 3, 1))
        receipt = authorizer.authorize(make_request(visit, dispatch, "MB-1"), center_actor)

        assert receipt.cost_liability == CostLiability.CUSTOMER
        assert receipt.claim_eligible is False
        row = session.get(ReplacementEvent, receipt.replacement_id)
        assert row.cost_liability == CostLiability.CUSTOMER.value

    def test_replacement_date_does_not_change_liability(
        self, authorizer, center_actor, setup, make_request,
    ):
        """A replacement recorded years later still uses the visit snapshot."""
        _, dispatch, visit = setup
        receipt = authorizer.authorize(
            make_request(visit, dispatch, "MB-1", replacement_date=date(2030, 1, 1)),
            center_actor,
        )
        assert receipt.cost_liability == CostLiability.FACTORY


class TestValidationOrder:

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_quantity_must_be_positive(
        self, authorizer, center_actor, setup, make_request, quantity,
    ):
        _, dispatch, visit = setup
        with pytest.raises(InvalidRequestError) as exc_info:
            authorizer.authorize(make_request(visit, dispatch, "MB-1", quantity), center_actor)
        assert exc_info.value.field == "quantity"

    def test_malformed_request_checked_before_unit(
        self, authorizer, center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        request = make_request(visit, dispatch, part_code=" ")
        with pytest.raises(InvalidRequestError):
            authorizer.authorize(request, center_actor)

    def test_unknown_unit(self, authorizer, center_actor, setup, make_request):
        from dataclasses import replace

        _, dispatch, visit = setup
        request = replace(make_request(visit, dispatch), serial_number="SN-404")
        with pytest.raises(UnitNotFoundError):
            authorizer.authorize(request, center_actor)

    def test_unsold_unit(self, authorizer, center_actor, setup, register_units, make_request):
        from dataclasses import replace

        register_units("SN-UNSOLD")
        _, dispatch, visit = setup
        request = replace(make_request(visit, dispatch), serial_number="SN-UNSOLD")
        with pytest.raises(UnitNotSoldError):
            authorizer.authorize(request, center_actor)

    def test_unknown_visit(self, authorizer, center_actor, setup, make_request):
        from dataclasses import replace

        _, dispatch, visit = setup
        request = replace(make_request(visit, dispatch), visit_id=uuid4())
        with pytest.raises(ServiceVisitNotFoundError):
            authorizer.authorize(request, center_actor)

    def test_visit_for_another_unit(
        self, authorizer, center_actor, setup, sold_unit, make_request,
    ):
        from dataclasses import replace

        _, dispatch, visit = setup
        other = sold_unit("SN-2", sale_date=date(2025, 1, 15))
        request = replace(make_request(visit, dispatch), serial_number=other)
        with pytest.raises(InvalidRequestError) as exc_info:
            authorizer.authorize(request, center_actor)
        assert exc_info.value.field == "visit_id"

    def test_other_center_cannot_touch_visit(
        self, authorizer, other_center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        with pytest.raises(VisitOwnershipError) as exc_info:
            authorizer.authorize(make_request(visit, dispatch), other_center_actor)
        assert exc_info.value.owning_center == "SC-01"
        assert exc_info.value.claiming_center == "SC-02"

    def test_ownership_checked_before_stock(
        self, authorizer, other_center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        with pytest.raises(VisitOwnershipError):
            authorizer.authorize(make_request(visit, dispatch, "MB-1", 99), other_center_actor)

    def test_lineage_checked_before_stock(
        self, authorizer, center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        with pytest.raises(DispatchLineageError):
            authorizer.authorize(make_request(visit, dispatch, "NOT-LISTED", 99), center_actor)


class TestDispatchLineage:

    def test_unknown_dispatch(self, authorizer, center_actor, setup, make_request):
        from dataclasses import replace

        _, dispatch, visit = setup
        request = replace(make_request(visit, dispatch), part_dispatch_id=uuid4())
        with pytest.raises(DispatchLineageError) as exc_info:
            authorizer.authorize(request, center_actor)
        assert exc_info.value.reason == "part dispatch not found"
        assert isinstance(exc_info.value, ValidationError)

    def test_dispatch_to_another_center(
        self, authorizer, center_actor, setup, dispatch_parts, make_request,
    ):
        _, _, visit = setup
        elsewhere = dispatch_parts("SC-02", ("MB-1", "Main board", 5))
        with pytest.raises(DispatchLineageError) as exc_info:
            authorizer.authorize(make_request(visit, elsewhere, "MB-1"), center_actor)
        assert exc_info.value.reason == "part dispatch was sent to another service center"

    def test_code_not_listed(self, authorizer, center_actor, setup, make_request):
        _, dispatch, visit = setup
        with pytest.raises(DispatchLineageError) as exc_info:
            authorizer.authorize(make_request(visit, dispatch, "PSU-9"), center_actor)
        assert exc_info.value.reason == "part code is not listed on the dispatch"

    def test_any_listing_dispatch_draws_on_center_stock(
        self, session, authorizer, center_actor, setup, dispatch_parts, make_request,
    ):
        """Stock is the center-wide fold; the cited dispatch only proves lineage."""
        _, first, visit = setup
        dispatch_parts("SC-01", ("MB-1", "Main board", 2))
        receipt = authorizer.authorize(make_request(visit, first, "MB-1", 7), center_actor)
        assert receipt.remaining_stock == 0


class TestReplacementPolicy:

    def test_limit_enforced_per_unit_and_code(
        self, session, clock, center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        authorizer = ReplacementAuthorizer(
            session, clock, policy=ReplacementPolicy(max_replacements_per_part=2),
        )
        authorizer.authorize(make_request(visit, dispatch, "MB-1", 2), center_actor)

        with pytest.raises(ReplacementLimitExceededError) as exc_info:
            authorizer.authorize(make_request(visit, dispatch, "MB-1", 1), center_actor)
        assert exc_info.value.limit == 2
        assert exc_info.value.already_replaced == 2

        # repairs and other codes are not counted
        authorizer.authorize(
            make_request(visit, dispatch, "MB-1", 1, ReplacementType.REPAIR), center_actor,
        )
        authorizer.authorize(make_request(visit, dispatch, "FAN-1", 1), center_actor)

    def test_repair_allowed_once_cap_reached(
        self, session, clock, center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        authorizer = ReplacementAuthorizer(
            session, clock, policy=ReplacementPolicy(max_replacements_per_part=1),
        )
        authorizer.authorize(make_request(visit, dispatch, "MB-1", 1), center_actor)

        receipt = authorizer.authorize(
            make_request(visit, dispatch, "MB-1", 1, ReplacementType.REPAIR), center_actor,
        )
        assert receipt.replacement_type == ReplacementType.REPAIR
        assert receipt.remaining_stock is None

        with pytest.raises(ReplacementLimitExceededError):
            authorizer.authorize(make_request(visit, dispatch, "MB-1", 1), center_actor)

    def test_policy_checked_before_stock(
        self, session, clock, center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        authorizer = ReplacementAuthorizer(
            session, clock, policy=ReplacementPolicy(max_replacements_per_part=1),
        )
        with pytest.raises(ReplacementLimitExceededError):
            authorizer.authorize(make_request(visit, dispatch, "MB-1", 50), center_actor)

    def test_disabled_policy_allows_any_count(
        self, authorizer, center_actor, setup, make_request,
    ):
        _, dispatch, visit = setup
        for _ in range(5):
            authorizer.authorize(make_request(visit, dispatch, "MB-1", 1), center_actor)


class TestAuditLogging:

    def test_recorded_and_rejected_are_logged(
        self, session, authorizer, center_actor, setup, make_request, captured_logs,
    ):
        _, dispatch, visit = setup
        authorizer.authorize(make_request(visit, dispatch, "MB-1", 5), center_actor)
        with pytest.raises(InsufficientStockError):
            authorizer.authorize(make_request(visit, dispatch, "MB-1", 1), center_actor)

        logs = captured_logs()
        recorded = next(r for r in logs if r["message"] == "replacement_recorded")
        assert recorded["cost_liability"] == "FACTORY"
        assert recorded["remaining_stock"] == 0
        rejected = next(r for r in logs if r["message"] == "replacement_rejected")
        assert rejected["error_code"] == "INSUFFICIENT_STOCK"
        assert rejected["level"] == "WARNING"
