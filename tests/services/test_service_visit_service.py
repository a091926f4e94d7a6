"""
Tests for ServiceVisitService.

Covers:
- Snapshot computed at creation from the visit date
- Snapshot frozen against later warranty window revisions
- FREE / PAID service type
- Only sold units, only active service centers
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import select

from lifecycle_kernel.domain.dtos import Actor
from lifecycle_kernel.domain.values import ActorRole, ServiceType
from lifecycle_kernel.exceptions import (
    AuthorizationError,
    InvalidRequestError,
    NotFoundError,
    UnitNotFoundError,
    UnitNotSoldError,
)
from lifecycle_kernel.models import ServiceVisit
from lifecycle_kernel.services.catalog_service import CatalogService

MODEL_CODE = "INV-5KVA"


class TestOpenVisit:

    def test_visit_inside_parts_window_is_free(self, sold_unit, open_visit):
        serial = sold_unit("SN-1", sale_date=date(2025, 1, 15))
        visit = open_visit(serial, date(2025, 6, 1))

        assert visit.parts_valid is True
        assert visit.service_valid is True
        assert visit.months_elapsed == 5
        assert visit.service_type == ServiceType.FREE
        assert visit.service_center_code == "SC-01"

    def test_visit_after_parts_window_is_paid(self, sold_unit, open_visit):
        serial = sold_unit("SN-1", sale_date=date(2025, 1, 15))
        visit = open_visit(serial, date(2026, 2, 1))

        assert visit.parts_valid is False
        assert visit.service_valid is True
        assert visit.service_type == ServiceType.PAID

    def test_snapshot_frozen_when_window_revised(self, session, clock, sold_unit, open_visit):
        serial = sold_unit("SN-1", sale_date=date(2025, 1, 15))
        visit = open_visit(serial, date(2025, 12, 1))
        assert visit.parts_valid is True

        CatalogService(session, clock).revise_warranty_window(MODEL_CODE, parts_months=3, service_months=6)
        session.commit()

        row = session.get(ServiceVisit, visit.visit_id)
        session.refresh(row)
        assert row.parts_valid is True
        assert row.parts_months == 12

        later = open_visit(serial, date(2025, 12, 2))
        assert later.parts_valid is False

    def test_unsold_unit_rejected(self, session, register_units, visit_service, center_actor):
        register_units("SN-1")
        with pytest.raises(UnitNotSoldError) as exc_info:
            visit_service.open_visit("SN-1", date(2024, 2, 1), "No output", center_actor)
        assert isinstance(exc_info.value, NotFoundError)

    def test_unknown_unit(self, visit_service, center_actor, holders):
        with pytest.raises(UnitNotFoundError):
            visit_service.open_visit("SN-404", date(2024, 2, 1), "No output", center_actor)

    def test_visit_before_sale_rejected(self, sold_unit, visit_service, center_actor):
        serial = sold_unit("SN-1", sale_date=date(2025, 1, 15))
        with pytest.raises(InvalidRequestError) as exc_info:
            visit_service.open_visit(serial, date(2025, 1, 14), "No output", center_actor)
        assert exc_info.value.field == "visit_date"

    def test_blank_fault_rejected(self, sold_unit, visit_service, center_actor):
        serial = sold_unit("SN-1")
        with pytest.raises(InvalidRequestError):
            visit_service.open_visit(serial, date(2024, 2, 1), "   ", center_actor)

    def test_actor_must_be_service_center(self, sold_unit, visit_service, dealer_actor):
        serial = sold_unit("SN-1")
        with pytest.raises(AuthorizationError):
            visit_service.open_visit(serial, date(2024, 2, 1), "No output", dealer_actor)

    def test_actor_without_holder_rejected(self, sold_unit, visit_service):
        serial = sold_unit("SN-1")
        actor = Actor(actor_id=uuid4(), role=ActorRole.SERVICE_CENTER)
        with pytest.raises(AuthorizationError):
            visit_service.open_visit(serial, date(2024, 2, 1), "No output", actor)

    def test_visit_logged_with_snapshot(self, sold_unit, open_visit, captured_logs):
        serial = sold_unit("SN-1", sale_date=date(2025, 1, 15))
        open_visit(serial, date(2025, 6, 1))

        record = next(r for r in captured_logs() if r["message"] == "service_visit_opened")
        assert record["parts_valid"] is True
        assert record["service_type"] == "FREE"

    def test_multiple_visits_per_unit(self, session, sold_unit, open_visit):
        serial = sold_unit("SN-1", sale_date=date(2025, 1, 15))
        open_visit(serial, date(2025, 3, 1))
        open_visit(serial, date(2025, 4, 1))
        rows = session.execute(select(ServiceVisit)).scalars().all()
        assert len(rows) == 2
