"""
Pytest fixtures for the lifecycle kernel test suite.

Provides:
- A fresh database per test (file-backed SQLite under tmp_path, or the
  database named by DATABASE_URL)
- A DeterministicClock
- Seeded holders (factory, dealers, sub-dealers, service centers) and a
  product model
- Actors for each role
- Builders that drive units through their lifecycle

Environment Variables:
- DATABASE_URL: optional PostgreSQL connection URL.  When unset every test
  gets its own SQLite file.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from lifecycle_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from lifecycle_kernel.domain.clock import DeterministicClock
from lifecycle_kernel.domain.dtos import Actor, PartLineSpec, ReplacementRequest
from lifecycle_kernel.domain.values import ActorRole, HolderKind, ReplacementType
from lifecycle_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from lifecycle_kernel.services.catalog_service import CatalogService
from lifecycle_kernel.services.holder_service import HolderService
from lifecycle_kernel.services.lifecycle_service import LifecycleService
from lifecycle_kernel.services.part_dispatch_service import PartDispatchService
from lifecycle_kernel.services.replacement_authorizer import ReplacementAuthorizer
from lifecycle_kernel.services.service_visit_service import ServiceVisitService


MODEL_CODE = "INV-5KVA"
PARTS_MONTHS = 12
SERVICE_MONTHS = 24


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture lifecycle_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ...):
            ...
            logs = captured_logs()
            assert any(r["message"] == "unit_sold" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("lifecycle_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """One engine and a clean schema per test."""
    url = os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'lifecycle.db'}"
    eng = init_engine_from_url(url, echo=False, sqlite_busy_timeout=5)
    drop_tables()
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """A session for the test body.  Uncommitted work is rolled back."""
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 1, 10, 9, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def holders(session) -> dict[str, object]:
    """
    Seed the holder hierarchy and commit it.

    FACTORY, DEALER-01 (SUB-01), DEALER-02 (SUB-02), SC-01, SC-02.
    """
    service = HolderService(session)
    refs = {
        "FACTORY": service.register_holder("FACTORY", HolderKind.FACTORY, "Main Plant"),
        "DEALER-01": service.register_holder("DEALER-01", HolderKind.DEALER, "North Dealer"),
        "DEALER-02": service.register_holder("DEALER-02", HolderKind.DEALER, "South Dealer"),
        "SC-01": service.register_holder("SC-01", HolderKind.SERVICE_CENTER, "City Service"),
        "SC-02": service.register_holder("SC-02", HolderKind.SERVICE_CENTER, "Town Service"),
    }
    refs["SUB-01"] = service.register_holder(
        "SUB-01", HolderKind.SUB_DEALER, "North Outlet", parent_dealer_code="DEALER-01",
    )
    refs["SUB-02"] = service.register_holder(
        "SUB-02", HolderKind.SUB_DEALER, "South Outlet", parent_dealer_code="DEALER-02",
    )
    session.commit()
    return refs


@pytest.fixture
def product_model(session, clock, holders):
    info = CatalogService(session, clock).register_model(
        MODEL_CODE, "Voltex", "Home Inverter", "5 kVA",
        parts_months=PARTS_MONTHS, service_months=SERVICE_MONTHS,
    )
    session.commit()
    return info


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def factory_actor() -> Actor:
    return Actor(actor_id=uuid4(), role=ActorRole.FACTORY_ADMIN)


@pytest.fixture
def dealer_actor() -> Actor:
    return Actor(actor_id=uuid4(), role=ActorRole.DEALER, holder_code="DEALER-01")


@pytest.fixture
def sub_dealer_actor() -> Actor:
    return Actor(actor_id=uuid4(), role=ActorRole.SUB_DEALER, holder_code="SUB-01")


@pytest.fixture
def center_actor() -> Actor:
    return Actor(actor_id=uuid4(), role=ActorRole.SERVICE_CENTER, holder_code="SC-01")


@pytest.fixture
def other_center_actor() -> Actor:
    return Actor(actor_id=uuid4(), role=ActorRole.SERVICE_CENTER, holder_code="SC-02")


# =============================================================================
# Services and builders
# =============================================================================


@pytest.fixture
def lifecycle_service(session, clock) -> LifecycleService:
    return LifecycleService(session, clock)


@pytest.fixture
def part_dispatch_service(session, clock) -> PartDispatchService:
    return PartDispatchService(session, clock)


@pytest.fixture
def visit_service(session, clock) -> ServiceVisitService:
    return ServiceVisitService(session, clock)


@pytest.fixture
def authorizer(session, clock) -> ReplacementAuthorizer:
    return ReplacementAuthorizer(session, clock)


@pytest.fixture
def register_units(lifecycle_service, factory_actor, product_model):
    """Register serials at the factory."""

    def _register(*serials: str):
        return lifecycle_service.register_units(list(serials), MODEL_CODE, factory_actor)

    return _register


@pytest.fixture
def sold_unit(session, lifecycle_service, register_units, factory_actor, dealer_actor):
    """
    Build a unit sold by DEALER-01.

    Returns a factory taking the serial and sale date.
    """
    counter = iter(range(1, 1000))

    def _build(serial: str = "SN-1000", sale_date: date = date(2024, 1, 15)):
        n = next(counter)
        register_units(serial)
        lifecycle_service.dispatch_units(
            f"UD-{n:04d}", "DEALER-01", [serial], date(2024, 1, 5), factory_actor,
        )
        lifecycle_service.sell_unit(
            serial, f"INV-{n:04d}", sale_date, "A. Customer", dealer_actor,
        )
        session.commit()
        return serial

    return _build


@pytest.fixture
def dispatch_parts(session, part_dispatch_service, factory_actor, holders):
    """Dispatch part lines to a service center and commit."""

    def _dispatch(center_code: str = "SC-01", *lines: tuple[str, str, int]):
        receipt = part_dispatch_service.dispatch_parts(
            center_code,
            [PartLineSpec(code, name, qty) for code, name, qty in lines],
            factory_actor,
            dispatch_date=date(2024, 1, 8),
        )
        session.commit()
        return receipt

    return _dispatch


@pytest.fixture
def open_visit(session, visit_service, center_actor):
    def _open(serial: str, visit_date: date, actor: Actor | None = None, fault: str = "No output"):
        receipt = visit_service.open_visit(serial, visit_date, fault, actor or center_actor)
        session.commit()
        return receipt

    return _open


@pytest.fixture
def make_request():
    """Build a ReplacementRequest from a VisitReceipt and a PartDispatchReceipt."""

    def _make(
        visit,
        dispatch,
        part_code: str = "PCB-MAIN",
        quantity: int = 1,
        replacement_type: ReplacementType = ReplacementType.REPLACEMENT,
        part_name: str = "Main control board",
        replacement_date: date | None = None,
    ) -> ReplacementRequest:
        return ReplacementRequest(
            visit_id=visit.visit_id,
            serial_number=visit.serial_number,
            part_code=part_code,
            part_name=part_name,
            quantity=quantity,
            replacement_date=replacement_date or visit.visit_date,
            replacement_type=replacement_type,
            part_dispatch_id=dispatch.dispatch_id,
        )

    return _make
