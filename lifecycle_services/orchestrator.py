"""
lifecycle_services.orchestrator -- Central DI container for kernel services.

Responsibility:
    Creates every kernel service and selector exactly once for a session and
    wires them together.  No service created here builds its own copy of a
    shared collaborator (EventStore, SequenceService, HolderService).

Architecture position:
    Services -- stateful orchestration over the kernel.  This module is the
    only place where kernel services are constructed and composed.

Invariants enforced:
    - Single-instance lifecycle: one SequenceService and one EventStore per
      session, so ledger sequence allocation and stock head locking go
      through the same objects for every command in a transaction.
    - All services share the same Session and Clock instances.

Failure modes:
    - None at construction; kernel errors surface from the called service.

Usage:
    from lifecycle_services.orchestrator import LifecycleOrchestrator

    orchestrator = LifecycleOrchestrator(session, clock, policy)
    orchestrator.lifecycle.sell_unit(...)
    orchestrator.stock.part_stock_summary("SC-01")
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from lifecycle_kernel.domain.clock import Clock, SystemClock
from lifecycle_kernel.domain.liability import ReplacementPolicy
from lifecycle_kernel.selectors.lifecycle_selector import LifecycleSelector
from lifecycle_kernel.selectors.stock_selector import StockSelector
from lifecycle_kernel.services.catalog_service import CatalogService
from lifecycle_kernel.services.event_store import EventStore
from lifecycle_kernel.services.holder_service import HolderService
from lifecycle_kernel.services.lifecycle_service import LifecycleService
from lifecycle_kernel.services.part_dispatch_service import PartDispatchService
from lifecycle_kernel.services.projection_service import ProjectionService
from lifecycle_kernel.services.replacement_authorizer import ReplacementAuthorizer
from lifecycle_kernel.services.sequence_service import SequenceService
from lifecycle_kernel.services.service_visit_service import ServiceVisitService


class LifecycleOrchestrator:
    """Central factory for kernel services.

    Contract:
        Receives a SQLAlchemy Session, an optional Clock and an optional
        ReplacementPolicy.  Constructs every kernel service exactly once,
        in dependency order, and exposes them as public attributes.

    Non-goals:
        - Does NOT manage transaction boundaries (caller's responsibility).
        - Does NOT own the Session lifecycle (no commit/rollback).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        replacement_policy: ReplacementPolicy | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self.replacement_policy = replacement_policy or ReplacementPolicy()

        # Foundational services (no kernel dependencies)
        self.sequence = SequenceService(session)
        self.holders = HolderService(session)
        self.catalog = CatalogService(session, self._clock)

        # Event store (depends on sequence)
        self.event_store = EventStore(session, self._clock, self.sequence)

        # Command services (depend on event store)
        self.lifecycle = LifecycleService(
            session,
            self._clock,
            event_store=self.event_store,
            holder_service=self.holders,
            catalog_service=self.catalog,
        )
        self.part_dispatch = PartDispatchService(
            session,
            self._clock,
            event_store=self.event_store,
            holder_service=self.holders,
            sequence_service=self.sequence,
        )
        self.visits = ServiceVisitService(
            session, self._clock, event_store=self.event_store,
        )
        self.replacements = ReplacementAuthorizer(
            session,
            self._clock,
            policy=self.replacement_policy,
            event_store=self.event_store,
        )
        self.projections = ProjectionService(session)

        # Read side
        self.stock = StockSelector(session)
        self.lifecycle_reader = LifecycleSelector(session, self._clock)

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock
