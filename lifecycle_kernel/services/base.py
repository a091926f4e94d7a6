"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service in the kernel layer.  All concrete services inherit
    from BaseService, receiving a SQLAlchemy ``Session`` that they use
    via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (``lifecycle_services`` or a test harness) owns commit/rollback, so
      an event, its projection update and its stock effect land together
      or not at all.

Failure modes:
    - If a subclass violates the flush-only contract by calling
      ``session.commit()``, a rejected check-then-append could leave a
      partial write behind.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from lifecycle_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods -- those belong
          in ``lifecycle_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session
