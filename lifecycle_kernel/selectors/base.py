"""
Module: lifecycle_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    form the "Q" side of the kernel, answering stock, lifecycle and service
    history questions without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/ value objects.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses or computed
      results, NOT raw ORM model instances.
    - Session ownership: Selectors do NOT create or manage their own sessions;
      the caller owns the session and its snapshot (snapshot_scope).

Audit relevance:
    Part stock is always derived here from dispatch and replacement events.
    The stock head cache is compared against the fold, never trusted over it.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from lifecycle_kernel.db.base import Base
from lifecycle_kernel.exceptions import HolderNotFoundError
from lifecycle_kernel.models import Holder

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        """
        Initialize the selector.

        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session

    def _holder_by_code(self, holder_code: str) -> Holder:
        holder = self.session.execute(
            select(Holder).where(Holder.holder_code == holder_code)
        ).scalar_one_or_none()
        if holder is None:
            raise HolderNotFoundError(holder_code)
        return holder
