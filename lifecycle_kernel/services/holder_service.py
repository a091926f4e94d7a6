"""
Service layer for Holder operations.

Mirrors the identity collaborator's parties (factory, dealers, sub-dealers,
service centers) as typed ownership references.  Returns HolderRef DTOs
instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from lifecycle_kernel.domain.values import HolderKind
from lifecycle_kernel.exceptions import (
    ConflictError,
    HolderNotFoundError,
    InvalidRequestError,
    UnresolvedReferenceError,
)
from lifecycle_kernel.logging_config import get_logger
from lifecycle_kernel.models import Holder
from lifecycle_kernel.services.base import BaseService

logger = get_logger("services.holder")


@dataclass(frozen=True)
class HolderRef:
    """Immutable DTO for a holder."""

    id: UUID
    holder_code: str
    kind: HolderKind
    display_name: str
    parent_dealer_code: str | None
    is_active: bool


class HolderService(BaseService[Holder]):
    """
    Sync target for the identity collaborator.

    Other kernel services call ``resolve`` to turn an opaque holder code into
    the ORM row they reference; presentation callers use ``get_by_code``.
    """

    def _to_dto(self, holder: Holder) -> HolderRef:
        parent_code = None
        if holder.parent_dealer_id is not None:
            parent_code = self.session.get(Holder, holder.parent_dealer_id).holder_code
        return HolderRef(
            id=holder.id,
            holder_code=holder.holder_code,
            kind=HolderKind(holder.kind),
            display_name=holder.display_name,
            parent_dealer_code=parent_code,
            is_active=holder.is_active,
        )

    def _find(self, holder_code: str) -> Holder | None:
        return self.session.execute(
            select(Holder).where(Holder.holder_code == holder_code)
        ).scalar_one_or_none()

    def resolve(self, holder_code: str, kind: HolderKind | None = None) -> Holder:
        """
        Resolve a holder code referenced by a command.

        Raises:
            UnresolvedReferenceError: unknown code, inactive holder, or a
                holder of another kind.
        """
        holder = self._find(holder_code)
        if holder is None:
            raise UnresolvedReferenceError("Holder", holder_code, "unknown holder")
        if not holder.is_active:
            raise UnresolvedReferenceError("Holder", holder_code, "holder is inactive")
        if kind is not None and holder.kind != kind.value:
            raise UnresolvedReferenceError(
                "Holder", holder_code, f"expected {kind.value}, found {holder.kind}",
            )
        return holder

    def factory_holder(self) -> Holder:
        """The active FACTORY holder with the lowest code."""
        holder = self.session.execute(
            select(Holder)
            .where(Holder.kind == HolderKind.FACTORY.value, Holder.is_active.is_(True))
            .order_by(Holder.holder_code)
            .limit(1)
        ).scalar_one_or_none()
        if holder is None:
            raise UnresolvedReferenceError("Holder", HolderKind.FACTORY.value, "no active factory")
        return holder

    def get_by_code(self, holder_code: str) -> HolderRef:
        holder = self._find(holder_code)
        if holder is None:
            raise HolderNotFoundError(holder_code)
        return self._to_dto(holder)

    def list_by_kind(self, kind: HolderKind, active_only: bool = True) -> list[HolderRef]:
        stmt = select(Holder).where(Holder.kind == kind.value)
        if active_only:
            stmt = stmt.where(Holder.is_active.is_(True))
        stmt = stmt.order_by(Holder.holder_code)
        return [self._to_dto(h) for h in self.session.execute(stmt).scalars()]

    def list_sub_dealers(self, dealer_code: str) -> list[HolderRef]:
        dealer = self.resolve(dealer_code, HolderKind.DEALER)
        stmt = (
            select(Holder)
            .where(Holder.parent_dealer_id == dealer.id)
            .order_by(Holder.holder_code)
        )
        return [self._to_dto(h) for h in self.session.execute(stmt).scalars()]

    def register_holder(
        self,
        holder_code: str,
        kind: HolderKind | str,
        display_name: str,
        parent_dealer_code: str | None = None,
    ) -> HolderRef:
        """
        Register a holder.

        A SUB_DEALER must name an existing DEALER as its parent; no other
        kind may have a parent.

        Raises:
            InvalidRequestError: blank code, unknown kind, or misplaced parent.
            UnresolvedReferenceError: parent dealer does not resolve.
            ConflictError: holder_code already registered.
        """
        if not holder_code or not holder_code.strip():
            raise InvalidRequestError("holder_code", "must not be blank")
        try:
            kind = HolderKind(kind)
        except ValueError:
            raise InvalidRequestError("kind", f"unknown holder kind {kind!r}") from None

        parent_id = None
        if kind == HolderKind.SUB_DEALER:
            if parent_dealer_code is None:
                raise InvalidRequestError("parent_dealer_code", "sub-dealers need a parent dealer")
            parent_id = self.resolve(parent_dealer_code, HolderKind.DEALER).id
        elif parent_dealer_code is not None:
            raise InvalidRequestError("parent_dealer_code", f"{kind.value} cannot have a parent")

        if self._find(holder_code) is not None:
            raise ConflictError(f"Holder already registered: {holder_code}")

        holder = Holder(
            holder_code=holder_code,
            kind=kind.value,
            display_name=display_name,
            parent_dealer_id=parent_id,
            is_active=True,
        )
        self.session.add(holder)
        self.session.flush()

        logger.info(
            "holder_registered",
            extra={"holder_code": holder_code, "kind": kind.value},
        )
        return self._to_dto(holder)

    def deactivate_holder(self, holder_code: str) -> HolderRef:
        holder = self._find(holder_code)
        if holder is None:
            raise HolderNotFoundError(holder_code)
        holder.is_active = False
        self.session.flush()
        logger.info("holder_deactivated", extra={"holder_code": holder_code})
        return self._to_dto(holder)
