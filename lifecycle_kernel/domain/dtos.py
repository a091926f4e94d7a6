"""
Command DTOs accepted by kernel services.

All are frozen dataclasses with no ORM dependencies.  ReplacementRequest
deliberately has no cost_liability / claim_eligible fields: those are always
derived from the service visit's frozen warranty snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from lifecycle_kernel.domain.values import ActorRole, ReplacementType


@dataclass(frozen=True)
class Actor:
    """
    Authenticated identity supplied by the identity collaborator.

    holder_code is the opaque ownership reference of the party the actor
    acts for (a dealer, sub-dealer or service center), or None for factory
    staff.  Role gating already happened upstream; the kernel only performs
    data-dependent checks with it.
    """

    actor_id: UUID
    role: ActorRole
    holder_code: str | None = None

    @property
    def is_factory(self) -> bool:
        return self.role in (ActorRole.FACTORY_ADMIN, ActorRole.OPERATOR)


@dataclass(frozen=True)
class PartLineSpec:
    """One part line of a factory-to-service-center dispatch."""

    part_code: str
    part_name: str
    quantity: int


@dataclass(frozen=True)
class ReplacementRequest:
    """A service center's request to record a replaced or repaired part."""

    visit_id: UUID
    serial_number: str
    part_code: str
    part_name: str
    quantity: int
    replacement_date: date
    replacement_type: ReplacementType
    part_dispatch_id: UUID
