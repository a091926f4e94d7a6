"""
Value enums shared by the domain core and the ORM models.

Pure module: no I/O, no SQLAlchemy.  Models store these as strings and the
services convert back with the enum constructor when building DTOs.
"""

from enum import Enum


class HolderKind(str, Enum):
    """Kind of custodian that can hold units or parts."""

    FACTORY = "factory"
    DEALER = "dealer"
    SUB_DEALER = "sub_dealer"
    SERVICE_CENTER = "service_center"


class UnitState(str, Enum):
    """Ownership state of a physical unit.  SOLD is terminal."""

    AT_FACTORY = "at_factory"
    DISPATCHED_TO_DEALER = "dispatched_to_dealer"
    TRANSFERRED_TO_SUBDEALER = "transferred_to_subdealer"
    SOLD = "sold"


class ReplacementType(str, Enum):
    """REPLACEMENT consumes part stock; REPAIR does not."""

    REPLACEMENT = "REPLACEMENT"
    REPAIR = "REPAIR"


class CostLiability(str, Enum):
    FACTORY = "FACTORY"
    CUSTOMER = "CUSTOMER"


class ServiceType(str, Enum):
    """FREE when parts warranty was valid at visit creation, else PAID."""

    FREE = "FREE"
    PAID = "PAID"


class WarrantyState(str, Enum):
    NOT_SOLD = "NOT_SOLD"
    IN_WARRANTY = "IN_WARRANTY"
    OUT_OF_WARRANTY = "OUT_OF_WARRANTY"


class ActorRole(str, Enum):
    """Roles supplied by the identity collaborator."""

    FACTORY_ADMIN = "FACTORY_ADMIN"
    OPERATOR = "OPERATOR"
    DEALER = "DEALER"
    SUB_DEALER = "SUB_DEALER"
    SERVICE_CENTER = "SERVICE_CENTER"
