"""
Pure domain layer.

This module contains value objects and decision logic with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (the Clock abstraction is injected)
- I/O

All domain objects are immutable and deterministic.
"""

from lifecycle_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from lifecycle_kernel.domain.dtos import Actor, PartLineSpec, ReplacementRequest
from lifecycle_kernel.domain.liability import (
    LiabilityDecision,
    ReplacementPolicy,
    derive_liability,
)
from lifecycle_kernel.domain.lifecycle import LifecycleAction, next_state
from lifecycle_kernel.domain.values import (
    ActorRole,
    CostLiability,
    HolderKind,
    ReplacementType,
    ServiceType,
    UnitState,
    WarrantyState,
)
from lifecycle_kernel.domain.warranty import (
    WarrantySnapshot,
    WarrantyStatus,
    WarrantyWindow,
    evaluate,
    months_elapsed,
    warranty_status,
)

__all__ = [
    "Actor",
    "ActorRole",
    "Clock",
    "CostLiability",
    "DeterministicClock",
    "HolderKind",
    "LiabilityDecision",
    "LifecycleAction",
    "PartLineSpec",
    "ReplacementPolicy",
    "ReplacementRequest",
    "ReplacementType",
    "ServiceType",
    "SystemClock",
    "UnitState",
    "WarrantySnapshot",
    "WarrantyState",
    "WarrantyStatus",
    "WarrantyWindow",
    "derive_liability",
    "evaluate",
    "months_elapsed",
    "next_state",
    "warranty_status",
]
