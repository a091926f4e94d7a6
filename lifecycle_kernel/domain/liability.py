"""
Cost liability derivation and the replacement-count policy.

Both are pure.  derive_liability has no override parameter: the only input
is the frozen warranty snapshot of the service visit.
"""

from __future__ import annotations

from dataclasses import dataclass

from lifecycle_kernel.domain.values import CostLiability


@dataclass(frozen=True)
class LiabilityDecision:
    cost_liability: CostLiability
    claim_eligible: bool


def derive_liability(parts_valid: bool) -> LiabilityDecision:
    """Factory pays and the claim is eligible iff the parts warranty was valid."""
    if parts_valid:
        return LiabilityDecision(CostLiability.FACTORY, True)
    return LiabilityDecision(CostLiability.CUSTOMER, False)


@dataclass(frozen=True)
class ReplacementPolicy:
    """
    Cap on REPLACEMENT quantity per (unit, part code) across all visits.

    max_replacements_per_part=None disables the check.  The limit is supplied
    by configuration; there is no built-in default number.
    """

    max_replacements_per_part: int | None = None

    def __post_init__(self) -> None:
        limit = self.max_replacements_per_part
        if limit is not None and limit < 1:
            raise ValueError(f"max_replacements_per_part must be >= 1, got {limit}")

    @property
    def enabled(self) -> bool:
        return self.max_replacements_per_part is not None

    def allows(self, already_replaced: int, requested: int) -> bool:
        if self.max_replacements_per_part is None:
            return True
        return already_replaced + requested <= self.max_replacements_per_part
