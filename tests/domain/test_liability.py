"""Tests for cost liability derivation and the replacement policy (domain/liability.py)."""

import dataclasses

import pytest

from lifecycle_kernel.domain.dtos import ReplacementRequest
from lifecycle_kernel.domain.liability import (
    LiabilityDecision,
    ReplacementPolicy,
    derive_liability,
)
from lifecycle_kernel.domain.values import CostLiability


class TestDeriveLiability:

    def test_parts_valid_is_factory_and_eligible(self):
        assert derive_liability(True) == LiabilityDecision(CostLiability.FACTORY, True)

    def test_parts_invalid_is_customer_and_not_eligible(self):
        assert derive_liability(False) == LiabilityDecision(CostLiability.CUSTOMER, False)

    def test_request_has_no_liability_fields(self):
        """Callers cannot supply liability: the request type has nowhere to put it."""
        names = {f.name for f in dataclasses.fields(ReplacementRequest)}
        assert "cost_liability" not in names
        assert "claim_eligible" not in names


class TestReplacementPolicy:

    def test_disabled_by_default(self):
        policy = ReplacementPolicy()
        assert policy.enabled is False
        assert policy.allows(already_replaced=1000, requested=1000)

    def test_limit_is_inclusive(self):
        policy = ReplacementPolicy(max_replacements_per_part=2)
        assert policy.allows(already_replaced=1, requested=1)
        assert not policy.allows(already_replaced=2, requested=1)
        assert not policy.allows(already_replaced=0, requested=3)

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit_rejected(self, limit):
        with pytest.raises(ValueError):
            ReplacementPolicy(max_replacements_per_part=limit)
