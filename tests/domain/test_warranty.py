"""
Tests for the pure warranty evaluator (domain/warranty.py).

Covers:
- Calendar month arithmetic (day of month ignored)
- Inclusive window bounds
- Live warranty status for sold and unsold units
"""

from datetime import date

import pytest

from lifecycle_kernel.domain.values import WarrantyState
from lifecycle_kernel.domain.warranty import (
    WarrantySnapshot,
    WarrantyWindow,
    evaluate,
    months_elapsed,
    warranty_status,
)

WINDOW = WarrantyWindow(parts_months=12, service_months=24)


class TestMonthsElapsed:

    def test_same_month_is_zero(self):
        assert months_elapsed(date(2025, 1, 1), date(2025, 1, 31)) == 0

    def test_day_of_month_ignored(self):
        """A sale on Jan 31 and a visit on Feb 1 are one month apart."""
        assert months_elapsed(date(2025, 1, 31), date(2025, 2, 1)) == 1

    def test_late_visit_day_does_not_add_a_month(self):
        assert months_elapsed(date(2025, 1, 1), date(2025, 2, 28)) == 1

    def test_across_year_boundary(self):
        assert months_elapsed(date(2024, 11, 20), date(2025, 2, 3)) == 3


class TestEvaluate:

    def test_visit_within_parts_window(self):
        snapshot = evaluate(date(2025, 1, 15), WINDOW, date(2025, 6, 1))
        assert snapshot == WarrantySnapshot(parts_valid=True, service_valid=True, months_elapsed=5)

    def test_visit_after_parts_window(self):
        snapshot = evaluate(date(2025, 1, 15), WINDOW, date(2026, 2, 1))
        assert snapshot.months_elapsed == 13
        assert snapshot.parts_valid is False
        assert snapshot.service_valid is True

    def test_bound_is_inclusive(self):
        snapshot = evaluate(date(2025, 1, 15), WINDOW, date(2026, 1, 31))
        assert snapshot.months_elapsed == 12
        assert snapshot.parts_valid is True

    def test_end_of_month_sale_counts_whole_months(self):
        """Jan 31 sale: Feb 1 of the next year is already month 13."""
        snapshot = evaluate(date(2025, 1, 31), WINDOW, date(2026, 2, 1))
        assert snapshot.months_elapsed == 13
        assert snapshot.parts_valid is False

    def test_service_window_expires_independently(self):
        snapshot = evaluate(date(2025, 1, 15), WINDOW, date(2027, 2, 1))
        assert snapshot.parts_valid is False
        assert snapshot.service_valid is False

    def test_zero_month_window_covers_sale_month_only(self):
        window = WarrantyWindow(parts_months=0, service_months=0)
        assert evaluate(date(2025, 3, 1), window, date(2025, 3, 31)).parts_valid is True
        assert evaluate(date(2025, 3, 31), window, date(2025, 4, 1)).parts_valid is False

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            WarrantyWindow(parts_months=-1, service_months=12)


class TestWarrantyStatus:

    def test_unsold_unit(self):
        status = warranty_status(None, WINDOW, date(2025, 6, 1))
        assert status.state == WarrantyState.NOT_SOLD
        assert status.start_date is None
        assert status.snapshot is None

    def test_in_warranty(self):
        status = warranty_status(date(2025, 1, 15), WINDOW, date(2025, 6, 1))
        assert status.state == WarrantyState.IN_WARRANTY
        assert status.start_date == date(2025, 1, 15)

    def test_out_of_warranty(self):
        status = warranty_status(date(2025, 1, 15), WINDOW, date(2026, 2, 1))
        assert status.state == WarrantyState.OUT_OF_WARRANTY
        assert status.snapshot.months_elapsed == 13
