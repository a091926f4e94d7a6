"""
Warranty Evaluator -- pure warranty-window arithmetic.

Responsibility:
    Decides whether the parts and service warranties of a sold unit are
    valid on a given date.  Used once when a service visit is opened (the
    result is frozen into the visit) and on demand for live status display.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Month arithmetic is calendar-month based: (year * 12 + month) of the
      as-of date minus the same for the sale date.  Day-of-month is ignored,
      so a sale on Jan 31 and a visit on Feb 1 count as one month elapsed.
    - A window bound is inclusive: months_elapsed == parts_months is valid.
    - A stored snapshot is never re-evaluated; callers persist the returned
      value and read it back.

Failure modes:
    - ValueError if a warranty window carries negative months.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from lifecycle_kernel.domain.values import WarrantyState


@dataclass(frozen=True)
class WarrantyWindow:
    """Warranty length in months, as defined on the product model."""

    parts_months: int
    service_months: int

    def __post_init__(self) -> None:
        if self.parts_months < 0 or self.service_months < 0:
            raise ValueError(
                f"Warranty months must be non-negative, got "
                f"parts={self.parts_months} service={self.service_months}"
            )


@dataclass(frozen=True)
class WarrantySnapshot:
    """Parts/service validity computed once and frozen."""

    parts_valid: bool
    service_valid: bool
    months_elapsed: int


@dataclass(frozen=True)
class WarrantyStatus:
    """Live warranty status for display."""

    state: WarrantyState
    start_date: date | None
    snapshot: WarrantySnapshot | None


def months_elapsed(start: date, as_of: date) -> int:
    """Calendar months between two dates, ignoring the day of month."""
    return (as_of.year * 12 + as_of.month) - (start.year * 12 + start.month)


def evaluate(sale_date: date, window: WarrantyWindow, as_of: date) -> WarrantySnapshot:
    """Evaluate parts and service validity of a unit sold on sale_date."""
    elapsed = months_elapsed(sale_date, as_of)
    return WarrantySnapshot(
        parts_valid=elapsed <= window.parts_months,
        service_valid=elapsed <= window.service_months,
        months_elapsed=elapsed,
    )


def warranty_status(
    sale_date: date | None,
    window: WarrantyWindow,
    as_of: date,
) -> WarrantyStatus:
    """
    Live status of a unit's parts warranty.

    Unsold units report NOT_SOLD; warranty starts at the sale date only.
    """
    if sale_date is None:
        return WarrantyStatus(state=WarrantyState.NOT_SOLD, start_date=None, snapshot=None)

    snapshot = evaluate(sale_date, window, as_of)
    state = WarrantyState.IN_WARRANTY if snapshot.parts_valid else WarrantyState.OUT_OF_WARRANTY
    return WarrantyStatus(state=state, start_date=sale_date, snapshot=snapshot)
