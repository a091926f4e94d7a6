"""Selectors for read-only queries."""

from lifecycle_kernel.selectors.base import BaseSelector
from lifecycle_kernel.selectors.lifecycle_selector import (
    DispatchInfo,
    LifecycleSelector,
    RegistrationInfo,
    ReplacementInfo,
    SaleInfo,
    TransferInfo,
    UnitLifecycle,
    VisitInfo,
    VisitSummary,
)
from lifecycle_kernel.selectors.stock_selector import (
    PartStockLine,
    StockCacheCheck,
    StockSelector,
)

__all__ = [
    "BaseSelector",
    "DispatchInfo",
    "LifecycleSelector",
    "PartStockLine",
    "RegistrationInfo",
    "ReplacementInfo",
    "SaleInfo",
    "StockCacheCheck",
    "StockSelector",
    "TransferInfo",
    "UnitLifecycle",
    "VisitInfo",
    "VisitSummary",
]
