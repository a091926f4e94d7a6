"""ORM models for the lifecycle kernel."""

from lifecycle_kernel.models.catalog import ProductModel
from lifecycle_kernel.models.distribution import (
    UnitDispatchEvent,
    UnitDispatchLine,
    UnitSaleEvent,
    UnitTransferEvent,
)
from lifecycle_kernel.models.holder import Holder
from lifecycle_kernel.models.parts import PartDispatchEvent, PartDispatchLine, PartStockHead
from lifecycle_kernel.models.sequence import SequenceCounter
from lifecycle_kernel.models.service import ReplacementEvent, ServiceVisit
from lifecycle_kernel.models.unit import Unit

# Append-only tables: immutable after INSERT (see db/immutability.py)
EVENT_MODELS = (
    UnitDispatchEvent,
    UnitDispatchLine,
    UnitTransferEvent,
    UnitSaleEvent,
    PartDispatchEvent,
    PartDispatchLine,
    ServiceVisit,
    ReplacementEvent,
)

__all__ = [
    "EVENT_MODELS",
    "Holder",
    "PartDispatchEvent",
    "PartDispatchLine",
    "PartStockHead",
    "ProductModel",
    "ReplacementEvent",
    "SequenceCounter",
    "ServiceVisit",
    "Unit",
    "UnitDispatchEvent",
    "UnitDispatchLine",
    "UnitSaleEvent",
    "UnitTransferEvent",
]
