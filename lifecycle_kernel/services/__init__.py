"""Services for the lifecycle kernel (write side)."""

from lifecycle_kernel.services.catalog_service import CatalogService, ModelInfo
from lifecycle_kernel.services.event_store import EventStore
from lifecycle_kernel.services.holder_service import HolderRef, HolderService
from lifecycle_kernel.services.lifecycle_service import (
    DispatchReceipt,
    LifecycleService,
    SaleReceipt,
    TransferReceipt,
    UnitRegistration,
)
from lifecycle_kernel.services.part_dispatch_service import (
    PartDispatchReceipt,
    PartDispatchService,
)
from lifecycle_kernel.services.projection_service import ProjectionCheck, ProjectionService
from lifecycle_kernel.services.replacement_authorizer import (
    ReplacementAuthorizer,
    ReplacementReceipt,
)
from lifecycle_kernel.services.sequence_service import SequenceService
from lifecycle_kernel.services.service_visit_service import ServiceVisitService, VisitReceipt

__all__ = [
    "CatalogService",
    "DispatchReceipt",
    "EventStore",
    "HolderRef",
    "HolderService",
    "LifecycleService",
    "ModelInfo",
    "PartDispatchReceipt",
    "PartDispatchService",
    "ProjectionCheck",
    "ProjectionService",
    "ReplacementAuthorizer",
    "ReplacementReceipt",
    "SaleReceipt",
    "SequenceService",
    "ServiceVisitService",
    "TransferReceipt",
    "UnitRegistration",
    "VisitReceipt",
]
