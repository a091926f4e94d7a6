"""Orchestration layer: transaction scopes and the collaborator-facing surface."""

from lifecycle_services.application import LifecycleApplication
from lifecycle_services.orchestrator import LifecycleOrchestrator

__all__ = [
    "LifecycleApplication",
    "LifecycleOrchestrator",
]
