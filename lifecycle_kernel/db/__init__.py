"""Database layer - engine, base classes and immutability listeners."""

from lifecycle_kernel.db.base import UUID, Base, LedgerRecord, UUIDString
from lifecycle_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
    snapshot_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "session_scope",
    "snapshot_scope",
    "Base",
    "LedgerRecord",
    "UUIDString",
    "UUID",
]
