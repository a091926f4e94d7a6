"""
Module: lifecycle_kernel.models.sequence
Responsibility: Named monotonic counters used for the global ledger sequence
    and for part dispatch numbering.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from lifecycle_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g., "ledger_event", "part_dispatch:2026")
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
