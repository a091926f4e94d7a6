"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing numbers for the global
    ledger sequence (total order of every appended event) and for part
    dispatch numbering (``PD-<year>-<nnnn>``).  Uses a dedicated counter
    table with row-level locking (``SELECT ... FOR UPDATE``) to guarantee
    uniqueness and ordering under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by the EventStore (ledger_seq) and the PartDispatchService
    (dispatch numbers).

Invariants enforced:
    - Sequence monotonicity: the locked counter row is the sole source of
      truth for the next value.  Aggregate max-plus-one is never used.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
    - On SQLite, FOR UPDATE is ignored; writers are serialized by the
      database lock instead.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lifecycle_kernel.logging_config import get_logger
from lifecycle_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is transactional -- it is only
        committed when the caller's transaction commits.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    # Well-known sequence names
    LEDGER_EVENT = "ledger_event"
    PART_DISPATCH_PREFIX = "part_dispatch"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        # populate_existing refreshes a counter cached by an earlier call
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        1. Locks the sequence row (or creates it if not exists)
        2. Increments the counter
        3. Returns the new value

        Postconditions:
            - Returns an integer > 0 that is strictly greater than any
              previously returned value for this sequence name.
            - The counter row is locked until the transaction completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use of this sequence.  A savepoint keeps a lost creation
            # race from rolling back the caller's other work.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_ledger_seq(self) -> int:
        """Next position in the global event order."""
        return self.next_value(self.LEDGER_EVENT)

    def next_part_dispatch_number(self, year: int) -> str:
        """Allocate ``PD-<year>-<nnnn>``; numbering restarts every year."""
        value = self.next_value(f"{self.PART_DISPATCH_PREFIX}:{year}")
        return f"PD-{year}-{value:04d}"

    def current_value(self, sequence_name: str) -> int | None:
        """
        Get the current value of a sequence without incrementing.

        Returns:
            Current value, or None if sequence doesn't exist.
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None
