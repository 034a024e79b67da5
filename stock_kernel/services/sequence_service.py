"""
SequenceService -- per-year document numbers via locked counter rows.

Responsibility:
    Hands out human-readable document numbers (``DEL-2024-001``,
    ``ISS-2024-014``, ``TRF-2024-003``, ``NCR-2024-027``).  Each
    (prefix, year) pair has its own counter row, so numbering restarts at 1
    every calendar year.

Invariants enforced:
    - Strict monotonicity per counter: the counter row is read with
      ``SELECT ... FOR UPDATE`` and incremented in place.  Scanning the
      document table for the highest existing number is never used; two
      concurrent deliveries would both see the same maximum.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the number.

Failure modes:
    - IntegrityError on the concurrent first use of a counter -- absorbed by
      a savepoint and a locked re-read.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from stock_kernel.db.base import Base
from stock_kernel.logging_config import get_logger

logger = get_logger("services.sequence")

DEFAULT_PADDING = 3


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its current value.  Row-level locking
    keeps allocation monotonic under concurrency.
    """

    __tablename__ = "sequence_counters"

    # e.g. "NCR-2024"
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """
    Allocates sequence values and formats document numbers.

    Usage:
        numbers = SequenceService(session)
        numbers.next_document_number("NCR", 2024)   # "NCR-2024-001"
    """

    DELIVERY = "DEL"
    ISSUE = "ISS"
    TRANSFER = "TRF"
    NCR = "NCR"

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, sequence_name: str) -> int:
        """
        Lock (or create) the named counter, increment it, return the new value.

        Postconditions:
            - Returns an integer > 0, strictly greater than any previously
              committed value for this name.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            # First use; another transaction may be creating it right now.
            savepoint = self._session.begin_nested()
            try:
                self._session.add(SequenceCounter(name=sequence_name, current_value=1))
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
                counter = self._lock_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.name == sequence_name
            )
        ).scalar_one_or_none()

    def next_document_number(
        self,
        prefix: str,
        year: int,
        padding: int = DEFAULT_PADDING,
    ) -> str:
        """Next ``{PREFIX}-{YYYY}-{NNN}`` number, sequential within the year."""
        value = self.next_value(f"{prefix}-{year}")
        return f"{prefix}-{year}-{value:0{padding}d}"

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
