"""
Module: stock_kernel.db.unit_of_work
Responsibility: The atomic unit-of-work capability every stock-mutating
    operation depends on.  Wraps a caller-supplied Session so that a group
    of ledger mutations either commits as one or leaves no trace.
Architecture position: Kernel > DB.  Used by module services and the
    period manager; kernel services stay flush-only and never commit.

Invariants enforced:
    - Commit-or-rollback: on any exception inside ``atomic()`` the owning
      unit of work rolls the session back and re-raises.  Nothing is
      swallowed.
    - Composition: a unit of work created with ``auto_commit=False`` only
      flushes; the outer owner decides commit or rollback.  This lets one
      service (e.g. the transaction processor) call another (the NCR
      generator) inside a single transaction.

Failure modes:
    - Any exception raised by the wrapped work propagates unchanged.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy.orm import Session

from stock_kernel.logging_config import get_logger

logger = get_logger("db.unit_of_work")

T = TypeVar("T")


class UnitOfWork:
    """
    Explicit begin/commit/rollback boundary over a Session.

    Usage:
        uow = UnitOfWork(session)
        with uow.atomic():
            ledger.consume(...)
            ledger.receive(...)

        result = uow.run_atomically(lambda s: do_work(s))
    """

    def __init__(self, session: Session, auto_commit: bool = True):
        self._session = session
        self._auto_commit = auto_commit

    @property
    def session(self) -> Session:
        return self._session

    @property
    def owns_transaction(self) -> bool:
        return self._auto_commit

    @contextmanager
    def atomic(self) -> Iterator[Session]:
        """Run the enclosed block as one atomic unit."""
        try:
            yield self._session
            if self._auto_commit:
                self._session.commit()
            else:
                self._session.flush()
        except Exception:
            if self._auto_commit:
                self._session.rollback()
                logger.warning("unit_of_work_rolled_back", exc_info=True)
            raise

    def run_atomically(self, fn: Callable[[Session], T]) -> T:
        """Call ``fn(session)`` inside ``atomic()`` and return its result."""
        with self.atomic() as session:
            return fn(session)
