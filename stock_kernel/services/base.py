"""
BaseService -- abstract base for kernel services.

Responsibility:
    Common constructor for every kernel service.  Kernel services receive a
    SQLAlchemy ``Session`` and use ``session.flush()`` only -- never
    ``session.commit()``.

Invariants enforced:
    Transaction boundaries belong to the caller.  Module services and the
    period manager wrap kernel calls in a ``UnitOfWork``, so a delivery's
    NCRs, ledger updates and document rows land in one transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
