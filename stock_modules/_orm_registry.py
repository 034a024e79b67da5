"""
Module ORM Registry (``stock_modules._orm_registry``).

Responsibility
--------------
Ensure kernel and module SQLAlchemy models are imported so that
``Base.metadata`` holds every table before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Called lazily from
``stock_kernel.db.engine.create_tables``; never imported at kernel
module load.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``stock_modules.*.orm`` module.

    Kernel tables come first; module tables reference locations, items
    and periods.  Repeated calls are harmless.
    """
    import stock_kernel.models  # noqa: F401
    # fmt: off
    import stock_modules.ncr.orm  # noqa: F401
    import stock_modules.transactions.orm  # noqa: F401
    import stock_modules.transfers.orm  # noqa: F401
    # fmt: on
