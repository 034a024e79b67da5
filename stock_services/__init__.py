"""
stock_services -- Stateful orchestration over engines + kernel.

Responsibility:
    Services that hold a database session and compose the pure engines in
    ``stock_engines`` with the kernel models: the stock ledger, the period
    manager, and the ``StockOperations`` facade.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        stock_services/ -> stock_engines/  (allowed)
        stock_services/ -> stock_kernel/   (allowed)
        stock_engines/  -> stock_services/ (FORBIDDEN)
        stock_kernel/   -> stock_services/ (FORBIDDEN)

    Module services (``stock_modules``) build on the ledger; only
    ``stock_services.operations`` reaches back into the modules, and this
    package init imports none of them.
"""

from stock_kernel.logging_config import get_logger

logger = get_logger("services")
