"""
Stock Modules.

Stateful orchestration over the stock kernel, the engines and the stock
ledger.  Each module contains:
- Domain models (frozen inputs and read models)
- ORM models (module-owned tables)
- Workflows (state machines), where the module has a lifecycle
- A service that owns its transaction boundary

Modules:
- Transactions: deliveries (receipts) and issues
- Transfers: inter-location movements with approval
- NCR: non-conformance reports, automatic and manual
- Reconciliation: period consumption and persons on board

Subpackages are not imported here; import the one you need.
"""
