"""
Typed Exception Hierarchy for the Stock Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure in the ledger must be rendered as a precise message to an
operator ("Flour: requested 100, available 70").  Callers therefore catch
by type and read structured attributes instead of parsing message text:

    try:
        processor.post_issue(...)
    except InsufficientStockError as e:
        for shortage in e.shortages:
            show(shortage.item_name, shortage.requested, shortage.available)
        api_response(code=e.code)

Every class carries:
  1. a ``code`` class attribute (machine-readable, API-safe)
  2. its context as instance attributes (item names, quantities, statuses)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockLedgerError (base)
    |
    +-- ValidationError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- SameLocationError
    |
    +-- PeriodError
    |   +-- PeriodClosedError
    |   +-- PeriodOverlapError
    |   +-- PeriodAlreadyOpenError
    |   +-- LocationsNotReadyError
    |   +-- ReconciliationNotCompletedError
    |   +-- PriceBookLockedError
    |   +-- PeriodNotClosedError
    |
    +-- WorkflowError
    |   +-- InvalidStatusTransitionError
    |
    +-- NotFoundError
        +-- LocationNotFoundError
        +-- ItemNotFoundError
        +-- PeriodNotFoundError
        +-- TransferNotFoundError
        +-- NCRNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                         | When Raised
-----------------------------|------------------------------------------------
VALIDATION_ERROR             | Malformed input (non-positive quantity, blank
                             | comment, missing field)
INSUFFICIENT_STOCK           | Issue / transfer / consume exceeds on hand
SAME_LOCATION                | Transfer from a location to itself
PERIOD_CLOSED                | Posting into a period or location not OPEN
PERIOD_OVERLAP               | New period date range intersects another
PERIOD_ALREADY_OPEN          | Opening a period while another is OPEN
LOCATIONS_NOT_READY          | Close attempted with locations not READY
RECONCILIATION_NOT_COMPLETED | Ready requested without a saved reconciliation
PRICE_BOOK_LOCKED            | Price edit after the period was opened
PERIOD_NOT_CLOSED            | Roll-forward from a period that is not CLOSED
INVALID_STATUS_TRANSITION    | Status change not permitted from current state
*_NOT_FOUND                  | Unknown identifier

None of these are retried internally.  Each is raised before or inside the
unit of work, so a failed call leaves the store exactly as it was.
"""

from dataclasses import dataclass
from decimal import Decimal


class StockLedgerError(Exception):
    """
    Base exception for all stock ledger errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_LEDGER_ERROR"


class ValidationError(StockLedgerError):
    """Malformed input rejected before touching the ledger."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, issue: str):
        self.field = field
        self.issue = issue
        super().__init__(f"Invalid {field}: {issue}")


# Stock-related exceptions


class StockError(StockLedgerError):
    """Base exception for stock movement errors."""

    code: str = "STOCK_ERROR"


@dataclass(frozen=True)
class StockShortage:
    """One deficient line of a stock request."""

    item_id: str
    item_name: str
    requested: Decimal
    available: Decimal


class InsufficientStockError(StockError):
    """
    One or more lines request more than is on hand.

    Carries every deficient line, not just the first one found.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, shortages: list[StockShortage]):
        self.shortages = list(shortages)
        details = ", ".join(
            f"{s.item_name} (requested {s.requested}, available {s.available})"
            for s in self.shortages
        )
        super().__init__(f"Insufficient stock: {details}")

    @property
    def item_names(self) -> list[str]:
        return [s.item_name for s in self.shortages]

    @property
    def requested(self) -> Decimal:
        """Requested quantity of the first deficient line."""
        return self.shortages[0].requested

    @property
    def available(self) -> Decimal:
        """Available quantity of the first deficient line."""
        return self.shortages[0].available


class SameLocationError(StockError):
    """Transfer source and destination are the same location."""

    code: str = "SAME_LOCATION"

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(
            f"Transfer source and destination must differ (both {location_id})"
        )


# Period-related exceptions


class PeriodError(StockLedgerError):
    """Base exception for period-related errors."""

    code: str = "PERIOD_ERROR"


class PeriodClosedError(PeriodError):
    """Attempted to post against a period or location that is not OPEN."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, period_name: str, status: str, location_name: str | None = None):
        self.period_name = period_name
        self.status = status
        self.location_name = location_name
        where = f" for {location_name}" if location_name else ""
        super().__init__(
            f"Period {period_name} is not open{where} (status: {status})"
        )


class PeriodOverlapError(PeriodError):
    """New period date range overlaps with an existing period."""

    code: str = "PERIOD_OVERLAP"

    def __init__(
        self,
        new_period_name: str,
        existing_period_name: str,
        overlap_start: str,
        overlap_end: str,
    ):
        self.new_period_name = new_period_name
        self.existing_period_name = existing_period_name
        self.overlap_start = overlap_start
        self.overlap_end = overlap_end
        super().__init__(
            f"Period {new_period_name} overlaps with {existing_period_name} "
            f"({overlap_start} to {overlap_end})"
        )


class PeriodAlreadyOpenError(PeriodError):
    """Only one period may be OPEN at a time."""

    code: str = "PERIOD_ALREADY_OPEN"

    def __init__(self, open_period_name: str):
        self.open_period_name = open_period_name
        super().__init__(
            f"Period {open_period_name} is already open; close it first"
        )


class LocationsNotReadyError(PeriodError):
    """Period close attempted while some locations are not READY."""

    code: str = "LOCATIONS_NOT_READY"

    def __init__(self, period_name: str, locations: list[str]):
        self.period_name = period_name
        self.locations = list(locations)
        super().__init__(
            f"Cannot close period {period_name}: locations not ready: "
            f"{', '.join(self.locations)}"
        )


class ReconciliationNotCompletedError(PeriodError):
    """A location cannot be marked ready without a saved reconciliation."""

    code: str = "RECONCILIATION_NOT_COMPLETED"

    def __init__(self, period_name: str, location_name: str):
        self.period_name = period_name
        self.location_name = location_name
        super().__init__(
            f"Reconciliation for {location_name} in {period_name} "
            "must be saved before marking the location ready"
        )


class PriceBookLockedError(PeriodError):
    """Price edit attempted after the period's prices were locked."""

    code: str = "PRICE_BOOK_LOCKED"

    def __init__(self, period_name: str, status: str):
        self.period_name = period_name
        self.status = status
        super().__init__(
            f"Prices for period {period_name} are locked (status: {status})"
        )


class PeriodNotClosedError(PeriodError):
    """Roll-forward needs a CLOSED source period."""

    code: str = "PERIOD_NOT_CLOSED"

    def __init__(self, period_name: str, status: str):
        self.period_name = period_name
        self.status = status
        super().__init__(
            f"Period {period_name} must be closed first (status: {status})"
        )


# Workflow-related exceptions


class WorkflowError(StockLedgerError):
    """Base exception for state machine errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidStatusTransitionError(WorkflowError):
    """Status change not permitted from the current state."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity: str, current_status: str, requested_status: str):
        self.entity = entity
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Cannot move {entity} from {current_status} to {requested_status}"
        )


# Lookup exceptions


class NotFoundError(StockLedgerError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class LocationNotFoundError(NotFoundError):
    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Location not found: {location_id}")


class ItemNotFoundError(NotFoundError):
    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class PeriodNotFoundError(NotFoundError):
    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_id: str):
        self.period_id = period_id
        super().__init__(f"Period not found: {period_id}")


class TransferNotFoundError(NotFoundError):
    code: str = "TRANSFER_NOT_FOUND"

    def __init__(self, transfer_id: str):
        self.transfer_id = transfer_id
        super().__init__(f"Transfer not found: {transfer_id}")


class NCRNotFoundError(NotFoundError):
    code: str = "NCR_NOT_FOUND"

    def __init__(self, ncr_id: str):
        self.ncr_id = ncr_id
        super().__init__(f"NCR not found: {ncr_id}")
