"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Settlement errors decide what happens to a whole batch: a missing price
aborts creation, an overdrawn metric aborts settlement, a wrong status is
rejected without touching anything.  Callers must be able to tell these
apart without parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        coordinator.settle_batch(batch_id, actor="ops")
    except InsufficientStockError as e:
        notify(f"Metric {e.metric_id} short by {e.requested - e.available}")
    except StateConflictError as e:
        api_response(code=e.code, message=str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerKernelError:

    LedgerKernelError (base)
    |
    +-- ValidationError
    |   +-- EmptyBatchError
    |   +-- InvalidMovementRequestError
    |   +-- InvalidPercentageTableError
    |
    +-- NotFoundError
    |   +-- BatchNotFoundError
    |   +-- MovementNotFoundError
    |
    +-- StateConflictError
    |   +-- InvalidMovementStateError
    |   +-- BatchWrongStateError
    |   +-- BatchNotCancelableError
    |   +-- MovementOwnedByBatchError
    |
    +-- InsufficientStockError
    |
    +-- DependencyMissingError
    |   +-- NoPriceAvailableError
    |   +-- MissingPercentageError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | EMPTY_BATCH                 | Batch request list is empty
                | INVALID_MOVEMENT_REQUEST    | Malformed movement request
                | INVALID_PERCENTAGE_TABLE    | Percentages out of range / sum > 100
----------------|-----------------------------|-----------------------------------------
Not found       | BATCH_NOT_FOUND             | Unknown batch id
                | MOVEMENT_NOT_FOUND          | Unknown movement id
----------------|-----------------------------|-----------------------------------------
State conflict  | INVALID_MOVEMENT_STATE      | Movement not in the required status
                | BATCH_WRONG_STATE           | Batch not in the required status
                | BATCH_NOT_CANCELABLE        | Batch already settled/canceled/failed
                | MOVEMENT_OWNED_BY_BATCH     | Fast path given a batch movement
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | stock_out would drive balance negative
----------------|-----------------------------|-----------------------------------------
Dependency      | NO_PRICE_AVAILABLE          | No price record for a metric
                | MISSING_PERCENTAGE          | Percentage key absent from source
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying settled / commission records

===============================================================================
HANDLING PATTERNS
===============================================================================

Validation    -> rejected before any write.
NotFound      -> no mutation, no state recorded.
StateConflict -> no mutation.
Insufficient  -> whole batch settlement rolled back, batch marked failed.
Dependency    -> whole batch creation rolled back, batch marked failed.

Nothing is retried automatically; a failed batch stays as an audit record
and a fresh corrective batch is required.
"""

from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Validation exceptions


class ValidationError(LedgerKernelError):
    """Base exception for requests rejected before any write."""

    code: str = "VALIDATION_ERROR"


class EmptyBatchError(ValidationError):
    """A batch was submitted without any movement requests."""

    code: str = "EMPTY_BATCH"

    def __init__(self, batch_type: str):
        self.batch_type = batch_type
        super().__init__(f"Batch of type {batch_type} has no movement requests")


class InvalidMovementRequestError(ValidationError):
    """A movement request is malformed (bad amount, event or seller refs)."""

    code: str = "INVALID_MOVEMENT_REQUEST"

    def __init__(self, field: str, reason: str, index: int | None = None):
        self.field = field
        self.reason = reason
        self.index = index
        where = f" (request #{index})" if index is not None else ""
        super().__init__(f"Invalid movement request{where}: {field} {reason}")


class InvalidPercentageTableError(ValidationError):
    """
    Commission percentages are out of range or over-allocated.

    Each percentage must lie within [0, 100] and supplier + shop plus the
    largest seller tier must not exceed 100.
    """

    code: str = "INVALID_PERCENTAGE_TABLE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid percentage table: {reason}")


# Not-found exceptions


class NotFoundError(LedgerKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class BatchNotFoundError(NotFoundError):
    """Stock batch with given ID was not found."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Stock batch not found: {batch_id}")


class MovementNotFoundError(NotFoundError):
    """Stock movement with given ID was not found."""

    code: str = "MOVEMENT_NOT_FOUND"

    def __init__(self, movement_id: str):
        self.movement_id = movement_id
        super().__init__(f"Stock movement not found: {movement_id}")


# State-conflict exceptions


class StateConflictError(LedgerKernelError):
    """Base exception for transitions requested from the wrong status."""

    code: str = "STATE_CONFLICT"


class InvalidMovementStateError(StateConflictError):
    """
    Movement is not in the status the operation requires.

    Settlement and cancellation only apply to movements that are still
    ``created``; settling twice is rejected, never skipped.
    """

    code: str = "INVALID_MOVEMENT_STATE"

    def __init__(self, movement_id: str, current_status: str, required_status: str):
        self.movement_id = movement_id
        self.current_status = current_status
        self.required_status = required_status
        super().__init__(
            f"Stock movement {movement_id} is {current_status}, "
            f"expected {required_status}"
        )


class BatchWrongStateError(StateConflictError):
    """Batch is not in the status the operation requires."""

    code: str = "BATCH_WRONG_STATE"

    def __init__(self, batch_id: str, current_status: str, required_status: str):
        self.batch_id = batch_id
        self.current_status = current_status
        self.required_status = required_status
        super().__init__(
            f"Stock batch {batch_id} is {current_status}, expected {required_status}"
        )


class BatchNotCancelableError(StateConflictError):
    """Batch has left the processing/completed states and cannot be canceled."""

    code: str = "BATCH_NOT_CANCELABLE"

    def __init__(self, batch_id: str, current_status: str):
        self.batch_id = batch_id
        self.current_status = current_status
        super().__init__(
            f"Stock batch {batch_id} cannot be canceled from status {current_status}"
        )


class MovementOwnedByBatchError(StateConflictError):
    """
    Movement belongs to a batch and only changes state through that batch.

    The single-movement fast path settles and cancels unbatched movements
    only; batch movements go through settle_batch / cancel_batch, which
    hold the batch row lock.
    """

    code: str = "MOVEMENT_OWNED_BY_BATCH"

    def __init__(self, movement_id: str, batch_id: str):
        self.movement_id = movement_id
        self.batch_id = batch_id
        super().__init__(
            f"Stock movement {movement_id} belongs to batch {batch_id}"
        )


# Stock exceptions


class InsufficientStockError(LedgerKernelError):
    """A stock_out would drive the metric's running balance negative."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        metric_id: str,
        available: Decimal,
        requested: Decimal,
        movement_id: str | None = None,
    ):
        self.metric_id = metric_id
        self.available = available
        self.requested = requested
        self.movement_id = movement_id
        super().__init__(
            f"Insufficient stock for metric {metric_id}: "
            f"available {available}, requested {requested}"
        )


# Dependency exceptions


class DependencyMissingError(LedgerKernelError):
    """Base exception for missing reference data."""

    code: str = "DEPENDENCY_MISSING"


class NoPriceAvailableError(DependencyMissingError):
    """No price record exists for the metric."""

    code: str = "NO_PRICE_AVAILABLE"

    def __init__(self, metric_id: str):
        self.metric_id = metric_id
        super().__init__(f"No price available for metric {metric_id}")


class MissingPercentageError(DependencyMissingError):
    """A commission percentage key is absent from the percentage source."""

    code: str = "MISSING_PERCENTAGE"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Commission percentage not configured: {key}")


# Immutability exceptions


class ImmutabilityViolationError(LedgerKernelError):
    """
    Attempted to modify or delete an immutable record.

    Commission records are append-only and settled movements keep their
    computed values permanently.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
