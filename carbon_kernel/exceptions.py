"""
Typed Exception Hierarchy for the Carbon Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (the sequencer, API adapters, tests) must be able to
tell a malformed request from a forbidden state change from an internal
accounting defect without parsing message strings.  Every error therefore:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        coordinator.create_request(ctx, RequestKind.RETIREMENT, amount, ids, details)
    except AdmissionControlError as e:
        api_response(code=e.code, amount=e.amount, all_but_last=e.all_but_last)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from CarbonKernelError:

    CarbonKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- EmptyBatchListError
    |   +-- DuplicateBatchReferenceError
    |   +-- FractionalAmountError
    |   +-- AmountExceedsBatchesError
    |   +-- AdmissionControlError
    |   +-- InvalidBatchDataError
    |   +-- IncompleteBatchError
    |   +-- VintageMismatchError
    |   +-- RetirementDetailsError
    |   +-- SerialNumberFormatError
    |   +-- InsufficientBalanceError
    |   +-- InsufficientAllowanceError
    |   +-- BatchNotFoundError
    |   +-- EscrowRequestNotFoundError
    |   +-- VintageNotFoundError
    |   +-- VintageAlreadyExistsError
    |   +-- RetirementEventNotFoundError
    |
    +-- StateError
    |   +-- InvalidBatchTransitionError
    |   +-- BatchNotPendingError
    |   +-- BatchNotConfirmedError
    |   +-- BatchNotSplittableError
    |   +-- BatchNotBackingError
    |   +-- BatchAlreadyFractionalizedError
    |   +-- VintageAlreadyLinkedError
    |   +-- RequestAlreadyConsumedError
    |
    +-- ConsistencyError
    |   +-- SerialNumberAlreadyClaimedError
    |   +-- SerialQuantityMismatchError
    |   +-- SplitSerialMismatchError
    |   +-- InvalidSplitAmountError
    |   +-- MissingSplitSerialsError
    |   +-- EscrowCustodyError
    |
    +-- AuthorizationError
    |   +-- MissingRoleError
    |   +-- NotBatchHolderError
    |
    +-- CapacityError
        +-- DepositCapExceededError

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Every error aborts the whole operation.  Services run each mutating
   operation inside a SAVEPOINT, so a caught error leaves the session as it
   was before the call.  Nothing is retried automatically.

2. StateError on finalize/revert usually means another privileged caller
   won the race; re-read the request rather than resubmitting.

3. ConsistencyError from the split path means the supplied serial numbers
   do not match the batch range.  EscrowCustodyError is an internal defect
   and should be escalated, never retried.
"""

from __future__ import annotations


class CarbonKernelError(Exception):
    """
    Base exception for all carbon kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CARBON_KERNEL_ERROR"


# =============================================================================
# Validation errors (malformed input)
# =============================================================================


class ValidationError(CarbonKernelError):
    """Base exception for malformed or inadmissible input."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Amount is zero or negative."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: int):
        self.amount = amount
        super().__init__(f"Amount must be positive, got {amount}")


class EmptyBatchListError(ValidationError):
    """A request must reference at least one batch."""

    code: str = "EMPTY_BATCH_LIST"

    def __init__(self) -> None:
        super().__init__("At least one batch id is required")


class DuplicateBatchReferenceError(ValidationError):
    """The same batch id appears more than once in a request."""

    code: str = "DUPLICATE_BATCH_REFERENCE"

    def __init__(self, batch_id: int):
        self.batch_id = batch_id
        super().__init__(f"Batch {batch_id} is referenced more than once")


class FractionalAmountError(ValidationError):
    """Amount is not a multiple of the vintage's minimal precision unit."""

    code: str = "FRACTIONAL_AMOUNT"

    def __init__(self, amount: int, minimal_unit: int, vintage_ref: str):
        self.amount = amount
        self.minimal_unit = minimal_unit
        self.vintage_ref = vintage_ref
        super().__init__(
            f"Amount {amount} is not a multiple of {minimal_unit} "
            f"(minimal unit of vintage {vintage_ref})"
        )


class AmountExceedsBatchesError(ValidationError):
    """Requested amount is larger than the referenced batches hold."""

    code: str = "AMOUNT_EXCEEDS_BATCHES"

    def __init__(self, amount: int, total_amount: int):
        self.amount = amount
        self.total_amount = total_amount
        super().__init__(
            f"Requested amount {amount} exceeds batch total {total_amount}"
        )


class AdmissionControlError(ValidationError):
    """
    All batches except the last already cover the requested amount.

    Only the last batch of a request may be split, so every other batch
    must be fully consumed by the request.
    """

    code: str = "ADMISSION_CONTROL_VIOLATION"

    def __init__(self, amount: int, total_amount: int, last_amount: int):
        self.amount = amount
        self.total_amount = total_amount
        self.last_amount = last_amount
        self.all_but_last = total_amount - last_amount
        super().__init__(
            f"Amount {amount} must exceed the total of all batches except "
            f"the last ({self.all_but_last})"
        )


class InvalidBatchDataError(ValidationError):
    """Batch data update carries invalid values."""

    code: str = "INVALID_BATCH_DATA"

    def __init__(self, batch_id: int, reason: str):
        self.batch_id = batch_id
        self.reason = reason
        super().__init__(f"Invalid data for batch {batch_id}: {reason}")


class IncompleteBatchError(ValidationError):
    """Batch lacks the data required for confirmation."""

    code: str = "INCOMPLETE_BATCH"

    def __init__(self, batch_id: int, missing: str):
        self.batch_id = batch_id
        self.missing = missing
        super().__init__(f"Batch {batch_id} cannot be confirmed: missing {missing}")


class VintageMismatchError(ValidationError):
    """Batch does not belong to the vintage of the request."""

    code: str = "VINTAGE_MISMATCH"

    def __init__(self, batch_id: int, expected: str, actual: str | None):
        self.batch_id = batch_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Batch {batch_id} belongs to vintage {actual}, expected {expected}"
        )


class RetirementDetailsError(ValidationError):
    """Retirement receipt metadata is missing or supplied where not allowed."""

    code: str = "RETIREMENT_DETAILS_INVALID"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class SerialNumberFormatError(ValidationError):
    """Serial number does not match either supported encoding."""

    code: str = "SERIAL_NUMBER_FORMAT"

    def __init__(self, serial_number: str, reason: str):
        self.serial_number = serial_number
        self.reason = reason
        super().__init__(f"Malformed serial number {serial_number!r}: {reason}")


class InsufficientBalanceError(ValidationError):
    """Account holds less than the amount being moved or burned."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, vintage_ref: str, account: str, balance: int, required: int):
        self.vintage_ref = vintage_ref
        self.account = account
        self.balance = balance
        self.required = required
        super().__init__(
            f"Account {account} holds {balance} of vintage {vintage_ref}, "
            f"{required} required"
        )


class InsufficientAllowanceError(ValidationError):
    """Spender's allowance does not cover a pull transfer."""

    code: str = "INSUFFICIENT_ALLOWANCE"

    def __init__(
        self, vintage_ref: str, owner: str, spender: str, allowance: int, required: int,
    ):
        self.vintage_ref = vintage_ref
        self.owner = owner
        self.spender = spender
        self.allowance = allowance
        self.required = required
        super().__init__(
            f"Spender {spender} may move {allowance} of {owner}'s vintage "
            f"{vintage_ref} balance, {required} required"
        )


class BatchNotFoundError(ValidationError):
    """Batch with given id was not found."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: int):
        self.batch_id = batch_id
        super().__init__(f"Batch not found: {batch_id}")


class EscrowRequestNotFoundError(ValidationError):
    """Escrow request with given id was not found."""

    code: str = "ESCROW_REQUEST_NOT_FOUND"

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Escrow request not found: {request_id}")


class VintageNotFoundError(ValidationError):
    """Vintage reference is unknown to the vintage registry."""

    code: str = "VINTAGE_NOT_FOUND"

    def __init__(self, vintage_ref: str):
        self.vintage_ref = vintage_ref
        super().__init__(f"Vintage not found: {vintage_ref}")


class VintageAlreadyExistsError(ValidationError):
    """Vintage reference is already registered."""

    code: str = "VINTAGE_ALREADY_EXISTS"

    def __init__(self, vintage_ref: str):
        self.vintage_ref = vintage_ref
        super().__init__(f"Vintage already registered: {vintage_ref}")


class RetirementEventNotFoundError(ValidationError):
    """Retirement event with given id was not found."""

    code: str = "RETIREMENT_EVENT_NOT_FOUND"

    def __init__(self, event_id: int):
        self.event_id = event_id
        super().__init__(f"Retirement event not found: {event_id}")


# =============================================================================
# State errors (operation attempted from a disallowed status)
# =============================================================================


class StateError(CarbonKernelError):
    """Base exception for operations attempted from a disallowed status."""

    code: str = "STATE_ERROR"


class InvalidBatchTransitionError(StateError):
    """Transition is not an edge of the batch status table."""

    code: str = "INVALID_BATCH_TRANSITION"

    def __init__(self, batch_id: int, from_status: str, to_status: str):
        self.batch_id = batch_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Batch {batch_id} cannot move from {from_status} to {to_status}"
        )


class BatchNotPendingError(StateError):
    """Batch data may only change while the batch is pending."""

    code: str = "BATCH_NOT_PENDING"

    def __init__(self, batch_id: int, status: str):
        self.batch_id = batch_id
        self.status = status
        super().__init__(f"Batch {batch_id} is {status}, not pending")


class BatchNotConfirmedError(StateError):
    """Operation needs a confirmed batch."""

    code: str = "BATCH_NOT_CONFIRMED"

    def __init__(self, batch_id: int, status: str):
        self.batch_id = batch_id
        self.status = status
        super().__init__(f"Batch {batch_id} is {status}, not confirmed")


class BatchNotSplittableError(StateError):
    """Only batches referenced by an in-flight request can be split."""

    code: str = "BATCH_NOT_SPLITTABLE"

    def __init__(self, batch_id: int, status: str):
        self.batch_id = batch_id
        self.status = status
        super().__init__(
            f"Batch {batch_id} is {status}; only requested batches can be split"
        )


class BatchNotBackingError(StateError):
    """Batch has not been fractionalized into the vintage's supply."""

    code: str = "BATCH_NOT_BACKING"

    def __init__(self, batch_id: int, holder: str):
        self.batch_id = batch_id
        self.holder = holder
        super().__init__(
            f"Batch {batch_id} is held by {holder} and does not back any supply"
        )


class BatchAlreadyFractionalizedError(StateError):
    """Batch already backs fungible supply."""

    code: str = "BATCH_ALREADY_FRACTIONALIZED"

    def __init__(self, batch_id: int):
        self.batch_id = batch_id
        super().__init__(f"Batch {batch_id} is already fractionalized")


class VintageAlreadyLinkedError(StateError):
    """A batch's vintage reference is immutable once set."""

    code: str = "VINTAGE_ALREADY_LINKED"

    def __init__(self, batch_id: int, vintage_ref: str):
        self.batch_id = batch_id
        self.vintage_ref = vintage_ref
        super().__init__(f"Batch {batch_id} is already linked to vintage {vintage_ref}")


class RequestAlreadyConsumedError(StateError):
    """Escrow request was already finalized or reverted."""

    code: str = "REQUEST_ALREADY_CONSUMED"

    def __init__(self, request_id: int, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(f"Escrow request {request_id} is already {status}")


# =============================================================================
# Consistency errors (serial / split arithmetic / custody accounting)
# =============================================================================


class ConsistencyError(CarbonKernelError):
    """Base exception for serial, split and custody consistency failures."""

    code: str = "CONSISTENCY_ERROR"


class SerialNumberAlreadyClaimedError(ConsistencyError):
    """Serial number is claimed by another confirmed batch."""

    code: str = "SERIAL_NUMBER_ALREADY_CLAIMED"

    def __init__(self, serial_number: str, claimed_by: int):
        self.serial_number = serial_number
        self.claimed_by = claimed_by
        super().__init__(
            f"Serial number {serial_number} is already claimed by batch {claimed_by}"
        )


class SerialQuantityMismatchError(ConsistencyError):
    """Serial range size disagrees with the batch quantity."""

    code: str = "SERIAL_QUANTITY_MISMATCH"

    def __init__(self, batch_id: int, serial_quantity: int, quantity: int):
        self.batch_id = batch_id
        self.serial_quantity = serial_quantity
        self.quantity = quantity
        super().__init__(
            f"Batch {batch_id} serial covers {serial_quantity} units "
            f"but quantity is {quantity}"
        )


class SplitSerialMismatchError(ConsistencyError):
    """Supplied split serials do not reconstruct the batch range."""

    code: str = "SPLIT_SERIAL_MISMATCH"

    def __init__(
        self,
        batch_id: int,
        expected_balancing: str,
        expected_remaining: str,
        balancing: str,
        remaining: str,
    ):
        self.batch_id = batch_id
        self.expected_balancing = expected_balancing
        self.expected_remaining = expected_remaining
        self.balancing = balancing
        self.remaining = remaining
        super().__init__(
            f"Split serials for batch {batch_id} do not match: expected "
            f"({expected_balancing}, {expected_remaining}), "
            f"got ({balancing}, {remaining})"
        )


class InvalidSplitAmountError(ConsistencyError):
    """Split point falls outside the open interval (0, quantity)."""

    code: str = "INVALID_SPLIT_AMOUNT"

    def __init__(self, amount: int, quantity: int):
        self.amount = amount
        self.quantity = quantity
        super().__init__(
            f"Split amount {amount} must be strictly between 0 and {quantity}"
        )


class MissingSplitSerialsError(ConsistencyError):
    """Finalize needs to split the last batch but serials were not supplied."""

    code: str = "MISSING_SPLIT_SERIALS"

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(
            f"Escrow request {request_id} requires split serial numbers"
        )


class EscrowCustodyError(ConsistencyError):
    """Escrow custody holds less than an open request accounts for."""

    code: str = "ESCROW_CUSTODY_SHORTFALL"

    def __init__(self, vintage_ref: str, custody_balance: int, required: int):
        self.vintage_ref = vintage_ref
        self.custody_balance = custody_balance
        self.required = required
        super().__init__(
            f"Escrow custody for vintage {vintage_ref} holds {custody_balance}, "
            f"{required} required"
        )


# =============================================================================
# Authorization errors
# =============================================================================


class AuthorizationError(CarbonKernelError):
    """Base exception for callers lacking the right to perform an operation."""

    code: str = "AUTHORIZATION_ERROR"


class MissingRoleError(AuthorizationError):
    """Caller lacks the role required by the operation."""

    code: str = "MISSING_ROLE"

    def __init__(self, caller: str, role: str):
        self.caller = caller
        self.role = role
        super().__init__(f"Caller {caller} lacks role {role}")


class NotBatchHolderError(AuthorizationError):
    """Caller is neither the batch holder nor a verifier."""

    code: str = "NOT_BATCH_HOLDER"

    def __init__(self, caller: str, batch_id: int, holder: str):
        self.caller = caller
        self.batch_id = batch_id
        self.holder = holder
        super().__init__(
            f"Caller {caller} may not modify batch {batch_id} held by {holder}"
        )


# =============================================================================
# Capacity errors
# =============================================================================


class CapacityError(CarbonKernelError):
    """Base exception for capacity limits."""

    code: str = "CAPACITY_ERROR"


class DepositCapExceededError(CapacityError):
    """Minting would push the vintage supply beyond its total quantity."""

    code: str = "DEPOSIT_CAP_EXCEEDED"

    def __init__(self, vintage_ref: str, supply: int, amount: int, cap: int):
        self.vintage_ref = vintage_ref
        self.supply = supply
        self.amount = amount
        self.cap = cap
        super().__init__(
            f"Minting {amount} on vintage {vintage_ref} exceeds cap {cap} "
            f"(current supply {supply})"
        )
