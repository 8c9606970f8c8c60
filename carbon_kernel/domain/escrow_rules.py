"""
Escrow rules -- request kinds and the pure admission / finalize arithmetic.

Responsibility:
    Everything EscrowCoordinator decides that does not need the database:
    request shape checks, the non-fractional amount rule, the admission
    control rule, whole-unit normalization, and the split plan used when a
    request consumes only part of its last batch.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    NON_FRACTIONAL_REQUEST -- ``check_non_fractional``.
    ADMISSION_CONTROL      -- ``check_admission``: when a request does not
        consume its batches entirely, every batch except the last must be
        fully consumed (``total - last < whole(amount)``).  Only the last
        batch of the caller-chosen order can ever be split, and only at
        whole units.

Failure modes:
    - InvalidAmountError, EmptyBatchListError, DuplicateBatchReferenceError
    - FractionalAmountError
    - AmountExceedsBatchesError, AdmissionControlError
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from carbon_kernel.domain.authority import Role
from carbon_kernel.domain.batch_status import BatchStatus
from carbon_kernel.exceptions import (
    AdmissionControlError,
    AmountExceedsBatchesError,
    DuplicateBatchReferenceError,
    EmptyBatchListError,
    FractionalAmountError,
    InvalidAmountError,
)

DEFAULT_TOKEN_DECIMALS = 18


class RequestKind(str, Enum):
    """Kind of escrow request."""

    DETOKENIZATION = "detokenization"
    RETIREMENT = "retirement"

    @property
    def requested_status(self) -> BatchStatus:
        if self is RequestKind.DETOKENIZATION:
            return BatchStatus.DETOKENIZATION_REQUESTED
        return BatchStatus.RETIREMENT_REQUESTED

    @property
    def finalized_status(self) -> BatchStatus:
        if self is RequestKind.DETOKENIZATION:
            return BatchStatus.DETOKENIZATION_FINALIZED
        return BatchStatus.RETIREMENT_FINALIZED

    @property
    def finalizer_role(self) -> Role:
        if self is RequestKind.DETOKENIZATION:
            return Role.DETOKENIZER
        return Role.RETIREMENT_FINALIZER


class RequestStatus(str, Enum):
    """Escrow request lifecycle: PENDING -> FINALIZED | REVERTED (terminal)."""

    PENDING = "pending"
    FINALIZED = "finalized"
    REVERTED = "reverted"


def token_scale(token_decimals: int = DEFAULT_TOKEN_DECIMALS) -> int:
    """Base units per whole unit."""
    return 10**token_decimals


def minimal_unit(precision: int, token_decimals: int = DEFAULT_TOKEN_DECIMALS) -> int:
    """Smallest requestable amount for a vintage of the given precision."""
    if not 0 <= precision <= token_decimals:
        raise ValueError(
            f"Vintage precision {precision} must be within 0..{token_decimals}"
        )
    return 10 ** (token_decimals - precision)


def check_request_shape(amount: int, batch_ids: Sequence[int]) -> None:
    """Reject non-positive amounts, empty and duplicate batch lists."""
    if amount <= 0:
        raise InvalidAmountError(amount)
    if not batch_ids:
        raise EmptyBatchListError()
    seen: set[int] = set()
    for batch_id in batch_ids:
        if batch_id in seen:
            raise DuplicateBatchReferenceError(batch_id)
        seen.add(batch_id)


def check_non_fractional(
    amount: int,
    vintage_ref: str,
    precision: int,
    token_decimals: int = DEFAULT_TOKEN_DECIMALS,
) -> None:
    """Reject amounts that cannot map onto a physical certificate fraction."""
    unit = minimal_unit(precision, token_decimals)
    if amount % unit != 0:
        raise FractionalAmountError(amount, unit, vintage_ref)


def check_admission(amount: int, total_amount: int, last_amount: int, scale: int = 1) -> None:
    """
    Admission control for a request over batches totalling ``total_amount``.

    Finalize splits the last batch at ``amount`` rounded down to whole units
    of ``scale`` base units, so a partial request is compared on that whole
    part: the batches other than the last must stay strictly below it.

    Raises:
        AmountExceedsBatchesError: amount > total_amount.
        AdmissionControlError: amount < total_amount and the batches other
            than the last already reach the whole-unit part of ``amount``.
    """
    if amount > total_amount:
        raise AmountExceedsBatchesError(amount, total_amount)
    if amount < total_amount and total_amount - last_amount >= amount - amount % scale:
        raise AdmissionControlError(amount, total_amount, last_amount)


def normalize_amount(amount: int, token_decimals: int = DEFAULT_TOKEN_DECIMALS) -> int:
    """Round ``amount`` down to whole units (batches are tracked in whole units)."""
    return amount - amount % token_scale(token_decimals)


@dataclass(frozen=True)
class SplitPlan:
    """
    How finalize divides the last batch of a request.

    ``remainder_units`` stay outside the request in a new Confirmed sibling.
    """

    normalized_amount: int
    total_batches_amount: int
    remainder_units: int

    @property
    def requires_split(self) -> bool:
        return self.remainder_units > 0


def plan_split(
    amount: int,
    total_batches_amount: int,
    token_decimals: int = DEFAULT_TOKEN_DECIMALS,
) -> SplitPlan:
    """Compute the whole-unit remainder left after finalizing ``amount``."""
    normalized = normalize_amount(amount, token_decimals)
    remainder = 0
    if normalized < total_batches_amount:
        remainder = (total_batches_amount - normalized) // token_scale(token_decimals)
    return SplitPlan(
        normalized_amount=normalized,
        total_batches_amount=total_batches_amount,
        remainder_units=remainder,
    )
