"""
Batch lifecycle -- status enum and the transition table.

Responsibility:
    Declares every status a batch can be in and the only edges between
    them.  BatchRegistry consults ``validate_transition`` before every status
    change; nothing else in the kernel assigns a batch status.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

State machine:
    PENDING                  -> REJECTED | CONFIRMED
    REJECTED                 -> PENDING
    CONFIRMED                -> DETOKENIZATION_REQUESTED | RETIREMENT_REQUESTED
    DETOKENIZATION_REQUESTED -> DETOKENIZATION_FINALIZED | CONFIRMED
    RETIREMENT_REQUESTED     -> RETIREMENT_FINALIZED | CONFIRMED
    DETOKENIZATION_FINALIZED: terminal
    RETIREMENT_FINALIZED: terminal

Invariants enforced:
    STATUS_TRANSITIONS -- any other edge raises InvalidBatchTransitionError.
"""

from __future__ import annotations

from enum import Enum

from carbon_kernel.exceptions import InvalidBatchTransitionError


class BatchStatus(str, Enum):
    """Lifecycle status of a batch record."""

    PENDING = "pending"
    REJECTED = "rejected"
    CONFIRMED = "confirmed"
    DETOKENIZATION_REQUESTED = "detokenization_requested"
    DETOKENIZATION_FINALIZED = "detokenization_finalized"
    RETIREMENT_REQUESTED = "retirement_requested"
    RETIREMENT_FINALIZED = "retirement_finalized"


VALID_TRANSITIONS: dict[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.PENDING: frozenset({
        BatchStatus.REJECTED, BatchStatus.CONFIRMED,
    }),
    BatchStatus.REJECTED: frozenset({
        BatchStatus.PENDING,
    }),
    BatchStatus.CONFIRMED: frozenset({
        BatchStatus.DETOKENIZATION_REQUESTED, BatchStatus.RETIREMENT_REQUESTED,
    }),
    BatchStatus.DETOKENIZATION_REQUESTED: frozenset({
        BatchStatus.DETOKENIZATION_FINALIZED, BatchStatus.CONFIRMED,
    }),
    BatchStatus.RETIREMENT_REQUESTED: frozenset({
        BatchStatus.RETIREMENT_FINALIZED, BatchStatus.CONFIRMED,
    }),
    # Terminal states
    BatchStatus.DETOKENIZATION_FINALIZED: frozenset(),
    BatchStatus.RETIREMENT_FINALIZED: frozenset(),
}

# Statuses in which a fractionalized batch still backs fungible supply.
BACKING_STATUSES: frozenset[BatchStatus] = frozenset({
    BatchStatus.CONFIRMED,
    BatchStatus.DETOKENIZATION_REQUESTED,
    BatchStatus.RETIREMENT_REQUESTED,
})

# Statuses referenced by an in-flight escrow request; only these may split.
REQUESTED_STATUSES: frozenset[BatchStatus] = frozenset({
    BatchStatus.DETOKENIZATION_REQUESTED,
    BatchStatus.RETIREMENT_REQUESTED,
})


def can_transition(current: BatchStatus, target: BatchStatus) -> bool:
    """True if ``current -> target`` is an edge of the table."""
    return target in VALID_TRANSITIONS.get(current, frozenset())


def validate_transition(batch_id: int, current: BatchStatus, target: BatchStatus) -> None:
    """
    Raise unless ``current -> target`` is an edge of the table.

    Raises:
        InvalidBatchTransitionError: For every edge not in VALID_TRANSITIONS.
    """
    if not can_transition(current, target):
        raise InvalidBatchTransitionError(batch_id, current.value, target.value)
