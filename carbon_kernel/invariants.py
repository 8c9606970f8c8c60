"""
Kernel Invariants Contract.

These invariants are structural law.  They are hardcoded in the batch
registry, the escrow coordinator and the serial-number codec.  No
configuration set or role binding may override them.

This module exists solely to declare these invariants explicitly.  The
enforcement is distributed across BatchRegistry, EscrowCoordinator,
FungibleLedger and carbon_kernel.domain.serial_range.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Each value names one structural guarantee that the kernel provides
    unconditionally.  Configuration may influence *who* may act and the
    token scale, but never *whether* these rules apply.
    """

    SERIAL_UNIQUENESS = "serial_uniqueness"
    """A serial number claimed by a confirmed batch cannot be confirmed by
    another batch until released.  Enforced by BatchRegistry.confirm and the
    UNIQUE constraint on claimed_serials.serial_number."""

    STATUS_TRANSITIONS = "status_transitions"
    """Batch status only moves along VALID_TRANSITIONS.  Enforced by
    carbon_kernel.domain.batch_status.validate_transition."""

    CONSERVATION = "conservation"
    """Outstanding supply of a vintage equals the scaled quantity of the
    active batches backing it.  Checked by LedgerSelector."""

    SINGLE_CONSUMPTION = "single_consumption"
    """An escrow request is finalized or reverted exactly once.  Enforced by
    EscrowCoordinator with a row lock on the request."""

    ADMISSION_CONTROL = "admission_control"
    """All batches of a request except the last must be fully consumed.
    Enforced by carbon_kernel.domain.escrow_rules.check_admission."""

    NON_FRACTIONAL_REQUEST = "non_fractional_request"
    """Requested amounts are multiples of the vintage's minimal unit.
    Enforced by carbon_kernel.domain.escrow_rules.check_non_fractional."""

    SPLIT_CONTIGUITY = "split_contiguity"
    """Split halves cover the original range exactly, without gap or
    overlap.  Enforced by carbon_kernel.domain.serial_range.split_range."""

    DEPOSIT_CAP = "deposit_cap"
    """Vintage supply never exceeds the vintage's total quantity.  Enforced
    by FungibleLedger.mint."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "carbon_config",
)
