"""
Pure domain layer.

This module contains the batch state machine, the escrow arithmetic, the
serial-number codec, role contexts and DTOs, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the Clock abstraction itself)
- I/O

All domain objects are immutable and deterministic.
"""

from carbon_kernel.domain.accounts import ESCROW_CUSTODY, is_kernel_account, token_custody
from carbon_kernel.domain.authority import (
    AuthorizationContext,
    Role,
    RoleAuthority,
    StaticRoleAuthority,
)
from carbon_kernel.domain.batch_status import (
    BACKING_STATUSES,
    REQUESTED_STATUSES,
    VALID_TRANSITIONS,
    BatchStatus,
    can_transition,
    validate_transition,
)
from carbon_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from carbon_kernel.domain.collaborators import CertificateIssuer, VintageRegistry
from carbon_kernel.domain.dtos import (
    BatchCommentInfo,
    BatchInfo,
    ConservationReport,
    EscrowRequestInfo,
    FinalizeResult,
    RetirementDetails,
    RetirementEventInfo,
    VintageInfo,
)
from carbon_kernel.domain.escrow_rules import (
    DEFAULT_TOKEN_DECIMALS,
    RequestKind,
    RequestStatus,
    SplitPlan,
    plan_split,
    token_scale,
)
from carbon_kernel.domain.serial_range import (
    IssuanceRange,
    LegacyRange,
    SerialFormat,
    SerialRange,
    parse_serial,
    render_serial,
    split_range,
    split_serial,
)

__all__ = [
    # Accounts
    "ESCROW_CUSTODY",
    "is_kernel_account",
    "token_custody",
    # Authority
    "AuthorizationContext",
    "Role",
    "RoleAuthority",
    "StaticRoleAuthority",
    # Batch lifecycle
    "BACKING_STATUSES",
    "REQUESTED_STATUSES",
    "VALID_TRANSITIONS",
    "BatchStatus",
    "can_transition",
    "validate_transition",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Collaborators
    "CertificateIssuer",
    "VintageRegistry",
    # DTOs
    "BatchCommentInfo",
    "BatchInfo",
    "ConservationReport",
    "EscrowRequestInfo",
    "FinalizeResult",
    "RetirementDetails",
    "RetirementEventInfo",
    "VintageInfo",
    # Escrow rules
    "DEFAULT_TOKEN_DECIMALS",
    "RequestKind",
    "RequestStatus",
    "SplitPlan",
    "plan_split",
    "token_scale",
    # Serial numbers
    "IssuanceRange",
    "LegacyRange",
    "SerialFormat",
    "SerialRange",
    "parse_serial",
    "render_serial",
    "split_range",
    "split_serial",
]
