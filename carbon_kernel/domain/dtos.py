"""
DTOs -- immutable data transfer objects returned by kernel services.

Responsibility:
    Services and selectors never hand ORM entities to callers; they return
    the frozen dataclasses below.  ``RetirementDetails`` is also an input DTO
    (retirement receipt metadata supplied with a retirement request).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from carbon_kernel.domain.batch_status import BACKING_STATUSES, BatchStatus
from carbon_kernel.domain.escrow_rules import RequestKind, RequestStatus


@dataclass(frozen=True)
class BatchInfo:
    """Snapshot of a batch record."""

    token_id: int
    holder: str
    serial_number: str
    quantity: int
    vintage_ref: str | None
    status: BatchStatus
    uri: str | None = None

    @property
    def is_backing_status(self) -> bool:
        """Status in which a fractionalized batch still backs supply."""
        return self.status in BACKING_STATUSES


@dataclass(frozen=True)
class BatchCommentInfo:
    """One entry of a batch's ordered comment log."""

    batch_id: int
    position: int
    author: str
    comment: str
    created_at: datetime


@dataclass(frozen=True)
class VintageInfo:
    """
    Vintage as supplied by the VintageRegistry.

    ``precision`` is the number of decimal places of a whole unit a request
    may carry (0 = whole units only).  ``total_vintage_quantity`` bounds the
    fungible supply of the vintage (deposit cap).
    """

    vintage_ref: str
    name: str
    project_ref: str | None
    total_vintage_quantity: int
    precision: int = 0


@dataclass(frozen=True)
class RetirementDetails:
    """Receipt metadata attached to a retirement request."""

    retiring_entity_name: str = ""
    beneficiary: str | None = None
    beneficiary_name: str = ""
    retirement_message: str = ""
    beneficiary_location: str = ""
    consumption_country_code: str = ""
    consumption_period_start: date | None = None
    consumption_period_end: date | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "retiring_entity_name": self.retiring_entity_name,
            "beneficiary": self.beneficiary,
            "beneficiary_name": self.beneficiary_name,
            "retirement_message": self.retirement_message,
            "beneficiary_location": self.beneficiary_location,
            "consumption_country_code": self.consumption_country_code,
            "consumption_period_start": (
                self.consumption_period_start.isoformat()
                if self.consumption_period_start else None
            ),
            "consumption_period_end": (
                self.consumption_period_end.isoformat()
                if self.consumption_period_end else None
            ),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RetirementDetails:
        start = payload.get("consumption_period_start")
        end = payload.get("consumption_period_end")
        return cls(
            retiring_entity_name=payload.get("retiring_entity_name", ""),
            beneficiary=payload.get("beneficiary"),
            beneficiary_name=payload.get("beneficiary_name", ""),
            retirement_message=payload.get("retirement_message", ""),
            beneficiary_location=payload.get("beneficiary_location", ""),
            consumption_country_code=payload.get("consumption_country_code", ""),
            consumption_period_start=date.fromisoformat(start) if start else None,
            consumption_period_end=date.fromisoformat(end) if end else None,
        )


@dataclass(frozen=True)
class EscrowRequestInfo:
    """Snapshot of an escrow request."""

    request_id: int
    requester: str
    kind: RequestKind
    status: RequestStatus
    amount: int
    vintage_ref: str
    batch_ids: tuple[int, ...]
    details: RetirementDetails | None = None
    retirement_event_id: int | None = None
    created_at: datetime | None = None
    consumed_at: datetime | None = None

    @property
    def is_consumed(self) -> bool:
        return self.status is not RequestStatus.PENDING


@dataclass(frozen=True)
class FinalizeResult:
    """Outcome of EscrowCoordinator.finalize."""

    request_id: int
    burned_amount: int
    finalized_batch_ids: tuple[int, ...]
    split_batch_id: int | None = None
    retirement_event_id: int | None = None


@dataclass(frozen=True)
class RetirementEventInfo:
    """Retirement event registered with the certificate issuer."""

    event_id: int
    retiring_entity: str
    vintage_ref: str
    amount: int
    details: RetirementDetails | None
    created_at: datetime


@dataclass(frozen=True)
class ConservationReport:
    """
    Supply versus backing for one vintage.

    ``backed_amount`` is the scaled quantity of every batch held by the
    vintage's token custody in a backing status.
    """

    vintage_ref: str
    outstanding_supply: int
    backed_amount: int
    backing_batch_ids: tuple[int, ...] = field(default_factory=tuple)

    @property
    def difference(self) -> int:
        return self.outstanding_supply - self.backed_amount

    @property
    def is_balanced(self) -> bool:
        return self.difference == 0
