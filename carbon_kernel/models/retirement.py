"""
Module: carbon_kernel.models.retirement
Responsibility: ORM persistence for retirement events registered with the
    in-process RetirementCertificateService.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain layer.

Invariants enforced:
    - event_id is unique and allocated by SequenceService.
    - Rows are append-only.

Audit relevance:
    A retirement event is the receipt for a permanent burn: who retired how
    much of which vintage, on whose behalf, and when.
"""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from carbon_kernel.db.base import TokenAmount, TrackedBase
from carbon_kernel.domain.dtos import RetirementDetails, RetirementEventInfo


class RetirementEventModel(TrackedBase):
    """Receipt of one finalized retirement."""

    __tablename__ = "carbon_retirement_events"

    __table_args__ = (
        UniqueConstraint("event_id", name="uq_retirement_event_id"),
        Index("idx_retirement_event_entity", "retiring_entity"),
    )

    event_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    retiring_entity: Mapped[str] = mapped_column(String(128), nullable=False)

    vintage_ref: Mapped[str] = mapped_column(String(128), nullable=False)

    amount: Mapped[int] = mapped_column(TokenAmount(), nullable=False)

    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    registered_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self) -> RetirementEventInfo:
        return RetirementEventInfo(
            event_id=self.event_id,
            retiring_entity=self.retiring_entity,
            vintage_ref=self.vintage_ref,
            amount=self.amount,
            details=(
                RetirementDetails.from_payload(self.details)
                if self.details is not None else None
            ),
            created_at=self.registered_at,
        )
