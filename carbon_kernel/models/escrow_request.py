"""
Module: carbon_kernel.models.escrow_request
Responsibility: ORM persistence for detokenization / retirement escrow
    requests and the ordered list of batches each request references.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain layer.

Invariants enforced:
    SINGLE_CONSUMPTION -- status leaves PENDING exactly once (FINALIZED or
        REVERTED).  The guard lives in EscrowCoordinator; the row is locked
        with SELECT ... FOR UPDATE before it is inspected.
    Batch order is significant (position column): only the last batch of a
    request may be split.

Audit relevance:
    A finalized retirement request carries the retirement event id issued by
    the certificate issuer.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, BigInteger, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carbon_kernel.db.base import Base, TokenAmount, TrackedBase, UUIDString
from carbon_kernel.domain.dtos import EscrowRequestInfo, RetirementDetails
from carbon_kernel.domain.escrow_rules import RequestKind, RequestStatus


class EscrowRequestModel(TrackedBase):
    """
    Escrowed detokenization or retirement request.

    Contract:
        ``amount`` is in fungible base units and sits in escrow custody while
        the request is PENDING.

    Guarantees:
        - request_id is unique (uq_escrow_request_id).
        - batches are returned in request order.
    """

    __tablename__ = "carbon_escrow_requests"

    __table_args__ = (
        UniqueConstraint("request_id", name="uq_escrow_request_id"),
        Index("idx_escrow_request_status", "status"),
        Index("idx_escrow_request_requester", "requester"),
    )

    request_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    requester: Mapped[str] = mapped_column(String(128), nullable=False)

    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RequestStatus.PENDING.value,
    )

    amount: Mapped[int] = mapped_column(TokenAmount(), nullable=False)

    vintage_ref: Mapped[str] = mapped_column(String(128), nullable=False)

    # RetirementDetails.to_payload() for retirement requests
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    retirement_event_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    requested_at: Mapped[datetime] = mapped_column(nullable=False)

    consumed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    batches: Mapped[list[EscrowRequestBatchModel]] = relationship(
        "EscrowRequestBatchModel",
        back_populates="request",
        order_by="EscrowRequestBatchModel.position",
        cascade="all, delete-orphan",
    )

    @property
    def batch_ids(self) -> tuple[int, ...]:
        return tuple(link.batch_token_id for link in self.batches)

    def to_dto(self) -> EscrowRequestInfo:
        return EscrowRequestInfo(
            request_id=self.request_id,
            requester=self.requester,
            kind=RequestKind(self.kind),
            status=RequestStatus(self.status),
            amount=self.amount,
            vintage_ref=self.vintage_ref,
            batch_ids=self.batch_ids,
            details=(
                RetirementDetails.from_payload(self.details)
                if self.details is not None else None
            ),
            retirement_event_id=self.retirement_event_id,
            created_at=self.requested_at,
            consumed_at=self.consumed_at,
        )

    def __repr__(self) -> str:
        return f"<EscrowRequest {self.request_id} {self.kind} {self.status}>"


class EscrowRequestBatchModel(Base):
    """One batch reference of an escrow request, in caller order."""

    __tablename__ = "carbon_escrow_request_batches"

    __table_args__ = (
        UniqueConstraint("request_uuid", "position", name="uq_escrow_request_batch_position"),
        UniqueConstraint("request_uuid", "batch_token_id", name="uq_escrow_request_batch"),
    )

    request_uuid: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("carbon_escrow_requests.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    batch_token_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("carbon_batches.token_id"),
        nullable=False,
    )

    request: Mapped[EscrowRequestModel] = relationship(
        "EscrowRequestModel", back_populates="batches"
    )
