"""
Module: carbon_kernel.models.batch
Responsibility: ORM persistence for batch records, their comment log and the
    global set of claimed serial numbers.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain layer.  MUST NOT import from services/, selectors/, or outer
    layers.

Invariants enforced:
    SERIAL_UNIQUENESS -- claimed_serials.serial_number is UNIQUE.  A serial is
        claimed when its batch is confirmed and released only when it is
        replaced by the two halves of a split.
    Batches are never deleted; token_id is allocated by SequenceService and
    never reused.

Failure modes:
    - IntegrityError on duplicate token_id or claimed serial (the services
      check first and raise typed errors; the constraints are the backstop).

Audit relevance:
    Every batch row records who created and last modified it (TrackedBase).
    The comment log is append-only and ordered by position.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carbon_kernel.db.base import Base, TrackedBase
from carbon_kernel.domain.batch_status import BatchStatus
from carbon_kernel.domain.dtos import BatchCommentInfo, BatchInfo


class BatchModel(TrackedBase):
    """
    Discrete batch of carbon-credit certificates.

    Contract:
        ``quantity`` is in whole certificate units and ``serial_number`` is
        the physical registry's range for exactly those units once the batch
        is confirmed.  ``vintage_ref`` is immutable once set.

    Guarantees:
        - token_id is unique (uq_batch_token_id).
        - status only changes through BatchRegistry, which consults the
          transition table.

    Non-goals:
        - No transfer between holders other than into token custody.
    """

    __tablename__ = "carbon_batches"

    __table_args__ = (
        UniqueConstraint("token_id", name="uq_batch_token_id"),
        Index("idx_batch_status", "status"),
        Index("idx_batch_vintage", "vintage_ref"),
        Index("idx_batch_holder", "holder"),
    )

    token_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Account reference of the current holder
    holder: Mapped[str] = mapped_column(String(128), nullable=False)

    serial_number: Mapped[str] = mapped_column(String(128), nullable=False, default="")

    # Whole certificate units
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    vintage_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)

    status: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        default=BatchStatus.PENDING.value,
    )

    uri: Mapped[str | None] = mapped_column(String(512), nullable=True)

    comments: Mapped[list[BatchCommentModel]] = relationship(
        "BatchCommentModel",
        back_populates="batch",
        order_by="BatchCommentModel.position",
        cascade="all, delete-orphan",
    )

    def to_dto(self) -> BatchInfo:
        return BatchInfo(
            token_id=self.token_id,
            holder=self.holder,
            serial_number=self.serial_number,
            quantity=self.quantity,
            vintage_ref=self.vintage_ref,
            status=BatchStatus(self.status),
            uri=self.uri,
        )

    def __repr__(self) -> str:
        return f"<Batch {self.token_id} {self.status} qty={self.quantity}>"


class BatchCommentModel(Base):
    """Append-only comment attached to a batch."""

    __tablename__ = "carbon_batch_comments"

    __table_args__ = (
        UniqueConstraint("batch_token_id", "position", name="uq_batch_comment_position"),
    )

    batch_token_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("carbon_batches.token_id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    author: Mapped[str] = mapped_column(String(128), nullable=False)

    comment: Mapped[str] = mapped_column(Text, nullable=False)

    commented_at: Mapped[datetime] = mapped_column(nullable=False)

    batch: Mapped[BatchModel] = relationship("BatchModel", back_populates="comments")

    def to_dto(self) -> BatchCommentInfo:
        return BatchCommentInfo(
            batch_id=self.batch_token_id,
            position=self.position,
            author=self.author,
            comment=self.comment,
            created_at=self.commented_at,
        )


class ClaimedSerialModel(Base):
    """
    Serial number currently claimed by a confirmed batch.

    The UNIQUE constraint on serial_number is the database-level guarantee
    that no two batches hold the same serial at the same time.
    """

    __tablename__ = "carbon_claimed_serials"

    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_claimed_serial_number"),
        Index("idx_claimed_serial_batch", "batch_token_id"),
    )

    serial_number: Mapped[str] = mapped_column(String(128), nullable=False)

    batch_token_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("carbon_batches.token_id"),
        nullable=False,
    )
