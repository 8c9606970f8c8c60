"""
BatchRegistry -- lifecycle of discrete carbon-credit batches.

Responsibility:
    Owns batch records: minting empty batches, recording verification data,
    linking vintages, the verifier decisions (confirm / reject / back to
    pending), the comment log, the status edges driven by escrow requests,
    and splitting a requested batch into two contiguous serial ranges.

Architecture position:
    Kernel > Services -- imperative shell.  The only writer of BatchModel,
    BatchCommentModel and ClaimedSerialModel rows.  Pure rules come from
    ``domain.batch_status`` and ``domain.serial_range``.

Invariants enforced:
    STATUS_TRANSITIONS -- every status change goes through
        ``validate_transition``.
    SERIAL_UNIQUENESS  -- a serial number is claimed by at most one batch.
        Claimed at confirm, released only when replaced by split halves.
    SPLIT_CONTIGUITY   -- split serials must equal the codec's split of the
        batch range; the two halves cover the original range exactly.
    A vintage reference is immutable once set.

Failure modes:
    - BatchNotFoundError, VintageNotFoundError (ValidationError).
    - InvalidBatchDataError, IncompleteBatchError (ValidationError).
    - InvalidBatchTransitionError, BatchNotPendingError,
      BatchNotSplittableError, VintageAlreadyLinkedError (StateError).
    - SerialNumberAlreadyClaimedError, SerialQuantityMismatchError,
      SplitSerialMismatchError, InvalidSplitAmountError (ConsistencyError).
    - SerialNumberFormatError when a split batch's serial cannot be parsed.
    - MissingRoleError, NotBatchHolderError (AuthorizationError).

Audit relevance:
    Every mutation records the acting caller in ``updated_by`` and emits a
    structured log line with the batch id bound in the LogContext.
    Rejections are logged at WARNING with the error code.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from carbon_kernel.domain.authority import AuthorizationContext, Role
from carbon_kernel.domain.batch_status import (
    REQUESTED_STATUSES,
    BatchStatus,
    validate_transition,
)
from carbon_kernel.domain.clock import Clock, SystemClock
from carbon_kernel.domain.collaborators import VintageRegistry
from carbon_kernel.domain.dtos import BatchCommentInfo, BatchInfo
from carbon_kernel.domain.escrow_rules import DEFAULT_TOKEN_DECIMALS, token_scale
from carbon_kernel.domain.serial_range import parse_serial, split_range
from carbon_kernel.exceptions import (
    BatchNotFoundError,
    BatchNotPendingError,
    BatchNotSplittableError,
    CarbonKernelError,
    IncompleteBatchError,
    InvalidBatchDataError,
    InvalidSplitAmountError,
    NotBatchHolderError,
    SerialNumberAlreadyClaimedError,
    SerialQuantityMismatchError,
    SplitSerialMismatchError,
    VintageAlreadyLinkedError,
    VintageNotFoundError,
)
from carbon_kernel.logging_config import LogContext, get_logger
from carbon_kernel.models.batch import BatchCommentModel, BatchModel, ClaimedSerialModel
from carbon_kernel.services.base import BaseService
from carbon_kernel.services.sequence_service import SequenceService

logger = get_logger("services.batch_registry")

# Actor recorded for kernel-internal mutations that carry no caller.
KERNEL_ACTOR = "carbon_kernel"


class BatchRegistry(BaseService):
    """
    Registry of batch records.

    Contract:
        Caller-facing operations take an ``AuthorizationContext`` first.
        ``transition_for_request``, ``split`` and ``move_to_custody`` are
        kernel-internal; they are invoked by EscrowCoordinator and
        FractionalizationService, which have already authorized the caller.

    Guarantees:
        - Each public mutation is all-or-nothing (runs in a SAVEPOINT after
          validation).
        - Batches are never deleted.
        - Batch ids are allocated by SequenceService and strictly increase.
    """

    def __init__(
        self,
        session: Session,
        vintage_registry: VintageRegistry,
        sequence_service: SequenceService | None = None,
        clock: Clock | None = None,
        token_decimals: int = DEFAULT_TOKEN_DECIMALS,
    ):
        super().__init__(session)
        self._vintages = vintage_registry
        self._sequences = sequence_service or SequenceService(session)
        self._clock = clock or SystemClock()
        self._token_decimals = token_decimals

    @property
    def scale(self) -> int:
        return token_scale(self._token_decimals)

    # =========================================================================
    # Helpers
    # =========================================================================

    @contextmanager
    def _operation(self, event: str, batch_id: int | None, actor: str) -> Iterator[None]:
        """Bind log context, log typed rejections, and run in a SAVEPOINT."""
        with LogContext.bind(batch_id=batch_id, actor_id=actor):
            try:
                with self.session.begin_nested():
                    yield
            except CarbonKernelError as exc:
                logger.warning(
                    f"{event}_rejected",
                    extra={"error_code": exc.code, "error": str(exc)},
                )
                raise

    def _load(self, batch_id: int, for_update: bool = True) -> BatchModel:
        stmt = select(BatchModel).where(BatchModel.token_id == batch_id)
        if for_update:
            stmt = stmt.with_for_update()
        batch = self.session.execute(stmt).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    @staticmethod
    def _require_holder_or_verifier(ctx: AuthorizationContext, batch: BatchModel) -> None:
        if ctx.caller != batch.holder and not ctx.has_role(Role.VERIFIER):
            raise NotBatchHolderError(ctx.caller, batch.token_id, batch.holder)

    @staticmethod
    def _require_pending(batch: BatchModel) -> None:
        if batch.status != BatchStatus.PENDING:
            raise BatchNotPendingError(batch.token_id, BatchStatus(batch.status).value)

    def _set_status(self, batch: BatchModel, target: BatchStatus, actor: str) -> None:
        # INVARIANT: STATUS_TRANSITIONS
        validate_transition(batch.token_id, BatchStatus(batch.status), target)
        batch.status = target.value
        batch.updated_by = actor

    def _claim_holder(self, serial_number: str) -> ClaimedSerialModel | None:
        return self.session.execute(
            select(ClaimedSerialModel).where(
                ClaimedSerialModel.serial_number == serial_number
            )
        ).scalar_one_or_none()

    def _claim(self, batch_id: int, serial_number: str) -> None:
        # INVARIANT: SERIAL_UNIQUENESS
        claim = self._claim_holder(serial_number)
        if claim is not None:
            if claim.batch_token_id == batch_id:
                return
            raise SerialNumberAlreadyClaimedError(serial_number, claim.batch_token_id)
        self.session.add(
            ClaimedSerialModel(serial_number=serial_number, batch_token_id=batch_id)
        )

    def _release(self, batch_id: int, serial_number: str) -> None:
        self.session.execute(
            delete(ClaimedSerialModel).where(
                ClaimedSerialModel.serial_number == serial_number,
                ClaimedSerialModel.batch_token_id == batch_id,
            )
        )

    def _append_comment(self, batch: BatchModel, author: str, comment: str) -> None:
        batch.comments.append(
            BatchCommentModel(
                batch_token_id=batch.token_id,
                position=len(batch.comments),
                author=author,
                comment=comment,
                commented_at=self._clock.now(),
            )
        )

    def _new_batch(
        self,
        holder: str,
        actor: str,
        status: BatchStatus = BatchStatus.PENDING,
        serial_number: str = "",
        quantity: int = 0,
        vintage_ref: str | None = None,
        uri: str | None = None,
    ) -> BatchModel:
        token_id = self._sequences.next_value(SequenceService.BATCH)
        batch = BatchModel(
            token_id=token_id,
            holder=holder,
            serial_number=serial_number,
            quantity=quantity,
            vintage_ref=vintage_ref,
            status=status.value,
            uri=uri,
            created_by=actor,
        )
        self.session.add(batch)
        return batch

    # =========================================================================
    # Caller-facing operations
    # =========================================================================

    def mint(self, ctx: AuthorizationContext, owner: str) -> int:
        """
        Create an empty Pending batch held by ``owner``.

        Returns:
            The new batch id.
        """
        with self._operation("batch_mint", None, ctx.caller):
            ctx.require(Role.TOKENIZER)
            if not owner:
                raise InvalidBatchDataError(0, "owner is empty")
            batch = self._new_batch(holder=owner, actor=ctx.caller)
            self.session.flush()

            logger.info(
                "batch_minted",
                extra={"token_id": batch.token_id, "owner": owner},
            )
            return batch.token_id

    def set_data(
        self,
        ctx: AuthorizationContext,
        batch_id: int,
        serial_number: str,
        quantity: int,
        uri: str | None = None,
    ) -> BatchInfo:
        """Overwrite serial number, quantity and uri of a Pending batch."""
        with self._operation("batch_set_data", batch_id, ctx.caller):
            batch = self._load(batch_id)
            self._require_holder_or_verifier(ctx, batch)
            self._require_pending(batch)
            if quantity < 0:
                raise InvalidBatchDataError(batch_id, f"quantity {quantity} is negative")

            batch.serial_number = serial_number
            batch.quantity = quantity
            batch.uri = uri
            batch.updated_by = ctx.caller
            self.session.flush()

            logger.info(
                "batch_data_set",
                extra={"serial_number": serial_number, "quantity": quantity},
            )
            return batch.to_dto()

    def link_with_vintage(
        self, ctx: AuthorizationContext, batch_id: int, vintage_ref: str
    ) -> BatchInfo:
        """Attach a vintage to a Pending batch; a different existing link fails."""
        with self._operation("batch_link_vintage", batch_id, ctx.caller):
            batch = self._load(batch_id)
            self._require_holder_or_verifier(ctx, batch)
            self._require_pending(batch)
            self._link(batch, vintage_ref, ctx.caller)
            self.session.flush()
            return batch.to_dto()

    def _link(self, batch: BatchModel, vintage_ref: str, actor: str) -> None:
        if batch.vintage_ref is not None:
            if batch.vintage_ref != vintage_ref:
                raise VintageAlreadyLinkedError(batch.token_id, batch.vintage_ref)
            return
        if not self._vintages.exists(vintage_ref):
            raise VintageNotFoundError(vintage_ref)
        batch.vintage_ref = vintage_ref
        batch.updated_by = actor
        logger.info("batch_vintage_linked", extra={"linked_vintage": vintage_ref})

    def confirm(self, ctx: AuthorizationContext, batch_id: int) -> BatchInfo:
        """
        Pending -> Confirmed.

        Requires a linked vintage, a positive quantity and a serial number
        not claimed by any other batch; the serial becomes claimed.
        """
        with self._operation("batch_confirm", batch_id, ctx.caller):
            ctx.require(Role.VERIFIER)
            batch = self._load(batch_id)
            self._confirm(batch, ctx.caller)
            return batch.to_dto()

    def confirm_with_vintage(
        self, ctx: AuthorizationContext, batch_id: int, vintage_ref: str
    ) -> BatchInfo:
        """Link ``vintage_ref`` and confirm in one step."""
        with self._operation("batch_confirm", batch_id, ctx.caller):
            ctx.require(Role.VERIFIER)
            batch = self._load(batch_id)
            self._require_pending(batch)
            self._link(batch, vintage_ref, ctx.caller)
            self._confirm(batch, ctx.caller)
            return batch.to_dto()

    def _confirm(self, batch: BatchModel, actor: str) -> None:
        validate_transition(batch.token_id, BatchStatus(batch.status), BatchStatus.CONFIRMED)
        if batch.vintage_ref is None:
            raise IncompleteBatchError(batch.token_id, "vintage_ref")
        if batch.quantity <= 0:
            raise IncompleteBatchError(batch.token_id, "quantity")
        if not batch.serial_number:
            raise IncompleteBatchError(batch.token_id, "serial_number")

        self._claim(batch.token_id, batch.serial_number)
        self._set_status(batch, BatchStatus.CONFIRMED, actor)
        self.session.flush()

        logger.info(
            "batch_confirmed",
            extra={"serial_number": batch.serial_number, "quantity": batch.quantity},
        )

    def reject(
        self, ctx: AuthorizationContext, batch_id: int, comment: str | None = None
    ) -> BatchInfo:
        """Pending -> Rejected, releasing the serial and recording ``comment``."""
        with self._operation("batch_reject", batch_id, ctx.caller):
            ctx.require(Role.VERIFIER)
            batch = self._load(batch_id)
            self._set_status(batch, BatchStatus.REJECTED, ctx.caller)
            if batch.serial_number:
                self._release(batch.token_id, batch.serial_number)
            if comment:
                self._append_comment(batch, ctx.caller, comment)
            self.session.flush()

            logger.info("batch_rejected", extra={"has_comment": bool(comment)})
            return batch.to_dto()

    def set_to_pending(
        self, ctx: AuthorizationContext, batch_id: int, comment: str | None = None
    ) -> BatchInfo:
        """Rejected -> Pending, so the holder can correct the data."""
        with self._operation("batch_set_to_pending", batch_id, ctx.caller):
            ctx.require(Role.VERIFIER)
            batch = self._load(batch_id)
            self._set_status(batch, BatchStatus.PENDING, ctx.caller)
            if comment:
                self._append_comment(batch, ctx.caller, comment)
            self.session.flush()

            logger.info("batch_set_to_pending", extra={"has_comment": bool(comment)})
            return batch.to_dto()

    def add_comment(self, ctx: AuthorizationContext, batch_id: int, comment: str) -> None:
        with self._operation("batch_comment", batch_id, ctx.caller):
            batch = self._load(batch_id)
            self._require_holder_or_verifier(ctx, batch)
            if not comment:
                raise InvalidBatchDataError(batch_id, "comment is empty")
            self._append_comment(batch, ctx.caller, comment)
            self.session.flush()

    # =========================================================================
    # Kernel-internal operations
    # =========================================================================

    def transition_for_request(
        self, batch_id: int, new_status: BatchStatus, actor: str = KERNEL_ACTOR
    ) -> int:
        """
        Apply one edge of the transition table on behalf of an escrow request.

        Returns:
            The batch quantity in base units (``quantity * scale``).
        """
        with self._operation("batch_transition", batch_id, actor):
            batch = self._load(batch_id)
            previous = BatchStatus(batch.status)
            self._set_status(batch, new_status, actor)
            self.session.flush()

            logger.info(
                "batch_status_changed",
                extra={"from_status": previous.value, "to_status": new_status.value},
            )
            return batch.quantity * self.scale

    def move_to_custody(
        self, batch_id: int, custody_account: str, actor: str = KERNEL_ACTOR
    ) -> BatchInfo:
        """Reassign a batch to a kernel custody account (fractionalization)."""
        with self._operation("batch_custody", batch_id, actor):
            batch = self._load(batch_id)
            previous_holder = batch.holder
            batch.holder = custody_account
            batch.updated_by = actor
            self.session.flush()

            logger.info(
                "batch_moved_to_custody",
                extra={"previous_holder": previous_holder, "custody": custody_account},
            )
            return batch.to_dto()

    def split(
        self,
        batch_id: int,
        serial_a: str,
        serial_b: str,
        remainder_amount: int,
        actor: str = KERNEL_ACTOR,
    ) -> int:
        """
        Split a requested batch; the sibling takes ``remainder_amount`` units.

        The original keeps ``serial_a`` (the balancing range, still part of
        its request) and ``quantity - remainder_amount`` units.  The new
        sibling is Confirmed with ``serial_b``, the same holder and vintage.

        Returns:
            The id of the new sibling batch.

        Raises:
            BatchNotSplittableError: Batch is not in a requested status.
            InvalidSplitAmountError: Unless ``0 < remainder_amount < quantity``.
            SerialNumberFormatError: Batch serial cannot be parsed.
            SerialQuantityMismatchError: Batch serial does not cover quantity.
            SplitSerialMismatchError: Supplied serials differ from the codec.
        """
        with self._operation("batch_split", batch_id, actor):
            batch = self._load(batch_id)
            status = BatchStatus(batch.status)
            if status not in REQUESTED_STATUSES:
                raise BatchNotSplittableError(batch_id, status.value)
            if not 0 < remainder_amount < batch.quantity:
                raise InvalidSplitAmountError(remainder_amount, batch.quantity)

            serial_range = parse_serial(batch.serial_number)
            if serial_range.quantity != batch.quantity:
                raise SerialQuantityMismatchError(
                    batch_id, serial_range.quantity, batch.quantity
                )

            balancing_quantity = batch.quantity - remainder_amount
            balancing, remaining = split_range(serial_range, balancing_quantity)
            expected_a, expected_b = balancing.render(), remaining.render()
            # INVARIANT: SPLIT_CONTIGUITY
            if serial_a != expected_a or serial_b != expected_b:
                raise SplitSerialMismatchError(
                    batch_id, expected_a, expected_b, serial_a, serial_b
                )

            old_serial = batch.serial_number
            self._release(batch_id, old_serial)
            self.session.flush()
            self._claim(batch_id, serial_a)

            batch.serial_number = serial_a
            batch.quantity = balancing_quantity
            batch.updated_by = actor

            sibling = self._new_batch(
                holder=batch.holder,
                actor=actor,
                status=BatchStatus.CONFIRMED,
                serial_number=serial_b,
                quantity=remainder_amount,
                vintage_ref=batch.vintage_ref,
                uri=batch.uri,
            )
            self.session.flush()
            self._claim(sibling.token_id, serial_b)
            self.session.flush()

            logger.info(
                "batch_split",
                extra={
                    "sibling_id": sibling.token_id,
                    "balancing_serial": serial_a,
                    "remaining_serial": serial_b,
                    "remainder_amount": remainder_amount,
                },
            )
            return sibling.token_id

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, batch_id: int) -> BatchInfo:
        return self._load(batch_id, for_update=False).to_dto()

    def comments(self, batch_id: int) -> tuple[BatchCommentInfo, ...]:
        batch = self._load(batch_id, for_update=False)
        return tuple(comment.to_dto() for comment in batch.comments)
