"""
EscrowCoordinator -- detokenization and retirement requests.

Responsibility:
    Creates, finalizes and reverts escrow requests.  A request locks a
    fungible amount in escrow custody and flips the batches it references to
    a "Requested" status; finalize burns the escrowed amount (splitting the
    last batch when the amount does not consume it entirely) and flips the
    batches to "Finalized"; revert returns the amount and flips them back to
    Confirmed.

Architecture position:
    Kernel > Services -- imperative shell orchestrating BatchRegistry,
    FungibleLedger and the CertificateIssuer collaborator.  All arithmetic
    rules live in ``domain.escrow_rules``.

Invariants enforced:
    NON_FRACTIONAL_REQUEST -- amount is a multiple of the vintage's minimal
        unit (``check_non_fractional``).
    ADMISSION_CONTROL      -- ``check_admission``; only the last batch of a
        request can be split.
    SINGLE_CONSUMPTION     -- a request leaves PENDING exactly once.  The row
        is locked (SELECT ... FOR UPDATE) before its status is inspected, so
        of a racing finalize and revert the first applied wins and the other
        fails with RequestAlreadyConsumedError.
    CONSERVATION           -- escrowed amounts stay inside the vintage's
        supply until burned together with the batches they were backed by.

Failure modes:
    - ValidationError: InvalidAmountError, EmptyBatchListError,
      DuplicateBatchReferenceError, FractionalAmountError,
      AmountExceedsBatchesError, AdmissionControlError,
      RetirementDetailsError, VintageMismatchError, BatchNotFoundError,
      EscrowRequestNotFoundError, InsufficientBalanceError,
      InsufficientAllowanceError.
    - StateError: BatchNotConfirmedError, BatchNotBackingError,
      RequestAlreadyConsumedError, InvalidBatchTransitionError.
    - ConsistencyError: MissingSplitSerialsError, split errors from
      BatchRegistry.split, EscrowCustodyError.
    - AuthorizationError: MissingRoleError.

Audit relevance:
    Every request carries its requester, kind, amount, ordered batches and
    timestamps from the injected clock.  Rejections are logged at WARNING
    with the error code; finalized retirements carry the retirement event id.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.orm import Session

from carbon_kernel.domain.accounts import ESCROW_CUSTODY, token_custody
from carbon_kernel.domain.authority import AuthorizationContext
from carbon_kernel.domain.batch_status import BatchStatus
from carbon_kernel.domain.clock import Clock, SystemClock
from carbon_kernel.domain.collaborators import CertificateIssuer, VintageRegistry
from carbon_kernel.domain.dtos import BatchInfo, FinalizeResult, RetirementDetails
from carbon_kernel.domain.escrow_rules import (
    RequestKind,
    RequestStatus,
    check_admission,
    check_non_fractional,
    check_request_shape,
    plan_split,
)
from carbon_kernel.exceptions import (
    BatchNotBackingError,
    BatchNotConfirmedError,
    CarbonKernelError,
    EscrowCustodyError,
    EscrowRequestNotFoundError,
    MissingSplitSerialsError,
    RequestAlreadyConsumedError,
    RetirementDetailsError,
    VintageMismatchError,
)
from carbon_kernel.logging_config import LogContext, get_logger
from carbon_kernel.models.escrow_request import EscrowRequestBatchModel, EscrowRequestModel
from carbon_kernel.services.base import BaseService
from carbon_kernel.services.batch_registry import BatchRegistry
from carbon_kernel.services.fungible_ledger import FungibleLedger
from carbon_kernel.services.sequence_service import SequenceService

logger = get_logger("services.escrow_coordinator")


class EscrowCoordinator(BaseService):
    """
    Escrow request / finalize / revert protocol.

    Contract:
        ``create_request`` is open to any holder of fungible tokens who has
        approved ESCROW_CUSTODY for at least ``amount``.  ``finalize`` and
        ``revert`` require DETOKENIZER for detokenization requests and
        RETIREMENT_FINALIZER for retirement requests.

    Guarantees:
        - Each operation validates everything it can before mutating and
          runs its mutations in one SAVEPOINT: all-or-nothing.
        - All batches of a request back the same vintage.
        - After finalize, escrow custody no longer holds the request amount
          and every batch of the request is in the kind's finalized status.

    Non-goals:
        - No fees, no multi-vintage requests, no partial reverts.
    """

    def __init__(
        self,
        session: Session,
        batch_registry: BatchRegistry,
        ledger: FungibleLedger,
        vintage_registry: VintageRegistry,
        certificate_issuer: CertificateIssuer,
        sequence_service: SequenceService | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._batches = batch_registry
        self._ledger = ledger
        self._vintages = vintage_registry
        self._issuer = certificate_issuer
        self._sequences = sequence_service or SequenceService(session)
        self._clock = clock or SystemClock()

    # =========================================================================
    # Helpers
    # =========================================================================

    @contextmanager
    def _operation(self, event: str, actor: str, request_id: int | None = None) -> Iterator[None]:
        with LogContext.bind(actor_id=actor, request_id=request_id):
            try:
                yield
            except CarbonKernelError as exc:
                logger.warning(
                    f"{event}_rejected",
                    extra={"error_code": exc.code, "error": str(exc)},
                )
                raise

    def _load_request(self, request_id: int) -> EscrowRequestModel:
        request = self.session.execute(
            select(EscrowRequestModel)
            .where(EscrowRequestModel.request_id == request_id)
            .with_for_update()
        ).scalar_one_or_none()
        if request is None:
            raise EscrowRequestNotFoundError(request_id)
        return request

    @staticmethod
    def _check_details(kind: RequestKind, details: RetirementDetails | None) -> None:
        if kind is RequestKind.RETIREMENT and details is None:
            raise RetirementDetailsError("retirement requests require retirement details")
        if kind is RequestKind.DETOKENIZATION and details is not None:
            raise RetirementDetailsError("detokenization requests take no retirement details")

    @staticmethod
    def _check_backing(batches: Sequence[BatchInfo]) -> str:
        """Every batch Confirmed, held by one vintage's custody.  Returns the vintage."""
        vintage_ref = batches[0].vintage_ref
        for batch in batches:
            if batch.status != BatchStatus.CONFIRMED:
                raise BatchNotConfirmedError(batch.token_id, batch.status.value)
            if batch.vintage_ref is None or batch.vintage_ref != vintage_ref:
                raise VintageMismatchError(batch.token_id, vintage_ref or "", batch.vintage_ref)
            if batch.holder != token_custody(vintage_ref):
                raise BatchNotBackingError(batch.token_id, batch.holder)
        return vintage_ref

    def _require_custody(self, request: EscrowRequestModel) -> None:
        custody_balance = self._ledger.balance_of(request.vintage_ref, ESCROW_CUSTODY)
        if custody_balance < request.amount:
            raise EscrowCustodyError(request.vintage_ref, custody_balance, request.amount)

    @staticmethod
    def _require_pending(request: EscrowRequestModel) -> None:
        # INVARIANT: SINGLE_CONSUMPTION
        if request.status != RequestStatus.PENDING:
            raise RequestAlreadyConsumedError(
                request.request_id, RequestStatus(request.status).value
            )

    # =========================================================================
    # Operations
    # =========================================================================

    def create_request(
        self,
        ctx: AuthorizationContext,
        kind: RequestKind,
        amount: int,
        batch_ids: Sequence[int],
        details: RetirementDetails | None = None,
    ) -> int:
        """
        Escrow ``amount`` of the caller's tokens against ``batch_ids``.

        Preconditions:
            - The caller approved ESCROW_CUSTODY for at least ``amount``.
            - ``batch_ids`` are Confirmed batches backing one vintage; only
              the last may end up split.

        Returns:
            The new request id.
        """
        with self._operation("escrow_request", ctx.caller):
            check_request_shape(amount, batch_ids)
            self._check_details(kind, details)

            batches = [self._batches.get(batch_id) for batch_id in batch_ids]
            vintage_ref = self._check_backing(batches)
            vintage = self._vintages.get(vintage_ref)
            # INVARIANT: NON_FRACTIONAL_REQUEST
            check_non_fractional(
                amount, vintage_ref, vintage.precision, self._ledger.token_decimals
            )

            scale = self._ledger.scale
            total_amount = sum(batch.quantity * scale for batch in batches)
            last_amount = batches[-1].quantity * scale
            # INVARIANT: ADMISSION_CONTROL
            check_admission(amount, total_amount, last_amount, scale)

            with LogContext.bind(vintage_ref=vintage_ref), self.session.begin_nested():
                for batch_id in batch_ids:
                    self._batches.transition_for_request(
                        batch_id, kind.requested_status, ctx.caller
                    )
                self._ledger.transfer_from(
                    vintage_ref, ESCROW_CUSTODY, ctx.caller, ESCROW_CUSTODY, amount
                )

                request_id = self._sequences.next_value(SequenceService.ESCROW_REQUEST)
                request = EscrowRequestModel(
                    request_id=request_id,
                    requester=ctx.caller,
                    kind=kind.value,
                    status=RequestStatus.PENDING.value,
                    amount=amount,
                    vintage_ref=vintage_ref,
                    details=details.to_payload() if details is not None else None,
                    requested_at=self._clock.now(),
                    created_by=ctx.caller,
                )
                request.batches = [
                    EscrowRequestBatchModel(position=position, batch_token_id=batch_id)
                    for position, batch_id in enumerate(batch_ids)
                ]
                self.session.add(request)
                self.session.flush()

                logger.info(
                    "escrow_request_created",
                    extra={
                        "escrow_request_id": request_id,
                        "kind": kind.value,
                        "amount": amount,
                        "batch_ids": list(batch_ids),
                    },
                )
            return request_id

    def finalize(
        self,
        ctx: AuthorizationContext,
        request_id: int,
        split_balancing_serial: str | None = None,
        split_remaining_serial: str | None = None,
    ) -> FinalizeResult:
        """
        Burn the escrowed amount and finalize the request's batches.

        When the request amount (rounded down to whole units) is less than
        the batches' total, the last batch is split first: it keeps
        ``split_balancing_serial`` and the consumed units, while a new
        Confirmed sibling takes ``split_remaining_serial`` and the rest.
        """
        with self._operation("escrow_finalize", ctx.caller, request_id):
            request = self._load_request(request_id)
            kind = RequestKind(request.kind)
            ctx.require(kind.finalizer_role)
            self._require_pending(request)
            self._require_custody(request)

            batch_ids = request.batch_ids
            scale = self._ledger.scale
            total_batches_amount = sum(
                self._batches.get(batch_id).quantity * scale for batch_id in batch_ids
            )
            plan = plan_split(request.amount, total_batches_amount, self._ledger.token_decimals)
            if plan.requires_split and not (split_balancing_serial and split_remaining_serial):
                raise MissingSplitSerialsError(request_id)

            with LogContext.bind(vintage_ref=request.vintage_ref), self.session.begin_nested():
                split_batch_id = None
                if plan.requires_split:
                    split_batch_id = self._batches.split(
                        batch_ids[-1],
                        split_balancing_serial,
                        split_remaining_serial,
                        plan.remainder_units,
                        ctx.caller,
                    )

                for batch_id in batch_ids:
                    self._batches.transition_for_request(
                        batch_id, kind.finalized_status, ctx.caller
                    )

                self._ledger.burn(request.vintage_ref, ESCROW_CUSTODY, request.amount)

                event_id = None
                if kind is RequestKind.RETIREMENT:
                    details = (
                        RetirementDetails.from_payload(request.details)
                        if request.details is not None else None
                    )
                    event_id = self._issuer.register_retirement_event(
                        request.requester, request.vintage_ref, request.amount, details
                    )
                    request.retirement_event_id = event_id

                request.status = RequestStatus.FINALIZED.value
                request.consumed_at = self._clock.now()
                request.updated_by = ctx.caller
                self.session.flush()

                logger.info(
                    "escrow_request_finalized",
                    extra={
                        "kind": kind.value,
                        "burned_amount": request.amount,
                        "split_batch_id": split_batch_id,
                        "retirement_event_id": event_id,
                    },
                )

            return FinalizeResult(
                request_id=request_id,
                burned_amount=request.amount,
                finalized_batch_ids=batch_ids,
                split_batch_id=split_batch_id,
                retirement_event_id=event_id,
            )

    def revert(self, ctx: AuthorizationContext, request_id: int) -> None:
        """Return the escrowed amount to the requester and re-confirm the batches."""
        with self._operation("escrow_revert", ctx.caller, request_id):
            request = self._load_request(request_id)
            kind = RequestKind(request.kind)
            ctx.require(kind.finalizer_role)
            self._require_pending(request)
            self._require_custody(request)

            with LogContext.bind(vintage_ref=request.vintage_ref), self.session.begin_nested():
                for batch_id in request.batch_ids:
                    self._batches.transition_for_request(
                        batch_id, BatchStatus.CONFIRMED, ctx.caller
                    )
                self._ledger.transfer(
                    request.vintage_ref, ESCROW_CUSTODY, request.requester, request.amount
                )

                request.status = RequestStatus.REVERTED.value
                request.consumed_at = self._clock.now()
                request.updated_by = ctx.caller
                self.session.flush()

                logger.info(
                    "escrow_request_reverted",
                    extra={"kind": kind.value, "returned_amount": request.amount},
                )
