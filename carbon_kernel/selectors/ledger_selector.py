"""
Module: carbon_kernel.selectors.ledger_selector
Responsibility: Read-only queries over batches, escrow requests, token
    supply and retirement events, the per-vintage conservation report, and
    the canonical ledger hash.
Architecture position: Kernel > Selectors.  May import from models/,
    selectors/base.py and the pure domain layer.

Invariants enforced:
    CONSERVATION -- ``conservation_report`` compares the outstanding supply of
        a vintage with the scaled quantity of every batch held by the
        vintage's token custody in a backing status.  A balanced ledger
        reports a difference of exactly zero.

Failure modes:
    - EscrowRequestNotFoundError from ``get_request``.
    - Empty results (never errors) for unknown vintages, requesters or
      entities.

Audit relevance:
    ``canonical_hash`` is a deterministic SHA-256 digest over batches,
    supply and requests in canonical order: the same ledger state always
    produces the same hash, so replays and replicas can be compared.
"""

import hashlib
import json

from sqlalchemy import select

from carbon_kernel.domain.accounts import token_custody
from carbon_kernel.domain.batch_status import BACKING_STATUSES, BatchStatus
from carbon_kernel.domain.dtos import (
    BatchInfo,
    ConservationReport,
    EscrowRequestInfo,
    RetirementEventInfo,
)
from carbon_kernel.domain.escrow_rules import DEFAULT_TOKEN_DECIMALS, RequestStatus, token_scale
from carbon_kernel.exceptions import EscrowRequestNotFoundError
from carbon_kernel.models.batch import BatchModel
from carbon_kernel.models.escrow_request import EscrowRequestModel
from carbon_kernel.models.retirement import RetirementEventModel
from carbon_kernel.models.token import TokenBalanceModel, TokenSupplyModel
from carbon_kernel.models.vintage import VintageModel
from carbon_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector):
    """Read side of the batch / escrow / token ledger."""

    def __init__(self, session, token_decimals: int = DEFAULT_TOKEN_DECIMALS):
        super().__init__(session)
        self._scale = token_scale(token_decimals)

    # =========================================================================
    # Batches
    # =========================================================================

    def batches_by_status(self, status: BatchStatus) -> list[BatchInfo]:
        batches = self.session.execute(
            select(BatchModel)
            .where(BatchModel.status == status.value)
            .order_by(BatchModel.token_id)
        ).scalars().all()
        return [b.to_dto() for b in batches]

    def batches_for_vintage(self, vintage_ref: str) -> list[BatchInfo]:
        batches = self.session.execute(
            select(BatchModel)
            .where(BatchModel.vintage_ref == vintage_ref)
            .order_by(BatchModel.token_id)
        ).scalars().all()
        return [b.to_dto() for b in batches]

    def backing_batches(self, vintage_ref: str) -> list[BatchInfo]:
        """Batches currently backing the vintage's fungible supply."""
        batches = self.session.execute(
            select(BatchModel)
            .where(
                BatchModel.vintage_ref == vintage_ref,
                BatchModel.holder == token_custody(vintage_ref),
                BatchModel.status.in_([s.value for s in BACKING_STATUSES]),
            )
            .order_by(BatchModel.token_id)
        ).scalars().all()
        return [b.to_dto() for b in batches]

    # =========================================================================
    # Requests and retirement events
    # =========================================================================

    def get_request(self, request_id: int) -> EscrowRequestInfo:
        request = self.session.execute(
            select(EscrowRequestModel).where(EscrowRequestModel.request_id == request_id)
        ).scalar_one_or_none()
        if request is None:
            raise EscrowRequestNotFoundError(request_id)
        return request.to_dto()

    def requests_by_requester(self, requester: str) -> list[EscrowRequestInfo]:
        requests = self.session.execute(
            select(EscrowRequestModel)
            .where(EscrowRequestModel.requester == requester)
            .order_by(EscrowRequestModel.request_id)
        ).scalars().all()
        return [r.to_dto() for r in requests]

    def requests_by_status(self, status: RequestStatus) -> list[EscrowRequestInfo]:
        requests = self.session.execute(
            select(EscrowRequestModel)
            .where(EscrowRequestModel.status == status.value)
            .order_by(EscrowRequestModel.request_id)
        ).scalars().all()
        return [r.to_dto() for r in requests]

    def retirement_events_for(self, retiring_entity: str) -> list[RetirementEventInfo]:
        events = self.session.execute(
            select(RetirementEventModel)
            .where(RetirementEventModel.retiring_entity == retiring_entity)
            .order_by(RetirementEventModel.event_id)
        ).scalars().all()
        return [e.to_dto() for e in events]

    # =========================================================================
    # Conservation
    # =========================================================================

    def outstanding_supply(self, vintage_ref: str) -> int:
        row = self.session.execute(
            select(TokenSupplyModel).where(TokenSupplyModel.vintage_ref == vintage_ref)
        ).scalar_one_or_none()
        return row.supply if row else 0

    def conservation_report(self, vintage_ref: str) -> ConservationReport:
        backing = self.backing_batches(vintage_ref)
        return ConservationReport(
            vintage_ref=vintage_ref,
            outstanding_supply=self.outstanding_supply(vintage_ref),
            backed_amount=sum(b.quantity * self._scale for b in backing),
            backing_batch_ids=tuple(b.token_id for b in backing),
        )

    def conservation_reports(self) -> list[ConservationReport]:
        """One report per vintage known to the registry or carrying supply."""
        refs = set(
            self.session.execute(select(VintageModel.vintage_ref)).scalars().all()
        )
        refs.update(
            self.session.execute(select(TokenSupplyModel.vintage_ref)).scalars().all()
        )
        return [self.conservation_report(ref) for ref in sorted(refs)]

    # =========================================================================
    # Canonical hash
    # =========================================================================

    def canonical_hash(self) -> str:
        """
        Deterministic SHA-256 digest of the ledger state.

        Covers every batch, supply row, non-zero balance and request, each
        sorted by its business key.  Returns a 64-character hex string.
        """
        batches = self.session.execute(
            select(BatchModel).order_by(BatchModel.token_id)
        ).scalars().all()
        supplies = self.session.execute(
            select(TokenSupplyModel).order_by(TokenSupplyModel.vintage_ref)
        ).scalars().all()
        balances = self.session.execute(
            select(TokenBalanceModel).order_by(
                TokenBalanceModel.vintage_ref, TokenBalanceModel.account
            )
        ).scalars().all()
        requests = self.session.execute(
            select(EscrowRequestModel).order_by(EscrowRequestModel.request_id)
        ).scalars().all()

        canonical = {
            "batches": [
                [
                    b.token_id,
                    b.holder,
                    b.serial_number,
                    b.quantity,
                    b.vintage_ref,
                    BatchStatus(b.status).value,
                ]
                for b in batches
            ],
            "supply": [[s.vintage_ref, str(s.supply)] for s in supplies],
            "balances": [
                [b.vintage_ref, b.account, str(b.balance)]
                for b in balances
                if b.balance
            ],
            "requests": [
                [
                    r.request_id,
                    r.requester,
                    RequestStatus(r.status).value,
                    str(r.amount),
                    list(r.batch_ids),
                ]
                for r in requests
            ],
        }
        payload = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
