"""
FractionalizationService -- turns a Confirmed batch into fungible supply.

Responsibility:
    Moves a Confirmed batch into its vintage's token custody account and
    mints ``quantity * scale`` tokens of that vintage to the batch's former
    holder.  From then on the batch backs supply until a request finalizes
    it.

Architecture position:
    Kernel > Services -- ledger-integration glue between BatchRegistry and
    FungibleLedger.

Invariants enforced:
    CONSERVATION -- minted amount equals the scaled quantity of the batch
        entering custody, in the same SAVEPOINT.
    DEPOSIT_CAP  -- enforced by FungibleLedger.mint before anything moves.

Failure modes:
    - NotBatchHolderError: caller is not the batch holder.
    - BatchNotConfirmedError, BatchAlreadyFractionalizedError.
    - IncompleteBatchError: batch has no vintage.
    - DepositCapExceededError.
"""

from sqlalchemy.orm import Session

from carbon_kernel.domain.accounts import is_kernel_account, token_custody
from carbon_kernel.domain.authority import AuthorizationContext
from carbon_kernel.domain.batch_status import BatchStatus
from carbon_kernel.exceptions import (
    BatchAlreadyFractionalizedError,
    BatchNotConfirmedError,
    CarbonKernelError,
    IncompleteBatchError,
    NotBatchHolderError,
)
from carbon_kernel.logging_config import LogContext, get_logger
from carbon_kernel.services.base import BaseService
from carbon_kernel.services.batch_registry import BatchRegistry
from carbon_kernel.services.fungible_ledger import FungibleLedger

logger = get_logger("services.fractionalization")


class FractionalizationService(BaseService):
    """Deposit of Confirmed batches into fungible supply."""

    def __init__(self, session: Session, batch_registry: BatchRegistry, ledger: FungibleLedger):
        super().__init__(session)
        self._batches = batch_registry
        self._ledger = ledger

    def fractionalize(self, ctx: AuthorizationContext, batch_id: int) -> int:
        """
        Deposit a batch held by the caller.

        Returns:
            The minted amount in base units.
        """
        with LogContext.bind(batch_id=batch_id, actor_id=ctx.caller):
            try:
                batch = self._batches.get(batch_id)
                if is_kernel_account(batch.holder):
                    raise BatchAlreadyFractionalizedError(batch_id)
                if ctx.caller != batch.holder:
                    raise NotBatchHolderError(ctx.caller, batch_id, batch.holder)
                if batch.status != BatchStatus.CONFIRMED:
                    raise BatchNotConfirmedError(batch_id, batch.status.value)
                if batch.vintage_ref is None:
                    raise IncompleteBatchError(batch_id, "vintage_ref")

                amount = batch.quantity * self._ledger.scale
                with self.session.begin_nested():
                    self._ledger.mint(batch.vintage_ref, batch.holder, amount)
                    self._batches.move_to_custody(
                        batch_id, token_custody(batch.vintage_ref), ctx.caller
                    )
            except CarbonKernelError as exc:
                logger.warning(
                    "fractionalization_rejected",
                    extra={"error_code": exc.code, "error": str(exc)},
                )
                raise

            logger.info(
                "batch_fractionalized",
                extra={"vintage": batch.vintage_ref, "amount": amount},
            )
            return amount
