"""ORM models for the carbon kernel."""

from carbon_kernel.models.batch import BatchCommentModel, BatchModel, ClaimedSerialModel
from carbon_kernel.models.escrow_request import EscrowRequestBatchModel, EscrowRequestModel
from carbon_kernel.models.retirement import RetirementEventModel
from carbon_kernel.models.token import TokenAllowanceModel, TokenBalanceModel, TokenSupplyModel
from carbon_kernel.models.vintage import VintageModel

__all__ = [
    "BatchModel",
    "BatchCommentModel",
    "ClaimedSerialModel",
    "EscrowRequestModel",
    "EscrowRequestBatchModel",
    "RetirementEventModel",
    "TokenSupplyModel",
    "TokenBalanceModel",
    "TokenAllowanceModel",
    "VintageModel",
]
