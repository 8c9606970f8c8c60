"""
VintageRegistryService -- database-backed VintageRegistry collaborator.

Responsibility:
    Registers vintages and answers the two questions the kernel asks of a
    vintage registry: does a vintage exist, and what are its precision and
    total quantity cap.

Architecture position:
    Kernel > Services.  Implements ``carbon_kernel.domain.VintageRegistry``.
    Production deployments may substitute a registry backed by an external
    project registry; the kernel only depends on the protocol.

Failure modes:
    - VintageNotFoundError from ``get``.
    - VintageAlreadyExistsError from ``register_vintage``.
    - InvalidAmountError for a non-positive total quantity.
    - ValueError for a precision outside 0..token_decimals.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from carbon_kernel.domain.dtos import VintageInfo
from carbon_kernel.domain.escrow_rules import DEFAULT_TOKEN_DECIMALS, minimal_unit
from carbon_kernel.exceptions import (
    InvalidAmountError,
    VintageAlreadyExistsError,
    VintageNotFoundError,
)
from carbon_kernel.logging_config import get_logger
from carbon_kernel.models.vintage import VintageModel
from carbon_kernel.services.base import BaseService

logger = get_logger("services.vintage_registry")


class VintageRegistryService(BaseService):
    """
    In-process vintage registry.

    Guarantees:
        - vintage_ref is unique.
        - Registered vintages are never modified.
    """

    def __init__(self, session: Session, token_decimals: int = DEFAULT_TOKEN_DECIMALS):
        super().__init__(session)
        self._token_decimals = token_decimals

    def _find(self, vintage_ref: str) -> VintageModel | None:
        return self.session.execute(
            select(VintageModel).where(VintageModel.vintage_ref == vintage_ref)
        ).scalar_one_or_none()

    def register_vintage(
        self,
        vintage_ref: str,
        name: str,
        total_vintage_quantity: int,
        precision: int = 0,
        project_ref: str | None = None,
        actor: str = "system",
    ) -> VintageInfo:
        """
        Register a new vintage.

        Args:
            vintage_ref: Unique vintage reference.
            name: Display name.
            total_vintage_quantity: Whole units; caps the fungible supply.
            precision: Decimal places of a whole unit requests may carry.
            project_ref: Optional project reference.
            actor: Account recorded as creator.
        """
        if total_vintage_quantity <= 0:
            raise InvalidAmountError(total_vintage_quantity)
        # Raises ValueError when precision is out of range.
        minimal_unit(precision, self._token_decimals)

        if self._find(vintage_ref) is not None:
            raise VintageAlreadyExistsError(vintage_ref)

        vintage = VintageModel(
            vintage_ref=vintage_ref,
            name=name,
            project_ref=project_ref,
            total_vintage_quantity=total_vintage_quantity,
            precision=precision,
            created_by=actor,
        )
        self.session.add(vintage)
        self.session.flush()

        logger.info(
            "vintage_registered",
            extra={
                "vintage_ref": vintage_ref,
                "total_vintage_quantity": total_vintage_quantity,
                "precision": precision,
            },
        )
        return vintage.to_dto()

    def exists(self, vintage_ref: str) -> bool:
        return self._find(vintage_ref) is not None

    def get(self, vintage_ref: str) -> VintageInfo:
        vintage = self._find(vintage_ref)
        if vintage is None:
            raise VintageNotFoundError(vintage_ref)
        return vintage.to_dto()

    def list_vintages(self) -> list[VintageInfo]:
        vintages = self.session.execute(
            select(VintageModel).order_by(VintageModel.vintage_ref)
        ).scalars().all()
        return [v.to_dto() for v in vintages]
