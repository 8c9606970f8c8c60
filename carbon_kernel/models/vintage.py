"""
Module: carbon_kernel.models.vintage
Responsibility: ORM persistence for vintages registered with the in-process
    VintageRegistryService.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain layer.

Invariants enforced:
    - vintage_ref is globally unique (uq_vintage_ref).
    - total_vintage_quantity bounds the fungible supply of the vintage
      (DEPOSIT_CAP, enforced by FungibleLedger.mint).
"""

from sqlalchemy import BigInteger, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from carbon_kernel.db.base import TrackedBase
from carbon_kernel.domain.dtos import VintageInfo


class VintageModel(TrackedBase):
    """Project-year registry entry scoping one fungible token."""

    __tablename__ = "carbon_vintages"

    __table_args__ = (
        UniqueConstraint("vintage_ref", name="uq_vintage_ref"),
    )

    vintage_ref: Mapped[str] = mapped_column(String(128), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    project_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Whole units
    total_vintage_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Decimal places of a whole unit a request may carry
    precision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_dto(self) -> VintageInfo:
        return VintageInfo(
            vintage_ref=self.vintage_ref,
            name=self.name,
            project_ref=self.project_ref,
            total_vintage_quantity=self.total_vintage_quantity,
            precision=self.precision,
        )
