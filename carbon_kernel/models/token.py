"""
Module: carbon_kernel.models.token
Responsibility: ORM persistence for the per-vintage fungible ledger: total
    supply, balances and allowances.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One supply row per vintage, one balance row per (vintage, account),
      one allowance row per (vintage, owner, spender).
    - Amounts are non-negative integers in base units (TokenAmount rejects
      negatives at bind time).
    - CONSERVATION -- supply equals the scaled quantity of the batches backing
      the vintage.  Maintained by FractionalizationService and
      EscrowCoordinator; checked by LedgerSelector.conservation_report.

Failure modes:
    - ValueError from TokenAmount if a service ever tries to persist a
      negative amount (the services raise typed errors before that).
"""

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from carbon_kernel.db.base import Base, TokenAmount


class TokenSupplyModel(Base):
    """Outstanding fungible supply of one vintage."""

    __tablename__ = "carbon_token_supply"

    __table_args__ = (
        UniqueConstraint("vintage_ref", name="uq_token_supply_vintage"),
    )

    vintage_ref: Mapped[str] = mapped_column(String(128), nullable=False)

    supply: Mapped[int] = mapped_column(TokenAmount(), nullable=False, default=0)


class TokenBalanceModel(Base):
    """Balance of one account in one vintage."""

    __tablename__ = "carbon_token_balances"

    __table_args__ = (
        UniqueConstraint("vintage_ref", "account", name="uq_token_balance_account"),
        Index("idx_token_balance_account", "account"),
    )

    vintage_ref: Mapped[str] = mapped_column(String(128), nullable=False)

    account: Mapped[str] = mapped_column(String(128), nullable=False)

    balance: Mapped[int] = mapped_column(TokenAmount(), nullable=False, default=0)


class TokenAllowanceModel(Base):
    """Amount ``spender`` may pull from ``owner`` in one vintage."""

    __tablename__ = "carbon_token_allowances"

    __table_args__ = (
        UniqueConstraint(
            "vintage_ref", "owner", "spender", name="uq_token_allowance_pair"
        ),
    )

    vintage_ref: Mapped[str] = mapped_column(String(128), nullable=False)

    owner: Mapped[str] = mapped_column(String(128), nullable=False)

    spender: Mapped[str] = mapped_column(String(128), nullable=False)

    allowance: Mapped[int] = mapped_column(TokenAmount(), nullable=False, default=0)
