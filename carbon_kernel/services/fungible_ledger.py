"""
FungibleLedger -- per-vintage token supply, balances and allowances.

Responsibility:
    The fungible side of the kernel: mint, burn, transfer, approve and
    transfer_from primitives over vintage-scoped credit tokens, plus the
    per-vintage deposit cap.  Amounts are Python ``int`` in base units
    (``quantity * 10**token_decimals``).

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    FractionalizationService (mint backed by a batch) and EscrowCoordinator
    (escrow custody moves and burns).  Reads vintages through the
    VintageRegistry collaborator.

Invariants enforced:
    DEPOSIT_CAP -- supply of a vintage never exceeds
        ``total_vintage_quantity * scale``.
    Balances, allowances and supply are never negative: every debit is
    checked before any row is touched.

Failure modes:
    - InvalidAmountError: non-positive amount (negative for approve).
    - InsufficientBalanceError / InsufficientAllowanceError.
    - DepositCapExceededError.
    - VintageNotFoundError from the registry on mint.

Audit relevance:
    Every supply change is logged with vintage, account and amount.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from carbon_kernel.domain.collaborators import VintageRegistry
from carbon_kernel.domain.escrow_rules import DEFAULT_TOKEN_DECIMALS, token_scale
from carbon_kernel.exceptions import (
    DepositCapExceededError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidAmountError,
)
from carbon_kernel.logging_config import LogContext, get_logger
from carbon_kernel.models.token import TokenAllowanceModel, TokenBalanceModel, TokenSupplyModel
from carbon_kernel.services.base import BaseService

logger = get_logger("services.fungible_ledger")


class FungibleLedger(BaseService):
    """
    Vintage-scoped fungible token ledger.

    Contract:
        One token per vintage.  Supply, balance and allowance rows are
        created lazily on first credit and loaded with SELECT ... FOR UPDATE
        before any change.

    Guarantees:
        - mint increases supply and the recipient balance by the same amount.
        - burn decreases supply and the holder balance by the same amount.
        - transfer / transfer_from never change supply.
        - A failed call leaves every row unchanged.

    Non-goals:
        - No token metadata, hooks or events beyond structured logs.
    """

    def __init__(
        self,
        session: Session,
        vintage_registry: VintageRegistry,
        token_decimals: int = DEFAULT_TOKEN_DECIMALS,
    ):
        super().__init__(session)
        self._vintages = vintage_registry
        self._token_decimals = token_decimals

    @property
    def token_decimals(self) -> int:
        return self._token_decimals

    @property
    def scale(self) -> int:
        return token_scale(self._token_decimals)

    # =========================================================================
    # Row access
    # =========================================================================

    def _supply_row(self, vintage_ref: str, create: bool = False) -> TokenSupplyModel | None:
        row = self.session.execute(
            select(TokenSupplyModel)
            .where(TokenSupplyModel.vintage_ref == vintage_ref)
            .with_for_update()
        ).scalar_one_or_none()
        if row is None and create:
            row = TokenSupplyModel(vintage_ref=vintage_ref, supply=0)
            self.session.add(row)
        return row

    def _balance_row(
        self, vintage_ref: str, account: str, create: bool = False
    ) -> TokenBalanceModel | None:
        row = self.session.execute(
            select(TokenBalanceModel)
            .where(
                TokenBalanceModel.vintage_ref == vintage_ref,
                TokenBalanceModel.account == account,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if row is None and create:
            row = TokenBalanceModel(vintage_ref=vintage_ref, account=account, balance=0)
            self.session.add(row)
        return row

    def _allowance_row(
        self, vintage_ref: str, owner: str, spender: str, create: bool = False
    ) -> TokenAllowanceModel | None:
        row = self.session.execute(
            select(TokenAllowanceModel)
            .where(
                TokenAllowanceModel.vintage_ref == vintage_ref,
                TokenAllowanceModel.owner == owner,
                TokenAllowanceModel.spender == spender,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if row is None and create:
            row = TokenAllowanceModel(
                vintage_ref=vintage_ref, owner=owner, spender=spender, allowance=0
            )
            self.session.add(row)
        return row

    @staticmethod
    def _require_positive(amount: int) -> None:
        if amount <= 0:
            raise InvalidAmountError(amount)

    def _require_balance(self, vintage_ref: str, account: str, amount: int) -> None:
        balance = self.balance_of(vintage_ref, account)
        if balance < amount:
            raise InsufficientBalanceError(vintage_ref, account, balance, amount)

    # =========================================================================
    # Queries
    # =========================================================================

    def balance_of(self, vintage_ref: str, account: str) -> int:
        row = self.session.execute(
            select(TokenBalanceModel).where(
                TokenBalanceModel.vintage_ref == vintage_ref,
                TokenBalanceModel.account == account,
            )
        ).scalar_one_or_none()
        return row.balance if row else 0

    def total_supply(self, vintage_ref: str) -> int:
        row = self.session.execute(
            select(TokenSupplyModel).where(TokenSupplyModel.vintage_ref == vintage_ref)
        ).scalar_one_or_none()
        return row.supply if row else 0

    def allowance(self, vintage_ref: str, owner: str, spender: str) -> int:
        row = self.session.execute(
            select(TokenAllowanceModel).where(
                TokenAllowanceModel.vintage_ref == vintage_ref,
                TokenAllowanceModel.owner == owner,
                TokenAllowanceModel.spender == spender,
            )
        ).scalar_one_or_none()
        return row.allowance if row else 0

    def deposit_cap(self, vintage_ref: str) -> int:
        """Maximum supply of a vintage, in base units."""
        return self._vintages.get(vintage_ref).total_vintage_quantity * self.scale

    # =========================================================================
    # Mutations
    # =========================================================================

    def mint(self, vintage_ref: str, account: str, amount: int) -> int:
        """
        Create ``amount`` new tokens for ``account``.

        Returns:
            The new total supply of the vintage.

        Raises:
            InvalidAmountError, VintageNotFoundError, DepositCapExceededError.
        """
        self._require_positive(amount)
        cap = self.deposit_cap(vintage_ref)

        with LogContext.bind(vintage_ref=vintage_ref), self.session.begin_nested():
            supply = self._supply_row(vintage_ref, create=True)
            current = supply.supply or 0
            # INVARIANT: DEPOSIT_CAP
            if current + amount > cap:
                logger.warning(
                    "deposit_cap_exceeded",
                    extra={"supply": current, "amount": amount, "cap": cap},
                )
                raise DepositCapExceededError(vintage_ref, current, amount, cap)

            balance = self._balance_row(vintage_ref, account, create=True)
            supply.supply = current + amount
            balance.balance = (balance.balance or 0) + amount
            self.session.flush()

            logger.info(
                "tokens_minted",
                extra={"account": account, "amount": amount, "supply": supply.supply},
            )
            return supply.supply

    def burn(self, vintage_ref: str, account: str, amount: int) -> int:
        """
        Destroy ``amount`` tokens held by ``account``.

        Returns:
            The new total supply of the vintage.
        """
        self._require_positive(amount)
        self._require_balance(vintage_ref, account, amount)

        with LogContext.bind(vintage_ref=vintage_ref), self.session.begin_nested():
            balance = self._balance_row(vintage_ref, account)
            supply = self._supply_row(vintage_ref)
            balance.balance -= amount
            supply.supply -= amount
            self.session.flush()

            logger.info(
                "tokens_burned",
                extra={"account": account, "amount": amount, "supply": supply.supply},
            )
            return supply.supply

    def transfer(self, vintage_ref: str, sender: str, recipient: str, amount: int) -> None:
        """Move ``amount`` from ``sender`` to ``recipient``."""
        self._require_positive(amount)
        self._require_balance(vintage_ref, sender, amount)

        with self.session.begin_nested():
            self._move(vintage_ref, sender, recipient, amount)

    def approve(self, vintage_ref: str, owner: str, spender: str, amount: int) -> None:
        """Set the amount ``spender`` may pull from ``owner`` (replaces, not adds)."""
        if amount < 0:
            raise InvalidAmountError(amount)

        with self.session.begin_nested():
            row = self._allowance_row(vintage_ref, owner, spender, create=True)
            row.allowance = amount
            self.session.flush()

        logger.debug(
            "allowance_set",
            extra={
                "vintage_ref": vintage_ref,
                "owner": owner,
                "spender": spender,
                "amount": amount,
            },
        )

    def transfer_from(
        self,
        vintage_ref: str,
        spender: str,
        owner: str,
        recipient: str,
        amount: int,
    ) -> None:
        """
        ``spender`` pulls ``amount`` from ``owner`` to ``recipient``.

        Raises:
            InvalidAmountError, InsufficientAllowanceError,
            InsufficientBalanceError.
        """
        self._require_positive(amount)
        current_allowance = self.allowance(vintage_ref, owner, spender)
        if current_allowance < amount:
            raise InsufficientAllowanceError(
                vintage_ref, owner, spender, current_allowance, amount
            )
        self._require_balance(vintage_ref, owner, amount)

        with self.session.begin_nested():
            row = self._allowance_row(vintage_ref, owner, spender)
            row.allowance -= amount
            self._move(vintage_ref, owner, recipient, amount)

    def _move(self, vintage_ref: str, sender: str, recipient: str, amount: int) -> None:
        source = self._balance_row(vintage_ref, sender)
        source.balance -= amount
        target = self._balance_row(vintage_ref, recipient, create=True)
        target.balance = (target.balance or 0) + amount
        self.session.flush()

        logger.debug(
            "tokens_transferred",
            extra={
                "vintage_ref": vintage_ref,
                "sender": sender,
                "recipient": recipient,
                "amount": amount,
            },
        )
