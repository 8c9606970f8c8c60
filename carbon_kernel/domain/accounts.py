"""
Well-known ledger accounts.

Token balances and batch holders are plain string account references.  Two
kinds of account belong to the kernel itself rather than to a caller:

* the escrow custody account, which holds amounts locked by pending
  detokenization / retirement requests;
* one token custody account per vintage, which holds every batch that has
  been fractionalized into that vintage's fungible supply.
"""

ESCROW_CUSTODY = "escrow"

_TOKEN_CUSTODY_PREFIX = "vintage-custody:"


def token_custody(vintage_ref: str) -> str:
    """Account that holds the batches backing ``vintage_ref`` supply."""
    return f"{_TOKEN_CUSTODY_PREFIX}{vintage_ref}"


def is_kernel_account(account: str) -> bool:
    """True for accounts owned by the kernel rather than by a caller."""
    return account == ESCROW_CUSTODY or account.startswith(_TOKEN_CUSTODY_PREFIX)
