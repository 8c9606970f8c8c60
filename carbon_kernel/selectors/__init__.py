"""Selectors for the carbon kernel (read side)."""

from carbon_kernel.selectors.ledger_selector import LedgerSelector

__all__ = [
    "LedgerSelector",
]
