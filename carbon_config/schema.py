"""
Configuration Schema (``carbon_config.schema``).

Responsibility
--------------
Frozen dataclasses describing a ledger configuration set: token decimals,
role bindings and the vintages to register at start-up.

Architecture position
---------------------
**Config layer** -- pure data definitions.  No dependency on the kernel.

Invariants enforced
-------------------
* Every dataclass is frozen; a loaded configuration cannot be mutated.
* Collections are tuples so configurations hash and compare by value.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RoleBindingDef:
    """Callers bound to one kernel role (role named by its value)."""

    role: str
    callers: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class VintageSeed:
    """Vintage registered by ``bridges.build_services`` when missing."""

    vintage_ref: str
    name: str
    total_vintage_quantity: int
    precision: int = 0
    project_ref: str | None = None


@dataclass(frozen=True)
class LedgerConfig:
    """
    A complete, validated ledger configuration set.

    Contract
    --------
    * ``checksum`` is the SHA-256 of the canonical JSON of the source YAML.
    * ``token_decimals`` fixes the scale (``10**token_decimals``) of every
      fungible amount.
    """

    config_id: str
    version: int
    token_decimals: int = 18
    role_bindings: tuple[RoleBindingDef, ...] = field(default_factory=tuple)
    vintages: tuple[VintageSeed, ...] = field(default_factory=tuple)
    checksum: str = ""

    def callers_for(self, role: str) -> tuple[str, ...]:
        for binding in self.role_bindings:
            if binding.role == role:
                return binding.callers
        return ()
