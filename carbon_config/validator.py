"""
Configuration Validator (``carbon_config.validator``).

Responsibility
--------------
Validates a ``LedgerConfig`` before it is handed to the bridges.

Invariants enforced
-------------------
* Role names must be kernel roles.
* ``token_decimals`` within 0..MAX_TOKEN_DECIMALS.
* Vintage references unique, quantities positive, precision within
  0..token_decimals.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the
  configuration MUST NOT be used.
* Warnings (roles with no callers) are reported but do not block.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from carbon_config.schema import LedgerConfig

KNOWN_ROLES = frozenset({"verifier", "tokenizer", "detokenizer", "retirement_finalizer"})

MAX_TOKEN_DECIMALS = 36


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: LedgerConfig) -> ConfigValidationResult:
    result = ConfigValidationResult()

    if not 0 <= config.token_decimals <= MAX_TOKEN_DECIMALS:
        result.add_error(
            f"token_decimals {config.token_decimals} outside 0..{MAX_TOKEN_DECIMALS}"
        )

    for binding in config.role_bindings:
        if binding.role not in KNOWN_ROLES:
            result.add_error(f"Unknown role '{binding.role}'")
        if not binding.callers:
            result.add_warning(f"Role '{binding.role}' has no callers")
        if any(not caller for caller in binding.callers):
            result.add_error(f"Role '{binding.role}' has an empty caller reference")

    seen: set[str] = set()
    for vintage in config.vintages:
        if vintage.vintage_ref in seen:
            result.add_error(f"Duplicate vintage '{vintage.vintage_ref}'")
        seen.add(vintage.vintage_ref)
        if vintage.total_vintage_quantity <= 0:
            result.add_error(
                f"Vintage '{vintage.vintage_ref}' total_vintage_quantity must be positive"
            )
        if not 0 <= vintage.precision <= config.token_decimals:
            result.add_error(
                f"Vintage '{vintage.vintage_ref}' precision {vintage.precision} "
                f"outside 0..{config.token_decimals}"
            )

    return result
