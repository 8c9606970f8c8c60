"""
carbon_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``LedgerConfig``.  YAML loading
    is internal tooling and never exposed to callers.

Architecture position:
    Configuration -- YAML-driven, validated before use.  This package sits
    above ``carbon_kernel``.  The kernel MUST NEVER import from
    ``carbon_config``; ``carbon_config.bridges`` translates a configuration
    into kernel services.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set directory, or no set with
      the requested ``config_id``.
    - ``ValueError`` -- validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``CARBON_CONFIG_TRACE`` log entry with the config id, version, checksum,
    token decimals, role-binding count and vintage count.
"""

from __future__ import annotations

import logging
from pathlib import Path

from carbon_config.loader import load_config_set
from carbon_config.schema import LedgerConfig, RoleBindingDef, VintageSeed
from carbon_config.validator import validate_configuration

_logger = logging.getLogger("carbon_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "LedgerConfig",
    "RoleBindingDef",
    "VintageSeed",
    "get_active_config",
]


def get_active_config(
    config_dir: Path | None = None,
    config_id: str | None = None,
) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``LedgerConfig`` has passed validation.
        - A ``CARBON_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Args:
        config_dir: Override path to the configuration sets directory.
            Defaults to carbon_config/sets/.
        config_id: Select the set with this id.  When omitted, the set with
            the highest version wins.

    Raises:
        FileNotFoundError: If no matching configuration set is found.
        ValueError: If configuration validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    config = _find_matching_config(sets_dir, config_id)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})

    _logger.info(
        "CARBON_CONFIG_TRACE",
        extra={
            "trace_type": "CARBON_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "token_decimals": config.token_decimals,
            "role_binding_count": len(config.role_bindings),
            "vintage_count": len(config.vintages),
        },
    )
    return config


def _find_matching_config(sets_dir: Path, config_id: str | None) -> LedgerConfig:
    """Scan ``sets_dir`` subdirectories holding a ``root.yaml``."""
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Configuration sets directory not found: {sets_dir}")

    candidates: list[LedgerConfig] = []
    for subdir in sorted(sets_dir.iterdir()):
        if not (subdir.is_dir() and (subdir / "root.yaml").exists()):
            continue
        config = load_config_set(subdir)
        if config_id is None or config.config_id == config_id:
            candidates.append(config)

    if not candidates:
        raise FileNotFoundError(
            f"No configuration set found for config_id={config_id!r} in {sets_dir}"
        )
    return max(candidates, key=lambda c: c.version)
