"""
Configuration Loader (``carbon_config.loader``).

Responsibility
--------------
Loads a configuration set's ``root.yaml`` and parses it into
``carbon_config.schema`` dataclasses.  This is internal tooling; the single
public entry point for runtime config is ``carbon_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from carbon_config.schema import LedgerConfig, RoleBindingDef, VintageSeed


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 checksum of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_role_bindings(data: dict[str, Any]) -> tuple[RoleBindingDef, ...]:
    """Parse ``role: [caller, ...]`` pairs, sorted by role for determinism."""
    bindings = []
    for role, callers in sorted(data.items()):
        if isinstance(callers, str):
            callers = [callers]
        bindings.append(RoleBindingDef(role=role, callers=tuple(callers or ())))
    return tuple(bindings)


def parse_vintage(data: dict[str, Any]) -> VintageSeed:
    return VintageSeed(
        vintage_ref=data["vintage_ref"],
        name=data.get("name", data["vintage_ref"]),
        total_vintage_quantity=int(data["total_vintage_quantity"]),
        precision=int(data.get("precision", 0)),
        project_ref=data.get("project_ref"),
    )


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a ``LedgerConfig`` from the contents of a ``root.yaml``.

    Raises:
        KeyError: if ``config_id`` or ``version`` is missing.
    """
    return LedgerConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        token_decimals=int(data.get("token_decimals", 18)),
        role_bindings=parse_role_bindings(data.get("role_bindings") or {}),
        vintages=tuple(parse_vintage(v) for v in data.get("vintages") or ()),
        checksum=compute_checksum(data),
    )


def load_config_set(directory: Path) -> LedgerConfig:
    """Load and parse ``<directory>/root.yaml``."""
    return parse_config(load_yaml_file(directory / "root.yaml"))
