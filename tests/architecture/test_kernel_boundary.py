"""
Kernel Boundary & Invariants Contract.

Tests that enforce the kernel's architectural boundaries:

1. carbon_kernel/** may NOT import carbon_config.  The kernel never depends
   upward; configuration reaches it only through carbon_config.bridges.

2. carbon_kernel/domain/** is the pure core: no SQLAlchemy, no sessions,
   no services, no models.

3. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST -- they cannot break anything.
"""

import ast
import glob
from pathlib import Path

from carbon_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

ROOT = Path(__file__).resolve().parents[2]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _python_files(root: str) -> list[str]:
    """Return all .py files under root (relative to the repository root)."""
    return sorted(glob.glob(f"{ROOT / root}/**/*.py", recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    try:
        source = Path(filepath).read_text()
        tree = ast.parse(source, filename=filepath)
    except (SyntaxError, UnicodeDecodeError):
        return []

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(files: list[str], prefixes: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in files:
        for lineno, module in _extract_imports(filepath):
            for prefix in prefixes:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Test: Kernel has no upward dependencies
# ---------------------------------------------------------------------------


class TestKernelNoUpwardDependencies:
    """carbon_kernel/** must not import carbon_config."""

    def test_kernel_sources_found(self):
        assert _python_files("carbon_kernel")

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations(_python_files("carbon_kernel"), FORBIDDEN_KERNEL_IMPORTS)

        assert not violations, (
            "Kernel boundary violation -- carbon_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Domain purity
# ---------------------------------------------------------------------------


class TestDomainPurity:
    """carbon_kernel/domain/** must stay free of I/O layers."""

    FORBIDDEN_PREFIXES = (
        "sqlalchemy",
        "carbon_kernel.db",
        "carbon_kernel.models",
        "carbon_kernel.services",
        "carbon_kernel.selectors",
    )

    def test_domain_does_not_import_io_layers(self):
        violations = _violations(
            _python_files("carbon_kernel/domain"), self.FORBIDDEN_PREFIXES
        )

        assert not violations, (
            "Domain purity violation -- carbon_kernel/domain/** must not import "
            "persistence or service layers:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Invariants declaration
# ---------------------------------------------------------------------------


class TestInvariantsDeclaration:

    def test_invariants_declared(self):
        assert len(ALL_KERNEL_INVARIANTS) == len(KernelInvariant) >= 8

    def test_every_invariant_is_referenced_in_kernel_code(self):
        """Each invariant name appears in an INVARIANT marker or docstring."""
        sources = "\n".join(
            Path(f).read_text()
            for f in _python_files("carbon_kernel")
            if not f.endswith("invariants.py")
        )
        missing = [
            inv.name for inv in KernelInvariant if inv.name not in sources
        ]
        assert not missing, f"Invariants never referenced: {missing}"
