"""
Collaborator interfaces consumed by the kernel.

The kernel depends on these protocols, never on concrete registries.  The
``carbon_kernel.services`` package ships database-backed implementations
(VintageRegistryService, RetirementCertificateService) used for wiring and
tests; production deployments may substitute their own.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from carbon_kernel.domain.dtos import RetirementDetails, VintageInfo


@runtime_checkable
class VintageRegistry(Protocol):
    """Project / vintage registry lookups."""

    def exists(self, vintage_ref: str) -> bool:
        ...

    def get(self, vintage_ref: str) -> VintageInfo:
        """Raises VintageNotFoundError for unknown references."""
        ...


@runtime_checkable
class CertificateIssuer(Protocol):
    """Issuer of auditable retirement receipts."""

    def register_retirement_event(
        self,
        retiring_entity: str,
        vintage_ref: str,
        amount: int,
        details: RetirementDetails | None = None,
    ) -> int:
        """Record a retirement and return its event id."""
        ...
