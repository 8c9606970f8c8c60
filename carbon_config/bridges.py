"""
Config -> Kernel Bridges.

Functions that turn a ``LedgerConfig`` into kernel objects.  These live in
carbon_config (the producer) because the kernel must NEVER import
carbon_config.

Usage:
    from carbon_config import get_active_config
    from carbon_config.bridges import build_services

    config = get_active_config()
    with session_scope() as session:
        services = build_services(session, config)
        ctx = services.authority.context_for("verifier-desk")
        services.batches.confirm(ctx, batch_id)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from carbon_config.schema import LedgerConfig
from carbon_kernel.domain.authority import Role, StaticRoleAuthority
from carbon_kernel.domain.clock import Clock, SystemClock
from carbon_kernel.selectors.ledger_selector import LedgerSelector
from carbon_kernel.services.batch_registry import BatchRegistry
from carbon_kernel.services.escrow_coordinator import EscrowCoordinator
from carbon_kernel.services.fractionalization_service import FractionalizationService
from carbon_kernel.services.fungible_ledger import FungibleLedger
from carbon_kernel.services.retirement_certificates import RetirementCertificateService
from carbon_kernel.services.sequence_service import SequenceService
from carbon_kernel.services.vintage_registry import VintageRegistryService


@dataclass(frozen=True)
class LedgerServices:
    """Kernel services wired for one session."""

    authority: StaticRoleAuthority
    vintages: VintageRegistryService
    ledger: FungibleLedger
    batches: BatchRegistry
    escrow: EscrowCoordinator
    fractionalization: FractionalizationService
    certificates: RetirementCertificateService
    selector: LedgerSelector


def build_role_authority(config: LedgerConfig) -> StaticRoleAuthority:
    """StaticRoleAuthority from the configured role bindings."""
    return StaticRoleAuthority(
        {Role(binding.role): binding.callers for binding in config.role_bindings}
    )


def seed_vintages(vintages: VintageRegistryService, config: LedgerConfig) -> int:
    """Register configured vintages that are not registered yet.  Returns the count."""
    registered = 0
    for seed in config.vintages:
        if vintages.exists(seed.vintage_ref):
            continue
        vintages.register_vintage(
            vintage_ref=seed.vintage_ref,
            name=seed.name,
            total_vintage_quantity=seed.total_vintage_quantity,
            precision=seed.precision,
            project_ref=seed.project_ref,
            actor=f"config:{config.config_id}",
        )
        registered += 1
    return registered


def build_services(
    session: Session,
    config: LedgerConfig,
    clock: Clock | None = None,
) -> LedgerServices:
    """Wire every kernel service for ``session`` and seed configured vintages."""
    clock = clock or SystemClock()
    decimals = config.token_decimals
    sequences = SequenceService(session)

    vintages = VintageRegistryService(session, token_decimals=decimals)
    ledger = FungibleLedger(session, vintages, token_decimals=decimals)
    batches = BatchRegistry(
        session, vintages, sequence_service=sequences, clock=clock, token_decimals=decimals
    )
    certificates = RetirementCertificateService(session, sequence_service=sequences, clock=clock)
    escrow = EscrowCoordinator(
        session,
        batches,
        ledger,
        vintages,
        certificates,
        sequence_service=sequences,
        clock=clock,
    )

    seed_vintages(vintages, config)

    return LedgerServices(
        authority=build_role_authority(config),
        vintages=vintages,
        ledger=ledger,
        batches=batches,
        escrow=escrow,
        fractionalization=FractionalizationService(session, batches, ledger),
        certificates=certificates,
        selector=LedgerSelector(session, token_decimals=decimals),
    )
