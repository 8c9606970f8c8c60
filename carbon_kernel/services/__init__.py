"""Kernel services: the imperative shell around the pure domain layer."""

from carbon_kernel.services.base import BaseService
from carbon_kernel.services.batch_registry import KERNEL_ACTOR, BatchRegistry
from carbon_kernel.services.escrow_coordinator import EscrowCoordinator
from carbon_kernel.services.fractionalization_service import FractionalizationService
from carbon_kernel.services.fungible_ledger import FungibleLedger
from carbon_kernel.services.retirement_certificates import RetirementCertificateService
from carbon_kernel.services.sequence_service import SequenceCounter, SequenceService
from carbon_kernel.services.vintage_registry import VintageRegistryService

__all__ = [
    "BaseService",
    "BatchRegistry",
    "EscrowCoordinator",
    "FractionalizationService",
    "FungibleLedger",
    "KERNEL_ACTOR",
    "RetirementCertificateService",
    "SequenceCounter",
    "SequenceService",
    "VintageRegistryService",
]
