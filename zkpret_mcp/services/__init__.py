"""Simulated back-end collaborators used by the tool handlers."""

from .simulated import (
    ActusService,
    BpmnService,
    ComplianceService,
    ContractService,
    DataIntegrityService,
    EximService,
    GleifService,
    ProofService,
    ServiceError,
    Services,
    WalletService,
    lei_checksum_valid,
)

__all__ = [
    "ActusService",
    "BpmnService",
    "ComplianceService",
    "ContractService",
    "DataIntegrityService",
    "EximService",
    "GleifService",
    "ProofService",
    "ServiceError",
    "Services",
    "WalletService",
    "lei_checksum_valid",
]
