"""Shared domain value types and identifiers."""

from asc_readiness.domain.types import (
    Attestation,
    AttestationType,
    AvailabilityStatus,
    CaseForReadiness,
    CaseRequirement,
    CaseStatus,
    CatalogItem,
    InventoryUnit,
    ItemCategory,
    ReadinessState,
    Shortage,
    ShortageReason,
    SterilityStatus,
    SurgeonRef,
    latest_record,
)

__all__ = [
    "Attestation",
    "AttestationType",
    "AvailabilityStatus",
    "CaseForReadiness",
    "CaseRequirement",
    "CaseStatus",
    "CatalogItem",
    "InventoryUnit",
    "ItemCategory",
    "ReadinessState",
    "Shortage",
    "ShortageReason",
    "SterilityStatus",
    "SurgeonRef",
    "latest_record",
]
