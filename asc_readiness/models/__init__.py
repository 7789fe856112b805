"""Database models for the ASC readiness core."""

from asc_readiness.models.facility_user import SURGEON_ROLE, FacilityUser
from asc_readiness.models.financial import (
    AscFinancialVerification,
    ClinicFinancialDeclaration,
    FinancialOverride,
    FinancialReadinessCache,
)
from asc_readiness.models.inventory import InventoryItem, ItemCatalogEntry
from asc_readiness.models.surgery_request import (
    PatientRef,
    SurgeryRequest,
    SurgeryRequestAuditEvent,
    SurgeryRequestChecklistInstance,
    SurgeryRequestChecklistResponse,
    SurgeryRequestChecklistTemplateVersion,
    SurgeryRequestConversion,
    SurgeryRequestSubmission,
)
from asc_readiness.models.surgical_case import (
    CaseAttestation,
    CaseItemRequirement,
    CaseReadinessCache,
    SurgicalCase,
)

__all__ = [
    "AscFinancialVerification",
    "CaseAttestation",
    "CaseItemRequirement",
    "CaseReadinessCache",
    "ClinicFinancialDeclaration",
    "FacilityUser",
    "FinancialOverride",
    "FinancialReadinessCache",
    "InventoryItem",
    "ItemCatalogEntry",
    "PatientRef",
    "SURGEON_ROLE",
    "SurgeryRequest",
    "SurgeryRequestAuditEvent",
    "SurgeryRequestChecklistInstance",
    "SurgeryRequestChecklistResponse",
    "SurgeryRequestChecklistTemplateVersion",
    "SurgeryRequestConversion",
    "SurgeryRequestSubmission",
    "SurgicalCase",
]
