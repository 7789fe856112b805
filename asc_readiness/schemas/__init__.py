"""Pydantic schemas for request/response validation."""

from asc_readiness.schemas.financial import (
    AscVerificationCreate,
    ClinicDeclarationCreate,
    FinancialCacheRead,
    FinancialDashboardFilter,
    FinancialDashboardPage,
    FinancialDashboardRow,
    FinancialDetail,
    FinancialOverrideCreate,
    FinancialSignalRead,
)
from asc_readiness.schemas.readiness import CaseReadinessRead, DaySummaryRead, ShortageRead
from asc_readiness.schemas.surgery_request import (
    ChecklistIn,
    ChecklistInstanceRead,
    ChecklistResponseIn,
    ChecklistResponseRead,
    ConversionRead,
    PatientRefIn,
    RequestAuditEventRead,
    SubmissionRead,
    SurgeryRequestAccept,
    SurgeryRequestClinicFilter,
    SurgeryRequestDetail,
    SurgeryRequestInboxFilter,
    SurgeryRequestPage,
    SurgeryRequestRead,
    SurgeryRequestReject,
    SurgeryRequestReturn,
    SurgeryRequestSubmit,
)

__all__ = [
    "AscVerificationCreate",
    "CaseReadinessRead",
    "ChecklistIn",
    "ChecklistInstanceRead",
    "ChecklistResponseIn",
    "ChecklistResponseRead",
    "ClinicDeclarationCreate",
    "ConversionRead",
    "DaySummaryRead",
    "FinancialCacheRead",
    "FinancialDashboardFilter",
    "FinancialDashboardPage",
    "FinancialDashboardRow",
    "FinancialDetail",
    "FinancialOverrideCreate",
    "FinancialSignalRead",
    "PatientRefIn",
    "RequestAuditEventRead",
    "ShortageRead",
    "SubmissionRead",
    "SurgeryRequestAccept",
    "SurgeryRequestClinicFilter",
    "SurgeryRequestDetail",
    "SurgeryRequestInboxFilter",
    "SurgeryRequestPage",
    "SurgeryRequestRead",
    "SurgeryRequestReject",
    "SurgeryRequestReturn",
    "SurgeryRequestSubmit",
]
