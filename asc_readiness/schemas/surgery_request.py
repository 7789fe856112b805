"""Surgery request schemas."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from asc_readiness.core.config import settings
from asc_readiness.lifecycle.surgery_request import (
    RequestActorType,
    RequestReasonCode,
    SurgeryRequestEventType,
    SurgeryRequestStatus,
)


class PatientRefIn(BaseModel):
    """Clinic-scoped patient reference carried on a submission."""

    clinic_patient_key: str = Field(..., min_length=1, max_length=255)
    display_name: str | None = Field(None, max_length=255)
    birth_year: int | None = Field(None, ge=1900, le=2100)


class ChecklistResponseIn(BaseModel):
    item_key: str = Field(..., min_length=1, max_length=100)
    response: dict[str, Any]


class ChecklistIn(BaseModel):
    """Clinic answers to a facility checklist template version."""

    template_version_id: str
    responses: list[ChecklistResponseIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_items(self) -> "ChecklistIn":
        """Each checklist item may be answered once per submission."""
        keys = [r.item_key for r in self.responses]
        if len(keys) != len(set(keys)):
            raise ValueError("checklist item keys must be unique")
        return self


class SurgeryRequestSubmit(BaseModel):
    """Clinic submission (new request or resubmission after return).

    The surgeon may be identified by facility user id or by username;
    neither is required at submission time.
    """

    target_facility_id: str
    source_request_id: str = Field(..., min_length=1, max_length=255)
    submitted_at: datetime
    procedure_name: str = Field(..., min_length=1, max_length=255)
    surgeon_id: str | None = None
    surgeon_username: str | None = Field(None, max_length=100)
    scheduled_date: date | None = None
    scheduled_time: str | None = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    patient: PatientRefIn
    checklist: ChecklistIn | None = None
    payload_version: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def validate_procedure_name(self) -> "SurgeryRequestSubmit":
        """Reject whitespace-only procedure names."""
        if not self.procedure_name.strip():
            raise ValueError("procedure_name must not be blank")
        self.procedure_name = self.procedure_name.strip()
        return self


class SurgeryRequestReturn(BaseModel):
    """Return a request to the clinic. Reason code is required."""

    reason_code: RequestReasonCode
    note: str | None = Field(None, max_length=settings.max_note_length)


class SurgeryRequestAccept(BaseModel):
    note: str | None = Field(None, max_length=settings.max_note_length)


class SurgeryRequestReject(BaseModel):
    """Reject a request. Reason code is required."""

    reason_code: RequestReasonCode
    note: str | None = Field(None, max_length=settings.max_note_length)


class SurgeryRequestRead(BaseModel):
    """Schema for reading surgery request data."""

    id: str
    target_facility_id: str
    source_clinic_id: str
    source_request_id: str
    status: SurgeryRequestStatus
    procedure_name: str
    surgeon_id: str | None
    scheduled_date: date | None
    scheduled_time: str | None
    patient_ref_id: str
    submitted_at: datetime
    last_submitted_at: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class SubmissionRead(BaseModel):
    id: str
    request_id: str
    submission_seq: int
    submitted_at: datetime
    received_at: datetime
    payload_version: int

    model_config = {"from_attributes": True}


class RequestAuditEventRead(BaseModel):
    id: str
    request_id: str
    submission_id: str | None
    event_type: SurgeryRequestEventType
    actor_type: RequestActorType
    actor_clinic_id: str | None
    actor_user_id: str | None
    reason_code: RequestReasonCode | None
    note: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ConversionRead(BaseModel):
    request_id: str
    surgical_case_id: str
    converted_by_user_id: str
    converted_at: datetime

    model_config = {"from_attributes": True}


class ChecklistResponseRead(BaseModel):
    id: str
    instance_id: str
    item_key: str
    response: dict[str, Any]
    actor_type: RequestActorType
    actor_clinic_id: str | None
    actor_user_id: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ChecklistInstanceRead(BaseModel):
    """A checklist filed with one submission, with its answers."""

    id: str
    request_id: str
    submission_id: str
    template_version_id: str
    template_name: str | None = None
    template_version: int | None = None
    status: str
    created_at: datetime
    responses: list[ChecklistResponseRead] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class SurgeryRequestDetail(BaseModel):
    """A request with its full history, oldest first."""

    request: SurgeryRequestRead
    submissions: list[SubmissionRead]
    events: list[RequestAuditEventRead]
    checklists: list[ChecklistInstanceRead]
    conversion: ConversionRead | None


class SurgeryRequestInboxFilter(BaseModel):
    """Filter parameters for the facility request inbox."""

    status: SurgeryRequestStatus | None = None
    clinic_id: str | None = None
    surgeon_id: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    limit: int = Field(
        default=settings.default_page_limit, ge=1, le=settings.max_page_limit
    )
    offset: int = Field(default=0, ge=0)


class SurgeryRequestClinicFilter(BaseModel):
    """Filter parameters for a clinic's own request list."""

    status: SurgeryRequestStatus | None = None
    since: datetime | None = None
    limit: int = Field(
        default=settings.default_page_limit, ge=1, le=settings.max_page_limit
    )


class SurgeryRequestPage(BaseModel):
    rows: list[SurgeryRequestRead]
    total: int
