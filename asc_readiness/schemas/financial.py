"""Financial readiness schemas."""

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from asc_readiness.core.config import settings
from asc_readiness.financial.risk import (
    AscFinancialState,
    AscReasonCode,
    ClinicFinancialState,
    ClinicReasonCode,
    FinancialRiskState,
    OverrideReasonCode,
    OverrideState,
)


class ClinicDeclarationCreate(BaseModel):
    """Clinic declaration. UNKNOWN is the absence of a declaration, not a value."""

    state: ClinicFinancialState
    reason_codes: list[ClinicReasonCode] = Field(default_factory=list)
    note: str | None = Field(None, max_length=settings.max_note_length)

    @model_validator(mode="after")
    def validate_state(self) -> "ClinicDeclarationCreate":
        if self.state == ClinicFinancialState.UNKNOWN:
            raise ValueError("state must be DECLARED_CLEARED or DECLARED_AT_RISK")
        return self


class AscVerificationCreate(BaseModel):
    """Facility verification. UNKNOWN is not recordable."""

    state: AscFinancialState
    reason_codes: list[AscReasonCode] = Field(default_factory=list)
    note: str | None = Field(None, max_length=settings.max_note_length)

    @model_validator(mode="after")
    def validate_state(self) -> "AscVerificationCreate":
        if self.state == AscFinancialState.UNKNOWN:
            raise ValueError("state must be VERIFIED_CLEARED or VERIFIED_AT_RISK")
        return self


class FinancialOverrideCreate(BaseModel):
    """Administrative override.

    State NONE clears a previous override and must carry no reason code;
    any other state requires one.
    """

    state: OverrideState
    reason_code: OverrideReasonCode | None = None
    note: str | None = Field(None, max_length=settings.max_note_length)

    @model_validator(mode="after")
    def validate_reason_code(self) -> "FinancialOverrideCreate":
        if self.state == OverrideState.NONE and self.reason_code is not None:
            raise ValueError("reason_code must be empty when clearing an override")
        if self.state != OverrideState.NONE and self.reason_code is None:
            raise ValueError("reason_code is required for an override")
        return self


class FinancialSignalRead(BaseModel):
    """One row from any of the three signal tables."""

    id: str
    surgery_request_id: str
    state: str
    reason_codes: list[str]
    note: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class FinancialCacheRead(BaseModel):
    surgery_request_id: str
    clinic_state: ClinicFinancialState
    asc_state: AscFinancialState
    override_state: OverrideState
    risk_state: FinancialRiskState
    last_clinic_declaration_id: str | None
    last_asc_verification_id: str | None
    last_override_id: str | None
    recomputed_at: datetime

    model_config = {"from_attributes": True}


class FinancialDetail(BaseModel):
    """Full financial picture of one request, history oldest first."""

    surgery_request_id: str
    cache: FinancialCacheRead | None
    declarations: list[FinancialSignalRead]
    verifications: list[FinancialSignalRead]
    overrides: list[FinancialSignalRead]


class FinancialDashboardFilter(BaseModel):
    """Filter parameters for the facility financial dashboard."""

    risk_state: FinancialRiskState | None = None
    clinic_id: str | None = None
    surgeon_id: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    limit: int = Field(
        default=settings.default_page_limit, ge=1, le=settings.max_page_limit
    )
    offset: int = Field(default=0, ge=0)


class FinancialDashboardRow(BaseModel):
    """A request with its cached (or defaulted) financial states."""

    surgery_request_id: str
    source_clinic_id: str
    procedure_name: str
    surgeon_id: str | None
    scheduled_date: date | None
    status: str
    clinic_state: ClinicFinancialState
    asc_state: AscFinancialState
    override_state: OverrideState
    risk_state: FinancialRiskState
    recomputed_at: datetime | None


class FinancialDashboardPage(BaseModel):
    rows: list[FinancialDashboardRow]
    total: int
