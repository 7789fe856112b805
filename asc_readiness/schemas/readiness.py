"""Readiness schemas."""

from datetime import date, datetime

from pydantic import BaseModel

from asc_readiness.domain.types import ReadinessState, ShortageReason


class ShortageRead(BaseModel):
    catalog_id: str
    catalog_name: str
    required_quantity: int
    available_quantity: int
    reason: ShortageReason


class CaseReadinessRead(BaseModel):
    """Cached readiness of one case for the day-before view."""

    case_id: str
    facility_id: str
    scheduled_date: date
    procedure_name: str
    surgeon_name: str
    readiness_state: ReadinessState
    missing_items: list[ShortageRead]
    total_required_items: int
    total_verified_items: int
    has_attestation: bool
    attestation_id: str | None
    attested_at: datetime | None
    attested_by_user_id: str | None
    has_surgeon_acknowledgment: bool
    surgeon_acknowledgment_id: str | None
    surgeon_acknowledged_at: datetime | None
    computed_at: datetime

    model_config = {"from_attributes": True}


class DaySummaryRead(BaseModel):
    """Per-day readiness counts for the calendar."""

    day: date
    case_count: int
    green: int
    orange: int
    red: int

    model_config = {"from_attributes": True}
