"""Surgery request intake models.

The request row changes only through lifecycle transitions, and a
checklist instance only through its status. Submissions, audit events,
conversions, checklist template versions and checklist responses are
append-only; the migrations install triggers that reject UPDATE and
DELETE on them.
"""

from datetime import date, datetime

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from asc_readiness.db.base import Base, BaseNoId, CreatedAtMixin, TimestampMixin, utc_now


class PatientRef(Base, TimestampMixin):
    """Clinic-scoped patient reference (no clinical identifiers)."""

    __tablename__ = "patient_refs"
    __table_args__ = (UniqueConstraint("clinic_id", "clinic_patient_key"),)

    clinic_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    clinic_patient_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    display_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    birth_year: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )


class SurgeryRequest(Base, TimestampMixin):
    """A clinic-submitted request for surgery at a facility."""

    __tablename__ = "surgery_requests"
    # One row per dedup key for the lifetime of the request
    __table_args__ = (UniqueConstraint("source_clinic_id", "source_request_id"),)

    target_facility_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    source_clinic_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    source_request_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )
    procedure_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    surgeon_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("facility_users.id"),
        nullable=True,
    )
    scheduled_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )
    scheduled_time: Mapped[str | None] = mapped_column(
        String(8),
        nullable=True,
    )
    patient_ref_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("patient_refs.id"),
        nullable=False,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    last_submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<SurgeryRequest {self.id} {self.source_clinic_id}:"
            f"{self.source_request_id} {self.status}>"
        )


class SurgeryRequestSubmission(Base, CreatedAtMixin):
    """One physical submission attempt."""

    __tablename__ = "surgery_request_submissions"
    __table_args__ = (UniqueConstraint("request_id", "submission_seq"),)

    request_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgery_requests.id"),
        nullable=False,
        index=True,
    )
    submission_seq: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    payload_version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )


class SurgeryRequestAuditEvent(Base, CreatedAtMixin):
    """Timeline entry for a lifecycle transition."""

    __tablename__ = "surgery_request_audit_events"

    request_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgery_requests.id"),
        nullable=False,
        index=True,
    )
    submission_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgery_request_submissions.id"),
        nullable=True,
    )
    event_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    actor_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    actor_clinic_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    actor_user_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    reason_code: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    note: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<SurgeryRequestAuditEvent {self.event_type} request={self.request_id}>"


class SurgeryRequestConversion(BaseNoId):
    """Link from a converted request to the case it became. One per request."""

    __tablename__ = "surgery_request_conversions"

    request_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgery_requests.id"),
        primary_key=True,
    )
    surgical_case_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgical_cases.id"),
        unique=True,
        nullable=False,
    )
    converted_by_user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
    )
    converted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )


class SurgeryRequestChecklistTemplateVersion(Base, CreatedAtMixin):
    """One immutable version of a facility's intake checklist.

    ``items`` holds the item definitions, each a dict with at least a
    ``key`` and a ``label``.
    """

    __tablename__ = "surgery_request_checklist_template_versions"
    __table_args__ = (UniqueConstraint("facility_id", "name", "version"),)

    facility_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    items: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    @property
    def item_keys(self) -> set[str]:
        return {item["key"] for item in self.items}


class SurgeryRequestChecklistInstance(Base, TimestampMixin):
    """Checklist filed with one submission."""

    __tablename__ = "surgery_request_checklist_instances"

    request_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgery_requests.id"),
        nullable=False,
        index=True,
    )
    submission_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgery_request_submissions.id"),
        unique=True,
        nullable=False,
    )
    template_version_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgery_request_checklist_template_versions.id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default="PENDING",
        nullable=False,
    )


class SurgeryRequestChecklistResponse(Base, CreatedAtMixin):
    """One answer to one checklist item."""

    __tablename__ = "surgery_request_checklist_responses"

    instance_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgery_request_checklist_instances.id"),
        nullable=False,
        index=True,
    )
    item_key: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    response: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )
    actor_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    actor_clinic_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    actor_user_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
