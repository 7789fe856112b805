"""Surgery request intake lifecycle state machine.

A clinic submits a request; facility staff return, accept or reject it; an
accepted request is converted exactly once into a scheduled case. Every
operation here is a pure function of the current request record and a
command. It returns either a TransitionResult describing what the caller
must persist (updated request, audit event, and any submission or
conversion row) or a LifecycleError. Nothing is raised for control flow.

Transitions:
    SUBMITTED          -> RETURNED_TO_CLINIC | ACCEPTED | REJECTED | WITHDRAWN
    RETURNED_TO_CLINIC -> SUBMITTED (resubmission) | WITHDRAWN
    ACCEPTED           -> CONVERTED | WITHDRAWN
    REJECTED, WITHDRAWN, CONVERTED are terminal.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum

from asc_readiness.domain.ids import (
    ClinicId,
    FacilityId,
    PatientRefId,
    SurgeryRequestId,
    UserId,
)


class SurgeryRequestStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    RETURNED_TO_CLINIC = "RETURNED_TO_CLINIC"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"
    CONVERTED = "CONVERTED"


class SurgeryRequestEventType(str, Enum):
    SUBMITTED = "SUBMITTED"
    RESUBMITTED = "RESUBMITTED"
    RETURNED = "RETURNED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"
    CONVERTED = "CONVERTED"


class RequestActorType(str, Enum):
    """Who performed a lifecycle transition."""

    CLINIC = "CLINIC"
    ASC = "ASC"


class RequestReasonCode(str, Enum):
    """Reason codes for returning or rejecting a request."""

    MISSING_INFO = "MISSING_INFO"
    INVALID_SURGEON = "INVALID_SURGEON"
    PROCEDURE_UNCLEAR = "PROCEDURE_UNCLEAR"
    DUPLICATE = "DUPLICATE"
    WRONG_FACILITY = "WRONG_FACILITY"
    OTHER = "OTHER"


class SubmitOutcome(str, Enum):
    CREATED = "CREATED"
    EXISTING = "EXISTING"
    RESUBMITTED = "RESUBMITTED"


class LifecycleErrorKind(str, Enum):
    INVALID_TRANSITION = "INVALID_TRANSITION"
    SURGEON_NOT_MAPPED = "SURGEON_NOT_MAPPED"
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"


TERMINAL_STATUSES = frozenset(
    {
        SurgeryRequestStatus.REJECTED,
        SurgeryRequestStatus.WITHDRAWN,
        SurgeryRequestStatus.CONVERTED,
    }
)

TRANSITIONS: dict[SurgeryRequestStatus, frozenset[SurgeryRequestStatus]] = {
    SurgeryRequestStatus.SUBMITTED: frozenset(
        {
            SurgeryRequestStatus.RETURNED_TO_CLINIC,
            SurgeryRequestStatus.ACCEPTED,
            SurgeryRequestStatus.REJECTED,
            SurgeryRequestStatus.WITHDRAWN,
        }
    ),
    SurgeryRequestStatus.RETURNED_TO_CLINIC: frozenset(
        {SurgeryRequestStatus.SUBMITTED, SurgeryRequestStatus.WITHDRAWN}
    ),
    SurgeryRequestStatus.ACCEPTED: frozenset(
        {SurgeryRequestStatus.CONVERTED, SurgeryRequestStatus.WITHDRAWN}
    ),
    SurgeryRequestStatus.REJECTED: frozenset(),
    SurgeryRequestStatus.WITHDRAWN: frozenset(),
    SurgeryRequestStatus.CONVERTED: frozenset(),
}


def can_transition(current: SurgeryRequestStatus, target: SurgeryRequestStatus) -> bool:
    """Check whether ``current -> target`` is a permitted transition."""
    return target in TRANSITIONS.get(current, frozenset())


@dataclass(frozen=True)
class SurgeryRequestRecord:
    """Current state of a surgery request as seen by the state machine."""

    id: SurgeryRequestId
    target_facility_id: FacilityId
    source_clinic_id: ClinicId
    source_request_id: str
    status: SurgeryRequestStatus
    procedure_name: str
    patient_ref_id: PatientRefId
    last_submitted_at: datetime
    surgeon_id: UserId | None = None
    scheduled_date: date | None = None
    scheduled_time: str | None = None
    latest_submission_seq: int = 1


@dataclass(frozen=True)
class SubmissionCommand:
    """A clinic submission, with references already resolved by the caller."""

    target_facility_id: FacilityId
    source_clinic_id: ClinicId
    source_request_id: str
    procedure_name: str
    patient_ref_id: PatientRefId
    submitted_at: datetime
    surgeon_id: UserId | None = None
    scheduled_date: date | None = None
    scheduled_time: str | None = None
    payload_version: int = 1


@dataclass(frozen=True)
class SubmissionDraft:
    """Submission row to append."""

    submission_seq: int
    submitted_at: datetime
    received_at: datetime
    payload_version: int = 1


@dataclass(frozen=True)
class AuditEventDraft:
    """Timeline entry to append alongside a transition."""

    event_type: SurgeryRequestEventType
    actor_type: RequestActorType
    created_at: datetime
    actor_clinic_id: ClinicId | None = None
    actor_user_id: UserId | None = None
    reason_code: RequestReasonCode | None = None
    note: str | None = None


@dataclass(frozen=True)
class ConversionDraft:
    """Conversion row to create, together with the new scheduled case."""

    request_id: SurgeryRequestId
    facility_id: FacilityId
    surgeon_id: UserId
    procedure_name: str
    converted_by_user_id: UserId
    converted_at: datetime
    scheduled_date: date | None = None
    scheduled_time: str | None = None


@dataclass(frozen=True)
class TransitionResult:
    """What the caller must persist for a successful operation.

    ``event`` is None only for an idempotent duplicate submission, in
    which case nothing is persisted.
    """

    request: SurgeryRequestRecord
    event: AuditEventDraft | None = None
    submission: SubmissionDraft | None = None
    conversion: ConversionDraft | None = None
    outcome: SubmitOutcome | None = None

    @property
    def changed(self) -> bool:
        return self.event is not None


@dataclass(frozen=True)
class LifecycleError:
    """Typed failure of a lifecycle operation."""

    kind: LifecycleErrorKind
    message: str
    current_status: SurgeryRequestStatus | None = None
    target_status: SurgeryRequestStatus | None = None


LifecycleOutcome = TransitionResult | LifecycleError


def _invalid_transition(
    current: SurgeryRequestStatus, target: SurgeryRequestStatus
) -> LifecycleError:
    return LifecycleError(
        kind=LifecycleErrorKind.INVALID_TRANSITION,
        message=f"Invalid status transition: {current.value} -> {target.value}",
        current_status=current,
        target_status=target,
    )


def _validation(message: str) -> LifecycleError:
    return LifecycleError(kind=LifecycleErrorKind.VALIDATION, message=message)


def submit(
    existing: SurgeryRequestRecord | None,
    command: SubmissionCommand,
    new_request_id: SurgeryRequestId,
    now: datetime,
) -> LifecycleOutcome:
    """Create, resubmit, or idempotently return a request.

    The dedup key is (source clinic, source request id); the caller looks
    up ``existing`` by that key.

    Args:
        existing: Request already stored under the dedup key, if any
        command: The submission
        new_request_id: Id to use if a new request is created
        now: Receipt time

    Returns:
        TransitionResult flagged CREATED, EXISTING or RESUBMITTED, or a
        LifecycleError
    """
    if not command.procedure_name.strip():
        return _validation("procedure_name must be a non-empty string")
    if not command.source_request_id.strip():
        return _validation("source_request_id must be a non-empty string")

    if existing is None:
        request = SurgeryRequestRecord(
            id=new_request_id,
            target_facility_id=command.target_facility_id,
            source_clinic_id=command.source_clinic_id,
            source_request_id=command.source_request_id,
            status=SurgeryRequestStatus.SUBMITTED,
            procedure_name=command.procedure_name,
            patient_ref_id=command.patient_ref_id,
            last_submitted_at=now,
            surgeon_id=command.surgeon_id,
            scheduled_date=command.scheduled_date,
            scheduled_time=command.scheduled_time,
            latest_submission_seq=1,
        )
        return TransitionResult(
            request=request,
            event=AuditEventDraft(
                event_type=SurgeryRequestEventType.SUBMITTED,
                actor_type=RequestActorType.CLINIC,
                actor_clinic_id=command.source_clinic_id,
                created_at=now,
            ),
            submission=SubmissionDraft(
                submission_seq=1,
                submitted_at=command.submitted_at,
                received_at=now,
                payload_version=command.payload_version,
            ),
            outcome=SubmitOutcome.CREATED,
        )

    if (
        existing.source_clinic_id != command.source_clinic_id
        or existing.source_request_id != command.source_request_id
    ):
        return _validation("existing request does not match the submission key")

    if existing.status != SurgeryRequestStatus.RETURNED_TO_CLINIC:
        return TransitionResult(request=existing, outcome=SubmitOutcome.EXISTING)

    next_seq = existing.latest_submission_seq + 1
    request = replace(
        existing,
        status=SurgeryRequestStatus.SUBMITTED,
        procedure_name=command.procedure_name,
        surgeon_id=command.surgeon_id,
        scheduled_date=command.scheduled_date,
        scheduled_time=command.scheduled_time,
        last_submitted_at=now,
        latest_submission_seq=next_seq,
    )
    return TransitionResult(
        request=request,
        event=AuditEventDraft(
            event_type=SurgeryRequestEventType.RESUBMITTED,
            actor_type=RequestActorType.CLINIC,
            actor_clinic_id=command.source_clinic_id,
            created_at=now,
        ),
        submission=SubmissionDraft(
            submission_seq=next_seq,
            submitted_at=command.submitted_at,
            received_at=now,
            payload_version=command.payload_version,
        ),
        outcome=SubmitOutcome.RESUBMITTED,
    )


def _facility_transition(
    request: SurgeryRequestRecord,
    target: SurgeryRequestStatus,
    event_type: SurgeryRequestEventType,
    actor_user_id: UserId,
    now: datetime,
    reason_code: RequestReasonCode | None = None,
    note: str | None = None,
) -> LifecycleOutcome:
    if not can_transition(request.status, target):
        return _invalid_transition(request.status, target)
    return TransitionResult(
        request=replace(request, status=target),
        event=AuditEventDraft(
            event_type=event_type,
            actor_type=RequestActorType.ASC,
            actor_user_id=actor_user_id,
            reason_code=reason_code,
            note=note,
            created_at=now,
        ),
    )


def return_to_clinic(
    request: SurgeryRequestRecord,
    reason_code: RequestReasonCode | None,
    actor_user_id: UserId,
    now: datetime,
    note: str | None = None,
) -> LifecycleOutcome:
    """Send a submitted request back to the clinic for changes."""
    if reason_code is None:
        return _validation("reason_code is required to return a request")
    return _facility_transition(
        request,
        SurgeryRequestStatus.RETURNED_TO_CLINIC,
        SurgeryRequestEventType.RETURNED,
        actor_user_id,
        now,
        reason_code=reason_code,
        note=note,
    )


def accept(
    request: SurgeryRequestRecord,
    actor_user_id: UserId,
    now: datetime,
    note: str | None = None,
) -> LifecycleOutcome:
    """Accept a submitted request."""
    return _facility_transition(
        request,
        SurgeryRequestStatus.ACCEPTED,
        SurgeryRequestEventType.ACCEPTED,
        actor_user_id,
        now,
        note=note,
    )


def reject(
    request: SurgeryRequestRecord,
    reason_code: RequestReasonCode | None,
    actor_user_id: UserId,
    now: datetime,
    note: str | None = None,
) -> LifecycleOutcome:
    """Reject a submitted request. Terminal."""
    if reason_code is None:
        return _validation("reason_code is required to reject a request")
    return _facility_transition(
        request,
        SurgeryRequestStatus.REJECTED,
        SurgeryRequestEventType.REJECTED,
        actor_user_id,
        now,
        reason_code=reason_code,
        note=note,
    )


def withdraw(
    request: SurgeryRequestRecord,
    clinic_id: ClinicId,
    now: datetime,
) -> LifecycleOutcome:
    """Withdraw a request on behalf of the clinic that submitted it. Terminal.

    A clinic cannot see another clinic's requests, so a mismatch reads as
    NOT_FOUND.
    """
    if request.source_clinic_id != clinic_id:
        return LifecycleError(
            kind=LifecycleErrorKind.NOT_FOUND,
            message="Surgery request not found",
        )
    target = SurgeryRequestStatus.WITHDRAWN
    if not can_transition(request.status, target):
        return _invalid_transition(request.status, target)
    return TransitionResult(
        request=replace(request, status=target),
        event=AuditEventDraft(
            event_type=SurgeryRequestEventType.WITHDRAWN,
            actor_type=RequestActorType.CLINIC,
            actor_clinic_id=clinic_id,
            created_at=now,
        ),
    )


def convert(
    request: SurgeryRequestRecord,
    resolved_surgeon_id: UserId | None,
    actor_user_id: UserId,
    now: datetime,
) -> LifecycleOutcome:
    """Convert an accepted request into a scheduled case. Terminal.

    The status check runs first, so converting twice is always a conflict.

    Args:
        request: Request to convert
        resolved_surgeon_id: The request's surgeon as a facility surgeon, or
            None when it cannot be mapped
        actor_user_id: Facility user performing the conversion
        now: Conversion time

    Returns:
        TransitionResult carrying a ConversionDraft, or a LifecycleError
    """
    target = SurgeryRequestStatus.CONVERTED
    if not can_transition(request.status, target):
        return _invalid_transition(request.status, target)
    if resolved_surgeon_id is None:
        return LifecycleError(
            kind=LifecycleErrorKind.SURGEON_NOT_MAPPED,
            message="Request surgeon is not mapped to a facility surgeon",
            current_status=request.status,
            target_status=target,
        )
    return TransitionResult(
        request=replace(request, status=target),
        event=AuditEventDraft(
            event_type=SurgeryRequestEventType.CONVERTED,
            actor_type=RequestActorType.ASC,
            actor_user_id=actor_user_id,
            created_at=now,
        ),
        conversion=ConversionDraft(
            request_id=request.id,
            facility_id=request.target_facility_id,
            surgeon_id=resolved_surgeon_id,
            procedure_name=request.procedure_name,
            converted_by_user_id=actor_user_id,
            converted_at=now,
            scheduled_date=request.scheduled_date,
            scheduled_time=request.scheduled_time,
        ),
    )
