"""Surgery request intake lifecycle."""

from asc_readiness.lifecycle.surgery_request import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    AuditEventDraft,
    ConversionDraft,
    LifecycleError,
    LifecycleErrorKind,
    RequestActorType,
    RequestReasonCode,
    SubmissionCommand,
    SubmissionDraft,
    SubmitOutcome,
    SurgeryRequestEventType,
    SurgeryRequestRecord,
    SurgeryRequestStatus,
    TransitionResult,
    accept,
    can_transition,
    convert,
    reject,
    return_to_clinic,
    submit,
    withdraw,
)

__all__ = [
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "AuditEventDraft",
    "ConversionDraft",
    "LifecycleError",
    "LifecycleErrorKind",
    "RequestActorType",
    "RequestReasonCode",
    "SubmissionCommand",
    "SubmissionDraft",
    "SubmitOutcome",
    "SurgeryRequestEventType",
    "SurgeryRequestRecord",
    "SurgeryRequestStatus",
    "TransitionResult",
    "accept",
    "can_transition",
    "convert",
    "reject",
    "return_to_clinic",
    "submit",
    "withdraw",
]
