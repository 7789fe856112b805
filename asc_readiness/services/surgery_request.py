"""Surgery request service.

Loads requests and their history, resolves references (patient, surgeon),
runs the pure lifecycle state machine, and persists its decision. Each
operation is one unit of work: the status change, its audit event and
any submission, checklist or conversion row are committed together or
not at all.
"""

from dataclasses import dataclass
from typing import NoReturn

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from asc_readiness.core.logging import audit_logger, get_logger
from asc_readiness.db.base import new_id
from asc_readiness.domain.ids import (
    ClinicId,
    FacilityId,
    PatientRefId,
    SubmissionId,
    SurgeryRequestId,
    UserId,
)
from asc_readiness.domain.types import CaseStatus
from asc_readiness.lifecycle import surgery_request as lifecycle
from asc_readiness.lifecycle.surgery_request import (
    LifecycleError,
    LifecycleErrorKind,
    RequestActorType,
    SubmissionCommand,
    SubmitOutcome,
    SurgeryRequestRecord,
    SurgeryRequestStatus,
    TransitionResult,
)
from asc_readiness.models.facility_user import FacilityUser
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
from asc_readiness.models.surgical_case import SurgicalCase
from asc_readiness.schemas.surgery_request import (
    ChecklistIn,
    ChecklistInstanceRead,
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
from asc_readiness.utils.time import ensure_utc, utc_now

logger = get_logger(__name__)


class SurgeryRequestError(Exception):
    """Base class for surgery request failures."""
    pass


class SurgeryRequestNotFoundError(SurgeryRequestError):
    """Raised when a request does not exist in the caller's scope."""
    pass


class InvalidTransitionError(SurgeryRequestError):
    """Raised when the current status does not permit the operation (conflict)."""

    code = "INVALID_TRANSITION"

    def __init__(
        self,
        message: str,
        current_status: SurgeryRequestStatus | None = None,
        target_status: SurgeryRequestStatus | None = None,
    ) -> None:
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status


class SurgeonNotMappedError(SurgeryRequestError):
    """Raised when converting a request whose surgeon is not a facility surgeon."""

    code = "SURGEON_NOT_MAPPED"


class SurgeryRequestValidationError(SurgeryRequestError):
    """Raised when a command is structurally invalid."""
    pass


def raise_lifecycle_error(error: LifecycleError) -> NoReturn:
    """Translate a state machine error into the service exception hierarchy."""
    if error.kind == LifecycleErrorKind.INVALID_TRANSITION:
        raise InvalidTransitionError(
            error.message,
            current_status=error.current_status,
            target_status=error.target_status,
        )
    if error.kind == LifecycleErrorKind.SURGEON_NOT_MAPPED:
        raise SurgeonNotMappedError(error.message)
    if error.kind == LifecycleErrorKind.NOT_FOUND:
        raise SurgeryRequestNotFoundError(error.message)
    raise SurgeryRequestValidationError(error.message)


def record_from_row(row: SurgeryRequest, latest_submission_seq: int) -> SurgeryRequestRecord:
    """Build the state machine's view of a stored request."""
    return SurgeryRequestRecord(
        id=SurgeryRequestId(row.id),
        target_facility_id=FacilityId(row.target_facility_id),
        source_clinic_id=ClinicId(row.source_clinic_id),
        source_request_id=row.source_request_id,
        status=SurgeryRequestStatus(row.status),
        procedure_name=row.procedure_name,
        patient_ref_id=PatientRefId(row.patient_ref_id),
        last_submitted_at=ensure_utc(row.last_submitted_at),
        surgeon_id=UserId(row.surgeon_id) if row.surgeon_id else None,
        scheduled_date=row.scheduled_date,
        scheduled_time=row.scheduled_time,
        latest_submission_seq=latest_submission_seq,
    )


@dataclass
class SubmitResult:
    """A stored request and what the submission did to it."""

    request: SurgeryRequest
    outcome: SubmitOutcome

    @property
    def created(self) -> bool:
        return self.outcome == SubmitOutcome.CREATED

    @property
    def resubmitted(self) -> bool:
        return self.outcome == SubmitOutcome.RESUBMITTED


@dataclass
class ConvertResult:
    request: SurgeryRequest
    surgical_case: SurgicalCase


class SurgeryRequestService:
    """Service for the clinic intake workflow."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _get_by_key(
        self, clinic_id: str, source_request_id: str
    ) -> SurgeryRequest | None:
        return await self.session.scalar(
            select(SurgeryRequest)
            .where(
                SurgeryRequest.source_clinic_id == clinic_id,
                SurgeryRequest.source_request_id == source_request_id,
            )
            .with_for_update()
        )

    async def _latest_submission_seq(self, request_id: str) -> int:
        latest = await self.session.scalar(
            select(func.max(SurgeryRequestSubmission.submission_seq)).where(
                SurgeryRequestSubmission.request_id == request_id
            )
        )
        return latest or 0

    async def _load_for_update(
        self,
        request_id: str,
        facility_id: str | None = None,
        clinic_id: str | None = None,
    ) -> SurgeryRequest:
        query = select(SurgeryRequest).where(SurgeryRequest.id == request_id)
        if facility_id is not None:
            query = query.where(SurgeryRequest.target_facility_id == facility_id)
        if clinic_id is not None:
            query = query.where(SurgeryRequest.source_clinic_id == clinic_id)
        row = await self.session.scalar(query.with_for_update())
        if row is None:
            raise SurgeryRequestNotFoundError(f"Surgery request {request_id} not found")
        return row

    async def get_request(
        self,
        request_id: str,
        facility_id: str | None = None,
        clinic_id: str | None = None,
    ) -> SurgeryRequest | None:
        """Get a request, optionally scoped to a facility or clinic."""
        query = select(SurgeryRequest).where(SurgeryRequest.id == request_id)
        if facility_id is not None:
            query = query.where(SurgeryRequest.target_facility_id == facility_id)
        if clinic_id is not None:
            query = query.where(SurgeryRequest.source_clinic_id == clinic_id)
        return await self.session.scalar(query)

    async def get_submissions(self, request_id: str) -> list[SurgeryRequestSubmission]:
        """Get every submission of a request, first to last."""
        result = await self.session.execute(
            select(SurgeryRequestSubmission)
            .where(SurgeryRequestSubmission.request_id == request_id)
            .order_by(SurgeryRequestSubmission.submission_seq)
        )
        return list(result.scalars().all())

    async def get_audit_events(self, request_id: str) -> list[SurgeryRequestAuditEvent]:
        """Get the request timeline, oldest first."""
        result = await self.session.execute(
            select(SurgeryRequestAuditEvent)
            .where(SurgeryRequestAuditEvent.request_id == request_id)
            .order_by(SurgeryRequestAuditEvent.created_at)
        )
        return list(result.scalars().all())

    async def get_conversion(self, request_id: str) -> SurgeryRequestConversion | None:
        return await self.session.get(SurgeryRequestConversion, request_id)

    async def get_checklist_instances(
        self, request_id: str
    ) -> list[SurgeryRequestChecklistInstance]:
        """Get the checklists filed with a request, one per submission, oldest first."""
        result = await self.session.execute(
            select(SurgeryRequestChecklistInstance)
            .where(SurgeryRequestChecklistInstance.request_id == request_id)
            .order_by(SurgeryRequestChecklistInstance.created_at)
        )
        return list(result.scalars().all())

    async def get_checklist_responses(
        self, instance_id: str
    ) -> list[SurgeryRequestChecklistResponse]:
        result = await self.session.execute(
            select(SurgeryRequestChecklistResponse)
            .where(SurgeryRequestChecklistResponse.instance_id == instance_id)
            .order_by(SurgeryRequestChecklistResponse.created_at)
        )
        return list(result.scalars().all())

    async def _read_checklist(
        self, instance: SurgeryRequestChecklistInstance
    ) -> ChecklistInstanceRead:
        template = await self.session.get(
            SurgeryRequestChecklistTemplateVersion, instance.template_version_id
        )
        read = ChecklistInstanceRead.model_validate(instance)
        read.template_name = template.name if template else None
        read.template_version = template.version if template else None
        read.responses = [
            ChecklistResponseRead.model_validate(response)
            for response in await self.get_checklist_responses(instance.id)
        ]
        return read

    async def get_detail(
        self,
        request_id: str,
        facility_id: str | None = None,
        clinic_id: str | None = None,
    ) -> SurgeryRequestDetail:
        """Get a request with its submissions, timeline, checklists and conversion.

        Raises:
            SurgeryRequestNotFoundError: Request not in the caller's scope
        """
        row = await self.get_request(request_id, facility_id=facility_id, clinic_id=clinic_id)
        if row is None:
            raise SurgeryRequestNotFoundError(f"Surgery request {request_id} not found")

        conversion = await self.get_conversion(row.id)
        return SurgeryRequestDetail(
            request=SurgeryRequestRead.model_validate(row),
            submissions=[
                SubmissionRead.model_validate(s) for s in await self.get_submissions(row.id)
            ],
            events=[
                RequestAuditEventRead.model_validate(e)
                for e in await self.get_audit_events(row.id)
            ],
            checklists=[
                await self._read_checklist(instance)
                for instance in await self.get_checklist_instances(row.id)
            ],
            conversion=ConversionRead.model_validate(conversion) if conversion else None,
        )

    async def list_for_facility(
        self,
        facility_id: str,
        filters: SurgeryRequestInboxFilter,
    ) -> SurgeryRequestPage:
        """List the facility inbox, most recently submitted first."""
        query = select(SurgeryRequest).where(SurgeryRequest.target_facility_id == facility_id)
        if filters.status is not None:
            query = query.where(SurgeryRequest.status == filters.status.value)
        if filters.clinic_id:
            query = query.where(SurgeryRequest.source_clinic_id == filters.clinic_id)
        if filters.surgeon_id:
            query = query.where(SurgeryRequest.surgeon_id == filters.surgeon_id)
        if filters.date_from:
            query = query.where(SurgeryRequest.scheduled_date >= filters.date_from)
        if filters.date_to:
            query = query.where(SurgeryRequest.scheduled_date <= filters.date_to)

        total = await self.session.scalar(
            select(func.count()).select_from(query.subquery())
        )
        result = await self.session.execute(
            query.order_by(SurgeryRequest.last_submitted_at.desc(), SurgeryRequest.id)
            .offset(filters.offset)
            .limit(filters.limit)
        )
        return SurgeryRequestPage(
            rows=[SurgeryRequestRead.model_validate(row) for row in result.scalars().all()],
            total=total or 0,
        )

    async def list_for_clinic(
        self,
        clinic_id: str,
        filters: SurgeryRequestClinicFilter,
    ) -> list[SurgeryRequestRead]:
        """List a clinic's own requests, most recently submitted first."""
        query = select(SurgeryRequest).where(SurgeryRequest.source_clinic_id == clinic_id)
        if filters.status is not None:
            query = query.where(SurgeryRequest.status == filters.status.value)
        if filters.since is not None:
            query = query.where(SurgeryRequest.last_submitted_at >= filters.since)

        result = await self.session.execute(
            query.order_by(SurgeryRequest.last_submitted_at.desc(), SurgeryRequest.id)
            .limit(filters.limit)
        )
        return [SurgeryRequestRead.model_validate(row) for row in result.scalars().all()]

    # ------------------------------------------------------------------
    # Reference resolution
    # ------------------------------------------------------------------

    async def resolve_surgeon(
        self,
        facility_id: str,
        surgeon_id: str | None = None,
        surgeon_username: str | None = None,
    ) -> str | None:
        """Resolve a surgeon reference to an active facility surgeon.

        Tries the user id first, then a case-insensitive username match.

        Returns:
            Facility user id, or None when nothing matches
        """
        query = select(FacilityUser).where(
            FacilityUser.facility_id == facility_id,
            FacilityUser.active.is_(True),
        )
        candidates: list[FacilityUser] = []
        if surgeon_id:
            result = await self.session.execute(query.where(FacilityUser.id == surgeon_id))
            candidates.extend(result.scalars().all())
        if surgeon_username:
            result = await self.session.execute(
                query.where(func.lower(FacilityUser.username) == surgeon_username.lower())
            )
            candidates.extend(result.scalars().all())

        for user in candidates:
            if user.is_surgeon:
                return user.id
        return None

    async def _find_patient_ref(
        self, clinic_id: str, clinic_patient_key: str
    ) -> PatientRef | None:
        return await self.session.scalar(
            select(PatientRef).where(
                PatientRef.clinic_id == clinic_id,
                PatientRef.clinic_patient_key == clinic_patient_key,
            )
        )

    async def _upsert_patient_ref(self, clinic_id: str, patient: PatientRefIn) -> PatientRef:
        ref = await self._find_patient_ref(clinic_id, patient.clinic_patient_key)
        if ref is None:
            ref = PatientRef(
                id=new_id(),
                clinic_id=clinic_id,
                clinic_patient_key=patient.clinic_patient_key,
            )
            self.session.add(ref)
            await self.session.flush()
        if patient.display_name is not None:
            ref.display_name = patient.display_name
        if patient.birth_year is not None:
            ref.birth_year = patient.birth_year
        return ref

    async def _check_checklist(self, facility_id: str, checklist: ChecklistIn) -> None:
        """Reject a checklist for an unknown template or with unknown items."""
        template = await self.session.get(
            SurgeryRequestChecklistTemplateVersion, checklist.template_version_id
        )
        if template is None or template.facility_id != facility_id:
            raise SurgeryRequestValidationError(
                f"Unknown checklist template version {checklist.template_version_id}"
            )
        unknown = sorted({r.item_key for r in checklist.responses} - template.item_keys)
        if unknown:
            raise SurgeryRequestValidationError(
                f"Unknown checklist items: {', '.join(unknown)}"
            )

    async def _write_checklist(
        self,
        request_id: str,
        submission_id: str,
        clinic_id: str,
        checklist: ChecklistIn,
    ) -> SurgeryRequestChecklistInstance:
        instance = SurgeryRequestChecklistInstance(
            id=new_id(),
            request_id=request_id,
            submission_id=submission_id,
            template_version_id=checklist.template_version_id,
        )
        self.session.add(instance)
        await self.session.flush()

        for answer in checklist.responses:
            self.session.add(
                SurgeryRequestChecklistResponse(
                    id=new_id(),
                    instance_id=instance.id,
                    item_key=answer.item_key,
                    response=answer.response,
                    actor_type=RequestActorType.CLINIC.value,
                    actor_clinic_id=clinic_id,
                )
            )
        await self.session.flush()
        return instance

    # ------------------------------------------------------------------
    # Persistence of state machine decisions
    # ------------------------------------------------------------------

    async def _write_transition(
        self,
        row: SurgeryRequest,
        result: TransitionResult,
    ) -> SurgeryRequestAuditEvent:
        """Write the status change, submission and audit rows of a transition.

        Rows are flushed parent first; the models declare foreign keys but no
        relationships, so the session cannot order the inserts itself.
        """
        record = result.request
        row.status = record.status.value
        row.procedure_name = record.procedure_name
        row.surgeon_id = record.surgeon_id
        row.scheduled_date = record.scheduled_date
        row.scheduled_time = record.scheduled_time
        row.last_submitted_at = record.last_submitted_at
        await self.session.flush()

        submission_id = None
        if result.submission is not None:
            submission_id = SubmissionId(new_id())
            self.session.add(
                SurgeryRequestSubmission(
                    id=submission_id,
                    request_id=row.id,
                    submission_seq=result.submission.submission_seq,
                    submitted_at=result.submission.submitted_at,
                    received_at=result.submission.received_at,
                    payload_version=result.submission.payload_version,
                    created_at=result.submission.received_at,
                )
            )
            await self.session.flush()

        event = result.event
        audit_event = SurgeryRequestAuditEvent(
            id=new_id(),
            request_id=row.id,
            submission_id=submission_id,
            event_type=event.event_type.value,
            actor_type=event.actor_type.value,
            actor_clinic_id=event.actor_clinic_id,
            actor_user_id=event.actor_user_id,
            reason_code=event.reason_code.value if event.reason_code else None,
            note=event.note,
            created_at=event.created_at,
        )
        self.session.add(audit_event)
        await self.session.flush()
        return audit_event

    def _log_transition(self, row: SurgeryRequest, result: TransitionResult) -> None:
        event = result.event
        audit_logger.log(
            action=f"surgery_request_{event.event_type.value.lower()}",
            actor_type=event.actor_type.value,
            actor_id=event.actor_user_id or event.actor_clinic_id or "system",
            entity_type="surgery_request",
            entity_id=row.id,
            metadata={
                "status": row.status,
                "reason_code": event.reason_code.value if event.reason_code else None,
            },
        )

    async def _commit_transition(
        self, row: SurgeryRequest, result: TransitionResult
    ) -> SurgeryRequest:
        await self._write_transition(row, result)
        await self.session.commit()
        await self.session.refresh(row)
        self._log_transition(row, result)
        return row

    # ------------------------------------------------------------------
    # Clinic operations
    # ------------------------------------------------------------------

    async def submit(self, clinic_id: str, data: SurgeryRequestSubmit) -> SubmitResult:
        """Submit a request, resubmit a returned one, or return a duplicate.

        Args:
            clinic_id: Submitting clinic (dedup key part one)
            data: Submission payload; source_request_id is dedup key part two

        Returns:
            SubmitResult flagged CREATED, EXISTING or RESUBMITTED

        Raises:
            SurgeryRequestValidationError: Unknown checklist template or items
        """
        try:
            return await self._submit(clinic_id, data)
        except IntegrityError:
            # A concurrent submission inserted the request, its next
            # submission or the patient reference first
            await self.session.rollback()

        winner = await self._get_by_key(clinic_id, data.source_request_id)
        if winner is not None and winner.status != SurgeryRequestStatus.RETURNED_TO_CLINIC.value:
            logger.info(
                "Concurrent submission returned existing request",
                extra={"request_id": winner.id},
            )
            return SubmitResult(request=winner, outcome=SubmitOutcome.EXISTING)

        # Only the patient reference raced; it is now visible, so retry once
        return await self._submit(clinic_id, data)

    async def _submit(self, clinic_id: str, data: SurgeryRequestSubmit) -> SubmitResult:
        existing = await self._get_by_key(clinic_id, data.source_request_id)
        returned = SurgeryRequestStatus.RETURNED_TO_CLINIC.value
        if existing is not None and existing.status != returned:
            logger.info(
                "Duplicate submission returned existing request",
                extra={"request_id": existing.id},
            )
            return SubmitResult(request=existing, outcome=SubmitOutcome.EXISTING)

        if data.checklist is not None:
            await self._check_checklist(data.target_facility_id, data.checklist)

        patient_ref = await self._upsert_patient_ref(clinic_id, data.patient)
        surgeon_id = await self.resolve_surgeon(
            data.target_facility_id, data.surgeon_id, data.surgeon_username
        )
        command = SubmissionCommand(
            target_facility_id=FacilityId(data.target_facility_id),
            source_clinic_id=ClinicId(clinic_id),
            source_request_id=data.source_request_id,
            procedure_name=data.procedure_name,
            patient_ref_id=PatientRefId(patient_ref.id),
            submitted_at=data.submitted_at,
            surgeon_id=UserId(surgeon_id) if surgeon_id else None,
            scheduled_date=data.scheduled_date,
            scheduled_time=data.scheduled_time,
            payload_version=data.payload_version,
        )

        record = None
        if existing is not None:
            record = record_from_row(existing, await self._latest_submission_seq(existing.id))
        outcome = lifecycle.submit(record, command, SurgeryRequestId(new_id()), utc_now())
        if isinstance(outcome, LifecycleError):
            raise_lifecycle_error(outcome)
        if not outcome.changed:
            return SubmitResult(request=existing, outcome=outcome.outcome)

        row = existing
        if row is None:
            request = outcome.request
            row = SurgeryRequest(
                id=request.id,
                target_facility_id=request.target_facility_id,
                source_clinic_id=request.source_clinic_id,
                source_request_id=request.source_request_id,
                status=request.status.value,
                procedure_name=request.procedure_name,
                patient_ref_id=request.patient_ref_id,
                submitted_at=data.submitted_at,
                last_submitted_at=request.last_submitted_at,
            )
            self.session.add(row)

        audit_event = await self._write_transition(row, outcome)
        if data.checklist is not None:
            await self._write_checklist(
                row.id, audit_event.submission_id, clinic_id, data.checklist
            )
        await self.session.commit()

        await self.session.refresh(row)
        self._log_transition(row, outcome)
        return SubmitResult(request=row, outcome=outcome.outcome)

    async def withdraw(self, request_id: str, clinic_id: str) -> SurgeryRequest:
        """Withdraw a request on behalf of the clinic that submitted it."""
        row = await self._load_for_update(request_id, clinic_id=clinic_id)
        record = record_from_row(row, await self._latest_submission_seq(row.id))
        outcome = lifecycle.withdraw(record, ClinicId(clinic_id), utc_now())
        if isinstance(outcome, LifecycleError):
            raise_lifecycle_error(outcome)
        return await self._commit_transition(row, outcome)

    # ------------------------------------------------------------------
    # Facility operations
    # ------------------------------------------------------------------

    async def return_to_clinic(
        self,
        request_id: str,
        facility_id: str,
        user_id: str,
        data: SurgeryRequestReturn,
    ) -> SurgeryRequest:
        """Return a submitted request to the clinic with a reason."""
        row = await self._load_for_update(request_id, facility_id=facility_id)
        record = record_from_row(row, await self._latest_submission_seq(row.id))
        outcome = lifecycle.return_to_clinic(
            record, data.reason_code, UserId(user_id), utc_now(), note=data.note
        )
        if isinstance(outcome, LifecycleError):
            raise_lifecycle_error(outcome)
        return await self._commit_transition(row, outcome)

    async def accept(
        self,
        request_id: str,
        facility_id: str,
        user_id: str,
        data: SurgeryRequestAccept | None = None,
    ) -> SurgeryRequest:
        """Accept a submitted request."""
        row = await self._load_for_update(request_id, facility_id=facility_id)
        record = record_from_row(row, await self._latest_submission_seq(row.id))
        outcome = lifecycle.accept(
            record, UserId(user_id), utc_now(), note=data.note if data else None
        )
        if isinstance(outcome, LifecycleError):
            raise_lifecycle_error(outcome)
        return await self._commit_transition(row, outcome)

    async def reject(
        self,
        request_id: str,
        facility_id: str,
        user_id: str,
        data: SurgeryRequestReject,
    ) -> SurgeryRequest:
        """Reject a submitted request."""
        row = await self._load_for_update(request_id, facility_id=facility_id)
        record = record_from_row(row, await self._latest_submission_seq(row.id))
        outcome = lifecycle.reject(
            record, data.reason_code, UserId(user_id), utc_now(), note=data.note
        )
        if isinstance(outcome, LifecycleError):
            raise_lifecycle_error(outcome)
        return await self._commit_transition(row, outcome)

    async def convert(
        self,
        request_id: str,
        facility_id: str,
        user_id: str,
    ) -> ConvertResult:
        """Convert an accepted request into a scheduled case.

        Creates the case (REQUESTED, inactive), the conversion link, the
        status change and the CONVERTED audit event in one commit.

        Raises:
            SurgeryRequestNotFoundError: Request not in this facility
            InvalidTransitionError: Request is not ACCEPTED
            SurgeonNotMappedError: Request surgeon is not a facility surgeon
        """
        row = await self._load_for_update(request_id, facility_id=facility_id)
        record = record_from_row(row, await self._latest_submission_seq(row.id))
        surgeon_id = None
        if row.surgeon_id:
            surgeon_id = await self.resolve_surgeon(facility_id, surgeon_id=row.surgeon_id)

        outcome = lifecycle.convert(
            record,
            UserId(surgeon_id) if surgeon_id else None,
            UserId(user_id),
            utc_now(),
        )
        if isinstance(outcome, LifecycleError):
            raise_lifecycle_error(outcome)

        draft = outcome.conversion
        surgical_case = SurgicalCase(
            id=new_id(),
            facility_id=draft.facility_id,
            surgeon_id=draft.surgeon_id,
            procedure_name=draft.procedure_name,
            scheduled_date=draft.scheduled_date,
            scheduled_time=draft.scheduled_time,
            status=CaseStatus.REQUESTED.value,
            is_active=False,
        )
        self.session.add(surgical_case)
        await self.session.flush()
        self.session.add(
            SurgeryRequestConversion(
                request_id=draft.request_id,
                surgical_case_id=surgical_case.id,
                converted_by_user_id=draft.converted_by_user_id,
                converted_at=draft.converted_at,
            )
        )
        await self._commit_transition(row, outcome)
        await self.session.refresh(surgical_case)
        return ConvertResult(request=row, surgical_case=surgical_case)
