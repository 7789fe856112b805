"""Financial readiness service.

Records clinic declarations, facility verifications and overrides as
append-only rows, then recomputes the financial_readiness_cache row for
the request in the same transaction. The risk tier is advisory only and
never gates scheduling or conversion.
"""

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from asc_readiness.core.logging import audit_logger, get_logger
from asc_readiness.db.base import new_id
from asc_readiness.financial.risk import (
    AscFinancialState,
    ClinicFinancialState,
    FinancialReadiness,
    FinancialRiskState,
    FinancialSignal,
    OverrideState,
    resolve_financial_readiness,
)
from asc_readiness.models.financial import (
    AscFinancialVerification,
    ClinicFinancialDeclaration,
    FinancialOverride,
    FinancialReadinessCache,
)
from asc_readiness.models.surgery_request import SurgeryRequest
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
from asc_readiness.services.surgery_request import SurgeryRequestNotFoundError
from asc_readiness.utils.time import ensure_utc, utc_now

logger = get_logger(__name__)

SignalModel = (
    type[ClinicFinancialDeclaration]
    | type[AscFinancialVerification]
    | type[FinancialOverride]
)


class FinancialReadinessService:
    """Service for financial signal recording and risk projection."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _get_request(self, request_id: str, facility_id: str) -> SurgeryRequest:
        request = await self.session.scalar(
            select(SurgeryRequest).where(
                SurgeryRequest.id == request_id,
                SurgeryRequest.target_facility_id == facility_id,
            )
        )
        if request is None:
            raise SurgeryRequestNotFoundError(f"Surgery request {request_id} not found")
        return request

    async def _signals(self, model: SignalModel, request_id: str) -> list[Any]:
        # Ties on created_at resolve by id so the latest row is deterministic
        result = await self.session.execute(
            select(model)
            .where(model.surgery_request_id == request_id)
            .order_by(model.created_at, model.id)
        )
        return list(result.scalars().all())

    @staticmethod
    def _as_signals(rows: list[Any]) -> list[FinancialSignal]:
        return [
            FinancialSignal(id=row.id, state=row.state, created_at=ensure_utc(row.created_at))
            for row in rows
        ]

    async def compute(self, request_id: str) -> FinancialReadiness:
        """Resolve the current financial readiness of a request from its history."""
        return resolve_financial_readiness(
            self._as_signals(await self._signals(ClinicFinancialDeclaration, request_id)),
            self._as_signals(await self._signals(AscFinancialVerification, request_id)),
            self._as_signals(await self._signals(FinancialOverride, request_id)),
        )

    async def recompute_cache(self, request: SurgeryRequest) -> FinancialReadinessCache:
        """Upsert the cache row for a request from its latest signals.

        Does not commit; callers commit together with the signal write.
        """
        readiness = await self.compute(request.id)

        cache = await self.session.get(FinancialReadinessCache, request.id)
        if cache is None:
            cache = FinancialReadinessCache(
                surgery_request_id=request.id,
                target_facility_id=request.target_facility_id,
            )
            self.session.add(cache)

        cache.clinic_state = readiness.clinic_state.value
        cache.asc_state = readiness.asc_state.value
        cache.override_state = readiness.override_state.value
        cache.risk_state = readiness.risk_state.value
        cache.last_clinic_declaration_id = readiness.last_clinic_declaration_id
        cache.last_asc_verification_id = readiness.last_asc_verification_id
        cache.last_override_id = readiness.last_override_id
        cache.recomputed_at = utc_now()
        await self.session.flush()
        return cache

    async def _record(
        self,
        request: SurgeryRequest,
        signal: Any,
        action: str,
        user_id: str,
    ) -> FinancialReadinessCache:
        self.session.add(signal)
        await self.session.flush()
        cache = await self.recompute_cache(request)
        await self.session.commit()
        await self.session.refresh(cache)

        audit_logger.log(
            action=action,
            actor_type="staff",
            actor_id=user_id,
            entity_type="surgery_request",
            entity_id=request.id,
            metadata={"state": signal.state, "risk_state": cache.risk_state},
        )
        return cache

    async def record_clinic_declaration(
        self,
        request_id: str,
        facility_id: str,
        user_id: str,
        data: ClinicDeclarationCreate,
    ) -> FinancialReadinessCache:
        """Record what the clinic declared and recompute the cache.

        Args:
            request_id: Surgery request
            facility_id: Facility scope of the caller
            user_id: Staff user recording the declaration
            data: Declared state, reason codes and note

        Returns:
            The refreshed cache row

        Raises:
            SurgeryRequestNotFoundError: Request not in this facility
        """
        request = await self._get_request(request_id, facility_id)
        declaration = ClinicFinancialDeclaration(
            id=new_id(),
            surgery_request_id=request.id,
            state=data.state.value,
            reason_codes=[code.value for code in data.reason_codes],
            note=data.note,
            actor_clinic_id=request.source_clinic_id,
            recorded_by_user_id=user_id,
        )
        return await self._record(request, declaration, "financial_declaration_recorded", user_id)

    async def record_asc_verification(
        self,
        request_id: str,
        facility_id: str,
        user_id: str,
        data: AscVerificationCreate,
    ) -> FinancialReadinessCache:
        """Record the facility's own verification and recompute the cache."""
        request = await self._get_request(request_id, facility_id)
        verification = AscFinancialVerification(
            id=new_id(),
            surgery_request_id=request.id,
            state=data.state.value,
            reason_codes=[code.value for code in data.reason_codes],
            note=data.note,
            verified_by_user_id=user_id,
        )
        return await self._record(request, verification, "financial_verification_recorded", user_id)

    async def record_override(
        self,
        request_id: str,
        facility_id: str,
        user_id: str,
        data: FinancialOverrideCreate,
    ) -> FinancialReadinessCache:
        """Record an administrative override (or clear one) and recompute."""
        request = await self._get_request(request_id, facility_id)
        override = FinancialOverride(
            id=new_id(),
            surgery_request_id=request.id,
            state=data.state.value,
            reason_codes=[data.reason_code.value] if data.reason_code else [],
            note=data.note,
            overridden_by_user_id=user_id,
        )
        return await self._record(request, override, "financial_override_recorded", user_id)

    async def get_detail(self, request_id: str, facility_id: str) -> FinancialDetail:
        """Get cache plus full history of every source, oldest first."""
        request = await self._get_request(request_id, facility_id)
        cache = await self.session.get(FinancialReadinessCache, request.id)

        def read(rows: list[Any]) -> list[FinancialSignalRead]:
            return [FinancialSignalRead.model_validate(row) for row in rows]

        return FinancialDetail(
            surgery_request_id=request.id,
            cache=FinancialCacheRead.model_validate(cache) if cache else None,
            declarations=read(await self._signals(ClinicFinancialDeclaration, request.id)),
            verifications=read(await self._signals(AscFinancialVerification, request.id)),
            overrides=read(await self._signals(FinancialOverride, request.id)),
        )

    async def list_dashboard(
        self,
        facility_id: str,
        filters: FinancialDashboardFilter,
    ) -> FinancialDashboardPage:
        """List a facility's requests with their financial states.

        Requests without a cache row read as UNKNOWN/UNKNOWN/NONE and match
        a risk filter of UNKNOWN.
        """
        query = (
            select(SurgeryRequest, FinancialReadinessCache)
            .outerjoin(
                FinancialReadinessCache,
                FinancialReadinessCache.surgery_request_id == SurgeryRequest.id,
            )
            .where(SurgeryRequest.target_facility_id == facility_id)
        )

        if filters.risk_state == FinancialRiskState.UNKNOWN:
            query = query.where(
                or_(
                    FinancialReadinessCache.risk_state.is_(None),
                    FinancialReadinessCache.risk_state == FinancialRiskState.UNKNOWN.value,
                )
            )
        elif filters.risk_state is not None:
            query = query.where(FinancialReadinessCache.risk_state == filters.risk_state.value)
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
            query.order_by(
                SurgeryRequest.scheduled_date.asc().nulls_last(),
                SurgeryRequest.last_submitted_at.desc(),
            )
            .offset(filters.offset)
            .limit(filters.limit)
        )

        rows = []
        for request, cache in result.all():
            rows.append(
                FinancialDashboardRow(
                    surgery_request_id=request.id,
                    source_clinic_id=request.source_clinic_id,
                    procedure_name=request.procedure_name,
                    surgeon_id=request.surgeon_id,
                    scheduled_date=request.scheduled_date,
                    status=request.status,
                    clinic_state=cache.clinic_state if cache else ClinicFinancialState.UNKNOWN,
                    asc_state=cache.asc_state if cache else AscFinancialState.UNKNOWN,
                    override_state=cache.override_state if cache else OverrideState.NONE,
                    risk_state=cache.risk_state if cache else FinancialRiskState.UNKNOWN,
                    recomputed_at=cache.recomputed_at if cache else None,
                )
            )
        return FinancialDashboardPage(rows=rows, total=total or 0)
