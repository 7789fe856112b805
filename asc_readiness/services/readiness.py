"""Case readiness service.

Assembles a facility/day snapshot from the database, runs the pure batch
evaluator over it, and maintains the case_readiness_cache projection.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from asc_readiness.core.config import settings
from asc_readiness.core.logging import audit_logger, get_logger
from asc_readiness.domain.ids import (
    AttestationId,
    CaseId,
    CatalogItemId,
    FacilityId,
    InventoryItemId,
    LocationId,
    UserId,
)
from asc_readiness.domain.types import (
    Attestation,
    AttestationType,
    AvailabilityStatus,
    CaseForReadiness,
    CaseRequirement,
    CaseStatus,
    CatalogItem,
    InventoryUnit,
    ItemCategory,
    ReadinessState,
    SterilityStatus,
    SurgeonRef,
)
from asc_readiness.models.facility_user import FacilityUser
from asc_readiness.models.inventory import InventoryItem, ItemCatalogEntry
from asc_readiness.models.surgical_case import (
    CaseAttestation,
    CaseItemRequirement,
    CaseReadinessCache,
    SurgicalCase,
)
from asc_readiness.readiness.evaluator import (
    DaySummary,
    ReadinessResult,
    evaluate_batch_readiness,
    summarize_readiness,
)
from asc_readiness.utils.time import (
    ensure_utc,
    format_datetime,
    start_of_day_utc,
    utc_now,
)

logger = get_logger(__name__)

# Cases in these states no longer need their items
INACTIVE_CASE_STATUSES = (CaseStatus.CANCELLED.value, CaseStatus.COMPLETED.value)

SNAPSHOT_AVAILABILITY = (
    AvailabilityStatus.AVAILABLE.value,
    AvailabilityStatus.RESERVED.value,
)

T = TypeVar("T")


def _optional_utc(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


def case_from_row(row: SurgicalCase) -> CaseForReadiness:
    return CaseForReadiness(
        id=CaseId(row.id),
        facility_id=FacilityId(row.facility_id),
        scheduled_date=row.scheduled_date,
        procedure_name=row.procedure_name,
        surgeon_id=UserId(row.surgeon_id),
    )


def requirement_from_row(row: CaseItemRequirement) -> CaseRequirement:
    return CaseRequirement(
        case_id=CaseId(row.case_id),
        catalog_id=CatalogItemId(row.catalog_id),
        quantity=row.quantity,
        is_surgeon_override=row.is_surgeon_override,
    )


def catalog_item_from_row(row: ItemCatalogEntry) -> CatalogItem:
    return CatalogItem(
        id=CatalogItemId(row.id),
        name=row.name,
        category=ItemCategory(row.category),
        requires_sterility=row.requires_sterility,
        is_loaner=row.is_loaner,
        active=row.active,
    )


def inventory_unit_from_row(row: InventoryItem) -> InventoryUnit:
    return InventoryUnit(
        id=InventoryItemId(row.id),
        catalog_id=CatalogItemId(row.catalog_id),
        sterility_status=SterilityStatus(row.sterility_status),
        availability_status=AvailabilityStatus(row.availability_status),
        location_id=LocationId(row.location_id) if row.location_id else None,
        sterility_expires_at=_optional_utc(row.sterility_expires_at),
        reserved_for_case_id=(
            CaseId(row.reserved_for_case_id) if row.reserved_for_case_id else None
        ),
        last_verified_at=_optional_utc(row.last_verified_at),
        last_verified_by_user_id=(
            UserId(row.last_verified_by_user_id)
            if row.last_verified_by_user_id
            else None
        ),
    )


def attestation_from_row(row: CaseAttestation) -> Attestation:
    return Attestation(
        id=AttestationId(row.id),
        case_id=CaseId(row.case_id),
        type=AttestationType(row.type),
        attested_by_user_id=UserId(row.attested_by_user_id),
        created_at=ensure_utc(row.created_at),
    )


def readable_rows(
    rows: Iterable[Any],
    convert: Callable[[Any], T],
    kind: str,
    facility_id: str,
) -> list[T]:
    """Convert stored rows, leaving out (and logging) any that fail validation.

    One malformed row must not abort the snapshot for the whole facility day.
    """
    converted: list[T] = []
    for row in rows:
        try:
            converted.append(convert(row))
        except ValueError as exc:
            extra = {"facility_id": facility_id}
            case_id = row.id if isinstance(row, SurgicalCase) else getattr(row, "case_id", None)
            if case_id:
                extra["case_id"] = case_id
            logger.warning(f"Skipping unreadable {kind} row {row.id}: {exc}", extra=extra)
    return converted


@dataclass
class ReadinessSnapshot:
    """Everything the batch evaluator reads for one facility and day."""

    facility_id: str
    day: date
    cases: list[CaseForReadiness]
    requirements_by_case: dict[CaseId, list[CaseRequirement]]
    catalog: dict[CatalogItemId, CatalogItem]
    inventory: list[InventoryUnit]
    attestations_by_case: dict[CaseId, list[Attestation]]
    surgeons: dict[UserId, SurgeonRef] = field(default_factory=dict)

    @property
    def cutoff(self) -> datetime:
        """Sterility must hold through the start of the case day (UTC)."""
        return start_of_day_utc(self.day)


class ReadinessService:
    """Service for computing and caching case readiness."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _get_cases_for_date(
        self, facility_id: str, day: date
    ) -> list[SurgicalCase]:
        result = await self.session.execute(
            select(SurgicalCase)
            .where(
                SurgicalCase.facility_id == facility_id,
                SurgicalCase.scheduled_date == day,
                SurgicalCase.status.not_in(INACTIVE_CASE_STATUSES),
            )
            .order_by(
                SurgicalCase.scheduled_time.asc().nulls_last(),
                SurgicalCase.created_at,
            )
        )
        return list(result.scalars().all())

    async def _get_requirements(
        self, case_ids: list[str], facility_id: str
    ) -> tuple[dict[CaseId, list[CaseRequirement]], set[CaseId]]:
        """Load requirements by case.

        Returns:
            Requirements by case, and the cases with an unreadable
            requirement; those cannot be evaluated honestly
        """
        by_case: dict[CaseId, list[CaseRequirement]] = defaultdict(list)
        if not case_ids:
            return {}, set()
        result = await self.session.execute(
            select(CaseItemRequirement)
            .where(CaseItemRequirement.case_id.in_(case_ids))
            .order_by(CaseItemRequirement.created_at)
        )
        rows = list(result.scalars().all())
        for requirement in readable_rows(rows, requirement_from_row, "requirement", facility_id):
            by_case[requirement.case_id].append(requirement)

        stored: dict[CaseId, int] = defaultdict(int)
        for row in rows:
            stored[CaseId(row.case_id)] += 1
        unreadable = {
            case_id for case_id, count in stored.items() if len(by_case.get(case_id, ())) != count
        }
        return dict(by_case), unreadable

    async def _get_catalog(self, facility_id: str) -> dict[CatalogItemId, CatalogItem]:
        result = await self.session.execute(
            select(ItemCatalogEntry).where(
                ItemCatalogEntry.facility_id == facility_id,
                ItemCatalogEntry.active.is_(True),
            )
        )
        items = readable_rows(
            result.scalars().all(), catalog_item_from_row, "catalog", facility_id
        )
        return {item.id: item for item in items}

    async def _get_inventory(self, facility_id: str) -> list[InventoryUnit]:
        result = await self.session.execute(
            select(InventoryItem)
            .where(
                InventoryItem.facility_id == facility_id,
                InventoryItem.availability_status.in_(SNAPSHOT_AVAILABILITY),
            )
            .order_by(InventoryItem.created_at)
        )
        return readable_rows(
            result.scalars().all(), inventory_unit_from_row, "inventory", facility_id
        )

    async def _get_attestations(
        self, case_ids: list[str], facility_id: str
    ) -> dict[CaseId, list[Attestation]]:
        by_case: dict[CaseId, list[Attestation]] = defaultdict(list)
        if not case_ids:
            return {}
        result = await self.session.execute(
            select(CaseAttestation)
            .where(
                CaseAttestation.case_id.in_(case_ids),
                CaseAttestation.voided_at.is_(None),
            )
            .order_by(CaseAttestation.created_at)
        )
        attestations = readable_rows(
            result.scalars().all(), attestation_from_row, "attestation", facility_id
        )
        for attestation in attestations:
            by_case[attestation.case_id].append(attestation)
        return dict(by_case)

    async def _get_surgeons(self, facility_id: str) -> dict[UserId, SurgeonRef]:
        result = await self.session.execute(
            select(FacilityUser).where(
                FacilityUser.facility_id == facility_id,
                FacilityUser.active.is_(True),
            )
        )
        return {
            UserId(user.id): SurgeonRef(id=UserId(user.id), name=user.name)
            for user in result.scalars().all()
            if user.is_surgeon
        }

    async def load_snapshot(self, facility_id: str, day: date) -> ReadinessSnapshot:
        """Load the point-in-time snapshot for a facility's cases on ``day``.

        Rows that fail validation are logged and left out. A case with an
        unreadable requirement is left out entirely.
        """
        case_rows = await self._get_cases_for_date(facility_id, day)
        cases = readable_rows(case_rows, case_from_row, "case", facility_id)
        case_ids = [case.id for case in cases]
        requirements_by_case, unreadable = await self._get_requirements(case_ids, facility_id)
        return ReadinessSnapshot(
            facility_id=facility_id,
            day=day,
            cases=[case for case in cases if case.id not in unreadable],
            requirements_by_case=requirements_by_case,
            catalog=await self._get_catalog(facility_id),
            inventory=await self._get_inventory(facility_id),
            attestations_by_case=await self._get_attestations(case_ids, facility_id),
            surgeons=await self._get_surgeons(facility_id),
        )

    async def compute_day_before_readiness(
        self, facility_id: str, day: date
    ) -> tuple[ReadinessSnapshot, list[ReadinessResult]]:
        """Evaluate every active case of the day without touching the cache."""
        snapshot = await self.load_snapshot(facility_id, day)
        results = evaluate_batch_readiness(
            cases=snapshot.cases,
            requirements_by_case=snapshot.requirements_by_case,
            catalog=snapshot.catalog,
            inventory=snapshot.inventory,
            attestations_by_case=snapshot.attestations_by_case,
            surgeons=snapshot.surgeons,
            cutoff=snapshot.cutoff,
        )
        return snapshot, results

    async def refresh_cache(self, facility_id: str, day: date) -> list[ReadinessResult]:
        """Recompute readiness for the day and replace the cached rows.

        Args:
            facility_id: Facility to refresh
            day: Scheduled date of the cases

        Returns:
            The fresh evaluation results
        """
        snapshot, results = await self.compute_day_before_readiness(facility_id, day)
        cases_by_id = {case.id: case for case in snapshot.cases}
        computed_at = utc_now()

        if results:
            await self.session.execute(
                delete(CaseReadinessCache).where(
                    CaseReadinessCache.case_id.in_([r.case_id for r in results])
                )
            )

        for result in results:
            case = cases_by_id[result.case_id]
            self.session.add(
                CaseReadinessCache(
                    case_id=result.case_id,
                    facility_id=facility_id,
                    scheduled_date=day,
                    procedure_name=case.procedure_name,
                    surgeon_name=result.surgeon_name or "Unknown",
                    readiness_state=result.state.value,
                    missing_items=[s.to_dict() for s in result.shortages],
                    total_required_items=result.total_required,
                    total_verified_items=result.total_verified,
                    has_attestation=result.has_attestation,
                    attestation_id=result.attestation_id,
                    attested_at=result.attested_at,
                    attested_by_user_id=result.attested_by_user_id,
                    has_surgeon_acknowledgment=result.has_surgeon_acknowledgment,
                    surgeon_acknowledgment_id=result.surgeon_acknowledgment_id,
                    surgeon_acknowledged_at=result.surgeon_acknowledged_at,
                    computed_at=computed_at,
                )
            )

        await self.session.commit()

        skipped = len(snapshot.cases) - len(results)
        audit_logger.log(
            action="readiness_cache_refreshed",
            actor_type="system",
            actor_id="system",
            entity_type="facility",
            entity_id=facility_id,
            metadata={
                "date": day.isoformat(),
                "computed_at": format_datetime(computed_at),
                "cases": len(results),
                "skipped": skipped,
                "red": sum(1 for r in results if r.state == ReadinessState.RED),
            },
        )
        return results

    async def _read_cache(self, facility_id: str, day: date) -> list[CaseReadinessCache]:
        result = await self.session.execute(
            select(CaseReadinessCache)
            .where(
                CaseReadinessCache.facility_id == facility_id,
                CaseReadinessCache.scheduled_date == day,
            )
            # RED, ORANGE, GREEN
            .order_by(
                CaseReadinessCache.readiness_state.desc(),
                CaseReadinessCache.procedure_name,
            )
        )
        return list(result.scalars().all())

    async def get_day_before_readiness(
        self,
        facility_id: str,
        day: date,
        force_refresh: bool = False,
    ) -> list[CaseReadinessCache]:
        """Get cached readiness for the day, worst state first.

        Args:
            facility_id: Facility to read
            day: Scheduled date
            force_refresh: Recompute before reading

        Returns:
            Cache rows ordered RED, ORANGE, GREEN then by procedure name
        """
        if force_refresh:
            await self.refresh_cache(facility_id, day)
            return await self._read_cache(facility_id, day)

        rows = await self._read_cache(facility_id, day)
        if not rows and settings.readiness_compute_on_miss:
            logger.info(
                "Readiness cache empty, computing",
                extra={"facility_id": facility_id},
            )
            await self.refresh_cache(facility_id, day)
            rows = await self._read_cache(facility_id, day)
        return rows

    async def compute_case_readiness(
        self, case_id: str, facility_id: str
    ) -> ReadinessResult | None:
        """Evaluate one case on demand without touching the cache.

        Returns:
            The result, or None if the case is not in this facility or its
            surgeon cannot be resolved or its rows are unreadable
        """
        case_row = await self.session.scalar(
            select(SurgicalCase).where(
                SurgicalCase.id == case_id,
                SurgicalCase.facility_id == facility_id,
            )
        )
        if case_row is None or case_row.scheduled_date is None:
            return None

        readable = readable_rows([case_row], case_from_row, "case", facility_id)
        if not readable:
            return None
        case = readable[0]
        requirements_by_case, unreadable = await self._get_requirements(
            [case_row.id], facility_id
        )
        if unreadable:
            return None
        results = evaluate_batch_readiness(
            cases=[case],
            requirements_by_case=requirements_by_case,
            catalog=await self._get_catalog(facility_id),
            inventory=await self._get_inventory(facility_id),
            attestations_by_case=await self._get_attestations([case_row.id], facility_id),
            surgeons=await self._get_surgeons(facility_id),
            cutoff=start_of_day_utc(case.scheduled_date),
        )
        return results[0] if results else None

    async def get_day_summary(
        self, facility_id: str, start_date: date, end_date: date
    ) -> list[DaySummary]:
        """Count readiness states per day over an inclusive date range.

        Active cases without a cache row count as ORANGE.
        """
        result = await self.session.execute(
            select(
                SurgicalCase.scheduled_date,
                SurgicalCase.id,
                CaseReadinessCache.readiness_state,
            )
            .outerjoin(CaseReadinessCache, CaseReadinessCache.case_id == SurgicalCase.id)
            .where(
                SurgicalCase.facility_id == facility_id,
                SurgicalCase.scheduled_date >= start_date,
                SurgicalCase.scheduled_date <= end_date,
                SurgicalCase.status.not_in(INACTIVE_CASE_STATUSES),
            )
        )
        return summarize_readiness(
            (
                day,
                CaseId(case_id),
                ReadinessState(state) if state else ReadinessState.ORANGE,
            )
            for day, case_id, state in result.all()
        )
