"""Tests for the case readiness service (snapshot loading and cache)."""

import logging
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from asc_readiness.core.config import settings
from asc_readiness.domain.types import (
    AttestationType,
    AvailabilityStatus,
    CaseStatus,
    ItemCategory,
    ReadinessState,
    ShortageReason,
    SterilityStatus,
)
from asc_readiness.models import (
    CaseAttestation,
    CaseItemRequirement,
    CaseReadinessCache,
    FacilityUser,
    InventoryItem,
    ItemCatalogEntry,
    SurgicalCase,
)
from asc_readiness.schemas.readiness import CaseReadinessRead, DaySummaryRead
from asc_readiness.services.readiness import ReadinessService

DAY = date(2024, 10, 2)
VERIFIED_AT = datetime(2024, 10, 1, 15, 0, tzinfo=timezone.utc)


class ReadinessFixture:
    """Small builder for facility inventory and cases."""

    def __init__(self, session: AsyncSession, facility_id: str) -> None:
        self.session = session
        self.facility_id = facility_id

    def catalog(self, name: str, requires_sterility: bool = True) -> ItemCatalogEntry:
        entry = ItemCatalogEntry(
            id=str(uuid4()),
            facility_id=self.facility_id,
            name=name,
            category=ItemCategory.IMPLANT.value,
            requires_sterility=requires_sterility,
            is_loaner=False,
            active=True,
        )
        self.session.add(entry)
        return entry

    def unit(
        self,
        catalog: ItemCatalogEntry,
        verified: bool = True,
        availability: AvailabilityStatus = AvailabilityStatus.AVAILABLE,
        reserved_for: str | None = None,
        expires_at: datetime | None = None,
    ) -> InventoryItem:
        item = InventoryItem(
            id=str(uuid4()),
            facility_id=self.facility_id,
            catalog_id=catalog.id,
            location_id=str(uuid4()),
            sterility_status=SterilityStatus.STERILE.value,
            sterility_expires_at=expires_at,
            availability_status=availability.value,
            reserved_for_case_id=reserved_for,
            last_verified_at=VERIFIED_AT if verified else None,
        )
        self.session.add(item)
        return item

    def case(
        self,
        surgeon_id: str,
        procedure_name: str,
        day: date = DAY,
        status: CaseStatus = CaseStatus.SCHEDULED,
        scheduled_time: str | None = "08:00",
    ) -> SurgicalCase:
        case = SurgicalCase(
            id=str(uuid4()),
            facility_id=self.facility_id,
            surgeon_id=surgeon_id,
            procedure_name=procedure_name,
            scheduled_date=day,
            scheduled_time=scheduled_time,
            status=status.value,
            is_active=True,
        )
        self.session.add(case)
        return case

    def require(self, case: SurgicalCase, catalog: ItemCatalogEntry, quantity: int = 1) -> None:
        self.session.add(
            CaseItemRequirement(
                id=str(uuid4()),
                case_id=case.id,
                catalog_id=catalog.id,
                quantity=quantity,
                is_surgeon_override=False,
            )
        )

    def attest(
        self,
        case: SurgicalCase,
        user_id: str,
        kind: AttestationType = AttestationType.CASE_READINESS,
        voided: bool = False,
    ) -> CaseAttestation:
        attestation = CaseAttestation(
            id=str(uuid4()),
            facility_id=self.facility_id,
            case_id=case.id,
            type=kind.value,
            attested_by_user_id=user_id,
            voided_at=VERIFIED_AT if voided else None,
            voided_by_user_id=user_id if voided else None,
        )
        self.session.add(attestation)
        return attestation


@pytest.fixture
def build(async_session: AsyncSession, facility_id: str) -> ReadinessFixture:
    return ReadinessFixture(async_session, facility_id)


async def _cache_count(session: AsyncSession) -> int:
    return await session.scalar(select(func.count()).select_from(CaseReadinessCache))


class TestRefreshCache:
    """Tests for computing and caching day-before readiness."""

    async def test_states_cached_worst_first(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        build: ReadinessFixture,
    ) -> None:
        """Each active case gets one cache row, read back RED, ORANGE, GREEN."""
        knee = build.catalog("Knee Implant")
        screws = build.catalog("Bone Screw Set")
        scope = build.catalog("Arthroscope", requires_sterility=False)
        build.unit(knee)
        build.unit(screws)
        build.unit(scope, verified=False)

        green = build.case(surgeon.id, "Knee Arthroplasty")
        red = build.case(surgeon.id, "Hip Revision")
        orange = build.case(surgeon.id, "Shoulder Arthroscopy")
        build.require(green, knee)
        build.require(red, screws, quantity=2)
        build.require(orange, scope)
        await async_session.commit()

        service = ReadinessService(async_session)
        results = await service.refresh_cache(facility_id, DAY)
        rows = await service.get_day_before_readiness(facility_id, DAY)

        assert len(results) == 3
        assert [row.case_id for row in rows] == [red.id, orange.id, green.id]
        assert [row.readiness_state for row in rows] == ["RED", "ORANGE", "GREEN"]

        red_row = rows[0]
        assert red_row.surgeon_name == "Dr. Meredith Grey"
        assert red_row.total_required_items == 2
        assert red_row.missing_items == [
            {
                "catalog_id": screws.id,
                "catalog_name": "Bone Screw Set",
                "required_quantity": 2,
                "available_quantity": 1,
                "reason": ShortageReason.INSUFFICIENT_QUANTITY.value,
            }
        ]

        read = CaseReadinessRead.model_validate(red_row)
        assert read.readiness_state == ReadinessState.RED
        assert read.missing_items[0].reason == ShortageReason.INSUFFICIENT_QUANTITY

    async def test_inactive_and_foreign_cases_excluded(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        build: ReadinessFixture,
    ) -> None:
        """Cancelled, completed, other-day and other-facility cases are skipped."""
        kept = build.case(surgeon.id, "Carpal Tunnel Release")
        build.case(surgeon.id, "Cancelled Case", status=CaseStatus.CANCELLED)
        build.case(surgeon.id, "Completed Case", status=CaseStatus.COMPLETED)
        build.case(surgeon.id, "Next Day Case", day=DAY + timedelta(days=1))
        other = ReadinessFixture(async_session, str(uuid4()))
        other.case(surgeon.id, "Other Facility Case")
        await async_session.commit()

        results = await ReadinessService(async_session).refresh_cache(facility_id, DAY)

        assert [r.case_id for r in results] == [kept.id]

    async def test_case_without_surgeon_role_skipped(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        staff_user: FacilityUser,
        build: ReadinessFixture,
    ) -> None:
        """A case whose surgeon does not resolve is left out of the batch."""
        good = build.case(surgeon.id, "Bunionectomy")
        build.case(staff_user.id, "Orphaned Case")
        await async_session.commit()

        results = await ReadinessService(async_session).refresh_cache(facility_id, DAY)

        assert [r.case_id for r in results] == [good.id]
        assert await _cache_count(async_session) == 1

    async def test_unreadable_rows_do_not_abort_the_day(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        build: ReadinessFixture,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A blank procedure or unknown category is logged and left out."""
        knee = build.catalog("Knee Implant")
        build.unit(knee)
        good = build.case(surgeon.id, "Knee")
        build.require(good, knee)
        blank = build.case(surgeon.id, "   ")
        odd = build.catalog("Mystery Tray")
        odd.category = "NOT_A_CATEGORY"
        await async_session.commit()

        with caplog.at_level(logging.WARNING, logger="asc_readiness.services.readiness"):
            results = await ReadinessService(async_session).refresh_cache(facility_id, DAY)

        assert [r.case_id for r in results] == [good.id]
        assert results[0].state == ReadinessState.GREEN
        assert await _cache_count(async_session) == 1

        skipped_case = [r for r in caplog.records if getattr(r, "case_id", None) == blank.id]
        assert len(skipped_case) == 1
        assert skipped_case[0].facility_id == facility_id
        assert any(odd.id in r.getMessage() for r in caplog.records)

    async def test_unreadable_case_not_computed_on_demand(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        build: ReadinessFixture,
    ) -> None:
        blank = build.case(surgeon.id, "")
        await async_session.commit()

        service = ReadinessService(async_session)

        assert await service.compute_case_readiness(blank.id, facility_id) is None

    async def test_expired_sterility_before_case_day(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        build: ReadinessFixture,
    ) -> None:
        """Sterility expiring before the case day makes the case RED."""
        tray = build.catalog("Spine Tray")
        build.unit(tray, expires_at=datetime(2024, 10, 1, 23, 0, tzinfo=timezone.utc))
        case = build.case(surgeon.id, "Lumbar Fusion")
        build.require(case, tray)
        await async_session.commit()

        [result] = await ReadinessService(async_session).refresh_cache(facility_id, DAY)

        assert result.state == ReadinessState.RED
        assert result.shortages[0].reason == ShortageReason.STERILITY_EXPIRED

    async def test_reservation_for_other_case_not_usable(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        build: ReadinessFixture,
    ) -> None:
        """A unit reserved for one case does not satisfy another."""
        implant = build.catalog("Custom Implant")
        owner = build.case(surgeon.id, "Case With Reservation")
        other = build.case(surgeon.id, "Case Without Reservation")
        build.unit(
            implant,
            availability=AvailabilityStatus.RESERVED,
            reserved_for=owner.id,
        )
        build.require(owner, implant)
        build.require(other, implant)
        await async_session.commit()

        results = await ReadinessService(async_session).refresh_cache(facility_id, DAY)
        states = {r.case_id: r.state for r in results}

        assert states[owner.id] == ReadinessState.GREEN
        assert states[other.id] == ReadinessState.RED

    async def test_attestations_cached_but_voided_ignored(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        staff_user: FacilityUser,
        build: ReadinessFixture,
    ) -> None:
        """Active attestations are reported; voided ones are not."""
        case = build.case(surgeon.id, "Cataract Extraction")
        attestation = build.attest(case, staff_user.id)
        build.attest(
            case,
            surgeon.id,
            kind=AttestationType.SURGEON_ACKNOWLEDGMENT,
            voided=True,
        )
        await async_session.commit()

        service = ReadinessService(async_session)
        await service.refresh_cache(facility_id, DAY)
        [row] = await service.get_day_before_readiness(facility_id, DAY)

        assert row.has_attestation is True
        assert row.attestation_id == attestation.id
        assert row.attested_by_user_id == staff_user.id
        assert row.has_surgeon_acknowledgment is False
        assert row.surgeon_acknowledgment_id is None

    async def test_force_refresh_replaces_rows(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        build: ReadinessFixture,
    ) -> None:
        """Refreshing after an inventory change overwrites the cache row."""
        plate = build.catalog("Locking Plate")
        case = build.case(surgeon.id, "ORIF Wrist")
        build.require(case, plate)
        await async_session.commit()

        service = ReadinessService(async_session)
        [before] = await service.get_day_before_readiness(facility_id, DAY)
        assert before.readiness_state == ReadinessState.RED.value

        build.unit(plate)
        await async_session.commit()
        [after] = await service.get_day_before_readiness(
            facility_id, DAY, force_refresh=True
        )

        assert after.readiness_state == ReadinessState.GREEN.value
        assert await _cache_count(async_session) == 1


class TestCacheMiss:
    """Tests for reading an empty cache."""

    async def test_compute_on_miss(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        build: ReadinessFixture,
    ) -> None:
        build.case(surgeon.id, "Tonsillectomy")
        await async_session.commit()

        rows = await ReadinessService(async_session).get_day_before_readiness(
            facility_id, DAY
        )

        assert len(rows) == 1

    async def test_no_compute_when_disabled(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        build: ReadinessFixture,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(settings, "readiness_compute_on_miss", False)
        build.case(surgeon.id, "Tonsillectomy")
        await async_session.commit()

        rows = await ReadinessService(async_session).get_day_before_readiness(
            facility_id, DAY
        )

        assert rows == []
        assert await _cache_count(async_session) == 0


class TestSingleCaseAndSummary:
    """Tests for on-demand evaluation and calendar summaries."""

    async def test_compute_case_readiness(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        build: ReadinessFixture,
    ) -> None:
        """A single case is evaluated without writing the cache."""
        guide = build.catalog("Drill Guide")
        build.unit(guide, verified=False)
        case = build.case(surgeon.id, "ACL Reconstruction")
        build.require(case, guide)
        await async_session.commit()

        service = ReadinessService(async_session)
        result = await service.compute_case_readiness(case.id, facility_id)

        assert result.state == ReadinessState.ORANGE
        assert result.surgeon_name == "Dr. Meredith Grey"
        assert await _cache_count(async_session) == 0
        assert await service.compute_case_readiness(case.id, str(uuid4())) is None

    async def test_day_summary_counts_uncached_as_orange(
        self,
        async_session: AsyncSession,
        facility_id: str,
        surgeon: FacilityUser,
        build: ReadinessFixture,
    ) -> None:
        """Cached states are counted; cases not yet cached count as ORANGE."""
        missing = build.catalog("Missing Item")
        red = build.case(surgeon.id, "Red Case")
        build.require(red, missing)
        build.case(surgeon.id, "Green Case")
        tomorrow = build.case(surgeon.id, "Tomorrow Case", day=DAY + timedelta(days=1))
        build.case(surgeon.id, "Cancelled", status=CaseStatus.CANCELLED)
        await async_session.commit()

        service = ReadinessService(async_session)
        await service.refresh_cache(facility_id, DAY)
        summaries = await service.get_day_summary(
            facility_id, DAY, DAY + timedelta(days=2)
        )

        assert [s.day for s in summaries] == [DAY, DAY + timedelta(days=1)]
        today, next_day = summaries
        assert (today.case_count, today.green, today.orange, today.red) == (2, 1, 0, 1)
        assert (next_day.case_count, next_day.orange) == (1, 1)
        assert next_day.case_ids == [tomorrow.id]
        assert DaySummaryRead.model_validate(today).red == 1
