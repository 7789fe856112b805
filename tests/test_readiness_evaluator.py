"""Tests for the case readiness evaluator.

Covers:
- Unit suitability checks (availability, location, sterility)
- GREEN / ORANGE / RED state derivation
- Shortage reason attribution order
- Attestation reporting
"""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest

from asc_readiness.domain.types import (
    Attestation,
    AttestationType,
    AvailabilityStatus,
    CaseForReadiness,
    CaseRequirement,
    CatalogItem,
    InventoryUnit,
    ItemCategory,
    ReadinessState,
    ShortageReason,
    SterilityStatus,
    UNKNOWN_ITEM_NAME,
)
from asc_readiness.readiness.evaluator import (
    determine_shortage_reason,
    evaluate_case_readiness,
    index_inventory,
    is_available_for_case,
    is_sterile,
    is_suitable,
)

CUTOFF = datetime(2024, 10, 1, tzinfo=timezone.utc)
VERIFIED_AT = datetime(2024, 9, 30, 8, 0, tzinfo=timezone.utc)


def _id() -> str:
    return str(uuid4())


def make_case(case_id: str | None = None) -> CaseForReadiness:
    return CaseForReadiness(
        id=case_id or _id(),
        facility_id=_id(),
        scheduled_date=date(2024, 10, 1),
        procedure_name="Total Knee Arthroplasty",
        surgeon_id=_id(),
    )


def make_item(requires_sterility: bool = True, name: str = "Knee Implant") -> CatalogItem:
    return CatalogItem(
        id=_id(),
        name=name,
        category=ItemCategory.IMPLANT,
        requires_sterility=requires_sterility,
    )


def make_unit(
    catalog_id: str,
    *,
    sterility: SterilityStatus = SterilityStatus.STERILE,
    availability: AvailabilityStatus = AvailabilityStatus.AVAILABLE,
    location: bool = True,
    expires_at: datetime | None = None,
    reserved_for: str | None = None,
    verified: bool = True,
) -> InventoryUnit:
    return InventoryUnit(
        id=_id(),
        catalog_id=catalog_id,
        sterility_status=sterility,
        availability_status=availability,
        location_id=_id() if location else None,
        sterility_expires_at=expires_at,
        reserved_for_case_id=reserved_for,
        last_verified_at=VERIFIED_AT if verified else None,
    )


def evaluate(case, requirements, items, inventory, attestations=()):
    return evaluate_case_readiness(
        case,
        requirements,
        {item.id: item for item in items},
        inventory,
        attestations,
        CUTOFF,
    )


class TestUnitChecks:
    """Tests for single-unit suitability predicates."""

    def test_sterile_without_expiry_passes(self) -> None:
        """A sterile unit with no expiry date counts as sterile."""
        unit = make_unit(_id())
        assert is_sterile(unit, CUTOFF) is True

    def test_expiry_on_cutoff_passes(self) -> None:
        """Expiry exactly at the cutoff is still valid."""
        unit = make_unit(_id(), expires_at=CUTOFF)
        assert is_sterile(unit, CUTOFF) is True

    def test_expiry_before_cutoff_fails(self) -> None:
        """Expiry before the cutoff fails sterility."""
        unit = make_unit(_id(), expires_at=CUTOFF - timedelta(seconds=1))
        assert is_sterile(unit, CUTOFF) is False

    def test_non_sterile_status_fails(self) -> None:
        """Only STERILE status passes."""
        for status in (SterilityStatus.NON_STERILE, SterilityStatus.UNKNOWN):
            assert is_sterile(make_unit(_id(), sterility=status), CUTOFF) is False

    def test_reserved_for_this_case_is_available(self) -> None:
        """A unit reserved for this case is available to it."""
        case_id = _id()
        unit = make_unit(
            _id(), availability=AvailabilityStatus.RESERVED, reserved_for=case_id
        )
        assert is_available_for_case(unit, case_id) is True

    def test_reserved_for_other_case_is_unavailable(self) -> None:
        """A unit reserved for another case is not available."""
        unit = make_unit(
            _id(), availability=AvailabilityStatus.RESERVED, reserved_for=_id()
        )
        assert is_available_for_case(unit, _id()) is False

    def test_in_use_is_unavailable(self) -> None:
        """IN_USE units are never available."""
        unit = make_unit(_id(), availability=AvailabilityStatus.IN_USE)
        assert is_available_for_case(unit, _id()) is False

    def test_sterility_ignored_when_not_required(self) -> None:
        """Non-sterile units qualify for items that do not require sterility."""
        item = make_item(requires_sterility=False)
        unit = make_unit(item.id, sterility=SterilityStatus.NON_STERILE)
        assert is_suitable(unit, _id(), item, CUTOFF) is True

    def test_unlocated_unit_is_unsuitable(self) -> None:
        """A unit without a known location cannot be used."""
        item = make_item()
        unit = make_unit(item.id, location=False)
        assert is_suitable(unit, _id(), item, CUTOFF) is False

    def test_index_inventory_groups_by_catalog(self) -> None:
        """Units are partitioned by catalog id in input order."""
        a, b = _id(), _id()
        units = [make_unit(a), make_unit(b), make_unit(a)]
        index = index_inventory(units)
        assert [u.id for u in index[a]] == [units[0].id, units[2].id]
        assert [u.id for u in index[b]] == [units[1].id]


class TestReadinessState:
    """Tests for GREEN / ORANGE / RED derivation."""

    def test_no_requirements_is_green(self) -> None:
        """A case with nothing required is trivially ready."""
        result = evaluate(make_case(), [], [], [])
        assert result.state == ReadinessState.GREEN
        assert result.total_required == 0
        assert result.total_verified == 0
        assert result.shortages == []

    def test_all_verified_is_green(self) -> None:
        """Enough suitable, verified units gives GREEN."""
        case = make_case()
        item = make_item()
        requirements = [CaseRequirement(case_id=case.id, catalog_id=item.id, quantity=2)]
        inventory = [make_unit(item.id), make_unit(item.id)]

        result = evaluate(case, requirements, [item], inventory)

        assert result.state == ReadinessState.GREEN
        assert result.total_required == 2
        assert result.total_verified == 2

    def test_unverified_units_give_orange(self) -> None:
        """Suitable but unverified units give ORANGE."""
        case = make_case()
        item = make_item()
        requirements = [CaseRequirement(case_id=case.id, catalog_id=item.id, quantity=2)]
        inventory = [make_unit(item.id), make_unit(item.id, verified=False)]

        result = evaluate(case, requirements, [item], inventory)

        assert result.state == ReadinessState.ORANGE
        assert result.total_verified == 1
        assert result.shortages == []

    def test_extra_verified_units_are_capped(self) -> None:
        """Verified units beyond the required quantity do not inflate the count."""
        case = make_case()
        item = make_item()
        requirements = [CaseRequirement(case_id=case.id, catalog_id=item.id, quantity=1)]
        inventory = [make_unit(item.id) for _ in range(3)]

        result = evaluate(case, requirements, [item], inventory)

        assert result.total_verified == 1
        assert result.state == ReadinessState.GREEN

    def test_missing_catalog_entry_is_shortage(self) -> None:
        """An unknown catalog id is reported as a shortage, not an exception."""
        case = make_case()
        missing_id = _id()
        requirements = [CaseRequirement(case_id=case.id, catalog_id=missing_id, quantity=3)]

        result = evaluate(case, requirements, [], [])

        assert result.state == ReadinessState.RED
        assert result.total_required == 3
        [shortage] = result.shortages
        assert shortage.catalog_id == missing_id
        assert shortage.catalog_name == UNKNOWN_ITEM_NAME
        assert shortage.available_quantity == 0
        assert shortage.reason == ShortageReason.NOT_IN_INVENTORY

    def test_shortage_reports_suitable_count(self) -> None:
        """Shortage carries required and suitable quantities."""
        case = make_case()
        item = make_item()
        requirements = [CaseRequirement(case_id=case.id, catalog_id=item.id, quantity=3)]
        inventory = [make_unit(item.id)]

        result = evaluate(case, requirements, [item], inventory)

        [shortage] = result.shortages
        assert shortage.catalog_name == item.name
        assert shortage.required_quantity == 3
        assert shortage.available_quantity == 1
        assert shortage.reason == ShortageReason.INSUFFICIENT_QUANTITY

    def test_shortage_units_not_counted_as_verified(self) -> None:
        """Verified units of an unsatisfied requirement add nothing."""
        case = make_case()
        short_item = make_item(name="Bone Screw")
        ok_item = make_item(name="Drill Guide")
        requirements = [
            CaseRequirement(case_id=case.id, catalog_id=short_item.id, quantity=2),
            CaseRequirement(case_id=case.id, catalog_id=ok_item.id, quantity=1),
        ]
        inventory = [make_unit(short_item.id), make_unit(ok_item.id)]

        result = evaluate(case, requirements, [short_item, ok_item], inventory)

        assert result.state == ReadinessState.RED
        assert result.total_required == 3
        assert result.total_verified == 1

    def test_adding_verified_unit_never_worsens_state(self) -> None:
        """Adding a qualifying verified unit moves RED towards GREEN only."""
        case = make_case()
        item = make_item()
        requirements = [CaseRequirement(case_id=case.id, catalog_id=item.id, quantity=2)]
        inventory = [make_unit(item.id, verified=False)]
        order = [ReadinessState.RED, ReadinessState.ORANGE, ReadinessState.GREEN]

        previous = evaluate(case, requirements, [item], inventory).state
        for _ in range(3):
            inventory.append(make_unit(item.id))
            current = evaluate(case, requirements, [item], inventory).state
            assert order.index(current) >= order.index(previous)
            previous = current

        assert previous == ReadinessState.GREEN

    def test_same_snapshot_same_result(self) -> None:
        """Evaluation is deterministic for a fixed snapshot and cutoff."""
        case = make_case()
        item = make_item()
        requirements = [CaseRequirement(case_id=case.id, catalog_id=item.id, quantity=2)]
        inventory = [make_unit(item.id), make_unit(item.id, verified=False)]

        first = evaluate(case, requirements, [item], inventory)
        second = evaluate(case, requirements, [item], inventory)

        assert first == second


class TestShortageReason:
    """Tests for shortage reason attribution priority."""

    def _reason(self, item: CatalogItem, pool, required: int, case_id: str | None = None):
        return determine_shortage_reason(pool, required, case_id or _id(), item, CUTOFF)

    def test_empty_pool(self) -> None:
        """No units at all reads as NOT_IN_INVENTORY."""
        assert self._reason(make_item(), [], 1) == ShortageReason.NOT_IN_INVENTORY

    def test_availability_at_half_of_pool_wins(self) -> None:
        """Availability failures covering half the pool outrank sterility."""
        item = make_item()
        pool = [
            make_unit(item.id, availability=AvailabilityStatus.IN_USE),
            make_unit(item.id, sterility=SterilityStatus.NON_STERILE),
        ]
        assert self._reason(item, pool, 2) == ShortageReason.NOT_AVAILABLE

    def test_availability_below_half_does_not_win(self) -> None:
        """A minority of unavailable units falls through to sterility."""
        item = make_item()
        pool = [
            make_unit(item.id, availability=AvailabilityStatus.MISSING),
            make_unit(item.id, sterility=SterilityStatus.NON_STERILE),
            make_unit(item.id, sterility=SterilityStatus.NON_STERILE),
        ]
        assert self._reason(item, pool, 3) == ShortageReason.NOT_STERILE

    def test_location_at_half_of_pool(self) -> None:
        """Location failures covering half the pool read as NOT_LOCATABLE."""
        item = make_item()
        pool = [
            make_unit(item.id, location=False),
            make_unit(item.id, location=False),
            make_unit(item.id),
        ]
        assert self._reason(item, pool, 4) == ShortageReason.NOT_LOCATABLE

    def test_expired_outranks_not_sterile(self) -> None:
        """STERILITY_EXPIRED is checked before NOT_STERILE."""
        item = make_item()
        pool = [
            make_unit(item.id, expires_at=CUTOFF - timedelta(days=1)),
            make_unit(item.id, sterility=SterilityStatus.NON_STERILE),
            make_unit(item.id, sterility=SterilityStatus.NON_STERILE),
        ]
        assert self._reason(item, pool, 3) == ShortageReason.STERILITY_EXPIRED

    def test_sterility_skipped_when_not_required(self) -> None:
        """Sterility failures are ignored for items that do not require it."""
        item = make_item(requires_sterility=False)
        pool = [make_unit(item.id, sterility=SterilityStatus.NON_STERILE)]
        assert self._reason(item, pool, 2) == ShortageReason.INSUFFICIENT_QUANTITY

    def test_fallback_is_not_verified(self) -> None:
        """With enough units and no countable failure the fallback applies."""
        item = make_item()
        pool = [
            make_unit(item.id),
            make_unit(item.id),
            make_unit(item.id, availability=AvailabilityStatus.UNAVAILABLE),
        ]
        assert self._reason(item, pool, 3) == ShortageReason.NOT_VERIFIED

    def test_reservation_for_case_counts_as_available(self) -> None:
        """Units reserved for the evaluated case are not availability failures."""
        item = make_item()
        case_id = _id()
        pool = [
            make_unit(
                item.id,
                availability=AvailabilityStatus.RESERVED,
                reserved_for=case_id,
                sterility=SterilityStatus.EXPIRED,
            )
        ]
        assert self._reason(item, pool, 1, case_id) == ShortageReason.NOT_STERILE


class TestAttestations:
    """Tests for attestation resolution."""

    def _attestation(self, case_id: str, kind: AttestationType, hours: int) -> Attestation:
        return Attestation(
            id=_id(),
            case_id=case_id,
            type=kind,
            attested_by_user_id=_id(),
            created_at=VERIFIED_AT + timedelta(hours=hours),
        )

    def test_latest_of_each_type_reported(self) -> None:
        """The newest attestation of each type is picked independently."""
        case = make_case()
        old = self._attestation(case.id, AttestationType.CASE_READINESS, 1)
        new = self._attestation(case.id, AttestationType.CASE_READINESS, 2)
        ack = self._attestation(case.id, AttestationType.SURGEON_ACKNOWLEDGMENT, 0)

        result = evaluate(case, [], [], [], [new, ack, old])

        assert result.has_attestation is True
        assert result.attestation_id == new.id
        assert result.attested_at == new.created_at
        assert result.attested_by_user_id == new.attested_by_user_id
        assert result.has_surgeon_acknowledgment is True
        assert result.surgeon_acknowledgment_id == ack.id
        assert result.surgeon_acknowledged_at == ack.created_at

    def test_attestation_does_not_change_state(self) -> None:
        """A readiness sign-off never turns RED into anything else."""
        case = make_case()
        item = make_item()
        requirements = [CaseRequirement(case_id=case.id, catalog_id=item.id, quantity=1)]
        attestation = self._attestation(case.id, AttestationType.CASE_READINESS, 1)

        result = evaluate(case, requirements, [item], [], [attestation])

        assert result.state == ReadinessState.RED
        assert result.has_attestation is True

    def test_other_case_attestations_ignored(self) -> None:
        """Attestations for a different case are not reported."""
        case = make_case()
        other = self._attestation(_id(), AttestationType.CASE_READINESS, 1)

        result = evaluate(case, [], [], [], [other])

        assert result.has_attestation is False
        assert result.attestation_id is None
        assert result.has_surgeon_acknowledgment is False


@pytest.mark.parametrize(
    "status",
    [AvailabilityStatus.IN_USE, AvailabilityStatus.UNAVAILABLE, AvailabilityStatus.MISSING],
)
def test_unavailable_pool_reports_not_available(status: AvailabilityStatus) -> None:
    """A pool of entirely unavailable units is attributed to availability."""
    case = make_case()
    item = make_item()
    requirements = [CaseRequirement(case_id=case.id, catalog_id=item.id, quantity=1)]

    result = evaluate(case, requirements, [item], [make_unit(item.id, availability=status)])

    assert result.shortages[0].reason == ShortageReason.NOT_AVAILABLE
