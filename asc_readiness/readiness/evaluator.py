"""Deterministic case readiness evaluator.

Turns a point-in-time snapshot (requirements, catalog, inventory,
attestations) into a GREEN/ORANGE/RED readiness state plus the list of
shortages behind it. All functions are pure:
- Deterministic (same snapshot and cutoff = same result)
- No I/O and no clock access; the cutoff is always passed in
- Attestations are reported, never used to change the state
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from asc_readiness.domain.ids import AttestationId, CaseId, CatalogItemId, UserId
from asc_readiness.domain.types import (
    Attestation,
    AttestationType,
    AvailabilityStatus,
    CaseForReadiness,
    CaseRequirement,
    CatalogItem,
    InventoryUnit,
    ReadinessState,
    Shortage,
    ShortageReason,
    SterilityStatus,
    SurgeonRef,
    UNKNOWN_ITEM_NAME,
    latest_record,
)

logger = logging.getLogger(__name__)

InventoryIndex = Mapping[CatalogItemId, Sequence[InventoryUnit]]


@dataclass
class ReadinessResult:
    """Complete result of a single case evaluation."""

    case_id: CaseId
    state: ReadinessState
    shortages: list[Shortage]
    total_required: int
    total_verified: int
    has_attestation: bool = False
    attestation_id: AttestationId | None = None
    attested_at: datetime | None = None
    attested_by_user_id: UserId | None = None
    has_surgeon_acknowledgment: bool = False
    surgeon_acknowledgment_id: AttestationId | None = None
    surgeon_acknowledged_at: datetime | None = None
    surgeon_name: str | None = None


@dataclass
class DaySummary:
    """Per-day readiness counts for calendar views."""

    day: date
    case_count: int = 0
    green: int = 0
    orange: int = 0
    red: int = 0
    case_ids: list[CaseId] = field(default_factory=list)


def is_sterile(unit: InventoryUnit, cutoff: datetime) -> bool:
    """Sterile, and not expiring before the cutoff. No expiry passes."""
    if unit.sterility_status != SterilityStatus.STERILE:
        return False
    if unit.sterility_expires_at is not None and unit.sterility_expires_at < cutoff:
        return False
    return True


def is_available_for_case(unit: InventoryUnit, case_id: CaseId) -> bool:
    """AVAILABLE, or RESERVED for this very case."""
    if unit.availability_status == AvailabilityStatus.AVAILABLE:
        return True
    return (
        unit.availability_status == AvailabilityStatus.RESERVED
        and unit.reserved_for_case_id == case_id
    )


def is_locatable(unit: InventoryUnit) -> bool:
    return unit.location_id is not None


def is_verified(unit: InventoryUnit) -> bool:
    return unit.last_verified_at is not None


def is_suitable(
    unit: InventoryUnit,
    case_id: CaseId,
    catalog_item: CatalogItem,
    cutoff: datetime,
) -> bool:
    """Check whether a unit can satisfy a requirement of this case."""
    if not is_available_for_case(unit, case_id):
        return False
    if not is_locatable(unit):
        return False
    if catalog_item.requires_sterility and not is_sterile(unit, cutoff):
        return False
    return True


def index_inventory(inventory: Iterable[InventoryUnit]) -> dict[CatalogItemId, list[InventoryUnit]]:
    """Partition an inventory snapshot by catalog id, preserving order."""
    index: dict[CatalogItemId, list[InventoryUnit]] = defaultdict(list)
    for unit in inventory:
        index[unit.catalog_id].append(unit)
    return dict(index)


def determine_shortage_reason(
    pool: Sequence[InventoryUnit],
    required_quantity: int,
    case_id: CaseId,
    catalog_item: CatalogItem,
    cutoff: datetime,
) -> ShortageReason:
    """Attribute a shortage to its most actionable cause.

    Each unit in the pool is counted under its first failing check.
    Availability and location failures win only when they cover at least
    half of the pool; sterility failures win on any count.

    Args:
        pool: Every snapshot unit for the catalog item
        required_quantity: Units the case needs
        case_id: Case being evaluated (for reservations)
        catalog_item: Catalog entry of the requirement
        cutoff: Sterility must hold through this instant

    Returns:
        The attributed shortage reason
    """
    if not pool:
        return ShortageReason.NOT_IN_INVENTORY

    not_available = 0
    not_locatable = 0
    not_sterile = 0
    sterility_expired = 0

    for unit in pool:
        if not is_available_for_case(unit, case_id):
            not_available += 1
            continue
        if not is_locatable(unit):
            not_locatable += 1
            continue
        if catalog_item.requires_sterility:
            if unit.sterility_status != SterilityStatus.STERILE:
                not_sterile += 1
                continue
            if (
                unit.sterility_expires_at is not None
                and unit.sterility_expires_at < cutoff
            ):
                sterility_expired += 1

    half = len(pool) / 2
    if not_available > 0 and not_available >= half:
        return ShortageReason.NOT_AVAILABLE
    if not_locatable > 0 and not_locatable >= half:
        return ShortageReason.NOT_LOCATABLE
    if sterility_expired > 0:
        return ShortageReason.STERILITY_EXPIRED
    if not_sterile > 0:
        return ShortageReason.NOT_STERILE
    if len(pool) < required_quantity:
        return ShortageReason.INSUFFICIENT_QUANTITY
    return ShortageReason.NOT_VERIFIED


def _evaluate_indexed(
    case: CaseForReadiness,
    requirements: Sequence[CaseRequirement],
    catalog: Mapping[CatalogItemId, CatalogItem],
    inventory_index: InventoryIndex,
    attestations: Iterable[Attestation],
    cutoff: datetime,
) -> ReadinessResult:
    shortages: list[Shortage] = []
    total_required = 0
    total_verified = 0

    for requirement in requirements:
        total_required += requirement.quantity
        catalog_item = catalog.get(requirement.catalog_id)

        if catalog_item is None:
            shortages.append(
                Shortage(
                    catalog_id=requirement.catalog_id,
                    catalog_name=UNKNOWN_ITEM_NAME,
                    required_quantity=requirement.quantity,
                    available_quantity=0,
                    reason=ShortageReason.NOT_IN_INVENTORY,
                )
            )
            continue

        pool = inventory_index.get(requirement.catalog_id, ())
        suitable = [u for u in pool if is_suitable(u, case.id, catalog_item, cutoff)]

        if len(suitable) < requirement.quantity:
            shortages.append(
                Shortage(
                    catalog_id=requirement.catalog_id,
                    catalog_name=catalog_item.name,
                    required_quantity=requirement.quantity,
                    available_quantity=len(suitable),
                    reason=determine_shortage_reason(
                        pool, requirement.quantity, case.id, catalog_item, cutoff
                    ),
                )
            )
        else:
            verified = sum(1 for u in suitable if is_verified(u))
            total_verified += min(verified, requirement.quantity)

    if shortages:
        state = ReadinessState.RED
    elif total_verified < total_required:
        state = ReadinessState.ORANGE
    else:
        state = ReadinessState.GREEN

    case_attestations = [a for a in attestations if a.case_id == case.id]
    readiness = latest_record(
        a for a in case_attestations if a.type == AttestationType.CASE_READINESS
    )
    acknowledgment = latest_record(
        a for a in case_attestations if a.type == AttestationType.SURGEON_ACKNOWLEDGMENT
    )

    return ReadinessResult(
        case_id=case.id,
        state=state,
        shortages=shortages,
        total_required=total_required,
        total_verified=total_verified,
        has_attestation=readiness is not None,
        attestation_id=readiness.id if readiness else None,
        attested_at=readiness.created_at if readiness else None,
        attested_by_user_id=readiness.attested_by_user_id if readiness else None,
        has_surgeon_acknowledgment=acknowledgment is not None,
        surgeon_acknowledgment_id=acknowledgment.id if acknowledgment else None,
        surgeon_acknowledged_at=acknowledgment.created_at if acknowledgment else None,
    )


def evaluate_case_readiness(
    case: CaseForReadiness,
    requirements: Sequence[CaseRequirement],
    catalog: Mapping[CatalogItemId, CatalogItem],
    inventory: Iterable[InventoryUnit],
    attestations: Iterable[Attestation],
    cutoff: datetime,
) -> ReadinessResult:
    """Evaluate readiness of a single case.

    Args:
        case: Case being evaluated
        requirements: The case's item requirements
        catalog: Catalog entries by id
        inventory: Inventory snapshot for the facility
        attestations: Attestations (other cases' records are ignored)
        cutoff: Sterility must remain valid through this instant

    Returns:
        ReadinessResult with state, shortages and attestation info
    """
    return _evaluate_indexed(
        case,
        requirements,
        catalog,
        index_inventory(inventory),
        attestations,
        cutoff,
    )


def evaluate_batch_readiness(
    cases: Sequence[CaseForReadiness],
    requirements_by_case: Mapping[CaseId, Sequence[CaseRequirement]],
    catalog: Mapping[CatalogItemId, CatalogItem],
    inventory: Iterable[InventoryUnit],
    attestations_by_case: Mapping[CaseId, Sequence[Attestation]],
    surgeons: Mapping[UserId, SurgeonRef],
    cutoff: datetime,
) -> list[ReadinessResult]:
    """Evaluate many cases against one shared snapshot.

    The inventory is partitioned once for the whole batch. Cases whose
    surgeon cannot be resolved are skipped, not failed.

    Returns:
        Results in input order, minus skipped cases
    """
    inventory_index = index_inventory(inventory)
    results: list[ReadinessResult] = []

    for case in cases:
        surgeon = surgeons.get(case.surgeon_id)
        if surgeon is None:
            logger.warning(
                "Skipping readiness for case with unresolved surgeon",
                extra={"case_id": case.id, "facility_id": case.facility_id},
            )
            continue

        result = _evaluate_indexed(
            case,
            requirements_by_case.get(case.id, ()),
            catalog,
            inventory_index,
            attestations_by_case.get(case.id, ()),
            cutoff,
        )
        result.surgeon_name = surgeon.name
        results.append(result)

    return results


def summarize_readiness(
    entries: Iterable[tuple[date, CaseId, ReadinessState]],
) -> list[DaySummary]:
    """Count readiness states per day.

    Args:
        entries: (day, case id, state) triples

    Returns:
        One summary per day, ordered by day
    """
    by_day: dict[date, DaySummary] = {}
    for day, case_id, state in entries:
        summary = by_day.setdefault(day, DaySummary(day=day))
        summary.case_count += 1
        summary.case_ids.append(case_id)
        if state == ReadinessState.GREEN:
            summary.green += 1
        elif state == ReadinessState.ORANGE:
            summary.orange += 1
        else:
            summary.red += 1
    return [by_day[day] for day in sorted(by_day)]
