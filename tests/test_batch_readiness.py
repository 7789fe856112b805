"""Tests for batch readiness evaluation and day summaries."""

import logging
from datetime import date, datetime, timezone
from uuid import uuid4

from asc_readiness.domain.types import (
    AvailabilityStatus,
    CaseForReadiness,
    CaseRequirement,
    CatalogItem,
    InventoryUnit,
    ItemCategory,
    ReadinessState,
    SterilityStatus,
    SurgeonRef,
)
from asc_readiness.readiness.evaluator import (
    evaluate_batch_readiness,
    evaluate_case_readiness,
    summarize_readiness,
)

CUTOFF = datetime(2024, 10, 1, tzinfo=timezone.utc)
DAY = date(2024, 10, 1)
FACILITY_ID = str(uuid4())


def _case(surgeon_id: str, procedure: str = "ACL Reconstruction") -> CaseForReadiness:
    return CaseForReadiness(
        id=str(uuid4()),
        facility_id=FACILITY_ID,
        scheduled_date=DAY,
        procedure_name=procedure,
        surgeon_id=surgeon_id,
    )


def _unit(catalog_id: str, reserved_for: str | None = None) -> InventoryUnit:
    return InventoryUnit(
        id=str(uuid4()),
        catalog_id=catalog_id,
        sterility_status=SterilityStatus.STERILE,
        availability_status=(
            AvailabilityStatus.RESERVED if reserved_for else AvailabilityStatus.AVAILABLE
        ),
        location_id=str(uuid4()),
        reserved_for_case_id=reserved_for,
        last_verified_at=CUTOFF,
    )


class TestBatchReadiness:
    """Tests for evaluating many cases against one snapshot."""

    def test_unresolved_surgeon_is_skipped(self, caplog) -> None:
        """Cases with an unknown surgeon are omitted, not failed."""
        surgeon = SurgeonRef(id=str(uuid4()), name="Dr. Grey")
        good = _case(surgeon.id)
        orphan = _case(str(uuid4()))

        with caplog.at_level(logging.WARNING):
            results = evaluate_batch_readiness(
                cases=[orphan, good],
                requirements_by_case={},
                catalog={},
                inventory=[],
                attestations_by_case={},
                surgeons={surgeon.id: surgeon},
                cutoff=CUTOFF,
            )

        assert [r.case_id for r in results] == [good.id]
        assert results[0].surgeon_name == "Dr. Grey"
        assert "unresolved surgeon" in caplog.text

    def test_results_keep_input_order(self) -> None:
        """Results come back in the order cases were given."""
        surgeon = SurgeonRef(id=str(uuid4()), name="Dr. Yang")
        cases = [_case(surgeon.id, f"Procedure {i}") for i in range(4)]

        results = evaluate_batch_readiness(
            cases, {}, {}, [], {}, {surgeon.id: surgeon}, CUTOFF
        )

        assert [r.case_id for r in results] == [c.id for c in cases]

    def test_batch_matches_single_evaluation(self) -> None:
        """Each batch result equals the single-case evaluation of that case."""
        surgeon = SurgeonRef(id=str(uuid4()), name="Dr. Shepherd")
        item = CatalogItem(id=str(uuid4()), name="Hip Stem", category=ItemCategory.IMPLANT)
        first = _case(surgeon.id)
        second = _case(surgeon.id)
        requirements = {
            first.id: [CaseRequirement(case_id=first.id, catalog_id=item.id, quantity=1)],
            second.id: [CaseRequirement(case_id=second.id, catalog_id=item.id, quantity=1)],
        }
        inventory = [_unit(item.id, reserved_for=first.id)]
        catalog = {item.id: item}

        results = evaluate_batch_readiness(
            [first, second],
            requirements,
            catalog,
            inventory,
            {},
            {surgeon.id: surgeon},
            CUTOFF,
        )

        assert [r.state for r in results] == [ReadinessState.GREEN, ReadinessState.RED]
        for case, result in zip([first, second], results):
            single = evaluate_case_readiness(
                case, requirements[case.id], catalog, inventory, [], CUTOFF
            )
            assert single.state == result.state
            assert single.shortages == result.shortages


class TestSummarizeReadiness:
    """Tests for per-day readiness counts."""

    def test_counts_per_day_sorted(self) -> None:
        """States are counted per day and days come back in order."""
        later = date(2024, 10, 3)
        entries = [
            (later, "c1", ReadinessState.RED),
            (DAY, "c2", ReadinessState.GREEN),
            (DAY, "c3", ReadinessState.ORANGE),
            (DAY, "c4", ReadinessState.GREEN),
        ]

        summaries = summarize_readiness(entries)

        assert [s.day for s in summaries] == [DAY, later]
        first = summaries[0]
        assert first.case_count == 3
        assert (first.green, first.orange, first.red) == (2, 1, 0)
        assert first.case_ids == ["c2", "c3", "c4"]
        assert summaries[1].red == 1

    def test_empty_input(self) -> None:
        """No entries gives no summaries."""
        assert summarize_readiness([]) == []
