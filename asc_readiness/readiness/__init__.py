"""Case readiness evaluation."""

from asc_readiness.readiness.evaluator import (
    DaySummary,
    ReadinessResult,
    determine_shortage_reason,
    evaluate_batch_readiness,
    evaluate_case_readiness,
    summarize_readiness,
)

__all__ = [
    "DaySummary",
    "ReadinessResult",
    "determine_shortage_reason",
    "evaluate_batch_readiness",
    "evaluate_case_readiness",
    "summarize_readiness",
]
