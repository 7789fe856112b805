"""Business logic services."""

from asc_readiness.services.financial_readiness import FinancialReadinessService
from asc_readiness.services.readiness import ReadinessService
from asc_readiness.services.surgery_request import (
    ConvertResult,
    InvalidTransitionError,
    SurgeonNotMappedError,
    SurgeryRequestError,
    SurgeryRequestNotFoundError,
    SurgeryRequestService,
    SurgeryRequestValidationError,
    SubmitResult,
)

__all__ = [
    "ConvertResult",
    "FinancialReadinessService",
    "InvalidTransitionError",
    "ReadinessService",
    "SubmitResult",
    "SurgeonNotMappedError",
    "SurgeryRequestError",
    "SurgeryRequestNotFoundError",
    "SurgeryRequestService",
    "SurgeryRequestValidationError",
]
