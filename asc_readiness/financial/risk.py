"""Financial risk compute engine.

Derives an advisory risk tier for a surgery request from the latest signal
of each of three independent sources: the clinic's declaration, the
facility's own verification, and an administrative override.

Rules (evaluated in order, first match wins):
  1. Override OVERRIDE_CLEARED -> LOW
  2. Override OVERRIDE_AT_RISK -> HIGH
  3. Facility VERIFIED_AT_RISK -> HIGH
  4. Clinic DECLARED_AT_RISK -> MEDIUM
  5. Facility VERIFIED_CLEARED and clinic DECLARED_CLEARED -> LOW
  6. Everything else -> UNKNOWN

The tier never blocks scheduling or conversion.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from asc_readiness.domain.types import latest_record


class ClinicFinancialState(str, Enum):
    UNKNOWN = "UNKNOWN"
    DECLARED_CLEARED = "DECLARED_CLEARED"
    DECLARED_AT_RISK = "DECLARED_AT_RISK"


class AscFinancialState(str, Enum):
    UNKNOWN = "UNKNOWN"
    VERIFIED_CLEARED = "VERIFIED_CLEARED"
    VERIFIED_AT_RISK = "VERIFIED_AT_RISK"


class OverrideState(str, Enum):
    NONE = "NONE"
    OVERRIDE_CLEARED = "OVERRIDE_CLEARED"
    OVERRIDE_AT_RISK = "OVERRIDE_AT_RISK"


class FinancialRiskState(str, Enum):
    """Advisory risk tier."""

    UNKNOWN = "UNKNOWN"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ClinicReasonCode(str, Enum):
    MISSING_AUTH = "MISSING_AUTH"
    HIGH_DEDUCTIBLE = "HIGH_DEDUCTIBLE"
    COVERAGE_UNCERTAIN = "COVERAGE_UNCERTAIN"
    SELF_PAY_UNCONFIRMED = "SELF_PAY_UNCONFIRMED"
    OTHER = "OTHER"


class AscReasonCode(str, Enum):
    BENEFIT_UNCONFIRMED = "BENEFIT_UNCONFIRMED"
    AUTH_PENDING = "AUTH_PENDING"
    PATIENT_BALANCE_UNRESOLVED = "PATIENT_BALANCE_UNRESOLVED"
    COVERAGE_DENIED = "COVERAGE_DENIED"
    OTHER = "OTHER"


class OverrideReasonCode(str, Enum):
    ADMIN_JUDGMENT = "ADMIN_JUDGMENT"
    URGENT_CASE = "URGENT_CASE"
    CLINIC_CONFIRMED = "CLINIC_CONFIRMED"
    PATIENT_PAID = "PATIENT_PAID"
    OTHER = "OTHER"


def compute_financial_risk(
    clinic_state: ClinicFinancialState,
    asc_state: AscFinancialState,
    override_state: OverrideState,
) -> FinancialRiskState:
    """Compute the risk tier from the three current source states.

    Total over every combination of inputs.
    """
    if override_state == OverrideState.OVERRIDE_CLEARED:
        return FinancialRiskState.LOW
    if override_state == OverrideState.OVERRIDE_AT_RISK:
        return FinancialRiskState.HIGH

    if asc_state == AscFinancialState.VERIFIED_AT_RISK:
        return FinancialRiskState.HIGH

    if clinic_state == ClinicFinancialState.DECLARED_AT_RISK:
        return FinancialRiskState.MEDIUM

    if (
        asc_state == AscFinancialState.VERIFIED_CLEARED
        and clinic_state == ClinicFinancialState.DECLARED_CLEARED
    ):
        return FinancialRiskState.LOW

    return FinancialRiskState.UNKNOWN


@dataclass(frozen=True)
class FinancialSignal:
    """One append-only row from any of the three sources."""

    id: str
    state: str
    created_at: datetime


@dataclass
class FinancialReadiness:
    """Resolved current state of all three sources plus the derived tier."""

    clinic_state: ClinicFinancialState
    asc_state: AscFinancialState
    override_state: OverrideState
    risk_state: FinancialRiskState
    last_clinic_declaration_id: str | None = None
    last_asc_verification_id: str | None = None
    last_override_id: str | None = None


def resolve_financial_readiness(
    declarations: Iterable[FinancialSignal],
    verifications: Iterable[FinancialSignal],
    overrides: Iterable[FinancialSignal],
) -> FinancialReadiness:
    """Pick the latest row per source and compute the risk tier.

    A source with no rows reads as UNKNOWN (or NONE for overrides).

    Args:
        declarations: Clinic declaration rows for one request
        verifications: Facility verification rows for the same request
        overrides: Override rows for the same request

    Returns:
        FinancialReadiness with the states and the ids of the rows used
    """
    declaration = latest_record(declarations)
    verification = latest_record(verifications)
    override = latest_record(overrides)

    clinic_state = (
        ClinicFinancialState(declaration.state)
        if declaration
        else ClinicFinancialState.UNKNOWN
    )
    asc_state = (
        AscFinancialState(verification.state)
        if verification
        else AscFinancialState.UNKNOWN
    )
    override_state = OverrideState(override.state) if override else OverrideState.NONE

    return FinancialReadiness(
        clinic_state=clinic_state,
        asc_state=asc_state,
        override_state=override_state,
        risk_state=compute_financial_risk(clinic_state, asc_state, override_state),
        last_clinic_declaration_id=declaration.id if declaration else None,
        last_asc_verification_id=verification.id if verification else None,
        last_override_id=override.id if override else None,
    )
