"""Financial risk computation."""

from asc_readiness.financial.risk import (
    AscFinancialState,
    AscReasonCode,
    ClinicFinancialState,
    ClinicReasonCode,
    FinancialReadiness,
    FinancialRiskState,
    FinancialSignal,
    OverrideReasonCode,
    OverrideState,
    compute_financial_risk,
    resolve_financial_readiness,
)

__all__ = [
    "AscFinancialState",
    "AscReasonCode",
    "ClinicFinancialState",
    "ClinicReasonCode",
    "FinancialReadiness",
    "FinancialRiskState",
    "FinancialSignal",
    "OverrideReasonCode",
    "OverrideState",
    "compute_financial_risk",
    "resolve_financial_readiness",
]
