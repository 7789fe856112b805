"""Financial readiness signal models.

Three append-only sources per surgery request plus one mutable
projection row that caches the derived risk tier.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from asc_readiness.db.base import Base, BaseNoId, CreatedAtMixin


class _FinancialSignalColumns(CreatedAtMixin):
    """Columns shared by the three append-only signal tables."""

    surgery_request_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgery_requests.id"),
        nullable=False,
        index=True,
    )
    state: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    reason_codes: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    note: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )


class ClinicFinancialDeclaration(Base, _FinancialSignalColumns):
    """What the clinic says about the patient's financial clearance."""

    __tablename__ = "clinic_financial_declarations"

    actor_clinic_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
    )
    recorded_by_user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
    )


class AscFinancialVerification(Base, _FinancialSignalColumns):
    """What the facility's billing staff verified."""

    __tablename__ = "asc_financial_verifications"

    verified_by_user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
    )


class FinancialOverride(Base, _FinancialSignalColumns):
    """Administrative override. State NONE clears an earlier override."""

    __tablename__ = "financial_overrides"

    overridden_by_user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
    )


class FinancialReadinessCache(BaseNoId):
    """Read-optimized projection of the three sources for one request."""

    __tablename__ = "financial_readiness_cache"

    surgery_request_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgery_requests.id"),
        primary_key=True,
    )
    target_facility_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    clinic_state: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    asc_state: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    override_state: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    risk_state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
    )
    last_clinic_declaration_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    last_asc_verification_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    last_override_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    recomputed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<FinancialReadinessCache request={self.surgery_request_id} "
            f"{self.risk_state}>"
        )
