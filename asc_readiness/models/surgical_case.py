"""Scheduled case, its item requirements, attestations and readiness cache."""

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from asc_readiness.db.base import Base, CreatedAtMixin, TimestampMixin


class SurgicalCase(Base, TimestampMixin):
    """A case on the facility schedule."""

    __tablename__ = "surgical_cases"

    facility_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    surgeon_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("facility_users.id"),
        nullable=False,
    )
    procedure_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    scheduled_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        index=True,
    )
    scheduled_time: Mapped[str | None] = mapped_column(
        String(8),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    # Converted requests land inactive until scheduling approves them
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SurgicalCase {self.id} {self.procedure_name} {self.status}>"


class CaseItemRequirement(Base, TimestampMixin):
    """Quantity of a catalog item a case requires."""

    __tablename__ = "case_item_requirements"
    __table_args__ = (
        UniqueConstraint("case_id", "catalog_id"),
        CheckConstraint("quantity > 0", name="quantity_positive"),
    )

    case_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgical_cases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    catalog_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("item_catalog.id"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    is_surgeon_override: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )


class CaseAttestation(Base, CreatedAtMixin):
    """Human sign-off on a case.

    Never edited; a mistaken attestation is voided, not removed.
    """

    __tablename__ = "case_attestations"

    facility_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
    )
    case_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgical_cases.id"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    attested_by_user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("facility_users.id"),
        nullable=False,
    )
    readiness_state_at_time: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(
        String(2000),
        nullable=True,
    )
    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    voided_by_user_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )


class CaseReadinessCache(Base):
    """Materialized readiness result for one case. Always re-derivable."""

    __tablename__ = "case_readiness_cache"

    case_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surgical_cases.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    facility_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    scheduled_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )
    procedure_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    surgeon_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    readiness_state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    missing_items: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    total_required_items: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    total_verified_items: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    has_attestation: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    attestation_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    attested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    attested_by_user_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    has_surgeon_acknowledgment: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    surgeon_acknowledgment_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    surgeon_acknowledged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<CaseReadinessCache case={self.case_id} {self.readiness_state}>"
