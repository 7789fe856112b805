"""Item catalog and physical inventory models."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from asc_readiness.db.base import Base, TimestampMixin


class ItemCatalogEntry(Base, TimestampMixin):
    """Facility reference data describing a kind of item."""

    __tablename__ = "item_catalog"

    facility_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    requires_sterility: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    is_loaner: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ItemCatalogEntry {self.name} ({self.category})>"


class InventoryItem(Base, TimestampMixin):
    """One trackable physical unit.

    Mutated by receipt, verification, reservation and consumption flows
    outside this package; readiness only reads it.
    """

    __tablename__ = "inventory_items"

    facility_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    catalog_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("item_catalog.id"),
        nullable=False,
        index=True,
    )
    serial_number: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    location_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    sterility_status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    sterility_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    availability_status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )
    reserved_for_case_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    last_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_verified_by_user_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryItem {self.id} catalog={self.catalog_id} "
            f"{self.availability_status}/{self.sterility_status}>"
        )
