"""Facility staff directory (read-only here; provisioned elsewhere)."""

from sqlalchemy import Boolean, String
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from asc_readiness.db.base import Base, TimestampMixin

SURGEON_ROLE = "SURGEON"


class FacilityUser(Base, TimestampMixin):
    """A staff member of one facility. A user may hold several roles."""

    __tablename__ = "facility_users"

    facility_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    username: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    roles: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    @property
    def is_surgeon(self) -> bool:
        return SURGEON_ROLE in (self.roles or [])

    def __repr__(self) -> str:
        return f"<FacilityUser {self.username} roles={self.roles}>"
