"""Shared value types for the readiness engines.

These are plain immutable records assembled by the service layer from
database rows. Constructors reject values that break basic invariants
(positive quantities, non-empty names) so the engines never see them.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Protocol, TypeVar

from asc_readiness.domain.ids import (
    AttestationId,
    CaseId,
    CatalogItemId,
    FacilityId,
    InventoryItemId,
    LocationId,
    UserId,
)


class ReadinessState(str, Enum):
    """Traffic-light readiness of a case."""

    GREEN = "GREEN"  # all required items suitable and verified
    ORANGE = "ORANGE"  # suitable but pending verification
    RED = "RED"  # at least one shortage


class ShortageReason(str, Enum):
    """Primary blocker attributed to an unsatisfied requirement."""

    NOT_IN_INVENTORY = "NOT_IN_INVENTORY"
    INSUFFICIENT_QUANTITY = "INSUFFICIENT_QUANTITY"
    NOT_STERILE = "NOT_STERILE"
    STERILITY_EXPIRED = "STERILITY_EXPIRED"
    NOT_AVAILABLE = "NOT_AVAILABLE"
    NOT_VERIFIED = "NOT_VERIFIED"
    NOT_LOCATABLE = "NOT_LOCATABLE"


class ItemCategory(str, Enum):
    """Catalog item categories."""

    IMPLANT = "IMPLANT"
    INSTRUMENT = "INSTRUMENT"
    LOANER = "LOANER"
    HIGH_VALUE_SUPPLY = "HIGH_VALUE_SUPPLY"


class SterilityStatus(str, Enum):
    """Sterility status of a physical unit."""

    STERILE = "STERILE"
    NON_STERILE = "NON_STERILE"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"


class AvailabilityStatus(str, Enum):
    """Availability status of a physical unit."""

    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    IN_USE = "IN_USE"
    UNAVAILABLE = "UNAVAILABLE"
    MISSING = "MISSING"


class AttestationType(str, Enum):
    """Kinds of human sign-off attached to a case."""

    CASE_READINESS = "CASE_READINESS"
    SURGEON_ACKNOWLEDGMENT = "SURGEON_ACKNOWLEDGMENT"


class CaseStatus(str, Enum):
    """Scheduled case status."""

    DRAFT = "DRAFT"
    REQUESTED = "REQUESTED"
    SCHEDULED = "SCHEDULED"
    READY = "READY"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"


UNKNOWN_ITEM_NAME = "[Unknown Item]"


def _require_text(value: str, field_name: str) -> None:
    if not value or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")


@dataclass(frozen=True)
class CaseForReadiness:
    """The slice of a scheduled case the evaluator needs."""

    id: CaseId
    facility_id: FacilityId
    scheduled_date: date
    procedure_name: str
    surgeon_id: UserId

    def __post_init__(self) -> None:
        _require_text(self.procedure_name, "procedure_name")


@dataclass(frozen=True)
class CaseRequirement:
    """A quantity of one catalog item required by a case."""

    case_id: CaseId
    catalog_id: CatalogItemId
    quantity: int
    is_surgeon_override: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError("quantity must be an integer")
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")


@dataclass(frozen=True)
class CatalogItem:
    """Item catalog reference data."""

    id: CatalogItemId
    name: str
    category: ItemCategory
    requires_sterility: bool = True
    is_loaner: bool = False
    active: bool = True

    def __post_init__(self) -> None:
        _require_text(self.name, "name")


@dataclass(frozen=True)
class InventoryUnit:
    """Point-in-time snapshot of one trackable physical unit."""

    id: InventoryItemId
    catalog_id: CatalogItemId
    sterility_status: SterilityStatus
    availability_status: AvailabilityStatus
    location_id: LocationId | None = None
    sterility_expires_at: datetime | None = None
    reserved_for_case_id: CaseId | None = None
    last_verified_at: datetime | None = None
    last_verified_by_user_id: UserId | None = None


@dataclass(frozen=True)
class Attestation:
    """Immutable human sign-off on a case."""

    id: AttestationId
    case_id: CaseId
    type: AttestationType
    attested_by_user_id: UserId
    created_at: datetime


@dataclass(frozen=True)
class SurgeonRef:
    """Resolved facility surgeon."""

    id: UserId
    name: str


@dataclass(frozen=True)
class Shortage:
    """One requirement that cannot currently be satisfied."""

    catalog_id: CatalogItemId
    catalog_name: str
    required_quantity: int
    available_quantity: int
    reason: ShortageReason

    def __post_init__(self) -> None:
        if self.required_quantity <= 0:
            raise ValueError("required_quantity must be positive")
        if self.available_quantity < 0:
            raise ValueError("available_quantity cannot be negative")

    def to_dict(self) -> dict[str, object]:
        """Serialize for cache storage."""
        return {
            "catalog_id": self.catalog_id,
            "catalog_name": self.catalog_name,
            "required_quantity": self.required_quantity,
            "available_quantity": self.available_quantity,
            "reason": self.reason.value,
        }


class Timestamped(Protocol):
    created_at: datetime


T = TypeVar("T", bound=Timestamped)


def latest_record(records: Iterable[T]) -> T | None:
    """Return the most recently created record, or None when empty.

    On equal timestamps the record appearing later in the input wins.
    """
    latest: T | None = None
    for record in records:
        if latest is None or not latest.created_at > record.created_at:
            latest = record
    return latest
