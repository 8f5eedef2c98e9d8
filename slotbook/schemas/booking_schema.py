"""Availability, slot, and appointment data models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Tier(str, Enum):
    """Which table governs a service's availability."""
    GENERAL = "general"
    SERVICE_SPECIFIC = "service_specific"


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})

STATUS_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}


class Service(BaseModel):
    """Bookable service from the catalog."""
    id: str
    name: str
    price: Decimal
    duration: str


class DateRecord(BaseModel):
    """A calendar date registered as a bookable day."""
    id: str
    date: str


class GeneralSlot(BaseModel):
    """Time slot shared by every service without its own configuration."""
    id: str
    date_id: str
    time: str
    is_available: bool = True


class ServiceSlot(BaseModel):
    """Time slot reserved for a single service on a single date."""
    id: str
    service_id: str
    date_id: str
    time: str
    is_available: bool = True


class Appointment(BaseModel):
    """A client's booking.

    ``claimed_tier`` and ``claimed_slot_id`` record the slot row the
    booking flipped to unavailable, so cancellation restores exactly that
    row. Both are None when the booking went through without a slot row.
    """
    id: str
    client_name: str
    service_id: str
    date: str
    time: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    created_at: datetime
    claimed_tier: Optional[Tier] = None
    claimed_slot_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class SlotChoice(BaseModel):
    """A time offered to the client for a selected date."""
    time: str
    is_available: bool = True


class SuggestionKind(str, Enum):
    SLOT = "slot"
    PICK_DATE = "pick_date"


class Suggestion(BaseModel):
    """Advisory hint pointing at the earliest open slot for a service."""
    service_id: str
    kind: SuggestionKind
    date: Optional[str] = None
    time: Optional[str] = None
    message: str = ""


class Reservation(BaseModel):
    """Outcome of a booking: the appointment and the slot it claimed."""
    appointment: Appointment
    tier: Optional[Tier] = None
    stale: bool = False
    state: str = ""
    history: list[str] = Field(default_factory=list)
