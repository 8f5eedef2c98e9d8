"""
Availability store interface.

The engine never talks to a database directly. Any backend (Postgres,
Supabase, Firestore, the in-memory store used in tests) implements this
interface. Two guarantees are required from every backend because the
engine's multi-step sequences are not transactional:

1. ``set_service_slot_available`` / ``set_general_slot_available`` honour
   ``expected``: the update only happens if the current flag equals it.
2. ``insert_appointment`` rejects a second *active* appointment for the
   same (service, date, time) with ``SlotTakenError``.

Backends raise ``StorageError`` (or a subclass) for every failure.
"""

from abc import ABC, abstractmethod
from typing import Optional

from slotbook.schemas.booking_schema import (
    Appointment,
    AppointmentStatus,
    DateRecord,
    GeneralSlot,
    ServiceSlot,
    Tier,
)


class AvailabilityStore(ABC):
    """Query/command surface consumed by the engine."""

    # ------------------------------------------------------------------ #
    # Date records
    # ------------------------------------------------------------------ #

    @abstractmethod
    def find_date_record(self, date: str) -> Optional[str]:
        """Return the DateRecord id for ``date`` or None."""

    @abstractmethod
    def upsert_date_record(self, date: str) -> str:
        """Return the DateRecord id for ``date``, creating it if needed."""

    @abstractmethod
    def get_date_record(self, date_id: str) -> Optional[DateRecord]:
        """Return a DateRecord by id or None."""

    @abstractmethod
    def list_date_records(self) -> list[DateRecord]:
        """Return every DateRecord ordered by date."""

    # ------------------------------------------------------------------ #
    # Service-specific slots
    # ------------------------------------------------------------------ #

    @abstractmethod
    def list_service_slots(
        self,
        service_id: Optional[str] = None,
        date_id: Optional[str] = None,
        available_only: bool = False,
        min_date: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[ServiceSlot]:
        """
        List service slots matching every given filter.

        Args:
            service_id: Restrict to one service (None = every service).
            date_id: Restrict to one DateRecord.
            available_only: Only rows with ``is_available`` set.
            min_date: Only rows whose DateRecord date is >= this value.
            limit: Maximum number of rows returned, in no particular order.
        """

    @abstractmethod
    def get_service_slot(self, slot_id: str) -> Optional[ServiceSlot]:
        """Return a service slot by id or None."""

    @abstractmethod
    def find_service_slot(
        self, service_id: str, date_id: str, time: str
    ) -> Optional[ServiceSlot]:
        """Return the service slot for the exact triple or None."""

    @abstractmethod
    def insert_service_slot(
        self, service_id: str, date_id: str, time: str, is_available: bool = True
    ) -> ServiceSlot:
        """Insert a service slot. Raises DuplicateSlotError on an existing triple."""

    @abstractmethod
    def delete_service_slot(self, slot_id: str) -> None:
        """Delete a service slot. Raises RecordNotFoundError if missing."""

    @abstractmethod
    def set_service_slot_available(
        self, slot_id: str, value: bool, expected: Optional[bool] = None
    ) -> bool:
        """Set the flag. Returns False, without writing, if ``expected`` differs."""

    @abstractmethod
    def count_service_slots(self, service_id: str) -> int:
        """Number of ServiceSlot rows of a service, any date and any flag."""

    @abstractmethod
    def service_config_version(self, service_id: str) -> int:
        """
        Return a counter that changes whenever a ServiceSlot of the service
        is inserted or deleted.

        Flag toggles do not change it. Every engine instance sharing the
        store reads the same counter, so a cached tier can be checked
        against it without any in-process coordination.
        """

    # ------------------------------------------------------------------ #
    # General slots
    # ------------------------------------------------------------------ #

    @abstractmethod
    def list_general_slots(
        self, date_id: str, available_only: bool = False
    ) -> list[GeneralSlot]:
        """List general slots for a DateRecord."""

    @abstractmethod
    def get_general_slot(self, slot_id: str) -> Optional[GeneralSlot]:
        """Return a general slot by id or None."""

    @abstractmethod
    def find_general_slot(self, date_id: str, time: str) -> Optional[GeneralSlot]:
        """Return the general slot for (date, time) or None."""

    @abstractmethod
    def insert_general_slot(
        self, date_id: str, time: str, is_available: bool = True
    ) -> GeneralSlot:
        """Insert a general slot. Raises DuplicateSlotError on an existing pair."""

    @abstractmethod
    def delete_general_slot(self, slot_id: str) -> None:
        """Delete a general slot. Raises RecordNotFoundError if missing."""

    @abstractmethod
    def set_general_slot_available(
        self, slot_id: str, value: bool, expected: Optional[bool] = None
    ) -> bool:
        """Set the flag. Returns False, without writing, if ``expected`` differs."""

    # ------------------------------------------------------------------ #
    # Appointments
    # ------------------------------------------------------------------ #

    @abstractmethod
    def insert_appointment(
        self,
        client_name: str,
        service_id: str,
        date: str,
        time: str,
        status: AppointmentStatus = AppointmentStatus.PENDING,
    ) -> Appointment:
        """Insert an appointment. Raises SlotTakenError if an active one exists."""

    @abstractmethod
    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Return an appointment by id or None."""

    @abstractmethod
    def list_appointments(
        self,
        date: Optional[str] = None,
        service_id: Optional[str] = None,
        active_only: bool = False,
        min_date: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Appointment]:
        """
        List appointments ordered by (date, time, created_at).

        ``min_date`` keeps appointments on or after that date. ``offset`` and
        ``limit`` page through the ordered result.
        """

    @abstractmethod
    def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
        expected: Optional[AppointmentStatus] = None,
    ) -> bool:
        """Set the status. Returns False, without writing, if ``expected`` differs."""

    @abstractmethod
    def set_appointment_claim(
        self, appointment_id: str, tier: Optional[Tier], slot_id: Optional[str]
    ) -> None:
        """Record which slot row the appointment flipped."""
