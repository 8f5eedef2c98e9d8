"""
Administrative edits of the two availability tiers.

Adding a service-specific time removes the general slot at the same
(date, time), which keeps a time from being offered on both tiers.
Removing a service-specific time releases its bookings and hands the time
back to the general tier.
"""

from typing import Optional

from slotbook.errors import (
    ConfirmationRequiredError,
    DuplicateSlotError,
    RecordNotFoundError,
    StorageError,
    ValidationError,
)
from slotbook.logging_context import get_session_logger
from slotbook.schemas.booking_schema import Appointment, GeneralSlot, ServiceSlot
from slotbook.store.base import AvailabilityStore
from slotbook.tools.booking import ReservationManager
from slotbook.tools.configuration import ConfigurationDetector
from slotbook.utils import normalize_date, normalize_time

logger = get_session_logger(__name__)


def _validate_slot_input(
    date: str, time: str, service_id: Optional[str] = None
) -> tuple[str, str]:
    """Return the canonical (date, time) of an admin edit or raise ValidationError."""
    fields = []
    if service_id is not None and not service_id.strip():
        fields.append("service")
    normalized_date = normalize_date(date) if date else None
    if normalized_date is None:
        fields.append("date")
    normalized_time = normalize_time(time) if time else None
    if normalized_time is None:
        fields.append("time")
    if fields:
        raise ValidationError(
            f"Select a valid service, date and time (invalid: {', '.join(fields)}).",
            fields=fields,
        )
    return normalized_date, normalized_time


class ServiceAvailabilityAdmin:
    """Operator actions on service-specific and general slots."""

    def __init__(
        self,
        store: AvailabilityStore,
        detector: ConfigurationDetector,
        reservations: ReservationManager,
    ) -> None:
        self._store = store
        self._detector = detector
        self._reservations = reservations

    def add_service_time(self, service_id: str, date: str, time: str) -> ServiceSlot:
        """
        Register a time for one service on one date.

        Raises:
            ValidationError: Service, date or time missing or malformed.
            DuplicateSlotError: The service already has this time on this date.
        """
        date, time = _validate_slot_input(date, time, service_id)
        service_id = service_id.strip()
        date_id = self._store.upsert_date_record(date)

        if self._store.find_service_slot(service_id, date_id, time) is not None:
            raise DuplicateSlotError(
                f"{time} on {date} is already registered for {service_id}."
            )

        slot = self._store.insert_service_slot(service_id, date_id, time, is_available=True)
        self._detector.invalidate(service_id)
        logger.info("Service time added: %s %s %s (%s)", service_id, date, time, slot.id)

        displaced = self._store.find_general_slot(date_id, time)
        if displaced is not None:
            if not displaced.is_available:
                logger.warning(
                    "Displacing booked general slot %s on %s; check its appointments",
                    time, date,
                )
            self._store.delete_general_slot(displaced.id)
            logger.info("Time %s on %s removed from the general slots", time, date)
        return slot

    def remove_service_time(self, slot_id: str, confirm: bool = False) -> list[Appointment]:
        """
        Delete a service-specific time and return it to the general tier.

        Every active appointment on the slot is released first. Returns the
        released appointments.

        Raises:
            ConfirmationRequiredError: ``confirm`` was not set.
            RecordNotFoundError: No such slot.
        """
        if not confirm:
            raise ConfirmationRequiredError(
                "Removing a service time is destructive; pass confirm=True."
            )

        slot = self._store.get_service_slot(slot_id)
        if slot is None:
            raise RecordNotFoundError(f"Service slot {slot_id} not found.")
        record = self._store.get_date_record(slot.date_id)
        if record is None:
            raise RecordNotFoundError(f"Date record {slot.date_id} not found.")

        released = [
            self._reservations.release(appointment)
            for appointment in self._store.list_appointments(
                date=record.date, service_id=slot.service_id, active_only=True
            )
            if appointment.time == slot.time
        ]

        if self._store.get_service_slot(slot_id) is not None:
            self._store.delete_service_slot(slot_id)
            self._detector.invalidate(slot.service_id)
            self._reservations.return_to_general(slot.date_id, slot.time)

        logger.info("Service time removed: %s %s %s (%d appointment(s) released)",
                    slot.service_id, record.date, slot.time, len(released))
        return released

    def toggle_service_time(self, slot_id: str) -> ServiceSlot:
        """Flip a service slot's availability. The general tier is not touched."""
        slot = self._store.get_service_slot(slot_id)
        if slot is None:
            raise RecordNotFoundError(f"Service slot {slot_id} not found.")

        new_value = not slot.is_available
        if not self._store.set_service_slot_available(
            slot_id, new_value, expected=slot.is_available
        ):
            raise StorageError(f"Service slot {slot_id} was changed concurrently.")

        logger.info("Service time %s %s", slot_id, "enabled" if new_value else "disabled")
        return slot.model_copy(update={"is_available": new_value})

    def list_service_times(self, service_id: str, date: str) -> list[ServiceSlot]:
        """All slots of a service on a date, available or not, ordered by time."""
        normalized = normalize_date(date) if date else None
        date_id = self._store.find_date_record(normalized) if normalized else None
        if date_id is None:
            return []
        rows = self._store.list_service_slots(service_id=service_id, date_id=date_id)
        return sorted(rows, key=lambda r: r.time)

    def add_general_time(self, date: str, time: str) -> GeneralSlot:
        """
        Register a time shared by every unconfigured service.

        Raises:
            DuplicateSlotError: The time already exists on the general tier,
                or a service already claims it on that date.
        """
        date, time = _validate_slot_input(date, time)
        date_id = self._store.upsert_date_record(date)

        claimed = [s for s in self._store.list_service_slots(date_id=date_id) if s.time == time]
        if claimed:
            raise DuplicateSlotError(
                f"{time} on {date} is reserved for service {claimed[0].service_id}."
            )
        if self._store.find_general_slot(date_id, time) is not None:
            raise DuplicateSlotError(f"{time} on {date} is already a general time.")

        slot = self._store.insert_general_slot(date_id, time, is_available=True)
        logger.info("General time added: %s %s (%s)", date, time, slot.id)
        return slot
