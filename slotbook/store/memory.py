"""
In-memory availability store.

Reference backend used by tests and local development. In production this
would be replaced by a database-backed store (Postgres, Supabase, Firestore)
that provides the same conditional updates and active-appointment
uniqueness.

Every public method runs under one re-entrant lock, so each call is atomic
with respect to other threads. Records are returned as copies; callers
cannot mutate stored state except through the store methods.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Optional

from slotbook.errors import DuplicateSlotError, RecordNotFoundError, SlotTakenError
from slotbook.schemas.booking_schema import (
    Appointment,
    AppointmentStatus,
    DateRecord,
    GeneralSlot,
    ServiceSlot,
    Tier,
)
from slotbook.store.base import AvailabilityStore

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"


class InMemoryAvailabilityStore(AvailabilityStore):
    """Thread-safe dict-backed implementation of AvailabilityStore."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._dates: dict[str, DateRecord] = {}
        self._date_index: dict[str, str] = {}
        self._service_slots: dict[str, ServiceSlot] = {}
        self._general_slots: dict[str, GeneralSlot] = {}
        self._appointments: dict[str, Appointment] = {}
        self._config_versions: dict[str, int] = {}
        self._version_seq = 0

    def reset(self) -> None:
        """Clear all records. Used by test fixtures for isolation."""
        with self._lock:
            self._dates.clear()
            self._date_index.clear()
            self._service_slots.clear()
            self._general_slots.clear()
            self._appointments.clear()
            self._config_versions.clear()

    # ------------------------------------------------------------------ #
    # Date records
    # ------------------------------------------------------------------ #

    def find_date_record(self, date: str) -> Optional[str]:
        with self._lock:
            return self._date_index.get(date)

    def upsert_date_record(self, date: str) -> str:
        with self._lock:
            existing = self._date_index.get(date)
            if existing:
                return existing
            record = DateRecord(id=_new_id("DT"), date=date)
            self._dates[record.id] = record
            self._date_index[date] = record.id
            logger.debug("Date record created: %s (%s)", record.id, date)
            return record.id

    def get_date_record(self, date_id: str) -> Optional[DateRecord]:
        with self._lock:
            record = self._dates.get(date_id)
            return record.model_copy() if record else None

    def list_date_records(self) -> list[DateRecord]:
        with self._lock:
            return [r.model_copy() for r in sorted(self._dates.values(), key=lambda r: r.date)]

    # ------------------------------------------------------------------ #
    # Service-specific slots
    # ------------------------------------------------------------------ #

    def list_service_slots(
        self,
        service_id: Optional[str] = None,
        date_id: Optional[str] = None,
        available_only: bool = False,
        min_date: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[ServiceSlot]:
        with self._lock:
            rows: list[ServiceSlot] = []
            for slot in self._service_slots.values():
                if service_id is not None and slot.service_id != service_id:
                    continue
                if date_id is not None and slot.date_id != date_id:
                    continue
                if available_only and not slot.is_available:
                    continue
                if min_date is not None and self._dates[slot.date_id].date < min_date:
                    continue
                rows.append(slot.model_copy())
                if limit is not None and len(rows) >= limit:
                    break
            return rows

    def get_service_slot(self, slot_id: str) -> Optional[ServiceSlot]:
        with self._lock:
            slot = self._service_slots.get(slot_id)
            return slot.model_copy() if slot else None

    def find_service_slot(
        self, service_id: str, date_id: str, time: str
    ) -> Optional[ServiceSlot]:
        with self._lock:
            for slot in self._service_slots.values():
                if (slot.service_id, slot.date_id, slot.time) == (service_id, date_id, time):
                    return slot.model_copy()
            return None

    def insert_service_slot(
        self, service_id: str, date_id: str, time: str, is_available: bool = True
    ) -> ServiceSlot:
        with self._lock:
            self._require_date(date_id)
            if self.find_service_slot(service_id, date_id, time):
                raise DuplicateSlotError(
                    f"Service slot {time} already exists for {service_id} on {date_id}."
                )
            slot = ServiceSlot(
                id=_new_id("SS"),
                service_id=service_id,
                date_id=date_id,
                time=time,
                is_available=is_available,
            )
            self._service_slots[slot.id] = slot
            self._bump_config_version(service_id)
            return slot.model_copy()

    def delete_service_slot(self, slot_id: str) -> None:
        with self._lock:
            slot = self._service_slots.pop(slot_id, None)
            if slot is None:
                raise RecordNotFoundError(f"Service slot {slot_id} not found.")
            self._bump_config_version(slot.service_id)

    def set_service_slot_available(
        self, slot_id: str, value: bool, expected: Optional[bool] = None
    ) -> bool:
        with self._lock:
            slot = self._service_slots.get(slot_id)
            if slot is None:
                raise RecordNotFoundError(f"Service slot {slot_id} not found.")
            if expected is not None and slot.is_available != expected:
                return False
            slot.is_available = value
            return True

    def count_service_slots(self, service_id: str) -> int:
        with self._lock:
            return sum(1 for s in self._service_slots.values() if s.service_id == service_id)

    def service_config_version(self, service_id: str) -> int:
        with self._lock:
            return self._config_versions.get(service_id, 0)

    # ------------------------------------------------------------------ #
    # General slots
    # ------------------------------------------------------------------ #

    def list_general_slots(
        self, date_id: str, available_only: bool = False
    ) -> list[GeneralSlot]:
        with self._lock:
            return [
                slot.model_copy()
                for slot in self._general_slots.values()
                if slot.date_id == date_id and (slot.is_available or not available_only)
            ]

    def get_general_slot(self, slot_id: str) -> Optional[GeneralSlot]:
        with self._lock:
            slot = self._general_slots.get(slot_id)
            return slot.model_copy() if slot else None

    def find_general_slot(self, date_id: str, time: str) -> Optional[GeneralSlot]:
        with self._lock:
            for slot in self._general_slots.values():
                if slot.date_id == date_id and slot.time == time:
                    return slot.model_copy()
            return None

    def insert_general_slot(
        self, date_id: str, time: str, is_available: bool = True
    ) -> GeneralSlot:
        with self._lock:
            self._require_date(date_id)
            if self.find_general_slot(date_id, time):
                raise DuplicateSlotError(f"General slot {time} already exists on {date_id}.")
            slot = GeneralSlot(
                id=_new_id("GS"), date_id=date_id, time=time, is_available=is_available
            )
            self._general_slots[slot.id] = slot
            return slot.model_copy()

    def delete_general_slot(self, slot_id: str) -> None:
        with self._lock:
            if self._general_slots.pop(slot_id, None) is None:
                raise RecordNotFoundError(f"General slot {slot_id} not found.")

    def set_general_slot_available(
        self, slot_id: str, value: bool, expected: Optional[bool] = None
    ) -> bool:
        with self._lock:
            slot = self._general_slots.get(slot_id)
            if slot is None:
                raise RecordNotFoundError(f"General slot {slot_id} not found.")
            if expected is not None and slot.is_available != expected:
                return False
            slot.is_available = value
            return True

    # ------------------------------------------------------------------ #
    # Appointments
    # ------------------------------------------------------------------ #

    def insert_appointment(
        self,
        client_name: str,
        service_id: str,
        date: str,
        time: str,
        status: AppointmentStatus = AppointmentStatus.PENDING,
    ) -> Appointment:
        with self._lock:
            for existing in self._appointments.values():
                if (
                    existing.is_active
                    and existing.service_id == service_id
                    and existing.date == date
                    and existing.time == time
                ):
                    raise SlotTakenError(
                        f"{service_id} on {date} at {time} is already booked "
                        f"({existing.id})."
                    )
            appointment = Appointment(
                id=_new_id("AP"),
                client_name=client_name,
                service_id=service_id,
                date=date,
                time=time,
                status=status,
                created_at=datetime.now(timezone.utc),
            )
            self._appointments[appointment.id] = appointment
            return appointment.model_copy()

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        with self._lock:
            appointment = self._appointments.get(appointment_id)
            return appointment.model_copy() if appointment else None

    def list_appointments(
        self,
        date: Optional[str] = None,
        service_id: Optional[str] = None,
        active_only: bool = False,
        min_date: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Appointment]:
        with self._lock:
            rows = [
                a.model_copy()
                for a in self._appointments.values()
                if (date is None or a.date == date)
                and (min_date is None or a.date >= min_date)
                and (service_id is None or a.service_id == service_id)
                and (a.is_active or not active_only)
            ]
        rows.sort(key=lambda a: (a.date, a.time, a.created_at))
        end = offset + limit if limit is not None else None
        return rows[offset:end]

    def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
        expected: Optional[AppointmentStatus] = None,
    ) -> bool:
        with self._lock:
            appointment = self._require_appointment(appointment_id)
            if expected is not None and appointment.status != expected:
                return False
            appointment.status = status
            return True

    def set_appointment_claim(
        self, appointment_id: str, tier: Optional[Tier], slot_id: Optional[str]
    ) -> None:
        with self._lock:
            appointment = self._require_appointment(appointment_id)
            appointment.claimed_tier = tier
            appointment.claimed_slot_id = slot_id

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _bump_config_version(self, service_id: str) -> None:
        # One sequence for all services, never reset, so a version is never reused.
        self._version_seq += 1
        self._config_versions[service_id] = self._version_seq

    def _require_date(self, date_id: str) -> None:
        if date_id not in self._dates:
            raise RecordNotFoundError(f"Date record {date_id} not found.")

    def _require_appointment(self, appointment_id: str) -> Appointment:
        appointment = self._appointments.get(appointment_id)
        if appointment is None:
            raise RecordNotFoundError(f"Appointment {appointment_id} not found.")
        return appointment
