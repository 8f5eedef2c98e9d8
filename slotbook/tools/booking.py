"""
Reservation manager: books, cancels, and releases appointments.

Booking is appointment-first: the appointment row is written, then the
matching slot flag is claimed with a conditional true -> false update.
Losing that update to a concurrent session cancels the new appointment
again, so two sessions can never both hold one slot.

Errors on this path propagate; the caller has told a client "reserved"
or is about to.
"""

import warnings
from typing import Optional

from slotbook.config import STALE_SLOT_POLICIES, settings
from slotbook.errors import (
    InvalidStatusTransitionError,
    RecordNotFoundError,
    SlotTakenError,
    StaleSlotError,
    StaleSlotWarning,
    StorageError,
    ValidationError,
)
from slotbook.logging_context import get_session_logger
from slotbook.schemas.booking_schema import (
    STATUS_TRANSITIONS,
    Appointment,
    AppointmentStatus,
    Reservation,
    Tier,
)
from slotbook.store.base import AvailabilityStore
from slotbook.tools.configuration import ConfigurationDetector
from slotbook.utils import normalize_date, normalize_time
from slotbook.workflow.state_machine import ReservationStateMachine, ReservationTrigger

logger = get_session_logger(__name__)

CLAIMED = "claimed"
LOST = "lost"
MISSING = "missing"


class ReservationManager:
    """Creates appointments and keeps slot flags in step with them."""

    def __init__(
        self,
        store: AvailabilityStore,
        detector: ConfigurationDetector,
        stale_policy: Optional[str] = None,
    ) -> None:
        self._store = store
        self._detector = detector
        self._stale_policy = (
            settings.reservation.stale_slot_policy if stale_policy is None else stale_policy
        )
        if self._stale_policy not in STALE_SLOT_POLICIES:
            raise ValueError(
                f"stale_policy must be one of {STALE_SLOT_POLICIES}, got {self._stale_policy!r}"
            )

    # ------------------------------------------------------------------ #
    # Booking
    # ------------------------------------------------------------------ #

    def book(self, client_name: str, service_id: str, date: str, time: str) -> Reservation:
        """
        Book a slot for a client.

        Raises:
            ValidationError: A field is missing or malformed.
            SlotTakenError: Another session holds or just claimed the slot.
            StaleSlotError: No slot row exists and the policy is 'reject'.
            StorageError: The store failed; a created appointment is cancelled.
        """
        sm = ReservationStateMachine()
        date, normalized_time = self._validate(sm, client_name, service_id, date, time)
        service_id = service_id.strip()
        sm.transition(ReservationTrigger.INPUT_VALID)

        try:
            appointment = self._store.insert_appointment(
                client_name.strip(), service_id, date, normalized_time, AppointmentStatus.PENDING
            )
        except SlotTakenError:
            sm.transition(ReservationTrigger.APPOINTMENT_REJECTED)
            logger.warning("Booking rejected, %s on %s at %s already taken",
                           service_id, date, normalized_time)
            raise
        except StorageError as exc:
            sm.transition(ReservationTrigger.APPOINTMENT_REJECTED)
            raise StorageError(f"Error creating appointment: {exc}") from exc

        sm.transition(ReservationTrigger.APPOINTMENT_WRITTEN)
        logger.info("Appointment created: %s for %s on %s at %s",
                    appointment.id, appointment.client_name, date, normalized_time)

        try:
            tier, slot_id, outcome = self._claim_slot(service_id, date, normalized_time)
        except StorageError as exc:
            sm.transition(ReservationTrigger.CLAIM_ERROR)
            self._compensate(sm, appointment)
            raise StorageError(f"Error updating slot availability: {exc}") from exc

        if outcome == LOST:
            sm.transition(ReservationTrigger.CLAIM_LOST)
            self._compensate(sm, appointment)
            raise SlotTakenError(
                f"{date} at {normalized_time} was just booked by someone else."
            )

        if outcome == MISSING:
            message = (
                f"No slot row found for {service_id} on {date} at {normalized_time}; "
                f"appointment {appointment.id} is not reflected in availability."
            )
            if self._stale_policy == "reject":
                sm.transition(ReservationTrigger.STALE_REJECTED)
                self._compensate(sm, appointment)
                raise StaleSlotError(message)
            sm.transition(ReservationTrigger.SLOT_MISSING)
            logger.warning(message)
            warnings.warn(message, StaleSlotWarning, stacklevel=2)
            return self._reservation(sm, appointment, tier=None, stale=True)

        try:
            self._store.set_appointment_claim(appointment.id, tier, slot_id)
        except StorageError:
            logger.exception("Could not record claimed slot on %s", appointment.id)
        appointment = appointment.model_copy(
            update={"claimed_tier": tier, "claimed_slot_id": slot_id}
        )
        sm.transition(ReservationTrigger.SLOT_FLIPPED)
        sm.transition(ReservationTrigger.FINALIZED)
        return self._reservation(sm, appointment, tier=tier, stale=False)

    def _validate(
        self, sm: ReservationStateMachine, client_name: str, service_id: str, date: str, time: str
    ) -> tuple[str, str]:
        """Return the canonical (date, time) or raise ValidationError."""
        missing = [
            field_name
            for field_name, value in [
                ("client_name", client_name),
                ("service", service_id),
                ("date", date),
                ("time", time),
            ]
            if not value or not value.strip()
        ]
        if missing:
            sm.transition(ReservationTrigger.INPUT_INVALID)
            raise ValidationError(
                f"Cannot create booking - missing required fields: {', '.join(missing)}.",
                fields=missing,
            )

        malformed = []
        normalized_date = normalize_date(date)
        if normalized_date is None:
            malformed.append("date")
        normalized_time = normalize_time(time)
        if normalized_time is None:
            malformed.append("time")
        if malformed:
            sm.transition(ReservationTrigger.INPUT_INVALID)
            raise ValidationError(
                f"Cannot create booking - malformed fields: {', '.join(malformed)}.",
                fields=malformed,
            )
        return normalized_date, normalized_time

    def _claim_slot(
        self, service_id: str, date: str, time: str
    ) -> tuple[Optional[Tier], Optional[str], str]:
        """Flip exactly one slot row to unavailable, service-specific first."""
        date_id = self._store.find_date_record(date)
        if date_id is None:
            return None, None, MISSING

        service_slot = self._store.find_service_slot(service_id, date_id, time)
        if service_slot is not None:
            ok = self._store.set_service_slot_available(service_slot.id, False, expected=True)
            return Tier.SERVICE_SPECIFIC, service_slot.id, CLAIMED if ok else LOST

        general_slot = self._store.find_general_slot(date_id, time)
        if general_slot is not None:
            ok = self._store.set_general_slot_available(general_slot.id, False, expected=True)
            return Tier.GENERAL, general_slot.id, CLAIMED if ok else LOST

        return None, None, MISSING

    def _compensate(self, sm: ReservationStateMachine, appointment: Appointment) -> None:
        """Cancel an appointment whose slot could not be claimed."""
        try:
            self._store.update_appointment_status(
                appointment.id, AppointmentStatus.CANCELLED, expected=appointment.status
            )
        except StorageError:
            sm.transition(ReservationTrigger.COMPENSATION_FAILED)
            logger.exception("Compensation failed, appointment %s left %s",
                             appointment.id, appointment.status.value)
            return
        sm.transition(ReservationTrigger.COMPENSATION_DONE)
        logger.info("Appointment %s cancelled by compensation", appointment.id)

    @staticmethod
    def _reservation(
        sm: ReservationStateMachine, appointment: Appointment, tier: Optional[Tier], stale: bool
    ) -> Reservation:
        return Reservation(
            appointment=appointment,
            tier=tier,
            stale=stale,
            state=sm.current_state.value,
            history=sm.get_state_trace(),
        )

    # ------------------------------------------------------------------ #
    # Release and cancellation
    # ------------------------------------------------------------------ #

    def release(self, appointment: Appointment) -> Appointment:
        """
        Cancel an appointment and hand its time back to the general tier.

        If a service slot exists for the appointment's (service, date, time)
        it is deleted and a general slot is created for that time unless
        one already exists. Otherwise the general slot the booking claimed
        is made available again; a general slot is never created for it.
        Releasing an already cancelled appointment changes nothing.
        """
        current = self._require(appointment.id)
        if current.status == AppointmentStatus.CANCELLED:
            logger.debug("Appointment %s already released", current.id)
            return current
        if current.status == AppointmentStatus.COMPLETED:
            raise InvalidStatusTransitionError(
                f"Appointment {current.id} is completed and cannot be released."
            )

        if not self._store.update_appointment_status(
            current.id, AppointmentStatus.CANCELLED, expected=current.status
        ):
            logger.info("Appointment %s released concurrently", current.id)
            return self._require(current.id)

        date_id = self._store.find_date_record(current.date)
        if date_id is not None:
            service_slot = self._store.find_service_slot(current.service_id, date_id, current.time)
            if service_slot is not None:
                self._store.delete_service_slot(service_slot.id)
                self._detector.invalidate(current.service_id)
                self.return_to_general(date_id, current.time)
            elif current.claimed_tier == Tier.GENERAL and current.claimed_slot_id:
                self._restore_flag(Tier.GENERAL, current.claimed_slot_id)

        logger.info("Appointment released: %s (%s on %s at %s)",
                    current.id, current.service_id, current.date, current.time)
        return current.model_copy(update={"status": AppointmentStatus.CANCELLED})

    def return_to_general(self, date_id: str, time: str) -> None:
        """Create an available general slot for (date, time) unless one exists."""
        if self._store.find_general_slot(date_id, time) is not None:
            return
        self._store.insert_general_slot(date_id, time, is_available=True)
        logger.info("Time %s returned to the general slots of %s", time, date_id)

    def cancel(self, appointment_id: str) -> Appointment:
        """Cancel an appointment and reopen exactly the slot it claimed."""
        appointment = self._set_status(appointment_id, AppointmentStatus.CANCELLED)
        if appointment.claimed_tier is not None and appointment.claimed_slot_id:
            self._restore_flag(appointment.claimed_tier, appointment.claimed_slot_id)
        logger.info("Appointment cancelled: %s", appointment_id)
        return appointment

    def _restore_flag(self, tier: Tier, slot_id: str) -> None:
        try:
            if tier == Tier.SERVICE_SPECIFIC:
                self._store.set_service_slot_available(slot_id, True)
            else:
                self._store.set_general_slot_available(slot_id, True)
        except RecordNotFoundError:
            logger.warning("Claimed %s slot %s no longer exists", tier.value, slot_id)

    # ------------------------------------------------------------------ #
    # Status
    # ------------------------------------------------------------------ #

    def confirm(self, appointment_id: str) -> Appointment:
        return self._set_status(appointment_id, AppointmentStatus.CONFIRMED)

    def complete(self, appointment_id: str) -> Appointment:
        return self._set_status(appointment_id, AppointmentStatus.COMPLETED)

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._store.get_appointment(appointment_id)

    def list_appointments(
        self, date: Optional[str] = None, service_id: Optional[str] = None
    ) -> list[Appointment]:
        return self._store.list_appointments(date=date, service_id=service_id)

    def _set_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        current = self._require(appointment_id)
        if status not in STATUS_TRANSITIONS[current.status]:
            raise InvalidStatusTransitionError(
                f"Appointment {appointment_id} cannot go from "
                f"'{current.status.value}' to '{status.value}'."
            )
        if not self._store.update_appointment_status(
            appointment_id, status, expected=current.status
        ):
            raise StorageError(f"Appointment {appointment_id} was changed concurrently.")
        return current.model_copy(update={"status": status})

    def _require(self, appointment_id: str) -> Appointment:
        appointment = self._store.get_appointment(appointment_id)
        if appointment is None:
            raise RecordNotFoundError(f"Appointment {appointment_id} not found.")
        return appointment
