"""Tests for booking, release, cancellation, and appointment status."""

import warnings

import pytest

from slotbook.engine import BookingEngine
from slotbook.errors import (
    InvalidStatusTransitionError,
    RecordNotFoundError,
    SlotTakenError,
    StaleSlotError,
    StaleSlotWarning,
    StorageError,
    ValidationError,
)
from slotbook.schemas.booking_schema import AppointmentStatus, Tier
from slotbook.store.memory import InMemoryAvailabilityStore
from tests.conftest import CONFIGURED, DAY, OTHER, THIRD, seed_general, seed_service


def _times(choices):
    return [c.time for c in choices]


def _boom(*args, **kwargs):
    raise StorageError("store unreachable")


class TestValidation:
    def setup_method(self):
        self.engine = BookingEngine(InMemoryAvailabilityStore())

    def test_missing_fields_are_listed(self):
        with pytest.raises(ValidationError) as exc_info:
            self.engine.book("  ", CONFIGURED, "", "09:00")
        assert exc_info.value.fields == ["client_name", "date"]
        assert "missing required fields" in str(exc_info.value)

    def test_malformed_date_and_time(self):
        with pytest.raises(ValidationError) as exc_info:
            self.engine.book("Ana", CONFIGURED, "15/01/2030", "9h")
        assert exc_info.value.fields == ["date", "time"]

    def test_nothing_written_on_validation_error(self):
        with pytest.raises(ValidationError):
            self.engine.book("Ana", "", DAY, "09:00")
        assert self.engine.store.list_appointments() == []


class TestBook:
    def test_configured_service_scenario(self, engine, store):
        seed_general(store, DAY, {"09:00": True, "10:00": True})
        seed_service(store, CONFIGURED, DAY, "09:00")

        reservation = engine.book("Ana", CONFIGURED, DAY, "09:00")

        assert reservation.appointment.status == AppointmentStatus.PENDING
        assert reservation.appointment.client_name == "Ana"
        assert reservation.tier == Tier.SERVICE_SPECIFIC
        assert reservation.stale is False
        assert "09:00" not in _times(engine.slots_for(CONFIGURED, DAY))

    def test_flips_exactly_the_service_slot(self, engine, store):
        date_id = seed_general(store, DAY, {"09:00": True})
        service_slot = seed_service(store, CONFIGURED, DAY, "09:00")

        engine.book("Ana", CONFIGURED, DAY, "09:00")

        assert store.get_service_slot(service_slot.id).is_available is False
        assert store.find_general_slot(date_id, "09:00").is_available is True

    def test_general_tier_booking_flips_general_slot(self, engine, store):
        date_id = seed_general(store, DAY, {"09:00": True, "10:00": True})

        reservation = engine.book("Bia", OTHER, DAY, "09:00")

        assert reservation.tier == Tier.GENERAL
        assert store.find_general_slot(date_id, "09:00").is_available is False
        assert _times(engine.slots_for(THIRD, DAY)) == ["10:00"]

    def test_claimed_slot_recorded_on_appointment(self, engine, store):
        slot = seed_service(store, CONFIGURED, DAY, "09:00")
        reservation = engine.book("Ana", CONFIGURED, DAY, "09:00")
        stored = store.get_appointment(reservation.appointment.id)
        assert stored.claimed_tier == Tier.SERVICE_SPECIFIC
        assert stored.claimed_slot_id == slot.id

    def test_time_with_seconds_is_normalized(self, engine, store):
        seed_general(store, DAY, {"09:00": True})
        reservation = engine.book("Ana", OTHER, DAY, "09:00:00")
        assert reservation.appointment.time == "09:00"
        assert reservation.tier == Tier.GENERAL

    def test_state_trace(self, engine, store):
        seed_general(store, DAY, {"09:00": True})
        reservation = engine.book("Ana", OTHER, DAY, "09:00")
        assert reservation.state == "reserved"
        assert reservation.history == [
            "started", "validated", "appointment_created", "slot_claimed", "reserved",
        ]


class TestDoubleBooking:
    def test_same_service_slot_twice(self, engine, store):
        seed_service(store, CONFIGURED, DAY, "09:00")
        engine.book("Ana", CONFIGURED, DAY, "09:00")
        with pytest.raises(SlotTakenError):
            engine.book("Bia", CONFIGURED, DAY, "09:00")
        active = store.list_appointments(active_only=True)
        assert [a.client_name for a in active] == ["Ana"]

    def test_shared_general_slot_across_services(self, engine, store):
        seed_general(store, DAY, {"09:00": True})
        engine.book("Ana", OTHER, DAY, "09:00")

        with pytest.raises(SlotTakenError):
            engine.book("Bia", THIRD, DAY, "09:00")

        loser = store.list_appointments(service_id=THIRD)
        assert len(loser) == 1
        assert loser[0].status == AppointmentStatus.CANCELLED

    def test_disabled_service_slot_is_not_bookable(self, engine, store):
        slot = seed_service(store, CONFIGURED, DAY, "09:00")
        engine.toggle_service_time(slot.id)
        with pytest.raises(SlotTakenError):
            engine.book("Ana", CONFIGURED, DAY, "09:00")
        assert store.list_appointments(active_only=True) == []

    def test_padded_date_is_the_same_slot(self, engine, store):
        seed_general(store, DAY, {"09:00": True})
        engine.book("Ana", OTHER, DAY, "09:00")

        with pytest.raises(SlotTakenError):
            engine.book("Bia", OTHER, DAY + " ", "09:00")
        with pytest.raises(SlotTakenError):
            engine.book("Caio", THIRD, " " + DAY, "09:00")

        active = store.list_appointments(active_only=True)
        assert [a.client_name for a in active] == ["Ana"]


class TestInputNormalization:
    def test_unpadded_date_books_the_registered_slot(self, engine, store):
        date_id = seed_general(store, DAY, {"09:00": True})

        reservation = engine.book("Ana", OTHER, "2030-1-15", "09:00")

        assert reservation.appointment.date == DAY
        assert reservation.tier == Tier.GENERAL
        assert reservation.stale is False
        assert store.find_general_slot(date_id, "09:00").is_available is False
        assert [a.date for a in store.list_appointments(date=DAY)] == [DAY]

    def test_service_id_is_stripped(self, engine, store):
        slot = seed_service(store, CONFIGURED, DAY, "09:00")

        reservation = engine.book("Ana", f"  {CONFIGURED} ", DAY, "09:00")

        assert reservation.appointment.service_id == CONFIGURED
        assert reservation.tier == Tier.SERVICE_SPECIFIC
        assert store.get_service_slot(slot.id).is_available is False

    def test_appointment_always_starts_pending(self, store, monkeypatch):
        monkeypatch.setenv("DEFAULT_APPOINTMENT_STATUS", "confirmed")
        engine = BookingEngine(store)
        seed_general(store, DAY, {"09:00": True})
        reservation = engine.book("Ana", OTHER, DAY, "09:00")
        assert reservation.appointment.status == AppointmentStatus.PENDING

    def test_unknown_stale_policy_is_rejected(self, store):
        with pytest.raises(ValueError, match="stale_policy"):
            BookingEngine(store, stale_policy="ignore")


class TestStaleSlot:
    def test_missing_slot_keeps_appointment_with_warning(self, engine, store):
        seed_general(store, DAY, {"10:00": True})
        with pytest.warns(StaleSlotWarning):
            reservation = engine.book("Ana", OTHER, DAY, "09:00")
        assert reservation.stale is True
        assert reservation.tier is None
        assert reservation.state == "stale"
        assert store.get_appointment(reservation.appointment.id).is_active

    def test_unregistered_date_is_stale(self, engine):
        with pytest.warns(StaleSlotWarning):
            reservation = engine.book("Ana", OTHER, DAY, "09:00")
        assert reservation.stale is True

    def test_reject_policy_cancels_appointment(self, store):
        engine = BookingEngine(store, stale_policy="reject")
        seed_general(store, DAY, {"10:00": True})
        with pytest.raises(StaleSlotError):
            engine.book("Ana", OTHER, DAY, "09:00")
        assert store.list_appointments()[0].status == AppointmentStatus.CANCELLED


class TestStorageFailures:
    def test_appointment_write_failure_flips_nothing(self, engine, store, monkeypatch):
        date_id = seed_general(store, DAY, {"09:00": True})
        monkeypatch.setattr(store, "insert_appointment", _boom)
        with pytest.raises(StorageError):
            engine.book("Ana", OTHER, DAY, "09:00")
        assert store.find_general_slot(date_id, "09:00").is_available is True

    def test_claim_failure_compensates(self, engine, store, monkeypatch):
        seed_general(store, DAY, {"09:00": True})
        monkeypatch.setattr(store, "find_general_slot", _boom)
        with pytest.raises(StorageError):
            engine.book("Ana", OTHER, DAY, "09:00")
        assert store.list_appointments()[0].status == AppointmentStatus.CANCELLED


class TestRelease:
    def test_release_returns_service_time_to_general_once(self, engine, store):
        seed_service(store, CONFIGURED, DAY, "09:00")
        appointment = engine.book("Ana", CONFIGURED, DAY, "09:00").appointment

        engine.release(appointment)
        engine.release(appointment)

        assert _times(engine.slots_for(OTHER, DAY)) == ["09:00"]
        date_id = store.find_date_record(DAY)
        assert [s.time for s in store.list_general_slots(date_id)] == ["09:00"]
        assert store.get_appointment(appointment.id).status == AppointmentStatus.CANCELLED

    def test_release_does_not_duplicate_existing_general_slot(self, engine, store):
        date_id = seed_general(store, DAY, {"09:00": True})
        seed_service(store, CONFIGURED, DAY, "09:00")
        appointment = engine.book("Ana", CONFIGURED, DAY, "09:00").appointment

        engine.release(appointment)

        assert len(store.list_general_slots(date_id)) == 1

    def test_release_reopens_general_booking(self, engine, store):
        date_id = seed_general(store, DAY, {"09:00": True})
        appointment = engine.book("Ana", OTHER, DAY, "09:00").appointment

        engine.release(appointment)
        engine.release(appointment)

        assert store.find_general_slot(date_id, "09:00").is_available is True
        assert _times(engine.slots_for(OTHER, DAY)) == ["09:00"]

    def test_release_never_resurrects_undisplaced_general_slot(self, engine, store):
        date_id = seed_general(store, DAY, {"10:00": True})
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", StaleSlotWarning)
            appointment = engine.book("Ana", OTHER, DAY, "09:00").appointment

        engine.release(appointment)

        assert store.find_general_slot(date_id, "09:00") is None

    def test_second_release_leaves_rebooked_slot_alone(self, engine, store):
        date_id = seed_general(store, DAY, {"09:00": True})
        first = engine.book("Ana", OTHER, DAY, "09:00").appointment
        engine.release(first)
        engine.book("Bia", OTHER, DAY, "09:00")

        engine.release(first)

        assert store.find_general_slot(date_id, "09:00").is_available is False

    def test_completed_appointment_cannot_be_released(self, engine, store):
        seed_general(store, DAY, {"09:00": True})
        appointment = engine.book("Ana", OTHER, DAY, "09:00").appointment
        engine.reservations.confirm(appointment.id)
        engine.reservations.complete(appointment.id)
        with pytest.raises(InvalidStatusTransitionError):
            engine.release(appointment)


class TestCancel:
    def test_cancel_restores_service_flag_and_keeps_configuration(self, engine, store):
        slot = seed_service(store, CONFIGURED, DAY, "09:00")
        appointment = engine.book("Ana", CONFIGURED, DAY, "09:00").appointment

        cancelled = engine.cancel(appointment.id)

        assert cancelled.status == AppointmentStatus.CANCELLED
        assert store.get_service_slot(slot.id).is_available is True
        assert engine.has_configuration(CONFIGURED)
        assert _times(engine.slots_for(CONFIGURED, DAY)) == ["09:00"]

    def test_cancel_twice_is_rejected(self, engine, store):
        seed_general(store, DAY, {"09:00": True})
        appointment = engine.book("Ana", OTHER, DAY, "09:00").appointment
        engine.cancel(appointment.id)
        with pytest.raises(InvalidStatusTransitionError):
            engine.cancel(appointment.id)

    def test_cancel_unknown_appointment(self, engine):
        with pytest.raises(RecordNotFoundError):
            engine.cancel("AP-MISSING")

    def test_slot_bookable_again_after_cancel(self, engine, store):
        seed_service(store, CONFIGURED, DAY, "09:00")
        first = engine.book("Ana", CONFIGURED, DAY, "09:00").appointment
        engine.cancel(first.id)
        second = engine.book("Bia", CONFIGURED, DAY, "09:00")
        assert second.state == "reserved"


class TestStatusTransitions:
    def test_pending_confirmed_completed(self, engine, store):
        seed_general(store, DAY, {"09:00": True})
        appointment = engine.book("Ana", OTHER, DAY, "09:00").appointment
        assert engine.reservations.confirm(appointment.id).status == AppointmentStatus.CONFIRMED
        assert engine.reservations.complete(appointment.id).status == AppointmentStatus.COMPLETED

    def test_pending_cannot_complete(self, engine, store):
        seed_general(store, DAY, {"09:00": True})
        appointment = engine.book("Ana", OTHER, DAY, "09:00").appointment
        with pytest.raises(InvalidStatusTransitionError):
            engine.reservations.complete(appointment.id)

    def test_list_appointments_by_date(self, engine, store):
        seed_general(store, DAY, {"10:00": True, "09:00": True})
        engine.book("Bia", OTHER, DAY, "10:00")
        engine.book("Ana", OTHER, DAY, "09:00")
        listed = engine.reservations.list_appointments(date=DAY)
        assert [a.client_name for a in listed] == ["Ana", "Bia"]
