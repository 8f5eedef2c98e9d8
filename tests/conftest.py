"""Shared test fixtures and helpers."""

from datetime import date

import pytest

from slotbook.engine import BookingEngine
from slotbook.schemas.booking_schema import ServiceSlot
from slotbook.store.memory import InMemoryAvailabilityStore
from slotbook.workflow.state_machine import ReservationStateMachine

TODAY = date(2030, 1, 10)
DAY = "2030-01-15"
NEXT_DAY = "2030-01-16"
PAST_DAY = "2030-01-05"

CONFIGURED = "haircut"
OTHER = "manicure"
THIRD = "pedicure"


@pytest.fixture
def store():
    return InMemoryAvailabilityStore()


@pytest.fixture
def engine(store):
    return BookingEngine(store)


@pytest.fixture
def state_machine():
    return ReservationStateMachine()


def seed_general(
    store: InMemoryAvailabilityStore, day: str, times: dict[str, bool]
) -> str:
    """Register general slots directly in the store. Returns the date id."""
    date_id = store.upsert_date_record(day)
    for time, available in times.items():
        store.insert_general_slot(date_id, time, is_available=available)
    return date_id


def seed_service(
    store: InMemoryAvailabilityStore,
    service_id: str,
    day: str,
    time: str,
    available: bool = True,
) -> ServiceSlot:
    """Register a service slot directly, without displacing general slots."""
    date_id = store.upsert_date_record(day)
    return store.insert_service_slot(service_id, date_id, time, is_available=available)
