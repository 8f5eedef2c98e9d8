"""Concurrent sessions racing for the same slot against one shared store."""

import asyncio

import pytest

from slotbook.errors import SlotTakenError
from slotbook.logging_context import get_session_id, session_scope
from slotbook.schemas.booking_schema import AppointmentStatus
from tests.conftest import CONFIGURED, DAY, OTHER, THIRD, seed_general, seed_service


def _session_book(engine, session_id, client, service_id, time="09:00"):
    return engine.book(client, service_id, DAY, time, session_id=session_id)


async def _race(engine, attempts):
    return await asyncio.gather(
        *(asyncio.to_thread(_session_book, engine, *attempt) for attempt in attempts),
        return_exceptions=True,
    )


def _split(results):
    wins = [r for r in results if not isinstance(r, BaseException)]
    losses = [r for r in results if isinstance(r, BaseException)]
    return wins, losses


class TestConcurrentBooking:
    @pytest.mark.asyncio
    async def test_two_sessions_one_service_slot(self, engine, store):
        slot = seed_service(store, CONFIGURED, DAY, "09:00")

        results = await _race(engine, [
            ("S-1", "Ana", CONFIGURED),
            ("S-2", "Bia", CONFIGURED),
        ])

        wins, losses = _split(results)
        assert len(wins) == 1
        assert len(losses) == 1
        assert isinstance(losses[0], SlotTakenError)
        assert store.get_service_slot(slot.id).is_available is False
        assert len(store.list_appointments(active_only=True)) == 1

    @pytest.mark.asyncio
    async def test_many_sessions_one_general_slot(self, engine, store):
        date_id = seed_general(store, DAY, {"09:00": True})

        results = await _race(engine, [
            (f"S-{i}", f"Client {i}", OTHER if i % 2 else THIRD) for i in range(12)
        ])

        wins, losses = _split(results)
        assert len(wins) == 1
        assert all(isinstance(exc, SlotTakenError) for exc in losses)
        assert store.find_general_slot(date_id, "09:00").is_available is False

        active = store.list_appointments(active_only=True)
        assert len(active) == 1
        assert active[0].id == wins[0].appointment.id
        cancelled = [
            a for a in store.list_appointments() if a.status == AppointmentStatus.CANCELLED
        ]
        assert len(cancelled) + len(active) == len(store.list_appointments())

    @pytest.mark.asyncio
    async def test_different_slots_do_not_conflict(self, engine, store):
        seed_general(store, DAY, {"09:00": True, "10:00": True})

        results = await _race(engine, [
            ("S-1", "Ana", OTHER, "09:00"),
            ("S-2", "Bia", OTHER, "10:00"),
        ])

        wins, losses = _split(results)
        assert len(wins) == 2
        assert losses == []
        assert engine.slots_for(OTHER, DAY) == []


def test_session_id_is_per_context():
    async def other_session():
        with session_scope("S-task"):
            return get_session_id()

    with session_scope("S-main"):
        assert asyncio.run(other_session()) == "S-task"
        assert get_session_id() == "S-main"
