"""
Booking engine: one object exposing every availability and reservation
operation over a single store.

The engine holds no per-session selection. Each call names its service
and date explicitly, so one instance can serve many client sessions.

Usage:
    engine = BookingEngine(InMemoryAvailabilityStore())
    engine.add_general_time("2026-10-20", "09:00")
    engine.slots_for("haircut", "2026-10-20")
    engine.book("Ana", "haircut", "2026-10-20", "09:00", session_id="S-1")

Reservation and admin calls accept ``session_id`` so their log lines can be
traced to the client session that made them.
"""

import logging
from datetime import date
from typing import ContextManager, Optional

from slotbook.config import settings
from slotbook.logging_context import session_scope
from slotbook.reconciliation.reconciler import ReconciliationReport, Reconciler
from slotbook.schemas.booking_schema import (
    Appointment,
    GeneralSlot,
    Reservation,
    ServiceSlot,
    SlotChoice,
    Suggestion,
    Tier,
)
from slotbook.store.base import AvailabilityStore
from slotbook.tools.admin import ServiceAvailabilityAdmin
from slotbook.tools.availability import AvailabilityResolver, DateCatalog
from slotbook.tools.booking import ReservationManager
from slotbook.tools.configuration import ConfigurationDetector
from slotbook.tools.services import ServiceCatalog
from slotbook.tools.suggestion import SuggestionEngine

logger = logging.getLogger(__name__)


class BookingEngine:
    """Facade over detector, catalogs, resolver, reservations, and admin."""

    def __init__(
        self,
        store: AvailabilityStore,
        catalog: Optional[ServiceCatalog] = None,
        stale_policy: Optional[str] = None,
    ) -> None:
        self.store = store
        self.catalog = catalog or ServiceCatalog()
        self.detector = ConfigurationDetector(store)
        self.dates = DateCatalog(store, self.detector)
        self.resolver = AvailabilityResolver(store, self.detector)
        self.suggestions = SuggestionEngine(store, self.detector, self.catalog)
        self.reservations = ReservationManager(store, self.detector, stale_policy=stale_policy)
        self.admin = ServiceAvailabilityAdmin(store, self.detector, self.reservations)
        self.reconciler = Reconciler(store)
        logger.debug("Booking engine '%s' ready", settings.engine_name)

    def session(self, session_id: str) -> ContextManager[str]:
        """Tag every log line of the calls made inside the block with ``session_id``."""
        return session_scope(session_id)

    # --- resolution ---

    def has_configuration(self, service_id: str) -> bool:
        return self.detector.has_configuration(service_id)

    def tier_for(self, service_id: str) -> Tier:
        return self.detector.tier_for(service_id)

    def dates_for(self, service_id: str, today: Optional[date] = None) -> list[str]:
        return self.dates.dates_for(service_id, today=today)

    def slots_for(self, service_id: Optional[str], date: str) -> list[SlotChoice]:
        """Open times for a date; general-tier times when no service is given."""
        if not service_id:
            return self.resolver.general_slots_for(date)
        return self.resolver.slots_for(service_id, date)

    def suggest(self, service_id: str, today: Optional[date] = None) -> Optional[Suggestion]:
        return self.suggestions.suggest(service_id, today=today)

    # --- reservation ---

    def book(
        self,
        client_name: str,
        service_id: str,
        date: str,
        time: str,
        session_id: Optional[str] = None,
    ) -> Reservation:
        with session_scope(session_id):
            return self.reservations.book(client_name, service_id, date, time)

    def release(self, appointment: Appointment, session_id: Optional[str] = None) -> Appointment:
        with session_scope(session_id):
            return self.reservations.release(appointment)

    def cancel(self, appointment_id: str, session_id: Optional[str] = None) -> Appointment:
        with session_scope(session_id):
            return self.reservations.cancel(appointment_id)

    # --- administration ---

    def add_service_time(
        self, service_id: str, date: str, time: str, session_id: Optional[str] = None
    ) -> ServiceSlot:
        with session_scope(session_id):
            return self.admin.add_service_time(service_id, date, time)

    def remove_service_time(
        self, slot_id: str, confirm: bool = False, session_id: Optional[str] = None
    ) -> list[Appointment]:
        with session_scope(session_id):
            return self.admin.remove_service_time(slot_id, confirm=confirm)

    def toggle_service_time(self, slot_id: str, session_id: Optional[str] = None) -> ServiceSlot:
        with session_scope(session_id):
            return self.admin.toggle_service_time(slot_id)

    def list_service_times(self, service_id: str, date: str) -> list[ServiceSlot]:
        return self.admin.list_service_times(service_id, date)

    def add_general_time(
        self, date: str, time: str, session_id: Optional[str] = None
    ) -> GeneralSlot:
        with session_scope(session_id):
            return self.admin.add_general_time(date, time)

    # --- maintenance ---

    def reconcile(self, repair: bool = False, today: Optional[date] = None) -> ReconciliationReport:
        """Scan for drift between appointments and slot flags, optionally fixing it."""
        report = self.reconciler.scan(today=today)
        if repair and report.has_drift:
            self.reconciler.repair(report)
        return report
