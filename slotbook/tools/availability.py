"""
Date catalogs and time-slot resolution for the two availability tiers.

Both lookups feed optional UI affordances, so storage errors are logged and
degrade to "nothing bookable" instead of propagating.
"""

import logging
from datetime import date
from typing import Optional

from slotbook.errors import StorageError
from slotbook.schemas.booking_schema import SlotChoice, Tier
from slotbook.store.base import AvailabilityStore
from slotbook.tools.configuration import ConfigurationDetector
from slotbook.utils import normalize_date, today_iso

logger = logging.getLogger(__name__)

NO_TIMES_FOR_SERVICE_MESSAGE = (
    "There are no times available for this service on this date. "
    "Contact us to check other options."
)
NO_TIMES_MESSAGE = (
    "There are no times available on this date. "
    "Please choose another date or contact us."
)


class DateCatalog:
    """Lists the bookable future dates of a service."""

    def __init__(self, store: AvailabilityStore, detector: ConfigurationDetector) -> None:
        self._store = store
        self._detector = detector

    def dates_for(self, service_id: str, today: Optional[date] = None) -> list[str]:
        """
        Return bookable dates (YYYY-MM-DD) for a service, ascending, from today on.

        Service-specific tier: dates holding at least one available slot of
        the service. General tier: every registered date, even when all of
        its times are taken; that is decided when times are resolved.
        """
        cutoff = today_iso(today)
        try:
            if self._detector.tier_for(service_id) == Tier.SERVICE_SPECIFIC:
                dates = self._service_dates(service_id)
            else:
                dates = [record.date for record in self._store.list_date_records()]
        except StorageError:
            logger.exception("Error fetching available dates for service %s", service_id)
            return []
        return sorted({d for d in dates if d >= cutoff})

    def _service_dates(self, service_id: str) -> list[str]:
        dates = []
        for slot in self._store.list_service_slots(service_id=service_id, available_only=True):
            record = self._store.get_date_record(slot.date_id)
            if record is not None:
                dates.append(record.date)
        return dates


class AvailabilityResolver:
    """Produces the ordered open times for a (service, date) pair."""

    def __init__(self, store: AvailabilityStore, detector: ConfigurationDetector) -> None:
        self._store = store
        self._detector = detector

    def slots_for(self, service_id: str, date: str) -> list[SlotChoice]:
        """
        Resolve the open times offered for a service on a date.

        Returns an empty list when the date is not registered, when the
        governing tier has nothing open, or when the store fails.
        """
        try:
            date_id = self._find_date(date)
            if date_id is None:
                return []

            if self._detector.tier_for(service_id) == Tier.SERVICE_SPECIFIC:
                rows = self._store.list_service_slots(
                    service_id=service_id, date_id=date_id, available_only=True
                )
                choices = [SlotChoice(time=r.time, is_available=r.is_available) for r in rows]
            else:
                choices = self._general_choices(date_id)
        except StorageError:
            logger.exception("Error fetching times for %s on %s", service_id, date)
            return []

        return sorted(choices, key=lambda c: c.time)

    def general_slots_for(self, date: str) -> list[SlotChoice]:
        """Resolve general-tier times for a date when no service is selected."""
        try:
            date_id = self._find_date(date)
            if date_id is None:
                return []
            choices = self._general_choices(date_id)
        except StorageError:
            logger.exception("Error fetching general times on %s", date)
            return []
        return sorted(choices, key=lambda c: c.time)

    def _find_date(self, date: str) -> Optional[str]:
        normalized = normalize_date(date) if date else None
        return self._store.find_date_record(normalized) if normalized else None

    def _general_choices(self, date_id: str) -> list[SlotChoice]:
        # A time claimed by any service on this date is never offered generally.
        claimed = {s.time for s in self._store.list_service_slots(date_id=date_id)}
        return [
            SlotChoice(time=row.time, is_available=row.is_available)
            for row in self._store.list_general_slots(date_id, available_only=True)
            if row.time not in claimed
        ]

    def empty_message(self, service_id: Optional[str], date: str) -> str:
        """Message shown when a selected date resolves to no times."""
        if service_id and self._detector.tier_for(service_id) == Tier.SERVICE_SPECIFIC:
            return NO_TIMES_FOR_SERVICE_MESSAGE
        return NO_TIMES_MESSAGE
