"""Earliest-slot hint for services that run on their own slots."""

import logging
from datetime import date
from typing import Optional

from slotbook.config import settings
from slotbook.errors import StorageError
from slotbook.schemas.booking_schema import Suggestion, SuggestionKind, Tier
from slotbook.store.base import AvailabilityStore
from slotbook.tools.configuration import ConfigurationDetector
from slotbook.tools.services import ServiceCatalog
from slotbook.utils import format_day_month, today_iso

logger = logging.getLogger(__name__)


class SuggestionEngine:
    """Picks the chronologically earliest open slot of a configured service."""

    def __init__(
        self,
        store: AvailabilityStore,
        detector: ConfigurationDetector,
        catalog: ServiceCatalog,
        scan_cap: Optional[int] = None,
    ) -> None:
        self._store = store
        self._detector = detector
        self._catalog = catalog
        self._scan_cap = settings.catalog.suggestion_scan_cap if scan_cap is None else scan_cap
        if self._scan_cap < 1:
            raise ValueError(f"scan_cap must be >= 1, got {self._scan_cap}")

    def suggest(self, service_id: str, today: Optional[date] = None) -> Optional[Suggestion]:
        """
        Suggest the earliest open slot for a service.

        Returns None for services on the general tier. A configured service
        with nothing open from today on gets a PICK_DATE hint instead of a
        slot. The scan reads at most ``scan_cap`` rows, so the result is a
        best-effort hint, not a booking decision.
        """
        if self._detector.tier_for(service_id) != Tier.SERVICE_SPECIFIC:
            return None

        name = self._catalog.display_name(service_id)
        try:
            rows = self._store.list_service_slots(
                service_id=service_id,
                available_only=True,
                min_date=today_iso(today),
                limit=self._scan_cap,
            )
            dated = []
            for row in rows:
                record = self._store.get_date_record(row.date_id)
                if record is not None:
                    dated.append((record.date, row.time))
        except StorageError:
            logger.exception("Error generating suggestion for service %s", service_id)
            return None

        if not dated:
            return Suggestion(
                service_id=service_id,
                kind=SuggestionKind.PICK_DATE,
                message=f"{name} selected. Choose a date to see the available times.",
            )

        earliest_date, earliest_time = min(dated)
        return Suggestion(
            service_id=service_id,
            kind=SuggestionKind.SLOT,
            date=earliest_date,
            time=earliest_time,
            message=(
                f"{name} available on {format_day_month(earliest_date)} at {earliest_time}"
            ),
        )
