"""
Tier detection: does a service run on its own slots or the general ones?

A service is on the service-specific tier as soon as it has one
ServiceSlot row anywhere, with any availability flag. The tier then
applies to every date of that service; there is no per-date fallback.

``tier_for`` caches the answer per service together with the store's
configuration version for that service. Every call re-reads the version,
so an edit made through any engine sharing the store is seen on the next
call. ``has_configuration`` always counts rows in the store.
"""

import logging
import threading

from slotbook.errors import StorageError
from slotbook.schemas.booking_schema import Tier
from slotbook.store.base import AvailabilityStore

logger = logging.getLogger(__name__)


class ConfigurationDetector:
    """Resolves and caches the governing tier of each service."""

    def __init__(self, store: AvailabilityStore) -> None:
        self._store = store
        self._cache: dict[str, tuple[Tier, int]] = {}
        self._lock = threading.Lock()

    def has_configuration(self, service_id: str) -> bool:
        """True iff at least one ServiceSlot row exists for the service.

        Storage errors are logged and reported as "not configured".
        """
        try:
            return self._store.count_service_slots(service_id) > 0
        except StorageError:
            logger.exception("Error checking configuration for service %s", service_id)
            return False

    def tier_for(self, service_id: str) -> Tier:
        """Return the governing tier, served from cache while the version matches.

        A storage error yields the general tier without caching it.
        """
        try:
            # Read the version before counting so a concurrent edit is never cached as current.
            version = self._store.service_config_version(service_id)
            with self._lock:
                cached = self._cache.get(service_id)
            if cached is not None and cached[1] == version:
                return cached[0]
            configured = self._store.count_service_slots(service_id) > 0
        except StorageError:
            logger.exception("Error resolving tier for service %s", service_id)
            return Tier.GENERAL

        tier = Tier.SERVICE_SPECIFIC if configured else Tier.GENERAL
        with self._lock:
            self._cache[service_id] = (tier, version)
        logger.debug("Tier resolved for %s: %s (version %d)", service_id, tier.value, version)
        return tier

    def invalidate(self, service_id: str) -> None:
        """Drop the cached tier for one service after its slots changed."""
        with self._lock:
            self._cache.pop(service_id, None)

    def invalidate_all(self) -> None:
        with self._lock:
            self._cache.clear()
