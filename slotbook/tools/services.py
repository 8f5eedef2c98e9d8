"""Service catalog with pricing and durations."""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from slotbook.schemas.booking_schema import Service

logger = logging.getLogger(__name__)

DEFAULT_SERVICES: dict[str, dict] = {
    "haircut": {
        "name": "Haircut",
        "price": "60.00",
        "duration": "45 min",
    },
    "manicure": {
        "name": "Manicure",
        "price": "35.00",
        "duration": "40 min",
    },
    "pedicure": {
        "name": "Pedicure",
        "price": "45.00",
        "duration": "50 min",
    },
    "coloring": {
        "name": "Hair Coloring",
        "price": "150.00",
        "duration": "2 h",
    },
    "eyebrow design": {
        "name": "Eyebrow Design",
        "price": "40.00",
        "duration": "30 min",
    },
}

FALLBACK_SERVICE_NAME = "Service"


class ServiceCatalog:
    """Read-mostly registry of bookable services, keyed by service id."""

    def __init__(self, services: Optional[Iterable[Service]] = None) -> None:
        if services is None:
            services = [
                Service(id=sid, name=info["name"], price=Decimal(info["price"]),
                        duration=info["duration"])
                for sid, info in DEFAULT_SERVICES.items()
            ]
        self._services: dict[str, Service] = {s.id: s for s in services}

    def register(self, service: Service) -> None:
        """Add or replace a service."""
        self._services[service.id] = service
        logger.debug("Service registered: %s", service.id)

    def get(self, service_id: str) -> Optional[Service]:
        return self._services.get(service_id)

    def all(self) -> list[Service]:
        """Return all services ordered by name."""
        return sorted(self._services.values(), key=lambda s: s.name)

    def display_name(self, service_id: str) -> str:
        """Return the service's display name, or a generic label if unknown."""
        service = self._services.get(service_id)
        return service.name if service else FALLBACK_SERVICE_NAME

    def __contains__(self, service_id: object) -> bool:
        return service_id in self._services
