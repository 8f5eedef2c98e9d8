from slotbook.engine import BookingEngine
from slotbook.store.memory import InMemoryAvailabilityStore

__all__ = ["BookingEngine", "InMemoryAvailabilityStore"]
