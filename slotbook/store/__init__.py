from slotbook.store.base import AvailabilityStore
from slotbook.store.memory import InMemoryAvailabilityStore

__all__ = ["AvailabilityStore", "InMemoryAvailabilityStore"]
