"""Exception taxonomy for the booking engine.

Resolution-path code (tiers, date catalogs, suggestions) catches
``StorageError`` and degrades to empty results. Reservation-path code
lets every error here propagate to the caller.
"""

from typing import Optional, Sequence


class SlotbookError(Exception):
    """Base class for all engine errors."""


class ValidationError(SlotbookError):
    """Raised when required booking fields are missing or malformed."""

    def __init__(self, message: str, fields: Optional[Sequence[str]] = None) -> None:
        super().__init__(message)
        self.fields: list[str] = list(fields or [])


class DuplicateSlotError(SlotbookError):
    """Raised when an administrator adds a slot that already exists."""


class ConfirmationRequiredError(SlotbookError):
    """Raised when a destructive administrative action is not confirmed."""


class InvalidStatusTransitionError(SlotbookError):
    """Raised when an appointment status change is not allowed."""


class StorageError(SlotbookError):
    """Raised when the store is unreachable or rejects a write."""


class RecordNotFoundError(StorageError):
    """Raised when a record id does not exist in the store."""


class SlotTakenError(StorageError):
    """Raised when a concurrent booking already claimed the slot."""


class StaleSlotError(SlotbookError):
    """Raised under the 'reject' policy when no slot row could be flipped."""


class StaleSlotWarning(UserWarning):
    """Issued when a booking was kept but no slot row was flipped."""
