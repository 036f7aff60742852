"""Error kinds raised by the scheduling engine.

Domain code raises these; only the HTTP layer turns them into responses.
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for every scheduling failure."""


class InvalidPattern(SchedulingError):
    """Malformed day set, time window or date range. Nothing was generated."""


class NoOccurrencesSelected(SchedulingError):
    def __init__(self, message: str = "No practices selected to create"):
        super().__init__(message)


class NoSlotsSelected(SchedulingError):
    def __init__(self, message: str = "Please select at least one time slot"):
        super().__init__(message)


class ConflictsPresentUnconfirmed(SchedulingError):
    """Publish attempted with field conflicts and no explicit confirmation.

    Recoverable: publish again with confirmation set.
    """

    def __init__(self, conflicts: list):
        self.conflicts = conflicts
        count = len(conflicts)
        noun = "practices have" if count != 1 else "practice has"
        super().__init__(
            f"{count} {noun} field conflicts. "
            "Publishing will create double-bookings on the same field."
        )


class StoreWriteFailed(SchedulingError):
    """The store append failed. `result` says how much of the batch landed."""

    def __init__(self, result, cause: Optional[BaseException] = None):
        self.result = result
        self.cause = cause
        super().__init__(
            f"Store write failed after {result.succeeded} of "
            f"{result.succeeded + result.failed} occurrences: {result.first_error}"
        )


class InvalidTransition(SchedulingError):
    """Workflow action not legal in the current state."""


class SlotNotSelectable(SchedulingError):
    """Booked cells cannot be added to a selection."""
