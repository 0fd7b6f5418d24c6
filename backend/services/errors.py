"""
Exceptions raised by the activity log stores and the LogService facade.

  - ValidationError    bad input, rejected before any store is touched
  - StoreUnavailable   network / auth / timeout against a backing store
  - StoreCapacityError the in-memory store cannot hold any entry
  - FallbackExhausted  durable and in-memory appends both failed

They share a common base so the API layer can map them in one place.
"""

from typing import Iterable, Optional


class LogStoreError(Exception):
    """Base class for activity log failures."""


class ValidationError(LogStoreError):
    """
    Raised when a record or query request is missing required fields
    or carries malformed values.

    The exception keeps every problem found, not just the first one.
    """

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid input")


class StoreUnavailable(LogStoreError):
    """
    Raised when a backing store cannot be reached or does not answer
    within its timeout.
    """

    def __init__(self, backend: str, message: str):
        self.backend = backend
        super().__init__(f"{backend} unavailable: {message}")


class StoreCapacityError(LogStoreError):
    """Raised when the in-memory store has no room and nothing to evict."""


class FallbackExhausted(LogStoreError):
    """
    Raised by LogService.record when both the durable append and the
    in-memory fallback failed. The API layer degrades this to a
    console-only success response.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)
