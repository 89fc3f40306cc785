"""Exception types raised by the calendar sync pipeline."""
from typing import Optional


class SyncError(Exception):
    """Base class for all pipeline errors."""


class FetchError(SyncError):
    """Feed could not be retrieved (non-2xx response or network failure)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(SyncError):
    """Feed bytes are not a valid calendar document."""


class NormalizationError(SyncError):
    """An event date-time cannot be resolved to an absolute instant."""


class GeocodeError(SyncError):
    """Geocoding call failed or returned an unusable payload."""


class StoreError(SyncError):
    """The persistent store rejected a read or write."""


class SyncInProgressError(SyncError):
    """Another sync for the same source is already running."""
