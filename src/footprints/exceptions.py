"""Custom exception hierarchy for footprints."""

from __future__ import annotations


class FootprintsError(Exception):
    """Base exception for all footprints errors."""


class FootprintsConfigError(FootprintsError):
    """Invalid or missing configuration."""


class FeedError(FootprintsError):
    """The location feed failed (permission revoked, signal lost, broker down)."""


class PointValidationError(FootprintsError):
    """A fix carried coordinates outside the valid latitude/longitude range."""

    def __init__(self, message: str, *, latitude: float, longitude: float) -> None:
        self.latitude = latitude
        self.longitude = longitude
        super().__init__(message)


class StorageError(FootprintsError):
    """Durable storage failure."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class StorageLoadError(StorageError):
    """Persisted history is corrupt or unreadable."""


class StoragePersistError(StorageError):
    """Writing the history to durable storage failed.

    The in-memory history stays authoritative for the running session;
    callers may retry ``persist()`` or warn the user.
    """
