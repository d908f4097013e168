"""footprints - day-by-day location history tracker."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("footprints")
except PackageNotFoundError:
    __version__ = "0+local"
from footprints.config import DayBoundaryPolicy, FootprintsConfig, MqttSettings
from footprints.controller import MapController
from footprints.exceptions import (
    FeedError,
    FootprintsConfigError,
    FootprintsError,
    PointValidationError,
    StorageError,
    StorageLoadError,
    StoragePersistError,
)
from footprints.feed import FeedErrorEvent, FeedSubscription, FixEvent, LocationFeed, QueueLocationFeed
from footprints.models import (
    DaySelected,
    ErrorDismissed,
    ErrorOccurred,
    Intent,
    LocationPoint,
    PointRecorded,
    RawFix,
    StartTracking,
    StopTracking,
    TrackingStatus,
    ViewSnapshot,
    Viewport,
)
from footprints.presentation import MapRender, render
from footprints.reducer import reduce
from footprints.storage import FileStorage, KeyValueStorage, MemoryStorage
from footprints.store import LocationStore
from footprints.tracking import TrackingSession
from footprints.viewport import compute_viewport

__all__ = [
    "__version__",
    "DayBoundaryPolicy",
    "DaySelected",
    "ErrorDismissed",
    "ErrorOccurred",
    "FeedError",
    "FeedErrorEvent",
    "FeedSubscription",
    "FileStorage",
    "FixEvent",
    "FootprintsConfig",
    "FootprintsConfigError",
    "FootprintsError",
    "Intent",
    "KeyValueStorage",
    "LocationFeed",
    "LocationPoint",
    "LocationStore",
    "MapController",
    "MapRender",
    "MemoryStorage",
    "MqttSettings",
    "PointRecorded",
    "PointValidationError",
    "QueueLocationFeed",
    "RawFix",
    "StartTracking",
    "StopTracking",
    "StorageError",
    "StorageLoadError",
    "StoragePersistError",
    "TrackingSession",
    "TrackingStatus",
    "ViewSnapshot",
    "Viewport",
    "compute_viewport",
    "reduce",
    "render",
]
