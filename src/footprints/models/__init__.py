"""Pydantic models for footprints records, intents and snapshots."""

from footprints.models.intents import (
    DaySelected,
    ErrorDismissed,
    ErrorOccurred,
    Intent,
    PointRecorded,
    StartTracking,
    StopTracking,
)
from footprints.models.location import HISTORY_ADAPTER, LocationPoint, RawFix, coordinates_in_range
from footprints.models.state import TrackingStatus, ViewSnapshot, Viewport

__all__ = [
    "HISTORY_ADAPTER",
    "DaySelected",
    "ErrorDismissed",
    "ErrorOccurred",
    "Intent",
    "LocationPoint",
    "PointRecorded",
    "RawFix",
    "StartTracking",
    "StopTracking",
    "TrackingStatus",
    "ViewSnapshot",
    "Viewport",
    "coordinates_in_range",
]
