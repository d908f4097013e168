"""Pure view-state reducer.

Given the current snapshot and one intent, returns the next snapshot.
The only outside input is the ``points_on_day`` query; side effects such
as starting the feed belong to :class:`~footprints.controller.MapController`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date

from footprints.models.intents import (
    DaySelected,
    ErrorDismissed,
    ErrorOccurred,
    Intent,
    PointRecorded,
    StartTracking,
    StopTracking,
)
from footprints.models.location import LocationPoint
from footprints.models.state import TrackingStatus, ViewSnapshot
from footprints.viewport import DEFAULT_SPAN_METERS, compute_viewport

PointsOnDay = Callable[[date], Sequence[LocationPoint]]
DayOf = Callable[[LocationPoint], date]


def _with_points(snapshot: ViewSnapshot, points: Sequence[LocationPoint], span_meters: float) -> dict[str, object]:
    viewport = compute_viewport(points, span_meters=span_meters)
    return {
        "points": tuple(points),
        # An empty day keeps whatever framing the map already had.
        "viewport": viewport if viewport is not None else snapshot.viewport,
    }


def reduce(
    snapshot: ViewSnapshot,
    intent: Intent,
    *,
    points_on_day: PointsOnDay,
    day_of: DayOf,
    span_meters: float = DEFAULT_SPAN_METERS,
) -> ViewSnapshot:
    """Return the snapshot that follows ``snapshot`` after ``intent``.

    Parameters
    ----------
    snapshot : ViewSnapshot
        Current state. Never mutated.
    intent : Intent
        The intent to apply.
    points_on_day : callable
        Day-scoped history query (``LocationStore.points_on_day``).
    day_of : callable
        Calendar day of a point in the store's reference zone
        (``LocationStore.day_of``).
    span_meters : float
        Fixed viewport span.
    """
    if isinstance(intent, DaySelected):
        points = points_on_day(intent.day)
        return snapshot.model_copy(
            update={"selected_day": intent.day, "error": None, **_with_points(snapshot, points, span_meters)}
        )

    if isinstance(intent, StartTracking):
        return snapshot.model_copy(update={"tracking": TrackingStatus.ACTIVE})

    if isinstance(intent, StopTracking):
        return snapshot.model_copy(update={"tracking": TrackingStatus.IDLE})

    if isinstance(intent, PointRecorded):
        if day_of(intent.point) != snapshot.selected_day:
            return snapshot
        points = points_on_day(snapshot.selected_day)
        return snapshot.model_copy(update=_with_points(snapshot, points, span_meters))

    if isinstance(intent, ErrorOccurred):
        return snapshot.model_copy(update={"error": intent.message})

    if isinstance(intent, ErrorDismissed):
        return snapshot.model_copy(update={"error": None})

    raise TypeError(f"Unsupported intent: {type(intent).__name__}")
