"""Tracking status, viewport and the snapshot handed to the presentation layer."""

from __future__ import annotations

from datetime import date
from enum import StrEnum

from footprints.models._base import FootprintsBaseModel
from footprints.models.location import LocationPoint


class TrackingStatus(StrEnum):
    IDLE = "idle"
    ACTIVE = "active"


class Viewport(FootprintsBaseModel):
    """Map center plus a fixed physical span in meters."""

    center_latitude: float
    center_longitude: float
    latitudinal_meters: float
    longitudinal_meters: float


class ViewSnapshot(FootprintsBaseModel):
    """Immutable view state produced by the reducer.

    Parameters
    ----------
    selected_day : date
        Calendar day currently displayed.
    points : tuple of LocationPoint
        Points recorded on ``selected_day``, in insertion order.
    tracking : TrackingStatus
        Whether live tracking is on.
    viewport : Viewport or None
        Map framing for ``points``; retained from earlier snapshots when the
        current day has no points.
    error : str or None
        Message to surface as a dismissible alert.
    """

    selected_day: date
    points: tuple[LocationPoint, ...] = ()
    tracking: TrackingStatus = TrackingStatus.IDLE
    viewport: Viewport | None = None
    error: str | None = None

    @property
    def is_tracking(self) -> bool:
        return self.tracking == TrackingStatus.ACTIVE

    @classmethod
    def initial(cls, day: date) -> ViewSnapshot:
        return cls(selected_day=day)
