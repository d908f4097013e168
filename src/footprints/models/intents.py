"""Intents consumed one at a time by the view-state reducer.

Presentation code sends :class:`DaySelected`, :class:`StartTracking`,
:class:`StopTracking` and :class:`ErrorDismissed`; the tracking session
sends :class:`PointRecorded` and :class:`ErrorOccurred`.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import Field, field_validator

from footprints.models._base import FootprintsBaseModel
from footprints.models.location import LocationPoint


class DaySelected(FootprintsBaseModel):
    kind: Literal["day_selected"] = "day_selected"
    day: date


class StartTracking(FootprintsBaseModel):
    kind: Literal["start_tracking"] = "start_tracking"


class StopTracking(FootprintsBaseModel):
    kind: Literal["stop_tracking"] = "stop_tracking"


class PointRecorded(FootprintsBaseModel):
    """A point has already been appended to the store."""

    kind: Literal["point_recorded"] = "point_recorded"
    point: LocationPoint


class ErrorOccurred(FootprintsBaseModel):
    kind: Literal["error_occurred"] = "error_occurred"
    message: str = Field(..., description="Text shown to the user")

    @field_validator("message")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        message = value.strip()
        if not message:
            raise ValueError("message must be non-empty")
        return message


class ErrorDismissed(FootprintsBaseModel):
    kind: Literal["error_dismissed"] = "error_dismissed"


Intent = DaySelected | StartTracking | StopTracking | PointRecorded | ErrorOccurred | ErrorDismissed
