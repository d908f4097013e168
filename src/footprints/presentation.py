"""Render model for a map screen.

:func:`render` flattens a :class:`ViewSnapshot` into what a map widget
draws: one marker per point, a path once there are two points, the region
to center on, the tracking button label and an optional alert.
"""

from __future__ import annotations

from dataclasses import dataclass

from footprints.models.state import ViewSnapshot, Viewport

START_LABEL = "Start Tracking"
STOP_LABEL = "Stop Tracking"
ALERT_TITLE = "Error"


@dataclass(frozen=True)
class Marker:
    latitude: float
    longitude: float
    title: str | None = None
    subtitle: str | None = None


@dataclass(frozen=True)
class Alert:
    title: str
    message: str


@dataclass(frozen=True)
class MapRender:
    markers: tuple[Marker, ...]
    path: tuple[tuple[float, float], ...]
    region: Viewport | None
    button_label: str
    alert: Alert | None

    @property
    def has_path(self) -> bool:
        return bool(self.path)


def render(snapshot: ViewSnapshot) -> MapRender:
    markers = tuple(
        Marker(latitude=p.latitude, longitude=p.longitude, title=p.title, subtitle=p.subtitle) for p in snapshot.points
    )
    path = tuple((m.latitude, m.longitude) for m in markers) if len(markers) > 1 else ()
    return MapRender(
        markers=markers,
        path=path,
        region=snapshot.viewport,
        button_label=STOP_LABEL if snapshot.is_tracking else START_LABEL,
        alert=Alert(title=ALERT_TITLE, message=snapshot.error) if snapshot.error else None,
    )
