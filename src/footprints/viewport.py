"""Map viewport derived from a set of points."""

from __future__ import annotations

from collections.abc import Sequence

from footprints.models.location import LocationPoint
from footprints.models.state import Viewport

DEFAULT_SPAN_METERS = 1000.0


def compute_viewport(points: Sequence[LocationPoint], *, span_meters: float = DEFAULT_SPAN_METERS) -> Viewport | None:
    """Center on the mean latitude/longitude with a fixed span.

    The span does not grow to fit the points. The centroid is a plain
    arithmetic mean, so sets crossing the antimeridian are centered on the
    wrong side of the globe.

    Returns ``None`` for an empty sequence.
    """
    if not points:
        return None
    count = len(points)
    return Viewport(
        center_latitude=sum(point.latitude for point in points) / count,
        center_longitude=sum(point.longitude for point in points) / count,
        latitudinal_meters=span_meters,
        longitudinal_meters=span_meters,
    )
