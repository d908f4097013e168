"""Location records: raw feed fixes and stored history points."""

from __future__ import annotations

from pydantic import AliasChoices, Field, TypeAdapter, field_validator

from footprints.models._base import FootprintsBaseModel, UtcTimestamp

LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)


def coordinates_in_range(latitude: float, longitude: float) -> bool:
    """Return ``True`` when both coordinates are within their valid range."""
    return (
        LATITUDE_RANGE[0] <= latitude <= LATITUDE_RANGE[1]
        and LONGITUDE_RANGE[0] <= longitude <= LONGITUDE_RANGE[1]
    )


class LocationPoint(FootprintsBaseModel):
    """A recorded history entry.

    Coordinates are not range-checked here; that is a caller contract
    (see :attr:`FootprintsConfig.validate_coordinates`).

    Parameters
    ----------
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    timestamp : datetime
        Instant of the reading, always timezone-aware UTC.
    title : str or None
        Optional marker title.
    subtitle : str or None
        Optional marker subtitle.
    """

    latitude: float
    longitude: float
    timestamp: UtcTimestamp
    title: str | None = None
    subtitle: str | None = None


class RawFix(FootprintsBaseModel):
    """A single raw reading from a location feed.

    Accepts the keys used by common trackers (OwnTracks ``lat``/``lon``/
    ``tst``/``acc``/``vel``, GPS-style ``lng``/``time``) alongside the
    long names.
    """

    latitude: float = Field(validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(validation_alias=AliasChoices("longitude", "lon", "lng"))
    timestamp: UtcTimestamp = Field(validation_alias=AliasChoices("timestamp", "tst", "time"))
    accuracy: float | None = Field(default=None, validation_alias=AliasChoices("accuracy", "acc"))
    speed: float | None = Field(default=None, validation_alias=AliasChoices("speed", "vel"))
    course: float | None = Field(default=None, validation_alias=AliasChoices("course", "cog", "heading"))
    altitude: float | None = Field(default=None, validation_alias=AliasChoices("altitude", "alt"))
    title: str | None = Field(default=None, validation_alias=AliasChoices("title", "desc"))
    subtitle: str | None = None

    @field_validator("title", "subtitle", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_point(self) -> LocationPoint:
        """Drop accuracy/speed/course/altitude and keep what history stores."""
        return LocationPoint(
            latitude=self.latitude,
            longitude=self.longitude,
            timestamp=self.timestamp,
            title=self.title,
            subtitle=self.subtitle,
        )


HISTORY_ADAPTER: TypeAdapter[list[LocationPoint]] = TypeAdapter(list[LocationPoint])
"""Wire codec for the persisted history (JSON list of point records)."""
