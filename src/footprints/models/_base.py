"""Base model and timestamp coercion shared by footprints models.

Every record inherits from :class:`FootprintsBaseModel` which is frozen
and ignores unknown keys, so feed payloads carrying extra fields
(battery level, tracker id, ...) validate cleanly.

Timestamps go through :data:`UtcTimestamp`, which accepts epoch seconds
**or** milliseconds, ISO-8601 strings and datetimes, and always yields a
timezone-aware UTC :class:`~datetime.datetime`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_epoch_timestamp(value: Any) -> Any:
    """Convert an epoch timestamp (seconds **or** milliseconds) to a UTC datetime.

    Anything that is not a number (ISO strings, datetimes) is passed through
    for pydantic to parse.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    ts = float(value)
    if ts >= _MS_THRESHOLD:
        ts /= 1000.0
    return datetime.fromtimestamp(ts, tz=UTC)


def ensure_utc(value: datetime) -> datetime:
    """Normalize to UTC; naive datetimes are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcTimestamp = Annotated[datetime, BeforeValidator(parse_epoch_timestamp), AfterValidator(ensure_utc)]
"""Annotated type coercing epoch numbers / ISO strings to aware UTC datetimes."""


class FootprintsBaseModel(BaseModel):
    """Base for immutable footprints records."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )
