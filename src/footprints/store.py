"""Durable, day-queryable location history.

This is the only component allowed to touch the history log. Every access
goes through a single lock so a feed thread and the intent processor can
share one store.
"""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from footprints.config import DayBoundaryPolicy, FootprintsConfig
from footprints.exceptions import StorageError, StorageLoadError, StoragePersistError
from footprints.models.location import HISTORY_ADAPTER, LocationPoint
from footprints.storage import FileStorage, KeyValueStorage

_logger = logging.getLogger(__name__)

DEFAULT_HISTORY_KEY = "savedLocations"
_ZONE_KEY_SUFFIX = ".zone"


def _zone_name(zone: ZoneInfo) -> str:
    return zone.key


class LocationStore:
    """Append-only history of :class:`LocationPoint` with day-scoped queries.

    Parameters
    ----------
    storage : KeyValueStorage
        Durable byte store the history is written to.
    key : str
        Storage key for the serialized history.
    time_zone : str or ZoneInfo
        Reference zone used to decide which calendar day a point falls on.
    day_policy : DayBoundaryPolicy
        With ``PERSISTED_ZONE`` the zone the history was first persisted
        under is stored alongside it and keeps deciding day boundaries after
        a reload, even if ``time_zone`` changed in between. With
        ``CURRENT_ZONE`` ``time_zone`` always wins.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = DEFAULT_HISTORY_KEY,
        time_zone: str | ZoneInfo = "UTC",
        day_policy: DayBoundaryPolicy = DayBoundaryPolicy.PERSISTED_ZONE,
    ) -> None:
        self._storage = storage
        self._key = key
        self._zone = time_zone if isinstance(time_zone, ZoneInfo) else ZoneInfo(time_zone)
        self._day_policy = day_policy
        self._persisted_zone: ZoneInfo | None = None
        self._points: list[LocationPoint] = []
        self._lock = threading.RLock()
        self._load_error: StorageLoadError | None = None

    @classmethod
    def from_config(cls, config: FootprintsConfig, storage: KeyValueStorage | None = None) -> LocationStore:
        """Build a store backed by ``storage`` or a :class:`FileStorage` in ``config.storage_dir``."""
        return cls(
            storage if storage is not None else FileStorage(config.storage_dir),
            key=config.storage_key,
            time_zone=config.zone(),
            day_policy=config.day_policy,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def reference_zone(self) -> ZoneInfo:
        """Zone that currently decides calendar days."""
        if self._day_policy == DayBoundaryPolicy.PERSISTED_ZONE and self._persisted_zone is not None:
            return self._persisted_zone
        return self._zone

    @property
    def degraded(self) -> bool:
        """Whether the last :meth:`load` discarded unreadable history."""
        return self._load_error is not None

    @property
    def load_error(self) -> StorageLoadError | None:
        return self._load_error

    @property
    def points(self) -> list[LocationPoint]:
        """Copy of the whole history in insertion order."""
        with self._lock:
            return list(self._points)

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def day_of(self, value: datetime | LocationPoint) -> date:
        """Calendar day of a timestamp (or point) in the reference zone.

        Naive datetimes are taken as already expressed in the reference zone.
        """
        moment = value.timestamp if isinstance(value, LocationPoint) else value
        if moment.tzinfo is None:
            return moment.date()
        return moment.astimezone(self.reference_zone).date()

    def points_on_day(self, day: date | datetime) -> list[LocationPoint]:
        """Return the points recorded on ``day``, in insertion order.

        The result is a fresh list; mutating it does not affect the store.
        """
        target = self.day_of(day) if isinstance(day, datetime) else day
        with self._lock:
            zone = self.reference_zone
            return [point for point in self._points if point.timestamp.astimezone(zone).date() == target]

    # ------------------------------------------------------------------
    # Mutation and persistence
    # ------------------------------------------------------------------

    def append(self, point: LocationPoint) -> None:
        """Append ``point`` and persist the full history.

        Raises
        ------
        StoragePersistError
            The write failed. The point is kept in memory regardless.
        """
        with self._lock:
            self._points.append(point)
            self.persist()

    def persist(self) -> None:
        """Serialize the full history and overwrite the durable record."""
        with self._lock:
            zone = self.reference_zone
            try:
                payload = HISTORY_ADAPTER.dump_json(self._points)
                if self._day_policy == DayBoundaryPolicy.PERSISTED_ZONE:
                    self._storage.set(self._key + _ZONE_KEY_SUFFIX, _zone_name(zone).encode("utf-8"))
                self._storage.set(self._key, payload)
            except (StorageError, OSError, ValueError) as exc:
                raise StoragePersistError(f"Failed to persist location history: {exc}", key=self._key) from exc
            if self._day_policy == DayBoundaryPolicy.PERSISTED_ZONE:
                self._persisted_zone = zone
            _logger.debug("Persisted %d points under key=%s zone=%s", len(self._points), self._key, zone.key)

    def load(self) -> int:
        """Restore the history from storage, replacing what is in memory.

        Missing data yields an empty history. Unreadable data also yields an
        empty history and marks the store :attr:`degraded`. Never raises.

        Returns
        -------
        int
            Number of points loaded.
        """
        with self._lock:
            self._load_error = None
            self._persisted_zone = None
            try:
                raw = self._storage.get(self._key)
                points = HISTORY_ADAPTER.validate_json(raw) if raw is not None else []
            except (StorageError, OSError, ValidationError, ValueError) as exc:
                self._load_error = StorageLoadError(f"Discarding unreadable location history: {exc}", key=self._key)
                self._load_error.__cause__ = exc
                _logger.warning("Location history under key=%s is unreadable; starting empty", self._key, exc_info=True)
                points = []

            self._points = points
            if self._day_policy == DayBoundaryPolicy.PERSISTED_ZONE and points:
                self._persisted_zone = self._load_zone()
            _logger.debug("Loaded %d points under key=%s", len(points), self._key)
            return len(points)

    def _load_zone(self) -> ZoneInfo | None:
        try:
            raw = self._storage.get(self._key + _ZONE_KEY_SUFFIX)
            if raw is None:
                return None
            return ZoneInfo(raw.decode("utf-8").strip())
        except (StorageError, OSError, UnicodeDecodeError, ZoneInfoNotFoundError, ValueError):
            _logger.warning("Stored reference zone for key=%s is unreadable; using %s", self._key, self._zone.key)
            return None
