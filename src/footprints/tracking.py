"""Live tracking session.

Owns the on/off state and the feed subscription, turns each fix into a
history entry and reports what happened as intents.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from footprints.exceptions import FeedError, PointValidationError, StoragePersistError
from footprints.feed import FeedErrorEvent, FeedSubscription, FixEvent, LocationFeed
from footprints.models.intents import ErrorOccurred, Intent, PointRecorded
from footprints.models.location import LocationPoint, RawFix, coordinates_in_range
from footprints.models.state import TrackingStatus
from footprints.store import LocationStore

_logger = logging.getLogger(__name__)


class TrackingSession:
    """Gate between a location feed and the history store.

    ``IDLE --start()--> ACTIVE --stop()--> IDLE``; both transitions are
    idempotent. Feed errors never change the status.

    Fixes still buffered in the subscription when :meth:`stop` is called are
    drained and recorded; :meth:`wait_idle` waits for that to finish.
    """

    def __init__(
        self,
        store: LocationStore,
        feed: LocationFeed,
        *,
        emit: Callable[[Intent], None] | None = None,
        validate_coordinates: bool = False,
    ) -> None:
        self._store = store
        self._feed = feed
        self._emit = emit
        self._validate_coordinates = validate_coordinates
        self._status = TrackingStatus.IDLE
        self._subscription: FeedSubscription | None = None
        self._pumps: set[asyncio.Task[None]] = set()
        self._last_fix: RawFix | None = None

    @property
    def status(self) -> TrackingStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        return self._status == TrackingStatus.ACTIVE

    @property
    def last_fix(self) -> RawFix | None:
        """Most recent fix handed to the session, recorded or not."""
        return self._last_fix

    def attach(self, emit: Callable[[Intent], None]) -> None:
        """Route emitted intents to ``emit`` (usually ``MapController.dispatch``)."""
        self._emit = emit

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to the feed. Must be called from a running event loop."""
        if self._status == TrackingStatus.ACTIVE:
            return
        loop = asyncio.get_running_loop()
        subscription = self._feed.subscribe()
        self._subscription = subscription
        self._status = TrackingStatus.ACTIVE
        pump = loop.create_task(self._pump(subscription), name="footprints-feed-pump")
        self._pumps.add(pump)
        pump.add_done_callback(self._pumps.discard)
        _logger.debug("Tracking started")

    def stop(self) -> None:
        """Unsubscribe from the feed; buffered fixes are still recorded."""
        if self._status == TrackingStatus.IDLE:
            return
        self._status = TrackingStatus.IDLE
        subscription = self._subscription
        self._subscription = None
        if subscription is not None:
            subscription.close()
        _logger.debug("Tracking stopped")

    async def wait_idle(self) -> None:
        """Wait until every closed subscription has been drained."""
        if self._status == TrackingStatus.ACTIVE:
            raise RuntimeError("wait_idle() requires tracking to be stopped")
        if self._pumps:
            await asyncio.gather(*list(self._pumps))

    async def aclose(self) -> None:
        self.stop()
        await self.wait_idle()

    # ------------------------------------------------------------------
    # Fix handling
    # ------------------------------------------------------------------

    def on_fix(self, fix: RawFix) -> LocationPoint | None:
        """Record ``fix`` if tracking is active; ignored while idle."""
        if self._status == TrackingStatus.IDLE:
            _logger.debug("Ignoring fix received while idle (timestamp=%s)", fix.timestamp.isoformat())
            return None
        return self._record(fix)

    def on_error(self, error: FeedError | str) -> None:
        """Report a feed failure. Tracking stays in its current state."""
        message = str(error).strip() or "Location feed error"
        _logger.debug("Location feed error: %s", message)
        self._send(ErrorOccurred(message=message))

    async def _pump(self, subscription: FeedSubscription) -> None:
        async for event in subscription:
            if isinstance(event, FixEvent):
                # In-flight fixes from a closed subscription are recorded too.
                self._record(event.fix)
            elif isinstance(event, FeedErrorEvent):
                self.on_error(event.error)

    def _record(self, fix: RawFix) -> LocationPoint | None:
        self._last_fix = fix
        try:
            point = self._to_point(fix)
        except PointValidationError as exc:
            _logger.warning("Rejected fix: %s", exc)
            self._send(ErrorOccurred(message=str(exc)))
            return None

        persist_error: StoragePersistError | None = None
        try:
            self._store.append(point)
        except StoragePersistError as exc:
            _logger.warning("Point kept in memory only: %s", exc)
            persist_error = exc

        self._send(PointRecorded(point=point))
        if persist_error is not None:
            self._send(ErrorOccurred(message=str(persist_error)))
        return point

    def _to_point(self, fix: RawFix) -> LocationPoint:
        if self._validate_coordinates and not coordinates_in_range(fix.latitude, fix.longitude):
            raise PointValidationError(
                f"Coordinates out of range: ({fix.latitude}, {fix.longitude})",
                latitude=fix.latitude,
                longitude=fix.longitude,
            )
        return fix.to_point()

    def _send(self, intent: Intent) -> None:
        if self._emit is not None:
            self._emit(intent)
