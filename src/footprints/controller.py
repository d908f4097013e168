"""Sequential intent processor tying store, session and reducer together."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any

from footprints.config import FootprintsConfig
from footprints.exceptions import FootprintsError
from footprints.feed import LocationFeed
from footprints.models.intents import DaySelected, ErrorOccurred, Intent, StartTracking, StopTracking
from footprints.models.state import ViewSnapshot
from footprints.reducer import reduce
from footprints.store import LocationStore
from footprints.tracking import TrackingSession
from footprints.viewport import DEFAULT_SPAN_METERS

_logger = logging.getLogger(__name__)

SnapshotObserver = Callable[[ViewSnapshot], None]


class MapController:
    """Owns the snapshot and processes intents strictly one at a time.

    Usage::

        async with MapController(store, session) as controller:
            controller.subscribe(render)
            controller.dispatch(StartTracking())

    Intents may be dispatched from any thread; they are queued and handled
    on the controller's event loop. Observers are called on that loop with
    every snapshot produced, including the initial one.
    """

    def __init__(
        self,
        store: LocationStore,
        session: TrackingSession,
        *,
        span_meters: float = DEFAULT_SPAN_METERS,
        initial_day: date | None = None,
    ) -> None:
        self._store = store
        self._session = session
        self._span_meters = span_meters
        self._initial_day = initial_day
        self._snapshot: ViewSnapshot | None = None
        self._observers: list[SnapshotObserver] = []
        self._queue: asyncio.Queue[Intent] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: int | None = None
        self._runner: asyncio.Task[None] | None = None
        session.attach(self.dispatch)

    @classmethod
    def from_config(cls, config: FootprintsConfig, feed: LocationFeed, **kwargs: Any) -> MapController:
        """Build store, session and controller from ``config``."""
        store = LocationStore.from_config(config, kwargs.pop("storage", None))
        session = TrackingSession(store, feed, validate_coordinates=config.validate_coordinates)
        return cls(store, session, span_meters=config.viewport_span_meters, **kwargs)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def store(self) -> LocationStore:
        return self._store

    @property
    def session(self) -> TrackingSession:
        return self._session

    @property
    def snapshot(self) -> ViewSnapshot:
        if self._snapshot is None:
            raise RuntimeError("Controller not started. Use 'async with MapController(...) as controller:'")
        return self._snapshot

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> MapController:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Load history, publish the initial snapshot and begin processing."""
        if self._runner is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        self._store.load()
        day = self._initial_day or self._store.day_of(datetime.now(UTC))
        self._publish(self._reduce(ViewSnapshot.initial(day), DaySelected(day=day)))
        self._runner = self._loop.create_task(self._run(), name="footprints-intents")

    async def close(self) -> None:
        """Stop tracking, record in-flight fixes, then stop processing."""
        await self._session.aclose()
        runner = self._runner
        if runner is None:
            return
        await self._queue.join()
        self._runner = None
        runner.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await runner
        self._loop = None
        self._loop_thread = None

    async def drain(self) -> None:
        """Wait until every intent queued so far has been processed."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Intents and observers
    # ------------------------------------------------------------------

    def dispatch(self, intent: Intent) -> None:
        """Queue ``intent``.

        Safe to call from any thread once the controller is started. Before
        :meth:`start`, only code running inside an event loop may dispatch.

        Raises
        ------
        RuntimeError
            Called from a thread without a running loop before :meth:`start`.
        """
        loop = self._loop
        if loop is None:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                raise RuntimeError("dispatch() from outside an event loop requires a started controller") from None
        elif threading.get_ident() != self._loop_thread:
            loop.call_soon_threadsafe(self._queue.put_nowait, intent)
            return
        self._queue.put_nowait(intent)

    def subscribe(self, observer: SnapshotObserver) -> Callable[[], None]:
        """Register ``observer``; it is called immediately with the current snapshot.

        Returns a callable that unregisters the observer.
        """
        self._observers.append(observer)
        if self._snapshot is not None:
            self._notify(observer, self._snapshot)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    async def _run(self) -> None:
        while True:
            intent = await self._queue.get()
            try:
                self._handle(intent)
            except Exception:
                _logger.exception("Failed to process intent %s", type(intent).__name__)
            finally:
                self._queue.task_done()

    def _handle(self, intent: Intent) -> None:
        try:
            if isinstance(intent, StartTracking):
                self._session.start()
            elif isinstance(intent, StopTracking):
                self._session.stop()
        except FootprintsError as exc:
            _logger.warning("Could not apply %s: %s", type(intent).__name__, exc)
            intent = ErrorOccurred(message=str(exc).strip() or type(exc).__name__)
        self._publish(self._reduce(self.snapshot, intent))

    def _reduce(self, snapshot: ViewSnapshot, intent: Intent) -> ViewSnapshot:
        return reduce(
            snapshot,
            intent,
            points_on_day=self._store.points_on_day,
            day_of=self._store.day_of,
            span_meters=self._span_meters,
        )

    def _publish(self, snapshot: ViewSnapshot) -> None:
        if snapshot is self._snapshot:
            return
        self._snapshot = snapshot
        for observer in list(self._observers):
            self._notify(observer, snapshot)

    @staticmethod
    def _notify(observer: SnapshotObserver, snapshot: ViewSnapshot) -> None:
        try:
            observer(snapshot)
        except Exception:
            _logger.exception("Snapshot observer %r failed", observer)
