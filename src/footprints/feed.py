"""Location feed abstraction.

A feed hands out :class:`FeedSubscription` handles. Each handle is a lazy
async sequence of :class:`FixEvent` / :class:`FeedErrorEvent` that ends
once the handle is closed and its buffer is drained. Events buffered
before ``close()`` are still yielded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from footprints.exceptions import FeedError
from footprints.models.location import RawFix

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixEvent:
    """A fix produced by the feed."""

    fix: RawFix


@dataclass(frozen=True)
class FeedErrorEvent:
    """The feed failed instead of producing a fix."""

    error: FeedError

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


FeedEvent = FixEvent | FeedErrorEvent

_CLOSED = object()


class FeedSubscription:
    """Buffered subscription handle.

    Producers call :meth:`deliver` on the event-loop thread or
    :meth:`deliver_threadsafe` from any other thread. A thread-safe hand-off
    scheduled before :meth:`close` is buffered ahead of the end marker, so
    it is still yielded.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        on_close: Callable[[FeedSubscription], None] | None = None,
    ) -> None:
        self._loop = loop
        self._on_close = on_close
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: FeedEvent) -> bool:
        """Buffer ``event``; returns ``False`` if the subscription is closed."""
        if self._closed:
            return False
        self._queue.put_nowait(event)
        return True

    def deliver_threadsafe(self, event: FeedEvent) -> None:
        """Hand ``event`` to the subscription's loop from another thread."""
        if self._loop is None:
            raise RuntimeError("Subscription has no event loop for thread-safe delivery")
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    def close(self) -> None:
        """Stop accepting events. Already-buffered events are still yielded."""
        if self._closed:
            return
        self._closed = True
        if self._loop is not None:
            # Queued behind hand-offs already scheduled on the loop.
            self._loop.call_soon(self._queue.put_nowait, _CLOSED)
        else:
            self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            self._on_close(self)

    def __aiter__(self) -> AsyncIterator[FeedEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[FeedEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


class LocationFeed(Protocol):
    """Anything that can hand out a :class:`FeedSubscription`."""

    def subscribe(self) -> FeedSubscription: ...


class QueueLocationFeed:
    """In-process feed: callers push fixes and errors by hand.

    Every open subscription receives every pushed event.
    """

    def __init__(self) -> None:
        self._subscriptions: list[FeedSubscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> FeedSubscription:
        subscription = FeedSubscription(on_close=self._forget)
        self._subscriptions.append(subscription)
        _logger.debug("Feed subscription opened (count=%d)", len(self._subscriptions))
        return subscription

    def _forget(self, subscription: FeedSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        _logger.debug("Feed subscription closed (count=%d)", len(self._subscriptions))

    def push(self, event: FeedEvent) -> int:
        """Deliver ``event`` to every open subscription; returns how many got it."""
        return sum(1 for subscription in list(self._subscriptions) if subscription.deliver(event))

    def push_fix(self, fix: RawFix | dict[str, Any]) -> int:
        if not isinstance(fix, RawFix):
            fix = RawFix.model_validate(fix)
        return self.push(FixEvent(fix))

    def push_error(self, error: FeedError | str) -> int:
        if not isinstance(error, FeedError):
            error = FeedError(error)
        return self.push(FeedErrorEvent(error))
