from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import pytest

from footprints.exceptions import FeedError, StorageError
from footprints.feed import QueueLocationFeed
from footprints.models.intents import ErrorOccurred, Intent, PointRecorded
from footprints.models.location import LocationPoint, RawFix
from footprints.models.state import TrackingStatus
from footprints.storage import MemoryStorage
from footprints.store import LocationStore
from footprints.tracking import TrackingSession

T0 = datetime(2026, 3, 14, 9, 30, tzinfo=UTC)


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def _fix(lat: float, lon: float, ts: datetime = T0) -> RawFix:
    return RawFix(latitude=lat, longitude=lon, timestamp=ts, accuracy=8.0, speed=1.2)


def _session(**kwargs: object) -> tuple[TrackingSession, LocationStore, QueueLocationFeed, list[Intent]]:
    store = LocationStore(MemoryStorage())
    feed = QueueLocationFeed()
    emitted: list[Intent] = []
    session = TrackingSession(store, feed, emit=emitted.append, **kwargs)  # type: ignore[arg-type]
    return session, store, feed, emitted


@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent() -> None:
    session, _store, feed, _emitted = _session()

    session.start()
    session.start()
    assert session.status == TrackingStatus.ACTIVE
    assert feed.subscriber_count == 1

    session.stop()
    session.stop()
    assert session.status == TrackingStatus.IDLE
    assert feed.subscriber_count == 0
    await session.wait_idle()


@pytest.mark.asyncio
async def test_fix_is_recorded_and_reported() -> None:
    session, store, feed, emitted = _session()
    session.start()

    assert feed.push_fix(_fix(10, 20)) == 1
    await _settle()

    expected = LocationPoint(latitude=10, longitude=20, timestamp=T0)
    assert store.points_on_day(date(2026, 3, 14)) == [expected]
    assert emitted == [PointRecorded(point=expected)]
    assert session.last_fix is not None
    assert session.last_fix.accuracy == 8.0

    await session.aclose()


@pytest.mark.asyncio
async def test_end_to_end_in_flight_fix_after_stop_is_still_recorded() -> None:
    session, store, feed, _emitted = _session()
    session.start()
    feed.push_fix(_fix(10, 20))
    await _settle()
    assert store.points_on_day(date(2026, 3, 14)) == [LocationPoint(latitude=10, longitude=20, timestamp=T0)]

    # Delivered but not yet consumed when stop() is called.
    feed.push_fix(_fix(11, 21, T0.replace(minute=31)))
    session.stop()
    await session.wait_idle()

    assert session.status == TrackingStatus.IDLE
    assert [p.latitude for p in store.points] == [10, 11]

    # Once unsubscribed, nothing new reaches the session.
    assert feed.push_fix(_fix(12, 22)) == 0
    await _settle()
    assert len(store) == 2


@pytest.mark.asyncio
async def test_direct_fix_while_idle_is_ignored() -> None:
    session, store, _feed, emitted = _session()

    assert session.on_fix(_fix(10, 20)) is None
    assert len(store) == 0
    assert emitted == []
    assert session.status == TrackingStatus.IDLE


@pytest.mark.asyncio
async def test_direct_fix_while_active_is_recorded() -> None:
    session, store, _feed, _emitted = _session()
    session.start()

    point = session.on_fix(_fix(1, 2))
    assert point == LocationPoint(latitude=1, longitude=2, timestamp=T0)
    assert store.points == [point]
    await session.aclose()


@pytest.mark.asyncio
async def test_feed_error_is_reported_without_changing_state() -> None:
    session, _store, feed, emitted = _session()
    session.start()

    feed.push_error(FeedError("GPS signal lost"))
    feed.push_error("Permission revoked")
    await _settle()

    assert emitted == [ErrorOccurred(message="GPS signal lost"), ErrorOccurred(message="Permission revoked")]
    assert session.status == TrackingStatus.ACTIVE

    feed.push_fix(_fix(1, 2))
    await _settle()
    assert isinstance(emitted[-1], PointRecorded)
    await session.aclose()


class _ReadOnlyStorage(MemoryStorage):
    def set(self, key: str, value: bytes) -> None:
        raise StorageError("read-only file system", key=key)


@pytest.mark.asyncio
async def test_persist_failure_reports_error_and_keeps_point() -> None:
    store = LocationStore(_ReadOnlyStorage())
    feed = QueueLocationFeed()
    emitted: list[Intent] = []
    session = TrackingSession(store, feed, emit=emitted.append)
    session.start()

    feed.push_fix(_fix(1, 2))
    await _settle()

    assert len(store) == 1
    assert isinstance(emitted[0], PointRecorded)
    assert isinstance(emitted[1], ErrorOccurred)
    assert "read-only" in emitted[1].message
    assert session.status == TrackingStatus.ACTIVE
    await session.aclose()


@pytest.mark.asyncio
async def test_out_of_range_fix_rejected_when_validation_enabled() -> None:
    session, store, _feed, emitted = _session(validate_coordinates=True)
    session.start()

    assert session.on_fix(_fix(95.0, 20.0)) is None
    assert len(store) == 0
    assert len(emitted) == 1
    assert isinstance(emitted[0], ErrorOccurred)
    assert "out of range" in emitted[0].message
    await session.aclose()


@pytest.mark.asyncio
async def test_out_of_range_fix_accepted_without_validation() -> None:
    session, store, _feed, _emitted = _session()
    session.start()

    session.on_fix(_fix(95.0, 200.0))
    assert len(store) == 1
    await session.aclose()


@pytest.mark.asyncio
async def test_restart_opens_a_fresh_subscription() -> None:
    session, store, feed, _emitted = _session()
    session.start()
    session.stop()
    session.start()
    assert feed.subscriber_count == 1

    feed.push_fix(_fix(3, 4))
    await _settle()
    assert len(store) == 1
    await session.aclose()
    assert feed.subscriber_count == 0


@pytest.mark.asyncio
async def test_wait_idle_requires_stopped_session() -> None:
    session, _store, _feed, _emitted = _session()
    session.start()
    with pytest.raises(RuntimeError):
        await session.wait_idle()
    await session.aclose()
