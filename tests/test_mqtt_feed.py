from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import pytest

from footprints._mqtt import MqttLocationFeed, MqttLocationRuntime, decode_location_payload
from footprints.config import MqttSettings
from footprints.exceptions import FootprintsConfigError
from footprints.feed import FeedErrorEvent, FeedEvent, FixEvent
from footprints.models.intents import ErrorOccurred, Intent, PointRecorded
from footprints.storage import MemoryStorage
from footprints.store import LocationStore
from footprints.tracking import TrackingSession

_SETTINGS = MqttSettings(host="broker.local", topic="owntracks/alice/phone")


def _payload(**overrides: Any) -> bytes:
    body: dict[str, Any] = {"_type": "location", "lat": 52.37, "lon": 4.89, "tst": 1771000000, "acc": 10, "tid": "ph"}
    body.update(overrides)
    return json.dumps(body).encode()


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@dataclass
class _FakeRuntime:
    settings: MqttSettings
    on_event: Callable[[FeedEvent], None]
    logger: logging.Logger
    fail_with: Exception | None = None
    started: int = 0
    stopped: int = 0
    threads: list[int] = field(default_factory=list)

    @property
    def is_running(self) -> bool:
        return self.started > self.stopped

    def start(self) -> None:
        self.threads.append(threading.get_ident())
        if self.fail_with is not None:
            raise self.fail_with
        self.started += 1

    def stop(self) -> None:
        self.threads.append(threading.get_ident())
        self.stopped += 1


def _factory(runtimes: list[_FakeRuntime], fail_with: Exception | None = None) -> Callable[..., Any]:
    def build(**kwargs: Any) -> _FakeRuntime:
        runtime = _FakeRuntime(fail_with=fail_with, **kwargs)
        runtimes.append(runtime)
        return runtime

    return build


def _from_network_thread(runtime: _FakeRuntime, event: FeedEvent) -> None:
    worker = threading.Thread(target=runtime.on_event, args=(event,))
    worker.start()
    worker.join()


# ------------------------------------------------------------------
# Payload decoding
# ------------------------------------------------------------------


class TestDecodeLocationPayload:
    def test_location_message(self) -> None:
        fix = decode_location_payload(_payload())
        assert fix is not None
        assert fix.latitude == 52.37
        assert fix.longitude == 4.89
        assert fix.accuracy == 10
        assert fix.timestamp == datetime.fromtimestamp(1771000000, tz=UTC)

    def test_untyped_message_with_coordinates(self) -> None:
        fix = decode_location_payload(b'{"latitude": 1.5, "longitude": 2.5, "timestamp": "2026-03-14T10:00:00Z"}')
        assert fix is not None
        assert fix.latitude == 1.5

    @pytest.mark.parametrize("message_type", ["lwt", "transition", "card"])
    def test_other_message_types_are_skipped(self, message_type: str) -> None:
        assert decode_location_payload(json.dumps({"_type": message_type}).encode()) is None

    @pytest.mark.parametrize("payload", [b"[1, 2]", b"not-json", b"\xff", _payload(lat="north")])
    def test_malformed_payloads_raise_value_error(self, payload: bytes) -> None:
        with pytest.raises(ValueError):
            decode_location_payload(payload)


# ------------------------------------------------------------------
# Feed lifecycle
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_runtime_shared_across_subscriptions() -> None:
    runtimes: list[_FakeRuntime] = []
    feed = MqttLocationFeed(_SETTINGS, runtime_factory=_factory(runtimes))

    first = feed.subscribe()
    second = feed.subscribe()
    await feed.join()
    assert len(runtimes) == 1
    assert runtimes[0].started == 1
    assert runtimes[0].settings == _SETTINGS
    assert feed.is_running

    first.close()
    await feed.join()
    assert runtimes[0].stopped == 0
    second.close()
    await feed.join()
    assert runtimes[0].stopped == 1
    assert not feed.is_running


@pytest.mark.asyncio
async def test_runtime_start_and_stop_run_off_the_event_loop() -> None:
    runtimes: list[_FakeRuntime] = []
    feed = MqttLocationFeed(_SETTINGS, runtime_factory=_factory(runtimes))

    feed.subscribe()
    await feed.join()
    await feed.aclose()

    assert runtimes[0].started == 1
    assert runtimes[0].stopped == 1
    assert len(runtimes[0].threads) == 2
    assert threading.get_ident() not in runtimes[0].threads


@pytest.mark.asyncio
async def test_missing_host_raises_on_subscribe() -> None:
    runtimes: list[_FakeRuntime] = []
    feed = MqttLocationFeed(MqttSettings(), runtime_factory=_factory(runtimes))

    with pytest.raises(FootprintsConfigError):
        feed.subscribe()
    assert runtimes == []


@pytest.mark.asyncio
async def test_broadcast_reaches_open_subscriptions() -> None:
    runtimes: list[_FakeRuntime] = []
    feed = MqttLocationFeed(_SETTINGS, runtime_factory=_factory(runtimes))
    subscription = feed.subscribe()
    await feed.join()

    fix = decode_location_payload(_payload())
    assert fix is not None
    _from_network_thread(runtimes[0], FixEvent(fix))
    subscription.close()

    received = [event async for event in subscription]
    assert received == [FixEvent(fix)]
    await feed.join()


@pytest.mark.asyncio
async def test_start_failure_is_delivered_as_feed_error() -> None:
    runtimes: list[_FakeRuntime] = []
    feed = MqttLocationFeed(_SETTINGS, runtime_factory=_factory(runtimes, OSError("connection refused")))

    subscription = feed.subscribe()
    await feed.join()
    subscription.close()
    received = [event async for event in subscription]

    assert len(received) == 1
    assert isinstance(received[0], FeedErrorEvent)
    assert "connection refused" in received[0].message
    assert not feed.is_running
    await feed.join()


@pytest.mark.asyncio
async def test_session_records_fixes_from_mqtt() -> None:
    runtimes: list[_FakeRuntime] = []
    feed = MqttLocationFeed(_SETTINGS, runtime_factory=_factory(runtimes))
    store = LocationStore(MemoryStorage())
    emitted: list[Intent] = []
    session = TrackingSession(store, feed, emit=emitted.append)

    session.start()
    await feed.join()
    fix = decode_location_payload(_payload())
    assert fix is not None
    _from_network_thread(runtimes[0], FixEvent(fix))
    await _settle()

    assert store.points == [fix.to_point()]
    await session.aclose()
    await feed.join()
    assert runtimes[0].stopped == 1


@pytest.mark.asyncio
async def test_fix_handed_off_before_stop_is_recorded() -> None:
    runtimes: list[_FakeRuntime] = []
    feed = MqttLocationFeed(_SETTINGS, runtime_factory=_factory(runtimes))
    store = LocationStore(MemoryStorage())
    emitted: list[Intent] = []
    session = TrackingSession(store, feed, emit=emitted.append)

    session.start()
    await feed.join()
    fix = decode_location_payload(_payload())
    assert fix is not None
    # The hand-off is scheduled on the loop but has not run when stop() closes the subscription.
    _from_network_thread(runtimes[0], FixEvent(fix))
    session.stop()
    await session.wait_idle()

    assert store.points == [fix.to_point()]
    assert [type(intent) for intent in emitted] == [PointRecorded]
    await feed.join()


@pytest.mark.asyncio
async def test_session_reports_mqtt_start_failure() -> None:
    runtimes: list[_FakeRuntime] = []
    feed = MqttLocationFeed(_SETTINGS, runtime_factory=_factory(runtimes, OSError("no route to host")))
    emitted: list[Intent] = []
    session = TrackingSession(LocationStore(MemoryStorage()), feed, emit=emitted.append)

    session.start()
    await feed.join()
    await _settle()

    assert len(emitted) == 1
    assert isinstance(emitted[0], ErrorOccurred)
    assert "no route to host" in emitted[0].message
    assert session.is_active
    await session.aclose()
    await feed.join()


def test_real_runtime_requires_host() -> None:
    runtime = MqttLocationRuntime(settings=MqttSettings(), on_event=lambda _event: None)
    with pytest.raises(FootprintsConfigError):
        runtime.start()
    assert not runtime.is_running
