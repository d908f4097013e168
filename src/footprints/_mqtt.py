"""MQTT location feed for OwnTracks-style JSON payloads."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import threading
from collections.abc import Callable, Coroutine
from typing import Any, cast

import paho.mqtt.client as mqtt
from pydantic import ValidationError

from footprints._redact import redact_for_log
from footprints.config import MqttSettings
from footprints.exceptions import FeedError, FootprintsConfigError
from footprints.feed import FeedErrorEvent, FeedEvent, FeedSubscription, FixEvent
from footprints.models.location import RawFix

_LOCATION_TYPE = "location"


def decode_location_payload(payload: bytes) -> RawFix | None:
    """Parse an MQTT payload into a :class:`RawFix`.

    Returns ``None`` for messages that are not location reports (OwnTracks
    also publishes ``lwt``, ``transition``, ``card``, ... on the same topics).

    Raises
    ------
    ValueError
        The payload is not a JSON object or lacks valid coordinates.
    """
    parsed = json.loads(payload.decode("utf-8"))
    if not isinstance(parsed, dict):
        raise ValueError("MQTT payload is not a JSON object")
    message_type = parsed.get("_type")
    if message_type is not None and message_type != _LOCATION_TYPE:
        return None
    try:
        return RawFix.model_validate(parsed)
    except ValidationError as exc:
        raise ValueError(f"Invalid location payload: {exc.error_count()} error(s)") from exc


class MqttLocationRuntime:
    """Threaded paho-mqtt runtime.

    ``on_event`` is called on the paho network thread; the receiver is
    responsible for handing events over to its event loop.
    """

    def __init__(
        self,
        *,
        settings: MqttSettings,
        on_event: Callable[[FeedEvent], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._on_event = on_event
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def _emit(self, event: FeedEvent) -> None:
        self._on_event(event)

    def start(self) -> None:
        """Connect (asynchronously) and subscribe to the configured topic."""
        self.stop()
        settings = self._settings
        if not settings.host:
            raise FootprintsConfigError("MQTT host is not configured")
        self._logger.debug("MQTT runtime start requested settings=%s", redact_for_log(dataclasses.asdict(settings)))

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if settings.tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                self._emit(FeedErrorEvent(FeedError(f"Location feed connection failed: {reason_code}")))
                return
            self._logger.debug("MQTT connected, subscribing topic=%s", settings.topic)
            c.subscribe(settings.topic, qos=1)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                fix = decode_location_payload(msg.payload)
            except (UnicodeDecodeError, ValueError):
                self._logger.debug("MQTT payload parse failure topic=%s", msg.topic, exc_info=True)
                return
            if fix is None:
                return
            self._logger.debug("MQTT fix topic=%s fix=%s", msg.topic, redact_for_log(fix.model_dump(mode="json")))
            self._emit(FixEvent(fix))

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)
                self._emit(FeedErrorEvent(FeedError(f"Location feed disconnected: {reason_code}")))

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect_async(settings.host, settings.port, keepalive=settings.keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")


class MqttLocationFeed:
    """Location feed backed by an MQTT topic.

    The network runtime runs only while at least one subscription is open.
    Runtime start and stop run in the loop's default executor so the paho
    connect and thread join never block the event loop; :meth:`join` waits
    for them. Events from the network thread are handed to every open
    subscription with :meth:`FeedSubscription.deliver_threadsafe`.
    Must be subscribed to from inside a running event loop.
    """

    def __init__(
        self,
        settings: MqttSettings,
        *,
        runtime_factory: Callable[..., MqttLocationRuntime] = MqttLocationRuntime,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._runtime_factory = runtime_factory
        self._logger = logger or logging.getLogger(__name__)
        self._runtime: MqttLocationRuntime | None = None
        self._subscriptions: list[FeedSubscription] = []
        self._subscriptions_lock = threading.Lock()
        # Starts and stops run in the order they were requested.
        self._transition_lock = asyncio.Lock()
        self._transitions: set[asyncio.Task[None]] = set()

    @property
    def is_running(self) -> bool:
        return self._runtime is not None and self._runtime.is_running

    def subscribe(self) -> FeedSubscription:
        """Open a subscription, starting the runtime if none is running.

        Raises
        ------
        FootprintsConfigError
            No broker host is configured.
        """
        if not self._settings.host:
            raise FootprintsConfigError("MQTT host is not configured")
        loop = asyncio.get_running_loop()
        subscription = FeedSubscription(loop=loop, on_close=self._forget)
        with self._subscriptions_lock:
            self._subscriptions.append(subscription)
        if self._runtime is None:
            runtime = self._runtime_factory(
                settings=self._settings,
                on_event=self._broadcast,
                logger=self._logger,
            )
            self._runtime = runtime
            self._schedule(loop, self._start_runtime(loop, runtime))
        return subscription

    async def join(self) -> None:
        """Wait for pending runtime start/stop transitions."""
        while self._transitions:
            await asyncio.gather(*list(self._transitions))

    async def aclose(self) -> None:
        """Close every open subscription and wait for the runtime to stop."""
        with self._subscriptions_lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.close()
        await self.join()

    def _schedule(self, loop: asyncio.AbstractEventLoop, transition: Coroutine[Any, Any, None]) -> None:
        task = loop.create_task(transition, name="footprints-mqtt-runtime")
        self._transitions.add(task)
        task.add_done_callback(self._transitions.discard)

    async def _start_runtime(self, loop: asyncio.AbstractEventLoop, runtime: MqttLocationRuntime) -> None:
        async with self._transition_lock:
            try:
                await loop.run_in_executor(None, runtime.start)
            except (OSError, ValueError, FootprintsConfigError) as exc:
                # Retried on the next subscribe.
                self._logger.debug("MQTT runtime start failed", exc_info=True)
                if self._runtime is runtime:
                    self._runtime = None
                with self._subscriptions_lock:
                    subscriptions = list(self._subscriptions)
                for subscription in subscriptions:
                    subscription.deliver(FeedErrorEvent(FeedError(f"Location feed unavailable: {exc}")))

    async def _stop_runtime(self, loop: asyncio.AbstractEventLoop, runtime: MqttLocationRuntime) -> None:
        async with self._transition_lock:
            try:
                await loop.run_in_executor(None, runtime.stop)
            except (OSError, ValueError):
                self._logger.debug("MQTT runtime stop failed", exc_info=True)

    def _forget(self, subscription: FeedSubscription) -> None:
        with self._subscriptions_lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
            remaining = len(self._subscriptions)
        if remaining or self._runtime is None:
            return
        runtime = self._runtime
        self._runtime = None
        loop = asyncio.get_running_loop()
        self._schedule(loop, self._stop_runtime(loop, runtime))

    def _broadcast(self, event: FeedEvent) -> None:
        # Called on the paho network thread.
        with self._subscriptions_lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.deliver_threadsafe(event)
