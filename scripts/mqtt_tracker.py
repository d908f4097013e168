#!/usr/bin/env python3
"""Track an OwnTracks MQTT topic and print every snapshot.

Usage
-----
::

    export FOOTPRINTS_MQTT_HOST="broker.example.com"
    export FOOTPRINTS_MQTT_TOPIC="owntracks/alice/phone"
    python scripts/mqtt_tracker.py

Stop with Ctrl+C; fixes already received are persisted before exit.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from footprints import FootprintsConfig, MapController, StartTracking, ViewSnapshot, render  # noqa: E402
from footprints._mqtt import MqttLocationFeed  # noqa: E402


def _print_snapshot(snapshot: ViewSnapshot) -> None:
    view = render(snapshot)
    region = view.region
    center = f"({region.center_latitude:.5f}, {region.center_longitude:.5f})" if region else "-"
    print(
        f"[{snapshot.selected_day.isoformat()}] {view.button_label:<14} "
        f"markers={len(view.markers):<4} center={center}"
    )
    if view.alert is not None:
        print(f"  {view.alert.title}: {view.alert.message}")


async def _run() -> None:
    config = FootprintsConfig.from_env()
    feed = MqttLocationFeed(config.mqtt)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    async with MapController.from_config(config, feed) as controller:
        controller.subscribe(_print_snapshot)
        controller.dispatch(StartTracking())
        await stop.wait()
    await feed.aclose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Record an MQTT location topic")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    asyncio.run(_run())
    return 0


if __name__ == "__main__":
    sys.exit(main())
