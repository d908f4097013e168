#!/usr/bin/env python3
"""Print the stored location history.

Reads the history the tracker persisted (``FOOTPRINTS_STORAGE_DIR``,
``FOOTPRINTS_STORAGE_KEY``) and prints it grouped by calendar day in the
store's reference zone.

Usage
-----
::

    python scripts/dump_history.py
    python scripts/dump_history.py --day 2026-03-14 --json

Options::

    --day YYYY-MM-DD     Only print this day
    --json               Output as machine-readable JSON
    --storage-dir DIR    Override FOOTPRINTS_STORAGE_DIR
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import defaultdict
from datetime import date
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from footprints import FootprintsConfig, LocationPoint, LocationStore, compute_viewport  # noqa: E402


def _group_by_day(store: LocationStore) -> dict[date, list[LocationPoint]]:
    grouped: dict[date, list[LocationPoint]] = defaultdict(list)
    for point in store.points:
        grouped[store.day_of(point)].append(point)
    return dict(sorted(grouped.items()))


def _print_text(days: dict[date, list[LocationPoint]], store: LocationStore) -> None:
    zone = store.reference_zone
    for day, points in days.items():
        viewport = compute_viewport(points)
        center = f" center=({viewport.center_latitude:.5f}, {viewport.center_longitude:.5f})" if viewport else ""
        print(f"{day.isoformat()}  {len(points)} point(s){center}")
        for point in points:
            local = point.timestamp.astimezone(zone).strftime("%H:%M:%S")
            label = f"  {point.title}" if point.title else ""
            print(f"  {local}  {point.latitude:.6f}, {point.longitude:.6f}{label}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Print stored footprints history")
    parser.add_argument("--day", type=date.fromisoformat, help="Only print this day (YYYY-MM-DD)")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    parser.add_argument("--storage-dir", type=Path, help="Override FOOTPRINTS_STORAGE_DIR")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    overrides = {"storage_dir": args.storage_dir} if args.storage_dir else {}
    config = FootprintsConfig.from_env(**overrides)
    store = LocationStore.from_config(config)
    store.load()
    if store.degraded:
        print(f"warning: {store.load_error}", file=sys.stderr)

    days = _group_by_day(store)
    if args.day is not None:
        days = {args.day: store.points_on_day(args.day)}

    if args.json:
        payload = {
            "zone": store.reference_zone.key,
            "days": {day.isoformat(): [p.model_dump(mode="json") for p in points] for day, points in days.items()},
        }
        json.dump(payload, sys.stdout, indent=2)
        print()
    else:
        _print_text(days, store)
    return 0


if __name__ == "__main__":
    sys.exit(main())
