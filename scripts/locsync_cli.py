#!/usr/bin/env python3
"""Operator command line for the location registry.

Usage
-----
Point the tool at a registry and run one command::

    export LOCSYNC_BASE_URL="http://localhost:8089"
    python scripts/locsync_cli.py list
    python scripts/locsync_cli.py add s1 store 37.7749 -122.4194
    python scripts/locsync_cli.py add d1 driver 37.78 -122.41
    python scripts/locsync_cli.py delete stores s1
    python scripts/locsync_cli.py nearest 37.77 -122.42
    python scripts/locsync_cli.py watch --interval 5

``add`` and ``delete`` load the current snapshot first so the same
uniqueness and driver-move rules apply as in an interactive session.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from pylocsync import EntityKind, LocationSession, LocSyncConfig


def _print_locations(session: LocationSession, json_mode: bool) -> None:
    if json_mode:
        snapshot = session.store.snapshot()
        print(json.dumps(snapshot.model_dump(mode="json"), indent=2))
        return
    lines = session.saved_locations()
    if not lines:
        print("(no saved locations)")
    for line in lines:
        print(line)


async def _watch(session: LocationSession, json_mode: bool) -> None:
    last_revision = -1
    while True:
        await asyncio.sleep(session.poller.interval)
        if session.poll_error:
            print(f"!! {session.poll_error}", file=sys.stderr)
        if session.store.revision != last_revision:
            last_revision = session.store.revision
            print(f"--- revision {last_revision}")
            _print_locations(session, json_mode)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Inspect and edit the location registry.")
    parser.add_argument("--base-url", help="Registry base URL (default: $LOCSYNC_BASE_URL)")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Print all saved locations")

    add = sub.add_parser("add", help="Create a location, or move an existing driver")
    add.add_argument("id")
    add.add_argument("type", choices=[kind.value for kind in EntityKind])
    add.add_argument("lat", type=float)
    add.add_argument("lng", type=float)

    delete = sub.add_parser("delete", help="Delete a location")
    delete.add_argument("collection", choices=[kind.collection for kind in EntityKind])
    delete.add_argument("id")

    nearest = sub.add_parser("nearest", help="Find the driver nearest to a point")
    nearest.add_argument("lat", type=float)
    nearest.add_argument("lng", type=float)

    watch = sub.add_parser("watch", help="Poll the registry and print every change")
    watch.add_argument("--interval", type=float, help="Seconds between polls")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, object] = {}
    if args.base_url:
        overrides["base_url"] = args.base_url
    if args.command == "watch" and args.interval:
        overrides["poll_interval"] = args.interval
    config = LocSyncConfig.from_env(**overrides)

    session = LocationSession(config)
    await session.start(poll=args.command == "watch")
    try:
        return await _run_command(session, args)
    finally:
        await session.close()


async def _run_command(session: LocationSession, args: argparse.Namespace) -> int:
    if args.command == "watch":
        await _watch(session, args.json_mode)
        return 0

    if not await session.poller.poll_once():
        print(session.poll_error or "Failed to load locations.", file=sys.stderr)
        return 1

    if args.command == "list":
        _print_locations(session, args.json_mode)
        return 0

    if args.command == "add":
        session.select_location(args.lat, args.lng)
        session.set_form(args.id, args.type)
        entity = await session.submit()
        if session.error:
            print(session.error, file=sys.stderr)
            return 1
        if entity is None:
            print(f"Saved {args.id}; it will appear after the next poll")
            return 0
        print(f"{entity.kind.label} {entity.id}: ({entity.lat}, {entity.lng})")
        return 0

    if args.command == "delete":
        if not await session.delete(args.collection, args.id):
            print(session.error, file=sys.stderr)
            return 1
        print(f"Deleted {args.id} from {args.collection}")
        return 0

    if args.command == "nearest":
        driver_id = await session.nearest_driver(args.lat, args.lng)
        if driver_id is None:
            print(session.error, file=sys.stderr)
            return 1
        print(driver_id)
        return 0

    return 2


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)
