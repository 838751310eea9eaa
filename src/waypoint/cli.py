"""
Waypoint CLI entrypoint.

This CLI is intended for quick local checks without a client device:
- `replay`: feed a recorded CSV track through the proximity monitor and print the events.
- `eta`: one-shot straight-line distance/ETA between two points.
"""

from __future__ import annotations

import argparse
import json
import sys

from waypoint.config.settings import get_settings
from waypoint.core.env import resolve_project_path
from waypoint.core.geo import distance, eta, format_distance, format_eta, has_arrived, should_notify
from waypoint.core.logging import configure_logging
from waypoint.core.time import dt_from_epoch_ms
from waypoint.domain.models import Coordinate, Destination
from waypoint.tracking.monitor import ProximityMonitor
from waypoint.tracking.notify import RecordingDispatcher, describe
from waypoint.tracking.position_source import PositionError, PositionOptions, ReplayPositionSource
from waypoint.tracking.store import InMemoryDestinationStore
from waypoint.tracking.track_csv import load_track_csv


def _cmd_replay(args: argparse.Namespace) -> int:
    """Handle the `replay` subcommand."""
    settings = get_settings()

    samples, summary = load_track_csv(resolve_project_path(args.csv), timezone=settings.app.timezone)
    if not samples:
        print(f"No usable samples in {args.csv} ({summary.rows_skipped} rows skipped).", file=sys.stderr)
        return 2

    store = InMemoryDestinationStore()
    destination = store.add(
        Destination(
            name=args.name,
            lat=float(args.dest_lat),
            lng=float(args.dest_lng),
            radius_m=float(args.radius_m if args.radius_m is not None else settings.destination.radius_m),
            notify_before_minutes=float(
                args.notify_before if args.notify_before is not None else settings.destination.notify_before_minutes
            ),
            is_active=True,
        )
    )

    recorder = RecordingDispatcher()
    monitor = ProximityMonitor(store, recorder)
    source = ReplayPositionSource(samples)
    errors: list[PositionError] = []
    options = PositionOptions.from_settings(settings)
    monitor.start(source, options=options, on_error=errors.append)
    delivered = source.play()
    monitor.stop()

    final = store.get(destination.id)
    if args.json:
        payload = {
            "destination": final.model_dump(mode="json"),
            "samples": {"delivered": delivered, "parsed": summary.rows_parsed, "skipped": summary.rows_skipped},
            "events": [e.model_dump(mode="json") for e in recorder.events],
            "errors": [e.kind.value for e in errors],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 1 if errors else 0

    print(f"Destination: {final.name} ({final.lat:.6f}, {final.lng:.6f}) radius={final.radius_m:.0f}m")
    print(f"Samples: {delivered}/{summary.rows_parsed} replayed, {summary.rows_skipped} skipped")
    if not recorder.events:
        print("No events.")
    for event in recorder.events:
        at = dt_from_epoch_ms(event.occurred_at_ms, settings.app.timezone).isoformat(timespec="seconds")
        print(f"  [{at}] {event.kind}: {describe(event)}")
    if final.arrived_at_ms is not None:
        print(f"Marked arrived at {final.arrived_at_ms}.")
    for error in errors:
        print(f"Position error ({error.kind.value}): {error.message}", file=sys.stderr)
    return 1 if errors else 0


def _cmd_eta(args: argparse.Namespace) -> int:
    """Handle the `eta` subcommand."""
    here = Coordinate(lat=float(args.from_lat), lng=float(args.from_lng))
    there = Coordinate(lat=float(args.to_lat), lng=float(args.to_lng))
    meters = distance(here, there).meters
    mps = float(args.speed_kmh) / 3.6
    minutes = eta(meters, mps)

    if args.json:
        payload = {
            "distance_meters": meters,
            "speed_mps": mps,
            "eta_minutes": minutes,
            "arrived": has_arrived(meters, float(args.radius_m)),
            "notify": should_notify(meters, mps, float(args.notify_before)),
        }
        print(json.dumps(payload, indent=2))
        return 0

    print(f"Distance: {format_distance(meters)}")
    print(f"ETA: {format_eta(minutes) if minutes > 0 else 'unknown'}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the Waypoint CLI."""
    parser = argparse.ArgumentParser(prog="waypoint")
    parser.add_argument("--log-level", default=None, help="Override app.log_level (e.g. DEBUG).")
    sub = parser.add_subparsers(dest="command", required=True)

    rep = sub.add_parser("replay", help="Replay a recorded CSV track against one destination.")
    rep.add_argument("csv", help="CSV with lat,lng and captured_at_ms (or ISO timestamp) columns")
    rep.add_argument("--dest-lat", required=True, type=float)
    rep.add_argument("--dest-lng", required=True, type=float)
    rep.add_argument("--name", default="Destination")
    rep.add_argument("--radius-m", type=float, default=None, help="Arrival radius in meters (10..1000)")
    rep.add_argument("--notify-before", type=float, default=None, help="Lead time in minutes (1..60)")
    rep.add_argument("--json", action="store_true", help="Print machine-readable JSON output.")
    rep.set_defaults(func=_cmd_replay)

    est = sub.add_parser("eta", help="Straight-line distance and ETA between two points.")
    est.add_argument("--from-lat", required=True, type=float)
    est.add_argument("--from-lng", required=True, type=float)
    est.add_argument("--to-lat", required=True, type=float)
    est.add_argument("--to-lng", required=True, type=float)
    est.add_argument("--speed-kmh", required=True, type=float)
    est.add_argument("--radius-m", type=float, default=100)
    est.add_argument("--notify-before", type=float, default=1)
    est.add_argument("--json", action="store_true")
    est.set_defaults(func=_cmd_eta)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI main entrypoint (returns a process exit code)."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
