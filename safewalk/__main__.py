#!/usr/bin/env python3
"""
SafeWalk - Pedestrian safety navigation

Usage:
    python -m safewalk ROUTE_JSON [options]
    python -m safewalk --origin ADDRESS --destination ADDRESS [options]

Options:
    --route-index N   Which alternative to navigate (default: 0, the safest)
    --list            List route alternatives and exit
    --save-routes F   Save found alternatives to a JSON file
    --record FILE     Record GPS trace to JSON file for debugging
    --playback FILE   Playback GPS trace from JSON file
    --speed FACTOR    Playback speed multiplier (default: 1.0)
    --instant         Replay the playback trace on a virtual clock, as fast as possible
    --log FILE        Log file path (default: safewalk_TIMESTAMP.log)
    --db FILE         Track history database (default: safewalk_history.db)
    --html FILE       Save a map of the session to an HTML file
    --debug-gui       Run with web-based visual debugger (click the map to move)
    --remote-url URL  Also upload location updates to this REST endpoint
    --remote-key KEY  API key for the upload endpoint
    --quiet           Do not speak announcements
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

from .app import SafeWalk
from .debug_gui import WebSocketPositionSource
from .gps import PlaybackPositionSource, PositionRecorder, TermuxPositionSource
from .models import RouteResult


def load_routes(path: str) -> list[RouteResult]:
    """Load one route or a list of alternatives from a JSON file"""
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("routes", [data])
    return [RouteResult.from_dict(d) for d in data]


def print_routes(routes: list[RouteResult]):
    for i, route in enumerate(routes):
        factors = ", ".join(f"{k}: {v}" for k, v in route.factors.items())
        print(f"[{i}] {route.name or route.route_id} - safety {route.safety_score}")
        print(f"    {route.distance_text}, {route.duration_text} via {route.via}")
        if factors:
            print(f"    {factors}")


def main():
    parser = argparse.ArgumentParser(
        description="SafeWalk - Pedestrian safety navigation"
    )
    parser.add_argument("route", nargs="?", metavar="ROUTE_JSON",
                        help="JSON file with a route or route alternatives")
    parser.add_argument("--origin", help="Start address for a directions search")
    parser.add_argument("--destination", help="Destination address for a directions search")
    parser.add_argument("--route-index", type=int, default=0,
                        help="Route alternative to navigate (default: 0)")
    parser.add_argument("--list", action="store_true",
                        help="List route alternatives and exit")
    parser.add_argument("--save-routes", metavar="FILE",
                        help="Save found route alternatives to JSON file")
    parser.add_argument("--record", metavar="FILE",
                        help="Record GPS trace to JSON file")
    parser.add_argument("--playback", metavar="FILE",
                        help="Playback GPS trace from JSON file")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Playback speed multiplier (default: 1.0)")
    parser.add_argument("--instant", action="store_true",
                        help="Replay the playback trace on a virtual clock (requires --playback)")
    parser.add_argument("--log", metavar="FILE",
                        help="Log file path (default: safewalk_TIMESTAMP.log)")
    parser.add_argument("--db", metavar="FILE",
                        help="Track history database path")
    parser.add_argument("--html", metavar="FILE",
                        help="Save a map of the session to an HTML file")
    parser.add_argument("--debug-gui", action="store_true",
                        help="Run with web-based visual debugger")
    parser.add_argument("--remote-url", metavar="URL",
                        help="REST endpoint for location uploads")
    parser.add_argument("--remote-key", metavar="KEY",
                        help="API key for the upload endpoint")
    parser.add_argument("--quiet", action="store_true",
                        help="Do not speak announcements")

    args = parser.parse_args()

    if (args.origin is None) != (args.destination is None):
        parser.error("--origin and --destination must be used together")
    if not args.route and args.origin is None:
        parser.error("a ROUTE_JSON file or --origin/--destination is required")
    if args.instant and not args.playback:
        parser.error("--instant requires --playback")
    if args.debug_gui and args.playback:
        parser.error("--debug-gui and --playback cannot be combined")
    if args.speed <= 0:
        parser.error("--speed must be positive")

    log_path = args.log
    if not log_path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = f"safewalk_{timestamp}.log"

    app = SafeWalk(
        log_path=log_path,
        db_path=args.db,
        html_output=args.html,
        debug_gui=args.debug_gui,
        remote_url=args.remote_url,
        remote_key=args.remote_key,
        announce=not args.quiet,
    )

    if args.origin is not None:
        routes = app.find_routes(args.origin, args.destination)
    else:
        if not Path(args.route).exists():
            print(f"Route file not found: {args.route}")
            sys.exit(1)
        routes = load_routes(args.route)

    if not routes:
        print("Could not find routes. Please check your locations.")
        sys.exit(1)

    if args.save_routes:
        with open(args.save_routes, "w") as f:
            json.dump([r.to_dict() for r in routes], f, indent=2)
        print(f"Routes saved to {args.save_routes}")

    if args.list:
        print_routes(routes)
        return

    if not 0 <= args.route_index < len(routes):
        print(f"Route index {args.route_index} out of range (0-{len(routes) - 1})")
        sys.exit(1)
    route = routes[args.route_index]

    # Set up GPS source
    if args.debug_gui:
        def base_source(scheduler):
            return WebSocketPositionSource(app.debug_server)
    elif args.playback:
        if not Path(args.playback).exists():
            print(f"Playback file not found: {args.playback}")
            sys.exit(1)

        def base_source(scheduler):
            return PlaybackPositionSource(args.playback, scheduler, args.speed)
    else:
        def base_source(scheduler):
            return TermuxPositionSource()

    if args.record:
        app.set_gps_source(lambda scheduler: PositionRecorder(base_source(scheduler), args.record))
    else:
        app.set_gps_source(base_source)

    app.run(route, instant=args.instant)


if __name__ == "__main__":
    main()
