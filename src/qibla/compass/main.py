# main.py
# Entry point: prints the Qibla bearing for a coordinate and can simulate a
# compass session with a constant device heading.
#
#   qibla --lat 40.7128 --lon -74.0060
#   qibla --lat 21.0 --lon 39.0 --heading 0 --duration 2

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .models import BearingResult, Coord, OrientationEvent, Platform, QiblaSnapshot
from .qibla_config import QiblaConfig
from .qibla_session import QiblaSession
from .qibla_store import QiblaStore
from .sources import SimulatedLocationService, SimulatedOrientationSource


def positive_float(value: str) -> float:
    number = float(value)
    if not number > 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qibla",
        description="Qibla direction and distance from a coordinate, with optional compass simulation.",
    )
    parser.add_argument("--lat", type=float, required=True, help="Latitude in decimal degrees")
    parser.add_argument("--lon", type=float, required=True, help="Longitude in decimal degrees")
    parser.add_argument("--heading", type=float, default=None,
                        help="Simulate a constant device heading (degrees)")
    parser.add_argument("--duration", type=float, default=2.0,
                        help="Simulated sensor time in seconds (default: 2.0)")
    parser.add_argument("--rate", type=positive_float, default=60.0,
                        help="Simulated orientation events per second (default: 60)")
    parser.add_argument("--source", choices=("compass", "alpha"), default="compass",
                        help="Report --heading as an iOS compass heading or as a raw alpha angle")
    parser.add_argument("--user-agent", default="",
                        help="User agent used to interpret raw alpha readings (with --source alpha)")
    parser.add_argument("--log-dir", default=None,
                        help="Persist last location and session log in this directory")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def format_bearing(coord: Coord, result: BearingResult) -> str:
    return (
        f"Location:        {coord.format()}\n"
        f"Qibla direction: {result.bearing_degrees:.2f}° ({result.cardinal})\n"
        f"Distance:        {result.distance_miles:,.1f} mi ({result.distance_km:,.1f} km)"
    )


def format_snapshot(snapshot: QiblaSnapshot) -> str:
    lines = [f"State:           {snapshot.calibration_state.value}"]
    if snapshot.smoothed_heading is not None:
        lines.append(f"Device heading:  {snapshot.smoothed_heading:.1f}°")
    if snapshot.needle_rotation_degrees is not None:
        lines.append(f"Needle rotation: {snapshot.needle_rotation_degrees:.2f}°")
    if snapshot.error_message:
        lines.append(f"Error:           {snapshot.error_message}")
    return "\n".join(lines)


async def simulate(coord: Coord, args: argparse.Namespace, config: QiblaConfig) -> QiblaSnapshot:
    """Run a session against simulated sensors streaming a constant heading."""
    location = SimulatedLocationService([coord])
    orientation = SimulatedOrientationSource()
    store = QiblaStore(config) if args.log_dir else None
    session = QiblaSession(
        location,
        orientation,
        store=store,
        config=config,
        platform=Platform(user_agent=args.user_agent),
    )
    try:
        await session.start()
        interval = 1.0 / args.rate
        ticks = int(args.duration * args.rate)
        if args.source == "alpha":
            reading = OrientationEvent(alpha=args.heading)
        else:
            reading = OrientationEvent(compass_heading=args.heading)
        for _ in range(ticks):
            orientation.emit(reading)
            await asyncio.sleep(interval)
        return session.snapshot
    finally:
        session.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        coord = Coord(args.lat, args.lon)
    except ValueError as e:
        print(f"[Qibla] Invalid coordinate: {e}", file=sys.stderr)
        return 2

    print(format_bearing(coord, BearingResult.between(coord)))

    if args.heading is None:
        return 0

    config = QiblaConfig(log_dir=args.log_dir or ".")
    snapshot = asyncio.run(simulate(coord, args, config))
    print(format_snapshot(snapshot))
    return 0


if __name__ == "__main__":
    sys.exit(main())
