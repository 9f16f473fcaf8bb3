#!/usr/bin/env python3
"""
FlightDeck Tracklog Replay Script

Feeds a recorded (or synthetic) tracklog through a flight session on a
manual clock and prints the resulting flights and airspace alerts.

Usage:
    python scripts/replay.py [--config CONFIG_FILE] [--track TRACK.json]
    python scripts/replay.py --simulate --lat 46.6863 --lon 7.8632 --alt 1350
"""

import sys
import argparse
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from flightdeck.config import Config, configure_logging
from flightdeck.exceptions import FlightDeckError
from flightdeck.tracking import (
    FlightSession,
    InlineExecutor,
    ManualClock,
    calculate_statistics,
    generate_test_tracklog,
    load_tracklog,
    replay_tracklog,
)
from flightdeck.utils import format_altitude, format_duration, format_speed


def print_flight(flight):
    """Print one closed flight."""
    print("=" * 70)
    print(f"🪂 FLIGHT {flight.id}")
    print("=" * 70)
    print(f"Status:           {flight.status.value}")
    print(f"Takeoff:          {flight.takeoff_site.name} at {flight.takeoff_time:%H:%M:%S}")
    if flight.landing_site is not None:
        print(f"Landing:          {flight.landing_site.name} at {flight.landing_time:%H:%M:%S}")
    if flight.flight_time_minutes is not None:
        print(f"Flight Time:      {format_duration(flight.flight_time_minutes * 60)}")
    if flight.altitude_difference is not None:
        print(f"Altitude Lost:    {format_altitude(flight.altitude_difference)}")
    stats = calculate_statistics(flight.track_points)
    print(f"Distance:         {stats.total_distance_m / 1000:.1f} km")
    print(f"Max Speed:        {format_speed(stats.max_speed_ms)}")
    print(f"Average Speed:    {format_speed(stats.average_speed_ms)}")
    print(f"Track Points:     {len(flight.track_points)}")


def main():
    """Main entry point for tracklog replay."""
    parser = argparse.ArgumentParser(
        description="FlightDeck Replay - Run a tracklog through flight detection"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument("--track", type=str, help="JSON tracklog to replay")
    parser.add_argument(
        "--simulate", action="store_true", help="Replay a synthetic flight instead"
    )
    parser.add_argument("--lat", type=float, default=46.6863, help="Simulated launch latitude")
    parser.add_argument("--lon", type=float, default=7.8632, help="Simulated launch longitude")
    parser.add_argument("--alt", type=float, default=1350.0, help="Simulated launch altitude (m)")
    parser.add_argument(
        "--minutes", type=float, default=10, help="Simulated flight duration in minutes"
    )

    args = parser.parse_args()

    if not args.track and not args.simulate:
        parser.error("either --track or --simulate is required")

    # Load configuration
    try:
        config = Config(args.config)
        configure_logging(config)
    except Exception as e:
        print(f"❌ Error loading configuration: {e}")
        sys.exit(1)

    # Load or generate the track
    try:
        if args.simulate:
            points = generate_test_tracklog(
                args.lat, args.lon, args.alt, duration_minutes=args.minutes
            )
        else:
            points = load_tracklog(args.track)
    except (OSError, ValueError) as e:
        print(f"❌ Error reading tracklog: {e}")
        sys.exit(1)

    if not points:
        print("❌ Tracklog contains no usable points")
        sys.exit(1)

    clock = ManualClock(points[0].timestamp)
    try:
        session = FlightSession.from_config(config, clock=clock, executor=InlineExecutor())
    except FlightDeckError as e:
        print(f"❌ Error loading reference data: {e}")
        sys.exit(1)

    print(f"▶️  Replaying {len(points)} points for {session.pilot.pilot_id}")

    try:
        events = replay_tracklog(session, points, clock)
    except KeyboardInterrupt:
        print("\n👋 Replay stopped by user")
        session.close()
        return

    print(f"✈️  {len(events)} takeoff/landing events detected")
    for flight in reversed(session.recent_flights):
        print_flight(flight)
        alerts = session.store.get_alerts_for_flight(flight.id)
        for alert in alerts:
            print("\n⚠️  " + alert["reason"].replace("\n", "\n    "))

    print(f"\n{session.status_text}")
    session.close()


if __name__ == "__main__":
    main()
