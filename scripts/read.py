#!/usr/bin/env python3
"""
FlightDeck Flight Book Reader Script

Usage:
    python scripts/read.py [--db DATABASE_FILE]
"""

import sys
import argparse
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from flightdeck.config import Config
from flightdeck.tracking import FlightReader
from flightdeck.utils import format_altitude, format_duration


def print_menu():
    """Print interactive menu."""
    print("\n" + "=" * 70)
    print("🪂 FLIGHTDECK FLIGHT BOOK - MAIN MENU")
    print("=" * 70)
    print("1.  Overview & Statistics")
    print("2.  Recent Flights (30 days)")
    print("3.  Top Takeoff Sites")
    print("4.  Recent Alerts")
    print("5.  Pilots In Flight")
    print("6.  View Flight (by ID)")
    print("0.  Exit")
    print("=" * 70)


def display_overview(reader: FlightReader):
    """Display overview statistics."""
    stats = reader.get_overview()

    print("=" * 70)
    print("📊 FLIGHTDECK OVERVIEW")
    print("=" * 70)
    print(f"Total Flights:            {stats['total_flights']:,}")
    print(f"Completed:                {stats['completed_flights']:,}")
    print(f"Cancelled:                {stats['cancelled_flights']:,}")
    print(f"Total Airtime:            {format_duration(stats['total_flight_minutes'] * 60)}")
    print(f"Total Distance:           {stats['total_distance_m'] / 1000:.1f} km")
    if stats["max_altitude_m"] is not None:
        print(f"Highest Altitude:         {format_altitude(stats['max_altitude_m'])}")
    print(f"Airspace/Altitude Alerts: {stats['total_alerts']:,}")

    if stats["first_flight"]:
        print(f"First Flight:             {stats['first_flight']}")
        print(f"Last Flight:              {stats['last_flight']}")


def display_recent_flights(reader: FlightReader):
    """Display flights of the last 30 days."""
    flights = reader.get_recent_flights(days=30, limit=20)

    print(f"\n🕐 RECENT FLIGHTS ({len(flights)})")
    print("-" * 70)
    if not flights:
        print("No flights recorded.")
        return

    print(f"{'Takeoff':<20} {'From':<20} {'To':<20} {'Min':>6}")
    print("-" * 70)
    for flight in flights:
        minutes = flight["flight_time_minutes"]
        print(
            f"{flight['takeoff_time'][:19]:<20} "
            f"{(flight['takeoff_site'] or '')[:19]:<20} "
            f"{(flight['landing_site'] or flight['status'])[:19]:<20} "
            f"{minutes if minutes is not None else '-':>6}"
        )


def display_top_sites(reader: FlightReader):
    """Display most used takeoff sites."""
    sites = reader.get_top_sites(limit=10)

    print("\n⛰️  TOP TAKEOFF SITES")
    print("-" * 70)
    for i, site in enumerate(sites, 1):
        avg = site["avg_minutes"] or 0
        print(f"{i:2}. {site['site'][:40]:<40} {site['flight_count']:>4} flights  {avg:.0f} min avg")


def display_alerts(reader: FlightReader):
    """Display the most recent alerts."""
    alerts = reader.get_alerts(limit=10)

    print(f"\n⚠️  RECENT ALERTS ({len(alerts)})")
    print("-" * 70)
    for alert in alerts:
        active = "ACTIVE" if alert["any_active"] else "closed"
        print(f"{alert['updated_at'][:19]}  {alert['alert_type']:<20} {active:<8} {alert['flight_id']}")


def display_live_pilots(reader: FlightReader):
    """Display pilots currently in flight."""
    pilots = reader.get_live_pilots()

    print(f"\n📡 PILOTS IN FLIGHT ({len(pilots)})")
    print("-" * 70)
    for pilot in pilots:
        print(
            f"{pilot.get('display_name') or pilot['pilot_id']:<25} "
            f"{pilot['latitude']:.4f}, {pilot['longitude']:.4f}  "
            f"{format_altitude(pilot.get('altitude'), include_feet=False):>8}  "
            f"from {pilot.get('takeoff_site') or '?'}"
        )


def display_flight(reader: FlightReader, flight_id: str):
    """Display one flight with its violations."""
    flight = reader.get_flight(flight_id)
    if flight is None:
        print(f"❌ Flight {flight_id} not found")
        return

    print("\n" + "=" * 70)
    print(f"🪂 FLIGHT {flight['id']}")
    print("=" * 70)
    print(f"Status:         {flight['status']}")
    print(f"Takeoff:        {flight['takeoff_site']} at {flight['takeoff_time']}")
    if flight["landing_site"]:
        print(f"Landing:        {flight['landing_site']} at {flight['landing_time']}")
    if flight["flight_time_minutes"] is not None:
        print(f"Flight Time:    {format_duration(flight['flight_time_minutes'] * 60)}")
    print(f"Track Points:   {flight['point_count']}")

    violations = reader.get_flight_violations(flight_id)
    if violations:
        print(f"\nAirspace violations: {len(violations)}")
        for v in violations:
            status = "landed inside" if v["landed_in_airspace"] else v["status"]
            print(f"  - {v['zone_name']} ({v['zone_kind']}): {status}")


def main():
    """Main entry point for reader."""
    parser = argparse.ArgumentParser(
        description="FlightDeck Flight Book Reader - Query recorded flights"
    )
    parser.add_argument(
        "--db", type=str, help="Path to database file (default: from config.yaml)"
    )

    args = parser.parse_args()

    # Get database path
    if args.db:
        db_path = args.db
    else:
        config = Config("config.yaml")
        db_path = config.db_path

    # Create reader
    try:
        reader = FlightReader(db_path)
    except Exception as e:
        print(f"❌ Error opening database: {e}")
        sys.exit(1)

    # Interactive menu loop
    try:
        while True:
            print_menu()
            choice = input("\nEnter your choice (0-6): ").strip()

            if choice == "0":
                print("\n👋 Goodbye!")
                break
            elif choice == "1":
                display_overview(reader)
            elif choice == "2":
                display_recent_flights(reader)
            elif choice == "3":
                display_top_sites(reader)
            elif choice == "4":
                display_alerts(reader)
            elif choice == "5":
                display_live_pilots(reader)
            elif choice == "6":
                flight_id = input("Enter flight ID: ").strip()
                display_flight(reader, flight_id)
            else:
                print("❌ Invalid choice. Please try again.")

            input("\nPress Enter to continue...")

    except KeyboardInterrupt:
        print("\n\n👋 Interrupted by user")
    finally:
        reader.close()


if __name__ == "__main__":
    main()
