"""
FlightDeck Simulation
Synthetic tracklogs and deterministic replay through a session.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from math import cos, radians, sin
from typing import Any, Iterable, List, Optional

from ..config import Constants
from .clock import ManualClock
from .constants import SIM_GLIDE_SPEED_MS, SIM_MIN_POINTS, SIM_SINK_RATE_MS
from .models import FlightEvent, TrackPoint

logger = logging.getLogger(__name__)


def _offset(lat: float, lon: float, distance_m: float, heading_deg: float):
    """Move a position distance_m along heading_deg (flat-earth step)."""
    dlat = distance_m * cos(radians(heading_deg)) / Constants.M_PER_DEGREE_LAT
    dlon = distance_m * sin(radians(heading_deg)) / (
        Constants.M_PER_DEGREE_LAT * cos(radians(lat))
    )
    return lat + dlat, lon + dlon


def generate_test_tracklog(
    start_lat: float,
    start_lon: float,
    start_altitude: float,
    start_time: Optional[datetime] = None,
    duration_minutes: float = 10,
    interval_seconds: float = 10,
    heading: float = 90.0,
) -> List[TrackPoint]:
    """
    Generate a synthetic paraglider flight.

    The track passes through five phases by progress: standing on launch
    (first 5%), takeoff run (to 10%), gliding at trim speed with steady
    sink (to 85%), approach (to 95%) and standing after landing.

    Args:
        start_lat, start_lon: Launch position in degrees
        start_altitude: Launch altitude in meters
        start_time: Time of the first sample (defaults to now, UTC)
        duration_minutes: Total track duration
        interval_seconds: Time between samples
        heading: Flight direction in degrees

    Returns:
        Track points in time order (at least 24)
    """
    start_time = start_time or datetime.now(timezone.utc)
    count = max(SIM_MIN_POINTS, int(duration_minutes * 60 // interval_seconds) + 1)

    points = []
    lat, lon, altitude = start_lat, start_lon, start_altitude
    for i in range(count):
        progress = i / (count - 1)
        if progress < 0.05:
            speed, vertical = 0.0, 0.0
        elif progress < 0.10:
            speed, vertical = 3.0 + 50.0 * (progress - 0.05), -0.2
        elif progress < 0.85:
            speed, vertical = SIM_GLIDE_SPEED_MS, -SIM_SINK_RATE_MS
        elif progress < 0.95:
            speed, vertical = SIM_GLIDE_SPEED_MS * 0.6, -1.5
        else:
            speed, vertical = 0.0, 0.0

        if i > 0:
            lat, lon = _offset(lat, lon, speed * interval_seconds, heading)
            altitude += vertical * interval_seconds

        points.append(
            TrackPoint(
                timestamp=start_time + timedelta(seconds=i * interval_seconds),
                latitude=lat,
                longitude=lon,
                altitude=altitude,
                speed=speed,
                vertical_speed=vertical,
                heading=heading if speed > 0 else None,
            )
        )

    return points


def load_tracklog(path: str) -> List[TrackPoint]:
    """
    Load decoded track points from a JSON file.

    The file holds a list of point records, or a mapping with a ``points``
    list. Unusable records are skipped.

    Args:
        path: JSON file path

    Returns:
        Track points in file order
    """
    with open(path, "r", encoding="utf-8") as f:
        data: Any = json.load(f)

    if isinstance(data, dict):
        data = data.get("points", [])

    points = []
    skipped = 0
    for record in data or []:
        point = TrackPoint.from_dict(record)
        if point is None:
            skipped += 1
            continue
        points.append(point)

    if skipped:
        logger.warning("Skipped %d unusable records in %s", skipped, path)
    return points


def replay_tracklog(
    session, points: Iterable[TrackPoint], clock: ManualClock, close_at_end: bool = True
) -> List[FlightEvent]:
    """
    Feed a recorded track through a session on a manual clock.

    The clock is moved to each sample's timestamp before the sample is
    processed, so the watchdog sees recorded time rather than wall time.
    With close_at_end the clock then runs past the auto-close timeout,
    closing a flight the track never landed.

    Args:
        session: FlightSession built with the same ManualClock
        points: Track points in time order (timezone-aware)
        clock: The session's ManualClock
        close_at_end: Advance past the watchdog timeout after the last point

    Returns:
        Events produced while processing the points
    """
    events = []
    for point in points:
        if isinstance(point, TrackPoint) and isinstance(point.timestamp, datetime):
            clock.advance_to(point.timestamp)
        event = session.process_point(point)
        if event is not None:
            events.append(event)

    if close_at_end:
        clock.advance(session.auto_close_timeout)

    return events
