"""
FlightDeck Data Model
Track points, flight records, named sites and derived track statistics.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..utils import haversine_distance, parse_float


class SiteType(str, Enum):
    """Kind of named ground location."""

    TAKEOFF = "takeoff"
    LANDING = "landing"


class FlightStatus(str, Enum):
    """Lifecycle status of a flight record."""

    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EventType(str, Enum):
    """Flight lifecycle events emitted by the phase detector."""

    TAKEOFF = "takeoff"
    LANDING = "landing"


class ResolutionSource(str, Enum):
    """Which rule produced a resolved site label."""

    TYPED = "typed"
    PROXIMITY = "proximity"
    FALLBACK = "fallback"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp from a decoded tracklog record.

    Accepts datetime objects, ISO-8601 strings (a trailing 'Z' is allowed)
    and epoch seconds. Naive values are kept naive.

    Returns:
        Parsed datetime, or None if the value is unusable
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def _first_present(record: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


@dataclass(frozen=True)
class TrackPoint:
    """One timestamped GPS fix with optional kinematics."""

    timestamp: datetime
    latitude: float
    longitude: float
    altitude: float = 0.0
    speed: Optional[float] = None  # horizontal, m/s
    vertical_speed: Optional[float] = None  # m/s, positive = climb
    heading: Optional[float] = None  # degrees

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> Optional["TrackPoint"]:
        """
        Build a point from a decoded tracklog record.

        Args:
            record: Mapping with timestamp, lat/lon and optional altitude,
                    speed, vertical speed and heading

        Returns:
            TrackPoint, or None when timestamp or coordinates are unusable
        """
        if not isinstance(record, dict):
            return None

        timestamp = parse_timestamp(_first_present(record, "timestamp", "time"))
        lat = parse_float(_first_present(record, "latitude", "lat"))
        lon = parse_float(_first_present(record, "longitude", "lon", "lng"))
        if timestamp is None or lat is None or lon is None:
            return None

        altitude = parse_float(_first_present(record, "altitude", "alt"))
        return cls(
            timestamp=timestamp,
            latitude=lat,
            longitude=lon,
            altitude=altitude if altitude is not None else 0.0,
            speed=parse_float(record.get("speed")),
            vertical_speed=parse_float(
                _first_present(record, "vertical_speed", "verticalSpeed")
            ),
            heading=parse_float(record.get("heading")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
            "speed": self.speed,
            "vertical_speed": self.vertical_speed,
            "heading": self.heading,
        }


@dataclass(frozen=True)
class FlightEvent:
    """A takeoff or landing transition."""

    event_type: EventType
    latitude: float
    longitude: float
    altitude: float
    timestamp: datetime


@dataclass(frozen=True)
class NamedSite:
    """A named takeoff or landing location."""

    id: str
    name: str
    site_type: SiteType
    latitude: float
    longitude: float
    altitude: float = 0.0


@dataclass(frozen=True)
class ResolvedSite:
    """Label for a flight endpoint, with the rule that produced it."""

    name: str
    latitude: float
    longitude: float
    altitude: float
    site_id: Optional[str] = None
    source: ResolutionSource = ResolutionSource.FALLBACK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
            "site_id": self.site_id,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolvedSite":
        return cls(
            name=data["name"],
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            altitude=float(data.get("altitude") or 0.0),
            site_id=data.get("site_id"),
            source=ResolutionSource(data.get("source", ResolutionSource.FALLBACK.value)),
        )


@dataclass(frozen=True)
class PilotProfile:
    """Identity shown to live observers and used to key stored records."""

    pilot_id: str
    display_name: str = ""
    license_number: Optional[str] = None
    license_type: Optional[str] = None
    glider: Optional[str] = None

    @classmethod
    def from_config(cls, config) -> "PilotProfile":
        """Build a profile from the ``pilot`` section of a Config."""
        return cls(
            pilot_id=config.pilot_id,
            display_name=config.pilot_name,
            license_number=config.get("pilot.license_number"),
            license_type=config.get("pilot.license_type"),
            glider=config.get("pilot.glider"),
        )


@dataclass
class FlightRecord:
    """
    Authoritative record of one flight.

    Created on takeoff and mutated only by the owning session; once the
    status leaves IN_FLIGHT the record is treated as immutable.
    """

    id: str
    takeoff_time: datetime
    takeoff_site: ResolvedSite
    status: FlightStatus = FlightStatus.IN_FLIGHT
    landing_time: Optional[datetime] = None
    landing_site: Optional[ResolvedSite] = None
    track_points: List[TrackPoint] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.status != FlightStatus.IN_FLIGHT

    @property
    def flight_time_minutes(self) -> Optional[int]:
        """Whole minutes between takeoff and landing."""
        if self.landing_time is None:
            return None
        return int((self.landing_time - self.takeoff_time).total_seconds() // 60)

    @property
    def altitude_difference(self) -> Optional[float]:
        """Takeoff altitude minus landing altitude in meters."""
        if self.landing_site is None:
            return None
        return self.takeoff_site.altitude - self.landing_site.altitude

    def to_dict(self, include_track: bool = True) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        data = {
            "id": self.id,
            "status": self.status.value,
            "takeoff_time": self.takeoff_time.isoformat(),
            "landing_time": self.landing_time.isoformat() if self.landing_time else None,
            "takeoff_site": self.takeoff_site.to_dict(),
            "landing_site": self.landing_site.to_dict() if self.landing_site else None,
            "flight_time_minutes": self.flight_time_minutes,
            "altitude_difference": self.altitude_difference,
        }
        if include_track:
            data["track_points"] = [p.to_dict() for p in self.track_points]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlightRecord":
        points = [TrackPoint.from_dict(p) for p in data.get("track_points") or []]
        return cls(
            id=data["id"],
            takeoff_time=parse_timestamp(data["takeoff_time"]),
            takeoff_site=ResolvedSite.from_dict(data["takeoff_site"]),
            status=FlightStatus(data.get("status", FlightStatus.IN_FLIGHT.value)),
            landing_time=parse_timestamp(data.get("landing_time")),
            landing_site=(
                ResolvedSite.from_dict(data["landing_site"])
                if data.get("landing_site")
                else None
            ),
            track_points=[p for p in points if p is not None],
        )


@dataclass
class TrackStatistics:
    """Summary figures for a recorded track."""

    point_count: int = 0
    min_altitude: Optional[float] = None
    max_altitude: Optional[float] = None
    altitude_gain: float = 0.0
    total_distance_m: float = 0.0
    max_speed_ms: float = 0.0
    average_speed_ms: float = 0.0
    duration_seconds: float = 0.0


def calculate_statistics(points: Sequence[TrackPoint]) -> TrackStatistics:
    """
    Calculate summary statistics for a track.

    Altitude gain sums every climb between consecutive points. Speeds use
    the recorded speed where present, otherwise distance over time.

    Args:
        points: Track points in time order

    Returns:
        TrackStatistics (all zero for an empty track)
    """
    stats = TrackStatistics(point_count=len(points))
    if not points:
        return stats

    altitudes = [p.altitude for p in points]
    stats.min_altitude = min(altitudes)
    stats.max_altitude = max(altitudes)

    previous = None
    for point in points:
        speed = point.speed
        if previous is not None:
            step = haversine_distance(
                previous.latitude, previous.longitude, point.latitude, point.longitude
            )
            stats.total_distance_m += step
            climb = point.altitude - previous.altitude
            if climb > 0:
                stats.altitude_gain += climb
            if speed is None:
                dt = (point.timestamp - previous.timestamp).total_seconds()
                speed = step / dt if dt > 0 else 0.0
        if speed is not None:
            stats.max_speed_ms = max(stats.max_speed_ms, speed)
        previous = point

    stats.duration_seconds = (points[-1].timestamp - points[0].timestamp).total_seconds()
    if stats.duration_seconds > 0:
        stats.average_speed_ms = stats.total_distance_m / stats.duration_seconds

    return stats
