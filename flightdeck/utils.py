"""
FlightDeck Utility Functions
Geospatial primitives and display formatting shared by all components.
"""

import math
from math import radians, sin, cos, sqrt, atan2, degrees
from typing import Any, Optional, Sequence, Tuple
from .config import Constants


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great circle distance between two points using Haversine formula.

    The Haversine formula calculates the shortest distance over the earth's
    surface, giving an "as-the-crow-flies" distance between two points.
    Paragliders fly low enough that terrain is ignored.

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees

    Returns:
        Distance in meters

    Example:
        >>> round(haversine_distance(46.6863, 7.8632, 46.6872, 7.8632))
        100
    """
    if lat1 == lat2 and lon1 == lon2:
        return 0.0

    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return Constants.EARTH_RADIUS_M * c


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate bearing (direction) from point 1 to point 2.

    Returns the initial bearing (forward azimuth) from the first
    point to the second point. Note that the bearing may change
    along a great circle path.

    Args:
        lat1, lon1: Start point (degrees)
        lat2, lon2: End point (degrees)

    Returns:
        Bearing in degrees [0, 360), where 0=North, 90=East, 180=South, 270=West
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])

    dlon = lon2 - lon1

    x = sin(dlon) * cos(lat2)
    y = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(dlon)

    bearing = (degrees(atan2(x, y)) + 360) % 360

    # (-tiny + 360) % 360 can round up to exactly 360.0
    return 0.0 if bearing >= 360.0 else bearing


def point_in_polygon(lat: float, lon: float, ring: Sequence[Tuple[float, float]]) -> bool:
    """
    Even-odd ray casting test for a point against a polygon ring.

    The ring is an ordered sequence of (lat, lon) vertices; closing the
    ring by repeating the first vertex is optional. Edges are treated
    half-open: a vertex counts for an edge only when it lies strictly
    above the ray, so a point exactly on a boundary may fall on either
    side, but no point is ever counted twice.

    Args:
        lat: Point latitude
        lon: Point longitude
        ring: Polygon vertices as (lat, lon) tuples

    Returns:
        True if the point is inside; False for rings with fewer than 3 vertices
    """
    n = len(ring)
    if n < 3:
        return False

    inside = False
    j = n - 1
    for i in range(n):
        lat_i, lon_i = ring[i]
        lat_j, lon_j = ring[j]
        if (lat_i > lat) != (lat_j > lat):
            crossing_lon = (lon_j - lon_i) * (lat - lat_i) / (lat_j - lat_i) + lon_i
            if lon < crossing_lon:
                inside = not inside
        j = i

    return inside


def get_bounding_box(
    lat: float, lon: float, radius_m: float
) -> Tuple[float, float, float, float]:
    """
    Calculate bounding box coordinates for a given point and radius.

    Args:
        lat: Center latitude in degrees
        lon: Center longitude in degrees
        radius_m: Radius in meters

    Returns:
        Tuple of (lat_min, lon_min, lat_max, lon_max)
    """
    lat_delta = radius_m / Constants.M_PER_DEGREE_LAT
    lon_delta = radius_m / (Constants.M_PER_DEGREE_LAT * cos(radians(lat)))

    return (
        lat - lat_delta,  # lat_min
        lon - lon_delta,  # lon_min
        lat + lat_delta,  # lat_max
        lon + lon_delta,  # lon_max
    )


def validate_coordinates(lat: Optional[float], lon: Optional[float]) -> bool:
    """
    Validate latitude and longitude coordinates.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees

    Returns:
        True if coordinates are present, finite and in range

    Example:
        >>> validate_coordinates(46.6863, 7.8632)
        True
        >>> validate_coordinates(100, 200)
        False
    """
    if lat is None or lon is None:
        return False
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        return False
    # NaN fails every comparison
    return -90 <= lat <= 90 and -180 <= lon <= 180


def format_coordinates(lat: float, lon: float, precision: int = 4) -> str:
    """
    Format a coordinate pair for labels.

    Example:
        >>> format_coordinates(46.68631, 7.86322)
        '46.6863, 7.8632'
    """
    return f"{lat:.{precision}f}, {lon:.{precision}f}"


def format_altitude(altitude_m: Optional[float], include_feet: bool = True) -> str:
    """
    Format altitude with optional feet conversion.

    Args:
        altitude_m: Altitude in meters
        include_feet: Whether to include feet conversion

    Returns:
        Formatted altitude string

    Example:
        >>> format_altitude(1000)
        '1000 m (3281 ft)'
    """
    if altitude_m is None:
        return "N/A"

    if include_feet:
        feet = altitude_m * Constants.METERS_TO_FEET
        return f"{altitude_m:.0f} m ({feet:.0f} ft)"

    return f"{altitude_m:.0f} m"


def format_speed(velocity_ms: Optional[float], unit: str = "kmh") -> str:
    """
    Format speed in various units.

    Args:
        velocity_ms: Velocity in meters per second
        unit: Output unit ('kmh', 'ms', 'knots')

    Returns:
        Formatted speed string

    Example:
        >>> format_speed(10, 'kmh')
        '36.0 km/h'
    """
    if velocity_ms is None:
        return "N/A"

    if unit == "kmh":
        return f"{velocity_ms * Constants.MS_TO_KMH:.1f} km/h"
    elif unit == "knots":
        return f"{velocity_ms * 1.94384:.1f} knots"
    else:  # ms
        return f"{velocity_ms:.1f} m/s"


def format_duration(seconds: Optional[int]) -> str:
    """
    Format duration in human-readable format.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string

    Example:
        >>> format_duration(3665)
        '1h 1m 5s'
    """
    if seconds is None or seconds < 0:
        return "N/A"

    seconds = int(seconds)
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")

    return " ".join(parts)


def parse_float(value: Any) -> Optional[float]:
    """
    Convert a loosely-typed value to a finite float.

    Args:
        value: Number or numeric string

    Returns:
        Float value, or None for missing, non-numeric or non-finite input

    Example:
        >>> parse_float("1350.5")
        1350.5
        >>> parse_float(float("nan")) is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None
