"""
Airspace Zones
Reference geometry for restricted airspace volumes and its loaders.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from shapely.errors import ShapelyError
from shapely.geometry import Point, Polygon, box, shape
from shapely.strtree import STRtree

from ..config import Constants, Settings
from ..exceptions import ReferenceDataError
from ..utils import (
    get_bounding_box,
    haversine_distance,
    parse_float,
    point_in_polygon,
    validate_coordinates,
)
from .constants import (
    ALTITUDE_REFERENCE_AGL,
    ALTITUDE_REFERENCE_FL,
    ALTITUDE_REFERENCE_QNH,
    ALTITUDE_REFERENCE_STD,
    DEFAULT_ZONE_KIND,
    DEFAULT_ZONE_NAME,
    FEET_UNITS,
    MIN_POLYGON_VERTICES,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AirspaceZone:
    """A named airspace volume: horizontal polygon plus altitude band."""

    id: str
    name: str
    kind: str
    zone_class: Optional[str]
    polygon: Tuple[Tuple[float, float], ...]  # (lat, lon) vertices
    lower_altitude_m: float = Settings.ZONE_DEFAULT_LOWER_M
    upper_altitude_m: float = Settings.ZONE_DEFAULT_UPPER_M
    lower_reference: str = ALTITUDE_REFERENCE_QNH
    upper_reference: str = ALTITUDE_REFERENCE_QNH
    informational: bool = False
    frequency: Optional[str] = None
    callsign: Optional[str] = None
    # shapely outline in (lon, lat) order, None for degenerate polygons
    geometry: Optional[Polygon] = field(init=False, repr=False, compare=False)
    bbox: Tuple[float, float, float, float] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        geometry = None
        if len(self.polygon) >= MIN_POLYGON_VERTICES:
            geometry = Polygon([(lon, lat) for lat, lon in self.polygon])
        object.__setattr__(self, "geometry", geometry)

        if geometry is None or geometry.is_empty:
            bbox = (0.0, 0.0, 0.0, 0.0)
        else:
            lon_min, lat_min, lon_max, lat_max = geometry.bounds
            bbox = (lat_min, lon_min, lat_max, lon_max)
        object.__setattr__(self, "bbox", bbox)

    def contains(self, lat: float, lon: float, altitude_m: float) -> bool:
        """
        Check whether a position lies inside this volume.

        Informational zones never contain anything, and neither does any
        zone for an unknown (missing or non-finite) altitude.

        Args:
            lat, lon: Position in degrees
            altitude_m: Altitude in meters

        Returns:
            True if inside both the altitude band and the polygon
        """
        if self.informational:
            return False
        altitude_m = parse_float(altitude_m)
        if altitude_m is None:
            return False
        if altitude_m < self.lower_altitude_m or altitude_m > self.upper_altitude_m:
            return False
        lat_min, lon_min, lat_max, lon_max = self.bbox
        if not (lat_min <= lat <= lat_max and lon_min <= lon <= lon_max):
            return False
        return point_in_polygon(lat, lon, self.polygon)

    def __str__(self) -> str:
        return (
            f"AirspaceZone({self.id}: {self.name}, {self.kind}, "
            f"{self.lower_altitude_m:.0f}-{self.upper_altitude_m:.0f} m, "
            f"{len(self.polygon)} vertices)"
        )


class ZoneIndex:
    """
    Lookup over a fixed set of zones.

    Zone outlines go into a shapely STRtree. The tree only narrows the
    candidates by bounding box; containment itself is decided by
    AirspaceZone.contains().
    """

    def __init__(self, zones: Optional[Iterable[AirspaceZone]] = None):
        self.zones: List[AirspaceZone] = list(zones or [])
        if not self.zones:
            logger.warning("No airspace zones loaded, violation tracking is inactive")

        # informational zones never match, so they stay out of the tree
        self._indexed = [
            z for z in self.zones if not z.informational and z.geometry is not None
        ]
        self._tree = STRtree([z.geometry for z in self._indexed]) if self._indexed else None

    def __len__(self) -> int:
        return len(self.zones)

    def _candidates(self, geometry) -> List[AirspaceZone]:
        """Indexed zones whose bounding box meets geometry, in load order."""
        if self._tree is None:
            return []
        return [self._indexed[i] for i in sorted(int(i) for i in self._tree.query(geometry))]

    def zones_at(self, lat: float, lon: float, altitude_m: float) -> List[AirspaceZone]:
        """All zones containing the position, in load order."""
        return [
            z for z in self._candidates(Point(lon, lat)) if z.contains(lat, lon, altitude_m)
        ]

    def nearby_zones(
        self, lat: float, lon: float, radius_m: float = Settings.NEARBY_ZONE_RADIUS_M
    ) -> List[AirspaceZone]:
        """
        Zones with at least one vertex within radius_m, for early warnings.

        Args:
            lat, lon: Position in degrees
            radius_m: Search radius in meters

        Returns:
            Matching zones, informational ones excluded
        """
        lat_min, lon_min, lat_max, lon_max = get_bounding_box(lat, lon, radius_m)
        search_area = box(lon_min, lat_min, lon_max, lat_max)
        return [
            zone
            for zone in self._candidates(search_area)
            if any(
                haversine_distance(lat, lon, v_lat, v_lon) <= radius_m
                for v_lat, v_lon in zone.polygon
            )
        ]


# =============================================================================
# Loading
# =============================================================================


def parse_altitude_reference(value: Optional[str]) -> str:
    """Normalize an altitude reference string (e.g. 'FL', 'ft AGL', 'QNH')."""
    if not value:
        return ALTITUDE_REFERENCE_QNH
    text = str(value).upper()
    if "AGL" in text or "GND" in text:
        return ALTITUDE_REFERENCE_AGL
    if "STD" in text:
        return ALTITUDE_REFERENCE_STD
    if "FL" in text:
        return ALTITUDE_REFERENCE_FL
    return ALTITUDE_REFERENCE_QNH


def altitude_to_meters(value: float, reference: str, unit: Optional[str] = None) -> float:
    """
    Convert a published altitude limit to meters.

    Example:
        >>> altitude_to_meters(100, 'FL')
        3048.0
        >>> round(altitude_to_meters(5000, 'QNH', 'ft'), 1)
        1524.0
    """
    if reference == ALTITUDE_REFERENCE_FL:
        return value * Constants.FLIGHT_LEVEL_TO_METERS
    if unit in FEET_UNITS:
        return value * Constants.FEET_TO_METERS
    return float(value)


def _geojson_limit(limit: Any, default: float) -> Tuple[float, str]:
    """Read a Lower/Upper block shaped {'Metric': {'Alt': {'Altitude', 'Type'}}}."""
    if not isinstance(limit, dict):
        return default, ALTITUDE_REFERENCE_QNH

    alt = None
    unit = None
    metric = limit.get("Metric")
    if isinstance(metric, dict) and isinstance(metric.get("Alt"), dict):
        alt = metric["Alt"]
    elif isinstance(limit.get("Alt"), dict):
        alt = limit["Alt"]
        unit = limit.get("Unit") or alt.get("Unit")

    if alt is None:
        return default, ALTITUDE_REFERENCE_QNH

    reference = parse_altitude_reference(alt.get("Type"))
    value = parse_float(alt.get("Altitude"))
    if value is None:
        return default, reference
    return altitude_to_meters(value, reference, unit), reference


def _ring(coordinates: Any) -> Optional[Tuple[Tuple[float, float], ...]]:
    """Convert a legacy {lat, lng} point list into a (lat, lon) ring, or None if unusable."""
    if not isinstance(coordinates, list):
        return None
    ring = []
    for coord in coordinates:
        if isinstance(coord, dict):
            lat = parse_float(coord.get("lat", coord.get("latitude")))
            lon = parse_float(coord.get("lng", coord.get("lon", coord.get("longitude"))))
        elif isinstance(coord, (list, tuple)) and len(coord) >= 2:
            lat, lon = parse_float(coord[0]), parse_float(coord[1])
        else:
            return None
        if not validate_coordinates(lat, lon):
            return None
        ring.append((lat, lon))
    # A closing vertex equal to the first adds nothing to the ring
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring.pop()
    return tuple(ring)


def _outer_ring(geometry: Any) -> Optional[Tuple[Tuple[float, float], ...]]:
    """
    Read the outer ring of a GeoJSON geometry as (lat, lon) vertices.

    MultiPolygons use their first polygon. Returns None for anything
    that is not a readable polygon with valid coordinates.
    """
    try:
        geom = shape(geometry)
    except (ShapelyError, AttributeError, KeyError, IndexError, TypeError, ValueError):
        return None

    if geom.geom_type == "MultiPolygon" and not geom.is_empty:
        geom = geom.geoms[0]
    if geom.geom_type != "Polygon" or geom.is_empty:
        return None

    ring = []
    # shapely rings are closed; the repeated first vertex is dropped
    for coord in list(geom.exterior.coords)[:-1]:
        lon, lat = coord[0], coord[1]
        if not validate_coordinates(lat, lon):
            return None
        ring.append((lat, lon))
    return tuple(ring)


def parse_geojson_feature(feature: Dict[str, Any], index: int = 0) -> Optional[AirspaceZone]:
    """
    Parse one GeoJSON feature into a zone.

    Only the outer ring of a Polygon is used; MultiPolygons use their
    first polygon.

    Returns:
        AirspaceZone, or None if the feature is unusable (reason is logged)
    """
    if not isinstance(feature, dict):
        logger.warning("Skipping airspace feature #%d: not a mapping", index)
        return None

    properties = feature.get("properties") or {}
    geometry = feature.get("geometry") or {}
    name = properties.get("Name") or DEFAULT_ZONE_NAME

    ring = _outer_ring(geometry)
    if ring is None:
        logger.warning("Skipping airspace %r (#%d): unreadable geometry", name, index)
        return None
    if len(ring) < MIN_POLYGON_VERTICES:
        logger.warning(
            "Skipping airspace %r (#%d): polygon has %d vertices", name, index, len(ring)
        )
        return None

    lower, lower_ref = _geojson_limit(properties.get("Lower"), Settings.ZONE_DEFAULT_LOWER_M)
    upper, upper_ref = _geojson_limit(properties.get("Upper"), Settings.ZONE_DEFAULT_UPPER_M)

    return AirspaceZone(
        id=str(properties.get("ID") or feature.get("id") or f"zone_{index}"),
        name=str(name),
        kind=str(properties.get("ASType") or DEFAULT_ZONE_KIND),
        zone_class=properties.get("ASClass"),
        polygon=ring,
        lower_altitude_m=lower,
        upper_altitude_m=upper,
        lower_reference=lower_ref,
        upper_reference=upper_ref,
        informational=bool(properties.get("Informational", False)),
        frequency=properties.get("Frequency"),
        callsign=properties.get("Callsign"),
    )


def parse_legacy_zone(record: Dict[str, Any], index: int = 0) -> Optional[AirspaceZone]:
    """
    Parse a zone from the flat legacy format.

    Legacy records carry ``id``, ``name``, ``type``, ``class``,
    ``minAltitude``/``maxAltitude`` (meters unless the matching
    ``*AltitudeType`` is 'FL') and a ``polygon`` of {lat, lng} points.
    """
    if not isinstance(record, dict):
        logger.warning("Skipping legacy zone #%d: not a mapping", index)
        return None

    name = record.get("name") or DEFAULT_ZONE_NAME
    ring = _ring(record.get("polygon"))
    if ring is None or len(ring) < MIN_POLYGON_VERTICES:
        logger.warning("Skipping legacy zone %r (#%d): degenerate polygon", name, index)
        return None

    lower_ref = parse_altitude_reference(record.get("minAltitudeType"))
    upper_ref = parse_altitude_reference(record.get("maxAltitudeType"))
    lower = parse_float(record.get("minAltitude"))
    upper = parse_float(record.get("maxAltitude"))

    return AirspaceZone(
        id=str(record.get("id") or f"zone_{index}"),
        name=str(name),
        kind=str(record.get("type") or DEFAULT_ZONE_KIND),
        zone_class=record.get("class") or record.get("asClass"),
        polygon=ring,
        lower_altitude_m=(
            altitude_to_meters(lower, lower_ref)
            if lower is not None
            else Settings.ZONE_DEFAULT_LOWER_M
        ),
        upper_altitude_m=(
            altitude_to_meters(upper, upper_ref)
            if upper is not None
            else Settings.ZONE_DEFAULT_UPPER_M
        ),
        lower_reference=lower_ref,
        upper_reference=upper_ref,
        informational=bool(record.get("informational", False)),
        frequency=record.get("frequency"),
        callsign=record.get("callsign"),
    )


def load_zones(data: Any) -> List[AirspaceZone]:
    """
    Build zones from decoded airspace data.

    Accepts a GeoJSON FeatureCollection, a bare list of features, or the
    legacy ``{"restrictedZones": [...]}`` document. Unusable entries are
    skipped with a logged reason.

    Args:
        data: Decoded JSON document

    Returns:
        List of valid zones
    """
    zones: List[AirspaceZone] = []

    if isinstance(data, dict) and "restrictedZones" in data:
        for index, record in enumerate(data.get("restrictedZones") or []):
            zone = parse_legacy_zone(record, index)
            if zone is not None:
                zones.append(zone)
    else:
        features = data.get("features") if isinstance(data, dict) else data
        if not isinstance(features, list):
            logger.warning("Airspace data has no feature list, no zones loaded")
            return zones
        for index, feature in enumerate(features):
            zone = parse_geojson_feature(feature, index)
            if zone is not None:
                zones.append(zone)

    logger.info("Loaded %d airspace zones", len(zones))
    return zones


def load_zones_file(path: str) -> List[AirspaceZone]:
    """
    Load zones from a JSON/GeoJSON file.

    Raises:
        ReferenceDataError: If the file cannot be read or parsed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ReferenceDataError(f"Could not read airspace from {path}: {e}") from e
    return load_zones(data)
