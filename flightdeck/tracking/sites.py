"""
FlightDeck Site Resolver
Labels takeoff and landing positions with named ground sites.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import yaml

from ..config import Settings
from ..exceptions import ReferenceDataError
from ..utils import format_coordinates, haversine_distance, parse_float, validate_coordinates
from .constants import (
    LABEL_COORDINATE_PRECISION,
    UNKNOWN_LANDING_LABEL,
    UNKNOWN_SITE_NAME,
    UNKNOWN_TAKEOFF_LABEL,
)
from .models import NamedSite, ResolutionSource, ResolvedSite, SiteType

logger = logging.getLogger(__name__)

_SITE_TYPE_ALIASES = {
    "takeoff": SiteType.TAKEOFF,
    "launch": SiteType.TAKEOFF,
    "start": SiteType.TAKEOFF,
    "landing": SiteType.LANDING,
    "lz": SiteType.LANDING,
}


def nearest_site_of_type(
    lat: float,
    lon: float,
    altitude: float,
    sites: Sequence[NamedSite],
    site_type: SiteType,
) -> Optional[NamedSite]:
    """
    Find the closest site of a given type, however far away it is.

    Args:
        lat, lon: Position in degrees
        altitude: Altitude in meters (unused for ranking, kept for symmetry
                  with sites_within_proximity)
        sites: Candidate sites
        site_type: Required site type

    Returns:
        Closest matching site, or None if no site of that type exists
    """
    best = None
    best_distance = float("inf")
    for site in sites:
        if site.site_type != site_type:
            continue
        distance = haversine_distance(lat, lon, site.latitude, site.longitude)
        if distance < best_distance:
            best = site
            best_distance = distance
    return best


def sites_within_proximity(
    lat: float,
    lon: float,
    altitude: float,
    sites: Sequence[NamedSite],
    horizontal_m: float = Settings.SITE_PROXIMITY_HORIZONTAL_M,
    vertical_m: float = Settings.SITE_PROXIMITY_VERTICAL_M,
) -> List[NamedSite]:
    """
    Find all sites within both the horizontal and vertical thresholds.

    Args:
        lat, lon: Position in degrees
        altitude: Altitude in meters
        sites: Candidate sites of any type
        horizontal_m: Maximum horizontal distance in meters
        vertical_m: Maximum altitude difference in meters

    Returns:
        Matching sites sorted by horizontal distance (empty if none)
    """
    matches: List[Tuple[float, NamedSite]] = []
    for site in sites:
        distance = haversine_distance(lat, lon, site.latitude, site.longitude)
        if distance <= horizontal_m and abs(altitude - site.altitude) <= vertical_m:
            matches.append((distance, site))
    matches.sort(key=lambda item: item[0])
    return [site for _, site in matches]


class SiteResolver:
    """
    Resolves flight endpoints to site labels.

    Resolution order: nearest site of the expected type regardless of
    distance, then any site within the proximity thresholds, then a label
    built from the raw coordinates. Resolution never raises.

    Example:
        >>> resolver = SiteResolver(load_sites_file('sites.json'))
        >>> resolver.resolve(46.686, 7.863, 1350, SiteType.TAKEOFF).name
        'Amisbühl'
    """

    def __init__(
        self,
        sites: Optional[Iterable[NamedSite]] = None,
        horizontal_m: float = Settings.SITE_PROXIMITY_HORIZONTAL_M,
        vertical_m: float = Settings.SITE_PROXIMITY_VERTICAL_M,
    ):
        self.sites: List[NamedSite] = list(sites or [])
        self.horizontal_m = horizontal_m
        self.vertical_m = vertical_m
        if not self.sites:
            logger.warning("No named sites loaded, endpoints will get coordinate labels")

    def resolve(
        self, lat: float, lon: float, altitude: float, site_type: SiteType
    ) -> ResolvedSite:
        """
        Resolve a position to a site label.

        Args:
            lat, lon: Position in degrees
            altitude: Altitude in meters
            site_type: Expected site type (takeoff or landing)

        Returns:
            ResolvedSite recording which rule matched
        """
        site = nearest_site_of_type(lat, lon, altitude, self.sites, site_type)
        if site is not None:
            return self._from_site(site, ResolutionSource.TYPED)

        nearby = sites_within_proximity(
            lat, lon, altitude, self.sites, self.horizontal_m, self.vertical_m
        )
        if nearby:
            return self._from_site(nearby[0], ResolutionSource.PROXIMITY)

        template = (
            UNKNOWN_TAKEOFF_LABEL if site_type == SiteType.TAKEOFF else UNKNOWN_LANDING_LABEL
        )
        coords = format_coordinates(lat, lon, LABEL_COORDINATE_PRECISION)
        logger.debug("No site for %s at %s, using coordinate label", site_type.value, coords)
        return ResolvedSite(
            name=template.format(coords=coords),
            latitude=lat,
            longitude=lon,
            altitude=altitude,
            source=ResolutionSource.FALLBACK,
        )

    def nearest_site(self, lat: float, lon: float) -> Optional[Tuple[NamedSite, float]]:
        """
        Find the closest site of any type.

        Returns:
            Tuple of (site, distance in meters), or None without sites
        """
        best = None
        for site in self.sites:
            distance = haversine_distance(lat, lon, site.latitude, site.longitude)
            if best is None or distance < best[1]:
                best = (site, distance)
        return best

    @staticmethod
    def _from_site(site: NamedSite, source: ResolutionSource) -> ResolvedSite:
        return ResolvedSite(
            name=site.name,
            latitude=site.latitude,
            longitude=site.longitude,
            altitude=site.altitude,
            site_id=site.id,
            source=source,
        )


# =============================================================================
# Reference data loading
# =============================================================================


def _site_name(record: Dict[str, Any], language: Optional[str]) -> str:
    if language and record.get(f"name_{language}"):
        return str(record[f"name_{language}"])
    for key in ("name", "title"):
        if record.get(key):
            return str(record[key])
    return UNKNOWN_SITE_NAME


def _site_coordinate(record: Dict[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        value = parse_float(record.get(key))
        if value is not None:
            return value
    coords = record.get("coords") or record.get("coordinates")
    if isinstance(coords, dict):
        for key in keys:
            value = parse_float(coords.get(key))
            if value is not None:
                return value
    return None


def parse_site(
    record: Dict[str, Any], index: int = 0, language: Optional[str] = None
) -> Optional[NamedSite]:
    """
    Validate one loosely-typed site record.

    Args:
        record: Raw site mapping
        index: Position in the source list, used for generated ids and logs
        language: Preferred name language (looks up ``name_<language>``)

    Returns:
        NamedSite, or None if the record is unusable (reason is logged)
    """
    if not isinstance(record, dict):
        logger.warning("Skipping site #%d: not a mapping", index)
        return None

    lat = _site_coordinate(record, "latitude", "lat")
    lon = _site_coordinate(record, "longitude", "lon", "lng")
    if not validate_coordinates(lat, lon):
        logger.warning("Skipping site #%d (%s): invalid coordinates", index, record.get("name"))
        return None

    raw_type = str(record.get("type") or record.get("site_type") or "").strip().lower()
    site_type = _SITE_TYPE_ALIASES.get(raw_type)
    if site_type is None:
        logger.warning(
            "Skipping site #%d (%s): unknown type %r", index, record.get("name"), raw_type
        )
        return None

    altitude = _site_coordinate(record, "altitude", "alt", "elevation")

    return NamedSite(
        id=str(record.get("id") or f"site_{index}"),
        name=_site_name(record, language),
        site_type=site_type,
        latitude=lat,
        longitude=lon,
        altitude=altitude if altitude is not None else 0.0,
    )


def load_sites(
    records: Iterable[Dict[str, Any]], language: Optional[str] = None
) -> List[NamedSite]:
    """
    Validate a collection of site records, skipping malformed ones.

    Args:
        records: Raw site mappings
        language: Preferred name language

    Returns:
        List of valid NamedSite objects
    """
    sites = []
    for index, record in enumerate(records or []):
        site = parse_site(record, index, language)
        if site is not None:
            sites.append(site)
    logger.info("Loaded %d named sites", len(sites))
    return sites


def load_sites_file(path: str, language: Optional[str] = None) -> List[NamedSite]:
    """
    Load named sites from a JSON or YAML file.

    The file holds either a list of site records or a mapping with a
    ``sites`` list.

    Raises:
        ReferenceDataError: If the file cannot be read or parsed
    """
    file_path = Path(path)
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            if file_path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ReferenceDataError(f"Could not read sites from {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("sites", [])
    if not isinstance(data, list):
        raise ReferenceDataError(f"Sites file {path} does not contain a list")

    return load_sites(data, language)
