"""
FlightDeck Airspace Component

Restricted airspace reference data and per-flight violation tracking.

Main Classes:
    - AirspaceZone: Polygon plus altitude band
    - ZoneIndex: Zone lookup by position
    - AirspaceViolationTracker: Entry/exit history and the flight's alert
    - AltitudeCeilingMonitor: Altitude ceiling alerts

Example:
    >>> from flightdeck.airspace import AirspaceViolationTracker, load_zones_file
    >>> tracker = AirspaceViolationTracker(load_zones_file('airspace.geojson'))
"""

from .zones import (
    AirspaceZone,
    ZoneIndex,
    altitude_to_meters,
    load_zones,
    load_zones_file,
    parse_altitude_reference,
)
from .tracker import (
    AirspaceViolationTracker,
    AltitudeAlert,
    AltitudeCeilingMonitor,
    FlightAlert,
    ViolationEntry,
)
from . import constants

__all__ = [
    "AirspaceZone",
    "ZoneIndex",
    "AirspaceViolationTracker",
    "AltitudeCeilingMonitor",
    "AltitudeAlert",
    "FlightAlert",
    "ViolationEntry",
    "load_zones",
    "load_zones_file",
    "altitude_to_meters",
    "parse_altitude_reference",
    "constants",
]
