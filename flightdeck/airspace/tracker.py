"""
Airspace Violation Tracker
Tracks entry and exit of restricted airspace and aggregates every violation
of one flight into a single alert.
"""

import copy
import logging
import uuid
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..config import Settings
from ..tracking.clock import InlineExecutor
from ..tracking.models import TrackPoint
from ..utils import format_duration, parse_float
from .constants import (
    ALERT_ID_FORMAT,
    ALERT_SEVERITY_HIGH,
    ALERT_TYPE_AIRSPACE,
    ALERT_TYPE_ALTITUDE,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
)
from .zones import AirspaceZone, ZoneIndex

logger = logging.getLogger(__name__)


def _clock_time(moment: Optional[datetime]) -> str:
    return moment.strftime("%H:%M:%S") if moment else "N/A"


@dataclass
class ViolationEntry:
    """One stay inside one zone."""

    zone_id: str
    zone_name: str
    zone_kind: str
    zone_class: Optional[str]
    entry_time: datetime
    entry_latitude: float
    entry_longitude: float
    entry_altitude: float
    status: str = STATUS_IN_PROGRESS
    exit_time: Optional[datetime] = None
    exit_latitude: Optional[float] = None
    exit_longitude: Optional[float] = None
    exit_altitude: Optional[float] = None
    min_altitude: Optional[float] = None
    max_altitude: Optional[float] = None
    position_count: int = 0
    landed_in_airspace: bool = False

    @classmethod
    def open(cls, zone: AirspaceZone, point: TrackPoint) -> "ViolationEntry":
        entry = cls(
            zone_id=zone.id,
            zone_name=zone.name,
            zone_kind=zone.kind,
            zone_class=zone.zone_class,
            entry_time=point.timestamp,
            entry_latitude=point.latitude,
            entry_longitude=point.longitude,
            entry_altitude=point.altitude,
        )
        entry.observe(point)
        return entry

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_IN_PROGRESS

    @property
    def entry_position(self) -> Tuple[float, float]:
        return (self.entry_latitude, self.entry_longitude)

    @property
    def exit_position(self) -> Optional[Tuple[float, float]]:
        if self.exit_latitude is None:
            return None
        return (self.exit_latitude, self.exit_longitude)

    @property
    def duration_seconds(self) -> Optional[int]:
        if self.exit_time is None:
            return None
        return int((self.exit_time - self.entry_time).total_seconds())

    def observe(self, point: TrackPoint) -> None:
        """Record a position inside the zone."""
        self.position_count += 1
        if self.min_altitude is None or point.altitude < self.min_altitude:
            self.min_altitude = point.altitude
        if self.max_altitude is None or point.altitude > self.max_altitude:
            self.max_altitude = point.altitude

    def close(self, point: TrackPoint, landed: bool = False) -> None:
        """Finalize the entry at point (the first sample outside, or the landing)."""
        self.status = STATUS_COMPLETED
        self.exit_time = point.timestamp
        self.exit_latitude = point.latitude
        self.exit_longitude = point.longitude
        self.exit_altitude = point.altitude
        self.landed_in_airspace = landed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "zone_id": self.zone_id,
            "zone_name": self.zone_name,
            "zone_kind": self.zone_kind,
            "zone_class": self.zone_class,
            "status": self.status,
            "entry_time": self.entry_time.isoformat(),
            "entry_latitude": self.entry_latitude,
            "entry_longitude": self.entry_longitude,
            "entry_altitude": self.entry_altitude,
            "exit_time": self.exit_time.isoformat() if self.exit_time else None,
            "exit_latitude": self.exit_latitude,
            "exit_longitude": self.exit_longitude,
            "exit_altitude": self.exit_altitude,
            "duration_seconds": self.duration_seconds,
            "min_altitude": self.min_altitude,
            "max_altitude": self.max_altitude,
            "position_count": self.position_count,
            "landed_in_airspace": self.landed_in_airspace,
        }


@dataclass
class FlightAlert:
    """
    The single aggregated airspace alert of one flight.

    ``violations`` is the flight's append-only violation history in
    entry order.
    """

    id: str
    flight_id: Optional[str]
    created_at: datetime
    updated_at: datetime
    violations: List[ViolationEntry] = field(default_factory=list)
    any_active: bool = False
    alert_type: str = ALERT_TYPE_AIRSPACE
    severity: str = ALERT_SEVERITY_HIGH

    @property
    def active_violations(self) -> List[ViolationEntry]:
        return [v for v in self.violations if v.is_active]

    def summary(self, now: Optional[datetime] = None) -> str:
        """
        Render the human-readable alert text.

        Args:
            now: Reference time for in-progress durations (defaults to
                 updated_at)
        """
        now = now or self.updated_at
        active = self.active_violations
        lines = [
            "FLIGHT SAFETY ALERT",
            "",
            f"Total airspace violations: {len(self.violations)}",
            f"Currently in restricted airspace: {'YES' if self.any_active else 'NO'}",
        ]

        if active:
            lines += ["", "CURRENTLY IN:"]
            for v in active:
                elapsed = int((now - v.entry_time).total_seconds())
                lines.append(f"  - {v.zone_name} ({v.zone_kind}) - {format_duration(elapsed)}")

        lines += ["", "VIOLATION HISTORY:", "-" * 50]
        for number, v in enumerate(self.violations, start=1):
            lines += [
                "",
                f"{number}. {v.zone_name} ({v.zone_kind})",
                f"   Class: {v.zone_class or 'N/A'}",
                f"   Entered: {_clock_time(v.entry_time)}",
                f"   Entry: {v.entry_latitude:.6f}, {v.entry_longitude:.6f}",
                f"   Entry Alt: {v.entry_altitude:.0f}m",
            ]
            if v.is_active:
                elapsed = int((now - v.entry_time).total_seconds())
                lines.append(f"   Status: IN PROGRESS ({format_duration(elapsed)})")
            elif v.landed_in_airspace:
                lines += [
                    f"   Landed: {_clock_time(v.exit_time)}",
                    f"   Landing: {v.exit_latitude:.6f}, {v.exit_longitude:.6f}",
                    f"   Duration: {format_duration(v.duration_seconds)}",
                    "   Status: LANDED IN AIRSPACE",
                ]
            else:
                lines += [
                    f"   Exited: {_clock_time(v.exit_time)}",
                    f"   Exit: {v.exit_latitude:.6f}, {v.exit_longitude:.6f}",
                    f"   Exit Alt: {v.exit_altitude:.0f}m",
                    f"   Duration: {format_duration(v.duration_seconds)}",
                    "   Status: EXITED",
                ]

        return "\n".join(lines)

    def snapshot(self) -> "FlightAlert":
        """Deep copy safe to hand to another thread."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "flight_id": self.flight_id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "any_active": self.any_active,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "reason": self.summary(),
            "violations": [v.to_dict() for v in self.violations],
        }


class _AlertPublisher:
    """Hands alert snapshots to a sink without letting sink errors escape."""

    def __init__(self, alert_sink=None, executor: Optional[Executor] = None):
        self.alert_sink = alert_sink
        self.executor = executor or InlineExecutor()

    def publish(self, alert) -> None:
        if self.alert_sink is None:
            return
        self.executor.submit(self._deliver, alert.snapshot())

    def _deliver(self, alert) -> None:
        try:
            self.alert_sink.publish_alert(alert)
        except Exception as e:
            logger.error("Failed to publish alert %s: %s", alert.id, e)


class AirspaceViolationTracker:
    """
    Per-flight airspace entry/exit classifier.

    Keeps an active map of zone id to in-progress entry plus the ordered
    history of all entries. Exiting one zone only ever closes that zone's
    entry, so overlapping zones are tracked independently.

    Example:
        >>> tracker = AirspaceViolationTracker(load_zones_file('airspace.geojson'))
        >>> tracker.start_flight('flight_1717236000000_1')
        >>> for point in points:
        ...     alert = tracker.process_point(point)
        >>> final = tracker.finish_flight()
    """

    def __init__(
        self,
        zones: Union[ZoneIndex, Iterable[AirspaceZone], None] = None,
        alert_sink=None,
        executor: Optional[Executor] = None,
    ):
        """
        Initialize tracker.

        Args:
            zones: ZoneIndex or iterable of zones
            alert_sink: Object with publish_alert(alert), or None
            executor: Executor used for publishing (inline by default)
        """
        self.index = zones if isinstance(zones, ZoneIndex) else ZoneIndex(zones)
        self._publisher = _AlertPublisher(alert_sink, executor)
        self.flight_id: Optional[str] = None
        self._reset()

    def _reset(self) -> None:
        self.active: Dict[str, ViolationEntry] = {}
        self.history: List[ViolationEntry] = []
        self.alert: Optional[FlightAlert] = None
        self.last_point: Optional[TrackPoint] = None

    @property
    def any_active(self) -> bool:
        return bool(self.active)

    def start_flight(self, flight_id: Optional[str] = None) -> None:
        """Begin a clean per-flight state bound to flight_id."""
        self._reset()
        self.flight_id = flight_id

    def process_point(self, point: TrackPoint) -> Optional[FlightAlert]:
        """
        Update zone occupancy with one sample.

        Args:
            point: Next track point in arrival order

        Samples without a finite altitude leave the occupancy unchanged.

        Returns:
            The flight's alert, or None while no violation has occurred
        """
        if parse_float(point.altitude) is None:
            logger.debug("Skipping airspace check for sample without altitude")
            return self.alert

        occupied = {
            zone.id: zone
            for zone in self.index.zones_at(point.latitude, point.longitude, point.altitude)
        }
        changed = False

        for zone_id, zone in occupied.items():
            entry = self.active.get(zone_id)
            if entry is not None:
                entry.observe(point)
                continue

            entry = ViolationEntry.open(zone, point)
            self.active[zone_id] = entry
            if self.alert is None:
                self.alert = self._new_alert(point.timestamp)
            # alert.violations is the history list
            self.history.append(entry)
            changed = True
            logger.warning(
                "Entered restricted airspace %s (%s) at %.0f m",
                zone.name,
                zone.kind,
                point.altitude,
            )

        for zone_id in [zid for zid in self.active if zid not in occupied]:
            entry = self.active.pop(zone_id)
            entry.close(point)
            changed = True
            logger.info(
                "Exited restricted airspace %s after %ss", entry.zone_name, entry.duration_seconds
            )

        self.last_point = point

        if self.alert is not None:
            self.alert.any_active = bool(self.active)
            if changed:
                self.alert.updated_at = point.timestamp
                self._publisher.publish(self.alert)

        return self.alert

    def finish_flight(self, last_point: Optional[TrackPoint] = None) -> Optional[FlightAlert]:
        """
        Close the flight's violation record and reset for the next flight.

        Entries still active are closed at last_point (or the last processed
        point) and flagged as landed in airspace.

        Returns:
            The final alert of the flight, or None if there was none
        """
        point = last_point or self.last_point
        alert = self.alert

        if self.active and point is not None:
            for entry in self.active.values():
                entry.close(point, landed=True)
                logger.warning("Flight ended inside airspace %s", entry.zone_name)
            self.active.clear()

        if alert is not None:
            alert.any_active = False
            if point is not None:
                alert.updated_at = point.timestamp
            self._publisher.publish(alert)

        self._reset()
        self.flight_id = None
        return alert

    def _new_alert(self, timestamp: datetime) -> FlightAlert:
        flight_key = self.flight_id or uuid.uuid4().hex
        return FlightAlert(
            id=ALERT_ID_FORMAT.format(flight_id=flight_key),
            flight_id=self.flight_id,
            created_at=timestamp,
            updated_at=timestamp,
            violations=self.history,
        )


@dataclass
class AltitudeAlert:
    """A point above the configured altitude ceiling."""

    id: str
    flight_id: Optional[str]
    altitude: float
    max_altitude: float
    latitude: float
    longitude: float
    created_at: datetime
    alert_type: str = ALERT_TYPE_ALTITUDE
    severity: str = ALERT_SEVERITY_HIGH
    any_active: bool = False

    def summary(self) -> str:
        return f"Altitude {self.altitude:.0f}m exceeds limit {self.max_altitude:.0f}m"

    def snapshot(self) -> "AltitudeAlert":
        return copy.copy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "flight_id": self.flight_id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "any_active": self.any_active,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.created_at.isoformat(),
            "reason": self.summary(),
            "altitude": self.altitude,
            "max_altitude": self.max_altitude,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


class AltitudeCeilingMonitor:
    """Raises altitude alerts above a ceiling, at most once per cooldown."""

    def __init__(
        self,
        max_altitude_m: float = Settings.MAX_ALTITUDE_M,
        cooldown_seconds: float = Settings.ALERT_COOLDOWN_SECONDS,
        alert_sink=None,
        executor: Optional[Executor] = None,
    ):
        self.max_altitude_m = max_altitude_m
        self.cooldown_seconds = cooldown_seconds
        self._publisher = _AlertPublisher(alert_sink, executor)
        self._last_alert_time: Optional[datetime] = None
        self._count = 0

    def reset(self) -> None:
        self._last_alert_time = None

    def check(self, point: TrackPoint, flight_id: Optional[str] = None) -> Optional[AltitudeAlert]:
        """
        Check one sample against the ceiling.

        Returns:
            The new AltitudeAlert, or None if below the ceiling, cooling down
            or the altitude is unknown
        """
        altitude = parse_float(point.altitude)
        if altitude is None or altitude <= self.max_altitude_m:
            return None
        if self._last_alert_time is not None:
            since = (point.timestamp - self._last_alert_time).total_seconds()
            if since < self.cooldown_seconds:
                return None

        self._count += 1
        self._last_alert_time = point.timestamp
        alert = AltitudeAlert(
            id=f"altitude_{flight_id or uuid.uuid4().hex}_{self._count}",
            flight_id=flight_id,
            altitude=altitude,
            max_altitude=self.max_altitude_m,
            latitude=point.latitude,
            longitude=point.longitude,
            created_at=point.timestamp,
        )
        logger.warning(alert.summary())
        self._publisher.publish(alert)
        return alert
