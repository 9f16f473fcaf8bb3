"""
FlightDeck Flight Session
Owns the flight lifecycle: takeoff, tracking, landing, auto-close and cancel.
"""

import dataclasses
import itertools
import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from ..airspace.tracker import AirspaceViolationTracker, AltitudeCeilingMonitor, FlightAlert
from ..airspace.zones import AirspaceZone, ZoneIndex, load_zones_file
from ..config import Config, Settings
from ..exceptions import InvalidTransitionError
from .broadcaster import HttpObserverStore, PositionBroadcaster
from .clock import SystemClock, Watchdog
from .constants import (
    FLIGHT_ID_FORMAT,
    STATUS_CANCELLED,
    STATUS_COMPLETE,
    STATUS_IN_FLIGHT,
    STATUS_WAITING,
)
from .database import FlightDatabase
from .detector import FlightPhaseDetector
from .models import (
    EventType,
    FlightEvent,
    FlightRecord,
    FlightStatus,
    NamedSite,
    PilotProfile,
    SiteType,
    TrackPoint,
)
from .sites import SiteResolver, load_sites_file

logger = logging.getLogger(__name__)

FlightCallback = Callable[[FlightRecord], None]


class FlightSession:
    """
    Flight lifecycle for one pilot.

    Every input (live samples, simulated samples, watchdog expiry, manual
    start/finish/cancel) goes through one re-entrant lock, so the flight
    record and the airspace state only ever see one point at a time.
    Uploads, persistence and alert delivery run on executors and never
    hold up detection.

    Example:
        >>> session = FlightSession(pilot, sites=sites, zones=zones, store=db)
        >>> for point in gps_stream:
        ...     session.process_point(point)
        >>> session.recent_flights[0].landing_site.name
        'Lehn'
    """

    def __init__(
        self,
        pilot: PilotProfile,
        sites: Optional[Iterable[NamedSite]] = None,
        zones: Optional[Iterable[AirspaceZone]] = None,
        detector: Optional[FlightPhaseDetector] = None,
        resolver: Optional[SiteResolver] = None,
        clock=None,
        store=None,
        observer_store=None,
        alert_sink=None,
        executor: Optional[Executor] = None,
        auto_close_timeout: float = Settings.AUTO_CLOSE_TIMEOUT_SECONDS,
        upload_interval: float = Settings.UPLOAD_MIN_INTERVAL_SECONDS,
        upload_distance: float = Settings.UPLOAD_MIN_DISTANCE_M,
        max_altitude: float = Settings.MAX_ALTITUDE_M,
        alert_cooldown: float = Settings.ALERT_COOLDOWN_SECONDS,
    ):
        """
        Initialize session.

        Args:
            pilot: Identity used to key stored and live records
            sites: Named sites for endpoint labels (ignored if resolver given)
            zones: Airspace zones to watch
            detector: Phase detector (default thresholds if None)
            resolver: Site resolver (built from sites if None)
            clock: SystemClock (default) or ManualClock
            store: Persistence sink with save_flight(pilot_id, flight)
            observer_store: Live position store; no broadcasting if None
            alert_sink: Alert sink with publish_alert(alert)
            executor: Executor for all I/O; one worker thread per component
                      if None
            auto_close_timeout: Seconds without points before auto-close
            upload_interval: Broadcaster time threshold in seconds
            upload_distance: Broadcaster distance threshold in meters
            max_altitude: Altitude ceiling for altitude alerts
            alert_cooldown: Minimum seconds between altitude alerts
        """
        self.pilot = pilot
        self.clock = clock or SystemClock()
        self.store = store
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="flightdeck-io"
        )

        self.detector = detector or FlightPhaseDetector()
        self.resolver = resolver or SiteResolver(sites)
        self.zones = ZoneIndex(zones)
        self.airspace = AirspaceViolationTracker(self.zones, alert_sink, self.executor)
        self.ceiling = AltitudeCeilingMonitor(
            max_altitude, alert_cooldown, alert_sink, self.executor
        )
        self.broadcaster = (
            PositionBroadcaster(
                observer_store, pilot, upload_interval, upload_distance, executor
            )
            if observer_store is not None
            else None
        )
        self.auto_close_timeout = auto_close_timeout
        self.watchdog = Watchdog(self.clock, auto_close_timeout, self._on_watchdog)

        self.on_flight_started: Optional[FlightCallback] = None
        self.on_flight_ended: Optional[FlightCallback] = None

        self._lock = threading.RLock()
        self._counter = itertools.count(1)
        self.current_flight: Optional[FlightRecord] = None
        self.recent_flights: List[FlightRecord] = []
        self.last_point: Optional[TrackPoint] = None
        self._last_activity: Optional[datetime] = None

    @classmethod
    def from_config(cls, config: Config, clock=None, executor: Optional[Executor] = None):
        """
        Build a session wired to the configured reference data and stores.

        The sqlite database is the persistence sink and alert sink. Live
        positions go to the HTTP observer store when broadcasting is
        enabled, otherwise to the database.

        Args:
            config: FlightDeck configuration
            clock: Optional clock override
            executor: Optional executor override
        """
        sites = []
        if config.sites_path:
            sites = load_sites_file(config.sites_path, config.get("sites.language"))
        zones = []
        if config.airspace_path:
            zones = load_zones_file(config.airspace_path)
        db = FlightDatabase(config.db_path)

        if config.broadcast_url:
            observer_store = HttpObserverStore(
                config.broadcast_url, timeout=config.get("broadcast.timeout_seconds", 10)
            )
        else:
            observer_store = db

        return cls(
            PilotProfile.from_config(config),
            detector=FlightPhaseDetector(
                config.takeoff_speed,
                config.landing_speed,
                config.landing_descent,
                config.confirmation_seconds,
            ),
            resolver=SiteResolver(
                sites,
                config.get("sites.proximity_horizontal_m", Settings.SITE_PROXIMITY_HORIZONTAL_M),
                config.get("sites.proximity_vertical_m", Settings.SITE_PROXIMITY_VERTICAL_M),
            ),
            zones=zones,
            clock=clock,
            store=db,
            observer_store=observer_store,
            alert_sink=db,
            executor=executor,
            auto_close_timeout=config.auto_close_timeout,
            upload_interval=config.get(
                "broadcast.min_interval_seconds", Settings.UPLOAD_MIN_INTERVAL_SECONDS
            ),
            upload_distance=config.get(
                "broadcast.min_distance_m", Settings.UPLOAD_MIN_DISTANCE_M
            ),
            max_altitude=config.get("airspace.max_altitude_m", Settings.MAX_ALTITUDE_M),
            alert_cooldown=config.get(
                "airspace.alert_cooldown_seconds", Settings.ALERT_COOLDOWN_SECONDS
            ),
        )

    # --- State ---

    @property
    def in_flight(self) -> bool:
        return self.current_flight is not None

    @property
    def alert(self) -> Optional[FlightAlert]:
        """The current flight's airspace alert, if any violation occurred."""
        return self.airspace.alert

    @property
    def status_text(self) -> str:
        """One-line status for display."""
        with self._lock:
            if self.current_flight is not None:
                return STATUS_IN_FLIGHT.format(takeoff=self.current_flight.takeoff_site.name)
            if not self.recent_flights:
                return STATUS_WAITING
            last = self.recent_flights[0]
            if last.status == FlightStatus.CANCELLED:
                return STATUS_CANCELLED
            return STATUS_COMPLETE.format(
                takeoff=last.takeoff_site.name, landing=last.landing_site.name
            )

    def nearest_site(self) -> Optional[Tuple[NamedSite, float]]:
        """Closest named site to the last position, with distance in meters."""
        point = self.last_point
        if point is None:
            return None
        return self.resolver.nearest_site(point.latitude, point.longitude)

    def nearby_airspace(
        self, radius_m: float = Settings.NEARBY_ZONE_RADIUS_M
    ) -> List[AirspaceZone]:
        """Airspace zones near the last position."""
        point = self.last_point
        if point is None:
            return []
        return self.zones.nearby_zones(point.latitude, point.longitude, radius_m)

    # --- Input ---

    def process_point(self, point: TrackPoint) -> Optional[FlightEvent]:
        """
        Dispatch one position sample.

        Args:
            point: Next sample in arrival order

        Returns:
            The takeoff or landing event the sample caused, if any
        """
        with self._lock:
            if not self.detector.accepts(point):
                logger.debug("Ignoring malformed sample %r", point)
                return None

            event = self.detector.process_point(point)
            self.last_point = point

            if event is not None and event.event_type == EventType.TAKEOFF:
                self._open_flight(point, event)
            elif self.current_flight is not None:
                self._track(point)
                if event is not None and event.event_type == EventType.LANDING:
                    self._close_flight(FlightStatus.COMPLETED, point, event.timestamp)

            return event

    def start_flight(self, point: Optional[TrackPoint] = None) -> FlightRecord:
        """
        Open a flight manually.

        Args:
            point: Takeoff position (defaults to the last received sample)

        Returns:
            The new flight record

        Raises:
            InvalidTransitionError: If a flight is already in progress
            ValueError: If no usable position is known
        """
        with self._lock:
            if self.current_flight is not None:
                raise InvalidTransitionError(
                    f"Flight {self.current_flight.id} is already in progress"
                )
            point = point or self.last_point
            if point is None:
                raise ValueError("No position available to start a flight")
            if not self.detector.accepts(point):
                raise ValueError(f"Cannot start a flight at malformed sample {point!r}")
            self.detector.mark_airborne(point)
            self.last_point = point
            return self._open_flight(point)

    def finish_flight(self, point: Optional[TrackPoint] = None) -> FlightRecord:
        """
        Close the current flight manually as completed.

        Args:
            point: Landing position (defaults to the last tracked sample)

        Raises:
            InvalidTransitionError: If no flight is in progress
        """
        with self._lock:
            flight = self._require_flight("finish")
            point = point or flight.track_points[-1]
            self.detector.reset()
            return self._close_flight(FlightStatus.COMPLETED, point, point.timestamp)

    def cancel_flight(self) -> FlightRecord:
        """
        Cancel the current flight. Points are ignored until the next takeoff.

        The record is closed at the last tracked sample's time, so all of
        its times come from the same sample clock.

        Raises:
            InvalidTransitionError: If no flight is in progress
        """
        with self._lock:
            flight = self._require_flight("cancel")
            self.detector.cancel()
            logger.info("Flight %s cancelled", flight.id)
            last = flight.track_points[-1]
            return self._close_flight(FlightStatus.CANCELLED, last, last.timestamp)

    def close(self) -> None:
        """Stop timers and wait for outstanding I/O."""
        self.watchdog.stop()
        if self.broadcaster is not None:
            self.broadcaster.close()
        if self._owns_executor:
            self.executor.shutdown(wait=True)

    # --- Lifecycle internals ---

    def _require_flight(self, action: str) -> FlightRecord:
        if self.current_flight is None:
            raise InvalidTransitionError(f"Cannot {action}: no flight in progress")
        return self.current_flight

    def _next_flight_id(self, takeoff_time: datetime) -> str:
        return FLIGHT_ID_FORMAT.format(
            millis=int(takeoff_time.timestamp() * 1000), counter=next(self._counter)
        )

    def _open_flight(
        self, point: TrackPoint, event: Optional[FlightEvent] = None
    ) -> FlightRecord:
        if self.current_flight is not None:
            raise InvalidTransitionError(
                f"Takeoff while flight {self.current_flight.id} is in progress"
            )

        # a detected takeoff is placed where the launch run started
        launch = event or point
        site = self.resolver.resolve(
            launch.latitude, launch.longitude, launch.altitude, SiteType.TAKEOFF
        )
        flight = FlightRecord(
            id=self._next_flight_id(point.timestamp),
            takeoff_time=point.timestamp,
            takeoff_site=site,
            track_points=[point],
        )
        self.current_flight = flight
        logger.info("Flight %s started at %s", flight.id, site.name)

        self.airspace.start_flight(flight.id)
        self.airspace.process_point(point)
        self.ceiling.reset()
        self.ceiling.check(point, flight.id)
        if self.broadcaster is not None:
            self.broadcaster.start(flight, point)

        self._last_activity = self.clock.now()
        self.watchdog.reset()
        self._persist(dataclasses.replace(flight, track_points=list(flight.track_points)))
        self._notify(self.on_flight_started, flight)
        return flight

    def _track(self, point: TrackPoint) -> None:
        flight = self.current_flight
        flight.track_points.append(point)
        self.airspace.process_point(point)
        self.ceiling.check(point, flight.id)
        if self.broadcaster is not None:
            self.broadcaster.update(point)
        self._last_activity = self.clock.now()
        self.watchdog.reset()

    def _close_flight(
        self, status: FlightStatus, point: TrackPoint, landing_time: datetime
    ) -> FlightRecord:
        flight = self.current_flight
        flight.landing_time = landing_time
        if status == FlightStatus.COMPLETED:
            flight.landing_site = self.resolver.resolve(
                point.latitude, point.longitude, point.altitude, SiteType.LANDING
            )
        flight.status = status

        self.watchdog.stop()
        if self.broadcaster is not None:
            self.broadcaster.stop()
        self.airspace.finish_flight(point)

        self.current_flight = None
        self.recent_flights.insert(0, flight)
        if status == FlightStatus.COMPLETED:
            logger.info(
                "Flight %s completed: %s -> %s (%s min)",
                flight.id,
                flight.takeoff_site.name,
                flight.landing_site.name,
                flight.flight_time_minutes,
            )

        self._persist(flight)
        self._notify(self.on_flight_ended, flight)
        return flight

    def _on_watchdog(self) -> None:
        with self._lock:
            flight = self.current_flight
            if flight is None or self._last_activity is None:
                return
            silent = (self.clock.now() - self._last_activity).total_seconds()
            if silent < self.auto_close_timeout:
                # a point arrived while the timer was waiting for the lock
                return
            last = flight.track_points[-1]
            logger.info(
                "No position for %.0f s, auto-closing flight %s", silent, flight.id
            )
            self.detector.reset()
            self._close_flight(FlightStatus.COMPLETED, last, last.timestamp)

    def _persist(self, flight: FlightRecord) -> None:
        if self.store is None:
            return
        self.executor.submit(self._save, flight)

    def _save(self, flight: FlightRecord) -> None:
        try:
            self.store.save_flight(self.pilot.pilot_id, flight)
        except Exception as e:
            logger.error("Failed to store flight %s: %s", flight.id, e)

    @staticmethod
    def _notify(callback: Optional[FlightCallback], flight: FlightRecord) -> None:
        if callback is None:
            return
        try:
            callback(flight)
        except Exception:
            logger.exception("Flight callback failed for %s", flight.id)
