"""
Flight Phase Detector
Classifies a stream of track points into takeoff and landing events.

State machine:

    GROUNDED -> AIRBORNE -> LANDING_CONFIRMING -> COMPLETED
                    ^               |
                    +---------------+   (violating sample)

    any state -> CANCELLED (explicit)

Takeoff fires on the first sample whose horizontal speed exceeds the
takeoff threshold. The takeoff event is placed at the last stationary
sample before the launch run, where the pilot stood. Landing needs slow,
gentle samples sustained over the confirmation window.
"""

import logging
import math
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from ..config import Settings
from ..utils import haversine_distance, validate_coordinates
from .models import EventType, FlightEvent, TrackPoint

logger = logging.getLogger(__name__)


class FlightPhase(str, Enum):
    """Detector states."""

    GROUNDED = "grounded"
    AIRBORNE = "airborne"
    LANDING_CONFIRMING = "landing_confirming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Phases from which a fast sample starts a new flight
_READY_FOR_TAKEOFF = (FlightPhase.GROUNDED, FlightPhase.COMPLETED, FlightPhase.CANCELLED)


def _seconds_between(earlier: datetime, later: datetime) -> Optional[float]:
    try:
        return (later - earlier).total_seconds()
    except TypeError:
        # naive and aware timestamps mixed
        return None


def _finite(value) -> Optional[float]:
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


class FlightPhaseDetector:
    """
    Stateful takeoff/landing classifier.

    Feed points in arrival order with process_point(). Each transition
    returns exactly one FlightEvent; all other samples return None.

    Example:
        >>> detector = FlightPhaseDetector()
        >>> for point in points:
        ...     event = detector.process_point(point)
        ...     if event:
        ...         print(event.event_type, event.timestamp)
    """

    def __init__(
        self,
        takeoff_speed: float = Settings.TAKEOFF_SPEED_MS,
        landing_speed: float = Settings.LANDING_SPEED_MS,
        landing_descent: float = Settings.LANDING_DESCENT_MS,
        confirmation_seconds: float = Settings.LANDING_CONFIRMATION_SECONDS,
    ):
        """
        Initialize detector.

        Args:
            takeoff_speed: Horizontal speed (m/s) above which takeoff fires
            landing_speed: Horizontal speed (m/s) below which landing may start
            landing_descent: Vertical rate (m/s) below which landing may start
            confirmation_seconds: How long the landing condition must hold
        """
        self.takeoff_speed = takeoff_speed
        self.landing_speed = landing_speed
        self.landing_descent = landing_descent
        self.confirmation_seconds = confirmation_seconds
        self.reset()

    @property
    def phase(self) -> FlightPhase:
        return self._phase

    @property
    def is_flying(self) -> bool:
        return self._phase in (FlightPhase.AIRBORNE, FlightPhase.LANDING_CONFIRMING)

    def reset(self) -> None:
        """Return to GROUNDED and forget all history."""
        self._phase = FlightPhase.GROUNDED
        self._previous: Optional[TrackPoint] = None
        self._window_start: Optional[datetime] = None
        self._last_stationary: Optional[TrackPoint] = None

    def cancel(self) -> None:
        """Abort the current flight. Only a new takeoff leaves CANCELLED."""
        self._phase = FlightPhase.CANCELLED
        self._window_start = None

    def mark_airborne(self, point: TrackPoint) -> None:
        """Enter AIRBORNE without an event, for a manually started flight."""
        self._phase = FlightPhase.AIRBORNE
        self._window_start = None
        self._last_stationary = None
        if self.is_usable(point):
            self._previous = point

    def accepts(self, point) -> bool:
        """
        Check whether process_point() would evaluate a sample.

        A sample must be usable and its timestamp must be comparable with
        the previous sample's (both naive or both timezone-aware).
        """
        if not self.is_usable(point):
            return False
        if self._previous is None:
            return True
        return _seconds_between(self._previous.timestamp, point.timestamp) is not None

    def process_point(self, point: TrackPoint) -> Optional[FlightEvent]:
        """
        Process one sample.

        Malformed samples (missing coordinates, timestamp or altitude, or
        a timestamp that cannot be compared with the previous one) are
        skipped and never raise.

        Args:
            point: Next track point in arrival order

        Returns:
            FlightEvent on a takeoff or landing transition, otherwise None
        """
        if not self.is_usable(point):
            logger.debug("Skipping malformed track point: %r", point)
            return None

        previous = self._previous
        dt = None
        if previous is not None:
            dt = _seconds_between(previous.timestamp, point.timestamp)
            if dt is None:
                logger.debug("Skipping track point with incomparable timestamp: %r", point)
                return None

        speed = self._horizontal_speed(point, previous, dt)
        vertical = self._vertical_speed(point, previous, dt)
        self._previous = point

        if self._phase in _READY_FOR_TAKEOFF:
            if speed > self.takeoff_speed:
                launch = self._last_stationary or point
                self._phase = FlightPhase.AIRBORNE
                self._window_start = None
                self._last_stationary = None
                logger.info("Takeoff detected at %s (%.1f m/s)", point.timestamp, speed)
                return self._event(EventType.TAKEOFF, launch, point.timestamp)
            if speed < self.landing_speed:
                self._last_stationary = point
            return None

        landing_condition = speed < self.landing_speed and abs(vertical) < self.landing_descent

        if self._phase == FlightPhase.AIRBORNE:
            if not landing_condition:
                return None
            self._phase = FlightPhase.LANDING_CONFIRMING
            self._window_start = point.timestamp
            logger.debug("Landing confirmation started at %s", point.timestamp)

        elif self._phase == FlightPhase.LANDING_CONFIRMING:
            if not landing_condition:
                logger.debug("Landing confirmation reset at %s", point.timestamp)
                self._phase = FlightPhase.AIRBORNE
                self._window_start = None
                return None

        held = _seconds_between(self._window_start, point.timestamp)
        if held is not None and held >= self.confirmation_seconds:
            window_start = self._window_start
            self._phase = FlightPhase.COMPLETED
            self._window_start = None
            logger.info("Landing confirmed after %.0f s at %s", held, point.timestamp)
            return self._event(EventType.LANDING, point, window_start)

        return None

    def analyze_tracklog(self, points: Iterable[TrackPoint]) -> List[FlightEvent]:
        """
        Replay a recorded track from a clean state.

        Produces the same events real-time processing of the same points
        would, and the same list on every call.

        Args:
            points: Recorded track points in time order

        Returns:
            Detected events in order
        """
        self.reset()
        events = []
        for point in points:
            event = self.process_point(point)
            if event is not None:
                events.append(event)
        return events

    @staticmethod
    def is_usable(point) -> bool:
        """Check that a sample has a timestamp, valid coordinates and a finite altitude."""
        if not isinstance(point, TrackPoint):
            return False
        if not isinstance(point.timestamp, datetime):
            return False
        for value in (point.latitude, point.longitude, point.altitude):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return False
            if not math.isfinite(value):
                return False
        return validate_coordinates(point.latitude, point.longitude)

    # --- internals ---

    @staticmethod
    def _horizontal_speed(
        point: TrackPoint, previous: Optional[TrackPoint], dt: Optional[float]
    ) -> float:
        speed = _finite(point.speed)
        if speed is not None and speed >= 0:
            return speed
        if previous is None or not dt or dt <= 0:
            return 0.0
        distance = haversine_distance(
            previous.latitude, previous.longitude, point.latitude, point.longitude
        )
        return distance / dt

    @staticmethod
    def _vertical_speed(
        point: TrackPoint, previous: Optional[TrackPoint], dt: Optional[float]
    ) -> float:
        vertical = _finite(point.vertical_speed)
        if vertical is not None:
            return vertical
        altitude = _finite(point.altitude)
        previous_altitude = _finite(previous.altitude) if previous else None
        if altitude is None or previous_altitude is None or not dt or dt <= 0:
            return 0.0
        return (altitude - previous_altitude) / dt

    @staticmethod
    def _event(event_type: EventType, point: TrackPoint, timestamp: datetime) -> FlightEvent:
        altitude = _finite(point.altitude)
        return FlightEvent(
            event_type=event_type,
            latitude=point.latitude,
            longitude=point.longitude,
            altitude=altitude if altitude is not None else 0.0,
            timestamp=timestamp,
        )


def analyze_tracklog(points: Iterable[TrackPoint], **thresholds) -> List[FlightEvent]:
    """
    Classify a recorded track with a fresh detector.

    Args:
        points: Recorded track points in time order
        **thresholds: Keyword arguments for FlightPhaseDetector

    Returns:
        Detected events in order
    """
    return FlightPhaseDetector(**thresholds).analyze_tracklog(points)
