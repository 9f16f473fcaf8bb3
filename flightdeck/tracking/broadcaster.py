"""
FlightDeck Position Broadcaster
Throttled publishing of the current position to live observers.
"""

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, Optional

import requests

from ..config import Settings
from ..utils import haversine_distance
from .constants import DEFAULT_HTTP_TIMEOUT, LIVE_TRACKING_COLLECTION
from .models import FlightRecord, PilotProfile, TrackPoint

logger = logging.getLogger(__name__)


class HttpObserverStore:
    """
    Observer store reached over HTTP.

    Live records live at ``{base_url}/live_tracking/{pilot_id}``; PUT
    replaces the record, DELETE removes it.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize store.

        Args:
            base_url: Root URL of the observer service
            timeout: Request timeout in seconds
            headers: Extra request headers (e.g. an API token)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}

    def _url(self, pilot_id: str) -> str:
        return f"{self.base_url}/{LIVE_TRACKING_COLLECTION}/{pilot_id}"

    def put_live_position(self, pilot_id: str, record: Dict[str, Any]) -> None:
        """
        Create or replace the live record of a pilot.

        Raises:
            requests.exceptions.RequestException: On network or HTTP errors
        """
        response = requests.put(
            self._url(pilot_id), json=record, headers=self.headers, timeout=self.timeout
        )
        response.raise_for_status()

    def delete_live_position(self, pilot_id: str) -> None:
        """
        Remove the live record of a pilot. A missing record is not an error.

        Raises:
            requests.exceptions.RequestException: On network or HTTP errors
        """
        response = requests.delete(
            self._url(pilot_id), headers=self.headers, timeout=self.timeout
        )
        if response.status_code == 404:
            return
        response.raise_for_status()


class PositionBroadcaster:
    """
    Uploads the pilot's live position while a flight is open.

    A point is uploaded when at least ``min_interval_seconds`` passed since
    the last successful upload, or the pilot moved at least
    ``min_distance_m`` from the last uploaded point. Uploads run on an
    executor so the caller never waits on the network, and a failed upload
    leaves the throttle untouched so the next eligible point retries.

    At most one upload is outstanding. Points offered while it runs are
    dropped, not queued: after a slow upload a point that crossed a
    threshold in the meantime is not sent, and observers see the next
    eligible point offered after the upload finished. With a slow
    observer store the effective upload rate is therefore bounded by the
    store's latency rather than by the thresholds.

    Example:
        >>> broadcaster = PositionBroadcaster(HttpObserverStore(url), pilot)
        >>> broadcaster.start(flight, first_point)
        >>> broadcaster.update(point)
        >>> broadcaster.stop()
    """

    def __init__(
        self,
        store,
        pilot: PilotProfile,
        min_interval_seconds: float = Settings.UPLOAD_MIN_INTERVAL_SECONDS,
        min_distance_m: float = Settings.UPLOAD_MIN_DISTANCE_M,
        executor: Optional[Executor] = None,
    ):
        """
        Initialize broadcaster.

        Args:
            store: Object with put_live_position() and delete_live_position()
            pilot: Identity the live record is keyed by
            min_interval_seconds: Time-based upload threshold
            min_distance_m: Distance-based upload threshold
            executor: Executor for uploads; a single worker thread keeps
                      uploads in submission order
        """
        self.store = store
        self.pilot = pilot
        self.min_interval_seconds = min_interval_seconds
        self.min_distance_m = min_distance_m
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="flightdeck-broadcast"
        )
        self._lock = threading.Lock()
        self._active = False
        self._uploading = False
        self._last_uploaded: Optional[TrackPoint] = None
        self._flight_start: Optional[datetime] = None
        self._takeoff_site: Optional[str] = None
        self.upload_count = 0
        self.failure_count = 0

    @property
    def active(self) -> bool:
        return self._active

    @property
    def last_uploaded(self) -> Optional[TrackPoint]:
        return self._last_uploaded

    def start(self, flight: FlightRecord, point: TrackPoint) -> None:
        """Register the live record for a newly opened flight."""
        with self._lock:
            self._active = True
            self._last_uploaded = None
            self._flight_start = flight.takeoff_time
            self._takeoff_site = flight.takeoff_site.name
            self._uploading = True
        logger.info("Live tracking started for %s", self.pilot.pilot_id)
        self.executor.submit(self._upload, point)

    def update(self, point: TrackPoint) -> bool:
        """
        Offer a new position for upload.

        Returns:
            True if an upload was scheduled
        """
        with self._lock:
            if not self._active or self._uploading:
                return False
            if not self.is_due(point):
                return False
            self._uploading = True
        self.executor.submit(self._upload, point)
        return True

    def stop(self) -> None:
        """Delete the live record; observers only see pilots in flight."""
        with self._lock:
            if not self._active:
                return
            self._active = False
        logger.info("Live tracking stopped for %s", self.pilot.pilot_id)
        self.executor.submit(self._delete)

    def is_due(self, point: TrackPoint) -> bool:
        """Check the time and distance thresholds against the last upload."""
        last = self._last_uploaded
        if last is None:
            return True
        elapsed = (point.timestamp - last.timestamp).total_seconds()
        if elapsed >= self.min_interval_seconds:
            return True
        moved = haversine_distance(
            last.latitude, last.longitude, point.latitude, point.longitude
        )
        return moved >= self.min_distance_m

    def close(self) -> None:
        """Shut down an executor created by this broadcaster."""
        if self._owns_executor:
            self.executor.shutdown(wait=True)

    def live_record(self, point: TrackPoint) -> Dict[str, Any]:
        """Build the live record observers see for point."""
        return {
            "pilot_id": self.pilot.pilot_id,
            "display_name": self.pilot.display_name,
            "license_number": self.pilot.license_number,
            "license_type": self.pilot.license_type,
            "glider": self.pilot.glider,
            "latitude": point.latitude,
            "longitude": point.longitude,
            "altitude": point.altitude,
            "heading": point.heading,
            "speed": point.speed,
            "last_update": point.timestamp.isoformat(),
            "flight_start_time": (
                self._flight_start.isoformat() if self._flight_start else None
            ),
            "takeoff_site": self._takeoff_site,
            "in_flight": True,
        }

    def _upload(self, point: TrackPoint) -> None:
        try:
            self.store.put_live_position(self.pilot.pilot_id, self.live_record(point))
        except Exception as e:
            self.failure_count += 1
            logger.warning("Live position upload failed, will retry: %s", e)
        else:
            with self._lock:
                self._last_uploaded = point
                self.upload_count += 1
        finally:
            with self._lock:
                self._uploading = False

    def _delete(self) -> None:
        try:
            self.store.delete_live_position(self.pilot.pilot_id)
        except Exception as e:
            logger.warning("Could not remove live record of %s: %s", self.pilot.pilot_id, e)
