"""
Tests for live position broadcasting.
"""

import pytest
import sys
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock, patch

import requests

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from flightdeck.tracking.broadcaster import HttpObserverStore, PositionBroadcaster
from flightdeck.tracking.clock import InlineExecutor
from flightdeck.tracking.models import FlightRecord, PilotProfile, ResolvedSite, TrackPoint

T0 = datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)
# ~1.11 m per 0.00001 deg of latitude
METER = 0.00001 / 1.112

PILOT = PilotProfile("pilot-042", "Anna Muster", glider="Ozone Rush 6")


def at(seconds, meters_north=0.0):
    return TrackPoint(
        T0 + timedelta(seconds=seconds), 46.7 + meters_north * METER, 7.89, 1500.0,
        speed=8.0, heading=0.0,
    )


def make_flight():
    site = ResolvedSite("Amisbühl", 46.7, 7.89, 1350.0, "amisbuehl")
    return FlightRecord("flight_1", T0, site)


class MemoryStore:
    """Observer store that keeps live records in a dict."""

    def __init__(self, failures=0):
        self.records = {}
        self.puts = []
        self.deletes = 0
        self.failures = failures

    def put_live_position(self, pilot_id, record):
        if self.failures:
            self.failures -= 1
            raise ConnectionError("offline")
        self.records[pilot_id] = record
        self.puts.append(record)

    def delete_live_position(self, pilot_id):
        self.deletes += 1
        self.records.pop(pilot_id, None)


class QueuedExecutor:
    """Executor that holds work until run_all() is called."""

    def __init__(self):
        self.queue = []

    def submit(self, fn, *args, **kwargs):
        self.queue.append((fn, args, kwargs))
        return Future()

    def run_all(self):
        while self.queue:
            fn, args, kwargs = self.queue.pop(0)
            fn(*args, **kwargs)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def broadcaster(store):
    broadcaster = PositionBroadcaster(store, PILOT, 12, 50, executor=InlineExecutor())
    broadcaster.start(make_flight(), at(0))
    return broadcaster


class TestThrottle:
    """Tests for the time/distance upload throttle."""

    def test_start_registers_live_record(self, broadcaster, store):
        """Starting a flight uploads the first position."""
        record = store.records["pilot-042"]
        assert record["display_name"] == "Anna Muster"
        assert record["takeoff_site"] == "Amisbühl"
        assert record["flight_start_time"] == T0.isoformat()
        assert record["in_flight"] is True
        assert broadcaster.active
        assert broadcaster.upload_count == 1

    def test_short_time_short_distance_skipped(self, broadcaster, store):
        """3 s and 10 m is not worth an upload."""
        assert broadcaster.update(at(3, 10)) is False
        assert len(store.puts) == 1

    def test_distance_triggers(self, broadcaster, store):
        """3 s and 60 m uploads."""
        assert broadcaster.update(at(3, 60)) is True
        assert len(store.puts) == 2
        assert broadcaster.last_uploaded == at(3, 60)

    def test_time_triggers(self, broadcaster, store):
        """12 s without moving uploads."""
        assert broadcaster.update(at(11)) is False
        assert broadcaster.update(at(12)) is True
        assert len(store.puts) == 2

    def test_measured_from_last_upload(self, broadcaster):
        """Skipped points do not move the reference."""
        broadcaster.update(at(5, 30))
        broadcaster.update(at(8, 45))
        assert broadcaster.last_uploaded == at(0)
        assert broadcaster.update(at(9, 55)) is True


class TestFailures:
    """Tests for upload failures and retry."""

    def test_failed_upload_retried_on_next_point(self):
        """A failure leaves the throttle so the next point retries."""
        store = MemoryStore(failures=1)
        broadcaster = PositionBroadcaster(store, PILOT, executor=InlineExecutor())
        broadcaster.start(make_flight(), at(0))
        assert broadcaster.failure_count == 1
        assert broadcaster.last_uploaded is None

        assert broadcaster.update(at(1)) is True
        assert broadcaster.upload_count == 1
        assert store.records["pilot-042"]["last_update"] == at(1).timestamp.isoformat()

    def test_failures_do_not_raise(self):
        """Errors from the store never reach the caller."""
        store = MemoryStore(failures=100)
        broadcaster = PositionBroadcaster(store, PILOT, executor=InlineExecutor())
        broadcaster.start(make_flight(), at(0))
        for i in range(1, 5):
            broadcaster.update(at(i * 20))
        assert broadcaster.failure_count == 5
        assert broadcaster.upload_count == 0


class TestNonBlocking:
    """Tests for background uploads."""

    def test_points_skipped_while_uploading(self, store):
        """New points are not queued behind an outstanding upload."""
        executor = QueuedExecutor()
        broadcaster = PositionBroadcaster(store, PILOT, executor=executor)
        broadcaster.start(make_flight(), at(0))
        assert store.puts == []

        assert broadcaster.update(at(30)) is False
        executor.run_all()
        assert len(store.puts) == 1

        assert broadcaster.update(at(30)) is True
        executor.run_all()
        assert len(store.puts) == 2


class TestStop:
    """Tests for ending the live record."""

    def test_stop_deletes_record(self, broadcaster, store):
        """Stopping removes the live record once."""
        broadcaster.stop()
        assert "pilot-042" not in store.records
        assert not broadcaster.active
        broadcaster.stop()
        assert store.deletes == 1

    def test_no_updates_after_stop(self, broadcaster, store):
        """Updates after stop are ignored."""
        broadcaster.stop()
        assert broadcaster.update(at(60, 500)) is False
        assert len(store.puts) == 1

    def test_delete_failure_logged(self, store):
        """A failing delete does not raise."""
        store.delete_live_position = Mock(side_effect=ConnectionError("offline"))
        broadcaster = PositionBroadcaster(store, PILOT, executor=InlineExecutor())
        broadcaster.start(make_flight(), at(0))
        broadcaster.stop()
        store.delete_live_position.assert_called_once_with("pilot-042")


class TestHttpObserverStore:
    """Tests for HttpObserverStore class."""

    @patch("flightdeck.tracking.broadcaster.requests.put")
    def test_put(self, mock_put: Mock):
        """Live records are PUT to the pilot's document."""
        mock_put.return_value = Mock(status_code=200)
        store = HttpObserverStore("https://observers.example.org/api/", timeout=5,
                                  headers={"Authorization": "Bearer abc"})
        store.put_live_position("pilot-042", {"latitude": 46.7})

        mock_put.assert_called_once()
        call_args = mock_put.call_args
        assert call_args[0][0] == "https://observers.example.org/api/live_tracking/pilot-042"
        assert call_args[1]["json"] == {"latitude": 46.7}
        assert call_args[1]["timeout"] == 5
        assert call_args[1]["headers"]["Authorization"] == "Bearer abc"
        mock_put.return_value.raise_for_status.assert_called_once()

    @patch("flightdeck.tracking.broadcaster.requests.put")
    def test_put_http_error(self, mock_put: Mock):
        """HTTP errors are raised to the broadcaster."""
        response = Mock(status_code=503)
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("503")
        mock_put.return_value = response
        store = HttpObserverStore("https://observers.example.org/api")
        with pytest.raises(requests.exceptions.HTTPError):
            store.put_live_position("pilot-042", {})

    @patch("flightdeck.tracking.broadcaster.requests.delete")
    def test_delete_missing_is_ok(self, mock_delete: Mock):
        """Deleting a record that is already gone succeeds."""
        response = Mock(status_code=404)
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("404")
        mock_delete.return_value = response
        HttpObserverStore("https://observers.example.org/api").delete_live_position("pilot-042")
        response.raise_for_status.assert_not_called()

    @patch("flightdeck.tracking.broadcaster.requests.put")
    def test_network_error_counted_by_broadcaster(self, mock_put: Mock):
        """Connection errors become failed uploads."""
        mock_put.side_effect = requests.exceptions.ConnectionError("no route")
        store = HttpObserverStore("https://observers.example.org/api")
        broadcaster = PositionBroadcaster(store, PILOT, executor=InlineExecutor())
        broadcaster.start(make_flight(), at(0))
        assert broadcaster.failure_count == 1
        assert broadcaster.upload_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
