"""
FlightDeck Database Management
SQLite storage for flight records, live positions and alerts.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, Dict, Any
from .models import FlightRecord, calculate_statistics


class FlightDatabase:
    """
    Manages the SQLite flight book.

    Implements the three sinks a FlightSession writes to: completed
    flights (save_flight), live positions (put_live_position /
    delete_live_position) and alerts (publish_alert). All writes are
    keyed and replace earlier versions, so repeating a write is harmless.
    """

    def __init__(self, db_path: str):
        """
        Initialize database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._ensure_data_directory()
        self.init_database()

    def _ensure_data_directory(self):
        """Ensure the data directory exists."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _connect(self, rows: bool = False):
        """
        Open a connection for one call.

        The connection is closed when the block exits, also when a
        statement raises. Writes are only kept if the block commits.

        Args:
            rows: Return rows as sqlite3.Row instead of tuples
        """
        conn = sqlite3.connect(self.db_path)
        if rows:
            conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def init_database(self):
        """Initialize database with required tables and indexes."""
        with self._connect() as conn:
            cursor = conn.cursor()

            # One row per flight, replaced on every save
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS flights (
                    id TEXT PRIMARY KEY,
                    pilot_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    takeoff_time TIMESTAMP NOT NULL,
                    landing_time TIMESTAMP,
                    takeoff_site TEXT,
                    takeoff_site_id TEXT,
                    takeoff_latitude REAL,
                    takeoff_longitude REAL,
                    takeoff_altitude REAL,
                    takeoff_site_source TEXT,
                    landing_site TEXT,
                    landing_site_id TEXT,
                    landing_latitude REAL,
                    landing_longitude REAL,
                    landing_altitude REAL,
                    landing_site_source TEXT,
                    flight_time_minutes INTEGER,
                    altitude_difference REAL,
                    max_altitude_m REAL,
                    total_distance_m REAL,
                    point_count INTEGER DEFAULT 0,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')

            # Recorded track of each flight
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS track_points (
                    flight_id TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    timestamp TIMESTAMP NOT NULL,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL,
                    altitude REAL,
                    speed REAL,
                    vertical_speed REAL,
                    heading REAL,
                    PRIMARY KEY (flight_id, seq),
                    FOREIGN KEY (flight_id) REFERENCES flights(id) ON DELETE CASCADE
                )
            ''')

            # Pilots currently in the air
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS live_positions (
                    pilot_id TEXT PRIMARY KEY,
                    latitude REAL,
                    longitude REAL,
                    altitude REAL,
                    last_update TIMESTAMP,
                    data TEXT NOT NULL
                )
            ''')

            # Flight safety alerts, one row per alert id
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS alerts (
                    id TEXT PRIMARY KEY,
                    flight_id TEXT,
                    alert_type TEXT NOT NULL,
                    severity TEXT,
                    any_active BOOLEAN,
                    created_at TIMESTAMP,
                    updated_at TIMESTAMP,
                    reason TEXT,
                    data TEXT NOT NULL
                )
            ''')

            cursor.execute('CREATE INDEX IF NOT EXISTS idx_flights_pilot ON flights(pilot_id)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_flights_takeoff_time ON flights(takeoff_time)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_alerts_flight_id ON alerts(flight_id)')

            conn.commit()

    # --- Persistence sink ---

    def save_flight(self, pilot_id: str, flight: FlightRecord):
        """
        Store a flight and its track, replacing any earlier version.

        Args:
            pilot_id: Owner of the flight
            flight: Flight record to store
        """
        stats = calculate_statistics(flight.track_points)
        landing = flight.landing_site

        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                INSERT OR REPLACE INTO flights (
                    id, pilot_id, status, takeoff_time, landing_time,
                    takeoff_site, takeoff_site_id, takeoff_latitude, takeoff_longitude, takeoff_altitude,
                    takeoff_site_source,
                    landing_site, landing_site_id, landing_latitude, landing_longitude, landing_altitude,
                    landing_site_source,
                    flight_time_minutes, altitude_difference, max_altitude_m, total_distance_m,
                    point_count, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                flight.id, pilot_id, flight.status.value,
                flight.takeoff_time.isoformat(),
                flight.landing_time.isoformat() if flight.landing_time else None,
                flight.takeoff_site.name, flight.takeoff_site.site_id,
                flight.takeoff_site.latitude, flight.takeoff_site.longitude,
                flight.takeoff_site.altitude, flight.takeoff_site.source.value,
                landing.name if landing else None,
                landing.site_id if landing else None,
                landing.latitude if landing else None,
                landing.longitude if landing else None,
                landing.altitude if landing else None,
                landing.source.value if landing else None,
                flight.flight_time_minutes, flight.altitude_difference,
                stats.max_altitude, stats.total_distance_m,
                len(flight.track_points),
                datetime.now(timezone.utc).isoformat(),
            ))

            cursor.execute('DELETE FROM track_points WHERE flight_id = ?', (flight.id,))
            cursor.executemany('''
                INSERT INTO track_points (
                    flight_id, seq, timestamp, latitude, longitude, altitude,
                    speed, vertical_speed, heading
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', [
                (flight.id, seq, p.timestamp.isoformat(), p.latitude, p.longitude,
                 p.altitude, p.speed, p.vertical_speed, p.heading)
                for seq, p in enumerate(flight.track_points)
            ])

            conn.commit()

    def get_flight(self, flight_id: str) -> Optional[FlightRecord]:
        """
        Load a stored flight with its track.

        Args:
            flight_id: Flight ID

        Returns:
            FlightRecord or None
        """
        row = self.get_flight_by_id(flight_id)
        if row is None:
            return None

        def site(prefix: str):
            if row[f'{prefix}_site'] is None:
                return None
            return {
                'name': row[f'{prefix}_site'],
                'site_id': row[f'{prefix}_site_id'],
                'latitude': row[f'{prefix}_latitude'],
                'longitude': row[f'{prefix}_longitude'],
                'altitude': row[f'{prefix}_altitude'],
                'source': row[f'{prefix}_site_source'] or 'fallback',
            }

        return FlightRecord.from_dict({
            'id': row['id'],
            'status': row['status'],
            'takeoff_time': row['takeoff_time'],
            'landing_time': row['landing_time'],
            'takeoff_site': site('takeoff'),
            'landing_site': site('landing'),
            'track_points': self.get_track_points(flight_id),
        })

    def get_flight_by_id(self, flight_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the flight row by ID.

        Args:
            flight_id: Flight ID

        Returns:
            Flight row dictionary or None
        """
        with self._connect(rows=True) as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM flights WHERE id = ?', (flight_id,))
            row = cursor.fetchone()

        return dict(row) if row else None

    def get_track_points(self, flight_id: str) -> List[Dict[str, Any]]:
        """
        Get the recorded track of a flight in order.

        Args:
            flight_id: Flight ID

        Returns:
            List of track point dictionaries
        """
        with self._connect(rows=True) as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT timestamp, latitude, longitude, altitude, speed, vertical_speed, heading
                FROM track_points
                WHERE flight_id = ?
                ORDER BY seq
            ''', (flight_id,))
            rows = cursor.fetchall()

        return [dict(row) for row in rows]

    def get_flights(self, pilot_id: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        """
        List stored flights, newest first.

        Args:
            pilot_id: Restrict to one pilot
            limit: Maximum number of rows
        """
        with self._connect(rows=True) as conn:
            cursor = conn.cursor()
            if pilot_id:
                cursor.execute('''
                    SELECT * FROM flights WHERE pilot_id = ?
                    ORDER BY takeoff_time DESC LIMIT ?
                ''', (pilot_id, limit))
            else:
                cursor.execute('SELECT * FROM flights ORDER BY takeoff_time DESC LIMIT ?', (limit,))
            rows = cursor.fetchall()

        return [dict(row) for row in rows]

    # --- Observer store ---

    def put_live_position(self, pilot_id: str, record: Dict[str, Any]):
        """Create or replace the live record of a pilot."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT OR REPLACE INTO live_positions
                (pilot_id, latitude, longitude, altitude, last_update, data)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (
                pilot_id,
                record.get('latitude'),
                record.get('longitude'),
                record.get('altitude'),
                record.get('last_update'),
                json.dumps(record, default=str),
            ))
            conn.commit()

    def delete_live_position(self, pilot_id: str):
        """Remove the live record of a pilot."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM live_positions WHERE pilot_id = ?', (pilot_id,))
            conn.commit()

    def get_live_position(self, pilot_id: str) -> Optional[Dict[str, Any]]:
        """Get the live record of a pilot, or None when not flying."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT data FROM live_positions WHERE pilot_id = ?', (pilot_id,))
            row = cursor.fetchone()

        return json.loads(row[0]) if row else None

    # --- Alert sink ---

    def publish_alert(self, alert):
        """
        Store an alert, replacing the earlier version with the same id.

        Args:
            alert: FlightAlert or AltitudeAlert (anything with to_dict())
        """
        data = alert.to_dict()

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT OR REPLACE INTO alerts
                (id, flight_id, alert_type, severity, any_active, created_at, updated_at, reason, data)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                data['id'], data.get('flight_id'), data['alert_type'], data.get('severity'),
                bool(data.get('any_active')), data.get('created_at'), data.get('updated_at'),
                data.get('reason'), json.dumps(data, default=str),
            ))
            conn.commit()

    def get_alert(self, alert_id: str) -> Optional[Dict[str, Any]]:
        """Get the stored alert document by id."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT data FROM alerts WHERE id = ?', (alert_id,))
            row = cursor.fetchone()

        return json.loads(row[0]) if row else None

    def get_alerts_for_flight(self, flight_id: str) -> List[Dict[str, Any]]:
        """Get all alert documents of a flight, oldest first."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT data FROM alerts WHERE flight_id = ? ORDER BY created_at
            ''', (flight_id,))
            rows = cursor.fetchall()

        return [json.loads(row[0]) for row in rows]

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get overall flight book statistics.

        Returns:
            Dictionary with statistical data
        """
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                SELECT
                    COUNT(*) as total_flights,
                    SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) as completed_flights,
                    SUM(flight_time_minutes) as total_minutes,
                    MAX(max_altitude_m) as max_altitude,
                    MIN(takeoff_time) as first_flight,
                    MAX(takeoff_time) as last_flight
                FROM flights
            ''')
            row = cursor.fetchone()

            cursor.execute('SELECT COUNT(*) FROM alerts')
            alert_count = cursor.fetchone()[0]

        return {
            'total_flights': row[0] or 0,
            'completed_flights': row[1] or 0,
            'total_flight_minutes': row[2] or 0,
            'max_altitude_m': row[3],
            'first_flight': row[4],
            'last_flight': row[5],
            'total_alerts': alert_count,
        }

    def close(self):
        """Close database connection."""
        pass  # One connection per call, nothing to release
