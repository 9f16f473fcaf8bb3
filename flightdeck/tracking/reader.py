"""
FlightDeck Flight Reader
Query the stored flight book.
"""

import json
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Any, Optional


class FlightReader:
    """Read and query the FlightDeck database."""

    def __init__(self, db_path: str):
        """
        Initialize reader.

        Args:
            db_path: Path to database file
        """
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()

    def get_overview(self) -> Dict[str, Any]:
        """Get overall flight book statistics."""
        cursor = self.conn.cursor()

        cursor.execute('''
            SELECT
                COUNT(*) as total_flights,
                SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) as completed,
                SUM(CASE WHEN status = 'cancelled' THEN 1 ELSE 0 END) as cancelled,
                SUM(flight_time_minutes) as total_minutes,
                MAX(max_altitude_m) as max_altitude,
                SUM(total_distance_m) as total_distance,
                MIN(takeoff_time) as first_flight,
                MAX(takeoff_time) as last_flight
            FROM flights
        ''')
        row = cursor.fetchone()

        cursor.execute('SELECT COUNT(*) as alert_count FROM alerts')
        alerts = cursor.fetchone()

        return {
            'total_flights': row['total_flights'] or 0,
            'completed_flights': row['completed'] or 0,
            'cancelled_flights': row['cancelled'] or 0,
            'total_flight_minutes': row['total_minutes'] or 0,
            'max_altitude_m': row['max_altitude'],
            'total_distance_m': row['total_distance'] or 0,
            'first_flight': row['first_flight'],
            'last_flight': row['last_flight'],
            'total_alerts': alerts['alert_count'] or 0,
        }

    def get_recent_flights(self, days: int = 30, limit: int = 20) -> List[Dict[str, Any]]:
        """Get flights that took off within the last `days` days, newest first."""
        cursor = self.conn.cursor()
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        cursor.execute('''
            SELECT * FROM flights
            WHERE takeoff_time >= ?
            ORDER BY takeoff_time DESC
            LIMIT ?
        ''', (cutoff, limit))

        return [dict(row) for row in cursor.fetchall()]

    def get_top_sites(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get the most used takeoff sites."""
        cursor = self.conn.cursor()

        cursor.execute('''
            SELECT
                takeoff_site as site,
                COUNT(*) as flight_count,
                AVG(flight_time_minutes) as avg_minutes,
                AVG(altitude_difference) as avg_altitude_difference
            FROM flights
            WHERE status = 'completed'
            GROUP BY takeoff_site
            ORDER BY flight_count DESC
            LIMIT ?
        ''', (limit,))

        return [dict(row) for row in cursor.fetchall()]

    def get_flight(self, flight_id: str) -> Optional[Dict[str, Any]]:
        """Get one flight row."""
        cursor = self.conn.cursor()
        cursor.execute('SELECT * FROM flights WHERE id = ?', (flight_id,))
        row = cursor.fetchone()
        return dict(row) if row else None

    def get_flight_track(self, flight_id: str) -> List[Dict[str, Any]]:
        """Get the recorded track of a flight."""
        cursor = self.conn.cursor()

        cursor.execute('''
            SELECT timestamp, latitude, longitude, altitude, speed, vertical_speed, heading
            FROM track_points
            WHERE flight_id = ?
            ORDER BY seq
        ''', (flight_id,))

        return [dict(row) for row in cursor.fetchall()]

    def get_alerts(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Get the most recent alerts with their reason text."""
        cursor = self.conn.cursor()

        cursor.execute('''
            SELECT id, flight_id, alert_type, severity, any_active,
                   created_at, updated_at, reason
            FROM alerts
            ORDER BY updated_at DESC
            LIMIT ?
        ''', (limit,))

        return [dict(row) for row in cursor.fetchall()]

    def get_flight_violations(self, flight_id: str) -> List[Dict[str, Any]]:
        """Get the airspace violation history stored with a flight's alert."""
        cursor = self.conn.cursor()

        cursor.execute('''
            SELECT data FROM alerts
            WHERE flight_id = ? AND alert_type = 'airspace_violation'
        ''', (flight_id,))

        violations = []
        for row in cursor.fetchall():
            violations.extend(json.loads(row['data']).get('violations', []))
        return violations

    def get_live_pilots(self) -> List[Dict[str, Any]]:
        """Get all pilots currently broadcasting a live position."""
        cursor = self.conn.cursor()
        cursor.execute('SELECT data FROM live_positions ORDER BY last_update DESC')
        return [json.loads(row['data']) for row in cursor.fetchall()]
