"""History database for navigation sessions and location updates."""

import sqlite3
from datetime import datetime
from typing import Optional

from .models import LocationRecord, RouteResult


class TrackHistoryDB:
    """SQLite database recording sessions and the locations walked in them"""

    def __init__(self, db_path: str = "safewalk_history.db"):
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self._init_schema()

    def _init_schema(self):
        """Create database tables"""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                route_id TEXT,
                destination TEXT,
                started_at TEXT,
                ended_at TEXT,
                end_reason TEXT,
                elapsed_seconds INTEGER
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS location_updates (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                latitude REAL NOT NULL,
                longitude REAL NOT NULL,
                recorded_at REAL NOT NULL
            )
        """)
        self.conn.commit()

    def start_session(self, session_id: str, route: Optional[RouteResult] = None):
        """Record the start of a navigation session"""
        now = datetime.now().isoformat()
        self.conn.execute(
            "INSERT OR IGNORE INTO sessions (id, route_id, destination, started_at) VALUES (?, ?, ?, ?)",
            (session_id, route.route_id if route else None,
             route.destination_text if route else None, now)
        )
        self.conn.commit()

    def end_session(self, session_id: str, reason: str, elapsed_seconds: int = 0):
        """Close a session with its end reason"""
        now = datetime.now().isoformat()
        self.conn.execute(
            "UPDATE sessions SET ended_at = ?, end_reason = ?, elapsed_seconds = ? WHERE id = ?",
            (now, reason, elapsed_seconds, session_id)
        )
        self.conn.commit()

    def record_location(self, record: LocationRecord):
        """Append one location update"""
        self.conn.execute(
            "INSERT INTO location_updates (session_id, latitude, longitude, recorded_at) VALUES (?, ?, ?, ?)",
            (record.session_id, record.lat, record.lon, record.timestamp)
        )
        self.conn.commit()

    def get_track(self, session_id: str) -> list[tuple[float, float]]:
        """Get the (lat, lon) points recorded for a session in order"""
        cursor = self.conn.execute(
            "SELECT latitude, longitude FROM location_updates WHERE session_id = ? ORDER BY id",
            (session_id,)
        )
        return [(row[0], row[1]) for row in cursor.fetchall()]

    def get_session(self, session_id: str) -> Optional[dict]:
        cursor = self.conn.execute(
            "SELECT id, route_id, destination, started_at, ended_at, end_reason, elapsed_seconds "
            "FROM sessions WHERE id = ?",
            (session_id,)
        )
        row = cursor.fetchone()
        if not row:
            return None
        return {
            "id": row[0],
            "route_id": row[1],
            "destination": row[2],
            "started_at": row[3],
            "ended_at": row[4],
            "end_reason": row[5],
            "elapsed_seconds": row[6],
        }

    def get_stats(self) -> dict:
        """Get overall tracking stats"""
        cursor = self.conn.execute("SELECT COUNT(*), SUM(elapsed_seconds) FROM sessions")
        sessions, elapsed = cursor.fetchone()
        cursor = self.conn.execute("SELECT COUNT(*) FROM location_updates")
        updates = cursor.fetchone()[0]
        return {
            "total_sessions": sessions or 0,
            "total_minutes": (elapsed or 0) / 60,
            "location_updates": updates or 0,
        }

    def close(self):
        self.conn.close()
