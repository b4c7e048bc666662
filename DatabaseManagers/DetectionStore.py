import sqlite3
from datetime import datetime, timezone
from typing import Optional
from DatabaseManagers.DataClasses import DetectionEvent


class DetectionStoreError(Exception):
    """Raised when the sqlite database cannot be opened or queried"""


class DetectionStore:
    def __init__(self, db_path: str = "kamerafyr-server.db"):
        self.db_path = db_path
        self.init_database()

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise DetectionStoreError(f"could not open database {self.db_path}: {e}") from e

    def init_database(self):
        """Initialize SQLite database with required tables"""
        conn = self._connect()
        try:
            cursor = conn.cursor()

            # One row per sighting still waiting for its pair
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS license_plates (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    plate TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    hostname TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_license_plates_plate
                ON license_plates (plate)
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_license_plates_plate_timestamp
                ON license_plates (plate, timestamp)
            ''')

            conn.commit()
        except sqlite3.Error as e:
            raise DetectionStoreError(f"could not migrate database {self.db_path}: {e}") from e
        finally:
            conn.close()

    def _fetch_one(self, query: str, params: tuple) -> Optional[DetectionEvent]:
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute(query, params)
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise DetectionStoreError(str(e)) from e
        finally:
            conn.close()

        if row is None:
            return None
        return self._row_to_event(row)

    @staticmethod
    def _row_to_event(row) -> DetectionEvent:
        event_id, plate, timestamp, hostname, created_at = row
        return DetectionEvent(
            plate=plate,
            timestamp=timestamp,
            source=hostname or "",
            id=event_id,
            created_at=datetime.fromisoformat(created_at) if created_at else None,
        )

    def find_exact_duplicate(self, plate: str, timestamp: str) -> Optional[DetectionEvent]:
        """Find a stored sighting with the same plate and camera timestamp"""
        return self._fetch_one('''
            SELECT id, plate, timestamp, hostname, created_at
            FROM license_plates
            WHERE plate = ? AND timestamp = ?
            ORDER BY id
            LIMIT 1
        ''', (plate, timestamp))

    def find_any_by_plate(self, plate: str) -> Optional[DetectionEvent]:
        """Find the most recently stored sighting of a plate"""
        return self._fetch_one('''
            SELECT id, plate, timestamp, hostname, created_at
            FROM license_plates
            WHERE plate = ?
            ORDER BY id DESC
            LIMIT 1
        ''', (plate,))

    def insert(self, event: DetectionEvent) -> DetectionEvent:
        """Store a sighting and return the stored copy with its id"""
        created_at = datetime.now(timezone.utc)
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO license_plates (plate, timestamp, hostname, created_at)
                VALUES (?, ?, ?, ?)
            ''', (event.plate, event.timestamp, event.source, created_at.isoformat()))
            conn.commit()
            event_id = cursor.lastrowid
        except sqlite3.Error as e:
            raise DetectionStoreError(str(e)) from e
        finally:
            conn.close()

        return event.with_id(event_id, created_at)

    def delete(self, event: DetectionEvent):
        if event.id is None:
            raise DetectionStoreError(f"cannot delete unsaved sighting of {event.plate}")

        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM license_plates WHERE id = ?", (event.id,))
            conn.commit()
        except sqlite3.Error as e:
            raise DetectionStoreError(str(e)) from e
        finally:
            conn.close()

    def count(self, plate: str = None) -> int:
        query = "SELECT COUNT(*) FROM license_plates WHERE 1=1"
        params = []

        if plate is not None:
            query += " AND plate = ?"
            params.append(plate)

        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchone()[0]
        except sqlite3.Error as e:
            raise DetectionStoreError(str(e)) from e
        finally:
            conn.close()
