import os
import sqlite3
from datetime import datetime, timezone
from threading import Lock

from services.signals import AnalysisResult, EmailData

DEFAULT_HISTORY_LIMIT = 50


def history_entry(email: EmailData, result: AnalysisResult) -> dict:
    """Projection of one analysis as stored in scan history."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sender": email.sender_email or email.from_header,
        "subject": email.subject or "(No subject)",
        "score": result.score,
        "verdict": result.verdict.level,
        "message_id": email.message_id,
    }


class HistoryStore:
    """Recent analyses in SQLite, capped at `limit` rows."""

    def __init__(self, db_path: str, limit: int = DEFAULT_HISTORY_LIMIT):
        self.db_path = db_path
        self.limit = limit
        self._lock = Lock()
        self.init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def init_db(self):
        """Create the SQLite database and table if they don't exist."""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with self._lock:
            conn = self._connect()
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS scan_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    sender TEXT,
                    subject TEXT,
                    score INTEGER,
                    verdict TEXT,
                    message_id TEXT
                )
                """
            )
            conn.commit()
            conn.close()

    def record(self, entry: dict):
        """Insert a history entry and drop anything past the newest `limit` rows."""
        with self._lock:
            conn = self._connect()
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO scan_history
                    (timestamp, sender, subject, score, verdict, message_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    entry["timestamp"],
                    entry.get("sender"),
                    entry.get("subject"),
                    entry.get("score"),
                    entry.get("verdict"),
                    entry.get("message_id"),
                ),
            )
            cur.execute(
                """
                DELETE FROM scan_history
                WHERE id NOT IN (
                    SELECT id FROM scan_history ORDER BY id DESC LIMIT ?
                )
                """,
                (self.limit,),
            )
            conn.commit()
            conn.close()

    def list_entries(self, limit: int = 10):
        """Return recent entries, newest first."""
        with self._lock:
            conn = self._connect()
            cur = conn.cursor()
            cur.execute(
                """
                SELECT timestamp, sender, subject, score, verdict, message_id
                FROM scan_history
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            )
            rows = cur.fetchall()
            conn.close()

        return [
            {
                "timestamp": row[0],
                "sender": row[1],
                "subject": row[2],
                "score": row[3],
                "verdict": row[4],
                "message_id": row[5],
            }
            for row in rows
        ]

    def clear(self):
        with self._lock:
            conn = self._connect()
            conn.execute("DELETE FROM scan_history")
            conn.commit()
            conn.close()
