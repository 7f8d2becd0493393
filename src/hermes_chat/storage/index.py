"""Archived conversation index with SQLite persistence."""

import json
import sqlite3
import threading
from pathlib import Path
from typing import Self

from hermes_chat.models import ArchivedConversation, TranscriptEntry


class ArchiveIndex:
    """Persists archived conversation records.

    The index is the single source of truth for which topics have been
    archived; topic ids are unique at the table level as well. The
    connection may be used from worker threads; statements are serialized
    on an internal lock.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the index with its database path.

        Args:
            db_path: Path to SQLite database file. Parent directories
                     will be created if they don't exist.
        """
        self._db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self._conn.row_factory = sqlite3.Row
        self.ensure_schema()

    def ensure_schema(self) -> None:
        """Create the archived_conversations table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS archived_conversations (
                key TEXT PRIMARY KEY,
                topic_id TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL,
                tags TEXT NOT NULL DEFAULT '[]',
                summary TEXT NOT NULL DEFAULT '',
                suggested_filename TEXT NOT NULL DEFAULT '',
                archived_at INTEGER NOT NULL,
                conversation TEXT NOT NULL DEFAULT '[]',
                filename TEXT
            )
        """)
        self._conn.commit()

    @staticmethod
    def _from_row(row: sqlite3.Row) -> ArchivedConversation:
        return ArchivedConversation(
            key=row["key"],
            topic_id=row["topic_id"],
            title=row["title"],
            tags=json.loads(row["tags"]),
            summary=row["summary"],
            suggested_filename=row["suggested_filename"],
            archived_at=row["archived_at"],
            conversation=[TranscriptEntry.from_dict(item) for item in json.loads(row["conversation"])],
            filename=row["filename"],
        )

    def load_archived_conversations(self) -> list[ArchivedConversation]:
        """All records, most recently archived first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM archived_conversations ORDER BY archived_at DESC, key DESC"
            ).fetchall()
        return [self._from_row(row) for row in rows]

    def has_topic(self, topic_id: str) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "SELECT 1 FROM archived_conversations WHERE topic_id = ?",
                (topic_id,),
            )
            return cursor.fetchone() is not None

    def get(self, key: str) -> ArchivedConversation | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM archived_conversations WHERE key = ?",
                (key,),
            ).fetchone()
        return None if row is None else self._from_row(row)

    def add_archived_conversation(self, record: ArchivedConversation) -> None:
        """Append a record.

        Raises:
            sqlite3.IntegrityError: If the key or topic id is already present
        """
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO archived_conversations
                    (key, topic_id, title, tags, summary, suggested_filename,
                     archived_at, conversation, filename)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.key,
                    record.topic_id,
                    record.title,
                    json.dumps(record.tags),
                    record.summary,
                    record.suggested_filename,
                    record.archived_at,
                    json.dumps([entry.to_dict() for entry in record.conversation]),
                    record.filename,
                ),
            )

    def delete_archived_conversation(self, key: str) -> bool:
        """Remove a record; returns False if no record had this key."""
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "DELETE FROM archived_conversations WHERE key = ?",
                (key,),
            )
        return cursor.rowcount > 0

    def search(self, query: str) -> list[ArchivedConversation]:
        """Case-insensitive substring match over title, summary, tags and text."""
        needle = query.lower()
        results = []
        for record in self.load_archived_conversations():
            haystack = " ".join(
                [record.title, record.summary, " ".join(record.tags), record.conversation_text()]
            ).lower()
            if needle in haystack:
                results.append(record)
        return results

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> Self:
        """Enter context manager."""
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Exit context manager, closing database connection."""
        self.close()
