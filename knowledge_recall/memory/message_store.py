"""
Conversation Message Storage.

The durable source of truth for conversation content. The messages
vector index only holds pointers into this store, so every recall ends
with a batch read from here.
"""

import logging
import sqlite3
import uuid
from datetime import datetime
from typing import Iterable, Optional

from ..errors import InvalidArgument
from .records import ConversationMessage, ConversationThread, utcnow

logger = logging.getLogger("knowledge_recall.memory.messages")

# SQLite's default limit on host parameters is 999 on older builds
_MAX_PARAMS = 900

TITLE_LENGTH = 60


def make_thread_title(content: str, length: int = TITLE_LENGTH) -> str:
    """Short thread title from the first line of a message."""
    first_line = content.strip().splitlines()[0].strip()
    if len(first_line) <= length:
        return first_line
    return first_line[:length].rstrip() + "..."


class MessageStore:
    """
    SQLite-backed storage for threads and messages.

    Messages are ordered by created_at, then by an autoincrement
    sequence that records insertion order.
    """

    def __init__(self, db_path: str = "conversation_memory.db", generate_titles: bool = True):
        self.db_path = db_path
        self.generate_titles = generate_titles
        self._init_db()
        logger.info(f"MessageStore initialized with database: {db_path}")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS threads (
                    id TEXT PRIMARY KEY,
                    resource_id TEXT NOT NULL,
                    title TEXT NOT NULL DEFAULT '',
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_threads_resource
                ON threads(resource_id)
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    sequence INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    thread_id TEXT NOT NULL,
                    resource_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)

            # Index for in-thread ordering
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_messages_thread_order
                ON messages(thread_id, created_at, sequence)
            """)

            conn.commit()

    @staticmethod
    def _row_to_thread(row: sqlite3.Row) -> ConversationThread:
        return ConversationThread(
            id=row["id"],
            resource_id=row["resource_id"],
            title=row["title"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> ConversationMessage:
        return ConversationMessage(
            id=row["id"],
            thread_id=row["thread_id"],
            resource_id=row["resource_id"],
            role=row["role"],
            content=row["content"],
            created_at=datetime.fromisoformat(row["created_at"]),
            sequence=row["sequence"],
        )

    def create_thread(
        self,
        resource_id: str,
        title: str = "",
        thread_id: Optional[str] = None,
    ) -> ConversationThread:
        """Create a thread for a resource. Returns the existing one if the id is taken."""
        if not resource_id:
            raise InvalidArgument("resource_id is required")

        thread_id = thread_id or uuid.uuid4().hex
        now = utcnow().isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO threads (id, resource_id, title, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (thread_id, resource_id, title, now, now),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM threads WHERE id = ?", (thread_id,)).fetchone()

        thread = self._row_to_thread(row)
        if thread.resource_id != resource_id:
            raise InvalidArgument(
                f"Thread {thread_id} belongs to another resource"
            )
        return thread

    def get_thread(self, thread_id: str) -> Optional[ConversationThread]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM threads WHERE id = ?", (thread_id,)).fetchone()
        return self._row_to_thread(row) if row else None

    def list_threads(self, resource_id: str) -> list[ConversationThread]:
        """Threads of a resource, most recently active first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM threads
                WHERE resource_id = ?
                ORDER BY updated_at DESC
                """,
                (resource_id,),
            ).fetchall()
        return [self._row_to_thread(row) for row in rows]

    def save_message(
        self,
        thread_id: str,
        resource_id: str,
        role: str,
        content: str,
        message_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> ConversationMessage:
        """
        Store a message, creating its thread if needed.

        Returns:
            The stored message, including its sequence number
        """
        if not content or not content.strip():
            raise InvalidArgument("Message content must not be empty")

        thread = self.get_thread(thread_id)
        if thread is None:
            thread = self.create_thread(resource_id, thread_id=thread_id)
        elif thread.resource_id != resource_id:
            raise InvalidArgument(f"Thread {thread_id} belongs to another resource")

        message_id = message_id or uuid.uuid4().hex
        created = (created_at or utcnow()).isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO messages (id, thread_id, resource_id, role, content, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (message_id, thread_id, resource_id, role, content, created),
            )
            sequence = cursor.lastrowid
            if self.generate_titles and role == "user" and not thread.title:
                conn.execute(
                    "UPDATE threads SET title = ? WHERE id = ? AND title = ''",
                    (make_thread_title(content), thread_id),
                )
            conn.execute(
                "UPDATE threads SET updated_at = ? WHERE id = ?",
                (utcnow().isoformat(), thread_id),
            )
            conn.commit()

        logger.debug(f"Stored message {message_id} in thread {thread_id}")
        return ConversationMessage(
            id=message_id,
            thread_id=thread_id,
            resource_id=resource_id,
            role=role,
            content=content,
            created_at=datetime.fromisoformat(created),
            sequence=sequence,
        )

    def get_messages(self, message_ids: Iterable[str]) -> dict[str, ConversationMessage]:
        """
        Batch read messages by id.

        Unknown ids are simply absent from the result.
        """
        ids = list(dict.fromkeys(message_ids))
        found: dict[str, ConversationMessage] = {}
        if not ids:
            return found

        with self._connect() as conn:
            for start in range(0, len(ids), _MAX_PARAMS):
                chunk = ids[start:start + _MAX_PARAMS]
                placeholders = ",".join("?" for _ in chunk)
                rows = conn.execute(
                    f"SELECT * FROM messages WHERE id IN ({placeholders})",
                    chunk,
                ).fetchall()
                for row in rows:
                    found[row["id"]] = self._row_to_message(row)
        return found

    def get_thread_message_ids(self, thread_id: str) -> list[str]:
        """All message ids of a thread in conversation order."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id FROM messages
                WHERE thread_id = ?
                ORDER BY created_at, sequence
                """,
                (thread_id,),
            ).fetchall()
        return [row["id"] for row in rows]

    def get_recent_messages(self, thread_id: str, limit: int = 20) -> list[ConversationMessage]:
        """The last `limit` messages of a thread, oldest first."""
        if limit <= 0:
            return []
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM messages
                WHERE thread_id = ?
                ORDER BY created_at DESC, sequence DESC
                LIMIT ?
                """,
                (thread_id, limit),
            ).fetchall()
        return [self._row_to_message(row) for row in reversed(rows)]

    def count_messages(self, resource_id: Optional[str] = None) -> int:
        with self._connect() as conn:
            if resource_id is None:
                row = conn.execute("SELECT COUNT(*) FROM messages").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM messages WHERE resource_id = ?",
                    (resource_id,),
                ).fetchone()
        return row[0]

    def delete_message(self, message_id: str) -> bool:
        """Remove a message. Vector pointers to it become dangling and are skipped by recall."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM messages WHERE id = ?", (message_id,))
            conn.commit()
        return cursor.rowcount > 0
