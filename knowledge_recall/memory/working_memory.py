"""
Working memory: a small fact sheet per resource (user).

Independent of message history and of the vector index. Concurrent
updates to the same resource are last-write-wins.
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Optional

from ..errors import InvalidArgument
from .records import WorkingMemoryFact, utcnow

logger = logging.getLogger("knowledge_recall.memory.working")


class WorkingMemoryStore:
    """SQLite-backed working memory, one row per resource."""

    def __init__(self, db_path: str = "conversation_memory.db"):
        self.db_path = db_path
        self._init_db()
        logger.info(f"WorkingMemoryStore initialized with database: {db_path}")

    def _init_db(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS working_memory (
                    resource_id TEXT PRIMARY KEY,
                    facts TEXT NOT NULL DEFAULT '{}',
                    notes TEXT NOT NULL DEFAULT '',
                    updated_at TIMESTAMP NOT NULL
                )
            """)
            conn.commit()

    def get(self, resource_id: str) -> Optional[WorkingMemoryFact]:
        """Return the fact sheet for a resource, or None if nothing was recorded."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT * FROM working_memory WHERE resource_id = ?",
                (resource_id,),
            ).fetchone()

        if row is None:
            return None
        return WorkingMemoryFact(
            resource_id=row["resource_id"],
            facts=json.loads(row["facts"]),
            notes=row["notes"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def update(
        self,
        resource_id: str,
        patch: Optional[dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> WorkingMemoryFact:
        """
        Merge a patch into the fact sheet.

        Args:
            resource_id: Owner of the fact sheet
            patch: Keys to set; a None value removes the key
            notes: Replaces the free-text notes when given

        Returns:
            The fact sheet after the update
        """
        if not resource_id:
            raise InvalidArgument("resource_id is required")
        if patch is not None and not isinstance(patch, dict):
            raise InvalidArgument("Working memory patch must be a mapping")

        current = self.get(resource_id) or WorkingMemoryFact(resource_id=resource_id)
        facts = dict(current.facts)
        for key, value in (patch or {}).items():
            if value is None:
                facts.pop(key, None)
            else:
                facts[key] = value

        updated = WorkingMemoryFact(
            resource_id=resource_id,
            facts=facts,
            notes=current.notes if notes is None else notes,
            updated_at=utcnow(),
        )

        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO working_memory (resource_id, facts, notes, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    resource_id,
                    json.dumps(updated.facts),
                    updated.notes,
                    updated.updated_at.isoformat(),
                ),
            )
            conn.commit()

        logger.info(f"Updated working memory for {resource_id} ({len(facts)} facts)")
        return updated

    def clear(self, resource_id: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM working_memory WHERE resource_id = ?", (resource_id,))
            conn.commit()
