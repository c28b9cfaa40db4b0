"""
Typed records for the two kinds of vector payload and the content they point to.

The vector index only sees plain dicts; these classes are the
application-side view of those payloads.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class KnowledgeDocument:
    """
    A knowledge-base article stored entirely in the vector index.

    Immutable once indexed; the id is whatever upsert assigned.
    """
    title: str
    content: str
    category: str
    tags: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def to_embedding_text(self) -> str:
        """Text that gets embedded: title and body on separate lines."""
        return f"{self.title}\n{self.content}"

    def to_payload(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "tags": list(self.tags),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any], id: Optional[str] = None) -> "KnowledgeDocument":
        timestamp = payload.get("timestamp")
        return cls(
            id=id,
            title=payload.get("title") or "Untitled",
            content=payload.get("content") or "",
            category=payload.get("category") or "",
            tags=list(payload.get("tags") or []),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else utcnow(),
        )


@dataclass
class MessagePointer:
    """
    Payload of a messages-index entry.

    Carries no content: the text lives only in the message store.
    """
    message_id: str
    thread_id: str
    resource_id: str

    def to_payload(self) -> dict[str, str]:
        return {
            "message_id": self.message_id,
            "thread_id": self.thread_id,
            "resource_id": self.resource_id,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Optional["MessagePointer"]:
        """Return None for payloads that are not message pointers."""
        try:
            return cls(
                message_id=str(payload["message_id"]),
                thread_id=str(payload["thread_id"]),
                resource_id=str(payload["resource_id"]),
            )
        except KeyError:
            return None


@dataclass
class ConversationThread:
    """A conversation owned by a resource (user)."""
    id: str
    resource_id: str
    title: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class ConversationMessage:
    """A message as held by the message store, the source of truth."""
    id: str
    thread_id: str
    resource_id: str
    role: str
    content: str
    created_at: datetime = field(default_factory=utcnow)
    sequence: int = 0  # Store insertion order, breaks created_at ties

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.created_at, self.sequence)

    def to_context_string(self) -> str:
        return f"[{self.created_at.strftime('%Y-%m-%d %H:%M')}] {self.role}: {self.content}"


@dataclass
class RecallWindow:
    """
    Context assembled for one incoming message. Never persisted.

    recalled holds semantically similar history in conversation order;
    recent holds the latest messages of the current thread.
    """
    recalled: list[ConversationMessage] = field(default_factory=list)
    recent: list[ConversationMessage] = field(default_factory=list)

    @property
    def messages(self) -> list[ConversationMessage]:
        seen = set()
        ordered = []
        for message in self.recalled + self.recent:
            if message.id not in seen:
                seen.add(message.id)
                ordered.append(message)
        return ordered

    def __len__(self) -> int:
        return len(self.messages)


@dataclass
class WorkingMemoryFact:
    """Small persistent fact sheet for one resource, shared across threads."""
    resource_id: str
    facts: dict[str, Any] = field(default_factory=dict)
    notes: str = ""
    updated_at: datetime = field(default_factory=utcnow)

    def to_context_string(self) -> str:
        lines = ["## Working Memory"]
        if not self.facts and not self.notes:
            lines.append("Nothing recorded about this user yet.")
            return "\n".join(lines)
        for key, value in sorted(self.facts.items()):
            lines.append(f"- **{key}**: {value}")
        if self.notes:
            lines.append("")
            lines.append(self.notes)
        return "\n".join(lines)
