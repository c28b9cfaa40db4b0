"""
Test fixtures and sample data for knowledge_recall tests.
"""

import hashlib
import math
import re
from datetime import datetime, timedelta, timezone

from knowledge_recall.errors import InvalidArgument
from knowledge_recall.memory.embeddings import EmbeddingService
from knowledge_recall.memory.message_store import MessageStore
from knowledge_recall.memory.records import ConversationMessage

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class HashingEmbeddingService(EmbeddingService):
    """
    Deterministic bag-of-words embedder.

    Each lowercase token is hashed into one bucket, so texts sharing words
    have a positive cosine similarity and identical texts score 1.0.
    """

    def __init__(self, dimension: int = 64):
        self._dimension = dimension
        self.calls: list[str] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % self._dimension
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm:
            vector = [v / norm for v in vector]
        return vector

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise InvalidArgument("Cannot embed empty text")
        self.calls.append(text)
        return self._vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(t) for t in texts]


def make_sample_document(
    title: str = "Vector Databases",
    content: str = "Vector databases store embeddings and search them by semantic similarity.",
    category: str = "technology",
    tags: list[str] = None,
) -> dict:
    """Create a sample document dict for the indexer."""
    return {
        "title": title,
        "content": content,
        "category": category,
        "tags": tags if tags is not None else ["databases", "vectors"],
    }


def make_thread(
    store: MessageStore,
    thread_id: str = "thread-1",
    resource_id: str = "user-1",
    count: int = 12,
    texts: dict[int, str] = None,
    start: datetime = BASE_TIME,
) -> list[ConversationMessage]:
    """
    Store `count` messages in one thread, one minute apart.

    Message n (1-based) has id "<thread_id>-m<n>" and filler content
    unless overridden in `texts`.
    """
    texts = texts or {}
    messages = []
    for n in range(1, count + 1):
        messages.append(store.save_message(
            thread_id=thread_id,
            resource_id=resource_id,
            role="user" if n % 2 else "assistant",
            content=texts.get(n, f"filler line number {n} in {thread_id}"),
            message_id=f"{thread_id}-m{n}",
            created_at=start + timedelta(minutes=n),
        ))
    return messages
