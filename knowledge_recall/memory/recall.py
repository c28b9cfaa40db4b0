"""
Semantic recall over past conversation messages.

For an incoming message: embed it, find similar message pointers in the
messages index, widen each hit to its neighbours in the same thread,
then resolve full text from the message store in one batch read.
"""

import logging
from typing import Iterable, Optional

from ..errors import ContentResolutionGap, InvalidArgument
from .base import VectorStore
from .embeddings import EmbeddingService
from .message_store import MessageStore
from .records import ConversationMessage, MessagePointer

logger = logging.getLogger("knowledge_recall.memory.recall")


class RecallWindowBuilder:
    """
    Builds the recalled part of a recall window.

    Stages for one message run strictly in order (embed, query, expand,
    resolve). Separate messages can be processed concurrently; the
    builder keeps no per-call state.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
        message_store: MessageStore,
        index_name: str = "conversation-memory",
        top_k: int = 5,
        message_range: int = 2,
        scope: str = "resource",
        over_fetch: int = 4,
        max_fetch: int = 1000,
    ):
        """
        Args:
            embedding_service: Embeds the incoming message
            vector_store: Holds the message pointers
            message_store: Source of truth for message content
            index_name: Name of the messages index
            top_k: Number of similar messages to recall
            message_range: Neighbours to include on each side of a hit
            scope: "resource" searches every thread of the user,
                   "thread" only the current one
            over_fetch: Multiplier on top_k when querying, since scoping
                        is applied client-side after the query
            max_fetch: Upper bound on candidates requested from the index
                       when widening a query that found too few in-scope hits
        """
        if top_k <= 0:
            raise InvalidArgument(f"top_k must be positive, got {top_k}")
        if message_range < 0:
            raise InvalidArgument(f"message_range must not be negative, got {message_range}")
        if over_fetch < 1:
            raise InvalidArgument(f"over_fetch must be at least 1, got {over_fetch}")
        if max_fetch < top_k:
            raise InvalidArgument(f"max_fetch must be at least top_k, got {max_fetch}")
        if scope not in ("resource", "thread"):
            raise InvalidArgument(f"Unknown recall scope: {scope}")

        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.message_store = message_store
        self.index_name = index_name
        self.top_k = top_k
        self.message_range = message_range
        self.scope = scope
        self.over_fetch = over_fetch
        self.max_fetch = max_fetch

    async def build(
        self,
        text: str,
        resource_id: str,
        thread_id: Optional[str] = None,
        exclude_ids: Iterable[str] = (),
    ) -> list[ConversationMessage]:
        """
        Recall prior messages related to `text`.

        Args:
            text: The new message
            resource_id: Whose history to search
            thread_id: Current thread (required for scope="thread")
            exclude_ids: Message ids to leave out, e.g. those already in
                         the recency window

        Returns:
            Deduplicated messages in conversation order. References that
            cannot be resolved are logged and skipped.
        """
        if not resource_id:
            raise InvalidArgument("resource_id is required for recall")
        if self.scope == "thread" and not thread_id:
            raise InvalidArgument("thread_id is required for thread-scoped recall")

        query_embedding = await self.embedding_service.embed(text)
        hits = await self._find_hits(query_embedding, resource_id, thread_id)
        if not hits:
            logger.debug(f"No recall hits for resource {resource_id}")
            return []

        window_ids = self._expand(hits)
        resolved = self.message_store.get_messages(window_ids)

        excluded = set(exclude_ids)
        messages = []
        for message_id in window_ids:
            message = resolved.get(message_id)
            if message is None:
                logger.warning(str(ContentResolutionGap(message_id)))
                continue
            if message.resource_id != resource_id:
                logger.warning(
                    f"Message {message_id} belongs to another resource; skipping"
                )
                continue
            if message_id in excluded:
                continue
            messages.append(message)

        messages.sort(key=lambda m: m.sort_key)
        logger.info(
            f"Recalled {len(messages)} messages from {len(hits)} hits "
            f"(range={self.message_range})"
        )
        return messages

    async def _find_hits(
        self,
        query_embedding: list[float],
        resource_id: str,
        thread_id: Optional[str],
    ) -> list[MessagePointer]:
        """
        Query the index and keep the first top_k pointers in scope, in score order.

        Starts with top_k * over_fetch candidates and doubles the request
        while fewer than top_k pointers are in scope, until the index runs
        out of entries or max_fetch is reached.
        """
        fetch = min(self.top_k * self.over_fetch, self.max_fetch)
        while True:
            results = await self.vector_store.query(self.index_name, query_embedding, fetch)

            hits: list[MessagePointer] = []
            seen = set()
            for result in results:
                pointer = MessagePointer.from_payload(result.payload)
                if pointer is None:
                    logger.warning(f"Skipping non-message entry {result.id} in '{self.index_name}'")
                    continue
                if pointer.resource_id != resource_id:
                    continue
                if self.scope == "thread" and pointer.thread_id != thread_id:
                    continue
                if pointer.message_id in seen:
                    continue
                seen.add(pointer.message_id)
                hits.append(pointer)
                if len(hits) >= self.top_k:
                    return hits

            if len(results) < fetch or fetch >= self.max_fetch:
                return hits
            fetch = min(fetch * 2, self.max_fetch)
            logger.debug(f"Only {len(hits)} in-scope hits; widening recall query to {fetch}")

    def _expand(self, hits: list[MessagePointer]) -> list[str]:
        """
        Widen every hit to message_range neighbours on each side.

        Each distinct thread is listed once. A hit missing from its
        thread's listing is a dangling pointer and contributes nothing.
        """
        thread_orders: dict[str, dict[str, int]] = {}
        thread_ids: dict[str, list[str]] = {}
        window: dict[str, None] = {}

        for hit in hits:
            if hit.thread_id not in thread_orders:
                ids = self.message_store.get_thread_message_ids(hit.thread_id)
                thread_ids[hit.thread_id] = ids
                thread_orders[hit.thread_id] = {mid: pos for pos, mid in enumerate(ids)}

            position = thread_orders[hit.thread_id].get(hit.message_id)
            if position is None:
                logger.warning(str(ContentResolutionGap(hit.message_id)))
                continue

            ids = thread_ids[hit.thread_id]
            start = max(0, position - self.message_range)
            for message_id in ids[start:position + self.message_range + 1]:
                window[message_id] = None

        return list(window)
