"""
Conversation Memory - orchestrates the message recall system.

This is the high-level interface the agent layer uses.
It handles:
- Persisting messages and indexing pointers to them
- Assembling the recency window plus semantic recall
- Reading and updating working memory
- Formatting the assembled context for the LLM
"""

import logging
from typing import Any, Literal, Optional

from ..config import Config
from ..errors import ConfigurationMissing
from .base import VectorStore
from .embeddings import EmbeddingService, create_embedding_service
from .message_store import MessageStore
from .recall import RecallWindowBuilder
from .records import ConversationMessage, MessagePointer, RecallWindow, WorkingMemoryFact
from .working_memory import WorkingMemoryStore

logger = logging.getLogger("knowledge_recall.memory.manager")


class ConversationMemory:
    """
    Message history with semantic recall and working memory.

    Messages are written to the message store first, then a content-free
    pointer is indexed. A failure between the two leaves the message
    available to the recency window but not to recall.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedding_service: EmbeddingService,
        message_store: MessageStore,
        working_memory: Optional[WorkingMemoryStore] = None,
        index_name: str = "conversation-memory",
        metric: str = "cosine",
        last_messages: int = 20,
        recall_top_k: int = 5,
        message_range: int = 2,
        scope: str = "resource",
        over_fetch: int = 4,
        max_fetch: int = 1000,
    ):
        self.vector_store = vector_store
        self.embedding_service = embedding_service
        self.message_store = message_store
        self.working_memory = working_memory
        self.index_name = index_name
        self.metric = metric
        self.last_messages = last_messages
        self.recall = RecallWindowBuilder(
            embedding_service=embedding_service,
            vector_store=vector_store,
            message_store=message_store,
            index_name=index_name,
            top_k=recall_top_k,
            message_range=message_range,
            scope=scope,
            over_fetch=over_fetch,
            max_fetch=max_fetch,
        )
        self._initialized = False
        logger.info("ConversationMemory created")

    async def initialize(self) -> None:
        """Make sure the messages index exists."""
        await self.vector_store.ensure_index(
            self.index_name,
            self.embedding_service.dimension,
            self.metric,
        )
        self._initialized = True
        stats = await self.vector_store.describe_index(self.index_name)
        logger.info(f"ConversationMemory initialized with {stats.count} indexed messages")

    def _ensure_initialized(self) -> None:
        """Ensure the system is initialized."""
        if not self._initialized:
            raise RuntimeError("ConversationMemory not initialized. Call initialize() first.")

    async def save_message(
        self,
        thread_id: str,
        resource_id: str,
        role: str,
        content: str,
    ) -> ConversationMessage:
        """
        Persist a message and index a pointer to it.

        Returns:
            The stored message
        """
        self._ensure_initialized()

        message = self.message_store.save_message(
            thread_id=thread_id,
            resource_id=resource_id,
            role=role,
            content=content,
        )

        embedding = await self.embedding_service.embed(content)
        pointer = MessagePointer(
            message_id=message.id,
            thread_id=thread_id,
            resource_id=resource_id,
        )
        await self.vector_store.upsert(
            self.index_name,
            vectors=[embedding],
            payloads=[pointer.to_payload()],
            ids=[message.id],
        )

        logger.debug(f"Indexed message {message.id} with {len(embedding)}-dim embedding")
        return message

    async def get_context(
        self,
        thread_id: str,
        resource_id: str,
        text: Optional[str] = None,
    ) -> RecallWindow:
        """
        Assemble the context for a new message.

        The recent window is always included. Recalled messages are added
        on top of it and never duplicate a message already in it.
        """
        self._ensure_initialized()

        recent = self.message_store.get_recent_messages(thread_id, self.last_messages)
        recalled: list[ConversationMessage] = []
        if text and text.strip():
            recalled = await self.recall.build(
                text,
                resource_id=resource_id,
                thread_id=thread_id,
                exclude_ids={m.id for m in recent},
            )

        return RecallWindow(recalled=recalled, recent=recent)

    def get_working_memory(self, resource_id: str) -> Optional[WorkingMemoryFact]:
        if self.working_memory is None:
            return None
        return self.working_memory.get(resource_id)

    def update_working_memory(
        self,
        resource_id: str,
        patch: Optional[dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> WorkingMemoryFact:
        if self.working_memory is None:
            raise ConfigurationMissing(
                "Working memory is disabled",
                suggestion="Enable memory.working_memory in config.yaml.",
            )
        return self.working_memory.update(resource_id, patch, notes)

    def format_context_for_llm(
        self,
        window: RecallWindow,
        working_memory: Optional[WorkingMemoryFact] = None,
    ) -> str:
        """
        Format a recall window (and working memory) for inclusion in LLM context.

        Recalled messages come first, flagged as older context, then the
        current conversation.
        """
        lines = []

        if working_memory is not None:
            lines.append(working_memory.to_context_string())
            lines.append("")

        if window.recalled:
            lines.append("## Recalled From Earlier Conversations")
            lines.append("These messages were retrieved because they relate to the current topic.")
            current_thread = None
            for message in window.recalled:
                if message.thread_id != current_thread:
                    current_thread = message.thread_id
                    lines.append(f"### Thread {current_thread}")
                lines.append(message.to_context_string())
            lines.append("")

        lines.append("## Current Conversation")
        if window.recent:
            for message in window.recent:
                lines.append(message.to_context_string())
        else:
            lines.append("No earlier messages in this thread.")

        return "\n".join(lines)


async def create_vector_store(
    store_type: Literal["memory", "chroma", "pgvector"] = "chroma",
    chroma_path: str = "./vector_store",
    postgres_url: str = "",
) -> VectorStore:
    """
    Factory function to create and initialize a vector store.

    Args:
        store_type: "memory" for tests, "chroma" for local, "pgvector" for production
        chroma_path: Path for ChromaDB storage
        postgres_url: Required for pgvector store

    Returns:
        Initialized VectorStore
    """
    if store_type == "memory":
        from .inmemory_store import InMemoryVectorStore
        vector_store = InMemoryVectorStore()
    elif store_type == "chroma":
        from .chroma_store import ChromaVectorStore
        vector_store = ChromaVectorStore(persist_directory=chroma_path)
    elif store_type == "pgvector":
        if not postgres_url:
            raise ConfigurationMissing(
                "postgres_url required for pgvector store",
                suggestion="Set POSTGRES_URL in .env to the pgvector database URL.",
            )
        from .pgvector_store import PgVectorStore
        vector_store = PgVectorStore(connection_string=postgres_url)
    else:
        raise ValueError(f"Unknown store type: {store_type}")

    await vector_store.initialize()
    return vector_store


async def create_conversation_memory(
    config: Config,
    vector_store: Optional[VectorStore] = None,
    embedding_service: Optional[EmbeddingService] = None,
) -> ConversationMemory:
    """
    Factory function to create a configured ConversationMemory.

    Args:
        config: Application configuration
        vector_store: Shared vector store; created from config when omitted
        embedding_service: Shared embedder; created from config when omitted

    Returns:
        Initialized ConversationMemory
    """
    if embedding_service is None:
        embedding_service = create_embedding_service(
            provider=config.openai.embedding_provider,
            api_key=config.openai.api_key,
            model=config.openai.embedding_model,
            dimensions=config.openai.embedding_dimensions,
        )

    if vector_store is None:
        vector_store = await create_vector_store(
            store_type=config.vector_store.store_type,
            chroma_path=config.vector_store.chroma_path,
            postgres_url=config.vector_store.postgres_url,
        )

    memory_cfg = config.memory
    manager = ConversationMemory(
        vector_store=vector_store,
        embedding_service=embedding_service,
        message_store=MessageStore(
            db_path=memory_cfg.db_path,
            generate_titles=memory_cfg.generate_titles,
        ),
        working_memory=(
            WorkingMemoryStore(db_path=memory_cfg.db_path)
            if memory_cfg.working_memory_enabled else None
        ),
        index_name=memory_cfg.index_name,
        metric=config.vector_store.metric,
        last_messages=memory_cfg.last_messages,
        recall_top_k=memory_cfg.recall_top_k,
        message_range=memory_cfg.message_range,
        scope=memory_cfg.scope,
        over_fetch=memory_cfg.over_fetch,
        max_fetch=memory_cfg.max_fetch,
    )

    await manager.initialize()
    return manager
