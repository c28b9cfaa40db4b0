"""
Vector memory for knowledge retrieval and conversational recall.

This module provides the vector index abstraction and its backends,
the embedding gateway, the durable message store, working memory and
the recall window builder that ties them together.
"""

from .base import IndexStats, QueryResult, VectorRecord, VectorStore
from .embeddings import EmbeddingService, create_embedding_service
from .inmemory_store import InMemoryVectorStore
from .memory_manager import ConversationMemory, create_conversation_memory, create_vector_store
from .message_store import MessageStore
from .recall import RecallWindowBuilder
from .records import (
    ConversationMessage,
    ConversationThread,
    KnowledgeDocument,
    MessagePointer,
    RecallWindow,
    WorkingMemoryFact,
)
from .working_memory import WorkingMemoryStore

__all__ = [
    "IndexStats",
    "QueryResult",
    "VectorRecord",
    "VectorStore",
    "EmbeddingService",
    "create_embedding_service",
    "InMemoryVectorStore",
    "ConversationMemory",
    "create_conversation_memory",
    "create_vector_store",
    "MessageStore",
    "RecallWindowBuilder",
    "ConversationMessage",
    "ConversationThread",
    "KnowledgeDocument",
    "MessagePointer",
    "RecallWindow",
    "WorkingMemoryFact",
    "WorkingMemoryStore",
]
