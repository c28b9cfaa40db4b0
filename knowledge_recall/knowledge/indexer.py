"""
Document Indexer for the knowledge base.

Knowledge documents have no separate content store: the full document
travels in the vector payload next to its embedding.
"""

import logging
from typing import Iterable, Optional

from ..errors import InvalidArgument
from ..memory.base import VectorStore
from ..memory.embeddings import EmbeddingService
from ..memory.records import KnowledgeDocument, utcnow

logger = logging.getLogger("knowledge_recall.knowledge.indexer")


class DocumentIndexer:
    """
    Embeds knowledge documents and writes them to a vector index.

    A document is queryable once upsert has returned and the index has
    refreshed; use VectorStore.wait_until_visible when that matters.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedding_service: EmbeddingService,
        default_index: str = "knowledge-base",
        categories: Optional[Iterable[str]] = None,
        metric: str = "cosine",
    ):
        self.vector_store = vector_store
        self.embedding_service = embedding_service
        self.default_index = default_index
        self.categories = [c.lower() for c in categories] if categories else None
        self.metric = metric

    async def ensure_index(self, index_name: Optional[str] = None) -> bool:
        """Create the index sized for the embedder, tolerating 'already exists'."""
        return await self.vector_store.ensure_index(
            index_name or self.default_index,
            self.embedding_service.dimension,
            self.metric,
        )

    def _build_document(
        self,
        title: str,
        content: str,
        category: str,
        tags: Optional[Iterable[str]] = None,
    ) -> KnowledgeDocument:
        """Validate fields and stamp the server-side timestamp."""
        if not isinstance(title, str) or not title.strip():
            raise InvalidArgument("Document title is required")
        if not isinstance(content, str) or not content.strip():
            raise InvalidArgument("Document content is required")
        if not isinstance(category, str) or not category.strip():
            raise InvalidArgument("Document category is required")

        category = category.strip().lower()
        if self.categories is not None and category not in self.categories:
            raise InvalidArgument(
                f"Unknown category '{category}'. Use one of: {', '.join(self.categories)}",
                suggestion=f"Pick a category from: {', '.join(self.categories)}.",
            )

        if tags is None:
            tags = []
        elif isinstance(tags, str):
            tags = [tags]
        elif not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags):
            raise InvalidArgument("Document tags must be a list of strings")

        # Deduplicate tags while preserving order
        clean_tags = list(dict.fromkeys(t.strip() for t in tags if t.strip()))

        return KnowledgeDocument(
            title=title.strip(),
            content=content.strip(),
            category=category,
            tags=clean_tags,
            timestamp=utcnow(),
        )

    async def add_document(
        self,
        title: str,
        content: str,
        category: str,
        tags: Optional[Iterable[str]] = None,
        index_name: Optional[str] = None,
    ) -> KnowledgeDocument:
        """
        Index a single document.

        Returns:
            The indexed document, with the id assigned by the index
        """
        index_name = index_name or self.default_index
        document = self._build_document(title, content, category, tags)

        embedding = await self.embedding_service.embed(document.to_embedding_text())
        [document.id] = await self.vector_store.upsert(
            index_name,
            vectors=[embedding],
            payloads=[document.to_payload()],
        )

        logger.info(f"Indexed document '{document.title}' as {document.id} in '{index_name}'")
        return document

    async def add_documents(
        self,
        documents: Iterable[dict],
        index_name: Optional[str] = None,
    ) -> list[KnowledgeDocument]:
        """
        Index many documents with one embedding batch and one upsert.

        Each item needs title, content and category; tags are optional.
        The whole batch is validated before anything is embedded.
        """
        index_name = index_name or self.default_index
        built = [
            self._build_document(
                doc.get("title", ""),
                doc.get("content", ""),
                doc.get("category", ""),
                doc.get("tags"),
            )
            for doc in documents
        ]
        if not built:
            return []

        embeddings = await self.embedding_service.embed_batch(
            [doc.to_embedding_text() for doc in built]
        )
        ids = await self.vector_store.upsert(
            index_name,
            vectors=embeddings,
            payloads=[doc.to_payload() for doc in built],
        )
        for doc, doc_id in zip(built, ids):
            doc.id = doc_id

        logger.info(f"Indexed {len(built)} documents in '{index_name}'")
        return built
