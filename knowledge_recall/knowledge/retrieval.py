"""
Retrieval Engine for the knowledge base.

Embeds a query, asks the vector index for its nearest neighbours and
turns each hit into a display record with provenance. The index cannot
filter on payload fields, so no predicate filtering happens here.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..errors import InvalidArgument
from ..memory.base import VectorStore
from ..memory.embeddings import EmbeddingService

logger = logging.getLogger("knowledge_recall.knowledge.retrieval")

SNIPPET_LENGTH = 200
ELLIPSIS = "..."


def truncate_snippet(content: str, length: int = SNIPPET_LENGTH) -> str:
    """Cut content to `length` characters plus an ellipsis; shorter content is returned as is."""
    if len(content) <= length:
        return content
    return content[:length] + ELLIPSIS


@dataclass
class SearchHit:
    """A ranked knowledge-base result."""
    position: int  # 1-based rank as returned by the index
    score: float
    title: str
    content: str
    category: str
    id: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self, include_metadata: bool = True) -> dict[str, Any]:
        result = {
            "position": self.position,
            "score": f"{self.score:.4f}",
            "title": self.title,
            "content": self.content,
            "category": self.category,
        }
        if include_metadata:
            result["metadata"] = self.metadata
        return result


class RetrievalEngine:
    """Semantic search over a knowledge index."""

    def __init__(
        self,
        vector_store: VectorStore,
        embedding_service: EmbeddingService,
        default_index: str = "knowledge-base",
        default_top_k: int = 5,
        snippet_length: int = SNIPPET_LENGTH,
    ):
        self.vector_store = vector_store
        self.embedding_service = embedding_service
        self.default_index = default_index
        self.default_top_k = default_top_k
        self.snippet_length = snippet_length

    async def search(
        self,
        query: str,
        index_name: Optional[str] = None,
        top_k: Optional[int] = None,
    ) -> list[SearchHit]:
        """
        Find the documents most similar to the query.

        The vector service's ordering is kept as is, ties included.
        """
        index_name = index_name or self.default_index
        top_k = self.default_top_k if top_k is None else top_k
        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k <= 0:
            raise InvalidArgument(f"top_k must be a positive integer, got {top_k!r}")

        query_embedding = await self.embedding_service.embed(query)
        results = await self.vector_store.query(index_name, query_embedding, top_k)

        hits = []
        for position, result in enumerate(results, start=1):
            payload = result.payload or {}
            hits.append(SearchHit(
                position=position,
                score=result.score,
                title=payload.get("title") or "Untitled",
                content=payload.get("content") or "No content",
                category=payload.get("category") or "No category",
                id=result.id,
                metadata=payload,
            ))

        logger.info(f"Search on '{index_name}' returned {len(hits)} results")
        return hits

    async def search_snippets(
        self,
        query: str,
        index_name: Optional[str] = None,
        top_k: Optional[int] = None,
    ) -> list[SearchHit]:
        """Same as search, with each content cut down to a display snippet."""
        hits = await self.search(query, index_name=index_name, top_k=top_k)
        for hit in hits:
            hit.content = truncate_snippet(hit.content, self.snippet_length)
        return hits

    def format_results_for_llm(self, hits: list[SearchHit]) -> str:
        """
        Format search results for inclusion in LLM context.

        Titles are shown so the answer can cite its sources.
        """
        if not hits:
            return """
## Knowledge Base
No relevant documents were found for this query.
Say so plainly and suggest a more specific or differently worded search.
"""

        lines = [
            "## Knowledge Base Results",
            "Cite the document title for every fact you use.",
            "",
        ]
        for hit in hits:
            lines.append(f"### {hit.position}. {hit.title} ({hit.category})")
            lines.append(f"*Relevance: {hit.score:.1%}*")
            lines.append(hit.content)
            lines.append("")

        return "\n".join(lines)
