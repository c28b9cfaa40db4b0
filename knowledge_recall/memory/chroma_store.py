"""
ChromaDB Vector Store Implementation.

ChromaDB is perfect for local/development use:
- No server required
- Stores everything in a local directory
- Built-in persistence
- Good performance for moderate scale (< 1M vectors)

Each named index maps to one collection. Chroma metadata only holds
scalars, so the payload is stored as a JSON string.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Optional, Sequence

from ..errors import IndexAlreadyExists, VectorStoreError
from .base import (
    IndexStats,
    QueryResult,
    VectorStore,
    validate_index_spec,
    validate_query,
    validate_upsert,
)

logger = logging.getLogger("knowledge_recall.memory.chroma")

COLLECTION_PREFIX = "kr-"

# Chroma's name for each metric
HNSW_SPACES = {
    "cosine": "cosine",
    "euclidean": "l2",
    "dotproduct": "ip",
}


def distance_to_score(metric: str, distance: float) -> float:
    """Convert a Chroma distance (lower is better) into a similarity score."""
    if metric == "euclidean":
        # Chroma's l2 space reports squared distance
        return 1.0 / (1.0 + max(distance, 0.0) ** 0.5)
    # cosine: 1 - cos, ip: 1 - dot
    return 1.0 - distance


class ChromaVectorStore(VectorStore):
    """
    ChromaDB implementation of the vector store.

    Stores indexes locally with full persistence.
    """

    def __init__(self, persist_directory: str = "./vector_store"):
        self.persist_directory = Path(persist_directory)
        self._client = None
        logger.info(f"ChromaVectorStore configured with directory: {persist_directory}")

    async def initialize(self) -> None:
        """Initialize the ChromaDB client."""
        try:
            import chromadb
            from chromadb.config import Settings
        except ImportError:
            raise RuntimeError(
                "chromadb not installed. Install with: pip install chromadb"
            )

        # Create persist directory if needed
        self.persist_directory.mkdir(parents=True, exist_ok=True)

        self._client = chromadb.PersistentClient(
            path=str(self.persist_directory),
            settings=Settings(
                anonymized_telemetry=False,
                allow_reset=True,
            ),
        )

        indexes = await self.list_indexes()
        logger.info(f"ChromaDB initialized with {len(indexes)} existing indexes")

    def _ensure_initialized(self) -> None:
        """Ensure the store is initialized."""
        if self._client is None:
            raise RuntimeError("ChromaVectorStore not initialized. Call initialize() first.")

    def _get_collection(self, name: str):
        self._ensure_initialized()
        try:
            return self._client.get_collection(name=COLLECTION_PREFIX + name)
        except Exception as e:
            raise VectorStoreError(f"Index '{name}' not found: {e}") from e

    @staticmethod
    def _index_spec(collection) -> tuple[int, str]:
        metadata = collection.metadata or {}
        return int(metadata.get("dimension", 0)), metadata.get("metric", "cosine")

    async def create_index(self, name: str, dimension: int, metric: str = "cosine") -> None:
        validate_index_spec(name, dimension, metric)
        if name in await self.list_indexes():
            raise IndexAlreadyExists(f"Index '{name}' already exists")

        try:
            self._client.create_collection(
                name=COLLECTION_PREFIX + name,
                metadata={
                    "hnsw:space": HNSW_SPACES[metric],
                    "dimension": dimension,
                    "metric": metric,
                },
            )
        except Exception as e:
            raise VectorStoreError(f"Failed to create index '{name}': {e}") from e

    async def describe_index(self, name: str) -> IndexStats:
        collection = self._get_collection(name)
        dimension, metric = self._index_spec(collection)
        return IndexStats(
            name=name,
            count=collection.count(),
            dimension=dimension,
            metric=metric,
        )

    async def list_indexes(self) -> list[str]:
        self._ensure_initialized()
        try:
            collections = self._client.list_collections()
        except Exception as e:
            raise VectorStoreError(f"Failed to list indexes: {e}") from e

        names = []
        for collection in collections:
            # Depending on the chromadb version this is a name or a Collection
            collection_name = collection if isinstance(collection, str) else collection.name
            if collection_name.startswith(COLLECTION_PREFIX):
                names.append(collection_name[len(COLLECTION_PREFIX):])
        return sorted(names)

    async def delete_index(self, name: str) -> None:
        self._get_collection(name)
        try:
            self._client.delete_collection(name=COLLECTION_PREFIX + name)
        except Exception as e:
            raise VectorStoreError(f"Failed to delete index '{name}': {e}") from e

    async def upsert(
        self,
        name: str,
        vectors: Sequence[Sequence[float]],
        payloads: Sequence[dict],
        ids: Optional[Sequence[str]] = None,
    ) -> list[str]:
        collection = self._get_collection(name)
        dimension, _ = self._index_spec(collection)
        validate_upsert(vectors, payloads, ids, dimension, name)
        if not vectors:
            return []

        record_ids = list(ids) if ids is not None else [uuid.uuid4().hex for _ in vectors]
        try:
            collection.upsert(
                ids=record_ids,
                embeddings=[list(v) for v in vectors],
                metadatas=[{"payload": json.dumps(p)} for p in payloads],
            )
        except Exception as e:
            raise VectorStoreError(f"Upsert into '{name}' failed: {e}") from e

        logger.info(f"Upserted {len(record_ids)} records into '{name}'")
        return record_ids

    async def query(
        self,
        name: str,
        vector: Sequence[float],
        top_k: int,
    ) -> list[QueryResult]:
        collection = self._get_collection(name)
        dimension, metric = self._index_spec(collection)
        validate_query(vector, top_k, dimension, name)

        count = collection.count()
        if count == 0:
            return []

        try:
            results = collection.query(
                query_embeddings=[list(vector)],
                n_results=min(top_k, count),
                include=["metadatas", "distances"],
            )
        except Exception as e:
            raise VectorStoreError(f"Query on '{name}' failed: {e}") from e

        query_results = []
        if results["ids"] and results["ids"][0]:
            for i, record_id in enumerate(results["ids"][0]):
                metadata = results["metadatas"][0][i] or {}
                query_results.append(QueryResult(
                    id=record_id,
                    score=distance_to_score(metric, results["distances"][0][i]),
                    payload=json.loads(metadata.get("payload", "{}")),
                ))

        return query_results[:top_k]

    async def close(self) -> None:
        """Clean up resources."""
        # ChromaDB PersistentClient handles cleanup automatically
        self._client = None
        logger.info("ChromaDB connection closed")
