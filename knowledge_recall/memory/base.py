"""
Base interfaces and data structures for vector indexes.

Defines the abstract contract that every vector store backend must
implement. Indexes are schema-agnostic: a record is a vector plus an
opaque payload, and queries never filter on the payload.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from ..errors import IndexAlreadyExists, InvalidArgument, VectorStoreError

logger = logging.getLogger("knowledge_recall.memory.base")

SUPPORTED_METRICS = ("cosine", "euclidean", "dotproduct")


@dataclass
class VectorRecord:
    """A single entry of a named vector index."""
    id: str
    vector: list[float]
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class QueryResult:
    """A search result from the vector store."""
    id: str
    score: float  # Higher is more similar, whatever the metric
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class IndexStats:
    """What describe_index reports about an index."""
    name: str
    count: int
    dimension: int
    metric: str


def validate_index_spec(name: str, dimension: int, metric: str) -> None:
    """Reject bad create_index arguments before touching the backend."""
    if not name or not name.strip():
        raise InvalidArgument("Index name must not be empty")
    if not isinstance(dimension, int) or dimension <= 0:
        raise InvalidArgument(f"Index dimension must be a positive integer, got {dimension!r}")
    if metric not in SUPPORTED_METRICS:
        raise InvalidArgument(
            f"Unsupported metric '{metric}'. Use one of: {', '.join(SUPPORTED_METRICS)}"
        )


def validate_upsert(
    vectors: Sequence[Sequence[float]],
    payloads: Sequence[dict],
    ids: Optional[Sequence[str]],
    dimension: int,
    index_name: str,
) -> None:
    """
    Check an upsert batch as a whole.

    Runs before any write so a bad batch is rejected entirely rather than
    partially applied.
    """
    if len(vectors) != len(payloads):
        raise InvalidArgument(
            f"upsert needs one payload per vector ({len(vectors)} vectors, {len(payloads)} payloads)"
        )
    if ids is not None and len(ids) != len(vectors):
        raise InvalidArgument(
            f"upsert needs one id per vector ({len(vectors)} vectors, {len(ids)} ids)"
        )
    if ids is not None and len(set(ids)) != len(ids):
        raise InvalidArgument("upsert ids must be unique within a batch")
    for position, vector in enumerate(vectors):
        if len(vector) != dimension:
            raise VectorStoreError(
                f"Vector {position} has dimension {len(vector)}, "
                f"index '{index_name}' expects {dimension}"
            )


def validate_query(vector: Sequence[float], top_k: int, dimension: int, index_name: str) -> None:
    """Check query arguments against the index."""
    if not isinstance(top_k, int) or top_k <= 0:
        raise InvalidArgument(f"top_k must be a positive integer, got {top_k!r}")
    if len(vector) != dimension:
        raise VectorStoreError(
            f"Query vector has dimension {len(vector)}, index '{index_name}' expects {dimension}"
        )


class VectorStore(ABC):
    """
    Abstract interface for vector index backends.

    Implementations: in-memory (tests/dev), ChromaDB (local), pgvector (production)
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections or clients."""
        pass

    @abstractmethod
    async def create_index(self, name: str, dimension: int, metric: str = "cosine") -> None:
        """
        Create a named index.

        Raises:
            IndexAlreadyExists: if the name is taken. The existing index
                is left untouched.
            InvalidArgument: for a bad dimension or metric.
        """
        pass

    @abstractmethod
    async def describe_index(self, name: str) -> IndexStats:
        """Return count, dimension and metric of an index."""
        pass

    @abstractmethod
    async def list_indexes(self) -> list[str]:
        """Return the names of all indexes."""
        pass

    @abstractmethod
    async def delete_index(self, name: str) -> None:
        """Drop an index and all its records."""
        pass

    @abstractmethod
    async def upsert(
        self,
        name: str,
        vectors: Sequence[Sequence[float]],
        payloads: Sequence[dict],
        ids: Optional[Sequence[str]] = None,
    ) -> list[str]:
        """
        Insert or replace records.

        Args:
            name: Target index
            vectors: One embedding per record
            payloads: One payload per record, aligned with vectors
            ids: Optional ids; generated when omitted

        Returns:
            The record ids, in input order
        """
        pass

    @abstractmethod
    async def query(
        self,
        name: str,
        vector: Sequence[float],
        top_k: int,
    ) -> list[QueryResult]:
        """
        Find the nearest neighbours of a vector.

        Returns:
            At most top_k results, ordered by descending score
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        pass

    async def ensure_index(self, name: str, dimension: int, metric: str = "cosine") -> bool:
        """
        Create an index unless it already exists.

        Returns:
            True if the index was created, False if it was already there

        Raises:
            VectorStoreError: if the existing index has a different
                dimension or metric
        """
        try:
            await self.create_index(name, dimension, metric)
            logger.info(f"Created index '{name}' ({dimension}d, {metric})")
            return True
        except IndexAlreadyExists:
            stats = await self.describe_index(name)
            if stats.dimension != dimension or stats.metric != metric:
                raise VectorStoreError(
                    f"Index '{name}' exists with {stats.dimension}d/{stats.metric}, "
                    f"requested {dimension}d/{metric}"
                )
            logger.info(f"Index '{name}' already exists, continuing")
            return False

    async def wait_until_visible(
        self,
        name: str,
        expected_count: int,
        timeout: float = 10.0,
        interval: float = 0.5,
    ) -> bool:
        """
        Poll describe_index until the index holds at least expected_count records.

        Returns:
            True once visible, False if the timeout elapsed first. Writes
            are not rolled back on timeout; they may still become visible.
        """
        deadline = time.monotonic() + timeout
        while True:
            stats = await self.describe_index(name)
            if stats.count >= expected_count:
                return True
            if time.monotonic() >= deadline:
                logger.warning(
                    f"Index '{name}' shows {stats.count}/{expected_count} records "
                    f"after {timeout:.1f}s; continuing without confirmation"
                )
                return False
            await asyncio.sleep(interval)
