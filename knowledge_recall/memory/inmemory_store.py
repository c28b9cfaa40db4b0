"""
In-process vector store.

Keeps every index in a dict and scores with numpy. Nothing is persisted;
intended for development and tests.
"""

import logging
import uuid
from typing import Optional, Sequence

import numpy as np

from ..errors import IndexAlreadyExists, VectorStoreError
from .base import (
    IndexStats,
    QueryResult,
    VectorRecord,
    VectorStore,
    validate_index_spec,
    validate_query,
    validate_upsert,
)

logger = logging.getLogger("knowledge_recall.memory.inmemory")


class _Index:
    def __init__(self, dimension: int, metric: str):
        self.dimension = dimension
        self.metric = metric
        self.records: dict[str, VectorRecord] = {}  # Insertion ordered
        self.vectors: dict[str, np.ndarray] = {}


class InMemoryVectorStore(VectorStore):
    """Simple in-memory implementation of VectorStore."""

    def __init__(self):
        self._indexes: dict[str, _Index] = {}

    async def initialize(self) -> None:
        logger.info("InMemoryVectorStore ready")

    def _get(self, name: str) -> _Index:
        index = self._indexes.get(name)
        if index is None:
            raise VectorStoreError(f"Index '{name}' not found")
        return index

    async def create_index(self, name: str, dimension: int, metric: str = "cosine") -> None:
        validate_index_spec(name, dimension, metric)
        if name in self._indexes:
            raise IndexAlreadyExists(f"Index '{name}' already exists")
        self._indexes[name] = _Index(dimension, metric)

    async def describe_index(self, name: str) -> IndexStats:
        index = self._get(name)
        return IndexStats(
            name=name,
            count=len(index.records),
            dimension=index.dimension,
            metric=index.metric,
        )

    async def list_indexes(self) -> list[str]:
        return list(self._indexes)

    async def delete_index(self, name: str) -> None:
        self._get(name)
        del self._indexes[name]

    async def upsert(
        self,
        name: str,
        vectors: Sequence[Sequence[float]],
        payloads: Sequence[dict],
        ids: Optional[Sequence[str]] = None,
    ) -> list[str]:
        index = self._get(name)
        validate_upsert(vectors, payloads, ids, index.dimension, name)

        record_ids = list(ids) if ids is not None else [uuid.uuid4().hex for _ in vectors]
        for record_id, vector, payload in zip(record_ids, vectors, payloads):
            array = np.asarray(vector, dtype=np.float64)
            index.records[record_id] = VectorRecord(
                id=record_id, vector=array.tolist(), payload=dict(payload)
            )
            index.vectors[record_id] = array

        logger.debug(f"Upserted {len(record_ids)} records into '{name}'")
        return record_ids

    def _score(self, metric: str, query: np.ndarray, stored: np.ndarray) -> float:
        if metric == "cosine":
            denom = np.linalg.norm(query) * np.linalg.norm(stored)
            if denom == 0:
                return 0.0
            return float(np.dot(query, stored) / denom)
        elif metric == "dotproduct":
            return float(np.dot(query, stored))
        # euclidean: map distance onto (0, 1]
        return float(1.0 / (1.0 + np.linalg.norm(query - stored)))

    async def query(
        self,
        name: str,
        vector: Sequence[float],
        top_k: int,
    ) -> list[QueryResult]:
        index = self._get(name)
        validate_query(vector, top_k, index.dimension, name)

        query = np.asarray(vector, dtype=np.float64)
        scored = [
            (self._score(index.metric, query, stored), record_id)
            for record_id, stored in index.vectors.items()
        ]
        # Stable sort keeps insertion order for ties
        scored.sort(key=lambda x: x[0], reverse=True)

        return [
            QueryResult(
                id=record_id,
                score=score,
                payload=dict(index.records[record_id].payload),
            )
            for score, record_id in scored[:top_k]
        ]

    async def close(self) -> None:
        self._indexes.clear()
        logger.info("InMemoryVectorStore cleared")
