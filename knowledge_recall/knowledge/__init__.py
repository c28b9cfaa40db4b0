"""
Knowledge base: document indexing and semantic retrieval.
"""

from .indexer import DocumentIndexer
from .retrieval import RetrievalEngine, SearchHit, truncate_snippet

__all__ = [
    "DocumentIndexer",
    "RetrievalEngine",
    "SearchHit",
    "truncate_snippet",
]
