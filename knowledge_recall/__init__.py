"""
Knowledge Recall - retrieval and semantic recall for agents

This package provides a knowledge-base RAG path (index and search
documents) and conversational memory (recency window plus semantic
recall over past messages) on top of pluggable vector stores.
"""

__version__ = "1.0.0"
