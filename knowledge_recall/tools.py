"""
Tool definitions for the knowledge agent.

This module provides the tools the LLM can call to search and extend the
knowledge base and to keep working memory up to date. Every tool returns
a structured result with an explicit success flag and never raises.
"""

import logging
from typing import Any, Optional

from .config import Config
from .errors import InvalidArgument, KnowledgeRecallError
from .knowledge import DocumentIndexer, RetrievalEngine
from .memory import (
    ConversationMemory,
    EmbeddingService,
    VectorStore,
    create_conversation_memory,
    create_embedding_service,
    create_vector_store,
)

logger = logging.getLogger("knowledge_recall.tools")


def _failure(error: str, suggestion: Optional[str] = None) -> dict[str, Any]:
    result: dict[str, Any] = {"success": False, "error": error}
    if suggestion:
        result["suggestion"] = suggestion
    return result


class ToolRegistry:
    """
    Registry of tools available to the LLM.
    """

    def __init__(
        self,
        indexer: DocumentIndexer,
        engine: RetrievalEngine,
        vector_store: VectorStore,
        memory: ConversationMemory | None = None,
        default_index: str = "knowledge-base",
        default_top_k: int = 5,
    ):
        """
        Initialize the tool registry with necessary dependencies.
        """
        self.indexer = indexer
        self.engine = engine
        self.vector_store = vector_store
        self.memory = memory
        self.default_index = default_index
        self.default_top_k = default_top_k

    def get_definitions(self) -> list[dict[str, Any]]:
        """
        Get the JSON schema definitions for all available tools.
        """
        index_param = {
            "type": "string",
            "description": f"Name of the index (default: {self.default_index})",
        }
        top_k_param = {
            "type": "integer",
            "minimum": 1,
            "description": f"Number of results to return (default: {self.default_top_k})",
        }

        tools = [
            {
                "type": "function",
                "function": {
                    "name": "search_documents",
                    "description": "Searches documents in the knowledge base using semantic search. Finds relevant documents based on the meaning of the query, not just keywords.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "query": {
                                "type": "string",
                                "description": "The natural language search query"
                            },
                            "indexName": index_param,
                            "topK": top_k_param,
                        },
                        "required": ["query"]
                    }
                }
            },
            {
                "type": "function",
                "function": {
                    "name": "add_document",
                    "description": "Adds a new document to the knowledge base. The document will be indexed for semantic search.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "title": {"type": "string", "description": "Document title"},
                            "content": {"type": "string", "description": "Document content"},
                            "category": {
                                "type": "string",
                                "description": "Document category",
                                **({"enum": self.indexer.categories} if self.indexer.categories else {}),
                            },
                            "indexName": index_param,
                            "tags": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "Additional tags"
                            },
                        },
                        "required": ["title", "content", "category"]
                    }
                }
            },
            {
                "type": "function",
                "function": {
                    "name": "list_indexes",
                    "description": "Lists all available indexes in the vector store",
                    "parameters": {"type": "object", "properties": {}}
                }
            },
            {
                "type": "function",
                "function": {
                    "name": "get_index_stats",
                    "description": "Gets statistics for a specific index (document count, dimension, metric)",
                    "parameters": {
                        "type": "object",
                        "properties": {"indexName": index_param},
                    }
                }
            },
            {
                "type": "function",
                "function": {
                    "name": "search_with_filters",
                    "description": "Semantic search in the knowledge base returning short snippets. Metadata filters are not supported by the index.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "query": {"type": "string", "description": "Search query"},
                            "indexName": index_param,
                            "topK": top_k_param,
                        },
                        "required": ["query"]
                    }
                }
            },
        ]

        if self.memory and self.memory.working_memory is not None:
            tools.append({
                "type": "function",
                "function": {
                    "name": "update_working_memory",
                    "description": "Record persistent facts about the user (name, preferences, goals). Set a fact to null to forget it.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "facts": {
                                "type": "object",
                                "description": "Facts to set, e.g. {\"name\": \"Ada\"}"
                            },
                            "notes": {
                                "type": "string",
                                "description": "Free-text notes replacing the previous ones"
                            },
                        },
                    }
                }
            })

        return tools

    def _top_k(self, arguments: dict[str, Any]) -> int:
        top_k = arguments.get("topK", self.default_top_k)
        if isinstance(top_k, bool) or not isinstance(top_k, int):
            raise InvalidArgument(f"topK must be an integer, got {top_k!r}")
        if top_k <= 0:
            raise InvalidArgument(f"topK must be positive, got {top_k}")
        return top_k

    async def execute(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        resource_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Execute a tool by name with arguments.

        Args:
            tool_name: Name from get_definitions()
            arguments: Arguments produced by the LLM
            resource_id: The user the current turn belongs to

        Returns:
            {"success": True, ...} or {"success": False, "error": ..., "suggestion": ...}
        """
        logger.info(f"Executing tool: {tool_name} with args: {arguments}")
        arguments = arguments or {}

        try:
            if tool_name == "search_documents":
                return await self._search(arguments, snippets=False)

            elif tool_name == "search_with_filters":
                return await self._search(arguments, snippets=True)

            elif tool_name == "add_document":
                document = await self.indexer.add_document(
                    title=arguments.get("title", ""),
                    content=arguments.get("content", ""),
                    category=arguments.get("category", ""),
                    tags=arguments.get("tags"),
                    index_name=arguments.get("indexName") or self.default_index,
                )
                return {
                    "success": True,
                    "message": "Document added successfully",
                    "documentId": document.id,
                    "title": document.title,
                    "category": document.category,
                }

            elif tool_name == "list_indexes":
                indexes = await self.vector_store.list_indexes()
                return {
                    "success": True,
                    "count": len(indexes),
                    "indexes": indexes,
                }

            elif tool_name == "get_index_stats":
                index_name = arguments.get("indexName") or self.default_index
                stats = await self.vector_store.describe_index(index_name)
                return {
                    "success": True,
                    "indexName": index_name,
                    "documentCount": stats.count,
                    "dimension": stats.dimension,
                    "metric": stats.metric,
                }

            elif tool_name == "update_working_memory" and self.memory:
                if not resource_id:
                    raise InvalidArgument("No user is associated with this conversation")
                fact = self.memory.update_working_memory(
                    resource_id,
                    patch=arguments.get("facts"),
                    notes=arguments.get("notes"),
                )
                return {
                    "success": True,
                    "message": "Working memory updated",
                    "facts": fact.facts,
                }

            else:
                return _failure(
                    f"Tool {tool_name} not found or dependency missing.",
                    "Use one of the tools listed in the definitions.",
                )

        except KnowledgeRecallError as e:
            logger.warning(f"Tool {tool_name} failed: {e}")
            return _failure(str(e), e.suggestion)
        except Exception as e:
            logger.error(f"Error executing tool {tool_name}: {e}")
            return _failure(
                f"Error executing tool: {e}",
                "Try again; if the problem persists check the service logs.",
            )

    async def _search(self, arguments: dict[str, Any], snippets: bool) -> dict[str, Any]:
        query = arguments.get("query", "")
        if not isinstance(query, str) or not query.strip():
            raise InvalidArgument("A non-empty query is required")
        index_name = arguments.get("indexName") or self.default_index
        top_k = self._top_k(arguments)

        if snippets:
            hits = await self.engine.search_snippets(query, index_name=index_name, top_k=top_k)
        else:
            hits = await self.engine.search(query, index_name=index_name, top_k=top_k)

        return {
            "success": True,
            "query": query,
            "resultsCount": len(hits),
            "results": [hit.to_dict(include_metadata=not snippets) for hit in hits],
        }


async def create_tool_registry(
    config: Config,
    vector_store: Optional[VectorStore] = None,
    embedding_service: Optional[EmbeddingService] = None,
) -> ToolRegistry:
    """
    Build the knowledge tools (and conversation memory, if enabled) from configuration.

    The knowledge index is created if it does not exist yet.
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

    kb = config.knowledge_base
    indexer = DocumentIndexer(
        vector_store=vector_store,
        embedding_service=embedding_service,
        default_index=kb.index_name,
        categories=kb.categories,
        metric=config.vector_store.metric,
    )
    await indexer.ensure_index()

    engine = RetrievalEngine(
        vector_store=vector_store,
        embedding_service=embedding_service,
        default_index=kb.index_name,
        default_top_k=kb.top_k,
        snippet_length=kb.snippet_length,
    )

    memory = None
    if config.memory.enabled:
        memory = await create_conversation_memory(
            config, vector_store=vector_store, embedding_service=embedding_service
        )

    logger.info(f"Tool registry ready (index '{kb.index_name}', memory {'on' if memory else 'off'})")
    return ToolRegistry(
        indexer=indexer,
        engine=engine,
        vector_store=vector_store,
        memory=memory,
        default_index=kb.index_name,
        default_top_k=kb.top_k,
    )
