"""
Unit tests for knowledge_recall/tools.py

Tests tool definitions and tool execution against in-memory dependencies.
"""

from unittest.mock import AsyncMock

import pytest

from knowledge_recall import config as config_module
from knowledge_recall.errors import EmbeddingProviderError
from knowledge_recall.tools import ToolRegistry, create_tool_registry
from tests.fixtures import make_sample_document


@pytest.fixture
def registry(indexer, engine, vector_store, conversation_memory) -> ToolRegistry:
    return ToolRegistry(
        indexer=indexer,
        engine=engine,
        vector_store=vector_store,
        memory=conversation_memory,
        default_index="knowledge-base",
        default_top_k=5,
    )


def tool_names(definitions):
    return [d["function"]["name"] for d in definitions]


class TestDefinitions:
    def test_all_tools_listed(self, registry):
        assert tool_names(registry.get_definitions()) == [
            "search_documents",
            "add_document",
            "list_indexes",
            "get_index_stats",
            "search_with_filters",
            "update_working_memory",
        ]

    def test_category_enum_follows_taxonomy(self, registry):
        add = next(d for d in registry.get_definitions() if d["function"]["name"] == "add_document")
        category = add["function"]["parameters"]["properties"]["category"]
        assert category["enum"] == ["technology", "science", "business", "health", "education"]

    def test_no_working_memory_tool_without_memory(self, indexer, engine, vector_store):
        registry = ToolRegistry(indexer=indexer, engine=engine, vector_store=vector_store)
        assert "update_working_memory" not in tool_names(registry.get_definitions())


class TestKnowledgeTools:
    @pytest.mark.asyncio
    async def test_add_then_search(self, registry, indexer):
        await indexer.ensure_index()

        added = await registry.execute("add_document", make_sample_document())
        assert added["success"] is True
        assert added["documentId"]
        assert added["category"] == "technology"

        found = await registry.execute("search_documents", {"query": "Vector Databases", "topK": 3})
        assert found["success"] is True
        assert found["query"] == "Vector Databases"
        assert found["resultsCount"] == 1
        [result] = found["results"]
        assert result["position"] == 1
        assert result["title"] == "Vector Databases"
        assert result["metadata"]["tags"] == ["databases", "vectors"]

    @pytest.mark.asyncio
    async def test_search_with_filters_returns_snippets(self, registry, indexer):
        await indexer.ensure_index()
        await indexer.add_document("Long", "token " * 80, "education")

        found = await registry.execute("search_with_filters", {"query": "Long"})

        [result] = found["results"]
        assert result["content"].endswith("...")
        assert len(result["content"]) == 203
        assert "metadata" not in result

    @pytest.mark.asyncio
    async def test_list_indexes(self, registry, indexer):
        await indexer.ensure_index()
        result = await registry.execute("list_indexes", {})
        assert result == {"success": True, "count": 1, "indexes": ["knowledge-base"]}

    @pytest.mark.asyncio
    async def test_get_index_stats(self, registry, indexer):
        await indexer.ensure_index()
        await registry.execute("add_document", make_sample_document())

        result = await registry.execute("get_index_stats", {})

        assert result == {
            "success": True,
            "indexName": "knowledge-base",
            "documentCount": 1,
            "dimension": 64,
            "metric": "cosine",
        }


class TestFailures:
    """Every failure comes back as a dict, never as an exception."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("arguments", [
        {"query": ""},
        {"query": "x", "topK": 0},
        {"query": "x", "topK": "five"},
        {"query": "x", "topK": True},
    ])
    async def test_bad_search_arguments(self, registry, indexer, arguments):
        await indexer.ensure_index()
        result = await registry.execute("search_documents", arguments)
        assert result["success"] is False
        assert result["error"]
        assert result["suggestion"]

    @pytest.mark.asyncio
    async def test_unknown_index(self, registry):
        result = await registry.execute("get_index_stats", {"indexName": "missing"})
        assert result["success"] is False
        assert "missing" in result["error"]

    @pytest.mark.asyncio
    async def test_unknown_category(self, registry, indexer):
        await indexer.ensure_index()
        result = await registry.execute(
            "add_document", make_sample_document(category="astrology")
        )
        assert result["success"] is False
        assert "technology" in result["suggestion"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry):
        result = await registry.execute("launch_rockets", {})
        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_provider_error(self, registry, indexer, embedding_service):
        await indexer.ensure_index()
        embedding_service.embed = AsyncMock(side_effect=EmbeddingProviderError("429 Too Many Requests"))

        result = await registry.execute("search_documents", {"query": "anything"})

        assert result["success"] is False
        assert "429" in result["error"]
        assert "retry" in result["suggestion"]

    @pytest.mark.asyncio
    async def test_unexpected_error(self, registry, vector_store):
        vector_store.list_indexes = AsyncMock(side_effect=ConnectionResetError("peer reset"))

        result = await registry.execute("list_indexes", {})

        assert result["success"] is False
        assert "peer reset" in result["error"]

    @pytest.mark.asyncio
    async def test_none_arguments(self, registry):
        result = await registry.execute("search_documents", None)
        assert result["success"] is False


class TestWorkingMemoryTool:
    @pytest.mark.asyncio
    async def test_update(self, registry, conversation_memory):
        result = await registry.execute(
            "update_working_memory",
            {"facts": {"name": "Ada", "city": "London"}},
            resource_id="user-1",
        )

        assert result["success"] is True
        assert result["facts"] == {"name": "Ada", "city": "London"}
        assert conversation_memory.get_working_memory("user-1").facts["city"] == "London"

    @pytest.mark.asyncio
    async def test_forget_fact(self, registry):
        await registry.execute("update_working_memory", {"facts": {"city": "London"}}, "user-1")
        result = await registry.execute("update_working_memory", {"facts": {"city": None}}, "user-1")
        assert result["facts"] == {}

    @pytest.mark.asyncio
    async def test_needs_resource(self, registry):
        result = await registry.execute("update_working_memory", {"facts": {"a": 1}})
        assert result["success"] is False


class TestCreateToolRegistry:
    @pytest.fixture
    def config(self, monkeypatch, temp_db_path):
        monkeypatch.setattr(config_module, "_yaml_config", {})
        cfg = config_module.Config()
        cfg.memory.db_path = temp_db_path
        cfg.knowledge_base.top_k = 2
        cfg.knowledge_base.snippet_length = 10
        return cfg

    @pytest.mark.asyncio
    async def test_wires_config(self, config, vector_store, embedding_service):
        registry = await create_tool_registry(config, vector_store, embedding_service)

        assert registry.default_top_k == 2
        assert registry.engine.snippet_length == 10
        assert registry.memory is not None
        assert sorted(await vector_store.list_indexes()) == ["conversation-memory", "knowledge-base"]
        assert "update_working_memory" in tool_names(registry.get_definitions())

    @pytest.mark.asyncio
    async def test_memory_disabled(self, config, vector_store, embedding_service):
        config.memory.enabled = False

        registry = await create_tool_registry(config, vector_store, embedding_service)

        assert registry.memory is None
        assert await vector_store.list_indexes() == ["knowledge-base"]
