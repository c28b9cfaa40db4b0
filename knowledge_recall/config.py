"""
Configuration module for knowledge_recall.

Loads application settings from config.yaml and secrets from environment variables.
"""

import logging
import os
import contextvars
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Context variable for resource-scoped logging
resource_context = contextvars.ContextVar("resource_id", default=None)


class ResourceLogFilter(logging.Filter):
    """Filter to inject the current resource ID into log records."""
    def filter(self, record):
        resource_id = resource_context.get()
        if resource_id is not None:
            record.resource_info = f" [Resource {resource_id}]"
        else:
            record.resource_info = ""
        return True


# Default config file path
CONFIG_FILE = Path(__file__).parent.parent / "config.yaml"

DEFAULT_CATEGORIES = ["technology", "science", "business", "health", "education"]


def _load_yaml_config() -> dict:
    """Load configuration from YAML file."""
    if CONFIG_FILE.exists():
        with open(CONFIG_FILE) as f:
            return yaml.safe_load(f) or {}
    return {}


# Load YAML config once at module import
_yaml_config = _load_yaml_config()


def _get_yaml(section: str, key: str, default=None):
    """Get a value from the YAML config."""
    return _yaml_config.get(section, {}).get(key, default)


def _get_yaml_section(section: str, default=None):
    """Get an entire section from the YAML config."""
    return _yaml_config.get(section, default or {})


@dataclass
class OpenAIConfig:
    """OpenAI embedding configuration."""
    # Secret from .env
    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    # Settings from YAML
    embedding_provider: Literal["openai", "local"] = field(
        default_factory=lambda: _get_yaml("embeddings", "provider", "openai")
    )
    embedding_model: str = field(
        default_factory=lambda: _get_yaml("embeddings", "model", "text-embedding-3-small")
    )
    # None = use the model's default dimensions
    embedding_dimensions: int | None = field(
        default_factory=lambda: _get_yaml("embeddings", "dimensions", None)
    )


@dataclass
class VectorStoreConfig:
    """Vector index service configuration."""
    store_type: Literal["memory", "chroma", "pgvector"] = field(
        default_factory=lambda: _get_yaml("vector_store", "store_type", "chroma")
    )
    chroma_path: str = field(
        default_factory=lambda: _get_yaml("vector_store", "chroma_path", "./vector_store")
    )
    # Secret from .env (contains credentials)
    postgres_url: str = field(default_factory=lambda: os.getenv("POSTGRES_URL", ""))
    metric: Literal["cosine", "euclidean", "dotproduct"] = field(
        default_factory=lambda: _get_yaml("vector_store", "metric", "cosine")
    )
    # Bounded wait for writes to become queryable
    visibility_timeout: float = field(
        default_factory=lambda: _get_yaml("vector_store", "visibility_timeout", 10.0)
    )


@dataclass
class KnowledgeBaseConfig:
    """Knowledge document index settings."""
    index_name: str = field(
        default_factory=lambda: _get_yaml("knowledge_base", "index_name", "knowledge-base")
    )
    top_k: int = field(
        default_factory=lambda: _get_yaml("knowledge_base", "top_k", 5)
    )
    snippet_length: int = field(
        default_factory=lambda: _get_yaml("knowledge_base", "snippet_length", 200)
    )
    categories: list[str] = field(default_factory=lambda: _get_categories())


def _get_categories() -> list[str]:
    """Get the document taxonomy from YAML or use defaults."""
    categories = _get_yaml("knowledge_base", "categories", None)
    if categories:
        return [c.strip().lower() for c in categories if c and c.strip()]
    return list(DEFAULT_CATEGORIES)


@dataclass
class MemoryConfig:
    """Conversation memory and semantic recall configuration."""
    enabled: bool = field(
        default_factory=lambda: _get_yaml("memory", "enabled", True)
    )
    db_path: str = field(
        default_factory=lambda: _get_yaml("memory", "db_path", "conversation_memory.db")
    )
    index_name: str = field(
        default_factory=lambda: _get_yaml("memory", "index_name", "conversation-memory")
    )
    # Messages always injected from the current thread
    last_messages: int = field(
        default_factory=lambda: _get_yaml("memory", "last_messages", 20)
    )
    recall_top_k: int = field(
        default_factory=lambda: _get_yaml_section("memory").get("semantic_recall", {}).get("top_k", 5)
    )
    message_range: int = field(
        default_factory=lambda: _get_yaml_section("memory").get("semantic_recall", {}).get("message_range", 2)
    )
    scope: Literal["resource", "thread"] = field(
        default_factory=lambda: _get_yaml_section("memory").get("semantic_recall", {}).get("scope", "resource")
    )
    # The index cannot filter by resource, so fetch extra and filter client-side
    over_fetch: int = field(
        default_factory=lambda: _get_yaml_section("memory").get("semantic_recall", {}).get("over_fetch", 4)
    )
    max_fetch: int = field(
        default_factory=lambda: _get_yaml_section("memory").get("semantic_recall", {}).get("max_fetch", 1000)
    )
    # Title new threads after their first user message
    generate_titles: bool = field(
        default_factory=lambda: _get_yaml_section("memory").get("threads", {}).get("generate_title", True)
    )
    working_memory_enabled: bool = field(
        default_factory=lambda: _get_yaml_section("memory").get("working_memory", {}).get("enabled", True)
    )


@dataclass
class AppConfig:
    """Application settings from YAML."""
    # Logging
    log_level: str = field(
        default_factory=lambda: _get_yaml("logging", "level", "INFO")
    )


@dataclass
class Config:
    """Main configuration container."""
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    knowledge_base: KnowledgeBaseConfig = field(default_factory=KnowledgeBaseConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    app: AppConfig = field(default_factory=AppConfig)

    def setup_logging(self) -> logging.Logger:
        """Configure and return the application logger."""
        # Reset existing handlers to ensure clean configuration
        root = logging.getLogger()
        if root.handlers:
            for handler in list(root.handlers):
                root.removeHandler(handler)

        logging.basicConfig(
            level=getattr(logging, self.app.log_level.upper()),
            format="%(asctime)s - %(name)s - %(levelname)s%(resource_info)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Add filter to the handler created by basicConfig
        for handler in logging.getLogger().handlers:
            handler.addFilter(ResourceLogFilter())

        return logging.getLogger("knowledge_recall")

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of missing/invalid settings.

        Returns:
            List of validation error messages, empty if all valid.
        """
        errors = []

        if self.openai.embedding_provider == "openai" and not self.openai.api_key:
            errors.append("OPENAI_API_KEY is required when using OpenAI embeddings")

        if self.vector_store.store_type == "pgvector" and not self.vector_store.postgres_url:
            errors.append("POSTGRES_URL is required when using the pgvector store")
        elif self.vector_store.store_type not in ("memory", "chroma", "pgvector"):
            errors.append(f"Unknown vector_store.store_type: {self.vector_store.store_type}")

        if self.vector_store.metric not in ("cosine", "euclidean", "dotproduct"):
            errors.append(f"Unknown vector_store.metric: {self.vector_store.metric}")

        if self.knowledge_base.top_k <= 0:
            errors.append("knowledge_base.top_k must be positive")
        if not self.knowledge_base.categories:
            errors.append("knowledge_base.categories must not be empty")

        if self.memory.recall_top_k <= 0:
            errors.append("memory.semantic_recall.top_k must be positive")
        if self.memory.message_range < 0:
            errors.append("memory.semantic_recall.message_range must not be negative")
        if self.memory.last_messages < 0:
            errors.append("memory.last_messages must not be negative")
        if self.memory.max_fetch < self.memory.recall_top_k:
            errors.append("memory.semantic_recall.max_fetch must be at least top_k")
        if self.memory.scope not in ("resource", "thread"):
            errors.append(f"Unknown memory.semantic_recall.scope: {self.memory.scope}")

        return errors
