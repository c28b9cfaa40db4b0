"""
Error types shared by the retrieval and recall components.

Every error carries a plain-language suggestion so the tool boundary can
turn it into a structured failure without leaking a stack trace.
"""


class KnowledgeRecallError(Exception):
    """Base class for all knowledge_recall errors."""

    suggestion: str = "Try again later or check the service logs."

    def __init__(self, message: str, suggestion: str | None = None):
        super().__init__(message)
        if suggestion is not None:
            self.suggestion = suggestion


class ConfigurationMissing(KnowledgeRecallError):
    """A credential or endpoint is absent. Raised before any network call."""

    suggestion = "Set the missing value in .env or config.yaml and restart."


class EmbeddingUnavailable(ConfigurationMissing):
    """The embedding provider cannot be used (e.g. no API key)."""

    suggestion = "Configure OPENAI_API_KEY to enable embeddings."


class EmbeddingProviderError(KnowledgeRecallError):
    """The embedding provider rejected or failed the request."""

    suggestion = "The embedding provider may be rate limiting; retry with backoff."


class VectorStoreError(KnowledgeRecallError):
    """The vector index service failed (missing index, bad dimension, outage)."""

    suggestion = "Check that the index exists and the vector service is reachable."


class IndexAlreadyExists(VectorStoreError):
    """create_index was called for a name that already exists."""

    suggestion = "The index already exists; it can be used as is."


class ContentResolutionGap(KnowledgeRecallError):
    """
    A vector pointer references a message with no content row.

    Recall records these and skips the item; they are never raised out
    of a recall.
    """

    suggestion = "Rebuild the messages index from the content store."

    def __init__(self, message_id: str):
        super().__init__(f"No content found for message {message_id}")
        self.message_id = message_id


class InvalidArgument(KnowledgeRecallError, ValueError):
    """Input was rejected before any I/O (empty text, non-positive top_k, ...)."""

    suggestion = "Check the arguments and call again."
