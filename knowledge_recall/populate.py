"""
Populate the knowledge index with sample articles.

Creates the index if needed, embeds the sample documents in one batch,
upserts them, waits (bounded) for them to become queryable and reports
index statistics.

Usage:
    knowledge-recall-populate
    python -m knowledge_recall.populate
"""

import asyncio
import logging
import sys
from collections import Counter
from typing import Optional

from .config import Config
from .errors import KnowledgeRecallError
from .knowledge import DocumentIndexer
from .memory import EmbeddingService, VectorStore, create_embedding_service, create_vector_store

logger = logging.getLogger("knowledge_recall.populate")

SAMPLE_DOCUMENTS = [
    {
        "title": "Introduction to Artificial Intelligence",
        "content": "Artificial Intelligence (AI) is a branch of computer science that aims to create systems capable of performing tasks that normally require human intelligence. This includes learning, reasoning, perception, natural language processing, and decision-making. Modern AI systems use machine learning and deep learning techniques to improve their performance over time.",
        "category": "technology",
        "tags": ["AI", "machine learning", "technology"],
    },
    {
        "title": "Vector Databases",
        "content": "Vector databases are specialized systems for storing and searching vector embeddings. Unlike traditional databases that use text or numeric indexes, vector databases enable searches by semantic similarity. This is fundamental for AI applications such as recommendation systems, semantic search, and retrieval-augmented generation (RAG).",
        "category": "technology",
        "tags": ["databases", "vectors", "embeddings"],
    },
    {
        "title": "Cloud Search Services",
        "content": "Cloud search services provide semantic, vector, and full-text search capabilities as a managed offering. They index large volumes of data and answer natural language queries. They are a common foundation for RAG (Retrieval Augmented Generation) systems and applications that require intelligent search.",
        "category": "technology",
        "tags": ["search", "cloud"],
    },
    {
        "title": "Embeddings and Semantic Representation",
        "content": "Embeddings are vector representations of text, images, or other data that capture their semantic meaning. Models like OpenAI's text-embedding-3-small convert text into 1536-dimensional vectors, where texts with similar meanings have vectors close together in vector space. This allows comparing the meaning of texts using cosine or Euclidean distance.",
        "category": "technology",
        "tags": ["embeddings", "NLP", "OpenAI"],
    },
    {
        "title": "RAG Architectures (Retrieval Augmented Generation)",
        "content": "RAG is an architecture that combines information retrieval with language generation. First, relevant documents are retrieved from a knowledge base using vector search, then these documents are used as context for an LLM to generate accurate and grounded responses. This reduces hallucinations and allows models to access up-to-date information.",
        "category": "technology",
        "tags": ["RAG", "LLM", "architecture"],
    },
    {
        "title": "Climate Change and Its Effects",
        "content": "Climate change is a significant alteration of global climate patterns, mainly caused by the increase of greenhouse gases in the atmosphere. Effects include rising global temperatures, melting glaciers, more frequent extreme weather events, and changes in ecosystems. Reducing carbon emissions is crucial to mitigate these effects.",
        "category": "science",
        "tags": ["climate", "environment", "sustainability"],
    },
    {
        "title": "Quantum Computing: The Future of Technology",
        "content": "Quantum computing uses principles of quantum mechanics such as superposition and entanglement to perform calculations. Unlike classical computers that use bits (0 or 1), quantum computers use qubits that can be in multiple states simultaneously. This promises to solve problems that are intractable for classical computers, such as large number factorization and molecular simulation.",
        "category": "science",
        "tags": ["quantum computing", "physics", "innovation"],
    },
    {
        "title": "Agile Methodologies in Software Development",
        "content": "Agile methodologies like Scrum and Kanban revolutionized software development by focusing on short iterations, continuous collaboration, and adaptability. Instead of planning the entire project in advance, work is done in short sprints that allow priorities to be adjusted based on feedback. This results in higher quality software better aligned with user needs.",
        "category": "business",
        "tags": ["agile", "scrum", "software development"],
    },
    {
        "title": "Digital Marketing and SEO",
        "content": "Digital marketing encompasses all promotion strategies in digital media. SEO (Search Engine Optimization) is essential to improve visibility in search engines through quality content, relevant keywords, and technical optimization. Content must be valuable to users while following SEO best practices to achieve high rankings.",
        "category": "business",
        "tags": ["marketing", "SEO", "digital"],
    },
    {
        "title": "Nutrition and Holistic Health",
        "content": "A balanced diet is essential for maintaining health. It should include a variety of fruits, vegetables, lean proteins, whole grains, and healthy fats. Proper hydration, regular exercise, and quality sleep complement a healthy diet. Avoiding processed foods and added sugars significantly contributes to long-term well-being.",
        "category": "health",
        "tags": ["nutrition", "well-being", "diet"],
    },
    {
        "title": "Supervised vs Unsupervised Machine Learning",
        "content": "In supervised learning, the model is trained with labeled data, learning to map inputs to known outputs. It is useful for classification and regression. Unsupervised learning works with unlabeled data, finding hidden patterns through clustering or dimensionality reduction. Each approach has its specific use cases depending on the problem to solve.",
        "category": "technology",
        "tags": ["machine learning", "AI", "algorithms"],
    },
    {
        "title": "TypeScript: JavaScript with Types",
        "content": "TypeScript is a superset of JavaScript that adds static typing. It helps catch errors at compile time instead of runtime, improves developer experience with intelligent autocompletion, and makes it easier to maintain large-scale code. It is especially valuable in large projects with multiple developers.",
        "category": "technology",
        "tags": ["TypeScript", "JavaScript", "programming"],
    },
]


async def populate_knowledge_base(
    config: Config,
    vector_store: Optional[VectorStore] = None,
    embedding_service: Optional[EmbeddingService] = None,
    documents: Optional[list[dict]] = None,
) -> bool:
    """
    Create the knowledge index and fill it with documents.

    Returns:
        True on success, False on configuration or service failure
    """
    documents = SAMPLE_DOCUMENTS if documents is None else documents
    index_name = config.knowledge_base.index_name

    errors = config.validate() if embedding_service is None or vector_store is None else []
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return False

    owns_store = vector_store is None
    try:
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

        indexer = DocumentIndexer(
            vector_store=vector_store,
            embedding_service=embedding_service,
            default_index=index_name,
            categories=config.knowledge_base.categories,
            metric=config.vector_store.metric,
        )

        # 1. Create index
        logger.info(f"Creating index '{index_name}'...")
        await indexer.ensure_index(index_name)
        before = (await vector_store.describe_index(index_name)).count

        # 2. Embed and insert documents
        logger.info(f"Embedding and inserting {len(documents)} documents...")
        indexed = await indexer.add_documents(documents, index_name=index_name)
        logger.info(f"Inserted {len(indexed)} documents")

        # 3. Wait for indexing
        logger.info("Waiting for indexing...")
        visible = await vector_store.wait_until_visible(
            index_name,
            expected_count=before + len(indexed),
            timeout=config.vector_store.visibility_timeout,
        )
        if not visible:
            logger.warning("Not all documents are visible yet; statistics may be incomplete")

        # 4. Report stats
        stats = await vector_store.describe_index(index_name)
        logger.info(
            f"Index '{stats.name}': {stats.count} documents, "
            f"dimension {stats.dimension}, metric {stats.metric}"
        )

        # 5. Summary by categories
        for category, count in sorted(Counter(d.category for d in indexed).items()):
            logger.info(f"  {category}: {count} documents")

        return True

    except KnowledgeRecallError as e:
        logger.error(f"Failed to populate knowledge base: {e}")
        logger.error(f"Hint: {e.suggestion}")
        return False

    finally:
        if owns_store and vector_store is not None:
            await vector_store.close()


def main():
    """Entry point for the populate script."""
    config = Config()
    config.setup_logging()

    try:
        success = asyncio.run(populate_knowledge_base(config))
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
