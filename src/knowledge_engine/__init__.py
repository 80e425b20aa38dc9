"""Knowledge retrieval engine for chat assistants.

This package turns organizational content into searchable knowledge items
and ranks them against a user query and intent:
- Content chunking with structural tag extraction
- Conversion of FAQs, authored text sources and crawled pages
- Cached embedding gateway over pluggable providers (OpenAI, local, hashing, fake)
- Embedding-based relevance ranking with category and tag signals
- Exact and near-duplicate detection and clustering
- Corpus quality and health analytics
- Repositories (memory, ChromaDB) and an ingestion/search pipeline

Example:
    ```python
    from knowledge_engine import (
        EmbeddingGateway,
        KnowledgeConverter,
        OpenAIEmbedding,
        RelevanceEngine,
        SearchRequest,
    )

    converter = KnowledgeConverter()
    items = converter.convert_faqs(faqs).items

    engine = RelevanceEngine(EmbeddingGateway(OpenAIEmbedding()))
    response = await engine.search_knowledge(
        SearchRequest(user_query="What does the pro plan cost?", intent="faq_pricing"),
        items,
    )
    ```

With storage:
    ```python
    from knowledge_engine import KnowledgePipeline, MemoryKnowledgeRepository, load_config

    pipeline = KnowledgePipeline.from_config(
        load_config(), MemoryKnowledgeRepository(), organization_id="org-1", config_id="bot-1"
    )
    await pipeline.ingest_knowledge_base(knowledge_base)
    response = await pipeline.search("What does the pro plan cost?", intent="faq_pricing")
    ```
"""

# Data structures
from .items import (
    ContentChunk,
    KnowledgeCategory,
    KnowledgeItem,
    RelevanceResult,
    SearchRequest,
    SearchResponse,
    SimilarityMatch,
    SourceType,
    StoredKnowledgeItem,
)

# Base classes
from .base import (
    BaseChunker,
    BaseEmbedding,
    BaseKnowledgeRepository,
)

# Exceptions
from .exceptions import (
    EmbeddingError,
    EmbeddingTimeoutError,
    KnowledgeEngineError,
    KnowledgeSearchError,
    NoRelevantKnowledgeError,
)

# Chunking and tags
from .chunking import ChunkingReport, ContentChunker
from .tags import TagExtractor, faq_category_tags, tag_recommendations

# Conversion
from .converter import (
    ConversionResult,
    ConversionWarning,
    CrawledPage,
    FaqEntry,
    KnowledgeBaseContent,
    KnowledgeConverter,
    extract_company_name,
    map_faq_category,
)
from .hashing import content_hash, make_item_id, normalize_for_comparison

# Embedding providers
from .embeddings import (
    FakeEmbedding,
    HashingEmbedding,
    LocalEmbedding,
    OpenAIEmbedding,
)
from .gateway import EmbeddingGateway, GatewayStats
from .vectors import cosine_similarity, top_k_matches

# Relevance
from .relevance import (
    INTENT_CATEGORY_MAP,
    RelevanceEngine,
    ScoringWeights,
    category_affinity,
    compose_score,
    filter_by_category,
    filter_by_tags,
    item_embedding_text,
    semantic_similarity,
    tag_overlap,
)

# Similarity and deduplication
from .similarity import (
    DuplicateGroup,
    ItemCluster,
    SimilarityPair,
    cluster_by_similarity,
    cluster_by_tags,
    combined_similarity,
    duplicate_rate,
    find_exact_duplicates,
    find_most_similar_to,
    find_near_duplicates,
)

# Analytics and validation
from .analytics import HealthReport, HealthWeights, Recommendation, assess_health
from .validation import ValidationReport, validate_item, validate_items

# Storage and pipeline
from .repository import ChromaKnowledgeRepository, MemoryKnowledgeRepository
from .pipeline import IngestionReport, KnowledgePipeline
from .utils.config import EngineConfig, load_config

__version__ = "0.1.0"
__all__ = [
    # Data structures
    "ContentChunk",
    "KnowledgeCategory",
    "KnowledgeItem",
    "RelevanceResult",
    "SearchRequest",
    "SearchResponse",
    "SimilarityMatch",
    "SourceType",
    "StoredKnowledgeItem",
    # Base classes
    "BaseChunker",
    "BaseEmbedding",
    "BaseKnowledgeRepository",
    # Exceptions
    "EmbeddingError",
    "EmbeddingTimeoutError",
    "KnowledgeEngineError",
    "KnowledgeSearchError",
    "NoRelevantKnowledgeError",
    # Chunking and tags
    "ChunkingReport",
    "ContentChunker",
    "TagExtractor",
    "faq_category_tags",
    "tag_recommendations",
    # Conversion
    "ConversionResult",
    "ConversionWarning",
    "CrawledPage",
    "FaqEntry",
    "KnowledgeBaseContent",
    "KnowledgeConverter",
    "extract_company_name",
    "map_faq_category",
    "content_hash",
    "make_item_id",
    "normalize_for_comparison",
    # Embeddings
    "FakeEmbedding",
    "HashingEmbedding",
    "LocalEmbedding",
    "OpenAIEmbedding",
    "EmbeddingGateway",
    "GatewayStats",
    "cosine_similarity",
    "top_k_matches",
    # Relevance
    "INTENT_CATEGORY_MAP",
    "RelevanceEngine",
    "ScoringWeights",
    "category_affinity",
    "compose_score",
    "filter_by_category",
    "filter_by_tags",
    "item_embedding_text",
    "semantic_similarity",
    "tag_overlap",
    # Similarity
    "DuplicateGroup",
    "ItemCluster",
    "SimilarityPair",
    "cluster_by_similarity",
    "cluster_by_tags",
    "combined_similarity",
    "duplicate_rate",
    "find_exact_duplicates",
    "find_most_similar_to",
    "find_near_duplicates",
    # Analytics and validation
    "HealthReport",
    "HealthWeights",
    "Recommendation",
    "assess_health",
    "ValidationReport",
    "validate_item",
    "validate_items",
    # Storage and pipeline
    "ChromaKnowledgeRepository",
    "MemoryKnowledgeRepository",
    "IngestionReport",
    "KnowledgePipeline",
    "EngineConfig",
    "load_config",
]
