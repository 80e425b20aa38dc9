"""Knowledge item, chunk and search data structures."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .hashing import content_hash


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class KnowledgeCategory(str, Enum):
    """Closed set of knowledge categories."""

    GENERAL = "general"
    FAQ = "faq"
    PRODUCT_INFO = "product_info"
    PRICING = "pricing"
    SUPPORT = "support"


class SourceType(str, Enum):
    """Kinds of raw sources the converter understands."""

    FAQ = "faq"
    COMPANY_INFO = "company_info"
    PRODUCT_CATALOG = "product_catalog"
    SUPPORT_DOCS = "support_docs"
    COMPLIANCE = "compliance_guidelines"
    WEBSITE_CRAWLED = "website_crawled"


class KnowledgeItem(BaseModel):
    """The unit of retrieval.

    Items are immutable: updates produce a replacement record with a new
    ``last_updated``. Field values are not range-checked here so that batch
    validation can report every problem per item (see ``validation``).

    Attributes:
        id: Identifier, unique within an organization's corpus
        title: Display title
        content: Full text body (the unit embedded and scored)
        category: Knowledge category
        tags: Secondary relevance signal, order irrelevant
        relevance_score: Last computed score for one query
        source: Provenance string ("faq", "website_crawled", a URL)
        source_type: Kind of raw source the item was converted from
        source_url: Optional URL for crawled content
        last_updated: Drives freshness analytics
        metadata: Additional metadata
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    content: str
    category: KnowledgeCategory = KnowledgeCategory.GENERAL
    tags: list[str] = Field(default_factory=list)
    relevance_score: float = 0.0
    source: str = "unknown"
    source_type: Optional[SourceType] = None
    source_url: Optional[str] = None
    last_updated: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def content_hash(self) -> str:
        return content_hash(self.title, self.content, self.source)

    def with_score(self, score: float) -> "KnowledgeItem":
        """Return a copy annotated with a relevance score."""
        return self.model_copy(update={"relevance_score": score})

    def __repr__(self) -> str:
        title_preview = self.title[:40] + "..." if len(self.title) > 40 else self.title
        return f"KnowledgeItem(id={self.id!r}, category={self.category.value!r}, title={title_preview!r})"


class ContentChunk(BaseModel):
    """A slice of a longer document produced during conversion.

    Attributes:
        title: Header text or a derived title
        content: Chunk body without the context prefix
        tags: Structurally derived tags
        context: Company/source identifier prepended for embedding
        chunk_index: Position in the source document
        strategy: Chunking strategy that produced the chunk
    """

    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    context: Optional[str] = None
    chunk_index: int = 0
    strategy: str = "single"

    @property
    def text(self) -> str:
        """Content with the context prefix, self-describing in isolation."""
        if self.context:
            return f"[{self.context}] {self.content}"
        return self.content

    def __repr__(self) -> str:
        content_preview = self.content[:30] + "..." if len(self.content) > 30 else self.content
        return f"ContentChunk(title={self.title!r}, content={content_preview!r})"


class SimilarityMatch(BaseModel):
    """A candidate position paired with its similarity to a query vector."""

    index: int
    score: float
    id: Optional[str] = None


class RelevanceResult(BaseModel):
    """A knowledge item scored against one specific query.

    The canonical item is never modified; ``to_item`` returns a copy carrying
    the score.
    """

    item: KnowledgeItem
    score: float
    semantic_score: float = 0.0
    category_score: float = 0.0
    tag_score: float = 0.0

    def to_item(self) -> KnowledgeItem:
        return self.item.with_score(self.score)

    def __repr__(self) -> str:
        return f"RelevanceResult(item_id={self.item.id!r}, score={self.score:.4f})"


class SearchRequest(BaseModel):
    """Knowledge search parameters."""

    user_query: str
    intent: Optional[str] = None
    max_results: int = Field(default=5, ge=1)
    min_relevance_score: float = Field(default=0.3, ge=0.0, le=1.0)
    categories: Optional[list[KnowledgeCategory]] = None
    sources: Optional[list[str]] = None


class SearchResponse(BaseModel):
    """Knowledge search results, with ``relevance_score`` set on every item."""

    items: list[KnowledgeItem] = Field(default_factory=list)
    total_found: int = 0
    search_query: str
    search_time_ms: float = 0.0


class StoredKnowledgeItem(BaseModel):
    """Record shape exchanged with a knowledge repository."""

    knowledge_item_id: str
    title: str
    content: str
    category: KnowledgeCategory
    tags: list[str] = Field(default_factory=list)
    source: str = "unknown"
    source_type: Optional[SourceType] = None
    source_url: Optional[str] = None
    embedding: list[float]
    content_hash: str
    last_updated: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_item(cls, item: KnowledgeItem, embedding: list[float]) -> "StoredKnowledgeItem":
        return cls(
            knowledge_item_id=item.id,
            title=item.title,
            content=item.content,
            category=item.category,
            tags=list(item.tags),
            source=item.source,
            source_type=item.source_type,
            source_url=item.source_url,
            embedding=list(embedding),
            content_hash=item.content_hash,
            last_updated=item.last_updated,
        )

    def to_item(self) -> KnowledgeItem:
        return KnowledgeItem(
            id=self.knowledge_item_id,
            title=self.title,
            content=self.content,
            category=self.category,
            tags=list(self.tags),
            source=self.source,
            source_type=self.source_type,
            source_url=self.source_url,
            last_updated=self.last_updated,
        )
