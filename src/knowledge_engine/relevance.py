"""Relevance engine: rank knowledge items against a query and intent.

Scoring is a weighted composite, each term bounded to [0, 1] first::

    score = 0.8 * semantic + 0.1 * category + 0.1 * tag

Semantic similarity is the only ranking path. When embedding fails the
engine raises; it never degrades to keyword matching.
"""

import logging
import re
import time
from typing import Optional

from pydantic import BaseModel, Field

from .exceptions import (
    EmbeddingError,
    KnowledgeSearchError,
    NoRelevantKnowledgeError,
)
from .gateway import EmbeddingGateway
from .items import (
    KnowledgeCategory,
    KnowledgeItem,
    RelevanceResult,
    SearchRequest,
    SearchResponse,
)
from .vectors import cosine_similarity

logger = logging.getLogger(__name__)

INTENT_CATEGORY_MAP: dict[str, list[KnowledgeCategory]] = {
    "faq_pricing": [KnowledgeCategory.PRICING],
    "faq_features": [KnowledgeCategory.PRODUCT_INFO],
    "faq_general": [KnowledgeCategory.GENERAL, KnowledgeCategory.FAQ],
    "support_request": [KnowledgeCategory.SUPPORT],
    "sales_inquiry": [KnowledgeCategory.PRODUCT_INFO, KnowledgeCategory.PRICING],
    "demo_request": [KnowledgeCategory.PRODUCT_INFO],
    "booking_request": [KnowledgeCategory.GENERAL],
}

_QUERY_WORD = re.compile(r"[^\w\s]")


class ScoringWeights(BaseModel):
    """Weights and baselines for the composite relevance score."""

    semantic: float = Field(default=0.8, ge=0.0, le=1.0)
    category: float = Field(default=0.1, ge=0.0, le=1.0)
    tag: float = Field(default=0.1, ge=0.0, le=1.0)
    off_category_baseline: float = Field(default=0.3, ge=0.0, le=1.0)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def item_embedding_text(item: KnowledgeItem) -> str:
    """Text embedded for an item: title, content, tags and category label.

    Tags and category are included so they act as semantic anchors.
    """
    parts = [item.title, item.content]
    if item.tags:
        parts.append(" ".join(item.tags))
    parts.append(item.category.value.replace("_", " "))
    return "\n".join(part for part in parts if part)


def semantic_similarity(query_embedding: list[float], item_embedding: list[float]) -> float:
    """Cosine similarity bounded to [0, 1]."""
    return _clamp(cosine_similarity(query_embedding, item_embedding))


def category_affinity(
    intent: Optional[str],
    category: KnowledgeCategory,
    baseline: float = 0.3,
) -> float:
    """1.0 when the intent maps to the item's category, otherwise ``baseline``."""
    if intent and category in INTENT_CATEGORY_MAP.get(intent, []):
        return 1.0
    return baseline


def _query_words(query: str) -> list[str]:
    return [word for word in _QUERY_WORD.sub(" ", query.lower()).split() if len(word) > 2]


def tag_overlap(query: str, tags: list[str]) -> float:
    """Fraction of tags that occur in the query or contain a query word."""
    normalized = {tag.strip().lower() for tag in tags if tag and tag.strip()}
    if not normalized:
        return 0.0

    lowered = query.lower()
    words = _query_words(query)
    matching = [
        tag for tag in normalized
        if tag in lowered or any(word in tag for word in words)
    ]
    return len(matching) / len(normalized)


def compose_score(
    semantic: float,
    category: float,
    tag: float,
    weights: Optional[ScoringWeights] = None,
) -> float:
    weights = weights or ScoringWeights()
    score = (
        weights.semantic * _clamp(semantic)
        + weights.category * _clamp(category)
        + weights.tag * _clamp(tag)
    )
    return _clamp(score)


def filter_by_category(
    items: list[KnowledgeItem],
    category: KnowledgeCategory,
    limit: Optional[int] = None,
) -> list[KnowledgeItem]:
    """Items of one category, in candidate order."""
    matches = [item for item in items if item.category == category]
    return matches[:limit] if limit is not None else matches


def filter_by_tags(
    items: list[KnowledgeItem],
    tags: list[str],
    limit: Optional[int] = None,
) -> list[KnowledgeItem]:
    """Items carrying at least one of the given tags (case-insensitive)."""
    wanted = {tag.strip().lower() for tag in tags if tag.strip()}
    matches = [
        item for item in items
        if wanted.intersection(tag.lower() for tag in item.tags)
    ]
    return matches[:limit] if limit is not None else matches


class RelevanceEngine:
    """Embedding-based relevance ranking over a candidate set.

    The engine is stateless apart from the injected gateway, whose cache
    holds the corpus vectors. Ranking is deterministic for a fixed corpus,
    query and embedding snapshot: ties keep candidate order.

    Example:
        ```python
        engine = RelevanceEngine(EmbeddingGateway(HashingEmbedding()))
        response = await engine.search_knowledge(
            SearchRequest(user_query="what is your pricing", intent="faq_pricing"),
            items,
        )
        ```
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        weights: Optional[ScoringWeights] = None,
        similar_content_min_score: float = 0.6,
    ):
        """Initialize the relevance engine.

        Args:
            gateway: Embedding gateway for query and item vectors
            weights: Composite score weights
            similar_content_min_score: Default threshold for ``find_similar_content``
        """
        self.gateway = gateway
        self.weights = weights or ScoringWeights()
        self.similar_content_min_score = similar_content_min_score

    async def precompute(self, items: list[KnowledgeItem]) -> int:
        """Embed the corpus ahead of queries.

        Returns:
            Number of items with a cached vector
        """
        eligible = self._eligible(items)
        if eligible:
            await self.gateway.embed_batch([item_embedding_text(item) for item in eligible])
        return len(eligible)

    async def rank(
        self,
        query: str,
        items: list[KnowledgeItem],
        intent: Optional[str] = None,
    ) -> list[RelevanceResult]:
        """Score every eligible candidate and sort by descending score.

        Args:
            query: User query
            items: Candidate items
            intent: Intent label from the upstream classifier

        Returns:
            All eligible candidates, best first; ties keep candidate order
        """
        eligible = self._eligible(items)
        if not eligible:
            return []

        query_embedding = await self.gateway.embed(query)
        item_embeddings = await self.gateway.embed_batch(
            [item_embedding_text(item) for item in eligible]
        )

        results = []
        for item, embedding in zip(eligible, item_embeddings):
            semantic = semantic_similarity(query_embedding, embedding)
            category = category_affinity(intent, item.category, self.weights.off_category_baseline)
            tag = tag_overlap(query, item.tags)
            results.append(RelevanceResult(
                item=item,
                score=compose_score(semantic, category, tag, self.weights),
                semantic_score=semantic,
                category_score=category,
                tag_score=tag,
            ))

        # list.sort is stable
        results.sort(key=lambda r: r.score, reverse=True)
        return results

    async def search_knowledge(
        self,
        request: SearchRequest,
        items: list[KnowledgeItem],
    ) -> SearchResponse:
        """Return the top items scoring at least ``min_relevance_score``.

        An empty candidate set yields an empty response, not an error.

        Raises:
            EmbeddingError: If the query or item embedding fails
            KnowledgeSearchError: On any other failure in the search path
        """
        start = time.perf_counter()
        try:
            candidates = self._apply_filters(request, items)
            ranked = await self.rank(request.user_query, candidates, request.intent)
        except (EmbeddingError, NoRelevantKnowledgeError):
            raise
        except Exception as e:
            logger.error(f"Knowledge search failed: {e}")
            raise KnowledgeSearchError(request.user_query, str(e)) from e

        selected = [
            result.to_item()
            for result in ranked
            if result.score >= request.min_relevance_score
        ][: request.max_results]

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Knowledge search returned {len(selected)} of {len(candidates)} candidates "
            f"in {elapsed_ms:.1f}ms"
        )

        return SearchResponse(
            items=selected,
            total_found=len(selected),
            search_query=request.user_query,
            search_time_ms=elapsed_ms,
        )

    async def search_required(
        self,
        request: SearchRequest,
        items: list[KnowledgeItem],
    ) -> SearchResponse:
        """Like ``search_knowledge`` but an empty result is an error.

        Raises:
            NoRelevantKnowledgeError: If no item meets the threshold
        """
        response = await self.search_knowledge(request, items)
        if not response.items:
            raise NoRelevantKnowledgeError(request.user_query, request.min_relevance_score)
        return response

    async def find_similar_content(
        self,
        query: str,
        items: list[KnowledgeItem],
        exclude_ids: Optional[list[str]] = None,
        limit: int = 3,
        min_score: Optional[float] = None,
    ) -> list[KnowledgeItem]:
        """Pure semantic lookup for related content.

        Args:
            query: Text to compare against
            items: Candidate items
            exclude_ids: Item ids to leave out (e.g. ones already shown)
            limit: Maximum results
            min_score: Minimum cosine similarity (default 0.6)

        Returns:
            Items with ``relevance_score`` set to their semantic similarity
        """
        threshold = self.similar_content_min_score if min_score is None else min_score
        excluded = set(exclude_ids or [])
        candidates = [item for item in self._eligible(items) if item.id not in excluded]
        if not candidates:
            return []

        query_embedding = await self.gateway.embed(query)
        item_embeddings = await self.gateway.embed_batch(
            [item_embedding_text(item) for item in candidates]
        )

        scored = []
        for item, embedding in zip(candidates, item_embeddings):
            similarity = semantic_similarity(query_embedding, embedding)
            if similarity >= threshold:
                scored.append(item.with_score(similarity))

        scored.sort(key=lambda item: item.relevance_score, reverse=True)
        return scored[:limit]

    @staticmethod
    def _apply_filters(request: SearchRequest, items: list[KnowledgeItem]) -> list[KnowledgeItem]:
        candidates = items
        if request.categories:
            allowed = set(request.categories)
            candidates = [item for item in candidates if item.category in allowed]
        if request.sources:
            sources = set(request.sources)
            candidates = [item for item in candidates if item.source in sources]
        return candidates

    @staticmethod
    def _eligible(items: list[KnowledgeItem]) -> list[KnowledgeItem]:
        eligible = []
        for item in items:
            if not item.content or not item.content.strip():
                logger.warning(f"Excluding knowledge item {item.id} with empty content from scoring")
                continue
            eligible.append(item)
        return eligible
