"""Ingestion and search pipeline over a knowledge repository."""

from typing import Callable, Optional

from pydantic import BaseModel, Field

from .analytics import HealthReport, assess_health
from .base import BaseKnowledgeRepository
from .converter import (
    ConversionResult,
    ConversionWarning,
    CrawledPage,
    KnowledgeBaseContent,
    KnowledgeConverter,
)
from .exceptions import EmbeddingError
from .gateway import EmbeddingGateway
from .items import (
    KnowledgeItem,
    SearchRequest,
    SearchResponse,
    SourceType,
    StoredKnowledgeItem,
)
from .relevance import RelevanceEngine, item_embedding_text
from .similarity import ItemCluster, SimilarityPair, cluster_by_similarity, find_near_duplicates
from .utils.config import EngineConfig
from .utils.logging import get_logger, set_log_level
from .validation import ItemValidationError, validate_items

logger = get_logger(__name__)

# Sources owned by the knowledge base snapshot; a new snapshot replaces them all
AUTHORED_SOURCE_TYPES = frozenset({
    SourceType.FAQ,
    SourceType.COMPANY_INFO,
    SourceType.PRODUCT_CATALOG,
    SourceType.SUPPORT_DOCS,
    SourceType.COMPLIANCE,
})


class IngestionReport(BaseModel):
    """Outcome of one ingestion run."""

    received: int = 0
    stored: int = 0
    unchanged: int = 0
    deleted: int = 0
    invalid: list[ItemValidationError] = Field(default_factory=list)
    warnings: list[ConversionWarning] = Field(default_factory=list)


class KnowledgePipeline:
    """Convert, embed, store and search one chatbot configuration's corpus.

    Items are content-addressed: an item whose ``(id, content_hash)`` is
    already stored is not embedded again. Knowledge base snapshots and
    re-crawled pages replace their earlier version: stale records are removed
    only after the new version has been embedded and stored.

    Example:
        ```python
        config = load_config()
        pipeline = KnowledgePipeline.from_config(
            config, MemoryKnowledgeRepository(), organization_id="org-1", config_id="bot-1"
        )

        await pipeline.ingest_knowledge_base(knowledge_base)
        response = await pipeline.search(
            SearchRequest(user_query="How much does it cost?", intent="faq_pricing")
        )
        ```
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        repository: BaseKnowledgeRepository,
        organization_id: str,
        config_id: str,
        converter: Optional[KnowledgeConverter] = None,
        engine: Optional[RelevanceEngine] = None,
        config: Optional[EngineConfig] = None,
    ):
        """Initialize the pipeline.

        Args:
            gateway: Embedding gateway shared by ingestion and search
            repository: Storage for items and their embeddings
            organization_id: Owning organization
            config_id: Chatbot configuration within the organization
            converter: Source converter (default: KnowledgeConverter)
            engine: Relevance engine (default: built from ``gateway``)
            config: Engine configuration (default: EngineConfig())
        """
        self.config = config or EngineConfig()
        self.gateway = gateway
        self.repository = repository
        self.organization_id = organization_id
        self.config_id = config_id
        self.converter = converter or KnowledgeConverter(chunker=self.config.create_chunker())
        self.engine = engine or self.config.create_engine(gateway)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        repository: BaseKnowledgeRepository,
        organization_id: str,
        config_id: str,
    ) -> "KnowledgePipeline":
        """Build a pipeline with the configured embedding provider and log level."""
        if config.log_level:
            set_log_level(config.log_level)
        return cls(
            gateway=config.create_gateway(),
            repository=repository,
            organization_id=organization_id,
            config_id=config_id,
            config=config,
        )

    async def _prepare(self, items: list[KnowledgeItem]) -> tuple[IngestionReport, list[StoredKnowledgeItem]]:
        """Validate items and embed the ones not already stored.

        Nothing is written to the repository here, so a failure leaves the
        stored corpus untouched.
        """
        report = IngestionReport(received=len(items))

        validation = validate_items(items)
        report.invalid = validation.errors

        pending = []
        for item in validation.valid_items:
            exists = await self.repository.knowledge_item_exists(
                self.organization_id, self.config_id, item.id, item.content_hash
            )
            if exists:
                report.unchanged += 1
                logger.debug(f"Knowledge item {item.id} is unchanged, skipping")
            else:
                pending.append(item)

        if not pending:
            return report, []

        try:
            embeddings = await self.gateway.embed_batch([item_embedding_text(item) for item in pending])
        except EmbeddingError as e:
            logger.error(f"Ingestion aborted, embedding {len(pending)} items failed: {e.message}")
            raise

        records = [StoredKnowledgeItem.from_item(item, embedding) for item, embedding in zip(pending, embeddings)]
        return report, records

    async def _store(self, report: IngestionReport, records: list[StoredKnowledgeItem]) -> None:
        if records:
            await self.repository.store_knowledge_items(self.organization_id, self.config_id, records)
        report.stored = len(records)

    def _log_report(self, report: IngestionReport) -> None:
        logger.info(
            f"Ingested {report.received} items for {self.organization_id}/{self.config_id}: "
            f"{report.stored} stored, {report.unchanged} unchanged, "
            f"{report.deleted} deleted, {len(report.invalid)} invalid"
        )

    async def ingest(self, items: list[KnowledgeItem]) -> IngestionReport:
        """Validate, embed and store items.

        Invalid items are reported and skipped; unchanged items are skipped
        without embedding.

        Raises:
            EmbeddingError: If embedding the new items fails (nothing is stored)
        """
        report, records = await self._prepare(items)
        await self._store(report, records)
        self._log_report(report)
        return report

    async def ingest_conversion(self, result: ConversionResult) -> IngestionReport:
        report = await self.ingest(result.items)
        report.warnings = list(result.warnings)
        return report

    async def replace_items(
        self,
        items: list[KnowledgeItem],
        is_replaced: Callable[[StoredKnowledgeItem], bool],
    ) -> IngestionReport:
        """Ingest ``items`` as the new version of a slice of the corpus.

        Stored records selected by ``is_replaced`` that are not among the new
        valid items are deleted. Embedding happens before any write, so an
        embedding failure leaves the previous version in place.

        Args:
            items: Complete new version of the slice
            is_replaced: Selects the stored records belonging to the slice

        Returns:
            Ingestion report, ``deleted`` counting removed stale records

        Raises:
            EmbeddingError: If embedding fails (the repository is not modified)
        """
        report, records = await self._prepare(items)
        await self._store(report, records)

        # Ids of the new version, including unchanged items that were not re-stored
        current = {item.id for item in items} - {error.item_id for error in report.invalid}
        stored = await self.repository.list_knowledge_items(self.organization_id, self.config_id)
        stale = [
            record.knowledge_item_id for record in stored
            if is_replaced(record) and record.knowledge_item_id not in current
        ]
        if stale:
            report.deleted = await self.repository.delete_knowledge_items(
                self.organization_id, self.config_id, stale
            )

        self._log_report(report)
        return report

    async def ingest_knowledge_base(
        self,
        knowledge_base: KnowledgeBaseContent,
        company_name: Optional[str] = None,
        replace: bool = True,
    ) -> IngestionReport:
        """Convert and ingest an authored knowledge base snapshot.

        Args:
            knowledge_base: Complete authored knowledge base
            company_name: Context prefix for chunks (extracted when not given)
            replace: Remove stored authored items missing from the snapshot,
                including chunks of edited sections and deleted FAQs

        Returns:
            Ingestion report
        """
        result = self.converter.convert_knowledge_base(knowledge_base, company_name=company_name)
        if not replace:
            return await self.ingest_conversion(result)

        report = await self.replace_items(
            result.items,
            lambda record: record.source_type in AUTHORED_SOURCE_TYPES,
        )
        report.warnings = list(result.warnings)
        return report

    async def ingest_crawled_pages(
        self,
        pages: list[CrawledPage],
        context: Optional[str] = None,
        replace: bool = True,
    ) -> IngestionReport:
        """Convert and ingest crawled pages.

        Args:
            pages: Crawled page bodies
            context: Company/site identifier prefixed to each chunk
            replace: Remove previously stored items of each crawled URL that
                the new crawl no longer produces

        Returns:
            Ingestion report, ``deleted`` counting replaced items
        """
        result = self.converter.convert_crawled_pages(pages, context=context)
        if not replace:
            return await self.ingest_conversion(result)

        urls = {page.url for page in pages}
        report = await self.replace_items(
            result.items,
            lambda record: record.source_type == SourceType.WEBSITE_CRAWLED and record.source_url in urls,
        )
        report.warnings = list(result.warnings)
        return report

    async def delete_source(self, source_type: SourceType, source_url: Optional[str] = None) -> int:
        """Delete stored items of a source type, optionally limited to one URL."""
        count = await self.repository.delete_knowledge_items_by_source(
            self.organization_id, self.config_id, source_type.value, source_url
        )
        logger.info(f"Deleted {count} {source_type.value} items for {self.organization_id}/{self.config_id}")
        return count

    async def load_items(self) -> list[KnowledgeItem]:
        """Load the stored corpus and prime the gateway with its embeddings."""
        stored = await self.repository.list_knowledge_items(self.organization_id, self.config_id)

        items = []
        for record in stored:
            item = record.to_item()
            self.gateway.seed(item_embedding_text(item), record.embedding)
            items.append(item)
        return items

    def _request(self, query: str, intent: Optional[str]) -> SearchRequest:
        return SearchRequest(
            user_query=query,
            intent=intent,
            max_results=self.config.relevance.max_results,
            min_relevance_score=self.config.relevance.min_relevance_score,
        )

    async def search(
        self,
        request: SearchRequest | str,
        intent: Optional[str] = None,
    ) -> SearchResponse:
        """Search the stored corpus.

        Args:
            request: Search request, or a bare query using configured defaults
            intent: Intent label when ``request`` is a bare query

        Returns:
            Search response (empty when nothing qualifies)
        """
        if isinstance(request, str):
            request = self._request(request, intent)
        items = await self.load_items()
        return await self.engine.search_knowledge(request, items)

    async def search_required(
        self,
        request: SearchRequest | str,
        intent: Optional[str] = None,
    ) -> SearchResponse:
        """Search the stored corpus; raises NoRelevantKnowledgeError when empty."""
        if isinstance(request, str):
            request = self._request(request, intent)
        items = await self.load_items()
        return await self.engine.search_required(request, items)

    async def health_report(self) -> HealthReport:
        """Health analytics over the stored corpus."""
        stored = await self.repository.list_knowledge_items(self.organization_id, self.config_id)
        return assess_health(
            [record.to_item() for record in stored],
            stale_after_days=self.config.analytics.stale_after_days,
            near_duplicate_threshold=self.config.deduplication.near_duplicate_threshold,
            weights=self.config.analytics.health_weights,
        )

    async def near_duplicates(self) -> list[SimilarityPair]:
        """Near-duplicate pairs in the stored corpus at the configured threshold."""
        stored = await self.repository.list_knowledge_items(self.organization_id, self.config_id)
        return find_near_duplicates(
            [record.to_item() for record in stored],
            threshold=self.config.deduplication.near_duplicate_threshold,
        )

    async def clusters(self) -> list[ItemCluster]:
        """Similarity clusters of the stored corpus at the configured threshold."""
        stored = await self.repository.list_knowledge_items(self.organization_id, self.config_id)
        return cluster_by_similarity(
            [record.to_item() for record in stored],
            threshold=self.config.deduplication.cluster_threshold,
        )
