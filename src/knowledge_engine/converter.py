"""Conversion of raw knowledge sources into ``KnowledgeItem`` records."""

import logging
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .base import BaseChunker
from .chunking import ContentChunker
from .hashing import make_item_id
from .items import KnowledgeCategory, KnowledgeItem, SourceType, utc_now
from .tags import TagExtractor, faq_category_tags

logger = logging.getLogger(__name__)

FAQ_CATEGORY_MAP: dict[str, KnowledgeCategory] = {
    "general": KnowledgeCategory.GENERAL,
    "faq": KnowledgeCategory.FAQ,
    "pricing": KnowledgeCategory.PRICING,
    "billing": KnowledgeCategory.PRICING,
    "features": KnowledgeCategory.PRODUCT_INFO,
    "product": KnowledgeCategory.PRODUCT_INFO,
    "support": KnowledgeCategory.SUPPORT,
    "technical": KnowledgeCategory.SUPPORT,
}

_COMPANY_NAME_PATTERNS = [
    re.compile(r"^\s*(?i:welcome to|about)\s+([A-Z][\w&'-]*(?:\s+[A-Z][\w&'-]*){0,4})", re.MULTILINE),
    re.compile(r"\b([A-Z][\w&'-]*(?:\s+[A-Z][\w&'-]*){0,4})\s+(?:is|was)\s+(?:a|an|the)\b"),
    re.compile(r"\bat\s+([A-Z][\w&'-]*(?:\s+[A-Z][\w&'-]*){0,4}),?\s+we\b"),
]


class FaqEntry(BaseModel):
    """A question/answer pair authored in the chatbot configuration."""

    id: str
    question: str = ""
    answer: str = ""
    category: str = "general"
    keywords: list[str] = Field(default_factory=list)
    is_active: bool = True
    updated_at: Optional[datetime] = None


class CrawledPage(BaseModel):
    """Page body delivered by the website crawler."""

    url: str
    title: str = ""
    content: str = ""
    crawled_at: Optional[datetime] = None
    category: Optional[str] = None


class KnowledgeBaseContent(BaseModel):
    """Snapshot of an organization's authored knowledge base."""

    company_info: str = ""
    product_catalog: str = ""
    support_docs: str = ""
    compliance_guidelines: str = ""
    faqs: list[FaqEntry] = Field(default_factory=list)
    updated_at: Optional[datetime] = None


class ConversionWarning(BaseModel):
    """A record that was skipped during conversion."""

    record_id: str
    source: str
    message: str


class ConversionResult(BaseModel):
    """Items produced by a batch conversion plus skipped-record warnings."""

    items: list[KnowledgeItem] = Field(default_factory=list)
    warnings: list[ConversionWarning] = Field(default_factory=list)

    def extend(self, other: "ConversionResult") -> "ConversionResult":
        self.items.extend(other.items)
        self.warnings.extend(other.warnings)
        return self


def map_faq_category(category: Optional[str]) -> KnowledgeCategory:
    """Map an FAQ category label to a knowledge category (unknown -> general)."""
    if not category:
        return KnowledgeCategory.GENERAL
    return FAQ_CATEGORY_MAP.get(category.strip().lower(), KnowledgeCategory.GENERAL)


def parse_category(value: Optional[str]) -> Optional[KnowledgeCategory]:
    if not value:
        return None
    try:
        return KnowledgeCategory(value.strip().lower())
    except ValueError:
        return None


def extract_company_name(text: str) -> Optional[str]:
    """Best-effort company name from free text; None when nothing is found."""
    if not text:
        return None
    for pattern in _COMPANY_NAME_PATTERNS:
        match = pattern.search(text)
        if match:
            name = match.group(1).strip(" .,'")
            if 1 < len(name) <= 60:
                return name
    return None


class KnowledgeConverter:
    """Turn FAQ entries, authored text sources and crawled pages into items.

    Conversion is partial-failure tolerant: invalid records are skipped and
    reported as warnings, never raised.
    """

    TEXT_SOURCE_DEFAULTS: dict[SourceType, tuple[str, KnowledgeCategory]] = {
        SourceType.COMPANY_INFO: ("Company Information", KnowledgeCategory.GENERAL),
        SourceType.PRODUCT_CATALOG: ("Product Information", KnowledgeCategory.PRODUCT_INFO),
        SourceType.SUPPORT_DOCS: ("Support Documentation", KnowledgeCategory.SUPPORT),
        SourceType.COMPLIANCE: ("Compliance Guidelines", KnowledgeCategory.GENERAL),
    }

    def __init__(
        self,
        chunker: Optional[BaseChunker] = None,
        tag_extractor: Optional[TagExtractor] = None,
    ):
        """Initialize the converter.

        Args:
            chunker: Chunker for long-form sources (default: ContentChunker)
            tag_extractor: Tag extractor (default: TagExtractor)
        """
        self.tag_extractor = tag_extractor or TagExtractor()
        self.chunker = chunker or ContentChunker(tag_extractor=self.tag_extractor)

    def convert_faqs(self, faqs: list[FaqEntry]) -> ConversionResult:
        """Convert FAQ entries; inactive entries are skipped silently."""
        result = ConversionResult()

        for faq in faqs:
            if not faq.is_active:
                logger.debug(f"Skipping inactive FAQ {faq.id}")
                continue
            if not faq.question.strip() or not faq.answer.strip():
                self._warn(result, faq.id or "<missing id>", SourceType.FAQ.value, "FAQ is missing a question or answer")
                continue

            tags = [t.strip().lower() for t in faq.keywords if t.strip()] or faq_category_tags(faq.category)
            tags.extend(self.tag_extractor.context_tags("", source=SourceType.FAQ.value))

            result.items.append(KnowledgeItem(
                id=faq.id or make_item_id(SourceType.FAQ.value, faq.question, faq.answer),
                title=faq.question.strip(),
                content=faq.answer.strip(),
                category=map_faq_category(faq.category),
                tags=self.tag_extractor.filter_tags(tags),
                source=SourceType.FAQ.value,
                source_type=SourceType.FAQ,
                last_updated=faq.updated_at or utc_now(),
                metadata={"faq_category": faq.category},
            ))

        logger.debug(f"Converted {len(result.items)} FAQs ({len(result.warnings)} skipped)")
        return result

    def convert_text_source(
        self,
        content: str,
        source_type: SourceType,
        title: Optional[str] = None,
        category: Optional[KnowledgeCategory] = None,
        context: Optional[str] = None,
        updated_at: Optional[datetime] = None,
    ) -> ConversionResult:
        """Chunk an authored text field into items.

        Empty content produces no items and no warning.
        """
        result = ConversionResult()
        if not content or not content.strip():
            return result

        default_title, default_category = self.TEXT_SOURCE_DEFAULTS.get(
            source_type, ("General Information", KnowledgeCategory.GENERAL)
        )
        category = category or default_category

        for chunk in self.chunker.chunk(content, title=title or default_title, context=context):
            text = chunk.text
            tags = chunk.tags + self.tag_extractor.context_tags("", category=category.value)
            result.items.append(KnowledgeItem(
                id=make_item_id(source_type.value, chunk.title, text),
                title=chunk.title,
                content=text,
                category=category,
                tags=self.tag_extractor.filter_tags(tags),
                source=source_type.value,
                source_type=source_type,
                last_updated=updated_at or utc_now(),
                metadata={"chunk_index": chunk.chunk_index, "chunker": chunk.strategy},
            ))

        return result

    def convert_crawled_pages(
        self,
        pages: list[CrawledPage],
        context: Optional[str] = None,
    ) -> ConversionResult:
        """Convert crawled page bodies; pages without content are skipped."""
        result = ConversionResult()

        for page in pages:
            if not page.content or not page.content.strip():
                self._warn(result, page.url, SourceType.WEBSITE_CRAWLED.value, "Crawled page has no content")
                continue

            category = parse_category(page.category) or KnowledgeCategory.GENERAL
            page_title = page.title.strip() or page.url
            chunks = self.chunker.chunk(page.content, title=page_title, context=context or page_title)

            for chunk in chunks:
                text = chunk.text
                tags = chunk.tags + self.tag_extractor.context_tags(
                    "", category=category.value, source=SourceType.WEBSITE_CRAWLED.value
                )
                result.items.append(KnowledgeItem(
                    id=make_item_id(SourceType.WEBSITE_CRAWLED.value, page.url, text),
                    title=chunk.title,
                    content=text,
                    category=category,
                    tags=self.tag_extractor.filter_tags(tags),
                    source=page.url,
                    source_type=SourceType.WEBSITE_CRAWLED,
                    source_url=page.url,
                    last_updated=page.crawled_at or utc_now(),
                    metadata={"chunk_index": chunk.chunk_index, "chunker": chunk.strategy},
                ))

        logger.debug(f"Converted {len(pages)} crawled pages into {len(result.items)} items")
        return result

    def convert_knowledge_base(
        self,
        knowledge_base: KnowledgeBaseContent,
        company_name: Optional[str] = None,
    ) -> ConversionResult:
        """Convert every section of a knowledge base snapshot.

        Args:
            knowledge_base: Authored knowledge base
            company_name: Context prefix for chunks; extracted from company
                info when not given

        Returns:
            Combined conversion result
        """
        context = company_name or extract_company_name(knowledge_base.company_info)
        if context is None:
            logger.debug("No company name found; chunks will carry no context prefix")

        result = ConversionResult()
        sections = [
            (SourceType.COMPANY_INFO, knowledge_base.company_info),
            (SourceType.PRODUCT_CATALOG, knowledge_base.product_catalog),
            (SourceType.SUPPORT_DOCS, knowledge_base.support_docs),
            (SourceType.COMPLIANCE, knowledge_base.compliance_guidelines),
        ]
        for source_type, content in sections:
            result.extend(self.convert_text_source(
                content,
                source_type,
                context=context,
                updated_at=knowledge_base.updated_at,
            ))

        result.extend(self.convert_faqs(knowledge_base.faqs))

        logger.info(f"Converted knowledge base into {len(result.items)} items ({len(result.warnings)} warnings)")
        return result

    def _warn(self, result: ConversionResult, record_id: str, source: str, message: str) -> None:
        result.warnings.append(ConversionWarning(record_id=record_id, source=source, message=message))
        logger.warning(f"Skipping {source} record {record_id}: {message}")
