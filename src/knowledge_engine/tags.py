"""Structural tag extraction.

Tags come from document structure only (headers, bullet items, numbered
items), never from a vocabulary of business terms, so extraction behaves the
same for any organization's content.
"""

import re
from typing import Optional

HEADER_PATTERN = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)
COLON_HEADER_PATTERN = re.compile(r"^([A-Z][^.:\n]{1,80}):\s*$", re.MULTILINE)
BULLET_PATTERN = re.compile(r"^\s*[-*•]\s+(.+)$", re.MULTILINE)
NUMBERED_PATTERN = re.compile(r"^\s*\d+[.)]\s+(.+)$", re.MULTILINE)

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "from", "up", "about", "into", "through", "during", "before", "after", "above", "below",
    "between", "among", "under", "over", "within", "without", "along", "following", "across",
    "behind", "beyond", "plus", "except", "out", "off", "down", "upon", "near", "since", "per",
    "than", "like", "this", "that", "these", "those", "i", "me", "my", "myself", "we", "our",
    "ours", "ourselves", "you", "your", "yours", "yourself", "yourselves", "he", "him", "his",
    "himself", "she", "her", "hers", "herself", "it", "its", "itself", "they", "them", "their",
    "theirs", "themselves", "what", "which", "who", "whom", "am", "is", "are", "was", "were",
    "be", "been", "being", "have", "has", "had", "having", "do", "does", "did", "doing", "will",
    "would", "should", "could", "can", "may", "might", "must", "shall", "ought",
})

FAQ_CATEGORY_TAGS = {
    "general": ["general", "info", "about", "company"],
    "product": ["product", "features", "functionality", "capabilities"],
    "features": ["features", "functionality", "capabilities"],
    "support": ["support", "help", "troubleshooting", "assistance"],
    "billing": ["billing", "pricing", "cost", "price", "plans", "payment", "invoice"],
    "pricing": ["pricing", "cost", "price", "plans"],
    "technical": ["technical", "integration", "api", "setup", "configuration"],
}

CATEGORY_CONTEXT_TAGS = {
    "product_info": ["products", "services", "offerings"],
    "support": ["help", "assistance", "guidance"],
    "pricing": ["cost", "price", "plans"],
    "general": ["information", "about", "overview"],
}

SOURCE_CONTEXT_TAGS = {
    "faq": ["frequently-asked", "questions"],
    "chatbot_config": ["configuration", "setup"],
    "website_crawled": ["website", "web-content"],
}


def clean_tag(text: str) -> str:
    """Normalize free text into a hyphenated lowercase tag."""
    text = re.sub(r"[^\w\s]", " ", text.lower())
    text = re.sub(r"[\s_]+", "-", text.strip())
    return text.strip("-")


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class TagExtractor:
    """Derive tags from headers, bullet items and numbered items."""

    def __init__(
        self,
        min_tag_length: int = 3,
        max_tag_length: int = 50,
        max_tags: int = 10,
        extract_headers: bool = True,
        extract_bullets: bool = True,
        extract_numbered_items: bool = True,
        max_bullet_items: int = 10,
        max_numbered_items: int = 8,
    ):
        """Initialize the tag extractor.

        Args:
            min_tag_length: Shortest tag kept
            max_tag_length: Longest tag kept
            max_tags: Maximum number of tags returned
            extract_headers: Use markdown and colon-terminated headers
            extract_bullets: Use bullet list items
            extract_numbered_items: Use numbered list items
            max_bullet_items: Skip bullets when a list is longer than this
            max_numbered_items: Skip numbered items when a list is longer than this
        """
        self.min_tag_length = min_tag_length
        self.max_tag_length = max_tag_length
        self.max_tags = max_tags
        self.extract_headers = extract_headers
        self.extract_bullets = extract_bullets
        self.extract_numbered_items = extract_numbered_items
        self.max_bullet_items = max_bullet_items
        self.max_numbered_items = max_numbered_items

    def extract_tags(self, content: str, header: Optional[str] = None) -> list[str]:
        """Extract structural tags from content.

        Args:
            content: Text to inspect
            header: Optional header text that titles the content

        Returns:
            Unique tags in order of appearance
        """
        raw: list[str] = []
        if header:
            raw.append(header)

        if self.extract_headers:
            raw.extend(HEADER_PATTERN.findall(content))
            raw.extend(COLON_HEADER_PATTERN.findall(content))

        if self.extract_bullets:
            bullets = BULLET_PATTERN.findall(content)
            if len(bullets) <= self.max_bullet_items:
                raw.extend(bullets)

        if self.extract_numbered_items:
            numbered = NUMBERED_PATTERN.findall(content)
            if len(numbered) <= self.max_numbered_items:
                raw.extend(numbered)

        return self.filter_tags([clean_tag(tag) for tag in raw])

    def filter_tags(self, tags: list[str]) -> list[str]:
        """Drop stop words, pure numbers and out-of-range lengths."""
        kept = [
            tag for tag in _unique(tags)
            if tag
            and tag not in STOP_WORDS
            and not tag.isdigit()
            and self.min_tag_length <= len(tag) <= self.max_tag_length
        ]
        return kept[: self.max_tags]

    def context_tags(
        self,
        content: str,
        category: Optional[str] = None,
        source: Optional[str] = None,
    ) -> list[str]:
        """Structural tags plus tags implied by category and source."""
        tags = self.extract_tags(content)
        if category:
            tags.extend(CATEGORY_CONTEXT_TAGS.get(category, []))
        if source:
            tags.extend(SOURCE_CONTEXT_TAGS.get(source, []))
        return _unique(tags)[: self.max_tags]


def faq_category_tags(category: str) -> list[str]:
    """Tags implied by an FAQ category label."""
    base = category.strip().lower()
    if not base:
        return ["general"]
    return list(FAQ_CATEGORY_TAGS.get(base, [base]))


def tag_recommendations(content: str, extractor: Optional[TagExtractor] = None) -> list[str]:
    """Authoring advice for content that yields few structural tags."""
    extractor = extractor or TagExtractor()
    recommendations = []

    if len(extractor.extract_tags(content)) < 3:
        recommendations.append("Consider adding more descriptive headers to improve tag extraction")
    if not HEADER_PATTERN.search(content):
        recommendations.append("Adding markdown-style headers will improve tag quality")
    if not BULLET_PATTERN.search(content) and not NUMBERED_PATTERN.search(content):
        recommendations.append("Using bullet points or numbered lists will generate more specific tags")

    return recommendations
