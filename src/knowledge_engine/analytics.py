"""Corpus quality and health analytics.

Everything here is advisory: reports describe the corpus and suggest work,
they never block ingestion or retrieval. All scores are fractions in [0, 1].
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .items import KnowledgeCategory, KnowledgeItem, utc_now
from .similarity import duplicate_rate, find_exact_duplicates
from .tags import BULLET_PATTERN, HEADER_PATTERN, NUMBERED_PATTERN

logger = logging.getLogger(__name__)

Priority = Literal["high", "medium", "low"]

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


class HealthWeights(BaseModel):
    """Weights of the component scores in the health score."""

    completeness: float = Field(default=0.3, ge=0.0)
    freshness: float = Field(default=0.3, ge=0.0)
    structure: float = Field(default=0.2, ge=0.0)
    tags: float = Field(default=0.2, ge=0.0)


class CompletenessReport(BaseModel):
    score: float = 0.0
    with_title: float = 0.0
    with_content: float = 0.0
    with_tags: float = 0.0
    missing_elements: list[str] = Field(default_factory=list)


class FreshnessReport(BaseModel):
    score: float = 0.0
    stale_items: int = 0
    stale_after_days: int = 90
    oldest_update: Optional[datetime] = None


class StructureReport(BaseModel):
    """Share of items using headers, bullets or numbered lists.

    ``distribution`` buckets items by how many of the three devices they use:
    two or more is ``well_structured``, one is ``partially_structured``.
    """

    score: float = 0.0
    distribution: dict[str, int] = Field(
        default_factory=lambda: {"well_structured": 0, "partially_structured": 0, "unstructured": 0}
    )


class TagQualityReport(BaseModel):
    coverage: float = 0.0
    average_tags_per_item: float = 0.0
    unique_tags: int = 0
    under_tagged_categories: list[KnowledgeCategory] = Field(default_factory=list)


class DuplicationReport(BaseModel):
    duplicate_rate: float = 0.0
    exact_duplicate_groups: int = 0
    exact_duplicate_items: int = 0


class ReadabilityReport(BaseModel):
    average: float = 0.0
    distribution: dict[str, int] = Field(default_factory=lambda: {"easy": 0, "medium": 0, "hard": 0})


class Recommendation(BaseModel):
    """A suggested maintenance action."""

    priority: Priority
    area: str
    recommendation: str
    impact: str
    affected_items: int = 0


class HealthReport(BaseModel):
    """Aggregate corpus health."""

    item_count: int = 0
    health_score: float = 0.0
    completeness: CompletenessReport = Field(default_factory=CompletenessReport)
    freshness: FreshnessReport = Field(default_factory=FreshnessReport)
    structure: StructureReport = Field(default_factory=StructureReport)
    tags: TagQualityReport = Field(default_factory=TagQualityReport)
    duplication: DuplicationReport = Field(default_factory=DuplicationReport)
    readability: ReadabilityReport = Field(default_factory=ReadabilityReport)
    length_distribution: dict[str, int] = Field(default_factory=dict)
    alerts: list[str] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utc_now)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _fraction(count: int, total: int) -> float:
    return count / total if total else 0.0


def assess_completeness(items: list[KnowledgeItem]) -> CompletenessReport:
    """Average of the fractions of items with a title, content and tags."""
    if not items:
        return CompletenessReport(missing_elements=["No content items found"])

    total = len(items)
    with_title = _fraction(sum(1 for item in items if item.title.strip()), total)
    with_content = _fraction(sum(1 for item in items if item.content.strip()), total)
    with_tags = _fraction(sum(1 for item in items if item.tags), total)

    missing = []
    if with_title < 1.0:
        missing.append("Some items are missing titles")
    if with_content < 1.0:
        missing.append("Some items are missing content")
    if with_tags < 0.8:
        missing.append("Many items are missing tags")

    return CompletenessReport(
        score=(with_title + with_content + with_tags) / 3,
        with_title=with_title,
        with_content=with_content,
        with_tags=with_tags,
        missing_elements=missing,
    )


def assess_freshness(
    items: list[KnowledgeItem],
    stale_after_days: int = 90,
    now: Optional[datetime] = None,
) -> FreshnessReport:
    """Fraction of items updated within ``stale_after_days``."""
    if not items:
        return FreshnessReport(stale_after_days=stale_after_days)

    now = _as_utc(now or utc_now())
    cutoff = now - timedelta(days=stale_after_days)
    updates = [_as_utc(item.last_updated) for item in items]
    stale = sum(1 for updated in updates if updated < cutoff)

    return FreshnessReport(
        score=_fraction(len(items) - stale, len(items)),
        stale_items=stale,
        stale_after_days=stale_after_days,
        oldest_update=min(updates),
    )


def structure_devices(content: str) -> int:
    """Number of structural devices (headers, bullets, numbered lists) used."""
    return sum(
        1 for pattern in (HEADER_PATTERN, BULLET_PATTERN, NUMBERED_PATTERN)
        if pattern.search(content or "")
    )


def assess_structure(items: list[KnowledgeItem]) -> StructureReport:
    report = StructureReport()
    if not items:
        return report

    structured = 0
    for item in items:
        devices = structure_devices(item.content)
        if devices >= 2:
            report.distribution["well_structured"] += 1
        elif devices == 1:
            report.distribution["partially_structured"] += 1
        else:
            report.distribution["unstructured"] += 1
        if devices:
            structured += 1

    report.score = _fraction(structured, len(items))
    return report


def assess_tag_quality(items: list[KnowledgeItem], min_category_coverage: float = 0.5) -> TagQualityReport:
    """Tag coverage overall and per category.

    A category is under-tagged when fewer than ``min_category_coverage`` of
    its items carry any tag.
    """
    if not items:
        return TagQualityReport()

    per_category: dict[KnowledgeCategory, list[int]] = {}
    unique: set[str] = set()
    tagged = 0
    tag_total = 0
    for item in items:
        stats = per_category.setdefault(item.category, [0, 0])
        stats[0] += 1
        if item.tags:
            tagged += 1
            stats[1] += 1
        tag_total += len(item.tags)
        unique.update(tag.lower() for tag in item.tags)

    under_tagged = [
        category for category, (total, with_tags) in per_category.items()
        if _fraction(with_tags, total) < min_category_coverage
    ]

    return TagQualityReport(
        coverage=_fraction(tagged, len(items)),
        average_tags_per_item=tag_total / len(items),
        unique_tags=len(unique),
        under_tagged_categories=under_tagged,
    )


def analyze_duplication(items: list[KnowledgeItem], near_duplicate_threshold: float = 0.7) -> DuplicationReport:
    groups = find_exact_duplicates(items)
    return DuplicationReport(
        duplicate_rate=duplicate_rate(items, near_duplicate_threshold),
        exact_duplicate_groups=len(groups),
        exact_duplicate_items=sum(len(group.items) - 1 for group in groups),
    )


def readability_score(content: str) -> float:
    """Shorter sentences read more easily; 1.0 at 10 words per sentence or fewer."""
    sentences = [s for s in _SENTENCE_SPLIT.split(content or "") if s.strip()]
    words = (content or "").split()
    if not sentences or not words:
        return 0.0
    words_per_sentence = len(words) / len(sentences)
    return max(0.0, min(1.0, 1 - (words_per_sentence - 10) / 20))


def assess_readability(items: list[KnowledgeItem]) -> ReadabilityReport:
    report = ReadabilityReport()
    if not items:
        return report

    scores = [readability_score(item.content) for item in items]
    for score in scores:
        if score >= 0.7:
            report.distribution["easy"] += 1
        elif score >= 0.4:
            report.distribution["medium"] += 1
        else:
            report.distribution["hard"] += 1
    report.average = sum(scores) / len(scores)
    return report


def length_distribution(items: list[KnowledgeItem]) -> dict[str, int]:
    """Bucket items by content length: short (<100), medium (<500), long."""
    buckets = {"short": 0, "medium": 0, "long": 0}
    for item in items:
        length = len(item.content)
        if length < 100:
            buckets["short"] += 1
        elif length < 500:
            buckets["medium"] += 1
        else:
            buckets["long"] += 1
    return buckets


def generate_recommendations(report: HealthReport) -> list[Recommendation]:
    """Prioritized maintenance actions derived from a health report."""
    total = report.item_count
    if total == 0:
        return [Recommendation(
            priority="high",
            area="Coverage",
            recommendation="Add knowledge content (FAQs, product information, support docs)",
            impact="The assistant has nothing to ground its answers on",
        )]

    recommendations = []

    if report.health_score < 0.7:
        recommendations.append(Recommendation(
            priority="high",
            area="Quality",
            recommendation="Address completeness, freshness and structure issues across the corpus",
            impact="Improves answer grounding across all topics",
            affected_items=total,
        ))

    if report.freshness.score < 0.7:
        recommendations.append(Recommendation(
            priority="high",
            area="Freshness",
            recommendation=f"Review content not updated in the last {report.freshness.stale_after_days} days",
            impact="Reduces the risk of answering from outdated information",
            affected_items=report.freshness.stale_items,
        ))

    if report.duplication.duplicate_rate > 0.1:
        recommendations.append(Recommendation(
            priority="medium",
            area="Duplication",
            recommendation="Merge or remove duplicate and near-duplicate items",
            impact="Frees result slots for distinct content",
            affected_items=round(report.duplication.duplicate_rate * total),
        ))

    unstructured = report.structure.distribution["unstructured"]
    if unstructured > total * 0.3:
        recommendations.append(Recommendation(
            priority="medium",
            area="Structure",
            recommendation="Add headers, bullets and numbered lists to unstructured content",
            impact="Improves chunking and tag extraction",
            affected_items=unstructured,
        ))

    untagged = round((1 - report.tags.coverage) * total)
    if untagged > total * 0.2:
        recommendations.append(Recommendation(
            priority="medium",
            area="Metadata",
            recommendation="Add relevant tags to improve content discoverability",
            impact="Strengthens the tag relevance signal",
            affected_items=untagged,
        ))

    short = report.length_distribution.get("short", 0)
    if short > total * 0.3:
        recommendations.append(Recommendation(
            priority="low",
            area="Content Depth",
            recommendation="Expand short content items with more complete information",
            impact="Gives retrieval more context to match against",
            affected_items=short,
        ))

    hard = report.readability.distribution["hard"]
    if hard > total * 0.3:
        recommendations.append(Recommendation(
            priority="low",
            area="Readability",
            recommendation="Shorten long sentences in hard-to-read items",
            impact="Makes grounded replies easier to follow",
            affected_items=hard,
        ))

    recommendations.sort(key=lambda r: _PRIORITY_ORDER[r.priority])
    return recommendations


def _alerts(report: HealthReport) -> list[str]:
    if report.item_count == 0:
        return ["Knowledge base is empty"]

    alerts = []
    if report.health_score < 0.5:
        alerts.append(f"Knowledge base health is low ({report.health_score:.2f})")
    if report.freshness.stale_items > report.item_count * 0.3:
        alerts.append(
            f"{report.freshness.stale_items} items not updated in {report.freshness.stale_after_days} days"
        )
    if report.duplication.duplicate_rate > 0.2:
        alerts.append(f"High duplicate rate ({report.duplication.duplicate_rate:.0%})")
    if report.completeness.with_content < 1.0:
        alerts.append("Some items have no content and are excluded from search")
    for category in report.tags.under_tagged_categories:
        alerts.append(f"Category '{category.value}' is under-tagged")
    return alerts


def assess_health(
    items: list[KnowledgeItem],
    stale_after_days: int = 90,
    near_duplicate_threshold: float = 0.7,
    weights: Optional[HealthWeights] = None,
    now: Optional[datetime] = None,
) -> HealthReport:
    """Compute the full health report for a corpus.

    The health score is the weighted mean of completeness, freshness,
    structure and tag coverage, multiplied by ``1 - duplicate_rate``.

    Args:
        items: The corpus
        stale_after_days: Age after which an item counts as stale
        near_duplicate_threshold: Combined similarity counted as a duplicate
        weights: Component weights
        now: Reference time (default: current UTC time)

    Returns:
        Health report with alerts and recommendations
    """
    weights = weights or HealthWeights()

    report = HealthReport(
        item_count=len(items),
        completeness=assess_completeness(items),
        freshness=assess_freshness(items, stale_after_days, now),
        structure=assess_structure(items),
        tags=assess_tag_quality(items),
        duplication=analyze_duplication(items, near_duplicate_threshold),
        readability=assess_readability(items),
        length_distribution=length_distribution(items),
    )

    if items:
        weight_total = weights.completeness + weights.freshness + weights.structure + weights.tags
        weighted = (
            weights.completeness * report.completeness.score
            + weights.freshness * report.freshness.score
            + weights.structure * report.structure.score
            + weights.tags * report.tags.coverage
        )
        base = weighted / weight_total if weight_total else 0.0
        report.health_score = max(0.0, min(1.0, base * (1 - report.duplication.duplicate_rate)))

    report.alerts = _alerts(report)
    report.recommendations = generate_recommendations(report)

    logger.info(f"Assessed health of {len(items)} items: score {report.health_score:.2f}, {len(report.alerts)} alerts")
    return report
