"""Exact and near-duplicate detection and clustering.

Near-duplicate similarity is lexical: Jaccard over word sets (words longer
than two characters, lowercased, punctuation stripped) and over tag sets,
combined as ``0.6 * content + 0.25 * title + 0.15 * tags``. All pairwise
operations are O(n^2), which is fine for a single organization's corpus.
"""

import logging
from collections import Counter
from typing import Optional

from pydantic import BaseModel, Field

from .hashing import normalize_for_comparison
from .items import KnowledgeItem

logger = logging.getLogger(__name__)

CONTENT_WEIGHT = 0.6
TITLE_WEIGHT = 0.25
TAG_WEIGHT = 0.15


class SimilarityPair(BaseModel):
    """Two items and their combined similarity."""

    first: KnowledgeItem
    second: KnowledgeItem
    similarity: float


class DuplicateGroup(BaseModel):
    """Items sharing one content hash."""

    content_hash: str
    items: list[KnowledgeItem] = Field(default_factory=list)


class ItemCluster(BaseModel):
    """A group of related items.

    Attributes:
        cluster_id: ``cluster-N`` for similarity clusters, ``tag-<tag>`` for tag clusters
        items: Members, in input order
        centroid: Most frequent content words (or the shared tag)
        average_similarity: Mean pairwise combined similarity of the members
    """

    cluster_id: str
    items: list[KnowledgeItem] = Field(default_factory=list)
    centroid: str = ""
    average_similarity: float = 0.0


def word_set(text: str) -> set[str]:
    return {word for word in normalize_for_comparison(text or "").split() if len(word) > 2}


def jaccard(a: set[str], b: set[str]) -> float:
    """Jaccard index; 0.0 when either set is empty."""
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def content_similarity(first: KnowledgeItem, second: KnowledgeItem) -> float:
    return jaccard(word_set(first.content), word_set(second.content))


def title_similarity(first: KnowledgeItem, second: KnowledgeItem) -> float:
    return jaccard(word_set(first.title), word_set(second.title))


def tag_similarity(first: KnowledgeItem, second: KnowledgeItem) -> float:
    return jaccard(
        {tag.lower() for tag in first.tags},
        {tag.lower() for tag in second.tags},
    )


def combined_similarity(first: KnowledgeItem, second: KnowledgeItem) -> float:
    """Weighted blend of content, title and tag Jaccard scores."""
    return (
        CONTENT_WEIGHT * content_similarity(first, second)
        + TITLE_WEIGHT * title_similarity(first, second)
        + TAG_WEIGHT * tag_similarity(first, second)
    )


def find_exact_duplicates(items: list[KnowledgeItem]) -> list[DuplicateGroup]:
    """Group items whose ``title|content|source`` hash is identical.

    Returns:
        Groups with at least two members, in order of first appearance
    """
    groups: dict[str, list[KnowledgeItem]] = {}
    for item in items:
        groups.setdefault(item.content_hash, []).append(item)

    return [
        DuplicateGroup(content_hash=digest, items=members)
        for digest, members in groups.items()
        if len(members) > 1
    ]


def find_near_duplicates(
    items: list[KnowledgeItem],
    threshold: float = 0.7,
) -> list[SimilarityPair]:
    """All pairs whose combined similarity meets the threshold, most similar first.

    Byte-identical pairs (same content hash) are left to ``find_exact_duplicates``.
    """
    hashes = [item.content_hash for item in items]
    pairs = []
    for i in range(len(items)):
        for j in range(i + 1, len(items)):
            if hashes[i] == hashes[j]:
                continue
            similarity = combined_similarity(items[i], items[j])
            if similarity >= threshold:
                pairs.append(SimilarityPair(first=items[i], second=items[j], similarity=similarity))

    pairs.sort(key=lambda pair: pair.similarity, reverse=True)
    logger.debug(f"Found {len(pairs)} near-duplicate pairs among {len(items)} items")
    return pairs


def find_most_similar_to(
    target: KnowledgeItem,
    candidates: list[KnowledgeItem],
    count: int = 5,
) -> list[SimilarityPair]:
    """The ``count`` candidates most similar to ``target`` (excluding itself)."""
    pairs = [
        SimilarityPair(first=target, second=item, similarity=combined_similarity(target, item))
        for item in candidates
        if item.id != target.id
    ]
    pairs.sort(key=lambda pair: pair.similarity, reverse=True)
    return pairs[:count]


def _centroid(items: list[KnowledgeItem], size: int = 10) -> str:
    counts: Counter = Counter()
    for item in items:
        counts.update(word for word in normalize_for_comparison(item.content or "").split() if len(word) > 2)
    return " ".join(word for word, _ in counts.most_common(size))


def average_similarity(items: list[KnowledgeItem]) -> float:
    """Mean combined similarity over all member pairs (1.0 for fewer than two)."""
    if len(items) < 2:
        return 1.0

    total = 0.0
    pair_count = 0
    for i in range(len(items)):
        for j in range(i + 1, len(items)):
            total += combined_similarity(items[i], items[j])
            pair_count += 1
    return total / pair_count


def cluster_by_similarity(
    items: list[KnowledgeItem],
    threshold: float = 0.6,
) -> list[ItemCluster]:
    """Greedy single-pass clustering.

    Each unassigned item, in input order, seeds a cluster and pulls in every
    later unassigned item whose similarity to the seed meets the threshold.
    Singletons are not reported.

    Returns:
        Clusters sorted by size, largest first
    """
    assigned = [False] * len(items)
    clusters: list[ItemCluster] = []

    for i, seed in enumerate(items):
        if assigned[i]:
            continue
        assigned[i] = True
        members = [seed]

        for j in range(i + 1, len(items)):
            if assigned[j]:
                continue
            if combined_similarity(seed, items[j]) >= threshold:
                members.append(items[j])
                assigned[j] = True

        if len(members) > 1:
            clusters.append(ItemCluster(
                cluster_id=f"cluster-{len(clusters) + 1}",
                items=members,
                centroid=_centroid(members),
                average_similarity=average_similarity(members),
            ))

    clusters.sort(key=lambda cluster: len(cluster.items), reverse=True)
    return clusters


def cluster_by_tags(items: list[KnowledgeItem], min_size: int = 2) -> list[ItemCluster]:
    """One cluster per tag shared by at least ``min_size`` items.

    An item appears in every cluster of its tags.
    """
    by_tag: dict[str, list[KnowledgeItem]] = {}
    for item in items:
        for tag in dict.fromkeys(t.lower() for t in item.tags):
            by_tag.setdefault(tag, []).append(item)

    clusters = [
        ItemCluster(
            cluster_id=f"tag-{tag}",
            items=members,
            centroid=tag,
            average_similarity=average_similarity(members),
        )
        for tag, members in by_tag.items()
        if len(members) >= min_size
    ]
    clusters.sort(key=lambda cluster: len(cluster.items), reverse=True)
    return clusters


def duplicate_rate(items: list[KnowledgeItem], threshold: Optional[float] = 0.7) -> float:
    """Fraction of items that duplicate an earlier item, exactly or nearly."""
    if not items:
        return 0.0

    hashes = [item.content_hash for item in items]
    duplicates = 0
    for j in range(1, len(items)):
        for i in range(j):
            if hashes[i] == hashes[j] or (
                threshold is not None and combined_similarity(items[i], items[j]) >= threshold
            ):
                duplicates += 1
                break

    return duplicates / len(items)
