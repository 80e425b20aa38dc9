"""Tests for duplicate detection and clustering."""

import pytest

from knowledge_engine import (
    KnowledgeItem,
    cluster_by_similarity,
    cluster_by_tags,
    combined_similarity,
    duplicate_rate,
    find_exact_duplicates,
    find_most_similar_to,
    find_near_duplicates,
)
from knowledge_engine.similarity import jaccard, word_set


@pytest.fixture
def refund_item():
    return KnowledgeItem(
        id="refund-1",
        title="Refund policy",
        content="Customers can request a refund within thirty days of purchase.",
        tags=["refunds", "billing"],
        source="faq",
    )


@pytest.fixture
def refund_variant():
    return KnowledgeItem(
        id="refund-2",
        title="Refund policy",
        content="Customers can request a refund within thirty days of their purchase.",
        tags=["refunds", "billing"],
        source="support_docs",
    )


@pytest.fixture
def hours_item():
    return KnowledgeItem(
        id="hours-1",
        title="Opening hours",
        content="Our office is open weekdays from nine to five.",
        tags=["hours"],
        source="faq",
    )


class TestSimilarityMeasures:
    """Tests for lexical similarity measures."""

    def test_word_set(self):
        """Test punctuation, case and short words are normalized away."""
        assert word_set("The API, the api! Go") == {"the", "api"}
        assert word_set("") == set()

    def test_jaccard(self):
        """Test Jaccard index edge cases."""
        assert jaccard({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)
        assert jaccard(set(), {"x"}) == 0.0

    def test_combined_similarity(self, refund_item, refund_variant, hours_item):
        """Test the weighted blend of content, title and tags."""
        assert combined_similarity(refund_item, refund_item) == pytest.approx(1.0)
        assert combined_similarity(refund_item, refund_variant) == pytest.approx(0.6 * 8 / 9 + 0.25 + 0.15)
        assert combined_similarity(refund_item, hours_item) == 0.0


class TestDuplicates:
    """Tests for exact and near-duplicate detection."""

    def test_exact_duplicates(self, refund_item, hours_item):
        """Test items with identical title, content and source are grouped."""
        copy = refund_item.model_copy(update={"id": "refund-copy"})

        groups = find_exact_duplicates([refund_item, hours_item, copy])

        assert len(groups) == 1
        assert [item.id for item in groups[0].items] == ["refund-1", "refund-copy"]
        assert groups[0].content_hash == refund_item.content_hash

    def test_different_source_is_not_exact(self, refund_item):
        """Test the source is part of the exact-duplicate hash."""
        other = refund_item.model_copy(update={"id": "refund-web", "source": "website_crawled"})

        assert find_exact_duplicates([refund_item, other]) == []

    def test_near_duplicates(self, refund_item, refund_variant, hours_item):
        """Test reworded items are reported as a near-duplicate pair."""
        pairs = find_near_duplicates([refund_item, hours_item, refund_variant])

        assert len(pairs) == 1
        assert pairs[0].first.id == "refund-1"
        assert pairs[0].second.id == "refund-2"
        assert pairs[0].similarity >= 0.7

    def test_exact_copies_are_not_near_duplicates(self, refund_item, refund_variant):
        """Test byte-identical pairs are left to exact-duplicate grouping."""
        copy = refund_item.model_copy(update={"id": "refund-copy"})

        pairs = find_near_duplicates([refund_item, copy, refund_variant])

        ids = [(pair.first.id, pair.second.id) for pair in pairs]
        assert ("refund-1", "refund-copy") not in ids
        assert sorted(ids) == [("refund-1", "refund-2"), ("refund-copy", "refund-2")]

    def test_disjoint_items_are_never_near_duplicates(self, refund_item, hours_item):
        """Test items sharing no words are not paired at the default threshold."""
        assert not word_set(refund_item.content) & word_set(hours_item.content)
        assert not word_set(refund_item.title) & word_set(hours_item.title)

        assert find_near_duplicates([refund_item, hours_item], threshold=0.7) == []

    def test_near_duplicate_threshold(self, refund_item, refund_variant):
        """Test a stricter threshold drops the pair."""
        assert find_near_duplicates([refund_item, refund_variant], threshold=0.95) == []

    def test_most_similar_to(self, refund_item, refund_variant, hours_item):
        """Test candidates are ranked and the target itself is excluded."""
        pairs = find_most_similar_to(refund_item, [refund_item, hours_item, refund_variant])

        assert [pair.second.id for pair in pairs] == ["refund-2", "hours-1"]
        assert len(find_most_similar_to(refund_item, [hours_item, refund_variant], count=1)) == 1

    def test_duplicate_rate(self, refund_item, refund_variant, hours_item):
        """Test the fraction of items duplicating an earlier one."""
        copy = refund_item.model_copy(update={"id": "refund-copy"})

        assert duplicate_rate([]) == 0.0
        assert duplicate_rate([refund_item, hours_item]) == 0.0
        assert duplicate_rate([refund_item, hours_item, refund_variant]) == pytest.approx(1 / 3)
        assert duplicate_rate([refund_item, copy, refund_variant, hours_item]) == pytest.approx(0.5)
        assert duplicate_rate([refund_item, refund_variant], threshold=None) == 0.0


class TestClustering:
    """Tests for similarity and tag clustering."""

    def test_cluster_by_similarity(self, refund_item, refund_variant, hours_item):
        """Test related items cluster and singletons are omitted."""
        clusters = cluster_by_similarity([refund_item, hours_item, refund_variant])

        assert len(clusters) == 1
        cluster = clusters[0]
        assert cluster.cluster_id == "cluster-1"
        assert [item.id for item in cluster.items] == ["refund-1", "refund-2"]
        assert "refund" in cluster.centroid.split()
        assert cluster.average_similarity == pytest.approx(combined_similarity(refund_item, refund_variant))

    def test_no_clusters(self, refund_item, hours_item):
        """Test unrelated items form no clusters."""
        assert cluster_by_similarity([refund_item, hours_item]) == []
        assert cluster_by_similarity([]) == []

    def test_cluster_by_tags(self, refund_item, refund_variant, hours_item):
        """Test one cluster per shared tag."""
        clusters = cluster_by_tags([refund_item, hours_item, refund_variant])

        assert [cluster.cluster_id for cluster in clusters] == ["tag-refunds", "tag-billing"]
        assert [item.id for item in clusters[0].items] == ["refund-1", "refund-2"]
        assert clusters[0].centroid == "refunds"

    def test_cluster_by_tags_min_size(self, refund_item, hours_item):
        """Test a lower minimum size keeps single-item tag groups."""
        clusters = cluster_by_tags([refund_item, hours_item], min_size=1)

        assert {cluster.cluster_id for cluster in clusters} == {"tag-refunds", "tag-billing", "tag-hours"}
