"""
Test configuration and fixtures.
"""

from datetime import datetime, timedelta, timezone

import pytest

from knowledge_engine import (
    BaseEmbedding,
    KnowledgeCategory,
    KnowledgeItem,
)


class CountingEmbedding(BaseEmbedding):
    """Deterministic embedding that records every call it receives."""

    def __init__(self, dimension: int = 8):
        self._dimension = dimension
        self.single_calls: list[str] = []
        self.batch_calls: list[list[str]] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    def _vector(self, text: str) -> list[float]:
        return [float(sum(map(ord, text)) + i) for i in range(self._dimension)]

    async def embed(self, text: str) -> list[float]:
        self.single_calls.append(text)
        return self._vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        return [self._vector(text) for text in texts]


class FailingEmbedding(BaseEmbedding):
    """Embedding capability that is always unavailable."""

    @property
    def dimension(self) -> int:
        return 8

    async def embed(self, text: str) -> list[float]:
        raise ConnectionError("provider unavailable")

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        raise ConnectionError("provider unavailable")


@pytest.fixture
def counting_embedding():
    """Embedding provider that counts external calls."""
    return CountingEmbedding()


@pytest.fixture
def failing_embedding():
    """Embedding provider that always fails."""
    return FailingEmbedding()


@pytest.fixture
def now():
    """Fixed reference time."""
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def pricing_item(now):
    """Pricing item tagged for pricing questions."""
    return KnowledgeItem(
        id="pricing-1",
        title="Pricing plans",
        content="Our pricing starts at 29 dollars per month for the starter plan and 99 for pro.",
        category=KnowledgeCategory.PRICING,
        tags=["pricing", "plans"],
        source="faq",
        last_updated=now - timedelta(days=3),
    )


@pytest.fixture
def support_item(now):
    """Support item unrelated to pricing."""
    return KnowledgeItem(
        id="support-1",
        title="Resetting a password",
        content="Open the account screen, choose reset password and follow the emailed link.",
        category=KnowledgeCategory.SUPPORT,
        tags=["account", "password"],
        source="support_docs",
        last_updated=now - timedelta(days=200),
    )


@pytest.fixture
def sample_markdown():
    """Markdown document with two well-formed sections."""
    return (
        "# Pricing\n"
        "The starter plan costs 29 dollars per month and includes email support.\n"
        "\n"
        "# Integrations\n"
        "We connect to Slack, HubSpot and Salesforce with a few clicks from settings.\n"
    )
