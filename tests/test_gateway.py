"""Tests for embedding providers, vector math and the embedding gateway."""

import asyncio

import pytest

from knowledge_engine import (
    BaseEmbedding,
    EmbeddingError,
    EmbeddingGateway,
    EmbeddingTimeoutError,
    FakeEmbedding,
    HashingEmbedding,
    cosine_similarity,
    top_k_matches,
)


class SlowEmbedding(BaseEmbedding):
    """Embedding provider that never answers in time."""

    @property
    def dimension(self) -> int:
        return 4

    async def embed(self, text: str) -> list[float]:
        await asyncio.sleep(5)
        return [1.0] * 4

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        await asyncio.sleep(5)
        return [[1.0] * 4 for _ in texts]


class ShortBatchEmbedding(BaseEmbedding):
    """Embedding provider that drops the last vector of a batch."""

    @property
    def dimension(self) -> int:
        return 4

    async def embed(self, text: str) -> list[float]:
        return [1.0] * 4

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [[1.0] * 4 for _ in texts[:-1]]


class TestEmbeddings:
    """Tests for embedding providers."""

    @pytest.mark.asyncio
    async def test_fake_embedding(self):
        """Test fake embedding is deterministic and bounded."""
        embedding = FakeEmbedding(dimension=100)

        first = await embedding.embed("hello")
        second = await embedding.embed("hello")
        other = await embedding.embed("goodbye")

        assert len(first) == 100
        assert first == second
        assert first != other
        assert all(-1.0 <= x <= 1.0 for x in first)

    @pytest.mark.asyncio
    async def test_fake_embedding_batch(self):
        """Test batch embedding matches single embedding."""
        embedding = FakeEmbedding(dimension=16)

        batch = await embedding.embed_batch(["a", "b"])

        assert batch[0] == await embedding.embed("a")
        assert batch[1] == await embedding.embed("b")

    @pytest.mark.asyncio
    async def test_hashing_embedding_overlap(self):
        """Test shared words give higher similarity than disjoint words."""
        embedding = HashingEmbedding(dimension=512)

        query = await embedding.embed("pricing plans")
        related = await embedding.embed("our pricing plans start low")
        unrelated = await embedding.embed("reset your password")

        assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)
        assert cosine_similarity(query, await embedding.embed("Pricing Plans")) == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_hashing_embedding_empty_text(self):
        """Test text without words maps to the zero vector."""
        vector = await HashingEmbedding(dimension=8).embed("!!")

        assert vector == [0.0] * 8


class TestVectors:
    """Tests for vector similarity helpers."""

    def test_cosine_similarity(self):
        """Test cosine similarity of basic vectors."""
        assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
        assert cosine_similarity([0, 0], [1, 1]) == 0.0

    def test_dimension_mismatch(self):
        """Test vectors of different length are rejected."""
        with pytest.raises(ValueError):
            cosine_similarity([1, 2], [1, 2, 3])

    def test_top_k_matches(self):
        """Test ranking, limits, ids and stable ties."""
        embeddings = [[0.0, 1.0], [1.0, 0.0], [1.0, 0.0], [1.0, 1.0]]

        matches = top_k_matches([1.0, 0.0], embeddings, k=3, ids=["a", "b", "c", "d"])

        assert [m.id for m in matches] == ["b", "c", "d"]
        assert matches[0].index == 1

    def test_top_k_min_score(self):
        """Test low-scoring candidates are dropped."""
        matches = top_k_matches([1.0, 0.0], [[0.0, 1.0], [1.0, 0.0]], min_score=0.5)

        assert [m.index for m in matches] == [1]


class TestEmbeddingGateway:
    """Tests for the cached embedding gateway."""

    @pytest.mark.asyncio
    async def test_idempotent_caching(self, counting_embedding):
        """Test embedding the same text twice calls the provider once."""
        gateway = EmbeddingGateway(counting_embedding)

        first = await gateway.embed("pricing")
        second = await gateway.embed("pricing")

        assert first == second
        assert counting_embedding.single_calls == ["pricing"]

    @pytest.mark.asyncio
    async def test_normalized_cache_key(self, counting_embedding):
        """Test case and whitespace variants share one cache entry."""
        gateway = EmbeddingGateway(counting_embedding)

        await gateway.embed("Hello   World")
        await gateway.embed(" hello world\n")

        assert counting_embedding.single_calls == ["hello world"]
        assert len(gateway) == 1

    @pytest.mark.asyncio
    async def test_batch_order_with_partial_hits(self, counting_embedding):
        """Test only misses are sent and results keep input order."""
        gateway = EmbeddingGateway(counting_embedding)
        await gateway.embed("b")

        vectors = await gateway.embed_batch(["a", "b", "c"])

        assert counting_embedding.batch_calls == [["a", "c"]]
        assert [v[0] for v in vectors] == [float(ord("a")), float(ord("b")), float(ord("c"))]

    @pytest.mark.asyncio
    async def test_batch_deduplicates_misses(self, counting_embedding):
        """Test repeated texts within a batch are embedded once."""
        gateway = EmbeddingGateway(counting_embedding)

        vectors = await gateway.embed_batch(["x", "X", "x "])

        assert counting_embedding.batch_calls == [["x"]]
        assert vectors[0] == vectors[1] == vectors[2]

    @pytest.mark.asyncio
    async def test_empty_batch(self, counting_embedding):
        """Test an empty batch makes no external call."""
        gateway = EmbeddingGateway(counting_embedding)

        assert await gateway.embed_batch([]) == []
        assert counting_embedding.batch_calls == []

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self, counting_embedding):
        """Test empty text is a caller error."""
        gateway = EmbeddingGateway(counting_embedding)

        with pytest.raises(ValueError):
            await gateway.embed("   ")

    @pytest.mark.asyncio
    async def test_returns_copies(self, counting_embedding):
        """Test callers cannot mutate cached vectors."""
        gateway = EmbeddingGateway(counting_embedding)

        vector = await gateway.embed("abc")
        original = list(vector)
        vector[0] = -1.0

        assert await gateway.embed("abc") == original

    @pytest.mark.asyncio
    async def test_provider_failure_is_typed(self, failing_embedding):
        """Test provider errors surface as EmbeddingError, never zero vectors."""
        gateway = EmbeddingGateway(failing_embedding)

        with pytest.raises(EmbeddingError) as exc_info:
            await gateway.embed("pricing")

        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert exc_info.value.code == "EMBEDDING_FAILED"
        assert len(gateway) == 0

    @pytest.mark.asyncio
    async def test_batch_failure_is_typed(self, failing_embedding):
        """Test batch failures surface as EmbeddingError."""
        gateway = EmbeddingGateway(failing_embedding)

        with pytest.raises(EmbeddingError):
            await gateway.embed_batch(["a", "b"])

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test a slow provider is bounded by the timeout."""
        gateway = EmbeddingGateway(SlowEmbedding(), timeout=0.05)

        with pytest.raises(EmbeddingTimeoutError) as exc_info:
            await gateway.embed_batch(["a", "b"])

        assert exc_info.value.code == "EMBEDDING_TIMEOUT"
        assert exc_info.value.count == 2

    @pytest.mark.asyncio
    async def test_wrong_vector_count(self):
        """Test a provider returning too few vectors is an error."""
        gateway = EmbeddingGateway(ShortBatchEmbedding())

        with pytest.raises(EmbeddingError):
            await gateway.embed_batch(["a", "b"])

        assert len(gateway) == 0

    @pytest.mark.asyncio
    async def test_seed(self, counting_embedding):
        """Test seeded vectors are served without external calls."""
        gateway = EmbeddingGateway(counting_embedding)

        gateway.seed("Stored Item", [1.0, 2.0, 3.0])

        assert await gateway.embed("stored item") == [1.0, 2.0, 3.0]
        assert counting_embedding.single_calls == []

    @pytest.mark.asyncio
    async def test_clear_cache(self, counting_embedding):
        """Test clearing the cache forces re-embedding."""
        gateway = EmbeddingGateway(counting_embedding)

        await gateway.embed("pricing")
        gateway.clear_cache()
        await gateway.embed("pricing")

        assert len(counting_embedding.single_calls) == 2

    @pytest.mark.asyncio
    async def test_stats(self, counting_embedding):
        """Test hit, miss and call counters."""
        gateway = EmbeddingGateway(counting_embedding)

        await gateway.embed("a")
        await gateway.embed("a")
        await gateway.embed_batch(["a", "b"])

        stats = gateway.stats()
        assert stats.hits == 2
        assert stats.misses == 2
        assert stats.external_calls == 2
        assert stats.cache_size == 2

    @pytest.mark.asyncio
    async def test_concurrent_requests_converge(self, counting_embedding):
        """Test concurrent embeds of one text leave one cache entry."""
        gateway = EmbeddingGateway(counting_embedding)

        first, second = await asyncio.gather(gateway.embed("same"), gateway.embed("same"))

        assert first == second
        assert len(gateway) == 1

    def test_invalid_timeout(self, counting_embedding):
        """Test a non-positive timeout is rejected."""
        with pytest.raises(ValueError):
            EmbeddingGateway(counting_embedding, timeout=0)
