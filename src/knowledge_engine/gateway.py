"""Embedding gateway: the single cached path to vector embeddings."""

import asyncio
import logging
import re

from pydantic import BaseModel

from .base import BaseEmbedding
from .exceptions import EmbeddingError, EmbeddingTimeoutError, KnowledgeEngineError

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class GatewayStats(BaseModel):
    """Counters describing cache effectiveness."""

    hits: int = 0
    misses: int = 0
    external_calls: int = 0
    cache_size: int = 0


class EmbeddingGateway:
    """Cache-fronted access to an embedding capability.

    Vectors are cached by normalized text (lowercased, whitespace collapsed)
    and the normalized text is what the provider embeds, so two inputs that
    normalize the same always share one vector. Cache writes are
    insert-if-absent: when two concurrent requests embed the same text, the
    first vector written wins and both callers receive it.

    Failures surface as ``EmbeddingError`` (``EmbeddingTimeoutError`` when
    the time bound is exceeded). The gateway never substitutes zero vectors
    and never retries on its own.

    Example:
        ```python
        gateway = EmbeddingGateway(OpenAIEmbedding(), timeout=30.0)
        vectors = await gateway.embed_batch(["pricing plans", "refund policy"])
        ```
    """

    def __init__(self, embedding: BaseEmbedding, timeout: float = 30.0):
        """Initialize the gateway.

        Args:
            embedding: Embedding capability
            timeout: Seconds allowed per external call
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        self.embedding = embedding
        self.timeout = timeout
        self._cache: dict[str, list[float]] = {}
        self._hits = 0
        self._misses = 0
        self._external_calls = 0

    @staticmethod
    def normalize_text(text: str) -> str:
        """Cache key for a text: lowercased with whitespace collapsed."""
        return _WHITESPACE.sub(" ", text.lower()).strip()

    @property
    def dimension(self) -> int:
        return self.embedding.dimension

    async def embed(self, text: str) -> list[float]:
        """Embed one text, consulting the cache first.

        Args:
            text: Text to embed

        Returns:
            A copy of the cached vector

        Raises:
            ValueError: If the text is empty after normalization
            EmbeddingError: If the embedding capability fails
        """
        key = self._require_key(text)

        cached = self._cache.get(key)
        if cached is not None:
            self._hits += 1
            logger.debug(f"Embedding cache hit for {key[:40]!r}")
            return list(cached)

        self._misses += 1
        vector = await self._call(self.embedding.embed(key), count=1)
        self._check_vector(vector)
        return list(self._cache.setdefault(key, vector))

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts, sending only cache misses to the capability.

        Duplicate misses within one batch are submitted once.

        Args:
            texts: Texts to embed

        Returns:
            One vector per input, in input order
        """
        if not texts:
            return []

        keys = [self._require_key(text) for text in texts]

        missing: list[str] = []
        seen: set[str] = set()
        for key in keys:
            if key in self._cache:
                self._hits += 1
            elif key not in seen:
                seen.add(key)
                missing.append(key)
                self._misses += 1
            else:
                # Repeated miss within the batch is served from the one request
                self._hits += 1

        if missing:
            vectors = await self._call(self.embedding.embed_batch(missing), count=len(missing))
            if len(vectors) != len(missing):
                logger.error(f"Embedding capability returned {len(vectors)} vectors for {len(missing)} texts")
                raise EmbeddingError(
                    f"Embedding capability returned {len(vectors)} vectors for {len(missing)} texts"
                )
            for key, vector in zip(missing, vectors):
                self._check_vector(vector)
                self._cache.setdefault(key, vector)

        logger.debug(f"Embedded batch of {len(texts)} texts ({len(missing)} cache misses)")
        return [list(self._cache[key]) for key in keys]

    def seed(self, text: str, vector: list[float]) -> None:
        """Prime the cache with a vector computed earlier (e.g. a stored embedding).

        Existing entries are kept.
        """
        key = self.normalize_text(text)
        if not key:
            return
        self._check_vector(vector)
        self._cache.setdefault(key, list(vector))

    def clear_cache(self) -> None:
        """Drop all cached vectors (e.g. after a model change)."""
        size = len(self._cache)
        self._cache.clear()
        logger.info(f"Cleared embedding cache ({size} entries)")

    def stats(self) -> GatewayStats:
        return GatewayStats(
            hits=self._hits,
            misses=self._misses,
            external_calls=self._external_calls,
            cache_size=len(self._cache),
        )

    def __len__(self) -> int:
        return len(self._cache)

    def _require_key(self, text: str) -> str:
        key = self.normalize_text(text or "")
        if not key:
            raise ValueError("Cannot embed empty text")
        return key

    @staticmethod
    def _check_vector(vector: list[float]) -> None:
        if not vector:
            raise EmbeddingError("Embedding capability returned an empty vector")

    async def _call(self, awaitable, count: int):
        self._external_calls += 1
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Embedding request for {count} text(s) timed out after {self.timeout}s")
            raise EmbeddingTimeoutError(self.timeout, count=count)
        except KnowledgeEngineError:
            raise
        except Exception as e:
            logger.error(f"Embedding request for {count} text(s) failed: {e}")
            raise EmbeddingError(f"Embedding request failed: {e}") from e
