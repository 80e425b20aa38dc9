"""Base classes and abstract interfaces for knowledge engine components."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .items import ContentChunk, StoredKnowledgeItem


class BaseEmbedding(ABC):
    """Abstract base class for embedding capabilities.

    Implementations raise on failure; they must never return placeholder
    vectors.
    """

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts.

        Args:
            texts: Texts to embed

        Returns:
            One vector per input, in input order
        """
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors."""
        pass


class BaseChunker(ABC):
    """Abstract base class for content chunkers."""

    @abstractmethod
    def chunk(
        self,
        content: str,
        title: Optional[str] = None,
        context: Optional[str] = None,
    ) -> list["ContentChunk"]:
        """Split content into chunks.

        Args:
            content: Raw content blob
            title: Title used when no structural title can be derived
            context: Company/source identifier prefixed to each chunk

        Returns:
            List of chunks (empty for empty content)
        """
        pass


class BaseKnowledgeRepository(ABC):
    """Abstract base class for knowledge item storage.

    Items are partitioned by organization and chatbot configuration.
    """

    @abstractmethod
    async def store_knowledge_items(
        self,
        organization_id: str,
        config_id: str,
        items: list["StoredKnowledgeItem"],
    ) -> None:
        """Insert or replace knowledge items with their embeddings."""
        pass

    @abstractmethod
    async def knowledge_item_exists(
        self,
        organization_id: str,
        config_id: str,
        knowledge_item_id: str,
        content_hash: str,
    ) -> bool:
        """Return True if an item with this id and content hash is stored."""
        pass

    @abstractmethod
    async def delete_knowledge_items_by_source(
        self,
        organization_id: str,
        config_id: str,
        source_type: str,
        source_url: Optional[str] = None,
    ) -> int:
        """Delete items of a source type (optionally one URL).

        Returns:
            Number of deleted items
        """
        pass

    @abstractmethod
    async def delete_knowledge_items(
        self,
        organization_id: str,
        config_id: str,
        knowledge_item_ids: list[str],
    ) -> int:
        """Delete items by id; unknown ids are ignored.

        Returns:
            Number of deleted items
        """
        pass

    @abstractmethod
    async def list_knowledge_items(
        self,
        organization_id: str,
        config_id: str,
    ) -> list["StoredKnowledgeItem"]:
        """Return all stored items for a configuration, in insertion order."""
        pass
