"""Knowledge repository implementations."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from .base import BaseKnowledgeRepository
from .items import KnowledgeCategory, SourceType, StoredKnowledgeItem

logger = logging.getLogger(__name__)


class MemoryKnowledgeRepository(BaseKnowledgeRepository):
    """In-memory repository for testing and small deployments.

    Items are kept per ``(organization_id, config_id)`` partition in
    insertion order; storing an existing id replaces it in place.
    """

    def __init__(self) -> None:
        self._partitions: dict[tuple[str, str], dict[str, StoredKnowledgeItem]] = {}

    def _partition(self, organization_id: str, config_id: str) -> dict[str, StoredKnowledgeItem]:
        return self._partitions.setdefault((organization_id, config_id), {})

    async def store_knowledge_items(
        self,
        organization_id: str,
        config_id: str,
        items: list[StoredKnowledgeItem],
    ) -> None:
        partition = self._partition(organization_id, config_id)
        for item in items:
            partition[item.knowledge_item_id] = item
        logger.debug(f"Stored {len(items)} knowledge items for {organization_id}/{config_id}")

    async def knowledge_item_exists(
        self,
        organization_id: str,
        config_id: str,
        knowledge_item_id: str,
        content_hash: str,
    ) -> bool:
        stored = self._partition(organization_id, config_id).get(knowledge_item_id)
        return stored is not None and stored.content_hash == content_hash

    async def delete_knowledge_items_by_source(
        self,
        organization_id: str,
        config_id: str,
        source_type: str,
        source_url: Optional[str] = None,
    ) -> int:
        partition = self._partition(organization_id, config_id)
        doomed = [
            item_id for item_id, item in partition.items()
            if item.source_type is not None
            and item.source_type.value == source_type
            and (source_url is None or item.source_url == source_url)
        ]
        for item_id in doomed:
            del partition[item_id]
        return len(doomed)

    async def delete_knowledge_items(
        self,
        organization_id: str,
        config_id: str,
        knowledge_item_ids: list[str],
    ) -> int:
        partition = self._partition(organization_id, config_id)
        deleted = 0
        for item_id in dict.fromkeys(knowledge_item_ids):
            if partition.pop(item_id, None) is not None:
                deleted += 1
        return deleted

    async def list_knowledge_items(
        self,
        organization_id: str,
        config_id: str,
    ) -> list[StoredKnowledgeItem]:
        return list(self._partition(organization_id, config_id).values())


class ChromaKnowledgeRepository(BaseKnowledgeRepository):
    """ChromaDB-backed repository.

    One collection holds every partition; ``organization_id`` and
    ``config_id`` are stored as metadata and used in ``where`` filters.
    Requires the 'vector' extra to be installed.
    """

    def __init__(
        self,
        collection_name: str = "knowledge_items",
        persist_directory: Optional[str] = None,
    ):
        """Initialize the ChromaDB repository.

        Args:
            collection_name: Name of the ChromaDB collection
            persist_directory: Directory for persistent storage (None for in-memory)
        """
        self.collection_name = collection_name
        self.persist_directory = persist_directory
        self._client = None
        self._collection = None

    def _get_client(self):
        """Get or create the ChromaDB client."""
        if self._client is None:
            try:
                import chromadb

                if self.persist_directory:
                    self._client = chromadb.PersistentClient(
                        path=self.persist_directory,
                    )
                else:
                    self._client = chromadb.Client()

            except ImportError:
                raise ImportError(
                    "ChromaDB repository requires 'chromadb'. "
                    "Install it with: pip install chromadb"
                )
        return self._client

    def _get_collection(self):
        """Get or create the collection."""
        if self._collection is None:
            client = self._get_client()
            self._collection = client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        return self._collection

    @staticmethod
    def _record_id(organization_id: str, config_id: str, knowledge_item_id: str) -> str:
        return f"{organization_id}:{config_id}:{knowledge_item_id}"

    @staticmethod
    def _where(organization_id: str, config_id: str, **extra: Any) -> dict[str, Any]:
        clauses = [{"organization_id": organization_id}, {"config_id": config_id}]
        clauses.extend({key: value} for key, value in extra.items())
        return {"$and": clauses}

    async def _run(self, func):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    async def store_knowledge_items(
        self,
        organization_id: str,
        config_id: str,
        items: list[StoredKnowledgeItem],
    ) -> None:
        if not items:
            return

        collection = self._get_collection()

        ids = []
        documents = []
        metadatas = []
        embeddings = []
        for item in items:
            ids.append(self._record_id(organization_id, config_id, item.knowledge_item_id))
            documents.append(item.content)
            embeddings.append(item.embedding)

            # Chroma metadata values must be scalars
            metadatas.append({
                "organization_id": organization_id,
                "config_id": config_id,
                "knowledge_item_id": item.knowledge_item_id,
                "title": item.title,
                "category": item.category.value,
                "tags": ",".join(item.tags),
                "source": item.source,
                "source_type": item.source_type.value if item.source_type else "",
                "source_url": item.source_url or "",
                "content_hash": item.content_hash,
                "last_updated": item.last_updated.isoformat(),
            })

        await self._run(lambda: collection.upsert(
            ids=ids,
            documents=documents,
            embeddings=embeddings,
            metadatas=metadatas,
        ))

        logger.debug(f"Stored {len(ids)} knowledge items in ChromaDB collection '{self.collection_name}'")

    async def knowledge_item_exists(
        self,
        organization_id: str,
        config_id: str,
        knowledge_item_id: str,
        content_hash: str,
    ) -> bool:
        collection = self._get_collection()
        record_id = self._record_id(organization_id, config_id, knowledge_item_id)

        results = await self._run(lambda: collection.get(ids=[record_id], include=["metadatas"]))

        if not results or not results["ids"]:
            return False
        metadata = results["metadatas"][0] if results["metadatas"] else {}
        return metadata.get("content_hash") == content_hash

    async def delete_knowledge_items_by_source(
        self,
        organization_id: str,
        config_id: str,
        source_type: str,
        source_url: Optional[str] = None,
    ) -> int:
        collection = self._get_collection()

        extra = {"source_type": source_type}
        if source_url is not None:
            extra["source_url"] = source_url
        where = self._where(organization_id, config_id, **extra)

        matches = await self._run(lambda: collection.get(where=where, include=[]))
        ids = matches["ids"] if matches else []
        if ids:
            await self._run(lambda: collection.delete(ids=ids))

        logger.debug(f"Deleted {len(ids)} {source_type} items for {organization_id}/{config_id}")
        return len(ids)

    async def delete_knowledge_items(
        self,
        organization_id: str,
        config_id: str,
        knowledge_item_ids: list[str],
    ) -> int:
        if not knowledge_item_ids:
            return 0

        collection = self._get_collection()
        record_ids = [
            self._record_id(organization_id, config_id, item_id)
            for item_id in dict.fromkeys(knowledge_item_ids)
        ]

        existing = await self._run(lambda: collection.get(ids=record_ids, include=[]))
        ids = existing["ids"] if existing else []
        if ids:
            await self._run(lambda: collection.delete(ids=ids))

        logger.debug(f"Deleted {len(ids)} knowledge items for {organization_id}/{config_id}")
        return len(ids)

    async def list_knowledge_items(
        self,
        organization_id: str,
        config_id: str,
    ) -> list[StoredKnowledgeItem]:
        collection = self._get_collection()
        where = self._where(organization_id, config_id)

        results = await self._run(lambda: collection.get(
            where=where,
            include=["documents", "metadatas", "embeddings"],
        ))

        items = []
        if results and results["ids"]:
            for i in range(len(results["ids"])):
                metadata = results["metadatas"][i]
                tags = metadata.get("tags", "")
                items.append(StoredKnowledgeItem(
                    knowledge_item_id=metadata["knowledge_item_id"],
                    title=metadata.get("title", ""),
                    content=results["documents"][i],
                    category=KnowledgeCategory(metadata.get("category", "general")),
                    tags=tags.split(",") if tags else [],
                    source=metadata.get("source", "unknown"),
                    source_type=SourceType(metadata["source_type"]) if metadata.get("source_type") else None,
                    source_url=metadata.get("source_url") or None,
                    embedding=[float(x) for x in results["embeddings"][i]],
                    content_hash=metadata["content_hash"],
                    last_updated=datetime.fromisoformat(metadata["last_updated"]),
                ))

        return items
