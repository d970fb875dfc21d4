"""Search index collaborator: per-user collections of embedded transcript documents."""

import asyncio
from datetime import UTC, datetime
from typing import Any, Protocol

from postgrest.exceptions import APIError
from supabase import Client

from src.utils.logging import get_logger

from .embedding_service import EmbeddingService
from .exceptions import CollectionNotFoundError, DocumentNotFoundError, SearchIndexError

logger = get_logger(__name__)

# Postgres error code for unique_violation
UNIQUE_VIOLATION = "23505"


class SearchIndex(Protocol):
    """Contract the pipeline relies on; ranking and embedding stay behind it."""

    async def ensure_collection(self, name: str) -> str:
        """Create the collection unless it already exists; return its name."""
        ...

    async def add_document(
        self, collection_name: str, path: str, content: str, metadata: dict[str, str]
    ) -> None: ...

    async def delete_document(self, collection_name: str, path: str) -> None:
        """Raise ``DocumentNotFoundError`` when the path is absent."""
        ...

    async def list_documents(self, collection_name: str) -> list[str]:
        """Raise ``CollectionNotFoundError`` when the collection is absent."""
        ...

    async def delete_collection(self, name: str) -> None:
        """Raise ``CollectionNotFoundError`` when the collection is absent."""
        ...


class SupabaseSearchIndex:
    """Search index stored in Supabase with pgvector embeddings.

    Collections live in the ``collections`` table and documents in
    ``transcript_documents``, keyed by ``(collection_name, path)`` so indexing
    the same chunk twice overwrites instead of duplicating.
    """

    def __init__(self, client: Client, embedding_service: EmbeddingService):
        self.client = client
        self.embedding_service = embedding_service
        logger.info("search_index_initialized", backend="supabase")

    async def _execute(self, query: Any) -> Any:
        # The Supabase client is synchronous; keep the event loop free while it waits
        return await asyncio.to_thread(query.execute)

    async def ensure_collection(self, name: str) -> str:
        try:
            await self._execute(
                self.client.table("collections").insert(
                    {"name": name, "created_at": datetime.now(UTC).isoformat()}
                )
            )
            logger.info("collection_created", collection_name=name)
        except APIError as e:
            if e.code != UNIQUE_VIOLATION:
                logger.exception(
                    "collection_create_failed",
                    collection_name=name,
                    error_type=type(e).__name__,
                )
                raise SearchIndexError(f"Failed to create collection {name}: {e.message}") from e
            logger.info("collection_already_exists", collection_name=name)
        return name

    async def add_document(
        self, collection_name: str, path: str, content: str, metadata: dict[str, str]
    ) -> None:
        embedding = await self.embedding_service.embed_text(content)
        try:
            await self._execute(
                self.client.table("transcript_documents").upsert(
                    {
                        "collection_name": collection_name,
                        "path": path,
                        "content": content,
                        "metadata": metadata,
                        "embedding": embedding,
                    },
                    on_conflict="collection_name,path",
                )
            )
        except APIError as e:
            raise SearchIndexError(f"Failed to index {collection_name}/{path}: {e.message}") from e
        logger.debug("document_indexed", collection_name=collection_name, path=path)

    async def delete_document(self, collection_name: str, path: str) -> None:
        try:
            response = await self._execute(
                self.client.table("transcript_documents")
                .delete()
                .eq("collection_name", collection_name)
                .eq("path", path)
            )
        except APIError as e:
            raise SearchIndexError(f"Failed to delete {collection_name}/{path}: {e.message}") from e

        if not response.data:
            raise DocumentNotFoundError(collection_name, path)
        logger.debug("document_deleted", collection_name=collection_name, path=path)

    async def list_documents(self, collection_name: str) -> list[str]:
        try:
            collection = await self._execute(
                self.client.table("collections").select("name").eq("name", collection_name)
            )
            if not collection.data:
                raise CollectionNotFoundError(collection_name)

            response = await self._execute(
                self.client.table("transcript_documents")
                .select("path")
                .eq("collection_name", collection_name)
            )
        except APIError as e:
            raise SearchIndexError(f"Failed to list {collection_name}: {e.message}") from e

        return [row["path"] for row in response.data or []]

    async def delete_collection(self, name: str) -> None:
        try:
            await self._execute(
                self.client.table("transcript_documents").delete().eq("collection_name", name)
            )
            response = await self._execute(
                self.client.table("collections").delete().eq("name", name)
            )
        except APIError as e:
            raise SearchIndexError(f"Failed to delete collection {name}: {e.message}") from e

        if not response.data:
            raise CollectionNotFoundError(name)
        logger.info("collection_deleted", collection_name=name)
