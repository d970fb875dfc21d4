"""Batch indexing of chunks into per-user search index collections."""

import asyncio

from src.utils.logging import get_logger

from .chunk_refs import belongs_to_video, chunk_path
from .exceptions import CollectionNotFoundError, DocumentNotFoundError
from .schemas import Chunk
from .search_index import SearchIndex

logger = get_logger(__name__)

DEFAULT_INDEX_CONCURRENCY = 5


# ==============================================================================
# Helper Functions
# ==============================================================================


def collection_name_for(user_id: str) -> str:
    """Deterministic collection name for a user's videos."""
    return f"user-{user_id}-videos"


def format_timestamp(seconds: float) -> str:
    """Format seconds as MM:SS (minutes are not wrapped into hours).

    Examples:
        >>> format_timestamp(125)
        "02:05"
        >>> format_timestamp(3725.9)
        "62:05"
    """
    minutes = int(seconds // 60)
    remaining = int(seconds % 60)
    return f"{minutes:02d}:{remaining:02d}"


def format_timestamp_range(start: float, end: float) -> str:
    return f"{format_timestamp(start)} - {format_timestamp(end)}"


def create_page_content(chunk: Chunk) -> str:
    """Searchable document text for a chunk, prefixed with its time range."""
    return "\n".join(
        [
            f"Timestamp: {format_timestamp_range(chunk.start, chunk.end)}",
            f"Content: {chunk.text}",
        ]
    )


# ==============================================================================
# Indexing Service
# ==============================================================================


class IndexingService:
    """Pushes chunks to the search index and manages per-user collections."""

    def __init__(self, index: SearchIndex, concurrency: int = DEFAULT_INDEX_CONCURRENCY):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.index = index
        self.concurrency = concurrency

    async def get_or_create_user_collection(self, user_id: str) -> str:
        """Resolve the user's collection, creating it when missing.

        Creating a collection that already exists counts as success, so
        concurrent jobs for the same user need no lock.
        """
        name = collection_name_for(user_id)
        await self.index.ensure_collection(name)
        logger.info("user_collection_resolved", user_id=user_id, collection_name=name)
        return name

    async def index_chunk(self, chunk: Chunk, collection_name: str) -> str:
        """Index a single chunk and return its document path."""
        path = chunk_path(chunk)
        await self.index.add_document(
            collection_name, path, create_page_content(chunk), chunk.to_metadata()
        )
        return path

    async def _try_index_chunk(self, chunk: Chunk, collection_name: str) -> str | None:
        try:
            return await self.index_chunk(chunk, collection_name)
        except Exception as e:
            logger.exception(
                "chunk_index_failed",
                collection_name=collection_name,
                video_id=chunk.video_id,
                chunk_index=chunk.chunk_index,
                chunk_level=chunk.chunk_level,
                error_type=type(e).__name__,
            )
            return None

    async def batch_index(self, chunks: list[Chunk], collection_name: str) -> list[str]:
        """Index chunks in windows of ``concurrency`` concurrent calls.

        Each window is awaited fully before the next one starts. A chunk that
        fails is logged and left out of the result; it never aborts its
        siblings.

        Args:
            chunks: Chunks to index, in any level order.
            collection_name: Target collection.

        Returns:
            Paths of the chunks that were indexed, in input order.
        """
        logger.info(
            "batch_index_started",
            collection_name=collection_name,
            chunks=len(chunks),
            concurrency=self.concurrency,
        )

        indexed: list[str] = []
        for i in range(0, len(chunks), self.concurrency):
            window = chunks[i : i + self.concurrency]
            results = await asyncio.gather(
                *[self._try_index_chunk(chunk, collection_name) for chunk in window]
            )
            indexed.extend(path for path in results if path is not None)

            logger.debug(
                "batch_window_completed",
                window_num=i // self.concurrency + 1,
                count=len(window),
                indexed=sum(1 for path in results if path is not None),
            )

        failed = len(chunks) - len(indexed)
        if failed:
            logger.warning(
                "batch_index_partial",
                collection_name=collection_name,
                indexed=len(indexed),
                failed=failed,
            )
        logger.info(
            "batch_index_completed",
            collection_name=collection_name,
            indexed=len(indexed),
            total=len(chunks),
        )
        return indexed

    async def delete_video_documents(self, video_id: str, collection_name: str) -> int:
        """Delete every document of a video from a collection.

        Handles chunked and legacy segment paths alike. A missing collection
        or document is treated as already deleted.

        Returns:
            Number of documents actually deleted.
        """
        try:
            paths = await self.index.list_documents(collection_name)
        except CollectionNotFoundError:
            logger.info("collection_not_found", collection_name=collection_name, video_id=video_id)
            return 0

        targets = [path for path in paths if belongs_to_video(path, video_id)]
        deleted = 0
        for path in targets:
            try:
                await self.index.delete_document(collection_name, path)
                deleted += 1
            except DocumentNotFoundError:
                logger.info("document_already_deleted", collection_name=collection_name, path=path)

        logger.info(
            "video_documents_deleted",
            video_id=video_id,
            collection_name=collection_name,
            deleted=deleted,
            matched=len(targets),
        )
        return deleted

    async def delete_user_collection(self, user_id: str) -> bool:
        """Delete the user's collection.

        Returns:
            True when the collection was removed, False when it did not exist.
        """
        name = collection_name_for(user_id)
        try:
            await self.index.delete_collection(name)
        except CollectionNotFoundError:
            logger.info("collection_not_found", collection_name=name, user_id=user_id)
            return False

        logger.info("user_collection_deleted", collection_name=name, user_id=user_id)
        return True
