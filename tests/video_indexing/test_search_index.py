"""Unit tests for the Supabase search index."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from postgrest.exceptions import APIError

from src.video_indexing.exceptions import (
    CollectionNotFoundError,
    DocumentNotFoundError,
    SearchIndexError,
)
from src.video_indexing.search_index import SupabaseSearchIndex


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def embedding_service() -> MagicMock:
    service = MagicMock()
    service.embed_text = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return service


@pytest.fixture
def index(client: MagicMock, embedding_service: MagicMock) -> SupabaseSearchIndex:
    return SupabaseSearchIndex(client, embedding_service)


@pytest.mark.unit
class TestSupabaseSearchIndex:
    """Test collection and document operations."""

    @pytest.mark.asyncio
    async def test_ensure_collection_creates(
        self, client: MagicMock, index: SupabaseSearchIndex
    ) -> None:
        assert await index.ensure_collection("user-u-videos") == "user-u-videos"

        client.table.assert_called_with("collections")
        assert client.table.return_value.insert.call_args.args[0]["name"] == "user-u-videos"

    @pytest.mark.asyncio
    async def test_ensure_collection_tolerates_existing(
        self, client: MagicMock, index: SupabaseSearchIndex
    ) -> None:
        client.table.return_value.insert.return_value.execute.side_effect = APIError(
            {"message": "duplicate key value", "code": "23505"}
        )

        assert await index.ensure_collection("user-u-videos") == "user-u-videos"

    @pytest.mark.asyncio
    async def test_ensure_collection_other_errors(
        self, client: MagicMock, index: SupabaseSearchIndex
    ) -> None:
        client.table.return_value.insert.return_value.execute.side_effect = APIError(
            {"message": "permission denied", "code": "42501"}
        )

        with pytest.raises(SearchIndexError):
            await index.ensure_collection("user-u-videos")

    @pytest.mark.asyncio
    async def test_add_document_embeds_and_upserts(
        self, client: MagicMock, embedding_service: MagicMock, index: SupabaseSearchIndex
    ) -> None:
        await index.add_document("c", "vid-1-chunk0", "Timestamp: 00:00", {"chunkLevel": "1"})

        embedding_service.embed_text.assert_awaited_once_with("Timestamp: 00:00")
        upsert = client.table.return_value.upsert
        row = upsert.call_args.args[0]
        assert row["path"] == "vid-1-chunk0"
        assert row["embedding"] == [0.1, 0.2, 0.3]
        assert upsert.call_args.kwargs == {"on_conflict": "collection_name,path"}

    @pytest.mark.asyncio
    async def test_delete_missing_document(
        self, client: MagicMock, index: SupabaseSearchIndex
    ) -> None:
        delete = client.table.return_value.delete.return_value
        delete.eq.return_value.eq.return_value.execute.return_value = MagicMock(data=[])

        with pytest.raises(DocumentNotFoundError):
            await index.delete_document("c", "vid-1-chunk0")

    @pytest.mark.asyncio
    async def test_list_documents(self, client: MagicMock, index: SupabaseSearchIndex) -> None:
        select = client.table.return_value.select.return_value
        select.eq.return_value.execute.side_effect = [
            MagicMock(data=[{"name": "c"}]),
            MagicMock(data=[{"path": "vid-1-chunk0"}, {"path": "vid-1-chunk1"}]),
        ]

        assert await index.list_documents("c") == ["vid-1-chunk0", "vid-1-chunk1"]

    @pytest.mark.asyncio
    async def test_list_documents_missing_collection(
        self, client: MagicMock, index: SupabaseSearchIndex
    ) -> None:
        select = client.table.return_value.select.return_value
        select.eq.return_value.execute.return_value = MagicMock(data=[])

        with pytest.raises(CollectionNotFoundError):
            await index.list_documents("c")

    @pytest.mark.asyncio
    async def test_delete_missing_collection(
        self, client: MagicMock, index: SupabaseSearchIndex
    ) -> None:
        delete = client.table.return_value.delete.return_value
        delete.eq.return_value.execute.return_value = MagicMock(data=[])

        with pytest.raises(CollectionNotFoundError):
            await index.delete_collection("c")
