"""Unit tests for batch indexing and collection management."""

import pytest
from fakes import FakeSearchIndex

from src.video_indexing.indexing_service import (
    IndexingService,
    collection_name_for,
    create_page_content,
    format_timestamp,
    format_timestamp_range,
)
from src.video_indexing.schemas import Chunk

COLLECTION = "user-user-1-videos"


def make_chunk(index: int, level: str = "1", video_id: str = "vid-1") -> Chunk:
    return Chunk(
        text=f"Chunk number {index}",
        start=index * 30.0,
        end=index * 30.0 + 45.0,
        duration=45.0,
        segment_count=3,
        chunk_index=index,
        chunk_level=level,
        user_id="user-1",
        video_id=video_id,
        video_title="Title",
        language="en",
    )


@pytest.mark.unit
class TestFormatting:
    """Test page content helpers."""

    def test_collection_name(self) -> None:
        assert collection_name_for("abc") == "user-abc-videos"

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(0, "00:00"), (59.9, "00:59"), (125, "02:05"), (3725, "62:05")],
    )
    def test_format_timestamp(self, seconds: float, expected: str) -> None:
        assert format_timestamp(seconds) == expected

    def test_format_timestamp_range(self) -> None:
        assert format_timestamp_range(65, 130) == "01:05 - 02:10"

    def test_page_content(self) -> None:
        assert create_page_content(make_chunk(2)) == (
            "Timestamp: 01:00 - 01:45\nContent: Chunk number 2"
        )


@pytest.mark.unit
class TestBatchIndex:
    """Test bounded-concurrency indexing with partial failure."""

    @pytest.fixture
    def index(self) -> FakeSearchIndex:
        index = FakeSearchIndex()
        index.collections[COLLECTION] = {}
        return index

    @pytest.mark.asyncio
    async def test_indexes_every_chunk_with_metadata(self, index: FakeSearchIndex) -> None:
        service = IndexingService(index)
        chunks = [make_chunk(0), make_chunk(1), make_chunk(0, level="2")]

        paths = await service.batch_index(chunks, COLLECTION)

        assert paths == ["vid-1-chunk0", "vid-1-chunk1", "vid-1-level2-chunk0"]
        content, metadata = index.collections[COLLECTION]["vid-1-chunk1"]
        assert content.startswith("Timestamp: 00:30 - 01:15")
        assert metadata["chunkLevel"] == "1"
        assert metadata["chunkIndex"] == "1"
        assert metadata["userId"] == "user-1"
        assert all(isinstance(value, str) for value in metadata.values())

    @pytest.mark.asyncio
    async def test_partial_failure_returns_successful_paths(self) -> None:
        index = FakeSearchIndex(fail_paths={"vid-1-chunk2"})
        index.collections[COLLECTION] = {}
        service = IndexingService(index)

        paths = await service.batch_index([make_chunk(i) for i in range(5)], COLLECTION)

        assert len(paths) == 4
        assert "vid-1-chunk2" not in paths

    @pytest.mark.asyncio
    async def test_all_failures_return_empty_list(self) -> None:
        index = FakeSearchIndex(fail_all=True)
        service = IndexingService(index)

        paths = await service.batch_index([make_chunk(i) for i in range(7)], COLLECTION)

        assert paths == []

    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_cap(self, index: FakeSearchIndex) -> None:
        service = IndexingService(index, concurrency=5)

        paths = await service.batch_index([make_chunk(i) for i in range(12)], COLLECTION)

        assert len(paths) == 12
        assert index.max_in_flight == 5

    @pytest.mark.asyncio
    async def test_empty_input(self, index: FakeSearchIndex) -> None:
        assert await IndexingService(index).batch_index([], COLLECTION) == []

    def test_rejects_zero_concurrency(self, index: FakeSearchIndex) -> None:
        with pytest.raises(ValueError):
            IndexingService(index, concurrency=0)


@pytest.mark.unit
class TestCollections:
    """Test collection resolution and deletion helpers."""

    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(self) -> None:
        index = FakeSearchIndex()
        service = IndexingService(index)

        first = await service.get_or_create_user_collection("user-1")
        second = await service.get_or_create_user_collection("user-1")

        assert first == second == COLLECTION
        assert list(index.collections) == [COLLECTION]

    @pytest.mark.asyncio
    async def test_delete_video_documents_handles_every_path_format(self) -> None:
        index = FakeSearchIndex()
        index.collections[COLLECTION] = {
            path: ("content", {})
            for path in [
                "vid-1-chunk0",
                "vid-1-chunk1",
                "vid-1-level2-chunk0",
                "vid-1-level1-chunk4",
                "vid-1-7",
                "vid-2-chunk0",
                "vid-2-3",
                "notes",
            ]
        }
        service = IndexingService(index)

        deleted = await service.delete_video_documents("vid-1", COLLECTION)

        assert deleted == 5
        assert sorted(index.collections[COLLECTION]) == ["notes", "vid-2-3", "vid-2-chunk0"]

    @pytest.mark.asyncio
    async def test_delete_from_missing_collection_is_success(self) -> None:
        service = IndexingService(FakeSearchIndex())

        assert await service.delete_video_documents("vid-1", COLLECTION) == 0

    @pytest.mark.asyncio
    async def test_delete_user_collection(self) -> None:
        index = FakeSearchIndex()
        index.collections[COLLECTION] = {}
        service = IndexingService(index)

        assert await service.delete_user_collection("user-1") is True
        assert await service.delete_user_collection("user-1") is False
        assert index.collections == {}
