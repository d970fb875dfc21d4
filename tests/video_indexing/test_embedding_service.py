"""Unit tests for the embedding service."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from src.video_indexing.config import IndexingConfig
from src.video_indexing.embedding_service import EmbeddingService
from src.video_indexing.exceptions import SearchIndexError


@pytest.fixture
def config() -> IndexingConfig:
    return IndexingConfig(embedding_model="text-embedding-3-small", embedding_api_key="test")


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.embeddings.create = AsyncMock(
        return_value=MagicMock(data=[MagicMock(embedding=[0.5] * 1536)])
    )
    return client


@pytest.mark.unit
class TestEmbeddingService:
    """Test embedding generation for indexed documents."""

    @pytest.mark.asyncio
    async def test_embed_text(self, config: IndexingConfig, client: MagicMock) -> None:
        service = EmbeddingService(config, client=client)

        embedding = await service.embed_text("Timestamp: 00:00 - 00:30")

        assert len(embedding) == 1536
        client.embeddings.create.assert_awaited_once_with(
            input="Timestamp: 00:00 - 00:30", model="text-embedding-3-small"
        )

    @pytest.mark.asyncio
    async def test_blank_document_is_rejected(
        self, config: IndexingConfig, client: MagicMock
    ) -> None:
        service = EmbeddingService(config, client=client)

        with pytest.raises(SearchIndexError):
            await service.embed_text("   ")

        client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_errors_become_index_errors(
        self, config: IndexingConfig, client: MagicMock
    ) -> None:
        client.embeddings.create.side_effect = OpenAIError("quota exceeded")
        service = EmbeddingService(config, client=client)

        with pytest.raises(SearchIndexError, match="quota exceeded") as exc_info:
            await service.embed_text("text")

        assert isinstance(exc_info.value.__cause__, OpenAIError)
