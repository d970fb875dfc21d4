"""Embedding service for indexed transcript documents via OpenAI-compatible APIs."""

from openai import AsyncOpenAI, OpenAIError

from src.utils.clients import get_embedding_client
from src.utils.logging import get_logger

from .config import IndexingConfig
from .exceptions import SearchIndexError

logger = get_logger(__name__)


class EmbeddingService:
    """Embeds the page content of each document the search index stores.

    Supports OpenAI, Ollama and OpenRouter through OpenAI-compatible APIs.
    """

    def __init__(self, config: IndexingConfig, client: AsyncOpenAI | None = None):
        self.config = config
        self.client = client or get_embedding_client(config)
        logger.info(
            "embedding_service_initialized",
            provider=config.embedding_provider,
            model=config.embedding_model,
        )

    async def embed_text(self, text: str) -> list[float]:
        """Embed one document's page content.

        Raises:
            SearchIndexError: The content is blank or the provider call failed.
                Batch indexing treats either as a failed push for that chunk.
        """
        if not text.strip():
            raise SearchIndexError("Cannot embed an empty document")

        try:
            response = await self.client.embeddings.create(
                input=text,
                model=self.config.embedding_model,
            )
        except OpenAIError as e:
            logger.exception(
                "embedding_failed",
                model=self.config.embedding_model,
                text_length=len(text),
                error_type=type(e).__name__,
            )
            raise SearchIndexError(f"Embedding request failed: {e}") from e

        embedding = response.data[0].embedding
        logger.debug("embedding_generated", text_length=len(text), embedding_dim=len(embedding))
        return embedding
