"""Configuration module for the video indexing pipeline."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class IndexingConfig(BaseModel):
    """Configuration for the video transcript indexing pipeline.

    Covers transcript extraction, chunking, batch indexing, durable step
    execution and the external service credentials. Every setting can be
    overridden via environment variables or passed explicitly.
    """

    # Supadata API settings (transcript source)
    supadata_api_key: str = Field(
        default_factory=lambda: os.getenv("SUPADATA_API_KEY", "")
    )
    supadata_fallback_api_key: str = Field(
        default_factory=lambda: os.getenv("SUPADATA_FALLBACK_API_KEY", "")
    )

    # Transcript extraction policy
    transcript_max_retries: int = Field(
        default_factory=lambda: int(os.getenv("TRANSCRIPT_MAX_RETRIES", "3")), ge=1
    )
    transcript_backoff_base_seconds: float = Field(
        default_factory=lambda: float(os.getenv("TRANSCRIPT_BACKOFF_BASE_SECONDS", "2")),
        ge=0,
    )
    transcript_cache_ttl_seconds: int = Field(
        default_factory=lambda: int(os.getenv("TRANSCRIPT_CACHE_TTL_SECONDS", "3600"))
    )
    transcript_language: str | None = Field(
        default_factory=lambda: os.getenv("TRANSCRIPT_LANGUAGE") or None
    )

    # Level 1 chunking settings (estimated tokens)
    target_tokens: int = Field(
        default_factory=lambda: int(os.getenv("CHUNK_TARGET_TOKENS", "375")), gt=0
    )
    min_tokens: int = Field(
        default_factory=lambda: int(os.getenv("CHUNK_MIN_TOKENS", "250")), gt=0
    )
    max_tokens: int = Field(
        default_factory=lambda: int(os.getenv("CHUNK_MAX_TOKENS", "500")), gt=0
    )
    overlap_percentage: float = Field(
        default_factory=lambda: float(os.getenv("CHUNK_OVERLAP_PERCENTAGE", "0.20")),
        ge=0,
        lt=1,
    )

    # Batch indexing
    index_concurrency: int = Field(
        default_factory=lambda: int(os.getenv("INDEX_CONCURRENCY", "5")), ge=1
    )

    # Durable step execution
    step_max_retries: int = Field(
        default_factory=lambda: int(os.getenv("STEP_MAX_RETRIES", "3")), ge=0
    )
    ingestion_step_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("INGESTION_STEP_TIMEOUT_SECONDS", "600"))
    )
    deletion_step_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("DELETION_STEP_TIMEOUT_SECONDS", "300"))
    )
    step_retry_backoff_seconds: float = Field(
        default_factory=lambda: float(os.getenv("STEP_RETRY_BACKOFF_SECONDS", "1.0")),
        ge=0,
    )

    # Embedding settings used by the Supabase search index
    embedding_provider: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_PROVIDER", "openai")
    )
    embedding_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_BASE_URL", "https://api.openai.com/v1"
        )
    )
    embedding_api_key: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_API_KEY", "")
    )
    embedding_model: str = Field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_MODEL_CHOICE", "text-embedding-3-small"
        )
    )

    # Database settings
    supabase_url: str = Field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = Field(
        default_factory=lambda: os.getenv("SUPABASE_SERVICE_KEY", "")
    )

    @model_validator(mode="after")
    def _check_token_bounds(self) -> "IndexingConfig":
        if not self.min_tokens <= self.target_tokens <= self.max_tokens:
            raise ValueError(
                "chunk token limits must satisfy min_tokens <= target_tokens <= max_tokens"
            )
        return self


def get_config() -> IndexingConfig:
    """Get validated configuration instance.

    Returns:
        IndexingConfig: Validated configuration object with all settings.

    Raises:
        ValidationError: If environment variables hold invalid values.
    """
    return IndexingConfig()
