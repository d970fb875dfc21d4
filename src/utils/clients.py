"""Client initialization utilities.

Builds the external SDK clients (Supabase, OpenAI-compatible embeddings,
Supadata) used by the indexing pipeline from an ``IndexingConfig``.
"""

from openai import AsyncOpenAI
from supabase import Client, create_client
from supadata import Supadata

from src.video_indexing.config import IndexingConfig


def get_supabase_client(config: IndexingConfig) -> Client:
    """Create the Supabase client backing the video store and search index.

    Raises:
        ValueError: If the Supabase URL or service key is missing.
    """
    if not config.supabase_url or not config.supabase_key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables are required")

    return create_client(config.supabase_url, config.supabase_key)


def get_embedding_client(config: IndexingConfig) -> AsyncOpenAI:
    """Create an OpenAI-compatible embedding client for the configured provider.

    Ollama does not check API keys, so a placeholder is sent for it.
    """
    if config.embedding_provider == "ollama":
        return AsyncOpenAI(base_url=config.embedding_base_url, api_key="ollama")

    return AsyncOpenAI(
        base_url=config.embedding_base_url,
        api_key=config.embedding_api_key,
    )


def get_supadata_clients(config: IndexingConfig) -> tuple[Supadata, Supadata | None]:
    """Create the primary and (optional) alternate-identity Supadata clients.

    Returns:
        Tuple of (primary client, alternate client or None when no fallback
        key is configured).

    Raises:
        ValueError: If SUPADATA_API_KEY is missing.
    """
    if not config.supadata_api_key:
        raise ValueError("SUPADATA_API_KEY environment variable is required")

    primary = Supadata(api_key=config.supadata_api_key)
    alternate = (
        Supadata(api_key=config.supadata_fallback_api_key)
        if config.supadata_fallback_api_key
        else None
    )
    return primary, alternate
