"""Wiring of the indexing pipeline's services and collaborators."""

from src.utils.clients import get_supabase_client, get_supadata_clients
from src.utils.logging import get_logger

from .chunking_service import ChunkingConfig, ChunkingService
from .config import IndexingConfig, get_config
from .embedding_service import EmbeddingService
from .events import EventDispatcher
from .indexing_service import IndexingService
from .job_runner import JobRunner
from .orchestrator import JobOrchestrator
from .search_index import SupabaseSearchIndex
from .step_ledger import InMemoryStepLedger, StepLedger, SupabaseStepLedger
from .storage_service import SupabaseVideoStore
from .transcript_service import SupadataTranscriptSource, TranscriptService

logger = get_logger(__name__)


class IndexingPipeline:
    """Builds every service from configuration and subscribes the jobs to events.

    ``dispatcher`` is the entry point: send it an ``Event`` to run a job.
    """

    def __init__(self, config: IndexingConfig | None = None, durable: bool = True):
        """Initialize pipeline with all required services.

        Args:
            config: Configuration object. If None, loads from environment.
            durable: Record completed steps in Supabase. When False the step
                ledger only lives as long as the process.
        """
        self.config = config or get_config()

        supabase = get_supabase_client(self.config)
        primary, alternate = get_supadata_clients(self.config)

        self.store = SupabaseVideoStore(supabase)
        self.transcript_service = TranscriptService(
            SupadataTranscriptSource(
                primary,
                alternate,
                cache_ttl_seconds=self.config.transcript_cache_ttl_seconds,
            ),
            max_retries=self.config.transcript_max_retries,
            backoff_base_seconds=self.config.transcript_backoff_base_seconds,
            language=self.config.transcript_language,
        )
        self.chunking_service = ChunkingService(ChunkingConfig.from_indexing_config(self.config))
        self.indexing_service = IndexingService(
            SupabaseSearchIndex(supabase, EmbeddingService(self.config)),
            concurrency=self.config.index_concurrency,
        )

        ledger: StepLedger = SupabaseStepLedger(supabase) if durable else InMemoryStepLedger()
        self.runner = JobRunner(
            ledger,
            max_retries=self.config.step_max_retries,
            retry_backoff_seconds=self.config.step_retry_backoff_seconds,
        )

        self.dispatcher = EventDispatcher()
        self.orchestrator = JobOrchestrator(
            store=self.store,
            transcripts=self.transcript_service,
            chunking=self.chunking_service,
            indexing=self.indexing_service,
            runner=self.runner,
            config=self.config,
        )
        self.orchestrator.register(self.dispatcher)

        logger.info(
            "pipeline_initialized",
            durable=durable,
            index_concurrency=self.config.index_concurrency,
            step_max_retries=self.config.step_max_retries,
        )
