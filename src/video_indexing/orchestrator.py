"""Job orchestrator: ingestion and deletion workflows as durable steps.

The orchestrator is the only component that writes a video's status, and the
only one that marks a video FAILED. It does so at exactly two points: when
transcript extraction fails and when no chunk could be indexed. Any other step
failure surfaces as a ``StepFailedError`` and leaves the video in its last
recorded status.
"""

from structlog.contextvars import bound_contextvars

from src.utils.logging import get_logger

from .chunking_service import ChunkingService, HierarchicalChunks
from .config import IndexingConfig, get_config
from .events import (
    USER_COLLECTION_DELETION_REQUESTED,
    VIDEO_DOCUMENTS_DELETION_REQUESTED,
    VIDEO_PROCESSING_REQUESTED,
    Event,
    EventDispatcher,
    UserCollectionDeletionRequested,
    VideoDocumentsDeletionRequested,
    VideoProcessingRequested,
    video_processing_event,
)
from .exceptions import (
    IndexingFailedError,
    InvalidStatusTransitionError,
    StepFailedError,
    TranscriptExtractionError,
    VideoNotFoundError,
)
from .indexing_service import IndexingService, collection_name_for
from .job_runner import JobContext, JobRunner
from .schemas import (
    CollectionDeletionResult,
    IngestionResult,
    TranscriptData,
    Video,
    VideoDeletionResult,
)
from .status import VideoStatus, ensure_transition
from .storage_service import VideoStore
from .transcript_service import TranscriptService

logger = get_logger(__name__)

PROCESS_VIDEO_FUNCTION_ID = "process-video-transcript"
DELETE_VIDEO_DOCUMENTS_FUNCTION_ID = "delete-video-documents"
DELETE_USER_COLLECTION_FUNCTION_ID = "delete-user-collection"


def extraction_failure_message(error: StepFailedError) -> str:
    """User-facing error for a failed extraction step, whatever its cause."""
    cause = error.cause
    if isinstance(cause, TranscriptExtractionError):
        return str(cause)
    if isinstance(cause, TimeoutError):
        reason = f"timed out after {error.attempts} attempt(s)"
    else:
        reason = str(cause) or type(cause).__name__
    return str(TranscriptExtractionError(reason))


class JobOrchestrator:
    """Runs one job per event, step by step, through the job runner."""

    def __init__(
        self,
        store: VideoStore,
        transcripts: TranscriptService,
        chunking: ChunkingService,
        indexing: IndexingService,
        runner: JobRunner,
        config: IndexingConfig | None = None,
        dispatcher: EventDispatcher | None = None,
    ):
        self.store = store
        self.transcripts = transcripts
        self.chunking = chunking
        self.indexing = indexing
        self.runner = runner
        self.config = config or get_config()
        self.dispatcher = dispatcher

    def register(self, dispatcher: EventDispatcher) -> None:
        """Subscribe the orchestrator's jobs to their triggering events."""
        dispatcher.register(VIDEO_PROCESSING_REQUESTED, self.on_video_processing_requested)
        dispatcher.register(
            VIDEO_DOCUMENTS_DELETION_REQUESTED, self.on_video_documents_deletion_requested
        )
        dispatcher.register(
            USER_COLLECTION_DELETION_REQUESTED, self.on_user_collection_deletion_requested
        )
        self.dispatcher = dispatcher

    # ==========================================================================
    # Event handlers
    # ==========================================================================

    async def on_video_processing_requested(self, event: Event) -> IngestionResult:
        payload = event.payload_as(VideoProcessingRequested)
        return await self.process_video(payload.video, event.id)

    async def on_video_documents_deletion_requested(self, event: Event) -> VideoDeletionResult:
        payload = event.payload_as(VideoDocumentsDeletionRequested)
        return await self.delete_video_documents(payload.video_id, payload.user_id, event.id)

    async def on_user_collection_deletion_requested(
        self, event: Event
    ) -> CollectionDeletionResult:
        payload = event.payload_as(UserCollectionDeletionRequested)
        return await self.delete_user_collection(payload.user_id, event.id)

    # ==========================================================================
    # Ingestion
    # ==========================================================================

    async def _set_status(
        self,
        job: JobContext,
        step_name: str,
        video: Video,
        current: VideoStatus,
        target: VideoStatus,
        error: str | None = None,
    ) -> VideoStatus:
        ensure_transition(current, target)

        async def write() -> VideoStatus:
            await self.store.update_status(video.id, video.user_id, target, error)
            return target

        return await job.run(step_name, write, result_type=VideoStatus)

    async def _fail(
        self,
        job: JobContext,
        video: Video,
        current: VideoStatus,
        message: str,
        **counts: int,
    ) -> IngestionResult:
        logger.error("video_processing_failed", video_id=video.id, error=message)
        status = await self._set_status(
            job, "mark-failed", video, current, VideoStatus.FAILED, error=message
        )
        return IngestionResult(video_id=video.id, status=status, error=message, **counts)

    async def process_video(self, video: Video, event_id: str) -> IngestionResult:
        """Ingest one video: extract, chunk, index, then mark it READY.

        Args:
            video: Video record from the triggering event.
            event_id: Id of the triggering event; keys the step ledger.

        Returns:
            Ingestion outcome. Extraction failures and zero indexed chunks come
            back as a FAILED result rather than an exception.

        Raises:
            StepFailedError: A step other than extraction exhausted its retries.
            InvalidStatusTransitionError: The video is not in a startable state.
        """
        job = self.runner.job(
            PROCESS_VIDEO_FUNCTION_ID,
            event_id,
            timeout_seconds=self.config.ingestion_step_timeout_seconds,
        )

        with bound_contextvars(
            job_id=job.job_id,
            event_name=VIDEO_PROCESSING_REQUESTED,
            video_id=video.id,
            user_id=video.user_id,
        ):
            logger.info(
                "video_processing_started",
                youtube_id=video.youtube_id,
                title=video.title,
                status=video.status.value,
            )

            status = await self._set_status(
                job, "update-status-to-processing", video, video.status, VideoStatus.PROCESSING
            )
            status = await self._set_status(
                job,
                "update-status-to-transcript-extracting",
                video,
                status,
                VideoStatus.TRANSCRIPT_EXTRACTING,
            )

            # Extraction errors were already retried by the extraction policy.
            # Timeouts and unexpected errors get the step's own retries.
            try:
                transcript = await job.run(
                    "extract-transcript",
                    lambda: self.transcripts.extract_with_retry(
                        video, self.config.transcript_max_retries
                    ),
                    result_type=TranscriptData,
                    no_retry_on=(TranscriptExtractionError,),
                )
            except StepFailedError as e:
                return await self._fail(job, video, status, extraction_failure_message(e))

            status = await self._set_status(
                job,
                "update-status-to-zeroentropy-processing",
                video,
                status,
                VideoStatus.ZEROENTROPY_PROCESSING,
            )

            async def chunk() -> HierarchicalChunks:
                return self.chunking.chunk_transcript(transcript, video)

            chunks = await job.run("chunk-transcript", chunk, result_type=HierarchicalChunks)
            counts = {
                "level1_chunks": len(chunks.level1),
                "level2_chunks": len(chunks.level2),
            }

            collection_name = await job.run(
                "get-or-create-collection",
                lambda: self.indexing.get_or_create_user_collection(video.user_id),
                result_type=str,
            )

            indexed = await job.run(
                "index-chunks",
                lambda: self.indexing.batch_index(chunks.all_chunks, collection_name),
                result_type=list[str],
            )

            if not indexed:
                return await self._fail(
                    job, video, status, IndexingFailedError.MESSAGE, **counts
                )
            if len(indexed) < len(chunks.all_chunks):
                logger.warning(
                    "video_indexing_partial",
                    indexed=len(indexed),
                    total=len(chunks.all_chunks),
                )

            ensure_transition(status, VideoStatus.READY)

            async def complete() -> VideoStatus:
                await self.store.set_collection(video.id, video.user_id, collection_name)
                await self.store.update_status(video.id, video.user_id, VideoStatus.READY)
                return VideoStatus.READY

            status = await job.run("complete-video", complete, result_type=VideoStatus)

            logger.info(
                "video_processing_completed",
                collection_name=collection_name,
                indexed_chunks=len(indexed),
                **counts,
            )
            return IngestionResult(
                video_id=video.id,
                status=status,
                collection_name=collection_name,
                indexed_chunks=len(indexed),
                **counts,
            )

    async def retry_video(self, video_id: str, user_id: str, *, dispatch: bool = True) -> Event:
        """Re-queue a FAILED video and request a fresh ingestion run.

        The new event gets a new id, so the retried run starts with an empty
        step ledger instead of replaying the failed one.

        Args:
            video_id: Video to retry.
            user_id: Owner of the video.
            dispatch: Send the event through the dispatcher before returning.
                Callers that schedule events themselves pass False.

        Returns:
            The processing event for the re-queued video.

        Raises:
            VideoNotFoundError: The video does not exist for this owner.
            InvalidStatusTransitionError: The video is not FAILED.
        """
        video = await self.store.get_video(video_id, user_id)
        if video.status != VideoStatus.FAILED:
            raise InvalidStatusTransitionError(video.status.value, VideoStatus.QUEUED.value)

        ensure_transition(video.status, VideoStatus.QUEUED, retrigger=True)
        await self.store.update_status(video_id, user_id, VideoStatus.QUEUED, error=None)

        requeued = video.model_copy(update={"status": VideoStatus.QUEUED, "error": None})
        event = video_processing_event(requeued)
        logger.info("video_retry_requested", video_id=video_id, event_id=event.id)

        if dispatch and self.dispatcher is not None:
            await self.dispatcher.send(event)
        return event

    # ==========================================================================
    # Deletion
    # ==========================================================================

    async def delete_video_documents(
        self, video_id: str, user_id: str, event_id: str
    ) -> VideoDeletionResult:
        """Delete one video's indexed documents, then its store row.

        A video missing from the store is treated as already deleted; its
        documents are still cleaned from the user's collection.
        """
        job = self.runner.job(
            DELETE_VIDEO_DOCUMENTS_FUNCTION_ID,
            event_id,
            timeout_seconds=self.config.deletion_step_timeout_seconds,
        )

        with bound_contextvars(
            job_id=job.job_id,
            event_name=VIDEO_DOCUMENTS_DELETION_REQUESTED,
            video_id=video_id,
            user_id=user_id,
        ):
            logger.info("video_deletion_started")

            async def get_video() -> Video | None:
                try:
                    return await self.store.get_video(video_id, user_id)
                except VideoNotFoundError:
                    logger.info("video_already_deleted")
                    return None

            video = await job.run("get-video-info", get_video, result_type=Video | None)

            async def verify_collection() -> str | None:
                if video is None:
                    return collection_name_for(user_id)
                return video.zeroentropy_collection_id

            collection_name = await job.run(
                "verify-collection", verify_collection, result_type=str | None
            )

            async def delete_documents() -> int:
                if not collection_name:
                    logger.info("no_collection_for_video")
                    return 0
                return await self.indexing.delete_video_documents(video_id, collection_name)

            deleted = await job.run("delete-documents", delete_documents, result_type=int)

            async def delete_row() -> bool:
                await self.store.delete_video(video_id, user_id)
                return True

            await job.run("delete-video-from-db", delete_row, result_type=bool)

            logger.info(
                "video_deletion_completed",
                documents_deleted=deleted,
                collection_name=collection_name,
            )
            return VideoDeletionResult(
                video_id=video_id,
                collection_name=collection_name,
                documents_deleted=deleted,
            )

    async def delete_user_collection(self, user_id: str, event_id: str) -> CollectionDeletionResult:
        """Delete a user's whole collection, then all of their video rows."""
        job = self.runner.job(
            DELETE_USER_COLLECTION_FUNCTION_ID,
            event_id,
            timeout_seconds=self.config.deletion_step_timeout_seconds,
        )

        with bound_contextvars(
            job_id=job.job_id,
            event_name=USER_COLLECTION_DELETION_REQUESTED,
            user_id=user_id,
        ):
            logger.info("collection_deletion_started")

            videos = await job.run(
                "get-user-videos",
                lambda: self.store.list_user_videos(user_id),
                result_type=list[Video],
            )

            async def collection_ids() -> list[str]:
                return sorted(
                    {v.zeroentropy_collection_id for v in videos if v.zeroentropy_collection_id}
                )

            collections = await job.run(
                "get-collection-ids", collection_ids, result_type=list[str]
            )

            collection_deleted = await job.run(
                "delete-zeroentropy-collection",
                lambda: self.indexing.delete_user_collection(user_id),
                result_type=bool,
            )

            async def delete_videos() -> int:
                if not videos:
                    return 0
                return await self.store.delete_user_videos(user_id)

            videos_deleted = await job.run("delete-user-videos", delete_videos, result_type=int)

            logger.info(
                "collection_deletion_completed",
                videos_deleted=videos_deleted,
                collections_processed=len(collections),
                collection_deleted=collection_deleted,
            )
            return CollectionDeletionResult(
                user_id=user_id,
                collection_name=collection_name_for(user_id),
                collection_deleted=collection_deleted,
                collections_processed=len(collections),
                videos_deleted=videos_deleted,
            )
