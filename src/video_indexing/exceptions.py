"""Exceptions raised by the video indexing pipeline.

Lower layers describe *what* failed in business terms; only the orchestrator
turns a failure into a FAILED video status.
"""


class VideoIndexingError(Exception):
    """Base exception for pipeline errors."""


# ==============================================================================
# Transcript source failures (raised by source adapters)
# ==============================================================================


class TranscriptSourceError(VideoIndexingError):
    """Typed failure reported by a transcript source."""

    def __init__(self, youtube_id: str, detail: str = "") -> None:
        self.youtube_id = youtube_id
        self.detail = detail
        super().__init__(detail or f"Transcript source error for {youtube_id}")


class CaptionsDisabledError(TranscriptSourceError):
    """Captions are turned off for the video."""


class TranscriptNotAvailableError(TranscriptSourceError):
    """The video has no transcript at all."""


class TranscriptLanguageNotAvailableError(TranscriptSourceError):
    """A transcript exists, but not in the requested language."""


class VideoUnavailableError(TranscriptSourceError):
    """The video is private, removed or otherwise unavailable."""


class RateLimitedError(TranscriptSourceError):
    """The transcript source rejected the request as rate limited."""


class InvalidVideoIdError(TranscriptSourceError):
    """The YouTube identifier is malformed or unknown."""


class EmptyTranscriptError(TranscriptSourceError):
    """The transcript source returned a transcript with no content."""


class TranscriptExtractionError(VideoIndexingError):
    """Transcript extraction failed; the message is shown to the user as-is."""

    PREFIX = "Transcript extraction failed: "

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"{self.PREFIX}{reason}")


# ==============================================================================
# Status machine
# ==============================================================================


class InvalidStatusTransitionError(VideoIndexingError):
    """Raised when a status change is not one of the enumerated transitions."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid video status transition: {current} -> {target}")


# ==============================================================================
# Collaborators
# ==============================================================================


class VideoNotFoundError(VideoIndexingError):
    """Raised when a video does not exist for the given owner."""

    def __init__(self, video_id: str, user_id: str) -> None:
        self.video_id = video_id
        self.user_id = user_id
        super().__init__(f"Video not found or access denied: {video_id}")


class VideoStoreError(VideoIndexingError):
    """Raised when a video store operation fails."""


class SearchIndexError(VideoIndexingError):
    """Raised when a search index operation fails."""


class CollectionNotFoundError(SearchIndexError):
    """Raised when a collection does not exist in the search index."""

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name
        super().__init__(f"Collection not found: {collection_name}")


class DocumentNotFoundError(SearchIndexError):
    """Raised when a document path does not exist in a collection."""

    def __init__(self, collection_name: str, path: str) -> None:
        self.collection_name = collection_name
        self.path = path
        super().__init__(f"Document not found: {collection_name}/{path}")


# ==============================================================================
# Orchestration
# ==============================================================================


class IndexingFailedError(VideoIndexingError):
    """No chunk of a video could be indexed."""

    MESSAGE = "ZeroEntropy indexing failed - no pages indexed"

    def __init__(self, attempted: int) -> None:
        self.attempted = attempted
        super().__init__(self.MESSAGE)


class StepFailedError(VideoIndexingError):
    """Raised when a durable step exhausts its retry budget."""

    def __init__(self, job_id: str, step_name: str, attempts: int, cause: BaseException) -> None:
        self.job_id = job_id
        self.step_name = step_name
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Step '{step_name}' of job {job_id} failed after {attempts} attempt(s): {cause}"
        )
