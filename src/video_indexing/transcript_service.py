"""Transcript extraction with escalating retry strategies.

Transcript sources intermittently reject requests based on the client
fingerprint or stale caches, so each retry changes the shape of the request
instead of repeating it verbatim.
"""

import asyncio
import time
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any, Protocol

from supadata import Supadata, SupadataError

from src.utils.logging import get_logger

from .exceptions import (
    CaptionsDisabledError,
    EmptyTranscriptError,
    InvalidVideoIdError,
    RateLimitedError,
    TranscriptExtractionError,
    TranscriptLanguageNotAvailableError,
    TranscriptNotAvailableError,
    TranscriptSourceError,
    VideoUnavailableError,
)
from .schemas import TranscriptData, TranscriptMetadata, TranscriptSegment, Video

logger = get_logger(__name__)

MIN_TEXT_LENGTH = 50
MIN_DURATION_SECONDS = 10


@dataclass(frozen=True)
class FetchOptions:
    """Request shape used for one fetch attempt."""

    use_cache: bool = False
    alternate_identity: bool = False
    language: str | None = None


# Attempt number -> request shape. Attempts past the table reuse the last entry.
ATTEMPT_STRATEGIES: dict[int, FetchOptions] = {
    1: FetchOptions(use_cache=False, alternate_identity=False),
    2: FetchOptions(use_cache=False, alternate_identity=True),
    3: FetchOptions(use_cache=True, alternate_identity=True),
}


def options_for_attempt(attempt: int) -> FetchOptions:
    return ATTEMPT_STRATEGIES.get(attempt, ATTEMPT_STRATEGIES[max(ATTEMPT_STRATEGIES)])


@dataclass(frozen=True)
class SourceSegment:
    """Raw caption unit as returned by a transcript source (milliseconds)."""

    text: str
    offset_ms: float
    duration_ms: float
    lang: str | None = None


class TranscriptSource(Protocol):
    """Fetches raw caption segments for a YouTube video."""

    async def fetch(self, youtube_id: str, options: FetchOptions) -> list[SourceSegment]:
        """Return raw segments or raise a ``TranscriptSourceError`` subclass."""
        ...


# Supadata error codes -> typed source failures. Supadata has no code for
# disabled captions; it reports them as transcript-unavailable.
_SUPADATA_ERRORS: dict[str, type[TranscriptSourceError]] = {
    "transcript-unavailable": TranscriptNotAvailableError,
    "not-found": VideoUnavailableError,
    "video-not-found": VideoUnavailableError,
    "limit-exceeded": RateLimitedError,
    "invalid-request": InvalidVideoIdError,
}


class SupadataTranscriptSource:
    """Transcript source backed by the Supadata API.

    The alternate identity is a second Supadata client using a fallback API
    key. The cache only holds successful fetches and is only consulted when an
    attempt asks for it.
    """

    def __init__(
        self,
        client: Supadata,
        alternate_client: Supadata | None = None,
        cache_ttl_seconds: int = 3600,
    ):
        self.client = client
        self.alternate_client = alternate_client
        self.cache_ttl_seconds = cache_ttl_seconds
        self._cache: dict[str, tuple[float, list[SourceSegment]]] = {}
        logger.info(
            "transcript_source_initialized",
            provider="supadata",
            alternate_identity=alternate_client is not None,
        )

    async def fetch(self, youtube_id: str, options: FetchOptions) -> list[SourceSegment]:
        if options.use_cache:
            cached = self._cache.get(youtube_id)
            if cached and time.monotonic() - cached[0] < self.cache_ttl_seconds:
                logger.info("transcript_cache_hit", youtube_id=youtube_id)
                return cached[1]

        client = self.client
        if options.alternate_identity and self.alternate_client is not None:
            client = self.alternate_client

        # Timestamped segments instead of plain text
        params: dict[str, Any] = {"video_id": youtube_id, "text": False}
        if options.language:
            params["lang"] = options.language

        try:
            response = await asyncio.to_thread(client.youtube.transcript, **params)
        except SupadataError as e:
            code = getattr(e, "error", "") or ""
            error_cls = _SUPADATA_ERRORS.get(code, TranscriptSourceError)
            if options.language and error_cls is TranscriptNotAvailableError:
                error_cls = TranscriptLanguageNotAvailableError
            raise error_cls(youtube_id, getattr(e, "message", "") or str(e)) from e

        segments = [
            SourceSegment(
                text=seg.text,
                offset_ms=float(seg.offset),
                duration_ms=float(seg.duration),
                lang=getattr(seg, "lang", None) or getattr(response, "lang", None),
            )
            for seg in response.content
        ]

        if options.use_cache and segments:
            self._cache[youtube_id] = (time.monotonic(), segments)
        return segments


def describe_source_error(error: TranscriptSourceError) -> str:
    """Human-readable reason for a typed transcript source failure."""
    if isinstance(error, CaptionsDisabledError):
        return "Captions are disabled for this video"
    if isinstance(error, TranscriptLanguageNotAvailableError):
        return "No transcript available in the requested language"
    if isinstance(error, TranscriptNotAvailableError):
        return "No transcript available for this video"
    if isinstance(error, VideoUnavailableError):
        return "Video is unavailable or private"
    if isinstance(error, RateLimitedError):
        return "Too many requests - rate limited"
    if isinstance(error, InvalidVideoIdError):
        return "Invalid YouTube video ID"
    if isinstance(error, EmptyTranscriptError):
        return "Transcript is empty"
    return str(error) or "Unknown error occurred"


class TranscriptService:
    """Extraction policy: fetch, validate and normalise a video's transcript."""

    def __init__(
        self,
        source: TranscriptSource,
        max_retries: int = 3,
        backoff_base_seconds: float = 2.0,
        language: str | None = None,
    ):
        """Initialize the transcript service.

        Args:
            source: Transcript source to fetch raw segments from.
            max_retries: Total number of fetch attempts.
            backoff_base_seconds: Wait ``base ** attempt`` seconds between attempts.
            language: Caption language to request; ``None`` takes the source default.
        """
        self.source = source
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.language = language

    async def extract_with_retry(
        self, video: Video, max_retries: int | None = None
    ) -> TranscriptData:
        """Extract a transcript, retrying with a different request shape each time.

        Args:
            video: Video to extract the transcript for.
            max_retries: Override for the number of attempts; 0 makes none.

        Returns:
            Validated transcript with offsets in seconds.

        Raises:
            TranscriptExtractionError: The last attempt's failure, unmodified.
        """
        attempts = self.max_retries if max_retries is None else max_retries
        logger.info(
            "transcript_extraction_started",
            video_id=video.id,
            youtube_id=video.youtube_id,
            max_retries=attempts,
        )

        for attempt in range(1, attempts + 1):
            try:
                return await self.extract_transcript(video, attempt)
            except TranscriptExtractionError as e:
                logger.warning(
                    "transcript_attempt_failed",
                    video_id=video.id,
                    attempt=attempt,
                    max_retries=attempts,
                    error=str(e),
                )
                if attempt == attempts:
                    logger.error("transcript_extraction_exhausted", video_id=video.id, error=str(e))
                    raise

                delay = self.backoff_base_seconds**attempt
                logger.info("transcript_retry_scheduled", video_id=video.id, delay_seconds=delay)
                await asyncio.sleep(delay)

        raise TranscriptExtractionError("No extraction attempts were made")

    async def extract_transcript(self, video: Video, attempt: int = 1) -> TranscriptData:
        """Run a single extraction attempt.

        Raises:
            TranscriptExtractionError: On any source failure or failed quality check.
        """
        options = options_for_attempt(attempt)
        if self.language:
            options = replace(options, language=self.language)
        started = time.perf_counter()

        try:
            raw_segments = await self.source.fetch(video.youtube_id, options)
        except TranscriptSourceError as e:
            logger.exception(
                "transcript_fetch_failed",
                video_id=video.id,
                attempt=attempt,
                error_type=type(e).__name__,
            )
            raise TranscriptExtractionError(describe_source_error(e)) from e
        except Exception as e:
            logger.exception(
                "transcript_fetch_failed",
                video_id=video.id,
                attempt=attempt,
                error_type=type(e).__name__,
            )
            raise TranscriptExtractionError(str(e) or "Unknown error occurred") from e

        processing_time_ms = int((time.perf_counter() - started) * 1000)

        if not raw_segments:
            raise TranscriptExtractionError("No transcript data received from YouTube")

        segments = [
            TranscriptSegment(
                text=seg.text.strip(),
                start=seg.offset_ms / 1000,
                duration=seg.duration_ms / 1000,
                language=seg.lang or "en",
            )
            for seg in raw_segments
        ]

        total_duration = sum(s.duration for s in segments)
        total_text_length = sum(len(seg.text) for seg in raw_segments)
        logger.info(
            "transcript_fetched",
            video_id=video.id,
            attempt=attempt,
            segments=len(segments),
            total_duration=total_duration,
            total_text_length=total_text_length,
        )

        if total_text_length < MIN_TEXT_LENGTH:
            raise TranscriptExtractionError(
                "Transcript too short - likely poor quality or auto-generated captions disabled"
            )
        if total_duration < MIN_DURATION_SECONDS:
            raise TranscriptExtractionError("Video too short - minimum 10 seconds required")

        return TranscriptData(
            segments=segments,
            metadata=TranscriptMetadata(
                total_segments=len(segments),
                total_duration=total_duration,
                total_text_length=total_text_length,
                language=segments[0].language,
                extracted_at=datetime.now(UTC),
                processing_time_ms=processing_time_ms,
            ),
        )
