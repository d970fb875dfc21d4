"""Pydantic schemas for the video indexing pipeline."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .status import VideoStatus

ChunkLevel = Literal["1", "2"]


class Video(BaseModel):
    """Video record as held by the video store.

    Field aliases match the camelCase column names used by the store and the
    event payloads, so records round-trip without manual mapping.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str = Field(alias="userId")
    youtube_id: str = Field(alias="youtubeId")
    title: str = ""
    duration: int = 0  # Seconds, as reported by YouTube metadata
    status: VideoStatus = VideoStatus.PENDING
    error: str | None = None
    zeroentropy_collection_id: str | None = Field(
        default=None, alias="zeroentropyCollectionId"
    )
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")


class TranscriptSegment(BaseModel):
    """One caption unit as delivered by the transcript source, in seconds."""

    model_config = ConfigDict(frozen=True)

    text: str
    start: float
    duration: float
    language: str = "en"

    @property
    def end(self) -> float:
        return self.start + self.duration


class TranscriptMetadata(BaseModel):
    """Summary figures recorded alongside an extracted transcript."""

    total_segments: int
    total_duration: float
    total_text_length: int
    language: str
    extracted_at: datetime
    processing_time_ms: int


class TranscriptData(BaseModel):
    """Validated, normalised transcript returned by the extraction policy."""

    segments: list[TranscriptSegment]
    metadata: TranscriptMetadata


class Chunk(BaseModel):
    """Indexable unit built from one or more transcript segments.

    Level "1" chunks are detailed, token-bounded runs of segments; level "2"
    chunks are thematic groups of consecutive level "1" chunks.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    start: float
    end: float
    duration: float
    segment_count: int
    chunk_index: int
    chunk_level: ChunkLevel
    user_id: str
    video_id: str
    video_title: str
    language: str

    def to_metadata(self) -> dict[str, str]:
        """Return every chunk field except the text as string key/value pairs."""
        return {
            "userId": self.user_id,
            "videoId": self.video_id,
            "videoTitle": self.video_title,
            "language": self.language,
            "startTime": str(self.start),
            "endTime": str(self.end),
            "duration": str(self.duration),
            "segmentCount": str(self.segment_count),
            "chunkIndex": str(self.chunk_index),
            "chunkLevel": self.chunk_level,
        }


class ChunkingStats(BaseModel):
    """Statistics about a list of chunks, used for monitoring chunk quality."""

    total_chunks: int = 0
    avg_tokens_per_chunk: float = 0.0
    avg_segments_per_chunk: float = 0.0
    avg_duration_per_chunk: float = 0.0
    min_tokens_per_chunk: int = 0
    max_tokens_per_chunk: int = 0


class TranscriptQualityReport(BaseModel):
    """Non-fatal quality assessment of an extracted transcript."""

    is_valid: bool
    issues: list[str] = Field(default_factory=list)
    total_segments: int
    total_duration: float
    total_text_length: int
    average_segment_length: float
    empty_segments: int


class IngestionResult(BaseModel):
    """Outcome of one ingestion job."""

    video_id: str
    status: VideoStatus
    error: str | None = None
    collection_name: str | None = None
    level1_chunks: int = 0
    level2_chunks: int = 0
    indexed_chunks: int = 0


class VideoDeletionResult(BaseModel):
    """Outcome of a single-video deletion job."""

    video_id: str
    collection_name: str | None = None
    documents_deleted: int = 0


class CollectionDeletionResult(BaseModel):
    """Outcome of a whole-collection deletion job."""

    user_id: str
    collection_name: str
    collection_deleted: bool
    collections_processed: int = 0
    videos_deleted: int = 0
