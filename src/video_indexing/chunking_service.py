"""Chunking service for token-bounded, overlapping transcript segmentation.

Transcripts are chunked at two granularities:

* Level 1 (detailed): consecutive segments accumulated until an estimated
  token budget is reached, with a trailing overlap carried into the next chunk.
* Level 2 (thematic): consecutive level 1 chunks grouped into windows of a few
  minutes, only for videos of at least fifteen minutes.

The chunking functions are pure: identical input always yields identical
chunk boundaries.
"""

import math
from dataclasses import dataclass, field

from pydantic import BaseModel

from src.utils.logging import get_logger

from .config import IndexingConfig
from .schemas import (
    Chunk,
    ChunkingStats,
    ChunkLevel,
    TranscriptData,
    TranscriptQualityReport,
    TranscriptSegment,
    Video,
)

logger = get_logger(__name__)

LEVEL2_MIN_VIDEO_SECONDS = 15 * 60


class ChunkingConfig(BaseModel):
    """Token limits for level 1 chunking."""

    target_tokens: int = 375
    min_tokens: int = 250
    max_tokens: int = 500
    overlap_percentage: float = 0.20

    @classmethod
    def from_indexing_config(cls, config: IndexingConfig) -> "ChunkingConfig":
        return cls(
            target_tokens=config.target_tokens,
            min_tokens=config.min_tokens,
            max_tokens=config.max_tokens,
            overlap_percentage=config.overlap_percentage,
        )


DEFAULT_CHUNKING_CONFIG = ChunkingConfig()


class Level2ChunkConfig(BaseModel):
    """Duration window (seconds) for thematic level 2 chunks."""

    min_chunk_duration: float
    max_chunk_duration: float
    target_chunk_duration: float


# (video duration lower bound in seconds, min, max, target)
_LEVEL2_BANDS: tuple[tuple[int, int, int, int], ...] = (
    (120 * 60, 600, 1200, 900),
    (60 * 60, 300, 600, 450),
    (30 * 60, 180, 360, 270),
    (15 * 60, 120, 240, 180),
)


@dataclass
class HierarchicalChunks:
    """Chunks of both levels for one video."""

    level1: list[Chunk] = field(default_factory=list)
    level2: list[Chunk] = field(default_factory=list)

    @property
    def all_chunks(self) -> list[Chunk]:
        return [*self.level1, *self.level2]


def estimate_tokens(text: str) -> int:
    """Estimate tokens as one token per four characters, rounded up."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def get_level2_chunk_config(video_duration: float) -> Level2ChunkConfig | None:
    """Pick the level 2 duration window for a video, or None below 15 minutes."""
    for lower_bound, min_duration, max_duration, target_duration in _LEVEL2_BANDS:
        if video_duration >= lower_bound:
            return Level2ChunkConfig(
                min_chunk_duration=min_duration,
                max_chunk_duration=max_duration,
                target_chunk_duration=target_duration,
            )
    return None


def create_chunk(
    segments: list[TranscriptSegment],
    chunk_index: int,
    user_id: str,
    video_id: str,
    video_title: str,
    chunk_level: ChunkLevel = "1",
) -> Chunk:
    """Merge a run of segments into a single chunk.

    Raises:
        ValueError: If ``segments`` is empty.
    """
    if not segments:
        raise ValueError("Cannot create chunk from empty segments list")

    start = segments[0].start
    end = segments[-1].start + segments[-1].duration
    return Chunk(
        text=" ".join(s.text for s in segments),
        start=start,
        end=end,
        duration=end - start,
        segment_count=len(segments),
        chunk_index=chunk_index,
        chunk_level=chunk_level,
        user_id=user_id,
        video_id=video_id,
        video_title=video_title,
        language=segments[0].language,
    )


def get_overlapping_segments(
    segments: list[TranscriptSegment], overlap_token_target: int
) -> list[TranscriptSegment]:
    """Take whole segments from the end of a chunk, up to the overlap budget.

    The first segment of the chunk is never carried over, so the next chunk
    always starts later than the one it overlaps.
    """
    overlap: list[TranscriptSegment] = []
    token_count = 0

    for segment in reversed(segments[1:]):
        segment_tokens = estimate_tokens(segment.text)
        if token_count + segment_tokens > overlap_token_target:
            break
        overlap.insert(0, segment)
        token_count += segment_tokens

    return overlap


def chunk_transcript_segments(
    segments: list[TranscriptSegment],
    user_id: str,
    video_id: str,
    video_title: str,
    config: ChunkingConfig = DEFAULT_CHUNKING_CONFIG,
) -> list[Chunk]:
    """Build level 1 chunks in a single left-to-right pass.

    A chunk is finalized when its estimated tokens reach ``target_tokens``, at
    the last segment, or once it holds ``min_tokens`` and the next segment
    would push it over ``max_tokens``.
    """
    if not segments:
        return []

    total_tokens = sum(estimate_tokens(s.text) for s in segments)
    if len(segments) == 1 or total_tokens <= config.min_tokens:
        return [create_chunk(segments, 0, user_id, video_id, video_title)]

    overlap_token_target = math.floor(config.target_tokens * config.overlap_percentage)
    chunks: list[Chunk] = []
    current: list[TranscriptSegment] = []
    current_tokens = 0
    last_index = len(segments) - 1

    for i, segment in enumerate(segments):
        current.append(segment)
        current_tokens += estimate_tokens(segment.text)

        next_tokens = estimate_tokens(segments[i + 1].text) if i < last_index else 0
        should_finalize = (
            current_tokens >= config.target_tokens
            or i == last_index
            or (
                current_tokens >= config.min_tokens
                and current_tokens + next_tokens > config.max_tokens
            )
        )
        if not should_finalize:
            continue

        chunks.append(create_chunk(current, len(chunks), user_id, video_id, video_title))

        if i < last_index:
            current = get_overlapping_segments(current, overlap_token_target)
            current_tokens = sum(estimate_tokens(s.text) for s in current)
        else:
            current = []
            current_tokens = 0

    return chunks


def merge_level1_chunks(group: list[Chunk], chunk_index: int) -> Chunk:
    """Merge consecutive level 1 chunks into one level 2 chunk."""
    first, last = group[0], group[-1]
    return Chunk(
        text=" ".join(c.text for c in group),
        start=first.start,
        end=last.end,
        duration=last.end - first.start,
        segment_count=sum(c.segment_count for c in group),
        chunk_index=chunk_index,
        chunk_level="2",
        user_id=first.user_id,
        video_id=first.video_id,
        video_title=first.video_title,
        language=first.language,
    )


def chunk_level2(level1_chunks: list[Chunk], config: Level2ChunkConfig) -> list[Chunk]:
    """Group level 1 chunks into thematic level 2 chunks by duration.

    A group is finalized at the last level 1 chunk, when adding the next chunk
    would exceed ``max_chunk_duration``, or when the group already spans
    ``target_chunk_duration`` and the next chunk plus the one after it would
    exceed the maximum. The lookahead only applies when that further chunk
    exists, and a single level 1 chunk longer than the maximum still forms a
    group of its own. No overlap is applied between level 2 chunks.
    """
    groups: list[list[Chunk]] = []
    current: list[Chunk] = []
    last_index = len(level1_chunks) - 1

    for i, chunk in enumerate(level1_chunks):
        current.append(chunk)
        group_start = current[0].start

        if i == last_index:
            groups.append(current)
            break

        next_chunk = level1_chunks[i + 1]
        exceeds_with_next = next_chunk.end - group_start > config.max_chunk_duration
        reached_target = chunk.end - group_start >= config.target_chunk_duration
        exceeds_with_peek = (
            i + 2 <= last_index
            and level1_chunks[i + 2].end - group_start > config.max_chunk_duration
        )

        if exceeds_with_next or (reached_target and exceeds_with_peek):
            groups.append(current)
            current = []

    return [merge_level1_chunks(group, index) for index, group in enumerate(groups)]


def chunk_hierarchically(
    segments: list[TranscriptSegment],
    video_duration: float,
    user_id: str,
    video_id: str,
    video_title: str,
    config: ChunkingConfig = DEFAULT_CHUNKING_CONFIG,
) -> HierarchicalChunks:
    """Produce level 1 chunks, plus level 2 chunks for videos of 15+ minutes."""
    level1 = chunk_transcript_segments(segments, user_id, video_id, video_title, config)

    level2_config = get_level2_chunk_config(video_duration)
    if level2_config is None or not level1:
        return HierarchicalChunks(level1=level1)

    return HierarchicalChunks(level1=level1, level2=chunk_level2(level1, level2_config))


def get_chunking_stats(chunks: list[Chunk]) -> ChunkingStats:
    """Calculate token, segment and duration statistics for a chunk list."""
    if not chunks:
        return ChunkingStats()

    token_counts = [estimate_tokens(c.text) for c in chunks]
    return ChunkingStats(
        total_chunks=len(chunks),
        avg_tokens_per_chunk=sum(token_counts) / len(chunks),
        avg_segments_per_chunk=sum(c.segment_count for c in chunks) / len(chunks),
        avg_duration_per_chunk=sum(c.duration for c in chunks) / len(chunks),
        min_tokens_per_chunk=min(token_counts),
        max_tokens_per_chunk=max(token_counts),
    )


def prepare_segments(segments: list[TranscriptSegment]) -> list[TranscriptSegment]:
    """Drop empty or badly timed segments and trim the rest."""
    valid: list[TranscriptSegment] = []

    for index, segment in enumerate(segments):
        text = segment.text.strip()
        if not text:
            logger.warning("segment_skipped", index=index, reason="empty_text")
            continue
        if segment.start < 0 or segment.duration <= 0:
            logger.warning(
                "segment_skipped",
                index=index,
                reason="invalid_timing",
                start=segment.start,
                duration=segment.duration,
            )
            continue
        valid.append(
            TranscriptSegment(
                text=text,
                start=segment.start,
                duration=segment.duration,
                language=segment.language or "en",
            )
        )

    return valid


def validate_transcript_quality(transcript: TranscriptData) -> TranscriptQualityReport:
    """Assess a transcript without rejecting it; issues are advisory."""
    segments = transcript.segments
    total_segments = len(segments)
    empty_segments = sum(1 for s in segments if not s.text.strip())
    total_duration = sum(s.duration for s in segments)
    total_text_length = sum(len(s.text) for s in segments)
    average_segment_length = total_text_length / total_segments if total_segments else 0.0

    issues: list[str] = []
    if total_segments == 0:
        issues.append("No transcript segments found")
    if total_text_length < 50:
        issues.append(
            "Transcript too short - likely poor quality or auto-generated captions disabled"
        )
    if total_duration < 10:
        issues.append("Video too short - minimum 10 seconds required")
    if empty_segments > total_segments * 0.1:
        issues.append(f"Too many empty segments: {empty_segments}/{total_segments}")
    if average_segment_length < 10:
        issues.append(f"Average segment length too short: {average_segment_length:.1f} characters")

    return TranscriptQualityReport(
        is_valid=not issues,
        issues=issues,
        total_segments=total_segments,
        total_duration=total_duration,
        total_text_length=total_text_length,
        average_segment_length=average_segment_length,
        empty_segments=empty_segments,
    )


class ChunkingService:
    """Service turning an extracted transcript into indexable chunks.

    Wraps the pure chunking functions with segment validation, level 2
    eligibility and structured logging.
    """

    def __init__(self, config: ChunkingConfig | None = None):
        """Initialize chunking service.

        Args:
            config: Level 1 token limits. Defaults to 375/250/500 with 20% overlap.
        """
        self.config = config or DEFAULT_CHUNKING_CONFIG
        logger.info(
            "chunking_service_initialized",
            target_tokens=self.config.target_tokens,
            min_tokens=self.config.min_tokens,
            max_tokens=self.config.max_tokens,
            overlap_percentage=self.config.overlap_percentage,
        )

    def chunk_transcript(self, transcript: TranscriptData, video: Video) -> HierarchicalChunks:
        """Chunk a transcript for a video at both levels.

        The video's known duration decides level 2 eligibility; when the store
        has no duration the transcript's own span is used instead.

        Args:
            transcript: Validated transcript from the extraction policy.
            video: Video the transcript belongs to.

        Returns:
            Level 1 chunks and, for long videos, level 2 chunks.
        """
        quality = validate_transcript_quality(transcript)
        if not quality.is_valid:
            logger.warning("transcript_quality_issues", video_id=video.id, issues=quality.issues)

        segments = prepare_segments(transcript.segments)
        video_duration = float(video.duration) if video.duration > 0 else _end_time(segments)

        logger.info(
            "chunking_started",
            video_id=video.id,
            segments=len(segments),
            video_duration=video_duration,
        )

        result = chunk_hierarchically(
            segments,
            video_duration,
            user_id=video.user_id,
            video_id=video.id,
            video_title=video.title,
            config=self.config,
        )

        stats = get_chunking_stats(result.level1)
        logger.info(
            "chunking_completed",
            video_id=video.id,
            level1_chunks=len(result.level1),
            level2_chunks=len(result.level2),
            avg_tokens=round(stats.avg_tokens_per_chunk, 1),
            avg_segments=round(stats.avg_segments_per_chunk, 1),
            avg_duration=round(stats.avg_duration_per_chunk, 1),
        )
        return result


def _end_time(segments: list[TranscriptSegment]) -> float:
    return max((s.end for s in segments), default=0.0)
