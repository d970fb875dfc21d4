"""Document path identifiers for indexed chunks.

Three path formats live side by side in a collection:

* ``{videoId}-chunk{N}`` for level 1 chunks,
* ``{videoId}-level2-chunk{N}`` for level 2 chunks (``level1`` is also parsed),
* ``{videoId}-{N}`` for legacy, unchunked segment pages.

Paths are parsed into a tagged union so deletion and lookup code handles every
format explicitly instead of pattern-matching strings at each call site.
"""

import re
from dataclasses import dataclass
from typing import Union

from .schemas import Chunk, ChunkLevel

_LEVELED_PATH = re.compile(r"^(?P<video_id>.+)-level(?P<level>[12])-chunk(?P<index>\d+)$")
_CHUNK_PATH = re.compile(r"^(?P<video_id>.+)-chunk(?P<index>\d+)$")
_SEGMENT_PATH = re.compile(r"^(?P<video_id>.+)-(?P<index>\d+)$")


@dataclass(frozen=True)
class ChunkedRef:
    """Reference to a chunk produced by the chunker."""

    video_id: str
    index: int
    level: ChunkLevel = "1"

    @property
    def path(self) -> str:
        if self.level == "1":
            return f"{self.video_id}-chunk{self.index}"
        return f"{self.video_id}-level{self.level}-chunk{self.index}"


@dataclass(frozen=True)
class SegmentRef:
    """Reference to a legacy page holding a single transcript segment."""

    video_id: str
    index: int

    @property
    def path(self) -> str:
        return f"{self.video_id}-{self.index}"


ChunkRef = Union[ChunkedRef, SegmentRef]


def ref_for_chunk(chunk: Chunk) -> ChunkedRef:
    """Build the reference identifying a chunk in the search index."""
    return ChunkedRef(video_id=chunk.video_id, index=chunk.chunk_index, level=chunk.chunk_level)


def chunk_path(chunk: Chunk) -> str:
    """Deterministic document path for a chunk."""
    return ref_for_chunk(chunk).path


def parse_chunk_ref(path: str) -> ChunkRef | None:
    """Parse a document path, returning None when it matches no known format."""
    match = _LEVELED_PATH.match(path)
    if match:
        return ChunkedRef(
            video_id=match["video_id"],
            index=int(match["index"]),
            level="1" if match["level"] == "1" else "2",
        )

    match = _CHUNK_PATH.match(path)
    if match:
        return ChunkedRef(video_id=match["video_id"], index=int(match["index"]))

    match = _SEGMENT_PATH.match(path)
    if match:
        return SegmentRef(video_id=match["video_id"], index=int(match["index"]))

    return None


def belongs_to_video(path: str, video_id: str) -> bool:
    """Check whether a document path was indexed for the given video."""
    ref = parse_chunk_ref(path)
    if isinstance(ref, (ChunkedRef, SegmentRef)):
        return ref.video_id == video_id
    return False
