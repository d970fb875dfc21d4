"""Shared fixtures for the video indexing tests."""

import pytest
from fakes import FakeSearchIndex, FakeVideoStore

from src.video_indexing.schemas import Video
from src.video_indexing.status import VideoStatus


@pytest.fixture
def queued_video() -> Video:
    """A 20-minute video waiting for ingestion."""
    return Video(
        id="vid-1",
        userId="user-1",
        youtubeId="dQw4w9WgXcQ",
        title="Coaching Session",
        duration=1200,
        status=VideoStatus.QUEUED,
    )


@pytest.fixture
def video_store(queued_video: Video) -> FakeVideoStore:
    return FakeVideoStore([queued_video])


@pytest.fixture
def search_index() -> FakeSearchIndex:
    return FakeSearchIndex()
