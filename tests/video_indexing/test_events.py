"""Unit tests for events, payload validation and dispatch."""

from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from src.video_indexing.events import (
    USER_COLLECTION_DELETION_REQUESTED,
    VIDEO_DOCUMENTS_DELETION_REQUESTED,
    VIDEO_PROCESSING_REQUESTED,
    Event,
    EventDispatcher,
    UnexpectedEventError,
    UnknownEventError,
    UserCollectionDeletionRequested,
    VideoDocumentsDeletionRequested,
    VideoProcessingRequested,
    trigger_user_collection_deletion,
    trigger_video_documents_deletion,
    trigger_video_processing,
    video_processing_event,
)
from src.video_indexing.schemas import Video
from src.video_indexing.status import VideoStatus


@pytest.mark.unit
class TestEvents:
    """Test event construction and payload validation."""

    def test_processing_event_carries_camel_case_video(self, queued_video: Video) -> None:
        event = video_processing_event(queued_video)

        assert event.name == VIDEO_PROCESSING_REQUESTED
        assert event.data["video"]["userId"] == "user-1"
        assert event.data["video"]["youtubeId"] == queued_video.youtube_id
        payload = event.payload()
        assert isinstance(payload, VideoProcessingRequested)
        assert payload.video == queued_video

    def test_each_event_gets_a_fresh_id(self, queued_video: Video) -> None:
        assert video_processing_event(queued_video).id != video_processing_event(queued_video).id

    def test_deletion_payloads(self) -> None:
        video_event = Event(
            name=VIDEO_DOCUMENTS_DELETION_REQUESTED, data={"videoId": "v", "userId": "u"}
        )
        user_event = Event(name=USER_COLLECTION_DELETION_REQUESTED, data={"userId": "u"})

        assert video_event.payload() == VideoDocumentsDeletionRequested(video_id="v", user_id="u")
        assert user_event.payload() == UserCollectionDeletionRequested(user_id="u")

    def test_unknown_event(self) -> None:
        with pytest.raises(UnknownEventError, match="Unknown event: video.renamed"):
            Event(name="video.renamed", data={}).payload()

    def test_invalid_payload(self) -> None:
        with pytest.raises(ValidationError):
            Event(name=VIDEO_DOCUMENTS_DELETION_REQUESTED, data={"videoId": "v"}).payload()

    def test_payload_as_expected_type(self) -> None:
        event = Event(name=USER_COLLECTION_DELETION_REQUESTED, data={"userId": "u"})

        assert event.payload_as(UserCollectionDeletionRequested).user_id == "u"

    def test_payload_as_rejects_other_payload_types(self) -> None:
        event = Event(name=USER_COLLECTION_DELETION_REQUESTED, data={"userId": "u"})

        with pytest.raises(UnexpectedEventError, match="VideoProcessingRequested"):
            event.payload_as(VideoProcessingRequested)


@pytest.mark.unit
class TestEventDispatcher:
    """Test routing events to their jobs."""

    @pytest.fixture
    def handler(self) -> AsyncMock:
        return AsyncMock(return_value="result")

    @pytest.mark.asyncio
    async def test_send_runs_registered_handler(self, handler: AsyncMock) -> None:
        dispatcher = EventDispatcher()
        dispatcher.register(USER_COLLECTION_DELETION_REQUESTED, handler)
        event = Event(name=USER_COLLECTION_DELETION_REQUESTED, data={"userId": "u"})

        assert await dispatcher.send(event) == "result"
        handler.assert_awaited_once_with(event)

    def test_register_rejects_unknown_names(self, handler: AsyncMock) -> None:
        with pytest.raises(UnknownEventError):
            EventDispatcher().register("video.renamed", handler)

    @pytest.mark.asyncio
    async def test_send_without_handler(self) -> None:
        event = Event(name=USER_COLLECTION_DELETION_REQUESTED, data={"userId": "u"})

        with pytest.raises(UnknownEventError):
            await EventDispatcher().send(event)

    @pytest.mark.asyncio
    async def test_invalid_payload_never_reaches_handler(self, handler: AsyncMock) -> None:
        dispatcher = EventDispatcher()
        dispatcher.register(VIDEO_DOCUMENTS_DELETION_REQUESTED, handler)

        with pytest.raises(ValidationError):
            await dispatcher.send(Event(name=VIDEO_DOCUMENTS_DELETION_REQUESTED, data={}))

        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_handler_errors_propagate(self) -> None:
        dispatcher = EventDispatcher()
        dispatcher.register(
            USER_COLLECTION_DELETION_REQUESTED, AsyncMock(side_effect=RuntimeError("boom"))
        )

        with pytest.raises(RuntimeError, match="boom"):
            await dispatcher.send(
                Event(name=USER_COLLECTION_DELETION_REQUESTED, data={"userId": "u"})
            )

    @pytest.mark.asyncio
    async def test_triggers(self, queued_video: Video, handler: AsyncMock) -> None:
        dispatcher = EventDispatcher()
        for name in (
            VIDEO_PROCESSING_REQUESTED,
            VIDEO_DOCUMENTS_DELETION_REQUESTED,
            USER_COLLECTION_DELETION_REQUESTED,
        ):
            dispatcher.register(name, handler)

        await trigger_video_processing(dispatcher, queued_video)
        await trigger_video_documents_deletion(dispatcher, "vid-1", "user-1")
        await trigger_user_collection_deletion(dispatcher, "user-1")

        names = [c.args[0].name for c in handler.await_args_list]
        assert names == [
            VIDEO_PROCESSING_REQUESTED,
            VIDEO_DOCUMENTS_DELETION_REQUESTED,
            USER_COLLECTION_DELETION_REQUESTED,
        ]
        sent_video = handler.await_args_list[0].args[0].payload().video
        assert sent_video.status == VideoStatus.QUEUED
