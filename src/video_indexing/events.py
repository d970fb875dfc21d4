"""Pipeline events: names, payload models, dispatch and trigger helpers.

Each job receives all of its context in the event payload; nothing is read
from shared process state.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from src.utils.logging import get_logger

from .exceptions import VideoIndexingError
from .schemas import Video

logger = get_logger(__name__)

P = TypeVar("P", bound=BaseModel)

VIDEO_PROCESSING_REQUESTED = "video.transcript.processing.requested"
VIDEO_DOCUMENTS_DELETION_REQUESTED = "video.documents.deletion.requested"
USER_COLLECTION_DELETION_REQUESTED = "user.collection.deletion.requested"


# ==============================================================================
# Payload Models
# ==============================================================================


class VideoProcessingRequested(BaseModel):
    video: Video


class VideoDocumentsDeletionRequested(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_id: str = Field(alias="videoId")
    user_id: str = Field(alias="userId")


class UserCollectionDeletionRequested(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")


EVENT_PAYLOADS: dict[str, type[BaseModel]] = {
    VIDEO_PROCESSING_REQUESTED: VideoProcessingRequested,
    VIDEO_DOCUMENTS_DELETION_REQUESTED: VideoDocumentsDeletionRequested,
    USER_COLLECTION_DELETION_REQUESTED: UserCollectionDeletionRequested,
}


class UnknownEventError(VideoIndexingError):
    """Raised for an event name no handler is defined for."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown event: {name}")


class UnexpectedEventError(VideoIndexingError):
    """Raised when a handler receives an event carrying another payload type."""

    def __init__(self, name: str, expected: type[BaseModel]) -> None:
        self.name = name
        self.expected = expected
        super().__init__(f"Event {name} does not carry a {expected.__name__} payload")


class Event(BaseModel):
    """Event envelope. The id keys the durable job the event starts."""

    name: str
    data: dict[str, Any]
    id: str = Field(default_factory=lambda: uuid4().hex)

    def payload(self) -> BaseModel:
        """Validate ``data`` against the payload model for this event name.

        Raises:
            UnknownEventError: If the name is not a pipeline event.
            ValidationError: If the data does not match the payload model.
        """
        model = EVENT_PAYLOADS.get(self.name)
        if model is None:
            raise UnknownEventError(self.name)
        return model.model_validate(self.data)

    def payload_as(self, model: type[P]) -> P:
        """Validate ``data`` and check it is the payload a handler expects.

        Raises:
            UnexpectedEventError: If the event carries another payload type.
        """
        payload = self.payload()
        if not isinstance(payload, model):
            raise UnexpectedEventError(self.name, model)
        return payload


EventHandler = Callable[[Event], Awaitable[Any]]


class EventDispatcher:
    """Routes events to the job registered for their name."""

    def __init__(self) -> None:
        self._handlers: dict[str, EventHandler] = {}

    def register(self, name: str, handler: EventHandler) -> None:
        if name not in EVENT_PAYLOADS:
            raise UnknownEventError(name)
        self._handlers[name] = handler

    async def send(self, event: Event) -> Any:
        """Validate an event and run its job to completion.

        Returns:
            Whatever the job returns.
        """
        event.payload()
        handler = self._handlers.get(event.name)
        if handler is None:
            raise UnknownEventError(event.name)

        logger.info("event_received", event_name=event.name, event_id=event.id)
        try:
            return await handler(event)
        except Exception as e:
            logger.exception(
                "event_handler_failed",
                event_name=event.name,
                event_id=event.id,
                error_type=type(e).__name__,
            )
            raise


# ==============================================================================
# Event Builders and Triggers
# ==============================================================================


def video_processing_event(video: Video) -> Event:
    return Event(
        name=VIDEO_PROCESSING_REQUESTED,
        data={"video": video.model_dump(mode="json", by_alias=True)},
    )


def video_documents_deletion_event(video_id: str, user_id: str) -> Event:
    return Event(
        name=VIDEO_DOCUMENTS_DELETION_REQUESTED,
        data={"videoId": video_id, "userId": user_id},
    )


def user_collection_deletion_event(user_id: str) -> Event:
    return Event(name=USER_COLLECTION_DELETION_REQUESTED, data={"userId": user_id})


async def trigger_video_processing(dispatcher: EventDispatcher, video: Video) -> Any:
    """Start ingestion for a queued video."""
    logger.info("trigger_video_processing", video_id=video.id)
    return await dispatcher.send(video_processing_event(video))


async def trigger_video_documents_deletion(
    dispatcher: EventDispatcher, video_id: str, user_id: str
) -> Any:
    logger.info("trigger_video_documents_deletion", video_id=video_id, user_id=user_id)
    return await dispatcher.send(video_documents_deletion_event(video_id, user_id))


async def trigger_user_collection_deletion(dispatcher: EventDispatcher, user_id: str) -> Any:
    logger.info("trigger_user_collection_deletion", user_id=user_id)
    return await dispatcher.send(user_collection_deletion_event(user_id))
