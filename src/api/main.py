"""FastAPI application for the video indexing pipeline.

Accepts pipeline events over HTTP and runs the matching jobs in the
background, plus convenience endpoints to retry and delete videos.
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError

from src.utils.logging import get_logger
from src.video_indexing.events import (
    Event,
    EventDispatcher,
    UnknownEventError,
    user_collection_deletion_event,
    video_documents_deletion_event,
)
from src.video_indexing.exceptions import InvalidStatusTransitionError, VideoNotFoundError
from src.video_indexing.pipeline import IndexingPipeline

logger = get_logger(__name__)

# Global pipeline initialized in lifespan
pipeline: IndexingPipeline | None = None


# ==============================================================================
# Lifespan Management
# ==============================================================================


async def lifespan(app: FastAPI):  # type: ignore[misc]
    """Lifecycle manager for the FastAPI application.

    Builds the pipeline (and with it every external client) once per process.
    """
    global pipeline

    logger.info("application_startup_started")

    try:
        pipeline = IndexingPipeline()
        logger.info("application_startup_completed", services=["pipeline"])
    except Exception:
        logger.exception("application_startup_failed")
        raise

    yield  # Application runs here

    logger.info("application_shutdown_started")
    pipeline = None
    logger.info("application_shutdown_completed")


# ==============================================================================
# FastAPI Application Setup
# ==============================================================================

app = FastAPI(
    title="Video Indexing API",
    description="Event intake for video transcript ingestion and deletion jobs",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_pipeline() -> IndexingPipeline:
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return pipeline


# ==============================================================================
# Request/Response Models
# ==============================================================================


class EventRequest(BaseModel):
    """Request model for the event intake endpoint."""

    name: str
    data: dict[str, Any]
    id: str | None = None


class EventAccepted(BaseModel):
    status: str = "accepted"
    event_id: str
    name: str


# ==============================================================================
# Helper Functions
# ==============================================================================


async def run_event(dispatcher: EventDispatcher, event: Event) -> None:
    """Run an event's job after the response has been sent."""
    try:
        await dispatcher.send(event)
    except Exception as e:
        logger.exception(
            "background_event_failed",
            event_name=event.name,
            event_id=event.id,
            error_type=type(e).__name__,
        )


def schedule(
    background_tasks: BackgroundTasks, dispatcher: EventDispatcher, event: Event
) -> EventAccepted:
    background_tasks.add_task(run_event, dispatcher, event)
    logger.info("event_scheduled", event_name=event.name, event_id=event.id)
    return EventAccepted(event_id=event.id, name=event.name)


# ==============================================================================
# API Endpoints
# ==============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint.

    Returns:
        Health status and timestamp.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": {
            "pipeline": pipeline is not None,
        },
    }


@app.post("/api/events", status_code=status.HTTP_202_ACCEPTED, response_model=EventAccepted)
async def receive_event(
    request: EventRequest,
    background_tasks: BackgroundTasks,
    indexing: IndexingPipeline = Depends(get_pipeline),
):
    """Validate a pipeline event and run its job in the background."""
    event = Event(name=request.name, data=request.data)
    if request.id:
        event.id = request.id

    try:
        event.payload()
    except UnknownEventError as e:
        logger.warning("event_rejected", reason="unknown_event", event_name=request.name)
        raise HTTPException(status_code=422, detail=str(e))
    except ValidationError as e:
        logger.warning("event_rejected", reason="invalid_payload", event_name=request.name)
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        )

    return schedule(background_tasks, indexing.dispatcher, event)


@app.post(
    "/api/videos/{video_id}/retry",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=EventAccepted,
)
async def retry_video(
    video_id: str,
    user_id: str,
    background_tasks: BackgroundTasks,
    indexing: IndexingPipeline = Depends(get_pipeline),
):
    """Re-queue a FAILED video and start a fresh ingestion run."""
    try:
        event = await indexing.orchestrator.retry_video(video_id, user_id, dispatch=False)
    except VideoNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=409, detail=f"Only FAILED videos can be retried ({e})")

    return schedule(background_tasks, indexing.dispatcher, event)


@app.delete(
    "/api/videos/{video_id}",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=EventAccepted,
)
async def delete_video(
    video_id: str,
    user_id: str,
    background_tasks: BackgroundTasks,
    indexing: IndexingPipeline = Depends(get_pipeline),
):
    """Delete a video's indexed documents and its record in the background."""
    event = video_documents_deletion_event(video_id, user_id)
    return schedule(background_tasks, indexing.dispatcher, event)


@app.delete(
    "/api/users/{user_id}/collection",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=EventAccepted,
)
async def delete_user_collection(
    user_id: str,
    background_tasks: BackgroundTasks,
    indexing: IndexingPipeline = Depends(get_pipeline),
):
    """Delete a user's collection and all of their videos in the background."""
    event = user_collection_deletion_event(user_id)
    return schedule(background_tasks, indexing.dispatcher, event)
