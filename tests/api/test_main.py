"""Unit tests for FastAPI application main endpoints.

The pipeline dependency is overridden with a mock, so no external client is
built and background jobs only reach the mocked dispatcher.
"""

from collections.abc import Iterator
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.api.main import app, get_pipeline, run_event
from src.video_indexing.events import (
    USER_COLLECTION_DELETION_REQUESTED,
    VIDEO_DOCUMENTS_DELETION_REQUESTED,
    VIDEO_PROCESSING_REQUESTED,
    Event,
)
from src.video_indexing.exceptions import InvalidStatusTransitionError, VideoNotFoundError


@pytest.fixture
def pipeline() -> MagicMock:
    pipeline = MagicMock()
    pipeline.dispatcher.send = AsyncMock()
    pipeline.orchestrator.retry_video = AsyncMock()
    return pipeline


@pytest.fixture
def client(pipeline: MagicMock) -> Iterator[TestClient]:
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.unit
class TestHealthEndpoint:
    """Test /health endpoint."""

    def test_health_check_returns_healthy_status(self) -> None:
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"] == {"pipeline": False}

    def test_health_check_includes_timestamp(self) -> None:
        data = TestClient(app).get("/health").json()

        timestamp = datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))
        assert isinstance(timestamp, datetime)


@pytest.mark.unit
class TestEventEndpoint:
    """Test POST /api/events."""

    def test_valid_event_is_accepted_and_dispatched(
        self, client: TestClient, pipeline: MagicMock
    ) -> None:
        response = client.post(
            "/api/events",
            json={
                "name": VIDEO_PROCESSING_REQUESTED,
                "data": {
                    "video": {
                        "id": "vid-1",
                        "userId": "user-1",
                        "youtubeId": "dQw4w9WgXcQ",
                        "status": "QUEUED",
                    }
                },
                "id": "evt-1",
            },
        )

        assert response.status_code == 202
        assert response.json() == {
            "status": "accepted",
            "event_id": "evt-1",
            "name": VIDEO_PROCESSING_REQUESTED,
        }
        event = pipeline.dispatcher.send.await_args.args[0]
        assert event.id == "evt-1"
        assert event.payload().video.id == "vid-1"

    def test_event_without_id_gets_one(self, client: TestClient) -> None:
        response = client.post(
            "/api/events",
            json={"name": USER_COLLECTION_DELETION_REQUESTED, "data": {"userId": "user-1"}},
        )

        assert response.status_code == 202
        assert response.json()["event_id"]

    def test_unknown_event_is_rejected(self, client: TestClient, pipeline: MagicMock) -> None:
        response = client.post("/api/events", json={"name": "video.renamed", "data": {}})

        assert response.status_code == 422
        assert "Unknown event" in response.json()["detail"]
        pipeline.dispatcher.send.assert_not_awaited()

    def test_invalid_payload_is_rejected(self, client: TestClient, pipeline: MagicMock) -> None:
        response = client.post(
            "/api/events",
            json={"name": VIDEO_DOCUMENTS_DELETION_REQUESTED, "data": {"videoId": "vid-1"}},
        )

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["userId"]
        pipeline.dispatcher.send.assert_not_awaited()

    def test_pipeline_not_initialized(self) -> None:
        response = TestClient(app).post(
            "/api/events",
            json={"name": USER_COLLECTION_DELETION_REQUESTED, "data": {"userId": "user-1"}},
        )

        assert response.status_code == 503


@pytest.mark.unit
class TestVideoEndpoints:
    """Test retry and deletion endpoints."""

    def test_retry_failed_video(self, client: TestClient, pipeline: MagicMock) -> None:
        event = Event(name=VIDEO_PROCESSING_REQUESTED, data={}, id="evt-retry")
        pipeline.orchestrator.retry_video.return_value = event

        response = client.post("/api/videos/vid-1/retry", params={"user_id": "user-1"})

        assert response.status_code == 202
        assert response.json()["event_id"] == "evt-retry"
        pipeline.orchestrator.retry_video.assert_awaited_once_with(
            "vid-1", "user-1", dispatch=False
        )
        pipeline.dispatcher.send.assert_awaited_once_with(event)

    def test_retry_unknown_video(self, client: TestClient, pipeline: MagicMock) -> None:
        pipeline.orchestrator.retry_video.side_effect = VideoNotFoundError("vid-1", "user-1")

        response = client.post("/api/videos/vid-1/retry", params={"user_id": "user-1"})

        assert response.status_code == 404

    def test_retry_non_failed_video(self, client: TestClient, pipeline: MagicMock) -> None:
        pipeline.orchestrator.retry_video.side_effect = InvalidStatusTransitionError(
            "READY", "QUEUED"
        )

        response = client.post("/api/videos/vid-1/retry", params={"user_id": "user-1"})

        assert response.status_code == 409
        pipeline.dispatcher.send.assert_not_awaited()

    def test_retry_requires_user_id(self, client: TestClient) -> None:
        assert client.post("/api/videos/vid-1/retry").status_code == 422

    def test_delete_video(self, client: TestClient, pipeline: MagicMock) -> None:
        response = client.delete("/api/videos/vid-1", params={"user_id": "user-1"})

        assert response.status_code == 202
        event = pipeline.dispatcher.send.await_args.args[0]
        assert event.name == VIDEO_DOCUMENTS_DELETION_REQUESTED
        assert event.data == {"videoId": "vid-1", "userId": "user-1"}

    def test_delete_user_collection(self, client: TestClient, pipeline: MagicMock) -> None:
        response = client.delete("/api/users/user-1/collection")

        assert response.status_code == 202
        event = pipeline.dispatcher.send.await_args.args[0]
        assert event.name == USER_COLLECTION_DELETION_REQUESTED
        assert event.data == {"userId": "user-1"}


@pytest.mark.unit
class TestRunEvent:
    """Test background execution of events."""

    @pytest.mark.asyncio
    async def test_job_errors_are_logged_not_raised(self) -> None:
        dispatcher = MagicMock()
        dispatcher.send = AsyncMock(side_effect=RuntimeError("boom"))
        event = Event(name=USER_COLLECTION_DELETION_REQUESTED, data={"userId": "user-1"})

        await run_event(dispatcher, event)

        dispatcher.send.assert_awaited_once_with(event)
