"""Video store: reads and owner-scoped writes of video records in Supabase."""

import asyncio
from datetime import UTC, datetime
from typing import Any, Protocol

from postgrest.exceptions import APIError
from supabase import Client

from src.utils.logging import get_logger

from .exceptions import VideoNotFoundError, VideoStoreError
from .schemas import Video
from .status import VideoStatus

logger = get_logger(__name__)

VIDEO_COLUMNS = (
    "id, userId, youtubeId, title, duration, status, error, "
    "zeroentropyCollectionId, createdAt, updatedAt"
)


class VideoStore(Protocol):
    """Owner-scoped access to video records."""

    async def get_video(self, video_id: str, user_id: str) -> Video:
        """Raise ``VideoNotFoundError`` when absent or owned by someone else."""
        ...

    async def list_user_videos(self, user_id: str) -> list[Video]: ...

    async def update_status(
        self, video_id: str, user_id: str, status: VideoStatus, error: str | None = None
    ) -> None: ...

    async def set_collection(self, video_id: str, user_id: str, collection_id: str) -> None: ...

    async def delete_video(self, video_id: str, user_id: str) -> None: ...

    async def delete_user_videos(self, user_id: str) -> int: ...


class SupabaseVideoStore:
    """Video store backed by the Supabase ``videos`` table.

    Every write filters on both the primary key and ``userId`` so a job can
    never touch another tenant's rows.
    """

    def __init__(self, client: Client):
        self.client = client
        logger.info("video_store_initialized", backend="supabase")

    async def _execute(self, query: Any, action: str, **context: Any) -> Any:
        try:
            return await asyncio.to_thread(query.execute)
        except APIError as e:
            logger.exception(f"{action}_failed", error_type=type(e).__name__, **context)
            raise VideoStoreError(f"Failed to {action.replace('_', ' ')}: {e.message}") from e

    async def get_video(self, video_id: str, user_id: str) -> Video:
        response = await self._execute(
            self.client.table("videos")
            .select(VIDEO_COLUMNS)
            .eq("id", video_id)
            .eq("userId", user_id),
            "fetch_video",
            video_id=video_id,
        )
        if not response.data:
            raise VideoNotFoundError(video_id, user_id)
        return Video.model_validate(response.data[0])

    async def list_user_videos(self, user_id: str) -> list[Video]:
        response = await self._execute(
            self.client.table("videos").select(VIDEO_COLUMNS).eq("userId", user_id),
            "fetch_user_videos",
            user_id=user_id,
        )
        videos = [Video.model_validate(row) for row in response.data or []]
        logger.info("user_videos_fetched", user_id=user_id, count=len(videos))
        return videos

    async def update_status(
        self, video_id: str, user_id: str, status: VideoStatus, error: str | None = None
    ) -> None:
        """Write a status, stamping ``updatedAt``.

        ``error`` is written as given, so leaving the FAILED state clears it.
        """
        data = {
            "status": status.value,
            "error": error,
            "updatedAt": datetime.now(UTC).isoformat(),
        }
        await self._execute(
            self.client.table("videos").update(data).eq("id", video_id).eq("userId", user_id),
            "update_video_status",
            video_id=video_id,
            status=status.value,
        )
        logger.info("video_status_updated", video_id=video_id, status=status.value, error=error)

    async def set_collection(self, video_id: str, user_id: str, collection_id: str) -> None:
        await self._execute(
            self.client.table("videos")
            .update(
                {
                    "zeroentropyCollectionId": collection_id,
                    "updatedAt": datetime.now(UTC).isoformat(),
                }
            )
            .eq("id", video_id)
            .eq("userId", user_id),
            "update_video_collection",
            video_id=video_id,
        )
        logger.info("video_collection_set", video_id=video_id, collection_id=collection_id)

    async def delete_video(self, video_id: str, user_id: str) -> None:
        await self._execute(
            self.client.table("videos").delete().eq("id", video_id).eq("userId", user_id),
            "delete_video",
            video_id=video_id,
        )
        logger.info("video_deleted", video_id=video_id, user_id=user_id)

    async def delete_user_videos(self, user_id: str) -> int:
        response = await self._execute(
            self.client.table("videos").delete().eq("userId", user_id),
            "delete_user_videos",
            user_id=user_id,
        )
        count = len(response.data or [])
        logger.info("user_videos_deleted", user_id=user_id, count=count)
        return count
