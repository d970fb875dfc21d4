"""Script to re-run ingestion for a user's FAILED videos.

This script:
1. Lists the user's videos in FAILED status with their error messages
2. Asks for confirmation
3. Re-queues each one and runs a fresh ingestion job for it
"""

import argparse
import asyncio

from src.video_indexing.exceptions import VideoIndexingError
from src.video_indexing.pipeline import IndexingPipeline
from src.video_indexing.status import VideoStatus


async def requeue_failed(user_id: str) -> None:
    """Retry every FAILED video owned by a user."""
    pipeline = IndexingPipeline()

    videos = await pipeline.store.list_user_videos(user_id)
    failed = [video for video in videos if video.status == VideoStatus.FAILED]

    print("Current state:")
    print(f"  Videos: {len(videos)}")
    print(f"  Failed: {len(failed)}")
    for video in failed:
        print(f"    {video.id} ({video.youtube_id}): {video.error}")

    if not failed:
        print("\nNothing to retry")
        return

    confirm = input("\nRe-run ingestion for these videos? Type 'yes' to continue: ")

    if confirm.lower() != "yes":
        print("Aborted")
        return

    for video in failed:
        print(f"\nRetrying {video.id}...")
        try:
            event = await pipeline.orchestrator.retry_video(video.id, user_id, dispatch=False)
            result = await pipeline.dispatcher.send(event)
        except VideoIndexingError as e:
            print(f"  ❌ {e}")
            continue
        print(f"  {result.status.value}: {result.indexed_chunks} chunks indexed")
        if result.error:
            print(f"  ❌ {result.error}")

    print("\nDone!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Re-run ingestion for FAILED videos")
    parser.add_argument("--user-id", required=True, help="Owner user id")
    args = parser.parse_args()
    asyncio.run(requeue_failed(args.user_id))
