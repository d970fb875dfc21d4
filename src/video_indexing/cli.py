"""Command-line interface for running indexing jobs by hand."""

import argparse
import asyncio
import sys

from src.utils.logging import get_logger

from .config import get_config
from .events import (
    trigger_user_collection_deletion,
    trigger_video_documents_deletion,
    trigger_video_processing,
)
from .exceptions import VideoIndexingError
from .pipeline import IndexingPipeline
from .schemas import CollectionDeletionResult, IngestionResult, VideoDeletionResult
from .status import VideoStatus, ensure_transition

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Video Indexing Pipeline - Extract, chunk and index video transcripts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest a queued video
  python -m src.video_indexing.cli process --video-id 42 --user-id u1

  # Re-run a FAILED video
  python -m src.video_indexing.cli retry --video-id 42 --user-id u1

  # Remove a video and its indexed documents
  python -m src.video_indexing.cli delete-video --video-id 42 --user-id u1

  # Remove a user's whole collection and all of their videos
  python -m src.video_indexing.cli delete-collection --user-id u1
        """,
    )
    parser.add_argument(
        "--in-memory-ledger",
        action="store_true",
        help="Keep the step ledger in memory instead of Supabase",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("process", "Run the ingestion job for a video"),
        ("retry", "Re-queue a FAILED video and run ingestion again"),
        ("delete-video", "Delete a video's indexed documents and its record"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--video-id", required=True, help="Video record id")
        sub.add_argument("--user-id", required=True, help="Owner user id")

    sub = subparsers.add_parser(
        "delete-collection", help="Delete a user's collection and all of their videos"
    )
    sub.add_argument("--user-id", required=True, help="Owner user id")

    return parser


def print_ingestion_result(result: IngestionResult) -> None:
    print("\n" + "=" * 60)
    print("Ingestion Results")
    print("=" * 60)
    print(f"Video: {result.video_id}")
    print(f"Status: {result.status.value}")
    print(f"Collection: {result.collection_name or 'N/A'}")
    print(f"Level 1 chunks: {result.level1_chunks}")
    print(f"Level 2 chunks: {result.level2_chunks}")
    print(f"Indexed chunks: {result.indexed_chunks}")
    if result.error:
        print(f"\n❌ {result.error}")
    else:
        print("\n✅ Video is ready")
    print("=" * 60 + "\n")


def print_deletion_result(result: VideoDeletionResult | CollectionDeletionResult) -> None:
    print("\n" + "=" * 60)
    print("Deletion Results")
    print("=" * 60)
    if isinstance(result, VideoDeletionResult):
        print(f"Video: {result.video_id}")
        print(f"Collection: {result.collection_name or 'N/A'}")
        print(f"Documents deleted: {result.documents_deleted}")
    else:
        print(f"User: {result.user_id}")
        print(f"Collection: {result.collection_name}")
        print(f"Collection deleted: {result.collection_deleted}")
        print(f"Collections processed: {result.collections_processed}")
        print(f"Videos deleted: {result.videos_deleted}")
    print("=" * 60 + "\n")


async def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Process exit code: 0 on success, 1 when the job failed.
    """
    args = build_parser().parse_args(argv)
    config = get_config()

    logger.info("cli_started", command=args.command, in_memory_ledger=args.in_memory_ledger)

    try:
        pipeline = IndexingPipeline(config, durable=not args.in_memory_ledger)

        if args.command == "process":
            video = await pipeline.store.get_video(args.video_id, args.user_id)
            if video.status == VideoStatus.PENDING:
                ensure_transition(video.status, VideoStatus.QUEUED)
                await pipeline.store.update_status(video.id, video.user_id, VideoStatus.QUEUED)
                video = video.model_copy(update={"status": VideoStatus.QUEUED})
            result = await trigger_video_processing(pipeline.dispatcher, video)
            print_ingestion_result(result)
            return 1 if result.status == VideoStatus.FAILED else 0

        if args.command == "retry":
            event = await pipeline.orchestrator.retry_video(
                args.video_id, args.user_id, dispatch=False
            )
            result = await pipeline.dispatcher.send(event)
            print_ingestion_result(result)
            return 1 if result.status == VideoStatus.FAILED else 0

        if args.command == "delete-video":
            result = await trigger_video_documents_deletion(
                pipeline.dispatcher, args.video_id, args.user_id
            )
        else:
            result = await trigger_user_collection_deletion(pipeline.dispatcher, args.user_id)
        print_deletion_result(result)
        return 0

    except (VideoIndexingError, ValueError) as e:
        logger.exception("cli_command_failed", command=args.command, error_type=type(e).__name__)
        print(f"\n❌ {args.command} failed: {e}")
        return 1


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
