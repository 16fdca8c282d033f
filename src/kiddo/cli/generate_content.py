"""CLI for generating an illustrated, narrated reading set.

Fetches text for a topic, splits it into items, generates an image and a
narration per item and saves the finished set to the content store.

Usage:
    python -m kiddo.cli.generate_content \\
        --topic "Dogs" \\
        --type words \\
        --level beginner \\
        --concurrency 3 \\
        --output output/content/
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from tqdm import tqdm

from constants import CONTENT_STORE_DIR, MEDIA_CONCURRENCY_LIMIT
from kiddo import CONTENT_TYPES, READING_LEVELS
from kiddo.generators.job_coordinator import GenerationJobCoordinator
from kiddo.models.content import (
    ContentItem,
    ContentType,
    GenerationJob,
    GenerationRequest,
    JobState,
    ReadingLevel,
)
from kiddo.storage.content_store import JsonContentStore
from kiddo.utils.elevenlabs_client import VoiceClient
from kiddo.utils.llm_client import TextClient
from kiddo.utils.r2_client import R2Client
from kiddo.utils.replicate_client import ImagePollClient
from libs.logging_helper import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Generate an illustrated, narrated reading set for a topic",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--topic", required=True, help="Topic to write about (e.g., 'Dogs')")
    parser.add_argument(
        "--type",
        required=True,
        choices=CONTENT_TYPES,
        help="Kind of content to generate",
    )
    parser.add_argument(
        "--level",
        required=True,
        choices=READING_LEVELS,
        help="Reading level of the audience",
    )
    parser.add_argument(
        "--per-paragraph",
        action="store_true",
        help="Split passages and stories into one item per paragraph",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=MEDIA_CONCURRENCY_LIMIT,
        help="Max items generating media at once (default: unbounded)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(CONTENT_STORE_DIR),
        help=f"Content store directory (default: {CONTENT_STORE_DIR})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be generated without calling any service",
    )

    return parser.parse_args(argv)


class JobProgress:
    """Drives a tqdm bar from coordinator updates, one tick per media outcome."""

    def __init__(self):
        self.pbar: Optional[tqdm] = None

    def __call__(self, job: GenerationJob, item: Optional[ContentItem]) -> None:
        if item is None:
            if job.state == JobState.GENERATING_MEDIA and self.pbar is None:
                self.pbar = tqdm(total=len(job.items) * 2, desc="Generating media", unit="media")
            elif job.is_terminal:
                self.close()
            return
        if self.pbar is not None:
            self.pbar.update(1)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None


def log_summary(job: GenerationJob, text_client: TextClient) -> None:
    """Log a human-readable summary of a finished job."""
    stats = job.get_statistics()

    logger.info("\n" + "=" * 80)
    logger.info("GENERATION SUMMARY")
    logger.info("=" * 80)
    logger.info(f"Job: {job.id}")
    logger.info(f"Title: {job.title}")
    logger.info(f"State: {job.state.value}")
    logger.info(f"Items: {stats['total_items']}")
    logger.info(f"  Images: {stats['images_ok']} ok, {stats['images_failed']} failed")
    logger.info(f"  Audio:  {stats['audio_ok']} ok, {stats['audio_failed']} failed")

    for item in sorted(job.items, key=lambda i: i.display_order):
        image = "✓" if item.image_url else "✗"
        audio = "✓" if item.audio_url else "✗"
        logger.info(f"  [{item.display_order}] image {image} audio {audio}  {item.text[:60]}")
        if item.image_error:
            logger.info(f"      image: {item.image_error.kind.value}: {item.image_error.message}")
        if item.audio_error:
            logger.info(f"      audio: {item.audio_error.kind.value}: {item.audio_error.message}")

    usage = text_client.get_usage_summary()
    logger.info("\nToken Usage:")
    logger.info(f"  Prompt tokens: {usage['prompt_tokens']:,}")
    logger.info(f"  Completion tokens: {usage['completion_tokens']:,}")

    if job.content_id:
        logger.info(f"\nSaved as content {job.content_id}")
    if job.persist_error:
        logger.warning(f"\nNot saved: {job.persist_error}")
    logger.info("=" * 80 + "\n")


async def run(request: GenerationRequest, args) -> GenerationJob:
    text_client = TextClient()
    image_client = ImagePollClient(image_store=R2Client.from_env())
    voice_client = VoiceClient()
    progress = JobProgress()

    coordinator = GenerationJobCoordinator(
        text_client=text_client,
        image_client=image_client,
        voice_client=voice_client,
        content_store=JsonContentStore(args.output),
        concurrency_limit=args.concurrency,
        on_update=progress,
    )

    try:
        job = await coordinator.run(request)
    finally:
        progress.close()

    log_summary(job, text_client)
    return job


def main(argv=None):
    """Main entry point for content generation CLI."""
    args = parse_args(argv)
    setup_logging(log_level=logging.INFO)

    try:
        request = GenerationRequest(
            topic=args.topic,
            content_type=ContentType(args.type),
            reading_level=ReadingLevel(args.level),
            narrate_paragraphs=args.per_paragraph,
        )
    except ValidationError as e:
        logger.error(f"Invalid request: {e}")
        sys.exit(1)

    if args.concurrency is not None and args.concurrency < 1:
        logger.error("--concurrency must be at least 1")
        sys.exit(1)

    logger.info("Starting content generation:")
    logger.info(f"  Topic: {request.topic}")
    logger.info(f"  Type: {request.content_type.value}")
    logger.info(f"  Level: {request.reading_level.value}")
    logger.info(f"  Per paragraph: {request.narrate_paragraphs}")
    logger.info(f"  Concurrency: {args.concurrency or 'unbounded'}")
    logger.info(f"  Output: {args.output}")

    if args.dry_run:
        logger.info("DRY RUN - no content will be generated")
        sys.exit(0)

    try:
        job = asyncio.run(run(request, args))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        sys.exit(130)

    if job.state == JobState.FAILED:
        logger.error(f"✗ Generation failed: {job.error.message if job.error else 'unknown error'}")
        sys.exit(1)


if __name__ == "__main__":
    main()
