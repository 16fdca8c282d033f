"""CLI for deleting cached narration files no stored set refers to.

Usage:
    python -m kiddo.cli.cleanup_audio --dry-run
    python -m kiddo.cli.cleanup_audio --content-dir output/content/
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from constants import AUDIO_CACHE_DIR, CONTENT_STORE_DIR
from kiddo.errors import StorageError
from kiddo.storage.content_store import JsonContentStore
from kiddo.utils.elevenlabs_client import VoiceClient
from libs.logging_helper import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Delete cached narration files that no stored set refers to"
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=Path(AUDIO_CACHE_DIR),
        help=f"Narration cache directory (default: {AUDIO_CACHE_DIR})",
    )
    parser.add_argument(
        "--content-dir",
        type=Path,
        default=Path(CONTENT_STORE_DIR),
        help=f"Content store directory (default: {CONTENT_STORE_DIR})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List files that would be deleted without deleting them",
    )
    return parser.parse_args(argv)


async def cleanup(cache_dir: Path, content_dir: Path, dry_run: bool = False) -> int:
    """Release orphaned narration files.

    Returns:
        Number of files released (or that would be released on a dry run)
    """
    store = JsonContentStore(content_dir)
    keep = [ref for generated_set in await store.list_generated_sets() for ref in generated_set.audio_refs()]
    logger.info(f"Keeping {len(keep)} audio files referenced by stored sets")

    voice_client = VoiceClient(cache_dir=cache_dir)

    if dry_run:
        orphaned = await voice_client.list_orphaned(keep)
        for path in orphaned:
            logger.info(f"Would delete: {path}")
        return len(orphaned)

    return await voice_client.release_all_orphaned(keep)


def main(argv=None):
    """Main entry point for audio cleanup CLI."""
    args = parse_args(argv)
    setup_logging(log_level=logging.INFO)

    logger.info("=" * 80)
    logger.info("Narration Cache Cleanup")
    logger.info("=" * 80)
    logger.info(f"Cache: {args.cache_dir}")
    logger.info(f"Content: {args.content_dir}")
    if args.dry_run:
        logger.info("🔍 DRY RUN MODE - No files will be deleted")

    try:
        count = asyncio.run(cleanup(args.cache_dir, args.content_dir, args.dry_run))
    except StorageError as e:
        logger.error(f"✗ Could not read stored sets, nothing deleted: {e}")
        sys.exit(1)

    verb = "Would delete" if args.dry_run else "Deleted"
    logger.info(f"✓ {verb} {count} orphaned audio files")


if __name__ == "__main__":
    main()
