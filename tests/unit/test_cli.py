"""Unit tests for the command line tools."""

from unittest.mock import patch

import pytest

from kiddo.cli.cleanup_audio import cleanup
from kiddo.cli.generate_content import JobProgress, main, parse_args
from kiddo.models.content import (
    ContentItem,
    ContentType,
    GenerationJob,
    JobState,
    MediaTransition,
    Medium,
    ReadingLevel,
)
from kiddo.models.generated_set import GeneratedSet, StoredContentItem
from kiddo.storage.content_store import JsonContentStore


class TestGenerateContentArgs:
    """Test argument parsing and early exits."""

    def test_defaults(self):
        args = parse_args(["--topic", "Dogs", "--type", "words", "--level", "beginner"])
        assert args.topic == "Dogs"
        assert not args.per_paragraph
        assert not args.dry_run

    def test_rejects_unknown_type(self):
        with pytest.raises(SystemExit):
            parse_args(["--topic", "Dogs", "--type", "poem", "--level", "beginner"])

    @patch("kiddo.cli.generate_content.setup_logging")
    @patch("kiddo.cli.generate_content.asyncio.run")
    def test_dry_run_calls_no_service(self, mock_run, mock_setup_logging):
        with pytest.raises(SystemExit) as exc_info:
            main(["--topic", "Dogs", "--type", "story", "--level", "advanced", "--dry-run"])

        assert exc_info.value.code == 0
        mock_run.assert_not_called()

    @patch("kiddo.cli.generate_content.setup_logging")
    @patch("kiddo.cli.generate_content.asyncio.run")
    def test_blank_topic_exits(self, mock_run, mock_setup_logging):
        with pytest.raises(SystemExit) as exc_info:
            main(["--topic", "  ", "--type", "words", "--level", "beginner"])

        assert exc_info.value.code == 1
        mock_run.assert_not_called()


class TestJobProgress:
    """Test the progress bar driven by job updates."""

    def test_counts_media_outcomes(self, words_request):
        job = GenerationJob(
            request=words_request,
            items=[ContentItem(text="Dog", display_order=0), ContentItem(text="Bark", display_order=1)],
        )
        progress = JobProgress()

        job.state = JobState.GENERATING_MEDIA
        progress(job, None)
        assert progress.pbar.total == 4

        item = job.items[0]
        item.apply(MediaTransition(item_id=item.id, medium=Medium.IMAGE, url="https://img/dog.png"))
        progress(job, item)
        assert progress.pbar.n == 1

        job.state = JobState.COMPLETE
        progress(job, None)
        assert progress.pbar is None


@pytest.mark.anyio
async def test_cleanup_keeps_stored_audio(tmp_path):
    cache_dir = tmp_path / "audio"
    cache_dir.mkdir()
    kept = cache_dir / "audio_kept.mp3"
    orphan = cache_dir / "audio_orphan.mp3"
    kept.write_bytes(b"ID3")
    orphan.write_bytes(b"ID3")

    content_dir = tmp_path / "content"
    await JsonContentStore(content_dir).save_generated_set(
        GeneratedSet(
            title="Dogs",
            type=ContentType.WORDS,
            reading_level=ReadingLevel.BEGINNER,
            items=[StoredContentItem(text="Dog", display_order=0, audio_url=str(kept))],
        )
    )

    assert await cleanup(cache_dir, content_dir, dry_run=True) == 1
    assert orphan.exists()

    assert await cleanup(cache_dir, content_dir) == 1
    assert kept.exists()
    assert not orphan.exists()
