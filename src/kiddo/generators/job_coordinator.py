"""End-to-end generation job: text, split, media fan-out, persistence."""

import asyncio
import logging
from contextlib import nullcontext
from datetime import UTC, datetime
from typing import Callable, Optional

from constants import MEDIA_CONCURRENCY_LIMIT
from kiddo.errors import ConfigError, KiddoError, StorageError
from kiddo.generators.media_orchestrator import ItemMediaOrchestrator
from kiddo.models.content import (
    ContentItem,
    GenerationJob,
    GenerationRequest,
    JobState,
    MediaFailure,
    MediaTransition,
)
from kiddo.models.generated_set import GeneratedSet
from kiddo.parsers.content_splitter import build_items
from kiddo.storage.content_store import ContentStore
from kiddo.utils.elevenlabs_client import VoiceClient
from kiddo.utils.llm_client import TextClient
from kiddo.utils.replicate_client import ImagePollClient

logger = logging.getLogger(__name__)

JobListener = Callable[[GenerationJob, Optional[ContentItem]], None]


class GenerationJobCoordinator:
    """Owns one request from topic to a persisted, illustrated, narrated set.

    State machine::

        fetching -> splitting -> generating_media -> complete
        fetching -> failed            (text could not be obtained)

    Media failures stay on their items; only the text fetch can fail a job.
    Nothing is retried automatically. Cancelling ``run`` cancels the
    in-flight media requests and releases narration already stored for the
    job before the cancellation propagates.
    """

    def __init__(
        self,
        text_client: TextClient,
        image_client: ImagePollClient,
        voice_client: VoiceClient,
        content_store: ContentStore | None = None,
        concurrency_limit: int | None = MEDIA_CONCURRENCY_LIMIT,
        on_update: JobListener | None = None,
    ):
        """Initialize coordinator.

        Args:
            text_client: Client for the text service
            image_client: Client for the image service
            voice_client: Client for the voice service
            content_store: Where finished sets are saved (skipped if None)
            concurrency_limit: Max items generating media at once (None = unbounded)
            on_update: Called with (job, item) after every state change or media
                outcome; item is None for job-level changes
        """
        if concurrency_limit is not None and concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")

        self.text_client = text_client
        self.voice_client = voice_client
        self.orchestrator = ItemMediaOrchestrator(image_client, voice_client)
        self.content_store = content_store
        self.concurrency_limit = concurrency_limit
        self.on_update = on_update

    async def run(self, request: GenerationRequest) -> GenerationJob:
        """Run one generation job to a terminal state.

        Args:
            request: What to generate

        Returns:
            The job in state complete or failed
        """
        job = GenerationJob(request=request)
        logger.info(
            f"Starting job {job.id}: topic={request.topic!r}, "
            f"type={request.content_type.value}, level={request.reading_level.value}"
        )
        self._notify(job)

        try:
            generated = await self.text_client.generate_text(
                request.topic, request.content_type, request.reading_level
            )
        except KiddoError as e:
            return self._fail(job, e)

        if generated.is_placeholder:
            return self._fail(job, ConfigError("Text generation is unavailable: credentials missing"))

        job.title = generated.title
        self._set_state(job, JobState.SPLITTING)
        job.items = build_items(request.content_type, generated.raw_text, request.narrate_paragraphs)
        logger.info(f"Job {job.id}: split text into {len(job.items)} items")

        self._set_state(job, JobState.GENERATING_MEDIA)
        await self._generate_media(job)

        job.completed_at = datetime.now(UTC)
        self._set_state(job, JobState.COMPLETE)
        logger.info(f"✓ Job {job.id} complete: {job.get_statistics()}")

        await self._persist(job)
        return job

    async def _generate_media(self, job: GenerationJob) -> None:
        semaphore = asyncio.Semaphore(self.concurrency_limit) if self.concurrency_limit else None

        def apply(transition: MediaTransition) -> None:
            item = job.apply_transition(transition)
            self._notify(job, item)

        async def run_item(item: ContentItem) -> None:
            async with semaphore if semaphore is not None else nullcontext():
                await self.orchestrator.run(item, apply, storage_prefix=f"images/{job.id}")

        try:
            async with asyncio.TaskGroup() as tg:
                for item in job.items:
                    tg.create_task(run_item(item))
        except asyncio.CancelledError:
            logger.warning(f"Job {job.id} cancelled during media generation, releasing audio")
            await self._release_audio(job)
            raise

    async def _release_audio(self, job: GenerationJob) -> None:
        for item in job.items:
            if item.audio_url:
                await self.voice_client.release_voice(item.audio_url)

    async def _persist(self, job: GenerationJob) -> None:
        if self.content_store is None:
            return
        if not job.items:
            logger.info(f"Job {job.id} produced no items, nothing to persist")
            return

        try:
            job.content_id = await self.content_store.save_generated_set(GeneratedSet.from_job(job))
            logger.info(f"Job {job.id} saved as content {job.content_id}")
        except StorageError as e:
            job.persist_error = str(e)
            logger.error(f"✗ Failed to save job {job.id}: {e}")
        except Exception as e:
            job.persist_error = f"{type(e).__name__}: {e}"
            logger.exception(f"✗ Unexpected error saving job {job.id}: {e}")
        self._notify(job)

    def _fail(self, job: GenerationJob, error: KiddoError) -> GenerationJob:
        job.error = MediaFailure.from_exception(error)
        job.completed_at = datetime.now(UTC)
        self._set_state(job, JobState.FAILED)
        logger.error(f"✗ Job {job.id} failed: {error}")
        return job

    def _set_state(self, job: GenerationJob, state: JobState) -> None:
        job.state = state
        self._notify(job)

    def _notify(self, job: GenerationJob, item: ContentItem | None = None) -> None:
        if self.on_update is not None:
            self.on_update(job, item)
