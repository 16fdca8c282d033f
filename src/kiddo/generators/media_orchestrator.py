"""Per-item media generation: one image and one narration, run concurrently."""

import asyncio
import logging
from typing import Callable, List

from kiddo.models.content import ContentItem, MediaFailure, MediaTransition, Medium
from kiddo.utils.elevenlabs_client import VoiceClient
from kiddo.utils.replicate_client import ImagePollClient

logger = logging.getLogger(__name__)

TransitionHandler = Callable[[MediaTransition], None]


class ItemMediaOrchestrator:
    """Runs image and voice generation for one item.

    Each medium publishes its own transition the moment it finishes, so a
    slow image never holds back a finished narration. Errors of either
    medium are recorded as failures and never reach the other medium or
    the caller.
    """

    def __init__(self, image_client: ImagePollClient, voice_client: VoiceClient):
        self.image_client = image_client
        self.voice_client = voice_client

    async def run(
        self,
        item: ContentItem,
        on_transition: TransitionHandler,
        storage_prefix: str = "images",
    ) -> List[MediaTransition]:
        """Generate both media for an item.

        Args:
            item: Item in processing state
            on_transition: Called once per medium with its outcome
            storage_prefix: Key prefix for re-hosted images

        Returns:
            The image and audio transitions, in that order
        """
        logger.info(f"Generating media for item {item.display_order}: {item.text[:50]!r}")
        transitions = await asyncio.gather(
            self._generate_image(item, on_transition, storage_prefix),
            self._generate_voice(item, on_transition),
        )
        return list(transitions)

    async def _generate_image(
        self,
        item: ContentItem,
        on_transition: TransitionHandler,
        storage_prefix: str,
    ) -> MediaTransition:
        try:
            result = await self.image_client.request_image(item.text, storage_prefix=storage_prefix)
            transition = MediaTransition(item_id=item.id, medium=Medium.IMAGE, url=result.url)
        except Exception as e:
            logger.warning(f"Image generation failed for item {item.display_order}: {e}")
            transition = MediaTransition(
                item_id=item.id, medium=Medium.IMAGE, error=MediaFailure.from_exception(e)
            )
        on_transition(transition)
        return transition

    async def _generate_voice(
        self,
        item: ContentItem,
        on_transition: TransitionHandler,
    ) -> MediaTransition:
        try:
            result = await self.voice_client.request_voice(item.text)
            transition = MediaTransition(item_id=item.id, medium=Medium.AUDIO, url=result.audio_ref)
        except Exception as e:
            logger.warning(f"Voice generation failed for item {item.display_order}: {e}")
            transition = MediaTransition(
                item_id=item.id, medium=Medium.AUDIO, error=MediaFailure.from_exception(e)
            )
        on_transition(transition)
        return transition
