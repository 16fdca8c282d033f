"""ElevenLabs TTS client that stores narration in a local audio cache."""

import logging
import time
from pathlib import Path
from typing import Iterable, List
from uuid import uuid4

import aiofiles
import aiofiles.os
import httpx
from elevenlabs import VoiceSettings
from elevenlabs.client import AsyncElevenLabs
from elevenlabs.core.api_error import ApiError
from pydantic import BaseModel

from constants import AUDIO_CACHE_DIR, ELEVENLABS_API_KEY, ELEVENLABS_MODEL_ID, ELEVENLABS_VOICE_ID
from kiddo.errors import ConfigError, DecodeError, ServiceError, StorageError

logger = logging.getLogger(__name__)


class VoiceResult(BaseModel):
    """Reference to a stored narration file."""

    audio_ref: str
    byte_count: int
    latency_ms: int = 0


class VoiceClient:
    """Client for ElevenLabs Text-to-Speech.

    Audio is requested once per call (no automatic retries), validated, and
    written to the cache directory. Callers only ever see the file
    reference, never the bytes.
    """

    FILE_PREFIX = "audio_"
    FILE_SUFFIX = ".mp3"
    OUTPUT_FORMAT = "mp3_44100_128"

    def __init__(
        self,
        api_key: str | None = None,
        voice_id: str | None = None,
        model_id: str | None = None,
        cache_dir: str | Path | None = None,
        voice_settings: VoiceSettings | None = None,
        client: AsyncElevenLabs | None = None,
    ):
        """Initialize voice client.

        Args:
            api_key: ElevenLabs API key (or ELEVENLABS_API_KEY env var)
            voice_id: Voice to narrate with (defaults to a child-friendly voice)
            model_id: ElevenLabs model ID
            cache_dir: Directory narration files are written to
            voice_settings: Stability/similarity settings
            client: Pre-built AsyncElevenLabs client
        """
        self.api_key = api_key or ELEVENLABS_API_KEY
        self.voice_id = voice_id or ELEVENLABS_VOICE_ID
        self.model_id = model_id or ELEVENLABS_MODEL_ID
        self.cache_dir = Path(cache_dir or AUDIO_CACHE_DIR)
        self.voice_settings = voice_settings or VoiceSettings(
            stability=0.75,
            similarity_boost=0.75,
            style=0.5,
            use_speaker_boost=True,
        )
        self._client = client

        # Cost tracking
        self.total_characters = 0
        self.total_requests = 0
        self.failed_requests = 0

    def _get_client(self) -> AsyncElevenLabs:
        if self._client is None:
            self._client = AsyncElevenLabs(api_key=self.api_key)
        return self._client

    async def request_voice(self, text: str) -> VoiceResult:
        """Synthesize narration for text and store it in the cache.

        Args:
            text: Text to narrate

        Returns:
            VoiceResult with the stored file reference

        Raises:
            ConfigError: API key missing
            ServiceError: ElevenLabs rejected the request or could not be reached
            DecodeError: The audio payload is empty or not MP3
            StorageError: The audio could not be written to the cache
        """
        if not self.api_key:
            logger.error("ElevenLabs API key is missing")
            raise ConfigError("ElevenLabs API key not configured.")

        logger.info(f"Generating voice for text (first 50 chars): {text[:50]!r}")
        start_time = time.time()
        self.total_requests += 1

        try:
            audio_bytes = await self._synthesize(text)
            audio_bytes = self._decode_payload(audio_bytes)
            path = await self._store(audio_bytes)
        except Exception:
            self.failed_requests += 1
            raise

        latency_ms = int((time.time() - start_time) * 1000)
        self.total_characters += len(text)
        logger.info(f"✓ Audio generated successfully: {len(audio_bytes)} bytes, {latency_ms}ms -> {path}")
        return VoiceResult(audio_ref=str(path), byte_count=len(audio_bytes), latency_ms=latency_ms)

    async def _synthesize(self, text: str) -> bytes:
        client = self._get_client()
        chunks = []
        try:
            async for chunk in client.text_to_speech.convert(
                voice_id=self.voice_id,
                text=text,
                model_id=self.model_id,
                output_format=self.OUTPUT_FORMAT,
                voice_settings=self.voice_settings,
            ):
                chunks.append(chunk)
        except ApiError as e:
            body = e.body if isinstance(e.body, str) or e.body is None else str(e.body)
            logger.error(f"✗ ElevenLabs request failed: {e.status_code} {str(body)[:200]}")
            raise ServiceError(
                "ElevenLabs request failed", status_code=e.status_code, body=body
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"✗ ElevenLabs request failed: {e}")
            raise ServiceError(f"ElevenLabs request failed: {e}") from e
        return b"".join(chunks)

    @staticmethod
    def _decode_payload(data: bytes) -> bytes:
        """Validate that the payload is an MP3 stream."""
        if not data:
            raise DecodeError("Audio payload is empty")
        has_id3_tag = data[:3] == b"ID3"
        has_frame_sync = len(data) >= 2 and data[0] == 0xFF and (data[1] & 0xE0) == 0xE0
        if not (has_id3_tag or has_frame_sync):
            raise DecodeError(f"Audio payload is not MP3 data ({len(data)} bytes)")
        return data

    async def _store(self, data: bytes) -> Path:
        path = self.cache_dir / f"{self.FILE_PREFIX}{uuid4().hex}{self.FILE_SUFFIX}"
        try:
            await aiofiles.os.makedirs(self.cache_dir, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error(f"✗ Error writing audio file {path}: {e}")
            raise StorageError(f"Failed to save audio file: {e}") from e
        return path

    def _is_cached_audio(self, path: Path) -> bool:
        return (
            path.parent.resolve() == self.cache_dir.resolve()
            and path.name.startswith(self.FILE_PREFIX)
            and path.name.endswith(self.FILE_SUFFIX)
        )

    async def release_voice(self, audio_ref: str) -> bool:
        """Delete a stored narration file.

        Deleting a file that is already gone is not an error.

        Args:
            audio_ref: Reference returned by request_voice

        Returns:
            True if the reference is released, False if it was skipped or
            could not be deleted
        """
        path = Path(audio_ref)
        if not audio_ref or not self._is_cached_audio(path):
            logger.info(f"Audio ref is not a cached narration file, skipping cleanup: {audio_ref}")
            return False

        try:
            await aiofiles.os.remove(path)
            logger.info(f"Deleted audio file: {path}")
        except FileNotFoundError:
            logger.debug(f"Audio file already deleted: {path}")
        except OSError as e:
            logger.error(f"Error deleting audio file {path}: {e}")
            return False
        return True

    async def list_orphaned(self, keep: Iterable[str] = ()) -> List[Path]:
        """Cached narration files not referenced by keep."""
        if not await aiofiles.os.path.isdir(self.cache_dir):
            return []

        keep_paths = {str(Path(ref).resolve()) for ref in keep if ref}
        orphaned = []
        for name in sorted(await aiofiles.os.listdir(self.cache_dir)):
            path = self.cache_dir / name
            if self._is_cached_audio(path) and str(path.resolve()) not in keep_paths:
                orphaned.append(path)
        return orphaned

    async def release_all_orphaned(self, keep: Iterable[str] = ()) -> int:
        """Delete every cached narration file that is not in keep.

        Args:
            keep: References still owned by stored sets or running jobs

        Returns:
            Number of files released
        """
        logger.info(f"Cleaning up orphaned audio files in {self.cache_dir}")

        released = 0
        for path in await self.list_orphaned(keep):
            if await self.release_voice(str(path)):
                released += 1

        logger.info(f"Finished cleaning up {released} audio files")
        return released

    def get_cost_estimate(self, character_count: int | None = None) -> dict:
        """Cost estimate for character usage (assumes $0.30 per 1000 characters)."""
        chars = character_count or self.total_characters
        cost_per_1k = 0.30
        return {
            "character_count": chars,
            "cost_per_1000_chars": cost_per_1k,
            "estimated_cost_usd": round((chars / 1000) * cost_per_1k, 2),
            "total_requests": self.total_requests,
            "failed_requests": self.failed_requests,
        }
