"""Audio backends for the playback engine."""

import asyncio
import io
import logging
from pathlib import Path
from typing import Callable, Optional

import aiofiles
import httpx
import numpy as np
from pydub import AudioSegment

logger = logging.getLogger(__name__)


class SoundDeviceResource:
    """Decoded narration played through the default output device.

    Pausing remembers the position so ``play`` resumes where it stopped;
    after a natural finish the position rewinds to the start.
    """

    def __init__(self, ref: str, segment: AudioSegment, on_finished: Callable[[], None]):
        self.ref = ref
        self._segment: Optional[AudioSegment] = segment
        self._on_finished = on_finished
        self._position_ms = 0
        self._started_at: Optional[float] = None
        self._finish_task: Optional[asyncio.Task] = None

    async def play(self) -> None:
        import sounddevice as sd

        if self._segment is None:
            raise RuntimeError(f"Audio resource {self.ref} is unloaded")

        remaining = self._segment[self._position_ms:]
        samples = np.array(remaining.get_array_of_samples()).reshape(-1, remaining.channels)
        sd.play(samples, remaining.frame_rate)

        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        self._finish_task = loop.create_task(self._wait_for_end(len(remaining) / 1000))

    async def pause(self) -> None:
        import sounddevice as sd

        sd.stop()
        if self._started_at is not None:
            elapsed_ms = int((asyncio.get_running_loop().time() - self._started_at) * 1000)
            self._position_ms += elapsed_ms
            if self._segment is not None:
                self._position_ms = min(self._position_ms, len(self._segment))
            self._started_at = None
        self._cancel_finish_task()

    async def unload(self) -> None:
        import sounddevice as sd

        sd.stop()
        self._cancel_finish_task()
        self._segment = None

    async def _wait_for_end(self, duration_s: float) -> None:
        await asyncio.sleep(duration_s)
        self._position_ms = 0
        self._started_at = None
        self._finish_task = None
        self._on_finished()

    def _cancel_finish_task(self) -> None:
        if self._finish_task is not None:
            self._finish_task.cancel()
            self._finish_task = None


class SoundDeviceBackend:
    """Loads narration from a local file or an http(s) URL and decodes it with pydub."""

    def __init__(self, request_timeout: float = 30.0):
        self.request_timeout = request_timeout

    async def load(self, ref: str, on_finished: Callable[[], None]) -> SoundDeviceResource:
        data = await self._read(ref)
        segment = await asyncio.to_thread(AudioSegment.from_file, io.BytesIO(data))
        logger.debug(f"Decoded {ref}: {len(segment)}ms, {segment.channels}ch @ {segment.frame_rate}Hz")
        return SoundDeviceResource(ref, segment, on_finished)

    async def _read(self, ref: str) -> bytes:
        if ref.startswith(("http://", "https://")):
            async with httpx.AsyncClient(timeout=self.request_timeout) as client:
                response = await client.get(ref)
                response.raise_for_status()
                return response.content

        path = Path(ref.removeprefix("file://"))
        async with aiofiles.open(path, "rb") as f:
            return await f.read()
