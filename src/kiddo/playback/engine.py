"""Single-flight audio playback.

The engine owns at most one loaded audio resource. Loading a different
reference always releases the current one first, and a load that finishes
after a newer ``play()`` superseded it is released instead of committed.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Protocol

from kiddo.models.sessions import LoadingState, PlaybackSession

logger = logging.getLogger(__name__)

PlaybackListener = Callable[[PlaybackSession], None]


class AudioResource(Protocol):
    """A loaded audio stream."""

    ref: str

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def unload(self) -> None: ...


class AudioBackend(Protocol):
    """Loads audio resources.

    ``on_finished`` must be invoked on the event loop thread when playback
    reaches the end of the stream.
    """

    async def load(self, ref: str, on_finished: Callable[[], None]) -> AudioResource: ...


class PlaybackEngine:
    """Plays generated narration, one stream at a time.

    States: idle -> loading -> loaded (playing or paused) -> idle, and
    loading -> error. Failures never raise to the caller; they are exposed
    through ``state``.
    """

    def __init__(self, backend: AudioBackend):
        self._backend = backend
        self._resource: Optional[AudioResource] = None
        self._session = PlaybackSession()
        self._desired_ref: Optional[str] = None
        self._play_requested = False
        self._generation = 0
        self._load_lock = asyncio.Lock()
        self._listeners: List[PlaybackListener] = []

    @property
    def state(self) -> PlaybackSession:
        return self._session

    def subscribe(self, listener: PlaybackListener) -> Callable[[], None]:
        """Register a state listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes) -> None:
        self._session = self._session.model_copy(update=changes)
        for listener in list(self._listeners):
            listener(self._session)

    def _is_loaded(self, ref: str) -> bool:
        return (
            self._resource is not None
            and self._session.loading_state == LoadingState.LOADED
            and self._session.current_audio_ref == ref
        )

    async def play(self, ref: str) -> None:
        """Play ref, or toggle play/pause if ref is already loaded.

        Toggle versus load is decided when the call is made. A call that
        queued behind a load of the same ref starts playback instead.
        """
        if self._is_loaded(ref):
            await self._toggle()
            return

        self._desired_ref = ref
        self._play_requested = True
        async with self._load_lock:
            if self._desired_ref != ref:
                logger.debug(f"play({ref}) superseded before loading")
                return
            if self._is_loaded(ref):
                if self._play_requested and not self._session.is_playing:
                    await self._start()
                return

            await self._unload_current()
            self._generation += 1
            generation = self._generation
            self._set_state(
                current_audio_ref=ref,
                loading_state=LoadingState.LOADING,
                is_playing=False,
                error=None,
            )

            logger.info(f"Loading audio: {ref}")
            try:
                resource = await self._backend.load(
                    ref, on_finished=lambda: self._on_finished(generation)
                )
            except Exception as e:
                logger.error(f"✗ Failed to load audio {ref}: {e}")
                if self._desired_ref == ref:
                    self._set_state(
                        current_audio_ref=None,
                        loading_state=LoadingState.ERROR,
                        is_playing=False,
                        error=str(e) or type(e).__name__,
                    )
                return

            if self._desired_ref != ref:
                logger.info(f"Discarding stale load of {ref}")
                await self._release(resource)
                return

            self._resource = resource
            self._set_state(loading_state=LoadingState.LOADED)
            if self._play_requested:
                await self._start()
            else:
                logger.debug(f"Loaded {ref} paused, stop() was requested during the load")

    async def stop(self) -> None:
        """Pause playback, keeping the resource loaded for a cheap resume.

        During a load, the audio is committed paused instead of started.
        """
        self._play_requested = False
        if self._resource is None or not self._session.is_playing:
            return
        try:
            await self._resource.pause()
        except Exception as e:
            await self._fail(e)
            return
        self._set_state(is_playing=False)

    async def close(self) -> None:
        """Release the loaded resource. Waits for an in-flight load to settle."""
        self._desired_ref = None
        self._play_requested = False
        async with self._load_lock:
            await self._unload_current()

    async def __aenter__(self) -> "PlaybackEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _toggle(self) -> None:
        if self._session.is_playing:
            await self.stop()
        else:
            self._play_requested = True
            await self._start()

    async def _start(self) -> None:
        try:
            await self._resource.play()
        except Exception as e:
            await self._fail(e)
            return
        self._set_state(is_playing=True)

    def _on_finished(self, generation: int) -> None:
        # Completion of a resource that has since been replaced is ignored
        if generation != self._generation or self._resource is None:
            return
        logger.debug(f"Playback finished: {self._session.current_audio_ref}")
        self._set_state(is_playing=False)

    async def _fail(self, error: Exception) -> None:
        logger.error(f"✗ Playback error for {self._session.current_audio_ref}: {error}")
        await self._unload_current()
        self._set_state(loading_state=LoadingState.ERROR, error=str(error) or type(error).__name__)

    async def _unload_current(self) -> None:
        resource, self._resource = self._resource, None
        if resource is not None:
            await self._release(resource)
        self._set_state(
            current_audio_ref=None,
            loading_state=LoadingState.IDLE,
            is_playing=False,
        )

    @staticmethod
    async def _release(resource: AudioResource) -> None:
        try:
            await resource.unload()
            logger.debug(f"Unloaded audio: {resource.ref}")
        except Exception as e:
            logger.error(f"Error unloading audio {resource.ref}: {e}")


_engine: Optional[PlaybackEngine] = None


def get_playback_engine(backend: AudioBackend | None = None) -> PlaybackEngine:
    """Process-wide playback engine, created on first use.

    Args:
        backend: Backend for the first call (defaults to SoundDeviceBackend)
    """
    global _engine
    if _engine is None:
        if backend is None:
            from kiddo.playback.backends import SoundDeviceBackend

            backend = SoundDeviceBackend()
        _engine = PlaybackEngine(backend)
    return _engine
