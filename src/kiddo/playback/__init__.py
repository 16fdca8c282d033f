"""Single-flight playback of generated narration."""

from kiddo.playback.engine import (
    AudioBackend,
    AudioResource,
    PlaybackEngine,
    get_playback_engine,
)

__all__ = [
    "AudioBackend",
    "AudioResource",
    "PlaybackEngine",
    "get_playback_engine",
]
