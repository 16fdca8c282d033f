"""Clients for the text, image, voice and object storage services."""

from kiddo.utils.elevenlabs_client import VoiceClient, VoiceResult
from kiddo.utils.llm_client import TextClient
from kiddo.utils.r2_client import R2Client
from kiddo.utils.replicate_client import ImagePollClient, ImageResult

__all__ = [
    "ImagePollClient",
    "ImageResult",
    "R2Client",
    "TextClient",
    "VoiceClient",
    "VoiceResult",
]
