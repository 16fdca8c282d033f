"""Data models for generation jobs, media sessions and stored sets."""

from kiddo.models.content import (
    ContentItem,
    ContentType,
    FailureKind,
    GeneratedText,
    GenerationJob,
    GenerationRequest,
    JobState,
    MediaFailure,
    MediaTransition,
    Medium,
    ReadingLevel,
)
from kiddo.models.generated_set import GeneratedSet, StoredContentItem
from kiddo.models.sessions import (
    ImagePollSession,
    ImagePollStatus,
    LoadingState,
    PlaybackSession,
)

__all__ = [
    "ContentItem",
    "ContentType",
    "FailureKind",
    "GeneratedSet",
    "GeneratedText",
    "GenerationJob",
    "GenerationRequest",
    "ImagePollSession",
    "ImagePollStatus",
    "JobState",
    "LoadingState",
    "MediaFailure",
    "MediaTransition",
    "Medium",
    "PlaybackSession",
    "ReadingLevel",
    "StoredContentItem",
]
