"""Pydantic models for generation requests, content items and jobs."""

from datetime import UTC, datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kiddo.errors import KiddoError


# ============================================================================
# Enums
# ============================================================================


class ContentType(str, Enum):
    """Kind of reading content to generate."""

    WORDS = "words"
    SENTENCES = "sentences"
    PASSAGE = "passage"
    STORY = "story"


class ReadingLevel(str, Enum):
    """Reader proficiency."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class JobState(str, Enum):
    """Lifecycle of one generation job."""

    FETCHING = "fetching"
    SPLITTING = "splitting"
    GENERATING_MEDIA = "generating_media"
    COMPLETE = "complete"
    FAILED = "failed"


class Medium(str, Enum):
    """Media generated for every item."""

    IMAGE = "image"
    AUDIO = "audio"


class FailureKind(str, Enum):
    """Category of a media or job failure."""

    CONFIG = "config"
    SERVICE = "service"
    FAILED = "failed"
    CANCELED = "canceled"
    TIMED_OUT = "timed_out"
    STORAGE = "storage"
    DECODE = "decode"


# ============================================================================
# Value objects
# ============================================================================


class GenerationRequest(BaseModel):
    """What the user asked for. Immutable once submitted."""

    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., description="Topic or story title")
    content_type: ContentType = Field(..., description="words, sentences, passage or story")
    reading_level: ReadingLevel = Field(..., description="beginner, intermediate or advanced")
    narrate_paragraphs: bool = Field(
        default=False,
        description="Split passages and stories into one item per paragraph",
    )

    @field_validator("topic")
    @classmethod
    def validate_topic(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("topic must not be empty")
        return v


class MediaFailure(BaseModel):
    """Recorded failure of one medium (or of the text fetch)."""

    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    message: str

    @classmethod
    def from_exception(cls, error: Exception) -> "MediaFailure":
        if isinstance(error, KiddoError):
            return cls(kind=FailureKind(error.kind), message=str(error))
        return cls(kind=FailureKind.SERVICE, message=f"{type(error).__name__}: {error}")


class MediaTransition(BaseModel):
    """Processing -> succeeded / failed for one medium of one item."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    medium: Medium
    url: Optional[str] = None
    error: Optional[MediaFailure] = None

    @model_validator(mode="after")
    def check_outcome(self) -> "MediaTransition":
        if (self.url is None) == (self.error is None):
            raise ValueError("A transition carries exactly one of url or error")
        return self

    @property
    def succeeded(self) -> bool:
        return self.url is not None


# ============================================================================
# Core entities
# ============================================================================


class ContentItem(BaseModel):
    """One unit of generated text plus its image and narration."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    text: str = Field(..., description="Word, sentence or passage text")
    display_order: int = Field(..., ge=0)

    image_url: Optional[str] = None
    image_error: Optional[MediaFailure] = None
    is_processing_image: bool = True

    audio_url: Optional[str] = None
    audio_error: Optional[MediaFailure] = None
    is_processing_audio: bool = True

    @model_validator(mode="after")
    def check_media_states(self) -> "ContentItem":
        for medium in Medium:
            states = self._medium_states(medium)
            if sum(states) != 1:
                raise ValueError(
                    f"{medium.value} must be exactly one of processing, done or failed"
                )
        return self

    def _medium_states(self, medium: Medium) -> tuple[bool, bool, bool]:
        if medium == Medium.IMAGE:
            return (
                self.is_processing_image,
                self.image_url is not None,
                self.image_error is not None,
            )
        return (
            self.is_processing_audio,
            self.audio_url is not None,
            self.audio_error is not None,
        )

    def is_processing(self, medium: Medium) -> bool:
        return self._medium_states(medium)[0]

    @property
    def is_terminal(self) -> bool:
        """True once both media have either succeeded or failed."""
        return not self.is_processing_image and not self.is_processing_audio

    def apply(self, transition: MediaTransition) -> None:
        """Move one medium from processing to its terminal state."""
        if transition.item_id != self.id:
            raise ValueError(f"Transition for {transition.item_id} applied to {self.id}")
        if not self.is_processing(transition.medium):
            raise ValueError(
                f"{transition.medium.value} of item {self.id} is already terminal"
            )

        if transition.medium == Medium.IMAGE:
            self.image_url = transition.url
            self.image_error = transition.error
            self.is_processing_image = False
        else:
            self.audio_url = transition.url
            self.audio_error = transition.error
            self.is_processing_audio = False


class GeneratedText(BaseModel):
    """Raw text returned by the text client."""

    title: str
    raw_text: str
    is_placeholder: bool = Field(
        default=False,
        description="True when the text service could not be called (missing credentials)",
    )


class GenerationJob(BaseModel):
    """One end-to-end request from topic to illustrated, narrated items."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    request: GenerationRequest
    title: Optional[str] = None
    items: List[ContentItem] = Field(default_factory=list)
    state: JobState = JobState.FETCHING
    error: Optional[MediaFailure] = None

    # Persistence outcome, filled after completion
    content_id: Optional[str] = None
    persist_error: Optional[str] = None

    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.COMPLETE, JobState.FAILED)

    def get_item(self, item_id: str) -> ContentItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def apply_transition(self, transition: MediaTransition) -> ContentItem:
        """Apply one media outcome to the owning item."""
        item = self.get_item(transition.item_id)
        if item is None:
            raise KeyError(f"Item {transition.item_id} is not part of job {self.id}")
        item.apply(transition)
        return item

    def all_items_terminal(self) -> bool:
        return all(item.is_terminal for item in self.items)

    def get_statistics(self) -> dict:
        """Counts of succeeded and failed media across items."""
        return {
            "total_items": len(self.items),
            "images_ok": sum(1 for i in self.items if i.image_url is not None),
            "images_failed": sum(1 for i in self.items if i.image_error is not None),
            "audio_ok": sum(1 for i in self.items if i.audio_url is not None),
            "audio_failed": sum(1 for i in self.items if i.audio_error is not None),
            "pending": sum(1 for i in self.items if not i.is_terminal),
        }
