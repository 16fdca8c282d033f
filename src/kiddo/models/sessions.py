"""Session models for image polling and audio playback."""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ImagePollStatus(str, Enum):
    """Status of one image generation job as seen by the poller."""

    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    TIMED_OUT = "timed_out"


TERMINAL_POLL_STATUSES = {
    ImagePollStatus.SUCCEEDED,
    ImagePollStatus.FAILED,
    ImagePollStatus.CANCELED,
    ImagePollStatus.TIMED_OUT,
}


class ImagePollSession(BaseModel):
    """Tracks a single submitted image job until it reaches a terminal status."""

    job_handle: str = Field(..., description="Prediction ID returned on submission")
    poll_url: str = Field(..., description="URL to read the job status from")
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    status: ImagePollStatus = ImagePollStatus.SUBMITTED
    result_url: Optional[str] = None
    polls: int = Field(default=0, description="Number of status reads performed")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_POLL_STATUSES


class LoadingState(str, Enum):
    """Load state of the playback resource."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class PlaybackSession(BaseModel):
    """Snapshot of the single playback session."""

    model_config = ConfigDict(frozen=True)

    current_audio_ref: Optional[str] = None
    loading_state: LoadingState = LoadingState.IDLE
    is_playing: bool = False
    error: Optional[str] = None
