"""Durable records for a finished generation job."""

from datetime import UTC, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from kiddo.models.content import ContentType, GenerationJob, ReadingLevel


class StoredContentItem(BaseModel):
    """One persisted item. Failed media are stored as missing URLs."""

    text: str = Field(..., description="Item text")
    image_url: Optional[str] = Field(None, description="Image URL if generated")
    audio_url: Optional[str] = Field(None, description="Audio reference if generated")
    display_order: int = Field(..., ge=0)


class GeneratedSet(BaseModel):
    """A generated title with its ordered items."""

    id: Optional[str] = Field(None, description="Assigned by the content store on save")
    title: str
    type: ContentType
    reading_level: ReadingLevel
    description: str = ""
    language: str = "en"
    image_url: Optional[str] = Field(None, description="Cover image (first item)")
    audio_url: Optional[str] = Field(None, description="Cover narration (first item)")
    is_favorite: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    items: List[StoredContentItem] = Field(default_factory=list)

    @classmethod
    def from_job(cls, job: GenerationJob) -> "GeneratedSet":
        """Build the record for a completed job."""
        request = job.request
        items = [
            StoredContentItem(
                text=item.text,
                image_url=item.image_url,
                audio_url=item.audio_url,
                display_order=item.display_order,
            )
            for item in sorted(job.items, key=lambda i: i.display_order)
        ]
        first = items[0] if items else None
        return cls(
            title=job.title or request.topic,
            type=request.content_type,
            reading_level=request.reading_level,
            description=(
                f'AI-generated {request.content_type.value} about "{request.topic}" '
                f"for {request.reading_level.value} reading level."
            ),
            image_url=first.image_url if first else None,
            audio_url=first.audio_url if first else None,
            items=items,
        )

    def audio_refs(self) -> List[str]:
        return [item.audio_url for item in self.items if item.audio_url]
