"""Persistence gateway for finished generated sets."""

import json
import logging
from pathlib import Path
from typing import List, Protocol
from uuid import uuid4

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from constants import CONTENT_STORE_DIR
from kiddo.errors import StorageError
from kiddo.models.generated_set import GeneratedSet

logger = logging.getLogger(__name__)


class ContentStore(Protocol):
    """Durable storage for generated sets."""

    async def save_generated_set(self, generated_set: GeneratedSet) -> str:
        """Persist a set with its items and return its content id."""
        ...

    async def load_generated_set(self, content_id: str) -> GeneratedSet:
        """Load a set with its items ordered by display order."""
        ...

    async def list_generated_sets(self) -> List[GeneratedSet]:
        """All stored sets, newest first."""
        ...


class JsonContentStore:
    """Stores each generated set as one JSON document.

    Layout: ``<base_dir>/content_<id>.json``
    """

    def __init__(self, base_dir: str | Path | None = None):
        self.base_dir = Path(base_dir or CONTENT_STORE_DIR)

    def _path(self, content_id: str) -> Path:
        return self.base_dir / f"content_{content_id}.json"

    async def save_generated_set(self, generated_set: GeneratedSet) -> str:
        content_id = generated_set.id or str(uuid4())
        record = generated_set.model_copy(update={"id": content_id})
        record.items = sorted(record.items, key=lambda item: item.display_order)
        path = self._path(content_id)

        try:
            await aiofiles.os.makedirs(self.base_dir, exist_ok=True)
            async with aiofiles.open(path, "w", encoding="utf-8") as f:
                await f.write(
                    json.dumps(record.model_dump(mode="json"), ensure_ascii=False, indent=2)
                )
        except OSError as e:
            logger.error(f"✗ Error saving generated set {content_id}: {e}")
            raise StorageError(f"Failed to save generated set: {e}") from e

        logger.info(f"Saved generated set {content_id} ({len(record.items)} items): {path}")
        return content_id

    async def load_generated_set(self, content_id: str) -> GeneratedSet:
        path = self._path(content_id)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                data = json.loads(await f.read())
            generated_set = GeneratedSet.model_validate(data)
        except FileNotFoundError as e:
            raise StorageError(f"Generated set not found: {content_id}") from e
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"✗ Error loading generated set {content_id}: {e}")
            raise StorageError(f"Failed to load generated set {content_id}: {e}") from e

        generated_set.items.sort(key=lambda item: item.display_order)
        return generated_set

    async def list_generated_sets(self) -> List[GeneratedSet]:
        if not await aiofiles.os.path.isdir(self.base_dir):
            return []

        sets = []
        for name in await aiofiles.os.listdir(self.base_dir):
            if not (name.startswith("content_") and name.endswith(".json")):
                continue
            content_id = name[len("content_"):-len(".json")]
            sets.append(await self.load_generated_set(content_id))

        sets.sort(key=lambda s: s.created_at, reverse=True)
        return sets
