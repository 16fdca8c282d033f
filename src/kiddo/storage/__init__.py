"""Persistence of finished generated sets."""

from kiddo.storage.content_store import ContentStore, JsonContentStore

__all__ = ["ContentStore", "JsonContentStore"]
