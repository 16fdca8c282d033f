"""Parsers that turn generated text into ordered content items."""

from kiddo.parsers.content_splitter import build_items, split_content

__all__ = [
    "build_items",
    "split_content",
]
