"""Split generated text into ordered content items.

The split is a pure function of the content type and the raw text: the same
input always yields the same list, and splitting an already-split line
yields that line again.
"""

import re
from typing import List

from kiddo.models.content import ContentItem, ContentType

# "1.", "2)", "-", "*", "•" at the start of a line
LIST_MARKER_PATTERN = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s+")
PARAGRAPH_BREAK_PATTERN = re.compile(r"\n\s*\n")

LINE_SPLIT_TYPES = {ContentType.WORDS, ContentType.SENTENCES}


def _clean_line(line: str) -> str:
    return LIST_MARKER_PATTERN.sub("", line).strip()


def split_content(
    content_type: ContentType,
    raw_text: str,
    narrate_paragraphs: bool = False,
) -> List[str]:
    """Split raw generated text into item texts.

    Args:
        content_type: Kind of content the text was generated for
        raw_text: Text returned by the text service
        narrate_paragraphs: For passages and stories, emit one item per paragraph

    Returns:
        Ordered list of non-empty item texts
    """
    text = raw_text.strip()
    if not text:
        return []

    if content_type in LINE_SPLIT_TYPES:
        lines = (_clean_line(line) for line in text.splitlines())
        return [line for line in lines if line]

    if narrate_paragraphs:
        paragraphs = (p.strip() for p in PARAGRAPH_BREAK_PATTERN.split(text))
        return [p for p in paragraphs if p]

    return [text]


def build_items(
    content_type: ContentType,
    raw_text: str,
    narrate_paragraphs: bool = False,
) -> List[ContentItem]:
    """Create processing items in display order from raw text."""
    return [
        ContentItem(text=text, display_order=index)
        for index, text in enumerate(split_content(content_type, raw_text, narrate_paragraphs))
    ]
