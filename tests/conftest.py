"""Shared fixtures for unit and integration tests."""

import pytest

from kiddo.models.content import ContentType, GenerationRequest, ReadingLevel

# Smallest payload the voice client accepts as MP3 (ID3 tag header)
MP3_BYTES = b"ID3\x04\x00\x00\x00\x00\x00\x00" + b"\xff\xfb\x90\x00" * 16


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def mp3_bytes():
    return MP3_BYTES


@pytest.fixture
def words_request():
    return GenerationRequest(
        topic="Dogs",
        content_type=ContentType.WORDS,
        reading_level=ReadingLevel.BEGINNER,
    )
