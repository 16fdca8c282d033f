"""Unit tests for the text client with mocked provider responses."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kiddo.errors import ServiceError
from kiddo.models.content import ContentType, ReadingLevel
from kiddo.prompts.content_prompts import CONTENT_SYSTEM_PROMPT
from kiddo.utils.llm_client import MISSING_KEY_PLACEHOLDER, GeneratedTextResponse, TextClient

pytestmark = pytest.mark.anyio

HAIKU = "claude-3-haiku-20240307"


class ProviderError(Exception):
    """Stand-in for an SDK status error."""

    def __init__(self, message, status_code, body):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@pytest.fixture
def mock_anthropic():
    with patch("kiddo.utils.llm_client.AsyncAnthropic") as mock_sdk, patch(
        "kiddo.utils.llm_client.instructor.from_anthropic"
    ) as mock_from_anthropic:
        instructor_client = MagicMock()
        instructor_client.messages.create = AsyncMock()
        mock_from_anthropic.return_value = instructor_client
        yield mock_sdk, instructor_client


class TestTextClient:
    """Test TextClient with mocked API responses."""

    def test_provider_detection(self):
        assert TextClient(api_key="k", model=HAIKU).provider == "anthropic"
        assert TextClient(api_key="k", model="gpt-4o-mini").provider == "openai"
        assert TextClient(api_key="k", model="mystery-model").provider == "openai"

    async def test_successful_generate(self, mock_anthropic):
        mock_sdk, instructor_client = mock_anthropic
        instructor_client.messages.create.return_value = GeneratedTextResponse(
            text="  Dog\nBark\nTail\nPaw\n"
        )

        client = TextClient(api_key="test-key", model=HAIKU)
        result = await client.generate_text("Dogs", ContentType.WORDS, ReadingLevel.BEGINNER)

        assert result.title == "Dogs"
        assert result.raw_text == "Dog\nBark\nTail\nPaw"
        assert not result.is_placeholder
        mock_sdk.assert_called_once_with(api_key="test-key")

        kwargs = instructor_client.messages.create.call_args.kwargs
        assert kwargs["model"] == HAIKU
        assert kwargs["system"] == CONTENT_SYSTEM_PROMPT
        assert kwargs["max_tokens"] == 1000
        assert kwargs["temperature"] == 0.7
        assert "10 vocabulary words" in kwargs["messages"][0]["content"]
        assert '"Dogs"' in kwargs["messages"][0]["content"]

    async def test_story_prompt_carries_level_hint(self, mock_anthropic):
        _, instructor_client = mock_anthropic
        instructor_client.messages.create.return_value = GeneratedTextResponse(text="Once upon a time.")

        client = TextClient(api_key="test-key", model=HAIKU)
        await client.generate_text("The Brave Pup", ContentType.STORY, ReadingLevel.ADVANCED)

        prompt = instructor_client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert 'titled "The Brave Pup"' in prompt
        assert "richer vocabulary" in prompt

    async def test_missing_key_returns_placeholder(self, mock_anthropic):
        _, instructor_client = mock_anthropic

        with patch("kiddo.utils.llm_client.ANTHROPIC_API_KEY", None):
            client = TextClient(api_key=None, model=HAIKU)
            result = await client.generate_text("Dogs", ContentType.WORDS, ReadingLevel.BEGINNER)

        assert result.is_placeholder
        assert result.raw_text == MISSING_KEY_PLACEHOLDER
        instructor_client.messages.create.assert_not_called()

    async def test_provider_error_becomes_service_error(self, mock_anthropic):
        _, instructor_client = mock_anthropic
        instructor_client.messages.create.side_effect = ProviderError(
            "unauthorized", status_code=401, body={"error": "invalid key"}
        )

        client = TextClient(api_key="bad-key", model=HAIKU)
        with pytest.raises(ServiceError) as exc_info:
            await client.generate_text("Dogs", ContentType.WORDS, ReadingLevel.BEGINNER)

        assert exc_info.value.status_code == 401
        assert "invalid key" in exc_info.value.body
        # No automatic retry
        assert instructor_client.messages.create.call_count == 1

    async def test_wrapped_provider_error_status_found(self, mock_anthropic):
        _, instructor_client = mock_anthropic
        wrapper = RuntimeError("instructor retry failed")
        wrapper.__cause__ = ProviderError("overloaded", status_code=529, body="overloaded")
        instructor_client.messages.create.side_effect = wrapper

        client = TextClient(api_key="test-key", model=HAIKU)
        with pytest.raises(ServiceError) as exc_info:
            await client.generate_text("Dogs", ContentType.WORDS, ReadingLevel.BEGINNER)

        assert exc_info.value.status_code == 529
        assert exc_info.value.body == "overloaded"

    async def test_usage_tracked_from_raw_response(self, mock_anthropic):
        _, instructor_client = mock_anthropic
        response = GeneratedTextResponse(text="Dog")
        raw = MagicMock()
        raw.usage.input_tokens = 12
        raw.usage.output_tokens = 8
        response._raw_response = raw
        instructor_client.messages.create.return_value = response

        client = TextClient(api_key="test-key", model=HAIKU)
        await client.generate_text("Dogs", ContentType.WORDS, ReadingLevel.BEGINNER)

        summary = client.get_usage_summary()
        assert summary["prompt_tokens"] == 12
        assert summary["completion_tokens"] == 8
        assert summary["total_tokens"] == 20

    async def test_openai_provider_sends_system_message(self):
        with patch("kiddo.utils.llm_client.AsyncOpenAI"), patch(
            "kiddo.utils.llm_client.instructor.from_openai"
        ) as mock_from_openai:
            instructor_client = MagicMock()
            instructor_client.chat.completions.create = AsyncMock(
                return_value=GeneratedTextResponse(text="Dogs are fun.")
            )
            mock_from_openai.return_value = instructor_client

            client = TextClient(api_key="test-key", model="gpt-4o-mini")
            result = await client.generate_text("Dogs", ContentType.PASSAGE, ReadingLevel.INTERMEDIATE)

        assert result.raw_text == "Dogs are fun."
        messages = instructor_client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": CONTENT_SYSTEM_PROMPT}
        assert "50-100 words" in messages[1]["content"]
