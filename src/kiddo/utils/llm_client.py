"""Text client with Instructor integration for reading content generation.

This module wraps the Anthropic and OpenAI async SDKs with Instructor so the
generated content comes back as a validated Pydantic model, and logs every
request with its prompt hash, token usage and latency.
"""

import hashlib
import json
import logging
import time
from typing import Optional

import instructor
from anthropic import AsyncAnthropic
from langfuse import observe
from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from constants import ANTHROPIC_API_KEY, LLM_MODEL, OPENAI_API_KEY
from kiddo.errors import ServiceError
from kiddo.models.content import ContentType, GeneratedText, ReadingLevel
from kiddo.prompts.content_prompts import CONTENT_SYSTEM_PROMPT, build_content_prompt

logger = logging.getLogger(__name__)

MISSING_KEY_PLACEHOLDER = "[Error: API Key Missing]"


class GeneratedTextResponse(BaseModel):
    """Structured response requested from the language model."""

    text: str = Field(
        ...,
        description="Only the requested content. Lists keep one entry per line.",
    )


class TokenUsage(BaseModel):
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class TextClient:
    """Async text client for reading content.

    Features:
    - Content-type aware prompts (words, sentences, passage, story)
    - Structured output through Instructor (Anthropic or OpenAI)
    - Placeholder result instead of a crash when credentials are missing
    - Typed ServiceError on non-success provider responses
    - Token usage tracking and Langfuse tracing

    Requests are never retried here; a failed request fails the job and the
    user starts a new one.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ):
        """Initialize text client.

        Args:
            api_key: Provider API key (if None, uses ANTHROPIC_API_KEY or OPENAI_API_KEY)
            model: Model to use (if None, uses LLM_MODEL, default claude-3-haiku-20240307)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
        """
        self.model = model or LLM_MODEL
        self.provider = self._detect_provider(self.model)
        if self.provider == "anthropic":
            self.api_key = api_key or ANTHROPIC_API_KEY
        else:
            self.api_key = api_key or OPENAI_API_KEY
        self.temperature = temperature
        self.max_tokens = max_tokens

        self.total_usage = TokenUsage()
        self._client = None

        logger.info(f"TextClient initialized with provider={self.provider}, model={self.model}")

    def _detect_provider(self, model: str) -> str:
        """Detect LLM provider from model name.

        Args:
            model: Model name

        Returns:
            Provider name: 'anthropic' or 'openai'
        """
        model_lower = model.lower()
        if model_lower.startswith("claude"):
            return "anthropic"
        elif model_lower.startswith(("gpt", "o1", "o3", "o4")):
            return "openai"
        else:
            logger.warning(f"Unknown model prefix '{model}', defaulting to OpenAI provider")
            return "openai"

    def _get_client(self):
        """Create the Instructor-patched async client on first use."""
        if self._client is None:
            if self.provider == "anthropic":
                self._client = instructor.from_anthropic(AsyncAnthropic(api_key=self.api_key))
            else:
                self._client = instructor.from_openai(AsyncOpenAI(api_key=self.api_key))
        return self._client

    @observe(as_type="generation")
    async def generate_text(
        self,
        topic: str,
        content_type: ContentType,
        reading_level: ReadingLevel,
    ) -> GeneratedText:
        """Generate raw reading content for a topic.

        Args:
            topic: Topic (also used as the title)
            content_type: words, sentences, passage or story
            reading_level: beginner, intermediate or advanced

        Returns:
            GeneratedText with the raw, unsplit text. When credentials are
            missing a placeholder with is_placeholder=True is returned.

        Raises:
            ServiceError: If the provider returns a non-success response or
                cannot be reached
        """
        content_type = ContentType(content_type)
        reading_level = ReadingLevel(reading_level)
        logger.info(
            f"Generating text content: topic={topic!r}, type={content_type.value}, "
            f"level={reading_level.value}"
        )

        if not self.api_key:
            logger.error(f"{self.provider} API key is missing, returning placeholder content")
            return GeneratedText(title=topic, raw_text=MISSING_KEY_PLACEHOLDER, is_placeholder=True)

        prompt = build_content_prompt(topic, content_type, reading_level)
        prompt_hash = self._hash_prompt(prompt)
        start_time = time.time()

        try:
            response = await self._create(prompt)
        except Exception as e:
            latency_ms = (time.time() - start_time) * 1000
            error = self._to_service_error(e)
            self._log_response(prompt_hash, latency_ms, success=False, error=str(error)[:200])
            raise error from e

        latency_ms = (time.time() - start_time) * 1000
        usage = self._extract_usage(response)
        self._update_total_usage(usage)
        self._log_response(prompt_hash, latency_ms, success=True, usage=usage)

        text = response.text.strip()
        logger.info(f"Received generated text (first 100 chars): {text[:100]!r}")
        return GeneratedText(title=topic, raw_text=text)

    async def _create(self, prompt: str) -> GeneratedTextResponse:
        client = self._get_client()

        if self.provider == "anthropic":
            # Anthropic takes the system prompt separately from messages
            return await client.messages.create(
                model=self.model,
                system=CONTENT_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                response_model=GeneratedTextResponse,
            )

        return await client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": CONTENT_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            response_model=GeneratedTextResponse,
        )

    def _to_service_error(self, error: Exception) -> ServiceError:
        """Map a provider or Instructor exception to ServiceError."""
        cause: Optional[BaseException] = error
        # Instructor may wrap the provider error
        while cause is not None and getattr(cause, "status_code", None) is None:
            cause = cause.__cause__

        status_code = getattr(cause, "status_code", None) if cause else None
        body = getattr(cause, "body", None) if cause else None
        if body is not None and not isinstance(body, str):
            body = json.dumps(body, default=str)

        return ServiceError(
            f"Text generation request failed: {str(error)[:200]}",
            status_code=status_code,
            body=body,
        )

    def _extract_usage(self, response: GeneratedTextResponse) -> TokenUsage:
        """Extract token usage from the raw response Instructor keeps on the model."""
        usage = TokenUsage()
        raw = getattr(response, "_raw_response", None)
        raw_usage = getattr(raw, "usage", None)
        if raw_usage is None:
            return usage

        if self.provider == "anthropic":
            usage.prompt_tokens = getattr(raw_usage, "input_tokens", 0) or 0
            usage.completion_tokens = getattr(raw_usage, "output_tokens", 0) or 0
            usage.total_tokens = usage.prompt_tokens + usage.completion_tokens
        else:
            usage.prompt_tokens = getattr(raw_usage, "prompt_tokens", 0) or 0
            usage.completion_tokens = getattr(raw_usage, "completion_tokens", 0) or 0
            usage.total_tokens = getattr(raw_usage, "total_tokens", 0) or 0
        return usage

    def _update_total_usage(self, usage: TokenUsage) -> None:
        self.total_usage.prompt_tokens += usage.prompt_tokens
        self.total_usage.completion_tokens += usage.completion_tokens
        self.total_usage.total_tokens += usage.total_tokens

    def get_usage_summary(self) -> dict:
        """Get summary of total token usage."""
        return {
            "model": self.model,
            "prompt_tokens": self.total_usage.prompt_tokens,
            "completion_tokens": self.total_usage.completion_tokens,
            "total_tokens": self.total_usage.total_tokens,
        }

    def _hash_prompt(self, prompt: str) -> str:
        """First 16 characters of the prompt's SHA256, for log correlation."""
        return hashlib.sha256(prompt.encode()).hexdigest()[:16]

    def _log_response(
        self,
        prompt_hash: str,
        latency_ms: float,
        success: bool,
        usage: Optional[TokenUsage] = None,
        error: Optional[str] = None,
    ) -> None:
        log_data = {
            "prompt_hash": prompt_hash,
            "model": self.model,
            "latency_ms": round(latency_ms, 2),
            "success": success,
        }
        if usage:
            log_data["tokens"] = {
                "prompt": usage.prompt_tokens,
                "completion": usage.completion_tokens,
                "total": usage.total_tokens,
            }
        if error:
            log_data["error"] = error

        if success:
            logger.info(f"LLM response: {log_data}")
        else:
            logger.warning(f"LLM response failed: {log_data}")
