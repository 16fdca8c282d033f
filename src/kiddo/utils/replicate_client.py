"""Replicate image client: submit a prediction, then poll it to a terminal status."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from uuid import uuid4

import httpx
from pydantic import BaseModel

from constants import (
    IMAGE_POLL_INTERVAL,
    IMAGE_POLL_TIMEOUT,
    IMAGE_SERVER_ERROR_BACKOFF,
    REPLICATE_API_TOKEN,
    REPLICATE_API_URL,
    REPLICATE_MODEL,
)
from kiddo.errors import (
    ConfigError,
    GenerationTimeoutError,
    ImageJobError,
    ServiceError,
    StorageError,
)
from kiddo.models.sessions import ImagePollSession, ImagePollStatus
from kiddo.prompts.content_prompts import IMAGE_NEGATIVE_PROMPT, build_image_prompt
from kiddo.utils.r2_client import R2Client

logger = logging.getLogger(__name__)


class ImageResult(BaseModel):
    """Finished image and the poll session that produced it."""

    url: str
    session: ImagePollSession


class ImagePollClient:
    """Client for the Replicate predictions API.

    A request is one submission followed by a poll loop. The submission is
    never retried. Inside the loop, 5xx answers and transport errors on the
    poll endpoint are retried after a short backoff until the overall
    timeout runs out.
    """

    def __init__(
        self,
        api_token: str | None = None,
        api_url: str | None = None,
        model: str | None = None,
        poll_interval: float | None = None,
        timeout: float | None = None,
        server_error_backoff: float | None = None,
        request_timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        image_store: R2Client | None = None,
    ):
        """Initialize image client.

        Args:
            api_token: Replicate API token (or REPLICATE_API_TOKEN env var)
            api_url: Predictions endpoint (or REPLICATE_API_URL env var)
            model: Model reference sent as the prediction version
            poll_interval: Seconds between polls (default 3)
            timeout: Overall seconds allowed for the poll loop (default 60)
            server_error_backoff: Seconds to wait after a 5xx poll answer (default 2)
            request_timeout: Per-request HTTP timeout when no client is given
            http_client: Shared AsyncClient (one is created per request otherwise)
            image_store: Optional R2 client used to re-host finished images
        """
        self.api_token = api_token or REPLICATE_API_TOKEN
        self.api_url = api_url or REPLICATE_API_URL
        self.model = model or REPLICATE_MODEL
        self.poll_interval = IMAGE_POLL_INTERVAL if poll_interval is None else poll_interval
        self.timeout = IMAGE_POLL_TIMEOUT if timeout is None else timeout
        self.server_error_backoff = (
            IMAGE_SERVER_ERROR_BACKOFF if server_error_backoff is None else server_error_backoff
        )
        self.request_timeout = request_timeout
        self.http_client = http_client
        self.image_store = image_store

        # Statistics
        self.total_requests = 0
        self.failed_requests = 0

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
            return
        async with httpx.AsyncClient(timeout=self.request_timeout) as client:
            yield client

    def _headers(self) -> dict:
        return {
            "Authorization": f"Token {self.api_token}",
            "Content-Type": "application/json",
        }

    async def request_image(
        self,
        prompt: str,
        poll_interval: float | None = None,
        timeout: float | None = None,
        storage_prefix: str = "images",
    ) -> ImageResult:
        """Generate one illustration.

        Args:
            prompt: Item text to illustrate (styling is added here)
            poll_interval: Override of the client's poll interval for this call
            timeout: Override of the client's poll timeout for this call
            storage_prefix: Key prefix used when re-hosting the image

        Returns:
            ImageResult with the final image URL

        Raises:
            ConfigError: API token missing
            ServiceError: Submission failed, polling failed, or success without output
            ImageJobError: The job ended failed or canceled
            GenerationTimeoutError: No terminal status before the timeout
            StorageError: Re-hosting the image failed
        """
        if not self.api_token:
            raise ConfigError("Replicate API token not found")

        poll_interval = self.poll_interval if poll_interval is None else poll_interval
        timeout = self.timeout if timeout is None else timeout
        self.total_requests += 1

        try:
            async with self._client() as client:
                session = await self._submit(client, prompt)
                url = await self._poll(client, session, poll_interval, timeout)
                if self.image_store is not None:
                    url = await self._rehost(client, url, storage_prefix)
        except Exception:
            self.failed_requests += 1
            raise

        session.result_url = url
        logger.info(f"✓ Image ready for job {session.job_handle} after {session.polls} polls")
        return ImageResult(url=url, session=session)

    async def _submit(self, client: httpx.AsyncClient, prompt: str) -> ImagePollSession:
        logger.info(f"Submitting image job for prompt: {prompt[:50]!r}")
        body = {
            "version": self.model,
            "input": {
                "prompt": build_image_prompt(prompt),
                "negative_prompt": IMAGE_NEGATIVE_PROMPT,
                "aspect_ratio": "1:1",
            },
        }

        try:
            response = await client.post(self.api_url, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            raise ServiceError(f"Image submission failed: {e}") from e

        if not response.is_success:
            logger.error(f"✗ Image submission rejected: {response.status_code} {response.text[:200]}")
            raise ServiceError(
                "Image submission rejected",
                status_code=response.status_code,
                body=response.text,
            )

        payload = self._json_object(response, "Image submission response")
        job_handle = payload.get("id")
        urls = payload.get("urls")
        poll_url = urls.get("get") if isinstance(urls, dict) else None
        if not job_handle or not poll_url:
            raise ServiceError(
                "Image submission response is missing the job id or poll URL",
                status_code=response.status_code,
                body=response.text,
            )
        return ImagePollSession(job_handle=job_handle, poll_url=poll_url)

    async def _poll(
        self,
        client: httpx.AsyncClient,
        session: ImagePollSession,
        poll_interval: float,
        timeout: float,
    ) -> str:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        session.status = ImagePollStatus.POLLING

        while (remaining := deadline - loop.time()) > 0:
            logger.debug(f"Polling image job {session.job_handle} (poll {session.polls + 1})")
            try:
                async with asyncio.timeout(remaining):
                    response = await client.get(session.poll_url, headers=self._headers())
            except TimeoutError:
                break
            except httpx.TransportError as e:
                logger.warning(f"Poll transport error for {session.job_handle}: {e}")
                await self._sleep_until(deadline, self.server_error_backoff)
                continue

            session.polls += 1

            if response.status_code >= 500:
                logger.warning(
                    f"Polling failed with status {response.status_code}, "
                    f"retrying in {self.server_error_backoff:g}s"
                )
                await self._sleep_until(deadline, self.server_error_backoff)
                continue

            if not response.is_success:
                session.status = ImagePollStatus.FAILED
                raise ServiceError(
                    "Failed to poll generation result",
                    status_code=response.status_code,
                    body=response.text,
                )

            try:
                payload = self._json_object(response, "Poll response")
            except ServiceError:
                session.status = ImagePollStatus.FAILED
                raise
            status = payload.get("status")

            if status == "succeeded":
                url = self._extract_output_url(payload.get("output"))
                if url is None:
                    session.status = ImagePollStatus.FAILED
                    logger.error(f"✗ Job {session.job_handle} succeeded but returned no output")
                    raise ServiceError(
                        "Image generation succeeded but no image URL was found.",
                        status_code=response.status_code,
                        body=response.text,
                    )
                session.status = ImagePollStatus.SUCCEEDED
                return url

            if status in ("failed", "canceled"):
                session.status = ImagePollStatus(status)
                logger.error(f"✗ Job {session.job_handle} {status}: {payload.get('error')}")
                raise ImageJobError(status, payload.get("error"))

            await self._sleep_until(deadline, poll_interval)

        session.status = ImagePollStatus.TIMED_OUT
        logger.error(f"✗ Job {session.job_handle} timed out after {timeout:g}s")
        raise GenerationTimeoutError(f"Image generation timed out after {timeout:g} seconds.")

    @staticmethod
    def _json_object(response: httpx.Response, what: str) -> dict:
        """Body of a 2xx answer as a JSON object, or ServiceError."""
        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"✗ {what} is not JSON: {response.text[:200]}")
            raise ServiceError(
                f"{what} is not valid JSON",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(payload, dict):
            raise ServiceError(
                f"{what} is not a JSON object",
                status_code=response.status_code,
                body=response.text,
            )
        return payload

    async def _sleep_until(self, deadline: float, delay: float) -> None:
        """Sleep for delay, clipped so the loop never overshoots its deadline."""
        remaining = deadline - asyncio.get_running_loop().time()
        await asyncio.sleep(max(0.0, min(delay, remaining)))

    @staticmethod
    def _extract_output_url(output: Any) -> Optional[str]:
        """First URL of a prediction output (a single URL or a list of URLs)."""
        if isinstance(output, str) and output.startswith("http"):
            return output
        if isinstance(output, list) and output and isinstance(output[0], str):
            return output[0]
        return None

    async def _rehost(self, client: httpx.AsyncClient, url: str, storage_prefix: str) -> str:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Could not download generated image for storage: {e}") from e

        return await self.image_store.upload_bytes(
            response.content, f"{storage_prefix}/{uuid4()}.png", content_type="image/png"
        )

    def get_statistics(self) -> dict:
        return {
            "total_requests": self.total_requests,
            "failed_requests": self.failed_requests,
        }
