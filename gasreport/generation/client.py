"""
Gemini Client - HTTP client for the generateContent API.

Sends a single-turn prompt, asks for a JSON response and hands the text
to the tolerant parser. Throttling and connection failures go through
the shared retry policy; every other failure becomes UpstreamError.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from gasreport.config import ExternalServiceConfig
from gasreport.errors import MalformedResponseError, UpstreamError
from gasreport.generation.parser import parse_model_json
from gasreport.generation.retry import RetryPolicy, SleepFn, call_with_retry

logger = logging.getLogger(__name__)


class GeminiClient:
    """Async client for the generative-language API."""

    def __init__(
        self,
        config: ExternalServiceConfig,
        policy: Optional[RetryPolicy] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self.config = config
        self.policy = policy or RetryPolicy()
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds)
        )
        self._sleep = sleep

    @property
    def url(self) -> str:
        return f"{self.config.endpoint.rstrip('/')}/models/{self.config.model}:generateContent"

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "responseMimeType": "application/json",
            },
        }

    async def generate_text(self, prompt: str) -> str:
        """Return the text of the first candidate for `prompt`.

        Raises:
            UpstreamError: non-success status, throttling that outlasted retries,
                or every attempt running past the policy's attempt_timeout
            MalformedResponseError: success envelope without candidate text
            httpx.TransportError: connection failures that outlasted retries
        """
        if not self.config.api_key:
            raise UpstreamError("Generative API key is not configured")

        payload = self.build_payload(prompt)

        async def send() -> httpx.Response:
            return await self.client.post(
                self.url,
                params={"key": self.config.api_key},
                json=payload,
            )

        kwargs = {"sleep": self._sleep} if self._sleep else {}
        try:
            response = await call_with_retry(send, self.policy, **kwargs)
        except asyncio.TimeoutError as e:
            raise UpstreamError(
                f"Generative API did not respond within {self.policy.attempt_timeout}s"
            ) from e

        if response.is_error:
            raise _upstream_error(response)

        try:
            data = response.json()
        except ValueError:
            raise MalformedResponseError("Generative API returned a non-JSON envelope", response.text)

        return _candidate_text(data)

    async def generate_record(self, prompt: str) -> Dict[str, Any]:
        """Generate and parse a JSON object."""
        text = await self.generate_text(prompt)
        return parse_model_json(text)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def _upstream_error(response: httpx.Response) -> UpstreamError:
    """Build an UpstreamError from an error response, reading the
    {error: {code, message, status}} envelope when there is one."""
    message = ""
    code = None
    try:
        envelope = response.json().get("error") or {}
        message = envelope.get("message", "")
        code = envelope.get("status")
    except (ValueError, AttributeError):
        message = response.text[:200]

    logger.error(f"Generative API error: {response.status_code} {code or ''} {message}")
    detail = f"Google API Error: {response.status_code}"
    if code:
        detail += f" {code}"
    if message:
        detail += f" - {message}"
    return UpstreamError(detail, upstream_status=response.status_code, upstream_code=code)


def _candidate_text(data: Dict[str, Any]) -> str:
    if isinstance(data, dict) and data.get("error"):
        envelope = data["error"]
        raise UpstreamError(
            f"Google API Error: {envelope.get('code')} {envelope.get('status', '')} - "
            f"{envelope.get('message', '')}",
            upstream_status=envelope.get("code"),
            upstream_code=envelope.get("status"),
        )
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        raise MalformedResponseError("Generative API response had no candidates", str(data))

    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text.strip():
        raise MalformedResponseError("Generative API candidate contained no text", str(data))
    return text
