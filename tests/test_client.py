"""Tests for the generative-language API client, using httpx.MockTransport."""
import asyncio
import json

import httpx
import pytest

from gasreport.config import ExternalServiceConfig
from gasreport.errors import MalformedResponseError, UpstreamError
from gasreport.generation.client import GeminiClient
from gasreport.generation.retry import RetryPolicy
from support import FakeSleep

CONFIG = ExternalServiceConfig(
    endpoint="https://gen.example.test/v1beta",
    api_key="test-key",
    model="gemini-test",
    temperature=0.3,
    timeout_seconds=9.0,
)


def candidate(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def run_with(handler, coro_fn, policy=None, config=CONFIG):
    """Build a client over a MockTransport and run coro_fn(client)."""
    sleep = FakeSleep()

    async def main():
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = GeminiClient(config, policy=policy or RetryPolicy(), http_client=http, sleep=sleep)
        try:
            return await coro_fn(client)
        finally:
            await http.aclose()

    return asyncio.run(main()), sleep


class TestGeminiClient:
    """Test GeminiClient."""

    def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=candidate('{"ph": "7.40"}'))

        text, _ = run_with(handler, lambda c: c.generate_text("PROMPT"))

        assert text == '{"ph": "7.40"}'
        assert seen["url"].path == "/v1beta/models/gemini-test:generateContent"
        assert seen["url"].params["key"] == "test-key"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "PROMPT"
        assert seen["body"]["generationConfig"] == {
            "temperature": 0.3,
            "responseMimeType": "application/json",
        }

    def test_generate_record_parses_fenced_text(self):
        def handler(request):
            return httpx.Response(200, json=candidate('```json\n{"ph": "7.21", "k": "5.9"}\n```'))

        record, _ = run_with(handler, lambda c: c.generate_record("p"))

        assert record == {"ph": "7.21", "k": "5.9"}

    def test_multiple_parts_are_joined(self):
        def handler(request):
            body = {"candidates": [{"content": {"parts": [{"text": '{"ph": '}, {"text": '"7.3"}'}]}}]}
            return httpx.Response(200, json=body)

        record, _ = run_with(handler, lambda c: c.generate_record("p"))

        assert record == {"ph": "7.3"}

    def test_error_envelope_becomes_upstream_error(self):
        def handler(request):
            return httpx.Response(
                400,
                json={"error": {"code": 400, "message": "API key not valid.", "status": "INVALID_ARGUMENT"}},
            )

        with pytest.raises(UpstreamError) as exc_info:
            run_with(handler, lambda c: c.generate_text("p"))

        err = exc_info.value
        assert err.upstream_status == 400
        assert err.upstream_code == "INVALID_ARGUMENT"
        assert "API key not valid." in err.message

    def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="<html>Bad gateway</html>")

        with pytest.raises(UpstreamError) as exc_info:
            run_with(handler, lambda c: c.generate_text("p"))

        assert exc_info.value.upstream_status == 502

    def test_throttled_then_success(self):
        responses = [
            httpx.Response(429, json={"error": {"code": 429, "message": "slow down", "status": "RESOURCE_EXHAUSTED"}}),
            httpx.Response(200, json=candidate('{"a": 1}')),
        ]

        def handler(request):
            return responses.pop(0)

        record, sleep = run_with(handler, lambda c: c.generate_record("p"), policy=RetryPolicy(base_delay=1.0, max_jitter=0))

        assert record == {"a": 1}
        assert sleep.delays == [1.0]

    def test_throttling_exhausted(self):
        def handler(request):
            return httpx.Response(429)

        with pytest.raises(UpstreamError) as exc_info:
            run_with(handler, lambda c: c.generate_text("p"), policy=RetryPolicy(max_attempts=2))

        assert exc_info.value.upstream_status == 429

    def test_no_candidates(self):
        def handler(request):
            return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

        with pytest.raises(MalformedResponseError):
            run_with(handler, lambda c: c.generate_text("p"))

    def test_error_envelope_with_success_status(self):
        def handler(request):
            return httpx.Response(200, json={"error": {"code": 500, "message": "internal", "status": "INTERNAL"}})

        with pytest.raises(UpstreamError):
            run_with(handler, lambda c: c.generate_text("p"))

    def test_network_failure_propagates_after_retries(self):
        calls = {"count": 0}

        def handler(request):
            calls["count"] += 1
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(httpx.ConnectError):
            run_with(handler, lambda c: c.generate_text("p"), policy=RetryPolicy(max_attempts=3))

        assert calls["count"] == 3

    def test_missing_api_key(self):
        def handler(request):
            raise AssertionError("no request expected")

        config = ExternalServiceConfig(endpoint="https://x.test", api_key="", model="m")

        with pytest.raises(UpstreamError, match="not configured"):
            run_with(handler, lambda c: c.generate_text("p"), config=config)

    def test_slow_upstream_capped_per_attempt(self):
        calls = {"count": 0}

        async def handler(request):
            calls["count"] += 1
            await asyncio.sleep(5)
            return httpx.Response(200, json=candidate("{}"))

        policy = RetryPolicy(max_attempts=2, base_delay=0.0, attempt_timeout=0.05)

        with pytest.raises(UpstreamError, match="did not respond within 0.05s"):
            run_with(handler, lambda c: c.generate_text("p"), policy=policy)

        assert calls["count"] == 2
