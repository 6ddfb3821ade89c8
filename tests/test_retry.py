"""Tests for the outbound retry/backoff wrapper."""
import asyncio

import httpx
import pytest

from gasreport.errors import UpstreamError, UpstreamThrottled
from gasreport.generation.retry import RetryPolicy, call_with_retry, with_retry
from support import FakeSleep


def scripted(*outcomes):
    """Request coroutine that returns/raises the given outcomes in order."""
    calls = {"count": 0}
    queue = list(outcomes)

    async def request():
        calls["count"] += 1
        outcome = queue.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return httpx.Response(outcome, json={"ok": outcome == 200})

    return request, calls


def no_jitter():
    return 0.0


class TestCallWithRetry:
    """Test call_with_retry."""

    def test_succeeds_after_two_throttled_responses(self):
        request, calls = scripted(429, 429, 200)
        sleep = FakeSleep()
        policy = RetryPolicy(max_attempts=5, base_delay=1.0)

        response = asyncio.run(call_with_retry(request, policy, sleep=sleep, jitter=no_jitter))

        assert response.status_code == 200
        assert calls["count"] == 3
        assert sleep.delays == [1.0, 2.0]

    def test_always_throttled_exhausts_attempts(self):
        request, calls = scripted(429, 429, 429)
        sleep = FakeSleep()
        policy = RetryPolicy(max_attempts=3, base_delay=0.5)

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(call_with_retry(request, policy, sleep=sleep, jitter=no_jitter))

        assert exc_info.value.upstream_status == 429
        assert calls["count"] == 3
        assert sleep.delays == [0.5, 1.0]

    def test_client_error_returned_without_retry(self):
        request, calls = scripted(400)
        sleep = FakeSleep()

        response = asyncio.run(call_with_retry(request, RetryPolicy(), sleep=sleep))

        assert response.status_code == 400
        assert calls["count"] == 1
        assert sleep.delays == []

    def test_server_error_returned_without_retry(self):
        request, calls = scripted(503)
        sleep = FakeSleep()

        response = asyncio.run(call_with_retry(request, RetryPolicy(), sleep=sleep))

        assert response.status_code == 503
        assert calls["count"] == 1

    def test_network_error_retried_then_succeeds(self):
        request, calls = scripted(httpx.ConnectError("reset"), httpx.ReadTimeout("slow"), 200)
        sleep = FakeSleep()

        response = asyncio.run(
            call_with_retry(request, RetryPolicy(max_attempts=3, base_delay=2.0), sleep=sleep, jitter=no_jitter)
        )

        assert response.status_code == 200
        assert sleep.delays == [2.0, 4.0]

    def test_network_error_reraised_when_exhausted(self):
        request, calls = scripted(httpx.ConnectError("down"), httpx.ConnectError("still down"))
        sleep = FakeSleep()

        with pytest.raises(httpx.ConnectError, match="still down"):
            asyncio.run(call_with_retry(request, RetryPolicy(max_attempts=2), sleep=sleep))

        assert calls["count"] == 2
        assert len(sleep.delays) == 1

    def test_throttled_exception_is_retried(self):
        request, calls = scripted(UpstreamThrottled("quota"), 200)
        sleep = FakeSleep()

        response = asyncio.run(call_with_retry(request, RetryPolicy(), sleep=sleep))

        assert response.status_code == 200
        assert calls["count"] == 2

    def test_jitter_added_to_delay(self):
        request, _ = scripted(429, 200)
        sleep = FakeSleep()

        asyncio.run(
            call_with_retry(request, RetryPolicy(base_delay=1.0), sleep=sleep, jitter=lambda: 0.25)
        )

        assert sleep.delays == [1.25]

    def test_default_jitter_is_bounded(self):
        request, _ = scripted(429, 429, 200)
        sleep = FakeSleep()
        policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_jitter=0.5)

        asyncio.run(call_with_retry(request, policy, sleep=sleep))

        assert 1.0 <= sleep.delays[0] <= 1.5
        assert 2.0 <= sleep.delays[1] <= 2.5

    def test_attempt_timeout_caps_hanging_call(self):
        calls = {"count": 0}

        async def hangs():
            calls["count"] += 1
            await asyncio.sleep(5)

        sleep = FakeSleep()
        policy = RetryPolicy(max_attempts=2, base_delay=0.0, attempt_timeout=0.01)

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(call_with_retry(hangs, policy, sleep=sleep))

        assert calls["count"] == 2

    def test_single_attempt_policy(self):
        request, calls = scripted(429)

        with pytest.raises(UpstreamError):
            asyncio.run(call_with_retry(request, RetryPolicy(max_attempts=1), sleep=FakeSleep()))

        assert calls["count"] == 1


class TestRetryPolicy:
    """Test RetryPolicy."""

    def test_exponential_delays(self):
        policy = RetryPolicy(base_delay=0.5)
        assert [policy.delay_for(i) for i in range(4)] == [0.5, 1.0, 2.0, 4.0]

    def test_only_throttling_retriable_by_default(self):
        assert RetryPolicy().retriable_statuses == frozenset({429})


class TestWithRetry:
    """Test the decorator form."""

    def test_decorated_coroutine_is_retried(self):
        request, calls = scripted(429, 200)
        sleep = FakeSleep()

        @with_retry(RetryPolicy(max_attempts=3, base_delay=0.1), sleep=sleep)
        async def fetch():
            return await request()

        response = asyncio.run(fetch())

        assert response.status_code == 200
        assert calls["count"] == 2
        assert len(sleep.delays) == 1
