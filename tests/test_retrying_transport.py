"""Tests for the retrying HTTP transport."""

import asyncio

import httpx
import pytest

from codestats.models.errors import (
    TransientError,
    PermanentError,
    NotFoundError,
    MalformedResponseError,
    RateLimitedError,
)
from codestats.transport.retrying_transport import RetryingTransport, HttpTarget, retry_async


def scripted_transport(responses, sleep):
    """Build a RetryingTransport whose upstream replays ``responses`` in order."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        response = responses[min(len(seen), len(responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RetryingTransport(client=client, max_attempts=3, backoff_base=1.0, timeout=5.0, sleep=sleep), seen


@pytest.mark.asyncio
async def test_retries_transient_failures_then_succeeds(no_sleep):
    transport, seen = scripted_transport(
        [httpx.Response(503), httpx.Response(502), httpx.Response(200, json={"ok": True})],
        no_sleep,
    )

    assert await transport.call_json("https://api.test/user") == {"ok": True}
    assert len(seen) == 3
    assert no_sleep.delays == [1.0, 2.0]
    assert transport.stats == {"calls": 1, "attempts": 3, "failures": 0}


@pytest.mark.asyncio
async def test_timeouts_exhaust_attempts(no_sleep):
    request = httpx.Request("GET", "https://api.test/slow")
    transport, seen = scripted_transport([httpx.ReadTimeout("timed out", request=request)], no_sleep)

    with pytest.raises(TransientError):
        await transport.call("https://api.test/slow")

    assert len(seen) == 3
    assert transport.stats["failures"] == 1


@pytest.mark.asyncio
async def test_connection_errors_are_transient(no_sleep):
    request = httpx.Request("GET", "https://api.test/")
    transport, seen = scripted_transport([httpx.ConnectError("refused", request=request)], no_sleep)

    with pytest.raises(TransientError) as exc_info:
        await transport.call("https://api.test/")

    assert exc_info.value.status_code is None
    assert len(seen) == 3


@pytest.mark.asyncio
async def test_not_found_fails_after_one_attempt(no_sleep):
    transport, seen = scripted_transport([httpx.Response(404, text="no such user")], no_sleep)

    with pytest.raises(NotFoundError) as exc_info:
        await transport.call("https://api.test/users/ghost")

    assert len(seen) == 1
    assert no_sleep.delays == []
    assert exc_info.value.status_code == 404
    assert "no such user" in str(exc_info.value)


@pytest.mark.asyncio
async def test_rate_limit_is_not_retried(no_sleep):
    transport, seen = scripted_transport([httpx.Response(429)], no_sleep)

    with pytest.raises(RateLimitedError):
        await transport.call("https://api.test/")

    assert len(seen) == 1


@pytest.mark.asyncio
async def test_other_client_errors_are_permanent(no_sleep):
    transport, seen = scripted_transport([httpx.Response(400, text="bad handle")], no_sleep)

    with pytest.raises(PermanentError) as exc_info:
        await transport.call("https://api.test/")

    assert not isinstance(exc_info.value, NotFoundError)
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_invalid_json_is_malformed(no_sleep):
    transport, seen = scripted_transport([httpx.Response(200, text="<html>")], no_sleep)

    with pytest.raises(MalformedResponseError):
        await transport.call_json("https://api.test/")

    assert len(seen) == 1


@pytest.mark.asyncio
async def test_target_params_and_headers_are_sent(no_sleep):
    transport, seen = scripted_transport([httpx.Response(200, text="ok")], no_sleep)

    text = await transport.call_text(
        HttpTarget(url="https://api.test/user.info", params={"handles": "tourist"}, headers={"X-Test": "1"})
    )

    assert text == "ok"
    assert seen[0].url.params["handles"] == "tourist"
    assert seen[0].headers["X-Test"] == "1"


@pytest.mark.asyncio
async def test_single_attempt_configuration(no_sleep):
    transport, seen = scripted_transport([httpx.Response(500)], no_sleep)
    transport.max_attempts = 1

    with pytest.raises(TransientError):
        await transport.call("https://api.test/")

    assert len(seen) == 1
    assert no_sleep.delays == []


class TestRetryAsync:

    @pytest.mark.asyncio
    async def test_attempt_timeout_is_retryable(self, no_sleep):
        attempts = []

        async def hang():
            attempts.append(1)
            await asyncio.sleep(10)

        with pytest.raises(TransientError):
            await retry_async(hang, max_attempts=2, backoff_base=0.5, timeout=0.01, sleep=no_sleep)

        assert len(attempts) == 2
        assert no_sleep.delays == [0.5]

    @pytest.mark.asyncio
    async def test_max_attempts_floor_is_one(self, no_sleep):
        attempts = []

        async def succeed():
            attempts.append(1)
            return "done"

        assert await retry_async(succeed, max_attempts=0, sleep=no_sleep) == "done"
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_backoff_doubles_and_last_error_is_raised(self, no_sleep):
        errors = [TransientError(f"down {n}") for n in range(4)]

        async def always_down():
            raise errors.pop(0)

        with pytest.raises(TransientError, match="down 3"):
            await retry_async(always_down, max_attempts=4, backoff_base=1.0, sleep=no_sleep)

        assert no_sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_not_retried(self, no_sleep):
        attempts = []

        async def broken():
            attempts.append(1)
            raise KeyError("payload")

        with pytest.raises(KeyError):
            await retry_async(broken, max_attempts=3, sleep=no_sleep)

        assert len(attempts) == 1
        assert no_sleep.delays == []
