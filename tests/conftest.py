"""
Pytest configuration and shared fixtures for codestats tests.

Upstream HTTP is replaced with ``httpx.MockTransport`` inside each test
module; this module provides the fakes shared across modules.
"""

import asyncio
import fnmatch
from typing import Any, Dict, List, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from codestats.models.result import ProviderResult


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` (decode_responses=True)."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.fail = False
        self.calls: List[str] = []
        self.closed = False

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if self.fail:
            raise RedisConnectionError("redis unavailable")

    async def ping(self) -> bool:
        self._check("ping")
        return True

    async def get(self, key: str) -> Optional[str]:
        self._check("get")
        return self.store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self._check("setex")
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        self._check("delete")
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def exists(self, key: str) -> int:
        self._check("exists")
        return int(key in self.store)

    async def keys(self, pattern: str) -> List[str]:
        self._check("keys")
        return [key for key in self.store if fnmatch.fnmatchcase(key, pattern)]

    async def aclose(self) -> None:
        self.closed = True


class ManualClock:
    """Callable clock advanced explicitly by tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ConcurrencyTracker:
    def __init__(self):
        self.current = 0
        self.peak = 0

    def enter(self) -> None:
        self.current += 1
        self.peak = max(self.peak, self.current)

    def exit(self) -> None:
        self.current -= 1


class StubProvider:
    """Provider whose responses are scripted.

    Each response is one of: a dict (OK payload ``detailed_stats``), a str
    (FAILED reason), a ProviderResult, or an exception to raise. The last
    response repeats once the script is exhausted.
    """

    available = True
    ttl = None

    def __init__(self, name: str, responses: Optional[List[Any]] = None,
                 delay: float = 0.0, gate: Optional[asyncio.Event] = None,
                 tracker: Optional[ConcurrencyTracker] = None):
        self.name = name
        self.responses = list(responses or [{"problems_solved": 1}])
        self.delay = delay
        self.gate = gate
        self.tracker = tracker
        self.calls: List[str] = []
        self.cancelled = 0

    async def fetch(self, handle: str) -> ProviderResult:
        self.calls.append(handle)
        if self.tracker:
            self.tracker.enter()
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            if self.tracker:
                self.tracker.exit()

        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, ProviderResult):
            return response
        if isinstance(response, str):
            return ProviderResult.failed(self.name, handle, response)
        return ProviderResult.ok(self.name, handle, {"detailed_stats": dict(response)})


class SleepRecorder:
    """Replacement for asyncio.sleep that records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def no_sleep() -> SleepRecorder:
    return SleepRecorder()
