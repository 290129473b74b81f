"""Tests for the shared cache tier."""

import json

import pytest

from codestats.cache.redis_manager import RedisManager
from codestats.models.cache import CacheEntry


def make_entry(key="leetcode:alice", value=None, ttl=600):
    return CacheEntry(key=key, value=value or {"solved": 3}, ttl=ttl, created_time=1000.0)


@pytest.mark.asyncio
async def test_put_and_get_round_trip(fake_redis):
    manager = RedisManager(client=fake_redis, key_prefix="test:")

    assert await manager.put("leetcode:alice", make_entry(), ttl=120)
    assert fake_redis.ttls["test:leetcode:alice"] == 120
    assert json.loads(fake_redis.store["test:leetcode:alice"])["value"] == {"solved": 3}

    entry = await manager.get("leetcode:alice")
    assert entry.value == {"solved": 3}
    assert entry.ttl == 600
    assert entry.created_time == 1000.0
    assert manager.is_connected


@pytest.mark.asyncio
async def test_put_defaults_to_manager_ttl(fake_redis):
    manager = RedisManager(client=fake_redis, ttl=7200)
    await manager.put("k", make_entry(key="k"))
    assert fake_redis.ttls["codestats:k"] == 7200


@pytest.mark.asyncio
async def test_missing_and_corrupt_entries_return_none(fake_redis):
    manager = RedisManager(client=fake_redis)
    assert await manager.get("absent") is None

    fake_redis.store["codestats:broken"] = json.dumps({"value": 1})
    assert await manager.get("broken") is None


@pytest.mark.asyncio
async def test_failures_are_absorbed_and_counted(fake_redis):
    manager = RedisManager(client=fake_redis, reconnect_interval=30.0)
    await manager.connect()

    fake_redis.fail = True
    assert await manager.get("k") is None
    assert await manager.put("k", make_entry(key="k")) is False
    assert manager.error_count == 1
    assert not manager.is_connected
    assert manager.get_stats()["status"] == "disconnected"


@pytest.mark.asyncio
async def test_reconnect_is_throttled(fake_redis):
    manager = RedisManager(client=fake_redis, reconnect_interval=30.0)
    fake_redis.fail = True
    assert await manager.connect() is False

    fake_redis.fail = False
    calls_before = len(fake_redis.calls)
    assert await manager.get("k") is None
    assert len(fake_redis.calls) == calls_before


@pytest.mark.asyncio
async def test_reconnects_after_interval(fake_redis):
    manager = RedisManager(client=fake_redis, reconnect_interval=0.0)
    fake_redis.fail = True
    assert await manager.connect() is False

    fake_redis.fail = False
    await manager.put("k", make_entry(key="k"))
    assert (await manager.get("k")).value == {"solved": 3}
    assert manager.is_connected


@pytest.mark.asyncio
async def test_remove_exists_and_clear(fake_redis):
    manager = RedisManager(client=fake_redis)
    await manager.put("leetcode:a", make_entry(key="leetcode:a"))
    await manager.put("leetcode:b", make_entry(key="leetcode:b"))
    await manager.put("github:a", make_entry(key="github:a"))

    assert await manager.exists("leetcode:a")
    assert await manager.remove("leetcode:a")
    assert not await manager.exists("leetcode:a")

    assert await manager.clear("leetcode:*") == 1
    assert await manager.exists("github:a")


@pytest.mark.asyncio
async def test_disconnect_closes_client(fake_redis):
    manager = RedisManager(client=fake_redis)
    assert await manager.ping()
    await manager.disconnect()
    assert fake_redis.closed
    assert not manager.is_connected
