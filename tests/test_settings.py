"""Tests for configuration loading."""

import pytest

from codestats.config import get_config
from codestats.config.settings import AppConfig, CacheConfig, OrchestratorConfig


def test_defaults():
    config = AppConfig.create_default()

    assert config.cache.default_ttl == 7200
    assert config.cache.memory_ttl == 300
    assert config.transport.max_attempts == 3
    assert config.transport.timeout == 8.0
    assert config.orchestrator.chunk_size == 3
    assert config.orchestrator.inter_chunk_delay == 0.4
    assert "hackerrank" in config.providers.unavailable


def test_memory_ttl_clamped():
    config = CacheConfig(memory_ttl=900, default_ttl=600)
    assert config.memory_ttl == 600


def test_invalid_chunk_size():
    with pytest.raises(ValueError):
        OrchestratorConfig(chunk_size=0)


def test_from_env(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")
    monkeypatch.setenv("CODESTATS_ENABLE_REDIS", "false")
    monkeypatch.setenv("CODESTATS_CACHE_TTL", "1200")
    monkeypatch.setenv("CODESTATS_CHUNK_SIZE", "5")
    monkeypatch.setenv("CODESTATS_BATCH_TIMEOUT", "12.5")
    monkeypatch.setenv("CODESTATS_COALESCE_INFLIGHT", "1")
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_secret")
    monkeypatch.setenv("CODESTATS_LOG_LEVEL", "DEBUG")

    config = get_config()

    assert config.cache.redis_url == "redis://cache:6379/2"
    assert config.cache.enable_redis is False
    assert config.cache.default_ttl == 1200
    assert config.cache.coalesce_inflight is True
    assert config.orchestrator.chunk_size == 5
    assert config.orchestrator.batch_timeout == 12.5
    assert config.providers.github_token == "ghp_secret"
    assert config.logging.log_level == "DEBUG"


def test_to_dict_redacts_secrets():
    config = AppConfig.create_default()
    config.cache.redis_password = "hunter2"
    config.providers.github_token = "ghp_secret"

    redacted = config.to_dict()
    assert redacted["cache"]["redis_password"] == "***"
    assert redacted["providers"]["github_token"] == "***"
    assert config.to_dict(redact=False)["providers"]["github_token"] == "ghp_secret"


def test_from_dict_round_trip():
    config = AppConfig.create_debug()
    restored = AppConfig.from_dict(config.to_dict(redact=False))

    assert restored == config
    assert restored.transport.max_attempts == 1
    assert restored.cache.enable_redis is False


def test_invalid_cache_sizes():
    with pytest.raises(ValueError):
        CacheConfig(max_memory_entries=-1)
    with pytest.raises(ValueError):
        CacheConfig(default_ttl=0)
    assert CacheConfig(max_memory_entries=0).max_memory_entries == 0
