"""Tests for request, result and cache models."""

import pytest

from codestats.models.cache import CacheKey, CacheEntry
from codestats.models.enums import CacheOrigin, ResultStatus
from codestats.models.errors import MalformedRequestError, UnknownProviderError
from codestats.models.request import BatchRequest
from codestats.models.result import ProviderResult, ProviderOutcome
from codestats.providers.activity import (
    calendar_from_submission_map,
    calendar_from_timestamps,
    estimate_daily_activity,
)

SUPPORTED = ["leetcode", "codeforces", "github"]


class TestBatchRequest:

    def test_preserves_order_and_strips(self):
        batch = BatchRequest.from_mapping({"github": " octo ", "leetcode": "alice"}, SUPPORTED)
        assert batch.pairs == [("github", "octo"), ("leetcode", "alice")]
        assert batch.providers == ["github", "leetcode"]
        assert len(batch) == 2

    def test_skips_empty_handles(self):
        batch = BatchRequest.from_mapping({"github": "", "leetcode": "  ", "codeforces": None}, SUPPORTED)
        assert batch.pairs == []

    def test_rejects_unknown_provider(self):
        with pytest.raises(UnknownProviderError) as exc_info:
            BatchRequest.from_mapping({"leetcode": "a", "spoj": "a", "atcoder": ""}, SUPPORTED)
        assert exc_info.value.unknown == ["atcoder", "spoj"]

    def test_rejects_non_string_handle(self):
        with pytest.raises(MalformedRequestError):
            BatchRequest.from_mapping({"leetcode": ["a"]}, SUPPORTED)

    def test_rejects_non_mapping(self):
        with pytest.raises(MalformedRequestError):
            BatchRequest.from_mapping("leetcode=alice", SUPPORTED)


class TestCacheModels:

    def test_cache_key_normalizes_handle(self):
        assert str(CacheKey("leetcode", "  Alice ")) == "leetcode:alice"

    def test_entry_expiry(self):
        entry = CacheEntry(key="k", value=1, ttl=10, created_time=100.0)
        assert not entry.is_expired(109.9)
        assert entry.is_expired(110.0)

    def test_annotate_returns_new_entry(self):
        entry = CacheEntry(key="k", value=1, ttl=10, created_time=100.0)
        stale = entry.annotate(CacheOrigin.STALE, 1.5, error="down")

        assert entry.origin is CacheOrigin.FRESH
        assert stale.cache_info() == {
            "hit": True, "source": "stale", "fetch_time": 1.5,
            "cached_at": 100.0, "ttl": 10, "error": "down",
        }

    def test_serialized_entry_omits_response_metadata(self):
        entry = CacheEntry(key="k", value={"a": 1}, ttl=10, created_time=5.0).annotate(CacheOrigin.MEMORY, 2.0)
        restored = CacheEntry.from_dict(entry.to_dict())

        assert restored.value == {"a": 1}
        assert restored.origin is CacheOrigin.FRESH


class TestProviderResult:

    def test_to_dict_shapes(self):
        ok = ProviderResult.ok("github", "octo", {"followers": 1})
        failed = ProviderResult.failed("github", "octo", "timeout")

        assert ok.to_dict()["data"] == {"followers": 1}
        assert "error" not in ok.to_dict()
        assert failed.to_dict()["error"] == "timeout"
        assert "data" not in failed.to_dict()
        assert ProviderResult.from_dict(ok.to_dict()) == ok

    def test_outcome_includes_cache_info_only_with_entry(self):
        result = ProviderResult.unavailable("hackerrank", "a", "no api")
        assert "cache_info" not in ProviderOutcome(result).to_dict()
        assert ProviderOutcome(result).status is ResultStatus.UNAVAILABLE


class TestActivityHelpers:

    def test_estimate_sums_to_total_and_is_deterministic(self):
        first = estimate_daily_activity(57, days=90, seed="codechef:alice")
        second = estimate_daily_activity(57, days=90, seed="codechef:alice")

        assert sum(day["count"] for day in first) == 57
        assert first == second
        assert len(first) <= 27

    def test_estimate_of_zero_is_empty(self):
        assert estimate_daily_activity(0) == []

    def test_timestamp_calendars(self):
        assert calendar_from_timestamps([86400, 86400 + 5, "bad"]) == [{"date": "1970-01-02", "count": 2}]
        assert calendar_from_submission_map({"86400": "3", "oops": 1}) == [{"date": "1970-01-02", "count": 3}]
