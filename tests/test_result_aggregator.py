"""Tests for cross-platform aggregation."""

from datetime import date

import pytest

from codestats.handler.result_aggregator import ResultAggregator
from codestats.models.result import ProviderResult, ProviderOutcome

TODAY = date(2024, 1, 10)


def ok(provider, stats, calendar=None, **extra):
    payload = {"detailed_stats": stats, **extra}
    if calendar is not None:
        payload["calendar"] = calendar
    return ProviderResult.ok(provider, "alice", payload)


@pytest.fixture
def aggregator():
    return ResultAggregator(window_days=7, today=lambda: TODAY)


def test_totals_sum_successful_providers_only(aggregator):
    report = aggregator.aggregate({
        "leetcode": ok("leetcode", {"problems_solved": 10, "contests_attended": 2}, calendar=[]),
        "codeforces": ok("codeforces", {"problems_solved": 5, "contests_participated": 3}, calendar=[]),
        "github": ok("github", {"followers": 4, "public_repos": 9}, calendar=[]),
        "codechef": ProviderResult.failed("codechef", "alice", "timeout"),
    })

    assert report.totals["problems_solved"] == 15
    assert report.totals["contests"] == 5
    assert report.totals["followers"] == 4
    assert report.totals["public_repos"] == 9
    assert report.succeeded == ["leetcode", "codeforces", "github"]
    assert report.failed == ["codechef"]
    assert report.data_quality == 0.75


def test_half_success_gives_half_quality(aggregator):
    report = aggregator.aggregate({
        "leetcode": ProviderOutcome(ok("leetcode", {"problems_solved": 10}, calendar=[])),
        "codeforces": ProviderOutcome(ProviderResult.failed("codeforces", "alice", "timeout")),
    })

    assert report.totals["problems_solved"] == 10
    assert report.data_quality == 0.5
    assert report.to_dict()["data_quality_percent"] == "50%"


def test_status_buckets(aggregator):
    report = aggregator.aggregate({
        "github": ProviderResult.rate_limited("github", "alice", "slow down"),
        "hackerrank": ProviderResult.unavailable("hackerrank", "alice", "no api"),
    })

    assert report.failed == ["github"]
    assert report.rate_limited == ["github"]
    assert report.unavailable == ["hackerrank"]
    assert report.succeeded == []
    assert report.data_quality == 0.0


def test_requested_count_overrides_result_count(aggregator):
    report = aggregator.aggregate({"leetcode": ok("leetcode", {"problems_solved": 1}, calendar=[])}, requested=4)
    assert report.requested == 4
    assert report.data_quality == 0.25


def test_activity_window_merges_calendars_and_streaks(aggregator):
    report = aggregator.aggregate({
        "leetcode": ok("leetcode", {}, calendar=[
            {"date": "2024-01-07", "count": 2},
            {"date": "2024-01-08", "count": 1},
            {"date": "2023-12-01", "count": 50},
        ]),
        "github": ok("github", {}, calendar=[
            {"date": "2024-01-08", "count": 3},
            {"date": "2024-01-09", "count": 1},
            {"date": "2024-01-10", "count": 1},
            {"date": "2024-01-05", "count": 1},
        ]),
    })

    assert list(report.activity) == [f"2024-01-{d:02d}" for d in range(4, 11)]
    assert report.activity["2024-01-08"] == 4
    assert report.total_activity == 9
    assert report.active_days == 5
    assert report.max_streak == 4
    assert report.current_streak == 4
    assert report.estimated_providers == []


def test_missing_calendar_is_estimated_from_solved_count():
    aggregator = ResultAggregator(window_days=30, today=lambda: TODAY)
    report = aggregator.aggregate({"codechef": ok("codechef", {"problems_solved": 20})})

    assert report.total_activity == 20
    assert report.estimated_providers == ["codechef"]

    again = aggregator.aggregate({"codechef": ok("codechef", {"problems_solved": 20})})
    assert again.activity == report.activity


def test_estimation_can_be_disabled():
    aggregator = ResultAggregator(window_days=30, estimate_missing_activity=False, today=lambda: TODAY)
    report = aggregator.aggregate({"codechef": ok("codechef", {"problems_solved": 20})})

    assert report.total_activity == 0
    assert report.estimated_providers == []


def test_provider_marked_estimated_is_reported(aggregator):
    report = aggregator.aggregate({
        "geeksforgeeks": ok("geeksforgeeks", {"problems_solved": 1},
                            calendar=[{"date": "2024-01-10", "count": 1}], calendar_estimated=True),
    })
    assert report.estimated_providers == ["geeksforgeeks"]


def test_malformed_payloads_contribute_zero(aggregator):
    report = aggregator.aggregate({
        "leetcode": ProviderResult.ok("leetcode", "alice", {"detailed_stats": "oops", "calendar": "nope"}),
        "codeforces": ok("codeforces", {"problems_solved": "n/a"}, calendar=[None, {"date": "bad"}]),
    })

    assert report.totals["problems_solved"] == 0
    assert report.total_activity == 0
    assert report.data_quality == 1.0


def test_non_mapping_input_gives_empty_report(aggregator):
    report = aggregator.aggregate(["leetcode"])
    assert report.requested == 0
    assert report.totals == {}
    assert report.data_quality == 0.0


def test_custom_rule_registration(aggregator):
    aggregator.register_rule("atcoder", {"problems_solved": "accepted"})
    report = aggregator.aggregate({"atcoder": ok("atcoder", {"accepted": 8}, calendar=[])})

    assert report.totals["problems_solved"] == 8
    assert report.platform_breakdown["atcoder"] == {"accepted": 8}
