"""跨平台结果汇总"""

from datetime import date, timedelta
from typing import Dict, Any, Callable, List, Mapping, Optional, Union

from loguru import logger

from ..config.settings import AggregatorConfig
from ..models.enums import ResultStatus
from ..models.report import AggregateReport
from ..models.result import ProviderResult, ProviderOutcome
from ..providers.activity import estimate_daily_activity, utc_today
from ..providers.base import to_int

# 平台 -> {汇总指标: detailed_stats 中的字段}
DEFAULT_EXTRACTION_RULES: Dict[str, Dict[str, str]] = {
    "leetcode": {"problems_solved": "problems_solved", "contests": "contests_attended"},
    "codeforces": {"problems_solved": "problems_solved", "contests": "contests_participated"},
    "codechef": {"problems_solved": "problems_solved", "contests": "contests_participated"},
    "geeksforgeeks": {"problems_solved": "problems_solved"},
    "github": {"followers": "followers", "public_repos": "public_repos"},
}

TOTAL_METRICS = ("problems_solved", "contests", "followers", "public_repos")

# 平台 -> 在 platform_breakdown 中展示的字段
BREAKDOWN_FIELDS: Dict[str, List[str]] = {
    "leetcode": ["problems_solved", "easy_solved", "medium_solved", "hard_solved", "ranking", "contest_rating"],
    "codeforces": ["current_rating", "max_rating", "rank", "problems_solved", "contests_participated"],
    "codechef": ["current_rating", "problems_solved", "global_rank", "stars"],
    "geeksforgeeks": ["problems_solved", "overall_score", "monthly_score"],
    "github": ["public_repos", "followers", "following", "total_stars"],
}


class ResultAggregator:
    """把每个平台的结果合并为一份汇总报告

    纯同步计算，不做 I/O；遇到格式异常的 payload 时该平台贡献为零。
    """

    def __init__(self,
                 extraction_rules: Optional[Mapping[str, Mapping[str, str]]] = None,
                 window_days: int = 365,
                 estimate_missing_activity: bool = True,
                 today: Optional[Callable[[], date]] = None):
        self.extraction_rules = dict(DEFAULT_EXTRACTION_RULES if extraction_rules is None else extraction_rules)
        self.window_days = window_days
        self.estimate_missing_activity = estimate_missing_activity
        self._today = today or utc_today

    @classmethod
    def from_config(cls, config: AggregatorConfig) -> 'ResultAggregator':
        return cls(window_days=config.window_days,
                   estimate_missing_activity=config.estimate_missing_activity)

    def register_rule(self, provider: str, rule: Mapping[str, str]) -> None:
        self.extraction_rules[provider] = dict(rule)

    def aggregate(self,
                  results: Mapping[str, Union[ProviderResult, ProviderOutcome]],
                  requested: Optional[int] = None) -> AggregateReport:
        """计算汇总视图

        Args:
            results: 平台名 -> 结果
            requested: 请求的平台总数，默认等于 results 的数量

        Returns:
            AggregateReport: 汇总报告
        """
        if not isinstance(results, Mapping):
            logger.warning(f"汇总输入格式错误: {type(results).__name__}")
            return AggregateReport()

        succeeded, failed, rate_limited, unavailable = [], [], [], []
        payloads: Dict[str, Dict[str, Any]] = {}

        for provider, item in results.items():
            result = item.result if isinstance(item, ProviderOutcome) else item
            if not isinstance(result, ProviderResult):
                failed.append(provider)
                continue
            if result.status is ResultStatus.OK:
                succeeded.append(provider)
                payloads[provider] = result.payload if isinstance(result.payload, dict) else {}
            elif result.status is ResultStatus.UNAVAILABLE:
                unavailable.append(provider)
            else:
                failed.append(provider)
                if result.status is ResultStatus.RATE_LIMITED:
                    rate_limited.append(provider)

        total_requested = requested if requested is not None else len(results)
        activity, estimated = self._build_activity(payloads)
        counts = list(activity.values())

        return AggregateReport(
            requested=total_requested,
            succeeded=succeeded,
            failed=failed,
            rate_limited=rate_limited,
            unavailable=unavailable,
            totals=self._totals(payloads),
            platform_breakdown={p: self._breakdown(p, payload) for p, payload in payloads.items()},
            activity=activity,
            estimated_providers=estimated,
            total_activity=sum(counts),
            active_days=sum(1 for c in counts if c > 0),
            max_streak=self._max_streak(counts),
            current_streak=self._current_streak(counts),
            data_quality=round(len(succeeded) / total_requested, 4) if total_requested > 0 else 0.0,
        )

    @staticmethod
    def _stats(payload: Dict[str, Any]) -> Dict[str, Any]:
        stats = payload.get("detailed_stats")
        return stats if isinstance(stats, dict) else {}

    def _totals(self, payloads: Dict[str, Dict[str, Any]]) -> Dict[str, int]:
        totals = dict.fromkeys(TOTAL_METRICS, 0)
        for provider, payload in payloads.items():
            stats = self._stats(payload)
            for metric, field in self.extraction_rules.get(provider, {}).items():
                totals[metric] = totals.get(metric, 0) + max(0, to_int(stats.get(field)))
        return totals

    def _breakdown(self, provider: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        stats = self._stats(payload)
        fields = BREAKDOWN_FIELDS.get(provider) or list(self.extraction_rules.get(provider, {}).values())
        return {name: stats.get(name, 0) for name in fields}

    def _build_activity(self, payloads: Dict[str, Dict[str, Any]]):
        end = self._today()
        start = end - timedelta(days=self.window_days - 1)
        activity = {
            (start + timedelta(days=offset)).isoformat(): 0
            for offset in range(self.window_days)
        }
        estimated = []

        for provider, payload in payloads.items():
            calendar = payload.get("calendar")
            if not isinstance(calendar, list) or not calendar:
                solved = to_int(self._stats(payload).get("problems_solved"))
                if not (self.estimate_missing_activity and solved > 0):
                    continue
                calendar = estimate_daily_activity(
                    solved, days=self.window_days, end=end, seed=provider
                )
                estimated.append(provider)
            elif payload.get("calendar_estimated"):
                estimated.append(provider)

            for day in calendar:
                if not isinstance(day, dict):
                    continue
                key = day.get("date")
                if key in activity:
                    activity[key] += max(0, to_int(day.get("count")))

        return activity, estimated

    @staticmethod
    def _max_streak(counts: List[int]) -> int:
        best = current = 0
        for count in counts:
            current = current + 1 if count > 0 else 0
            best = max(best, current)
        return best

    @staticmethod
    def _current_streak(counts: List[int]) -> int:
        streak = 0
        for count in reversed(counts):
            if count <= 0:
                break
            streak += 1
        return streak
