"""每日活动日历工具

平台提供逐日数据时直接转换；不提供时按总数估算分布。
估算结果是近似值，调用方应通过 ``calendar_estimated`` 标记区分。
"""

import random
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Dict, Optional, Mapping, Any


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def calendar_from_counts(counts: Mapping[str, int]) -> List[Dict[str, Any]]:
    """{日期: 次数} -> 按日期排序的日历列表，丢弃非正数"""
    return [
        {"date": day, "count": int(count)}
        for day, count in sorted(counts.items())
        if int(count) > 0
    ]


def calendar_from_timestamps(timestamps: Iterable[float]) -> List[Dict[str, Any]]:
    """Unix 时间戳序列 -> 日历列表，每个时间戳计一次"""
    counter: Counter = Counter()
    for ts in timestamps:
        try:
            day = datetime.fromtimestamp(int(ts), tz=timezone.utc).date().isoformat()
        except (TypeError, ValueError, OverflowError, OSError):
            continue
        counter[day] += 1
    return calendar_from_counts(counter)


def calendar_from_submission_map(submission_calendar: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """{时间戳字符串: 次数} -> 日历列表"""
    counter: Counter = Counter()
    for ts, count in submission_calendar.items():
        try:
            day = datetime.fromtimestamp(int(ts), tz=timezone.utc).date().isoformat()
            counter[day] += int(count)
        except (TypeError, ValueError, OverflowError, OSError):
            continue
    return calendar_from_counts(counter)


def estimate_daily_activity(total: int,
                            days: int = 365,
                            end: Optional[date] = None,
                            seed: Optional[str] = None,
                            active_ratio: float = 0.3) -> List[Dict[str, Any]]:
    """把总数随机分布到最近 days 天

    同一 seed 得到相同分布。总和严格等于 total。

    Args:
        total: 需要分布的总数（如已解决题目数）
        days: 窗口天数
        end: 窗口最后一天，默认今天（UTC）
        seed: 随机种子
        active_ratio: 活跃天数占窗口的比例上限

    Returns:
        List[Dict[str, Any]]: 日历列表
    """
    if total <= 0 or days <= 0:
        return []

    end = end or utc_today()
    rng = random.Random(seed)
    active_days = max(1, min(total, days, int(days * active_ratio)))
    offsets = rng.sample(range(days), active_days)

    counts = dict.fromkeys(offsets, 1)
    for _ in range(total - active_days):
        counts[rng.choice(offsets)] += 1

    return calendar_from_counts({
        (end - timedelta(days=offset)).isoformat(): count
        for offset, count in counts.items()
    })
