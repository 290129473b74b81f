"""Codeforces 数据源"""

import asyncio
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Any, List

from loguru import logger

from ..models.errors import NotFoundError, PermanentError, MalformedResponseError
from ..transport.retrying_transport import HttpTarget
from .base import HttpProvider, to_int
from .activity import calendar_from_timestamps


class CodeforcesProvider(HttpProvider):
    """通过官方 API 获取用户信息、比赛记录和提交记录"""

    name = "codeforces"

    def __init__(self, transport, base_url: str = "https://codeforces.com/api"):
        super().__init__(transport)
        self.base_url = base_url.rstrip("/")

    async def _api(self, method: str, **params) -> Any:
        try:
            data = await self.transport.call_json(
                HttpTarget(url=f"{self.base_url}/{method}", params=params)
            )
        except PermanentError as e:
            # 用户不存在时 API 返回 400 + "not found"
            if e.status_code == 400 and "not found" in str(e).lower():
                raise NotFoundError(str(e), url=e.url, status_code=e.status_code) from e
            raise

        if not isinstance(data, dict) or data.get("status") != "OK":
            raise MalformedResponseError(f"Codeforces API 返回异常: {str(data)[:200]}")
        return data.get("result")

    async def fetch_payload(self, handle: str) -> Dict[str, Any]:
        info, ratings, submissions = await asyncio.gather(
            self._api("user.info", handles=handle),
            self._api("user.rating", handle=handle),
            self._api("user.status", handle=handle, **{"from": 1, "count": 5000}),
            return_exceptions=True,
        )

        if isinstance(info, BaseException):
            raise info
        if not info:
            raise NotFoundError(f"Codeforces 用户不存在: {handle}")
        user = info[0]

        if isinstance(ratings, BaseException):
            logger.warning(f"Codeforces 比赛记录获取失败 [{handle}]: {ratings}")
            ratings = []
        if isinstance(submissions, BaseException):
            logger.warning(f"Codeforces 提交记录获取失败 [{handle}]: {submissions}")
            submissions = []

        return {
            "profile": user,
            "contests": self._process_contests(ratings or []),
            "calendar": calendar_from_timestamps(
                s.get("creationTimeSeconds") for s in submissions or []
            ),
            "calendar_estimated": False,
            "detailed_stats": self._detailed_stats(user, ratings or [], submissions or []),
        }

    @staticmethod
    def _detailed_stats(user: Dict[str, Any], ratings: List[Dict[str, Any]],
                        submissions: List[Dict[str, Any]]) -> Dict[str, Any]:
        accepted = set()
        languages: Counter = Counter()
        verdicts: Counter = Counter()
        difficulty: Counter = Counter()

        for submission in submissions:
            languages[submission.get("programmingLanguage")] += 1
            verdicts[submission.get("verdict")] += 1
            if submission.get("verdict") != "OK":
                continue
            problem = submission.get("problem") or {}
            pid = f"{problem.get('contestId')}-{problem.get('index')}"
            if pid not in accepted and problem.get("rating"):
                difficulty[str(problem["rating"] // 100 * 100)] += 1
            accepted.add(pid)

        return {
            "current_rating": to_int(user.get("rating")),
            "max_rating": to_int(user.get("maxRating")),
            "rank": user.get("rank") or "unrated",
            "max_rank": user.get("maxRank") or "unrated",
            "contribution": to_int(user.get("contribution")),
            "friend_of_count": to_int(user.get("friendOfCount")),
            "problems_solved": len(accepted),
            "contests_participated": len(ratings),
            "language_stats": dict(languages),
            "verdict_stats": dict(verdicts),
            "difficulty_distribution": dict(difficulty),
        }

    @staticmethod
    def _process_contests(ratings: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not ratings:
            return {"contests_attended": 0, "recent_contests": [], "best_rank": None,
                    "worst_rank": None, "rating_progression": []}

        def when(contest):
            return datetime.fromtimestamp(
                contest.get("ratingUpdateTimeSeconds", 0), tz=timezone.utc
            ).isoformat()

        changes = [c["newRating"] - c["oldRating"] for c in ratings]
        return {
            "contests_attended": len(ratings),
            "recent_contests": [
                {
                    "contest_id": c.get("contestId"),
                    "contest_name": c.get("contestName"),
                    "rank": c.get("rank"),
                    "old_rating": c["oldRating"],
                    "new_rating": c["newRating"],
                    "rating_change": c["newRating"] - c["oldRating"],
                    "participation_time": when(c),
                }
                for c in ratings[-10:]
            ],
            "best_rank": min(c["rank"] for c in ratings),
            "worst_rank": max(c["rank"] for c in ratings),
            "max_rating_gain": max(changes),
            "max_rating_loss": min(changes),
            "rating_progression": [
                {"date": when(c), "rating": c["newRating"], "contest": c.get("contestName")}
                for c in ratings
            ],
        }
