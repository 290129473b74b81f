"""LeetCode 数据源"""

import asyncio
import json
from typing import Dict, Any

from loguru import logger

from ..models.errors import NotFoundError
from .base import HttpProvider, quote_handle, to_int
from .activity import calendar_from_submission_map


class LeetCodeProvider(HttpProvider):
    """通过 alfa-leetcode-api 获取资料、解题数、竞赛和提交日历"""

    name = "leetcode"

    def __init__(self, transport, base_url: str = "https://alfa-leetcode-api.onrender.com"):
        super().__init__(transport)
        self.base_url = base_url.rstrip("/")

    async def fetch_payload(self, handle: str) -> Dict[str, Any]:
        user_url = f"{self.base_url}/{quote_handle(handle)}"
        profile, solved, contest, calendar = await asyncio.gather(
            self.transport.call_json(user_url),
            self.transport.call_json(f"{user_url}/solved"),
            self.transport.call_json(f"{user_url}/contest"),
            self.transport.call_json(f"{user_url}/calendar"),
            return_exceptions=True,
        )

        # 资料是必需的，其余部分失败时降级为空
        if isinstance(profile, BaseException):
            raise profile
        if not isinstance(profile, dict) or profile.get("errors"):
            raise NotFoundError(f"LeetCode 用户不存在: {handle}")

        solved = self._optional(solved, "solved")
        contest = self._optional(contest, "contest")
        calendar = self._optional(calendar, "calendar")

        solved_stats = self._parse_solved(solved)
        submission_calendar = self._parse_submission_calendar(calendar.get("submissionCalendar"))

        return {
            "profile": {
                "name": profile.get("name") or handle,
                "avatar": profile.get("avatar"),
                "ranking": profile.get("ranking"),
                "reputation": profile.get("reputation"),
            },
            "solved_stats": solved_stats,
            "contests": contest,
            "calendar": calendar_from_submission_map(submission_calendar),
            "calendar_estimated": False,
            "detailed_stats": {
                "problems_solved": solved_stats["total_solved"],
                "easy_solved": solved_stats["easy_solved"],
                "medium_solved": solved_stats["medium_solved"],
                "hard_solved": solved_stats["hard_solved"],
                "acceptance_rate": solved_stats["acceptance_rate"],
                "ranking": to_int(profile.get("ranking")),
                "contests_attended": to_int(contest.get("contestAttend")),
                "contest_rating": to_int(contest.get("contestRating")),
                "active_days": to_int(calendar.get("totalActiveDays")),
                "max_streak": to_int(calendar.get("streak")),
            },
        }

    def _optional(self, value: Any, part: str) -> Dict[str, Any]:
        if isinstance(value, BaseException):
            logger.warning(f"LeetCode {part} 获取失败: {value}")
            return {}
        return value if isinstance(value, dict) else {}

    @staticmethod
    def _parse_solved(data: Dict[str, Any]) -> Dict[str, Any]:
        total_submissions = 0
        accepted_submissions = 0
        if data.get("totalSubmissionNum"):
            total_submissions = to_int(data["totalSubmissionNum"][0].get("submissions"))
        if data.get("acSubmissionNum"):
            accepted_submissions = to_int(data["acSubmissionNum"][0].get("submissions"))

        return {
            "total_solved": to_int(data.get("solvedProblem")),
            "easy_solved": to_int(data.get("easySolved")),
            "medium_solved": to_int(data.get("mediumSolved")),
            "hard_solved": to_int(data.get("hardSolved")),
            "total_submissions": total_submissions,
            "acceptance_rate": (
                round(accepted_submissions / total_submissions * 100, 2)
                if total_submissions > 0 else 0
            ),
        }

    @staticmethod
    def _parse_submission_calendar(raw: Any) -> Dict[str, Any]:
        # 上游以 JSON 字符串形式返回
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                return {}
        return raw if isinstance(raw, dict) else {}
