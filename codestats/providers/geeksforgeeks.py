"""GeeksforGeeks 数据源"""

import asyncio
from typing import Dict, Any, List, Optional

from loguru import logger

from ..models.errors import NotFoundError, MalformedResponseError
from ..transport.retrying_transport import HttpTarget
from .base import HttpProvider, quote_handle, to_int
from .activity import estimate_daily_activity


class GeeksForGeeksProvider(HttpProvider):
    """并发请求多个社区镜像 API，按镜像顺序取第一个成功的结果"""

    name = "geeksforgeeks"

    def __init__(self, transport, mirrors: Optional[List[str]] = None, activity_days: int = 365):
        super().__init__(transport)
        self.mirrors = [m.rstrip("/") for m in (mirrors or [])]
        self.activity_days = activity_days

    def _mirror_target(self, mirror: str, handle: str) -> HttpTarget:
        # stats API 使用查询参数格式，其余镜像把用户名放在路径里
        if "stats-api" in mirror:
            return HttpTarget(url=f"{mirror}/", params={"raw": "y", "userName": handle})
        return HttpTarget(url=f"{mirror}/{quote_handle(handle)}")

    async def fetch_payload(self, handle: str) -> Dict[str, Any]:
        if not self.mirrors:
            raise NotFoundError("没有配置 GeeksforGeeks 镜像")

        results = await asyncio.gather(
            *(self.transport.call_json(self._mirror_target(m, handle)) for m in self.mirrors),
            return_exceptions=True,
        )

        data = None
        source = None
        errors = []
        for index, result in enumerate(results):
            if isinstance(result, BaseException):
                errors.append(result)
                continue
            if isinstance(result, dict) and not result.get("error"):
                data, source = result, f"api_{index + 1}"
                break
            errors.append(NotFoundError(f"镜像 {index + 1} 未返回数据"))

        if data is None:
            logger.warning(f"GeeksforGeeks 所有镜像均失败 [{handle}]: {errors}")
            if all(isinstance(e, NotFoundError) for e in errors):
                raise NotFoundError(f"GeeksforGeeks 用户不存在: {handle}")
            raise next(e for e in errors if not isinstance(e, NotFoundError))

        normalized = self._normalize(data)
        if not any(normalized.values()):
            raise MalformedResponseError(f"GeeksforGeeks 镜像 {source} 返回空数据")

        return {
            "data": normalized,
            "source": source,
            "calendar": estimate_daily_activity(
                normalized["problems_solved"], days=self.activity_days,
                seed=f"{self.name}:{handle.lower()}",
            ),
            "calendar_estimated": True,
            "detailed_stats": {
                "problems_solved": normalized["problems_solved"],
                "overall_score": normalized["overall_score"],
                "monthly_score": normalized["monthly_score"],
                "current_streak": normalized["current_streak"],
                "max_streak": normalized["max_streak"],
                "school_solved": normalized["school"],
                "basic_solved": normalized["basic"],
                "easy_solved": normalized["easy"],
                "medium_solved": normalized["medium"],
                "hard_solved": normalized["hard"],
            },
        }

    @staticmethod
    def _normalize(data: Dict[str, Any]) -> Dict[str, int]:
        """不同镜像字段名不同，统一为蛇形命名"""
        info = data.get("info") if isinstance(data.get("info"), dict) else data
        solved = data.get("solvedStats") if isinstance(data.get("solvedStats"), dict) else data

        def pick(source, *names):
            for name in names:
                if source.get(name) not in (None, ""):
                    return to_int(source.get(name))
            return 0

        def difficulty(name):
            value = solved.get(name, solved.get(name.lower()))
            if isinstance(value, dict):
                return to_int(value.get("count"))
            return to_int(value)

        return {
            "problems_solved": pick(info, "problems_solved", "totalProblemsSolved", "totalSolved"),
            "overall_score": pick(info, "overall_score", "overallScore", "codingScore"),
            "monthly_score": pick(info, "monthly_score", "monthlyScore"),
            "current_streak": pick(info, "current_streak", "currentStreak"),
            "max_streak": pick(info, "max_streak", "maxStreak"),
            "school": difficulty("School"),
            "basic": difficulty("Basic"),
            "easy": difficulty("Easy"),
            "medium": difficulty("Medium"),
            "hard": difficulty("Hard"),
        }
