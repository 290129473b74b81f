"""CodeChef 数据源（解析个人主页 HTML）"""

import json
import re
from typing import Dict, Any, List, Optional

from bs4 import BeautifulSoup
from loguru import logger

from ..models.errors import NotFoundError
from ..transport.retrying_transport import HttpTarget
from .base import HttpProvider, quote_handle, to_int
from .activity import estimate_daily_activity

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}

SOLVED_PATTERNS = [
    re.compile(r"Total\s+Problems\s+Solved:\s*(\d+)", re.I),
    re.compile(r"problems[_\s]*solved[\"\s]*:\s*(\d+)", re.I),
    re.compile(r"(\d{1,4})\s*problems?\s*solved", re.I),
]
ALL_RATING_PATTERN = re.compile(r"var\s+all_rating\s*=\s*(\[.*?\]);", re.S)
HIGHEST_RATING_PATTERN = re.compile(r"Highest\s+Rating\s*(\d+)", re.I)


class CodeChefProvider(HttpProvider):
    """抓取 CodeChef 个人主页

    主页不提供逐日数据，日历按解题数估算。
    """

    name = "codechef"

    def __init__(self, transport, base_url: str = "https://www.codechef.com", activity_days: int = 365):
        super().__init__(transport)
        self.base_url = base_url.rstrip("/")
        self.activity_days = activity_days

    async def fetch_payload(self, handle: str) -> Dict[str, Any]:
        html = await self.transport.call_text(
            HttpTarget(url=f"{self.base_url}/users/{quote_handle(handle)}", headers=BROWSER_HEADERS)
        )
        soup = BeautifulSoup(html, "html.parser")

        # 不存在的用户会被重定向到首页
        if soup.select_one(".user-details-container") is None and soup.select_one(".rating-number") is None:
            raise NotFoundError(f"CodeChef 用户不存在: {handle}")

        text = soup.get_text(" ", strip=True)
        problems_solved = self._extract_problems_solved(text)
        rating = to_int(self._select_text(soup, ".rating-number"))
        stars = self._select_text(soup, ".rating") or "unrated"
        ranks = [to_int(a.get_text()) for a in soup.select(".rating-ranks ul li a strong")]
        highest = HIGHEST_RATING_PATTERN.search(text)
        contests = self._extract_contests(html)

        return {
            "profile": {
                "name": self._select_text(soup, ".user-details-container h1") or handle,
                "username": handle,
                "stars": stars,
                "global_rank": ranks[0] if ranks else 0,
                "country_rank": ranks[1] if len(ranks) > 1 else 0,
            },
            "contests": {
                "current_rating": rating,
                "highest_rating": max(rating, to_int(highest.group(1)) if highest else 0),
                "division": self._division(rating),
                **contests,
            },
            "calendar": estimate_daily_activity(
                problems_solved, days=self.activity_days, seed=f"{self.name}:{handle.lower()}"
            ),
            "calendar_estimated": True,
            "detailed_stats": {
                "problems_solved": problems_solved,
                "current_rating": rating,
                "global_rank": ranks[0] if ranks else 0,
                "contests_participated": contests["contests_attended"],
                "stars": stars,
            },
        }

    @staticmethod
    def _select_text(soup: BeautifulSoup, selector: str) -> Optional[str]:
        node = soup.select_one(selector)
        return node.get_text(strip=True) if node else None

    @staticmethod
    def _extract_problems_solved(text: str) -> int:
        for pattern in SOLVED_PATTERNS:
            for match in pattern.finditer(text):
                count = int(match.group(1))
                if 0 < count < 10000:
                    return count
        return 0

    @staticmethod
    def _extract_contests(html: str) -> Dict[str, Any]:
        match = ALL_RATING_PATTERN.search(html)
        ratings: List[Dict[str, Any]] = []
        if match:
            try:
                ratings = [c for c in json.loads(match.group(1)) if isinstance(c, dict)]
            except (ValueError, TypeError) as e:
                logger.warning(f"CodeChef 比赛数据解析失败: {e}")
        return {
            "contests_attended": len(ratings),
            "recent_contests": ratings[-5:],
            "rating_progression": [
                {"date": c.get("end_date"), "rating": to_int(c.get("rating")), "contest": c.get("name")}
                for c in ratings
            ],
        }

    @staticmethod
    def _division(rating: int) -> str:
        if rating >= 2200:
            return "Division 1"
        if rating >= 1800:
            return "Division 2"
        if rating >= 1400:
            return "Division 3"
        if rating >= 1000:
            return "Division 4"
        return "Unrated"
