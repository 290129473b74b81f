"""GitHub 数据源"""

import asyncio
from collections import Counter
from typing import Dict, Any, List, Optional

from loguru import logger

from ..models.errors import PermanentError, RateLimitedError
from ..transport.retrying_transport import HttpTarget
from .base import HttpProvider, quote_handle, to_int
from .activity import calendar_from_counts


class GitHubProvider(HttpProvider):
    """通过 REST v3 获取资料、仓库和最近的公开事件"""

    name = "github"

    def __init__(self, transport, base_url: str = "https://api.github.com", token: Optional[str] = None):
        super().__init__(transport)
        self.base_url = base_url.rstrip("/")
        self.headers = {"Accept": "application/vnd.github.v3+json"}
        if token:
            self.headers["Authorization"] = f"token {token}"

    async def _get(self, path: str, **params) -> Any:
        try:
            return await self.transport.call_json(
                HttpTarget(url=f"{self.base_url}{path}", params=params or None, headers=self.headers)
            )
        except PermanentError as e:
            # GitHub 用 403 + "rate limit" 表示限流
            if e.status_code == 403 and "rate limit" in str(e).lower():
                raise RateLimitedError(str(e), url=e.url, status_code=e.status_code) from e
            raise

    async def fetch_payload(self, handle: str) -> Dict[str, Any]:
        user_path = f"/users/{quote_handle(handle)}"
        profile, repos, events = await asyncio.gather(
            self._get(user_path),
            self._get(f"{user_path}/repos", sort="updated", per_page=100),
            self._get(f"{user_path}/events/public", per_page=100),
            return_exceptions=True,
        )

        if isinstance(profile, BaseException):
            raise profile
        if isinstance(repos, BaseException):
            logger.warning(f"GitHub 仓库获取失败 [{handle}]: {repos}")
            repos = []
        if isinstance(events, BaseException):
            logger.warning(f"GitHub 事件获取失败 [{handle}]: {events}")
            events = []

        repos = [r for r in repos if isinstance(r, dict)]
        events = [e for e in events if isinstance(e, dict)]

        return {
            "profile": profile,
            "repositories": [
                {
                    "name": r.get("name"),
                    "language": r.get("language"),
                    "stars": to_int(r.get("stargazers_count")),
                    "forks": to_int(r.get("forks_count")),
                    "description": r.get("description"),
                }
                for r in repos[:5]
            ],
            # 公开事件只覆盖最近 90 天，是真实数据但不完整
            "calendar": self._calendar(events),
            "calendar_estimated": False,
            "detailed_stats": self._detailed_stats(profile, repos, events),
        }

    @staticmethod
    def _calendar(events: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        counter: Counter = Counter()
        for event in events:
            created = event.get("created_at")
            if not created:
                continue
            weight = 1
            if event.get("type") == "PushEvent":
                weight = max(1, to_int((event.get("payload") or {}).get("size"), 1))
            counter[created[:10]] += weight
        return calendar_from_counts(counter)

    @staticmethod
    def _detailed_stats(profile: Dict[str, Any], repos: List[Dict[str, Any]],
                        events: List[Dict[str, Any]]) -> Dict[str, Any]:
        languages = Counter(r["language"] for r in repos if r.get("language"))
        event_types = Counter(e.get("type") for e in events)
        return {
            "public_repos": to_int(profile.get("public_repos")),
            "followers": to_int(profile.get("followers")),
            "following": to_int(profile.get("following")),
            "public_gists": to_int(profile.get("public_gists")),
            "total_stars": sum(to_int(r.get("stargazers_count")) for r in repos),
            "account_created": profile.get("created_at"),
            "language_distribution": dict(languages),
            "recent_activity": {
                "recent_pushes": event_types.get("PushEvent", 0),
                "recent_prs": event_types.get("PullRequestEvent", 0),
                "recent_issues": event_types.get("IssuesEvent", 0),
            },
        }
