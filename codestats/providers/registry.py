"""平台注册表"""

from typing import Dict, Iterable, List, Optional

from loguru import logger

from ..config.settings import ProviderConfig
from ..models.errors import UnknownProviderError
from ..transport.retrying_transport import RetryingTransport
from .base import Provider, UnavailableProvider
from .leetcode import LeetCodeProvider
from .codeforces import CodeforcesProvider
from .codechef import CodeChefProvider
from .geeksforgeeks import GeeksForGeeksProvider
from .github import GitHubProvider


class ProviderRegistry:
    """平台名称到实现的映射，在启动时构建并注入编排器"""

    def __init__(self, providers: Optional[Iterable[Provider]] = None):
        self._providers: Dict[str, Provider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: Provider) -> None:
        if provider.name in self._providers:
            logger.warning(f"平台 {provider.name} 已注册，将被覆盖")
        self._providers[provider.name] = provider

    def get(self, name: str) -> Provider:
        try:
            return self._providers[name]
        except KeyError:
            raise UnknownProviderError([name], self._providers) from None

    def names(self) -> List[str]:
        return list(self._providers)

    def validate(self, names: Iterable[str]) -> None:
        unknown = [name for name in names if name not in self._providers]
        if unknown:
            raise UnknownProviderError(unknown, self._providers)

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)


def create_default_registry(transport: RetryingTransport,
                            config: Optional[ProviderConfig] = None,
                            activity_days: int = 365) -> ProviderRegistry:
    """创建包含所有内置平台的注册表"""
    config = config or ProviderConfig()
    registry = ProviderRegistry([
        LeetCodeProvider(transport, base_url=config.leetcode_api_url),
        CodeforcesProvider(transport, base_url=config.codeforces_api_url),
        CodeChefProvider(transport, base_url=config.codechef_url, activity_days=activity_days),
        GeeksForGeeksProvider(transport, mirrors=config.geeksforgeeks_mirrors, activity_days=activity_days),
        GitHubProvider(transport, base_url=config.github_api_url, token=config.github_token),
    ])
    for name, reason in config.unavailable.items():
        registry.register(UnavailableProvider(name, reason))
    return registry
