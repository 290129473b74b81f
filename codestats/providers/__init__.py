"""平台数据源模块"""

from .base import Provider, HttpProvider, UnavailableProvider
from .leetcode import LeetCodeProvider
from .codeforces import CodeforcesProvider
from .codechef import CodeChefProvider
from .geeksforgeeks import GeeksForGeeksProvider
from .github import GitHubProvider
from .registry import ProviderRegistry, create_default_registry

__all__ = [
    "Provider",
    "HttpProvider",
    "UnavailableProvider",
    "LeetCodeProvider",
    "CodeforcesProvider",
    "CodeChefProvider",
    "GeeksForGeeksProvider",
    "GitHubProvider",
    "ProviderRegistry",
    "create_default_registry",
]
