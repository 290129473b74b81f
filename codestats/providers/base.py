"""平台数据源接口"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, Protocol, runtime_checkable
from urllib.parse import quote

from loguru import logger

from ..models.errors import (
    TransportError,
    NotFoundError,
    RateLimitedError,
)
from ..models.result import ProviderResult
from ..transport.retrying_transport import RetryingTransport


@runtime_checkable
class Provider(Protocol):
    """平台数据源

    ``fetch`` 对 "用户不存在" 和 "被限流" 不抛异常，而是返回对应的
    ProviderResult；只有意外错误才会抛出。
    """
    name: str
    available: bool
    ttl: Optional[int]

    async def fetch(self, handle: str) -> ProviderResult:
        ...


class HttpProvider(ABC):
    """基于 RetryingTransport 的数据源

    子类只需实现 ``fetch_payload``：成功时返回 payload，
    失败时抛出 TransportError，由这里统一转换为 ProviderResult。
    """

    name: str = ""
    available: bool = True
    ttl: Optional[int] = None

    def __init__(self, transport: RetryingTransport):
        self.transport = transport

    @abstractmethod
    async def fetch_payload(self, handle: str) -> Dict[str, Any]:
        ...

    async def fetch(self, handle: str) -> ProviderResult:
        try:
            payload = await self.fetch_payload(handle)
        except NotFoundError:
            return ProviderResult.failed(self.name, handle, f"User not found on {self.name}")
        except RateLimitedError as e:
            logger.warning(f"{self.name} 限流 [{handle}]: {e}")
            return ProviderResult.rate_limited(
                self.name, handle, f"Rate limited by {self.name}. Please try again later."
            )
        except TransportError as e:
            logger.error(f"{self.name} 拉取失败 [{handle}]: {e}")
            return ProviderResult.failed(self.name, handle, str(e))
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"{self.name} 响应结构异常 [{handle}]: {e!r}")
            return ProviderResult.failed(self.name, handle, f"Unexpected response from {self.name}")

        return ProviderResult.ok(self.name, handle, payload)


class UnavailableProvider:
    """没有公开数据源的平台，永远返回 UNAVAILABLE，不发起网络请求"""

    available = False
    ttl = None

    def __init__(self, name: str, reason: str = "No public data source"):
        self.name = name
        self.reason = reason

    async def fetch(self, handle: str) -> ProviderResult:
        return ProviderResult.unavailable(self.name, handle, self.reason)


def quote_handle(handle: str) -> str:
    """把用户名编码为单个 URL 路径段"""
    return quote(handle, safe="")


def to_int(value: Any, default: int = 0) -> int:
    """宽松地转换为整数，"1,234" 也可解析"""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(str(value).replace(",", "").strip())
    except ValueError:
        return default
