"""异常定义"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .result import ProviderResult


class CodeStatsError(Exception):
    """所有 codestats 异常的基类"""


class TransportError(CodeStatsError):
    """上游 HTTP 调用失败

    Attributes:
        url: 请求地址
        status_code: HTTP 状态码（超时或连接错误时为 None）
        retryable: 是否允许重试
    """

    retryable = False

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class TransientError(TransportError):
    """可重试的错误：超时、连接失败、5xx"""

    retryable = True


class PermanentError(TransportError):
    """不可重试的错误"""


class NotFoundError(PermanentError):
    """上游返回 404"""


class MalformedResponseError(PermanentError):
    """上游响应无法解析"""


class RateLimitedError(TransportError):
    """上游返回 429 或平台特定的限流信号"""


class ProviderFetchError(CodeStatsError):
    """平台返回了非 OK 结果

    由缓存的 fetch 闭包抛出，使失败结果不会写入缓存，
    同时保留原始结果供编排器记录。
    """

    def __init__(self, result: "ProviderResult"):
        super().__init__(result.reason or result.status.value)
        self.result = result


class MalformedRequestError(CodeStatsError, ValueError):
    """批量请求格式错误，在任何 I/O 之前同步拒绝"""


class UnknownProviderError(MalformedRequestError):
    """请求中包含未注册的平台名称"""

    def __init__(self, unknown, supported):
        self.unknown = sorted(unknown)
        self.supported = sorted(supported)
        super().__init__(
            f"未知平台: {', '.join(self.unknown)}；支持的平台: {', '.join(self.supported)}"
        )
