"""HTTP 传输模块"""

from .retrying_transport import RetryingTransport, HttpTarget, retry_async

__all__ = [
    "RetryingTransport",
    "HttpTarget",
    "retry_async",
]
