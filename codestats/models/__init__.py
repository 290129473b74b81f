"""数据模型模块"""

from .enums import ResultStatus, CacheOrigin, BatchStatus
from .cache import CacheKey, CacheEntry
from .result import ProviderResult, ProviderOutcome
from .request import BatchRequest
from .report import AggregateReport, BatchResponse
from .errors import (
    CodeStatsError,
    TransportError,
    TransientError,
    PermanentError,
    NotFoundError,
    MalformedResponseError,
    RateLimitedError,
    ProviderFetchError,
    MalformedRequestError,
    UnknownProviderError,
)

__all__ = [
    "ResultStatus",
    "CacheOrigin",
    "BatchStatus",
    "CacheKey",
    "CacheEntry",
    "ProviderResult",
    "ProviderOutcome",
    "BatchRequest",
    "AggregateReport",
    "BatchResponse",
    "CodeStatsError",
    "TransportError",
    "TransientError",
    "PermanentError",
    "NotFoundError",
    "MalformedResponseError",
    "RateLimitedError",
    "ProviderFetchError",
    "MalformedRequestError",
    "UnknownProviderError",
]
