"""系统枚举定义"""

from enum import Enum


class ResultStatus(Enum):
    """平台结果状态枚举"""
    OK = "OK"
    FAILED = "FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    UNAVAILABLE = "UNAVAILABLE"


class CacheOrigin(Enum):
    """缓存来源枚举"""
    MEMORY = "memory"
    SHARED = "shared"
    FRESH = "fresh"
    STALE = "stale"


class BatchStatus(Enum):
    """批量请求整体状态枚举"""
    OK = "OK"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"
