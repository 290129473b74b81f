"""缓存管理模块"""

from .redis_manager import RedisManager
from .multi_level_cache import MultiLevelCache

__all__ = [
    "RedisManager",
    "MultiLevelCache",
]
