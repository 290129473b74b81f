"""缓存数据模型"""

import time
from dataclasses import dataclass, field, replace
from typing import Optional, Dict, Any

from .enums import CacheOrigin


@dataclass(frozen=True)
class CacheKey:
    """缓存键：平台名 + 小写化的用户名"""
    provider: str
    handle: str

    def __post_init__(self):
        object.__setattr__(self, 'handle', self.handle.strip().lower())

    def __str__(self) -> str:
        return f"{self.provider}:{self.handle}"


@dataclass(frozen=True)
class CacheEntry:
    """缓存条目数据模型

    条目写入后不可变；为响应标注来源或耗时时通过 ``annotate`` 生成新条目。
    """
    key: str
    value: Any
    ttl: int
    created_time: float = field(default_factory=time.time)
    origin: CacheOrigin = field(default=CacheOrigin.FRESH)
    fetch_time_ms: float = field(default=0.0)
    error: Optional[str] = field(default=None)

    def get_age(self, now: Optional[float] = None) -> float:
        """获取缓存年龄（秒）"""
        return (time.time() if now is None else now) - self.created_time

    def is_expired(self, now: Optional[float] = None) -> bool:
        """检查是否超过写入时设置的 TTL"""
        return self.get_age(now) >= self.ttl

    def annotate(self, origin: CacheOrigin, fetch_time_ms: float,
                 error: Optional[str] = None) -> 'CacheEntry':
        """返回带有来源和耗时信息的新条目"""
        return replace(self, origin=origin, fetch_time_ms=fetch_time_ms, error=error)

    def cache_info(self) -> Dict[str, Any]:
        """响应中使用的缓存信息"""
        info = {
            'hit': self.origin is not CacheOrigin.FRESH,
            'source': self.origin.value,
            'fetch_time': round(self.fetch_time_ms, 2),
            'cached_at': self.created_time,
            'ttl': self.ttl,
        }
        if self.error:
            info['error'] = self.error
        return info

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式（写入共享层时使用）"""
        return {
            'key': self.key,
            'value': self.value,
            'ttl': self.ttl,
            'created_time': self.created_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CacheEntry':
        """从字典创建缓存条目"""
        return cls(
            key=data['key'],
            value=data.get('value'),
            ttl=int(data['ttl']),
            created_time=data.get('created_time', time.time()),
        )
