"""平台结果数据模型"""

import time
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

from .enums import ResultStatus
from .cache import CacheEntry


@dataclass(frozen=True)
class ProviderResult:
    """单个平台调用的结果

    四种状态中恰有一种生效；OK 时携带 payload，其余状态携带 reason。
    payload 的结构由各平台决定，编排器不解析。
    """
    provider: str
    handle: str
    status: ResultStatus
    payload: Optional[Dict[str, Any]] = field(default=None)
    reason: Optional[str] = field(default=None)
    fetched_at: float = field(default_factory=time.time)

    @classmethod
    def ok(cls, provider: str, handle: str, payload: Dict[str, Any]) -> 'ProviderResult':
        return cls(provider, handle, ResultStatus.OK, payload=payload)

    @classmethod
    def failed(cls, provider: str, handle: str, reason: str) -> 'ProviderResult':
        return cls(provider, handle, ResultStatus.FAILED, reason=reason)

    @classmethod
    def rate_limited(cls, provider: str, handle: str, reason: str) -> 'ProviderResult':
        return cls(provider, handle, ResultStatus.RATE_LIMITED, reason=reason)

    @classmethod
    def unavailable(cls, provider: str, handle: str, reason: str) -> 'ProviderResult':
        return cls(provider, handle, ResultStatus.UNAVAILABLE, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.status is ResultStatus.OK

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        data = {
            'status': self.status.value,
            'platform': self.provider,
            'username': self.handle,
            'fetched_at': self.fetched_at,
        }
        if self.payload is not None:
            data['data'] = self.payload
        if self.reason is not None:
            data['error'] = self.reason
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProviderResult':
        """从字典创建结果"""
        return cls(
            provider=data['platform'],
            handle=data['username'],
            status=ResultStatus(data['status']),
            payload=data.get('data'),
            reason=data.get('error'),
            fetched_at=data.get('fetched_at', time.time()),
        )


@dataclass(frozen=True)
class ProviderOutcome:
    """编排器为每个 (平台, 用户名) 记录的结果，附带缓存元数据"""
    result: ProviderResult
    entry: Optional[CacheEntry] = field(default=None)

    @property
    def status(self) -> ResultStatus:
        return self.result.status

    def to_dict(self) -> Dict[str, Any]:
        data = self.result.to_dict()
        if self.entry is not None:
            data['cache_info'] = self.entry.cache_info()
        return data
