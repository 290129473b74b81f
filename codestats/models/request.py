"""请求数据模型"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Tuple

from .errors import MalformedRequestError, UnknownProviderError


@dataclass
class BatchRequest:
    """一次批量请求：有序的 (平台, 用户名) 列表

    生命周期仅限于单个请求，响应生成后即丢弃。
    """
    pairs: List[Tuple[str, str]]
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_mapping(cls, usernames: Any, supported: Iterable[str]) -> 'BatchRequest':
        """从 {平台: 用户名} 映射创建批量请求

        空用户名对应的平台会被跳过；未知平台或类型错误直接拒绝。

        Args:
            usernames: 调用方提交的映射
            supported: 已注册的平台名称

        Returns:
            BatchRequest: 校验后的请求

        Raises:
            MalformedRequestError: 映射缺失或类型错误
            UnknownProviderError: 包含未注册的平台
        """
        if not isinstance(usernames, Mapping):
            raise MalformedRequestError("usernames 必须是 {平台: 用户名} 形式的映射")

        supported = set(supported)
        unknown = [name for name in usernames if name not in supported]
        if unknown:
            raise UnknownProviderError(unknown, supported)

        pairs = []
        for provider, handle in usernames.items():
            if handle is None:
                continue
            if not isinstance(handle, str):
                raise MalformedRequestError(
                    f"平台 {provider} 的用户名必须是字符串，实际为 {type(handle).__name__}"
                )
            if not handle.strip():
                continue
            pairs.append((provider, handle.strip()))

        return cls(pairs=pairs)

    @property
    def providers(self) -> List[str]:
        return [provider for provider, _ in self.pairs]

    def __len__(self) -> int:
        return len(self.pairs)

    def get_elapsed_time(self) -> float:
        """获取已用时间"""
        return time.time() - self.timestamp
