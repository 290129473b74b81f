"""Redis缓存管理器（共享层）"""

import json
import logging
import time
from typing import Optional, Dict, Any

import redis.asyncio as redis

from ..config.settings import CacheConfig
from ..models.cache import CacheEntry

logger = logging.getLogger(__name__)


class RedisManager:
    """Redis缓存管理器

    所有 I/O 错误都在这里降级：读返回 None，写返回 False，
    并记录到 ``error_count``，调用方无需处理异常。
    """

    def __init__(self,
                 host: str = "localhost",
                 port: int = 6379,
                 db: int = 0,
                 password: Optional[str] = None,
                 url: Optional[str] = None,
                 key_prefix: str = "codestats:",
                 ttl: int = 7200,
                 socket_timeout: float = 5.0,
                 reconnect_interval: float = 30.0,
                 client: Optional[redis.Redis] = None):
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.url = url
        self.key_prefix = key_prefix
        self.ttl = ttl
        self.socket_timeout = socket_timeout
        self.reconnect_interval = reconnect_interval
        self._client: Optional[redis.Redis] = client
        self.is_connected = False
        self.error_count = 0
        self._last_connect_attempt: Optional[float] = None

    @classmethod
    def from_config(cls, config: CacheConfig, client: Optional[redis.Redis] = None) -> 'RedisManager':
        return cls(
            host=config.redis_host,
            port=config.redis_port,
            db=config.redis_db,
            password=config.redis_password,
            url=config.redis_url,
            key_prefix=config.redis_prefix,
            ttl=config.default_ttl,
            socket_timeout=config.redis_socket_timeout,
            reconnect_interval=config.redis_reconnect_interval,
            client=client,
        )

    async def connect(self) -> bool:
        """连接到Redis"""
        self._last_connect_attempt = time.monotonic()
        try:
            if self._client is None:
                if self.url:
                    self._client = redis.from_url(
                        self.url,
                        decode_responses=True,
                        socket_timeout=self.socket_timeout,
                        socket_connect_timeout=self.socket_timeout,
                    )
                else:
                    self._client = redis.Redis(
                        host=self.host,
                        port=self.port,
                        db=self.db,
                        password=self.password,
                        decode_responses=True,
                        socket_timeout=self.socket_timeout,
                        socket_connect_timeout=self.socket_timeout,
                    )

            # 测试连接
            await self._client.ping()
            self.is_connected = True
            logger.info(f"Redis连接成功: {self.url or f'{self.host}:{self.port}'}")
            return True
        except Exception as e:
            logger.warning(f"Redis连接失败: {e}")
            self.error_count += 1
            self.is_connected = False
            return False

    async def disconnect(self) -> None:
        """断开Redis连接"""
        if self._client:
            try:
                await self._client.aclose()
            except Exception as e:
                logger.warning(f"Redis断开连接失败: {e}")
            self.is_connected = False
            logger.info("Redis连接已断开")

    async def _ensure_connected(self) -> bool:
        if self.is_connected:
            return True
        # 连接失败后在 reconnect_interval 内不再重试，避免每次请求都等待超时
        if (self._last_connect_attempt is not None and
                time.monotonic() - self._last_connect_attempt < self.reconnect_interval):
            return False
        return await self.connect()

    def _mark_failure(self, operation: str, key: str, error: Exception) -> None:
        self.error_count += 1
        self.is_connected = False
        self._last_connect_attempt = time.monotonic()
        logger.warning(f"Redis{operation}失败 {key}: {error}")

    def _get_key(self, key: str) -> str:
        """获取完整的Redis键名"""
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[CacheEntry]:
        """获取缓存条目"""
        if not await self._ensure_connected():
            return None

        try:
            data = await self._client.get(self._get_key(key))
        except Exception as e:
            self._mark_failure("获取", key, e)
            return None

        if not data:
            return None

        try:
            return CacheEntry.from_dict(json.loads(data))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Redis缓存数据损坏 {key}: {e}")
            return None

    async def put(self, key: str, entry: CacheEntry, ttl: Optional[int] = None) -> bool:
        """存储缓存条目，过期时间由 Redis 自身负责"""
        if not await self._ensure_connected():
            return False

        try:
            data = json.dumps(entry.to_dict())
            await self._client.setex(self._get_key(key), ttl if ttl is not None else self.ttl, data)
            return True
        except Exception as e:
            self._mark_failure("存储", key, e)
            return False

    async def remove(self, key: str) -> bool:
        """删除缓存条目"""
        if not await self._ensure_connected():
            return False

        try:
            result = await self._client.delete(self._get_key(key))
            return result > 0
        except Exception as e:
            self._mark_failure("删除", key, e)
            return False

    async def exists(self, key: str) -> bool:
        """检查缓存是否存在"""
        if not await self._ensure_connected():
            return False

        try:
            result = await self._client.exists(self._get_key(key))
            return result > 0
        except Exception as e:
            self._mark_failure("检查", key, e)
            return False

    async def clear(self, pattern: str = "*") -> int:
        """清空匹配的缓存条目

        Returns:
            int: 删除的条目数量
        """
        if not await self._ensure_connected():
            return 0

        try:
            keys = await self._client.keys(f"{self.key_prefix}{pattern}")
            if keys:
                await self._client.delete(*keys)
                logger.info(f"清空了 {len(keys)} 个Redis缓存条目")
            return len(keys)
        except Exception as e:
            self._mark_failure("清空", pattern, e)
            return 0

    async def ping(self) -> bool:
        """检查连接是否可用"""
        if self._client is None:
            return await self.connect()
        try:
            await self._client.ping()
            self.is_connected = True
            return True
        except Exception as e:
            self._mark_failure("心跳", "-", e)
            return False

    def get_stats(self) -> Dict[str, Any]:
        return {
            "status": "connected" if self.is_connected else "disconnected",
            "host": self.url or f"{self.host}:{self.port}",
            "key_prefix": self.key_prefix,
            "default_ttl": self.ttl,
            "errors": self.error_count,
        }
