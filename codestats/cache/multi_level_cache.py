"""多级缓存系统"""

import asyncio
import time
import logging
import fnmatch
from typing import Optional, Dict, Any, Awaitable, Callable, Tuple
from collections import OrderedDict

import redis.asyncio as redis

from ..config.settings import CacheConfig
from ..models.cache import CacheEntry
from ..models.enums import CacheOrigin
from ..models.errors import CodeStatsError
from .redis_manager import RedisManager

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]


class MultiLevelCache:
    """多级缓存管理器

    实现L1内存缓存和L2 Redis缓存的统一管理：
    - L1 为进程内 LRU，容量固定，按 memory_ttl 过期
    - L2 为共享 Redis，过期时间按每次写入设置
    - 拉取失败时返回 L1 中的陈旧条目（不超过 ttl + stale_grace）
    """

    def __init__(self,
                 max_memory_entries: int = 10000,
                 memory_ttl: int = 300,
                 default_ttl: int = 7200,
                 stale_grace: int = 86400,
                 redis_manager: Optional[RedisManager] = None,
                 coalesce_inflight: bool = False,
                 clock: Callable[[], float] = time.time):
        self.max_memory_entries = max_memory_entries
        self.memory_ttl = min(memory_ttl, default_ttl)
        self.default_ttl = default_ttl
        self.stale_grace = stale_grace
        self.coalesce_inflight = coalesce_inflight
        self._clock = clock

        # L1内存缓存 (LRU)：key -> (条目, 写入内存的时间)
        self._memory_cache: "OrderedDict[str, Tuple[CacheEntry, float]]" = OrderedDict()

        # L2 Redis缓存
        self._redis_manager = redis_manager

        # 同键并发未命中的合并
        self._inflight: Dict[str, asyncio.Future] = {}

        self._stats = {
            "hits": 0,
            "misses": 0,
            "memory_hits": 0,
            "redis_hits": 0,
            "redis_misses": 0,
            "stale_hits": 0,
            "fetch_errors": 0,
            "evictions": 0,
            "coalesced": 0,
        }

    @classmethod
    def from_config(cls, config: CacheConfig,
                    redis_client: Optional[redis.Redis] = None,
                    clock: Callable[[], float] = time.time) -> 'MultiLevelCache':
        """根据配置创建缓存；启用 Redis 时创建共享层，redis_client 可替换默认客户端"""
        redis_manager = None
        if config.enable_redis:
            redis_manager = RedisManager.from_config(config, client=redis_client)
            logger.info("Redis缓存已启用")
        return cls(
            max_memory_entries=config.max_memory_entries,
            memory_ttl=config.memory_ttl,
            default_ttl=config.default_ttl,
            stale_grace=config.stale_grace,
            redis_manager=redis_manager,
            coalesce_inflight=config.coalesce_inflight,
            clock=clock,
        )

    @property
    def redis_manager(self) -> Optional[RedisManager]:
        return self._redis_manager

    def _resolve_ttl(self, ttl: Optional[int]) -> int:
        if ttl is None:
            return self.default_ttl
        if ttl <= 0:
            raise ValueError(f"ttl 必须为正数: {ttl}")
        return ttl

    def _elapsed_ms(self, start: float) -> float:
        return (self._clock() - start) * 1000

    def _is_fresh(self, entry: CacheEntry, stored_at: float, now: float) -> bool:
        return now - stored_at < self.memory_ttl and not entry.is_expired(now)

    def _is_servable_stale(self, entry: CacheEntry, now: float) -> bool:
        return entry.get_age(now) < entry.ttl + self.stale_grace

    async def get_or_fetch(self, key: str, ttl: Optional[int], fetch_fn: FetchFn) -> CacheEntry:
        """读取缓存，未命中时调用 fetch_fn 拉取并写入两级缓存

        Args:
            key: 缓存键
            ttl: 共享层 TTL（秒），为 None 时使用 default_ttl
            fetch_fn: 无参异步函数，返回可 JSON 序列化的值

        Returns:
            CacheEntry: origin 字段标明来源（memory/shared/fresh/stale）

        Raises:
            Exception: fetch_fn 失败且没有可用的陈旧条目时，原样抛出
        """
        ttl = self._resolve_ttl(ttl)
        start = self._clock()

        # 1. 先查L1内存缓存
        entry = self._get_memory(key)
        if entry is not None:
            self._stats["hits"] += 1
            self._stats["memory_hits"] += 1
            return entry.annotate(CacheOrigin.MEMORY, self._elapsed_ms(start))

        # 2. 查L2 Redis缓存
        entry = await self._get_redis(key)
        if entry is not None:
            self._put_memory(key, entry)
            self._stats["hits"] += 1
            return entry.annotate(CacheOrigin.SHARED, self._elapsed_ms(start))

        # 3. 拉取新数据
        self._stats["misses"] += 1
        try:
            entry = await self._fetch(key, ttl, fetch_fn)
        except Exception as e:
            self._stats["fetch_errors"] += 1
            logger.warning(f"缓存拉取失败 {key}: {e}")

            # 4. 尝试返回陈旧数据
            cached = self._memory_cache.get(key)
            if cached is not None and self._is_servable_stale(cached[0], self._clock()):
                self._stats["stale_hits"] += 1
                logger.info(f"返回陈旧缓存 {key}")
                return cached[0].annotate(CacheOrigin.STALE, self._elapsed_ms(start), error=str(e))
            raise

        return entry.annotate(CacheOrigin.FRESH, self._elapsed_ms(start))

    async def _fetch(self, key: str, ttl: int, fetch_fn: FetchFn) -> CacheEntry:
        if not self.coalesce_inflight:
            return await self._fetch_and_store(key, ttl, fetch_fn)

        future = self._inflight.get(key)
        if future is not None:
            self._stats["coalesced"] += 1
            return await asyncio.shield(future)

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            entry = await self._fetch_and_store(key, ttl, fetch_fn)
        except asyncio.CancelledError:
            # 取消只作用于发起方，等待者收到普通错误
            future.set_exception(CodeStatsError(f"合并的拉取已被取消: {key}"))
            future.exception()
            raise
        except Exception as e:
            future.set_exception(e)
            # 没有等待者时避免 "exception was never retrieved"
            future.exception()
            raise
        else:
            future.set_result(entry)
            return entry
        finally:
            self._inflight.pop(key, None)

    async def _fetch_and_store(self, key: str, ttl: int, fetch_fn: FetchFn) -> CacheEntry:
        value = await fetch_fn()
        entry = CacheEntry(key=key, value=value, ttl=ttl, created_time=self._clock())
        await self.put_entry(key, entry)
        return entry

    async def get(self, key: str) -> Optional[CacheEntry]:
        """获取缓存条目（不触发拉取）"""
        entry = self._get_memory(key)
        if entry is not None:
            return entry.annotate(CacheOrigin.MEMORY, 0.0)

        entry = await self._get_redis(key)
        if entry is not None:
            self._put_memory(key, entry)
            return entry.annotate(CacheOrigin.SHARED, 0.0)
        return None

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> CacheEntry:
        """写入一个值到两级缓存"""
        entry = CacheEntry(key=key, value=value, ttl=self._resolve_ttl(ttl),
                           created_time=self._clock())
        await self.put_entry(key, entry)
        return entry

    async def put_entry(self, key: str, entry: CacheEntry) -> None:
        """存储缓存条目（替换或插入，不原地修改）"""
        # 存储到L1内存缓存
        self._put_memory(key, entry)

        # 存储到L2 Redis缓存
        if self._redis_manager:
            try:
                await self._redis_manager.put(key, entry, entry.ttl)
            except Exception as e:
                logger.warning(f"Redis存储失败: {e}")

    def _get_memory(self, key: str) -> Optional[CacheEntry]:
        cached = self._memory_cache.get(key)
        if cached is None:
            return None

        entry, stored_at = cached
        now = self._clock()
        if self._is_fresh(entry, stored_at, now):
            # 更新LRU顺序
            self._memory_cache.move_to_end(key)
            return entry

        # 过期条目保留到陈旧窗口结束，供拉取失败时使用
        if not self._is_servable_stale(entry, now):
            del self._memory_cache[key]
        return None

    async def _get_redis(self, key: str) -> Optional[CacheEntry]:
        if not self._redis_manager:
            return None
        try:
            entry = await self._redis_manager.get(key)
        except Exception as e:
            logger.warning(f"Redis查询失败: {e}")
            entry = None

        if entry is None:
            self._stats["redis_misses"] += 1
            return None
        self._stats["redis_hits"] += 1
        return entry

    def _put_memory(self, key: str, entry: CacheEntry) -> None:
        """存储到内存缓存，容量为 0 时内存层关闭"""
        if self.max_memory_entries <= 0:
            return
        if key in self._memory_cache:
            self._memory_cache[key] = (entry, self._clock())
            self._memory_cache.move_to_end(key)
            return
        if len(self._memory_cache) >= self.max_memory_entries:
            # LRU淘汰
            oldest_key = next(iter(self._memory_cache))
            del self._memory_cache[oldest_key]
            self._stats["evictions"] += 1

        self._memory_cache[key] = (entry, self._clock())

    async def remove(self, key: str) -> bool:
        """删除缓存条目"""
        removed = self._memory_cache.pop(key, None) is not None

        if self._redis_manager:
            try:
                redis_removed = await self._redis_manager.remove(key)
                removed = removed or redis_removed
            except Exception as e:
                logger.warning(f"Redis删除失败: {e}")

        return removed

    async def exists(self, key: str) -> bool:
        """检查是否存在未过期的缓存"""
        if self._get_memory(key) is not None:
            return True

        if self._redis_manager:
            try:
                return await self._redis_manager.exists(key)
            except Exception as e:
                logger.warning(f"Redis检查失败: {e}")

        return False

    async def clear(self, pattern: str = "*") -> None:
        """清空匹配 pattern 的缓存"""
        if pattern == "*":
            self._memory_cache.clear()
        else:
            for key in [k for k in self._memory_cache if fnmatch.fnmatchcase(k, pattern)]:
                del self._memory_cache[key]

        if self._redis_manager:
            try:
                await self._redis_manager.clear(pattern)
            except Exception as e:
                logger.warning(f"Redis清空失败: {e}")

    async def cleanup_expired(self) -> int:
        """清理超过陈旧窗口的条目"""
        now = self._clock()
        expired_keys = [
            key for key, (entry, _) in self._memory_cache.items()
            if not self._is_servable_stale(entry, now)
        ]

        for key in expired_keys:
            del self._memory_cache[key]

        logger.info(f"清理了 {len(expired_keys)} 个过期缓存条目")
        return len(expired_keys)

    async def close(self) -> None:
        if self._redis_manager:
            await self._redis_manager.disconnect()

    def get_stats(self) -> Dict[str, Any]:
        """获取缓存统计信息

        Returns:
            包含缓存统计信息的字典
        """
        now = self._clock()
        fresh_count = sum(
            1 for entry, stored_at in self._memory_cache.values()
            if self._is_fresh(entry, stored_at, now)
        )
        total = self._stats["hits"] + self._stats["misses"]

        stats = {
            "cache_type": "MultiLevelCache",
            **self._stats,
            "hit_rate": f"{self._stats['hits'] / total * 100:.2f}%" if total > 0 else "0%",
            "memory_cache": {
                "total_entries": len(self._memory_cache),
                "active_entries": fresh_count,
                "expired_entries": len(self._memory_cache) - fresh_count,
                "max_entries": self.max_memory_entries,
                "usage_ratio": len(self._memory_cache) / self.max_memory_entries if self.max_memory_entries > 0 else 0,
                "ttl_seconds": self.memory_ttl,
            },
            "redis_enabled": self._redis_manager is not None,
            "timestamp": now,
        }

        if self._redis_manager:
            stats["redis_cache"] = self._redis_manager.get_stats()
        else:
            stats["redis_cache"] = {"status": "disabled"}

        return stats
