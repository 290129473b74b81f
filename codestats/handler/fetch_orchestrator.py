"""批量拉取编排器

把 (平台, 用户名) 列表切分为固定大小的块：块内并发执行，
块之间严格顺序并插入固定间隔，以降低对上游的突发压力。
"""

import asyncio
from typing import Dict, Any, Awaitable, Callable, Iterator, List, Optional, Tuple

from loguru import logger

from ..cache.multi_level_cache import MultiLevelCache
from ..config.settings import OrchestratorConfig
from ..models.cache import CacheKey
from ..models.errors import ProviderFetchError
from ..models.request import BatchRequest
from ..models.result import ProviderResult, ProviderOutcome
from ..providers.registry import ProviderRegistry

Pair = Tuple[str, str]


def chunked(pairs: List[Pair], size: int) -> Iterator[List[Pair]]:
    for start in range(0, len(pairs), size):
        yield pairs[start:start + size]


class FetchOrchestrator:
    """为批量请求中的每一对获取 ProviderResult

    - 同时在途的平台调用不超过 chunk_size
    - 单个平台失败只影响自己的结果，批次总是为每一对返回结果
    - 支持取消信号和批次截止时间
    """

    def __init__(self,
                 registry: ProviderRegistry,
                 cache: MultiLevelCache,
                 chunk_size: int = 3,
                 inter_chunk_delay: float = 0.4,
                 batch_timeout: Optional[float] = None,
                 default_ttl: Optional[int] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        if chunk_size < 1:
            raise ValueError(f"chunk_size 必须 >= 1，实际为 {chunk_size}")
        self.registry = registry
        self.cache = cache
        self.chunk_size = chunk_size
        self.inter_chunk_delay = inter_chunk_delay
        self.batch_timeout = batch_timeout
        self.default_ttl = default_ttl
        self._sleep = sleep
        self.stats = {"batches": 0, "chunks": 0, "calls": 0, "failures": 0, "cancelled": 0}

    @classmethod
    def from_config(cls, config: OrchestratorConfig, registry: ProviderRegistry,
                    cache: MultiLevelCache, default_ttl: Optional[int] = None) -> 'FetchOrchestrator':
        return cls(
            registry=registry,
            cache=cache,
            chunk_size=config.chunk_size,
            inter_chunk_delay=config.inter_chunk_delay,
            batch_timeout=config.batch_timeout,
            default_ttl=default_ttl,
        )

    async def fetch_batch(self,
                          batch: BatchRequest,
                          cancel_event: Optional[asyncio.Event] = None,
                          timeout: Optional[float] = None) -> Dict[str, ProviderOutcome]:
        """执行批量请求

        Args:
            batch: 批量请求
            cancel_event: 取消信号，置位后中止在途调用
            timeout: 批次截止时间（秒），默认使用 batch_timeout

        Returns:
            Dict[str, ProviderOutcome]: 平台名 -> 结果，每一对都有结果

        Raises:
            UnknownProviderError: 请求中包含未注册的平台（在任何 I/O 之前）
        """
        self.registry.validate(batch.providers)

        loop = asyncio.get_running_loop()
        timeout = timeout if timeout is not None else self.batch_timeout
        deadline = loop.time() + timeout if timeout else None

        self.stats["batches"] += 1
        outcomes: Dict[str, ProviderOutcome] = {}
        chunks = list(chunked(batch.pairs, self.chunk_size))
        logger.debug(f"批次 {batch.request_id}: {len(batch)} 个平台，分为 {len(chunks)} 块")

        for index, chunk in enumerate(chunks):
            stop_reason = self._stop_reason(cancel_event, deadline, loop)
            if stop_reason:
                for provider, handle in chunk:
                    outcomes[provider] = self._stopped(provider, handle, stop_reason)
                continue

            self.stats["chunks"] += 1
            outcomes.update(await self._run_chunk(chunk, cancel_event, deadline, loop))

            if index < len(chunks) - 1 and self.inter_chunk_delay > 0:
                await self._sleep(self.inter_chunk_delay)

        failed = sum(1 for o in outcomes.values() if not o.result.is_ok)
        self.stats["failures"] += failed
        logger.info(f"批次 {batch.request_id} 完成: {len(outcomes) - failed}/{len(outcomes)} 成功")
        return outcomes

    @staticmethod
    def _stop_reason(cancel_event: Optional[asyncio.Event], deadline: Optional[float],
                     loop: asyncio.AbstractEventLoop) -> Optional[str]:
        if cancel_event is not None and cancel_event.is_set():
            return "cancelled"
        if deadline is not None and loop.time() >= deadline:
            return "deadline exceeded"
        return None

    def _stopped(self, provider: str, handle: str, reason: str) -> ProviderOutcome:
        self.stats["cancelled"] += 1
        return ProviderOutcome(ProviderResult.failed(provider, handle, reason))

    async def _run_chunk(self,
                         chunk: List[Pair],
                         cancel_event: Optional[asyncio.Event],
                         deadline: Optional[float],
                         loop: asyncio.AbstractEventLoop) -> Dict[str, ProviderOutcome]:
        """并发执行一块，等待全部结束（不因单个失败提前返回）"""
        tasks = {
            asyncio.ensure_future(self._fetch_one(provider, handle)): (provider, handle)
            for provider, handle in chunk
        }
        pending = set(tasks)
        stop_reason = None
        cancel_waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event else None

        try:
            while pending:
                waitables = pending | {cancel_waiter} if cancel_waiter else pending
                wait_timeout = None if deadline is None else max(0.0, deadline - loop.time())
                done, _ = await asyncio.wait(
                    waitables, timeout=wait_timeout, return_when=asyncio.FIRST_COMPLETED
                )
                pending -= done
                if cancel_waiter is not None and cancel_waiter in done:
                    stop_reason = "cancelled"
                    break
                if not done:
                    stop_reason = "deadline exceeded"
                    break
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()
            # 调用方取消本协程时同样要取消在途调用
            for task in pending:
                task.cancel()

        if pending:
            logger.warning(f"{len(pending)} 个在途调用被中止: {stop_reason}")
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes = {}
        for task, (provider, handle) in tasks.items():
            if task.cancelled():
                outcomes[provider] = self._stopped(provider, handle, stop_reason or "cancelled")
            else:
                outcomes[provider] = task.result()
        return outcomes

    async def _fetch_one(self, name: str, handle: str) -> ProviderOutcome:
        """通过缓存获取单个平台的结果，从不抛出普通异常"""
        self.stats["calls"] += 1
        provider = self.registry.get(name)

        if not provider.available:
            return ProviderOutcome(await provider.fetch(handle))

        async def fetch_fn() -> Dict[str, Any]:
            result = await provider.fetch(handle)
            if not result.is_ok:
                # 失败结果不写入缓存，交给缓存层决定是否返回陈旧数据
                raise ProviderFetchError(result)
            return result.to_dict()

        key = str(CacheKey(name, handle))
        try:
            entry = await self.cache.get_or_fetch(key, provider.ttl or self.default_ttl, fetch_fn)
        except ProviderFetchError as e:
            return ProviderOutcome(e.result)
        except Exception as e:
            logger.error(f"{name} 拉取异常 [{handle}]: {e!r}")
            return ProviderOutcome(ProviderResult.failed(name, handle, str(e) or type(e).__name__))

        try:
            result = ProviderResult.from_dict(entry.value)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"缓存条目损坏 {key}: {e!r}")
            return ProviderOutcome(ProviderResult.failed(name, handle, "Corrupted cache entry"))

        if entry.error:
            logger.info(f"{name} 使用陈旧数据 [{handle}]: {entry.error}")
        return ProviderOutcome(result, entry)
