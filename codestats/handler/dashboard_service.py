"""聚合看板服务

校验调用方请求、驱动编排器和汇总器，并组装批量响应。
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from loguru import logger

from ..models.enums import BatchStatus
from ..models.report import BatchResponse
from ..models.request import BatchRequest
from .fetch_orchestrator import FetchOrchestrator
from .result_aggregator import ResultAggregator

SERVICE_VERSION = "2.0.0"


class DashboardService:
    """多平台统计聚合服务"""

    def __init__(self, orchestrator: FetchOrchestrator, aggregator: ResultAggregator):
        self.orchestrator = orchestrator
        self.aggregator = aggregator

    @property
    def registry(self):
        return self.orchestrator.registry

    @property
    def cache(self):
        return self.orchestrator.cache

    async def aggregate(self,
                        usernames: Any,
                        cancel_event: Optional[asyncio.Event] = None,
                        timeout: Optional[float] = None) -> BatchResponse:
        """获取并汇总多个平台的数据

        Args:
            usernames: {平台: 用户名} 映射，空用户名的平台被跳过
            cancel_event: 取消信号（如调用方断开连接）
            timeout: 批次截止时间（秒）

        Returns:
            BatchResponse: 每个请求的平台都有明确状态

        Raises:
            MalformedRequestError: 请求格式错误
            UnknownProviderError: 包含未注册的平台
        """
        start = time.perf_counter()
        batch = BatchRequest.from_mapping(usernames, self.registry.names())
        logger.info(f"批次 {batch.request_id}: 请求平台 {batch.providers}")

        outcomes = await self.orchestrator.fetch_batch(batch, cancel_event=cancel_event, timeout=timeout)
        report = self.aggregator.aggregate(outcomes, requested=len(batch))

        message = None
        if not batch.pairs:
            status = BatchStatus.OK
            message = "No platforms requested"
        elif len(report.succeeded) == len(batch):
            status = BatchStatus.OK
        elif report.succeeded:
            status = BatchStatus.PARTIAL
        else:
            status = BatchStatus.FAILED

        return BatchResponse(
            request_id=batch.request_id,
            status=status,
            usernames=dict(usernames),
            platforms={name: outcome.to_dict() for name, outcome in outcomes.items()},
            report=report,
            processing_time_ms=(time.perf_counter() - start) * 1000,
            message=message,
        )

    async def health(self) -> Dict[str, Any]:
        """服务健康状态"""
        redis_manager = self.cache.redis_manager
        redis_ok = await redis_manager.ping() if redis_manager else None
        return {
            "status": "OK",
            "message": "API is running",
            "version": SERVICE_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "supported_platforms": self.registry.names(),
            "redis_connected": redis_ok,
            "cache": self.cache.get_stats(),
        }

    def platform_status(self) -> Dict[str, Any]:
        """各平台可用状态"""
        status = {}
        for name in self.registry.names():
            provider = self.registry.get(name)
            status[name] = "Available" if provider.available else "Unavailable"
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "available_platforms": [n for n, s in status.items() if s == "Available"],
            "platform_status": status,
        }

    async def clear_cache(self, pattern: str = "*") -> None:
        await self.cache.clear(pattern)
        logger.info(f"缓存已清空: {pattern}")
