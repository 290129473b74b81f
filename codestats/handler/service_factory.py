"""服务工厂

该模块在进程启动时一次性创建所有组件并注入依赖。
主要特性：
1. 统一的创建接口
2. 显式依赖注入（缓存、传输层、平台注册表）
3. 资源管理（HTTP 客户端、Redis 连接）
"""

from typing import Optional

import httpx
import redis.asyncio as redis
from loguru import logger

from ..cache.multi_level_cache import MultiLevelCache
from ..config.settings import AppConfig
from ..providers.registry import ProviderRegistry, create_default_registry
from ..transport.retrying_transport import RetryingTransport
from ..utils.logger import setup_logging
from .dashboard_service import DashboardService
from .fetch_orchestrator import FetchOrchestrator
from .result_aggregator import ResultAggregator


class ServiceFactory:
    """服务工厂类

    提供创建和配置聚合服务组件的统一接口，并负责关闭它们。
    """

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or AppConfig.from_env()
        self.cache: Optional[MultiLevelCache] = None
        self.transport: Optional[RetryingTransport] = None
        self.registry: Optional[ProviderRegistry] = None
        self.service: Optional[DashboardService] = None

    def create_cache(self, redis_client: Optional[redis.Redis] = None) -> MultiLevelCache:
        """创建缓存；传入 redis_client 时直接使用该客户端"""
        self.cache = MultiLevelCache.from_config(self.config.cache, redis_client=redis_client)
        logger.info(f"缓存创建成功（Redis: {'启用' if self.cache.redis_manager else '禁用'}）")
        return self.cache

    def create_transport(self, http_client: Optional[httpx.AsyncClient] = None) -> RetryingTransport:
        self.transport = RetryingTransport.from_config(self.config.transport, client=http_client)
        return self.transport

    def create_registry(self, transport: RetryingTransport) -> ProviderRegistry:
        self.registry = create_default_registry(
            transport, self.config.providers, activity_days=self.config.aggregator.window_days
        )
        logger.info(f"已注册平台: {self.registry.names()}")
        return self.registry

    def create_service(self,
                       http_client: Optional[httpx.AsyncClient] = None,
                       redis_client: Optional[redis.Redis] = None,
                       registry: Optional[ProviderRegistry] = None) -> DashboardService:
        """创建完整的聚合服务

        Args:
            http_client: 外部提供的 httpx 客户端（不会被工厂关闭）
            redis_client: 外部提供的 Redis 客户端
            registry: 自定义平台注册表，默认使用内置平台

        Returns:
            DashboardService 实例
        """
        if self.service is not None:
            logger.info("复用现有服务实例")
            return self.service

        setup_logging(self.config.logging)

        cache = self.create_cache(redis_client)
        if registry is None:
            registry = self.create_registry(self.create_transport(http_client))
        else:
            self.registry = registry

        orchestrator = FetchOrchestrator.from_config(
            self.config.orchestrator, registry, cache, default_ttl=self.config.cache.default_ttl
        )
        aggregator = ResultAggregator.from_config(self.config.aggregator)

        self.service = DashboardService(orchestrator, aggregator)
        logger.info("聚合服务创建成功")
        return self.service

    async def close(self) -> None:
        """关闭所有资源"""
        if self.transport is not None:
            await self.transport.aclose()
        if self.cache is not None:
            await self.cache.close()
        self.service = None
        logger.info("聚合服务已关闭")

    async def __aenter__(self) -> DashboardService:
        return self.create_service()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def create_dashboard_service(config: Optional[AppConfig] = None, **kwargs) -> DashboardService:
    """便捷函数：创建聚合服务（调用方负责持有工厂以便关闭时使用 ServiceFactory）"""
    return ServiceFactory(config).create_service(**kwargs)
