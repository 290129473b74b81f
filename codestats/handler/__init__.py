"""处理器模块"""

from .fetch_orchestrator import FetchOrchestrator, chunked
from .result_aggregator import ResultAggregator, DEFAULT_EXTRACTION_RULES
from .dashboard_service import DashboardService
from .service_factory import ServiceFactory, create_dashboard_service

__all__ = [
    'FetchOrchestrator',
    'chunked',
    'ResultAggregator',
    'DEFAULT_EXTRACTION_RULES',
    'DashboardService',
    'ServiceFactory',
    'create_dashboard_service',
]
