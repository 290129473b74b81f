"""CodeStats - multi-platform coding profile aggregation with layered caching"""

__version__ = "2.0.0"

from . import models
from . import config
from . import cache
from . import transport
from . import providers
from . import handler
from . import utils

from .handler import DashboardService, ServiceFactory, create_dashboard_service

__all__ = [
    "models",
    "config",
    "cache",
    "transport",
    "providers",
    "handler",
    "utils",
    "DashboardService",
    "ServiceFactory",
    "create_dashboard_service",
]
