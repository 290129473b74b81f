"""工具模块"""

from .logger import LoggerManager, get_logger, setup_logging, setup_logging_from_env, set_log_level, get_log_stats

__all__ = [
    "LoggerManager",
    "get_logger",
    "setup_logging",
    "setup_logging_from_env",
    "set_log_level",
    "get_log_stats",
]
