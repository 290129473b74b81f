#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
日志工具模块

缓存层使用标准库 logging，模块日志器都挂在包根日志器 ``codestats`` 之下，
只有根日志器持有处理器；其余模块使用 loguru。LoggerManager 按同一份
LoggingConfig 同时配置两者，保证级别和文件输出一致。
"""

import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional, Dict, Any, List
from logging.handlers import RotatingFileHandler

from loguru import logger as loguru_logger

from ..config.settings import LoggingConfig

ROOT_LOGGER_NAME = "codestats"

CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
LOGURU_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}"


class ColoredFormatter(logging.Formatter):
    """按级别着色的控制台格式化器"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if color is None:
            return super().format(record)
        # 复制记录，避免颜色码写进文件处理器
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


class LoggerManager:
    """日志管理器

    进程内只有一份配置。``configure`` 可以重复调用，每次都会替换
    根日志器的处理器和 loguru 的输出目标。
    """

    _config: Optional[LoggingConfig] = None
    _log_dir: Optional[Path] = None
    _max_file_size = 10 * 1024 * 1024
    _backup_count = 5
    _loguru_sinks: List[int] = []

    @classmethod
    def configure(cls, config: Optional[LoggingConfig] = None,
                  max_file_size: int = 10 * 1024 * 1024, backup_count: int = 5) -> logging.Logger:
        """按配置安装处理器

        Args:
            config: 日志配置，默认使用 LoggingConfig()
            max_file_size: 单个日志文件的最大字节数
            backup_count: 轮转保留的文件数

        Returns:
            logging.Logger: 包根日志器
        """
        config = config or LoggingConfig()
        cls._config = config
        cls._max_file_size = max_file_size
        cls._backup_count = backup_count
        cls._log_dir = Path(config.log_dir) if config.log_dir else Path.cwd() / "logs"
        if config.enable_file_logging:
            cls._log_dir.mkdir(parents=True, exist_ok=True)

        root = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        root.setLevel(cls.level())
        root.propagate = False

        for handler in cls._build_handlers():
            root.addHandler(handler)

        cls._configure_loguru()
        return root

    @classmethod
    def level(cls) -> int:
        if cls._config is None:
            return logging.INFO
        return getattr(logging, cls._config.log_level.upper(), logging.INFO)

    @classmethod
    def _build_handlers(cls) -> List[logging.Handler]:
        handlers: List[logging.Handler] = []
        if cls._config.enable_console_logging:
            console = logging.StreamHandler(sys.stderr)
            if hasattr(sys.stderr, 'isatty') and sys.stderr.isatty():
                console.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
            else:
                console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
            handlers.append(console)

        if cls._config.enable_file_logging:
            detailed = logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
            for filename, level in ((f"{ROOT_LOGGER_NAME}.log", logging.NOTSET),
                                    (f"{ROOT_LOGGER_NAME}_error.log", logging.ERROR)):
                handler = RotatingFileHandler(
                    cls._log_dir / filename,
                    maxBytes=cls._max_file_size,
                    backupCount=cls._backup_count,
                    encoding='utf-8'
                )
                handler.setLevel(level)
                handler.setFormatter(detailed)
                handlers.append(handler)
        return handlers

    @classmethod
    def _configure_loguru(cls):
        level = logging.getLevelName(cls.level())
        for sink_id in cls._loguru_sinks:
            try:
                loguru_logger.remove(sink_id)
            except ValueError:
                pass
        if not cls._loguru_sinks:
            # 首次配置时移除 loguru 自带的 stderr 输出
            loguru_logger.remove()
        cls._loguru_sinks = []

        if cls._config.enable_console_logging:
            cls._loguru_sinks.append(loguru_logger.add(sys.stderr, level=level, format=LOGURU_FORMAT))
        if cls._config.enable_file_logging:
            cls._loguru_sinks.append(loguru_logger.add(
                cls._log_dir / f"{ROOT_LOGGER_NAME}_service.log",
                level=level,
                format=LOGURU_FORMAT,
                rotation=cls._max_file_size,
                retention=cls._backup_count,
                encoding='utf-8',
            ))

    @classmethod
    def get_logger(cls, name: str = ROOT_LOGGER_NAME) -> logging.Logger:
        """获取包根日志器下的子日志器，首次调用时使用默认配置"""
        if cls._config is None:
            cls.configure()
        if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
            name = f"{ROOT_LOGGER_NAME}.{name}"
        return logging.getLogger(name)

    @classmethod
    def set_level(cls, level: str):
        if cls._config is None:
            cls.configure(LoggingConfig(log_level=level))
            return
        cls._config.log_level = level
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(cls.level())
        cls._configure_loguru()

    @classmethod
    def cleanup_old_logs(cls, days: int = 7) -> int:
        """删除修改时间早于 days 天的日志文件，返回删除数量"""
        if cls._log_dir is None or not cls._log_dir.exists():
            return 0

        cutoff_time = time.time() - days * 24 * 60 * 60
        removed = 0
        for log_file in cls._log_dir.glob(f"{ROOT_LOGGER_NAME}*.log*"):
            if log_file.stat().st_mtime < cutoff_time:
                try:
                    log_file.unlink()
                    removed += 1
                except OSError as e:
                    loguru_logger.warning(f"删除日志文件失败 {log_file}: {e}")
        return removed

    @classmethod
    def get_stats(cls) -> Dict[str, Any]:
        if cls._config is None:
            return {"configured": False}

        root = logging.getLogger(ROOT_LOGGER_NAME)
        stats = {
            "configured": True,
            "log_level": logging.getLevelName(cls.level()),
            "log_dir": str(cls._log_dir),
            "handlers": [type(handler).__name__ for handler in root.handlers],
            "loguru_sinks": len(cls._loguru_sinks),
            "enable_file_logging": cls._config.enable_file_logging,
        }
        if cls._config.enable_file_logging and cls._log_dir.exists():
            log_files = [f for f in cls._log_dir.glob(f"{ROOT_LOGGER_NAME}*.log*") if f.is_file()]
            stats["log_files"] = sorted(f.name for f in log_files)
            stats["total_log_size_mb"] = sum(f.stat().st_size for f in log_files) / (1024 * 1024)
        return stats


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    return LoggerManager.get_logger(name)


def setup_logging(config: Optional[LoggingConfig] = None, **overrides) -> logging.Logger:
    """设置日志系统的便捷函数

    Args:
        config: 日志配置
        **overrides: 覆盖 config 中的同名字段，例如 log_level="DEBUG"
    """
    config = LoggingConfig(**{**vars(config or LoggingConfig()), **overrides})
    return LoggerManager.configure(config)


def set_log_level(level: str):
    LoggerManager.set_level(level)


def get_log_stats() -> Dict[str, Any]:
    return LoggerManager.get_stats()


def setup_logging_from_env() -> logging.Logger:
    """读取 CODESTATS_LOG_LEVEL / CODESTATS_LOG_DIR / CODESTATS_LOG_FILE"""
    return setup_logging(
        log_level=os.getenv('CODESTATS_LOG_LEVEL', 'INFO'),
        log_dir=os.getenv('CODESTATS_LOG_DIR') or None,
        enable_file_logging=os.getenv('CODESTATS_LOG_FILE', '').lower() in ('1', 'true', 'yes', 'on'),
    )
