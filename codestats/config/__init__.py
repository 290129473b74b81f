#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
配置管理模块

提供项目的各种配置管理功能。
"""

from .settings import (
    CacheConfig,
    TransportConfig,
    OrchestratorConfig,
    AggregatorConfig,
    ProviderConfig,
    LoggingConfig,
    AppConfig,
    get_default_config,
)


def get_config() -> AppConfig:
    """从环境变量读取配置"""
    return AppConfig.from_env()


__all__ = [
    'CacheConfig',
    'TransportConfig',
    'OrchestratorConfig',
    'AggregatorConfig',
    'ProviderConfig',
    'LoggingConfig',
    'AppConfig',
    'get_default_config',
    'get_config',
]
