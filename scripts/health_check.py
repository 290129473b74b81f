#!/usr/bin/env python3
"""聚合服务健康检查

依次检查运行环境、依赖、配置、Redis 和服务装配，可选地对真实上游
发起一次探测。退出码：0 正常，1 存在错误，2 存在警告。
"""

import asyncio
import argparse
import importlib
import json
import platform
import sys
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Any, Optional

import psutil

from codestats.cache.redis_manager import RedisManager
from codestats.config.settings import AppConfig
from codestats.handler.service_factory import ServiceFactory
from codestats.models.cache import CacheEntry
from codestats.utils.logger import get_logger

logger = get_logger("codestats.health_check")

REQUIRED_PACKAGES = {
    "httpx": "httpx",
    "redis": "redis",
    "loguru": "loguru",
    "beautifulsoup4": "bs4",
    "psutil": "psutil",
    "tenacity": "tenacity",
}

# 严重程度从低到高
SEVERITY = ("healthy", "warning", "error")
EXIT_CODES = {"healthy": 0, "error": 1, "warning": 2}
SYMBOLS = {"healthy": "✓", "warning": "⚠", "error": "✗"}


@dataclass
class HealthCheckResult:
    component: str
    status: str
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "component": self.component,
            "status": self.status,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def describe(self) -> str:
        return f"{SYMBOLS.get(self.status, '?')} {self.component}: {self.message}"


class SystemHealthChecker:
    """聚合服务健康检查器"""

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or AppConfig.from_env()
        self.results: List[HealthCheckResult] = []
        self.thresholds = {
            "timeout_seconds": 10,
            "min_memory_mb": 100,
            "max_cpu_percent": 90,
            "min_disk_space_gb": 1.0,
        }

    def add_result(self, component: str, status: str, message: str = "",
                   details: Optional[Dict[str, Any]] = None) -> HealthCheckResult:
        result = HealthCheckResult(component, status, message, details or {})
        self.results.append(result)
        log = {"healthy": logger.info, "warning": logger.warning}.get(status, logger.error)
        log(result.describe())
        return result

    def check_system_requirements(self) -> None:
        """检查 Python 版本和主机资源"""
        logger.info("检查运行环境...")

        version = platform.python_version()
        if sys.version_info >= (3, 8):
            self.add_result("python_version", "healthy", f"Python版本: {version}")
        else:
            self.add_result("python_version", "error", f"Python版本过低: {version}，需要3.8+")

        memory = psutil.virtual_memory()
        available_mb = memory.available / (1024 ** 2)
        memory_details = {"total_gb": memory.total / (1024 ** 3), "available_mb": available_mb}
        enough_memory = available_mb >= self.thresholds["min_memory_mb"]
        self.add_result("system_memory", "healthy" if enough_memory else "warning",
                        f"可用内存: {available_mb:.0f}MB", memory_details)

        cpu_details = {"cpu_count": psutil.cpu_count(), "cpu_percent": psutil.cpu_percent(interval=0.5)}
        cpu_busy = cpu_details["cpu_percent"] >= self.thresholds["max_cpu_percent"]
        self.add_result("system_cpu", "warning" if cpu_busy else "healthy",
                        f"CPU: {cpu_details['cpu_count']}核，使用率 {cpu_details['cpu_percent']:.1f}%", cpu_details)

        disk = psutil.disk_usage('/')
        free_gb = disk.free / (1024 ** 3)
        if free_gb >= self.thresholds["min_disk_space_gb"]:
            self.add_result("disk_space", "healthy", f"可用磁盘空间: {free_gb:.1f}GB", {"free_gb": free_gb})
        else:
            self.add_result("disk_space", "error", f"磁盘空间不足: 仅剩{free_gb:.1f}GB", {"free_gb": free_gb})

        self.add_result("operating_system", "healthy", f"操作系统: {platform.platform()}")

    def check_dependencies(self) -> None:
        """检查依赖包"""
        logger.info("检查依赖包...")

        installed, missing = {}, []
        for distribution, module_name in REQUIRED_PACKAGES.items():
            try:
                module = importlib.import_module(module_name)
            except ImportError:
                missing.append(distribution)
                continue
            installed[distribution] = getattr(module, '__version__', 'unknown')

        if not missing:
            self.add_result("dependencies", "healthy", f"所有必需依赖包已安装: {len(installed)}个",
                            {"installed_packages": installed})
        else:
            self.add_result("dependencies", "error", f"缺少依赖包: {', '.join(missing)}",
                            {"missing_packages": missing, "installed_packages": installed})

    def check_configuration(self) -> None:
        """检查配置"""
        logger.info("检查配置...")

        warnings = []
        cache = self.config.cache
        if cache.max_memory_entries == 0:
            warnings.append("max_memory_entries = 0，内存层已关闭")
        if self.config.transport.max_attempts < 1:
            warnings.append("max_attempts < 1")
        if not self.config.providers.geeksforgeeks_mirrors:
            warnings.append("未配置 GeeksForGeeks 镜像")
        if not self.config.providers.github_token:
            warnings.append("未设置 GITHUB_TOKEN，GitHub 接口限流较严格")

        details = self.config.to_dict(redact=True)
        if warnings:
            self.add_result("configuration", "warning", "; ".join(warnings), details)
        else:
            self.add_result("configuration", "healthy", "配置检查通过", details)

    async def check_redis(self) -> None:
        """检查 Redis 连接"""
        logger.info("检查 Redis 连接...")

        cache = self.config.cache
        if not cache.enable_redis:
            self.add_result("redis", "warning", "Redis 已禁用，仅使用内存缓存")
            return

        manager = RedisManager.from_config(cache)
        try:
            start_time = time.time()
            connected = await manager.connect()
            latency_ms = (time.time() - start_time) * 1000
            if not connected:
                # 共享缓存不可用时服务仍可运行
                self.add_result("redis", "warning", "Redis 不可达，服务将降级为内存缓存",
                                manager.get_stats())
                return

            probe_key = "health_check:probe"
            probe = CacheEntry(key=probe_key, value={"ok": True}, ttl=30, created_time=time.time())
            stored = await manager.put(probe_key, probe, ttl=30)
            loaded = await manager.get(probe_key)
            await manager.remove(probe_key)

            if stored and loaded is not None and loaded.value == probe.value:
                self.add_result("redis", "healthy", f"Redis 读写正常，连接耗时: {latency_ms:.1f}ms",
                                {"latency_ms": latency_ms})
            else:
                self.add_result("redis", "error", "Redis 读写校验失败", manager.get_stats())
        finally:
            await manager.disconnect()

    async def check_service(self) -> None:
        """检查服务组装和缓存读写"""
        logger.info("检查服务初始化...")

        factory = ServiceFactory(self.config)
        try:
            start_time = time.time()
            service = factory.create_service()
            init_time = time.time() - start_time

            platforms = service.platform_status()
            self.add_result(
                "service_initialization", "healthy",
                f"服务初始化成功，耗时: {init_time:.2f}秒",
                {"initialization_time": init_time, "platforms": platforms["platform_status"]}
            )

            calls = []

            async def fetch_probe():
                calls.append(1)
                return {"probe": True}

            first = await service.cache.get_or_fetch("health_check:roundtrip", 30, fetch_probe)
            second = await service.cache.get_or_fetch("health_check:roundtrip", 30, fetch_probe)
            await service.cache.remove("health_check:roundtrip")

            if len(calls) == 1 and second.value == first.value:
                self.add_result("cache_roundtrip", "healthy", f"缓存读写正常（第二次来源: {second.origin.value}）")
            else:
                self.add_result("cache_roundtrip", "error", f"缓存未命中，拉取次数: {len(calls)}")
        except Exception as e:
            self.add_result("service_initialization", "error", f"服务初始化异常: {e}")
        finally:
            await factory.close()

    async def check_live_probe(self, usernames: Dict[str, str]) -> None:
        """对真实上游发起一次聚合请求"""
        logger.info(f"上游探测: {usernames}")

        async with ServiceFactory(self.config) as service:
            try:
                response = await asyncio.wait_for(
                    service.aggregate(usernames),
                    timeout=self.thresholds["timeout_seconds"]
                )
            except asyncio.TimeoutError:
                self.add_result("live_probe", "error",
                                f"上游探测超时（>{self.thresholds['timeout_seconds']}秒）")
                return

        details = {name: info["status"] for name, info in response.platforms.items()}
        status = {"OK": "healthy", "PARTIAL": "warning"}.get(response.status.value, "error")
        self.add_result("live_probe", status,
                        f"上游探测 {response.status.value}，耗时: {response.processing_time_ms:.0f}ms", details)

    async def run_all_checks(self, live_probe: Optional[Dict[str, str]] = None) -> List[HealthCheckResult]:
        """运行全部检查，live_probe 非空时额外探测真实上游"""
        logger.info("开始健康检查...")
        started = time.time()

        checks = [
            ("system", self.check_system_requirements),
            ("dependencies", self.check_dependencies),
            ("configuration", self.check_configuration),
            ("redis", self.check_redis),
            ("service", self.check_service),
        ]
        if live_probe:
            checks.append(("live_probe", lambda: self.check_live_probe(live_probe)))

        for name, check in checks:
            try:
                outcome = check()
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as e:
                self.add_result(name, "error", f"检查过程异常: {e}")

        logger.info(f"健康检查完成，总耗时: {time.time() - started:.2f}秒")
        return self.results

    def overall_status(self) -> str:
        if not self.results:
            return "healthy"
        return max((r.status for r in self.results), key=SEVERITY.index)

    def generate_summary(self) -> Dict[str, Any]:
        counts = Counter(r.status for r in self.results)
        total = len(self.results)
        return {
            "overall_status": self.overall_status(),
            "total_checks": total,
            **{f"{status}_count": counts.get(status, 0) for status in SEVERITY},
            "health_percentage": counts.get("healthy", 0) / total * 100 if total else 0,
            "timestamp": datetime.now().isoformat(),
        }

    def build_report(self) -> Dict[str, Any]:
        return {
            "summary": self.generate_summary(),
            "results": [result.to_dict() for result in self.results],
            "thresholds": self.thresholds,
            "config": self.config.to_dict(),
        }

    def export_results(self, output_file: str) -> Path:
        path = Path(output_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.build_report(), indent=2, ensure_ascii=False), encoding='utf-8')
        logger.info(f"健康检查报告已写入: {path}")
        return path


def _parse_probe(values: Optional[List[str]]) -> Dict[str, str]:
    usernames = {}
    for value in values or []:
        platform_name, _, handle = value.partition("=")
        if not handle:
            raise argparse.ArgumentTypeError(f"探测参数格式应为 平台=用户名: {value}")
        usernames[platform_name.strip()] = handle.strip()
    return usernames


async def main() -> int:
    parser = argparse.ArgumentParser(description="聚合服务健康检查")
    parser.add_argument("--output", "-o", help="报告文件路径，缺省时打印到标准输出")
    parser.add_argument("--verbose", "-v", action="store_true", help="在标准错误输出逐项结果")
    parser.add_argument("--timeout", type=int, default=10, help="上游探测超时时间（秒）")
    parser.add_argument("--probe", action="append", metavar="PLATFORM=USER",
                        help="对真实上游发起探测，可重复指定")
    args = parser.parse_args()

    checker = SystemHealthChecker()
    checker.thresholds["timeout_seconds"] = args.timeout
    await checker.run_all_checks(live_probe=_parse_probe(args.probe))

    if args.verbose:
        for result in checker.results:
            print(result.describe(), file=sys.stderr)

    if args.output:
        checker.export_results(args.output)
    else:
        print(json.dumps(checker.build_report(), indent=2, ensure_ascii=False))

    return EXIT_CODES[checker.overall_status()]


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("用户中断健康检查")
        sys.exit(130)
