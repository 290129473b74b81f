"""多平台统计聚合使用示例

该示例展示了如何使用 ServiceFactory 组装聚合服务并处理请求。
包含以下功能演示：
1. 从环境变量创建配置，或使用纯内存缓存
2. 批量聚合并打印汇总报告
3. 重复请求命中缓存
4. 资源清理
"""

import argparse
import asyncio
import json
from typing import Dict

from loguru import logger

from codestats.config.settings import AppConfig
from codestats.handler.service_factory import ServiceFactory
from codestats.models.errors import CodeStatsError


async def run_demo(usernames: Dict[str, str], memory_only: bool) -> None:
    config = AppConfig.create_memory_only() if memory_only else AppConfig.from_env()

    async with ServiceFactory(config) as service:
        logger.info(f"支持的平台: {service.registry.names()}")

        try:
            response = await service.aggregate(usernames)
        except CodeStatsError as e:
            logger.error(f"请求被拒绝: {e}")
            return

        report = response.report
        print(json.dumps(report.to_dict(include_calendar=False), indent=2, ensure_ascii=False))
        print(f"状态: {response.status.value}，耗时: {response.processing_time_ms:.0f}ms")

        # 第二次请求应全部来自缓存
        again = await service.aggregate(usernames)
        for name, info in again.platforms.items():
            cache_info = info.get("cache_info") or {}
            print(f"{name}: {info['status']} (来源: {cache_info.get('source', '-')})")

        print(json.dumps(service.cache.get_stats(), indent=2))


def main():
    parser = argparse.ArgumentParser(description="聚合多个平台的编程统计")
    parser.add_argument("--leetcode")
    parser.add_argument("--codeforces")
    parser.add_argument("--codechef")
    parser.add_argument("--geeksforgeeks")
    parser.add_argument("--github")
    parser.add_argument("--memory-only", action="store_true", help="不使用 Redis")
    args = parser.parse_args()

    usernames = {
        name: getattr(args, name)
        for name in ("leetcode", "codeforces", "codechef", "geeksforgeeks", "github")
        if getattr(args, name)
    }
    if not usernames:
        parser.error("至少指定一个平台用户名，例如 --codeforces tourist")

    asyncio.run(run_demo(usernames, args.memory_only))


if __name__ == "__main__":
    main()
