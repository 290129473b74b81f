"""核心配置设置"""

import os
import logging
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


@dataclass
class CacheConfig:
    """缓存配置"""
    max_memory_entries: int = 10000
    memory_ttl: int = 300  # 5分钟
    default_ttl: int = 7200  # 2小时
    stale_grace: int = 86400  # 过期后仍可作为陈旧数据返回的窗口
    coalesce_inflight: bool = False
    enable_redis: bool = True
    redis_url: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    redis_prefix: str = "codestats:"
    redis_socket_timeout: float = 5.0
    redis_reconnect_interval: float = 30.0

    def __post_init__(self):
        if self.max_memory_entries < 0:
            raise ValueError(f"max_memory_entries 不能为负数: {self.max_memory_entries}")
        if self.default_ttl <= 0:
            raise ValueError(f"default_ttl 必须为正数: {self.default_ttl}")
        # 内存层不能比共享层更"新鲜"
        if self.memory_ttl > self.default_ttl:
            logger.warning(
                f"memory_ttl={self.memory_ttl} 大于 default_ttl={self.default_ttl}，已截断"
            )
            self.memory_ttl = self.default_ttl


@dataclass
class TransportConfig:
    """HTTP 传输配置"""
    timeout: float = 8.0
    max_attempts: int = 3
    backoff_base: float = 1.0
    user_agent: str = "MultiPlatform-Dashboard-API"


@dataclass
class OrchestratorConfig:
    """批量编排配置"""
    chunk_size: int = 3
    inter_chunk_delay: float = 0.4
    batch_timeout: Optional[float] = None

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size 必须 >= 1，实际为 {self.chunk_size}")


@dataclass
class AggregatorConfig:
    """汇总配置"""
    window_days: int = 365
    estimate_missing_activity: bool = True


@dataclass
class ProviderConfig:
    """各平台数据源配置"""
    leetcode_api_url: str = "https://alfa-leetcode-api.onrender.com"
    codeforces_api_url: str = "https://codeforces.com/api"
    codechef_url: str = "https://www.codechef.com"
    github_api_url: str = "https://api.github.com"
    github_token: Optional[str] = None
    geeksforgeeks_mirrors: List[str] = field(default_factory=lambda: [
        "https://gfg-api.vercel.app",
        "https://geeks-for-geeks-stats-api.vercel.app",
        "https://geeksforgeeks-api-fzaa.onrender.com",
    ])
    unavailable: Dict[str, str] = field(default_factory=lambda: {
        "hackerrank": "HackerRank has no public profile API",
    })


@dataclass
class LoggingConfig:
    """日志配置"""
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    enable_file_logging: bool = False
    enable_console_logging: bool = True


@dataclass
class AppConfig:
    """主配置"""
    cache: CacheConfig = field(default_factory=CacheConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """转换为字典

        Args:
            redact: 是否隐藏密码和令牌
        """
        data = asdict(self)
        if redact:
            if data['cache']['redis_password']:
                data['cache']['redis_password'] = '***'
            if data['providers']['github_token']:
                data['providers']['github_token'] = '***'
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppConfig':
        """从字典创建配置"""
        return cls(
            cache=CacheConfig(**data.get('cache', {})),
            transport=TransportConfig(**data.get('transport', {})),
            orchestrator=OrchestratorConfig(**data.get('orchestrator', {})),
            aggregator=AggregatorConfig(**data.get('aggregator', {})),
            providers=ProviderConfig(**data.get('providers', {})),
            logging=LoggingConfig(**data.get('logging', {})),
        )

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """从环境变量创建配置"""
        defaults = cls()
        cache = CacheConfig(
            max_memory_entries=_env_int('CODESTATS_MEMORY_MAX_ENTRIES', defaults.cache.max_memory_entries),
            memory_ttl=_env_int('CODESTATS_MEMORY_TTL', defaults.cache.memory_ttl),
            default_ttl=_env_int('CODESTATS_CACHE_TTL', defaults.cache.default_ttl),
            stale_grace=_env_int('CODESTATS_STALE_GRACE', defaults.cache.stale_grace),
            coalesce_inflight=_env_bool('CODESTATS_COALESCE_INFLIGHT', defaults.cache.coalesce_inflight),
            enable_redis=_env_bool('CODESTATS_ENABLE_REDIS', defaults.cache.enable_redis),
            redis_url=os.getenv('REDIS_URL') or None,
            redis_host=os.getenv('REDIS_HOST', defaults.cache.redis_host),
            redis_port=_env_int('REDIS_PORT', defaults.cache.redis_port),
            redis_db=_env_int('REDIS_DB', defaults.cache.redis_db),
            redis_password=os.getenv('REDIS_PASSWORD') or None,
        )
        transport = TransportConfig(
            timeout=_env_float('CODESTATS_HTTP_TIMEOUT', defaults.transport.timeout),
            max_attempts=_env_int('CODESTATS_RETRY_ATTEMPTS', defaults.transport.max_attempts),
            backoff_base=_env_float('CODESTATS_RETRY_BACKOFF', defaults.transport.backoff_base),
        )
        orchestrator = OrchestratorConfig(
            chunk_size=_env_int('CODESTATS_CHUNK_SIZE', defaults.orchestrator.chunk_size),
            inter_chunk_delay=_env_float('CODESTATS_CHUNK_DELAY', defaults.orchestrator.inter_chunk_delay),
            batch_timeout=_env_float('CODESTATS_BATCH_TIMEOUT', defaults.orchestrator.batch_timeout),
        )
        aggregator = AggregatorConfig(
            window_days=_env_int('CODESTATS_ACTIVITY_WINDOW', defaults.aggregator.window_days),
        )
        providers = ProviderConfig(
            leetcode_api_url=os.getenv('LEETCODE_API_URL', defaults.providers.leetcode_api_url),
            github_token=os.getenv('GITHUB_TOKEN') or None,
        )
        logging_config = LoggingConfig(
            log_level=os.getenv('CODESTATS_LOG_LEVEL', defaults.logging.log_level),
            log_dir=os.getenv('CODESTATS_LOG_DIR') or None,
            enable_file_logging=_env_bool('CODESTATS_LOG_FILE', defaults.logging.enable_file_logging),
        )
        return cls(
            cache=cache,
            transport=transport,
            orchestrator=orchestrator,
            aggregator=aggregator,
            providers=providers,
            logging=logging_config,
        )

    @classmethod
    def create_default(cls) -> 'AppConfig':
        """创建默认配置"""
        return cls()

    @classmethod
    def create_memory_only(cls) -> 'AppConfig':
        """创建仅使用内存缓存的配置"""
        return cls(cache=CacheConfig(enable_redis=False))

    @classmethod
    def create_debug(cls) -> 'AppConfig':
        """创建调试配置"""
        return cls(
            cache=CacheConfig(enable_redis=False, memory_ttl=30, default_ttl=60),
            transport=TransportConfig(timeout=15.0, max_attempts=1),
            orchestrator=OrchestratorConfig(chunk_size=1, inter_chunk_delay=0.0),
            logging=LoggingConfig(log_level="DEBUG"),
        )


def get_default_config() -> AppConfig:
    """获取默认配置"""
    return AppConfig()
