"""带重试的 HTTP 传输层"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Awaitable, Callable, TypeVar, Union

import httpx
from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from ..config.settings import TransportConfig
from ..models.errors import (
    TransportError,
    TransientError,
    PermanentError,
    NotFoundError,
    MalformedResponseError,
    RateLimitedError,
)

T = TypeVar("T")


@dataclass
class HttpTarget:
    """一次逻辑调用的目标"""
    url: str
    method: str = "GET"
    params: Optional[Dict[str, Any]] = field(default=None)
    headers: Optional[Dict[str, str]] = field(default=None)


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, TransportError) and error.retryable


async def retry_async(operation: Callable[[], Awaitable[T]],
                      max_attempts: int = 3,
                      backoff_base: float = 1.0,
                      timeout: Optional[float] = None,
                      sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                      description: str = "") -> T:
    """按指数退避顺序执行 operation，直到成功或耗尽次数

    Args:
        operation: 每次尝试调用一次的无参异步函数
        max_attempts: 最大尝试次数
        backoff_base: 第一次重试前的等待秒数，之后每次翻倍
        timeout: 单次尝试的超时秒数，超时视为可重试失败
        sleep: 等待函数（测试时可替换）
        description: 日志中使用的描述

    Returns:
        operation 第一次成功的返回值

    Raises:
        TransportError: 不可重试的错误立即抛出；可重试错误在耗尽次数后抛出最后一个
    """
    max_attempts = max(1, max_attempts)

    async def attempt() -> T:
        if timeout is None:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), timeout)
        except asyncio.TimeoutError as e:
            raise TransientError(f"请求超时（{timeout}s）", url=description) from e

    def log_retry(retry_state: RetryCallState) -> None:
        logger.debug(
            f"{description} 第 {retry_state.attempt_number} 次尝试失败: "
            f"{retry_state.outcome.exception()}，{retry_state.next_action.sleep:.2f}s 后重试"
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=backoff_base, min=0),
        retry=retry_if_exception(_is_retryable),
        sleep=sleep,
        before_sleep=log_retry,
        reraise=True,
    )
    try:
        return await retrying(attempt)
    except TransportError as e:
        if e.retryable:
            logger.warning(f"{description} 在 {max_attempts} 次尝试后失败: {e}")
        raise


class RetryingTransport:
    """对单次逻辑调用做超时、有限重试和指数退避

    瞬时错误（超时、连接失败、5xx）会重试；404、其他 4xx、429
    和无法解析的响应立即失败，不消耗剩余次数。
    """

    def __init__(self,
                 client: Optional[httpx.AsyncClient] = None,
                 max_attempts: int = 3,
                 backoff_base: float = 1.0,
                 timeout: float = 8.0,
                 user_agent: str = "MultiPlatform-Dashboard-API",
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.timeout = timeout
        self.user_agent = user_agent
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers={"User-Agent": user_agent},
        )
        self.stats = {"calls": 0, "attempts": 0, "failures": 0}

    @classmethod
    def from_config(cls, config: TransportConfig,
                    client: Optional[httpx.AsyncClient] = None) -> 'RetryingTransport':
        return cls(
            client=client,
            max_attempts=config.max_attempts,
            backoff_base=config.backoff_base,
            timeout=config.timeout,
            user_agent=config.user_agent,
        )

    async def __aenter__(self) -> 'RetryingTransport':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def call(self, target: Union[HttpTarget, str]) -> httpx.Response:
        """执行一次逻辑调用，返回第一个成功的响应"""
        if isinstance(target, str):
            target = HttpTarget(url=target)

        self.stats["calls"] += 1
        try:
            return await retry_async(
                lambda: self._send(target),
                max_attempts=self.max_attempts,
                backoff_base=self.backoff_base,
                timeout=self.timeout,
                sleep=self._sleep,
                description=target.url,
            )
        except TransportError:
            self.stats["failures"] += 1
            raise

    async def call_json(self, target: Union[HttpTarget, str]) -> Any:
        """执行调用并解析 JSON"""
        response = await self.call(target)
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"响应不是合法的 JSON: {e}", url=str(response.url), status_code=response.status_code
            ) from e

    async def call_text(self, target: Union[HttpTarget, str]) -> str:
        response = await self.call(target)
        return response.text

    async def _send(self, target: HttpTarget) -> httpx.Response:
        self.stats["attempts"] += 1
        try:
            response = await self._client.request(
                target.method,
                target.url,
                params=target.params,
                headers=target.headers,
            )
        except httpx.TimeoutException as e:
            raise TransientError(f"请求超时: {e!r}", url=target.url) from e
        except httpx.TransportError as e:
            raise TransientError(f"连接失败: {e!r}", url=target.url) from e

        status = response.status_code
        if status < 400:
            return response

        message = f"HTTP {status}: {response.text[:200]}"
        if status == 404:
            raise NotFoundError(message, url=target.url, status_code=status)
        if status == 429:
            raise RateLimitedError(message, url=target.url, status_code=status)
        if status >= 500:
            raise TransientError(message, url=target.url, status_code=status)
        raise PermanentError(message, url=target.url, status_code=status)
