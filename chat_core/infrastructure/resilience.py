"""外部调用的超时与有限次重试。"""

import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from chat_core.domain.exceptions import UpstreamTimeoutError
from chat_core.infrastructure.logging.logger import logger

T = TypeVar("T")


async def call_with_timeout(awaitable: Awaitable[T], timeout: float, target: str) -> T:
    """等待 awaitable 完成，超时取消并抛出 UpstreamTimeoutError。"""

    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as exc:
        raise UpstreamTimeoutError(
            code="TIMEOUT",
            message=f"{target} did not respond within {timeout:g}s",
            http_status=504,
            target=target,
        ) from exc


async def retry_async(
    factory: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    retry_on: Tuple[Type[BaseException], ...],
    backoff: float = 0.5,
    target: str = "",
) -> T:
    """最多执行 attempts 次；只对 retry_on 中的异常重试，退避按尝试次数线性增长。"""

    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await factory()
        except retry_on as exc:
            if attempt >= attempts:
                raise
            logger.warning(
                "Retrying upstream call",
                extra={"extra": {"target": target, "attempt": attempt, "max_attempts": attempts, "error": str(exc)}},
            )
            if backoff > 0:
                await asyncio.sleep(backoff * attempt)
    raise AssertionError("unreachable")
