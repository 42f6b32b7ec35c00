"""Retry with backoff and connection repair."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from ..automation.errors import ConnectivityError
from ..core.config_schema import RetryConfig
from ..util.log import Log
from .monitor import ConnectionMonitor

T = TypeVar("T")

log = Log.create({"service": "connection.retry"})

# Matched against the lower-cased exception text.
RETRYABLE_PATTERNS = ("not running", "unavailable", "connection")


def retryable(error: BaseException) -> bool:
    message = str(error).lower()
    return any(pattern in message for pattern in RETRYABLE_PATTERNS)


class RetryExecutor:
    """Runs an operation with bounded attempts and exponential backoff.

    Before each attempt a disconnected monitor gets one repair attempt; if
    that fails the call ends with :class:`ConnectivityError` without running
    the operation. Failures whose text looks like a connectivity problem are
    retried after ``base_delay * 2**attempt`` seconds; anything else is
    re-raised as is.
    """

    def __init__(self, monitor: ConnectionMonitor, config: Optional[RetryConfig] = None):
        self.monitor = monitor
        self.config = config or RetryConfig()

    def retryable(self, error: BaseException) -> bool:
        return retryable(error)

    def delay(self, attempt: int) -> float:
        return self.config.base_delay * (2 ** attempt)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
    ) -> T:
        attempts = max_attempts if max_attempts is not None else self.config.max_attempts
        attempts = max(attempts, 1)

        attempt = 0
        while True:
            if not self.monitor.status().connected:
                if not await self.monitor.ensure_connected():
                    error = self.monitor.status().error or "unknown error"
                    raise ConnectivityError(
                        f"Cannot connect to {self.monitor.bridge.app_name}: {error}"
                    )

            try:
                return await operation()
            except Exception as e:
                if attempt + 1 >= attempts or not self.retryable(e):
                    raise
                wait = self.delay(attempt)
                log.warn("operation failed, retrying", {
                    "attempt": attempt + 1,
                    "of": attempts,
                    "delay": wait,
                    "error": str(e),
                })
                await self.monitor.mark_disconnected()
                await self.sleep(wait)
                attempt += 1
