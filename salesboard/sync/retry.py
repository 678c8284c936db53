"""Bounded retry for retryable (network-classified) errors."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from ..config import settings
from ..errors import SalesboardError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    max_retries: int = field(default_factory=lambda: settings.retry_max_attempts)
    backoff_seconds: float = field(default_factory=lambda: settings.retry_backoff_seconds)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def run(self, operation: Callable[[], Awaitable[T]], label: str = "operation") -> T:
        """Await ``operation()``, retrying retryable errors with a fixed backoff."""
        attempt = 0
        while True:
            try:
                return await operation()
            except SalesboardError as e:
                if not e.retryable or attempt >= self.max_retries:
                    raise
                attempt += 1
                logger.warning(
                    "%s failed (%s), retry %d/%d in %.1fs",
                    label, e.code.value, attempt, self.max_retries, self.backoff_seconds,
                )
                await self.sleep(self.backoff_seconds)
