"""
Bounded retry policy for persistence calls.

Every unit of persistence work runs under a timeout and is retried with
exponential backoff and jitter, but only when the failure is transient
(timeouts, dropped connections). Anything else fails fast.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Final, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

from shared.config.settings import settings
from shared.config.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Default jitter range: ±25% of calculated delay
DEFAULT_JITTER_FACTOR: Final[float] = 0.25

# Default exponential backoff base
DEFAULT_BACKOFF_BASE: Final[float] = 2.0


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        timeout: Upper bound in seconds for a single attempt.
        max_attempts: Total attempts including the first one.
        initial_delay: Base delay in seconds between attempts.
        max_delay: Maximum delay cap in seconds.
        backoff_base: Exponential backoff multiplier.
        jitter_factor: Random jitter range as fraction (0.25 = ±25%).
    """

    timeout: float = 10.0
    max_attempts: int = 3
    initial_delay: float = 0.2
    max_delay: float = 5.0
    backoff_base: float = DEFAULT_BACKOFF_BASE
    jitter_factor: float = DEFAULT_JITTER_FACTOR

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        return cls(
            timeout=settings.store_timeout_seconds,
            max_attempts=settings.store_max_attempts,
            initial_delay=settings.store_retry_delay,
            max_delay=max(settings.store_retry_delay, 5.0),
        )


def calculate_delay_with_jitter(attempt: int, config: RetryConfig) -> float:
    """
    Calculate retry delay with exponential backoff and jitter.

        base_delay = initial_delay * (backoff_base ^ attempt)
        capped_delay = min(base_delay, max_delay)
        final_delay = capped_delay * (1 ± jitter_factor)
    """
    base_delay = config.initial_delay * (config.backoff_base ** attempt)
    capped_delay = min(base_delay, config.max_delay)
    jitter_range = capped_delay * config.jitter_factor
    return max(0.0, capped_delay + random.uniform(-jitter_range, jitter_range))


def is_transient(error: BaseException) -> bool:
    """Whether a persistence failure is worth another attempt."""
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    if isinstance(error, OperationalError):
        return True
    if isinstance(error, DBAPIError):
        return bool(error.connection_invalidated)
    return False


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    on_retry: Callable[[], Awaitable[None]] | None = None,
    label: str = "store",
) -> T:
    """
    Run ``operation`` with a timeout per attempt and bounded retries.

    ``operation`` is a zero-argument factory so that each attempt builds its
    work afresh. ``on_retry`` runs before a new attempt (typically a session
    rollback). The last error is re-raised when attempts are exhausted or the
    failure is not transient.
    """
    config = config or RetryConfig.from_settings()

    for attempt in range(config.max_attempts):
        try:
            return await asyncio.wait_for(operation(), timeout=config.timeout)
        except Exception as e:
            last_attempt = attempt >= config.max_attempts - 1
            if last_attempt or not is_transient(e):
                raise
            delay = calculate_delay_with_jitter(attempt, config)
            logger.warning(
                "Transient persistence failure, retrying",
                operation=label,
                attempt=attempt + 1,
                max_attempts=config.max_attempts,
                delay_seconds=round(delay, 3),
                error=str(e),
            )
            if on_retry is not None:
                await on_retry()
            await asyncio.sleep(delay)

    raise RuntimeError("unreachable")  # pragma: no cover
