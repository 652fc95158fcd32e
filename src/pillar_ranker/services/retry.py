"""Bounded retries with exponential backoff for transient store faults."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from sqlalchemy.exc import DBAPIError, DisconnectionError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

logger = structlog.get_logger()

T = TypeVar("T")

# Message fragments of connectivity faults reported by drivers and proxies
TRANSIENT_PATTERNS = (
    "fetch failed",
    "und_err_socket",
    "other side closed",
    "etimedout",
    "econnreset",
    "econnrefused",
    "connection reset",
    "connection refused",
    "timed out",
    "server unreachable",
    "database is locked",
)

# Service-level transient codes: engine unreachable, gateway refused/timeout
ENGINE_UNREACHABLE = "P6000"
GATEWAY_CONNECTION_ERROR = "P6008"
RETRYABLE_CODES = frozenset({ENGINE_UNREACHABLE, GATEWAY_CONNECTION_ERROR})

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 0.2
DEFAULT_JITTER_RATIO = 0.5


def _error_text(error: BaseException) -> str:
    """Error message including its direct cause, lower-cased."""
    text = str(error)
    if error.__cause__ is not None:
        text = f"{text} {error.__cause__}"
    return text.lower()


def is_transient(error: BaseException) -> bool:
    """Return True if ``error`` is a connectivity fault worth retrying.

    Validation, constraint and not-found errors are never transient.
    """
    code = getattr(error, "code", None)
    if isinstance(code, str) and code in RETRYABLE_CODES:
        return True
    if isinstance(error, ConnectionError | TimeoutError | DisconnectionError | PoolTimeoutError):
        return True
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return True
    text = _error_text(error)
    return any(pattern in text for pattern in TRANSIENT_PATTERNS)


class wait_proportional_jitter(wait_base):  # noqa: N801
    """Wait ``base * 2**n`` plus up to ``ratio`` of it, n being the failed attempt (0-indexed)."""

    def __init__(
        self,
        base: float = DEFAULT_BASE_DELAY,
        ratio: float = DEFAULT_JITTER_RATIO,
        rng: random.Random | None = None,
    ) -> None:
        self.base = base
        self.ratio = ratio
        self._rng = rng or random.Random()  # noqa: S311

    def __call__(self, retry_state: RetryCallState) -> float:
        delay = self.base * 2 ** (retry_state.attempt_number - 1)
        return delay + self._rng.uniform(0, delay * self.ratio)


def _log_retry(description: str) -> Callable[[RetryCallState], None]:
    def _before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        next_action = retry_state.next_action
        logger.warning(
            "retrying_store_call",
            call=description,
            attempt=retry_state.attempt_number,
            wait_s=round(next_action.sleep, 3) if next_action else None,
            error=str(error),
        )

    return _before_sleep


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    *,
    base_delay: float = DEFAULT_BASE_DELAY,
    jitter_ratio: float = DEFAULT_JITTER_RATIO,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: random.Random | None = None,
    description: str = "store_call",
) -> T:
    """Run ``operation`` retrying transient faults with backoff.

    Args:
        operation: No-argument coroutine factory for one store call.
        max_retries: Additional attempts after the first (total = max_retries + 1).
        base_delay: First wait in seconds, doubled after every failure.
        jitter_ratio: Maximum random extra wait as a fraction of the delay.
        sleep: Awaitable sleep, replaceable in tests.
        rng: Random source for jitter.
        description: Call name used in retry log events.

    Returns:
        Result of the first successful attempt.

    Raises:
        Exception: The last error, unchanged, when it is not transient or
            attempts are exhausted.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_proportional_jitter(base_delay, jitter_ratio, rng),
        retry=retry_if_exception(is_transient),
        before_sleep=_log_retry(description),
        sleep=sleep,
        reraise=True,
    )
    # operation may be a plain lambda returning a coroutine
    async for attempt in retrying:
        with attempt:
            return await operation()
    raise AssertionError("retry loop ended without a result")  # pragma: no cover
