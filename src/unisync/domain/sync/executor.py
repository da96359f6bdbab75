"""Pacing and quota-aware retries around remote calls."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from aiolimiter import AsyncLimiter

from .errors import QuotaExceededError, RetryExhaustedError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = getLogger(__name__)

type Operation[T] = Callable[[], Awaitable[T]]
type Sleep = Callable[[float], Awaitable[None]]
type ErrorClassifier = Callable[[BaseException], bool]

RATE_LIMIT_STATUS: Final[int] = 429
QUOTA_MARKERS: Final[tuple[str, ...]] = ("quota", "rate limit", "ratelimit")


def is_quota_error(error: BaseException) -> bool:
    """Return whether ``error`` signals rate limiting rather than a hard failure."""

    if isinstance(error, QuotaExceededError):
        return True
    response = getattr(error, "response", None)
    if getattr(response, "status_code", None) == RATE_LIMIT_STATUS:
        return True
    for attribute in ("status_code", "code", "status"):
        if getattr(error, attribute, None) == RATE_LIMIT_STATUS:
            return True
    message = str(error).lower()
    return any(marker in message for marker in QUOTA_MARKERS)


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    max_retries: int = 3
    base_backoff_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.base_backoff_seconds < 0:
            raise ValueError("base_backoff_seconds must be non-negative")

    def delay_for(self, attempt: int) -> float:
        return self.base_backoff_seconds * (2**attempt)


class ConnectionPacer:
    """Hands out one limiter per connection so spacing never leaks across connections."""

    def __init__(self, spacing_seconds: float) -> None:
        if spacing_seconds < 0:
            raise ValueError("spacing_seconds must be non-negative")
        self.spacing_seconds = spacing_seconds
        self._limiters: dict[str, AsyncLimiter] = {}

    def limiter_for(self, connection_id: str) -> AsyncLimiter | None:
        if self.spacing_seconds == 0:
            return None
        limiter = self._limiters.get(connection_id)
        if limiter is None:
            limiter = AsyncLimiter(1, self.spacing_seconds)
            self._limiters[connection_id] = limiter
        return limiter


class RateLimitedExecutor:
    """Run remote operations with per-connection pacing and quota backoff.

    Quota failures are retried up to ``policy.max_retries`` times, sleeping
    ``base * 2**attempt`` between attempts. Any other failure propagates on the
    first occurrence. A call that is still rate limited after
    ``max_retries + 1`` attempts raises ``RetryExhaustedError``.
    """

    def __init__(
        self,
        *,
        connection_id: str,
        policy: BackoffPolicy | None = None,
        pacer: ConnectionPacer | None = None,
        sleep: Sleep = asyncio.sleep,
        classify: ErrorClassifier = is_quota_error,
    ) -> None:
        self.connection_id = connection_id
        self.policy = policy or BackoffPolicy()
        self._limiter = pacer.limiter_for(connection_id) if pacer is not None else None
        self._sleep = sleep
        self._classify = classify
        self.calls_issued = 0

    async def execute[T](self, operation: Operation[T]) -> T:
        attempt = 0
        while True:
            await self._pace()
            self.calls_issued += 1
            try:
                return await operation()
            except Exception as exc:
                if not self._classify(exc):
                    raise
                if attempt >= self.policy.max_retries:
                    log.error(
                        "Connection %s: giving up after %d rate-limited attempts",
                        self.connection_id,
                        attempt + 1,
                    )
                    raise RetryExhaustedError(attempt + 1, exc) from exc
                delay = self.policy.delay_for(attempt)
                log.warning(
                    "Connection %s rate limited, retrying in %.2fs (attempt %d/%d): %s",
                    self.connection_id,
                    delay,
                    attempt + 1,
                    self.policy.max_retries,
                    exc,
                )
                await self._sleep(delay)
                attempt += 1

    async def _pace(self) -> None:
        if self._limiter is not None:
            await self._limiter.acquire()
