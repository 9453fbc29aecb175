"""In-process sliding-window rate limiter and request dependencies."""

from __future__ import annotations

import asyncio
import math
from collections import defaultdict, deque
from collections.abc import Callable

from fastapi import Request

from app.core.config import get_settings
from app.shared.exceptions import RateLimitException


class InMemorySlidingWindowRateLimiter:
    """Rate limiter using sliding window over event timestamps."""

    def __init__(self, now_provider: Callable[[], float] | None = None) -> None:
        self._events: dict[str, deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._now = now_provider

    def _current_time(self) -> float:
        if self._now is not None:
            return self._now()
        return asyncio.get_running_loop().time()

    async def acquire(
        self,
        key: str,
        *,
        max_requests: int,
        window_seconds: int,
    ) -> tuple[bool, int]:
        """Try to reserve one request in the time window."""
        now = self._current_time()
        window_start = now - window_seconds

        async with self._lock:
            events = self._events[key]
            while events and events[0] <= window_start:
                events.popleft()

            if len(events) >= max_requests:
                retry_after = max(1, math.ceil((events[0] + window_seconds) - now))
                return False, retry_after

            events.append(now)
            return True, 0

    async def clear(self) -> None:
        """Drop all tracked counters (for tests)."""
        async with self._lock:
            self._events.clear()


_rate_limiter = InMemorySlidingWindowRateLimiter()


def get_rate_limiter() -> InMemorySlidingWindowRateLimiter:
    """Return the process-wide limiter."""
    return _rate_limiter


def resolve_client_ip(request: Request, *, trusted_proxy_ips: set[str]) -> str:
    """Client address, honouring X-Forwarded-For only from trusted proxies."""
    client_ip = "unknown"
    if request.client and request.client.host:
        client_ip = request.client.host

    forwarded_for = request.headers.get("x-forwarded-for")
    if not forwarded_for or client_ip not in trusted_proxy_ips:
        return client_ip

    forwarded_client = forwarded_for.split(",")[0].strip()
    return forwarded_client or client_ip


async def enforce_rate_limit(*, action: str, identity: str, max_requests: int) -> None:
    """Raise RateLimitException once `identity` exceeds its budget for `action`."""
    settings = get_settings()
    allowed, retry_after = await get_rate_limiter().acquire(
        f"{action}:{identity}",
        max_requests=max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    if not allowed:
        raise RateLimitException(
            f"Too many {action} requests. Try again in {retry_after} second(s).",
        )


async def enforce_login_rate_limit(request: Request) -> None:
    """Apply rate limit for login endpoint."""
    settings = get_settings()
    client_ip = resolve_client_ip(
        request,
        trusted_proxy_ips=set(settings.rate_limit_trusted_proxy_ips),
    )
    await enforce_rate_limit(
        action="login",
        identity=client_ip,
        max_requests=settings.rate_limit_login_requests,
    )
