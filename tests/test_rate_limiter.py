from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi import Request

from app.core import rate_limit as rate_limit_module
from app.core.rate_limit import InMemorySlidingWindowRateLimiter, enforce_rate_limit, resolve_client_ip
from app.shared.exceptions import RateLimitException


@pytest.mark.asyncio
async def test_sliding_window_blocks_after_limit_and_recovers() -> None:
    now_point = [100.0]
    limiter = InMemorySlidingWindowRateLimiter(now_provider=lambda: now_point[0])

    first_allowed, first_retry = await limiter.acquire("k", max_requests=2, window_seconds=10)
    second_allowed, second_retry = await limiter.acquire("k", max_requests=2, window_seconds=10)
    third_allowed, third_retry = await limiter.acquire("k", max_requests=2, window_seconds=10)

    assert first_allowed is True
    assert first_retry == 0
    assert second_allowed is True
    assert second_retry == 0
    assert third_allowed is False
    assert third_retry == 10

    now_point[0] = 110.01
    fourth_allowed, fourth_retry = await limiter.acquire("k", max_requests=2, window_seconds=10)
    assert fourth_allowed is True
    assert fourth_retry == 0


@pytest.mark.asyncio
async def test_clear_drops_all_counters() -> None:
    limiter = InMemorySlidingWindowRateLimiter(now_provider=lambda: 200.0)

    await limiter.acquire("login:1.1.1.1", max_requests=1, window_seconds=60)
    blocked, _ = await limiter.acquire("login:1.1.1.1", max_requests=1, window_seconds=60)
    assert blocked is False

    await limiter.clear()
    allowed_again, retry_after = await limiter.acquire(
        "login:1.1.1.1",
        max_requests=1,
        window_seconds=60,
    )
    assert allowed_again is True
    assert retry_after == 0


def _make_request(client_ip: str, forwarded_for: str | None = None) -> Request:
    headers = [(b"x-forwarded-for", forwarded_for.encode())] if forwarded_for else []
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/v1/identity/login",
        "headers": headers,
        "client": (client_ip, 12345),
        "scheme": "http",
        "server": ("testserver", 80),
        "query_string": b"",
    }
    return Request(scope)


def test_forwarded_header_is_ignored_from_untrusted_clients() -> None:
    request = _make_request("203.0.113.9", forwarded_for="198.51.100.1")
    assert resolve_client_ip(request, trusted_proxy_ips={"127.0.0.1"}) == "203.0.113.9"


def test_forwarded_header_is_honoured_from_trusted_proxy() -> None:
    request = _make_request("127.0.0.1", forwarded_for="198.51.100.1, 10.0.0.1")
    assert resolve_client_ip(request, trusted_proxy_ips={"127.0.0.1"}) == "198.51.100.1"


@pytest.mark.asyncio
async def test_fraud_report_budget_is_per_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(rate_limit_module, "_rate_limiter", InMemorySlidingWindowRateLimiter(lambda: 50.0))
    monkeypatch.setattr(rate_limit_module, "get_settings", lambda: SimpleNamespace(rate_limit_window_seconds=60))

    await enforce_rate_limit(action="fraud_report", identity="student-1", max_requests=1)
    await enforce_rate_limit(action="fraud_report", identity="student-2", max_requests=1)

    with pytest.raises(RateLimitException):
        await enforce_rate_limit(action="fraud_report", identity="student-1", max_requests=1)
