import asyncio

import pytest

from app.core.rate_limit import InMemoryRateLimiter, RateLimitExceeded, RateLimitRule


@pytest.mark.asyncio
async def test_rate_limiter_blocks_after_limit() -> None:
    limiter = InMemoryRateLimiter()
    rule = RateLimitRule(limit=2, window_seconds=60)

    assert await limiter.allow("session-a", rule)
    assert await limiter.allow("session-a", rule)
    assert not await limiter.allow("session-a", rule)


@pytest.mark.asyncio
async def test_rate_limiter_resets_after_window() -> None:
    limiter = InMemoryRateLimiter()
    rule = RateLimitRule(limit=1, window_seconds=1)

    assert await limiter.allow("session-b", rule)
    assert not await limiter.allow("session-b", rule)

    await asyncio.sleep(1.05)
    assert await limiter.allow("session-b", rule)


@pytest.mark.asyncio
async def test_rate_limiter_check_reports_retry_after() -> None:
    limiter = InMemoryRateLimiter()
    rule = RateLimitRule(limit=1, window_seconds=30)

    await limiter.check("customer-1", rule)
    with pytest.raises(RateLimitExceeded) as exc_info:
        await limiter.check("customer-1", rule)

    assert exc_info.value.key == "customer-1"
    assert 0 < exc_info.value.retry_after <= 30
    # Other identities keep their own window.
    assert await limiter.allow("customer-2", rule)
