import asyncio

import pytest

from zkpret_mcp.rate_limiter import PerKeyRateLimiter


@pytest.mark.asyncio
async def test_per_key_rate_limiter_allows_then_blocks():
    limiter = PerKeyRateLimiter(rate_per_sec=1, burst=1)
    assert await limiter.allow("proof_generate")
    assert not await limiter.allow("proof_generate")
    # Other tools have their own bucket.
    assert await limiter.allow("server_info")
    await asyncio.sleep(1.05)
    assert await limiter.allow("proof_generate")


@pytest.mark.asyncio
async def test_per_tool_override():
    limiter = PerKeyRateLimiter(rate_per_sec=10, burst=5, per_tool={"contract_deploy": 0.1})
    assert await limiter.allow("contract_deploy")
    assert await limiter.allow("wallet_create")
    slow = limiter._limiters["contract_deploy"]
    fast = limiter._limiters["wallet_create"]
    assert slow.bucket.rate == pytest.approx(0.1)
    assert slow.bucket.capacity == pytest.approx(1.0)
    assert fast.bucket.rate == pytest.approx(10)
    assert fast.bucket.capacity == pytest.approx(5)
