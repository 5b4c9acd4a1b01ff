"""
Tests for Tianyi router client connection limits.

This module tests the limiter that bounds in-flight gateway requests and paces
them with a rate limiter.
"""

import asyncio

import pytest

from tianyi_router.core.connection import ConnectionLimiter


class TestConnectionLimiterCreation:
    """Test ConnectionLimiter construction."""

    def test_defaults(self):
        limiter = ConnectionLimiter()

        assert limiter.max_concurrency == 1
        assert limiter.in_flight == 0
        assert limiter.rate_limiter is not None

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            ConnectionLimiter(max_concurrency=0)


@pytest.mark.asyncio
class TestConnectionLimiterSlots:
    """Test that slots bound concurrency."""

    async def test_slot_tracks_in_flight(self):
        limiter = ConnectionLimiter(max_concurrency=2, requests_per_second=1000)

        async with limiter.slot():
            assert limiter.in_flight == 1
        assert limiter.in_flight == 0

    async def test_slot_released_on_error(self):
        limiter = ConnectionLimiter(requests_per_second=1000)

        with pytest.raises(RuntimeError):
            async with limiter.slot():
                raise RuntimeError("boom")
        assert limiter.in_flight == 0

    async def test_concurrency_never_exceeds_limit(self):
        limiter = ConnectionLimiter(max_concurrency=2, requests_per_second=1000)
        peak = 0

        async def worker():
            nonlocal peak
            async with limiter.slot():
                peak = max(peak, limiter.in_flight)
                await asyncio.sleep(0.01)

        await asyncio.gather(*(worker() for _ in range(6)))

        assert peak == 2
        assert limiter.in_flight == 0
