"""
Tianyi Router Client - Connection Limits

Home gateways serve their admin UI from a tiny embedded web server that handles
very few requests at once. This module bounds in-flight requests and paces them.
"""

import asyncio
from contextlib import asynccontextmanager

from aiolimiter import AsyncLimiter


class ConnectionLimiter:
    """Bounds concurrent gateway requests and their rate."""

    def __init__(self, max_concurrency: int = 1, requests_per_second: float = 5.0):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self.semaphore = asyncio.Semaphore(max_concurrency)
        self.rate_limiter = AsyncLimiter(max_rate=requests_per_second, time_period=1.0)
        self.in_flight = 0

    @asynccontextmanager
    async def slot(self):
        """Hold one request slot for the duration of the block."""
        async with self.semaphore:
            await self.rate_limiter.acquire()
            self.in_flight += 1
            try:
                yield
            finally:
                self.in_flight -= 1
