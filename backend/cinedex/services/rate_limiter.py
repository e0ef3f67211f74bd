"""
Cinedex Backend: Per-IP Token Bucket Limiter
==============================================

What:  Decides whether a client IP may make another request right now.
How:   Each IP gets a token bucket holding up to `burst` tokens that refills
       at `rps` tokens per second. A request spends one token; an empty
       bucket means 429. Buckets are created lazily on first sight.

       A sweeper task (started from the app lifespan) wakes every 60s and
       evicts buckets idle for more than 180s, bounding memory to the set
       of recently active clients.

Concurrency:
    One asyncio.Lock guards the bucket map for both lookups and sweeps.
    This is single-process state; each uvicorn worker limits independently.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

SWEEP_INTERVAL = 60.0
IDLE_TIMEOUT = 180.0


@dataclass
class TokenBucket:
    rate: float
    burst: int
    tokens: float
    updated: float

    def allow(self, now: float) -> bool:
        elapsed = max(0.0, now - self.updated)
        self.tokens = min(float(self.burst), self.tokens + elapsed * self.rate)
        self.updated = now
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False


@dataclass
class _Client:
    bucket: TokenBucket
    last_seen: float


class RateLimiter:
    def __init__(
        self,
        rps: float,
        burst: int,
        idle_timeout: float = IDLE_TIMEOUT,
        sweep_interval: float = SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rps = rps
        self.burst = burst
        self.idle_timeout = idle_timeout
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._clients: Dict[str, _Client] = {}
        self._lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._clients)

    async def allow(self, ip: str) -> bool:
        async with self._lock:
            now = self._clock()
            client = self._clients.get(ip)
            if client is None:
                client = _Client(
                    bucket=TokenBucket(self.rps, self.burst, float(self.burst), now),
                    last_seen=now,
                )
                self._clients[ip] = client
            client.last_seen = now
            return client.bucket.allow(now)

    async def sweep(self) -> int:
        """Evict idle clients. Returns how many were removed."""
        async with self._lock:
            cutoff = self._clock() - self.idle_timeout
            idle = [ip for ip, c in self._clients.items() if c.last_seen < cutoff]
            for ip in idle:
                del self._clients[ip]
        if idle:
            logger.debug("Evicted %d idle rate-limit buckets", len(idle))
        return len(idle)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            await self.sweep()

    def start(self) -> None:
        if self._sweeper is None:
            self._sweeper = asyncio.create_task(self._sweep_forever(), name="rate-limit-sweeper")

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
