"""Cached liveness probe for the MemOS API.

Every read and write path checks this first, so an outage costs one cheap
HEAD request per TTL window instead of a timeout on every hook.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from memos_lifecycle.client import MemosClient

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 30.0
RETRY_DELAY_SECONDS = 0.5


class HealthProbe:
    def __init__(
        self,
        client: MemosClient,
        ttl: float = CACHE_TTL_SECONDS,
        retry_delay: float = RETRY_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._ttl = ttl
        self._retry_delay = retry_delay
        self._clock = clock
        self._healthy = False
        self._checked_at: float | None = None

    async def is_healthy(self) -> bool:
        """Return True if MemOS answered a probe within the last TTL window."""
        now = self._clock()
        if self._checked_at is not None and now - self._checked_at < self._ttl:
            return self._healthy

        try:
            healthy = await self._client.probe()
            if not healthy:
                await asyncio.sleep(self._retry_delay)
                healthy = await self._client.probe()
        except Exception:
            logger.exception("Health probe failed unexpectedly")
            healthy = False

        if healthy != self._healthy or self._checked_at is None:
            log = logger.info if healthy else logger.warning
            log("MemOS health: %s", "up" if healthy else "unreachable")

        self._healthy = healthy
        self._checked_at = now
        return healthy

    def invalidate(self) -> None:
        """Force the next call to probe again."""
        self._checked_at = None
