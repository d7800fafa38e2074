"""Connectivity oracles.

The reconciler only needs a yes/no answer before it starts a run. Real
reachability detection belongs to the host platform; these oracles cover
the CLI and tests.
"""

import asyncio
import logging
import time
from typing import Any, Optional

logger = logging.getLogger(__name__)


class StaticConnectivity:
    """Oracle with a fixed answer that callers may flip."""

    def __init__(self, online: bool = True):
        self.online = online

    async def is_online(self) -> bool:
        return self.online


class ReplicaConnectivity:
    """Probe the replica's ``health_check`` and cache the answer.

    Args:
        replica: Any object with an async ``health_check() -> bool``.
        timeout: Probe timeout in seconds.
        cache_ttl: How long a result is reused, in seconds.
    """

    def __init__(self, replica: Any, timeout: float = 5.0, cache_ttl: float = 30.0):
        self._replica = replica
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._last_check: Optional[float] = None
        self._is_online_cached = False

    def invalidate(self) -> None:
        self._last_check = None

    async def is_online(self) -> bool:
        now = time.monotonic()
        if self._last_check is not None and now - self._last_check < self.cache_ttl:
            return self._is_online_cached

        try:
            self._is_online_cached = bool(
                await asyncio.wait_for(self._replica.health_check(), timeout=self.timeout)
            )
        except asyncio.TimeoutError:
            logger.debug("Connectivity check timed out after %.1fs", self.timeout)
            self._is_online_cached = False
        except Exception as e:
            logger.debug(f"Connectivity check failed: {e}", exc_info=True)
            self._is_online_cached = False

        self._last_check = now
        return self._is_online_cached
