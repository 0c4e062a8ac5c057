# =============================================================================
# Realtime Client -- Reconnect Scheduler
# =============================================================================
#
# Exponential backoff with additive jitter, plus a single pending-timer slot.
# =============================================================================

from __future__ import annotations

import asyncio
import random
from typing import Any, Callable

from ._logging import logger
from .types import ReconnectPolicy


class ReconnectScheduler:
    """Decides whether and when to retry, and holds at most one retry timer.

    Args:
        policy: Backoff policy. Defaults to :class:`ReconnectPolicy`.
    """

    def __init__(self, policy: ReconnectPolicy | None = None) -> None:
        self._policy = policy or ReconnectPolicy()
        self._timer: asyncio.Task[None] | None = None
        self.enabled = True

    @property
    def policy(self) -> ReconnectPolicy:
        return self._policy

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def should_retry(self, attempt: int) -> bool:
        """True if auto-reconnect is on and *attempt* is below the budget."""
        return self.enabled and attempt < self._policy.max_attempts

    def compute_delay(self, attempt: int) -> float:
        """Delay in seconds for the 1-indexed *attempt*.

        ``base * 2**(attempt-1) + uniform(0, jitter_max)``, capped at
        ``max_delay``.
        """
        p = self._policy
        exponent = max(attempt, 1) - 1
        delay = p.base_delay * (2**exponent)
        jitter = random.uniform(0.0, p.jitter_max) if p.jitter_max > 0 else 0.0
        return min(delay + jitter, p.max_delay)

    def schedule(self, callback: Callable[[], Any], delay: float) -> None:
        """Arm the retry timer, replacing any timer already pending."""
        self.cancel()
        self._timer = asyncio.ensure_future(self._fire_after(callback, delay))

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _fire_after(self, callback: Callable[[], Any], delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return

        # Fired: free the slot before the callback can arm a new timer
        self._timer = None
        try:
            callback()
        except Exception as exc:
            logger.error("Reconnect callback failed: %s", exc)
