"""
Presence Reaper

Background task that periodically sweeps stale records out of the
PresenceRegistry. Holds no record data of its own.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable

from flowclient_api.presence.record import utcnow
from flowclient_api.presence.registry import PresenceRegistry

logger = logging.getLogger(__name__)


class ReaperState(str, Enum):
    """Reaper lifecycle state."""
    IDLE = "idle"          # Waiting for the next tick
    SWEEPING = "sweeping"  # Inside a registry sweep
    STOPPED = "stopped"


class PresenceReaper:
    """
    Drives PresenceRegistry.sweep on a fixed interval.

    The clock is injectable so tests can run sweeps with controlled time.
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        timeout_seconds: float = 60.0,
        interval_seconds: float = 15.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the reaper.

        Args:
            registry: Registry to sweep
            timeout_seconds: Heartbeat age after which a client is offline
            interval_seconds: Time between sweeps
            clock: Source of "now" for each sweep
        """
        self._registry = registry
        self._timeout = timeout_seconds
        self._interval = interval_seconds
        self._clock = clock
        self._state = ReaperState.IDLE

        # Background task for cleanup
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> ReaperState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self._task is None:
            self._state = ReaperState.IDLE
            self._task = asyncio.create_task(self._loop())
            logger.info(
                f"Presence reaper started (timeout: {self._timeout}s, "
                f"interval: {self._interval}s)"
            )

    async def stop(self) -> None:
        """Cancel the background sweep loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Presence reaper stopped")
        self._state = ReaperState.STOPPED

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._interval)
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in presence cleanup loop: {e}", exc_info=True)

    async def run_once(self, now: datetime | None = None) -> int:
        """
        Perform a single sweep.

        Args:
            now: Reference time; the reaper's clock when omitted

        Returns:
            Number of records removed
        """
        self._state = ReaperState.SWEEPING
        try:
            removed = await self._registry.sweep(now or self._clock(), self._timeout)
        finally:
            if self._state == ReaperState.SWEEPING:
                self._state = ReaperState.IDLE

        if removed > 0:
            logger.info(
                f"[Cleanup] Removed {removed} inactive players. "
                f"Online: {self._registry.count}"
            )
        return removed
