"""
Scheduled Broadcast Poller

Background loop started in the service lifespan. Every interval it asks
BroadcastService to send the scheduled broadcasts that are due.
"""

import asyncio
import logging
from typing import Optional

from .broadcast_service import BroadcastService

logger = logging.getLogger(__name__)


class ScheduledBroadcastPoller:
    """Polls for due scheduled broadcasts until stopped"""

    def __init__(
        self,
        broadcast_service: BroadcastService,
        interval: float = 60.0,
        shutdown_event: Optional[asyncio.Event] = None,
    ):
        self.broadcast_service = broadcast_service
        self.interval = interval
        self.shutdown_event = shutdown_event or asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def run(self) -> None:
        """Run until the shutdown event is set"""
        logger.info(f"Scheduled broadcast poller started (interval={self.interval}s)")
        while not self.shutdown_event.is_set():
            await self.run_once()
            await self._wait(self.interval)
        logger.info("Scheduled broadcast poller stopped")

    async def run_once(self) -> int:
        """One poll cycle; returns the number of broadcasts processed"""
        try:
            result = await self.broadcast_service.process_scheduled()
        except Exception as e:
            logger.error(f"Scheduled broadcast poll failed: {e}", exc_info=True)
            return 0

        if result.processed:
            failed = sum(1 for r in result.results if not r.success)
            logger.info(f"Scheduled poll processed {result.processed} broadcasts ({failed} failed)")
        return result.processed

    async def _wait(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self.shutdown_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def start(self) -> asyncio.Task:
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        self.shutdown_event.set()
        if self._task is not None:
            await self._task
            self._task = None


__all__ = ["ScheduledBroadcastPoller"]
