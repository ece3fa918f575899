"""Runs sync passes automatically on app start and when the device comes online."""
import asyncio
import logging
from typing import Callable, Optional, Set

from surveysync.services.connectivity import ConnectivityMonitor
from surveysync.services.sync_service import SyncService

logger = logging.getLogger(__name__)


class SyncTrigger:
    """Binds a SyncService to connectivity transitions."""

    def __init__(self, monitor: ConnectivityMonitor, sync_service: SyncService):
        self.monitor = monitor
        self.sync_service = sync_service
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._tasks: Set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def started(self) -> bool:
        return self._unsubscribe is not None

    async def start(self, run_now: bool = True) -> None:
        """Subscribe to connectivity changes and run the startup pass."""
        # Passes run on this loop even when report() is called from another thread
        self._loop = asyncio.get_running_loop()
        if self._unsubscribe is None:
            self._unsubscribe = self.monitor.subscribe(self._on_connectivity_change)
        if run_now:
            await self._safe_run("startup")

    def stop(self) -> None:
        """Unsubscribe; passes already scheduled still run to completion."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def wait_idle(self) -> None:
        """Wait until every scheduled pass has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _on_connectivity_change(self, is_online: bool) -> None:
        if not is_online:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        loop = self._loop or running
        if loop is None or loop.is_closed():
            logger.warning("Back online but no event loop is running; sync waits for next trigger")
            return
        if running is loop:
            self._schedule_pass()
        else:
            loop.call_soon_threadsafe(self._schedule_pass)

    def _schedule_pass(self) -> None:
        task = asyncio.get_running_loop().create_task(self._safe_run("connectivity"))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _safe_run(self, reason: str) -> None:
        try:
            await self.sync_service.run_sync()
        except Exception:
            # Next trigger retries
            logger.exception("Sync pass (%s) failed", reason)
