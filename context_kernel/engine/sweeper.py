"""
Memory Sweeper — background maintenance for one engine.

Each tick:
  1. Expire entities whose tier TTL has elapsed
  2. If an auto-save cron schedule is configured and due, write a
     short-term snapshot on a worker thread

A failed sweep or save is logged and simply retried on the next tick.
The loop stops when its stop event is set.
"""

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from croniter import croniter

from context_kernel.models.entity import MemoryTier
from context_kernel.observability.logging import session_logger

if TYPE_CHECKING:
    from context_kernel.engine.context_engine import ContextEngine


class MemorySweeper:

    def __init__(
        self,
        engine: "ContextEngine",
        interval_seconds: float = 30,
        auto_save_schedule: Optional[str] = None,
        auto_save_filename: str = "autosave.mem",
    ):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.auto_save_schedule = auto_save_schedule
        self.auto_save_filename = auto_save_filename
        self._next_save: Optional[datetime] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.ticks = 0
        self._log = session_logger(__name__, engine.session_id)

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    def sweep(self, now: Optional[datetime] = None) -> List[str]:
        """Run the TTL sweep once. Returns the expired entity ids."""
        try:
            return self.engine.cleanup_expired_entities(now)
        except Exception:
            self._log.exception("sweep_failed")
            return []

    def auto_save_due(self, now: Optional[datetime] = None) -> bool:
        """True once per cron fire time of the auto-save schedule."""
        if not self.auto_save_schedule:
            return False
        if now is None:
            now = self.engine.store.now()
        if self._next_save is None:
            self._next_save = croniter(self.auto_save_schedule, now).get_next(datetime)
            return False
        if now < self._next_save:
            return False
        self._next_save = croniter(self.auto_save_schedule, now).get_next(datetime)
        return True

    async def tick(self, now: Optional[datetime] = None) -> List[str]:
        expired = self.sweep(now)
        if self.auto_save_due(now):
            saved = await self.engine.save_snapshot_async(
                self.auto_save_filename, MemoryTier.SHORT_TERM
            )
            if not saved:
                self._log.warning("auto_save_failed", filename=self.auto_save_filename)
        self.ticks += 1
        return expired

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run the maintenance loop until the stop event is set."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()
        self._stop_event = stop_event

        try:
            while not stop_event.is_set():
                await self.tick()
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False

    def start(self) -> asyncio.Task:
        """Schedule the loop on the running event loop."""
        if self._task is not None and not self._task.done():
            return self._task
        self._stop_event = asyncio.Event()
        self._task = asyncio.ensure_future(self.run_async(self._stop_event))
        return self._task

    async def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
