"""Background auto-sync worker."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .config import settings
from .sync.sync_engine import SyncEngine

logger = logging.getLogger(__name__)


class AutoSyncWorker:
    """Runs the system-wide batch sync on a fixed interval."""

    def __init__(self, engine: SyncEngine, interval_seconds: float | None = None) -> None:
        self.engine = engine
        self.interval = interval_seconds or settings.auto_sync_interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="salesboard-auto-sync")

    async def stop(self) -> None:
        """Stop scheduling; a batch already running finishes its started connections."""
        if self._task is None:
            return
        self._stop_event.set()
        self.engine.request_stop()
        try:
            await self._task
        finally:
            self._task = None

    async def run_once(self):
        result = await self.engine.sync_all()
        logger.info(
            "Auto-sync: %d connections, %d imported, %d failed",
            len(result.connections), result.imported, result.failed,
        )
        return result

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Auto-sync loop failed")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
