"""
Background Maintenance Tasks

Runs the trash purge worker alongside the API: soft-deleted tasks older than
the retention window are permanently removed on a fixed interval.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_PURGE_INTERVAL = 3600  # 1 hour in seconds


class BackgroundTasks:
    """Manager for background maintenance workers."""

    def __init__(self):
        self.tasks: List[asyncio.Task] = []
        self.shutdown_event = asyncio.Event()
        self.last_purge_time: Optional[datetime] = None
        self.total_purged = 0

    async def start_background_tasks(self, actions, retention_days: int,
                                     interval: float = DEFAULT_PURGE_INTERVAL):
        """
        Start maintenance workers.

        Args:
            actions: NoteActions used for the purge
            retention_days: Trash retention in days; 0 disables the purge worker
            interval: Seconds between purge runs
        """
        self.shutdown_event = asyncio.Event()
        if retention_days <= 0:
            logger.info("Trash retention disabled, purge worker not started")
            return

        logger.info("Starting background tasks...")
        purge_task = asyncio.create_task(
            self._trash_purge_worker(actions, retention_days, interval)
        )
        self.tasks.append(purge_task)
        logger.info(f"Started {len(self.tasks)} background tasks")

    async def stop_background_tasks(self):
        """Stop all background tasks gracefully."""
        logger.info("Stopping background tasks...")
        self.shutdown_event.set()

        for task in self.tasks:
            if not task.done():
                task.cancel()

        if self.tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self.tasks, return_exceptions=True),
                    timeout=10.0
                )
                logger.info("All background tasks stopped")
            except asyncio.TimeoutError:
                logger.warning("Background task shutdown timeout")
        self.tasks = []

    def run_purge(self, actions, retention_days: int) -> int:
        """Purge expired trash once and record the run."""
        start_time = time.time()
        removed = actions.purge_expired(retention_days)
        self.total_purged += removed
        self.last_purge_time = datetime.now(timezone.utc)
        duration_ms = (time.time() - start_time) * 1000
        if removed > 0:
            logger.info(f"Purged {removed} expired tasks from trash in {duration_ms:.1f}ms")
        return removed

    async def _trash_purge_worker(self, actions, retention_days: int, interval: float):
        """Purge expired trash every ``interval`` seconds until shutdown."""
        logger.info("Trash purge worker started")

        while not self.shutdown_event.is_set():
            try:
                self.run_purge(actions, retention_days)
            except Exception as e:
                logger.error(f"Trash purge worker error: {e}")

            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=interval)
                break  # Shutdown requested
            except asyncio.TimeoutError:
                continue


# Global background task manager
background_tasks = BackgroundTasks()
