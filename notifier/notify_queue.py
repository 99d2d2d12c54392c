"""Async notification queue: one delivery at a time, failures logged."""

import asyncio
import logging
from contextlib import suppress
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class NotificationQueue:
    """Queue and dedupe notification payloads for newly listed games."""

    def __init__(self, notify: Callable[..., None], status_logger: Optional[logging.Logger] = None):
        self.notify = notify
        self.logger = status_logger or logger

        self.queue: asyncio.Queue = asyncio.Queue()
        self.status_by_key: dict = {}
        self.delivered = 0
        self.failed = 0
        self._worker_task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        """Start the queue worker if it is not already running."""
        if self._worker_task is None or self._worker_task.done():
            self._worker_task = asyncio.create_task(self._worker())
        return self._worker_task

    async def stop(self, drain: bool = True) -> None:
        '''
        Stop the queue worker, delivering what is already queued first
        unless `drain` is False.
        '''
        if self._worker_task is None:
            return
        if drain and not self._worker_task.done():
            await self.queue.join()
        self._worker_task.cancel()
        with suppress(asyncio.CancelledError):
            await self._worker_task
        self._worker_task = None

    def enqueue(self, payload: dict) -> bool:
        '''
        Queue one payload. Returns False when the same key is already queued.
        '''
        key = payload.get("key")
        if key is not None and self.status_by_key.get(key) == "queued":
            return False
        if key is not None:
            self.status_by_key[key] = "queued"
        self.queue.put_nowait(payload)
        return True

    def _deliver(self, payload: dict) -> None:
        self.notify(
            payload["title"],
            payload["body"],
            payload.get("icon_path", ""),
            launch_url=payload.get("launch_url", ""),
        )

    async def _worker(self) -> None:
        while True:
            payload = await self.queue.get()
            key = payload.get("key")
            try:
                self._deliver(payload)
            except Exception:
                self.failed += 1
                self.logger.exception("Notification failed for %s", key)
            else:
                self.delivered += 1
            finally:
                self.status_by_key.pop(key, None)
                self.queue.task_done()
