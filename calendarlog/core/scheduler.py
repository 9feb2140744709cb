"""Asyncio-backed job scheduler for delayed actions such as reminders."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable

from calendarlog.core.interfaces import ActionHandler
from calendarlog.core.time_utils import ensure_utc, now_utc
from calendarlog.exceptions import SchedulerError

logger = logging.getLogger(__name__)


class AsyncioJobScheduler:
    """Runs registered actions at a future instant on the running event loop.

    Jobs are keyed by a dedupe key: scheduling an existing key replaces the
    pending job. Jobs whose time has already passed run immediately.
    Delivery ends with the process; nothing is persisted.
    """

    def __init__(self, clock: Callable[[], datetime] = now_utc) -> None:
        self._clock = clock
        self._actions: dict[str, ActionHandler] = {}
        self._jobs: dict[str, asyncio.Task] = {}

    def register_action(self, action_name: str, handler: ActionHandler) -> None:
        self._actions[action_name] = handler
        logger.debug("Registered scheduler action %s", action_name)

    def schedule(self, action_name: str, payload: Any, when_utc: datetime, dedupe_key: str) -> None:
        """Schedule ``action_name(payload)`` at ``when_utc``.

        Must be called with a running event loop.

        Raises:
            SchedulerError: If ``action_name`` is not registered
        """
        if action_name not in self._actions:
            raise SchedulerError(f"Unknown scheduler action: {action_name!r}")

        self.unschedule(dedupe_key)
        delay = max(0.0, (ensure_utc(when_utc) - self._clock()).total_seconds())
        loop = asyncio.get_running_loop()
        self._jobs[dedupe_key] = loop.create_task(
            self._run(dedupe_key, action_name, payload, delay),
            name=f"job:{dedupe_key}",
        )
        logger.debug("Scheduled %s as %s in %.1fs", action_name, dedupe_key, delay)

    def unschedule(self, dedupe_key: str) -> None:
        task = self._jobs.pop(dedupe_key, None)
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Unscheduled job %s", dedupe_key)

    def pending(self) -> list[str]:
        """Dedupe keys of jobs that have not run yet."""
        return [key for key, task in self._jobs.items() if not task.done()]

    async def _run(self, dedupe_key: str, action_name: str, payload: Any, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._jobs.get(dedupe_key) is asyncio.current_task():
            del self._jobs[dedupe_key]
        try:
            await self._actions[action_name](payload)
        except Exception:
            logger.exception("Scheduled action %s (%s) failed", action_name, dedupe_key)

    async def shutdown(self) -> None:
        """Cancel all pending jobs."""
        logger.debug("Shutting down scheduler with %d pending jobs", len(self.pending()))
        tasks = list(self._jobs.values())
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._jobs.clear()
