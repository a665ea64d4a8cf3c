"""Presence writes for one membership: heartbeat, focus, refresh and offline."""

from __future__ import annotations

import asyncio
from datetime import datetime
import logging
from typing import Any, Callable

from quizdeck.constants.sync_constants import HEARTBEAT_INTERVAL_SECONDS
from quizdeck.core.models import to_iso, utc_now
from quizdeck.core.services.retry import RetryPolicy, Sleep
from quizdeck.store.paths import student_path
from quizdeck.store.realtime import RealtimeStore

logger = logging.getLogger(__name__)


class PresenceHeartbeat:
    """Keeps ``is_online``/``is_focused``/``last_seen_at`` fresh for a student."""

    def __init__(
        self,
        store: RealtimeStore,
        session_id: str,
        student_id: str,
        *,
        interval: float = HEARTBEAT_INTERVAL_SECONDS,
        retry: RetryPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._store = store
        self._path = student_path(session_id, student_id)
        self._interval = interval
        self._retry = retry or RetryPolicy()
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()
        self.beats = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Write presence now and then every ``interval`` seconds until ``stop``."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def beat(self) -> None:
        await self._write_soft({"last_seen_at": self._now(), "is_online": True}, "heartbeat")
        self.beats += 1

    async def set_focused(self, focused: bool) -> None:
        await self._write_soft({"is_focused": focused, "last_seen_at": self._now()}, "focus update")

    async def refresh(self) -> None:
        """Re-assert presence through the retry wrapper; raises the last error."""
        fields = {"is_online": True, "is_focused": True, "last_seen_at": self._now()}
        await self._retry.run(lambda: self._store.update(self._path, fields), description="presence refresh")

    def signal_offline(self) -> None:
        """Fire-and-forget ``is_online: false``. Not awaited, not retried, may be lost."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.info("No running loop; offline signal for %s dropped", self._path)
            return
        task = loop.create_task(self._store.update(self._path, {"is_online": False}))
        self._pending.add(task)
        task.add_done_callback(self._offline_done)

    async def _run(self) -> None:
        while True:
            await self.beat()
            await self._sleep(self._interval)

    async def _write_soft(self, fields: dict[str, Any], description: str) -> None:
        try:
            await self._store.update(self._path, fields)
        except Exception as exc:
            logger.warning("%s for %s failed: %s", description, self._path, exc)

    def _offline_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.info("Offline signal for %s was lost: %s", self._path, task.exception())

    def _now(self) -> str | None:
        return to_iso(self._clock())
