"""Which slide a student sees: follow the teacher while locked, roam when unlocked."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Any, Callable

from quizdeck.constants.sync_constants import SLIDE_TRANSITION_SECONDS, WIGGLE_SECONDS
from quizdeck.core.models import to_iso, utc_now
from quizdeck.store.paths import student_path
from quizdeck.store.realtime import RealtimeStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SlideInteraction:
    """Per-slide input state that is discarded whenever the visible slide changes."""

    selected_option: str | None = None
    text_answer: str = ""
    external_answer: Any = None
    show_result: bool = False
    slide_started_at: datetime = field(default_factory=utc_now)

    def reset(self, now: datetime) -> None:
        self.selected_option = None
        self.text_answer = ""
        self.external_answer = None
        self.show_result = False
        self.slide_started_at = now


class SlidePositionSynchronizer:
    """Computes the effective slide index and writes position pings.

    Position pings are best-effort: a failure is logged and never retried.
    """

    def __init__(
        self,
        store: RealtimeStore,
        session_id: str,
        student_id: str,
        *,
        clock: Callable[[], datetime] = utc_now,
        on_change: Callable[[], None] | None = None,
        transition_seconds: float = SLIDE_TRANSITION_SECONDS,
        wiggle_seconds: float = WIGGLE_SECONDS,
    ) -> None:
        self._store = store
        self._path = student_path(session_id, student_id)
        self._clock = clock
        self._on_change = on_change
        self._transition_seconds = transition_seconds
        self._wiggle_seconds = wiggle_seconds
        self._pending: set[asyncio.Task] = set()

        self.local_index = 0
        self.remote_index = 0
        self.is_locked = True
        self.slide_count = 0
        self.is_transitioning = False
        self.show_wiggle = False
        self.interaction = SlideInteraction(slide_started_at=clock())

    @property
    def effective_index(self) -> int:
        return self.remote_index if self.is_locked else self.local_index

    def restore(self, local_index: int, *, is_locked: bool, remote_index: int, slide_count: int) -> None:
        """Seed from a join or reconnect without writing anything."""
        self.slide_count = slide_count
        self.is_locked = is_locked
        self.remote_index = remote_index
        self.local_index = self._clamp(remote_index if is_locked else local_index)
        self.interaction.reset(self._clock())

    def apply_remote(self, *, is_locked: bool, remote_index: int, slide_count: int) -> bool:
        """Apply session-level fields from a snapshot; return True if the view moved."""
        before = self.effective_index
        remote_moved = remote_index != self.remote_index
        self.slide_count = slide_count
        self.is_locked = is_locked
        self.remote_index = remote_index

        if is_locked and remote_moved:
            self.local_index = remote_index
            self._pulse("is_transitioning", self._transition_seconds)
            self._spawn(self._ping({"current_slide_index": remote_index}))

        moved = self.effective_index != before
        if moved:
            self.interaction.reset(self._clock())
        return moved

    def can_move(self, delta: int) -> bool:
        if self.is_locked:
            return False
        target = self.local_index + delta
        return 0 <= target < self.slide_count

    async def step(self, delta: int, *, blocked: bool = False) -> bool:
        """Move by ``delta`` when unlocked.

        ``blocked`` is the caller's answer gate (an unanswered activity); it
        refuses the move and pulses the wiggle cue.
        """
        if not self.can_move(delta):
            return False
        if blocked:
            self._pulse("show_wiggle", self._wiggle_seconds)
            return False
        self.local_index += delta
        self.interaction.reset(self._clock())
        self._notify()
        await self._ping(
            {"current_slide_index": self.local_index, "last_seen_at": to_iso(self._clock())}
        )
        return True

    async def drain(self) -> None:
        """Wait for scheduled position pings (used on teardown and in tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _clamp(self, index: int) -> int:
        if self.slide_count <= 0:
            return 0
        return max(0, min(index, self.slide_count - 1))

    async def _ping(self, fields: dict[str, Any]) -> None:
        try:
            await self._store.update(self._path, fields)
        except Exception as exc:
            logger.warning("Slide position write for %s failed: %s", self._path, exc)

    def _spawn(self, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            return
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _pulse(self, flag: str, seconds: float) -> None:
        setattr(self, flag, True)
        self._notify()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            setattr(self, flag, False)
            return

        def clear() -> None:
            setattr(self, flag, False)
            self._notify()

        loop.call_later(seconds, clear)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
