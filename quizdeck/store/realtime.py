"""Async real-time store interface used by student clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
import logging
from typing import Any, Callable

from quizdeck.store.shared_store import SharedSessionStore

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[Any], None]
ErrorHandler = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class RealtimeStore(ABC):
    """Opaque shared store offering read, write, merge and subscribe primitives.

    ``update`` must merge the given fields into the node at ``path`` and leave
    every other child untouched; the session protocol relies on it so that
    concurrent writers touching disjoint fields never overwrite each other.
    """

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Return the current value at ``path`` or ``None``."""

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the value at ``path``."""

    @abstractmethod
    async def update(self, path: str, fields: dict[str, Any]) -> None:
        """Merge ``fields`` into the node at ``path``."""

    @abstractmethod
    def subscribe(
        self,
        path: str,
        on_change: ChangeHandler,
        on_error: ErrorHandler | None = None,
    ) -> Unsubscribe:
        """Deliver the current value and every later change at ``path``.

        Must be called from a running event loop; callbacks run on that loop.
        """

    async def aclose(self) -> None:
        return None


class LocalRealtimeStore(RealtimeStore):
    """Adapter exposing a ``SharedSessionStore`` from the same process."""

    def __init__(self, shared: SharedSessionStore) -> None:
        self._shared = shared

    async def get(self, path: str) -> Any:
        return self._shared.read(path)

    async def set(self, path: str, value: Any) -> None:
        self._shared.write(path, value)

    async def update(self, path: str, fields: dict[str, Any]) -> None:
        self._shared.merge(path, fields)

    def subscribe(
        self,
        path: str,
        on_change: ChangeHandler,
        on_error: ErrorHandler | None = None,
    ) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        active = True

        def emit(value: Any) -> None:
            if active:
                on_change(value)

        def forward(value: Any) -> None:
            try:
                loop.call_soon_threadsafe(emit, value)
            except RuntimeError:
                logger.debug("Dropping change for %s: subscriber loop is closed", path)

        stop_listening = self._shared.listen(path, forward)
        loop.call_soon(emit, self._shared.read(path))

        def unsubscribe() -> None:
            nonlocal active
            active = False
            stop_listening()

        return unsubscribe
