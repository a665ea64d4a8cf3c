"""Thread-safe in-memory tree that plays the role of the real-time database.

The host process owns one instance. The Qt console and the FastAPI server
thread both write to it, and students reach it either in-process through
``LocalRealtimeStore`` or over HTTP.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
import logging
from threading import Lock
from typing import Any, Callable

from quizdeck.store.paths import split_path

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]

_MISSING = object()


@dataclass(slots=True)
class _Subscription:
    segments: list[str]
    callback: Listener
    last_value: Any = _MISSING


def _child(node: Any, segment: str) -> Any:
    if isinstance(node, dict):
        return node.get(segment)
    if isinstance(node, list):
        try:
            index = int(segment)
        except ValueError:
            return None
        if 0 <= index < len(node):
            return node[index]
    return None


def _set_child(node: dict | list, segment: str, value: Any) -> None:
    if isinstance(node, dict):
        if value is None:
            node.pop(segment, None)
        else:
            node[segment] = value
        return
    index = int(segment)
    if index < 0:
        raise IndexError(f"Negative list index in path: {segment}")
    while len(node) <= index:
        node.append(None)
    node[index] = value


def _is_related(a: list[str], b: list[str]) -> bool:
    shorter = min(len(a), len(b))
    return a[:shorter] == b[:shorter]


class SharedSessionStore:
    """Nested JSON tree addressed by ``/``-separated paths."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._root: dict[str, Any] = {}
        self._subscriptions: dict[int, _Subscription] = {}
        self._next_subscription_id = 0

    def read(self, path: str) -> Any:
        with self._lock:
            return deepcopy(self._lookup(split_path(path)))

    def write(self, path: str, value: Any) -> None:
        """Replace the node at ``path``. Writing ``None`` removes it."""
        segments = split_path(path)
        with self._lock:
            self._assign(segments, deepcopy(value))
            pending = self._collect_notifications([segments])
        self._dispatch(pending)

    def merge(self, path: str, fields: dict[str, Any]) -> None:
        """Field-level update: only the given children of ``path`` change.

        Keys may contain ``/`` to address deeper children. Missing parents are
        created.
        """
        base = split_path(path)
        touched = []
        with self._lock:
            for key, value in fields.items():
                segments = base + split_path(str(key))
                self._assign(segments, deepcopy(value))
                touched.append(segments)
            pending = self._collect_notifications(touched)
        self._dispatch(pending)

    def remove(self, path: str) -> None:
        self.write(path, None)

    def listen(self, path: str, callback: Listener) -> Callable[[], None]:
        """Call ``callback`` with the node at ``path`` whenever it changes.

        The callback runs in the writer's thread, outside the store lock. It
        is not invoked for the current value; callers read that themselves.
        """
        with self._lock:
            subscription_id = self._next_subscription_id
            self._next_subscription_id += 1
            segments = split_path(path)
            self._subscriptions[subscription_id] = _Subscription(
                segments=segments,
                callback=callback,
                last_value=deepcopy(self._lookup(segments)),
            )

        def unsubscribe() -> None:
            with self._lock:
                self._subscriptions.pop(subscription_id, None)

        return unsubscribe

    def listener_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    # --- internals (call with the lock held) ---

    def _lookup(self, segments: list[str]) -> Any:
        node: Any = self._root
        for segment in segments:
            node = _child(node, segment)
            if node is None:
                return None
        return node

    def _assign(self, segments: list[str], value: Any) -> None:
        if not segments:
            self._root = value if isinstance(value, dict) else {}
            return
        parent: Any = self._root
        for segment in segments[:-1]:
            child = _child(parent, segment)
            if not isinstance(child, (dict, list)):
                if value is None:
                    return
                child = {}
                _set_child(parent, segment, child)
            parent = child
        _set_child(parent, segments[-1], value)

    def _collect_notifications(self, touched: list[list[str]]) -> list[tuple[Listener, Any]]:
        pending = []
        for subscription in self._subscriptions.values():
            if not any(_is_related(subscription.segments, segments) for segments in touched):
                continue
            current = self._lookup(subscription.segments)
            if current == subscription.last_value:
                continue
            subscription.last_value = deepcopy(current)
            pending.append((subscription.callback, deepcopy(current)))
        return pending

    @staticmethod
    def _dispatch(pending: list[tuple[Listener, Any]]) -> None:
        for callback, value in pending:
            try:
                callback(value)
            except Exception:
                logger.exception("Store listener raised; continuing with remaining listeners")
