"""Join code resolution: fast index lookup with a slow scan fallback."""

from __future__ import annotations

import logging
from typing import Any

from quizdeck.constants.sync_constants import SESSIONS_PATH
from quizdeck.core.errors import QuizDeckError
from quizdeck.core.models import from_iso
from quizdeck.store.paths import code_index_path, session_path
from quizdeck.store.realtime import RealtimeStore

logger = logging.getLogger(__name__)


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def session_id_prefix(code: str) -> str:
    return f"quiz_{normalize_code(code)}_"


def _recency_key(session_id: str, record: dict[str, Any]) -> tuple[int, float]:
    created = from_iso(record.get("created_at"))
    if created is not None:
        stamp = created.timestamp()
    else:
        # Session ids end with the creation time in milliseconds.
        try:
            stamp = int(session_id.rsplit("_", 1)[-1]) / 1000
        except ValueError:
            stamp = 0.0
    return (1 if record.get("is_active") else 0, stamp)


async def resolve_session(store: RealtimeStore, code: str) -> tuple[str, dict[str, Any]] | None:
    """Return ``(session_id, raw_record)`` for ``code`` or ``None``.

    Store errors propagate so callers can tell "not found" from "offline".
    """
    code = normalize_code(code)
    if not code:
        return None

    indexed_id = await store.get(code_index_path(code))
    if indexed_id:
        record = await store.get(session_path(str(indexed_id)))
        if isinstance(record, dict):
            return str(indexed_id), record
        logger.info("Code index for %s points at missing session %s", code, indexed_id)

    sessions = await store.get(SESSIONS_PATH)
    if not isinstance(sessions, dict):
        return None
    prefix = session_id_prefix(code)
    candidates = [
        (session_id, record)
        for session_id, record in sessions.items()
        if prefix in session_id and isinstance(record, dict)
    ]
    if not candidates:
        return None
    session_id, record = max(candidates, key=lambda item: _recency_key(*item))
    logger.info("Resolved code %s by scanning sessions: %s", code, session_id)
    return session_id, record


async def lookup_title(store: RealtimeStore, code: str) -> str | None:
    """Deck title for a join-screen preview; any failure yields ``None``."""
    try:
        found = await resolve_session(store, code)
    except QuizDeckError as exc:
        logger.warning("Title lookup for %s failed: %s", normalize_code(code), exc)
        return None
    if found is None:
        return None
    quiz = found[1].get("quiz")
    if not isinstance(quiz, dict):
        return None
    return quiz.get("title") or None
