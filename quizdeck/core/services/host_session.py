"""Teacher-side control of one live session, shared between the UI and API threads."""

from __future__ import annotations

from datetime import datetime
import logging
import random
from threading import Lock
from typing import Callable

from quizdeck.constants.sync_constants import JOIN_CODE_ALPHABET, JOIN_CODE_LENGTH
from quizdeck.core.errors import SessionEndedError
from quizdeck.core.models import (
    RemoteSessionRecord,
    SessionSettings,
    SlideDeck,
    is_activity,
    to_iso,
    utc_now,
)
from quizdeck.core.services.roster import RosterBuilder, RosterRow
from quizdeck.core.services.submission import evaluate_answer
from quizdeck.store.paths import code_index_path, join_path, response_path, session_path, student_path
from quizdeck.store.shared_store import SharedSessionStore

logger = logging.getLogger(__name__)


def generate_join_code(rng: random.Random | None = None) -> str:
    rng = rng or random.SystemRandom()
    return "".join(rng.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))


class HostSessionController:
    """Facade for the teacher console: owns session-level and evaluation fields.

    Students own their own sub-record; this class only writes the session's
    top-level flags, the code index and the ``is_correct``/``points`` fields
    of individual responses.
    """

    def __init__(
        self,
        store: SharedSessionStore,
        *,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._rng = rng
        self._lock = Lock()
        self._roster = RosterBuilder()
        self._session_id: str | None = None
        self._code: str | None = None
        self._ended = False

    # --- Lifecycle ---

    def start_session(
        self,
        deck: SlideDeck,
        teacher_name: str,
        immediate_feedback: bool = False,
        locked: bool = True,
    ) -> tuple[str, str]:
        """Create a live session for ``deck``; returns ``(session_id, code)``."""
        with self._lock:
            code = self._unused_code()
            now = self._clock()
            session_id = f"quiz_{code}_{int(now.timestamp() * 1000)}"
            record = RemoteSessionRecord(
                id=session_id,
                is_active=True,
                is_paused=False,
                is_locked=locked,
                current_slide_index=0,
                settings=SessionSettings(immediate_feedback=immediate_feedback),
                quiz=deck,
                quiz_id=deck.id,
                teacher_name=teacher_name,
                created_at=now,
            )
            self._store.write(session_path(session_id), record.to_record())
            self._store.write(code_index_path(code), session_id)
            self._session_id = session_id
            self._code = code
            self._ended = False
        logger.info("Started session %s with code %s (%d slides)", session_id, code, deck.slide_count)
        return session_id, code

    def end_session(self) -> None:
        """Mark the session inactive once; repeated calls do nothing."""
        with self._lock:
            if self._session_id is None or self._ended:
                return
            self._store.merge(
                session_path(self._session_id),
                {"is_active": False, "ended_at": to_iso(self._clock())},
            )
            self._ended = True
            session_id = self._session_id
        logger.info("Ended session %s", session_id)

    # --- Read access ---

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def join_code(self) -> str | None:
        return self._code

    @property
    def is_ended(self) -> bool:
        return self._ended

    def has_session(self) -> bool:
        return self._session_id is not None

    def snapshot(self) -> RemoteSessionRecord | None:
        if self._session_id is None:
            return None
        data = self._store.read(session_path(self._session_id))
        if not isinstance(data, dict):
            return None
        return RemoteSessionRecord.from_record(data, self._session_id)

    def roster(self) -> list[RosterRow]:
        record = self.snapshot()
        return self._roster.build(record) if record else []

    # --- Slide pointer ---

    def go_to_slide(self, index: int) -> int:
        with self._lock:
            record = self._require_live()
            if not 0 <= index < record.slide_count:
                raise IndexError(f"Slide index {index} out of range (0..{record.slide_count - 1}).")
            self._set_fields({"current_slide_index": index})
        return index

    def next_slide(self) -> int | None:
        if self._ended:
            raise SessionEndedError()
        record = self.snapshot()
        if record is None or record.current_slide_index + 1 >= record.slide_count:
            return None
        return self.go_to_slide(record.current_slide_index + 1)

    def previous_slide(self) -> int | None:
        if self._ended:
            raise SessionEndedError()
        record = self.snapshot()
        if record is None or record.current_slide_index <= 0:
            return None
        return self.go_to_slide(record.current_slide_index - 1)

    # --- Flags ---

    def set_locked(self, locked: bool) -> None:
        self._set_flag("is_locked", locked)

    def set_paused(self, paused: bool) -> None:
        self._set_flag("is_paused", paused)

    def set_show_results(self, show: bool) -> None:
        self._set_flag("show_results", show)

    def set_immediate_feedback(self, enabled: bool) -> None:
        self._set_flag("settings/immediate_feedback", enabled)

    # --- Evaluation ---

    def evaluate_slide(self, slide_index: int | None = None) -> int:
        """Grade every still-pending response to one slide; returns how many."""
        with self._lock:
            record = self._require_live()
            index = record.current_slide_index if slide_index is None else slide_index
            slide = record.quiz.slide_at(index) if record.quiz else None
            if not is_activity(slide):
                return 0
            graded = 0
            for student_id, state in record.students.items():
                for response in state.responses:
                    if response.slide_id != slide.id or response.is_evaluated:
                        continue
                    is_correct = evaluate_answer(slide, response.answer)
                    if is_correct is None:
                        continue
                    self._store.merge(
                        response_path(record.id, student_id, self._stored_key(student_id, slide.id)),
                        {"is_correct": is_correct, "points": 1 if is_correct else 0},
                    )
                    graded += 1
        logger.info("Evaluated %d responses for slide %d", graded, index)
        return graded

    def set_evaluation(self, student_id: str, slide_id: str, is_correct: bool) -> None:
        """Teacher override for one response."""
        with self._lock:
            record = self._require_live()
            state = record.student(student_id)
            if state is None:
                raise KeyError(f"Unknown student: {student_id}")
            if state.response_for(slide_id) is None:
                raise KeyError(f"No response from {student_id} for slide {slide_id}")
            self._store.merge(
                response_path(record.id, student_id, self._stored_key(student_id, slide_id)),
                {"is_correct": is_correct, "points": 1 if is_correct else 0},
            )

    # --- internals ---

    def _stored_key(self, student_id: str, slide_id: str) -> str | int:
        """Key of a response in the stored node; older records hold a list."""
        stored = self._store.read(join_path(student_path(self._session_id, student_id), "responses"))
        items = stored.items() if isinstance(stored, dict) else enumerate(stored or [])
        for key, item in items:
            if isinstance(item, dict) and item.get("slide_id") == slide_id:
                return key
        return slide_id

    def _set_flag(self, key: str, value: bool) -> None:
        with self._lock:
            self._require_live()
            self._set_fields({key: value})

    def _set_fields(self, fields: dict) -> None:
        self._store.merge(session_path(self._session_id), fields)

    def _require_live(self) -> RemoteSessionRecord:
        if self._session_id is None:
            raise RuntimeError("No session has been started.")
        if self._ended:
            raise SessionEndedError()
        data = self._store.read(session_path(self._session_id))
        if not isinstance(data, dict):
            raise RuntimeError(f"Session {self._session_id} vanished from the store.")
        record = RemoteSessionRecord.from_record(data, self._session_id)
        if not record.is_active:
            self._ended = True
            raise SessionEndedError()
        return record

    def _unused_code(self) -> str:
        while True:
            code = generate_join_code(self._rng)
            existing_id = self._store.read(code_index_path(code))
            if not existing_id:
                return code
            existing = self._store.read(session_path(str(existing_id)))
            if not isinstance(existing, dict) or not existing.get("is_active"):
                return code
