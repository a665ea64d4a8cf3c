"""Student membership: fresh join and silent reconnect on load.

Manual reconnect lives in ``PresenceHeartbeat.refresh`` because it only
re-asserts presence and never re-derives membership.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Callable

from quizdeck.core.errors import InvalidCodeError, SessionEndedError, StaleSessionError, ValidationError
from quizdeck.core.models import (
    RemoteSessionRecord,
    SessionPointer,
    StudentSessionState,
    to_iso,
    utc_now,
)
from quizdeck.core.services.code_lookup import normalize_code, resolve_session
from quizdeck.core.services.local_store import LocalIdentityStore, SessionPointerStore
from quizdeck.core.services.retry import RetryPolicy
from quizdeck.store.paths import session_path, student_path
from quizdeck.store.realtime import RealtimeStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Membership:
    """Result of a join or reconnect: who the student is in which session."""

    session_id: str
    student_id: str
    join_code: str
    record: RemoteSessionRecord
    student: StudentSessionState
    reused_existing: bool = False

    @property
    def is_ended(self) -> bool:
        return not self.record.is_active


class JoinReconnectController:
    """Resolves codes, creates or reuses student records and keeps the pointer."""

    def __init__(
        self,
        store: RealtimeStore,
        identities: LocalIdentityStore,
        pointers: SessionPointerStore,
        *,
        retry: RetryPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._identities = identities
        self._pointers = pointers
        self._retry = retry or RetryPolicy()
        self._clock = clock

    @property
    def pointer(self) -> SessionPointer | None:
        return self._pointers.load()

    async def join(self, code: str, display_name: str, school: str | None = None) -> Membership:
        code = normalize_code(code)
        display_name = (display_name or "").strip()
        school = (school or "").strip()
        if not code or not display_name:
            raise ValidationError()

        pointer = self._pointers.load()
        if pointer is not None and normalize_code(pointer.join_code) != code:
            logger.info("Dropping pointer to %s; joining a different code", pointer.session_id)
            self._pointers.clear()

        identity = self._identities.get_or_create(display_name)

        found = await resolve_session(self._store, code)
        if found is None:
            raise InvalidCodeError()
        session_id, raw_record = found
        record = RemoteSessionRecord.from_record(raw_record, session_id)
        if not record.is_active:
            raise SessionEndedError()

        now = self._clock()
        device_id = self._identities.device_id()
        match = record.find_student_by_name(display_name)
        if match is None and identity.id in record.students:
            match = identity.id, record.students[identity.id]
        if match is not None:
            student_id, state = match
            logger.info("Rejoining %s as existing student %s", session_id, student_id)
            # Responses and progress stay as stored; only presence is written.
            fields = {
                "display_name": display_name,
                "is_online": True,
                "is_focused": True,
                "last_seen_at": to_iso(now),
                "device_id": device_id,
            }
            if school:
                fields["school"] = school
            if state.session_started_at is None:
                fields["session_started_at"] = to_iso(now)
            state.display_name = display_name
            state.school = school or state.school
            state.session_started_at = state.session_started_at or now
            state.is_online = True
            state.is_focused = True
            state.last_seen_at = now
            state.device_id = device_id
        else:
            student_id = identity.id
            state = StudentSessionState(
                display_name=display_name,
                joined_at=now,
                school=school,
                is_online=True,
                is_focused=True,
                last_seen_at=now,
                device_id=device_id,
                session_started_at=now,
            )
            fields = state.to_record()

        await self._retry.run(
            lambda: self._store.update(student_path(session_id, student_id), fields),
            description=f"join {session_id}",
        )
        record.students[student_id] = state

        self._pointers.save(
            SessionPointer(
                session_id=session_id,
                join_code=code,
                student_id=student_id,
                student_display_name=display_name,
                joined_at=state.joined_at,
            )
        )
        logger.info("Joined session %s as %s", session_id, student_id)
        return Membership(
            session_id=session_id,
            student_id=student_id,
            join_code=code,
            record=record,
            student=state,
            reused_existing=match is not None,
        )

    async def reconnect(self, url_code: str | None = None) -> Membership | None:
        """Silently restore the last membership stored on this device.

        Returns ``None`` when there is nothing to restore. An ended session
        comes back as a membership whose ``is_ended`` is true; the pointer is
        cleared and the caller must not subscribe. A ``ConnectivityError``
        propagates with the pointer kept for a later retry.
        """
        pointer = self._pointers.load()
        if pointer is None:
            return None
        if url_code and normalize_code(url_code) != normalize_code(pointer.join_code):
            logger.info("URL code %s differs from saved session; explicit join required", url_code)
            self._pointers.clear()
            return None

        raw_record = await self._store.get(session_path(pointer.session_id))
        if not isinstance(raw_record, dict):
            self._pointers.clear()
            raise StaleSessionError()
        record = RemoteSessionRecord.from_record(raw_record, pointer.session_id)
        student = record.student(pointer.student_id)

        if not record.is_active:
            self._pointers.clear()
            logger.info("Saved session %s has ended", pointer.session_id)
            return Membership(
                session_id=pointer.session_id,
                student_id=pointer.student_id,
                join_code=pointer.join_code,
                record=record,
                student=student or StudentSessionState(
                    display_name=pointer.student_display_name,
                    joined_at=pointer.joined_at,
                ),
            )
        if student is None:
            self._pointers.clear()
            raise StaleSessionError()

        now = self._clock()
        device_id = self._identities.device_id()
        fields = {
            "is_online": True,
            "is_focused": True,
            "last_seen_at": to_iso(now),
            "device_id": device_id,
        }
        await self._retry.run(
            lambda: self._store.update(student_path(pointer.session_id, pointer.student_id), fields),
            description=f"reconnect {pointer.session_id}",
        )
        student.is_online = True
        student.is_focused = True
        student.last_seen_at = now
        student.device_id = device_id
        logger.info("Reconnected to %s as %s", pointer.session_id, pointer.student_id)
        return Membership(
            session_id=pointer.session_id,
            student_id=pointer.student_id,
            join_code=pointer.join_code,
            record=record,
            student=student,
            reused_existing=True,
        )
