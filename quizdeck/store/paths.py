"""Path helpers for the shared session tree."""

from __future__ import annotations

from quizdeck.constants.sync_constants import SESSION_CODES_PATH, SESSIONS_PATH


def split_path(path: str) -> list[str]:
    return [segment for segment in path.strip("/").split("/") if segment]


def join_path(*segments: object) -> str:
    return "/".join(str(segment).strip("/") for segment in segments if str(segment).strip("/"))


def session_path(session_id: str) -> str:
    return join_path(SESSIONS_PATH, session_id)


def student_path(session_id: str, student_id: str) -> str:
    return join_path(SESSIONS_PATH, session_id, "students", student_id)


def response_path(session_id: str, student_id: str, key: str | int) -> str:
    return join_path(student_path(session_id, student_id), "responses", key)


def code_index_path(code: str) -> str:
    return join_path(SESSION_CODES_PATH, code)
