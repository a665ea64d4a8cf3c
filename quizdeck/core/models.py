"""Domain models for slide decks, live session records and local student state.

Everything stored in the shared tree or in local JSON files round-trips through
``to_record``/``from_record`` so the store only ever holds plain JSON values.
Timestamps are timezone-aware UTC datetimes in memory and ISO 8601 strings in
records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Union


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_iso(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def list_from_record(value: Any) -> list[Any]:
    """Return list items from a stored list, or from a dict keyed by list index."""
    if value is None:
        return []
    if isinstance(value, dict):
        keyed = []
        for key, item in value.items():
            try:
                keyed.append((int(key), item))
            except (TypeError, ValueError):
                continue
        return [item for _, item in sorted(keyed, key=lambda pair: pair[0]) if item is not None]
    return [item for item in value if item is not None]


class ActivityType(str, Enum):
    """Activity kinds a slide can carry. Only the first three are graded locally."""

    CHOICE = "abc"
    OPEN = "open"
    EXAMPLE = "example"
    BOARD = "board"
    VOTING = "voting"
    CONNECT_PAIRS = "connect-pairs"
    FILL_BLANKS = "fill-blanks"
    IMAGE_HOTSPOTS = "image-hotspots"
    VIDEO_QUIZ = "video-quiz"


# --- Slides -----------------------------------------------------------------


@dataclass(slots=True)
class InfoSlide:
    """Content-only slide; never requires an answer."""

    id: str
    title: str = ""
    content: str = ""

    requires_answer: ClassVar[bool] = False

    def to_record(self) -> dict[str, Any]:
        return {"id": self.id, "type": "info", "title": self.title, "content": self.content}


@dataclass(slots=True)
class ChoiceOption:
    id: str
    content: str
    label: str = ""
    is_correct: bool = False

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "content": self.content,
            "is_correct": self.is_correct,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "ChoiceOption":
        return cls(
            id=str(data.get("id", "")),
            content=str(data.get("content", "")),
            label=str(data.get("label", "")),
            is_correct=bool(data.get("is_correct", False)),
        )


@dataclass(slots=True)
class ChoiceSlide:
    """Single-choice question graded by exact option id."""

    id: str
    prompt: str
    options: list[ChoiceOption] = field(default_factory=list)

    activity_type: ClassVar[str] = ActivityType.CHOICE.value
    requires_answer: ClassVar[bool] = True

    def correct_option_id(self) -> str | None:
        return next((option.id for option in self.options if option.is_correct), None)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "activity",
            "activity_type": self.activity_type,
            "prompt": self.prompt,
            "options": [option.to_record() for option in self.options],
        }


@dataclass(slots=True)
class OpenSlide:
    """Free-text question graded by the tolerant math comparator."""

    id: str
    prompt: str
    correct_answers: list[str] = field(default_factory=list)

    activity_type: ClassVar[str] = ActivityType.OPEN.value
    requires_answer: ClassVar[bool] = True

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "activity",
            "activity_type": self.activity_type,
            "prompt": self.prompt,
            "correct_answers": list(self.correct_answers),
        }


@dataclass(slots=True)
class ExampleSlide:
    """Worked example ending in a single final answer."""

    id: str
    prompt: str
    final_answer: str | None = None
    steps: list[str] = field(default_factory=list)

    activity_type: ClassVar[str] = ActivityType.EXAMPLE.value
    requires_answer: ClassVar[bool] = True

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "activity",
            "activity_type": self.activity_type,
            "prompt": self.prompt,
            "final_answer": self.final_answer,
            "steps": list(self.steps),
        }


@dataclass(slots=True)
class ExternalActivitySlide:
    """Activity rendered and graded outside this package (board, voting, ...)."""

    id: str
    activity_type: str
    prompt: str = ""
    payload: dict[str, Any] = field(default_factory=dict)

    requires_answer: ClassVar[bool] = True

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "activity",
            "activity_type": self.activity_type,
            "prompt": self.prompt,
            "payload": dict(self.payload),
        }


Slide = Union[InfoSlide, ChoiceSlide, OpenSlide, ExampleSlide, ExternalActivitySlide]


def slide_from_record(data: dict[str, Any]) -> Slide:
    slide_id = str(data.get("id", ""))
    if data.get("type") == "info":
        return InfoSlide(
            id=slide_id,
            title=str(data.get("title", "")),
            content=str(data.get("content", "")),
        )
    activity_type = str(data.get("activity_type", ""))
    prompt = str(data.get("prompt", ""))
    if activity_type == ActivityType.CHOICE:
        return ChoiceSlide(
            id=slide_id,
            prompt=prompt,
            options=[ChoiceOption.from_record(item) for item in list_from_record(data.get("options"))],
        )
    if activity_type == ActivityType.OPEN:
        return OpenSlide(
            id=slide_id,
            prompt=prompt,
            correct_answers=[str(item) for item in list_from_record(data.get("correct_answers"))],
        )
    if activity_type == ActivityType.EXAMPLE:
        final_answer = data.get("final_answer")
        return ExampleSlide(
            id=slide_id,
            prompt=prompt,
            final_answer=str(final_answer) if final_answer is not None else None,
            steps=[str(item) for item in list_from_record(data.get("steps"))],
        )
    return ExternalActivitySlide(
        id=slide_id,
        activity_type=activity_type,
        prompt=prompt,
        payload=dict(data.get("payload") or {}),
    )


def is_activity(slide: Slide | None) -> bool:
    return slide is not None and slide.requires_answer


@dataclass(slots=True)
class SlideDeck:
    """Ordered slides shown during one live session."""

    id: str
    title: str
    slides: list[Slide] = field(default_factory=list)

    @property
    def slide_count(self) -> int:
        return len(self.slides)

    def slide_at(self, index: int) -> Slide | None:
        if 0 <= index < len(self.slides):
            return self.slides[index]
        return None

    def index_of(self, slide_id: str) -> int | None:
        return next((i for i, slide in enumerate(self.slides) if slide.id == slide_id), None)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "slides": [slide.to_record() for slide in self.slides],
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "SlideDeck":
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            slides=[slide_from_record(item) for item in list_from_record(data.get("slides"))],
        )


# --- Responses and per-student state ------------------------------------------


@dataclass(slots=True)
class SlideResponse:
    """One student's answer to one activity slide.

    ``is_correct`` stays ``None`` until the teacher evaluates it, unless the
    session shows feedback immediately.
    """

    slide_id: str
    activity_type: str
    answer: Any
    is_correct: bool | None = None
    points: float = 0
    answered_at: datetime = field(default_factory=utc_now)
    time_spent_seconds: int = 0

    @property
    def is_evaluated(self) -> bool:
        return self.is_correct is not None

    def to_record(self) -> dict[str, Any]:
        return {
            "slide_id": self.slide_id,
            "activity_type": self.activity_type,
            "answer": self.answer,
            "is_correct": self.is_correct,
            "points": self.points,
            "answered_at": to_iso(self.answered_at),
            "time_spent_seconds": self.time_spent_seconds,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "SlideResponse":
        is_correct = data.get("is_correct")
        return cls(
            slide_id=str(data.get("slide_id", "")),
            activity_type=str(data.get("activity_type", "")),
            answer=data.get("answer", ""),
            is_correct=None if is_correct is None else bool(is_correct),
            points=data.get("points") or 0,
            answered_at=from_iso(data.get("answered_at")) or utc_now(),
            time_spent_seconds=int(data.get("time_spent_seconds") or 0),
        )


def responses_from_record(value: Any) -> list[SlideResponse]:
    """Read a stored response node, oldest answer first.

    Responses are stored keyed by slide id; list-shaped nodes are still read.
    """
    if isinstance(value, dict):
        items = [item for item in value.values() if isinstance(item, dict)]
        responses = [SlideResponse.from_record(item) for item in items]
        return sorted(responses, key=lambda response: response.answered_at)
    return [SlideResponse.from_record(item) for item in list_from_record(value) if isinstance(item, dict)]


def responses_to_record(responses: list[SlideResponse]) -> dict[str, dict[str, Any]]:
    return {response.slide_id: response.to_record() for response in responses}


@dataclass(slots=True)
class StudentSessionState:
    """Per-student sub-record inside a live session."""

    display_name: str
    joined_at: datetime
    school: str = ""
    current_slide_index: int = 0
    responses: list[SlideResponse] = field(default_factory=list)
    is_online: bool = False
    is_focused: bool = False
    last_seen_at: datetime | None = None
    device_id: str = ""
    session_started_at: datetime | None = None
    total_time_ms: int = 0

    def response_for(self, slide_id: str) -> SlideResponse | None:
        return next((r for r in self.responses if r.slide_id == slide_id), None)

    def to_record(self) -> dict[str, Any]:
        return {
            "display_name": self.display_name,
            "school": self.school,
            "joined_at": to_iso(self.joined_at),
            "current_slide_index": self.current_slide_index,
            "responses": responses_to_record(self.responses),
            "is_online": self.is_online,
            "is_focused": self.is_focused,
            "last_seen_at": to_iso(self.last_seen_at),
            "device_id": self.device_id,
            "session_started_at": to_iso(self.session_started_at),
            "total_time_ms": self.total_time_ms,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "StudentSessionState":
        return cls(
            display_name=str(data.get("display_name", "")),
            joined_at=from_iso(data.get("joined_at")) or utc_now(),
            school=str(data.get("school") or ""),
            current_slide_index=int(data.get("current_slide_index") or 0),
            responses=responses_from_record(data.get("responses")),
            is_online=bool(data.get("is_online", False)),
            is_focused=bool(data.get("is_focused", False)),
            last_seen_at=from_iso(data.get("last_seen_at")),
            device_id=str(data.get("device_id") or ""),
            session_started_at=from_iso(data.get("session_started_at")),
            total_time_ms=int(data.get("total_time_ms") or 0),
        )


@dataclass(slots=True)
class SessionSettings:
    immediate_feedback: bool = False

    def to_record(self) -> dict[str, Any]:
        return {"immediate_feedback": self.immediate_feedback}

    @classmethod
    def from_record(cls, data: dict[str, Any] | None) -> "SessionSettings":
        data = data or {}
        return cls(immediate_feedback=bool(data.get("immediate_feedback", False)))


@dataclass(slots=True)
class RemoteSessionRecord:
    """Shared, server-held state for one live session."""

    id: str
    is_active: bool = True
    is_paused: bool = False
    is_locked: bool = True
    current_slide_index: int = 0
    settings: SessionSettings = field(default_factory=SessionSettings)
    students: dict[str, StudentSessionState] = field(default_factory=dict)
    quiz: SlideDeck | None = None
    quiz_id: str = ""
    teacher_name: str = ""
    show_results: bool = False
    created_at: datetime | None = None
    ended_at: datetime | None = None

    def student(self, student_id: str) -> StudentSessionState | None:
        return self.students.get(student_id)

    def find_student_by_name(self, display_name: str) -> tuple[str, StudentSessionState] | None:
        """Return the first student whose name matches case-insensitively."""
        wanted = display_name.strip().casefold()
        for student_id, state in self.students.items():
            if state.display_name.strip().casefold() == wanted:
                return student_id, state
        return None

    @property
    def slide_count(self) -> int:
        return self.quiz.slide_count if self.quiz else 0

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "teacher_name": self.teacher_name,
            "is_active": self.is_active,
            "is_paused": self.is_paused,
            "is_locked": self.is_locked,
            "show_results": self.show_results,
            "current_slide_index": self.current_slide_index,
            "settings": self.settings.to_record(),
            "students": {sid: state.to_record() for sid, state in self.students.items()},
            "quiz": self.quiz.to_record() if self.quiz else None,
            "created_at": to_iso(self.created_at),
            "ended_at": to_iso(self.ended_at),
        }

    @classmethod
    def from_record(cls, data: dict[str, Any], session_id: str | None = None) -> "RemoteSessionRecord":
        students = {
            str(sid): StudentSessionState.from_record(state)
            for sid, state in (data.get("students") or {}).items()
            if isinstance(state, dict)
        }
        quiz_data = data.get("quiz")
        return cls(
            id=session_id or str(data.get("id", "")),
            is_active=bool(data.get("is_active", False)),
            is_paused=bool(data.get("is_paused", False)),
            # A missing lock flag means students follow the teacher.
            is_locked=data.get("is_locked") is not False,
            current_slide_index=int(data.get("current_slide_index") or 0),
            settings=SessionSettings.from_record(data.get("settings")),
            students=students,
            quiz=SlideDeck.from_record(quiz_data) if isinstance(quiz_data, dict) else None,
            quiz_id=str(data.get("quiz_id") or ""),
            teacher_name=str(data.get("teacher_name") or ""),
            show_results=bool(data.get("show_results", False)),
            created_at=from_iso(data.get("created_at")),
            ended_at=from_iso(data.get("ended_at")),
        )


# --- Local, per-device records ------------------------------------------------


@dataclass(slots=True)
class StudentIdentity:
    """Stable per-device student identity, independent of any session."""

    id: str
    display_name: str
    created_at: datetime

    def to_record(self) -> dict[str, Any]:
        return {"id": self.id, "display_name": self.display_name, "created_at": to_iso(self.created_at)}

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "StudentIdentity":
        return cls(
            id=str(data["id"]),
            display_name=str(data.get("display_name", "")),
            created_at=from_iso(data.get("created_at")) or utc_now(),
        )


@dataclass(slots=True)
class SessionPointer:
    """Last joined session on this device; used only to attempt reconnection."""

    session_id: str
    join_code: str
    student_id: str
    student_display_name: str
    joined_at: datetime

    def to_record(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "join_code": self.join_code,
            "student_id": self.student_id,
            "student_display_name": self.student_display_name,
            "joined_at": to_iso(self.joined_at),
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "SessionPointer":
        return cls(
            session_id=str(data["session_id"]),
            join_code=str(data.get("join_code", "")),
            student_id=str(data["student_id"]),
            student_display_name=str(data.get("student_display_name", "")),
            joined_at=from_iso(data.get("joined_at")) or utc_now(),
        )
