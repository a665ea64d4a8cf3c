"""Answer grading, response building and reconciliation with server echoes."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Callable

from quizdeck.core.answer_compare import check_math_answer
from quizdeck.core.models import (
    ChoiceSlide,
    ExampleSlide,
    OpenSlide,
    Slide,
    SlideResponse,
    to_iso,
    utc_now,
)
from quizdeck.core.services.retry import RetryPolicy
from quizdeck.store.paths import join_path, student_path
from quizdeck.store.realtime import RealtimeStore

logger = logging.getLogger(__name__)


def evaluate_answer(slide: Slide, answer: Any) -> bool | None:
    """Grade an answer locally; ``None`` means only the teacher can grade it."""
    if isinstance(slide, ChoiceSlide):
        correct_id = slide.correct_option_id()
        return correct_id is not None and answer == correct_id
    if isinstance(slide, OpenSlide):
        return check_math_answer(str(answer or ""), slide.correct_answers)
    if isinstance(slide, ExampleSlide):
        if not slide.final_answer:
            return None
        return check_math_answer(str(answer or ""), [slide.final_answer])
    return None


def build_response(
    slide: Slide,
    answer: Any,
    *,
    immediate_feedback: bool,
    answered_at: datetime,
    time_spent_seconds: int = 0,
) -> SlideResponse:
    activity_type = getattr(slide, "activity_type", "")
    is_correct = evaluate_answer(slide, answer) if immediate_feedback else None
    return SlideResponse(
        slide_id=slide.id,
        activity_type=str(activity_type),
        answer=answer,
        is_correct=is_correct,
        points=1 if is_correct else 0,
        answered_at=answered_at,
        time_spent_seconds=max(0, int(time_spent_seconds)),
    )


def _unique_by_slide(responses: list[SlideResponse]) -> list[SlideResponse]:
    seen: set[str] = set()
    unique = []
    for response in responses:
        if response.slide_id in seen:
            continue
        seen.add(response.slide_id)
        unique.append(response)
    return unique


def reconcile_responses(local: list[SlideResponse], server: list[SlideResponse]) -> list[SlideResponse]:
    """Pick the response list to keep after a snapshot arrives.

    The server list wins when it is strictly longer or when a response for
    the same slide carries a different ``is_correct`` (a teacher evaluation).
    Local responses the server has not seen yet stay, appended after the
    server's.
    """
    server = _unique_by_slide(server)
    by_slide = {response.slide_id: response for response in server}
    evaluation_changed = any(
        mine.slide_id in by_slide and mine.is_correct != by_slide[mine.slide_id].is_correct for mine in local
    )
    if len(server) <= len(local) and not evaluation_changed:
        return local
    return server + [response for response in local if response.slide_id not in by_slide]


def _response_key(response: SlideResponse) -> str:
    return join_path("responses", response.slide_id)


class ResponseSubmissionPipeline:
    """Owns the client's response list and persists appends to the store."""

    def __init__(
        self,
        store: RealtimeStore,
        session_id: str,
        student_id: str,
        *,
        responses: list[SlideResponse] | None = None,
        retry: RetryPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._path = student_path(session_id, student_id)
        self._retry = retry or RetryPolicy()
        self._clock = clock
        self.responses: list[SlideResponse] = list(responses or [])
        # Slide ids present in the last server snapshot; None until one arrives.
        self._server_ids: set[str] | None = None

    def response_for(self, slide_id: str) -> SlideResponse | None:
        return next((r for r in self.responses if r.slide_id == slide_id), None)

    def append(
        self,
        slide: Slide,
        answer: Any,
        *,
        immediate_feedback: bool,
        time_spent_seconds: int = 0,
    ) -> tuple[SlideResponse, bool]:
        """Record an answer locally; returns ``(response, created)``.

        An existing response for the slide is returned unchanged.
        """
        existing = self.response_for(slide.id)
        if existing is not None:
            return existing, False
        response = build_response(
            slide,
            answer,
            immediate_feedback=immediate_feedback,
            answered_at=self._clock(),
            time_spent_seconds=time_spent_seconds,
        )
        self.responses.append(response)
        return response, True

    async def persist(self, response: SlideResponse, *, current_slide_index: int, total_time_ms: int) -> None:
        """Write one appended response and the student's progress fields.

        Uses the retry wrapper and re-raises its final error. Responses are
        keyed by slide id, so the write never touches another slide's response
        or its evaluation.
        """
        fields = {
            _response_key(response): response.to_record(),
            "current_slide_index": current_slide_index,
            "last_seen_at": to_iso(self._clock()),
            "total_time_ms": total_time_ms,
        }
        await self._retry.run(
            lambda: self._store.update(self._path, fields),
            description=f"submit {response.slide_id}",
        )
        logger.info("Saved response for %s at %s", response.slide_id, self._path)

    def reconcile(self, server: list[SlideResponse]) -> bool:
        """Merge a server echo into the local list; return True if it changed."""
        self._server_ids = {response.slide_id for response in server}
        merged = reconcile_responses(self.responses, server)
        if merged is self.responses:
            return False
        changed = [r.to_record() for r in merged] != [r.to_record() for r in self.responses]
        self.responses = merged
        return changed

    def unsynced(self) -> list[SlideResponse]:
        if self._server_ids is None:
            return []
        return [r for r in self.responses if r.slide_id not in self._server_ids]

    async def flush(self) -> int:
        """Re-persist responses missing from the last server snapshot."""
        pending = self.unsynced()
        if not pending:
            return 0
        fields = {_response_key(response): response.to_record() for response in pending}
        fields["last_seen_at"] = to_iso(self._clock())
        await self._retry.run(lambda: self._store.update(self._path, fields), description="flush responses")
        logger.info("Re-sent %d unsynced responses for %s", len(pending), self._path)
        return len(pending)
