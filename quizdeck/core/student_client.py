"""Student-side facade: one object the views talk to.

It wires the join/reconnect controller, presence heartbeat, slide position
synchronizer and submission pipeline together and exposes a read model
(``StudentViewState``) plus the actions a student can take.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging
from pathlib import Path
from typing import Any, Callable

from quizdeck.constants.sync_constants import HEARTBEAT_INTERVAL_SECONDS
from quizdeck.core.errors import QuizDeckError, StaleSessionError
from quizdeck.core.models import (
    ChoiceSlide,
    ExampleSlide,
    OpenSlide,
    RemoteSessionRecord,
    Slide,
    SlideDeck,
    SlideResponse,
    is_activity,
    utc_now,
)
from quizdeck.core.services.join_controller import JoinReconnectController, Membership
from quizdeck.core.services.local_store import LocalIdentityStore, SessionPointerStore
from quizdeck.core.services.presence import PresenceHeartbeat
from quizdeck.core.services.retry import RetryPolicy
from quizdeck.core.services.slide_sync import SlidePositionSynchronizer
from quizdeck.core.services.submission import ResponseSubmissionPipeline
from quizdeck.store.paths import session_path
from quizdeck.store.realtime import RealtimeStore, Unsubscribe

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Your answer may not have been saved. Check your connection."

ViewListener = Callable[["StudentViewState"], None]


@dataclass(slots=True)
class StudentViewState:
    """Everything a student view needs to render one frame."""

    is_joined: bool = False
    is_reconnecting: bool = False
    connection_error: str | None = None
    session: RemoteSessionRecord | None = None
    quiz: SlideDeck | None = None
    responses: list[SlideResponse] = field(default_factory=list)
    effective_slide_index: int = 0
    has_answered_current: bool = False
    can_navigate: bool = False
    is_online: bool = True
    is_ended: bool = False
    is_paused: bool = False
    show_result: bool = False
    show_wiggle: bool = False
    is_transitioning: bool = False
    current_slide: Slide | None = None
    current_response: SlideResponse | None = None
    selected_option: str | None = None
    text_answer: str = ""
    correct_count: int = 0
    wrong_count: int = 0
    pending_count: int = 0


class StudentSessionClient:
    """Live-session client for one student on one device."""

    def __init__(
        self,
        store: RealtimeStore,
        state_dir: Path,
        *,
        identities: LocalIdentityStore | None = None,
        pointers: SessionPointerStore | None = None,
        retry: RetryPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
    ) -> None:
        self._store = store
        self._retry = retry or RetryPolicy()
        self._clock = clock
        self._heartbeat_interval = heartbeat_interval
        self._pointers = pointers or SessionPointerStore(state_dir)
        self._identities = identities or LocalIdentityStore(state_dir, clock=clock)
        self._joiner = JoinReconnectController(
            self._store, self._identities, self._pointers, retry=self._retry, clock=clock
        )

        self._listeners: list[ViewListener] = []
        self._membership: Membership | None = None
        self._record: RemoteSessionRecord | None = None
        self._sync: SlidePositionSynchronizer | None = None
        self._pipeline: ResponseSubmissionPipeline | None = None
        self._presence: PresenceHeartbeat | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._entered_at: datetime | None = None
        self._base_total_ms = 0

        self._is_reconnecting = False
        self._is_ended = False
        self._connection_error: str | None = None
        self._subscription_failing = False
        self._network_available = True

    # --- Read model ---

    @property
    def membership(self) -> Membership | None:
        return self._membership

    @property
    def view(self) -> StudentViewState:
        view = StudentViewState(
            is_reconnecting=self._is_reconnecting,
            connection_error=self._connection_error,
            is_online=self._network_available,
            is_ended=self._is_ended,
        )
        if self._membership is None or self._record is None:
            return view

        sync = self._sync
        record = self._record
        responses = list(self._pipeline.responses)
        index = sync.effective_index
        slide = record.quiz.slide_at(index) if record.quiz else None
        current_response = self._response_for(slide)

        view.is_joined = True
        view.session = record
        view.quiz = record.quiz
        view.responses = responses
        view.effective_slide_index = index
        view.current_slide = slide
        view.current_response = current_response
        view.has_answered_current = current_response is not None
        view.is_paused = record.is_paused
        view.show_result = sync.interaction.show_result
        view.show_wiggle = sync.show_wiggle
        view.is_transitioning = sync.is_transitioning
        view.selected_option = sync.interaction.selected_option
        view.text_answer = sync.interaction.text_answer
        view.can_navigate = (
            not self._is_ended
            and not record.is_paused
            and not record.is_locked
            and not (is_activity(slide) and current_response is None)
        )
        view.correct_count = sum(1 for r in responses if r.is_correct is True)
        view.wrong_count = sum(1 for r in responses if r.is_correct is False)
        view.pending_count = sum(1 for r in responses if r.is_correct is None)
        return view

    def add_listener(self, listener: ViewListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # --- Membership ---

    async def resume(self, url_code: str | None = None) -> StudentViewState:
        """Silent reconnect from the saved session pointer, if any."""
        self._is_reconnecting = True
        self._notify()
        try:
            membership = await self._joiner.reconnect(url_code)
        except StaleSessionError as exc:
            logger.info("Saved session is gone: %s", exc)
            self._connection_error = exc.user_message
            membership = None
        except QuizDeckError as exc:
            logger.error("Reconnect failed; keeping saved session for a retry: %s", exc)
            self._connection_error = exc.user_message
            membership = None
        finally:
            self._is_reconnecting = False
        if membership is not None:
            self._enter(membership)
        self._notify()
        return self.view

    async def join_session(self, code: str, display_name: str, school: str | None = None) -> StudentViewState:
        """Explicit join; errors are shown in ``connection_error`` and re-raised."""
        self._teardown()
        self._membership = None
        self._record = None
        self._connection_error = None
        self._is_ended = False
        try:
            membership = await self._joiner.join(code, display_name, school)
        except QuizDeckError as exc:
            logger.error("Join with code %s failed: %s", code, exc)
            self._connection_error = exc.user_message
            self._notify()
            raise
        self._enter(membership)
        self._notify()
        return self.view

    async def reconnect(self) -> StudentViewState:
        """Manual reconnect: re-assert presence, then re-send unsynced answers."""
        if self._membership is None:
            return await self.resume()
        if self._is_ended:
            return self.view
        self._is_reconnecting = True
        self._notify()
        try:
            await self._presence.refresh()
            await self._pipeline.flush()
        except QuizDeckError as exc:
            logger.error("Manual reconnect failed: %s", exc)
            self._connection_error = exc.user_message
        else:
            self._connection_error = None
        finally:
            self._is_reconnecting = False
        self._notify()
        return self.view

    def close(self) -> None:
        """Tear down timers and the subscription; sends a lossy offline signal."""
        if self._presence is not None and not self._is_ended:
            self._presence.signal_offline()
        self._teardown()

    # --- Answer input ---

    def select_option(self, option_id: str) -> None:
        self._interact(lambda interaction: setattr(interaction, "selected_option", option_id))

    def set_text_answer(self, text: str) -> None:
        self._interact(lambda interaction: setattr(interaction, "text_answer", text))

    def set_external_answer(self, answer: Any) -> None:
        self._interact(lambda interaction: setattr(interaction, "external_answer", answer))

    async def submit_answer(self, answer: Any = None) -> SlideResponse | None:
        """Submit the current slide's answer at most once.

        Without ``answer`` the pending input for the slide's kind is used.
        Returns the stored response, or ``None`` when nothing can be submitted.
        """
        if self._membership is None or self._is_ended or self._record.is_paused:
            return None
        slide = self.view.current_slide
        if not is_activity(slide):
            return None
        interaction = self._sync.interaction
        if answer is None:
            answer = self._pending_answer(slide)
        existing = self._response_for(slide)
        if existing is None and (answer is None or answer == ""):
            return None

        now = self._clock()
        response, created = self._pipeline.append(
            slide,
            answer,
            immediate_feedback=self._record.settings.immediate_feedback,
            time_spent_seconds=int((now - interaction.slide_started_at).total_seconds()),
        )
        interaction.show_result = True
        self._notify()
        if not created:
            return response

        try:
            await self._pipeline.persist(
                response,
                current_slide_index=self._sync.effective_index,
                total_time_ms=self._total_time_ms(now),
            )
        except QuizDeckError as exc:
            logger.error("Answer for %s was not saved: %s", slide.id, exc)
            self._connection_error = SAVE_FAILED_MESSAGE
            self._notify()
        return response

    # --- Navigation ---

    async def go_to_next_slide(self) -> bool:
        return await self._step(1)

    async def go_to_prev_slide(self) -> bool:
        return await self._step(-1)

    # --- Environment events ---

    async def set_focused(self, focused: bool) -> None:
        if self._presence is not None and not self._is_ended:
            await self._presence.set_focused(focused)

    async def set_network_available(self, available: bool) -> None:
        regained = available and not self._network_available
        self._network_available = available
        self._notify()
        if regained and self._membership is not None and not self._is_ended:
            logger.info("Network is back; reconnecting")
            await self.reconnect()

    def dismiss_error(self) -> None:
        self._connection_error = None
        self._notify()

    # --- internals ---

    def _enter(self, membership: Membership) -> None:
        self._teardown()
        record = membership.record
        student = membership.student
        self._membership = membership
        self._record = record
        self._is_ended = membership.is_ended
        self._entered_at = self._clock()
        self._base_total_ms = student.total_time_ms

        self._sync = SlidePositionSynchronizer(
            self._store, membership.session_id, membership.student_id, clock=self._clock, on_change=self._notify
        )
        self._sync.restore(
            student.current_slide_index,
            is_locked=record.is_locked,
            remote_index=record.current_slide_index,
            slide_count=record.slide_count,
        )
        self._pipeline = ResponseSubmissionPipeline(
            self._store,
            membership.session_id,
            membership.student_id,
            responses=student.responses,
            retry=self._retry,
            clock=self._clock,
        )
        self._presence = PresenceHeartbeat(
            self._store,
            membership.session_id,
            membership.student_id,
            interval=self._heartbeat_interval,
            retry=self._retry,
            clock=self._clock,
        )
        if self._is_ended:
            logger.info("Session %s has ended; showing results only", membership.session_id)
            return
        self._unsubscribe = self._store.subscribe(
            session_path(membership.session_id), self._on_snapshot, self._on_subscription_error
        )
        self._presence.start()

    def _teardown(self) -> None:
        if self._presence is not None:
            self._presence.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _leave(self, error: QuizDeckError) -> None:
        """Drop the membership after the session or the student record vanished."""
        logger.warning("Leaving session %s: %s", self._membership.session_id, error)
        self._teardown()
        self._pointers.clear()
        self._membership = None
        self._record = None
        self._connection_error = error.user_message

    def _on_snapshot(self, value: Any) -> None:
        if self._membership is None:
            return
        if not isinstance(value, dict):
            self._leave(StaleSessionError())
            self._notify()
            return
        if self._subscription_failing:
            self._subscription_failing = False
            self._connection_error = None

        record = RemoteSessionRecord.from_record(value, self._membership.session_id)
        student = record.student(self._membership.student_id)
        if student is None:
            if record.is_active:
                self._leave(StaleSessionError())
                self._notify()
                return
        else:
            self._pipeline.reconcile(student.responses)
        self._record = record
        self._sync.apply_remote(
            is_locked=record.is_locked,
            remote_index=record.current_slide_index,
            slide_count=record.slide_count,
        )
        if not record.is_active and not self._is_ended:
            logger.info("Session %s ended", self._membership.session_id)
            self._is_ended = True
            self._pointers.clear()
            self._teardown()
        self._notify()

    def _on_subscription_error(self, error: Exception) -> None:
        logger.warning("Session subscription failed: %s", error)
        self._subscription_failing = True
        message = error.user_message if isinstance(error, QuizDeckError) else str(error)
        self._connection_error = message
        self._notify()

    async def _step(self, delta: int) -> bool:
        if self._membership is None or self._is_ended or self._record.is_paused:
            return False
        slide = self.view.current_slide
        blocked = is_activity(slide) and self._response_for(slide) is None
        moved = await self._sync.step(delta, blocked=blocked)
        self._notify()
        return moved

    def _interact(self, change: Callable[[Any], None]) -> None:
        if self._sync is None or self._is_ended:
            return
        change(self._sync.interaction)
        self._notify()

    def _pending_answer(self, slide: Slide) -> Any:
        interaction = self._sync.interaction
        if isinstance(slide, ChoiceSlide):
            return interaction.selected_option
        if isinstance(slide, (OpenSlide, ExampleSlide)):
            return interaction.text_answer.strip()
        return interaction.external_answer

    def _response_for(self, slide: Slide | None) -> SlideResponse | None:
        if slide is None or self._pipeline is None:
            return None
        return self._pipeline.response_for(slide.id)

    def _total_time_ms(self, now: datetime) -> int:
        if self._entered_at is None:
            return self._base_total_ms
        return self._base_total_ms + int((now - self._entered_at).total_seconds() * 1000)

    def _notify(self) -> None:
        if not self._listeners:
            return
        view = self.view
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("View listener raised")
