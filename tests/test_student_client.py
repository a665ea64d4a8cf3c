import asyncio

import pytest

from fakes import FaultInjectingStore, SequenceRng, settle
from quizdeck.core.errors import InvalidCodeError, StaleSessionError
from quizdeck.core.services.host_session import HostSessionController
from quizdeck.core.services.local_store import SessionPointerStore
from quizdeck.core.student_client import SAVE_FAILED_MESSAGE, StudentSessionClient
from quizdeck.store.realtime import LocalRealtimeStore


def _start(shared, clock, deck, **options):
    host = HostSessionController(shared, clock=clock, rng=SequenceRng("AB12CD"))
    host.start_session(deck, teacher_name="Ms. Berg", **options)
    return host


def _client(store, tmp_path, retry, clock):
    return StudentSessionClient(store, tmp_path, retry=retry, clock=clock)


def _student(shared, host, client):
    return shared.read(f"quiz_sessions/{host.session_id}/students/{client.membership.student_id}")


def test_locked_join_answer_and_teacher_evaluation(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck)

    async def scenario():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        view = await client.join_session("ab12cd", "Jana")
        assert view.is_joined and view.effective_slide_index == 0
        await settle()

        host.go_to_slide(1)
        await settle()
        assert client.view.effective_slide_index == 1
        assert not client.view.can_navigate

        client.select_option("a")
        clock.advance(20)
        response = await client.submit_answer()
        await settle()
        stored = _student(shared, host, client)
        pending = client.view.pending_count

        host.evaluate_slide()
        await settle()
        view = client.view
        client.close()
        await settle()
        return response, stored, pending, view

    response, stored, pending, view = asyncio.run(scenario())

    assert response.is_correct is None
    assert response.time_spent_seconds == 20
    assert stored["responses"]["q1"]["answer"] == "a"
    assert stored["current_slide_index"] == 1
    assert stored["total_time_ms"] == 20000
    assert pending == 1
    assert view.correct_count == 1 and view.pending_count == 0
    assert view.show_result


def test_immediate_feedback_grades_on_submit(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck, immediate_feedback=True)
    host.go_to_slide(2)

    async def scenario():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        client.set_text_answer(" 0,8 ")
        response = await client.submit_answer()
        view = client.view
        client.close()
        return response, view

    response, view = asyncio.run(scenario())
    assert response.answer == "0,8"
    assert response.is_correct is False
    assert view.wrong_count == 1


def test_reload_restores_single_response_and_submit_is_idempotent(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck)
    host.go_to_slide(1)

    async def first_visit():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        await client.submit_answer("a")
        await settle()
        client.close()
        await settle()

    async def second_visit():
        store = FaultInjectingStore(LocalRealtimeStore(shared))
        client = _client(store, tmp_path, retry, clock)
        view = await client.resume("AB12CD")
        await settle()
        writes_before = [path for path, fields in store.update_calls if any(k.startswith("responses") for k in fields)]
        again = await client.submit_answer("b")
        writes_after = [path for path, fields in store.update_calls if any(k.startswith("responses") for k in fields)]
        view_after = client.view
        client.close()
        return view, again, writes_before, writes_after, view_after

    asyncio.run(first_visit())
    assert shared.read(f"quiz_sessions/{host.session_id}/students")
    view, again, before, after, view_after = asyncio.run(second_visit())

    assert view.is_joined
    assert [r.slide_id for r in view.responses] == ["q1"]
    assert again.answer == "a"
    assert before == after
    assert len(view_after.responses) == 1
    assert view_after.has_answered_current


def test_offline_signal_on_close(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck)

    async def scenario():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        online = _student(shared, host, client)["is_online"]
        client.close()
        await settle()
        return client, online

    client, online = asyncio.run(scenario())
    assert online is True
    assert _student(shared, host, client)["is_online"] is False
    assert shared.listener_count() == 0


def test_resume_into_ended_session_shows_results_only(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck)

    async def join():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        client.close()
        await settle()

    async def resume():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        view = await client.resume()
        await settle()
        moved = await client.go_to_next_slide()
        submitted = await client.submit_answer("a")
        return view, moved, submitted

    asyncio.run(join())
    host.end_session()
    view, moved, submitted = asyncio.run(resume())

    assert view.is_ended and view.is_joined
    assert not view.can_navigate
    assert moved is False and submitted is None
    assert shared.listener_count() == 0
    assert SessionPointerStore(tmp_path).load() is None


def test_live_end_stops_sync_and_clears_pointer(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck)

    async def scenario():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        host.end_session()
        await settle()
        return client.view

    view = asyncio.run(scenario())
    assert view.is_ended
    assert shared.listener_count() == 0
    assert SessionPointerStore(tmp_path).load() is None


def test_purged_student_record_drops_membership(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck)

    async def scenario():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        shared.remove(f"quiz_sessions/{host.session_id}/students/{client.membership.student_id}")
        await settle()
        return client

    client = asyncio.run(scenario())
    assert client.membership is None
    assert not client.view.is_joined
    assert client.view.connection_error == StaleSessionError().user_message
    assert SessionPointerStore(tmp_path).load() is None


def test_unlocked_navigation_gates_unanswered_activities(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck, locked=False)

    async def scenario():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        back = await client.go_to_prev_slide()
        to_question = await client.go_to_next_slide()
        gated = await client.go_to_next_slide()
        wiggle = client.view.show_wiggle
        await client.submit_answer("a")
        past_question = await client.go_to_next_slide()
        await settle()
        index = client.view.effective_slide_index
        client.close()
        await settle()
        return back, to_question, gated, wiggle, past_question, index, client.membership.student_id

    back, to_question, gated, wiggle, past_question, index, student_id = asyncio.run(scenario())
    assert (back, to_question, gated, past_question) == (False, True, False, True)
    assert wiggle
    assert index == 2
    assert shared.read(f"quiz_sessions/{host.session_id}/students/{student_id}/current_slide_index") == 2

    async def reload():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        view = await client.resume()
        client.close()
        return view

    assert asyncio.run(reload()).effective_slide_index == 2


def test_paused_session_blocks_answers_and_navigation(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck, locked=False)

    async def scenario():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        host.set_paused(True)
        await settle()
        paused_view = client.view
        moved = await client.go_to_next_slide()
        host.set_paused(False)
        await settle()
        resumed = await client.go_to_next_slide()
        client.close()
        return paused_view, moved, resumed

    paused_view, moved, resumed = asyncio.run(scenario())
    assert paused_view.is_paused and not paused_view.can_navigate
    assert moved is False
    assert resumed is True


def test_failed_save_shows_banner_and_reconnect_flushes(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck)
    host.go_to_slide(1)
    store = FaultInjectingStore(LocalRealtimeStore(shared))

    async def scenario():
        client = _client(store, tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        store.always_fail_updates = True
        response = await client.submit_answer("a")
        banner = client.view.connection_error
        await client.set_network_available(False)
        store.always_fail_updates = False
        await client.set_network_available(True)
        await settle()
        view = client.view
        client.close()
        return client, response, banner, view

    client, response, banner, view = asyncio.run(scenario())
    assert response is not None
    assert banner == SAVE_FAILED_MESSAGE
    assert view.connection_error is None
    assert view.is_online
    stored = _student(shared, host, client)
    assert list(stored["responses"]) == ["q1"]


def test_join_errors_are_shown_and_raised(shared, tmp_path, retry, clock, deck):
    _start(shared, clock, deck)

    async def scenario():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        with pytest.raises(InvalidCodeError):
            await client.join_session("ZZZZZZ", "Jana")
        return client.view

    view = asyncio.run(scenario())
    assert not view.is_joined
    assert view.connection_error == InvalidCodeError().user_message


def test_listeners_see_every_change(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck)
    frames = []

    async def scenario():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        remove = client.add_listener(lambda view: frames.append(view.effective_slide_index))
        await client.join_session("AB12CD", "Jana")
        await settle()
        host.go_to_slide(3)
        await settle()
        remove()
        host.go_to_slide(0)
        await settle()
        client.close()

    asyncio.run(scenario())
    assert frames[0] == 0
    assert frames[-1] == 3


@pytest.mark.parametrize("immediate_feedback, expected", [(True, False), (False, None)])
def test_wrong_choice_is_graded_only_with_immediate_feedback(
    shared, tmp_path, retry, clock, deck, immediate_feedback, expected
):
    host = _start(shared, clock, deck, immediate_feedback=immediate_feedback)
    host.go_to_slide(1)

    async def scenario():
        client = _client(LocalRealtimeStore(shared), tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        client.select_option("b")
        await client.submit_answer()
        await settle()
        client.close()
        return client.membership.student_id

    student_id = asyncio.run(scenario())
    stored = shared.read(f"quiz_sessions/{host.session_id}/students/{student_id}/responses")
    assert len(stored) == 1
    assert (stored["q1"]["slide_id"], stored["q1"]["answer"], stored["q1"]["is_correct"]) == ("q1", "b", expected)


def test_unsaved_answer_survives_grading_of_a_later_slide(shared, tmp_path, retry, clock, deck):
    host = _start(shared, clock, deck)
    host.go_to_slide(1)
    store = FaultInjectingStore(LocalRealtimeStore(shared))

    async def scenario():
        client = _client(store, tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        store.always_fail_updates = True
        await client.submit_answer("a")
        banner = client.view.connection_error
        store.always_fail_updates = False

        host.go_to_slide(2)
        await settle()
        client.set_text_answer("0.75")
        await client.submit_answer()
        await settle()
        host.evaluate_slide()
        await settle()
        await client.reconnect()
        await settle()
        view = client.view
        client.close()
        return client, banner, view

    client, banner, view = asyncio.run(scenario())
    assert banner == SAVE_FAILED_MESSAGE
    assert view.connection_error is None
    stored = _student(shared, host, client)["responses"]
    assert set(stored) == {"q1", "q2"}
    assert stored["q1"]["answer"] == "a"
    assert stored["q2"]["is_correct"] is True
    assert {r.slide_id: r.is_correct for r in view.responses} == {"q1": None, "q2": True}


def test_focus_change_is_written_without_retry(shared, tmp_path, retry, clock, deck, caplog):
    host = _start(shared, clock, deck)
    store = FaultInjectingStore(LocalRealtimeStore(shared))

    async def scenario():
        client = _client(store, tmp_path, retry, clock)
        await client.join_session("AB12CD", "Jana")
        await settle()
        clock.advance(30)
        await client.set_focused(False)
        blurred = _student(shared, host, client)
        store.always_fail_updates = True
        calls_before = len(store.update_calls)
        await client.set_focused(True)
        failed_calls = len(store.update_calls) - calls_before
        store.always_fail_updates = False
        view = client.view
        client.close()
        await settle()
        return blurred, failed_calls, view

    blurred, failed_calls, view = asyncio.run(scenario())
    assert blurred["is_focused"] is False
    assert blurred["last_seen_at"].startswith("2025-03-04T08:30:30")
    assert failed_calls == 1
    assert view.connection_error is None
    assert "focus update" in caplog.text
