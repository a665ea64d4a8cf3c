import asyncio

import pytest

from fakes import FaultInjectingStore, SequenceRng
from quizdeck.core.errors import (
    ConnectivityError,
    InvalidCodeError,
    SessionEndedError,
    StaleSessionError,
    ValidationError,
)
from quizdeck.core.services.host_session import HostSessionController
from quizdeck.core.services.join_controller import JoinReconnectController
from quizdeck.core.services.local_store import LocalIdentityStore, SessionPointerStore
from quizdeck.store.realtime import LocalRealtimeStore


@pytest.fixture
def host(shared, clock, deck):
    controller = HostSessionController(shared, clock=clock, rng=SequenceRng("AB12CD"))
    controller.start_session(deck, teacher_name="Ms. Berg")
    return controller


def _controller(store, directory, retry, clock):
    return JoinReconnectController(
        store,
        LocalIdentityStore(directory, clock=clock),
        SessionPointerStore(directory),
        retry=retry,
        clock=clock,
    )


def test_join_validates_fields(shared, host, tmp_path, retry, clock):
    joiner = _controller(LocalRealtimeStore(shared), tmp_path, retry, clock)
    with pytest.raises(ValidationError):
        asyncio.run(joiner.join("  ", "Jana"))
    with pytest.raises(ValidationError):
        asyncio.run(joiner.join("AB12CD", "   "))


def test_join_creates_student_and_pointer(shared, host, tmp_path, retry, clock):
    joiner = _controller(LocalRealtimeStore(shared), tmp_path, retry, clock)
    membership = asyncio.run(joiner.join("ab12cd", " Jana ", school="Nordvik"))

    identity = LocalIdentityStore(tmp_path).load()
    assert membership.student_id == identity.id
    assert membership.session_id == host.session_id
    stored = shared.read(f"quiz_sessions/{host.session_id}/students/{identity.id}")
    assert stored["display_name"] == "Jana"
    assert stored["school"] == "Nordvik"
    assert stored["is_online"] is True
    assert stored["responses"] == {}
    assert joiner.pointer.join_code == "AB12CD"


def test_join_unknown_and_ended_codes(shared, host, tmp_path, retry, clock):
    joiner = _controller(LocalRealtimeStore(shared), tmp_path, retry, clock)
    with pytest.raises(InvalidCodeError):
        asyncio.run(joiner.join("ZZZZZZ", "Jana"))
    host.end_session()
    with pytest.raises(SessionEndedError):
        asyncio.run(joiner.join("AB12CD", "Jana"))


def test_rejoin_by_name_reuses_record(shared, host, tmp_path, retry, clock):
    first = asyncio.run(_controller(LocalRealtimeStore(shared), tmp_path / "a", retry, clock).join("AB12CD", "Jana"))
    response_path = f"quiz_sessions/{host.session_id}/students/{first.student_id}"
    shared.merge(response_path, {"responses/q1": {"slide_id": "q1", "answer": "a"}, "current_slide_index": 1})
    clock.advance(60)

    second = asyncio.run(_controller(LocalRealtimeStore(shared), tmp_path / "b", retry, clock).join("AB12CD", "JANA"))

    assert second.student_id == first.student_id
    assert second.reused_existing
    assert second.student.joined_at == first.student.joined_at
    assert second.student.current_slide_index == 1
    assert [r.slide_id for r in second.student.responses] == ["q1"]
    assert len(shared.read(f"quiz_sessions/{host.session_id}/students")) == 1


def test_join_with_different_code_drops_old_pointer(shared, host, tmp_path, retry, clock):
    joiner = _controller(LocalRealtimeStore(shared), tmp_path, retry, clock)
    asyncio.run(joiner.join("AB12CD", "Jana"))
    with pytest.raises(InvalidCodeError):
        asyncio.run(joiner.join("QQQQQQ", "Jana"))
    assert joiner.pointer is None


def test_reconnect_without_pointer_is_a_no_op(shared, tmp_path, retry, clock):
    joiner = _controller(LocalRealtimeStore(shared), tmp_path, retry, clock)
    assert asyncio.run(joiner.reconnect()) is None


def test_reconnect_restores_membership(shared, host, tmp_path, retry, clock):
    joiner = _controller(LocalRealtimeStore(shared), tmp_path, retry, clock)
    joined = asyncio.run(joiner.join("AB12CD", "Jana"))
    shared.merge(f"quiz_sessions/{host.session_id}/students/{joined.student_id}", {"is_online": False})

    restored = asyncio.run(_controller(LocalRealtimeStore(shared), tmp_path, retry, clock).reconnect("ab12cd"))

    assert restored.student_id == joined.student_id
    assert not restored.is_ended
    assert shared.read(f"quiz_sessions/{host.session_id}/students/{joined.student_id}/is_online") is True


def test_reconnect_with_other_url_code_requires_join(shared, host, tmp_path, retry, clock):
    joiner = _controller(LocalRealtimeStore(shared), tmp_path, retry, clock)
    asyncio.run(joiner.join("AB12CD", "Jana"))
    assert asyncio.run(joiner.reconnect("QQQQQQ")) is None
    assert joiner.pointer is None


def test_reconnect_to_ended_session_clears_pointer(shared, host, tmp_path, retry, clock):
    joiner = _controller(LocalRealtimeStore(shared), tmp_path, retry, clock)
    asyncio.run(joiner.join("AB12CD", "Jana"))
    host.end_session()

    membership = asyncio.run(joiner.reconnect())

    assert membership.is_ended
    assert membership.student.display_name == "Jana"
    assert joiner.pointer is None


def test_reconnect_to_purged_student_is_stale(shared, host, tmp_path, retry, clock):
    joiner = _controller(LocalRealtimeStore(shared), tmp_path, retry, clock)
    joined = asyncio.run(joiner.join("AB12CD", "Jana"))
    shared.remove(f"quiz_sessions/{host.session_id}/students/{joined.student_id}")

    with pytest.raises(StaleSessionError):
        asyncio.run(joiner.reconnect())
    assert joiner.pointer is None


def test_reconnect_to_missing_session_is_stale(shared, host, tmp_path, retry, clock):
    joiner = _controller(LocalRealtimeStore(shared), tmp_path, retry, clock)
    asyncio.run(joiner.join("AB12CD", "Jana"))
    shared.remove(f"quiz_sessions/{host.session_id}")

    with pytest.raises(StaleSessionError):
        asyncio.run(joiner.reconnect())
    assert joiner.pointer is None


def test_reconnect_keeps_pointer_when_offline(shared, host, tmp_path, retry, clock):
    store = FaultInjectingStore(LocalRealtimeStore(shared))
    joiner = _controller(store, tmp_path, retry, clock)
    asyncio.run(joiner.join("AB12CD", "Jana"))
    store.fail_gets = 1

    with pytest.raises(ConnectivityError):
        asyncio.run(joiner.reconnect())
    assert joiner.pointer is not None


class _EvaluatesBeforeFirstWrite(FaultInjectingStore):
    """Lets the host grade pending answers between the joiner's read and write."""

    def __init__(self, inner, host):
        super().__init__(inner)
        self._host = host

    async def update(self, path, fields):
        if self._host is not None:
            self._host.evaluate_slide(1)
            self._host = None
        await super().update(path, fields)


def test_rejoin_by_name_keeps_responses_graded_meanwhile(shared, host, tmp_path, retry, clock):
    first = asyncio.run(_controller(LocalRealtimeStore(shared), tmp_path / "a", retry, clock).join("AB12CD", "Jana"))
    student = f"quiz_sessions/{host.session_id}/students/{first.student_id}"
    shared.merge(
        student,
        {
            "responses/q1": {"slide_id": "q1", "activity_type": "abc", "answer": "a"},
            "current_slide_index": 1,
        },
    )
    store = _EvaluatesBeforeFirstWrite(LocalRealtimeStore(shared), host)

    second = asyncio.run(_controller(store, tmp_path / "b", retry, clock).join("AB12CD", "jana"))

    assert second.student_id == first.student_id
    assert shared.read(f"{student}/responses/q1/is_correct") is True
    assert shared.read(f"{student}/current_slide_index") == 1
    [(path, fields)] = store.update_calls
    assert path == student
    assert "responses" not in fields
    assert "current_slide_index" not in fields
    assert fields["is_online"] is True
    assert fields["display_name"] == "jana"


def test_rejoin_from_same_device_under_new_name_reuses_record(shared, host, tmp_path, retry, clock):
    joiner = _controller(LocalRealtimeStore(shared), tmp_path, retry, clock)
    first = asyncio.run(joiner.join("AB12CD", "Jana"))
    shared.merge(
        f"quiz_sessions/{host.session_id}/students/{first.student_id}",
        {"responses/q1": {"slide_id": "q1", "activity_type": "abc", "answer": "b"}},
    )

    second = asyncio.run(joiner.join("AB12CD", "Jana B."))

    assert second.student_id == first.student_id
    assert second.reused_existing
    stored = shared.read(f"quiz_sessions/{host.session_id}/students/{first.student_id}")
    assert stored["display_name"] == "Jana B."
    assert stored["responses"]["q1"]["answer"] == "b"
