import asyncio

from fakes import FaultInjectingStore, settle
from quizdeck.core.services.slide_sync import SlidePositionSynchronizer
from quizdeck.store.realtime import LocalRealtimeStore

STUDENT = "quiz_sessions/quiz_AB12CD_1/students/student_1"


def _sync(store, clock, **kwargs):
    return SlidePositionSynchronizer(store, "quiz_AB12CD_1", "student_1", clock=clock, **kwargs)


def test_restore_uses_teacher_index_when_locked(shared, clock):
    sync = _sync(LocalRealtimeStore(shared), clock)
    sync.restore(3, is_locked=True, remote_index=1, slide_count=4)
    assert sync.effective_index == 1
    assert sync.local_index == 1


def test_restore_keeps_saved_index_when_unlocked(shared, clock):
    sync = _sync(LocalRealtimeStore(shared), clock)
    sync.restore(9, is_locked=False, remote_index=0, slide_count=4)
    assert sync.effective_index == 3


def test_locked_student_follows_teacher_and_pings(shared, clock):
    changes = []

    async def scenario():
        sync = _sync(LocalRealtimeStore(shared), clock, on_change=lambda: changes.append(1))
        sync.restore(0, is_locked=True, remote_index=0, slide_count=4)
        sync.interaction.selected_option = "a"
        clock.advance(5)
        moved = sync.apply_remote(is_locked=True, remote_index=2, slide_count=4)
        transitioning = sync.is_transitioning
        await sync.drain()
        return sync, moved, transitioning

    sync, moved, transitioning = asyncio.run(scenario())

    assert moved
    assert transitioning
    assert sync.effective_index == 2
    assert sync.interaction.selected_option is None
    assert sync.interaction.slide_started_at == clock.now
    assert shared.read(f"{STUDENT}/current_slide_index") == 2
    assert changes


def test_unchanged_snapshot_keeps_interaction(shared, clock):
    async def scenario():
        sync = _sync(LocalRealtimeStore(shared), clock)
        sync.restore(0, is_locked=True, remote_index=1, slide_count=4)
        sync.interaction.text_answer = "0.75"
        moved = sync.apply_remote(is_locked=True, remote_index=1, slide_count=4)
        return sync, moved

    sync, moved = asyncio.run(scenario())
    assert not moved
    assert sync.interaction.text_answer == "0.75"


def test_unlocking_keeps_students_on_their_own_slide(shared, clock):
    async def scenario():
        sync = _sync(LocalRealtimeStore(shared), clock)
        sync.restore(0, is_locked=True, remote_index=1, slide_count=4)
        sync.apply_remote(is_locked=False, remote_index=1, slide_count=4)
        sync.apply_remote(is_locked=False, remote_index=3, slide_count=4)
        return sync

    sync = asyncio.run(scenario())
    assert sync.effective_index == 1


def test_unlocked_step_moves_within_bounds(shared, clock):
    async def scenario():
        sync = _sync(LocalRealtimeStore(shared), clock)
        sync.restore(0, is_locked=False, remote_index=0, slide_count=2)
        first = await sync.step(1)
        second = await sync.step(1)
        back = await sync.step(-1)
        return sync, (first, second, back)

    sync, results = asyncio.run(scenario())
    assert results == (True, False, True)
    assert sync.effective_index == 0
    assert shared.read(f"{STUDENT}/current_slide_index") == 0


def test_locked_step_is_refused(shared, clock):
    async def scenario():
        sync = _sync(LocalRealtimeStore(shared), clock)
        sync.restore(0, is_locked=True, remote_index=0, slide_count=4)
        return await sync.step(1)

    assert asyncio.run(scenario()) is False
    assert shared.read(STUDENT) is None


def test_blocked_step_wiggles_then_clears(shared, clock):
    async def scenario():
        sync = _sync(LocalRealtimeStore(shared), clock, wiggle_seconds=0.01)
        sync.restore(0, is_locked=False, remote_index=0, slide_count=4)
        moved = await sync.step(1, blocked=True)
        wiggling = sync.show_wiggle
        await asyncio.sleep(0.05)
        return sync, moved, wiggling

    sync, moved, wiggling = asyncio.run(scenario())
    assert not moved
    assert wiggling
    assert not sync.show_wiggle
    assert sync.effective_index == 0


def test_failed_ping_does_not_block_navigation(shared, clock):
    store = FaultInjectingStore(LocalRealtimeStore(shared))
    store.always_fail_updates = True

    async def scenario():
        sync = _sync(store, clock)
        sync.restore(0, is_locked=False, remote_index=0, slide_count=4)
        moved = await sync.step(1)
        await settle()
        return sync, moved

    sync, moved = asyncio.run(scenario())
    assert moved
    assert sync.effective_index == 1
