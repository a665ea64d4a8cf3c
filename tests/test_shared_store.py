from quizdeck.store.shared_store import SharedSessionStore


def test_merge_touches_only_named_fields():
    store = SharedSessionStore()
    store.write("quiz_sessions/s1", {"is_active": True, "current_slide_index": 0})
    store.merge("quiz_sessions/s1", {"current_slide_index": 2, "settings/immediate_feedback": True})

    assert store.read("quiz_sessions/s1") == {
        "is_active": True,
        "current_slide_index": 2,
        "settings": {"immediate_feedback": True},
    }


def test_list_nodes_are_addressed_by_index():
    store = SharedSessionStore()
    store.write("s/students/a", {"responses": []})
    store.merge("s/students/a", {"responses/0": {"slide_id": "q1"}})
    store.merge("s/students/a/responses/0", {"is_correct": True})

    assert store.read("s/students/a/responses") == [{"slide_id": "q1", "is_correct": True}]


def test_writing_none_removes_node():
    store = SharedSessionStore()
    store.write("a/b", 1)
    store.remove("a/b")
    assert store.read("a/b") is None
    assert store.read("a") == {}


def test_listeners_see_changes_below_and_above_their_path():
    store = SharedSessionStore()
    store.write("quiz_sessions/s1", {"is_active": True})
    session_events = []
    flag_events = []
    store.listen("quiz_sessions/s1", session_events.append)
    store.listen("quiz_sessions/s1/is_active", flag_events.append)

    store.merge("quiz_sessions/s1", {"current_slide_index": 1})
    store.merge("quiz_sessions/s1", {"is_active": False})
    store.write("quiz_sessions/s2", {"is_active": True})

    assert session_events == [
        {"is_active": True, "current_slide_index": 1},
        {"is_active": False, "current_slide_index": 1},
    ]
    assert flag_events == [False]


def test_unchanged_writes_do_not_notify_and_listener_errors_are_contained():
    store = SharedSessionStore()
    store.write("x", {"v": 1})
    seen = []

    def broken(_value):
        raise RuntimeError("listener bug")

    store.listen("x", broken)
    unsubscribe = store.listen("x", seen.append)
    store.merge("x", {"v": 1})
    store.merge("x", {"v": 2})
    unsubscribe()
    store.merge("x", {"v": 3})

    assert seen == [{"v": 2}]
    assert store.listener_count() == 1


def test_reads_are_copies():
    store = SharedSessionStore()
    store.write("x", {"items": [1]})
    snapshot = store.read("x")
    snapshot["items"].append(2)
    assert store.read("x") == {"items": [1]}
