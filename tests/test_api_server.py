import pytest
from fastapi.testclient import TestClient

from fakes import SequenceRng
from quizdeck.core.services.host_session import HostSessionController
from quizdeck.server.api_server import create_api_app


@pytest.fixture
def host(shared, clock, deck):
    controller = HostSessionController(shared, clock=clock, rng=SequenceRng("AB12CD"))
    controller.start_session(deck, teacher_name="Ms. Berg")
    return controller


@pytest.fixture
def client(shared):
    return TestClient(create_api_app(shared))


def test_read_write_and_merge_nodes(client, shared):
    assert client.get("/store/scratch/a").json() == {"path": "scratch/a", "value": None}

    response = client.put("/store/scratch/a", json={"value": {"x": 1, "y": 2}})
    assert response.status_code == 200

    response = client.patch("/store/scratch/a", json={"fields": {"y": 3, "z/deep": True}})
    assert response.json() == {"path": "scratch/a", "updated": ["y", "z/deep"]}
    assert shared.read("scratch/a") == {"x": 1, "y": 3, "z": {"deep": True}}
    assert client.get("/store/scratch/a/z/deep").json()["value"] is True


def test_replacing_the_root_is_refused(client):
    assert client.put("/store/", json={"value": {}}).status_code == 422


def test_negative_list_index_is_rejected(client, shared):
    shared.write("scratch/list", [1, 2])
    response = client.patch("/store/scratch/list", json={"fields": {"-1": 5}})
    assert response.status_code == 422


def test_code_lookup(client, host):
    response = client.get("/codes/ab12cd")
    assert response.status_code == 200
    assert response.json() == {
        "code": "AB12CD",
        "session_id": host.session_id,
        "title": "Fractions warm-up",
        "is_active": True,
    }
    assert client.get("/codes/ZZZZZZ").status_code == 404


def test_slide_page_renders_html(client, host):
    response = client.get(f"/sessions/{host.session_id}/slides/1")
    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "Which is larger?" in response.text
    assert "MathJax" in response.text

    assert client.get(f"/sessions/{host.session_id}/slides/9").status_code == 404
    assert client.get("/sessions/quiz_NOPE_1/slides/0").status_code == 404
