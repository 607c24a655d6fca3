import pytest

import voyant.graph.graph as dispatcher
from voyant.graph.graph import EMPTY_REPLY
from voyant.server import create_app


@pytest.fixture
def client(services):
    app = create_app(services)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c
    create_app(None)


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.get_json() == {"ok": True}


def test_chat_requires_a_message(client):
    res = client.post("/chat", json={"thread_id": "t1"})
    assert res.status_code == 400


def test_chat_answers_and_keeps_thread(client):
    res = client.post("/chat", json={"message": "weather in Tokyo", "thread_id": "t1"})
    body = res.get_json()

    assert res.status_code == 200
    assert body["thread_id"] == "t1"
    assert body["done"] is True
    assert "Tokyo" in body["reply"]
    assert [t["node"] for t in body["trace"]][-1] == "weather"


def test_chat_accepts_conversation_id(client):
    body = client.post("/chat", json={"message": "  ", "conversation_id": "c9"}).get_json()
    assert body["thread_id"] == "c9"
    assert body["reply"] == EMPTY_REPLY


def test_chat_generates_thread_id(client):
    body = client.post("/chat", json={"message": "plan a trip"}).get_json()
    assert body["thread_id"]


def test_receipts_endpoint(client):
    client.post("/chat", json={"message": "weather in Tokyo", "thread_id": "t2"})
    body = client.get("/threads/t2/receipts").get_json()

    assert body["thread_id"] == "t2"
    assert body["facts"][0]["source"] == "open-meteo.com"
    assert body["reply"]


def test_graph_is_compiled_once(services, monkeypatch):
    app = create_app(services)
    builds = []
    original = dispatcher.build_graph
    monkeypatch.setattr(dispatcher, "build_graph", lambda s: builds.append(s) or original(s))

    with app.test_client() as c:
        c.post("/chat", json={"message": "weather in Tokyo", "thread_id": "t3"})
        c.post("/chat", json={"message": "weather in Paris", "thread_id": "t3"})
    create_app(None)

    assert builds == []
