"""
Tests for the HTTP layer.

Services are wired by hand into app.state; the lifespan handler (which
builds real provider clients) is not run.
"""

import pytest
from fastapi.testclient import TestClient

from kb_assistant.core.config import Settings
from kb_assistant.db import Database
from kb_assistant.main import app
from kb_assistant.services.rag import RAGOrchestrator
from kb_assistant.services.settings_store import SettingsStore
from kb_assistant.services.streaming import ResponseStreamOrchestrator
from kb_assistant.services.usage_store import UsageStore

from fakes import FakeCompletion, FakeRetriever, make_passage, parse_frames, split_body


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'api.db'}")
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def retriever():
    return FakeRetriever([make_passage("Refunds take 5 days.", "billing.pdf", 2)])


@pytest.fixture
def completion():
    return FakeCompletion(["<think>check billing</think>Refunds take ", "5 days [Source 1]."])


@pytest.fixture
def test_client(database, retriever, completion):
    settings_store = SettingsStore(database)
    usage_store = UsageStore(database)
    streamer = ResponseStreamOrchestrator(completion, usage_store)

    app.state.rag_orchestrator = RAGOrchestrator(
        Settings(retrieval_top_k=3), retriever, settings_store, streamer
    )
    app.state.settings_store = settings_store
    app.state.usage_store = usage_store

    yield TestClient(app)

    for name in ("rag_orchestrator", "settings_store", "usage_store"):
        delattr(app.state, name)


def test_health_endpoint(test_client):
    response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "kb-assistant"}


def test_chat_streams_answer_sources_and_done(test_client):
    response = test_client.post("/chat", json={"message": "How long do refunds take?"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    events = parse_frames(split_body(response.text))
    text = "".join(e["content"] for e in events if isinstance(e, dict) and "content" in e)
    assert text == "Refunds take 5 days [Source 1]."
    assert events[-2] == {"sources": [{"index": 1, "filename": "billing.pdf", "chunkIndex": 2}]}
    assert events[-1] == "[DONE]"


def test_chat_accepts_conversation_history(test_client, completion):
    response = test_client.post(
        "/chat",
        json={
            "message": "And refunds?",
            "conversationHistory": [
                {"role": "user", "content": "Hi"},
                {"role": "assistant", "content": "Hello!"},
            ],
        },
    )

    assert response.status_code == 200
    sent = completion.calls[0]["messages"]
    assert [m.role for m in sent] == ["system", "user", "assistant", "user"]


def test_chat_without_message_is_rejected(test_client, retriever):
    response = test_client.post("/chat", json={"message": ""})

    assert response.status_code == 400
    assert response.json() == {"error": "Message is required"}
    assert retriever.queries == []


def test_chat_retrieval_failure_is_a_json_error(test_client, retriever):
    retriever.error = ConnectionError("index unreachable")

    response = test_client.post("/chat", json={"message": "Hello?"})

    assert response.status_code == 502
    assert "index unreachable" in response.json()["error"]


def test_chat_provider_failure_is_reported_in_stream(test_client, completion):
    completion.fail_after = 0

    response = test_client.post("/chat", json={"message": "Hello?"})

    assert response.status_code == 200
    assert parse_frames(split_body(response.text)) == [{"error": "provider exploded"}]


def test_chat_records_usage(test_client):
    test_client.post("/chat", json={"message": "How long do refunds take?"})

    summary = test_client.get("/usage").json()
    assert summary["total_requests"] == 1
    assert summary["today_requests"] == 1
    assert summary["total_tokens"] > 0


def test_settings_defaults_and_update(test_client):
    defaults = test_client.get("/settings").json()
    assert defaults["assistantName"] == "Knowledge Base Assistant"
    assert "Salesforce" in defaults["competitorList"]

    response = test_client.post(
        "/settings",
        json={"assistantName": "Acme Helper", "competitorList": ["Globex"], "modelId": "qwen-3-32b"},
    )
    assert response.json() == {"success": True}

    updated = test_client.get("/settings").json()
    assert updated["assistantName"] == "Acme Helper"
    assert updated["competitorList"] == ["Globex"]
    assert updated["modelId"] == "qwen-3-32b"
    assert updated["competitorRedirect"] == defaults["competitorRedirect"]


def test_saved_settings_shape_the_prompt(test_client, completion):
    test_client.post("/settings", json={"assistantName": "Acme Helper", "modelId": "qwen-3-32b"})

    test_client.post("/chat", json={"message": "Hi"})

    call = completion.calls[0]
    assert "Acme Helper" in call["messages"][0].content
    assert call["model"] == "qwen-3-32b"
