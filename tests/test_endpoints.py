import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import TODAY
from lumi.config import Config
from lumi.main import create_app
from lumi.orchestrator.chat import ChatService, build_client
from lumi.orchestrator.goals import GoalStore

PLAN_REPLY = '```json\n{"goal_title": "Read daily", "phases": [{"days": 2, "task_label": "Read 10 pages"}]}\n```\nLet us begin!'


@pytest.fixture
def client(config, upstream):
    service = ChatService(config=config, store=GoalStore(), client=build_client(config, upstream.client()), clock=lambda: TODAY)
    with TestClient(create_app(config, chat_service=service)) as test_client:
        yield test_client


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok", "configured": True, "fallback": True}


def test_send_creates_goal(client, upstream):
    upstream.reply(PLAN_REPLY)
    res = client.post("/chat/send", json={"text": "I want to read more"})
    assert res.status_code == 200
    data = res.json()
    assert data["phase"] == "companion"
    assert data["display_text"] == "Let us begin!"
    assert data["goal"]["title"] == "Read daily"
    assert len(data["goal"]["daily_tasks"]) == 2

    active = client.get("/goals/active")
    assert active.status_code == 200
    snapshot = active.json()
    assert snapshot["today_task"]["label"] == "Read 10 pages"
    assert snapshot["progress"] == {"completed": 0, "total": 2, "ratio": 0.0}


def test_send_requires_text(client):
    assert client.post("/chat/send", json={"text": "  "}).status_code == 400
    assert client.post("/chat/send", json={}).status_code == 400


def test_upstream_http_error_maps_to_bad_gateway(client, upstream):
    upstream.then(httpx.Response(401, json={"error": {"message": "Invalid API key"}}))
    res = client.post("/chat/send", json={"text": "hello"})
    assert res.status_code == 502
    assert res.json()["detail"] == {"kind": "http_error", "status": 401, "message": "Invalid API key"}


def test_unreachable_upstreams_map_to_service_unavailable(client, upstream):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    upstream.then(refuse).then(refuse)
    res = client.post("/chat/send", json={"text": "hello"})
    assert res.status_code == 503
    assert upstream.hosts() == ["primary.test", "fallback.test"]


def test_unconfigured_service_maps_to_service_unavailable(upstream):
    config = Config(primary_api_key="")
    service = ChatService(config=config, store=GoalStore(), client=build_client(config, upstream.client()))
    with TestClient(create_app(config, chat_service=service)) as test_client:
        res = test_client.post("/chat/send", json={"text": "hello"})
    assert res.status_code == 503


def test_silent_event(client, upstream):
    upstream.reply("“光一直都在。”")
    res = client.post("/chat/silent", json={"trigger": "wake_reminder"})
    assert res.status_code == 200
    assert res.json() == {"text": "光一直都在。", "source": "ai"}
    assert client.post("/chat/silent", json={}).status_code == 400


def test_restart_outside_witness_conflicts(client):
    res = client.post("/chat/restart")
    assert res.status_code == 409
    assert client.post("/chat/witness-letter").status_code == 409


def test_complete_tasks_through_witness_and_restart(client, upstream):
    upstream.reply(PLAN_REPLY)
    goal = client.post("/chat/send", json={"text": "I want to read more"}).json()["goal"]
    for task in goal["daily_tasks"]:
        res = client.post(f"/goals/{goal['id']}/tasks/{task['id']}/complete")
        assert res.status_code == 200
    assert res.json()["phase"] == "witness"
    assert res.json()["goal"]["goal"]["is_completed"] is True
    assert client.get("/goals/active").status_code == 404
    archived = client.get("/goals", params={"archived": "true"}).json()
    assert [item["id"] for item in archived] == [goal["id"]]

    upstream.reply("Dear friend, two days of reading, and you never stopped.")
    letter = client.post("/chat/witness-letter")
    assert letter.status_code == 200
    assert letter.json()["reply"].startswith("Dear friend")

    restarted = client.post("/chat/restart")
    assert restarted.status_code == 200
    assert restarted.json()["phase"] == "onboarding"
    assert client.get("/chat/session").json()["historyCount"] == 0


def test_complete_unknown_task_is_not_found(client):
    assert client.post("/goals/nope/tasks/nope/complete").status_code == 404
