import asyncio

import pytest
from fastapi.testclient import TestClient

from api.canvas import models as api_models
from api.canvas import services
from api.canvas.session import build_session
from api.main import app
from canvas_engine.engine import ExecutionEngine
from tests.helpers import FakeChatModel

PLAN = {
    "summary": "Add two numbers",
    "schema": {
        "items": [
            {"baseId": "get_input", "label": "Numbers", "data": {"value": "20 + 22"}},
            {"baseId": "calculator", "label": "Add"},
            {"baseId": "end", "label": "Done"},
        ],
        "connections": [{"from": 0, "to": 1}, {"from": 1, "to": 2}],
    },
}


@pytest.fixture
def llm():
    return FakeChatModel()


@pytest.fixture
def session(llm):
    return build_session(
        persist=False,
        llm_factory=llm.factory,
        engine=ExecutionEngine(start_delay=0, settle_delay=0),
    )


@pytest.fixture
def client(session):
    app.state.canvas = session
    with TestClient(app) as test_client:
        yield test_client
    app.state.canvas = None


def _add(client, base_id, data=None):
    body = {"baseId": base_id}
    if data is not None:
        body["data"] = data
    response = client.post("/v1/schema/items", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_build_and_run_schema(client):
    source = _add(client, "get_input", {"value": "3 + 4"})
    calc = _add(client, "calculator")

    response = client.post("/v1/schema/connections", json={"from": source["id"], "to": calc["id"]})
    assert response.status_code == 201
    assert response.json() == {"id": f"conn_{source['id']}_{calc['id']}", "from": source["id"], "to": calc["id"]}
    duplicate = client.post("/v1/schema/connections", json={"from": source["id"], "to": calc["id"]})
    assert duplicate.status_code == 400

    run = client.post("/v1/runs", json={}).json()

    assert run["status"] == "completed"
    assert run["run"]["status"] == "completed"
    assert run["run"]["events"][-1]["nodeId"] == calc["id"]
    assert run["run"]["events"][-1]["data"] == "Result: 7"

    status = client.get("/v1/status").json()
    assert status["running"] is False
    assert set(status["nodes"].values()) == {"success"}
    assert len(client.get("/v1/runs").json()["runs"]) == 1

    assert client.delete("/v1/runs").status_code == 200
    assert client.get("/v1/runs").json()["runs"] == []
    reset = client.post("/v1/status/reset").json()
    assert reset["nodes"] == {}


def test_item_editing(client):
    wait = _add(client, "wait")
    assert wait["data"] == {"duration": 5}
    assert wait["baseId"] == "wait"

    moved = client.post(f"/v1/schema/items/{wait['id']}/move", json={"dx": 10, "dy": -5}).json()
    assert moved["position"] == {"x": wait["position"]["x"] + 10, "y": wait["position"]["y"] - 5}

    assert client.post("/v1/schema/items", json={"baseId": "nope"}).status_code == 404
    assert client.delete(f"/v1/schema/items/{wait['id']}").status_code == 204
    assert client.delete(f"/v1/schema/items/{wait['id']}").status_code == 404
    assert client.post("/v1/schema/items/ghost/move", json={"dx": 1, "dy": 1}).status_code == 404


def test_agents_are_placed_once(client):
    response = client.post("/v1/library/agents", json={"id": "agent_helper", "name": "Helper", "tools": ["calculator"]})
    assert response.status_code == 201

    assert "agent_helper" in [agent["id"] for agent in client.get("/v1/library").json()["agents"]]
    _add(client, "agent_helper")
    assert client.post("/v1/schema/items", json={"baseId": "agent_helper"}).status_code == 409

    assert client.delete("/v1/library/agents/agent_helper").status_code == 204
    assert client.delete("/v1/library/agents/agent_helper").status_code == 404


def test_custom_items_join_the_library(client):
    response = client.post("/v1/library/items", json={"id": "custom_fmt", "name": "Formatter", "type": "node"})
    assert response.status_code == 201
    assert response.json()["isCustom"] is True

    assert "custom_fmt" in [node["id"] for node in client.get("/v1/library").json()["nodes"]]
    _add(client, "custom_fmt")


def test_dry_run_does_not_touch_the_log(client):
    _add(client, "get_input")

    response = client.post("/v1/runs", json={"dryRun": True}).json()

    assert response == {"status": "failed", "run": None}
    assert client.get("/v1/runs").json()["runs"] == []


def test_projects_save_run_and_delete(client, session):
    assert client.post("/v1/projects", json={"name": "Empty"}).status_code == 400

    _add(client, "get_input", {"value": "1 + 1"})
    project = client.post("/v1/projects", json={"name": "Demo"}).json()
    assert project["id"].startswith("proj_")
    assert len(project["schema"]["items"]) == 1

    client.post("/v1/schema/clear")
    assert client.get("/v1/schema").json()["items"] == []

    run = client.post(f"/v1/projects/{project['id']}/runs").json()
    assert run["status"] == "completed"
    assert len(session.graph.items) == 1

    assert [p["id"] for p in client.get("/v1/projects").json()] == [project["id"]]
    assert client.delete(f"/v1/projects/{project['id']}").status_code == 204
    assert client.post(f"/v1/projects/{project['id']}/runs").status_code == 404


def test_apply_explicit_plan(client):
    response = client.post("/v1/schema/plan", json={"plan": PLAN})

    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == "Add two numbers"
    assert [item["name"] for item in body["schema"]["items"]] == ["Numbers", "Add", "Done"]
    assert len(body["schema"]["connections"]) == 2

    run = client.post("/v1/runs", json={}).json()
    assert run["status"] == "completed"


def test_plan_from_prompt_uses_the_model(client, llm):
    llm.responses.append(PLAN)

    response = client.post("/v1/schema/plan", json={"prompt": "add 20 and 22"})

    assert response.status_code == 200
    assert len(llm.calls) == 1
    assert client.post("/v1/schema/plan", json={"prompt": "  "}).status_code == 400


def test_replace_schema(client):
    schema = {
        "items": [
            {"id": "a", "baseId": "start", "type": "node", "name": "Start", "position": {"x": 1, "y": 2}},
        ],
        "connections": [],
    }

    assert client.put("/v1/schema", json=schema).status_code == 200
    assert client.get("/v1/schema").json()["items"][0]["id"] == "a"


class RecordingLogger:
    def __init__(self):
        self.warnings = []
        self.errors = []

    def warning(self, message, *args, **kwargs):
        self.warnings.append(message)

    def error(self, message, *args, **kwargs):
        self.errors.append(message)

    def info(self, message, *args, **kwargs):
        pass


@pytest.mark.asyncio
async def test_background_run_that_loses_the_race_is_logged(session, monkeypatch):
    recorder = RecordingLogger()
    monkeypatch.setattr(services, "logger", recorder)
    session.graph.add_item(session.catalog.get("wait"), {"duration": 0.05})
    payload = api_models.RunRequest(wait=False)

    assert (await services.start_run(session, payload)).status == "running"
    assert (await services.start_run(session, payload)).status == "running"
    tasks = list(session.background_tasks)

    await asyncio.gather(*tasks, return_exceptions=True)
    await asyncio.sleep(0)

    assert session.background_tasks == set()
    assert recorder.warnings == ["Background run not started: A run is already in progress"]
    assert recorder.errors == []
    assert [run.status for run in session.execution_log.runs()] == ["completed"]
