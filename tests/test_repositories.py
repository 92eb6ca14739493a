import json

import pytest

from canvas_core.models import AgentConfig, Project, SchemaState
from canvas_engine.execution_log import EventStatus, ExecutionEvent, ExecutionLog, ExecutionRun
from shared.repositories import InMemoryRepository, JsonFileRepository, RecordNotFoundError


def test_in_memory_repository_crud():
    repo = InMemoryRepository[AgentConfig]()
    repo.save(AgentConfig(id="a1", name="First"))
    repo.save(AgentConfig(id="a2", name="Second"))
    repo.save(AgentConfig(id="a1", name="First, renamed"))

    assert [agent.name for agent in repo.list()] == ["First, renamed", "Second"]
    assert repo.delete("a2") is True
    assert repo.delete("a2") is False
    with pytest.raises(RecordNotFoundError):
        repo.require("a2")


def test_json_repository_persists_with_wire_names(tmp_path):
    repo = JsonFileRepository(tmp_path, "projects", Project)
    repo.save(Project(id="p1", name="Demo", schema_state=SchemaState()))

    payload = json.loads((tmp_path / "projects.json").read_text(encoding="utf-8"))
    assert payload[0]["schema"] == {"items": [], "connections": []}
    assert "createdAt" in payload[0]

    reopened = JsonFileRepository(tmp_path, "projects", Project)
    assert reopened.get("p1").name == "Demo"

    reopened.clear()
    assert JsonFileRepository(tmp_path, "projects", Project).list() == []


def test_json_repository_treats_corrupt_file_as_empty(tmp_path):
    (tmp_path / "agents.json").write_text("{not json", encoding="utf-8")

    repo = JsonFileRepository(tmp_path, "agents", AgentConfig)

    assert repo.list() == []
    repo.save(AgentConfig(id="a1", name="Recovered"))
    assert JsonFileRepository(tmp_path, "agents", AgentConfig).get("a1").name == "Recovered"


def test_execution_log_records_runs_newest_first():
    log = ExecutionLog()
    first = log.start_run()
    log.record(first, ExecutionEvent(node_id="a", node_name="A", status=EventStatus.STARTED, message="Received input."))
    log.end_run(first, "failed")
    second = log.start_run()

    runs = log.runs()

    assert [run.id for run in runs] == [second, first]
    assert runs[1].status == "failed"
    assert runs[1].end_timestamp is not None
    assert runs[1].events[0].to_record()["nodeId"] == "a"
    assert runs[0].status == "running"


def test_execution_log_drops_events_for_unknown_runs():
    log = ExecutionLog()

    log.record("run_missing", ExecutionEvent(node_id="a", status=EventStatus.ERROR))
    log.end_run("run_missing", "completed")

    assert log.runs() == []


def test_execution_log_writes_events_when_the_run_closes(tmp_path):
    log = ExecutionLog(JsonFileRepository(tmp_path, "execution_logs", ExecutionRun))
    run_id = log.start_run()
    path = tmp_path / "execution_logs.json"
    opened = path.read_text(encoding="utf-8")

    log.record(run_id, ExecutionEvent(node_id="a", status=EventStatus.STARTED, message="Received input."))

    assert path.read_text(encoding="utf-8") == opened
    assert [event.node_id for event in log.get(run_id).events] == ["a"]
    assert [event.node_id for event in log.runs()[0].events] == ["a"]

    log.end_run(run_id, "completed")

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload[0]["status"] == "completed"
    assert [event["nodeId"] for event in payload[0]["events"]] == ["a"]
