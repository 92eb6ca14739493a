"""
Execution log: run records and the sinks that receive them.

A run is opened when execution starts, collects one event per node
transition and is closed with its terminal status. Runs are listed newest
first.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from canvas_core.models import CanvasModel
from shared.logger import get_logger
from shared.repositories import InMemoryRepository, Repository

logger = get_logger("canvas_engine.execution_log")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EventStatus(str, Enum):
    STARTED = "started"
    SUCCESS = "success"
    ERROR = "error"


class ExecutionEvent(CanvasModel):
    node_id: str = Field(..., alias="nodeId")
    node_name: str = Field(default="", alias="nodeName")
    status: EventStatus
    message: str = ""
    timestamp: datetime = Field(default_factory=_now)
    data: Optional[Any] = None


class ExecutionRun(CanvasModel):
    id: str
    start_timestamp: datetime = Field(default_factory=_now, alias="startTimestamp")
    end_timestamp: Optional[datetime] = Field(default=None, alias="endTimestamp")
    status: Literal["running", "completed", "failed"] = "running"
    events: List[ExecutionEvent] = Field(default_factory=list)


class ExecutionLogSink:
    """
    Protocol for receiving run lifecycle events.

    Calls are fire-and-forget from the engine's point of view: exceptions
    raised here are logged by the engine and never change the run.
    """

    def start_run(self) -> str:
        raise NotImplementedError

    def record(self, run_id: str, event: ExecutionEvent) -> None:
        raise NotImplementedError

    def end_run(self, run_id: str, status: Literal["completed", "failed"]) -> None:
        raise NotImplementedError


class ListSink(ExecutionLogSink):
    """Keeps runs in memory; events are also available as one flat list."""

    def __init__(self) -> None:
        self.runs: Dict[str, ExecutionRun] = {}
        self.events: List[ExecutionEvent] = []

    def start_run(self) -> str:
        run_id = f"run_{uuid.uuid4().hex[:12]}"
        self.runs[run_id] = ExecutionRun(id=run_id)
        return run_id

    def record(self, run_id: str, event: ExecutionEvent) -> None:
        self.events.append(event)
        if run_id in self.runs:
            self.runs[run_id].events.append(event)

    def end_run(self, run_id: str, status: Literal["completed", "failed"]) -> None:
        run = self.runs.get(run_id)
        if run is not None:
            run.status = status
            run.end_timestamp = _now()

    def clear(self) -> None:
        self.runs.clear()
        self.events.clear()


class ExecutionLog(ExecutionLogSink):
    """
    Sink that persists every run through a repository.

    A run is saved when it opens and again when it closes. Events of an open
    run are kept in memory in between, so recording never rewrites storage.
    """

    def __init__(self, repository: Optional[Repository[ExecutionRun]] = None) -> None:
        self.repository = repository if repository is not None else InMemoryRepository()
        self._open: Dict[str, ExecutionRun] = {}

    def start_run(self) -> str:
        run = ExecutionRun(id=f"run_{uuid.uuid4().hex[:12]}")
        self.repository.save(run)
        self._open[run.id] = run.model_copy(deep=True)
        logger.debug(f"Opened run {run.id}")
        return run.id

    def record(self, run_id: str, event: ExecutionEvent) -> None:
        run = self._open.get(run_id)
        if run is None:
            logger.warning(f"Dropping event for unknown run {run_id}")
            return
        run.events.append(event)

    def end_run(self, run_id: str, status: Literal["completed", "failed"]) -> None:
        run = self._open.pop(run_id, None)
        if run is None:
            logger.warning(f"Cannot close unknown run {run_id}")
            return
        self.repository.save(run.model_copy(update={"status": status, "end_timestamp": _now()}))
        logger.debug(f"Closed run {run_id} as {status} with {len(run.events)} events")

    def runs(self) -> List[ExecutionRun]:
        """All runs, newest first; open runs include the events recorded so far."""
        runs = [self._open.get(run.id, run) for run in self.repository.list()]
        return sorted(reversed(runs), key=lambda run: run.start_timestamp, reverse=True)

    def get(self, run_id: str) -> Optional[ExecutionRun]:
        return self._open.get(run_id) or self.repository.get(run_id)

    def clear(self) -> None:
        self._open.clear()
        self.repository.clear()
