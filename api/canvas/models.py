from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field

from canvas_core.models import AgentConfig, CanvasModel, LibraryItem, SchemaState
from canvas_core.plan import SchemaPlan
from canvas_engine.execution_log import ExecutionRun


class AddItemRequest(CanvasModel):
    base_id: str = Field(..., alias="baseId")
    data: Optional[Dict[str, Any]] = None


class MoveItemRequest(CanvasModel):
    dx: float
    dy: float


class AddConnectionRequest(CanvasModel):
    from_id: str = Field(..., alias="from")
    to_id: str = Field(..., alias="to")


class PlanRequest(CanvasModel):
    prompt: Optional[str] = None
    plan: Optional[SchemaPlan] = None


class PlanResponse(CanvasModel):
    summary: str = ""
    schema_state: SchemaState = Field(..., alias="schema")


class RunRequest(CanvasModel):
    dry_run: bool = Field(default=False, alias="dryRun")
    input: Optional[Any] = None
    wait: bool = True


class RunResponse(CanvasModel):
    status: str
    run: Optional[ExecutionRun] = None


class RunListResponse(CanvasModel):
    runs: List[ExecutionRun]


class StatusResponse(CanvasModel):
    running: bool
    nodes: Dict[str, str]
    connections: Dict[str, str]


class ProjectCreate(CanvasModel):
    name: str = Field(..., min_length=1)
    schema_state: Optional[SchemaState] = Field(default=None, alias="schema")


class LibraryResponse(CanvasModel):
    tools: List[LibraryItem]
    nodes: List[LibraryItem]
    agents: List[AgentConfig]
