from __future__ import annotations

import asyncio
import uuid
from typing import List, Optional

from fastapi import HTTPException, status

from api.canvas import models as api_models
from api.canvas.session import CanvasSession
from canvas_core.library import Definition
from canvas_core.models import AgentConfig, CustomItem, Project, SchemaItem, SchemaState
from canvas_core.plan import build_schema_from_plan, generate_plan
from canvas_engine.behaviors import DryRunResolver
from canvas_engine.engine import RunOutcome
from canvas_engine.errors import RunInProgressError
from canvas_engine.execution_log import ExecutionRun
from shared.logger import get_logger

logger = get_logger("api.canvas.services")


def _not_found(kind: str, record_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} '{record_id}' not found")


# -----------------------------
# Schema
# -----------------------------
def get_schema(session: CanvasSession) -> SchemaState:
    return session.graph.save()


def replace_schema(session: CanvasSession, state: SchemaState) -> SchemaState:
    session.graph.load(state, force=True)
    return session.graph.save()


def _definition(session: CanvasSession, base_id: str) -> Optional[Definition]:
    return session.catalog.get(base_id) or session.agents.get(base_id)


def add_item(session: CanvasSession, payload: api_models.AddItemRequest) -> SchemaItem:
    definition = _definition(session, payload.base_id)
    if definition is None:
        raise _not_found("Library item", payload.base_id)

    data = payload.data
    if data is None and not isinstance(definition, AgentConfig):
        data = definition.default_data()
    item_id = session.graph.add_item(definition, data)
    if item_id is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Agent '{definition.name}' is already on the schema",
        )
    return session.graph.get_item(item_id)


def move_item(session: CanvasSession, item_id: str, payload: api_models.MoveItemRequest) -> SchemaItem:
    if not session.graph.has_item(item_id):
        raise _not_found("Item", item_id)
    session.graph.move_item(item_id, payload.dx, payload.dy)
    return session.graph.get_item(item_id)


def remove_item(session: CanvasSession, item_id: str) -> None:
    if not session.graph.remove_item(item_id):
        raise _not_found("Item", item_id)


def add_connection(session: CanvasSession, payload: api_models.AddConnectionRequest):
    connection = session.graph.add_connection(payload.from_id, payload.to_id)
    if connection is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Connection rejected: self-loop, duplicate or unknown endpoint",
        )
    return connection


def clear_schema(session: CanvasSession) -> SchemaState:
    session.graph.clear()
    return session.graph.save()


async def apply_plan(session: CanvasSession, payload: api_models.PlanRequest) -> api_models.PlanResponse:
    plan = payload.plan
    if plan is None:
        if not payload.prompt or not payload.prompt.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Either 'prompt' or 'plan' is required")
        try:
            plan = await generate_plan(payload.prompt, session.llm_factory(), session.catalog)
        except ValueError as e:
            logger.error(f"Plan generation failed: {e}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    state = build_schema_from_plan(plan, session.catalog, session.agents, session.custom_items)
    session.graph.load(state, force=True)
    return api_models.PlanResponse(summary=plan.summary, schema_state=session.graph.save())


# -----------------------------
# Runs
# -----------------------------
def _latest_run(session: CanvasSession) -> Optional[ExecutionRun]:
    runs = session.execution_log.runs()
    return runs[0] if runs else None


def _finish_background_run(session: CanvasSession, task: asyncio.Task) -> None:
    session.background_tasks.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if isinstance(error, RunInProgressError):
        logger.warning(f"Background run not started: {error}")
    elif error is not None:
        logger.error(f"Background run failed: {error}", exc_info=error)


async def start_run(
    session: CanvasSession,
    payload: api_models.RunRequest,
    state: Optional[SchemaState] = None,
) -> api_models.RunResponse:
    if session.engine.is_running:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A run is already in progress")

    state = state if state is not None else session.graph.save()
    if payload.dry_run:
        resolver, sink = DryRunResolver(), None
    else:
        resolver, sink = session.resolver, session.execution_log
    kwargs = {} if payload.input is None else {"initial_context": payload.input}

    if not payload.wait:
        task = asyncio.create_task(session.engine.run(state, resolver, sink, **kwargs))
        session.background_tasks.add(task)
        task.add_done_callback(lambda done: _finish_background_run(session, done))
        return api_models.RunResponse(status="running")

    try:
        outcome: RunOutcome = await session.engine.run(state, resolver, sink, **kwargs)
    except RunInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return api_models.RunResponse(status=outcome.value, run=None if payload.dry_run else _latest_run(session))


def list_runs(session: CanvasSession) -> api_models.RunListResponse:
    return api_models.RunListResponse(runs=session.execution_log.runs())


def clear_runs(session: CanvasSession) -> None:
    session.execution_log.clear()


def get_status(session: CanvasSession) -> api_models.StatusResponse:
    board = session.status_board
    return api_models.StatusResponse(
        running=session.engine.is_running,
        nodes={item_id: value.value for item_id, value in board.nodes().items()},
        connections={conn_id: value.value for conn_id, value in board.connections().items()},
    )


def reset_status(session: CanvasSession) -> api_models.StatusResponse:
    session.status_board.reset()
    return get_status(session)


# -----------------------------
# Projects
# -----------------------------
def list_projects(session: CanvasSession) -> List[Project]:
    return sorted(reversed(session.projects.list()), key=lambda project: project.created_at, reverse=True)


def create_project(session: CanvasSession, payload: api_models.ProjectCreate) -> Project:
    state = payload.schema_state if payload.schema_state is not None else session.graph.save()
    if not state.items:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The schema is empty")
    project = Project(id=f"proj_{uuid.uuid4().hex[:12]}", name=payload.name.strip(), schema_state=state)
    return session.projects.save(project)


def delete_project(session: CanvasSession, project_id: str) -> None:
    if not session.projects.delete(project_id):
        raise _not_found("Project", project_id)


async def run_project(session: CanvasSession, project_id: str, payload: api_models.RunRequest) -> api_models.RunResponse:
    project = session.projects.get(project_id)
    if project is None:
        raise _not_found("Project", project_id)
    if session.engine.is_running:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A run is already in progress")
    session.graph.load(project.schema_state, force=True)
    logger.info(f"Running saved project {project.name} ({project.id})")
    return await start_run(session, payload)


# -----------------------------
# Library
# -----------------------------
def get_library(session: CanvasSession) -> api_models.LibraryResponse:
    return api_models.LibraryResponse(
        tools=session.catalog.tools(),
        nodes=session.catalog.nodes(),
        agents=session.agents.list(),
    )


def save_agent(session: CanvasSession, agent: AgentConfig) -> AgentConfig:
    return session.agents.save(agent)


def delete_agent(session: CanvasSession, agent_id: str) -> None:
    if not session.agents.delete(agent_id):
        raise _not_found("Agent", agent_id)


def save_custom_item(session: CanvasSession, item: CustomItem) -> CustomItem:
    session.custom_items.save(item)
    session.catalog.add(item)
    return item
