from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request, Response, status

from api.canvas import models as api_models
from api.canvas import services
from api.canvas.session import CanvasSession
from canvas_core.models import AgentConfig, Connection, CustomItem, Project, SchemaItem, SchemaState


router = APIRouter(prefix="/v1", tags=["canvas"])


def get_session(request: Request) -> CanvasSession:
    return request.app.state.canvas


# -----------------------------
# Schema
# -----------------------------
@router.get("/schema", response_model=SchemaState)
async def get_schema(session: CanvasSession = Depends(get_session)):
    return services.get_schema(session)


@router.put("/schema", response_model=SchemaState)
async def replace_schema(payload: SchemaState, session: CanvasSession = Depends(get_session)):
    return services.replace_schema(session, payload)


@router.post("/schema/items", response_model=SchemaItem, status_code=status.HTTP_201_CREATED)
async def add_item(payload: api_models.AddItemRequest, session: CanvasSession = Depends(get_session)):
    return services.add_item(session, payload)


@router.post("/schema/items/{item_id}/move", response_model=SchemaItem)
async def move_item(item_id: str, payload: api_models.MoveItemRequest, session: CanvasSession = Depends(get_session)):
    return services.move_item(session, item_id, payload)


@router.delete("/schema/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def remove_item(item_id: str, session: CanvasSession = Depends(get_session)):
    services.remove_item(session, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/schema/connections", response_model=Connection, status_code=status.HTTP_201_CREATED)
async def add_connection(payload: api_models.AddConnectionRequest, session: CanvasSession = Depends(get_session)):
    return services.add_connection(session, payload)


@router.post("/schema/clear", response_model=SchemaState)
async def clear_schema(session: CanvasSession = Depends(get_session)):
    return services.clear_schema(session)


@router.post("/schema/plan", response_model=api_models.PlanResponse)
async def apply_plan(payload: api_models.PlanRequest, session: CanvasSession = Depends(get_session)):
    return await services.apply_plan(session, payload)


# -----------------------------
# Runs and status
# -----------------------------
@router.post("/runs", response_model=api_models.RunResponse)
async def start_run(payload: api_models.RunRequest, session: CanvasSession = Depends(get_session)):
    return await services.start_run(session, payload)


@router.get("/runs", response_model=api_models.RunListResponse)
async def list_runs(session: CanvasSession = Depends(get_session)):
    return services.list_runs(session)


@router.delete("/runs", status_code=status.HTTP_200_OK)
async def clear_runs(session: CanvasSession = Depends(get_session)):
    services.clear_runs(session)
    return {"ok": True}


@router.get("/status", response_model=api_models.StatusResponse)
async def get_status(session: CanvasSession = Depends(get_session)):
    return services.get_status(session)


@router.post("/status/reset", response_model=api_models.StatusResponse)
async def reset_status(session: CanvasSession = Depends(get_session)):
    return services.reset_status(session)


# -----------------------------
# Projects
# -----------------------------
@router.get("/projects", response_model=List[Project])
async def list_projects(session: CanvasSession = Depends(get_session)):
    return services.list_projects(session)


@router.post("/projects", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(payload: api_models.ProjectCreate, session: CanvasSession = Depends(get_session)):
    return services.create_project(session, payload)


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_project(project_id: str, session: CanvasSession = Depends(get_session)):
    services.delete_project(session, project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/projects/{project_id}/runs", response_model=api_models.RunResponse)
async def run_project(
    project_id: str,
    payload: api_models.RunRequest | None = None,
    session: CanvasSession = Depends(get_session),
):
    return await services.run_project(session, project_id, payload or api_models.RunRequest())


# -----------------------------
# Library
# -----------------------------
@router.get("/library", response_model=api_models.LibraryResponse)
async def get_library(session: CanvasSession = Depends(get_session)):
    return services.get_library(session)


@router.post("/library/agents", response_model=AgentConfig, status_code=status.HTTP_201_CREATED)
async def save_agent(payload: AgentConfig, session: CanvasSession = Depends(get_session)):
    return services.save_agent(session, payload)


@router.delete("/library/agents/{agent_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_agent(agent_id: str, session: CanvasSession = Depends(get_session)):
    services.delete_agent(session, agent_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/library/items", response_model=CustomItem, status_code=status.HTTP_201_CREATED)
async def save_custom_item(payload: CustomItem, session: CanvasSession = Depends(get_session)):
    return services.save_custom_item(session, payload)
