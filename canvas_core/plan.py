"""
Turn an AI-generated plan into a schema.

A plan names library items by id (or refers to agents/tools/nodes it wants
created, as ``new_agent_<n>``, ``new_tool_<n>``, ``new_node_<n>``), labels
them, and connects them by list index. Building the plan registers the new
definitions in their repositories and lays the items out on a grid.
"""
from __future__ import annotations

import json
import uuid
from typing import Any, Dict, List, Literal, Optional, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import Field

from canvas_core.library import LibraryCatalog
from canvas_core.models import (
    AgentConfig,
    CanvasModel,
    Connection,
    CustomItem,
    InputField,
    ItemType,
    Position,
    SchemaItem,
    SchemaState,
    ToolParameter,
)
from shared.logger import get_logger
from shared.repositories import Repository

logger = get_logger("canvas_core.plan")

GRID_COLUMNS = 4
GRID_X_STEP = 250
GRID_Y_STEP = 120
GRID_ORIGIN = 50


class PlanAgent(CanvasModel):
    name: str
    instruction: str = ""
    icon: str = ""
    tools: List[str] = Field(default_factory=list)


class PlanCustomItem(CanvasModel):
    name: str
    description: str = ""
    icon_name: str = Field(default="", alias="iconName")
    type: Literal["tool", "node"]
    inputs: List[InputField] = Field(default_factory=list)
    function_name: Optional[str] = Field(default=None, alias="functionName")
    function_description: Optional[str] = Field(default=None, alias="functionDescription")
    parameters: List[ToolParameter] = Field(default_factory=list)
    execution_code: Optional[str] = Field(default=None, alias="executionCode")


class PlanItem(CanvasModel):
    base_id: str = Field(..., alias="baseId")
    label: str
    data: Dict[str, Any] = Field(default_factory=dict)


class PlanConnection(CanvasModel):
    from_index: int = Field(..., alias="from")
    to_index: int = Field(..., alias="to")


class PlanSchema(CanvasModel):
    items: List[PlanItem] = Field(default_factory=list)
    connections: List[PlanConnection] = Field(default_factory=list)


class SchemaPlan(CanvasModel):
    """Workflow plan as produced by the schema generator model."""

    summary: str = ""
    new_agents: List[PlanAgent] = Field(default_factory=list, alias="newAgents")
    new_tools: List[PlanCustomItem] = Field(default_factory=list, alias="newTools")
    new_nodes: List[PlanCustomItem] = Field(default_factory=list, alias="newNodes")
    plan_schema: PlanSchema = Field(default_factory=PlanSchema, alias="schema")


def _grid_position(index: int) -> Position:
    return Position(
        x=(index % GRID_COLUMNS) * GRID_X_STEP + GRID_ORIGIN,
        y=(index // GRID_COLUMNS) * GRID_Y_STEP + GRID_ORIGIN,
    )


def _new_reference(base_id: str) -> Optional[Tuple[str, int]]:
    for prefix in ("new_agent_", "new_tool_", "new_node_"):
        if base_id.startswith(prefix):
            suffix = base_id[len(prefix):]
            if suffix.isdigit():
                return prefix, int(suffix)
    return None


def build_schema_from_plan(
    plan: SchemaPlan,
    catalog: LibraryCatalog,
    agents: Repository[AgentConfig],
    custom_items: Repository[CustomItem],
) -> SchemaState:
    """
    Register the plan's new definitions and build the schema it describes.

    Items referring to unknown definitions are skipped (and logged);
    connections touching a skipped item, self-loops and duplicates are
    dropped.
    """
    created_agents: List[AgentConfig] = []
    for agent in plan.new_agents:
        config = AgentConfig(
            id=f"agent_{uuid.uuid4().hex[:12]}",
            name=agent.name,
            instruction=agent.instruction,
            icon=agent.icon,
            tools=agent.tools,
            temperature=0.7,
            top_p=1,
            top_k=40,
            max_tokens=2048,
        )
        created_agents.append(agents.save(config))

    created_items: Dict[str, List[CustomItem]] = {"new_tool_": [], "new_node_": []}
    for prefix, definitions in (("new_tool_", plan.new_tools), ("new_node_", plan.new_nodes)):
        for definition in definitions:
            item = CustomItem(id=f"custom_{uuid.uuid4().hex[:12]}", **definition.model_dump())
            custom_items.save(item)
            catalog.add(item)
            created_items[prefix].append(item)

    state = SchemaState()
    id_by_index: Dict[int, str] = {}

    for index, plan_item in enumerate(plan.plan_schema.items):
        reference = _new_reference(plan_item.base_id)
        if reference is not None:
            prefix, position = reference
            pool = created_agents if prefix == "new_agent_" else created_items[prefix]
            definition = pool[position] if position < len(pool) else None
        else:
            definition = catalog.get(plan_item.base_id) or agents.get(plan_item.base_id)

        if definition is None:
            logger.error(f"Could not find base item for: {plan_item.base_id}")
            continue

        if isinstance(definition, AgentConfig):
            if any(item.type == ItemType.AGENT and item.base_id == definition.id for item in state.items):
                logger.warning(f"Agent '{definition.name}' is already in the plan, skipping duplicate")
                continue
            item_type = ItemType.AGENT
            icon_name = definition.icon
        else:
            item_type = ItemType(definition.type)
            icon_name = definition.icon_name
        item_id = f"{definition.id}_{uuid.uuid4().hex[:8]}_{index}"

        state.items.append(
            SchemaItem(
                id=item_id,
                base_id=definition.id,
                type=item_type,
                name=plan_item.label,
                icon_name=icon_name,
                position=_grid_position(index),
                data=plan_item.data,
            )
        )
        id_by_index[index] = item_id

    seen = set()
    for plan_conn in plan.plan_schema.connections:
        from_id = id_by_index.get(plan_conn.from_index)
        to_id = id_by_index.get(plan_conn.to_index)
        if not from_id or not to_id or from_id == to_id or (from_id, to_id) in seen:
            continue
        seen.add((from_id, to_id))
        state.connections.append(Connection(id=Connection.make_id(from_id, to_id), from_id=from_id, to_id=to_id))

    logger.info(f"Built schema from plan: {len(state.items)} items, {len(state.connections)} connections")
    return state


PLANNER_INSTRUCTION = """You are an expert in designing automated workflows. Translate the user's task into a complete, executable schema.
1. Break the task into logical steps.
2. For every step pick a component from the available tools or nodes. Always prefer existing components.
3. Only if no component fits a step, define a new one (tool or node) and refer to it as new_tool_<n> / new_node_<n>.
4. If a step needs AI analysis or a decision, define a new agent and refer to it as new_agent_<n>.
5. Connect all components by their index in the items list. Remember the 'start' and 'end' nodes."""


async def generate_plan(prompt: str, llm: BaseChatModel, catalog: LibraryCatalog) -> SchemaPlan:
    """Ask a chat model for a SchemaPlan describing ``prompt``."""
    available_tools = [{"id": t.id, "name": t.name, "description": t.description} for t in catalog.tools()]
    available_nodes = [{"id": n.id, "name": n.name, "description": n.description} for n in catalog.nodes()]
    request = (
        f"Available tools: {json.dumps(available_tools, ensure_ascii=False)}\n"
        f"Available nodes: {json.dumps(available_nodes, ensure_ascii=False)}\n\n"
        f'User task: "{prompt}"\n\n'
        "Generate the schema for this task."
    )
    structured_llm = llm.with_structured_output(SchemaPlan, method="function_calling")
    plan = await structured_llm.ainvoke([SystemMessage(content=PLANNER_INSTRUCTION), HumanMessage(content=request)])
    if isinstance(plan, dict):
        plan = SchemaPlan.model_validate(plan)
    return plan
