import pytest
from langchain_core.messages import HumanMessage, SystemMessage

from canvas_core.library import LibraryCatalog
from canvas_core.models import AgentConfig, CustomItem, ItemType, Position
from canvas_core.plan import PLANNER_INSTRUCTION, SchemaPlan, build_schema_from_plan, generate_plan
from shared.repositories import InMemoryRepository
from tests.helpers import FakeChatModel

PLAN = {
    "summary": "Summarize an article and rate its tone",
    "newAgents": [{"name": "Critic", "instruction": "Judge the tone", "icon": "Brain", "tools": ["sentiment_analysis"]}],
    "newTools": [
        {
            "name": "Fetch article",
            "type": "tool",
            "functionName": "fetch_article",
            "parameters": [{"name": "url", "type": "string"}],
            "executionCode": "return url",
        }
    ],
    "schema": {
        "items": [
            {"baseId": "start", "label": "Start"},
            {"baseId": "new_tool_0", "label": "Fetch"},
            {"baseId": "text_summarize", "label": "Summarize"},
            {"baseId": "new_agent_0", "label": "Critic"},
            {"baseId": "does_not_exist", "label": "Ghost"},
            {"baseId": "new_agent_0", "label": "Critic again"},
            {"baseId": "end", "label": "End"},
        ],
        "connections": [
            {"from": 0, "to": 1},
            {"from": 1, "to": 2},
            {"from": 2, "to": 3},
            {"from": 3, "to": 4},
            {"from": 3, "to": 6},
            {"from": 3, "to": 6},
            {"from": 6, "to": 6},
        ],
    },
}


@pytest.fixture
def repos():
    return LibraryCatalog(), InMemoryRepository[AgentConfig](), InMemoryRepository[CustomItem]()


def test_plan_is_built_into_a_connected_schema(repos):
    catalog, agents, custom_items = repos

    state = build_schema_from_plan(SchemaPlan.model_validate(PLAN), catalog, agents, custom_items)

    assert [item.name for item in state.items] == ["Start", "Fetch", "Summarize", "Critic", "End"]
    assert [item.type for item in state.items] == [
        ItemType.NODE,
        ItemType.TOOL,
        ItemType.TOOL,
        ItemType.AGENT,
        ItemType.NODE,
    ]
    ids = [item.id for item in state.items]
    assert [(conn.from_id, conn.to_id) for conn in state.connections] == [
        (ids[0], ids[1]),
        (ids[1], ids[2]),
        (ids[2], ids[3]),
        (ids[3], ids[4]),
    ]
    # Grid slots follow the plan index, so the skipped entries leave gaps
    assert state.items[0].position == Position(x=50, y=50)
    assert state.items[4].position == Position(x=550, y=170)


def test_plan_registers_new_definitions(repos):
    catalog, agents, custom_items = repos

    state = build_schema_from_plan(SchemaPlan.model_validate(PLAN), catalog, agents, custom_items)

    [agent] = agents.list()
    assert agent.id.startswith("agent_")
    assert agent.tools == ["sentiment_analysis"]
    assert (agent.temperature, agent.top_k, agent.max_tokens) == (0.7, 40, 2048)

    [tool] = custom_items.list()
    assert tool.id.startswith("custom_")
    assert tool.is_custom and tool.execution_code == "return url"
    assert catalog.get(tool.id) == tool

    assert state.items[1].base_id == tool.id
    assert state.items[3].base_id == agent.id
    assert state.items[3].icon_name == "Brain"


def test_existing_agents_can_be_referenced_by_id(repos):
    catalog, agents, custom_items = repos
    agents.save(AgentConfig(id="agent_writer", name="Writer"))
    plan = SchemaPlan.model_validate({"schema": {"items": [{"baseId": "agent_writer", "label": "Write"}]}})

    state = build_schema_from_plan(plan, catalog, agents, custom_items)

    assert state.items[0].type == ItemType.AGENT
    assert state.items[0].id.startswith("agent_writer_")


@pytest.mark.asyncio
async def test_generate_plan_asks_for_structured_output(repos):
    catalog = repos[0]
    llm = FakeChatModel([PLAN])

    plan = await generate_plan("Rate the tone of an article", llm, catalog)

    assert isinstance(plan, SchemaPlan)
    assert plan.summary == "Summarize an article and rate its tone"
    system, human = llm.calls[0]
    assert isinstance(system, SystemMessage) and system.content == PLANNER_INSTRUCTION
    assert isinstance(human, HumanMessage)
    assert '"calculator"' in human.content
    assert 'User task: "Rate the tone of an article"' in human.content
