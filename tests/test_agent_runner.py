import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from canvas_core.models import AgentConfig, ItemType
from canvas_engine.agent_runner import AgentRunner
from canvas_engine.errors import AgentConfigurationError, UnknownToolError
from shared.repositories import InMemoryRepository
from shared.tools import register_default_tools
from tests.helpers import FakeChatModel, make_item


def _tool_call(name, args, call_id="call_1"):
    return {"name": name, "args": args, "id": call_id}


@pytest.fixture
def agents():
    return InMemoryRepository(
        [
            AgentConfig(id="agent_math", name="Math", instruction="Solve it", tools=["calculator", "ghost_tool"]),
            AgentConfig(id="agent_plain", name="Plain", model="claude-sonnet-4-5", temperature=0.2),
        ]
    )


def _runner(agents, llm, max_rounds=None):
    tools = register_default_tools(llm_factory=llm.factory)
    return AgentRunner(agents, tools, llm_factory=llm.factory, max_rounds=max_rounds)


def _agent_item(agent_id):
    return make_item(f"{agent_id}_1", base_id=agent_id, item_type=ItemType.AGENT)


@pytest.mark.asyncio
async def test_text_answer_is_the_result(agents):
    llm = FakeChatModel([AIMessage(content="Hello there")])

    result = await _runner(agents, llm).run(_agent_item("agent_plain"), "Hi")

    assert result == "Hello there"
    assert llm.factory_kwargs == [{"model": "claude-sonnet-4-5", "temperature": 0.2, "max_tokens": 2048}]
    assert llm.bound_tools is None
    assert [type(message) for message in llm.calls[0]] == [HumanMessage]


@pytest.mark.asyncio
async def test_tool_call_round_trip(agents):
    llm = FakeChatModel(
        [
            AIMessage(
                content="",
                tool_calls=[
                    _tool_call("calculator", {"expression": "1 + 1"}),
                    _tool_call("calculator", {"expression": "2 + 2"}, "call_2"),
                ],
            ),
            AIMessage(content="The answer is 2"),
        ]
    )
    reports = []

    result = await _runner(agents, llm).run(
        _agent_item("agent_math"), {"question": "1 + 1"}, lambda message, data=None: reports.append((message, data))
    )

    assert result == "The answer is 2"
    assert [tool["function"]["name"] for tool in llm.bound_tools] == ["calculator"]
    assert reports == [
        ("Agent calls tool: Calculator", {"expression": "1 + 1"}),
        ("Tool 'Calculator' returned a result.", "Result: 2"),
    ]

    system, human, ai, tool_message = llm.calls[1]
    assert isinstance(system, SystemMessage) and system.content == "Solve it"
    assert json.loads(human.content) == {"question": "1 + 1"}
    assert len(ai.tool_calls) == 1
    assert isinstance(tool_message, ToolMessage)
    assert tool_message.content == "Result: 2"
    assert tool_message.tool_call_id == "call_1"


@pytest.mark.asyncio
async def test_unknown_tool_call_fails_the_node(agents):
    llm = FakeChatModel([AIMessage(content="", tool_calls=[_tool_call("rm_rf", {})])])

    with pytest.raises(UnknownToolError, match="rm_rf"):
        await _runner(agents, llm).run(_agent_item("agent_math"), "go")


@pytest.mark.asyncio
async def test_round_limit_returns_input_unchanged(agents):
    llm = FakeChatModel(
        [AIMessage(content="", tool_calls=[_tool_call("calculator", {"expression": "1"}, f"call_{i}")]) for i in range(2)]
    )

    result = await _runner(agents, llm, max_rounds=2).run(_agent_item("agent_math"), "original")

    assert result == "original"
    assert len(llm.calls) == 2


@pytest.mark.asyncio
async def test_missing_agent_configuration(agents):
    with pytest.raises(AgentConfigurationError):
        await _runner(agents, FakeChatModel()).run(_agent_item("agent_gone"), "x")
