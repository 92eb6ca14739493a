"""
Runs an agent node: a bounded tool-calling loop over a chat model.
"""
from __future__ import annotations

import json
from typing import Any, Callable, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from canvas_core.models import AgentConfig, SchemaItem
from canvas_engine.errors import AgentConfigurationError, UnknownToolError
from shared.config import config
from shared.llm import LLMFactory, get_llm, message_text
from shared.logger import get_logger
from shared.repositories import Repository
from shared.tools import BaseTool, ToolRegistry

logger = get_logger("canvas_engine.agent_runner")

ProgressReporter = Callable[[str, Any], None]


def as_text(value: Any) -> str:
    """Render an execution context value as model input."""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


class AgentRunner:
    """
    Executes agent items.

    Each round the model either answers with text (the node result) or asks
    for a tool. Only the first tool call of a round is executed; its result
    is appended to the conversation and the next round starts. When the
    rounds run out the input is returned unchanged.
    """

    def __init__(
        self,
        agents: Repository[AgentConfig],
        tools: ToolRegistry,
        llm_factory: LLMFactory = get_llm,
        max_rounds: Optional[int] = None,
    ) -> None:
        self.agents = agents
        self.tools = tools
        self.llm_factory = llm_factory
        self.max_rounds = config.agent_max_rounds if max_rounds is None else max_rounds

    def _agent_tools(self, agent: AgentConfig) -> List[BaseTool]:
        selected = []
        for key in agent.tools:
            tool = self.tools.maybe_get(key)
            if tool is None:
                logger.warning(f"Agent '{agent.name}' references unknown tool '{key}', ignoring")
                continue
            selected.append(tool)
        return selected

    async def run(self, item: SchemaItem, input_value: Any, report: Optional[ProgressReporter] = None) -> Any:
        agent = self.agents.get(item.base_id)
        if agent is None:
            raise AgentConfigurationError(f"Agent configuration not found for {item.name}")

        llm = self.llm_factory(model=agent.model, temperature=agent.temperature, max_tokens=agent.max_tokens)
        selected_tools = self._agent_tools(agent)
        if selected_tools:
            llm = llm.bind_tools([tool.to_function_schema() for tool in selected_tools])

        messages: List[BaseMessage] = []
        if agent.instruction:
            messages.append(SystemMessage(content=agent.instruction))
        messages.append(HumanMessage(content=as_text(input_value)))

        for round_number in range(self.max_rounds):
            response = await llm.ainvoke(messages)
            tool_calls = getattr(response, "tool_calls", None) or []
            if not tool_calls:
                return message_text(response)

            call = tool_calls[0]
            tool = self.tools.maybe_get(call["name"])
            if tool is None:
                raise UnknownToolError(f"Agent tried to call an unknown tool: {call['name']}")

            # Keep only the executed call so every tool call in history has a response
            messages.append(AIMessage(content=response.content, tool_calls=[call]))
            display_name = tool.display_name or tool.name
            arguments = call.get("args") or {}
            logger.debug(f"Agent {item.id} round {round_number + 1}: calling {tool.name}")
            if report is not None:
                report(f"Agent calls tool: {display_name}", arguments)
            result = await tool.execute(arguments)
            if report is not None:
                report(f"Tool '{display_name}' returned a result.", result)
            messages.append(ToolMessage(content=as_text(result), tool_call_id=call.get("id") or call["name"]))

        logger.warning(f"Agent {item.id} reached the limit of {self.max_rounds} rounds without a final answer")
        return input_value
