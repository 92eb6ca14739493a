"""
Node behaviors: what executing a single schema item does.

Handlers are registered explicitly by ``(type, baseId)``; a ``None`` base id
registers the fallback for a whole item type. The engine only sees
``NodeBehaviorResolver.resolve``.

Node configuration lives in the opaque ``data`` map of an item. Built-in
nodes parse it into a typed config here, at the behavior boundary.
"""
from __future__ import annotations

import asyncio
from typing import Annotated, Any, Awaitable, Callable, Dict, Literal, Optional, Protocol, Tuple, Union

from pydantic import Field, TypeAdapter, ValidationError, field_validator

from canvas_core.library import GET_INPUT, LOG_MESSAGE, PASSTHROUGH_NODE_IDS, SET_VARIABLE, THROW_ERROR, WAIT, LibraryCatalog
from canvas_core.models import AgentConfig, CanvasModel, CustomItem, ItemType, SchemaItem
from canvas_engine.agent_runner import AgentRunner, ProgressReporter
from canvas_engine.errors import NodeExecutionError, SandboxUnavailableError, UnknownBehaviorError
from shared.llm import LLMFactory, get_llm
from shared.logger import get_logger
from shared.repositories import Repository
from shared.tools import ToolRegistry

logger = get_logger("canvas_engine.behaviors")

BehaviorHandler = Callable[[SchemaItem, Any, ProgressReporter], Awaitable[Any]]


def _ignore_progress(message: str, data: Any = None) -> None:
    pass


def has_value(value: Any) -> bool:
    return value is not None and value != ""


# -----------------------------
# Built-in node configuration
# -----------------------------
class GetInputConfig(CanvasModel):
    kind: Literal["get_input"] = GET_INPUT
    value: Optional[Any] = None


class WaitConfig(CanvasModel):
    kind: Literal["wait"] = WAIT
    duration: float = Field(default=1.0, ge=0)

    @field_validator("duration", mode="before")
    @classmethod
    def _default_when_blank(cls, value: Any) -> Any:
        # Unset or zero durations fall back to one second
        return value or 1.0


class LogMessageConfig(CanvasModel):
    kind: Literal["log_message"] = LOG_MESSAGE
    message: str = ""


class SetVariableConfig(CanvasModel):
    kind: Literal["set_variable"] = SET_VARIABLE
    name: str = ""
    value: Optional[Any] = None


class ThrowErrorConfig(CanvasModel):
    kind: Literal["throw_error"] = THROW_ERROR
    message: str = ""


NodeConfig = Annotated[
    Union[GetInputConfig, WaitConfig, LogMessageConfig, SetVariableConfig, ThrowErrorConfig],
    Field(discriminator="kind"),
]
_node_config_adapter = TypeAdapter(NodeConfig)


def parse_node_config(item: SchemaItem) -> NodeConfig:
    """Validate an item's data against the config of its built-in node kind."""
    try:
        return _node_config_adapter.validate_python({**item.data, "kind": item.base_id})
    except ValidationError as e:
        raise NodeExecutionError(f"Invalid configuration for '{item.name}': {e.errors()[0]['msg']}") from e


# -----------------------------
# Built-in node handlers
# -----------------------------
async def get_input_behavior(item: SchemaItem, input_value: Any, report: ProgressReporter) -> Any:
    config = parse_node_config(item)
    return config.value if has_value(config.value) else input_value


async def wait_behavior(item: SchemaItem, input_value: Any, report: ProgressReporter) -> Any:
    config = parse_node_config(item)
    report(f"Waiting for {config.duration:g}s...", None)
    await asyncio.sleep(config.duration)
    return input_value


async def log_message_behavior(item: SchemaItem, input_value: Any, report: ProgressReporter) -> Any:
    config = parse_node_config(item)
    report(config.message or "No message", None)
    return input_value


async def set_variable_behavior(item: SchemaItem, input_value: Any, report: ProgressReporter) -> Any:
    config = parse_node_config(item)
    report(f"{config.name} = {config.value}", {config.name: config.value})
    return input_value


async def throw_error_behavior(item: SchemaItem, input_value: Any, report: ProgressReporter) -> Any:
    config = parse_node_config(item)
    raise NodeExecutionError(config.message or f"Node '{item.name}' raised an error")


async def passthrough_behavior(item: SchemaItem, input_value: Any, report: ProgressReporter) -> Any:
    return input_value


# -----------------------------
# Tools and custom items
# -----------------------------
class CodeSandbox(Protocol):
    """Runs untrusted custom tool code out of process."""

    async def run(self, item: CustomItem, arguments: Dict[str, Any]) -> Any: ...


class ToolBehavior:
    """
    Runs tool items. The incoming context becomes the tool's first parameter.

    Built-in tools come from the registry. Custom tools with execution code
    are handed to the injected sandbox, and fail when there is none.
    """

    def __init__(
        self,
        tools: ToolRegistry,
        catalog: Optional[LibraryCatalog] = None,
        sandbox: Optional[CodeSandbox] = None,
    ) -> None:
        self.tools = tools
        self.catalog = catalog
        self.sandbox = sandbox

    async def __call__(self, item: SchemaItem, input_value: Any, report: ProgressReporter) -> Any:
        tool = self.tools.maybe_get(item.base_id)
        if tool is not None:
            names = tool.parameter_names()
            return await tool.execute({names[0]: input_value} if names else {})

        definition = self.catalog.get(item.base_id) if self.catalog else None
        if isinstance(definition, CustomItem) and definition.execution_code:
            if self.sandbox is None:
                raise SandboxUnavailableError(
                    f"Custom tool '{item.name}' needs a code sandbox; untrusted code is never evaluated in-process"
                )
            arguments = {definition.parameters[0].name: input_value} if definition.parameters else {}
            return await self.sandbox.run(definition, arguments)

        raise UnknownBehaviorError(f"Tool implementation not found for '{item.name}'")


class CustomNodeBehavior:
    """Fallback for node items: custom library nodes pass through, anything else fails."""

    def __init__(self, catalog: Optional[LibraryCatalog] = None) -> None:
        self.catalog = catalog

    async def __call__(self, item: SchemaItem, input_value: Any, report: ProgressReporter) -> Any:
        definition = self.catalog.get(item.base_id) if self.catalog else None
        if isinstance(definition, CustomItem) and definition.type == "node":
            return input_value
        raise UnknownBehaviorError(f"No behavior registered for node '{item.base_id}'")


# -----------------------------
# Registry and resolver
# -----------------------------
class BehaviorRegistry:
    """Explicit map from ``(type, baseId)`` to handler, with per-type fallbacks."""

    def __init__(self) -> None:
        self._handlers: Dict[Tuple[ItemType, Optional[str]], BehaviorHandler] = {}

    def register(self, item_type: ItemType, base_id: Optional[str], handler: BehaviorHandler) -> None:
        self._handlers[(ItemType(item_type), base_id)] = handler

    def lookup(self, item: SchemaItem) -> Optional[BehaviorHandler]:
        handler = self._handlers.get((item.type, item.base_id))
        if handler is None:
            handler = self._handlers.get((item.type, None))
        return handler


class NodeBehaviorResolver:
    """Resolves and runs the behavior of one schema item."""

    def __init__(self, registry: BehaviorRegistry) -> None:
        self.registry = registry

    async def resolve(self, item: SchemaItem, input_value: Any, report: Optional[ProgressReporter] = None) -> Any:
        handler = self.registry.lookup(item)
        if handler is None:
            raise UnknownBehaviorError(f"No behavior registered for {item.type.value} '{item.base_id}'")
        return await handler(item, input_value, report or _ignore_progress)


class DryRunResolver(NodeBehaviorResolver):
    """
    Demo mode: no tool or model is called and every node passes its input
    through. Input nodes without a configured value fail.
    """

    def __init__(self) -> None:
        super().__init__(BehaviorRegistry())

    async def resolve(self, item: SchemaItem, input_value: Any, report: Optional[ProgressReporter] = None) -> Any:
        if item.base_id == GET_INPUT and not has_value(item.data.get("value")):
            raise NodeExecutionError(f"Input node '{item.name}' has no configured value")
        return input_value


def build_default_resolver(
    tools: ToolRegistry,
    agents: Repository[AgentConfig],
    catalog: Optional[LibraryCatalog] = None,
    llm_factory: LLMFactory = get_llm,
    sandbox: Optional[CodeSandbox] = None,
    max_agent_rounds: Optional[int] = None,
) -> NodeBehaviorResolver:
    """Wire agents, tools and built-in nodes into one resolver."""
    registry = BehaviorRegistry()

    runner = AgentRunner(agents, tools, llm_factory=llm_factory, max_rounds=max_agent_rounds)
    registry.register(ItemType.AGENT, None, runner.run)
    registry.register(ItemType.TOOL, None, ToolBehavior(tools, catalog, sandbox))

    registry.register(ItemType.NODE, GET_INPUT, get_input_behavior)
    registry.register(ItemType.NODE, WAIT, wait_behavior)
    registry.register(ItemType.NODE, LOG_MESSAGE, log_message_behavior)
    registry.register(ItemType.NODE, SET_VARIABLE, set_variable_behavior)
    registry.register(ItemType.NODE, THROW_ERROR, throw_error_behavior)
    for base_id in PASSTHROUGH_NODE_IDS:
        registry.register(ItemType.NODE, base_id, passthrough_behavior)
    registry.register(ItemType.NODE, None, CustomNodeBehavior(catalog))

    logger.debug(f"Behavior registry built with {len(tools.list())} tools")
    return NodeBehaviorResolver(registry)
