"""Test doubles and schema builders shared across the test suite."""
import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from canvas_core.models import Connection, ItemType, Position, SchemaItem, SchemaState
from canvas_engine.behaviors import BehaviorRegistry, NodeBehaviorResolver
from canvas_engine.errors import NodeExecutionError


class ManualHandle:
    def __init__(self, scheduler: "ManualScheduler", delay: float, callback: Callable[[], None]) -> None:
        self.scheduler = scheduler
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Timer scheduler whose timers only fire when the test says so."""

    def __init__(self) -> None:
        self.handles: List[ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self, delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[ManualHandle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def fire_all(self) -> None:
        for handle in self.pending:
            handle.cancelled = True
            handle.callback()


class FakeStructuredModel:
    def __init__(self, model: "FakeChatModel", schema: Any) -> None:
        self.model = model
        self.schema = schema

    async def ainvoke(self, messages, **kwargs):
        return await self.model.ainvoke(messages, **kwargs)


class FakeChatModel:
    """Chat model double returning scripted responses in order."""

    def __init__(self, responses: Optional[Sequence[Any]] = None) -> None:
        self.responses = list(responses or [])
        self.calls: List[List[Any]] = []
        self.bound_tools: Optional[List[Dict[str, Any]]] = None
        self.factory_kwargs: List[Dict[str, Any]] = []

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = list(tools)
        return self

    def with_structured_output(self, schema, **kwargs):
        return FakeStructuredModel(self, schema)

    async def ainvoke(self, messages, **kwargs):
        self.calls.append(list(messages))
        if not self.responses:
            raise AssertionError("FakeChatModel ran out of scripted responses")
        return self.responses.pop(0)

    def factory(self, **kwargs):
        self.factory_kwargs.append(kwargs)
        return self


class ScriptedResolver(NodeBehaviorResolver):
    """Resolver that records calls and fails or delays items on request."""

    def __init__(
        self,
        failures: Iterable[str] = (),
        results: Optional[Dict[str, Any]] = None,
        delays: Optional[Dict[str, float]] = None,
    ) -> None:
        super().__init__(BehaviorRegistry())
        self.failures = set(failures)
        self.results = results or {}
        self.delays = delays or {}
        self.calls: List[Tuple[str, Any]] = []

    async def resolve(self, item, input_value, report=None):
        self.calls.append((item.id, input_value))
        await asyncio.sleep(self.delays.get(item.id, 0))
        if item.id in self.failures:
            raise NodeExecutionError(f"{item.id} failed")
        return self.results.get(item.id, f"{item.id}-out")

    def called_ids(self) -> List[str]:
        return [item_id for item_id, _ in self.calls]


def make_item(item_id: str, base_id: str = "merge", item_type: ItemType = ItemType.NODE, **data) -> SchemaItem:
    return SchemaItem(
        id=item_id,
        base_id=base_id,
        type=item_type,
        name=item_id,
        position=Position(x=0, y=0),
        data=data,
    )


def make_state(item_ids: Sequence[str], edges: Sequence[Tuple[str, str]], items: Sequence[SchemaItem] = ()) -> SchemaState:
    all_items = [make_item(item_id) for item_id in item_ids] + list(items)
    connections = [
        Connection(id=Connection.make_id(from_id, to_id), from_id=from_id, to_id=to_id)
        for from_id, to_id in edges
    ]
    return SchemaState(items=all_items, connections=connections)


