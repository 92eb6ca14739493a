"""
In-memory schema graph: placed items, directed connections and the rules
for mutating them. No rendering and no execution logic lives here.
"""
from __future__ import annotations

import json
import random
import uuid
from typing import Callable, Dict, List, Optional

from canvas_core.library import Definition
from canvas_core.models import AgentConfig, Connection, ItemType, Position, SchemaItem, SchemaState
from shared.logger import get_logger

logger = get_logger("canvas_core.graph")

GraphListener = Callable[[SchemaState], None]
WarningHook = Callable[[str], None]


class SchemaGraph:
    """
    Mutable graph of schema items and connections.

    Invariants kept by every mutation:
    - an agent (by base id) is placed at most once
    - no self-loops and no duplicate ordered (from, to) pairs
    - connections only reference present items
    """

    def __init__(
        self,
        state: Optional[SchemaState] = None,
        rng: Optional[random.Random] = None,
        on_warning: Optional[WarningHook] = None,
    ) -> None:
        self._items: List[SchemaItem] = []
        self._connections: List[Connection] = []
        self._listeners: List[GraphListener] = []
        self._rng = rng or random.Random()
        self._on_warning = on_warning
        if state is not None:
            self._replace(state)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def items(self) -> List[SchemaItem]:
        return list(self._items)

    @property
    def connections(self) -> List[Connection]:
        return list(self._connections)

    def get_item(self, item_id: str) -> Optional[SchemaItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def has_item(self, item_id: str) -> bool:
        return self.get_item(item_id) is not None

    def item_index(self) -> Dict[str, SchemaItem]:
        return {item.id: item for item in self._items}

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def subscribe(self, listener: GraphListener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _changed(self) -> None:
        if not self._listeners:
            return
        snapshot = self.save()
        for listener in list(self._listeners):
            listener(snapshot)

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self._on_warning is not None:
            self._on_warning(message)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_item(self, definition: Definition, initial_data: Optional[Dict] = None) -> Optional[str]:
        """
        Place a new instance of a library item or agent.

        Returns the new instance id, or None when the definition is an agent
        that is already on the canvas.
        """
        is_agent = isinstance(definition, AgentConfig)
        base_id = definition.id

        if is_agent and any(
            item.type == ItemType.AGENT and item.base_id == base_id for item in self._items
        ):
            self._warn(f"Agent '{definition.name}' is already on the schema.")
            return None

        item = SchemaItem(
            id=f"{base_id}_{uuid.uuid4().hex[:12]}",
            base_id=base_id,
            type=ItemType.AGENT if is_agent else ItemType(definition.type),
            name=definition.name,
            icon_name=definition.icon if is_agent else definition.icon_name,
            position=Position(
                x=50 + self._rng.random() * 150,
                y=50 + self._rng.random() * 100,
            ),
            data=dict(initial_data or {}),
        )
        self._items.append(item)
        logger.debug(f"Added item {item.id} ({item.type.value}:{base_id})")
        self._changed()
        return item.id

    def remove_item(self, item_id: str) -> bool:
        """Remove an item and every connection touching it."""
        before = len(self._items)
        self._items = [item for item in self._items if item.id != item_id]
        if len(self._items) == before:
            return False
        self._connections = [
            conn for conn in self._connections if conn.from_id != item_id and conn.to_id != item_id
        ]
        self._changed()
        return True

    def move_item(self, item_id: str, dx: float, dy: float) -> None:
        """Shift an item by a delta in world units. Unknown ids are ignored."""
        for index, item in enumerate(self._items):
            if item.id == item_id:
                position = Position(x=item.position.x + dx, y=item.position.y + dy)
                self._items[index] = item.model_copy(update={"position": position})
                self._changed()
                return

    def add_connection(self, from_id: str, to_id: str) -> Optional[Connection]:
        """
        Connect two items. Self-loops, duplicates of the same ordered pair and
        unknown endpoints are rejected silently (None is returned).
        """
        if from_id == to_id:
            logger.debug(f"Rejected self-loop on {from_id}")
            return None
        if not (self.has_item(from_id) and self.has_item(to_id)):
            logger.debug(f"Rejected connection {from_id} -> {to_id}: unknown endpoint")
            return None
        if any(conn.from_id == from_id and conn.to_id == to_id for conn in self._connections):
            logger.debug(f"Rejected duplicate connection {from_id} -> {to_id}")
            return None

        connection = Connection(id=Connection.make_id(from_id, to_id), from_id=from_id, to_id=to_id)
        self._connections.append(connection)
        self._changed()
        return connection

    def clear(self) -> None:
        """Remove everything. Callers confirm the destructive action beforehand."""
        self._items = []
        self._connections = []
        self._changed()

    def load(
        self,
        state: SchemaState,
        force: bool = False,
        confirm: Optional[Callable[[], bool]] = None,
    ) -> bool:
        """
        Replace the whole graph.

        Unless ``force`` is set, ``confirm`` must be given and return True,
        since loading discards unsaved work.
        """
        if not force and (confirm is None or not confirm()):
            return False
        self._replace(state)
        self._changed()
        return True

    def _replace(self, state: SchemaState) -> None:
        copy = state.model_copy(deep=True)
        self._items = list(copy.items)
        self._connections = list(copy.connections)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save(self) -> SchemaState:
        """Return a detached copy of the current graph."""
        return SchemaState(items=self._items, connections=self._connections).model_copy(deep=True)

    snapshot = save

    def to_json(self) -> str:
        return json.dumps(self.save().to_record(), ensure_ascii=False)

    @classmethod
    def from_json(cls, payload: str | bytes) -> "SchemaGraph":
        return cls(SchemaState.model_validate_json(payload))
