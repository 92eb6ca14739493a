"""Schema graph, viewport and gesture handling for the agent canvas."""

from canvas_core.graph import SchemaGraph
from canvas_core.gestures import GestureState, GestureStateMachine
from canvas_core.library import LibraryCatalog
from canvas_core.models import Connection, SchemaItem, SchemaState, ViewState
from canvas_core.viewport import NodeMetrics, Point, ViewportController

__all__ = [
    "SchemaGraph",
    "GestureState",
    "GestureStateMachine",
    "LibraryCatalog",
    "Connection",
    "SchemaItem",
    "SchemaState",
    "ViewState",
    "NodeMetrics",
    "Point",
    "ViewportController",
]
