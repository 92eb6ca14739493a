"""
Live execution status of nodes and connections.

Status is never persisted; it is observed by the UI (or the HTTP status
endpoint) while a run is in progress.
"""
from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, List, Optional

from shared.logger import get_logger

logger = get_logger("canvas_engine.status")


class NodeStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class ConnectionStatus(str, Enum):
    IDLE = "idle"
    SUCCESS = "success"
    ERROR = "error"


StatusListener = Callable[[str, str, str], None]


class StatusBoard:
    """
    Maps item ids to NodeStatus and connection ids to ConnectionStatus.

    Ids that were never written read as idle. ``reset`` clears everything but
    does not stop scheduled work; later writes from a still-running branch
    are accepted.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, NodeStatus] = {}
        self._connections: Dict[str, ConnectionStatus] = {}
        self._listeners: List[StatusListener] = []

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Listener receives ``(kind, id, status)`` with kind ``node`` or ``connection``."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def node(self, item_id: str) -> NodeStatus:
        return self._nodes.get(item_id, NodeStatus.IDLE)

    def connection(self, connection_id: str) -> ConnectionStatus:
        return self._connections.get(connection_id, ConnectionStatus.IDLE)

    def set_node(self, item_id: str, status: NodeStatus) -> None:
        self._nodes[item_id] = status
        self._notify("node", item_id, status.value)

    def set_connection(self, connection_id: str, status: ConnectionStatus) -> None:
        self._connections[connection_id] = status
        self._notify("connection", connection_id, status.value)

    def nodes(self) -> Dict[str, NodeStatus]:
        return dict(self._nodes)

    def connections(self) -> Dict[str, ConnectionStatus]:
        return dict(self._connections)

    def reset(self, item_ids: Optional[List[str]] = None, connection_ids: Optional[List[str]] = None) -> None:
        """Forget all status, then mark the given ids idle."""
        self._nodes = {item_id: NodeStatus.IDLE for item_id in item_ids or []}
        self._connections = {conn_id: ConnectionStatus.IDLE for conn_id in connection_ids or []}
        self._notify("reset", "", "")

    def _notify(self, kind: str, target_id: str, status: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind, target_id, status)
            except Exception as e:
                logger.error(f"Status listener failed: {e}", exc_info=True)
