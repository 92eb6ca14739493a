"""Execution of canvas schemas: engine, node behaviors, status and run log."""

from canvas_engine.behaviors import DryRunResolver, NodeBehaviorResolver, build_default_resolver
from canvas_engine.engine import ExecutionEngine, RunOutcome
from canvas_engine.execution_log import ExecutionEvent, ExecutionLog, ExecutionLogSink, ExecutionRun, ListSink
from canvas_engine.status import ConnectionStatus, NodeStatus, StatusBoard

__all__ = [
    "DryRunResolver",
    "NodeBehaviorResolver",
    "build_default_resolver",
    "ExecutionEngine",
    "RunOutcome",
    "ExecutionEvent",
    "ExecutionLog",
    "ExecutionLogSink",
    "ExecutionRun",
    "ListSink",
    "ConnectionStatus",
    "NodeStatus",
    "StatusBoard",
]
