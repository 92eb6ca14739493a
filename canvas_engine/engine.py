"""
Schema execution engine.

Runs a snapshot of the schema as an asynchronous, dependency-ordered
pipeline:

- items without incoming connections form the start set and run
  concurrently
- a successful item hands its result on as the execution context and
  starts all of its successors concurrently
- an item reached through several connections runs once, after every
  predecessor on a forward path has settled, and is skipped when one of
  them did not succeed
- a failing item halts only its own branch; the run as a whole is failed
  once any item has failed

"Forward" predecessors are decided by a depth-first walk from the start
set: connections that close a cycle back to an item already on the walk
are not waited on, so cyclic schemas cannot deadlock.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from canvas_core.library import GET_INPUT
from canvas_core.models import Connection, SchemaItem, SchemaState
from canvas_engine.behaviors import NodeBehaviorResolver, has_value
from canvas_engine.errors import NodeExecutionError, RunInProgressError, StructuralError
from canvas_engine.execution_log import EventStatus, ExecutionEvent, ExecutionLogSink
from canvas_engine.status import ConnectionStatus, NodeStatus, StatusBoard
from shared.config import config
from shared.logger import get_logger

logger = get_logger("canvas_engine.engine")

NO_START_NODE_MESSAGE = "No start node found. Check the schema for cycles."

_UNSET: Any = object()


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionEngine:
    """
    Executes schema snapshots against a behavior resolver.

    One run at a time; status is written to ``status_board`` and events go
    to the optional log sink.
    """

    def __init__(
        self,
        status_board: Optional[StatusBoard] = None,
        start_delay: Optional[float] = None,
        settle_delay: Optional[float] = None,
        default_input: Optional[Any] = None,
    ) -> None:
        self.status_board = status_board or StatusBoard()
        self.start_delay = config.node_start_delay if start_delay is None else start_delay
        self.settle_delay = config.node_settle_delay if settle_delay is None else settle_delay
        self.default_input = config.default_input_placeholder if default_input is None else default_input
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(
        self,
        state: SchemaState,
        resolver: NodeBehaviorResolver,
        log_sink: Optional[ExecutionLogSink] = None,
        initial_context: Any = _UNSET,
    ) -> RunOutcome:
        """
        Execute ``state`` to completion.

        Execution failures never raise; they are reflected in the returned
        outcome, the status board and the log.

        Raises:
            RunInProgressError: If another run of this engine has not finished
        """
        if self._running:
            raise RunInProgressError("A run is already in progress")
        self._running = True
        try:
            run = _Run(self, state.model_copy(deep=True), resolver, log_sink)
            return await run.execute(initial_context)
        finally:
            self._running = False


class _Run:
    """State of a single execution."""

    def __init__(
        self,
        engine: ExecutionEngine,
        state: SchemaState,
        resolver: NodeBehaviorResolver,
        sink: Optional[ExecutionLogSink],
    ) -> None:
        self.engine = engine
        self.board = engine.status_board
        self.resolver = resolver
        self.sink = sink
        self.run_id: Optional[str] = None

        self.items: Dict[str, SchemaItem] = {item.id: item for item in state.items}
        self.order: List[str] = [item.id for item in state.items]
        self.connections: List[Connection] = list(state.connections)

        self.successors: Dict[str, List[str]] = {item_id: [] for item_id in self.order}
        self.predecessors: Dict[str, List[str]] = {item_id: [] for item_id in self.order}
        self.incoming: Dict[str, List[Connection]] = {item_id: [] for item_id in self.order}
        self.outgoing: Dict[str, List[Connection]] = {item_id: [] for item_id in self.order}

        self.claimed: Set[str] = set()
        self.succeeded: Set[str] = set()
        self.settled: Dict[str, asyncio.Event] = {}
        self.forward_preds: Dict[str, List[str]] = {}
        self.has_error = False
        self.context: Any = None

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------
    def _build_adjacency(self) -> None:
        for conn in self.connections:
            if conn.from_id not in self.items or conn.to_id not in self.items:
                present = conn.from_id if conn.from_id in self.items else conn.to_id
                raise StructuralError(
                    f"Connection {conn.id} references a missing item",
                    item_id=present if present in self.items else None,
                )
            self.outgoing[conn.from_id].append(conn)
            self.incoming[conn.to_id].append(conn)
            if conn.to_id not in self.successors[conn.from_id]:
                self.successors[conn.from_id].append(conn.to_id)
                self.predecessors[conn.to_id].append(conn.from_id)

    def _start_nodes(self) -> List[str]:
        return [item_id for item_id in self.order if not self.incoming[item_id]]

    def _compute_forward_predecessors(self, start_ids: List[str]) -> None:
        """Rank reachable items in reverse DFS postorder; edges pointing down the ranking are forward."""
        visited: Set[str] = set()
        postorder: List[str] = []
        for start_id in start_ids:
            if start_id in visited:
                continue
            visited.add(start_id)
            stack = [(start_id, iter(self.successors[start_id]))]
            while stack:
                node_id, children = stack[-1]
                child = next((c for c in children if c not in visited), None)
                if child is None:
                    stack.pop()
                    postorder.append(node_id)
                else:
                    visited.add(child)
                    stack.append((child, iter(self.successors[child])))

        rank = {node_id: index for index, node_id in enumerate(reversed(postorder))}
        for item_id in self.order:
            if item_id not in rank:
                self.forward_preds[item_id] = []
                continue
            self.forward_preds[item_id] = [
                pred for pred in self.predecessors[item_id] if pred in rank and rank[pred] < rank[item_id]
            ]

    def _seed_context(self, start_ids: List[str], initial_context: Any) -> Any:
        for item_id in start_ids:
            item = self.items[item_id]
            if item.base_id == GET_INPUT and has_value(item.data.get("value")):
                return item.data["value"]
        if initial_context is not _UNSET:
            return initial_context
        return self.engine.default_input

    # ------------------------------------------------------------------
    # Log sink
    # ------------------------------------------------------------------
    def _open_run(self) -> None:
        if self.sink is None:
            return
        try:
            self.run_id = self.sink.start_run()
        except Exception as e:
            logger.error(f"Execution log failed to open a run: {e}", exc_info=True)

    def _close_run(self, outcome: RunOutcome) -> None:
        if self.sink is None or self.run_id is None:
            return
        try:
            self.sink.end_run(self.run_id, outcome.value)
        except Exception as e:
            logger.error(f"Execution log failed to close run {self.run_id}: {e}", exc_info=True)

    def _emit(self, item_id: str, status: EventStatus, message: str, data: Any = None) -> None:
        if self.sink is None or self.run_id is None:
            return
        item = self.items.get(item_id)
        event = ExecutionEvent(
            node_id=item_id,
            node_name=item.name if item else "",
            status=status,
            message=message,
            data=data,
        )
        try:
            self.sink.record(self.run_id, event)
        except Exception as e:
            logger.error(f"Execution log failed to record event for {item_id}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    async def execute(self, initial_context: Any) -> RunOutcome:
        self.board.reset(self.order, [conn.id for conn in self.connections])
        self._open_run()
        logger.info(f"Run {self.run_id or '(unlogged)'} started with {len(self.order)} items")

        if not self.order:
            return self._finish(RunOutcome.COMPLETED)

        try:
            self._build_adjacency()
            start_ids = self._start_nodes()
            if not start_ids:
                raise StructuralError(NO_START_NODE_MESSAGE)
        except StructuralError as e:
            target = e.item_id or self.order[0]
            logger.warning(f"Schema cannot be executed: {e}")
            self.board.set_node(target, NodeStatus.ERROR)
            self._emit(target, EventStatus.ERROR, f"Error: {e}")
            self.has_error = True
            return self._finish(RunOutcome.FAILED)

        self._compute_forward_predecessors(start_ids)
        self.settled = {item_id: asyncio.Event() for item_id in self.order}
        self.context = self._seed_context(start_ids, initial_context)

        await asyncio.gather(*(self._execute_node(item_id) for item_id in start_ids))
        return self._finish(RunOutcome.FAILED if self.has_error else RunOutcome.COMPLETED)

    def _finish(self, outcome: RunOutcome) -> RunOutcome:
        self._close_run(outcome)
        logger.info(f"Run {self.run_id or '(unlogged)'} finished: {outcome.value}")
        return outcome

    async def _execute_node(self, item_id: str) -> None:
        if item_id in self.claimed:
            return
        self.claimed.add(item_id)

        preds = self.forward_preds[item_id]
        for pred in preds:
            await self.settled[pred].wait()
        if any(pred not in self.succeeded for pred in preds):
            logger.debug(f"Skipping {item_id}: an upstream item did not succeed")
            self._settle_unreached(item_id)
            return

        item = self.items[item_id]
        input_value = self.context
        self.board.set_node(item_id, NodeStatus.RUNNING)
        self._emit(item_id, EventStatus.STARTED, "Received input.", input_value)
        logger.debug(f"Executing {item_id} ({item.type.value}:{item.base_id})")
        await self._pace(self.engine.start_delay)

        def report(message: str, data: Any = None) -> None:
            self._emit(item_id, EventStatus.SUCCESS, message, data)

        try:
            result = await self.resolver.resolve(item, input_value, report)
        except Exception as e:
            self._fail(item_id, e)
            return

        self.context = result
        self.succeeded.add(item_id)
        self.board.set_node(item_id, NodeStatus.SUCCESS)
        for conn in self.outgoing[item_id]:
            self.board.set_connection(conn.id, ConnectionStatus.SUCCESS)
        self._emit(item_id, EventStatus.SUCCESS, "Executed successfully. Returned result.", result)
        self.settled[item_id].set()

        await self._pace(self.engine.settle_delay)
        await asyncio.gather(*(self._execute_node(next_id) for next_id in self.successors[item_id]))

    def _fail(self, item_id: str, error: Exception) -> None:
        self.has_error = True
        if isinstance(error, NodeExecutionError):
            logger.warning(f"Item {item_id} failed: {error}")
        else:
            logger.error(f"Item {item_id} raised: {error}", exc_info=True)
        self.board.set_node(item_id, NodeStatus.ERROR)
        for conn in self.incoming[item_id]:
            self.board.set_connection(conn.id, ConnectionStatus.ERROR)
        self._emit(item_id, EventStatus.ERROR, f"Error: {error}")
        self._settle_unreached(item_id)

    def _settle_unreached(self, item_id: str) -> None:
        """
        Settle ``item_id`` without success, and with it every unclaimed
        forward successor, which can no longer run.
        """
        pending = [item_id]
        while pending:
            current = pending.pop()
            self.settled[current].set()
            for next_id in self.successors[current]:
                if next_id not in self.claimed and current in self.forward_preds[next_id]:
                    self.claimed.add(next_id)
                    pending.append(next_id)

    @staticmethod
    async def _pace(delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
