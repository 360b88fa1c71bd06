"""Concurrent DAG executor for workflow nodes.

Every node runs at most once per execution, as its own asyncio task. A node
task first awaits the tasks of its direct predecessors, so independent
branches run concurrently while each node still sees complete inputs.
"""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import structlog

from app.core.metrics import (
    node_execution_duration_seconds,
    node_failures_total,
    node_output_rows,
)
from app.engine.connection_manager import ConnectionManager, port_index
from app.engine.context import ExecutionContext
from app.engine.data_table import DataTable, empty_table
from app.engine.errors import ExecutionCancelled
from app.engine.node_model import NodeModel
from app.engine.settings import NodeSettings
from app.engine.utils import utcnow_iso

logger = structlog.stdlib.get_logger(__name__)


class NodeStatus(StrEnum):
    IDLE = "idle"
    EXECUTING = "executing"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass
class WorkflowNode:
    """A graph node bound to its model instance plus its runtime state."""

    id: str
    factory_id: str
    model: NodeModel
    label: str = ""
    position: dict = field(default_factory=lambda: {"x": 0, "y": 0})
    settings: dict = field(default_factory=dict)
    input_ports: int = 1
    output_ports: int = 1

    status: NodeStatus = NodeStatus.IDLE
    executed: bool = False
    outputs: list[Any] | None = None
    error: str | None = None
    dashboard_items: list[dict] = field(default_factory=list)
    started_at: str | None = None
    completed_at: str | None = None
    rows_processed: int | None = None

    def reset(self) -> None:
        self.status = NodeStatus.IDLE
        self.executed = False
        self.outputs = None
        self.error = None
        self.dashboard_items = []
        self.started_at = None
        self.completed_at = None
        self.rows_processed = None

    def status_dict(self) -> dict:
        return {
            "status": self.status.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "rows_processed": self.rows_processed,
            "error": self.error,
        }


StatusCallback = Callable[
    [str, NodeStatus, list[Any] | None, str | None, ExecutionContext | None],
    Awaitable[None] | None,
]
CancelCheck = Callable[[], Awaitable[bool]]


class ExecutionEngine:
    def __init__(
        self,
        status_callback: StatusCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> None:
        self._status_callback = status_callback
        self._should_cancel = should_cancel
        self._nodes: dict[str, WorkflowNode] = {}
        self._edges: list[dict] = []
        self._tasks: dict[str, asyncio.Future] = {}
        self._cancel_event = asyncio.Event()

    @property
    def nodes(self) -> dict[str, WorkflowNode]:
        return self._nodes

    def set_workflow(self, nodes: list[WorkflowNode], edges: list[dict]) -> None:
        self._nodes = {n.id: n for n in nodes}
        self._edges = [
            e for e in edges
            if e.get("source") in self._nodes and e.get("target") in self._nodes
        ]
        self._tasks = {}

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    async def execute_workflow(self) -> dict[str, WorkflowNode]:
        """Run every node; raises ValueError before running anything if the graph has a cycle."""
        order = ConnectionManager.calculate_execution_order(
            [{"id": nid} for nid in self._nodes], self._edges
        )
        self._cancel_event.clear()
        self._tasks = {}
        for node in self._nodes.values():
            node.reset()

        logger.info("workflow_execution_started", nodes=len(order), edges=len(self._edges))
        await asyncio.gather(*(self._ensure_task(nid) for nid in order))
        return self._nodes

    async def execute_node_with_dependencies(self, node_id: str) -> WorkflowNode:
        """Run node_id after any upstream node that has not yet succeeded; never successors."""
        upstream = ConnectionManager.find_predecessors(node_id, self._edges)
        ConnectionManager.calculate_execution_order(
            [{"id": nid} for nid in [*upstream, node_id]], self._edges
        )
        self._cancel_event.clear()
        self._tasks = {}
        for nid in upstream:
            if self._nodes[nid].status == NodeStatus.SUCCESS:
                self._tasks[nid] = self._done_future()
            else:
                self._nodes[nid].reset()
        self._nodes[node_id].reset()
        await self._ensure_task(node_id)
        return self._nodes[node_id]

    async def execute_single_node(self, node_id: str) -> WorkflowNode:
        """Re-run one node against whatever its predecessors last produced."""
        self._cancel_event.clear()
        self._tasks = {
            nid: self._done_future()
            for nid in ConnectionManager.direct_predecessors(node_id, self._edges)
        }
        self._nodes[node_id].reset()
        await self._ensure_task(node_id)
        return self._nodes[node_id]

    def reset_node(self, node_id: str) -> None:
        """Clear a node and everything downstream of it, whose inputs are now stale."""
        for nid in [node_id, *ConnectionManager.find_dependent_nodes(node_id, self._edges)]:
            self._nodes[nid].reset()

    def reset_workflow(self) -> None:
        for node in self._nodes.values():
            node.reset()
        self._tasks = {}

    def node_statuses(self) -> dict[str, dict]:
        return {nid: node.status_dict() for nid, node in self._nodes.items()}

    @staticmethod
    def _done_future() -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        future.set_result(None)
        return future

    def _ensure_task(self, node_id: str) -> asyncio.Future:
        task = self._tasks.get(node_id)
        if task is None:
            task = asyncio.ensure_future(self._run_node(node_id))
            self._tasks[node_id] = task
        return task

    async def _run_node(self, node_id: str) -> None:
        node = self._nodes[node_id]
        predecessors = ConnectionManager.direct_predecessors(node_id, self._edges)
        if predecessors:
            await asyncio.gather(*(self._ensure_task(p) for p in predecessors))

        failed = [p for p in predecessors if self._nodes[p].status != NodeStatus.SUCCESS]
        if failed and not self.cancelled:
            node.status = NodeStatus.SKIPPED
            node.error = f"Upstream node '{failed[0]}' did not complete successfully"
            await self._notify(node, None)
            return

        if self._should_cancel is not None and not self.cancelled and await self._should_cancel():
            logger.info("workflow_execution_cancel_requested", node_id=node_id)
            self.cancel()
        if self.cancelled:
            node.status = NodeStatus.CANCELLED
            await self._notify(node, None)
            return

        ctx = ExecutionContext(node_id, self._cancel_event)
        node.status = NodeStatus.EXECUTING
        node.started_at = utcnow_iso()
        await self._notify(node, ctx)

        inputs = self._gather_inputs(node)
        start = time.perf_counter()
        try:
            settings = NodeSettings(node.settings)
            node.model.load_settings(settings)
            outputs = await node.model.execute(inputs, ctx)
        except ExecutionCancelled:
            node.status = NodeStatus.CANCELLED
            node.completed_at = utcnow_iso()
            logger.info("node_execution_cancelled", node_id=node_id)
            await self._notify(node, ctx)
            return
        except Exception as exc:
            node.status = NodeStatus.ERROR
            node.error = str(exc)
            node.executed = True
            node.completed_at = utcnow_iso()
            node_failures_total.labels(factory_id=node.factory_id).inc()
            logger.warning(
                "node_execution_failed",
                node_id=node_id,
                factory_id=node.factory_id,
                error=str(exc),
            )
            await self._notify(node, ctx)
            return
        finally:
            node_execution_duration_seconds.labels(factory_id=node.factory_id).observe(
                time.perf_counter() - start
            )

        try:
            node.model.send_outputs_to_dashboard(outputs, ctx, node.label)
        except Exception:
            logger.exception("dashboard_output_failed", node_id=node_id)

        node.outputs = outputs
        node.dashboard_items = list(ctx.dashboard_items)
        node.status = NodeStatus.SUCCESS
        node.executed = True
        node.completed_at = utcnow_iso()
        if outputs and isinstance(outputs[0], DataTable):
            node.rows_processed = outputs[0].size
            node_output_rows.labels(factory_id=node.factory_id).observe(outputs[0].size)
        logger.info(
            "node_executed",
            node_id=node_id,
            factory_id=node.factory_id,
            rows=node.rows_processed,
        )
        await self._notify(node, ctx)

    def _gather_inputs(self, node: WorkflowNode) -> list[DataTable]:
        inputs: list[DataTable] = [empty_table() for _ in range(node.input_ports)]
        for edge in self._edges:
            if edge["target"] != node.id:
                continue
            target_port = port_index(edge.get("targetHandle"))
            source_port = port_index(edge.get("sourceHandle"))
            outputs = self._nodes[edge["source"]].outputs or []
            if target_port < len(inputs) and source_port < len(outputs):
                inputs[target_port] = outputs[source_port]
        return inputs

    async def _notify(self, node: WorkflowNode, ctx: ExecutionContext | None) -> None:
        if self._status_callback is None:
            return
        try:
            result = self._status_callback(node.id, node.status, node.outputs, node.error, ctx)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("status_callback_failed", node_id=node.id)
