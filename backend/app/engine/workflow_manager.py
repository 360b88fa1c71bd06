"""Workflow graph editing and execution on top of the node registry."""

import uuid
from datetime import UTC, datetime

import structlog

from app.engine.connection_manager import ConnectionManager, port_index
from app.engine.errors import NodeExecutionError, WorkflowValidationError
from app.engine.execution_engine import (
    CancelCheck,
    ExecutionEngine,
    NodeStatus,
    StatusCallback,
    WorkflowNode,
)
from app.engine.registry import NodeRegistry, get_registry
from app.engine.settings import NodeSettings

logger = structlog.stdlib.get_logger(__name__)

GRAPH_FORMAT_VERSION = "1.0"


class WorkflowManager:
    """Holds one workflow graph: its nodes (with live models) and edges."""

    def __init__(
        self,
        registry: NodeRegistry | None = None,
        status_callback: StatusCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> None:
        self._registry = registry or get_registry()
        self.nodes: dict[str, WorkflowNode] = {}
        self.edges: list[dict] = []
        self.metadata: dict = {}
        self.engine = ExecutionEngine(status_callback, should_cancel)

    # -- Graph loading ----------------------------------------------------

    def set_workflow(self, graph: dict) -> None:
        """Rebuild node models from a serialized graph; unknown node types are dropped."""
        self.nodes = {}
        for raw in graph.get("nodes") or []:
            data = raw.get("data") or {}
            factory_id = data.get("factoryId") or raw.get("type")
            factory = self._registry.get_factory(factory_id) if factory_id else None
            if factory is None:
                logger.warning("unknown_node_type", node_id=raw.get("id"), factory_id=factory_id)
                continue
            model = factory.create_node_model()
            self.nodes[raw["id"]] = WorkflowNode(
                id=raw["id"],
                factory_id=factory.id,
                model=model,
                label=data.get("label") or factory.name,
                position=raw.get("position") or {"x": 0, "y": 0},
                settings=dict(data.get("settings") or {}),
                input_ports=int(data.get("inputPorts", model.input_ports)),
                output_ports=int(data.get("outputPorts", model.output_ports)),
            )

        self.edges = []
        for edge in graph.get("edges") or []:
            if edge.get("source") in self.nodes and edge.get("target") in self.nodes:
                self.edges.append(dict(edge))
            else:
                logger.warning("dangling_edge_dropped", edge_id=edge.get("id"))
        self.metadata = dict(graph.get("metadata") or {})
        self._sync_engine()

    def _sync_engine(self) -> None:
        self.engine.set_workflow(list(self.nodes.values()), self.edges)

    def _graph_nodes(self) -> list[dict]:
        return [self._serialize_node(n) for n in self.nodes.values()]

    # -- Editing ----------------------------------------------------------

    def create_node(
        self,
        factory_id: str,
        position: dict | None = None,
        label: str | None = None,
    ) -> WorkflowNode:
        factory = self._registry.require_factory(factory_id)
        model = factory.create_node_model()
        node_id = f"node-{int(datetime.now(UTC).timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"
        return WorkflowNode(
            id=node_id,
            factory_id=factory.id,
            model=model,
            label=label or factory.name,
            position=position or {"x": 0, "y": 0},
            input_ports=model.input_ports,
            output_ports=model.output_ports,
        )

    def add_node(self, node: WorkflowNode) -> None:
        self.nodes[node.id] = node
        self._sync_engine()

    def remove_node(self, node_id: str) -> None:
        self.nodes.pop(node_id, None)
        self.edges = ConnectionManager.remove_node_edges(node_id, self.edges)
        self._sync_engine()

    def connect(
        self,
        source: str,
        target: str,
        source_handle: str = "source-0",
        target_handle: str = "target-0",
    ) -> dict:
        result = ConnectionManager.validate_connection(
            self._graph_nodes(), self.edges, source, target, source_handle, target_handle
        )
        if not result.valid:
            raise WorkflowValidationError(result.reason or "Invalid connection")
        if result.should_replace:
            self.edges = [e for e in self.edges if e.get("id") != result.existing_edge_id]

        edge = ConnectionManager.create_edge(
            source,
            target,
            port_index(source_handle),
            port_index(target_handle),
        )
        self.edges.append(edge)
        self._sync_engine()
        self.engine.reset_node(target)
        return edge

    def update_node_settings(self, node_id: str, settings: dict) -> None:
        node = self.nodes[node_id]
        node.model.validate_settings(NodeSettings(settings))
        node.settings = dict(settings)
        self.engine.reset_node(node_id)

    # -- Execution --------------------------------------------------------

    async def execute_workflow(self) -> dict[str, WorkflowNode]:
        self._sync_engine()
        return await self.engine.execute_workflow()

    async def execute_node(self, node_id: str, include_dependencies: bool = True) -> WorkflowNode:
        """Run one node; raises NodeExecutionError when it ends in error."""
        if node_id not in self.nodes:
            raise KeyError(node_id)
        if include_dependencies:
            node = await self.engine.execute_node_with_dependencies(node_id)
        else:
            node = await self.engine.execute_single_node(node_id)
        if node.status == NodeStatus.ERROR:
            raise NodeExecutionError(node_id, node.error or "unknown error")
        return node

    def cancel(self) -> None:
        self.engine.cancel()

    def node_statuses(self) -> dict[str, dict]:
        return self.engine.node_statuses()

    def get_dashboard_items(self) -> list[tuple[str, dict]]:
        """(node_id, item) pairs produced by the last execution."""
        return [(n.id, item) for n in self.nodes.values() for item in n.dashboard_items]

    # -- Serialization ----------------------------------------------------

    @staticmethod
    def _serialize_node(node: WorkflowNode) -> dict:
        return {
            "id": node.id,
            "type": "custom",
            "position": dict(node.position),
            "data": {
                "label": node.label,
                "factoryId": node.factory_id,
                "settings": dict(node.settings),
                "inputPorts": node.input_ports,
                "outputPorts": node.output_ports,
                "status": NodeStatus.IDLE.value,
                "executed": False,
            },
        }

    def serialize(self) -> dict:
        """Graph without runtime state, ready for Workflow.graph_json."""
        return {
            "nodes": self._graph_nodes(),
            "edges": [dict(e) for e in self.edges],
            "metadata": {
                **self.metadata,
                "lastSaved": datetime.now(UTC).isoformat(),
                "version": GRAPH_FORMAT_VERSION,
            },
        }
