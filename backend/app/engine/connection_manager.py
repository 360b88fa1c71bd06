"""Edge validation and graph queries over serialized workflow graphs.

Nodes and edges are the dicts stored in Workflow.graph_json:
node = {"id", "position", "data": {"factoryId", "inputPorts", "outputPorts", ...}}
edge = {"id", "source", "target", "sourceHandle", "targetHandle"}
"""

import re
from collections import deque
from dataclasses import dataclass

_PORT_RE = re.compile(r"-(\d+)$")


@dataclass(frozen=True)
class ConnectionValidation:
    valid: bool
    reason: str | None = None
    should_replace: bool = False
    existing_edge_id: str | None = None


def port_index(handle: str | None) -> int:
    """Port number encoded at the end of a handle ("source-2" -> 2); 0 if absent."""
    match = _PORT_RE.search(handle or "")
    return int(match.group(1)) if match else 0


def _port_counts(node: dict) -> tuple[int, int]:
    data = node.get("data") or {}
    return int(data.get("inputPorts", 1)), int(data.get("outputPorts", 1))


class ConnectionManager:
    """Stateless helpers; every method takes the node and edge lists it works on."""

    @staticmethod
    def create_edge(
        source: str, target: str, source_port: int = 0, target_port: int = 0
    ) -> dict:
        return {
            "id": f"reactflow__edge-{source}source-{source_port}-{target}target-{target_port}",
            "source": source,
            "target": target,
            "sourceHandle": f"source-{source_port}",
            "targetHandle": f"target-{target_port}",
        }

    @staticmethod
    def direct_predecessors(node_id: str, edges: list[dict]) -> list[str]:
        seen: list[str] = []
        for edge in edges:
            if edge.get("target") == node_id and edge.get("source") not in seen:
                seen.append(edge["source"])
        return seen

    @staticmethod
    def direct_successors(node_id: str, edges: list[dict]) -> list[str]:
        seen: list[str] = []
        for edge in edges:
            if edge.get("source") == node_id and edge.get("target") not in seen:
                seen.append(edge["target"])
        return seen

    @classmethod
    def find_dependent_nodes(cls, node_id: str, edges: list[dict]) -> list[str]:
        """All nodes reachable downstream of node_id, breadth-first."""
        return cls._walk(node_id, edges, cls.direct_successors)

    @classmethod
    def find_predecessors(cls, node_id: str, edges: list[dict]) -> list[str]:
        """All nodes node_id transitively depends on, breadth-first."""
        return cls._walk(node_id, edges, cls.direct_predecessors)

    @staticmethod
    def _walk(start: str, edges: list[dict], step) -> list[str]:
        found: list[str] = []
        queue = deque(step(start, edges))
        while queue:
            current = queue.popleft()
            if current in found or current == start:
                continue
            found.append(current)
            queue.extend(step(current, edges))
        return found

    @classmethod
    def would_create_cycle(cls, source: str, target: str, edges: list[dict]) -> bool:
        return source == target or source in cls.find_dependent_nodes(target, edges)

    @classmethod
    def validate_connection(
        cls,
        nodes: list[dict],
        edges: list[dict],
        source: str,
        target: str,
        source_handle: str | None = "source-0",
        target_handle: str | None = "target-0",
    ) -> ConnectionValidation:
        by_id = {n["id"]: n for n in nodes}
        if source not in by_id or target not in by_id:
            return ConnectionValidation(False, "Source or target node not found")
        if source == target:
            return ConnectionValidation(False, "Cannot connect a node to itself")

        source_port = port_index(source_handle)
        target_port = port_index(target_handle)
        if source_port >= _port_counts(by_id[source])[1]:
            return ConnectionValidation(False, f"Source port {source_port} does not exist")
        if target_port >= _port_counts(by_id[target])[0]:
            return ConnectionValidation(False, f"Target port {target_port} does not exist")

        if cls.would_create_cycle(source, target, edges):
            return ConnectionValidation(False, "Connection would create a cycle")

        for edge in edges:
            if edge.get("target") == target and port_index(edge.get("targetHandle")) == target_port:
                if edge.get("source") == source and port_index(edge.get("sourceHandle")) == source_port:
                    return ConnectionValidation(False, "Connection already exists")
                # One edge per input port: the new edge replaces the old one
                return ConnectionValidation(
                    True, should_replace=True, existing_edge_id=edge.get("id")
                )
        return ConnectionValidation(True)

    @classmethod
    def calculate_execution_order(cls, nodes: list[dict], edges: list[dict]) -> list[str]:
        """Kahn's algorithm; ties keep node list order."""
        node_ids = [n["id"] for n in nodes]
        known = set(node_ids)
        in_degree = {nid: 0 for nid in node_ids}
        for edge in edges:
            if edge.get("source") in known and edge.get("target") in known:
                in_degree[edge["target"]] += 1

        queue = deque(nid for nid in node_ids if in_degree[nid] == 0)
        order: list[str] = []
        while queue:
            current = queue.popleft()
            order.append(current)
            for edge in edges:
                if edge.get("source") == current and edge.get("target") in known:
                    in_degree[edge["target"]] -= 1
                    if in_degree[edge["target"]] == 0:
                        queue.append(edge["target"])

        if len(order) != len(node_ids):
            raise ValueError("Workflow DAG contains a cycle")
        return order

    @staticmethod
    def get_node_connection_info(node_id: str, edges: list[dict]) -> dict:
        incoming = [e for e in edges if e.get("target") == node_id]
        outgoing = [e for e in edges if e.get("source") == node_id]
        return {
            "incoming": incoming,
            "outgoing": outgoing,
            "inputCount": len(incoming),
            "outputCount": len(outgoing),
        }

    @staticmethod
    def remove_node_edges(node_id: str, edges: list[dict]) -> list[dict]:
        return [e for e in edges if e.get("source") != node_id and e.get("target") != node_id]

    @staticmethod
    def get_root_nodes(nodes: list[dict], edges: list[dict]) -> list[str]:
        targets = {e.get("target") for e in edges}
        return [n["id"] for n in nodes if n["id"] not in targets]

    @staticmethod
    def get_leaf_nodes(nodes: list[dict], edges: list[dict]) -> list[str]:
        sources = {e.get("source") for e in edges}
        return [n["id"] for n in nodes if n["id"] not in sources]

    @classmethod
    def validate_workflow(cls, nodes: list[dict], edges: list[dict]) -> dict:
        errors: list[str] = []
        by_id = {n["id"]: n for n in nodes}

        for edge in edges:
            source, target = edge.get("source"), edge.get("target")
            if source not in by_id or target not in by_id:
                errors.append(f"Edge {edge.get('id')} references a missing node")
                continue
            source_port = port_index(edge.get("sourceHandle"))
            target_port = port_index(edge.get("targetHandle"))
            if source_port >= _port_counts(by_id[source])[1]:
                errors.append(f"Edge {edge.get('id')} uses missing output port {source_port} on {source}")
            if target_port >= _port_counts(by_id[target])[0]:
                errors.append(f"Edge {edge.get('id')} uses missing input port {target_port} on {target}")

        valid_edges = [e for e in edges if e.get("source") in by_id and e.get("target") in by_id]
        try:
            cls.calculate_execution_order(nodes, valid_edges)
        except ValueError as exc:
            errors.append(str(exc))

        if nodes and not cls.get_root_nodes(nodes, valid_edges):
            errors.append("No root nodes found - all nodes have incoming connections")

        return {"valid": not errors, "errors": errors}
