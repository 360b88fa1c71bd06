"""Workflow import/export and structural checks on serialized graphs."""

import copy
import uuid
from collections import Counter
from datetime import UTC, datetime

from app.engine.errors import WorkflowValidationError

EXPORT_FORMAT_VERSION = "1.0"


class StorageManager:
    @staticmethod
    def export_workflow(graph: dict, name: str | None = None) -> dict:
        exported = copy.deepcopy(graph)
        exported.setdefault("nodes", [])
        exported.setdefault("edges", [])
        metadata = dict(exported.get("metadata") or {})
        if name:
            metadata["name"] = name
        metadata["exportedAt"] = datetime.now(UTC).isoformat()
        metadata["version"] = EXPORT_FORMAT_VERSION
        exported["metadata"] = metadata
        return exported

    @staticmethod
    def import_workflow(payload: dict) -> dict:
        """Normalize an imported graph; raises WorkflowValidationError on a bad shape."""
        nodes = payload.get("nodes") if isinstance(payload, dict) else None
        edges = payload.get("edges") if isinstance(payload, dict) else None
        if not isinstance(nodes, list) or not isinstance(edges, list):
            raise WorkflowValidationError(
                "Invalid workflow format: nodes and edges arrays are required"
            )

        imported_nodes = []
        for node in nodes:
            node = copy.deepcopy(node)
            data = node.setdefault("data", {})
            data["status"] = "idle"
            data["executed"] = False
            data.pop("error", None)
            data.pop("outputs", None)
            imported_nodes.append(node)

        imported_edges = []
        for edge in edges:
            source = edge.get("source") or edge.get("from")
            target = edge.get("target") or edge.get("to")
            source_handle = edge.get("sourceHandle") or "source-0"
            target_handle = edge.get("targetHandle") or "target-0"
            imported_edges.append(
                {
                    **{k: v for k, v in edge.items() if k not in ("from", "to")},
                    "id": edge.get("id") or f"edge-{source}-{target}",
                    "source": source,
                    "target": target,
                    "sourceHandle": source_handle,
                    "targetHandle": target_handle,
                }
            )

        return {
            "nodes": imported_nodes,
            "edges": imported_edges,
            "metadata": dict(payload.get("metadata") or {}),
        }

    @staticmethod
    def regenerate_ids(graph: dict) -> dict:
        """Copy of the graph with fresh node/edge ids and remapped edge endpoints."""
        id_map: dict[str, str] = {}
        nodes = []
        for node in graph.get("nodes") or []:
            new_id = str(uuid.uuid4())
            id_map[node.get("id", "")] = new_id
            nodes.append({**copy.deepcopy(node), "id": new_id})

        edges = []
        for edge in graph.get("edges") or []:
            edges.append(
                {
                    **copy.deepcopy(edge),
                    "id": str(uuid.uuid4()),
                    "source": id_map.get(edge.get("source", ""), edge.get("source", "")),
                    "target": id_map.get(edge.get("target", ""), edge.get("target", "")),
                }
            )
        return {**copy.deepcopy(graph), "nodes": nodes, "edges": edges}

    @staticmethod
    def get_workflow_summary(graph: dict) -> dict:
        nodes = graph.get("nodes") or []
        data = [n.get("data") or {} for n in nodes]
        return {
            "nodeCount": len(nodes),
            "edgeCount": len(graph.get("edges") or []),
            "nodeTypes": dict(Counter(d.get("factoryId", "unknown") for d in data)),
            "executedNodes": sum(1 for d in data if d.get("executed")),
            "errorNodes": sum(1 for d in data if d.get("status") == "error"),
        }

    @staticmethod
    def validate_workflow_structure(graph: dict) -> list[str]:
        errors = []
        node_ids = set()
        for index, node in enumerate(graph.get("nodes") or []):
            if not node.get("id"):
                errors.append(f"Node at index {index} is missing an id")
                continue
            node_ids.add(node["id"])
            if not (node.get("data") or {}).get("factoryId"):
                errors.append(f"Node {node['id']} is missing data.factoryId")
            if not isinstance(node.get("position"), dict):
                errors.append(f"Node {node['id']} is missing a position")

        for edge in graph.get("edges") or []:
            if edge.get("source") not in node_ids:
                errors.append(f"Edge {edge.get('id')} has unknown source {edge.get('source')}")
            if edge.get("target") not in node_ids:
                errors.append(f"Edge {edge.get('id')} has unknown target {edge.get('target')}")
        return errors
