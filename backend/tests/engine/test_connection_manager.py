"""Connection validation and DAG queries."""

import pytest

from app.engine.connection_manager import ConnectionManager, port_index

CM = ConnectionManager


def _node(node_id: str, inputs: int = 1, outputs: int = 1) -> dict:
    return {
        "id": node_id,
        "position": {"x": 0, "y": 0},
        "data": {"factoryId": "sorter", "inputPorts": inputs, "outputPorts": outputs},
    }


def _chain() -> tuple[list[dict], list[dict]]:
    nodes = [_node("a", inputs=0), _node("b"), _node("c")]
    edges = [CM.create_edge("a", "b"), CM.create_edge("b", "c")]
    return nodes, edges


@pytest.mark.parametrize(
    ("handle", "expected"),
    [("source-0", 0), ("target-2", 2), (None, 0), ("", 0), ("odd", 0)],
)
def test_port_index(handle, expected):
    assert port_index(handle) == expected


def test_create_edge_id_and_handles():
    edge = CM.create_edge("n1", "n2", 1, 2)
    assert edge == {
        "id": "reactflow__edge-n1source-1-n2target-2",
        "source": "n1",
        "target": "n2",
        "sourceHandle": "source-1",
        "targetHandle": "target-2",
    }


class TestValidateConnection:
    def test_missing_node(self):
        nodes, edges = _chain()
        result = CM.validate_connection(nodes, edges, "a", "zzz")
        assert not result.valid
        assert result.reason == "Source or target node not found"

    def test_self_connection(self):
        nodes, edges = _chain()
        result = CM.validate_connection(nodes, edges, "b", "b")
        assert result.reason == "Cannot connect a node to itself"

    def test_port_out_of_range(self):
        nodes, edges = _chain()
        result = CM.validate_connection(nodes, edges, "a", "c", "source-3", "target-0")
        assert result.reason == "Source port 3 does not exist"
        result = CM.validate_connection(nodes, edges, "a", "c", "source-0", "target-1")
        assert result.reason == "Target port 1 does not exist"

    def test_cycle_rejected(self):
        nodes, edges = _chain()
        nodes[0]["data"]["inputPorts"] = 1
        result = CM.validate_connection(nodes, edges, "c", "a")
        assert result.reason == "Connection would create a cycle"

    def test_duplicate_rejected(self):
        nodes, edges = _chain()
        result = CM.validate_connection(nodes, edges, "a", "b")
        assert result.reason == "Connection already exists"

    def test_occupied_input_port_is_replaced(self):
        nodes, edges = _chain()
        nodes.append(_node("d", inputs=0))
        result = CM.validate_connection(nodes, edges, "d", "c")
        assert result.valid
        assert result.should_replace
        assert result.existing_edge_id == edges[1]["id"]

    def test_free_port_is_valid(self):
        nodes, edges = _chain()
        nodes.append(_node("j", inputs=2))
        result = CM.validate_connection(nodes, edges, "c", "j", "source-0", "target-1")
        assert result.valid
        assert not result.should_replace


class TestGraphQueries:
    def test_execution_order_is_topological(self):
        nodes = [_node("c"), _node("b"), _node("a", inputs=0)]
        edges = [CM.create_edge("a", "b"), CM.create_edge("b", "c")]
        assert CM.calculate_execution_order(nodes, edges) == ["a", "b", "c"]

    def test_execution_order_rejects_cycle(self):
        nodes = [_node("a"), _node("b")]
        edges = [CM.create_edge("a", "b"), CM.create_edge("b", "a")]
        with pytest.raises(ValueError, match="contains a cycle"):
            CM.calculate_execution_order(nodes, edges)

    def test_dependents_and_predecessors(self):
        _, edges = _chain()
        assert CM.find_dependent_nodes("a", edges) == ["b", "c"]
        assert CM.find_predecessors("c", edges) == ["b", "a"]
        assert CM.direct_predecessors("c", edges) == ["b"]
        assert CM.direct_successors("c", edges) == []

    def test_roots_and_leaves(self):
        nodes, edges = _chain()
        assert CM.get_root_nodes(nodes, edges) == ["a"]
        assert CM.get_leaf_nodes(nodes, edges) == ["c"]

    def test_connection_info(self):
        _, edges = _chain()
        info = CM.get_node_connection_info("b", edges)
        assert info["inputCount"] == 1
        assert info["outputCount"] == 1
        assert info["incoming"][0]["source"] == "a"

    def test_remove_node_edges(self):
        _, edges = _chain()
        assert CM.remove_node_edges("b", edges) == []


class TestValidateWorkflow:
    def test_valid_chain(self):
        nodes, edges = _chain()
        assert CM.validate_workflow(nodes, edges) == {"valid": True, "errors": []}

    def test_reports_missing_nodes_and_ports(self):
        nodes, edges = _chain()
        edges.append(CM.create_edge("a", "ghost"))
        edges.append(CM.create_edge("a", "c", 0, 4))
        result = CM.validate_workflow(nodes, edges)
        assert not result["valid"]
        assert any("references a missing node" in e for e in result["errors"])
        assert any("missing input port 4 on c" in e for e in result["errors"])

    def test_reports_cycle_without_roots(self):
        nodes = [_node("a"), _node("b")]
        edges = [CM.create_edge("a", "b"), CM.create_edge("b", "a")]
        errors = CM.validate_workflow(nodes, edges)["errors"]
        assert "Workflow DAG contains a cycle" in errors
        assert "No root nodes found - all nodes have incoming connections" in errors
