"""Exceptions raised by the workflow engine."""


class ExecutionCancelled(Exception):
    """Raised inside a node when the running execution has been cancelled."""


class UnknownNodeTypeError(LookupError):
    """No node factory is registered under the requested id."""

    def __init__(self, factory_id: str) -> None:
        super().__init__(f"Unknown node type: {factory_id}")
        self.factory_id = factory_id


class NodeExecutionError(Exception):
    """A node failed while executing."""

    def __init__(self, node_id: str, message: str) -> None:
        super().__init__(f"Node '{node_id}' failed: {message}")
        self.node_id = node_id
        self.message = message


class WorkflowValidationError(ValueError):
    """A workflow graph or connection request is structurally invalid."""
